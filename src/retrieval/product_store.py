"""
Relational product store port.

The vector layer returns ids, scores and metadata only. The relational
store owns the full product records: the indexer writes back the vector id
assigned to each product, and callers hydrate matches into records here.
"""

import asyncio
from typing import Any, Dict, List, Optional, Protocol, Sequence

from supabase import Client

from config.database import get_supabase_client
from config.settings import get_settings
from core.logging import get_logger

logger = get_logger(__name__)


class ProductStoreError(Exception):
    """Raised when the relational product store cannot be read or written."""
    pass


class ProductStore(Protocol):
    async def update_vector_id(self, product_id: str, vector_id: str) -> None:
        ...

    async def fetch_products(self, product_ids: Sequence[str]) -> List[Dict[str, Any]]:
        ...


class SupabaseProductStore:
    """ProductStore backed by a Supabase table."""

    def __init__(
        self,
        client: Optional[Client] = None,
        table: Optional[str] = None,
        vector_id_column: Optional[str] = None,
        id_column: str = "id",
    ):
        settings = get_settings()
        self._client = client
        self.table = table or settings.products_table
        self.vector_id_column = vector_id_column or settings.vector_id_column
        self.id_column = id_column

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase_client()
        return self._client

    def _update(self, product_id: str, vector_id: str):
        return (
            self.client.table(self.table)
            .update({self.vector_id_column: vector_id})
            .eq(self.id_column, product_id)
            .execute()
        )

    def _select(self, product_ids: List[str]):
        return (
            self.client.table(self.table)
            .select("*")
            .in_(self.id_column, product_ids)
            .execute()
        )

    async def update_vector_id(self, product_id: str, vector_id: str) -> None:
        """Record the vector id assigned to a product."""
        try:
            await asyncio.to_thread(self._update, product_id, vector_id)
        except Exception as e:
            raise ProductStoreError(f"Failed to record vector id for {product_id}: {e}") from e
        logger.debug("Recorded vector id", product_id=product_id, vector_id=vector_id)

    async def fetch_products(self, product_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """
        Load full product rows for a list of ids.

        Rows come back in the order of product_ids (i.e. match order);
        ids with no row are skipped.
        """
        ids = [str(pid) for pid in product_ids]
        if not ids:
            return []
        try:
            result = await asyncio.to_thread(self._select, ids)
        except Exception as e:
            raise ProductStoreError(f"Failed to fetch products: {e}") from e

        rows = {str(row.get(self.id_column)): row for row in (result.data or [])}
        missing = [pid for pid in ids if pid not in rows]
        if missing:
            logger.warning("Products missing from relational store", missing=missing)
        return [rows[pid] for pid in ids if pid in rows]
