"""
In-memory vector store with an explicit two-tier index.

Primary: an ephemeral (non-persistent) chroma collection. Fast, but it
shares chroma's filter limits (equality only) and may be unavailable.

Secondary: an ExactVectorStore holding every record. Always written first,
so it is the source of truth for this process.

Query flow:
    1. Ask the primary (degraded chroma filter), unless a failed primary
       write left it without the latest version of some record.
    2. If the primary was skipped, raised BackendUnavailableError or
       returned zero matches, scan the secondary by brute force with the
       full, un-degraded predicates.
Which tier answered is logged as source="primary" or source="fallback";
the result shape is the same either way.
"""

import asyncio
from typing import Any, List, Mapping, Optional, Set

from config.constants import DEFAULT_RETRIEVAL_CONFIG, RetrievalConfig
from retrieval.adapters.base import VectorStoreAdapter
from retrieval.adapters.chroma_index import ChromaCollectionIndex, ephemeral_client
from retrieval.adapters.exact_store import ExactVectorStore
from retrieval.embeddings import EmbeddingGenerator
from retrieval.errors import BackendUnavailableError, StoreError
from retrieval.filters import (
    BackendKind,
    FilterTranslator,
    IN_PROCESS_CAPABILITIES,
    to_chroma_where,
)
from retrieval.models import EmbeddingRecord, Match


class InMemoryAdapter(VectorStoreAdapter):
    """Process-local vector store: chroma ephemeral primary, exact fallback."""

    kind = BackendKind.MEMORY

    def __init__(
        self,
        embedder: EmbeddingGenerator,
        collection_name: str,
        dimension: Optional[int] = None,
        primary: Optional[ChromaCollectionIndex] = None,
        store: Optional[ExactVectorStore] = None,
        config: RetrievalConfig = DEFAULT_RETRIEVAL_CONFIG,
    ):
        super().__init__(embedder, dimension=dimension, config=config)
        self.collection_name = collection_name
        self.primary = primary
        self.store = store if store is not None else ExactVectorStore()
        self.fallback_translator = FilterTranslator(IN_PROCESS_CAPABILITIES, backend="memory-fallback")
        # ids whose latest version the primary does not hold
        self._primary_missing: Set[str] = set()

    def _open_primary(self) -> ChromaCollectionIndex:
        index = ChromaCollectionIndex(
            ephemeral_client(),
            self.collection_name,
            space=self.config.CHROMA_SPACE,
        )
        index.open()
        return index

    async def _initialize(self) -> None:
        if self.primary is None:
            try:
                self.primary = await asyncio.to_thread(self._open_primary)
            except Exception as e:
                # The exact store alone can serve every operation
                self.logger.warning(
                    "In-memory primary index unavailable, serving from exact store only",
                    collection=self.collection_name,
                    error=str(e),
                )
                self.primary = None
                return
        elif not self.primary.is_open:
            await asyncio.to_thread(self.primary.open)

    # =========================================================================
    # Writes
    # =========================================================================

    async def _upsert(self, record: EmbeddingRecord) -> None:
        self.store.upsert(record)

        if self.primary is None:
            return
        try:
            await asyncio.to_thread(self.primary.upsert, record)
        except Exception as e:
            self.logger.warning(
                "Primary index write failed, record served by fallback",
                product_id=record.id,
                source="primary",
                error=str(e),
            )
            self._primary_missing.add(record.id)
            await self._evict_from_primary(record.id)
        else:
            self._primary_missing.discard(record.id)

    async def _evict_from_primary(self, product_id: str) -> None:
        # An older version left in the primary would shadow the new record
        try:
            await asyncio.to_thread(self.primary.delete, product_id)
        except Exception as e:
            self.logger.warning(
                "Could not evict stale record from primary index",
                product_id=product_id,
                source="primary",
                error=str(e),
            )

    async def _delete(self, product_id: str) -> None:
        self.store.delete(product_id)

        if self.primary is None:
            return
        try:
            await asyncio.to_thread(self.primary.delete, product_id)
        except Exception as e:
            raise StoreError(f"Failed to delete {product_id} from in-memory primary index: {e}") from e
        self._primary_missing.discard(product_id)

    # =========================================================================
    # Reads
    # =========================================================================

    async def _query_primary(
        self,
        vector: List[float],
        filters: Optional[Mapping[str, Any]],
        top_k: int,
    ) -> List[Match]:
        if self.primary is None:
            raise BackendUnavailableError("In-memory primary index is not available")
        where = to_chroma_where(self.plan_filters(filters))
        try:
            return await asyncio.to_thread(self.primary.query, vector, where, top_k)
        except Exception as e:
            raise BackendUnavailableError(f"In-memory primary query failed: {e}") from e

    async def _query(
        self,
        vector: List[float],
        filters: Optional[Mapping[str, Any]],
        top_k: int,
        exclude_id: Optional[str] = None,
    ) -> List[Match]:
        if self._primary_missing:
            reason = "primary_stale"
        else:
            try:
                matches = await self._query_primary(vector, filters, top_k)
            except BackendUnavailableError as e:
                reason = "primary_unavailable"
                self.logger.warning("Primary index query failed", source="primary", error=str(e))
            else:
                matches = [self._with_current_metadata(m) for m in matches if m.id != exclude_id]
                if matches:
                    self.logger.debug("Query served", source="primary", count=len(matches))
                    return matches
                reason = "primary_empty"

        predicates = self.fallback_translator.plan(filters).effective
        matches = self.store.search(vector, predicates, top_k, exclude_id=exclude_id)
        self.logger.info(
            "Query served",
            source="fallback",
            reason=reason,
            count=len(matches),
        )
        return matches

    def _with_current_metadata(self, match: Match) -> Match:
        record = self.store.get(match.id)
        if record is not None:
            match.metadata = dict(record.metadata)
        return match

    async def _get_vector(self, product_id: str) -> Optional[List[float]]:
        record = self.store.get(product_id)
        if record is not None:
            return list(record.vector)

        if self.primary is not None:
            try:
                vector = await asyncio.to_thread(self.primary.get_vector, product_id)
            except Exception as e:
                self.logger.warning(
                    "Primary index read failed",
                    product_id=product_id,
                    source="primary",
                    error=str(e),
                )
                vector = None
            if vector:
                return vector
        return None
