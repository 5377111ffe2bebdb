"""
Sequential bulk indexing of enriched products.

For each product, one at a time:
    1. store its embedding through the facade
    2. record the vector id in the relational product store
    3. attach vector_id to the product

A failure for one product (embedding, vector store, product store, or a
malformed record) is logged and recorded in the report; the batch goes on.
Only backend initialization failures abort.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from core.logging import LoggerMixin, log_context
from retrieval.errors import InitializationError, VectorStoreError
from retrieval.facade import RetrievalFacade
from retrieval.models import Match, ProductRecord
from retrieval.product_store import ProductStore, ProductStoreError


SMOKE_TEST_PRODUCT: Dict[str, Any] = {
    "product_id": "smoke-test-product",
    "title": "Classic White Oxford Shirt",
    "brand": "Smoke Test",
    "description": "Crisp cotton oxford shirt with a button-down collar.",
    "style_type": "casual",
    "aesthetic": "minimal",
    "primary_color": "white",
    "fabric": "cotton",
    "gender": "unisex",
    "fit_type": "regular",
    "category": "tops",
    "occasion": ["work", "casual"],
    "tags": ["shirt", "oxford"],
    "price": 49.0,
    "currency": "USD",
}


@dataclass
class IndexingReport:
    """Outcome of one indexing run."""
    indexed: List[Dict[str, Any]] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    duration_ms: int = 0

    @property
    def indexed_ids(self) -> List[str]:
        return [p["product_id"] for p in self.indexed]

    @property
    def success_count(self) -> int:
        return len(self.indexed)

    @property
    def failure_count(self) -> int:
        return len(self.failed)


@dataclass
class SmokeTestResult:
    backend: str
    found: bool
    matches: List[Match] = field(default_factory=list)
    latency_ms: int = 0


class ProductIndexer(LoggerMixin):
    """Indexes products into the active vector backend."""

    def __init__(
        self,
        facade: RetrievalFacade,
        product_store: Optional[ProductStore] = None,
    ):
        self.facade = facade
        self.product_store = product_store

    async def index_products(
        self,
        products: Iterable[Union[ProductRecord, Dict[str, Any]]],
    ) -> IndexingReport:
        """
        Index products sequentially.

        Raises:
            InitializationError: If the vector backend cannot be initialized
        """
        report = IndexingReport()
        t_start = time.time()

        await self.facade.warm_up()

        with log_context(backend=self.facade.backend, run_id=uuid.uuid4().hex[:8]):
            for position, product in enumerate(products):
                raw = product.model_dump() if isinstance(product, ProductRecord) else dict(product)
                # items without an id are reported by their position in the input
                product_id = str(raw.get("product_id") or f"<item {position}>")

                try:
                    record = ProductRecord.from_any(raw)
                    vector_id = await self.facade.store_product_embedding(record)
                    if self.product_store is not None:
                        await self.product_store.update_vector_id(record.product_id, vector_id)
                except (VectorStoreError, ProductStoreError, ValidationError) as e:
                    report.failed[product_id] = f"{type(e).__name__}: {e}"
                    self.logger.error(
                        "Failed to index product",
                        product_id=product_id,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                    continue

                raw["vector_id"] = vector_id
                report.indexed.append(raw)
                self.logger.info("Indexed product", product_id=product_id, title=raw.get("title"))

        report.duration_ms = int((time.time() - t_start) * 1000)
        self.logger.info(
            "Indexing complete",
            backend=self.facade.backend,
            indexed=report.success_count,
            failed=report.failure_count,
            duration_ms=report.duration_ms,
        )
        return report

    async def check_connections(self) -> bool:
        """Initialize the vector backend; False if it is unreachable."""
        try:
            await self.facade.warm_up()
        except InitializationError as e:
            self.logger.error("Vector store connection failed", backend=self.facade.backend, error=str(e))
            return False
        self.logger.info("Vector store connection successful", backend=self.facade.backend)
        return True

    async def run_smoke_test(self, query_text: str = "casual white shirt") -> SmokeTestResult:
        """
        Store a test product, query for it by text, then delete it.

        The test product is always deleted, even when the query fails.
        """
        t_start = time.time()
        product_id = SMOKE_TEST_PRODUCT["product_id"]

        await self.facade.store_product_embedding(SMOKE_TEST_PRODUCT)
        try:
            matches = await self.facade.query_similar_products_by_text(query_text, top_k=5)
        finally:
            await self.facade.delete_product_embedding(product_id)

        result = SmokeTestResult(
            backend=self.facade.backend,
            found=any(m.id == product_id for m in matches),
            matches=matches,
            latency_ms=int((time.time() - t_start) * 1000),
        )
        self.logger.info(
            "Smoke test finished",
            backend=result.backend,
            found=result.found,
            match_count=len(matches),
            latency_ms=result.latency_ms,
        )
        return result
