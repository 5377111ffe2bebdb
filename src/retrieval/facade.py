"""
Retrieval facade: the single entry point used by the rest of the pipeline.

The backend is chosen once, from settings, when the facade is built. All
calls go through the injected adapter, which owns its embedding model, so
stored and query vectors always come from the same model.

Usage:
    facade = build_facade(get_settings())
    await facade.warm_up()
    vector_id = await facade.store_product_embedding(product)
    matches = await facade.query_similar_products_by_text(
        "casual summer dress", filters={"gender": "women", "colors": ["blue"]}
    )
"""

import threading
import time
from typing import Any, Dict, List, Mapping, Optional, Union

from config.settings import Settings, get_settings
from core.logging import get_logger
from retrieval.adapters import (
    InMemoryAdapter,
    LocalPersistentAdapter,
    RemoteIndexAdapter,
    VectorStoreAdapter,
)
from retrieval.canonicalizer import TextCanonicalizer, build_metadata
from retrieval.embeddings import (
    EmbeddingGenerator,
    OpenAIEmbeddingGenerator,
    SentenceTransformerEmbeddingGenerator,
)
from retrieval.models import Match, ProductRecord

logger = get_logger(__name__)


class RetrievalFacade:
    """Stores product embeddings and answers similarity queries."""

    def __init__(
        self,
        adapter: VectorStoreAdapter,
        canonicalizer: Optional[TextCanonicalizer] = None,
        default_top_k: int = 10,
    ):
        self.adapter = adapter
        self.canonicalizer = canonicalizer or TextCanonicalizer()
        self.default_top_k = default_top_k

    @property
    def backend(self) -> str:
        return self.adapter.name

    def _top_k(self, top_k: Optional[int]) -> int:
        return self.default_top_k if top_k is None else top_k

    async def warm_up(self) -> None:
        """
        Initialize the active backend.

        Raises:
            InitializationError: If the backend cannot be reached
        """
        await self.adapter.init()

    async def store_product_embedding(
        self,
        product: Union[ProductRecord, Dict[str, Any]],
    ) -> str:
        """
        Canonicalize, embed and store one product.

        Returns:
            The vector id (the product's canonical id)

        Raises:
            EmbeddingServiceError: If the embedding call fails
            StoreError: If the backend write fails
        """
        record = ProductRecord.from_any(product)
        text = self.canonicalizer.canonicalize(record)
        metadata = build_metadata(record)

        t_start = time.time()
        vector = await self.adapter.embed(text)
        vector_id = await self.adapter.upsert(record.product_id, vector, metadata, text)

        logger.info(
            "Stored product embedding",
            product_id=record.product_id,
            backend=self.backend,
            latency_ms=int((time.time() - t_start) * 1000),
        )
        return vector_id

    async def query_similar_products_by_text(
        self,
        text: str,
        filters: Optional[Mapping[str, Any]] = None,
        top_k: Optional[int] = None,
    ) -> List[Match]:
        """
        Find products semantically close to free text.

        Filter keys: brand, style_type/styles, gender, fit_type/fits,
        category, primary_color/colors, occasion/occasions, currency,
        price_min, price_max. On the chroma and memory backends any-of
        filters use their first value only and price ranges are not applied.
        """
        matches = await self.adapter.query_by_text(text, filters, self._top_k(top_k))
        logger.debug(
            "Text query",
            backend=self.backend,
            filters=dict(filters or {}),
            count=len(matches),
        )
        return matches

    async def query_similar_products_by_id(
        self,
        product_id: str,
        filters: Optional[Mapping[str, Any]] = None,
        top_k: Optional[int] = None,
    ) -> List[Match]:
        """
        Find products similar to an indexed product, never including itself.

        Raises:
            NotFoundError: If the product has no stored embedding
        """
        matches = await self.adapter.query_by_id(product_id, filters, self._top_k(top_k))
        logger.debug(
            "Similar products query",
            backend=self.backend,
            product_id=product_id,
            count=len(matches),
        )
        return matches

    async def delete_product_embedding(self, product_id: str) -> None:
        """Remove a product's embedding. Missing ids are not an error."""
        await self.adapter.delete(product_id)
        logger.info("Deleted product embedding", product_id=product_id, backend=self.backend)


# =============================================================================
# Construction
# =============================================================================

def build_embedder(settings: Settings) -> EmbeddingGenerator:
    """Embedding model paired with the configured backend."""
    if settings.vector_backend == "pinecone":
        return OpenAIEmbeddingGenerator(
            api_key=settings.openai_api_key,
            model_name=settings.openai_embedding_model,
            dimension=settings.openai_embedding_dimension,
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout_seconds,
        )
    return SentenceTransformerEmbeddingGenerator(
        model_name=settings.local_embedding_model,
        dimension=settings.local_embedding_dimension,
        device=settings.local_embedding_device,
    )


def build_adapter(
    settings: Settings,
    embedder: Optional[EmbeddingGenerator] = None,
) -> VectorStoreAdapter:
    """Select the vector store backend once from settings."""
    embedder = embedder or build_embedder(settings)
    backend = settings.vector_backend

    if backend == "pinecone":
        adapter: VectorStoreAdapter = RemoteIndexAdapter(
            embedder,
            api_key=settings.pinecone_api_key,
            index_name=settings.pinecone_index_name,
            namespace=settings.pinecone_namespace,
            cloud=settings.pinecone_cloud,
            region=settings.pinecone_region,
            ready_poll_seconds=settings.pinecone_ready_poll_seconds,
            ready_max_attempts=settings.pinecone_ready_max_attempts,
        )
    elif backend == "chroma":
        adapter = LocalPersistentAdapter(
            embedder,
            persist_dir=settings.chroma_persist_dir,
            collection_name=settings.chroma_collection_name,
        )
    else:
        adapter = InMemoryAdapter(
            embedder,
            collection_name=settings.memory_collection_name,
        )

    logger.info("Selected vector backend", backend=adapter.name, model=embedder.model_name)
    return adapter


def build_facade(
    settings: Optional[Settings] = None,
    embedder: Optional[EmbeddingGenerator] = None,
) -> RetrievalFacade:
    settings = settings or get_settings()
    return RetrievalFacade(
        build_adapter(settings, embedder=embedder),
        default_top_k=settings.default_top_k,
    )


# =============================================================================
# Singleton
# =============================================================================

_retrieval_facade: Optional[RetrievalFacade] = None
_facade_lock = threading.Lock()


def get_retrieval_facade() -> RetrievalFacade:
    """Get or create the RetrievalFacade singleton (thread-safe)."""
    global _retrieval_facade
    if _retrieval_facade is None:
        with _facade_lock:
            if _retrieval_facade is None:
                _retrieval_facade = build_facade()
    return _retrieval_facade


def reset_retrieval_facade() -> None:
    """Drop the singleton (tests, settings reloads)."""
    global _retrieval_facade
    with _facade_lock:
        _retrieval_facade = None
