"""
Vector retrieval layer for the product catalog.

Stores one embedding per product and answers nearest-neighbour queries
under metadata filters, on one of three interchangeable backends:

- pinecone: remote managed index (OpenAI embeddings, 1536 dims)
- chroma: local persistent index (sentence-transformers, 384 dims)
- memory: in-process index with an exact fallback (sentence-transformers)

Usage:
    from retrieval import get_retrieval_facade

    facade = get_retrieval_facade()
    await facade.store_product_embedding(product)
    matches = await facade.query_similar_products_by_id(product["product_id"], top_k=10)
"""

from retrieval.errors import (
    BackendUnavailableError,
    EmbeddingServiceError,
    InitializationError,
    NotFoundError,
    StoreError,
    VectorStoreError,
)
from retrieval.facade import (
    RetrievalFacade,
    build_adapter,
    build_facade,
    get_retrieval_facade,
)
from retrieval.models import EmbeddingRecord, Match, ProductRecord

__all__ = [
    "RetrievalFacade",
    "build_adapter",
    "build_facade",
    "get_retrieval_facade",
    "EmbeddingRecord",
    "Match",
    "ProductRecord",
    "VectorStoreError",
    "InitializationError",
    "EmbeddingServiceError",
    "StoreError",
    "NotFoundError",
    "BackendUnavailableError",
]
