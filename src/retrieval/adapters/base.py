"""
Vector store adapter contract.

One interface, three implementations (remote, local, memory), chosen once
at startup. The base class owns everything that must behave identically
across backends:

- lazy, idempotent, lock-guarded initialization
- vector dimension checks
- top_k handling and self-exclusion for query-by-id
- final ranking (descending score, ties by ascending id)
- translation of SDK errors into the retrieval error taxonomy

Subclasses implement the `_initialize`, `_upsert`, `_query`, `_get_vector`
and `_delete` hooks against their SDK.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from config.constants import DEFAULT_RETRIEVAL_CONFIG, RetrievalConfig
from core.logging import LoggerMixin
from retrieval.embeddings import EmbeddingGenerator
from retrieval.errors import (
    InitializationError,
    NotFoundError,
    StoreError,
    VectorStoreError,
)
from retrieval.filters import BackendKind, FilterPlan, FilterTranslator
from retrieval.models import EmbeddingRecord, Match
from retrieval.similarity import rank_matches


class VectorStoreAdapter(ABC, LoggerMixin):
    """Base class for vector store backends."""

    kind: BackendKind

    def __init__(
        self,
        embedder: EmbeddingGenerator,
        dimension: Optional[int] = None,
        config: RetrievalConfig = DEFAULT_RETRIEVAL_CONFIG,
    ):
        self.embedder = embedder
        self.dimension = dimension or embedder.dimension
        self.config = config
        self.translator = FilterTranslator.for_backend(self.kind)
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.kind.value

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    # =========================================================================
    # Backend hooks
    # =========================================================================

    @abstractmethod
    async def _initialize(self) -> None:
        """Connect and ensure the collection exists."""

    @abstractmethod
    async def _upsert(self, record: EmbeddingRecord) -> None:
        ...

    @abstractmethod
    async def _query(
        self,
        vector: List[float],
        filters: Optional[Mapping[str, Any]],
        top_k: int,
        exclude_id: Optional[str] = None,
    ) -> List[Match]:
        """Return candidate matches; ranking is applied by the caller."""

    @abstractmethod
    async def _get_vector(self, product_id: str) -> Optional[List[float]]:
        """Return the stored vector for an id, or None if absent."""

    @abstractmethod
    async def _delete(self, product_id: str) -> None:
        ...

    # =========================================================================
    # Public operations
    # =========================================================================

    async def init(self) -> None:
        """
        Initialize the backend once. Safe to call repeatedly and concurrently.

        Raises:
            InitializationError: If the backend is unreachable or the
                collection cannot be created
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            try:
                await self._initialize()
            except InitializationError:
                raise
            except Exception as e:
                raise InitializationError(f"Failed to initialize {self.name} vector store: {e}") from e
            self._initialized = True
            self.logger.info(
                "Vector store initialized",
                backend=self.name,
                dimension=self.dimension,
                model=self.embedder.model_name,
            )

    async def embed(self, text: str) -> List[float]:
        """Embed text with this backend's own model."""
        return await self.embedder.embed(text)

    def plan_filters(self, filters: Optional[Mapping[str, Any]]) -> FilterPlan:
        return self.translator.plan(filters)

    async def upsert(
        self,
        product_id: str,
        vector: List[float],
        metadata: Optional[Dict[str, Any]] = None,
        text: str = "",
    ) -> str:
        """
        Store (or overwrite) the vector for a product id.

        Returns:
            The id the vector was stored under

        Raises:
            StoreError: If the vector is malformed or the backend write fails
        """
        await self.init()
        if not product_id:
            raise StoreError("Cannot store a vector without a product id")
        if len(vector) != self.dimension:
            raise StoreError(
                f"Vector for {product_id} has {len(vector)} dimensions, "
                f"{self.name} expects {self.dimension}"
            )

        record = EmbeddingRecord(
            id=str(product_id),
            vector=list(vector),
            metadata=dict(metadata or {}),
            text=text or "",
        )
        try:
            await self._upsert(record)
        except VectorStoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to store vector for {product_id} in {self.name}: {e}") from e

        self.logger.debug("Upserted vector", backend=self.name, product_id=record.id)
        return record.id

    async def query_by_vector(
        self,
        vector: List[float],
        filters: Optional[Mapping[str, Any]] = None,
        top_k: int = 10,
        exclude_id: Optional[str] = None,
    ) -> List[Match]:
        if top_k <= 0:
            return []
        if len(vector) != self.dimension:
            raise StoreError(
                f"Query vector has dimension {len(vector)}, {self.name} expects {self.dimension}"
            )
        await self.init()

        requested = top_k + self.config.SELF_EXCLUSION_PADDING if exclude_id else top_k
        try:
            candidates = await self._query(vector, filters, requested, exclude_id=exclude_id)
        except VectorStoreError:
            raise
        except Exception as e:
            raise StoreError(f"Query against {self.name} failed: {e}") from e

        return rank_matches(candidates, top_k, exclude_id=exclude_id)

    async def query_by_text(
        self,
        text: str,
        filters: Optional[Mapping[str, Any]] = None,
        top_k: int = 10,
    ) -> List[Match]:
        """
        Embed free text and return the nearest products.

        Raises:
            EmbeddingServiceError: If the text cannot be embedded
            StoreError: If the backend query fails
        """
        if top_k <= 0:
            return []
        vector = await self.embed(text)
        return await self.query_by_vector(vector, filters, top_k)

    async def query_by_id(
        self,
        product_id: str,
        filters: Optional[Mapping[str, Any]] = None,
        top_k: int = 10,
    ) -> List[Match]:
        """
        Return products similar to an already indexed product, excluding it.

        Raises:
            NotFoundError: If no vector is stored for product_id
        """
        if top_k <= 0:
            return []
        await self.init()

        try:
            vector = await self._get_vector(product_id)
        except VectorStoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to read vector for {product_id} from {self.name}: {e}") from e
        if not vector:
            raise NotFoundError(product_id)

        return await self.query_by_vector(vector, filters, top_k, exclude_id=product_id)

    async def delete(self, product_id: str) -> None:
        """Delete the vector for an id. Deleting a missing id is not an error."""
        await self.init()
        try:
            await self._delete(product_id)
        except VectorStoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to delete {product_id} from {self.name}: {e}") from e
        self.logger.debug("Deleted vector", backend=self.name, product_id=product_id)
