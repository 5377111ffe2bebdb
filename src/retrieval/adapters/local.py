"""
Chroma-backed vector store persisted on local disk.

Vectors come from the local sentence-transformers model (384 dimensions).
Chroma's `where` clause only gets equality predicates: any-of filters are
degraded to their first value and price ranges are left to the caller.
"""

import asyncio
from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from config.constants import DEFAULT_RETRIEVAL_CONFIG, RetrievalConfig
from retrieval.adapters.base import VectorStoreAdapter
from retrieval.adapters.chroma_index import ChromaCollectionIndex, persistent_client
from retrieval.embeddings import EmbeddingGenerator
from retrieval.errors import InitializationError
from retrieval.filters import BackendKind, to_chroma_where
from retrieval.models import EmbeddingRecord, Match


class LocalPersistentAdapter(VectorStoreAdapter):
    """Vector store on a persistent chroma collection."""

    kind = BackendKind.LOCAL

    def __init__(
        self,
        embedder: EmbeddingGenerator,
        persist_dir: Union[str, Path],
        collection_name: str,
        dimension: Optional[int] = None,
        config: RetrievalConfig = DEFAULT_RETRIEVAL_CONFIG,
    ):
        super().__init__(embedder, dimension=dimension, config=config)
        self.persist_dir = Path(persist_dir)
        self.collection_name = collection_name
        self._index: Optional[ChromaCollectionIndex] = None

    @property
    def index(self) -> ChromaCollectionIndex:
        if self._index is None:
            raise InitializationError("Chroma collection is not initialized")
        return self._index

    def _open(self) -> ChromaCollectionIndex:
        self.persist_dir.mkdir(parents=True, exist_ok=True)
        index = ChromaCollectionIndex(
            persistent_client(self.persist_dir),
            self.collection_name,
            space=self.config.CHROMA_SPACE,
        )
        index.open()
        return index

    async def _initialize(self) -> None:
        self._index = await asyncio.to_thread(self._open)
        self.logger.info(
            "Opened local vector store",
            path=str(self.persist_dir),
            collection=self.collection_name,
        )

    async def _upsert(self, record: EmbeddingRecord) -> None:
        await asyncio.to_thread(self.index.upsert, record)

    async def _query(
        self,
        vector: List[float],
        filters: Optional[Mapping[str, Any]],
        top_k: int,
        exclude_id: Optional[str] = None,
    ) -> List[Match]:
        where = to_chroma_where(self.plan_filters(filters))
        return await asyncio.to_thread(self.index.query, vector, where, top_k)

    async def _get_vector(self, product_id: str) -> Optional[List[float]]:
        return await asyncio.to_thread(self.index.get_vector, product_id)

    async def _delete(self, product_id: str) -> None:
        await asyncio.to_thread(self.index.delete, product_id)
