"""
Pinecone-backed vector store (remote managed index).

Vectors come from the OpenAI embedding model (1536 dimensions). The index
is created on first use (serverless, cosine) and polled until ready.
Pinecone has no document field, so the canonical text is stored in
metadata under "text" and stripped again from query results.
"""

import asyncio
import threading
from typing import Any, List, Mapping, Optional

from pinecone import Pinecone, ServerlessSpec

from config.constants import DEFAULT_RETRIEVAL_CONFIG, RetrievalConfig
from core.utils import read_field, to_float_list
from retrieval.adapters.base import VectorStoreAdapter
from retrieval.embeddings import EmbeddingGenerator
from retrieval.errors import InitializationError
from retrieval.filters import BackendKind, to_pinecone_filter
from retrieval.models import EmbeddingRecord, Match
from retrieval.similarity import normalize_pinecone_matches


class RemoteIndexAdapter(VectorStoreAdapter):
    """Vector store on a Pinecone serverless index, scoped to one namespace."""

    kind = BackendKind.REMOTE

    def __init__(
        self,
        embedder: EmbeddingGenerator,
        api_key: Optional[str],
        index_name: str,
        namespace: str,
        cloud: str = "aws",
        region: str = "us-east-1",
        dimension: Optional[int] = None,
        ready_poll_seconds: float = 5.0,
        ready_max_attempts: int = 24,
        client: Optional[Pinecone] = None,
        config: RetrievalConfig = DEFAULT_RETRIEVAL_CONFIG,
    ):
        super().__init__(embedder, dimension=dimension, config=config)
        self.api_key = api_key
        self.index_name = index_name
        self.namespace = namespace
        self.cloud = cloud
        self.region = region
        self.ready_poll_seconds = ready_poll_seconds
        self.ready_max_attempts = ready_max_attempts
        self._client = client
        self._client_lock = threading.Lock()
        self._index = None

    @property
    def client(self) -> Pinecone:
        """Lazy-load the Pinecone client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = Pinecone(api_key=self.api_key)
        return self._client

    @property
    def index(self):
        if self._index is None:
            raise InitializationError("Pinecone index is not initialized")
        return self._index

    # =========================================================================
    # Initialization
    # =========================================================================

    def _list_index_names(self) -> List[str]:
        indexes = self.client.list_indexes()
        if hasattr(indexes, "names"):
            return list(indexes.names())
        return [read_field(item, "name") for item in indexes]

    def _is_ready(self) -> bool:
        description = self.client.describe_index(self.index_name)
        status = read_field(description, "status") or {}
        return bool(read_field(status, "ready", False))

    async def _wait_until_ready(self) -> None:
        for attempt in range(1, self.ready_max_attempts + 1):
            if await asyncio.to_thread(self._is_ready):
                return
            self.logger.info(
                "Waiting for Pinecone index to become ready",
                index=self.index_name,
                attempt=attempt,
                max_attempts=self.ready_max_attempts,
            )
            await asyncio.sleep(self.ready_poll_seconds)

        raise InitializationError(
            f"Pinecone index {self.index_name} not ready after "
            f"{self.ready_max_attempts} attempts"
        )

    async def _initialize(self) -> None:
        if self._client is None and not self.api_key:
            raise InitializationError("PINECONE_API_KEY is not set")

        names = await asyncio.to_thread(self._list_index_names)
        if self.index_name not in names:
            self.logger.info(
                "Creating Pinecone index",
                index=self.index_name,
                dimension=self.dimension,
                cloud=self.cloud,
                region=self.region,
            )
            await asyncio.to_thread(
                self.client.create_index,
                name=self.index_name,
                dimension=self.dimension,
                metric=self.config.PINECONE_METRIC,
                spec=ServerlessSpec(cloud=self.cloud, region=self.region),
            )

        await self._wait_until_ready()
        self._index = self.client.Index(self.index_name)

    # =========================================================================
    # Operations
    # =========================================================================

    async def _upsert(self, record: EmbeddingRecord) -> None:
        metadata = dict(record.metadata)
        if record.text:
            metadata[self.config.TEXT_METADATA_KEY] = record.text
        await asyncio.to_thread(
            self.index.upsert,
            vectors=[{"id": record.id, "values": record.vector, "metadata": metadata}],
            namespace=self.namespace,
        )

    async def _query(
        self,
        vector: List[float],
        filters: Optional[Mapping[str, Any]],
        top_k: int,
        exclude_id: Optional[str] = None,
    ) -> List[Match]:
        plan = self.plan_filters(filters)
        kwargs = {
            "vector": vector,
            "top_k": top_k,
            "namespace": self.namespace,
            "include_metadata": True,
        }
        pinecone_filter = to_pinecone_filter(plan)
        if pinecone_filter:
            kwargs["filter"] = pinecone_filter

        response = await asyncio.to_thread(self.index.query, **kwargs)
        return normalize_pinecone_matches(
            read_field(response, "matches"),
            strip_keys=(self.config.TEXT_METADATA_KEY,),
        )

    async def _get_vector(self, product_id: str) -> Optional[List[float]]:
        response = await asyncio.to_thread(
            self.index.fetch,
            ids=[product_id],
            namespace=self.namespace,
        )
        vectors = read_field(response, "vectors") or {}
        entry = vectors.get(product_id)
        if entry is None:
            return None
        return to_float_list(read_field(entry, "values"))

    async def _delete(self, product_id: str) -> None:
        await asyncio.to_thread(
            self.index.delete,
            ids=[product_id],
            namespace=self.namespace,
        )
