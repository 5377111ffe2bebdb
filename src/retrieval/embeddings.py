"""
Embedding generators.

Two implementations behind one async interface:
- OpenAIEmbeddingGenerator: remote model, used with the Pinecone backend
- SentenceTransformerEmbeddingGenerator: local model, used with the chroma
  and in-memory backends

Each backend is pinned to one generator so stored vectors and fresh query
vectors always live in the same space.
"""

import asyncio
import threading
import time
from abc import ABC, abstractmethod
from typing import List, Optional

from core.logging import get_logger
from core.utils import to_float_list
from retrieval.errors import EmbeddingServiceError

logger = get_logger(__name__)


class EmbeddingGenerator(ABC):
    """Turns canonical text into a fixed-length vector."""

    model_name: str
    dimension: int

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingServiceError: If the model call errors or times out
        """

    def _check(self, text: str) -> None:
        if not text or not text.strip():
            raise EmbeddingServiceError("Cannot embed empty text")

    def _validate(self, vector: List[float]) -> List[float]:
        if len(vector) != self.dimension:
            raise EmbeddingServiceError(
                f"{self.model_name} returned {len(vector)} dimensions, expected {self.dimension}"
            )
        return vector


class OpenAIEmbeddingGenerator(EmbeddingGenerator):
    """Embeddings from the OpenAI API (or an OpenAI-compatible proxy)."""

    def __init__(
        self,
        api_key: str,
        model_name: str = "text-embedding-ada-002",
        dimension: int = 1536,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._client = None
        self._client_lock = threading.Lock()
        self.model_name = model_name
        self.dimension = dimension

    @property
    def client(self):
        """Lazy-load the AsyncOpenAI client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    from openai import AsyncOpenAI
                    self._client = AsyncOpenAI(
                        api_key=self._api_key,
                        base_url=self._base_url,
                        timeout=self._timeout,
                    )
        return self._client

    async def embed(self, text: str) -> List[float]:
        self._check(text)
        from openai import APIError, APITimeoutError

        t_start = time.time()
        try:
            response = await self.client.embeddings.create(
                model=self.model_name,
                input=text,
            )
        except APITimeoutError as e:
            raise EmbeddingServiceError(f"OpenAI embedding request timed out: {e}") from e
        except APIError as e:
            raise EmbeddingServiceError(f"OpenAI embedding request failed: {e}") from e

        if not response.data:
            raise EmbeddingServiceError("OpenAI returned no embedding")

        vector = self._validate(to_float_list(response.data[0].embedding))
        logger.debug(
            "Generated embedding",
            model=self.model_name,
            latency_ms=int((time.time() - t_start) * 1000),
        )
        return vector


class SentenceTransformerEmbeddingGenerator(EmbeddingGenerator):
    """
    Embeddings from a local sentence-transformers model.

    The model is loaded once on first use and encoding runs in a worker
    thread so it does not block the event loop.
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-MiniLM-L6-v2",
        dimension: int = 384,
        device: str = "cpu",
    ):
        self.model_name = model_name
        self.dimension = dimension
        self.device = device
        self._model = None
        self._model_lock = threading.Lock()

    @property
    def model(self):
        """Lazy-load the SentenceTransformer model."""
        if self._model is None:
            with self._model_lock:
                if self._model is None:
                    from sentence_transformers import SentenceTransformer
                    logger.info("Loading local embedding model", model=self.model_name, device=self.device)
                    self._model = SentenceTransformer(self.model_name, device=self.device)
        return self._model

    def _encode(self, text: str) -> List[float]:
        return to_float_list(self.model.encode(text, convert_to_numpy=True))

    async def embed(self, text: str) -> List[float]:
        self._check(text)
        try:
            vector = await asyncio.to_thread(self._encode, text)
        except Exception as e:
            raise EmbeddingServiceError(f"Local embedding model failed: {e}") from e
        return self._validate(vector)
