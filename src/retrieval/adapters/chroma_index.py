"""
Thin synchronous wrapper around one chroma collection.

Shared by the local persistent adapter and the in-memory adapter's
primary index. All methods block; adapters call them through
asyncio.to_thread.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import chromadb
from chromadb.config import Settings as ChromaSettings

from config.constants import ARRAY_METADATA_FIELDS, LIST_SEPARATOR
from core.logging import get_logger
from core.utils import as_string_list, to_float_list
from retrieval.models import EmbeddingRecord, Match
from retrieval.similarity import normalize_chroma_results

logger = get_logger(__name__)


def flatten_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """
    Make metadata storable in chroma: scalars only, no None values.

    Lists are joined with ", " so tags/occasion stay readable.
    """
    flat: Dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set)):
            joined = LIST_SEPARATOR.join(str(v) for v in value if v is not None)
            if joined:
                flat[key] = joined
        elif isinstance(value, (str, int, float, bool)):
            flat[key] = value
        else:
            flat[key] = str(value)
    return flat


def restore_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Split joined array fields back into lists."""
    restored = dict(metadata or {})
    for key in ARRAY_METADATA_FIELDS:
        if isinstance(restored.get(key), str):
            restored[key] = as_string_list(restored[key])
    return restored


def persistent_client(path: Union[str, Path]):
    return chromadb.PersistentClient(
        path=str(path),
        settings=ChromaSettings(anonymized_telemetry=False),
    )


def ephemeral_client():
    return chromadb.EphemeralClient(settings=ChromaSettings(anonymized_telemetry=False))


class ChromaCollectionIndex:
    """One chroma collection in cosine space."""

    def __init__(self, client, collection_name: str, space: str = "cosine"):
        self.client = client
        self.collection_name = collection_name
        self.space = space
        self._collection = None

    @property
    def is_open(self) -> bool:
        return self._collection is not None

    @property
    def collection(self):
        if self._collection is None:
            raise RuntimeError(f"Chroma collection {self.collection_name} is not open")
        return self._collection

    def open(self) -> None:
        self._collection = self.client.get_or_create_collection(
            name=self.collection_name,
            metadata={"hnsw:space": self.space},
        )
        logger.debug(
            "Opened chroma collection",
            collection=self.collection_name,
            count=self._collection.count(),
        )

    def count(self) -> int:
        return self.collection.count()

    def upsert(self, record: EmbeddingRecord) -> None:
        kwargs: Dict[str, Any] = {"ids": [record.id], "embeddings": [record.vector]}
        # chroma rejects empty metadata dicts
        metadata = flatten_metadata(record.metadata)
        if metadata:
            kwargs["metadatas"] = [metadata]
        if record.text:
            kwargs["documents"] = [record.text]
        self.collection.upsert(**kwargs)

    def query(
        self,
        vector: List[float],
        where: Optional[Dict[str, Any]],
        n_results: int,
    ) -> List[Match]:
        """
        Nearest matches, widened past n_results while scores tie at the cutoff.

        Chroma picks arbitrarily among equal-distance records, so the fetch
        grows until the last candidate scores strictly below the n-th one (or
        the collection is exhausted). The caller applies the id tie-break.
        """
        total = self.collection.count()
        if total == 0 or n_results <= 0:
            return []

        fetch = min(n_results + 1, total)
        while True:
            kwargs: Dict[str, Any] = {
                "query_embeddings": [vector],
                "n_results": fetch,
                "include": ["metadatas", "distances"],
            }
            if where:
                kwargs["where"] = where
            matches = normalize_chroma_results(self.collection.query(**kwargs))

            if fetch >= total or len(matches) < fetch:
                break
            scores = sorted((m.score for m in matches), reverse=True)
            if scores[-1] < scores[n_results - 1]:
                break
            fetch = min(fetch * 2, total)

        for match in matches:
            match.metadata = restore_metadata(match.metadata)
        return matches

    def get_vector(self, product_id: str) -> Optional[List[float]]:
        results = self.collection.get(ids=[product_id], include=["embeddings"])
        if not results.get("ids"):
            return None
        embeddings = results.get("embeddings")
        if embeddings is None or len(embeddings) == 0:
            return None
        return to_float_list(embeddings[0])

    def delete(self, product_id: str) -> None:
        self.collection.delete(ids=[product_id])
