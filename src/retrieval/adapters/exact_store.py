"""
Exact in-process vector store.

A plain dict of id -> EmbeddingRecord scanned by brute force. It backs the
in-memory adapter's fallback path, so it must answer every query the
primary index cannot: filters are evaluated in process without any
degradation (any-of and array contains-one-of both work).
"""

import threading
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from retrieval.filters import Predicate, matches_metadata
from retrieval.models import EmbeddingRecord, Match
from retrieval.similarity import SimilarityEngine


class ExactVectorStore:
    """Thread-safe id -> record map with brute-force cosine search."""

    def __init__(self, similarity: Optional[SimilarityEngine] = None):
        self._records: Dict[str, EmbeddingRecord] = {}
        self._lock = threading.Lock()
        self.similarity = similarity or SimilarityEngine()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, product_id: str) -> bool:
        with self._lock:
            return product_id in self._records

    def upsert(self, record: EmbeddingRecord) -> None:
        stored = replace(record, vector=list(record.vector), metadata=dict(record.metadata))
        with self._lock:
            self._records[record.id] = stored

    def get(self, product_id: str) -> Optional[EmbeddingRecord]:
        with self._lock:
            return self._records.get(product_id)

    def delete(self, product_id: str) -> bool:
        """Remove a record. Returns False if it was not present."""
        with self._lock:
            return self._records.pop(product_id, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def search(
        self,
        vector: Sequence[float],
        predicates: Sequence[Predicate],
        top_k: int,
        exclude_id: Optional[str] = None,
    ) -> List[Match]:
        with self._lock:
            snapshot = list(self._records.values())

        candidates = (
            (record.id, record.vector, record.metadata)
            for record in snapshot
            if matches_metadata(predicates, record.metadata)
        )
        return self.similarity.rank(vector, candidates, top_k, exclude_id=exclude_id)
