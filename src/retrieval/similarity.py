"""
Similarity scoring and result normalization.

Every backend reports scores differently (Pinecone: a similarity score,
chroma: a cosine distance, the exact store: raw cosine). Everything here
converts them into Match objects where a higher score means more similar,
and ranks them the same way regardless of backend.
"""

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from core.utils import read_field
from retrieval.models import Match


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity between two vectors.

    Returns 0.0 when either vector has zero norm or the lengths differ.
    The result is clipped to [-1, 1] and is never NaN.
    """
    va = np.asarray(a, dtype=float).ravel()
    vb = np.asarray(b, dtype=float).ravel()

    if va.size == 0 or va.shape != vb.shape:
        return 0.0

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0 or not np.isfinite(norm_a) or not np.isfinite(norm_b):
        return 0.0

    score = float(np.dot(va, vb) / (norm_a * norm_b))
    if math.isnan(score):
        return 0.0
    return max(-1.0, min(1.0, score))


def _finite(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return score if math.isfinite(score) else 0.0


def normalize_pinecone_matches(
    matches: Optional[Iterable[Any]],
    strip_keys: Sequence[str] = (),
) -> List[Match]:
    """Convert Pinecone query matches into Match objects."""
    results: List[Match] = []
    for item in matches or []:
        metadata = dict(read_field(item, "metadata") or {})
        for key in strip_keys:
            metadata.pop(key, None)
        results.append(Match(
            id=str(read_field(item, "id")),
            score=_finite(read_field(item, "score", 0.0)),
            metadata=metadata,
        ))
    return results


def normalize_chroma_results(results: Optional[Mapping[str, Any]]) -> List[Match]:
    """
    Convert a chroma query response into Match objects.

    Chroma returns one inner list per query embedding; only the first
    query is read. Cosine distance d becomes similarity 1 - d. A missing
    distance scores 0.0.
    """
    if not results:
        return []

    ids = (results.get("ids") or [[]])[0] or []
    distances = (results.get("distances") or [[]])[0] or []
    metadatas = (results.get("metadatas") or [[]])[0] or []

    matches: List[Match] = []
    for i, product_id in enumerate(ids):
        distance = distances[i] if i < len(distances) else None
        score = 0.0 if distance is None else 1.0 - _finite(distance)
        metadata: Dict[str, Any] = dict(metadatas[i] or {}) if i < len(metadatas) else {}
        matches.append(Match(id=str(product_id), score=score, metadata=metadata))
    return matches


def rank_matches(
    matches: Iterable[Match],
    top_k: int,
    exclude_id: Optional[str] = None,
) -> List[Match]:
    """
    Order matches by descending score, ties broken by ascending id.

    Duplicate ids keep their best-scored entry; exclude_id is dropped.
    """
    if top_k <= 0:
        return []

    ordered = sorted(matches, key=lambda m: (-m.score, m.id))
    seen = set()
    ranked: List[Match] = []
    for match in ordered:
        if match.id in seen or (exclude_id is not None and match.id == exclude_id):
            continue
        seen.add(match.id)
        ranked.append(match)
        if len(ranked) >= top_k:
            break
    return ranked


class SimilarityEngine:
    """Scores candidate vectors against a query vector and ranks them."""

    def score(self, query: Sequence[float], candidate: Sequence[float]) -> float:
        return cosine_similarity(query, candidate)

    def rank(
        self,
        query: Sequence[float],
        candidates: Iterable[tuple],
        top_k: int,
        exclude_id: Optional[str] = None,
    ) -> List[Match]:
        """
        Brute-force rank (id, vector, metadata) candidates by cosine similarity.
        """
        scored = (
            Match(id=product_id, score=self.score(query, vector), metadata=dict(metadata or {}))
            for product_id, vector, metadata in candidates
        )
        return rank_matches(scored, top_k, exclude_id=exclude_id)
