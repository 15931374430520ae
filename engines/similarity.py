"""Cosine similarity and threshold ranking over cached embeddings."""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

Candidate = Tuple[str, Sequence[float]]


@dataclass(frozen=True)
class SimilarityMatch:
    id: str
    score: float


@dataclass(frozen=True)
class SimilarPair:
    source: str
    target: str
    score: float


def _unit_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    # Zero-magnitude rows stay zero and so score 0.0 against anything
    return np.divide(matrix, norms, out=np.zeros_like(matrix), where=norms > 0)


def cosine_similarity(query_vec: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    """Cosine similarity between a query vector and each row of a matrix."""
    query = _unit_rows(np.asarray(query_vec, dtype=np.float64).reshape(1, -1))[0]
    scores = _unit_rows(np.asarray(vectors, dtype=np.float64)) @ query
    return np.clip(scores, -1.0, 1.0)


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Raises ValueError for empty vectors or mismatched dimensions. A vector
    with zero magnitude has no direction and scores 0.0.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.size == 0 or vb.size == 0:
        raise ValueError("Vectors cannot be empty")
    if va.shape != vb.shape:
        raise ValueError(f"Vectors must have same length ({va.size} != {vb.size})")

    na, nb = np.linalg.norm(va), np.linalg.norm(vb)
    if na == 0 or nb == 0:
        return 0.0
    return float(np.dot(va, vb) / (na * nb))


def _score_matrix(query: Sequence[float], candidates: Sequence[Candidate]) -> np.ndarray:
    q = np.asarray(query, dtype=np.float64)
    if q.size == 0:
        raise ValueError("Vectors cannot be empty")
    matrix = np.asarray([vec for _, vec in candidates], dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != q.size:
        raise ValueError("Candidate vectors must match the query dimensions")

    return cosine_similarity(q, matrix)


def rank(
    query: Sequence[float],
    candidates: Sequence[Candidate],
    threshold: float = 0.0,
    limit: Optional[int] = None,
) -> List[SimilarityMatch]:
    """Rank candidates by similarity to query.

    Scores strictly below threshold are dropped; the rest are sorted
    descending with ties kept in input order, then cut to limit. A negative
    limit raises ValueError.
    """
    if limit is not None and limit < 0:
        raise ValueError(f"limit cannot be negative: {limit}")
    if not candidates:
        return []

    scores = _score_matrix(query, candidates)
    results = [
        SimilarityMatch(id=cid, score=float(s))
        for (cid, _), s in zip(candidates, scores)
        if s >= threshold
    ]
    # sort() is stable, so equal scores keep candidate order
    results.sort(key=lambda m: m.score, reverse=True)

    if limit is not None:
        return results[:limit]
    return results


def similar_pairs(candidates: Sequence[Candidate], threshold: float) -> List[SimilarPair]:
    """All unordered candidate pairs scoring at or above threshold, best first."""
    count = len(candidates)
    if count < 2:
        return []

    vectors = np.asarray([vec for _, vec in candidates], dtype=np.float64)
    normed = _unit_rows(vectors)
    sim_matrix = np.clip(normed @ normed.T, -1.0, 1.0)

    pairs = []
    for i in range(count):
        for j in range(i + 1, count):
            if sim_matrix[i, j] >= threshold:
                pairs.append(SimilarPair(
                    source=candidates[i][0],
                    target=candidates[j][0],
                    score=float(sim_matrix[i, j]),
                ))

    pairs.sort(key=lambda p: p.score, reverse=True)
    return pairs
