"""Vector math for semantic search.

Pure functions over equal-length float sequences. Inputs may be lists,
tuples or numpy arrays; outputs are plain Python floats and lists so they
can be stored as JSON and compared in tests without numpy types leaking out.
"""
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from numbers import Real
from typing import Any, TypeVar

import numpy as np

from vibe_search.exceptions import DimensionMismatch

T = TypeVar("T")


@dataclass(frozen=True)
class VectorCandidate:
    """A vector to be ranked, with an opaque payload carried through."""
    id: Any
    vector: Sequence[float]
    data: Any = None


@dataclass(frozen=True)
class SimilarityMatch:
    id: Any
    similarity: float
    data: Any = None


def _as_array(vector: Sequence[float]) -> np.ndarray:
    return np.asarray(vector, dtype=np.float64)


def _check_same_length(a: Sequence[float], b: Sequence[float]) -> None:
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors, in [-1, 1].

    Returns 0.0 when either vector has zero norm.
    """
    _check_same_length(a, b)
    vec_a = _as_array(a)
    vec_b = _as_array(b)

    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    score = float(np.dot(vec_a, vec_b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, score))


def euclidean_distance(a: Sequence[float], b: Sequence[float]) -> float:
    _check_same_length(a, b)
    return float(np.linalg.norm(_as_array(a) - _as_array(b)))


def normalize_vector(vector: Sequence[float]) -> list[float]:
    """Scale to unit length. A zero vector is returned unchanged."""
    arr = _as_array(vector)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return [float(v) for v in vector]
    return (arr / norm).tolist()


def average_vectors(vectors: Sequence[Sequence[float]]) -> list[float]:
    """Element-wise mean. Returns [] for no input; callers must check."""
    if len(vectors) == 0:
        return []

    first = vectors[0]
    for vector in vectors[1:]:
        _check_same_length(first, vector)

    matrix = np.asarray(vectors, dtype=np.float64)
    return matrix.mean(axis=0).tolist()


def find_top_k_similar(
    query: Sequence[float],
    candidates: Sequence[VectorCandidate],
    k: int = 10,
) -> list[SimilarityMatch]:
    """Rank candidates by cosine similarity to ``query``, best first.

    Ties keep their input order. ``k <= 0`` returns an empty list.
    """
    if k <= 0 or not candidates:
        return []

    for candidate in candidates:
        _check_same_length(query, candidate.vector)

    query_vec = _as_array(query)
    corpus = np.asarray([c.vector for c in candidates], dtype=np.float64)

    query_norm = np.linalg.norm(query_vec)
    corpus_norms = np.linalg.norm(corpus, axis=1)
    denominators = corpus_norms * query_norm

    dots = corpus @ query_vec
    scores = np.zeros(len(candidates), dtype=np.float64)
    nonzero = denominators != 0
    scores[nonzero] = dots[nonzero] / denominators[nonzero]
    scores = np.clip(scores, -1.0, 1.0)

    order = np.argsort(-scores, kind="stable")[:k]
    return [
        SimilarityMatch(
            id=candidates[i].id,
            similarity=float(scores[i]),
            data=candidates[i].data,
        )
        for i in order
    ]


def _score_of(result: Any) -> float:
    if isinstance(result, Mapping):
        return float(result["similarity"])
    return float(result.similarity)


def filter_similar_results(results: Iterable[T], threshold: float = 0.95) -> list[T]:
    """Drop results whose *score* lies within ``1 - threshold`` of one already kept.

    This compares similarity scores, not vectors: two different products
    with near-identical relevance are collapsed, two identical products with
    different scores are not.
    """
    window = 1 - threshold
    kept: list[T] = []
    kept_scores: list[float] = []

    for result in results:
        score = _score_of(result)
        if any(abs(existing - score) < window for existing in kept_scores):
            continue
        kept.append(result)
        kept_scores.append(score)

    return kept


def is_valid_vector(vector: Any, dimension: int) -> bool:
    """True for a list/tuple of ``dimension`` finite numbers."""
    if not isinstance(vector, (list, tuple)) or len(vector) != dimension:
        return False
    return all(
        isinstance(v, Real) and not isinstance(v, bool) and math.isfinite(v)
        for v in vector
    )
