"""Vector math library tests."""
import math
import random

import pytest

from vibe_search.exceptions import DimensionMismatch
from vibe_search.utils.vector_math import (
    SimilarityMatch,
    VectorCandidate,
    average_vectors,
    cosine_similarity,
    euclidean_distance,
    filter_similar_results,
    find_top_k_similar,
    is_valid_vector,
    normalize_vector,
)


def _random_vectors(count: int, dim: int = 6, seed: int = 7) -> list[list[float]]:
    rng = random.Random(seed)
    return [[rng.uniform(-1, 1) for _ in range(dim)] for _ in range(count)]


# ═══════════════════════════════════════════════════════
# Cosine similarity / distance
# ═══════════════════════════════════════════════════════


class TestCosineSimilarity:
    def test_symmetric(self):
        for a, b in zip(_random_vectors(20, seed=1), _random_vectors(20, seed=2)):
            assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_self_similarity_is_one(self):
        for v in _random_vectors(10):
            assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_zero_vector_gives_zero(self):
        assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
        assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0

    def test_opposite_vectors(self):
        assert cosine_similarity([1.0, 0.0], [-2.0, 0.0]) == pytest.approx(-1.0)

    def test_orthogonal_vectors(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 5.0]) == pytest.approx(0.0)

    def test_length_mismatch_raises(self):
        with pytest.raises(DimensionMismatch) as exc_info:
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])
        assert exc_info.value.expected == 2
        assert exc_info.value.actual == 3

    def test_dimension_mismatch_is_value_error(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0], [1.0, 2.0])


class TestEuclideanDistance:
    def test_non_negative_and_zero_on_self(self):
        vectors = _random_vectors(10)
        for a, b in zip(vectors, reversed(vectors)):
            assert euclidean_distance(a, b) >= 0
            assert euclidean_distance(a, a) == 0.0

    def test_known_value(self):
        assert euclidean_distance([0.0, 0.0], [3.0, 4.0]) == pytest.approx(5.0)

    def test_length_mismatch_raises(self):
        with pytest.raises(DimensionMismatch):
            euclidean_distance([1.0], [1.0, 2.0])


# ═══════════════════════════════════════════════════════
# Normalize / average
# ═══════════════════════════════════════════════════════


class TestNormalizeAndAverage:
    def test_normalized_vector_has_unit_norm(self):
        for v in _random_vectors(10):
            normalized = normalize_vector(v)
            assert math.sqrt(sum(x * x for x in normalized)) == pytest.approx(1.0)

    def test_zero_vector_unchanged(self):
        assert normalize_vector([0.0, 0.0, 0.0]) == [0.0, 0.0, 0.0]

    def test_normalize_returns_plain_floats(self):
        result = normalize_vector([3.0, 4.0])
        assert result == pytest.approx([0.6, 0.8])
        assert all(type(x) is float for x in result)

    def test_average_empty(self):
        assert average_vectors([]) == []

    def test_average_single_vector_unchanged(self):
        v = [0.25, -1.5, 3.0]
        assert average_vectors([v]) == v

    def test_average_elementwise(self):
        assert average_vectors([[1.0, 2.0], [3.0, 6.0]]) == pytest.approx([2.0, 4.0])

    def test_average_ragged_raises(self):
        with pytest.raises(DimensionMismatch):
            average_vectors([[1.0, 2.0], [1.0]])


# ═══════════════════════════════════════════════════════
# Top-k ranking
# ═══════════════════════════════════════════════════════


class TestFindTopKSimilar:
    def _candidates(self, count: int = 8) -> list[VectorCandidate]:
        return [VectorCandidate(i, v, {"n": i}) for i, v in enumerate(_random_vectors(count, seed=11))]

    def test_sorted_descending(self):
        query = _random_vectors(1, seed=3)[0]
        results = find_top_k_similar(query, self._candidates(), k=8)
        scores = [r.similarity for r in results]
        assert scores == sorted(scores, reverse=True)

    def test_k_larger_than_candidates_returns_all(self):
        query = _random_vectors(1, seed=3)[0]
        results = find_top_k_similar(query, self._candidates(5), k=50)
        assert len(results) == 5
        assert {r.id for r in results} == set(range(5))

    def test_k_zero_or_negative_returns_empty(self):
        query = _random_vectors(1, seed=3)[0]
        assert find_top_k_similar(query, self._candidates(), k=0) == []
        assert find_top_k_similar(query, self._candidates(), k=-1) == []

    def test_empty_candidates(self):
        assert find_top_k_similar([1.0, 0.0], [], k=3) == []

    def test_truncates_to_k(self):
        query = [1.0, 0.0]
        candidates = [
            VectorCandidate("far", [0.0, 1.0]),
            VectorCandidate("near", [1.0, 0.1]),
            VectorCandidate("exact", [2.0, 0.0]),
        ]
        results = find_top_k_similar(query, candidates, k=2)
        assert [r.id for r in results] == ["exact", "near"]

    def test_ties_keep_input_order(self):
        candidates = [VectorCandidate(name, [1.0, 1.0]) for name in ("a", "b", "c", "d")]
        results = find_top_k_similar([1.0, 1.0], candidates, k=4)
        assert [r.id for r in results] == ["a", "b", "c", "d"]

    def test_payload_carried_through(self):
        results = find_top_k_similar([1.0, 0.0], [VectorCandidate("x", [1.0, 0.0], {"name": "X"})], k=1)
        assert results[0].data == {"name": "X"}
        assert results[0].similarity == pytest.approx(1.0)

    def test_zero_norm_candidate_scores_zero(self):
        results = find_top_k_similar(
            [1.0, 0.0],
            [VectorCandidate("zero", [0.0, 0.0]), VectorCandidate("neg", [-1.0, 0.0])],
            k=2,
        )
        assert [(r.id, r.similarity) for r in results] == [("zero", 0.0), ("neg", -1.0)]

    def test_mismatched_candidate_raises(self):
        with pytest.raises(DimensionMismatch):
            find_top_k_similar([1.0, 0.0], [VectorCandidate("bad", [1.0, 0.0, 0.0])], k=1)


# ═══════════════════════════════════════════════════════
# Score-proximity filter
# ═══════════════════════════════════════════════════════


class TestFilterSimilarResults:
    def test_collapses_near_identical_scores(self):
        results = [
            SimilarityMatch("a", 0.90),
            SimilarityMatch("b", 0.89),
            SimilarityMatch("c", 0.70),
        ]
        kept = filter_similar_results(results, threshold=0.95)
        assert [r.id for r in kept] == ["a", "c"]

    def test_boundary_is_not_filtered(self):
        results = [{"id": "a", "similarity": 0.5}, {"id": "b", "similarity": 0.25}]
        kept = filter_similar_results(results, threshold=0.75)
        assert [r["id"] for r in kept] == ["a", "b"]

    def test_identical_products_with_different_scores_both_kept(self):
        results = [SimilarityMatch("same", 0.9), SimilarityMatch("same", 0.5)]
        assert len(filter_similar_results(results)) == 2

    def test_empty(self):
        assert filter_similar_results([]) == []


class TestIsValidVector:
    def test_valid(self):
        assert is_valid_vector([0.1, 2, -3.5], 3)
        assert is_valid_vector((1.0, 2.0), 2)

    @pytest.mark.parametrize("value", [
        None,
        "abc",
        {"a": 1},
        [1.0, 2.0],
        [1.0, "x", 3.0],
        [1.0, float("nan"), 3.0],
        [1.0, float("inf"), 3.0],
        [True, False, True],
    ])
    def test_invalid(self, value):
        assert not is_valid_vector(value, 3)
