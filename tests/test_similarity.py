"""Tests for cosine similarity."""

from __future__ import annotations

import math

import pytest

from semsearch.search.similarity import cosine_similarity


def test_identical_vectors_score_one() -> None:
    assert cosine_similarity([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)


def test_orthogonal_vectors_score_zero() -> None:
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_opposite_vectors_score_minus_one() -> None:
    assert cosine_similarity([1.0, 2.0, 3.0], [-1.0, -2.0, -3.0]) == pytest.approx(-1.0)


def test_scaling_does_not_change_similarity() -> None:
    base = cosine_similarity([1.0, 2.0], [2.0, 1.0])
    scaled = cosine_similarity([10.0, 20.0], [0.2, 0.1])
    assert scaled == pytest.approx(base)
    assert base == pytest.approx(0.8)


def test_zero_magnitude_vector_scores_zero() -> None:
    assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0


def test_length_mismatch_scores_zero() -> None:
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0]) == 0.0


def test_empty_vectors_score_zero() -> None:
    assert cosine_similarity([], []) == 0.0


def test_result_stays_within_bounds() -> None:
    vector = [1e-3, 1e-3, 1e-3]
    score = cosine_similarity(vector, vector)
    assert -1.0 <= score <= 1.0
    assert math.isfinite(score)
