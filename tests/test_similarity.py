"""Tests for vector similarity helpers."""

import math

import pytest

from bot_recall.domain.similarity import cosine, l2_normalize, pad_vectors


class TestCosine:
    def test_identical_vectors_score_one(self):
        assert cosine([0.3, 0.4, 0.5], [0.3, 0.4, 0.5]) == pytest.approx(1.0)

    def test_empty_or_zero_vectors_score_zero(self):
        assert cosine([], [1.0, 2.0]) == 0.0
        assert cosine(None, [1.0]) == 0.0
        assert cosine([0.0, 0.0], [1.0, 2.0]) == 0.0

    def test_symmetric(self):
        a, b = [1.0, 2.0, 3.0], [3.0, 1.0, 0.5]
        assert cosine(a, b) == pytest.approx(cosine(b, a))

    def test_mismatched_lengths_are_zero_padded(self):
        # [1, 1] vs [1, 1, 0] is the same direction
        assert cosine([1.0, 1.0], [1.0, 1.0, 0.0]) == pytest.approx(1.0)
        assert cosine([1.0], [0.0, 1.0]) == 0.0

    def test_negative_similarity_is_clamped(self):
        assert cosine([1.0, 0.0], [-1.0, 0.0]) == 0.0

    def test_non_finite_input_scores_zero(self):
        assert cosine([math.inf, 1.0], [1.0, 1.0]) == 0.0


def test_pad_vectors_shape():
    matrix = pad_vectors([[1.0], [1.0, 2.0, 3.0]])
    assert matrix.shape == (2, 3)
    assert matrix[0].tolist() == [1.0, 0.0, 0.0]


def test_l2_normalize():
    assert l2_normalize([3.0, 4.0]) == pytest.approx([0.6, 0.8])
    assert l2_normalize([0.0, 0.0]) == [0.0, 0.0]
