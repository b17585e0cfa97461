"""Vector similarity helpers."""

from collections.abc import Sequence

import numpy as np


def pad_vectors(vectors: Sequence[Sequence[float]]) -> np.ndarray:
    """Stack vectors of possibly different lengths, zero-padding the short ones."""
    if not vectors:
        return np.zeros((0, 0), dtype=float)
    width = max(len(vector) for vector in vectors)
    matrix = np.zeros((len(vectors), width), dtype=float)
    for row, vector in enumerate(vectors):
        matrix[row, : len(vector)] = vector
    return matrix


def cosine(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine similarity clamped to [0, 1].

    The shorter vector is zero-padded. Empty or zero-norm inputs, and any
    non-finite result, give 0.
    """
    if not a or not b:
        return 0.0

    left, right = pad_vectors([a, b])
    norm = float(np.linalg.norm(left) * np.linalg.norm(right))
    if norm == 0.0 or not np.isfinite(norm):
        return 0.0

    similarity = float(np.dot(left, right) / norm)
    if not np.isfinite(similarity):
        return 0.0
    return min(1.0, max(0.0, similarity))


def l2_normalize(vector: Sequence[float]) -> list[float]:
    """Unit-length copy of ``vector``; a zero vector stays zero."""
    array = np.asarray(vector, dtype=float)
    norm = float(np.linalg.norm(array))
    if norm == 0.0 or not np.isfinite(norm):
        return [0.0] * len(array)
    return (array / norm).tolist()
