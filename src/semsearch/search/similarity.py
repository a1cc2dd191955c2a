"""
Vector similarity helpers.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np


def cosine_similarity(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Vectors of different length (cross-model or corrupt data) and
    zero-magnitude vectors score 0.0 instead of raising.
    """
    if len(vector_a) != len(vector_b) or len(vector_a) == 0:
        return 0.0

    a = np.asarray(vector_a, dtype=np.float64)
    b = np.asarray(vector_b, dtype=np.float64)
    magnitude_a = float(np.linalg.norm(a))
    magnitude_b = float(np.linalg.norm(b))
    if magnitude_a == 0.0 or magnitude_b == 0.0:
        return 0.0

    similarity = float(np.dot(a, b) / (magnitude_a * magnitude_b))
    if not np.isfinite(similarity):
        return 0.0
    # Rounding noise can push identical vectors just past 1.0.
    return max(-1.0, min(1.0, similarity))
