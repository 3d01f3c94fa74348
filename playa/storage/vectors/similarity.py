"""
Cosine helpers matching pgvector's `<=>` operator.

cosine_distance = 1 - cos(a, b); it does not assume unit-length inputs.
"""

from typing import List, Sequence

import numpy as np


def cosine_distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine distance between two vectors of equal length (zero vectors → 1.0)."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = np.linalg.norm(va) * np.linalg.norm(vb)
    if denom == 0:
        return 1.0
    return float(1.0 - np.dot(va, vb) / denom)


def cosine_distances(query: Sequence[float], matrix: List[Sequence[float]]) -> np.ndarray:
    """Vectorized cosine distance of `query` against each row of `matrix`."""
    if not matrix:
        return np.empty(0)
    q = np.asarray(query, dtype=np.float64)
    m = np.asarray(matrix, dtype=np.float64)
    norms = np.linalg.norm(m, axis=1) * np.linalg.norm(q)
    dots = m @ q
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms == 0, 0.0, dots / norms)
    return 1.0 - sims
