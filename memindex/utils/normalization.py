"""
L2 normalization for cosine-style retrieval.

The index ranks by plain Euclidean distance. For unit vectors
``||a - b||^2 == 2 - 2 * cos(a, b)``, so normalizing every vector before
``add`` and ``search`` makes the ranking follow cosine similarity.
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray


# Norms below this are treated as zero
ZERO_NORM = 1e-12


def normalize_vector(vector: ArrayLike, eps: float = ZERO_NORM) -> NDArray:
    """
    Return a float64 unit-length copy of ``vector``.

    Zero (or near-zero) vectors have no direction and come back unchanged.
    """
    array = np.array(vector, dtype=np.float64)
    norm = float(np.linalg.norm(array))
    if norm < eps:
        return array
    return array / norm


def is_normalized(vector: ArrayLike, tolerance: float = 1e-6) -> bool:
    """True if ``vector`` has unit L2 norm within ``tolerance``."""
    return abs(float(np.linalg.norm(vector)) - 1.0) < tolerance
