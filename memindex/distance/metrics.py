"""
Euclidean distance implementations.

All functions use NumPy vectorized operations and return smaller values
for more similar vectors. No normalization is applied.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


# Type aliases
Vector = NDArray[np.floating]
VectorBatch = NDArray[np.floating]


def euclidean(a: Vector, b: Vector) -> float:
    """
    Compute Euclidean (L2) distance between two vectors.

    Formula: sqrt(sum((a_i - b_i)^2))

    Example:
        >>> a = np.array([0.0, 0.0])
        >>> b = np.array([3.0, 4.0])
        >>> euclidean(a, b)
        5.0
    """
    diff = a - b
    return float(np.sqrt(np.dot(diff, diff)))


def euclidean_squared(a: Vector, b: Vector) -> float:
    """
    Compute squared Euclidean distance between two vectors.

    Maintains the same ordering as Euclidean distance without the sqrt.
    """
    diff = a - b
    return float(np.dot(diff, diff))


def query_distances(query: Vector, collection: VectorBatch) -> NDArray:
    """
    Compute Euclidean distances from a query vector to every row of a batch.

    Uses the explicit difference form rather than the norm expansion so an
    exact match comes back as exactly 0.0.

    Args:
        query: Query vector of shape (d,)
        collection: Vectors of shape (n, d)

    Returns:
        Distances array of shape (n,)

    Example:
        >>> query = np.array([0.0, 0.0])
        >>> collection = np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]])
        >>> query_distances(query, collection)
        array([1.        , 1.        , 1.41421356])
    """
    if len(collection) == 0:
        return np.empty(0, dtype=np.float64)
    diff = collection - query
    return np.sqrt(np.einsum("ij,ij->i", diff, diff))
