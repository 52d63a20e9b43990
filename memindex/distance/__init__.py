"""
Distance metrics for the memindex vector index.

The index ranks neighbors by Euclidean (L2) distance.

Example:
    >>> from memindex.distance import euclidean
    >>> import numpy as np
    >>>
    >>> euclidean(np.array([0.0, 0.0]), np.array([3.0, 4.0]))
    5.0
"""

from .metrics import (
    euclidean,
    euclidean_squared,
    query_distances,
)

__all__ = [
    "euclidean",
    "euclidean_squared",
    "query_distances",
]
