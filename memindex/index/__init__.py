"""
HNSW vector index for memindex.

Example:
    >>> from memindex.index import HNSWVectorIndex
    >>>
    >>> index = HNSWVectorIndex(dimension=128, M=16, ef=50)
    >>> index.add("a", vector_a, {"kind": "note"})
    >>> results = index.search(query, top_k=10)
"""

from .base import (
    HNSWConfig,
    IndexStats,
    LayerStats,
    SearchResult,
    DEFAULT_M,
    DEFAULT_EF,
    DEFAULT_EF_CONSTRUCTION,
    DEFAULT_TOP_K,
)
from .hnsw import HNSWVectorIndex, Neighbor
from .snapshot import check_snapshot, parse_entry_point

__all__ = [
    "HNSWVectorIndex",
    "HNSWConfig",
    "IndexStats",
    "LayerStats",
    "SearchResult",
    "Neighbor",
    "check_snapshot",
    "parse_entry_point",
    "DEFAULT_M",
    "DEFAULT_EF",
    "DEFAULT_EF_CONSTRUCTION",
    "DEFAULT_TOP_K",
]
