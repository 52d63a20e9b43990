"""
memindex - in-process HNSW vector index for semantic memory retrieval.

Example:
    >>> from memindex import HNSWVectorIndex
    >>>
    >>> index = HNSWVectorIndex(dimension=2)
    >>> index.add("a", [0.0, 0.0])
    >>> index.add("b", [10.0, 10.0])
    >>> index.add("c", [0.1, 0.1])
    >>>
    >>> [r.id for r in index.search([0.0, 0.0], top_k=2)]
    ['a', 'c']
    >>>
    >>> state = index.save()
"""

from .core import (
    # Memory layer
    SemanticMemory,
    Embedder,
    # Exceptions
    MemIndexError,
    ValidationError,
    InvalidDimensionError,
    EmbeddingError,
    StorageError,
    SerializationError,
)

from .index import (
    HNSWVectorIndex,
    HNSWConfig,
    IndexStats,
    LayerStats,
    SearchResult,
    Neighbor,
)

from .storage import (
    BaseStorage,
    MemoryStorage,
    FileStorage,
    create_storage,
)

from .distance import euclidean, query_distances

__version__ = "0.1.0"

__all__ = [
    # Index
    "HNSWVectorIndex",
    "HNSWConfig",
    "IndexStats",
    "LayerStats",
    "SearchResult",
    "Neighbor",
    # Memory layer
    "SemanticMemory",
    "Embedder",
    # Storage
    "BaseStorage",
    "MemoryStorage",
    "FileStorage",
    "create_storage",
    # Exceptions
    "MemIndexError",
    "ValidationError",
    "InvalidDimensionError",
    "EmbeddingError",
    "StorageError",
    "SerializationError",
    # Distance
    "euclidean",
    "query_distances",
]
