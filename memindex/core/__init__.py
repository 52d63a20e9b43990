"""
Core components: exceptions and the semantic memory layer.
"""

from .exceptions import (
    MemIndexError,
    ValidationError,
    InvalidDimensionError,
    EmbeddingError,
    StorageError,
    SerializationError,
)
from .memory import SemanticMemory, Embedder

__all__ = [
    "SemanticMemory",
    "Embedder",
    "MemIndexError",
    "ValidationError",
    "InvalidDimensionError",
    "EmbeddingError",
    "StorageError",
    "SerializationError",
]
