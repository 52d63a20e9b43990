"""
Custom exceptions for memindex.
"""


class MemIndexError(Exception):
    """Base exception for memindex."""
    pass


class ValidationError(MemIndexError):
    """Input validation error."""
    pass


class InvalidDimensionError(ValidationError):
    """Vector length doesn't match the index dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Invalid vector dimension. Expected {expected}, got {actual}"
        )


class EmbeddingError(MemIndexError):
    """Embedding provider is missing or failed."""
    pass


class StorageError(MemIndexError):
    """Error related to storage operations."""
    pass


class SerializationError(StorageError):
    """Error during serialization/deserialization."""
    pass
