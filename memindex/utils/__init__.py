"""
Utility functions for memindex.
"""

from .validation import (
    validate_id,
    validate_metadata,
    validate_dimension,
    validate_top_k,
    validate_ef,
)
from .normalization import normalize_vector, is_normalized
from .logging import setup_logger, get_logger, LogContext

__all__ = [
    "validate_id",
    "validate_metadata",
    "validate_dimension",
    "validate_top_k",
    "validate_ef",
    "normalize_vector",
    "is_normalized",
    "setup_logger",
    "get_logger",
    "LogContext",
]
