"""
Input validation utilities.
"""

import math
from numbers import Integral, Real
from typing import Any, Dict, Mapping, Optional

from ..core.exceptions import ValidationError


# Maximum limits
MAX_ID_LENGTH = 256
MAX_METADATA_KEY_LENGTH = 256
MAX_DIMENSION = 65536


def validate_id(id: Any) -> str:
    """
    Validate an entry ID.

    IDs are opaque to the index (UUIDs, storage paths, ...), so only the
    type and length are checked.

    Args:
        id: The ID to validate

    Returns:
        The validated ID

    Raises:
        ValidationError: If ID is invalid
    """
    if not isinstance(id, str):
        raise ValidationError(f"ID must be a string, got {type(id).__name__}")

    if not id:
        raise ValidationError("ID cannot be empty")

    if len(id) > MAX_ID_LENGTH:
        raise ValidationError(
            f"ID too long: {len(id)} characters (max {MAX_ID_LENGTH})"
        )

    return id


def validate_metadata(metadata: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Validate metadata mapping.

    Args:
        metadata: The metadata to validate (None becomes an empty dict)

    Returns:
        A shallow dict copy of the metadata

    Raises:
        ValidationError: If metadata is invalid
    """
    if metadata is None:
        return {}

    if not isinstance(metadata, Mapping):
        raise ValidationError(
            f"Metadata must be a mapping, got {type(metadata).__name__}"
        )

    validated = {}
    for key, value in metadata.items():
        if not isinstance(key, str):
            raise ValidationError(
                f"Metadata key must be string, got {type(key).__name__}"
            )

        if len(key) > MAX_METADATA_KEY_LENGTH:
            raise ValidationError(
                f"Metadata key too long: '{key[:20]}...' "
                f"({len(key)} chars, max {MAX_METADATA_KEY_LENGTH})"
            )

        validated[key] = _validate_metadata_value(key, value)

    return validated


def _validate_metadata_value(key: str, value: Any) -> Any:
    """Validate a single metadata value (must survive a JSON round trip)."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value

    if isinstance(value, (list, tuple)):
        return [_validate_metadata_value(key, v) for v in value]

    if isinstance(value, Mapping):
        nested = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise ValidationError(
                    f"Metadata key under '{key}' must be string, "
                    f"got {type(k).__name__}"
                )
            nested[k] = _validate_metadata_value(f"{key}.{k}", v)
        return nested

    raise ValidationError(
        f"Invalid metadata value type for '{key}': {type(value).__name__}. "
        "Allowed types: str, int, float, bool, None, list, dict"
    )


def validate_dimension(dimension: Any, max_dim: int = MAX_DIMENSION) -> int:
    """
    Validate vector dimension.

    Args:
        dimension: The dimension to validate
        max_dim: Maximum allowed dimension

    Returns:
        The validated dimension

    Raises:
        ValidationError: If dimension is invalid
    """
    if isinstance(dimension, bool) or not isinstance(dimension, Integral):
        raise ValidationError(
            f"Dimension must be an integer, got {type(dimension).__name__}"
        )

    if dimension < 1:
        raise ValidationError(f"Dimension must be >= 1, got {dimension}")

    if dimension > max_dim:
        raise ValidationError(
            f"Dimension too large: {dimension} (max {max_dim})"
        )

    return int(dimension)


def validate_positive_int(value: Any, name: str) -> int:
    """Validate a strictly positive integer parameter."""
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ValidationError(
            f"{name} must be an integer, got {type(value).__name__}"
        )

    if value < 1:
        raise ValidationError(f"{name} must be at least 1, got {value}")

    return int(value)


def validate_top_k(top_k: Any) -> int:
    """Validate top_k (number of results, 0 allowed)."""
    if isinstance(top_k, bool) or not isinstance(top_k, Integral):
        raise ValidationError(
            f"top_k must be an integer, got {type(top_k).__name__}"
        )

    if top_k < 0:
        raise ValidationError(f"top_k must be >= 0, got {top_k}")

    return int(top_k)


def validate_ef(ef: Any) -> int:
    """Validate a beam width (ef / ef_construction)."""
    return validate_positive_int(ef, "ef")


def is_finite_number(value: Any) -> bool:
    """True for real, finite, non-bool numbers."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False
