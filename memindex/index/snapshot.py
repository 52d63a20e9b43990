"""
Structural validation for saved index state.

``HNSWVectorIndex.load`` must never raise on bad input: a corrupt snapshot
degrades to an empty index. The checks live here, as plain functions that
report the first problem found, so the fallback is explicit and testable
instead of being a side effect of a caught exception.

Snapshot shape (the output of ``HNSWVectorIndex.save``)::

    {
        "dimension": 4,
        "maxLayer": 1,
        "entryPoint": {"id": "a", "level": 1},
        "vectors": [["a", [0.0, 0.1, 0.2, 0.3]], ...],
        "metadata": [["a", {"source": "chat"}], ...],
        "layers": [[["a", ["b", "c"]], ...], [["a", []]]],
    }
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional, Tuple

from ..utils.validation import MAX_DIMENSION, is_finite_number


def _is_pair(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and len(value) == 2


def _is_id(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def _as_integral(value: Any) -> Optional[int]:
    """Return ``value`` as an int if it is an integral number, else None."""
    if not is_finite_number(value):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    return int(value)


def check_snapshot(state: Any) -> Optional[str]:
    """
    Validate the structure of a saved index state.

    Args:
        state: Candidate snapshot, typically decoded JSON or msgpack

    Returns:
        None if the snapshot can be loaded, otherwise a description of the
        first problem found.
    """
    if not isinstance(state, Mapping):
        return f"state must be a mapping, got {type(state).__name__}"

    dimension = _as_integral(state.get("dimension"))
    if dimension is None or not 1 <= dimension <= MAX_DIMENSION:
        return f"invalid dimension: {state.get('dimension')!r}"

    layers = state.get("layers")
    if not isinstance(layers, list):
        return f"layers must be a list, got {type(layers).__name__}"

    vectors = state.get("vectors")
    if vectors is not None:
        if not isinstance(vectors, list):
            return f"vectors must be a list, got {type(vectors).__name__}"
        for position, item in enumerate(vectors):
            if not _is_pair(item) or not _is_id(item[0]):
                return f"vectors[{position}] is not an [id, vector] pair"
            vector = item[1]
            if not isinstance(vector, (list, tuple)):
                return f"vector for {item[0]!r} is not a list"
            if len(vector) != dimension:
                return (
                    f"vector for {item[0]!r} has length {len(vector)}, "
                    f"expected {dimension}"
                )
            if not all(is_finite_number(x) for x in vector):
                return f"vector for {item[0]!r} contains non-numeric values"

    metadata = state.get("metadata")
    if metadata is not None:
        if not isinstance(metadata, list):
            return f"metadata must be a list, got {type(metadata).__name__}"
        for position, item in enumerate(metadata):
            if not _is_pair(item) or not _is_id(item[0]):
                return f"metadata[{position}] is not an [id, mapping] pair"
            if item[1] is not None and not isinstance(item[1], Mapping):
                return f"metadata for {item[0]!r} is not a mapping"

    for level, layer in enumerate(layers):
        # A non-list layer is tolerated and loads as an empty layer
        if not isinstance(layer, list):
            continue
        for position, item in enumerate(layer):
            if not _is_pair(item) or not _is_id(item[0]):
                return (
                    f"layers[{level}][{position}] is not an "
                    "[id, neighbor ids] pair"
                )

    return None


def parse_entry_point(value: Any) -> Optional[Tuple[str, int]]:
    """
    Return ``(id, level)`` for a well-formed entry point, else None.

    A well-formed entry point is a mapping with a non-empty string ``id``
    and an integral, non-negative ``level``.
    """
    if not isinstance(value, Mapping):
        return None
    entry_id = value.get("id")
    level = _as_integral(value.get("level"))
    if not _is_id(entry_id) or level is None or level < 0:
        return None
    return entry_id, level
