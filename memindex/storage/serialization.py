"""
Serialization utilities for memindex storage.

Index snapshots and entry lists are plain Python structures (dicts, lists,
strings, numbers), so they encode directly as JSON or msgpack.
"""

from __future__ import annotations

import json
from typing import Any, List, Tuple

import msgpack

from ..core.exceptions import SerializationError


FORMATS = ("json", "msgpack")

FILE_EXTENSIONS = {
    "json": "json",
    "msgpack": "msgpack",
}


def validate_format(format: str) -> str:
    """Return the normalized format name or raise SerializationError."""
    normalized = str(format).lower()
    if normalized not in FORMATS:
        raise SerializationError(
            f"Unknown serialization format: {format}. "
            f"Available: {', '.join(FORMATS)}"
        )
    return normalized


def encode(data: Any, format: str = "json") -> bytes:
    """
    Encode a plain structure to bytes.

    Args:
        data: JSON-compatible structure
        format: "json" or "msgpack"

    Returns:
        Encoded bytes

    Raises:
        SerializationError: If the data can't be encoded
    """
    format = validate_format(format)
    try:
        if format == "msgpack":
            return msgpack.packb(data, use_bin_type=True)
        return json.dumps(data, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError, OverflowError) as e:
        raise SerializationError(f"Failed to encode {format}: {e}") from e


def decode(data: bytes, format: str = "json") -> Any:
    """
    Decode bytes produced by :func:`encode`.

    Raises:
        SerializationError: If the bytes are not valid for the format
    """
    format = validate_format(format)
    try:
        if format == "msgpack":
            return msgpack.unpackb(data, raw=False)
        return json.loads(data.decode("utf-8"))
    except (ValueError, TypeError, msgpack.UnpackException) as e:
        raise SerializationError(f"Failed to decode {format}: {e}") from e


def encode_snapshot(snapshot: Any, format: str = "json") -> bytes:
    """Encode the output of ``HNSWVectorIndex.save``."""
    return encode(snapshot, format)


def decode_snapshot(data: bytes, format: str = "json") -> Any:
    """
    Decode a stored snapshot.

    The result is not validated here; ``HNSWVectorIndex.load`` checks the
    structure and degrades to an empty index on problems.
    """
    return decode(data, format)


def encode_entries(
    entries: List[Tuple[str, List[float], dict]],
    format: str = "json",
) -> bytes:
    """Encode ``(id, vector, metadata)`` tuples as a list of triples."""
    return encode([[id, list(vector), metadata] for id, vector, metadata in entries], format)


def decode_entries(data: bytes, format: str = "json") -> List[Tuple[str, List[float], dict]]:
    """
    Decode entries written by :func:`encode_entries`.

    Raises:
        SerializationError: If the payload isn't a list of triples
    """
    decoded = decode(data, format)
    if not isinstance(decoded, list):
        raise SerializationError("Entries payload must be a list")

    entries = []
    for position, item in enumerate(decoded):
        if (
            not isinstance(item, list)
            or len(item) != 3
            or not isinstance(item[0], str)
            or not isinstance(item[1], list)
            or not isinstance(item[2], dict)
        ):
            raise SerializationError(
                f"Entry {position} is not an [id, vector, metadata] triple"
            )
        entries.append((item[0], item[1], item[2]))
    return entries
