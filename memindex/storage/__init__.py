"""
Storage backends for memindex.

Available Storage Backends:
    - MemoryStorage: In-memory storage (fast, volatile)
    - FileStorage: Directory of JSON or msgpack files

Example:
    >>> from memindex.storage import FileStorage
    >>>
    >>> storage = FileStorage("./data", format="msgpack")
    >>> storage.put_entry("id1", vector1, {"key": "value"})
    >>> storage.flush()
"""

from typing import Optional

from .base import BaseStorage, StorageStats, Entry
from .memory import MemoryStorage
from .file import FileStorage
from .serialization import (
    FORMATS,
    encode,
    decode,
    encode_snapshot,
    decode_snapshot,
    encode_entries,
    decode_entries,
)

__all__ = [
    # Base
    "BaseStorage",
    "StorageStats",
    "Entry",
    # Implementations
    "MemoryStorage",
    "FileStorage",
    # Serialization
    "FORMATS",
    "encode",
    "decode",
    "encode_snapshot",
    "decode_snapshot",
    "encode_entries",
    "decode_entries",
    # Factory
    "create_storage",
]


def create_storage(
    storage_type: str,
    path: Optional[str] = None,
    **kwargs
) -> BaseStorage:
    """
    Factory function to create storage backend.

    Args:
        storage_type: "memory" or "file"
        path: Directory for file storage
        **kwargs: Storage-specific options

    Returns:
        Storage instance
    """
    storage_type = storage_type.lower()

    if storage_type == "memory":
        return MemoryStorage(**kwargs)
    elif storage_type == "file":
        if path is None:
            raise ValueError("path required for file storage")
        return FileStorage(path=path, **kwargs)
    else:
        raise ValueError(f"Unknown storage type: {storage_type}")
