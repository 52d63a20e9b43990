"""
Abstract base class for storage backends.

A storage backend is the authoritative store behind an index: it keeps
every ``(id, vector, metadata)`` entry so the index can be warmed or
rebuilt, and it holds the most recent serialized index snapshot.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple
import threading


Entry = Tuple[str, List[float], Dict[str, Any]]


@dataclass
class StorageStats:
    """Statistics about storage."""

    backend: str
    entry_count: int
    has_state: bool
    disk_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "backend": self.backend,
            "entry_count": self.entry_count,
            "has_state": self.has_state,
            "disk_mb": round(self.disk_bytes / (1024 * 1024), 2),
        }


class BaseStorage(ABC):
    """
    Abstract base class for storage backends.

    All storage implementations must provide:
    - Entry put/get/delete and iteration
    - Saving and loading the index state blob
    """

    def __init__(self, **kwargs):
        self._lock = threading.RLock()

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of entries stored."""
        pass

    # =========================================================================
    # ENTRY OPERATIONS
    # =========================================================================

    @abstractmethod
    def put_entry(
        self,
        id: str,
        vector: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Store or replace an entry.

        Args:
            id: Unique identifier
            vector: Vector data
            metadata: Optional metadata
        """
        pass

    @abstractmethod
    def get_entry(self, id: str) -> Optional[Entry]:
        """
        Retrieve an entry.

        Returns:
            ``(id, vector, metadata)`` or None if not found
        """
        pass

    @abstractmethod
    def delete_entry(self, id: str) -> bool:
        """
        Delete an entry.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    def iter_entries(self) -> Iterator[Entry]:
        """Iterate over all ``(id, vector, metadata)`` entries."""
        pass

    # =========================================================================
    # INDEX STATE
    # =========================================================================

    @abstractmethod
    def save_state(self, state: Dict[str, Any]) -> None:
        """Persist a serialized index snapshot, replacing any previous one."""
        pass

    @abstractmethod
    def load_state(self) -> Optional[Any]:
        """
        Load the last saved index snapshot.

        Returns:
            The snapshot, or None if none was saved
        """
        pass

    @abstractmethod
    def clear_state(self) -> None:
        """Discard the saved index snapshot."""
        pass

    @abstractmethod
    def stats(self) -> StorageStats:
        """Get storage statistics."""
        pass

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def flush(self) -> None:
        """Write pending changes (no-op for volatile backends)."""
        pass

    def close(self) -> None:
        """Flush and release resources."""
        self.flush()

    def __len__(self) -> int:
        return self.size

    def __contains__(self, id: str) -> bool:
        return self.get_entry(id) is not None

    def __enter__(self) -> "BaseStorage":
        return self

    def __exit__(self, *args) -> None:
        self.close()
