"""
In-memory storage backend.

Fast volatile storage for entries and the index snapshot.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .base import BaseStorage, Entry, StorageStats


class MemoryStorage(BaseStorage):
    """
    In-memory entry and snapshot storage.

    Data is lost when the process exits. Use for development, tests, and
    indexes that are rebuilt from another source at startup.

    Example:
        >>> storage = MemoryStorage()
        >>> storage.put_entry("id1", [0.1, 0.2], {"key": "value"})
        >>> storage.save_state(index.save())
    """

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        self._entries: Dict[str, Tuple[List[float], Dict[str, Any]]] = {}
        self._state: Optional[Any] = None

    @property
    def size(self) -> int:
        return len(self._entries)

    def put_entry(
        self,
        id: str,
        vector: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._lock:
            self._entries[id] = (
                [float(x) for x in vector],
                copy.deepcopy(metadata or {}),
            )

    def get_entry(self, id: str) -> Optional[Entry]:
        with self._lock:
            if id not in self._entries:
                return None
            vector, metadata = self._entries[id]
            return id, list(vector), copy.deepcopy(metadata)

    def delete_entry(self, id: str) -> bool:
        with self._lock:
            return self._entries.pop(id, None) is not None

    def iter_entries(self) -> Iterator[Entry]:
        with self._lock:
            items = list(self._entries.items())
        for id, (vector, metadata) in items:
            yield id, list(vector), copy.deepcopy(metadata)

    def save_state(self, state: Dict[str, Any]) -> None:
        with self._lock:
            self._state = copy.deepcopy(state)

    def load_state(self) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._state)

    def clear_state(self) -> None:
        with self._lock:
            self._state = None

    def stats(self) -> StorageStats:
        return StorageStats(
            backend="memory",
            entry_count=self.size,
            has_state=self._state is not None,
        )
