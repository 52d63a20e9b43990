"""
File storage backend.

Keeps entries in memory and persists them, together with the index
snapshot, as two files in a directory:

    <path>/entries.<ext>       list of [id, vector, metadata] triples
    <path>/index_state.<ext>   output of HNSWVectorIndex.save()

Files are written to a temporary sibling and moved into place with
``os.replace`` so a crash never leaves a half-written file behind.
"""

from __future__ import annotations

import copy
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .base import BaseStorage, Entry, StorageStats
from .serialization import (
    FILE_EXTENSIONS,
    decode_entries,
    decode_snapshot,
    encode_entries,
    encode_snapshot,
    validate_format,
)
from ..core.exceptions import StorageError
from ..utils.logging import get_logger


logger = get_logger(__name__)


class FileStorage(BaseStorage):
    """
    Directory-backed storage for entries and the index snapshot.

    Example:
        >>> storage = FileStorage("./memindex_data", format="msgpack")
        >>> storage.put_entry("id1", vector, {"key": "value"})
        >>> storage.flush()
        >>> storage.save_state(index.save())
    """

    ENTRIES_FILE = "entries"
    STATE_FILE = "index_state"

    def __init__(
        self,
        path: Union[str, Path],
        format: str = "json",
        create: bool = True,
        read_only: bool = False,
        sync_on_write: bool = False,
        **kwargs,
    ):
        """
        Initialize file storage.

        Args:
            path: Storage directory
            format: "json" or "msgpack"
            create: Create the directory if it doesn't exist
            read_only: Reject every write
            sync_on_write: Flush entries after every put/delete

        Raises:
            StorageError: If the directory is missing and ``create`` is False
            SerializationError: If an existing entries file is corrupt
        """
        super().__init__(**kwargs)

        self._path = Path(path)
        self._format = validate_format(format)
        self._read_only = read_only
        self._sync_on_write = sync_on_write

        extension = FILE_EXTENSIONS[self._format]
        self._entries_path = self._path / f"{self.ENTRIES_FILE}.{extension}"
        self._state_path = self._path / f"{self.STATE_FILE}.{extension}"

        if not self._path.exists():
            if not create or read_only:
                raise StorageError(f"Storage path not found: {self._path}")
            self._path.mkdir(parents=True, exist_ok=True)

        self._entries: Dict[str, Tuple[List[float], Dict[str, Any]]] = {}
        self._dirty = False

        self._load_entries()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def format(self) -> str:
        return self._format

    @property
    def size(self) -> int:
        return len(self._entries)

    # =========================================================================
    # FILE I/O
    # =========================================================================

    def _load_entries(self) -> None:
        """Load entries from disk."""
        if not self._entries_path.exists():
            return

        data = self._entries_path.read_bytes()
        for id, vector, metadata in decode_entries(data, self._format):
            self._entries[id] = (vector, metadata)

        logger.debug(f"Loaded {len(self._entries)} entries from {self._entries_path}")

    def _write_atomic(self, target: Path, data: bytes) -> None:
        """Write ``data`` to a temp file and move it over ``target``."""
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path, prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
        except OSError as e:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to write {target}: {e}") from e

    def _check_writable(self) -> None:
        if self._read_only:
            raise StorageError("Storage is read-only")

    # =========================================================================
    # ENTRY OPERATIONS
    # =========================================================================

    def put_entry(
        self,
        id: str,
        vector: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._check_writable()

        with self._lock:
            self._entries[id] = (
                [float(x) for x in vector],
                copy.deepcopy(metadata or {}),
            )
            self._dirty = True

            if self._sync_on_write:
                self.flush()

    def get_entry(self, id: str) -> Optional[Entry]:
        with self._lock:
            if id not in self._entries:
                return None
            vector, metadata = self._entries[id]
            return id, list(vector), copy.deepcopy(metadata)

    def delete_entry(self, id: str) -> bool:
        self._check_writable()

        with self._lock:
            if self._entries.pop(id, None) is None:
                return False
            self._dirty = True

            if self._sync_on_write:
                self.flush()
            return True

    def iter_entries(self) -> Iterator[Entry]:
        with self._lock:
            items = list(self._entries.items())
        for id, (vector, metadata) in items:
            yield id, list(vector), copy.deepcopy(metadata)

    # =========================================================================
    # INDEX STATE
    # =========================================================================

    def save_state(self, state: Dict[str, Any]) -> None:
        self._check_writable()

        with self._lock:
            self._write_atomic(self._state_path, encode_snapshot(state, self._format))
        logger.debug(f"Saved index state to {self._state_path}")

    def load_state(self) -> Optional[Any]:
        """
        Load the saved snapshot.

        Raises:
            SerializationError: If the state file can't be decoded
        """
        with self._lock:
            if not self._state_path.exists():
                return None
            return decode_snapshot(self._state_path.read_bytes(), self._format)

    def clear_state(self) -> None:
        self._check_writable()

        with self._lock:
            if self._state_path.exists():
                self._state_path.unlink()

    def stats(self) -> StorageStats:
        disk_bytes = sum(
            p.stat().st_size
            for p in (self._entries_path, self._state_path)
            if p.exists()
        )
        return StorageStats(
            backend="file",
            entry_count=self.size,
            has_state=self._state_path.exists(),
            disk_bytes=disk_bytes,
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def flush(self) -> None:
        """Write entries to disk if they changed."""
        if self._read_only:
            return

        with self._lock:
            if not self._dirty:
                return
            entries = [
                (id, vector, metadata)
                for id, (vector, metadata) in self._entries.items()
            ]
            self._write_atomic(self._entries_path, encode_entries(entries, self._format))
            self._dirty = False

    def __repr__(self) -> str:
        return f"FileStorage(path='{self._path}', format='{self._format}', size={self.size})"
