"""
SemanticMemory - owns an HNSW index, its authoritative store and an
optional embedding provider.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from .exceptions import (
    EmbeddingError,
    InvalidDimensionError,
    SerializationError,
    ValidationError,
)
from ..index import HNSWVectorIndex, SearchResult
from ..storage import BaseStorage, MemoryStorage, create_storage
from ..utils.logging import get_logger, setup_logger
from ..utils.normalization import normalize_vector
from ..utils.validation import validate_id, validate_metadata


logger = get_logger(__name__)


# Text -> embedding vector
Embedder = Callable[[str], Sequence[float]]


class SemanticMemory:
    """
    Semantic memory retrieval over an HNSW index.

    The store is authoritative: it holds every remembered entry, and the
    index snapshot is a cache of the graph built over it.
    Deleting an entry rebuilds the index from the store.

    Example:
        >>> memory = SemanticMemory(
        ...     HNSWVectorIndex(dimension=384),
        ...     storage=FileStorage("./memindex_data"),
        ...     embedder=model.encode,
        ... )
        >>> memory.warm()
        >>>
        >>> memory.remember(text="The user prefers dark mode", metadata={"type": "preference"})
        >>> hits = memory.recall(text="ui theme", top_k=3)
        >>>
        >>> memory.persist()

    Thread Safety:
        Mutating operations (remember, forget, warm, rebuild, persist)
        are serialized with an internal lock. recall doesn't take it.
    """

    def __init__(
        self,
        index: HNSWVectorIndex,
        storage: Optional[BaseStorage] = None,
        embedder: Optional[Embedder] = None,
        normalize: bool = False,
    ):
        """
        Initialize SemanticMemory.

        Args:
            index: The index to own (created by the caller)
            storage: Authoritative store (default: MemoryStorage)
            embedder: Callable turning text into a vector
            normalize: L2-normalize vectors so ranking follows cosine
        """
        self._index = index
        self._storage = storage if storage is not None else MemoryStorage()
        self._embedder = embedder
        self._normalize = normalize
        self._lock = threading.RLock()

    @classmethod
    def from_settings(
        cls,
        settings,
        embedder: Optional[Embedder] = None,
        configure_logging: bool = True,
    ) -> "SemanticMemory":
        """
        Build index, storage and memory from :class:`memindex.config.Settings`.

        Args:
            settings: Loaded settings
            embedder: Callable turning text into a vector
            configure_logging: Set up the ``memindex`` logger at
                ``settings.log_level``
        """
        if configure_logging:
            setup_logger("memindex", level=settings.log_level)

        index = HNSWVectorIndex.from_config(settings.hnsw_config())

        storage_settings = settings.storage
        if storage_settings.backend == "file":
            storage = create_storage(
                "file",
                path=storage_settings.data_dir,
                format=storage_settings.format,
                sync_on_write=storage_settings.sync_on_write,
            )
        else:
            storage = create_storage(storage_settings.backend)

        return cls(
            index,
            storage=storage,
            embedder=embedder,
            normalize=settings.normalize_vectors,
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def index(self) -> HNSWVectorIndex:
        return self._index

    @property
    def storage(self) -> BaseStorage:
        return self._storage

    @property
    def dimension(self) -> int:
        return self._index.dimension

    # =========================================================================
    # VECTORS
    # =========================================================================

    def embed(self, text: str) -> NDArray:
        """
        Embed text with the configured provider.

        Raises:
            EmbeddingError: If no provider is set or it fails
            InvalidDimensionError: If the embedding length doesn't match
        """
        if self._embedder is None:
            raise EmbeddingError("No embedding provider configured")

        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Text to embed must be a non-empty string")

        try:
            embedding = self._embedder(text)
        except Exception as e:
            raise EmbeddingError(f"Embedding provider failed: {e}") from e

        return self._prepare(embedding)

    def _prepare(self, vector: Sequence[float]) -> NDArray:
        """Check the length (before the index sees it) and normalize."""
        try:
            array = np.asarray(vector, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Vector must be numeric: {e}") from e

        if array.ndim != 1:
            raise ValidationError(f"Vector must be 1D, got {array.ndim}D")

        if len(array) != self.dimension:
            raise InvalidDimensionError(self.dimension, len(array))

        if not np.all(np.isfinite(array)):
            raise ValidationError("Vector contains NaN or infinite values")

        if self._normalize:
            array = normalize_vector(array)

        return array

    def _resolve(
        self,
        vector: Optional[Sequence[float]],
        text: Optional[str],
    ) -> NDArray:
        if (vector is None) == (text is None):
            raise ValidationError("Provide exactly one of vector or text")
        if vector is not None:
            return self._prepare(vector)
        return self.embed(text)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def remember(
        self,
        id: Optional[str] = None,
        vector: Optional[Sequence[float]] = None,
        text: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Store an entry and add it to the index.

        Everything is validated before the store is written, and the store
        is written before the index, so a rejected write (read-only or
        failing store) leaves both unchanged. Remembering an existing ID
        replaces the stored entry and rebuilds the index so the moved
        vector is linked at its new position.

        Args:
            id: Entry ID (default: a new UUID4)
            vector: Precomputed embedding
            text: Text to embed (instead of ``vector``)
            metadata: Metadata returned with search hits

        Returns:
            The entry ID
        """
        array = self._resolve(vector, text)
        id = validate_id(id) if id is not None else str(uuid.uuid4())
        metadata = validate_metadata(metadata)

        with self._lock:
            self._storage.put_entry(id, array.tolist(), metadata)

            if id in self._index:
                self.rebuild()
            else:
                self._index.add(id, array, metadata)

        logger.debug(f"Remembered '{id}'")
        return id

    def recall(
        self,
        vector: Optional[Sequence[float]] = None,
        text: Optional[str] = None,
        top_k: int = 10,
        ef: Optional[int] = None,
    ) -> List[SearchResult]:
        """
        Find the entries nearest to a vector or a text.

        Returns:
            List of SearchResult, nearest first
        """
        query = self._resolve(vector, text)
        return self._index.search(query, top_k=top_k, ef=ef)

    def forget(self, id: str) -> bool:
        """
        Delete an entry from the store and rebuild the index without it.

        Returns:
            True if the entry existed
        """
        with self._lock:
            if not self._storage.delete_entry(id):
                return False
            self.rebuild()
            return True

    def rebuild(self) -> int:
        """
        Rebuild the index from every entry in the store.

        Entries that no longer fit the index (wrong length, bad values)
        are skipped with a warning.

        Returns:
            Number of entries indexed
        """
        with self._lock:
            self._index.clear()
            skipped = 0

            for id, vector, metadata in self._storage.iter_entries():
                try:
                    self._index.add(id, vector, metadata)
                except ValidationError as e:
                    skipped += 1
                    logger.warning(f"Skipping stored entry '{id}': {e}")

            if skipped:
                logger.warning(f"Rebuild skipped {skipped} invalid entries")
            logger.info(f"Rebuilt index with {self._index.size} entries")
            return self._index.size

    def warm(self) -> int:
        """
        Prepare the index at startup.

        Loads the saved snapshot when it covers exactly the stored entries
        and matches the configured dimension; otherwise rebuilds from the
        store.

        Returns:
            Number of entries in the index
        """
        with self._lock:
            try:
                state = self._storage.load_state()
            except SerializationError as e:
                logger.warning(f"Saved index state unreadable, rebuilding: {e}")
                state = None

            if isinstance(state, Mapping) and state.get("dimension") != self.dimension:
                logger.warning(
                    f"Saved index state has dimension {state.get('dimension')!r}, "
                    f"expected {self.dimension}; rebuilding"
                )
                state = None

            if state is not None:
                self._index.load(state)
                stored_ids = {id for id, _, _ in self._storage.iter_entries()}
                usable = self._index.size == 0 or self._index.entry_point is not None
                if usable and set(self._index.iter_ids()) == stored_ids:
                    logger.info(f"Warmed index from snapshot ({self._index.size} entries)")
                    return self._index.size
                logger.info("Saved index state is stale, rebuilding")

            return self.rebuild()

    def persist(self) -> None:
        """Flush stored entries and save the index snapshot."""
        with self._lock:
            self._storage.flush()
            self._storage.save_state(self._index.save())
        logger.info(f"Persisted index state ({self._index.size} entries)")

    def stats(self) -> Dict[str, Any]:
        """Combined index and storage statistics."""
        return {
            "index": self._index.get_stats(),
            "storage": self._storage.stats().to_dict(),
            "normalize": self._normalize,
        }

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Persist and close the store."""
        try:
            self.persist()
        finally:
            self._storage.close()

    def __enter__(self) -> "SemanticMemory":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __len__(self) -> int:
        return self._index.size

    def __repr__(self) -> str:
        return (
            f"SemanticMemory(dimension={self.dimension}, "
            f"size={self._index.size}, storage={self._storage.__class__.__name__})"
        )
