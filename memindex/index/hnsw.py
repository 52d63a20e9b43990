"""
HNSW (Hierarchical Navigable Small World) Index Implementation.

HNSW is a graph-based approximate nearest neighbor algorithm. Nodes are
assigned a random top level with exponentially decaying probability; each
level is a proximity graph, level 0 holding every node. Queries descend
greedily through the sparse upper levels and finish with a beam search on
level 0.

Storage is arena style: every entry gets a dense integer handle on
insertion, vectors live in one contiguous float64 matrix indexed by handle,
and each level maps a handle to the list of its neighbor handles. String
IDs only appear at the API boundary and in snapshots.

Simplifications relative to the paper:
    - Neighbors are the M closest candidates (no selection heuristic).
    - Back-links are never pruned, so a node's degree can exceed M.
    - Insertion searches each of the new node's levels from the global
      entry point; it does not first descend the levels above them.

Reference:
    Malkov, Y. A., & Yashunin, D. A. (2018).
    "Efficient and robust approximate nearest neighbor search using
    Hierarchical Navigable Small World graphs."
    https://arxiv.org/abs/1603.09320
"""

from __future__ import annotations

import copy
import dataclasses
import heapq
import math
import random
from typing import (
    Any,
    Dict,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
)

import numpy as np
from numpy.typing import NDArray

from .base import (
    DEFAULT_EF,
    DEFAULT_EF_CONSTRUCTION,
    DEFAULT_M,
    DEFAULT_TOP_K,
    HNSWConfig,
    IndexStats,
    LayerStats,
    SearchResult,
)
from .snapshot import check_snapshot, parse_entry_point
from ..core.exceptions import InvalidDimensionError, ValidationError
from ..distance import euclidean, query_distances
from ..utils.logging import get_logger
from ..utils.validation import (
    validate_ef,
    validate_id,
    validate_metadata,
    validate_top_k,
)


logger = get_logger(__name__)

# Initial rows allocated for the vector matrix
INITIAL_CAPACITY = 64

# Safety cap on drawn levels (only reachable with a very large ml)
MAX_LEVEL = 64


class Neighbor(NamedTuple):
    """A neighbor with its distance."""
    distance: float
    id: str


class HNSWVectorIndex:
    """
    In-memory HNSW vector index for semantic memory retrieval.

    Example:
        >>> index = HNSWVectorIndex(dimension=384)
        >>>
        >>> index.add("mem-1", embedding, {"path": "memories/notes"})
        >>> results = index.search(query_embedding, top_k=5)
        >>>
        >>> state = index.save()          # plain JSON-compatible dict
        >>> restored = HNSWVectorIndex(dimension=384)
        >>> restored.load(state)

    Parameters:
        M: Neighbor links created per node per layer (default: 16)
        ef_construction: Beam width while linking a new node (default: 200)
        ef: Default beam width for queries (default: 50)
        ml: Level generation factor (default: 1 / ln(M))
        seed: Random seed for reproducible level assignment

    Thread Safety:
        No internal locking. Callers serialize ``add``/``load``/``clear``
        against each other and against reads; concurrent ``search`` and
        ``get_stats`` calls on an unchanging index are safe.
    """

    def __init__(
        self,
        dimension: int,
        M: int = DEFAULT_M,
        ef_construction: int = DEFAULT_EF_CONSTRUCTION,
        ef: int = DEFAULT_EF,
        ml: Optional[float] = None,
        seed: Optional[int] = None,
    ):
        """
        Initialize an empty HNSW index.

        Args:
            dimension: Vector dimension
            M: Neighbor links per node per layer
            ef_construction: Beam width during construction
            ef: Default beam width during search
            ml: Level generation factor (default: 1 / ln(M))
            seed: Random seed for reproducibility

        Raises:
            ValidationError: If any parameter is invalid
        """
        self.config = HNSWConfig(
            dimension=dimension,
            M=M,
            ef_construction=ef_construction,
            ef=ef,
            ml=ml,
            seed=seed,
        )

        self._rng = random.Random(seed)
        self._reset()

    @classmethod
    def from_config(cls, config: HNSWConfig) -> "HNSWVectorIndex":
        """Create an empty index from an :class:`HNSWConfig`."""
        return cls(
            dimension=config.dimension,
            M=config.M,
            ef_construction=config.ef_construction,
            ef=config.ef,
            ml=config.ml,
            seed=config.seed,
        )

    def _reset(self) -> None:
        """Drop all entries and return to a single empty layer."""
        # Arena: handle -> id / vector row / metadata
        self._ids: List[str] = []
        self._handles: Dict[str, int] = {}
        self._vectors: NDArray = np.zeros(
            (INITIAL_CAPACITY, self.config.dimension), dtype=np.float64
        )
        self._metadata: List[Dict[str, Any]] = []

        # layers[level][handle] = neighbor handles at that level
        self._layers: List[Dict[int, List[int]]] = [{}]
        self._max_layer = 0

        # (handle, level) of the entry node
        self._entry_point: Optional[Tuple[int, int]] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def dimension(self) -> int:
        """Vector dimension."""
        return self.config.dimension

    @property
    def size(self) -> int:
        """Number of entries in the index."""
        return len(self._ids)

    @property
    def entry_point(self) -> Optional[str]:
        """Current entry point ID."""
        if self._entry_point is None:
            return None
        return self._ids[self._entry_point[0]]

    @property
    def entry_level(self) -> Optional[int]:
        """Top level of the current entry point."""
        if self._entry_point is None:
            return None
        return self._entry_point[1]

    @property
    def max_layer(self) -> int:
        """Highest layer index (``layer_count - 1``)."""
        return self._max_layer

    @property
    def layer_count(self) -> int:
        return len(self._layers)

    # =========================================================================
    # CORE ALGORITHMS
    # =========================================================================

    def _random_level(self) -> int:
        """
        Draw a level for a new node.

        level = floor(-ln(U) * ml) with U uniform in (0, 1], so
        P(level >= l) = exp(-l / ml), i.e. (1/M)^l with the default ml.
        """
        u = 1.0 - self._rng.random()
        level = int(math.floor(-math.log(u) * self.config.ml))
        return min(level, MAX_LEVEL)

    def _validate_vector(self, vector: Any) -> NDArray:
        """Convert to a float64 1-D array and check its length."""
        try:
            array = np.asarray(vector, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Vector must be numeric: {e}") from e

        if array.ndim != 1:
            raise ValidationError(f"Vector must be 1D, got {array.ndim}D")

        if len(array) != self.config.dimension:
            raise InvalidDimensionError(self.config.dimension, len(array))

        if not np.all(np.isfinite(array)):
            raise ValidationError("Vector contains NaN or infinite values")

        return array

    def _allocate(
        self,
        id: str,
        vector: NDArray,
        metadata: Dict[str, Any],
    ) -> int:
        """Store an entry in the arena and return its handle."""
        handle = len(self._ids)
        if handle >= len(self._vectors):
            self._expand()

        self._vectors[handle] = vector
        self._ids.append(id)
        self._handles[id] = handle
        self._metadata.append(metadata)
        return handle

    def _expand(self) -> None:
        """Double the capacity of the vector matrix."""
        new_capacity = max(INITIAL_CAPACITY, len(self._vectors) * 2)
        expanded = np.zeros(
            (new_capacity, self.config.dimension), dtype=np.float64
        )
        expanded[: len(self._vectors)] = self._vectors
        self._vectors = expanded

    def _search_layer(
        self,
        query: NDArray,
        entry: Optional[int],
        layer: int,
        ef: int,
    ) -> List[Tuple[float, int]]:
        """
        Greedy beam search within a single layer.

        Args:
            query: Query vector
            entry: Handle of the start node
            layer: Layer to search
            ef: Maximum number of results to keep

        Returns:
            List of (distance, handle) sorted by distance. Empty when the
            entry node is missing or not present on this layer.
        """
        if entry is None or layer >= len(self._layers):
            return []

        adjacency = self._layers[layer]
        if entry not in adjacency or entry >= len(self._ids):
            return []

        entry_dist = euclidean(query, self._vectors[entry])

        visited = {entry}

        # Candidates (min-heap by distance)
        candidates: List[Tuple[float, int]] = [(entry_dist, entry)]

        # Results (max-heap by negative distance to get furthest)
        results: List[Tuple[float, int]] = [(-entry_dist, entry)]

        while candidates:
            dist_c, current = heapq.heappop(candidates)

            # Nothing left can improve a full result set
            if len(results) >= ef and dist_c > -results[0][0]:
                break

            fresh = [n for n in adjacency.get(current, ()) if n not in visited]
            if not fresh:
                continue
            visited.update(fresh)

            distances = query_distances(query, self._vectors[fresh])

            for dist_n, neighbor in zip(distances.tolist(), fresh):
                if len(results) < ef or dist_n < -results[0][0]:
                    heapq.heappush(candidates, (dist_n, neighbor))
                    heapq.heappush(results, (-dist_n, neighbor))

                    if len(results) > ef:
                        heapq.heappop(results)

        return sorted((-d, handle) for d, handle in results)

    # =========================================================================
    # ADD OPERATIONS
    # =========================================================================

    def add(
        self,
        id: str,
        vector: Sequence[float],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Add a vector to the index.

        All arguments are validated before anything is stored, so a failed
        call leaves the index unchanged. Re-adding an existing ID replaces
        its vector and metadata but keeps its current graph links.

        Args:
            id: Unique identifier
            vector: Vector of length ``dimension``
            metadata: Optional metadata, returned with search hits

        Raises:
            InvalidDimensionError: If ``len(vector) != dimension``
            ValidationError: If the ID, vector values or metadata are invalid
        """
        id = validate_id(id)
        vector = self._validate_vector(vector)
        metadata = validate_metadata(metadata)

        existing = self._handles.get(id)
        if existing is not None:
            self._vectors[existing] = vector
            self._metadata[existing] = metadata
            logger.debug(f"Replaced vector for existing id '{id}' without relinking")
            return

        handle = self._allocate(id, vector, metadata)

        level = self._random_level()
        while len(self._layers) <= level:
            self._layers.append({})

        # First node
        if self._entry_point is None:
            for layer in range(level + 1):
                self._layers[layer][handle] = []
            self._entry_point = (handle, level)
            self._max_layer = len(self._layers) - 1
            return

        M = self.config.M
        current = self._entry_point[0]

        for layer in range(min(level, self._max_layer), -1, -1):
            candidates = self._search_layer(
                vector, current, layer, self.config.ef_construction
            )

            selected = [neighbor for _, neighbor in candidates[:M]]

            # Back-links; a neighbor without a set on this layer gets one
            adjacency = self._layers[layer]
            for neighbor in selected:
                adjacency.setdefault(neighbor, []).append(handle)

            adjacency[handle] = selected

            if candidates:
                current = candidates[0][1]

        if level > self._max_layer:
            for layer in range(self._max_layer + 1, level + 1):
                self._layers[layer][handle] = []
            self._max_layer = level
            self._entry_point = (handle, level)

    # =========================================================================
    # SEARCH OPERATIONS
    # =========================================================================

    def search_layer(
        self,
        query: Sequence[float],
        entry_id: Optional[str],
        layer: int,
        ef: int,
    ) -> List[Neighbor]:
        """
        Beam search a single layer starting from ``entry_id``.

        Missing entry nodes and layers yield an empty list rather than an
        error.

        Returns:
            List of Neighbor(distance, id) sorted by distance
        """
        query = self._validate_vector(query)
        ef = validate_ef(ef)
        entry = self._handles.get(entry_id) if entry_id is not None else None
        return [
            Neighbor(distance, self._ids[handle])
            for distance, handle in self._search_layer(query, entry, layer, ef)
        ]

    def search(
        self,
        query: Sequence[float],
        top_k: int = DEFAULT_TOP_K,
        ef: Optional[int] = None,
    ) -> List[SearchResult]:
        """
        Search for the ``top_k`` approximate nearest neighbors.

        Args:
            query: Query vector of length ``dimension``
            top_k: Number of results (0 returns an empty list)
            ef: Beam width for level 0 (default: the configured ``ef``).
                At most ``ef`` results come back, even when ``top_k`` is
                larger.

        Returns:
            List of SearchResult, sorted by ascending distance

        Raises:
            InvalidDimensionError: If the query length doesn't match
        """
        top_k = validate_top_k(top_k)
        ef = self.config.ef if ef is None else validate_ef(ef)

        if self._entry_point is None or top_k == 0:
            return []

        query = self._validate_vector(query)

        current = self._entry_point[0]

        # Greedy descent to level 1
        for layer in range(self._max_layer, 0, -1):
            nearest = self._search_layer(query, current, layer, 1)
            if nearest:
                current = nearest[0][1]

        candidates = self._search_layer(query, current, 0, ef)

        return [
            SearchResult(
                id=self._ids[handle],
                distance=distance,
                metadata=self._metadata[handle].copy(),
            )
            for distance, handle in candidates[:top_k]
        ]

    # =========================================================================
    # GET OPERATIONS
    # =========================================================================

    def get(self, id: str) -> Optional[Tuple[NDArray, Dict[str, Any]]]:
        """Get ``(vector, metadata)`` copies by ID, or None."""
        handle = self._handles.get(id)
        if handle is None:
            return None
        return self._vectors[handle].copy(), self._metadata[handle].copy()

    def contains(self, id: str) -> bool:
        """Check if ID exists."""
        return id in self._handles

    def get_neighbors(self, id: str, level: int = 0) -> List[str]:
        """
        Get neighbors of a node at a specific level.

        Returns:
            List of neighbor IDs (empty if the node isn't on that level)
        """
        handle = self._handles.get(id)
        if handle is None or level >= len(self._layers):
            return []
        return [self._ids[n] for n in self._layers[level].get(handle, ())]

    def iter_ids(self) -> Iterator[str]:
        """Iterate over all IDs in insertion order."""
        return iter(list(self._ids))

    def iter_entries(self) -> Iterator[Tuple[str, NDArray, Dict[str, Any]]]:
        """Iterate over ``(id, vector, metadata)`` copies."""
        for handle, id in enumerate(self._ids):
            yield id, self._vectors[handle].copy(), self._metadata[handle].copy()

    def clear(self) -> int:
        """Remove all entries. Returns the number removed."""
        count = self.size
        self._reset()
        return count

    # =========================================================================
    # STATISTICS
    # =========================================================================

    def stats(self) -> IndexStats:
        """Get index statistics."""
        return IndexStats(
            dimension=self.config.dimension,
            total_vectors=self.size,
            layer_count=len(self._layers),
            max_layer=self._max_layer,
            has_entry_point=self._entry_point is not None,
            configuration=self.config.to_dict(),
            layer_stats=[
                LayerStats(
                    level=level,
                    node_count=len(adjacency),
                    total_connections=sum(len(n) for n in adjacency.values()),
                )
                for level, adjacency in enumerate(self._layers)
            ],
        )

    def get_stats(self) -> Dict[str, Any]:
        """Diagnostic snapshot as a plain dictionary (no side effects)."""
        return self.stats().to_dict()

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def save(self) -> Dict[str, Any]:
        """
        Produce a plain, JSON-compatible snapshot of the full index state.

        Maps and sets are flattened into ordered ``[id, value]`` pairs.
        """
        ids = self._ids

        entry_point = None
        if self._entry_point is not None:
            handle, level = self._entry_point
            entry_point = {"id": ids[handle], "level": level}

        return {
            "dimension": self.config.dimension,
            "maxLayer": self._max_layer,
            "entryPoint": entry_point,
            "vectors": [
                [id, self._vectors[handle].tolist()]
                for handle, id in enumerate(ids)
            ],
            "metadata": [
                [id, copy.deepcopy(self._metadata[handle])]
                for handle, id in enumerate(ids)
            ],
            "layers": [
                [
                    [ids[handle], [ids[n] for n in neighbors]]
                    for handle, neighbors in adjacency.items()
                ]
                for adjacency in self._layers
            ],
        }

    def load(self, state: Any) -> None:
        """
        Restore the index from a snapshot produced by :meth:`save`.

        Never raises. A snapshot that fails structural validation resets
        the index to empty (keeping the configured dimension) and logs a
        warning. Within a valid snapshot, layer entries and neighbor links
        that name IDs without a stored vector are dropped, and an entry
        point that is malformed or unknown is discarded.

        Args:
            state: Snapshot mapping, typically decoded from JSON or msgpack
        """
        problem = check_snapshot(state)
        if problem is not None:
            logger.warning(f"Invalid index state ({problem}), initializing empty index")
            self._reset()
            return

        dimension = int(state["dimension"])
        if dimension != self.config.dimension:
            logger.info(
                f"Index dimension changed from {self.config.dimension} "
                f"to {dimension} by loaded state"
            )
            self.config = dataclasses.replace(self.config, dimension=dimension)

        self._reset()

        # Later duplicates win
        for id, vector in state.get("vectors") or []:
            array = np.asarray(vector, dtype=np.float64)
            handle = self._handles.get(id)
            if handle is None:
                self._allocate(id, array, {})
            else:
                self._vectors[handle] = array

        for id, metadata in state.get("metadata") or []:
            handle = self._handles.get(id)
            if handle is not None:
                self._metadata[handle] = copy.deepcopy(dict(metadata or {}))

        dropped = 0
        layers: List[Dict[int, List[int]]] = []

        for raw_layer in state["layers"]:
            adjacency: Dict[int, List[int]] = {}
            if isinstance(raw_layer, list):
                for id, connections in raw_layer:
                    handle = self._handles.get(id)
                    if handle is None:
                        dropped += 1
                        continue

                    if not isinstance(connections, list):
                        connections = []

                    neighbors: Dict[int, None] = {}
                    for neighbor_id in connections:
                        neighbor = (
                            self._handles.get(neighbor_id)
                            if isinstance(neighbor_id, str)
                            else None
                        )
                        if neighbor is None:
                            dropped += 1
                        else:
                            neighbors[neighbor] = None
                    adjacency[handle] = list(neighbors)
            layers.append(adjacency)

        if not layers:
            layers = [{}]

        # Level 0 holds every node
        base = layers[0]
        unlinked = [h for h in range(len(self._ids)) if h not in base]
        for handle in unlinked:
            base[handle] = []

        self._layers = layers
        self._max_layer = len(layers) - 1

        saved_max = state.get("maxLayer")
        if isinstance(saved_max, int) and saved_max != self._max_layer:
            logger.debug(
                f"Saved maxLayer {saved_max!r} ignored, "
                f"using {self._max_layer} from layer count"
            )

        entry = parse_entry_point(state.get("entryPoint"))
        if entry is not None and entry[0] in self._handles:
            level = min(entry[1], self._max_layer)
            self._entry_point = (self._handles[entry[0]], level)
        elif state.get("entryPoint") is not None:
            logger.warning(
                f"Discarding invalid entry point {state.get('entryPoint')!r}"
            )

        if dropped or unlinked:
            logger.warning(
                f"Loaded index state with {dropped} dangling references "
                f"dropped and {len(unlinked)} nodes added to layer 0"
            )

        logger.info(
            f"Loaded index state: {self.size} vectors, "
            f"{len(self._layers)} layers"
        )

    # =========================================================================
    # UTILITIES
    # =========================================================================

    def __len__(self) -> int:
        return self.size

    def __contains__(self, id: str) -> bool:
        return self.contains(id)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"dimension={self.config.dimension}, "
            f"M={self.config.M}, "
            f"size={self.size})"
        )
