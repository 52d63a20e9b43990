"""
Configuration, result and statistics types shared by the index.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.exceptions import ValidationError
from ..utils.validation import validate_dimension, validate_positive_int


DEFAULT_M = 16
DEFAULT_EF_CONSTRUCTION = 200
DEFAULT_EF = 50
DEFAULT_TOP_K = 10


@dataclass
class HNSWConfig:
    """
    Configuration for the HNSW index.

    Attributes:
        dimension: Vector dimension, fixed for the lifetime of the index
        M: Neighbor links created per node per layer during insertion
        ef_construction: Beam width used while linking a new node
        ef: Default beam width for queries
        ml: Level generation factor (default: 1 / ln(M))
        seed: Random seed for reproducible level assignment
    """

    dimension: int
    M: int = DEFAULT_M
    ef_construction: int = DEFAULT_EF_CONSTRUCTION
    ef: int = DEFAULT_EF
    ml: Optional[float] = None
    seed: Optional[int] = None

    def __post_init__(self):
        self.validate()

        if self.ml is None:
            # ln(1) == 0, so M == 1 falls back to a factor of 1.0
            self.ml = 1.0 / math.log(self.M) if self.M > 1 else 1.0

    def validate(self) -> None:
        """Validate configuration."""
        self.dimension = validate_dimension(self.dimension)
        self.M = validate_positive_int(self.M, "M")
        self.ef_construction = validate_positive_int(
            self.ef_construction, "ef_construction"
        )
        self.ef = validate_positive_int(self.ef, "ef")

        if self.ml is not None:
            if isinstance(self.ml, bool) or not isinstance(self.ml, (int, float)):
                raise ValidationError(
                    f"ml must be a number, got {type(self.ml).__name__}"
                )
            if not math.isfinite(self.ml) or self.ml <= 0:
                raise ValidationError(f"ml must be > 0, got {self.ml}")
            self.ml = float(self.ml)

        if self.seed is not None and (
            isinstance(self.seed, bool) or not isinstance(self.seed, int)
        ):
            raise ValidationError(
                f"seed must be an integer, got {type(self.seed).__name__}"
            )

    def to_dict(self) -> Dict[str, Any]:
        """Tuning parameters in the camelCase form used by ``get_stats``."""
        return {
            "M": self.M,
            "efConstruction": self.ef_construction,
            "ef": self.ef,
            "mL": self.ml,
        }


@dataclass
class SearchResult:
    """
    A single search hit.

    Attributes:
        id: Entry ID
        distance: Euclidean distance from the query (lower = more similar)
        metadata: The entry's metadata, as stored
    """

    id: str
    distance: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def score(self) -> float:
        """Inverse-distance similarity in (0, 1]."""
        return 1.0 / (1.0 + self.distance)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "distance": self.distance,
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return f"SearchResult(id='{self.id}', distance={self.distance:.4f})"


@dataclass
class LayerStats:
    """Node and connection counts for one graph level."""

    level: int
    node_count: int
    total_connections: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "nodeCount": self.node_count,
            "totalConnections": self.total_connections,
        }


@dataclass
class IndexStats:
    """Read-only diagnostic snapshot of an index."""

    dimension: int
    total_vectors: int
    layer_count: int
    max_layer: int
    has_entry_point: bool
    configuration: Dict[str, Any]
    layer_stats: List[LayerStats] = field(default_factory=list)

    @property
    def total_connections(self) -> int:
        return sum(layer.total_connections for layer in self.layer_stats)

    @property
    def memory_usage(self) -> Dict[str, int]:
        """Approximate footprint: float64 vectors plus entry counts."""
        return {
            "vectors": self.total_vectors * self.dimension * 8,
            "metadata": self.total_vectors,
            "connections": self.total_connections,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase dictionary returned by ``get_stats``."""
        return {
            "dimension": self.dimension,
            "totalVectors": self.total_vectors,
            "layerCount": self.layer_count,
            "maxLayer": self.max_layer,
            "hasEntryPoint": self.has_entry_point,
            "configuration": dict(self.configuration),
            "layerStats": [layer.to_dict() for layer in self.layer_stats],
            "memoryUsage": self.memory_usage,
        }
