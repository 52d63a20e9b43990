"""
Configuration management for memindex.

Provides dataclasses for configuration and utilities
for loading settings from YAML files.
"""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Literal, Optional

import yaml

from ..core.exceptions import ValidationError
from ..index.base import HNSWConfig


@dataclass
class HNSWSettings:
    """HNSW index configuration."""
    M: int = 16
    ef_construction: int = 200
    ef: int = 50
    ml: Optional[float] = None
    seed: Optional[int] = None


@dataclass
class StorageSettings:
    """Storage backend configuration."""
    backend: Literal["memory", "file"] = "memory"
    data_dir: str = "./memindex_data"
    format: Literal["json", "msgpack"] = "json"
    sync_on_write: bool = False


@dataclass
class Settings:
    """
    Main settings container for memindex.

    Attributes:
        dimension: Vector dimension (must match the embedding model)
        normalize_vectors: L2-normalize vectors so L2 ranking follows cosine
        hnsw: HNSW index settings
        storage: Storage backend settings
        log_level: Logging level
    """
    dimension: int = 1024
    normalize_vectors: bool = False

    hnsw: HNSWSettings = field(default_factory=HNSWSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)

    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Create Settings from dictionary."""
        data = dict(data)
        hnsw_data = data.pop("hnsw", None) or {}
        storage_data = data.pop("storage", None) or {}

        try:
            return cls(
                hnsw=HNSWSettings(**hnsw_data),
                storage=StorageSettings(**storage_data),
                **data
            )
        except TypeError as e:
            raise ValidationError(f"Invalid configuration: {e}") from e

    def to_dict(self) -> dict:
        """Convert Settings to dictionary."""
        return asdict(self)

    def hnsw_config(self) -> HNSWConfig:
        """Build a validated :class:`HNSWConfig` from these settings."""
        return HNSWConfig(
            dimension=self.dimension,
            M=self.hnsw.M,
            ef_construction=self.hnsw.ef_construction,
            ef=self.hnsw.ef,
            ml=self.hnsw.ml,
            seed=self.hnsw.seed,
        )


def get_default_config_path() -> Path:
    """Get path to default configuration file."""
    # Check for config in current directory
    local_config = Path("./config/default_config.yaml")
    if local_config.exists():
        return local_config

    # Check environment variable
    env_config = os.environ.get("MEMINDEX_CONFIG")
    if env_config:
        return Path(env_config)

    # Packaged defaults
    return Path(__file__).parent / "default_config.yaml"


def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default.

    Returns:
        Settings object with loaded configuration

    Example:
        >>> settings = load_config()
        >>> settings = load_config("./my_config.yaml")
    """
    path = get_default_config_path() if config_path is None else Path(config_path)

    # Missing and empty files both mean "all defaults"
    if not path.is_file():
        return Settings()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValidationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return Settings()

    if not isinstance(data, dict):
        raise ValidationError(f"Config file {path} must contain a mapping")

    return Settings.from_dict(data)
