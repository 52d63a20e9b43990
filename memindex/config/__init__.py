"""
Configuration module for memindex.

This module provides configuration management including
loading settings from YAML files and environment variables.

Example:
    >>> from memindex.config import load_config
    >>>
    >>> settings = load_config()
    >>> print(settings.dimension)
    >>> print(settings.hnsw.M)
"""

from .settings import (
    Settings,
    HNSWSettings,
    StorageSettings,
    load_config,
    get_default_config_path,
)

__all__ = [
    "Settings",
    "HNSWSettings",
    "StorageSettings",
    "load_config",
    "get_default_config_path",
]
