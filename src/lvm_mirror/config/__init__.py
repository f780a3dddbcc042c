"""Configuration system for lvm-mirror.

This module provides TOML-based configuration source discovery, layered
resolution into an immutable EffectiveConfig, and the exclude registry.
"""

from ..__util__ import ConfigurationError
from .excludes import ExcludeRegistry
from .loader import (
    ConfigurationSource,
    Resolution,
    discover_sources,
    filter_volume_args,
    resolve_config,
)
from .schema import DEFAULTS, EffectiveConfig

__all__ = [
    "ConfigurationError",
    "ConfigurationSource",
    "DEFAULTS",
    "EffectiveConfig",
    "ExcludeRegistry",
    "Resolution",
    "discover_sources",
    "filter_volume_args",
    "resolve_config",
]
