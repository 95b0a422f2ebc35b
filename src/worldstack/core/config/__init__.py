"""Layered YAML configuration."""
from __future__ import annotations

from .manager import ConfigManager, load_config

__all__ = ["ConfigManager", "load_config"]
