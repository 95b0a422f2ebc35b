"""I/O helpers: atomic whole-file rewrites and YAML reading."""
from __future__ import annotations

from .core import atomic_write, ensure_directory, ensure_parent_dir, write_text
from .yaml import iter_yaml_files, read_yaml

__all__ = [
    "atomic_write",
    "ensure_directory",
    "ensure_parent_dir",
    "iter_yaml_files",
    "read_yaml",
    "write_text",
]
