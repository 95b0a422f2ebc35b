"""YAML reading for the configuration layers."""
from __future__ import annotations

from pathlib import Path
from typing import Any, List

import yaml


def read_yaml(path: Path, default: Any = None, raise_on_error: bool = False) -> Any:
    """Load one YAML document with ``yaml.safe_load``.

    A missing, empty or unreadable file gives ``default`` unless
    ``raise_on_error`` is set (the configuration loader fails closed).
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError):
        if raise_on_error:
            raise
        return default
    return default if data is None else data


def iter_yaml_files(dir_path: Path) -> List[Path]:
    """``*.yaml`` and ``*.yml`` files of ``dir_path`` sorted by name.

    ``<name>.yaml`` shadows ``<name>.yml``.
    """
    d = Path(dir_path)
    if not d.is_dir():
        return []
    by_stem = {p.stem: p for p in d.glob("*.yml")}
    by_stem.update({p.stem: p for p in d.glob("*.yaml")})
    return [by_stem[stem] for stem in sorted(by_stem)]


__all__ = ["iter_yaml_files", "read_yaml"]
