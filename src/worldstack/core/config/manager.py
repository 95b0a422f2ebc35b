"""
worldstack configuration management (layered YAML).
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

import jsonschema
import yaml

from worldstack.core.exceptions import ConfigError
from worldstack.core.utils.merge import deep_merge
from worldstack.data import get_data_path, read_json

logger = logging.getLogger(__name__)

ENV_PREFIX = "WORLDSTACK_"


class ConfigManager:
    """Load, merge, and validate worldstack configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: WORLDSTACK_<section>__<key>
    2. User config: <app-data-dir>/config/*.yaml (alphabetical order)
    3. Bundled defaults: worldstack.data/config/*.yaml (alphabetical order)
    """

    def __init__(self, app_data_dir: Optional[Path] = None) -> None:
        if app_data_dir is None:
            from worldstack.core.utils.paths import get_app_data_dir

            app_data_dir = get_app_data_dir(create=False)
        self.app_data_dir = Path(app_data_dir)
        self.core_config_dir = get_data_path("config")
        self.user_config_dir = self.app_data_dir / "config"

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        from worldstack.core.utils.io import read_yaml

        # Fail closed: configuration must never silently ignore invalid YAML.
        try:
            data = read_yaml(path, default={}, raise_on_error=True)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in '{path}': {exc}", context={"path": str(path)}) from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file '{path}' must contain a mapping.", context={"path": str(path)})
        return data

    def _load_directory(self, directory: Path, cfg: Dict[str, Any]) -> Dict[str, Any]:
        from worldstack.core.utils.io import iter_yaml_files

        for path in iter_yaml_files(directory):
            cfg = deep_merge(cfg, self.load_yaml(path))
        return cfg

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except ValueError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        if value.strip().lower() in {"null", "none"}:
            return None
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    def _iter_env_overrides(self) -> Iterator[Tuple[List[str], Any]]:
        for key in sorted(os.environ.keys()):
            if not key.startswith(ENV_PREFIX):
                continue
            raw = key[len(ENV_PREFIX):]
            segs = raw.split("__")
            if not raw or any(seg == "" for seg in segs):
                logger.warning("Ignoring malformed configuration override '%s'.", key)
                continue
            yield [seg.lower() for seg in segs], self._coerce_type(os.environ[key])

    def _set_nested(self, root: Dict[str, Any], path: List[str], value: Any) -> None:
        cur = root
        for part in path[:-1]:
            # Case-insensitive match against existing keys.
            existing = {k.lower(): k for k in cur.keys() if isinstance(k, str)}
            key = existing.get(part, part)
            if not isinstance(cur.get(key), dict):
                cur[key] = {}
            cur = cur[key]
        existing = {k.lower(): k for k in cur.keys() if isinstance(k, str)}
        cur[existing.get(path[-1], path[-1])] = value

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> None:
        for path, value in self._iter_env_overrides():
            self._set_nested(cfg, path, value)

    def validate(self, cfg: Dict[str, Any]) -> None:
        schema = read_json("schemas", "config.schema.json")
        try:
            jsonschema.validate(instance=cfg, schema=schema)
        except jsonschema.ValidationError as exc:
            where = ".".join(str(p) for p in exc.absolute_path) or "<root>"
            raise ConfigError(f"Invalid configuration at '{where}': {exc.message}", context={"path": where}) from exc

    def load_config(self, validate: bool = True) -> Dict[str, Any]:
        cfg: Dict[str, Any] = {}
        cfg = self._load_directory(self.core_config_dir, cfg)
        cfg = self._load_directory(self.user_config_dir, cfg)
        self.apply_env_overrides(cfg)
        if validate:
            self.validate(cfg)
        return cfg


def load_config(app_data_dir: Optional[Path] = None, *, validate: bool = True) -> Dict[str, Any]:
    """Convenience wrapper returning the merged configuration."""
    return ConfigManager(app_data_dir).load_config(validate=validate)


__all__ = ["ConfigManager", "load_config", "ENV_PREFIX"]
