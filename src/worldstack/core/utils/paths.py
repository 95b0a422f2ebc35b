"""Application data directory resolution.

The application data directory holds the machine-wide stack registry, the
lock files guarding it and the user configuration overlay.

Precedence (highest to lowest):
1. Environment variable: WORLDSTACK_paths__app_data_dir
2. Bundled defaults: worldstack.data/config/paths.yaml (paths.app_data_dir)
3. The platform user data directory for ``worldstack``

An instance name (``WORLDSTACK_paths__instance_name`` or ``paths.instance_name``)
suffixes the default directory name: tests use ``Test`` so that they never
touch the registry of the developer machine.
"""

from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_data_dir

from worldstack.data import get_data_path

APP_NAME = "worldstack"
ENV_APP_DATA_DIR = "WORLDSTACK_paths__app_data_dir"
ENV_INSTANCE_NAME = "WORLDSTACK_paths__instance_name"


def _bundled_paths_section() -> dict:
    from worldstack.core.utils.io import read_yaml

    data = read_yaml(get_data_path("config", "paths.yaml"), default={})
    section = data.get("paths") if isinstance(data, dict) else None
    return section if isinstance(section, dict) else {}


def _env_or_bundled(env_key: str, yaml_key: str) -> str | None:
    env_value = os.environ.get(env_key)
    if isinstance(env_value, str) and env_value.strip():
        return env_value.strip()
    value = _bundled_paths_section().get(yaml_key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def get_app_data_dir(*, create: bool = True) -> Path:
    """Return the absolute application data directory."""
    from worldstack.core.utils.io import ensure_directory

    explicit = _env_or_bundled(ENV_APP_DATA_DIR, "app_data_dir")
    if explicit is not None:
        p = Path(explicit).expanduser()
        if not p.is_absolute():
            p = Path.home() / p
    else:
        instance = _env_or_bundled(ENV_INSTANCE_NAME, "instance_name")
        app_name = APP_NAME if instance is None else f"{APP_NAME}-{instance}"
        p = Path(user_data_dir(app_name, appauthor=False))

    resolved = p.resolve()
    if create:
        ensure_directory(resolved)
    return resolved


__all__ = [
    "APP_NAME",
    "ENV_APP_DATA_DIR",
    "ENV_INSTANCE_NAME",
    "get_app_data_dir",
]
