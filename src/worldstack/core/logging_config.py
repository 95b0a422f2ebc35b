from __future__ import annotations

import logging
import sys
from pathlib import Path

from worldstack.core.utils.io import ensure_directory

_INSTALLED_HANDLER: logging.Handler | None = None
_INSTALLED_KEY: str | None = None

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _level_from_name(name: str) -> int:
    level = logging.getLevelName(str(name).upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(*, level: str = "INFO", log_path: Path | None = None) -> None:
    """Route the ``worldstack`` logger hierarchy to stderr or to ``log_path``.

    Idempotent per-process: calling again with the same destination only
    updates the level; a different destination replaces the handler.
    """
    global _INSTALLED_HANDLER, _INSTALLED_KEY

    key = str(Path(log_path).resolve()) if log_path is not None else "<stderr>"
    pkg_logger = logging.getLogger("worldstack")
    pkg_logger.setLevel(_level_from_name(level))

    if _INSTALLED_HANDLER is not None and _INSTALLED_KEY == key:
        _INSTALLED_HANDLER.setLevel(_level_from_name(level))
        return

    if _INSTALLED_HANDLER is not None:
        pkg_logger.removeHandler(_INSTALLED_HANDLER)
        _INSTALLED_HANDLER.close()
        _INSTALLED_HANDLER = None

    handler: logging.Handler
    if log_path is not None:
        ensure_directory(Path(key).parent)
        handler = logging.FileHandler(key, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(_level_from_name(level))
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    pkg_logger.addHandler(handler)

    _INSTALLED_HANDLER = handler
    _INSTALLED_KEY = key


def reset_logging_for_tests() -> None:
    """Test-only: remove the handler installed by :func:`configure_logging`."""
    global _INSTALLED_HANDLER, _INSTALLED_KEY
    if _INSTALLED_HANDLER is not None:
        logging.getLogger("worldstack").removeHandler(_INSTALLED_HANDLER)
        _INSTALLED_HANDLER.close()
    _INSTALLED_HANDLER = None
    _INSTALLED_KEY = None


__all__ = ["configure_logging", "reset_logging_for_tests", "LOG_FORMAT"]
