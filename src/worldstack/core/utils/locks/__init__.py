"""Machine-wide named locks."""

from __future__ import annotations

from .named import (
    AppLock,
    FileNamedLock,
    named_lock_path,
    sanitize_lock_key,
)

__all__ = [
    "AppLock",
    "FileNamedLock",
    "named_lock_path",
    "sanitize_lock_key",
]
