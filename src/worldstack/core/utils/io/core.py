"""Whole-file rewrites.

The stack registry and World definition files are never edited in place:
they are rewritten through :func:`atomic_write`, so a concurrent reader (or a
crash) sees either the previous content or the new one.
"""
from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path
from typing import Callable, Optional, TextIO, Union


def ensure_parent_dir(path: Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def ensure_directory(path: Path) -> Path:
    """Create ``path`` (and parents) when missing.

    Raises:
        NotADirectoryError: If ``path`` exists but is not a directory
    """
    path = Path(path)
    if path.exists() and not path.is_dir():
        raise NotADirectoryError(f"Path exists but is not a directory: {path}")
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write(path: Path, write_fn: Callable[[TextIO], None], *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with what ``write_fn`` writes.

    The content goes to a hidden sibling temp file which is fsync'd, then
    renamed over ``path``. The temp file never survives a failure. An existing
    target keeps its permission bits.
    """
    path = Path(path)
    ensure_parent_dir(path)
    try:
        mode: Optional[int] = stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        mode = None

    tmp_path: Optional[Path] = None
    try:
        with tempfile.NamedTemporaryFile(
            "w",
            encoding=encoding,
            dir=str(path.parent),
            prefix=f".{path.name}.",
            delete=False,
            newline="\n",
        ) as f:
            tmp_path = Path(f.name)
            write_fn(f)
            f.flush()
            os.fsync(f.fileno())
            if mode is not None:
                os.chmod(f.fileno(), mode)
        os.replace(tmp_path, path)
    finally:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def write_text(path: Union[str, Path], content: str) -> None:
    """Atomically write UTF-8 text to ``path``."""
    atomic_write(Path(path), lambda f: f.write(content))


__all__ = [
    "atomic_write",
    "ensure_directory",
    "ensure_parent_dir",
    "write_text",
]
