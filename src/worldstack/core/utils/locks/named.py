"""Named, machine-wide locks.

A named lock serializes a critical section across every process of the
machine that agrees on the lock name. The default implementation is an
advisory ``fcntl.flock`` on a sidecar file; callers only depend on the
:class:`AppLock` protocol so another primitive (a single-writer daemon, a
distributed lock) can be substituted without touching call sites.

Waiting is unbounded: there is no timeout and no fail-open mode.
"""

from __future__ import annotations

import fcntl
import hashlib
import logging
import re
import threading
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import Iterator, Protocol

from worldstack.core.utils.io import ensure_directory

logger = logging.getLogger(__name__)

_SAFE_LOCK_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")

_THREAD_MUTEXES: dict[str, threading.Lock] = {}
_THREAD_MUTEXES_GUARD = threading.Lock()


class AppLock(Protocol):
    """A named exclusive lock."""

    name: str

    def acquire(self) -> AbstractContextManager[None]:  # pragma: no cover - protocol
        ...


def sanitize_lock_key(key: str) -> str:
    s = _SAFE_LOCK_CHARS.sub("_", str(key).strip())
    s = s.strip("._-")
    if not s:
        return "lock"
    if len(s) <= 120:
        return s
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:24]
    return f"{s[:80]}-{digest}"


def named_lock_path(*, root: Path, namespace: str, key: str) -> Path:
    """Return ``<root>/_locks/<namespace>/<key>`` with both names sanitized."""
    lock_dir = Path(root) / "_locks" / sanitize_lock_key(namespace)
    ensure_directory(lock_dir)
    return lock_dir / sanitize_lock_key(key)


def _thread_mutex(path: Path) -> threading.Lock:
    key = str(path)
    with _THREAD_MUTEXES_GUARD:
        lock = _THREAD_MUTEXES.get(key)
        if lock is None:
            lock = _THREAD_MUTEXES.setdefault(key, threading.Lock())
        return lock


class FileNamedLock:
    """Exclusive ``flock`` on a lock file, shared by every process of the machine.

    Threads of the same process are serialized by an in-process mutex first:
    the OS lock alone is held per open file description, and keeping one
    owner per process makes the waiting notice accurate.
    """

    def __init__(self, lock_path: Path, *, name: str | None = None, wait_notice: bool = True) -> None:
        self.lock_path = Path(lock_path)
        self.name = name or str(self.lock_path)
        self.wait_notice = wait_notice

    @classmethod
    def for_directory(cls, directory: Path, *, namespace: str = "app", wait_notice: bool = True) -> "FileNamedLock":
        """Lock keyed by ``directory``: every user of the same directory shares it.

        The key is the resolved path so relative and symlinked spellings of
        one directory map to the same lock file.
        """
        directory = Path(directory).resolve()
        path = named_lock_path(root=directory, namespace=namespace, key=str(directory))
        return cls(path, name=str(directory), wait_notice=wait_notice)

    def _notify_waiting(self) -> None:
        if self.wait_notice:
            logger.warning("Waiting for the '%s' lock to be released.", self.name)

    @contextmanager
    def acquire(self) -> Iterator[None]:
        mutex = _thread_mutex(self.lock_path)
        waited = False
        if not mutex.acquire(blocking=False):
            self._notify_waiting()
            waited = True
            mutex.acquire()
        try:
            ensure_directory(self.lock_path.parent)
            with open(self.lock_path, "a+") as fh:
                try:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                except OSError:
                    if not waited:
                        self._notify_waiting()
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
        finally:
            mutex.release()

    def __repr__(self) -> str:
        return f"FileNamedLock({self.name!r})"


__all__ = [
    "AppLock",
    "FileNamedLock",
    "named_lock_path",
    "sanitize_lock_key",
]
