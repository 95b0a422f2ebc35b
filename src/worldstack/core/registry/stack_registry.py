"""Machine-wide registry of the Stacks cloned on this machine.

The registry is a flat UTF-8 file in the application data directory, one
``<stack path>*<stack url>`` record per line. Every operation runs a full
load → repair → save cycle under the machine-wide application lock, so any
process reading the registry heals it: unparsable lines, stacks whose
directory has been deleted and duplicated paths are dropped and the file is
rewritten. The file is always rewritten as a whole, never appended to.

Urls may repeat (the same Stack cloned twice is what duplicate detection
looks for) but paths may not.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, TextIO, Tuple

from worldstack.core.exceptions import StackRegistryError
from worldstack.core.repository_url import check_and_normalize_repository_url
from worldstack.core.utils.io import atomic_write
from worldstack.core.utils.locks import AppLock, FileNamedLock

logger = logging.getLogger(__name__)

STACK_REGISTRY_FILE_NAME = "StackRegistry.v0.txt"

PUBLIC_STACK_NAME = ".PublicStack"
PRIVATE_STACK_NAME = ".PrivateStack"

# Stack folders cloned with an already registered url carry this prefix.
DUPLICATE_PREFIX = "DuplicateOf-"

# Root anchor excluded: "/x/y/z/.PublicStack" has 4 segments.
MIN_STACK_PATH_SEGMENTS = 4

FIELD_SEPARATOR = "*"


@dataclass(frozen=True)
class RegistryEntry:
    """A registered Stack: its ``.PublicStack``/``.PrivateStack`` folder and origin url."""

    path: Path
    url: str

    @property
    def stack_root(self) -> Path:
        return self.path.parent

    @property
    def stack_name(self) -> str:
        return self.path.parent.name

    @property
    def is_duplicate(self) -> bool:
        return self.stack_name.startswith(DUPLICATE_PREFIX)

    @property
    def display_name(self) -> str:
        """Stack name without the duplicate prefix."""
        name = self.stack_name
        return name[len(DUPLICATE_PREFIX) :] if self.is_duplicate else name

    @property
    def is_public(self) -> bool:
        return self.path.name == PUBLIC_STACK_NAME

    def to_line(self) -> str:
        return f"{self.path}{FIELD_SEPARATOR}{self.url}"


def _segment_count(path: Path) -> int:
    return len(path.parts) - (1 if path.anchor else 0)


def parse_registry_line(line: str) -> RegistryEntry:
    """Parse and validate one registry line.

    Raises:
        ValueError: for any malformed line (including an invalid url).
    """
    fields = [f.strip() for f in line.split(FIELD_SEPARATOR)]
    if len(fields) != 2 or not fields[0]:
        raise ValueError(f"Expected '<path>{FIELD_SEPARATOR}<url>'.")
    path = Path(fields[0])
    if not path.is_absolute():
        raise ValueError(f"Path '{path}' must be absolute.")
    if _segment_count(path) < MIN_STACK_PATH_SEGMENTS:
        raise ValueError(f"Too short path: '{path}'.")
    if path.name not in (PUBLIC_STACK_NAME, PRIVATE_STACK_NAME):
        raise ValueError(f"Invalid path: '{path}'. Must end with '{PUBLIC_STACK_NAME}' or '{PRIVATE_STACK_NAME}'.")
    url = check_and_normalize_repository_url(fields[1]).url
    return RegistryEntry(path, url)


class StackRegistry:
    """Service wrapping the registry file of one application data directory."""

    def __init__(
        self,
        app_data_dir: Path,
        *,
        lock: Optional[AppLock] = None,
        file_name: str = STACK_REGISTRY_FILE_NAME,
        wait_notice: bool = True,
    ) -> None:
        self.app_data_dir = Path(app_data_dir)
        self.file_path = self.app_data_dir / file_name
        self.lock: AppLock = lock or FileNamedLock.for_directory(self.app_data_dir, wait_notice=wait_notice)

    @classmethod
    def from_config(cls, config: Mapping[str, Any], app_data_dir: Optional[Path] = None) -> "StackRegistry":
        if app_data_dir is None:
            from worldstack.core.utils.paths import get_app_data_dir

            app_data_dir = get_app_data_dir()
        section = config.get("registry") or {}
        return cls(
            app_data_dir,
            file_name=str(section.get("file_name") or STACK_REGISTRY_FILE_NAME),
            wait_notice=bool(section.get("wait_notice", True)),
        )

    # Public API --------------------------------------------------------

    def check_existing_stack(self, url: str) -> List[Path]:
        """Return the registered paths of the Stack cloned from ``url`` (document order)."""
        canonical = check_and_normalize_repository_url(url).url
        with self.lock.acquire():
            entries, must_save = self._load()
            if must_save:
                self._save(entries)
        return [path for path, entry_url in entries.items() if entry_url == canonical]

    def register_new_stack(self, path: Path, url: str) -> None:
        """Register (or re-register) the Stack folder ``path`` for ``url``."""
        entry = RegistryEntry(Path(path), check_and_normalize_repository_url(url).url)
        # Same validation as the file content so that what is written can be read back.
        parse_registry_line(entry.to_line())
        with self.lock.acquire():
            entries, _ = self._load()
            entries[entry.path] = entry.url
            self._save(entries)

    def clear_registry(self) -> bool:
        """Delete the registry file. Returns False on error."""
        with self.lock.acquire():
            try:
                self.file_path.unlink(missing_ok=True)
            except OSError as exc:
                logger.error("While deleting '%s': %s", self.file_path, exc)
                return False
        return True

    def get_all_stacks(self) -> List[RegistryEntry]:
        with self.lock.acquire():
            entries, must_save = self._load()
            if must_save:
                self._save(entries)
        return [RegistryEntry(path, url) for path, url in entries.items()]

    # Load / repair / save -----------------------------------------------

    def _load(self) -> Tuple[Dict[Path, str], bool]:
        """Read the file, dropping invalid, stale and duplicate lines.

        Returns the surviving entries (file order) and whether the file must
        be rewritten. Must be called while holding the lock.
        """
        entries: Dict[Path, str] = {}
        must_save = False
        if not self.file_path.exists():
            return entries, must_save

        try:
            with open(self.file_path, "r", encoding="utf-8", errors="replace") as fh:
                lines = fh.read().splitlines()
        except OSError as exc:
            logger.error("While reading '%s': %s", self.file_path, exc)
            raise StackRegistryError(
                f"Unable to read the stack registry '{self.file_path}'.",
                context={"path": str(self.file_path)},
            ) from exc

        for line in lines:
            if not line.strip():
                must_save = True
                continue
            try:
                entry = parse_registry_line(line)
            except ValueError as exc:
                logger.warning(
                    "While reading line '%s' from '%s': %s This faulty line will be deleted.",
                    line,
                    self.file_path,
                    exc,
                )
                must_save = True
                continue
            if not entry.path.is_dir():
                logger.info("Stack at '%s' (%s) has been deleted.", entry.path, entry.url)
                must_save = True
            elif entry.path in entries:
                logger.warning("Duplicate path '%s' found. It will be deleted.", entry.path)
                must_save = True
            else:
                entries[entry.path] = entry.url
        return entries, must_save

    def _save(self, entries: Dict[Path, str]) -> None:
        logger.debug("Updating file '%s' with %d stacks.", self.file_path, len(entries))

        def _writer(f: TextIO) -> None:
            for path, url in entries.items():
                f.write(RegistryEntry(path, url).to_line())
                f.write("\n")

        try:
            atomic_write(self.file_path, _writer)
        except OSError as exc:
            logger.error("While saving '%s': %s", self.file_path, exc)
            raise StackRegistryError(
                f"Unable to update the stack registry '{self.file_path}'.",
                context={"path": str(self.file_path)},
            ) from exc


__all__ = [
    "DUPLICATE_PREFIX",
    "FIELD_SEPARATOR",
    "MIN_STACK_PATH_SEGMENTS",
    "PRIVATE_STACK_NAME",
    "PUBLIC_STACK_NAME",
    "RegistryEntry",
    "STACK_REGISTRY_FILE_NAME",
    "StackRegistry",
    "parse_registry_line",
]
