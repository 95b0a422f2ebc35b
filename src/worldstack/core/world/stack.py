"""The owning Stack and World as seen by a definition file."""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from worldstack.core.utils.subprocess import run_git_command

logger = logging.getLogger(__name__)


class StackContext(Protocol):
    """What a World definition file needs from its Stack."""

    @property
    def local_proxy_repositories_path(self) -> Optional[Path]:
        """Root of the local proxy repositories, None when proxy mode is disabled."""
        ...

    def commit(self, message: str) -> bool:
        """Commit the Stack working folder. Returns False on error."""
        ...


class GitStackContext:
    """Stack working folder backed by a git repository."""

    def __init__(self, stack_working_folder: Path, local_proxy_repositories_path: Optional[Path] = None) -> None:
        self.stack_working_folder = Path(stack_working_folder)
        self._local_proxy_repositories_path = (
            Path(local_proxy_repositories_path) if local_proxy_repositories_path else None
        )

    @property
    def local_proxy_repositories_path(self) -> Optional[Path]:
        return self._local_proxy_repositories_path

    def commit(self, message: str) -> bool:
        cwd = self.stack_working_folder
        try:
            added = run_git_command(["git", "add", "-A"], cwd=cwd)
            if added.returncode != 0:
                logger.error("git add failed in '%s': %s", cwd, added.stderr.strip())
                return False
            status = run_git_command(["git", "status", "--porcelain"], cwd=cwd)
            if status.returncode == 0 and not status.stdout.strip():
                logger.debug("Nothing to commit in '%s'.", cwd)
                return True
            committed = run_git_command(["git", "commit", "-m", message], cwd=cwd)
        except (OSError, subprocess.SubprocessError) as exc:
            logger.error("While committing '%s': %s", cwd, exc)
            return False
        if committed.returncode != 0:
            logger.error("git commit failed in '%s': %s", cwd, committed.stderr.strip())
            return False
        logger.info("Committed '%s' in '%s'.", message, cwd)
        return True


@dataclass(frozen=True)
class WorldName:
    """Identifies a World of a Stack and where its files live."""

    name: str
    world_root: Path
    definition_file_path: Path
    stack: StackContext = field(compare=False, repr=False)
    lts_name: Optional[str] = None

    @property
    def full_name(self) -> str:
        return self.name if not self.lts_name else f"{self.name}@{self.lts_name}"


__all__ = ["GitStackContext", "StackContext", "WorldName"]
