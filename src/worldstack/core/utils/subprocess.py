"""Thin subprocess wrapper for git commands.

No ``shell=True``: commands are always argument vectors.
"""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from time import perf_counter
from typing import MutableMapping, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT_SECONDS = 60.0


def run_git_command(
    cmd: Sequence[str],
    *,
    cwd: Optional[Path | str] = None,
    env: Optional[MutableMapping[str, str]] = None,
    timeout: Optional[float] = None,
    check: bool = False,
) -> subprocess.CompletedProcess:
    """
    Run a git command capturing its text output.

    Args:
        cmd: Git command sequence to execute (``["git", ...]``)
        cwd: Working directory (Path or str)
        env: Environment variables
        timeout: Timeout in seconds (defaults to DEFAULT_GIT_TIMEOUT_SECONDS)
        check: Raise CalledProcessError on non-zero exit

    Returns:
        CompletedProcess from subprocess.run
    """
    argv = [str(p) for p in cmd]
    if not argv or argv[0] != "git":
        raise ValueError(f"Not a git command: {argv!r}")

    start = perf_counter()
    result = subprocess.run(
        argv,
        cwd=str(cwd) if cwd is not None else None,
        env=env,
        capture_output=True,
        text=True,
        timeout=timeout if timeout is not None else DEFAULT_GIT_TIMEOUT_SECONDS,
        check=check,
    )
    logger.debug(
        "%s exited with %d in %.3fs",
        " ".join(argv[:3]),
        result.returncode,
        perf_counter() - start,
    )
    return result


__all__ = ["DEFAULT_GIT_TIMEOUT_SECONDS", "run_git_command"]
