"""Repository url canonicalization and folder name validation.

A canonical repository url:
- is absolute (has a scheme and an authority or a path),
- has a lower-cased scheme and host,
- has no query and no fragment,
- has no trailing ``/`` and no trailing ``.git``.

Its final path segment (unquoted) is the repository *name*: the directory
name of the working folder. It must be a valid folder name.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import NamedTuple, Optional
from urllib.parse import unquote, urlsplit, urlunsplit
from urllib.request import url2pathname

from worldstack.core.exceptions import InvalidRepositoryUrlError

# Portable set: what Windows forbids is a superset of what POSIX forbids.
_INVALID_FOLDER_CHARS = frozenset('<>:"/\\|?*') | frozenset(chr(i) for i in range(32))

# RFC 3986 scheme; at least 2 characters so that "C:" drive letters are not schemes.
_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]+$")


class RepositoryUrl(NamedTuple):
    url: str
    name: str


def is_valid_folder_name(name: Optional[str]) -> bool:
    if name is None:
        return False
    s = name.strip()
    if not s or s in {".", ".."}:
        return False
    return not any(c in _INVALID_FOLDER_CHARS for c in s)


def is_absolute_url(value: Optional[str]) -> bool:
    if not value:
        return False
    parts = urlsplit(value.strip())
    return bool(_SCHEME.match(parts.scheme)) and bool(parts.netloc or parts.path)


def _lower_host(netloc: str) -> str:
    userinfo, sep, host = netloc.rpartition("@")
    return f"{userinfo}{sep}{host.lower()}"


def check_and_normalize_repository_url(url: str) -> RepositoryUrl:
    """Return the canonical form of ``url`` and its repository name.

    Raises:
        InvalidRepositoryUrlError: when ``url`` is not absolute, has a query or
            a fragment, or has no usable final path segment.
    """
    value = (url or "").strip()
    if not is_absolute_url(value):
        raise InvalidRepositoryUrlError(f"Repository url '{url}' must be an absolute url.", context={"url": url})
    if "?" in value:
        raise InvalidRepositoryUrlError(f"Repository url '{url}' must not have a query part.", context={"url": url})
    if "#" in value:
        raise InvalidRepositoryUrlError(f"Repository url '{url}' must not have a fragment.", context={"url": url})

    parts = urlsplit(value)
    path = parts.path.rstrip("/")
    if path.lower().endswith(".git"):
        path = path[: -len(".git")].rstrip("/")

    name = unquote(path.rsplit("/", 1)[-1])
    if not is_valid_folder_name(name):
        raise InvalidRepositoryUrlError(
            f"Unable to derive a repository name from url '{url}'.", context={"url": url}
        )

    canonical = urlunsplit((parts.scheme.lower(), _lower_host(parts.netloc), path, "", ""))
    return RepositoryUrl(canonical, name.strip())


def try_normalize_repository_url(url: str) -> Optional[RepositoryUrl]:
    try:
        return check_and_normalize_repository_url(url)
    except InvalidRepositoryUrlError:
        return None


def file_url(path: Path) -> str:
    """``file://`` url of a local directory."""
    return Path(path).absolute().as_uri()


def file_url_to_path(url: str) -> Optional[Path]:
    """Local path of a ``file://`` url, None for any other scheme."""
    parts = urlsplit(url)
    if parts.scheme.lower() != "file":
        return None
    return Path(url2pathname(parts.path))


__all__ = [
    "RepositoryUrl",
    "check_and_normalize_repository_url",
    "file_url",
    "file_url_to_path",
    "is_absolute_url",
    "is_valid_folder_name",
    "try_normalize_repository_url",
]
