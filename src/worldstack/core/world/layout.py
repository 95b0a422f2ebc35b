"""Repository layout: from the Folder/Repository tree to (url, path) pairs.

The walk never stops at the first problem. Every invalid element is
reported to the :class:`Diagnostics` collector and, when at least one error
was found, the whole layout is rejected (``None``).

After the walk, the flattened list must be a bijection between paths and
urls, and repository names (the final path segment) must be unique in the
World even across different folders.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple

from lxml import etree

from worldstack.core.diagnostics import Diagnostics
from worldstack.core.exceptions import InvalidRepositoryUrlError
from worldstack.core.repository_url import (
    check_and_normalize_repository_url,
    file_url,
    is_absolute_url,
    is_valid_folder_name,
)
from worldstack.core.world.stack import WorldName
from worldstack.core.world.view import ElementView, child_elements, has_elements, local_name

logger = logging.getLogger(__name__)

PLUGINS_TAG = "Plugins"
FOLDER_TAG = "Folder"
REPOSITORY_TAG = "Repository"
NAME_ATTR = "Name"
URL_ATTR = "Url"


class LayoutRepoOrder(str, Enum):
    """Order of the repositories in a layout."""

    # Document order of the definition file (default).
    DEFINITION_FILE = "DefinitionFile"
    # Repository path below the World root, case-insensitive.
    PATH = "Path"
    # Repository name, case-insensitive.
    NAME = "Name"

    @classmethod
    def parse(cls, value: str) -> "LayoutRepoOrder":
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise ValueError(f"Unknown repository order '{value}'. Expected one of: {', '.join(m.value for m in cls)}.")


@dataclass(frozen=True)
class RepoLayout:
    """One repository of a World: canonical url, defining element and working folder."""

    url: str
    element: ElementView
    path: Path

    @property
    def name(self) -> str:
        return self.path.name


def describe(element: etree._Element) -> str:
    """Single-line rendering of an element for diagnostics."""
    attrs = "".join(f' {k}="{v}"' for k, v in element.attrib.items())
    return f"<{local_name(element)}{attrs}{' /' if not has_elements(element) else ''}>"


def resolve_repository_url(
    value: str,
    element: etree._Element,
    proxy_root: Optional[Path],
    diagnostics: Diagnostics,
) -> Optional[str]:
    """Absolute urls are kept, anything else goes through the local proxy root.

    Returns None (and reports an error) when the value cannot be resolved.
    """
    if is_absolute_url(value):
        return value.strip()
    if proxy_root is None:
        diagnostics.error(f'Invalid element: {describe(element)}\nThe Url="{value}" is not a valid url.')
        return None
    if is_valid_folder_name(value):
        candidate = proxy_root / value.strip()
        if candidate.is_dir():
            url = file_url(candidate)
            logger.debug('Automatic Repository Proxy mapping of Url="%s" to \'%s\'.', value, url)
            return url
    available = sorted(p.name for p in proxy_root.iterdir() if p.is_dir()) if proxy_root.is_dir() else []
    diagnostics.error(
        f'Invalid element: {describe(element)}\n'
        f'The Url="{value}" cannot be mapped to any folder in the local proxy repository.\n'
        f"{proxy_root} contains the directories: {', '.join(available) or '(none)'}"
    )
    return None


def _walk(root: etree._Element, world: WorldName, diagnostics: Diagnostics) -> Tuple[List[RepoLayout], int]:
    """Depth-first walk in document order carrying the folder path prefix."""
    layout: List[RepoLayout] = []
    error_count = 0
    proxy_root = world.stack.local_proxy_repositories_path
    pending: List[Tuple[Iterator[etree._Element], Path]] = [(child_elements(root), Path(world.world_root))]

    while pending:
        children, prefix = pending[-1]
        child = next(children, None)
        if child is None:
            pending.pop()
            continue

        tag = local_name(child)
        if tag == FOLDER_TAG:
            name = child.get(NAME_ATTR)
            if not is_valid_folder_name(name):
                diagnostics.error(f'Invalid element: {describe(child)}\nAttribute Name="..." is missing or invalid.')
                error_count += 1
            elif not has_elements(child):
                diagnostics.warning(f"Invalid element: {describe(child)}\nIs empty. Element is ignored.")
            else:
                pending.append((child_elements(child), prefix / name.strip()))
        elif tag == REPOSITORY_TAG:
            value = child.get(URL_ATTR)
            if value is None:
                diagnostics.error(f'Invalid element: {describe(child)}\nAttribute Url="..." is missing.')
                error_count += 1
                continue
            url = resolve_repository_url(value, child, proxy_root, diagnostics)
            if url is None:
                error_count += 1
                continue
            try:
                canonical = check_and_normalize_repository_url(url)
            except InvalidRepositoryUrlError as exc:
                diagnostics.error(f"Invalid element: {describe(child)}\n{exc}")
                error_count += 1
                continue
            layout.append(RepoLayout(canonical.url, ElementView(child), prefix / canonical.name))
        elif tag != PLUGINS_TAG:
            diagnostics.warning(
                f"Unexpected element: {describe(child)}\n"
                'Only <Plugins />, <Folder Name="..."> ... </Folder> and <Repository Url="..." /> '
                "are handled. Element is ignored."
            )
    return layout, error_count


def check_layout_unicity(layout: List[RepoLayout], diagnostics: Diagnostics) -> int:
    """Report duplicated pairs, path/url collisions and repository name collisions."""
    error_count = 0
    pairs: Set[Tuple[Path, str]] = set()
    by_path: Dict[Path, str] = {}
    urls: Set[str] = set()
    by_name: Dict[str, str] = {}
    for entry in layout:
        if (entry.path, entry.url) in pairs:
            diagnostics.error(
                f"Duplicate found: the repository '{entry.path}' -> '{entry.url}' definition must occur only once."
            )
            error_count += 1
            continue
        pairs.add((entry.path, entry.url))
        existing = by_path.setdefault(entry.path, entry.url)
        if existing != entry.url:
            diagnostics.error(f"Path '{entry.path}' is associated to both '{entry.url}' and '{existing}'.")
            error_count += 1
            continue
        if entry.url in urls:
            diagnostics.error(f"Repository with Url '{entry.url}' occurs more than once.")
            error_count += 1
            continue
        urls.add(entry.url)
        other = by_name.setdefault(entry.name.casefold(), entry.url)
        if other != entry.url:
            diagnostics.error(
                f"Repository url '{entry.url}' and '{other}' have the same repository name '{entry.name}'."
            )
            error_count += 1
    return error_count


def sort_layout(layout: List[RepoLayout], order: LayoutRepoOrder, world_root: Path) -> None:
    """Stable in-place sort; DefinitionFile keeps the document order."""
    if order is LayoutRepoOrder.PATH:
        layout.sort(key=lambda e: e.path.relative_to(world_root).as_posix().casefold())
    elif order is LayoutRepoOrder.NAME:
        layout.sort(key=lambda e: e.name.casefold())


def resolve_layout(
    root: etree._Element,
    world: WorldName,
    order: LayoutRepoOrder = LayoutRepoOrder.DEFINITION_FILE,
    diagnostics: Optional[Diagnostics] = None,
) -> Optional[List[RepoLayout]]:
    """Validated and ordered layout of ``root``, or None when any error was reported."""
    diagnostics = diagnostics if diagnostics is not None else Diagnostics(logger)
    layout, error_count = _walk(root, world, diagnostics)
    # Unicity is checked even after walk errors so that one pass reports everything.
    error_count += check_layout_unicity(layout, diagnostics)
    if error_count:
        return None
    sort_layout(layout, order, Path(world.world_root))
    return layout


__all__ = [
    "FOLDER_TAG",
    "LayoutRepoOrder",
    "NAME_ATTR",
    "PLUGINS_TAG",
    "REPOSITORY_TAG",
    "RepoLayout",
    "URL_ATTR",
    "check_layout_unicity",
    "describe",
    "resolve_layout",
    "resolve_repository_url",
    "sort_layout",
]
