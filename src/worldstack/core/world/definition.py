"""World definition file: the XML document describing the layout of a World.

```xml
<MyWorld>
  <Plugins CompileMode="Debug">
    <SomePlugin />
    <OtherPlugin Disabled="true" />
  </Plugins>
  <Folder Name="Core">
    <Repository Url="https://example.com/org/Core.Lib" />
  </Folder>
  <Repository Url="Local-Repo" />
</MyWorld>
```

The document is owned by one :class:`WorldDefinitionFile`. Its elements are
only exposed through read-only :class:`ElementView` wrappers; every change
goes through a method of this class and must happen inside an edit
transaction (:meth:`WorldDefinitionFile.start_edit`). Any mutation marks the
file dirty; only a successful :meth:`WorldDefinitionFile.save_file` clears it.

Mutators open their own transaction unless one is already opened by the
caller. Only the outermost caller saves: a nested mutator returns True and
leaves saving to whoever opened the transaction.
"""
from __future__ import annotations

import logging
import re
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, ClassVar, ContextManager, Dict, Iterable, Iterator, List, Mapping, Optional

from lxml import etree

from worldstack.core.diagnostics import Diagnostics
from worldstack.core.exceptions import ContractViolationError, DefinitionFileError
from worldstack.core.repository_url import (
    check_and_normalize_repository_url,
    file_url_to_path,
    is_valid_folder_name,
    try_normalize_repository_url,
)
from worldstack.core.utils.io import write_text
from worldstack.core.world.layout import (
    FOLDER_TAG,
    NAME_ATTR,
    PLUGINS_TAG,
    REPOSITORY_TAG,
    URL_ATTR,
    LayoutRepoOrder,
    RepoLayout,
    resolve_layout,
)
from worldstack.core.world.stack import WorldName
from worldstack.core.world.view import ElementView, child_elements, has_elements, local_name

logger = logging.getLogger(__name__)

DISABLED_ATTR = "Disabled"
COMPILE_MODE_ATTR = "CompileMode"

_PLUGIN_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.\-]*$")

RepositoryUrlHook = Callable[[str], str]


class PluginCompileMode(str, Enum):
    """``<Plugins CompileMode="..." />``: only "Debug" and "None" are recognized."""

    DEBUG = "Debug"
    NONE = "None"
    RELEASE = "Release"

    @classmethod
    def from_attribute(cls, value: Optional[str]) -> "PluginCompileMode":
        if value == cls.DEBUG.value:
            return cls.DEBUG
        if value == cls.NONE.value:
            return cls.NONE
        return cls.RELEASE


@dataclass(frozen=True)
class PluginConfig:
    name: str
    element: ElementView
    is_disabled: bool


def is_valid_plugin_name(name: Optional[str]) -> bool:
    return bool(name) and bool(_PLUGIN_NAME.match(name))


def _is_true(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in {"true", "1"}


def _folder_key(element: etree._Element) -> str:
    return (element.get(NAME_ATTR) or "").strip().casefold()


class WorldDefinitionFile:
    """Guarded owner of one World definition document."""

    # Process-wide order of the layouts; see configure_repo_order().
    repo_order: ClassVar[LayoutRepoOrder] = LayoutRepoOrder.DEFINITION_FILE

    def __init__(self, world: WorldName, root: etree._Element, plugins: etree._Element) -> None:
        self._world = world
        self._root = root
        self._plugins = plugins
        self._layout: Optional[List[RepoLayout]] = None
        self._plugins_configuration: Optional[Dict[str, PluginConfig]] = None
        self._compile_mode: Optional[PluginCompileMode] = None
        self._allow_edit = False
        self._is_dirty = False

    # Construction ----------------------------------------------------------

    @classmethod
    def create(
        cls,
        world: WorldName,
        root: etree._Element,
        *,
        url_hook: Optional[RepositoryUrlHook] = None,
    ) -> "WorldDefinitionFile":
        """Wrap ``root``, adding an empty ``<Plugins />`` first child when missing.

        ``url_hook`` rewrites every ``<Repository Url="..." />`` value (tests use it
        to point at local remotes). Like the Plugins insertion, this happens before
        the document is guarded: the file is not dirty and keeps its content
        until something else is saved.
        """
        plugins = next(child_elements(root, PLUGINS_TAG), None)
        if plugins is None:
            plugins = etree.Element(PLUGINS_TAG)
            root.insert(0, plugins)
        if url_hook is not None:
            for repo in root.iterdescendants(tag=etree.Element):
                if local_name(repo) == REPOSITORY_TAG and repo.get(URL_ATTR) is not None:
                    repo.set(URL_ATTR, url_hook(repo.get(URL_ATTR)))
        return cls(world, root, plugins)

    @classmethod
    def load(cls, world: WorldName, *, url_hook: Optional[RepositoryUrlHook] = None) -> "WorldDefinitionFile":
        """Parse ``world.definition_file_path``.

        Raises:
            DefinitionFileError: unreadable or malformed file, or a root element
                that is not named after the World.
        """
        path = Path(world.definition_file_path)
        parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)
        try:
            tree = etree.parse(str(path), parser)
        except (OSError, etree.XMLSyntaxError) as exc:
            raise DefinitionFileError(
                f"Unable to read definition file '{path}': {exc}", context={"path": str(path)}
            ) from exc
        root = tree.getroot()
        if local_name(root) != world.name:
            raise DefinitionFileError(
                f"Definition file '{path}' root element is <{local_name(root)}>, expected <{world.name}>.",
                context={"path": str(path), "world": world.name},
            )
        return cls.create(world, root, url_hook=url_hook)

    # Read-only access ----------------------------------------------------

    @property
    def world(self) -> WorldName:
        return self._world

    @property
    def xml_root(self) -> ElementView:
        return ElementView(self._root)

    @property
    def plugins(self) -> ElementView:
        return ElementView(self._plugins)

    @property
    def is_dirty(self) -> bool:
        return self._is_dirty

    @property
    def is_editing(self) -> bool:
        return self._allow_edit

    @property
    def compile_mode(self) -> PluginCompileMode:
        if self._compile_mode is None:
            self._compile_mode = PluginCompileMode.from_attribute(self._plugins.get(COMPILE_MODE_ATTR))
        return self._compile_mode

    def to_xml(self) -> str:
        # No XML declaration: encoding="unicode" never emits one.
        return etree.tostring(self._root.getroottree(), encoding="unicode", pretty_print=True)

    # Edit transaction --------------------------------------------------

    @contextmanager
    def start_edit(self) -> Iterator[None]:
        """Allow mutations until the block exits (even on error).

        Transactions do not nest: use the mutators of this class inside the
        block, they join the opened transaction.
        """
        if self._allow_edit:
            raise ContractViolationError("An edit transaction is already opened on this definition file.")
        self._allow_edit = True
        try:
            yield
        finally:
            self._allow_edit = False

    def _editing(self) -> ContextManager[Any]:
        return nullcontext() if self._allow_edit else self.start_edit()

    def _check_edit(self) -> None:
        if not self._allow_edit:
            raise ContractViolationError(
                f"Definition file of '{self._world.full_name}' must not be changed outside of an edit transaction."
            )
        self._is_dirty = True

    def _set_attribute(self, element: etree._Element, name: str, value: Optional[str]) -> None:
        self._check_edit()
        if value is None:
            element.attrib.pop(name, None)
        else:
            element.set(name, value)

    def _append(self, parent: etree._Element, child: etree._Element) -> None:
        self._check_edit()
        parent.append(child)

    def _insert_before(self, sibling: etree._Element, child: etree._Element) -> None:
        self._check_edit()
        sibling.addprevious(child)

    def _remove(self, element: etree._Element) -> None:
        self._check_edit()
        parent = element.getparent()
        if parent is None:
            raise ContractViolationError("The root element of a definition file cannot be removed.")
        parent.remove(element)

    def _iter_elements(self, tag: str) -> List[etree._Element]:
        return [e for e in self._root.iterdescendants(tag=etree.Element) if local_name(e) == tag]

    # Plugins --------------------------------------------------------------

    def read_plugins_configuration(
        self, diagnostics: Optional[Diagnostics] = None
    ) -> Optional[Mapping[str, PluginConfig]]:
        """Plugin configurations keyed by case-folded name, None on duplicates."""
        if self._plugins_configuration is None:
            self._plugins_configuration = self._read_plugins_configuration(diagnostics or Diagnostics(logger))
        if self._plugins_configuration is None:
            return None
        return MappingProxyType(self._plugins_configuration)

    def _read_plugins_configuration(self, diagnostics: Diagnostics) -> Optional[Dict[str, PluginConfig]]:
        success = True
        config: Dict[str, PluginConfig] = {}
        for e in child_elements(self._plugins):
            name = local_name(e)
            exists = config.get(name.casefold())
            if exists is not None:
                diagnostics.error(
                    f"Duplicate Plugin configuration found:\n{exists.element.to_xml()}\nand:\n{ElementView(e).to_xml()}"
                )
                success = False
            else:
                config[name.casefold()] = PluginConfig(name, ElementView(e), _is_true(e.get(DISABLED_ATTR)))
        return config if success else None

    def enable_plugin(self, name: str, enable: bool, diagnostics: Optional[Diagnostics] = None) -> bool:
        """Enable or disable a configured plugin, then save and commit the Stack.

        Nothing is edited, saved or committed when the plugin already is in
        the requested state.
        """
        if self._allow_edit:
            raise ContractViolationError("enable_plugin saves and commits: it cannot run inside an edit transaction.")
        diagnostics = diagnostics if diagnostics is not None else Diagnostics(logger)
        if not is_valid_plugin_name(name):
            diagnostics.error(f"Invalid plugin name '{name}'.")
            return False
        config = self.read_plugins_configuration(diagnostics)
        if config is None:
            return False
        entry = config.get(name.casefold())
        if entry is None:
            diagnostics.error(f"Unable to find Plugin configuration '{name}'.")
            return False
        if entry.is_disabled != enable:
            return True

        element = next(e for e in child_elements(self._plugins) if local_name(e).casefold() == name.casefold())
        with self.start_edit():
            self._set_attribute(element, DISABLED_ATTR, None if enable else "true")
            self._plugins_configuration = None
        action = "Enabling" if enable else "Disabling"
        return self.save_file(diagnostics) and self._world.stack.commit(f"{action} '{entry.name}' plugin.")

    def set_plugin_compile_mode(self, mode: PluginCompileMode) -> bool:
        outermost = not self._allow_edit
        with self._editing():
            value = None if mode is PluginCompileMode.RELEASE else mode.value
            self._set_attribute(self._plugins, COMPILE_MODE_ATTR, value)
            self._compile_mode = mode
        return not outermost or self.save_file()

    def ensure_plugin_configuration(self, name: str) -> bool:
        """Ensure a ``<Plugins>`` child named ``name`` (case-insensitive) exists."""
        if not is_valid_plugin_name(name):
            raise ContractViolationError(f"Invalid plugin name '{name}'.")
        key = name.casefold()
        if any(local_name(e).casefold() == key for e in child_elements(self._plugins)):
            return True
        outermost = not self._allow_edit
        with self._editing():
            self._append(self._plugins, etree.Element(name))
            self._plugins_configuration = None
        return not outermost or self.save_file()

    def remove_plugin_configuration(self, name: str) -> bool:
        """Remove every configuration of ``name``: in ``<Plugins>`` and in each Repository."""
        # The cached configuration is not trusted here: the document is scanned case-insensitively.
        key = name.casefold()
        matches = [
            c
            for repo in self._iter_elements(REPOSITORY_TAG)
            for c in child_elements(repo)
            if local_name(c).casefold() == key
        ]
        matches.extend(e for e in child_elements(self._plugins) if local_name(e).casefold() == key)
        if not matches:
            return True
        outermost = not self._allow_edit
        with self._editing():
            for e in matches:
                self._remove(e)
            self._plugins_configuration = None
        return not outermost or self.save_file()

    # Repositories --------------------------------------------------------

    def add_repository(self, path: Path, folders: Iterable[str], url: str) -> bool:
        """Add ``<Repository Url="..." />`` under the folder chain, creating missing folders.

        New folders are inserted among their siblings in case-insensitive name
        order; the repository is appended to its folder.
        """
        folders = [f.strip() for f in folders if f is not None] if folders else []
        invalid = [f for f in folders if not is_valid_folder_name(f)]
        if invalid:
            raise ContractViolationError(f"Invalid folder name(s): {', '.join(repr(f) for f in invalid)}.")
        canonical = check_and_normalize_repository_url(url)
        expected = Path(self._world.world_root).joinpath(*folders, canonical.name)
        if Path(path) != expected:
            raise ContractViolationError(
                f"Repository path '{path}' does not match its folders and url (expected '{expected}')."
            )
        url_value = self._normalize_repository_proxy_url(canonical.url)
        outermost = not self._allow_edit
        with self._editing():
            folder = self._ensure_folder(folders)
            repo = etree.Element(REPOSITORY_TAG)
            repo.set(URL_ATTR, url_value)
            self._append(folder, repo)
        return not outermost or self.save_file()

    def _ensure_folder(self, folders: List[str]) -> etree._Element:
        current = self._root
        for name in folders:
            key = name.casefold()
            existing = next((f for f in child_elements(current, FOLDER_TAG) if _folder_key(f) == key), None)
            if existing is None:
                existing = etree.Element(FOLDER_TAG)
                existing.set(NAME_ATTR, name)
                following = next((f for f in child_elements(current, FOLDER_TAG) if _folder_key(f) > key), None)
                if following is not None:
                    self._insert_before(following, existing)
                else:
                    self._append(current, existing)
            current = existing
        return current

    def remove_repository(
        self,
        url: str,
        remove_empty_folders: bool,
        diagnostics: Optional[Diagnostics] = None,
    ) -> bool:
        """Remove the Repository element of ``url``; optionally prune the emptied folders."""
        diagnostics = diagnostics if diagnostics is not None else Diagnostics(logger)
        canonical = check_and_normalize_repository_url(url)
        url_value = self._normalize_repository_proxy_url(canonical.url)
        node = next(
            (e for e in self._iter_elements(REPOSITORY_TAG) if self._matches_url(e.get(URL_ATTR), url_value, canonical.url)),
            None,
        )
        if node is None:
            diagnostics.error(
                f'Unable to find <Repository Url="{url}" /> in \'{self._world.full_name}\' definition file:\n'
                f"{self.xml_root.to_xml()}"
            )
            return False
        outermost = not self._allow_edit
        with self._editing():
            parent = node.getparent()
            self._remove(node)
            if remove_empty_folders:
                while parent is not self._root and not has_elements(parent):
                    to_remove = parent
                    parent = parent.getparent()
                    self._remove(to_remove)
        return not outermost or self.save_file(diagnostics)

    def remove_empty_folders(self) -> None:
        """Remove every Folder without child element (editing required)."""
        if not self._allow_edit:
            raise ContractViolationError("remove_empty_folders() requires an opened edit transaction.")
        while True:
            empty = [f for f in self._iter_elements(FOLDER_TAG) if not has_elements(f)]
            if not empty:
                return
            for f in empty:
                self._remove(f)

    @staticmethod
    def _matches_url(value: Optional[str], url_value: str, canonical_url: str) -> bool:
        if value is None:
            return False
        if value.strip() == url_value:
            return True
        normalized = try_normalize_repository_url(value)
        return normalized is not None and normalized.url == canonical_url

    def _normalize_repository_proxy_url(self, url: str) -> str:
        """Urls of local proxy repositories are stored as their folder name."""
        proxy_root = self._world.stack.local_proxy_repositories_path
        if proxy_root is not None:
            local = file_url_to_path(url)
            if local is not None:
                local = local.absolute()
                root = Path(proxy_root).absolute()
                if local != root and local.is_relative_to(root):
                    logger.debug("Automatic Repository Proxy rewrite for '%s'.", url)
                    return local.name
        return url

    # Layout & persistence --------------------------------------------------

    def read_layout(self, diagnostics: Optional[Diagnostics] = None) -> Optional[List[RepoLayout]]:
        """The validated layout (cached), None if the definition has errors.

        The returned list is the cached container: a successful save refreshes
        its content in place.
        """
        if self._layout is None:
            self._layout = resolve_layout(self._root, self._world, self.repo_order, diagnostics)
        return self._layout

    def save_file(self, diagnostics: Optional[Diagnostics] = None) -> bool:
        """Write the document when dirty.

        On I/O error the file stays dirty (a retry is possible). After a
        successful write, a previously computed layout is recomputed: if the
        written document does not validate, the save is reported as failed,
        the cached layout is emptied and the next :meth:`read_layout` returns
        None.
        """
        if self._allow_edit:
            raise ContractViolationError("The definition file cannot be saved while an edit transaction is opened.")
        if not self._is_dirty:
            return True
        diagnostics = diagnostics if diagnostics is not None else Diagnostics(logger)
        path = Path(self._world.definition_file_path)
        try:
            write_text(path, self.to_xml())
        except OSError as exc:
            diagnostics.error(f"While saving '{path}': {exc}")
            return False
        self._is_dirty = False
        logger.debug("File '%s' saved.", path.name)
        if self._layout is not None:
            new_layout = resolve_layout(self._root, self._world, self.repo_order, diagnostics)
            if new_layout is None:
                # The cached layout no longer describes the document.
                self._layout.clear()
                self._layout = None
                return False
            self._layout[:] = new_layout
        return True


def configure_repo_order(config: Mapping[str, Any]) -> LayoutRepoOrder:
    """Set the process-wide layout order from ``layout.repo_order``."""
    section = config.get("layout") or {}
    order = LayoutRepoOrder.parse(section.get("repo_order") or LayoutRepoOrder.DEFINITION_FILE.value)
    WorldDefinitionFile.repo_order = order
    return order


__all__ = [
    "COMPILE_MODE_ATTR",
    "DISABLED_ATTR",
    "PluginCompileMode",
    "PluginConfig",
    "RepositoryUrlHook",
    "WorldDefinitionFile",
    "configure_repo_order",
    "is_valid_plugin_name",
]
