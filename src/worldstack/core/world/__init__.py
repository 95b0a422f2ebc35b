"""Worlds: definition files, their guarded edition and their repository layout."""
from __future__ import annotations

from .definition import (
    PluginCompileMode,
    PluginConfig,
    WorldDefinitionFile,
    configure_repo_order,
    is_valid_plugin_name,
)
from .layout import LayoutRepoOrder, RepoLayout, resolve_layout
from .stack import GitStackContext, StackContext, WorldName
from .view import ElementView

__all__ = [
    "ElementView",
    "GitStackContext",
    "LayoutRepoOrder",
    "PluginCompileMode",
    "PluginConfig",
    "RepoLayout",
    "StackContext",
    "WorldDefinitionFile",
    "WorldName",
    "configure_repo_order",
    "is_valid_plugin_name",
    "resolve_layout",
]
