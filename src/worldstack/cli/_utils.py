"""Shared CLI utilities."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict

from worldstack.core.config import load_config
from worldstack.core.diagnostics import Diagnostics
from worldstack.core.world import GitStackContext, WorldDefinitionFile, WorldName


def get_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Configuration loaded by the dispatcher, or loaded now when a command runs standalone."""
    cfg = getattr(args, "_config", None)
    if cfg is None:
        cfg = load_config()
        args._config = cfg
    return cfg


def load_world_definition(args: argparse.Namespace, definition: Path) -> WorldDefinitionFile:
    """Load the definition file named on the command line.

    Raises:
        DefinitionFileError: when the file cannot be read or does not define the World.
    """
    definition = Path(definition).absolute()
    folder = definition.parent
    stack = GitStackContext(
        getattr(args, "stack_folder", None) or folder,
        getattr(args, "proxy_root", None),
    )
    world = WorldName(
        name=getattr(args, "world_name", None) or definition.stem,
        world_root=Path(getattr(args, "world_root", None) or folder).absolute(),
        definition_file_path=definition,
        stack=stack,
    )
    return WorldDefinitionFile.load(world)


def print_diagnostics(diagnostics: Diagnostics) -> None:
    """Print recorded errors and warnings on stderr."""
    for message in diagnostics.warnings:
        print(f"Warning: {message}", file=sys.stderr)
    for message in diagnostics.errors:
        print(f"Error: {message}", file=sys.stderr)


__all__ = ["get_config", "load_world_definition", "print_diagnostics"]
