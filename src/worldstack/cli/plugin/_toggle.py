"""Shared implementation of ``plugin enable`` and ``plugin disable``."""
from __future__ import annotations

import argparse
from pathlib import Path

from worldstack.cli import (
    OutputFormatter,
    add_definition_args,
    add_json_flag,
    load_world_definition,
    print_diagnostics,
)
from worldstack.core.diagnostics import Diagnostics
from worldstack.core.exceptions import DefinitionFileError


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("name", help="Plugin name (case-insensitive)")
    parser.add_argument("--definition", type=Path, required=True, help="World definition file")
    add_definition_args(parser)
    add_json_flag(parser)


def run(args: argparse.Namespace, enable: bool) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        definition = load_world_definition(args, args.definition)
    except DefinitionFileError as e:
        formatter.error(e, error_code="definition_error")
        return 1

    diagnostics = Diagnostics()
    if not definition.enable_plugin(args.name, enable, diagnostics):
        if formatter.json_mode:
            formatter.json_output({"status": "error", "errors": diagnostics.errors})
        else:
            print_diagnostics(diagnostics)
        return 1

    state = "enabled" if enable else "disabled"
    formatter.success(
        {"plugin": args.name, "state": state, "world": definition.world.full_name},
        f"Plugin '{args.name}' is {state} in '{definition.world.full_name}'.",
    )
    return 0
