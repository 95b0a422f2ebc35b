"""
worldstack world layout command.

SUMMARY: Validate a World definition file and print its repositories

Every problem of the definition file is reported in one pass; the exit
code is 1 when at least one of them is an error.
"""

from __future__ import annotations

import argparse
import sys
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
from worldstack.core.world import LayoutRepoOrder

SUMMARY = "Validate a World definition file and print its repositories"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    parser.add_argument("definition", type=Path, help="World definition file")
    add_definition_args(parser)
    parser.add_argument(
        "--order",
        choices=[o.value for o in LayoutRepoOrder],
        help="Repository order (default: layout.repo_order from the configuration)",
    )
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    try:
        definition = load_world_definition(args, args.definition)
    except DefinitionFileError as e:
        formatter.error(e, error_code="definition_error")
        return 1

    if args.order:
        # Instance level: the process-wide order is left untouched.
        definition.repo_order = LayoutRepoOrder.parse(args.order)

    diagnostics = Diagnostics()
    layout = definition.read_layout(diagnostics)
    if layout is None:
        if formatter.json_mode:
            formatter.json_output(
                {"status": "error", "errors": diagnostics.errors, "warnings": diagnostics.warnings}
            )
        else:
            print_diagnostics(diagnostics)
        return 1

    world_root = definition.world.world_root
    if formatter.json_mode:
        formatter.json_output(
            {
                "status": "success",
                "world": definition.world.full_name,
                "repositories": [
                    {"name": r.name, "path": str(r.path), "url": r.url} for r in layout
                ],
                "warnings": diagnostics.warnings,
            }
        )
        return 0

    print_diagnostics(diagnostics)
    formatter.text(f"{definition.world.full_name}: {len(layout)} repositories")
    for r in layout:
        formatter.text_kv(r.path.relative_to(world_root).as_posix(), r.url)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    cli_args = parser.parse_args()
    sys.exit(main(cli_args))
