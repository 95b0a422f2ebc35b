"""
worldstack stack list command.

SUMMARY: List the stacks registered on this machine
"""

from __future__ import annotations

import argparse
import sys

from worldstack.cli import OutputFormatter, add_json_flag, get_config
from worldstack.core.exceptions import WorldStackError
from worldstack.core.registry import StackRegistry

SUMMARY = "List the stacks registered on this machine"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    """List registered stacks sorted by stack name."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))

    try:
        registry = StackRegistry.from_config(get_config(args))
        stacks = sorted(registry.get_all_stacks(), key=lambda e: e.display_name.casefold())
    except WorldStackError as e:
        formatter.error(e, error_code="stack_list_error")
        return 1

    if formatter.json_mode:
        formatter.json_output(
            {
                "registry": str(registry.file_path),
                "stacks": [
                    {
                        "name": e.display_name,
                        "duplicate": e.is_duplicate,
                        "public": e.is_public,
                        "root": str(e.stack_root),
                        "url": e.url,
                    }
                    for e in stacks
                ],
            }
        )
        return 0

    if not stacks:
        formatter.text("No stack registered on this machine. Stacks are registered when they are cloned.")
        return 0
    for e in stacks:
        duplicate = " (duplicate)" if e.is_duplicate else ""
        formatter.text(f"{e.display_name}{duplicate} ({'Public' if e.is_public else 'Private'})")
        formatter.text_kv("root", e.stack_root)
        formatter.text_kv("url", e.url)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    cli_args = parser.parse_args()
    sys.exit(main(cli_args))
