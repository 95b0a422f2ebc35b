"""
worldstack stack clear command.

SUMMARY: Delete the stack registry file
"""

from __future__ import annotations

import argparse
import sys

from worldstack.cli import OutputFormatter, add_json_flag, get_config
from worldstack.core.registry import StackRegistry

SUMMARY = "Delete the stack registry file"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    add_json_flag(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    registry = StackRegistry.from_config(get_config(args))
    if not registry.clear_registry():
        formatter.error(OSError(f"Unable to delete '{registry.file_path}'."), error_code="stack_clear_error")
        return 1
    formatter.success({"registry": str(registry.file_path)}, f"Registry '{registry.file_path}' cleared.")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    cli_args = parser.parse_args()
    sys.exit(main(cli_args))
