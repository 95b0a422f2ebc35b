"""Argument registration helpers shared by the commands."""
from __future__ import annotations

import argparse
from pathlib import Path


def add_json_flag(parser: argparse.ArgumentParser) -> None:
    """Add --json flag for JSON output mode.

    Args:
        parser: ArgumentParser to add the flag to
    """
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def add_definition_args(parser: argparse.ArgumentParser) -> None:
    """Options locating a World definition file and its Stack."""
    parser.add_argument(
        "--world-name",
        help="World name: root element of the definition file (default: file name without extension)",
    )
    parser.add_argument(
        "--world-root",
        type=Path,
        help="Root folder of the World repositories (default: folder of the definition file)",
    )
    parser.add_argument(
        "--stack-folder",
        type=Path,
        help="Stack working folder used for commits (default: folder of the definition file)",
    )
    parser.add_argument(
        "--proxy-root",
        type=Path,
        help="Local proxy repositories root: enables non-url Repository values",
    )


__all__ = ["add_json_flag", "add_definition_args"]
