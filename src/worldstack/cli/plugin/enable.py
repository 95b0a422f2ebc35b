"""
worldstack plugin enable command.

SUMMARY: Enable a plugin of a World and commit the Stack
"""

from __future__ import annotations

import argparse
import sys

from worldstack.cli.plugin import _toggle

SUMMARY = "Enable a plugin of a World and commit the Stack"


def register_args(parser: argparse.ArgumentParser) -> None:
    """Register command-specific arguments."""
    _toggle.register_args(parser)


def main(args: argparse.Namespace) -> int:
    return _toggle.run(args, enable=True)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    cli_args = parser.parse_args()
    sys.exit(main(cli_args))
