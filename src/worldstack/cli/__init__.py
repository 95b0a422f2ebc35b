"""
worldstack CLI package.

Provides the command-line interface with auto-discovery of commands
from subfolders (stack/, world/, plugin/).

Framework utilities for building CLI commands:
- _output: Output formatting (JSON/text modes)
- _args: Common argument registration helpers
- _utils: Shared CLI utilities
"""
from ._output import OutputFormatter
from ._args import add_definition_args, add_json_flag
from ._utils import get_config, load_world_definition, print_diagnostics

__all__ = [
    # Output formatting
    "OutputFormatter",
    # Argument helpers
    "add_json_flag",
    "add_definition_args",
    # Utilities
    "get_config",
    "load_world_definition",
    "print_diagnostics",
]
