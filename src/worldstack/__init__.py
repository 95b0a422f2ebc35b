"""
worldstack - declarative multi-repository stacks

A Stack is a set of git repositories laid out on disk according to a World
definition file. This package tracks the Stacks known on the machine and reads,
validates and edits World definition files.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
