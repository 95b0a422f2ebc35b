"""Machine-wide stack registry."""
from __future__ import annotations

from .stack_registry import (
    DUPLICATE_PREFIX,
    PRIVATE_STACK_NAME,
    PUBLIC_STACK_NAME,
    STACK_REGISTRY_FILE_NAME,
    RegistryEntry,
    StackRegistry,
    parse_registry_line,
)

__all__ = [
    "DUPLICATE_PREFIX",
    "PRIVATE_STACK_NAME",
    "PUBLIC_STACK_NAME",
    "STACK_REGISTRY_FILE_NAME",
    "RegistryEntry",
    "StackRegistry",
    "parse_registry_line",
]
