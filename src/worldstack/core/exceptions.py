from __future__ import annotations

from typing import Any, Dict, Mapping


class WorldStackError(Exception):
    """Base exception for worldstack."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ContractViolationError(WorldStackError, RuntimeError):
    """Raised when calling code breaks a usage contract (a bug, never bad input)."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WorldStackError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class InvalidRepositoryUrlError(WorldStackError, ValueError):
    """Raised when a repository url cannot be canonicalized."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WorldStackError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class ConfigError(WorldStackError, ValueError):
    """Raised when the merged configuration is invalid."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WorldStackError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class DefinitionFileError(WorldStackError, OSError):
    """Raised when a World definition file cannot be read or parsed."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WorldStackError.__init__(self, message, context=context)
        OSError.__init__(self, message)


class StackRegistryError(WorldStackError, OSError):
    """Raised when the stack registry file cannot be rewritten."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        WorldStackError.__init__(self, message, context=context)
        OSError.__init__(self, message)


__all__ = [
    "WorldStackError",
    "ContractViolationError",
    "InvalidRepositoryUrlError",
    "ConfigError",
    "DefinitionFileError",
    "StackRegistryError",
]
