"""Structured diagnostics for multi-error validation passes.

Validation of a definition file never stops at the first problem: every
error and warning found during one pass is recorded here (and logged), and
the caller receives ``None`` instead of a partial result when any error was
recorded.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Literal

DiagnosticLevel = Literal["error", "warning", "info"]

_LEVELS = {"error": logging.ERROR, "warning": logging.WARNING, "info": logging.INFO}


@dataclass(frozen=True)
class Diagnostic:
    level: DiagnosticLevel
    message: str


@dataclass
class Diagnostics:
    """Collects the problems reported by one operation."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("worldstack"))
    entries: List[Diagnostic] = field(default_factory=list)

    def _add(self, level: DiagnosticLevel, message: str) -> None:
        self.entries.append(Diagnostic(level, message))
        self.logger.log(_LEVELS[level], "%s", message)

    def error(self, message: str) -> None:
        self._add("error", message)

    def warning(self, message: str) -> None:
        self._add("warning", message)

    def info(self, message: str) -> None:
        self._add("info", message)

    @property
    def errors(self) -> List[str]:
        return [d.message for d in self.entries if d.level == "error"]

    @property
    def warnings(self) -> List[str]:
        return [d.message for d in self.entries if d.level == "warning"]

    @property
    def has_errors(self) -> bool:
        return any(d.level == "error" for d in self.entries)


__all__ = ["Diagnostic", "Diagnostics", "DiagnosticLevel"]
