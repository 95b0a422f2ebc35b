"""CLI output: a JSON document on stdout, or human-readable lines."""
from __future__ import annotations

import json
import sys
from typing import Any, Dict, Optional

from worldstack.core.exceptions import WorldStackError


class OutputFormatter:
    """Output formatter shared by every command (``--json`` selects the mode)."""

    def __init__(self, json_mode: bool = False, indent: int = 2):
        self.json_mode = json_mode
        self.indent = indent

    def _dump(self, data: Any) -> str:
        return json.dumps(data, indent=self.indent, default=str)

    def success(self, data: Dict[str, Any], message: str, *, status: str = "success") -> None:
        """Print ``data`` (JSON mode) or ``message`` (text mode)."""
        if self.json_mode:
            print(self._dump({"status": status, **data}))
        else:
            print(message)

    def error(self, error: Exception, message: Optional[str] = None, *, error_code: str = "error") -> None:
        """Report ``error`` on stderr.

        Args:
            error: The exception that occurred
            message: Optional human-readable message (defaults to str(error))
            error_code: Error code for JSON output
        """
        msg = message or str(error)
        if not self.json_mode:
            print(f"Error: {msg}", file=sys.stderr)
            return
        payload: Dict[str, Any] = {"error": error_code, "message": msg}
        if isinstance(error, WorldStackError) and error.context:
            payload["context"] = error.context
        print(self._dump(payload), file=sys.stderr)

    def json_output(self, data: Any) -> None:
        print(self._dump(data))

    def text(self, message: str) -> None:
        if not self.json_mode:
            print(message)

    def text_kv(self, key: str, value: Any, prefix: str = "  ") -> None:
        if not self.json_mode:
            print(f"{prefix}{key}: {value}")


__all__ = ["OutputFormatter"]
