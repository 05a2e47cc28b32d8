"""Exception hierarchy for the frontier engine.

Infeasible scalarizations are not errors: the oracle reports them as ``None``.
"""
from typing import Optional


class FLPError(Exception):
    """Base class for all package errors."""

    def __init__(self, message: str, suggestion: Optional[str] = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = self.message
        if self.suggestion:
            msg += f" ({self.suggestion})"
        return msg


class ConfigurationError(FLPError, ValueError):
    """Invalid run options, rejected before any oracle call."""


class InstanceFormatError(FLPError, ValueError):
    """Malformed instance text or inconsistent instance data."""


class OracleError(FLPError, RuntimeError):
    """The solver failed; the run cannot continue."""
