# spectrum-engine/spectrum_engine/errors.py
"""
Error taxonomy for the spectrum engine.

Every error carries the name of the failing operation and the parameters it
was called with, so a message read from a log is enough to reproduce it.
"""

from typing import Any, Dict, Optional


class SpectrumEngineError(Exception):
    """Base class for all spectrum engine failures.

    Args:
        message: Human-readable description.
        operation: Name of the operation that failed, e.g. ``"read_signal"``.
        **params: Parameters of the failing call, rendered into the message.
    """

    def __init__(self, message: str, operation: Optional[str] = None, **params: Any) -> None:
        self.message = message
        self.operation = operation
        self.params: Dict[str, Any] = params
        super().__init__(self._render())

    def _render(self) -> str:
        if not self.operation:
            return self.message
        args = ", ".join(f"{k}={v!r}" for k, v in self.params.items())
        return f"{self.operation}({args}): {self.message}"


class InvalidArgument(SpectrumEngineError, ValueError):
    """Malformed lengths, sizes, rates or paths."""


class NotFound(SpectrumEngineError, FileNotFoundError):
    """Input file does not exist."""


class FormatError(SpectrumEngineError):
    """The decoder rejected the file content. Not retried."""


class DeviceError(SpectrumEngineError):
    """The output device could not be opened or failed while streaming."""
