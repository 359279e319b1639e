"""Error taxonomy for the board and its remote mirror.

- ValidationError: user-supplied data fails a precondition. The board is
  left unchanged.
- ConfigurationError: the remote store is misconfigured (an unconfigured
  store is not an error; it falls back to the demo board).
- PersistenceError: a remote read or write failed.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all board errors."""


class ValidationError(PipelineError, ValueError):
    """Raised when a card, stage list or import payload is rejected."""


class ConfigurationError(PipelineError):
    """Raised when the remote store settings cannot be used."""


class PersistenceError(PipelineError):
    """Raised when a remote read or write fails.

    Args:
        operation: Name of the adapter operation that failed.
        message: Human readable description.
    """

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
