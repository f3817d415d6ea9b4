"""
cyclesim/errors.py - Kernel Error Types

StopRule subclasses halt a cycle. ValueError subclasses describe bad data
and are recorded rather than raised, except in strict mode.
"""

from receipts import StopRule
from ledger_store import LedgerUnavailableError

__all__ = [
    "StopRule",
    "LedgerUnavailableError",
    "ExecutionError",
    "IntentValidationError",
    "RecordValidationError",
]


class ExecutionError(StopRule):
    """A destination write failed while running in strict mode."""

    def __init__(self, message: str, destination: str = "", kind: str = ""):
        super().__init__(message)
        self.destination = destination
        self.kind = kind


class IntentValidationError(ValueError):
    """A write intent is malformed (destination, address or values)."""
    pass


class RecordValidationError(ValueError):
    """A ledger row does not satisfy its table schema."""
    pass
