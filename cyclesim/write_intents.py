"""
cyclesim/write_intents.py - Write-Intent Queue

Every external mutation a cycle wants is recorded here as data. Nothing in
this module performs I/O; the executor drains the queue at the end of the
cycle.

Buckets and default priorities (lower runs first):
    replace_ops  50   full-table replaces
    updates     100   cells, ranges, appends
    logs        200   append-only audit rows

A malformed intent is rejected, its message kept in `validation_errors`,
and in strict mode the IntentValidationError is raised instead.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .constants import PRIORITY_LOG, PRIORITY_REPLACE, PRIORITY_UPDATE
from .errors import IntentValidationError

__all__ = [
    "IntentKind",
    "Address",
    "WriteIntent",
    "IntentQueue",
    "validate_intent",
]

logger = logging.getLogger(__name__)


class IntentKind(str, Enum):
    CELL = "cell"
    RANGE = "range"
    APPEND = "append"
    REPLACE = "replace"


@dataclass(frozen=True)
class Address:
    """1-based row/col of the top-left cell."""
    row: int
    col: int


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class WriteIntent:
    """A deferred write. `values` is always 2D."""
    kind: IntentKind
    destination: str
    values: List[List[Any]]
    address: Optional[Address] = None
    priority: int = PRIORITY_UPDATE
    reason: str = ""
    domain: str = "unknown"
    created_at: str = field(default_factory=_now)

    @property
    def row_count(self) -> int:
        return len(self.values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "destination": self.destination,
            "address": None if self.address is None else
                {"row": self.address.row, "col": self.address.col},
            "values": self.values,
            "priority": self.priority,
            "reason": self.reason,
            "domain": self.domain,
            "created_at": self.created_at,
        }


def validate_intent(intent: WriteIntent) -> None:
    """Raise IntentValidationError if the intent cannot be executed."""
    if not isinstance(intent.destination, str) or not intent.destination.strip():
        raise IntentValidationError("intent has no destination")
    if not isinstance(intent.kind, IntentKind):
        raise IntentValidationError(
            f"{intent.destination}: unknown intent kind {intent.kind!r}")
    if intent.kind in (IntentKind.CELL, IntentKind.RANGE):
        if intent.address is None:
            raise IntentValidationError(
                f"{intent.destination}: {intent.kind.value} intent needs an address")
        if intent.address.row < 1 or intent.address.col < 1:
            raise IntentValidationError(
                f"{intent.destination}: address must be 1-based, got "
                f"row={intent.address.row} col={intent.address.col}")
    if not isinstance(intent.values, list) or not all(isinstance(r, list) for r in intent.values):
        raise IntentValidationError(
            f"{intent.destination}: values must be a list of rows")
    if not intent.values:
        raise IntentValidationError(
            f"{intent.destination}: {intent.kind.value} intent has no values")
    if intent.kind is IntentKind.REPLACE and not intent.values[0]:
        raise IntentValidationError(
            f"{intent.destination}: replace intent has an empty header row")
    if intent.kind is IntentKind.CELL and (len(intent.values) != 1 or len(intent.values[0]) != 1):
        raise IntentValidationError(
            f"{intent.destination}: cell intent must carry exactly one value")


def _rows(rows: Sequence[Sequence[Any]]) -> List[List[Any]]:
    return [list(r) for r in rows]


class IntentQueue:
    """The three intent buckets for one cycle."""

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.replace_ops: List[WriteIntent] = []
        self.updates: List[WriteIntent] = []
        self.logs: List[WriteIntent] = []
        self.validation_errors: List[str] = []

    # -------------------------------------------------------------------------
    # queuing
    # -------------------------------------------------------------------------

    def _add(self, bucket: List[WriteIntent], intent: WriteIntent) -> Optional[WriteIntent]:
        try:
            validate_intent(intent)
        except IntentValidationError as e:
            self.validation_errors.append(str(e))
            logger.warning("rejected write intent: %s", e)
            if self.strict:
                raise
            return None
        bucket.append(intent)
        return intent

    def queue_cell(self, destination: str, row: int, col: int, value: Any,
                   reason: str = "", domain: str = "unknown",
                   priority: int = PRIORITY_UPDATE) -> Optional[WriteIntent]:
        return self._add(self.updates, WriteIntent(
            kind=IntentKind.CELL, destination=destination, values=[[value]],
            address=Address(row, col), priority=priority, reason=reason, domain=domain))

    def queue_range(self, destination: str, row: int, col: int,
                    values: Sequence[Sequence[Any]], reason: str = "",
                    domain: str = "unknown",
                    priority: int = PRIORITY_UPDATE) -> Optional[WriteIntent]:
        return self._add(self.updates, WriteIntent(
            kind=IntentKind.RANGE, destination=destination, values=_rows(values),
            address=Address(row, col), priority=priority, reason=reason, domain=domain))

    def queue_append(self, destination: str, row: Sequence[Any], reason: str = "",
                     domain: str = "unknown",
                     priority: int = PRIORITY_UPDATE) -> Optional[WriteIntent]:
        return self._add(self.updates, WriteIntent(
            kind=IntentKind.APPEND, destination=destination, values=[list(row)],
            priority=priority, reason=reason, domain=domain))

    def queue_batch_append(self, destination: str, rows: Sequence[Sequence[Any]],
                           reason: str = "", domain: str = "unknown",
                           priority: int = PRIORITY_UPDATE) -> Optional[WriteIntent]:
        return self._add(self.updates, WriteIntent(
            kind=IntentKind.APPEND, destination=destination, values=_rows(rows),
            priority=priority, reason=reason, domain=domain))

    def queue_replace(self, destination: str, rows: Sequence[Sequence[Any]],
                      reason: str = "", domain: str = "unknown",
                      priority: int = PRIORITY_REPLACE) -> Optional[WriteIntent]:
        """Replace the whole table; rows[0] is the header."""
        return self._add(self.replace_ops, WriteIntent(
            kind=IntentKind.REPLACE, destination=destination, values=_rows(rows),
            priority=priority, reason=reason, domain=domain))

    def queue_log(self, destination: str, row: Sequence[Any], reason: str = "",
                  domain: str = "audit",
                  priority: int = PRIORITY_LOG) -> Optional[WriteIntent]:
        return self._add(self.logs, WriteIntent(
            kind=IntentKind.APPEND, destination=destination, values=[list(row)],
            priority=priority, reason=reason, domain=domain))

    # -------------------------------------------------------------------------
    # introspection
    # -------------------------------------------------------------------------

    def all_intents(self) -> List[WriteIntent]:
        return self.replace_ops + self.updates + self.logs

    @property
    def total(self) -> int:
        return len(self.replace_ops) + len(self.updates) + len(self.logs)

    def __len__(self) -> int:
        return self.total

    def intents_for(self, destination: str) -> List[WriteIntent]:
        return [i for i in self.all_intents() if i.destination == destination]

    def counts_by_domain(self) -> Dict[str, int]:
        return dict(Counter(i.domain for i in self.all_intents()))

    def counts_by_kind(self) -> Dict[str, int]:
        return dict(Counter(i.kind.value for i in self.all_intents()))

    def counts_by_destination(self) -> Dict[str, int]:
        return dict(Counter(i.destination for i in self.all_intents()))

    def summary(self) -> Dict[str, Any]:
        return {
            "total_intents": self.total,
            "replace_ops": len(self.replace_ops),
            "updates": len(self.updates),
            "logs": len(self.logs),
            "by_kind": self.counts_by_kind(),
            "by_domain": self.counts_by_domain(),
            "by_destination": self.counts_by_destination(),
            "validation_errors": list(self.validation_errors),
        }

    def clear(self) -> None:
        self.replace_ops = []
        self.updates = []
        self.logs = []
