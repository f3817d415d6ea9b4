"""
cyclesim/executor.py - Persistence Executor

The only code path that mutates the ledger store. Drains a cycle's intent
queue in a fixed order:

    1. replace_ops   each replace writes padded rows (row 1 is the header)
    2. updates       grouped by destination in first-seen order; per
                     destination: cells one call each, ranges one call each,
                     then every append coalesced into one append_rows call
    3. logs          same grouping as updates

Within a bucket, intents are ordered by priority (stable for ties).

Dry-run and replay flushes never touch the store: they log and receipt an
intent summary, report every intent as skipped and leave the buckets intact
for inspection. A real flush collects write failures into stats.errors; in
strict mode the first failure raises ExecutionError. Buckets are cleared
once a real flush completes.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from ledger_store import LedgerStore
from receipts import emit_receipt, merkle

from .context import CycleContext
from .errors import ExecutionError
from .types_result import ExecutionStats
from .write_intents import IntentKind, WriteIntent

__all__ = ["execute_persist_intents", "pad_rows", "group_by_destination"]

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def pad_rows(rows: List[List[Any]]) -> List[List[Any]]:
    """Pad every row with "" to the widest row's column count."""
    width = max((len(r) for r in rows), default=0)
    return [list(r) + [""] * (width - len(r)) for r in rows]


def group_by_destination(intents: List[WriteIntent]) -> Dict[str, List[WriteIntent]]:
    """Priority-ordered intents grouped by destination, first-seen order."""
    groups: Dict[str, List[WriteIntent]] = {}
    for intent in sorted(intents, key=lambda i: i.priority):
        groups.setdefault(intent.destination, []).append(intent)
    return groups


class _Flush:
    """One real flush against a store."""

    def __init__(self, store: LedgerStore, stats: ExecutionStats, strict: bool):
        self.store = store
        self.stats = stats
        self.strict = strict

    def _done(self, intents: List[WriteIntent]) -> None:
        for intent in intents:
            self.stats.executed += 1
            self.stats.by_kind[intent.kind.value] += 1
            self.stats.by_destination[intent.destination] = (
                self.stats.by_destination.get(intent.destination, 0) + 1)

    def _call(self, intents: List[WriteIntent], fn, *args) -> None:
        head = intents[0]
        try:
            fn(*args)
        except Exception as e:
            message = f"{head.kind.value} {head.destination}: {e}"
            logger.warning("write failed: %s", message)
            if self.strict:
                raise ExecutionError(message, destination=head.destination,
                                     kind=head.kind.value) from e
            self.stats.errors.append(message)
            return
        self._done(intents)

    def replace(self, intents: List[WriteIntent]) -> None:
        for intent in sorted(intents, key=lambda i: i.priority):
            rows = pad_rows(intent.values)
            logger.debug("replace %s: header=%s rows=%d",
                         intent.destination, rows[0] if rows else [], max(0, len(rows) - 1))
            self._call([intent], self.store.replace_table, intent.destination, rows)

    def grouped(self, intents: List[WriteIntent]) -> None:
        for destination, group in group_by_destination(intents).items():
            for intent in group:
                if intent.kind is IntentKind.CELL:
                    self._call([intent], self.store.set_cell, destination,
                               intent.address.row, intent.address.col, intent.values[0][0])
            for intent in group:
                if intent.kind is IntentKind.RANGE:
                    self._call([intent], self.store.set_range, destination,
                               intent.address.row, intent.address.col, intent.values)
            appends = [i for i in group if i.kind is IntentKind.APPEND]
            rows = [row for intent in appends for row in intent.values]
            if rows:
                self._call(appends, self.store.append_rows, destination, pad_rows(rows))


def execute_persist_intents(ctx: CycleContext, store: LedgerStore) -> ExecutionStats:
    """
    Flush ctx.persist to the store according to ctx.mode.

    Raises:
        ExecutionError: first write failure, strict mode only
    """
    queue = ctx.persist
    mode = ctx.mode
    stats = ExecutionStats(dry_run=mode.dry_run, replay=mode.replay, start_time=_now())

    if not mode.writes_enabled:
        summary = queue.summary()
        stats.skipped = queue.total
        stats.end_time = _now()
        label = "replay" if mode.replay else "dry-run"
        logger.info("%s: skipped %d intents (replace=%d updates=%d logs=%d) by destination %s",
                    label, queue.total, summary["replace_ops"], summary["updates"],
                    summary["logs"], summary["by_destination"])
        ctx.add_receipt(emit_receipt("intent_summary", {
            "cycle_id": ctx.cycle_id,
            "mode": label,
            **summary,
            "intents_root": merkle([i.to_dict() for i in queue.all_intents()]),
        }))
        return stats

    intents_root = merkle([i.to_dict() for i in queue.all_intents()])
    flush = _Flush(store, stats, strict=mode.strict)
    flush.replace(queue.replace_ops)
    flush.grouped(queue.updates)
    flush.grouped(queue.logs)

    stats.end_time = _now()
    queue.clear()

    logger.info("flushed cycle=%s executed=%d errors=%d",
                ctx.cycle_id, stats.executed, len(stats.errors))
    ctx.add_receipt(emit_receipt("execution", {
        "cycle_id": ctx.cycle_id,
        "intents_root": intents_root,
        **stats.to_dict(),
    }))
    return stats
