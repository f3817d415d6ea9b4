"""
cyclesim/seed_store.py - Cycle Seed Store and Replay

Each cycle leaves one Cycle_Seeds record: its seed and a checksum over a
fixed set of outputs

    weather type | holiday | event count | story seeds | bonds | illness*1000

A later replay looks the record up, reinstalls the same seed, re-runs the
cycle and compares checksums field by field. A mismatch is reported, never
raised.

The seed record is queued as a log-priority append; nothing here writes to
the store directly.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ledger_store import LedgerStore, LedgerTable
from receipts import dual_hash, emit_receipt

from .constants import TABLE_CYCLE_SEEDS
from .context import CycleContext
from .records import SEED_SPEC, read_records, to_row
from .rng import seeded_rng
from .scoring import round_half_up
from .types_result import ReplayComparison

logger = logging.getLogger(__name__)

CHECKSUM_FIELDS = ("Weather", "Holiday", "EventCount", "StorySeeds", "Bonds", "IllnessRate")


@dataclass(frozen=True)
class CycleSeedRecord:
    cycle_id: int
    seed: int
    checksum: str
    timestamp: str = ""
    weather: str = ""
    holiday: str = "none"
    event_count: int = 0
    population_delta: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "seed": self.seed,
            "timestamp": self.timestamp,
            "weather": self.weather,
            "holiday": self.holiday,
            "event_count": self.event_count,
            "population_delta": self.population_delta,
            "checksum": self.checksum,
        }


# =============================================================================
# CHECKSUM
# =============================================================================

def checksum_parts(ctx: CycleContext) -> List[str]:
    return [
        ctx.weather.type or "none",
        ctx.calendar.holiday or "none",
        str(len(ctx.current_events())),
        str(ctx.count("story_seeds")),
        str(ctx.count("relationship_bonds")),
        str(round_half_up(ctx.population.illness_rate * 1000)),
    ]


def compute_checksum(ctx: CycleContext) -> str:
    """Delimiter-joined checksum over the fixed output fields."""
    return "|".join(checksum_parts(ctx))


# =============================================================================
# SAVE / LOAD
# =============================================================================

def find_seed_record(table: LedgerTable, cycle_id: int) -> Optional[CycleSeedRecord]:
    for _, rec in read_records(SEED_SPEC, table):
        if rec["cycle_id"] == int(cycle_id):
            return CycleSeedRecord(
                cycle_id=rec["cycle_id"],
                seed=rec["seed"],
                checksum=rec["checksum"],
                timestamp=rec.get("timestamp", ""),
                weather=rec.get("weather", ""),
                holiday=rec.get("holiday", "none"),
                event_count=rec.get("event_count", 0),
                population_delta=rec.get("population_delta", 0.0),
            )
    return None


def load_cycle_seed(store: LedgerStore, cycle_id: int) -> Optional[CycleSeedRecord]:
    """The stored record for cycle_id, or None."""
    return find_seed_record(store.read(TABLE_CYCLE_SEEDS), cycle_id)


def save_cycle_seed(ctx: CycleContext) -> Optional[CycleSeedRecord]:
    """
    Queue this cycle's seed record as a log append.

    Skipped when Cycle_Seeds already holds a record for the cycle, so there
    is never more than one per cycle id.
    """
    existing = ctx.tables.get(TABLE_CYCLE_SEEDS)
    if existing is not None and find_seed_record(existing, ctx.cycle_id) is not None:
        logger.info("seed for cycle %s already stored, not queuing another", ctx.cycle_id)
        return None

    record = CycleSeedRecord(
        cycle_id=ctx.cycle_id,
        seed=ctx.seed,
        checksum=compute_checksum(ctx),
        timestamp=ctx.timestamp,
        weather=ctx.weather.type,
        holiday=ctx.calendar.holiday,
        event_count=len(ctx.current_events()),
        population_delta=ctx.population.migration,
    )
    header = existing.header if existing is not None and existing.header else None
    ctx.persist.queue_log(
        TABLE_CYCLE_SEEDS,
        to_row(SEED_SPEC, record.to_dict(), header),
        reason=f"Save seed for cycle {ctx.cycle_id}",
    )
    ctx.set_signal("cycle_checksum", record.checksum)
    return record


# =============================================================================
# REPLAY
# =============================================================================

def initialize_replay(ctx: CycleContext, table: LedgerTable) -> Optional[CycleSeedRecord]:
    """
    Install the stored seed for ctx.cycle_id, falling back to the cycle id.

    Returns:
        the stored record, or None when the cycle was never recorded
    """
    record = find_seed_record(table, ctx.cycle_id)
    seed = record.seed if record is not None else ctx.cycle_id
    if record is None:
        logger.warning("no stored seed for cycle %s, seeding from the cycle id", ctx.cycle_id)
    ctx.seed = seed
    ctx.rng = seeded_rng(seed)
    ctx.set_signal("replay_seed", seed)
    return record


def compare_replay_output(ctx: CycleContext,
                          original: Optional[CycleSeedRecord]) -> ReplayComparison:
    """Recompute the checksum after a replay and diff it against the stored one."""
    current = compute_checksum(ctx)
    if original is None:
        result = ReplayComparison(
            match=False,
            cycle_id=ctx.cycle_id,
            original_checksum=None,
            current_checksum=current,
            differences=[{"field": "record", "original": None, "current": "missing"}],
        )
    else:
        differences = []
        old_parts = original.checksum.split("|")
        new_parts = current.split("|")
        for i, name in enumerate(CHECKSUM_FIELDS):
            old = old_parts[i] if i < len(old_parts) else None
            new = new_parts[i]
            if old != new:
                differences.append({"field": name, "original": old, "current": new})
        result = ReplayComparison(
            match=current == original.checksum,
            cycle_id=ctx.cycle_id,
            original_checksum=original.checksum,
            current_checksum=current,
            differences=differences,
        )

    if result.match:
        logger.info("replay cycle=%s matches checksum %s", ctx.cycle_id, current)
    else:
        logger.warning("replay cycle=%s mismatch: %s", ctx.cycle_id,
                       ", ".join(f"{d['field']}: {d['original']} vs {d['current']}"
                                 for d in result.differences))

    ctx.set_signal("replay_comparison", result.to_dict())
    ctx.add_receipt(emit_receipt("replay_check", {
        "cycle_id": ctx.cycle_id,
        "match": result.match,
        "checksum_hash": dual_hash(current),
        "differences": result.differences,
    }))
    return result
