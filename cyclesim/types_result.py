"""
cyclesim/types_result.py - Result Dataclasses

What the recovery phase, the executor, the replay comparison and a whole
cycle hand back to their callers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .types_state import RecoveryLevel, RecoveryState


@dataclass(frozen=True)
class RecoveryOutcome:
    """
    Result of one recovery phase.

    Attributes:
        triggered: level the overload score reached this cycle
        level: final level after merging with the persisted state
        overload_score: weighted overload sum
        thresholds: calendar-adjusted {light, moderate, heavy}
        multipliers: (event, hook, texture) suppression factors
        state: state to persist for the next cycle
    """
    triggered: RecoveryLevel
    level: RecoveryLevel
    overload_score: int
    thresholds: Dict[str, int]
    multipliers: tuple
    state: RecoveryState

    @property
    def event_suppression(self) -> float:
        return self.multipliers[0]


@dataclass
class ExecutionStats:
    """
    Executor statistics for one flush.

    dry_run and replay flushes report every queued intent as skipped and
    executed == 0.
    """
    executed: int = 0
    skipped: int = 0
    errors: List[str] = field(default_factory=list)
    by_kind: Dict[str, int] = field(default_factory=lambda: {
        "cell": 0, "range": 0, "append": 0, "replace": 0,
    })
    by_destination: Dict[str, int] = field(default_factory=dict)
    dry_run: bool = False
    replay: bool = False
    start_time: str = ""
    end_time: str = ""

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executed": self.executed,
            "skipped": self.skipped,
            "errors": list(self.errors),
            "by_kind": dict(self.by_kind),
            "by_destination": dict(self.by_destination),
            "dry_run": self.dry_run,
            "replay": self.replay,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }


@dataclass(frozen=True)
class ReplayComparison:
    """Replay checksum check. A mismatch is reported, never raised."""
    match: bool
    cycle_id: int
    original_checksum: Optional[str]
    current_checksum: str
    differences: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match": self.match,
            "cycle_id": self.cycle_id,
            "original_checksum": self.original_checksum,
            "current_checksum": self.current_checksum,
            "differences": list(self.differences),
        }


@dataclass
class CycleResult:
    """
    Everything a finished cycle reports.

    Attributes:
        cycle_id: cycle that ran
        mode: run mode as a dict
        snapshot: CycleContext.snapshot()
        stats: executor statistics
        recovery: recovery phase outcome (None if the phase failed)
        replay: replay comparison (replay mode only)
        audit_issues: degraded phases and dropped inputs
        phase_timings_ms: per-phase timings (profile mode only)
        receipts: audit receipts emitted during the cycle
    """
    cycle_id: int
    mode: Dict[str, Any]
    snapshot: Dict[str, Any]
    stats: ExecutionStats
    recovery: Optional[RecoveryOutcome] = None
    replay: Optional[ReplayComparison] = None
    audit_issues: List[str] = field(default_factory=list)
    phase_timings_ms: Dict[str, float] = field(default_factory=dict)
    receipts: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """No write errors and, on replay, a matching checksum."""
        if self.stats.errors:
            return False
        if self.replay is not None and not self.replay.match:
            return False
        return True

    @property
    def summary(self) -> Dict[str, Any]:
        return self.snapshot.get("summary", {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle_id": self.cycle_id,
            "mode": self.mode,
            "ok": self.ok,
            "recovery_level": self.recovery.level.value if self.recovery else "none",
            "stats": self.stats.to_dict(),
            "replay": self.replay.to_dict() if self.replay else None,
            "audit_issues": list(self.audit_issues),
            "phase_timings_ms": dict(self.phase_timings_ms),
            "summary": self.summary,
        }
