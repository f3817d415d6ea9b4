"""
cyclesim/cycle.py - Cycle Orchestrator

run_cycle() advances the city by one cycle. Phases run in a fixed, linear
order against one CycleContext:

    history      digest window, persisted recovery state, cooldowns,
                 neighborhoods, population
    world_state  static inputs, then external providers
    crisis       crisis spikes (thinned by the persisted recovery level)
    analysis     civic load, migration drift, pattern detection, shock monitor
    recovery     recovery state machine, domain cooldowns
    digest       cycle weight, digest record
    persistence  queue every write, then execute
    replay       checksum comparison (replay mode only)

The ledger store is pinged and every table is read before the first phase;
LedgerUnavailableError propagates from there. After that a failing phase is
recorded as an audit issue "<phase>: <message>" and the cycle carries on,
unless the mode is strict.
"""

import json
import logging
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

import config_schema
from ledger_store import LedgerStore, LedgerTable
from receipts import StopRule, emit_receipt

from .constants import (
    SUPPRESSION_MULTIPLIERS, TABLE_CYCLE_DIGEST, TABLE_CYCLE_SEEDS,
    TABLE_CYCLE_SNAPSHOT, TABLE_DOMAIN_COOLDOWNS, TABLE_NEIGHBORHOOD_MAP,
    TABLE_RECOVERY_STATE, TABLE_WORLD_CONFIG, TABLE_WORLD_EVENTS,
    TABLE_WORLD_POPULATION,
)
from .context import CycleContext, ingest_inputs, reset_cycle_audit_issues
from .crisis_spikes import generate_crisis_spikes
from .domain_cooldowns import apply_domain_cooldowns
from .executor import execute_persist_intents
from .records import (
    CONFIG_SPEC, COOLDOWN_SPEC, DIGEST_SPEC, EVENT_SPEC, NEIGHBORHOOD_SPEC,
    RECOVERY_SPEC, SEED_SPEC, SNAPSHOT_SPEC, TableSpec, config_row_index,
    column_number, header_rows, load_cooldowns, load_digest_history, load_neighborhoods,
    load_population, load_recovery_state, load_world_config, to_row,
)
from .recovery import apply_cycle_recovery
from .rng import seeded_rng
from .seed_store import compare_replay_output, initialize_replay, save_cycle_seed
from .signal_civic_load import apply_civic_load
from .signal_cycle_weight import apply_cycle_weight
from .signal_migration import apply_migration_drift
from .signal_pattern import apply_pattern_detection
from .signal_shock import apply_shock_monitor
from .types_config import MODE_LIVE, CycleMode
from .types_result import CycleResult, ExecutionStats
from .types_state import DigestRecord, RecoveryState, Severity

__all__ = ["run_cycle", "Provider", "KERNEL_TABLES"]

logger = logging.getLogger(__name__)

Provider = Callable[[CycleContext], None]

KERNEL_TABLES = (
    TABLE_WORLD_CONFIG, TABLE_CYCLE_SEEDS, TABLE_CYCLE_DIGEST,
    TABLE_RECOVERY_STATE, TABLE_DOMAIN_COOLDOWNS, TABLE_WORLD_EVENTS,
    TABLE_NEIGHBORHOOD_MAP, TABLE_WORLD_POPULATION, TABLE_CYCLE_SNAPSHOT,
)


# =============================================================================
# PHASE RUNNER
# =============================================================================

class _PhaseRunner:
    """Runs phases with failure capture and optional timing."""

    def __init__(self, ctx: CycleContext):
        self.ctx = ctx

    def run(self, name: str, fn: Callable, *args: Any) -> Any:
        ctx = self.ctx
        start = time.perf_counter()
        try:
            return fn(*args)
        except StopRule:
            raise
        except Exception as e:
            if ctx.mode.strict:
                raise
            logger.warning("phase %s failed in cycle %s", name, ctx.cycle_id, exc_info=True)
            ctx.record_issue(f"{name}: {e}")
            return None
        finally:
            if ctx.mode.profile:
                elapsed = (time.perf_counter() - start) * 1000
                ctx.audit["phase_timings_ms"][name] = round(elapsed, 3)


# =============================================================================
# PHASES
# =============================================================================

def _load_history(ctx: CycleContext, config) -> None:
    tables = ctx.tables
    history = load_digest_history(tables[TABLE_CYCLE_DIGEST], ctx.cycle_id, config.digest_window)
    ctx.set_signal("digest_history", history)

    prev = load_recovery_state(tables[TABLE_RECOVERY_STATE], ctx.cycle_id)
    ctx.set_signal("recovery_state", prev)
    event_m, hook_m, texture_m = SUPPRESSION_MULTIPLIERS[prev.level.value]
    ctx.set_signal("event_suppression", event_m)
    ctx.set_signal("hook_suppression", hook_m)
    ctx.set_signal("texture_suppression", texture_m)

    cooldowns = load_cooldowns(tables[TABLE_DOMAIN_COOLDOWNS], ctx.cycle_id)
    ctx.set_signal("domain_cooldowns", cooldowns)
    ctx.set_signal("suppress_domains", sorted(d for d, v in cooldowns.items() if v > 0))

    ctx.set_signal("neighborhood_map", load_neighborhoods(tables[TABLE_NEIGHBORHOOD_MAP]))
    population = load_population(tables[TABLE_WORLD_POPULATION])
    if population is not None:
        ctx.set_signal("world_population", population)

    logger.info("history cycle=%s digest=%d recovery=%s cooldowns=%d",
                ctx.cycle_id, len(history), prev.level.value, len(cooldowns))


def _world_state(ctx: CycleContext, inputs: Optional[Dict[str, Any]],
                 providers: Iterable[Provider], runner: _PhaseRunner) -> None:
    ingest_inputs(ctx, inputs or {})
    for provider in providers:
        name = getattr(provider, "__name__", provider.__class__.__name__)
        runner.run(f"provider:{name}", provider, ctx)


def _build_digest(ctx: CycleContext) -> DigestRecord:
    events = ctx.current_events()
    record = DigestRecord(
        cycle=ctx.cycle_id,
        events_generated=int(ctx.signal("events_generated", len(events))),
        world_events=len(events),
        issues=len(ctx.audit_issues),
        civic_load=ctx.signal("civic_load"),
        civic_load_score=float(ctx.signal("civic_load_score")),
        migration_drift=float(ctx.signal("migration_drift")),
        pattern_flag=ctx.signal("pattern_flag"),
        shock_flag=ctx.signal("shock_flag"),
        shock_start_cycle=int(ctx.signal("shock_start_cycle", 0)),
        story_seeds=ctx.count("story_seeds"),
        sentiment=ctx.dynamics.sentiment,
        economic_mood=ctx.economic_mood,
        high_severity=sum(1 for e in events if e.severity is Severity.HIGH),
        cycle_weight=ctx.signal("cycle_weight", "low-signal"),
        recovery_level=ctx.signal("recovery_level", "none"),
    )
    ctx.set_signal("cycle_digest", record)
    return record


# =============================================================================
# PERSISTENCE
# =============================================================================

class _Writer:
    """Queues this cycle's writes; creates empty tables with their header first."""

    def __init__(self, ctx: CycleContext):
        self.ctx = ctx
        self.created: set = set()

    def header(self, spec: TableSpec) -> List[str]:
        table = self.ctx.tables.get(spec.name)
        if table is not None and table.header:
            return table.header
        if spec.name not in self.created:
            self.ctx.persist.queue_replace(spec.name, header_rows(spec),
                                           reason=f"Create {spec.name}", domain="schema")
            self.created.add(spec.name)
        return spec.header

    def append(self, spec: TableSpec, record: Dict[str, Any], reason: str, domain: str) -> None:
        header = self.header(spec)
        self.ctx.persist.queue_append(spec.name, to_row(spec, record, header),
                                      reason=reason, domain=domain)


def _contiguous_runs(rows: List[tuple]) -> List[List[tuple]]:
    """Split (row, value) pairs sorted by row into runs of consecutive rows."""
    runs: List[List[tuple]] = []
    for item in sorted(rows):
        if runs and item[0] == runs[-1][-1][0] + 1:
            runs[-1].append(item)
        else:
            runs.append([item])
    return runs


def _queue_cycle_count(ctx: CycleContext, writer: _Writer) -> None:
    table = ctx.tables[TABLE_WORLD_CONFIG]
    row = config_row_index(table, "cycleCount")
    if row is None:
        writer.append(CONFIG_SPEC, {"key": "cycleCount", "value": ctx.cycle_id},
                      reason="Initialize cycleCount", domain="config")
        return
    col = column_number(CONFIG_SPEC, table, "value") or 2
    ctx.persist.queue_cell(TABLE_WORLD_CONFIG, row, col, ctx.cycle_id,
                           reason=f"Advance to cycle {ctx.cycle_id}", domain="config")


def _queue_migration_flows(ctx: CycleContext) -> None:
    flows = ctx.signal("neighborhood_migration", {})
    table = ctx.tables[TABLE_NEIGHBORHOOD_MAP]
    pairs = [(f["row"], f["drift"]) for f in flows.values() if f.get("row")]
    if not pairs:
        return
    col = column_number(NEIGHBORHOOD_SPEC, table, "migration_flow")
    if col is None:
        col = len(table.header) + 1
        ctx.persist.queue_cell(TABLE_NEIGHBORHOOD_MAP, 1, col,
                               NEIGHBORHOOD_SPEC.column_of("migration_flow"),
                               reason="Add MigrationFlow column", domain="migration")
    for run in _contiguous_runs(pairs):
        ctx.persist.queue_range(TABLE_NEIGHBORHOOD_MAP, run[0][0], col,
                                [[drift] for _, drift in run],
                                reason="Neighborhood migration flow", domain="migration")


def _queue_writes(ctx: CycleContext, digest: Optional[DigestRecord]) -> None:
    writer = _Writer(ctx)

    writer.header(SEED_SPEC)
    save_cycle_seed(ctx)
    _queue_cycle_count(ctx, writer)
    _queue_migration_flows(ctx)

    if digest is not None:
        writer.append(DIGEST_SPEC, asdict(digest), reason="Cycle digest", domain="digest")

    state: RecoveryState = ctx.signal("recovery_state", RecoveryState())
    writer.append(RECOVERY_SPEC, {
        "cycle": ctx.cycle_id,
        "start_cycle": state.start_cycle,
        "window": state.window,
        "duration": state.duration,
        "level": state.level.value,
        "overload_score": int(ctx.signal("overload_score", 0)),
    }, reason="Recovery state", domain="recovery")

    writer.append(COOLDOWN_SPEC, {
        "cycle": ctx.cycle_id,
        "active_cooldowns": ctx.signal("active_cooldowns", "none"),
    }, reason="Domain cooldowns", domain="cooldowns")

    events = ctx.current_events()
    if events:
        header = writer.header(EVENT_SPEC)
        ctx.persist.queue_batch_append(
            TABLE_WORLD_EVENTS,
            [to_row(EVENT_SPEC, e.to_dict(), header) for e in events],
            reason=f"{len(events)} world events", domain="events")

    snapshot = ctx.snapshot()
    rows = [list(SNAPSHOT_SPEC.header)] + [
        [key, json.dumps(value, sort_keys=True, default=str)]
        for key, value in snapshot["summary"].items()
    ]
    ctx.persist.queue_replace(TABLE_CYCLE_SNAPSHOT, rows,
                              reason=f"Snapshot of cycle {ctx.cycle_id}", domain="snapshot")


# =============================================================================
# ENTRY POINT
# =============================================================================

def _read_tables(store: LedgerStore) -> Dict[str, LedgerTable]:
    store.ping()
    return {name: store.read(name) for name in KERNEL_TABLES}


def run_cycle(store: LedgerStore,
              mode: CycleMode = MODE_LIVE,
              config=None,
              inputs: Optional[Dict[str, Any]] = None,
              providers: Iterable[Provider] = ()) -> CycleResult:
    """
    Run one cycle against a ledger store.

    Args:
        store: ledger store collaborator
        mode: run mode (dry-run and replay never write)
        config: KernelConfig, defaults when None
        inputs: collaborator output (calendar, weather, dynamics, events, ...)
        providers: callables run in order during world_state, each given the context

    Returns:
        CycleResult

    Raises:
        LedgerUnavailableError: the store cannot be reached; no phase ran
        ExecutionError: a write failed in strict mode
    """
    config = config or config_schema.KernelConfig.default()
    tables = _read_tables(store)

    world_config = load_world_config(tables[TABLE_WORLD_CONFIG])
    cycle_count = int(float(world_config.get("cycleCount") or 0))
    cycle_id = mode.replay_cycle_id if mode.replay else cycle_count + 1

    ctx = CycleContext(
        cycle_id=cycle_id,
        timestamp=datetime.now(timezone.utc).isoformat(),
        seed=cycle_id,
        mode=mode,
        rng=seeded_rng(cycle_id),
        config=world_config,
        tables=tables,
    )
    reset_cycle_audit_issues(ctx)
    runner = _PhaseRunner(ctx)
    logger.info("cycle %s starting (%s)", cycle_id, ", ".join(
        k for k, v in mode.to_dict().items() if v is True) or "live")

    original_seed = None
    if mode.replay:
        original_seed = initialize_replay(ctx, tables[TABLE_CYCLE_SEEDS])

    runner.run("history", _load_history, ctx, config)
    runner.run("world_state", _world_state, ctx, inputs, providers, runner)
    runner.run("crisis_spikes", generate_crisis_spikes, ctx, config.max_crisis_spikes)

    runner.run("civic_load", apply_civic_load, ctx)
    runner.run("migration_drift", apply_migration_drift, ctx)
    runner.run("pattern_detection", apply_pattern_detection, ctx)
    runner.run("shock_monitor", apply_shock_monitor, ctx)

    recovery = runner.run("recovery", apply_cycle_recovery, ctx, config.recovery_thresholds)
    runner.run("domain_cooldowns", apply_domain_cooldowns, ctx)

    runner.run("cycle_weight", apply_cycle_weight, ctx)
    digest = runner.run("digest", _build_digest, ctx)

    runner.run("queue_writes", _queue_writes, ctx, digest)
    stats = runner.run("execute", execute_persist_intents, ctx, store) or ExecutionStats(
        dry_run=mode.dry_run, replay=mode.replay)

    comparison = None
    if mode.replay:
        comparison = runner.run("replay_compare", compare_replay_output, ctx, original_seed)

    timings = dict(ctx.audit["phase_timings_ms"])
    if mode.profile:
        slowest = max(timings.items(), key=lambda kv: kv[1]) if timings else ("-", 0.0)
        logger.info("cycle %s timings: total=%.3fms slowest=%s (%.3fms)",
                    cycle_id, sum(timings.values()), slowest[0], slowest[1])

    ctx.add_receipt(emit_receipt("cycle", {
        "cycle_id": cycle_id,
        "mode": mode.to_dict(),
        "config_hash": config.config_hash(),
        "cycle_weight": ctx.signal("cycle_weight", "low-signal"),
        "recovery_level": ctx.signal("recovery_level", "none"),
        "audit_issues": len(ctx.audit_issues),
        "executed": stats.executed,
        "skipped": stats.skipped,
    }))

    return CycleResult(
        cycle_id=cycle_id,
        mode=mode.to_dict(),
        snapshot=ctx.snapshot(),
        stats=stats,
        recovery=recovery,
        replay=comparison,
        audit_issues=list(ctx.audit_issues),
        phase_timings_ms=timings,
        receipts=list(ctx.audit["receipts"]),
    )
