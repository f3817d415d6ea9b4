"""
cyclesim - Cycle Simulation Kernel

Public API for advancing the simulated city one cycle at a time.
Flat, focused files. One file = one responsibility.
"""

# =============================================================================
# TYPES (Dataclasses)
# =============================================================================
from .types_config import (
    CycleMode,
    MODE_LIVE,
    MODE_DRY_RUN,
    MODE_STRICT,
    MODE_PROFILE,
    replay_mode,
)
from .types_state import (
    Severity,
    Domain,
    RecoveryLevel,
    Event,
    CalendarContext,
    Weather,
    WeatherMood,
    CityDynamics,
    EventArc,
    NeighborhoodMetrics,
    PopulationSnapshot,
    RecoveryState,
    DigestRecord,
    SignalScore,
)
from .types_result import ExecutionStats, ReplayComparison, RecoveryOutcome, CycleResult

# =============================================================================
# ERRORS
# =============================================================================
from .errors import (
    StopRule,
    LedgerUnavailableError,
    ExecutionError,
    IntentValidationError,
    RecordValidationError,
)

# =============================================================================
# CORE
# =============================================================================
from .rng import SeededRng, seeded_rng, seeded_rng_for
from .context import CycleContext, ingest_inputs, reset_cycle_audit_issues
from .cycle import run_cycle, KERNEL_TABLES

# =============================================================================
# SIGNALS
# =============================================================================
from .scoring import ScoreAccumulator, round_half_up
from .signal_civic_load import apply_civic_load
from .signal_cycle_weight import apply_cycle_weight
from .signal_pattern import apply_pattern_detection, detect_pattern
from .signal_migration import apply_migration_drift
from .signal_shock import apply_shock_monitor
from .crisis_spikes import generate_crisis_spikes

# =============================================================================
# RECOVERY
# =============================================================================
from .recovery import (
    apply_cycle_recovery,
    compute_overload_score,
    compute_thresholds,
    merge_recovery_state,
    triggered_level,
)
from .domain_cooldowns import apply_domain_cooldowns

# =============================================================================
# PERSISTENCE
# =============================================================================
from .write_intents import IntentKind, IntentQueue, WriteIntent
from .executor import execute_persist_intents
from .seed_store import (
    CycleSeedRecord,
    compute_checksum,
    save_cycle_seed,
    load_cycle_seed,
    initialize_replay,
    compare_replay_output,
)

# =============================================================================
# PUBLIC API
# =============================================================================
__all__ = [
    # Types
    "CycleMode",
    "MODE_LIVE",
    "MODE_DRY_RUN",
    "MODE_STRICT",
    "MODE_PROFILE",
    "replay_mode",
    "Severity",
    "Domain",
    "RecoveryLevel",
    "Event",
    "CalendarContext",
    "Weather",
    "WeatherMood",
    "CityDynamics",
    "EventArc",
    "NeighborhoodMetrics",
    "PopulationSnapshot",
    "RecoveryState",
    "DigestRecord",
    "SignalScore",
    "ExecutionStats",
    "ReplayComparison",
    "RecoveryOutcome",
    "CycleResult",
    # Errors
    "StopRule",
    "LedgerUnavailableError",
    "ExecutionError",
    "IntentValidationError",
    "RecordValidationError",
    # Core
    "SeededRng",
    "seeded_rng",
    "seeded_rng_for",
    "CycleContext",
    "ingest_inputs",
    "reset_cycle_audit_issues",
    "run_cycle",
    "KERNEL_TABLES",
    # Signals
    "ScoreAccumulator",
    "round_half_up",
    "apply_civic_load",
    "apply_cycle_weight",
    "apply_pattern_detection",
    "detect_pattern",
    "apply_migration_drift",
    "apply_shock_monitor",
    "generate_crisis_spikes",
    # Recovery
    "apply_cycle_recovery",
    "compute_overload_score",
    "compute_thresholds",
    "merge_recovery_state",
    "triggered_level",
    "apply_domain_cooldowns",
    # Persistence
    "IntentKind",
    "IntentQueue",
    "WriteIntent",
    "execute_persist_intents",
    "CycleSeedRecord",
    "compute_checksum",
    "save_cycle_seed",
    "load_cycle_seed",
    "initialize_replay",
    "compare_replay_output",
]
