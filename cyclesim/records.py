"""
cyclesim/records.py - Ledger Record Mapping

The boundary between ledger rows and typed records. Each table the kernel
touches has a TableSpec: ordered (header, field, json type) columns and a
JSON Schema (Draft 2020-12) built from them. Rows are read by header name,
coerced and validated; records are written back in the table's existing
header order, so core logic never indexes columns by string.

A row that fails validation raises RecordValidationError from from_row();
the history loaders skip such rows with a warning so one corrupt row never
stops a cycle.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from jsonschema import Draft202012Validator

from ledger_store import LedgerTable

from .constants import (
    TABLE_CYCLE_DIGEST, TABLE_CYCLE_SEEDS, TABLE_CYCLE_SNAPSHOT,
    TABLE_DOMAIN_COOLDOWNS, TABLE_NEIGHBORHOOD_MAP, TABLE_RECOVERY_STATE,
    TABLE_WORLD_CONFIG, TABLE_WORLD_EVENTS, TABLE_WORLD_POPULATION,
)
from .errors import RecordValidationError
from .types_state import (
    DigestRecord, NeighborhoodMetrics, PopulationSnapshot, RecoveryLevel,
    RecoveryState,
)

logger = logging.getLogger(__name__)


# =============================================================================
# TABLE SPECS
# =============================================================================

@dataclass(frozen=True)
class TableSpec:
    """
    Column layout of one ledger table.

    Attributes:
        name: table name
        columns: (header, field, json type) in default header order
        required: fields that must be present and non-empty
    """
    name: str
    columns: Tuple[Tuple[str, str, str], ...]
    required: Tuple[str, ...] = ()

    @property
    def header(self) -> List[str]:
        return [c[0] for c in self.columns]

    def column_of(self, field_name: str) -> str:
        """Header name for a record field."""
        for header, name, _ in self.columns:
            if name == field_name:
                return header
        raise KeyError(f"{self.name} has no field {field_name!r}")

    def schema(self) -> Dict[str, Any]:
        return {
            "$schema": "https://json-schema.org/draft/2020-12/schema",
            "title": self.name,
            "type": "object",
            "required": list(self.required),
            "properties": {
                field_name: {"type": json_type}
                for _, field_name, json_type in self.columns
            },
        }


DIGEST_SPEC = TableSpec(
    name=TABLE_CYCLE_DIGEST,
    columns=(
        ("Cycle", "cycle", "integer"),
        ("EventsGenerated", "events_generated", "integer"),
        ("WorldEvents", "world_events", "integer"),
        ("Issues", "issues", "integer"),
        ("CivicLoad", "civic_load", "string"),
        ("CivicLoadScore", "civic_load_score", "number"),
        ("MigrationDrift", "migration_drift", "number"),
        ("PatternFlag", "pattern_flag", "string"),
        ("ShockFlag", "shock_flag", "string"),
        ("ShockStartCycle", "shock_start_cycle", "integer"),
        ("StorySeeds", "story_seeds", "integer"),
        ("Sentiment", "sentiment", "number"),
        ("EconomicMood", "economic_mood", "number"),
        ("HighSeverity", "high_severity", "integer"),
        ("CycleWeight", "cycle_weight", "string"),
        ("RecoveryLevel", "recovery_level", "string"),
    ),
    required=("cycle",),
)

RECOVERY_SPEC = TableSpec(
    name=TABLE_RECOVERY_STATE,
    columns=(
        ("Cycle", "cycle", "integer"),
        ("StartCycle", "start_cycle", "integer"),
        ("Window", "window", "integer"),
        ("Duration", "duration", "integer"),
        ("Level", "level", "string"),
        ("OverloadScore", "overload_score", "integer"),
    ),
    required=("cycle", "level"),
)

COOLDOWN_SPEC = TableSpec(
    name=TABLE_DOMAIN_COOLDOWNS,
    columns=(
        ("Cycle", "cycle", "integer"),
        ("ActiveCooldowns", "active_cooldowns", "string"),
    ),
    required=("cycle",),
)

NEIGHBORHOOD_SPEC = TableSpec(
    name=TABLE_NEIGHBORHOOD_MAP,
    columns=(
        ("Neighborhood", "name", "string"),
        ("CrimeIndex", "crime_index", "number"),
        ("Sentiment", "sentiment", "number"),
        ("RetailVitality", "retail_vitality", "number"),
        ("EventAttractiveness", "event_attractiveness", "number"),
        ("MigrationFlow", "migration_flow", "integer"),
    ),
    required=("name",),
)

POPULATION_SPEC = TableSpec(
    name=TABLE_WORLD_POPULATION,
    columns=(
        ("TotalPopulation", "total_population", "number"),
        ("Migration", "migration", "number"),
        ("EmploymentRate", "employment_rate", "number"),
        ("Economy", "economy", "string"),
        ("IllnessRate", "illness_rate", "number"),
    ),
)

CONFIG_SPEC = TableSpec(
    name=TABLE_WORLD_CONFIG,
    columns=(
        ("Key", "key", "string"),
        ("Value", "value", ["string", "number", "boolean"]),
    ),
    required=("key",),
)

SEED_SPEC = TableSpec(
    name=TABLE_CYCLE_SEEDS,
    columns=(
        ("CycleID", "cycle_id", "integer"),
        ("Seed", "seed", "integer"),
        ("Timestamp", "timestamp", "string"),
        ("Weather", "weather", "string"),
        ("Holiday", "holiday", "string"),
        ("EventCount", "event_count", "integer"),
        ("PopulationDelta", "population_delta", "number"),
        ("Checksum", "checksum", "string"),
    ),
    required=("cycle_id", "seed", "checksum"),
)

EVENT_SPEC = TableSpec(
    name=TABLE_WORLD_EVENTS,
    columns=(
        ("Cycle", "cycle", "integer"),
        ("Domain", "domain", "string"),
        ("Severity", "severity", "string"),
        ("Neighborhood", "neighborhood", "string"),
        ("Description", "description", "string"),
        ("Subdomain", "subdomain", "string"),
        ("ImpactScore", "impact_score", "integer"),
        ("Source", "source", "string"),
    ),
    required=("cycle", "domain", "severity"),
)

SNAPSHOT_SPEC = TableSpec(
    name=TABLE_CYCLE_SNAPSHOT,
    columns=(
        ("Key", "key", "string"),
        ("Value", "value", "string"),
    ),
    required=("key",),
)

TABLE_SPECS = {
    spec.name: spec for spec in (
        DIGEST_SPEC, RECOVERY_SPEC, COOLDOWN_SPEC, NEIGHBORHOOD_SPEC,
        POPULATION_SPEC, CONFIG_SPEC, SEED_SPEC, EVENT_SPEC, SNAPSHOT_SPEC,
    )
}

_VALIDATORS = {name: Draft202012Validator(spec.schema()) for name, spec in TABLE_SPECS.items()}


# =============================================================================
# ROW <-> RECORD
# =============================================================================

def _coerce(value: Any, json_type) -> Any:
    """Best-effort conversion of a cell to its column type; failures stay raw."""
    if value is None or value == "":
        return None
    if json_type == "integer":
        try:
            number = float(value)
        except (TypeError, ValueError):
            return value
        return int(number) if number.is_integer() else value
    if json_type == "number":
        if isinstance(value, bool):
            return value
        try:
            return float(value)
        except (TypeError, ValueError):
            return value
    if json_type == "string":
        return value if isinstance(value, str) else str(value)
    return value


def from_row(spec: TableSpec, row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a header-keyed row to a validated field dict.

    Empty cells are omitted so record defaults apply.

    Raises:
        RecordValidationError: if the row violates the table schema
    """
    record = {}
    for header, field_name, json_type in spec.columns:
        value = _coerce(row.get(header), json_type)
        if value is not None:
            record[field_name] = value

    errors = sorted(_VALIDATORS[spec.name].iter_errors(record), key=lambda e: list(e.path))
    if errors:
        detail = "; ".join(
            f"{'.'.join(str(p) for p in e.path) or '<row>'}: {e.message}" for e in errors
        )
        raise RecordValidationError(f"{spec.name} row invalid: {detail}")
    return record


def to_row(spec: TableSpec, record: Dict[str, Any],
           header: Optional[Sequence[str]] = None) -> List[Any]:
    """
    Lay out a record as a row.

    Uses the table's existing header when given (unknown headers get ""),
    otherwise the TableSpec's default header order.
    """
    by_header = {h: record.get(f, "") for h, f, _ in spec.columns}
    return [by_header.get(h, "") for h in (header or spec.header)]


def column_number(spec: TableSpec, table: LedgerTable, field_name: str) -> Optional[int]:
    """1-based column of a field in the table's own header, or None if it has no such column."""
    idx = table.column_index(spec.column_of(field_name))
    return None if idx is None else idx + 1


def read_records(spec: TableSpec, table: LedgerTable) -> List[Tuple[int, Dict[str, Any]]]:
    """
    Valid records of a table with their 1-based ledger row.

    Invalid rows are skipped with a warning.
    """
    out = []
    for i, row in enumerate(table.records()):
        ledger_row = i + 2
        try:
            out.append((ledger_row, from_row(spec, row)))
        except RecordValidationError as e:
            logger.warning("skipping %s row %d: %s", spec.name, ledger_row, e)
    return out


def header_rows(spec: TableSpec) -> List[List[Any]]:
    """Header-only table body, used to create a missing table."""
    return [list(spec.header)]


# =============================================================================
# LOADERS
# =============================================================================

def _build(cls, record: Dict[str, Any], skip: Tuple[str, ...] = ()):
    names = set(cls.__dataclass_fields__)
    return cls(**{k: v for k, v in record.items() if k in names and k not in skip})


def load_digest_history(table: LedgerTable, current_cycle: int,
                        window: int) -> List[DigestRecord]:
    """Digest records strictly older than current_cycle, newest first, at most window."""
    records = [
        _build(DigestRecord, rec)
        for _, rec in read_records(DIGEST_SPEC, table)
        if rec["cycle"] < current_cycle
    ]
    records.sort(key=lambda r: r.cycle, reverse=True)
    return records[:window]


def load_recovery_state(table: LedgerTable, current_cycle: int) -> RecoveryState:
    """Latest persisted state older than current_cycle, or an inactive state."""
    latest = None
    for _, rec in read_records(RECOVERY_SPEC, table):
        if rec["cycle"] >= current_cycle:
            continue
        if latest is None or rec["cycle"] >= latest["cycle"]:
            latest = rec
    if latest is None:
        return RecoveryState()
    try:
        level = RecoveryLevel(str(latest["level"]).lower())
    except ValueError:
        logger.warning("unknown recovery level %r for cycle %s", latest["level"], latest["cycle"])
        return RecoveryState()
    if level is RecoveryLevel.NONE:
        return RecoveryState()
    return RecoveryState(
        start_cycle=int(latest.get("start_cycle", 0)),
        window=int(latest.get("window", 0)),
        duration=int(latest.get("duration", 0)),
        level=level,
    )


def parse_active_cooldowns(text: str) -> Dict[str, int]:
    """'HEALTH:2, SAFETY:1' -> {'HEALTH': 2, 'SAFETY': 1}; 'none' -> {}."""
    out: Dict[str, int] = {}
    for part in (text or "").split(","):
        domain, sep, remaining = part.strip().partition(":")
        if not sep:
            continue
        try:
            out[domain.strip().upper()] = int(remaining)
        except ValueError:
            logger.warning("bad cooldown entry %r", part)
    return out


def load_cooldowns(table: LedgerTable, current_cycle: int) -> Dict[str, int]:
    latest = None
    for _, rec in read_records(COOLDOWN_SPEC, table):
        if rec["cycle"] < current_cycle and (latest is None or rec["cycle"] >= latest["cycle"]):
            latest = rec
    if latest is None:
        return {}
    return parse_active_cooldowns(latest.get("active_cooldowns", ""))


def load_neighborhoods(table: LedgerTable) -> List[NeighborhoodMetrics]:
    return [
        _build(NeighborhoodMetrics, {**rec, "row": ledger_row})
        for ledger_row, rec in read_records(NEIGHBORHOOD_SPEC, table)
    ]


def load_population(table: LedgerTable) -> Optional[PopulationSnapshot]:
    """The last valid World_Population row, or None when the table is empty."""
    rows = read_records(POPULATION_SPEC, table)
    if not rows:
        return None
    return _build(PopulationSnapshot, rows[-1][1])


def load_world_config(table: LedgerTable) -> Dict[str, Any]:
    return {rec["key"]: rec.get("value") for _, rec in read_records(CONFIG_SPEC, table)}


def config_row_index(table: LedgerTable, key: str) -> Optional[int]:
    """1-based ledger row holding `key`, or None."""
    for ledger_row, rec in read_records(CONFIG_SPEC, table):
        if rec["key"] == key:
            return ledger_row
    return None
