"""
cyclesim/context.py - Cycle Context

The single mutable aggregate threaded through every phase of one cycle.

Phases read earlier signals through typed accessors and write their own with
set_signal(). There is no way to delete a signal. A signal that was never
written resolves to its documented default (SIGNAL_DEFAULTS), so consumers
never fail on absence.

Collaborator inputs (calendar, weather, dynamics, economy, arcs, hooks,
events) arrive as plain dicts and are coerced to typed records by
ingest_inputs(). World events are only ever read back through
current_events(), which filters to this cycle's id.
"""

import copy
import logging
from dataclasses import dataclass, field, fields, is_dataclass, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from ledger_store import LedgerTable

from .constants import SIGNAL_DEFAULTS
from .rng import SeededRng, seeded_rng_for
from .types_config import CycleMode
from .types_state import (
    CalendarContext, CityDynamics, EconomicRipple, Event, EventArc,
    MediaEffects, NeighborhoodEconomy, NeighborhoodMetrics,
    PopulationSnapshot, StoryHook, Weather, WeatherMood,
)
from .write_intents import IntentQueue

__all__ = ["CycleContext", "ingest_inputs", "reset_cycle_audit_issues"]

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class CycleContext:
    """
    Everything one cycle knows.

    Attributes:
        cycle_id: the cycle being computed
        timestamp: ISO8601 time the cycle started
        seed: seed behind `rng` (cycle id, or the stored seed on replay)
        mode: run mode
        rng: default RNG stream; use rng_for(salt) for per-domain streams
        config: World_Config key/values read at cycle start
        summary: named signals
        persist: write-intent queue, drained by the executor
        audit: issues, phase timings and receipts for this cycle
        tables: ledger snapshots read at cycle start, keyed by table name
    """
    cycle_id: int
    timestamp: str
    seed: int
    mode: CycleMode
    rng: SeededRng
    config: Dict[str, Any] = field(default_factory=dict)
    summary: Dict[str, Any] = field(default_factory=dict)
    persist: Optional[IntentQueue] = None
    audit: Dict[str, Any] = field(default_factory=dict)
    tables: Dict[str, LedgerTable] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.persist is None:
            self.persist = IntentQueue(strict=self.mode.strict)
        self.audit.setdefault("issues", [])
        self.audit.setdefault("phase_timings_ms", {})
        self.audit.setdefault("receipts", [])

    # -------------------------------------------------------------------------
    # signals
    # -------------------------------------------------------------------------

    def signal(self, name: str, default: Any = _MISSING) -> Any:
        """Value of a signal, or its documented default when absent."""
        if name in self.summary and self.summary[name] is not None:
            return self.summary[name]
        if default is not _MISSING:
            return default
        return copy.copy(SIGNAL_DEFAULTS.get(name))

    def set_signal(self, name: str, value: Any) -> None:
        if value is None:
            raise ValueError(f"signal {name} cannot be cleared")
        self.summary[name] = value

    def has_signal(self, name: str) -> bool:
        return self.summary.get(name) is not None

    # -------------------------------------------------------------------------
    # typed views
    # -------------------------------------------------------------------------

    @property
    def calendar(self) -> CalendarContext:
        return self.signal("calendar", CalendarContext())

    @property
    def weather(self) -> Weather:
        return self.signal("weather", Weather())

    @property
    def weather_mood(self) -> WeatherMood:
        return self.signal("weather_mood", WeatherMood())

    @property
    def dynamics(self) -> CityDynamics:
        return self.signal("city_dynamics", CityDynamics())

    @property
    def population(self) -> PopulationSnapshot:
        return self.signal("world_population", PopulationSnapshot())

    @property
    def media(self) -> MediaEffects:
        return self.signal("media_effects", MediaEffects())

    @property
    def economic_mood(self) -> float:
        return float(self.signal("economic_mood"))

    @property
    def event_arcs(self) -> List[EventArc]:
        return list(self.signal("event_arcs"))

    def count(self, name: str) -> int:
        """Length of a list-valued signal."""
        return len(self.signal(name))

    def current_events(self) -> List[Event]:
        """World events for this cycle only; older events never leak in."""
        return [e for e in self.signal("world_events") if e.cycle == self.cycle_id]

    def add_events(self, events: List[Event]) -> None:
        self.summary["world_events"] = list(self.signal("world_events")) + list(events)

    # -------------------------------------------------------------------------
    # audit
    # -------------------------------------------------------------------------

    @property
    def audit_issues(self) -> List[str]:
        return self.audit["issues"]

    def record_issue(self, message: str) -> None:
        logger.warning("cycle %s: %s", self.cycle_id, message)
        self.audit["issues"].append(message)

    def add_receipt(self, receipt: Dict[str, Any]) -> None:
        self.audit["receipts"].append(receipt)

    # -------------------------------------------------------------------------
    # randomness
    # -------------------------------------------------------------------------

    def rng_for(self, salt: str) -> SeededRng:
        """Independent stream for one domain, derived from this cycle's seed."""
        return seeded_rng_for(self.seed, salt)

    # -------------------------------------------------------------------------
    # export
    # -------------------------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """JSON-serialisable view of the finalized cycle."""
        return {
            "cycle_id": self.cycle_id,
            "timestamp": self.timestamp,
            "seed": self.seed,
            "mode": self.mode.to_dict(),
            "summary": {k: _plain(v) for k, v in sorted(self.summary.items())},
            "audit_issues": list(self.audit_issues),
            "phase_timings_ms": dict(self.audit["phase_timings_ms"]),
        }


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Event):
        return value.to_dict()
    if is_dataclass(value) and not isinstance(value, type):
        return {k: _plain(v) for k, v in asdict(value).items()}
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_plain(v) for v in value]
    return value


def reset_cycle_audit_issues(ctx: CycleContext) -> None:
    """Start the cycle with an empty issue list."""
    ctx.audit["issues"] = []


# =============================================================================
# INPUT INTAKE
# =============================================================================

_CAMEL = {
    "holidayPriority": "holiday_priority",
    "isFirstFriday": "is_first_friday",
    "isCreationDay": "is_creation_day",
    "sportsSeason": "sports_season",
    "comfortIndex": "comfort_index",
    "conflictPotential": "conflict_potential",
    "culturalActivity": "cultural_activity",
    "communityEngagement": "community_engagement",
    "publicSpaces": "public_spaces",
    "coverageIntensity": "coverage_intensity",
    "crisisSaturation": "crisis_saturation",
}


def _coerce(cls, data: Any):
    """Build a frozen record from a dict, ignoring unknown keys."""
    if isinstance(data, cls):
        return data
    if not isinstance(data, dict):
        return cls()
    names = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        key = _CAMEL.get(key, key)
        if key in names and value is not None:
            kwargs[key] = value
    return cls(**kwargs)


def ingest_inputs(ctx: CycleContext, inputs: Dict[str, Any]) -> None:
    """
    Merge collaborator output into the context as typed signals.

    Events outside the fixed domain set are recorded as audit issues and
    dropped. Unrecognized keys are stored as-is.
    """
    for key, value in (inputs or {}).items():
        if key == "calendar":
            ctx.set_signal("calendar", _coerce(CalendarContext, value))
        elif key == "weather":
            ctx.set_signal("weather", _coerce(Weather, value))
        elif key == "weather_mood":
            ctx.set_signal("weather_mood", _coerce(WeatherMood, value))
        elif key == "city_dynamics":
            ctx.set_signal("city_dynamics", _coerce(CityDynamics, value))
        elif key == "media_effects":
            ctx.set_signal("media_effects", _coerce(MediaEffects, value))
        elif key == "world_population":
            ctx.set_signal("world_population", _coerce(PopulationSnapshot, value))
        elif key == "event_arcs":
            ctx.set_signal("event_arcs", [_coerce(EventArc, a) for a in value or []])
        elif key == "story_hooks":
            ctx.set_signal("story_hooks", [_coerce(StoryHook, h) for h in value or []])
        elif key == "economic_ripples":
            ctx.set_signal("economic_ripples", [_coerce(EconomicRipple, r) for r in value or []])
        elif key == "neighborhood_economies":
            ctx.set_signal("neighborhood_economies", {
                name: _coerce(NeighborhoodEconomy, econ) for name, econ in (value or {}).items()
            })
        elif key == "neighborhood_map":
            ctx.set_signal("neighborhood_map", [
                _coerce(NeighborhoodMetrics, n) for n in value or [] if isinstance(n, dict) and n.get("name")
            ])
        elif key == "world_events":
            ctx.add_events(_ingest_events(ctx, value or []))
        elif value is not None:
            ctx.set_signal(key, value)


def _ingest_events(ctx: CycleContext, raw: List[Any]) -> List[Event]:
    events = []
    for item in raw:
        if isinstance(item, Event):
            events.append(item)
            continue
        try:
            events.append(Event.from_dict(item, default_cycle=ctx.cycle_id))
        except (ValueError, TypeError, AttributeError) as e:
            ctx.record_issue(f"intake: dropped event {item!r}: {e}")
    return events
