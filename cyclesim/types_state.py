"""
cyclesim/types_state.py - Typed Cycle Records

Records that flow through the cycle context: events, calendar and weather
inputs, dynamics vectors, arcs, history rows and the persisted recovery state.
Inputs from collaborators are coerced into these types once, at intake, so
signal modules never look up loosely-typed keys.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from .constants import (
    DEFAULT_ECONOMIC_MOOD, DEFAULT_EMPLOYMENT_RATE, DEFAULT_ILLNESS_RATE,
    DEFAULT_SEASON, DEFAULT_SPORTS_SEASON, DEFAULT_WEATHER_IMPACT,
    DEFAULT_WEATHER_TYPE,
)


def _num(value: Any, default: float) -> float:
    """Float from a loosely-typed input; None and blanks give default."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# =============================================================================
# ENUMS
# =============================================================================

class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Normalize a severity label. Unknown labels are low."""
        text = str(value or "").strip().lower()
        if text in ("high", "major", "critical"):
            return cls.HIGH
        if text in ("medium", "moderate"):
            return cls.MEDIUM
        return cls.LOW


class Domain(str, Enum):
    HEALTH = "HEALTH"
    INFRASTRUCTURE = "INFRASTRUCTURE"
    CIVIC = "CIVIC"
    ECONOMIC = "ECONOMIC"
    SAFETY = "SAFETY"
    ENVIRONMENT = "ENVIRONMENT"
    CULTURE = "CULTURE"

    @classmethod
    def parse(cls, value: Any) -> "Domain":
        """Strict parse; raises ValueError for anything outside the fixed set."""
        return cls(str(value).strip().upper())


_LEVEL_ORDER = ("none", "light", "moderate", "heavy")


class RecoveryLevel(str, Enum):
    """none < light < moderate < heavy."""
    NONE = "none"
    LIGHT = "light"
    MODERATE = "moderate"
    HEAVY = "heavy"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self.value)

    def step_down(self) -> "RecoveryLevel":
        return RecoveryLevel(_LEVEL_ORDER[max(0, self.rank - 1)])

    @staticmethod
    def highest(*levels: "RecoveryLevel") -> "RecoveryLevel":
        return max(levels, key=lambda lvl: lvl.rank)


# =============================================================================
# EVENTS
# =============================================================================

@dataclass(frozen=True)
class Event:
    """A world event. Severity is set at creation and never inferred later."""
    cycle: int
    domain: Domain
    severity: Severity
    neighborhood: str = ""
    description: str = ""
    subdomain: str = ""
    impact_score: int = 0
    source: str = "ENGINE"
    tags: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_cycle: int) -> "Event":
        """Build from a collaborator dict. Raises ValueError on an unknown domain."""
        return cls(
            cycle=int(data.get("cycle", default_cycle)),
            domain=Domain.parse(data.get("domain", "")),
            severity=Severity.parse(data.get("severity")),
            neighborhood=str(data.get("neighborhood", "")),
            description=str(data.get("description", "")),
            subdomain=str(data.get("subdomain", "")),
            impact_score=int(_num(data.get("impact_score", data.get("impactScore")), 0)),
            source=str(data.get("source", "ENGINE")),
            tags=dict(data.get("tags", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["domain"] = self.domain.value
        d["severity"] = self.severity.value
        return d


# =============================================================================
# COLLABORATOR INPUTS
# =============================================================================

@dataclass(frozen=True)
class CalendarContext:
    season: str = DEFAULT_SEASON
    holiday: str = "none"
    holiday_priority: str = "none"
    is_first_friday: bool = False
    is_creation_day: bool = False
    sports_season: str = DEFAULT_SPORTS_SEASON

    @property
    def has_holiday(self) -> bool:
        return self.holiday != "none"


@dataclass(frozen=True)
class Weather:
    type: str = DEFAULT_WEATHER_TYPE
    impact: float = DEFAULT_WEATHER_IMPACT


@dataclass(frozen=True)
class WeatherMood:
    comfort_index: Optional[float] = None
    conflict_potential: Optional[float] = None


@dataclass(frozen=True)
class CityDynamics:
    """Named floats describing how the city feels this cycle (1.0 = baseline)."""
    sentiment: float = 0.0
    cultural_activity: float = 1.0
    community_engagement: float = 1.0
    public_spaces: float = 1.0
    traffic: float = 1.0


@dataclass(frozen=True)
class EventArc:
    arc_id: str = ""
    phase: str = ""
    tension: float = 0.0
    domain: str = ""
    neighborhood: str = ""

    @property
    def is_peak(self) -> bool:
        return self.phase == "peak"

    @property
    def is_active(self) -> bool:
        return self.phase != "resolved"


@dataclass(frozen=True)
class StoryHook:
    priority: int = 1
    domain: str = ""
    text: str = ""


@dataclass(frozen=True)
class EconomicRipple:
    impact: float = 0.0
    kind: str = ""


@dataclass(frozen=True)
class MediaEffects:
    coverage_intensity: str = "normal"
    crisis_saturation: float = 0.0


@dataclass(frozen=True)
class NeighborhoodEconomy:
    mood: float = DEFAULT_ECONOMIC_MOOD
    descriptor: str = "stable"


@dataclass(frozen=True)
class NeighborhoodMetrics:
    """One Neighborhood_Map row. `row` is the 1-based ledger row."""
    name: str
    row: int = 0
    crime_index: float = 1.0
    sentiment: float = 0.0
    retail_vitality: float = 1.0
    event_attractiveness: float = 1.0


@dataclass(frozen=True)
class PopulationSnapshot:
    migration: float = 0.0
    total_population: float = 400000.0
    employment_rate: float = DEFAULT_EMPLOYMENT_RATE
    economy: str = "stable"
    illness_rate: float = DEFAULT_ILLNESS_RATE


# =============================================================================
# DERIVED / PERSISTED STATE
# =============================================================================

@dataclass
class SignalScore:
    """Output of a rule accumulator."""
    value: float
    flag: str
    reasons: List[str] = field(default_factory=list)
    calendar_factors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RecoveryState:
    """Persisted recovery window. duration is 0 whenever no window is active."""
    start_cycle: int = 0
    window: int = 0
    duration: int = 0
    level: RecoveryLevel = RecoveryLevel.NONE

    @property
    def active(self) -> bool:
        return self.level is not RecoveryLevel.NONE


@dataclass(frozen=True)
class DigestRecord:
    """One Cycle_Digest row: what later cycles need to detect trends."""
    cycle: int
    events_generated: int = 0
    world_events: int = 0
    issues: int = 0
    civic_load: str = "stable"
    civic_load_score: float = 0.0
    migration_drift: float = 0.0
    pattern_flag: str = "none"
    shock_flag: str = "none"
    shock_start_cycle: int = 0
    story_seeds: int = 0
    sentiment: float = 0.0
    economic_mood: float = DEFAULT_ECONOMIC_MOOD
    high_severity: int = 0
    cycle_weight: str = "low-signal"
    recovery_level: str = "none"
