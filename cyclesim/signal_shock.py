"""
cyclesim/signal_shock.py - Shock Monitor

Detects sudden breaks in the city's state by comparing this cycle to the
previous digest record, then carries the shock across cycles:

    shock-flag      fresh shock (or a persistent one with enough evidence)
    shock-fading    3-4 cycles in, fewer than 2 reasons
    shock-chronic   5+ cycles in, fewer than 3 reasons
    shock-resolved  conditions cleared after a shock
    none

Calendar context raises spike thresholds on busy days and adds a handful of
calendar-specific shocks.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .context import CycleContext
from .types_state import DigestRecord, Domain, Severity

logger = logging.getLogger(__name__)

HIGH_ACTIVITY_HOLIDAYS = (
    "Independence", "NewYearsEve", "Halloween", "OpeningDay",
    "OaklandPride", "ArtSoulFestival", "CincoDeMayo",
)
TRAVEL_HOLIDAYS = (
    "Thanksgiving", "Holiday", "NewYear", "NewYearsEve",
    "MemorialDay", "LaborDay", "Independence",
)
CROWD_HOLIDAYS = (
    "Independence", "NewYearsEve", "Halloween", "OpeningDay",
    "OaklandPride", "CincoDeMayo", "DiaDeMuertos",
)
FIREWORKS_HOLIDAYS = ("Independence", "NewYearsEve")
CULTURAL_HOLIDAYS = (
    "Juneteenth", "CincoDeMayo", "DiaDeMuertos", "OaklandPride",
    "LunarNewYear", "MLKDay",
)

SHOCKED = ("shock-flag", "shock-fading", "shock-chronic")


@dataclass(frozen=True)
class ShockThresholds:
    event_spike: int
    chaos_spike: int
    chaos_saturation: int
    migration: int


def shock_thresholds(ctx: CycleContext) -> ShockThresholds:
    cal = ctx.calendar
    event_mod = chaos_mod = migration_mod = 0

    if cal.holiday in HIGH_ACTIVITY_HOLIDAYS:
        event_mod += 3
        chaos_mod += 2
    if cal.holiday in TRAVEL_HOLIDAYS:
        migration_mod += 50
    if cal.holiday in CROWD_HOLIDAYS:
        chaos_mod += 2
    if cal.is_first_friday:
        event_mod += 2
        chaos_mod += 1
    if cal.sports_season == "championship":
        event_mod += 4
        chaos_mod += 3
        migration_mod += 60
    elif cal.sports_season in ("playoffs", "post-season"):
        event_mod += 2
        chaos_mod += 2
        migration_mod += 40
    if cal.is_creation_day:
        event_mod -= 2
        chaos_mod -= 1

    return ShockThresholds(
        event_spike=10 + event_mod,
        chaos_spike=4 + chaos_mod,
        chaos_saturation=8 + chaos_mod,
        migration=150 + migration_mod,
    )


def detect_shock_reasons(ctx: CycleContext, prev: Optional[DigestRecord]) -> List[str]:
    """Every shock rule that fires this cycle, in rule order."""
    prev = prev or DigestRecord(cycle=0)
    events = ctx.current_events()
    chaos = len(events)
    generated = int(ctx.signal("events_generated", chaos))
    dyn = ctx.dynamics
    cal = ctx.calendar
    mood = ctx.weather_mood
    media = ctx.media
    econ = ctx.economic_mood
    th = shock_thresholds(ctx)
    reasons: List[str] = []

    if generated - prev.events_generated >= th.event_spike:
        reasons.append("event spike")

    high = sum(1 for e in events if e.severity is Severity.HIGH)
    medium = sum(1 for e in events if e.severity is Severity.MEDIUM)
    if high >= 2:
        reasons.append("high severity cluster")
    if medium >= 4:
        reasons.append("medium severity wave")

    if chaos - prev.world_events >= th.chaos_spike:
        reasons.append("chaos spike")
    if chaos >= th.chaos_saturation:
        reasons.append("chaos saturation")

    if ctx.weather.impact >= 1.5:
        reasons.append("severe weather")
    if mood.conflict_potential is not None and mood.conflict_potential >= 0.5:
        reasons.append("weather conflict")
    if mood.comfort_index is not None and mood.comfort_index < 0.2:
        reasons.append("weather distress")

    if prev.sentiment - dyn.sentiment >= 0.3:
        reasons.append("sentiment collapse")
    if dyn.sentiment <= -0.5:
        reasons.append("severe negative sentiment")

    if prev.economic_mood - econ >= 15:
        reasons.append("economic crash")
    if econ <= 25:
        reasons.append("economic crisis")

    if abs(float(ctx.signal("demographic_migration", 0))) >= th.migration:
        reasons.append("migration surge")
    if ctx.population.employment_rate < 0.85:
        reasons.append("employment crisis")

    if ctx.signal("civic_load") == "load-strain":
        reasons.append("civic overload")
    if ctx.signal("civic_load_score") >= 15:
        reasons.append("civic strain extreme")

    if prev.pattern_flag == "stability-streak" and generated >= 10:
        reasons.append("stability break")
    if ctx.signal("pattern_flag") == "strain-trend":
        reasons.append("strain trend")

    arcs = ctx.event_arcs
    if sum(1 for a in arcs if a.is_peak) >= 2:
        reasons.append("arc peak cluster")
    if sum(1 for a in arcs if a.tension >= 8) >= 2:
        reasons.append("high tension arcs")

    if media.crisis_saturation >= 0.8:
        reasons.append("media crisis saturation")
    if media.coverage_intensity == "saturated":
        reasons.append("media saturation")

    # calendar-specific
    if cal.holiday_priority == "major" and generated < 5 and chaos == 0:
        reasons.append("holiday dead-zone")
    if cal.sports_season == "championship" and dyn.sentiment <= -0.4:
        reasons.append("championship tension")
    if cal.holiday in FIREWORKS_HOLIDAYS and sum(1 for e in events if e.domain is Domain.SAFETY) >= 3:
        reasons.append("fireworks crisis")
    if cal.holiday in CULTURAL_HOLIDAYS and dyn.cultural_activity < 0.7:
        reasons.append("cultural disconnect")
    if cal.is_creation_day and chaos >= 5:
        reasons.append("creation day disruption")
    if cal.is_first_friday and dyn.sentiment <= -0.35:
        reasons.append("first friday tension")
    if cal.holiday in TRAVEL_HOLIDAYS and sum(1 for e in events if e.domain is Domain.INFRASTRUCTURE) >= 2:
        reasons.append("holiday transit crisis")
    if dyn.community_engagement < 0.6 and dyn.sentiment <= -0.3:
        reasons.append("community withdrawal")

    return reasons


def resolve_shock_flag(reasons: List[str], prev_flag: str, prev_start: int,
                       cycle: int) -> tuple:
    """
    Carry a shock across cycles.

    Returns:
        (flag, start_cycle, duration, reasons) with reasons extended by any
        persistence note
    """
    reasons = list(reasons)
    if reasons:
        if prev_flag in SHOCKED and prev_start > 0:
            start = prev_start
        else:
            start = cycle
        duration = cycle - start

        if duration >= 5:
            if len(reasons) >= 3:
                flag = "shock-flag"
            else:
                flag = "shock-chronic"
                reasons.append(f"chronic (normalized after {duration} cycles)")
        elif duration >= 3:
            if len(reasons) >= 2:
                flag = "shock-flag"
            else:
                flag = "shock-fading"
                reasons.append(f"fading (cycle {duration})")
        else:
            flag = "shock-flag"
        return flag, start, duration, reasons

    if prev_flag in ("shock-flag", "shock-fading"):
        reasons.append("resolved this cycle")
        return "shock-resolved", 0, 0, reasons
    if prev_flag == "shock-chronic":
        reasons.append("chronic condition resolved")
        return "shock-resolved", 0, 0, reasons
    return "none", 0, 0, reasons


def apply_shock_monitor(ctx: CycleContext) -> str:
    history = ctx.signal("digest_history", [])
    prev = history[0] if history else None

    detected = detect_shock_reasons(ctx, prev)
    flag, start, duration, reasons = resolve_shock_flag(
        detected,
        prev.shock_flag if prev else "none",
        prev.shock_start_cycle if prev else 0,
        ctx.cycle_id,
    )

    th = shock_thresholds(ctx)
    ctx.set_signal("shock_flag", flag)
    ctx.set_signal("shock_reasons", reasons)
    ctx.set_signal("shock_score", len(reasons))
    ctx.set_signal("shock_start_cycle", start)
    ctx.set_signal("shock_duration", duration)
    ctx.set_signal("shock_thresholds", {
        "event_threshold": th.event_spike,
        "chaos_threshold": th.chaos_spike,
        "migration_threshold": th.migration,
    })

    if flag != "none":
        logger.info("shock cycle=%s flag=%s duration=%d reasons=%s",
                    ctx.cycle_id, flag, duration, ", ".join(detected))
    return flag
