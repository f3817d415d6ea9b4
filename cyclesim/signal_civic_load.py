"""
cyclesim/signal_civic_load.py - Civic Load Indicator

How much strain the city's civic fabric is under this cycle. Reads this
cycle's events and audit issues, weather, sentiment, economy, arcs, pattern
and shock flags and the calendar; writes:

    civic_load                  stable | minor-variance | load-strain
    civic_load_score            0..30
    civic_load_factors          human-readable reasons
    civic_load_calendar_factors calendar contributions
"""

import logging

from .constants import CIVIC_LOAD_CAP, CIVIC_LOAD_STRAIN, CIVIC_LOAD_VARIANCE
from .context import CycleContext
from .scoring import ScoreAccumulator
from .types_state import Severity, SignalScore

logger = logging.getLogger(__name__)

HIGH_STRAIN_HOLIDAYS = ("Independence", "NewYearsEve", "Halloween", "Thanksgiving")
MODERATE_STRAIN_HOLIDAYS = (
    "OpeningDay", "OaklandPride", "ArtSoulFestival", "CincoDeMayo",
    "Juneteenth", "DiaDeMuertos",
)
CIVIC_REST_HOLIDAYS = (
    "MLKDay", "PresidentsDay", "MemorialDay", "LaborDay",
    "VeteransDay", "Holiday", "NewYear",
)

MAX_COUNTED_ISSUES = 5
SEVERITY_SUBTOTAL_CAP = 12
MAX_COUNTED_ARCS = 3

PATTERN_POINTS = {
    "micro-event-wave": 1,
    "strain-trend": 3,
    "stability-streak": -2,
    "calm-after-shock": -1,
}


def apply_civic_load(ctx: CycleContext) -> SignalScore:
    events = ctx.current_events()
    issues = ctx.audit_issues
    dyn = ctx.dynamics
    mood = ctx.weather_mood
    arcs = [a for a in ctx.event_arcs if a.is_active]
    chaos = len(events)

    acc = ScoreAccumulator(floor=0, cap=CIVIC_LOAD_CAP)

    # Audit issues, at most 5 counted
    if issues:
        acc.add(min(len(issues), MAX_COUNTED_ISSUES) * 2,
                f"{len(issues)} audit issues" if len(issues) >= 3 else None)

    if chaos >= 5:
        acc.add(4, "high event volume")
    elif chaos >= 2:
        acc.add(2)

    high = sum(1 for e in events if e.severity is Severity.HIGH)
    medium = sum(1 for e in events if e.severity is Severity.MEDIUM)
    acc.add_capped(high * 3 + medium * 2, SEVERITY_SUBTOTAL_CAP,
                   f"{high} high-severity event(s)" if high else None)

    impact = ctx.weather.impact
    if impact >= 1.4:
        acc.add(4, "severe weather")
    elif impact >= 1.3:
        acc.add(2)

    if mood.comfort_index is not None and mood.comfort_index < 0.3:
        acc.add(2, "weather discomfort")
    if mood.conflict_potential is not None and mood.conflict_potential > 0.3:
        acc.add(1)

    if dyn.sentiment <= -0.3:
        acc.add(3, "negative sentiment")
    elif dyn.sentiment >= 0.3:
        acc.add(1)

    econ = ctx.economic_mood
    if econ <= 30:
        acc.add(3, "economic distress")
    elif econ <= 40:
        acc.add(1)

    migration = abs(float(ctx.signal("demographic_migration", 0)))
    if migration >= 100:
        acc.add(3, "migration surge")
    elif migration >= 50:
        acc.add(2)

    peak = [a for a in arcs if a.is_peak]
    if peak:
        acc.add(min(len(peak), MAX_COUNTED_ARCS) * 2, f"{len(peak)} arc(s) at peak")
    acc.add(min(sum(1 for a in arcs if a.tension >= 7), MAX_COUNTED_ARCS))

    pattern = ctx.signal("pattern_flag")
    if pattern in PATTERN_POINTS:
        acc.add(PATTERN_POINTS[pattern], "strain trend" if pattern == "strain-trend" else None)

    if ctx.signal("shock_flag") != "none":
        acc.add(4, "shock event")

    _apply_calendar(acc, ctx, chaos)

    result = acc.classify(
        [(CIVIC_LOAD_STRAIN, "load-strain"), (CIVIC_LOAD_VARIANCE, "minor-variance")],
        default="stable",
    )

    ctx.set_signal("civic_load", result.flag)
    ctx.set_signal("civic_load_score", result.value)
    ctx.set_signal("civic_load_factors", result.reasons)
    ctx.set_signal("civic_load_calendar_factors", result.calendar_factors)

    logger.info("civic load cycle=%s events=%d active_arcs=%d score=%s load=%s",
                ctx.cycle_id, chaos, len(arcs), result.value, result.flag)
    return result


def _apply_calendar(acc: ScoreAccumulator, ctx: CycleContext, chaos: int) -> None:
    cal = ctx.calendar
    dyn = ctx.dynamics
    holiday = cal.holiday

    if holiday in HIGH_STRAIN_HOLIDAYS:
        acc.add_calendar(3, "high-strain-holiday", f"{holiday} public load")
    if holiday in MODERATE_STRAIN_HOLIDAYS:
        acc.add_calendar(2, "moderate-strain-holiday", f"{holiday} gathering load")
    if holiday in CIVIC_REST_HOLIDAYS:
        acc.add_calendar(-2, "civic-rest-holiday")

    if cal.holiday_priority == "major":
        acc.add_calendar(2, "major-holiday-load")
    elif cal.holiday_priority == "oakland":
        acc.add_calendar(1, "oakland-holiday-load")

    if cal.is_first_friday:
        acc.add_calendar(1, "first-friday-activity")
        if dyn.community_engagement >= 1.3:
            acc.add_calendar(-1, "first-friday-community-buffer")

    if cal.is_creation_day:
        acc.add_calendar(-1, "creation-day-reflection")

    if cal.sports_season == "championship":
        acc.add_calendar(4, "championship-load", "championship civic strain")
    elif cal.sports_season in ("playoffs", "post-season"):
        acc.add_calendar(2, "playoffs-load")
    elif holiday == "OpeningDay" and chaos >= 2:
        acc.add_calendar(1, "opening-day-combined-strain")

    if dyn.cultural_activity >= 1.5:
        acc.add_calendar(1, "cultural-surge-load")

    if dyn.community_engagement >= 1.4:
        acc.add_calendar(-1, "community-engagement-buffer")
    elif dyn.community_engagement <= 0.7:
        acc.add_calendar(1, "low-community-engagement")

    if cal.holiday_priority != "none" and chaos >= 3:
        acc.add_calendar(2, "holiday-chaos-amplification", "holiday-chaos overlap")
