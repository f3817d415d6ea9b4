"""
cyclesim/signal_pattern.py - Pattern Detection

Looks across the most recent digest records (newest first, at most
DIGEST_WINDOW) for multi-cycle patterns. Checks run in priority order and the
first match wins:

    stability-streak   5 calm cycles and a quiet current cycle (or Creation Day)
    holiday-elevated   busy but clean cycle during a high-activity period
    micro-event-wave   3 busy cycles without a shock
    strain-trend       repeated civic strain, or drift and sentiment both negative
    calm-after-shock   quiet now, shock earlier in the window
    elevated-activity  3-cycle average in the elevated band
    none

Event thresholds rise during high-activity periods. Strong community
engagement downgrades a marginal strain-trend to elevated-activity.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np

from .constants import DIGEST_WINDOW
from .context import CycleContext
from .types_state import DigestRecord

logger = logging.getLogger(__name__)

HIGH_ACTIVITY_HOLIDAYS = (
    "Independence", "Thanksgiving", "Holiday", "NewYearsEve", "NewYear",
    "OpeningDay", "OaklandPride", "ArtSoulFestival", "Halloween",
    "CincoDeMayo", "Juneteenth", "DiaDeMuertos",
)


@dataclass(frozen=True)
class PatternThresholds:
    stability: int = 45
    micro_wave: int = 55
    calm: int = 50
    elevated_low: int = 50
    elevated_high: int = 60
    strain_cycles: int = 2
    minor_cycles: int = 3
    negative_sentiment_cycles: int = 2


NORMAL_THRESHOLDS = PatternThresholds()
HIGH_ACTIVITY_THRESHOLDS = PatternThresholds(
    stability=55, micro_wave=65, calm=60, elevated_low=60, elevated_high=75,
    strain_cycles=3, minor_cycles=4, negative_sentiment_cycles=3,
)


def is_high_activity_period(ctx: CycleContext) -> bool:
    cal = ctx.calendar
    return (cal.holiday in HIGH_ACTIVITY_HOLIDAYS
            or cal.is_first_friday
            or cal.sports_season in ("championship", "playoffs"))


def detect_pattern(ctx: CycleContext, history: Sequence[DigestRecord]) -> Dict:
    """
    Pure detection over a newest-first history window.

    Returns:
        dict with pattern and calendar_adjusted
    """
    rows = list(history)[:DIGEST_WINDOW]
    if len(rows) < 2:
        return {"pattern": "none", "calendar_adjusted": False}

    busy = is_high_activity_period(ctx)
    th = HIGH_ACTIVITY_THRESHOLDS if busy else NORMAL_THRESHOLDS
    cal = ctx.calendar
    dyn = ctx.dynamics
    current_events = len(ctx.current_events())

    events = np.array([r.events_generated for r in rows], dtype=float)
    issues = np.array([r.issues for r in rows], dtype=int)
    civic = np.array([r.civic_load for r in rows], dtype=object)
    drift = np.array([r.migration_drift for r in rows], dtype=float)
    shock = np.array([r.shock_flag for r in rows], dtype=object)
    sentiment = np.array([r.sentiment for r in rows], dtype=float)

    pattern = "none"
    adjusted = False

    if len(rows) >= 5:
        window = slice(0, 5)
        stable = bool(np.all(events[window] < th.stability)
                      and np.all(issues[window] == 0)
                      and not np.any(civic[window] == "load-strain"))
        if stable and current_events <= 2:
            pattern = "stability-streak"
        if stable and cal.is_creation_day:
            pattern = "stability-streak"
            adjusted = True

    if pattern == "none" and busy:
        if 55 <= events[0] < 80 and shock[0] != "shock-flag" and issues[0] == 0:
            pattern = "holiday-elevated"
            adjusted = True

    if pattern == "none" and len(rows) >= 3:
        if np.all(events[:3] >= th.micro_wave) and not np.any(shock[:3] == "shock-flag"):
            pattern = "micro-event-wave"
            adjusted = adjusted or cal.is_first_friday

    strain_cycles = int(np.count_nonzero(civic == "load-strain"))
    if pattern == "none":
        minor_cycles = int(np.count_nonzero(civic == "minor-variance"))
        neg_drift = int(np.count_nonzero(drift <= -25))
        neg_sentiment = int(np.count_nonzero(sentiment <= -0.35))
        adjusted = adjusted or busy
        if (strain_cycles >= th.strain_cycles
                or (minor_cycles >= th.minor_cycles
                    and neg_sentiment >= th.negative_sentiment_cycles)):
            pattern = "strain-trend"
        if neg_drift >= 3 and neg_sentiment >= th.negative_sentiment_cycles:
            pattern = "strain-trend"

    if pattern == "none" and len(rows) >= 3:
        if (shock[0] != "shock-flag" and issues[0] == 0 and events[0] < th.calm
                and np.any(shock[1:] == "shock-flag")):
            pattern = "calm-after-shock"

    if pattern == "none" and len(rows) >= 3:
        avg = float(np.mean(events[:3]))
        if th.elevated_low <= avg < th.elevated_high:
            pattern = "elevated-activity"
            adjusted = adjusted or dyn.cultural_activity >= 1.4

    if pattern == "strain-trend" and dyn.community_engagement >= 1.4 and strain_cycles <= 2:
        pattern = "elevated-activity"
        adjusted = True

    return {"pattern": pattern, "calendar_adjusted": adjusted}


def apply_pattern_detection(ctx: CycleContext) -> str:
    """Detect over ctx's digest history and write pattern_flag."""
    history: List[DigestRecord] = ctx.signal("digest_history", [])
    result = detect_pattern(ctx, history)
    cal = ctx.calendar

    ctx.set_signal("pattern_flag", result["pattern"])
    ctx.set_signal("pattern_calendar_context", {
        "holiday": cal.holiday,
        "holiday_priority": cal.holiday_priority,
        "is_first_friday": cal.is_first_friday,
        "is_creation_day": cal.is_creation_day,
        "sports_season": cal.sports_season,
        "calendar_adjusted": result["calendar_adjusted"],
    })
    logger.info("pattern cycle=%s window=%d pattern=%s",
                ctx.cycle_id, min(len(history), DIGEST_WINDOW), result["pattern"])
    return result["pattern"]
