"""
cyclesim/recovery.py - Recovery / Suppression State Machine

Derives an overload score from this cycle's signals, maps it to a triggered
level through calendar-adjusted thresholds, and merges that with the
persisted RecoveryState from the previous cycle:

    heavy      always resets: start=current, window=3
    moderate   opens a 2-cycle window, or merges with one step of decay
    light      opens a 1-cycle window, or merges with one step of decay
    none       decays one step; reaching none closes the window

Levels are ordered none < light < moderate < heavy. Without a new trigger
the level drops exactly one step per cycle. A window can extend but never
shrink while active.

The final level picks the suppression multipliers generators use next.
"""

import logging
from dataclasses import replace
from typing import Dict, Optional

from .constants import (
    BASE_RECOVERY_THRESHOLDS, RECOVERY_MIN_WINDOW, RECOVERY_THRESHOLD_FLOORS,
    SUPPRESSION_MULTIPLIERS, SUPPRESSION_SWITCHES,
)
from .context import CycleContext
from .scoring import ScoreAccumulator
from .types_result import RecoveryOutcome
from .types_state import CalendarContext, RecoveryLevel, RecoveryState

logger = logging.getLogger(__name__)

BIG_CELEBRATIONS = ("OaklandPride", "ArtSoulFestival", "NewYearsEve", "Independence")
CULTURAL_FESTIVALS = ("LunarNewYear", "CincoDeMayo", "DiaDeMuertos", "Juneteenth")
QUIET_HOLIDAYS = ("Thanksgiving", "Easter", "MothersDay", "FathersDay")


# =============================================================================
# OVERLOAD
# =============================================================================

def _tier(count: float, tiers) -> int:
    """Points for the first (minimum_exclusive, points) tier `count` exceeds."""
    for minimum, points in tiers:
        if count > minimum:
            return points
    return 0


def compute_overload_score(ctx: CycleContext) -> int:
    acc = ScoreAccumulator(floor=0)

    acc.add(_tier(ctx.count("texture_triggers"), ((6, 3), (4, 2), (2, 1))))
    acc.add(_tier(ctx.count("story_hooks"), ((7, 3), (5, 2), (3, 1))))

    if ctx.signal("shock_flag") == "shock-flag":
        acc.add(3, "shock")

    acc.add(_tier(len(ctx.current_events()), ((10, 3), (6, 2), (4, 1))))

    civic = ctx.signal("civic_load")
    if civic == "load-strain":
        acc.add(3, "civic strain")
    elif civic == "minor-variance":
        acc.add(1)

    civic_score = float(ctx.signal("civic_load_score"))
    if civic_score >= 15:
        acc.add(2)
    elif civic_score >= 10:
        acc.add(1)

    econ = ctx.economic_mood
    if econ <= 25:
        acc.add(2, "economic distress")
    elif econ <= 35:
        acc.add(1)

    comfort = ctx.weather_mood.comfort_index
    if comfort is not None and comfort < 0.25:
        acc.add(1, "weather discomfort")

    peak = sum(1 for a in ctx.event_arcs if a.is_peak)
    if peak >= 3:
        acc.add(2, "arcs at peak")
    elif peak >= 2:
        acc.add(1)

    return int(acc.bounded())


# =============================================================================
# THRESHOLDS
# =============================================================================

def compute_thresholds(cal: CalendarContext,
                       base: Optional[Dict[str, int]] = None) -> Dict[str, int]:
    """Calendar-adjusted {light, moderate, heavy}, clamped to their floors."""
    base = base or BASE_RECOVERY_THRESHOLDS
    light, moderate, heavy = base["light"], base["moderate"], base["heavy"]

    def bump(l: int, m: int, h: int) -> None:
        nonlocal light, moderate, heavy
        light += l
        moderate += m
        heavy += h

    if cal.holiday in BIG_CELEBRATIONS:
        bump(3, 4, 5)
    elif cal.holiday_priority == "oakland":
        bump(2, 2, 3)
    if cal.holiday in CULTURAL_FESTIVALS:
        bump(2, 2, 3)
    if cal.holiday in ("StPatricksDay", "Halloween"):
        bump(2, 2, 2)
    if cal.holiday in QUIET_HOLIDAYS:
        bump(-1, -1, -2)
    if cal.holiday == "Holiday":
        bump(1, 1, 1)

    if cal.sports_season == "championship":
        bump(3, 4, 4)
    elif cal.sports_season == "playoffs":
        bump(2, 2, 3)
    elif cal.sports_season == "late-season":
        bump(1, 1, 1)

    if cal.holiday == "OpeningDay":
        bump(2, 3, 3)
    if cal.is_first_friday:
        bump(1, 2, 2)
    if cal.is_creation_day:
        bump(1, 1, 2)

    return {
        "light": max(RECOVERY_THRESHOLD_FLOORS["light"], light),
        "moderate": max(RECOVERY_THRESHOLD_FLOORS["moderate"], moderate),
        "heavy": max(RECOVERY_THRESHOLD_FLOORS["heavy"], heavy),
    }


def triggered_level(score: float, thresholds: Dict[str, int]) -> RecoveryLevel:
    """Highest level whose threshold the score reaches."""
    if score >= thresholds["heavy"]:
        return RecoveryLevel.HEAVY
    if score >= thresholds["moderate"]:
        return RecoveryLevel.MODERATE
    if score >= thresholds["light"]:
        return RecoveryLevel.LIGHT
    return RecoveryLevel.NONE


# =============================================================================
# STATE MERGE
# =============================================================================

def merge_recovery_state(prev: RecoveryState, triggered: RecoveryLevel,
                         current_cycle: int) -> RecoveryState:
    """
    Fold this cycle's trigger into the persisted state.

    Without a trigger the level drops exactly one step; with one it never
    drops below a one-step decay of the previous level.
    """
    if triggered is RecoveryLevel.HEAVY:
        state = RecoveryState(
            start_cycle=current_cycle,
            window=RECOVERY_MIN_WINDOW["heavy"],
            level=RecoveryLevel.HEAVY,
        )
    elif triggered is not RecoveryLevel.NONE:
        minimum = RECOVERY_MIN_WINDOW[triggered.value]
        if not prev.active:
            state = RecoveryState(start_cycle=current_cycle, window=minimum, level=triggered)
        else:
            state = replace(
                prev,
                level=RecoveryLevel.highest(triggered, prev.level.step_down()),
                window=max(prev.window, minimum),
            )
    elif prev.active:
        decayed = prev.level.step_down()
        if decayed is RecoveryLevel.NONE:
            return RecoveryState()
        state = replace(prev, level=decayed)
    else:
        return RecoveryState()

    return replace(state, duration=current_cycle - state.start_cycle)


# =============================================================================
# PHASE
# =============================================================================

def apply_cycle_recovery(ctx: CycleContext,
                         base_thresholds: Optional[Dict[str, int]] = None) -> RecoveryOutcome:
    """
    Run the recovery phase.

    Reads the persisted state from the recovery_state signal (loaded by the
    orchestrator from Recovery_State) and writes the merged state back.
    """
    cal = ctx.calendar
    prev = ctx.signal("recovery_state", RecoveryState())
    score = compute_overload_score(ctx)
    thresholds = compute_thresholds(cal, base_thresholds)
    triggered = triggered_level(score, thresholds)
    state = merge_recovery_state(prev, triggered, ctx.cycle_id)

    level = state.level
    multipliers = SUPPRESSION_MULTIPLIERS[level.value]
    switches = SUPPRESSION_SWITCHES[level.value]

    ctx.set_signal("recovery_level", level.value)
    ctx.set_signal("recovery_triggered", triggered.value)
    ctx.set_signal("recovery_mode", level is not RecoveryLevel.NONE)
    ctx.set_signal("overload_score", score)
    ctx.set_signal("recovery_thresholds", thresholds)
    ctx.set_signal("event_suppression", multipliers[0])
    ctx.set_signal("hook_suppression", multipliers[1])
    ctx.set_signal("texture_suppression", multipliers[2])
    ctx.set_signal("suppress_events", switches[0])
    ctx.set_signal("suppress_hooks", switches[1])
    ctx.set_signal("suppress_textures", switches[2])
    ctx.set_signal("recovery_window", state.window)
    ctx.set_signal("recovery_duration", state.duration)
    ctx.set_signal("recovery_state", state)
    ctx.set_signal("recovery_calendar_context", {
        "holiday": cal.holiday,
        "holiday_priority": cal.holiday_priority,
        "is_first_friday": cal.is_first_friday,
        "is_creation_day": cal.is_creation_day,
        "sports_season": cal.sports_season,
        "threshold_adjustment": thresholds["heavy"] - (base_thresholds or BASE_RECOVERY_THRESHOLDS)["heavy"],
    })

    if level is not prev.level:
        logger.info("recovery cycle=%s %s -> %s (score=%d triggered=%s)",
                    ctx.cycle_id, prev.level.value, level.value, score, triggered.value)
    return RecoveryOutcome(
        triggered=triggered,
        level=level,
        overload_score=score,
        thresholds=thresholds,
        multipliers=multipliers,
        state=state,
    )
