"""
cyclesim/signal_cycle_weight.py - Cycle Weight Classifier

Classifies how much narrative signal this cycle carries. Runs after the
analysis and recovery phases so it can see every other flag. Writes:

    cycle_weight                    low-signal | medium-signal | high-signal
    cycle_weight_score              0..60
    cycle_weight_reason             first five reasons, or a base sentence
    cycle_weight_calendar_factors   calendar contributions
"""

import logging
from collections import Counter

from .constants import CYCLE_WEIGHT_CAP, CYCLE_WEIGHT_HIGH, CYCLE_WEIGHT_MEDIUM
from .context import CycleContext
from .scoring import ScoreAccumulator
from .types_state import Severity, SignalScore

logger = logging.getLogger(__name__)

HIGH_SIGNAL_HOLIDAYS = (
    "Independence", "Thanksgiving", "Holiday", "NewYear", "NewYearsEve",
    "OpeningDay", "OaklandPride", "Halloween",
)

BASE_REASONS = {
    "high-signal": "High chaos density, strong volatility, or severe world signals.",
    "medium-signal": "Moderate world activity and notable signals.",
    "low-signal": "Low activity and stable patterns.",
}

EVENT_POINTS = {Severity.HIGH: 4, Severity.MEDIUM: 2, Severity.LOW: 1}

PATTERN_RULES = {
    "micro-event-wave": (3, "Micro-event wave pattern"),
    "strain-trend": (4, "Strain trend detected"),
    "elevated-activity": (2, "Elevated activity"),
    "stability-streak": (-2, None),
    "calm-after-shock": (-1, None),
}

HOLIDAY_PRIORITY_RULES = {
    "major": (4, "Major holiday", "major-holiday"),
    "oakland": (3, "Oakland holiday", "oakland-holiday"),
    "cultural": (3, "Cultural holiday", "cultural-holiday"),
    "minor": (1, None, "minor-holiday"),
}


def apply_cycle_weight(ctx: CycleContext) -> SignalScore:
    events = ctx.current_events()
    dyn = ctx.dynamics
    cal = ctx.calendar

    acc = ScoreAccumulator(floor=0, cap=CYCLE_WEIGHT_CAP)

    if events:
        high = sum(1 for e in events if e.severity is Severity.HIGH)
        acc.add(sum(EVENT_POINTS[e.severity] for e in events))
        if high:
            acc.reasons.append(f"{high} high-severity event(s)")
        if len(events) >= 5:
            acc.reasons.append(f"High event volume ({len(events)})")

    impact = ctx.weather.impact
    if impact >= 1.4:
        acc.add(5, f"Severe weather (impact {impact})")
    elif impact >= 1.3:
        acc.add(3, "Notable weather impact")

    if dyn.sentiment <= -0.4:
        acc.add(4, f"Very negative sentiment ({dyn.sentiment})")
    elif dyn.sentiment <= -0.25:
        acc.add(2, "Negative sentiment")
    elif dyn.sentiment >= 0.4:
        acc.add(2, "Very positive sentiment")

    civic = ctx.signal("civic_load")
    if civic == "load-strain":
        acc.add(4, "Civic load strain")
    elif civic == "minor-variance":
        acc.add(1)

    if ctx.signal("shock_flag") != "none":
        acc.add(6, "Shock event detected")

    pattern = ctx.signal("pattern_flag")
    if pattern in PATTERN_RULES:
        acc.add(*PATTERN_RULES[pattern])

    seeds = ctx.count("story_seeds")
    if seeds >= 10:
        acc.add(2)
    if seeds >= 15:
        acc.add(2)

    priority_hooks = sum(1 for h in ctx.signal("story_hooks") if h.priority >= 3)
    if priority_hooks >= 3:
        acc.add(3, f"{priority_hooks} high-priority story hooks")

    presence = ctx.signal("domain_presence", None) or Counter(e.domain.value for e in events)
    active_domains = sum(1 for v in presence.values() if v > 0)
    dominant = max(list(presence.values()) + [0])
    if active_domains >= 6:
        acc.add(2, f"Wide domain spread ({active_domains} active)")
    if dominant >= 4:
        acc.add(3, f"Domain saturation ({dominant} in one domain)")

    arcs = [a for a in ctx.event_arcs if a.is_active]
    peak = [a for a in arcs if a.is_peak]
    if peak:
        acc.add(4, f"{len(peak)} arc(s) at peak")
    if any(a.tension >= 7 for a in arcs):
        acc.add(2, "High-tension arc activity")
    if len(arcs) >= 5:
        acc.add(2, f"{len(arcs)} active arcs")

    econ = ctx.economic_mood
    if econ <= 30:
        acc.add(3, f"Economic distress (mood {econ:g})")
    elif econ >= 70:
        acc.add(1, "Economic boom")
    ripples = ctx.count("economic_ripples")
    if ripples >= 4:
        acc.add(2, f"{ripples} economic ripples active")

    media = ctx.media
    if media.coverage_intensity == "saturated":
        acc.add(2, "Media saturation")
    if media.crisis_saturation >= 0.6:
        acc.add(2, "Crisis dominating media")

    # calendar
    rule = HOLIDAY_PRIORITY_RULES.get(cal.holiday_priority)
    if rule:
        points, label, factor = rule
        acc.add_calendar(points, factor, f"{label} ({cal.holiday})" if label else None)
    if cal.holiday in HIGH_SIGNAL_HOLIDAYS:
        acc.add_calendar(2, "high-signal-holiday")
    if cal.is_first_friday:
        acc.add_calendar(3, "first-friday", "First Friday art walk")
    if cal.is_creation_day:
        acc.add_calendar(2, "creation-day", "Creation Day")

    if cal.sports_season == "championship":
        acc.add_calendar(4, "championship", "Championship game/series")
    elif cal.sports_season in ("playoffs", "post-season"):
        acc.add_calendar(2, "playoffs", "Playoff intensity")
    elif cal.sports_season == "late-season":
        acc.add_calendar(1, "late-season")

    if dyn.cultural_activity >= 1.5:
        acc.add_calendar(2, "cultural-surge", "High cultural activity")
    elif dyn.cultural_activity >= 1.3:
        acc.add_calendar(1, "elevated-cultural")

    if dyn.community_engagement >= 1.4:
        acc.add_calendar(2, "community-surge", "High community engagement")
    elif dyn.community_engagement >= 1.2:
        acc.add_calendar(1, "elevated-community")

    if cal.holiday_priority in ("major", "oakland") and len(events) >= 3:
        acc.add_calendar(2, "holiday-chaos-amplification", "Multiple events during holiday")

    result = acc.classify(
        [(CYCLE_WEIGHT_HIGH, "high-signal"), (CYCLE_WEIGHT_MEDIUM, "medium-signal")],
        default="low-signal",
    )
    reason = "; ".join(result.reasons[:5]) + "." if result.reasons else BASE_REASONS[result.flag]

    ctx.set_signal("cycle_weight", result.flag)
    ctx.set_signal("cycle_weight_score", result.value)
    ctx.set_signal("cycle_weight_reason", reason)
    ctx.set_signal("cycle_weight_calendar_factors", result.calendar_factors)

    logger.info("cycle weight cycle=%s score=%s weight=%s", ctx.cycle_id, result.value, result.flag)
    return result
