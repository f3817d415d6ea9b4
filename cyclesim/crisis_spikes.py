"""
cyclesim/crisis_spikes.py - Crisis Spike Generator

Categorical specialization of the weighted-rule pattern: domain and
neighborhood weights start from base tables, get nudged by weather, economy,
season and calendar, and are expanded into discretized pools (weight * 10
entries each) that the "crisis" RNG stream draws from.

A domain already hit this cycle is down-weighted to discourage repeats, and
domains still cooling from the previous cycle are down-weighted as well.
Recovery's event suppression thins the result: each spike survives with
probability `event_suppression`.
"""

import logging
from typing import Dict, List

import numpy as np

from .constants import (
    CRISIS_BASE_CHANCE, CRISIS_CHANCE_CEILING, CRISIS_CHANCE_FLOOR,
    CRISIS_COOLING_PENALTY, CRISIS_DOMAIN_WEIGHTS, CRISIS_MAX_SPIKES,
    CRISIS_MIN_WEIGHT, CRISIS_REPEAT_PENALTY, IMPACT_BASE,
    NEIGHBORHOOD_WEIGHTS, SEVERITY_POOL_CROWD, SEVERITY_POOL_NORMAL,
    SEVERITY_POOL_PEACEFUL,
)
from .context import CycleContext
from .rng import SeededRng
from .scoring import round_half_up
from .types_state import Domain, Event, Severity

logger = logging.getLogger(__name__)

PEACEFUL_HOLIDAYS = ("Thanksgiving", "Holiday", "Easter", "MothersDay", "FathersDay")
CROWD_HOLIDAYS = ("Independence", "NewYearsEve", "Halloween", "OpeningDay", "OaklandPride")
CIVIC_REST_HOLIDAYS = ("MLKDay", "PresidentsDay", "MemorialDay", "LaborDay", "VeteransDay")
GATHERING_HOLIDAYS = ("Thanksgiving", "Holiday", "NewYearsEve", "Independence", "OpeningDay")
FIREWORKS_HOLIDAYS = ("Independence", "NewYearsEve")
TRAVEL_HOLIDAYS = ("Thanksgiving", "Holiday", "MemorialDay", "LaborDay")
RETAIL_HOLIDAYS = ("Holiday", "BlackFriday")
CULTURAL_CELEBRATIONS = (
    "Juneteenth", "CincoDeMayo", "DiaDeMuertos", "OaklandPride", "LunarNewYear", "MLKDay",
)

PLAYOFFS = ("playoffs", "post-season")


# =============================================================================
# CHANCE
# =============================================================================

def crisis_chance(ctx: CycleContext) -> float:
    """
    Probability that the cycle stays at a single spike.

    Clamped to [CRISIS_CHANCE_FLOOR, CRISIS_CHANCE_CEILING].
    """
    cal = ctx.calendar
    dyn = ctx.dynamics
    mood = ctx.weather_mood
    chance = CRISIS_BASE_CHANCE

    if ctx.weather.impact >= 1.3:
        chance += 0.1
    if mood.conflict_potential is not None and mood.conflict_potential > 0.3:
        chance += 0.05
    if dyn.sentiment <= -0.3:
        chance += 0.1
    if ctx.economic_mood <= 35:
        chance += 0.1

    if cal.holiday in PEACEFUL_HOLIDAYS:
        chance -= 0.15
    if cal.holiday in CROWD_HOLIDAYS:
        chance += 0.05
    if cal.holiday in CIVIC_REST_HOLIDAYS:
        chance -= 0.08
    if cal.is_first_friday:
        chance -= 0.1
    if cal.is_creation_day:
        chance -= 0.12

    if cal.sports_season == "championship":
        chance += 0.08
    elif cal.sports_season in PLAYOFFS:
        chance += 0.05

    if dyn.community_engagement >= 1.4:
        chance -= 0.08
    elif dyn.community_engagement <= 0.7:
        chance += 0.05
    if dyn.cultural_activity >= 1.4:
        chance -= 0.05

    return float(np.clip(chance, CRISIS_CHANCE_FLOOR, CRISIS_CHANCE_CEILING))


# =============================================================================
# WEIGHTS
# =============================================================================

def domain_weights(ctx: CycleContext) -> Dict[str, float]:
    cal = ctx.calendar
    dyn = ctx.dynamics
    weather = ctx.weather
    econ = ctx.economic_mood
    w = dict(CRISIS_DOMAIN_WEIGHTS)

    # world state
    if cal.season == "Winter":
        w["HEALTH"] += 0.2
    if weather.impact >= 1.3:
        w["INFRASTRUCTURE"] += 0.3
    if econ <= 35:
        w["ECONOMIC"] += 0.3
    if dyn.sentiment <= -0.3:
        w["SAFETY"] += 0.2
    if weather.type == "hot":
        w["ENVIRONMENT"] += 0.2

    # calendar
    if cal.holiday in GATHERING_HOLIDAYS:
        w["HEALTH"] += 0.15
    if cal.holiday in CROWD_HOLIDAYS:
        w["SAFETY"] += 0.25
    if cal.sports_season == "championship":
        w["SAFETY"] += 0.3
    elif cal.sports_season in PLAYOFFS:
        w["SAFETY"] += 0.15
    if cal.holiday in FIREWORKS_HOLIDAYS:
        w["SAFETY"] += 0.2
        w["ENVIRONMENT"] += 0.2
    if cal.holiday in TRAVEL_HOLIDAYS:
        w["INFRASTRUCTURE"] += 0.15
    if cal.holiday in RETAIL_HOLIDAYS:
        w["ECONOMIC"] += 0.2
    if cal.holiday in CULTURAL_CELEBRATIONS:
        w["CULTURE"] = max(CRISIS_MIN_WEIGHT, w["CULTURE"] - 0.2)
    if cal.is_first_friday:
        w["CULTURE"] -= 0.15
        w["SAFETY"] += 0.1
    if cal.is_creation_day:
        w["CIVIC"] -= 0.2
        w["CULTURE"] -= 0.15
    if dyn.community_engagement >= 1.4:
        w["SAFETY"] -= 0.15

    return {name: max(CRISIS_MIN_WEIGHT, value) for name, value in w.items()}


def neighborhood_weights(ctx: CycleContext) -> Dict[str, float]:
    cal = ctx.calendar
    w = dict(NEIGHBORHOOD_WEIGHTS)

    if cal.is_first_friday:
        for name in ("Uptown", "KONO", "Temescal"):
            w[name] += 0.3
        w["Jack London"] += 0.2
    if cal.holiday == "OpeningDay" or cal.sports_season == "championship":
        w["Jack London"] += 0.3
        w["Downtown"] += 0.3
    if cal.holiday == "LunarNewYear":
        w["Chinatown"] += 0.4
    if cal.holiday in ("CincoDeMayo", "DiaDeMuertos"):
        w["Fruitvale"] += 0.3
    if cal.holiday_priority == "major":
        w["Downtown"] += 0.2

    return w


def severity_pool(ctx: CycleContext) -> tuple:
    cal = ctx.calendar
    if cal.holiday in CROWD_HOLIDAYS or cal.sports_season == "championship":
        return SEVERITY_POOL_CROWD
    if cal.holiday in PEACEFUL_HOLIDAYS or cal.is_creation_day:
        return SEVERITY_POOL_PEACEFUL
    return SEVERITY_POOL_NORMAL


def build_pool(weights: Dict[str, float]) -> np.ndarray:
    """Discretize weights: each name repeated round(weight * 10) times, in order."""
    names = list(weights)
    counts = [max(0, round_half_up(weights[n] * 10)) for n in names]
    return np.repeat(np.array(names, dtype=object), counts)


def draw_weights(base: Dict[str, float], hits: Dict[str, int], cooling) -> Dict[str, float]:
    """Domain weights for the next draw: repeats and cooling domains are thinned."""
    weights = {}
    for name, weight in base.items():
        if hits.get(name):
            weight *= CRISIS_REPEAT_PENALTY
        if name in cooling:
            weight *= CRISIS_COOLING_PENALTY
        weights[name] = weight
    return weights


def pick(pool: np.ndarray, rng: SeededRng):
    if len(pool) == 0:
        return None
    return pool[rng.below(len(pool))]


# =============================================================================
# GENERATION
# =============================================================================

def generate_crisis_spikes(ctx: CycleContext, max_spikes: int = CRISIS_MAX_SPIKES) -> List[Event]:
    """
    Draw this cycle's crisis spikes and append them to world_events.

    Returns:
        the events that survived suppression
    """
    if max_spikes <= 0:
        return []
    rng = ctx.rng_for("crisis")
    cal = ctx.calendar
    chance = crisis_chance(ctx)
    spikes = 1 if rng() < chance else max_spikes

    base_domains = domain_weights(ctx)
    cooling = {str(d).upper() for d in ctx.signal("suppress_domains")}
    hoods = build_pool(neighborhood_weights(ctx))
    severities = severity_pool(ctx)
    suppression = float(ctx.signal("event_suppression"))

    hits: Dict[str, int] = {}
    created: List[Event] = []
    for _ in range(spikes):
        domain = pick(build_pool(draw_weights(base_domains, hits, cooling)), rng)
        if domain is None:
            continue
        hits[domain] = hits.get(domain, 0) + 1

        neighborhood = pick(hoods, rng)
        severity = Severity(severities[rng.below(len(severities))])
        impact = round_half_up(IMPACT_BASE[severity.value] + (rng() * 20 - 10))

        if rng() >= suppression:
            logger.debug("crisis spike suppressed cycle=%s domain=%s", ctx.cycle_id, domain)
            continue

        tags = {}
        if cal.has_holiday:
            tags["holiday"] = cal.holiday
        if cal.is_first_friday:
            tags["first_friday"] = True
        if cal.sports_season != "off-season":
            tags["sports_season"] = cal.sports_season

        created.append(Event(
            cycle=ctx.cycle_id,
            domain=Domain(domain),
            severity=severity,
            neighborhood=str(neighborhood),
            description=f"{severity.value} {domain.lower()} crisis in {neighborhood}",
            subdomain="crisis-spike",
            impact_score=impact,
            source="ENGINE",
            tags=tags,
        ))

    ctx.add_events(created)
    if ctx.has_signal("events_generated"):
        ctx.set_signal("events_generated", int(ctx.signal("events_generated")) + len(created))
    ctx.set_signal("crisis_chance", round(chance, 4))
    logger.info("crisis spikes cycle=%s drawn=%d kept=%d suppression=%.2f",
                ctx.cycle_id, spikes, len(created), suppression)
    return created
