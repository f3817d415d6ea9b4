"""
cyclesim/signal_migration.py - Migration Drift

City-wide migration pressure on a signed -50..+50 scale, plus a -5..+5 flow
per neighborhood. The baseline comes from the World_Population migration
figure (1% of population = 10 points); economic mood, ripples, weather,
chaos, sentiment, public spaces, traffic, employment, the calendar and
community dynamics then push it with bounded random nudges.

All nudges draw from the "migration" RNG stream.

Writes migration_drift, migration_drift_factors, neighborhood_migration and
migration_economic_link.
"""

import logging
from typing import Dict, List

import numpy as np

from .constants import MIGRATION_DRIFT_BOUND, NEIGHBORHOOD_DRIFT_BOUND
from .context import CycleContext
from .rng import SeededRng
from .scoring import round_half_up
from .types_state import NeighborhoodEconomy, NeighborhoodMetrics

logger = logging.getLogger(__name__)

TRAVEL_HOLIDAYS = (
    "Thanksgiving", "Holiday", "NewYear", "MemorialDay", "LaborDay", "Independence",
)
GATHERING_HOLIDAYS = (
    "OpeningDay", "OaklandPride", "ArtSoulFestival", "Juneteenth",
    "CincoDeMayo", "DiaDeMuertos",
)
CULTURAL_VISITOR_HOLIDAYS = (
    "DiaDeMuertos", "CincoDeMayo", "Juneteenth", "BlackHistoryMonth",
    "PrideMonth", "OaklandPride",
)


def _clamp(value: float, bound: int) -> int:
    return int(np.clip(round_half_up(value), -bound, bound))


def effective_economy(mood: float) -> str:
    if mood >= 65:
        return "strong"
    if mood >= 45:
        return "stable"
    if mood >= 30:
        return "weak"
    return "unstable"


class _Drift:
    """Drift total with its factor list."""

    def __init__(self, rng: SeededRng, start: float):
        self.rng = rng
        self.value = start
        self.factors: List[str] = []

    def up(self, scale: float, factor: str) -> None:
        self.value += round_half_up(self.rng() * scale)
        self.factors.append(factor)

    def down(self, scale: float, factor: str) -> None:
        self.value -= round_half_up(self.rng() * scale)
        self.factors.append(factor)

    def swing(self, bias: float, scale: float, factor: str) -> None:
        """Nudge of (r - bias) * scale; can go either way."""
        self.value += round_half_up((self.rng() - bias) * scale)
        self.factors.append(factor)


def apply_migration_drift(ctx: CycleContext) -> int:
    rng = ctx.rng_for("migration")
    pop = ctx.population
    dyn = ctx.dynamics
    cal = ctx.calendar
    econ = ctx.economic_mood
    chaos = len(ctx.current_events())
    impact = ctx.weather.impact

    derived_employment = 0.80 + (econ / 100) * 0.17
    employment = min(pop.employment_rate, derived_employment)
    economy = effective_economy(econ)

    total = pop.total_population or 400000
    d = _Drift(rng, _clamp(pop.migration / total * 100 * 10, MIGRATION_DRIFT_BOUND))

    if econ >= 70:
        d.up(10, "strong-economy-attraction")
    elif econ >= 60:
        d.up(6, "good-economy-inflow")
    elif econ <= 30:
        d.down(12, "weak-economy-exodus")
    elif econ <= 40:
        d.down(6, "uncertain-economy-outflow")

    ripples = ctx.signal("economic_ripples")
    positive = sum(1 for r in ripples if r.impact > 0)
    negative = sum(1 for r in ripples if r.impact < 0)
    if positive >= 3:
        d.up(5, "economic-momentum-positive")
    if negative >= 3:
        d.down(5, "economic-momentum-negative")

    if impact >= 1.3:
        d.swing(0.3, 8, "weather-volatility")
    if impact >= 1.5:
        d.swing(0.4, 12, "severe-weather-displacement")

    if chaos >= 3:
        d.swing(0.5, 10, "chaos-displacement")
    if chaos >= 5:
        d.swing(0.5, 15, "high-chaos-displacement")

    if dyn.sentiment <= -0.4:
        d.down(8, "negative-sentiment-outflow")
    if dyn.sentiment >= 0.3:
        d.up(6, "positive-sentiment-inflow")

    if dyn.public_spaces >= 1.3:
        d.up(5, "public-space-activity")

    if dyn.traffic <= 0.75:
        d.up(4, "low-traffic-mobility")
    if dyn.traffic >= 1.2:
        d.down(3, "high-traffic-friction")

    if employment >= 0.93:
        d.up(6, "employment-attraction")
    if employment <= 0.88:
        d.down(6, "employment-outflow")
    if employment <= 0.85:
        d.down(8, "employment-crisis-exodus")

    if economy == "strong":
        d.up(5, "strong-economy-inflow")
    elif economy == "weak":
        d.down(8, "weak-economy-outflow")
    elif economy == "unstable":
        d.down(4, "economic-instability")

    _apply_calendar(d, ctx)

    # daily fluctuation, no factor
    d.value += round_half_up((rng() - 0.5) * 10)
    drift = _clamp(d.value, MIGRATION_DRIFT_BOUND)

    neighborhoods = _neighborhood_flows(ctx, rng, drift)

    ctx.set_signal("migration_drift", drift)
    ctx.set_signal("migration_drift_factors", d.factors)
    ctx.set_signal("neighborhood_migration", neighborhoods)
    ctx.set_signal("migration_economic_link", {
        "economic_mood_used": econ,
        "effective_employment": round(employment, 4),
        "effective_economy": economy,
        "sheet_employment": pop.employment_rate,
        "sheet_economy": pop.economy,
        "derived_employment": round(derived_employment, 4),
        "positive_ripples": positive,
        "negative_ripples": negative,
    })
    logger.info("migration drift cycle=%s drift=%d factors=%d neighborhoods=%d",
                ctx.cycle_id, drift, len(d.factors), len(neighborhoods))
    return drift


def _apply_calendar(d: _Drift, ctx: CycleContext) -> None:
    cal = ctx.calendar
    dyn = ctx.dynamics
    holiday = cal.holiday

    if holiday in TRAVEL_HOLIDAYS:
        d.swing(0.5, 15, f"{holiday}-travel")
    if holiday in GATHERING_HOLIDAYS:
        d.up(8, f"{holiday}-gathering-inflow")
    if holiday in CULTURAL_VISITOR_HOLIDAYS:
        d.up(5, "cultural-visitor-inflow")

    if cal.holiday_priority == "major":
        d.swing(0.5, 10, "major-holiday-movement")
    elif cal.holiday_priority == "oakland":
        d.up(6, "oakland-holiday-inflow")

    if cal.is_first_friday:
        d.up(6, "first-friday-inflow")
        if dyn.cultural_activity >= 1.3:
            d.up(3, "first-friday-cultural-boost")
    if cal.is_creation_day:
        d.up(4, "creation-day-settling")

    if cal.sports_season == "championship":
        d.up(12, "championship-crowd-inflow")
    elif cal.sports_season in ("playoffs", "post-season"):
        d.up(8, "playoff-crowd-inflow")
    if holiday == "OpeningDay":
        d.up(10, "opening-day-crowd")

    if dyn.cultural_activity >= 1.5:
        d.up(5, "cultural-activity-inflow")
    elif dyn.cultural_activity <= 0.7:
        d.down(3, "low-cultural-activity")

    if dyn.community_engagement >= 1.4:
        d.up(4, "community-retention")
    elif dyn.community_engagement <= 0.6:
        d.down(5, "low-community-outflow")


def neighborhood_flow(metrics: NeighborhoodMetrics, econ: NeighborhoodEconomy,
                      city_drift: int, rng: SeededRng) -> int:
    """Flow for one neighborhood: a share of city drift moved by local metrics."""
    flow = round_half_up(city_drift / 8)

    if metrics.crime_index >= 1.5:
        flow -= round_half_up(rng() * 3 + 1)
    elif metrics.crime_index >= 1.2:
        flow -= round_half_up(rng() * 2)
    elif metrics.crime_index <= 0.8:
        flow += round_half_up(rng() * 2)

    if metrics.sentiment >= 0.3:
        flow += round_half_up(rng() * 2 + 1)
    elif metrics.sentiment <= -0.3:
        flow -= round_half_up(rng() * 2 + 1)

    if metrics.retail_vitality >= 1.3:
        flow += round_half_up(rng() * 2)
    elif metrics.retail_vitality <= 0.7:
        flow -= round_half_up(rng() * 2)

    if metrics.event_attractiveness >= 1.3:
        flow += round_half_up(rng() * 2)
    elif metrics.event_attractiveness <= 0.7:
        flow -= round_half_up(rng())

    if econ.mood >= 65:
        flow += round_half_up(rng() * 2)
    elif econ.mood <= 35:
        flow -= round_half_up(rng() * 2)

    if econ.descriptor == "thriving":
        flow += round_half_up(rng() * 2)
    elif econ.descriptor == "struggling":
        flow -= round_half_up(rng() * 2)

    return _clamp(flow, NEIGHBORHOOD_DRIFT_BOUND)


def _neighborhood_flows(ctx: CycleContext, rng: SeededRng, drift: int) -> Dict[str, Dict]:
    economies = ctx.signal("neighborhood_economies", {})
    out = {}
    for metrics in ctx.signal("neighborhood_map", []):
        econ = economies.get(metrics.name, NeighborhoodEconomy())
        out[metrics.name] = {
            "drift": neighborhood_flow(metrics, econ, drift, rng),
            "row": metrics.row,
            "economic_mood": econ.mood,
            "economic_desc": econ.descriptor,
            "crime_index": metrics.crime_index,
            "sentiment": metrics.sentiment,
            "retail_vitality": metrics.retail_vitality,
            "event_attractiveness": metrics.event_attractiveness,
        }
    return out
