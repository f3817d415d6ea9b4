"""
cyclesim/domain_cooldowns.py - Domain Cooldowns

Keeps a domain from dominating consecutive cycles. Each cycle, existing
cooldowns decay (twice as fast for calendar-boosted domains), then every
event of this cycle sets a cooldown on its domain sized by severity:

    high 3, medium 2, low 1
    priority domains (HEALTH, SAFETY, INFRASTRUCTURE)   -1, never below 1
    long-cooldown domains on a normal day                +1
    calendar-boosted domains                             -1, never below 0
    calendar-suppressed domains                          +1

An existing cooldown is never shortened by a new event.

Reads domain_cooldowns (the previous cycle's map). Writes domain_cooldowns,
suppress_domains, active_cooldowns and cooldown_calendar_context.
"""

import logging
from typing import Dict, List

from .context import CycleContext
from .types_state import CalendarContext, Severity

logger = logging.getLogger(__name__)

PRIORITY_DOMAINS = ("HEALTH", "SAFETY", "INFRASTRUCTURE")
LONG_COOLDOWN_DOMAINS = ("CULTURE", "COMMUNITY", "MICRO")

BIG_CELEBRATIONS = ("OaklandPride", "ArtSoulFestival", "NewYearsEve", "Independence")
CULTURAL_FESTIVALS = ("LunarNewYear", "CincoDeMayo", "DiaDeMuertos", "Juneteenth")
PARTY_HOLIDAYS = ("StPatricksDay", "Halloween", "NewYearsEve")
QUIET_HOLIDAYS = ("Thanksgiving", "Easter", "MothersDay", "FathersDay")

BASE_DURATION = {Severity.HIGH: 3, Severity.MEDIUM: 2, Severity.LOW: 1}


def boosted_domains(cal: CalendarContext) -> List[str]:
    """Domains that flow freely today, in first-seen order."""
    boosted: List[str] = []
    if cal.has_holiday:
        boosted += ["FESTIVAL", "HOLIDAY"]
    if cal.holiday_priority in ("major", "oakland"):
        boosted += ["COMMUNITY", "CULTURE"]
    if cal.holiday in BIG_CELEBRATIONS:
        boosted += ["NIGHTLIFE", "COMMUNITY", "CULTURE"]
    if cal.holiday in CULTURAL_FESTIVALS:
        boosted += ["CULTURE", "COMMUNITY"]
    if cal.sports_season in ("championship", "playoffs") or cal.holiday == "OpeningDay":
        boosted.append("SPORTS")
    if cal.is_first_friday:
        boosted += ["ARTS", "CULTURE", "NIGHTLIFE"]
    if cal.is_creation_day:
        boosted += ["CIVIC", "COMMUNITY"]
    if cal.holiday in PARTY_HOLIDAYS:
        boosted.append("NIGHTLIFE")
    return list(dict.fromkeys(boosted))


def suppressed_domains(cal: CalendarContext) -> List[str]:
    if cal.holiday in QUIET_HOLIDAYS:
        return ["NIGHTLIFE", "CRIME"]
    return []


def cooldown_duration(domain: str, severity: Severity, boosted: List[str],
                      suppressed: List[str]) -> int:
    duration = BASE_DURATION[severity]
    if domain in PRIORITY_DOMAINS:
        duration = max(1, duration - 1)
    if domain in LONG_COOLDOWN_DOMAINS and domain not in boosted:
        duration += 1
    if domain in boosted:
        duration = max(0, duration - 1)
    if domain in suppressed:
        duration += 1
    return duration


def apply_domain_cooldowns(ctx: CycleContext) -> Dict[str, int]:
    cal = ctx.calendar
    boosted = boosted_domains(cal)
    suppressed = suppressed_domains(cal)

    previous = ctx.signal("domain_cooldowns", {})
    cooldowns: Dict[str, int] = {}
    for domain, remaining in previous.items():
        decay = 2 if domain in boosted else 1
        cooldowns[domain] = max(0, int(remaining) - decay)

    for event in ctx.current_events():
        domain = event.domain.value
        duration = cooldown_duration(domain, event.severity, boosted, suppressed)
        cooldowns[domain] = max(cooldowns.get(domain, 0), duration)

    cooling = sorted(d for d, v in cooldowns.items() if v > 0)
    active = ", ".join(f"{d}:{cooldowns[d]}" for d in cooling) or "none"

    ctx.set_signal("domain_cooldowns", cooldowns)
    ctx.set_signal("suppress_domains", cooling)
    ctx.set_signal("active_cooldowns", active)
    ctx.set_signal("cooldown_calendar_context", {
        "holiday": cal.holiday,
        "holiday_priority": cal.holiday_priority,
        "is_first_friday": cal.is_first_friday,
        "is_creation_day": cal.is_creation_day,
        "sports_season": cal.sports_season,
        "boosted_domains": boosted,
        "suppressed_domains": suppressed,
    })
    logger.info("cooldowns cycle=%s active=%s", ctx.cycle_id, active)
    return cooldowns
