"""
cyclesim/constants.py - Kernel Constants

Tables, thresholds, weights and defaults used across the cycle kernel.
Centralized for tuning. Pure data, no behavior.
"""

# =============================================================================
# LEDGER TABLES
# =============================================================================

TABLE_WORLD_CONFIG = "World_Config"
TABLE_CYCLE_SEEDS = "Cycle_Seeds"
TABLE_CYCLE_DIGEST = "Cycle_Digest"
TABLE_RECOVERY_STATE = "Recovery_State"
TABLE_DOMAIN_COOLDOWNS = "Domain_Cooldowns"
TABLE_WORLD_EVENTS = "World_Events"
TABLE_NEIGHBORHOOD_MAP = "Neighborhood_Map"
TABLE_WORLD_POPULATION = "World_Population"
TABLE_CYCLE_SNAPSHOT = "Cycle_Snapshot"

# =============================================================================
# INTENT PRIORITIES (lower runs first)
# =============================================================================

PRIORITY_REPLACE = 50
PRIORITY_UPDATE = 100
PRIORITY_LOG = 200

# =============================================================================
# RNG
# =============================================================================

LCG_MULTIPLIER = 1103515245
LCG_INCREMENT = 12345
LCG_MASK = 0x7fffffff
LCG_DIVISOR = 0x80000000  # draws stay strictly below 1.0
HASH_MIX = 0x45d9f3b
DEFAULT_SALT = "default"

# =============================================================================
# RECOVERY
# =============================================================================

BASE_RECOVERY_THRESHOLDS = {"light": 3, "moderate": 6, "heavy": 10}
RECOVERY_THRESHOLD_FLOORS = {"light": 2, "moderate": 4, "heavy": 7}

# Minimum window (cycles) a trigger at each level opens
RECOVERY_MIN_WINDOW = {"light": 1, "moderate": 2, "heavy": 3}

# level -> (event, hook, texture) multipliers
SUPPRESSION_MULTIPLIERS = {
    "heavy": (0.5, 0.5, 0.6),
    "moderate": (0.75, 0.6, 0.7),
    "light": (0.9, 0.85, 0.8),
    "none": (1.0, 1.0, 1.0),
}

# level -> (suppress_events, suppress_hooks, suppress_textures)
SUPPRESSION_SWITCHES = {
    "heavy": (True, True, True),
    "moderate": (False, True, True),
    "light": (False, False, True),
    "none": (False, False, False),
}

# =============================================================================
# SCORE BOUNDS
# =============================================================================

CIVIC_LOAD_CAP = 30
CIVIC_LOAD_STRAIN = 12
CIVIC_LOAD_VARIANCE = 5

CYCLE_WEIGHT_CAP = 60
CYCLE_WEIGHT_HIGH = 25
CYCLE_WEIGHT_MEDIUM = 12

MIGRATION_DRIFT_BOUND = 50
NEIGHBORHOOD_DRIFT_BOUND = 5

# =============================================================================
# CRISIS SPIKES
# =============================================================================

CRISIS_BASE_CHANCE = 0.65
CRISIS_CHANCE_FLOOR = 0.2
CRISIS_CHANCE_CEILING = 0.9
CRISIS_MAX_SPIKES = 2
CRISIS_REPEAT_PENALTY = 0.15
CRISIS_COOLING_PENALTY = 0.5
CRISIS_MIN_WEIGHT = 0.1

CRISIS_DOMAIN_WEIGHTS = {
    "HEALTH": 1.0,
    "INFRASTRUCTURE": 0.9,
    "CIVIC": 0.8,
    "ECONOMIC": 0.7,
    "SAFETY": 0.8,
    "ENVIRONMENT": 0.6,
    "CULTURE": 0.4,
}

NEIGHBORHOOD_WEIGHTS = {
    "Temescal": 0.9,
    "Downtown": 1.2,
    "Fruitvale": 1.0,
    "Lake Merritt": 0.8,
    "West Oakland": 1.3,
    "Laurel": 0.7,
    "Rockridge": 0.6,
    "Jack London": 1.0,
    "Uptown": 1.1,
    "KONO": 0.9,
    "Chinatown": 1.0,
    "Piedmont Ave": 0.5,
}

SEVERITY_POOL_NORMAL = ("low", "low", "medium", "medium", "medium", "high")
SEVERITY_POOL_PEACEFUL = ("low", "low", "low", "medium", "medium")
SEVERITY_POOL_CROWD = ("low", "medium", "medium", "medium", "high", "high")

IMPACT_BASE = {"high": 50, "medium": 30, "low": 15}

# =============================================================================
# HISTORY
# =============================================================================

DIGEST_WINDOW = 7

# =============================================================================
# SIGNAL DEFAULTS (a missing signal resolves to these)
# =============================================================================

DEFAULT_WEATHER_TYPE = "clear"
DEFAULT_WEATHER_IMPACT = 1.0
DEFAULT_ECONOMIC_MOOD = 50
DEFAULT_EMPLOYMENT_RATE = 0.91
DEFAULT_ILLNESS_RATE = 0.05
DEFAULT_SEASON = "Spring"
DEFAULT_SPORTS_SEASON = "off-season"

SIGNAL_DEFAULTS = {
    "world_events": [],
    "story_hooks": [],
    "texture_triggers": [],
    "story_seeds": [],
    "relationship_bonds": [],
    "event_arcs": [],
    "economic_ripples": [],
    "economic_mood": DEFAULT_ECONOMIC_MOOD,
    "civic_load": "stable",
    "civic_load_score": 0,
    "shock_flag": "none",
    "pattern_flag": "none",
    "migration_drift": 0,
    "event_suppression": 1.0,
    "hook_suppression": 1.0,
    "texture_suppression": 1.0,
    "suppress_domains": [],
    "media_effects": {},
}
