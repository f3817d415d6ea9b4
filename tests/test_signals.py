"""
tests/test_signals.py - Tests for the scoring signals

Validates:
- civic load bounds, cycle filtering and calendar offsets
- cycle weight classification
- pattern detection over the digest window
- migration drift bounds
- shock detection and persistence
"""

from cyclesim.scoring import ScoreAccumulator, round_half_up
from cyclesim.signal_civic_load import apply_civic_load
from cyclesim.signal_cycle_weight import apply_cycle_weight
from cyclesim.signal_migration import apply_migration_drift, effective_economy
from cyclesim.signal_pattern import apply_pattern_detection, detect_pattern
from cyclesim.signal_shock import apply_shock_monitor, resolve_shock_flag, shock_thresholds
from cyclesim.types_state import DigestRecord


def events(n, severity="low", cycle=1, domain="HEALTH"):
    return [{"domain": domain, "severity": severity, "cycle": cycle,
             "neighborhood": "Downtown"} for _ in range(n)]


def digest(cycle, **kw):
    return DigestRecord(cycle=cycle, **kw)


# =============================================================================
# ACCUMULATOR
# =============================================================================

class TestScoreAccumulator:
    """Shared accumulator mechanics."""

    def test_round_half_up(self):
        """Halves round toward +inf."""
        assert round_half_up(0.5) == 1
        assert round_half_up(2.5) == 3
        assert round_half_up(-0.5) == 0
        assert round_half_up(1.49) == 1

    def test_bounded_and_classified(self):
        """The score is clipped and the first reached threshold wins."""
        acc = ScoreAccumulator(floor=0, cap=10)
        acc.add(25, "big")
        result = acc.classify([(8, "high"), (4, "medium")], default="low")
        assert result.value == 10
        assert result.flag == "high"
        assert result.reasons == ["big"]

    def test_floor(self):
        """Negative totals stop at the floor."""
        acc = ScoreAccumulator(floor=0, cap=10)
        acc.add(-3)
        assert acc.classify([(4, "x")], default="low").value == 0

    def test_add_capped(self):
        """add_capped contributes at most the cap."""
        acc = ScoreAccumulator()
        acc.add_capped(20, 12)
        assert acc.score == 12


# =============================================================================
# CIVIC LOAD
# =============================================================================

class TestCivicLoad:
    """apply_civic_load."""

    def test_quiet_cycle_is_stable(self, make_ctx):
        """No events and neutral inputs score 0 and read stable."""
        ctx = make_ctx(cycle_id=42)
        result = apply_civic_load(ctx)
        assert result.value == 0
        assert ctx.signal("civic_load") == "stable"

    def test_heavy_cycle_strains(self, make_ctx):
        """Volume plus a capped severity subtotal reaches load-strain."""
        ctx = make_ctx(inputs={"world_events": events(3, "high") + events(3, "medium")})
        result = apply_civic_load(ctx)
        # volume 4 + severity min(9 + 6, 12)
        assert result.value == 16
        assert result.flag == "load-strain"
        assert "high event volume" in result.reasons

    def test_only_current_cycle_events_count(self, make_ctx):
        """Events stamped with another cycle are ignored."""
        ctx = make_ctx(cycle_id=5, inputs={"world_events": events(6, "high", cycle=4)})
        assert apply_civic_load(ctx).value == 0

    def test_score_capped_at_30(self, make_ctx):
        """A saturated cycle never exceeds the cap."""
        ctx = make_ctx(inputs={
            "world_events": events(6, "high"),
            "weather": {"type": "storm", "impact": 1.5},
            "city_dynamics": {"sentiment": -0.6},
            "economic_mood": 20,
            "calendar": {"holiday": "Independence", "holiday_priority": "major",
                         "sports_season": "championship"},
        })
        for i in range(6):
            ctx.record_issue(f"issue {i}")
        result = apply_civic_load(ctx)
        assert result.value == 30
        assert result.flag == "load-strain"

    def test_audit_issues_capped_at_five(self, make_ctx):
        """Only five audit issues are counted."""
        ctx = make_ctx()
        for i in range(9):
            ctx.record_issue(f"issue {i}")
        assert apply_civic_load(ctx).value == 10

    def test_rest_holiday_never_negative(self, make_ctx):
        """A civic-rest holiday on a quiet day stays at the floor."""
        ctx = make_ctx(inputs={"calendar": {"holiday": "MLKDay"}})
        result = apply_civic_load(ctx)
        assert result.value == 0
        assert "civic-rest-holiday" in result.calendar_factors


# =============================================================================
# CYCLE WEIGHT
# =============================================================================

class TestCycleWeight:
    """apply_cycle_weight."""

    def test_quiet_cycle_low_signal(self, make_ctx):
        """Nothing happening reads low-signal with the base reason."""
        ctx = make_ctx()
        result = apply_cycle_weight(ctx)
        assert result.flag == "low-signal"
        assert ctx.signal("cycle_weight_reason") == "Low activity and stable patterns."

    def test_medium_then_high_with_calendar(self, make_ctx):
        """Three high events, strain and a shock are medium; First Friday tips it high."""
        inputs = {"world_events": events(3, "high")}
        ctx = make_ctx(inputs=inputs)
        ctx.set_signal("civic_load", "load-strain")
        ctx.set_signal("shock_flag", "shock-flag")
        result = apply_cycle_weight(ctx)
        assert result.value == 22
        assert result.flag == "medium-signal"

        ctx = make_ctx(inputs={**inputs, "calendar": {"is_first_friday": True}})
        ctx.set_signal("civic_load", "load-strain")
        ctx.set_signal("shock_flag", "shock-flag")
        result = apply_cycle_weight(ctx)
        assert result.value == 25
        assert result.flag == "high-signal"
        assert "first-friday" in result.calendar_factors

    def test_capped_at_60(self, make_ctx):
        """Score never exceeds 60."""
        ctx = make_ctx(inputs={"world_events": events(20, "high")})
        assert apply_cycle_weight(ctx).value == 60


# =============================================================================
# PATTERN DETECTION
# =============================================================================

class TestPatternDetection:
    """detect_pattern over a newest-first window."""

    def test_short_history_is_none(self, make_ctx):
        """Fewer than two records cannot form a pattern."""
        assert detect_pattern(make_ctx(), [digest(1)])["pattern"] == "none"

    def test_stability_streak(self, make_ctx):
        """Five calm cycles and a quiet current cycle."""
        history = [digest(c, events_generated=10) for c in range(6, 1, -1)]
        assert detect_pattern(make_ctx(cycle_id=7), history)["pattern"] == "stability-streak"

    def test_micro_event_wave(self, make_ctx):
        """Three busy cycles without a shock."""
        history = [digest(c, events_generated=60) for c in (3, 2, 1)]
        assert detect_pattern(make_ctx(cycle_id=4), history)["pattern"] == "micro-event-wave"

    def test_strain_trend(self, make_ctx):
        """Two strained cycles in the window."""
        history = [digest(2, civic_load="load-strain"), digest(1, civic_load="load-strain")]
        assert detect_pattern(make_ctx(cycle_id=3), history)["pattern"] == "strain-trend"

    def test_community_downgrades_strain(self, make_ctx):
        """Strong engagement turns a marginal strain trend into elevated activity."""
        history = [digest(2, civic_load="load-strain"), digest(1, civic_load="load-strain")]
        ctx = make_ctx(cycle_id=3, inputs={"city_dynamics": {"community_engagement": 1.5}})
        result = detect_pattern(ctx, history)
        assert result["pattern"] == "elevated-activity"
        assert result["calendar_adjusted"] is True

    def test_calm_after_shock(self, make_ctx):
        """Quiet now, shock earlier in the window."""
        history = [digest(3), digest(2), digest(1, shock_flag="shock-flag")]
        assert detect_pattern(make_ctx(cycle_id=4), history)["pattern"] == "calm-after-shock"

    def test_elevated_activity(self, make_ctx):
        """A three-cycle average in the elevated band."""
        history = [digest(c, events_generated=52) for c in (3, 2, 1)]
        assert detect_pattern(make_ctx(cycle_id=4), history)["pattern"] == "elevated-activity"

    def test_apply_writes_signal(self, make_ctx):
        """apply_pattern_detection reads digest_history and writes pattern_flag."""
        ctx = make_ctx(cycle_id=3)
        ctx.set_signal("digest_history",
                       [digest(2, civic_load="load-strain"), digest(1, civic_load="load-strain")])
        assert apply_pattern_detection(ctx) == "strain-trend"
        assert ctx.signal("pattern_flag") == "strain-trend"
        assert ctx.signal("pattern_calendar_context")["holiday"] == "none"


# =============================================================================
# MIGRATION DRIFT
# =============================================================================

class TestMigrationDrift:
    """apply_migration_drift."""

    def test_effective_economy_bands(self):
        """Economic mood maps onto four bands."""
        assert effective_economy(70) == "strong"
        assert effective_economy(50) == "stable"
        assert effective_economy(35) == "weak"
        assert effective_economy(10) == "unstable"

    def test_quiet_city_small_drift(self, make_ctx):
        """Neutral inputs leave only the daily fluctuation."""
        drift = apply_migration_drift(make_ctx(cycle_id=42))
        assert -5 <= drift <= 5

    def test_drift_bounded(self, make_ctx):
        """A huge inflow saturates at +50."""
        ctx = make_ctx(inputs={
            "world_population": {"migration": 1000000, "total_population": 400000},
            "economic_mood": 80,
        })
        drift = apply_migration_drift(ctx)
        assert 45 <= drift <= 50

    def test_deterministic(self, make_ctx):
        """Same seed and inputs give the same drift and flows."""
        inputs = {"economic_mood": 25, "calendar": {"holiday": "Thanksgiving"},
                  "neighborhood_map": [{"name": "Temescal", "row": 2}]}
        a, b = make_ctx(cycle_id=9, inputs=inputs), make_ctx(cycle_id=9, inputs=inputs)
        assert apply_migration_drift(a) == apply_migration_drift(b)
        assert a.signal("neighborhood_migration") == b.signal("neighborhood_migration")
        assert "weak-economy-exodus" in a.signal("migration_drift_factors")

    def test_neighborhood_flow_bounded(self, make_ctx):
        """Per-neighborhood flows stay within +/-5 and carry their ledger row."""
        ctx = make_ctx(inputs={
            "economic_mood": 15,
            "neighborhood_map": [
                {"name": "West Oakland", "row": 2, "crime_index": 2.0, "sentiment": -0.8,
                 "retail_vitality": 0.5, "event_attractiveness": 0.5},
                {"name": "Rockridge", "row": 3, "crime_index": 0.5, "sentiment": 0.8},
            ],
            "neighborhood_economies": {"West Oakland": {"mood": 20, "descriptor": "struggling"}},
        })
        apply_migration_drift(ctx)
        flows = ctx.signal("neighborhood_migration")
        assert set(flows) == {"West Oakland", "Rockridge"}
        assert flows["West Oakland"]["row"] == 2
        for flow in flows.values():
            assert -5 <= flow["drift"] <= 5


# =============================================================================
# SHOCK MONITOR
# =============================================================================

class TestShockMonitor:
    """Detection and persistence."""

    def test_quiet_cycle_no_shock(self, make_ctx):
        """No history and no events: none."""
        ctx = make_ctx()
        assert apply_shock_monitor(ctx) == "none"
        assert ctx.signal("shock_score") == 0

    def test_high_severity_cluster_flags(self, make_ctx):
        """Two high-severity events open a fresh shock."""
        ctx = make_ctx(cycle_id=4, inputs={"world_events": events(2, "high", cycle=4)})
        assert apply_shock_monitor(ctx) == "shock-flag"
        assert "high severity cluster" in ctx.signal("shock_reasons")
        assert ctx.signal("shock_start_cycle") == 4
        assert ctx.signal("shock_duration") == 0

    def test_persisting_shock_fades(self, make_ctx):
        """Three cycles in with a single reason, the shock fades."""
        ctx = make_ctx(cycle_id=6, inputs={"world_events": events(2, "high", cycle=6)})
        ctx.set_signal("digest_history",
                       [digest(5, shock_flag="shock-flag", shock_start_cycle=3)])
        assert apply_shock_monitor(ctx) == "shock-fading"
        assert ctx.signal("shock_start_cycle") == 3
        assert ctx.signal("shock_duration") == 3

    def test_resolve_chronic(self):
        """Five cycles in with fewer than three reasons is chronic."""
        flag, start, duration, reasons = resolve_shock_flag(["a", "b"], "shock-fading", 1, 6)
        assert (flag, start, duration) == ("shock-chronic", 1, 5)
        assert reasons[-1].startswith("chronic")

    def test_resolve_strong_evidence_stays_flagged(self):
        """Enough reasons keep a long shock flagged."""
        flag, _, _, _ = resolve_shock_flag(["a", "b", "c"], "shock-chronic", 1, 8)
        assert flag == "shock-flag"

    def test_resolve_clears(self):
        """No reasons after a shock reads resolved; after nothing reads none."""
        assert resolve_shock_flag([], "shock-flag", 2, 5)[0] == "shock-resolved"
        assert resolve_shock_flag([], "shock-chronic", 2, 9)[0] == "shock-resolved"
        assert resolve_shock_flag([], "none", 0, 5)[0] == "none"

    def test_calendar_raises_thresholds(self, make_ctx):
        """Championship season raises the event and migration thresholds."""
        th = shock_thresholds(make_ctx(inputs={"calendar": {"sports_season": "championship"}}))
        assert th.event_spike == 14
        assert th.chaos_spike == 7
        assert th.migration == 210
