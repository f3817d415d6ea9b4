"""
tests/test_recovery.py - Tests for the recovery / suppression state machine

Validates:
- overload scoring and calendar-adjusted thresholds
- heavy reset, window merge and one-step decay
- suppression multipliers handed to the next cycle
"""

import pytest

from cyclesim.recovery import (
    apply_cycle_recovery,
    compute_overload_score,
    compute_thresholds,
    merge_recovery_state,
    triggered_level,
)
from cyclesim.types_state import CalendarContext, RecoveryLevel, RecoveryState

BASE = {"light": 3, "moderate": 6, "heavy": 10}

HEAVY = RecoveryLevel.HEAVY
MODERATE = RecoveryLevel.MODERATE
LIGHT = RecoveryLevel.LIGHT
NONE = RecoveryLevel.NONE


def overloaded_inputs(cycle):
    return {
        "texture_triggers": [f"t{i}" for i in range(8)],
        "story_hooks": [{"priority": 2, "text": f"h{i}"} for i in range(9)],
        "world_events": [{"domain": "CIVIC", "severity": "low", "cycle": cycle}
                         for _ in range(12)],
    }


# =============================================================================
# OVERLOAD AND THRESHOLDS
# =============================================================================

class TestOverloadScore:
    """compute_overload_score."""

    def test_quiet_cycle_scores_zero(self, make_ctx):
        """Baseline inputs produce no overload."""
        assert compute_overload_score(make_ctx()) == 0

    def test_full_overload(self, make_ctx):
        """Every tier at its top plus strain adds up."""
        ctx = make_ctx(cycle_id=10, inputs=overloaded_inputs(10))
        ctx.set_signal("shock_flag", "shock-flag")
        ctx.set_signal("civic_load", "load-strain")
        ctx.set_signal("civic_load_score", 16)
        # textures 3 + hooks 3 + shock 3 + events 3 + strain 3 + civic score 2
        assert compute_overload_score(ctx) == 17

    def test_tiers_are_exclusive_minimums(self, make_ctx):
        """Exactly 2 textures is below the first tier; 3 reaches it."""
        ctx = make_ctx(inputs={"texture_triggers": ["a", "b"]})
        assert compute_overload_score(ctx) == 0
        ctx = make_ctx(inputs={"texture_triggers": ["a", "b", "c"]})
        assert compute_overload_score(ctx) == 1

    def test_economy_and_comfort(self, make_ctx):
        """Economic distress and weather discomfort add points."""
        ctx = make_ctx(inputs={"economic_mood": 20, "weather_mood": {"comfort_index": 0.1}})
        assert compute_overload_score(ctx) == 3


class TestThresholds:
    """compute_thresholds and triggered_level."""

    def test_no_calendar_keeps_base(self):
        """A plain day uses the base thresholds."""
        assert compute_thresholds(CalendarContext()) == BASE

    def test_championship_raises(self):
        """Championship season raises every threshold."""
        assert compute_thresholds(CalendarContext(sports_season="championship")) == {
            "light": 6, "moderate": 10, "heavy": 14,
        }

    def test_quiet_holiday_lowers(self):
        """Quiet holidays lower the thresholds."""
        assert compute_thresholds(CalendarContext(holiday="Thanksgiving")) == {
            "light": 2, "moderate": 5, "heavy": 8,
        }

    def test_floors(self):
        """Thresholds never drop below 2/4/7."""
        low = {"light": 1, "moderate": 2, "heavy": 3}
        assert compute_thresholds(CalendarContext(holiday="Thanksgiving"), low) == {
            "light": 2, "moderate": 4, "heavy": 7,
        }

    @pytest.mark.parametrize("score,level", [
        (0, NONE), (2, NONE), (3, LIGHT), (5, LIGHT), (6, MODERATE), (9, MODERATE),
        (10, HEAVY), (30, HEAVY),
    ])
    def test_triggered_level(self, score, level):
        """Score maps to the highest reached level."""
        assert triggered_level(score, BASE) is level


# =============================================================================
# STATE MERGE
# =============================================================================

class TestMergeRecoveryState:
    """merge_recovery_state."""

    def test_heavy_always_resets(self):
        """A heavy trigger restarts the window at the current cycle."""
        prev = RecoveryState(start_cycle=3, window=3, duration=2, level=MODERATE)
        state = merge_recovery_state(prev, HEAVY, 5)
        assert state == RecoveryState(start_cycle=5, window=3, duration=0, level=HEAVY)

    def test_opens_window_at_minimum(self):
        """Moderate and light open windows of 2 and 1 from an idle state."""
        assert merge_recovery_state(RecoveryState(), MODERATE, 4) == RecoveryState(
            start_cycle=4, window=2, duration=0, level=MODERATE)
        assert merge_recovery_state(RecoveryState(), LIGHT, 4) == RecoveryState(
            start_cycle=4, window=1, duration=0, level=LIGHT)

    def test_merge_keeps_decayed_previous(self):
        """A lighter trigger during heavy recovery decays one step, no further."""
        prev = RecoveryState(start_cycle=4, window=3, duration=0, level=HEAVY)
        state = merge_recovery_state(prev, LIGHT, 5)
        assert state.level is MODERATE
        assert state.window == 3, "window never shrinks"
        assert state.start_cycle == 4
        assert state.duration == 1

    def test_merge_raises_to_trigger(self):
        """A stronger non-heavy trigger lifts the level and extends the window."""
        prev = RecoveryState(start_cycle=4, window=1, duration=0, level=LIGHT)
        state = merge_recovery_state(prev, MODERATE, 5)
        assert state.level is MODERATE
        assert state.window == 2

    def test_idle_stays_idle(self):
        """No trigger and no active window is the empty state."""
        assert merge_recovery_state(RecoveryState(), NONE, 7) == RecoveryState()

    def test_monotonic_decay(self):
        """Without triggers the level drops exactly one step per cycle."""
        state = RecoveryState(start_cycle=1, window=3, level=HEAVY)
        seen = []
        for cycle in range(2, 6):
            state = merge_recovery_state(state, NONE, cycle)
            seen.append(state.level)
        assert seen == [MODERATE, LIGHT, NONE, NONE]


# =============================================================================
# PHASE
# =============================================================================

class TestApplyCycleRecovery:
    """apply_cycle_recovery end to end."""

    def test_quiet_cycle(self, make_ctx):
        """A baseline cycle stays at none with unit multipliers."""
        ctx = make_ctx(cycle_id=42)
        outcome = apply_cycle_recovery(ctx)
        assert outcome.level is NONE
        assert ctx.signal("recovery_level") == "none"
        assert ctx.signal("event_suppression") == 1.0
        assert ctx.signal("recovery_mode") is False

    def test_overload_triggers_heavy(self, make_ctx):
        """Textures, hooks, shock, events and strain push a plain day to heavy."""
        ctx = make_ctx(cycle_id=10, inputs=overloaded_inputs(10))
        ctx.set_signal("shock_flag", "shock-flag")
        ctx.set_signal("civic_load", "load-strain")
        ctx.set_signal("civic_load_score", 16)

        outcome = apply_cycle_recovery(ctx, BASE)

        assert outcome.triggered is HEAVY
        assert outcome.level is HEAVY
        assert ctx.signal("recovery_level") == "heavy"
        assert ctx.signal("recovery_window") == 3
        assert ctx.signal("event_suppression") == 0.5
        assert outcome.event_suppression == 0.5
        assert ctx.signal("suppress_events") is True
        assert ctx.signal("recovery_calendar_context")["threshold_adjustment"] == 0

    def test_heavy_decays_over_following_cycles(self, make_ctx):
        """Heavy at N; moderate at N+1 with duration 1; none by N+3."""
        ctx = make_ctx(cycle_id=20, inputs=overloaded_inputs(20))
        ctx.set_signal("shock_flag", "shock-flag")
        ctx.set_signal("civic_load", "load-strain")
        ctx.set_signal("civic_load_score", 16)
        state = apply_cycle_recovery(ctx).state
        assert state.level is HEAVY

        levels = []
        for cycle in (21, 22, 23):
            nxt = make_ctx(cycle_id=cycle)
            nxt.set_signal("recovery_state", state)
            outcome = apply_cycle_recovery(nxt)
            state = outcome.state
            levels.append(outcome.level)
            if cycle == 21:
                assert state.duration == 1
                assert nxt.signal("event_suppression") == 0.75

        assert levels == [MODERATE, LIGHT, NONE]
        assert state == RecoveryState()
        assert state.window == 0

    def test_calendar_adjustment_reported(self, make_ctx):
        """Championship season reports its heavy-threshold bump."""
        ctx = make_ctx(inputs={"calendar": {"sports_season": "championship"}})
        apply_cycle_recovery(ctx)
        assert ctx.signal("recovery_calendar_context")["threshold_adjustment"] == 4
