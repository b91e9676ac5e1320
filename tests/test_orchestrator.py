#!/usr/bin/env python3
"""
Tests for turn plan composition.

Tests:
- Early exits (wrong phase, no living enemy)
- Fire delay inside the remaining turn time
- Panic fallback and the escape-arc hand-off from the movement search
- Debug trace contents
- Self-hit detection
"""

import dataclasses
import math
import random

import pytest

from artillery_ai.config import AiSettings, CinematicSettings, DebugSettings, MovementSettings
from artillery_ai.movement import MovementPlan, MovementStep
from artillery_ai.orchestrator import (
    FIRE_SAFETY_MS,
    TurnDebug,
    is_likely_self_hit,
    plan_turn,
)
from artillery_ai.personality import Personality
from artillery_ai.physics import Vector2D
from artillery_ai.planning import PANIC_THINK_MS, PanicStrategy
from artillery_ai.planning import plan_shot as real_plan_shot
from artillery_ai.session import GamePhase
from artillery_ai.weapons import WeaponType

from conftest import STAND_Y


# =============================================================================
# FIXTURES
# =============================================================================

def direct_hit(weapon, shooter, aim, power, wind, terrain, width, height):
    """Every shot lands on the combatant at x=700."""
    return [Vector2D(500, 600), Vector2D(700, STAND_Y)]


@pytest.fixture
def session(make_session):
    return make_session(predictor=direct_hit)


STILL = AiSettings(movement=MovementSettings(enabled=False))


def no_shot(*args, **kwargs):
    return None


# =============================================================================
# EARLY EXITS
# =============================================================================

class TestPlanTurnEarlyExit:
    """Tests for turns that produce no plan."""

    @pytest.mark.parametrize("phase", [GamePhase.PROJECTILE, GamePhase.POST_SHOT, GamePhase.GAME_OVER])
    def test_outside_aim_phase(self, session, phase):
        session.phase = phase
        assert plan_turn(session, STILL) is None

    def test_no_living_enemy(self, session):
        session.teams[1].members[0].alive = False
        assert plan_turn(session, STILL) is None


# =============================================================================
# NORMAL SHOTS
# =============================================================================

class TestPlanTurn:
    """Tests for composing a normal turn."""

    def test_best_shot_is_planned(self, session):
        plan = plan_turn(session, STILL, random.Random(42))
        # Grenade direct hit: 90 damage + 22 splash
        assert plan.weapon is WeaponType.HAND_GRENADE
        assert plan.score == pytest.approx(112)
        assert plan.target is session.teams[1].members[0]
        assert not plan.panic_shot
        assert plan.panic_strategy is None
        assert plan.moves == ()
        assert plan.delay_ms == 1500
        assert plan.total_duration_ms == 1500

    def test_personality_override(self, session):
        settings = AiSettings(personality=Personality.DEMOLISHER, movement=MovementSettings(enabled=False))
        plan = plan_turn(session, settings, random.Random(42))
        assert plan.personality is Personality.DEMOLISHER
        assert plan.score == pytest.approx(112 * 1.35)

    def test_delay_limited_by_turn_time(self, session, scheduler):
        scheduler.advance(29_000)
        plan = plan_turn(session, STILL, random.Random(42))
        assert plan.delay_ms == pytest.approx(1000 - FIRE_SAFETY_MS)

    def test_delay_never_negative(self, session, scheduler):
        scheduler.advance(29_950)
        plan = plan_turn(session, STILL, random.Random(42))
        assert plan.delay_ms == 0

    @pytest.mark.parametrize("chance,expected", [(0.0, False), (1.0, True)])
    def test_cinematic_roll(self, session, chance, expected):
        settings = AiSettings(
            cinematic=CinematicSettings(chance=chance),
            movement=MovementSettings(enabled=False),
        )
        assert plan_turn(session, settings, random.Random(42)).cinematic is expected

    def test_defaults_to_session_rng(self, make_session):
        first = plan_turn(make_session(predictor=direct_hit, seed=5), STILL)
        second = plan_turn(make_session(predictor=direct_hit, seed=5), STILL)
        assert (first.weapon, first.angle, first.power, first.cinematic) == (
            second.weapon, second.angle, second.power, second.cinematic,
        )

    def test_plan_is_immutable(self, session):
        plan = plan_turn(session, STILL, random.Random(42))
        with pytest.raises(dataclasses.FrozenInstanceError):
            plan.angle = 0.0

    def test_movement_steps_and_planned_shooter(self, monkeypatch, session):
        shooter = session.active_combatant
        clone = shooter.clone()
        clone.x += 40
        steps = [
            MovementStep(1, 260, False, Vector2D(300, STAND_Y), Vector2D(320, STAND_Y), False),
            MovementStep(1, 260, False, Vector2D(320, STAND_Y), Vector2D(340, STAND_Y), False),
        ]
        monkeypatch.setattr(
            "artillery_ai.orchestrator.plan_movement",
            lambda *args, **kwargs: MovementPlan(steps, 520, 9000, clone, False),
        )
        seen = []

        def spy(session, shooter, *args, **kwargs):
            seen.append(shooter)
            return real_plan_shot(session, shooter, *args, **kwargs)
        monkeypatch.setattr("artillery_ai.orchestrator.plan_shot", spy)

        plan = plan_turn(session, None, random.Random(42))
        assert seen == [clone]
        assert plan.moves == tuple(steps)
        assert plan.moved_ms == 520
        assert plan.delay_ms == 1500
        assert plan.total_duration_ms == 2020
        assert shooter.x == 300


# =============================================================================
# PANIC SHOTS
# =============================================================================

class TestPanicFallback:
    """Tests for the panic fallback."""

    def test_default_panic(self, monkeypatch, session):
        monkeypatch.setattr("artillery_ai.orchestrator.plan_shot", no_shot)
        plan = plan_turn(session, STILL, random.Random(42))
        assert plan.panic_shot
        assert plan.panic_strategy is PanicStrategy.DEFAULT
        assert plan.weapon is WeaponType.BAZOOKA
        assert plan.delay_ms == PANIC_THINK_MS
        assert math.sin(plan.angle) < 0

    def test_crater_stuck_uses_escape_arc(self, monkeypatch, session):
        shooter = session.active_combatant
        monkeypatch.setattr("artillery_ai.orchestrator.plan_shot", no_shot)
        monkeypatch.setattr(
            "artillery_ai.orchestrator.plan_movement",
            lambda *args, **kwargs: MovementPlan([], 0, 9000, shooter, True),
        )
        plan = plan_turn(session, None, random.Random(42))
        assert plan.panic_strategy is PanicStrategy.ESCAPE_ARC

    def test_panic_delay_limited_by_turn_time(self, monkeypatch, session, scheduler):
        monkeypatch.setattr("artillery_ai.orchestrator.plan_shot", no_shot)
        scheduler.advance(29_800)
        plan = plan_turn(session, STILL, random.Random(42))
        assert plan.delay_ms == pytest.approx(200 - 80)


# =============================================================================
# DEBUG TRACE
# =============================================================================

class TestDebugTrace:
    """Tests for the optional explanation trace."""

    def _settings(self, top_n=None):
        return AiSettings(
            debug=DebugSettings(enabled=True, top_n=top_n),
            movement=MovementSettings(enabled=False),
        )

    def test_disabled_by_default(self, session):
        assert plan_turn(session, STILL, random.Random(42)).debug is None

    def test_trace_contents(self, session):
        plan = plan_turn(session, self._settings(), random.Random(42))
        debug = plan.debug
        assert debug.candidate_count == 92
        assert len(debug.top) == 6
        assert debug.top[0]["score"] >= debug.top[-1]["score"]
        assert set(debug.best_by_weapon) == {"Bazooka", "Hand Grenade", "Rifle", "Uzi"}
        assert debug.chosen == debug.fired
        assert debug.movement["outcome"] == "shot"
        assert debug.settings["personality"] == "Generalist"
        assert debug.shooter["name"] == "R1"
        assert debug.target["name"] == "B1"

    def test_top_n(self, session):
        plan = plan_turn(session, self._settings(top_n=2), random.Random(42))
        assert len(plan.debug.top) == 2

    def test_panic_trace(self, monkeypatch, session):
        monkeypatch.setattr("artillery_ai.orchestrator.plan_shot", no_shot)
        plan = plan_turn(session, self._settings(), random.Random(42))
        assert plan.debug.movement["outcome"] == "panic-shot"
        assert plan.debug.candidate_count == 92
        assert plan.debug.fired["weapon"] == "Bazooka"

    def test_round_trip(self, session):
        debug = plan_turn(session, self._settings(), random.Random(42)).debug
        assert TurnDebug.from_dict(debug.to_dict()) == debug


# =============================================================================
# SELF-HIT CHECK
# =============================================================================

class TestIsLikelySelfHit:
    """Tests for the pre-fire self-hit check."""

    def test_hitscan_never_self_hits(self, session):
        shooter = session.active_combatant
        assert not is_likely_self_hit(session, shooter, WeaponType.RIFLE, math.pi / 2, 1.0)

    def test_landing_far_away(self, session):
        shooter = session.active_combatant
        assert not is_likely_self_hit(session, shooter, WeaponType.BAZOOKA, -0.5, 0.6)

    def test_empty_path_is_a_self_hit(self, make_session):
        session = make_session(predictor=lambda *args: [])
        shooter = session.active_combatant
        assert is_likely_self_hit(session, shooter, WeaponType.BAZOOKA, -0.5, 0.6)

    def test_straight_up_comes_back_down(self, make_session):
        session = make_session()
        shooter = session.active_combatant
        shooter.facing = -1
        assert is_likely_self_hit(session, shooter, WeaponType.BAZOOKA, -math.pi / 2, 0.35)
        assert shooter.facing == -1
