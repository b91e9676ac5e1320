"""Shared fixtures: a flat arena with two small teams on a manual clock."""

import random

import pytest

from artillery_ai.ballistics import AimInfo, predict_trajectory
from artillery_ai.entities import make_team
from artillery_ai.physics import Vector2D
from artillery_ai.scheduler import ManualScheduler
from artillery_ai.scoring import ShotCandidate, ShotDebug
from artillery_ai.session import GameSession
from artillery_ai.terrain import Terrain
from artillery_ai.weapons import WeaponType


ARENA_WIDTH = 1200
ARENA_HEIGHT = 800
GROUND_Y = 700
# Centre height of a combatant resting on GROUND_Y
STAND_Y = 687.0


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def scheduler():
    """Virtual clock starting at t=0."""
    return ManualScheduler()


@pytest.fixture
def flat_terrain():
    """Flat ground across the arena."""
    return Terrain.flat(ARENA_WIDTH, ARENA_HEIGHT, GROUND_Y)


@pytest.fixture
def make_session(scheduler):
    """Factory for a Red vs Blue session driven by the manual scheduler."""
    def _make(
        red_xs=(300,),
        blue_xs=(700,),
        wind=0.0,
        predictor=predict_trajectory,
        terrain=None,
        seed=42,
    ):
        red = make_team("Red", list(red_xs), y=STAND_Y)
        blue = make_team("Blue", list(blue_xs), y=STAND_Y)
        return GameSession(
            width=ARENA_WIDTH,
            height=ARENA_HEIGHT,
            terrain=terrain if terrain is not None else Terrain.flat(ARENA_WIDTH, ARENA_HEIGHT, GROUND_Y),
            teams=[red, blue],
            wind=wind,
            clock=scheduler.now_ms,
            rng=random.Random(seed),
            predictor=predictor,
        )
    return _make


# =============================================================================
# HELPERS
# =============================================================================

def make_candidate(score, weapon=WeaponType.BAZOOKA, angle=-0.6, power=0.5, dist_to_self=300.0):
    """Hand-built candidate with a flat debug breakdown."""
    impact = Vector2D(0.0, 0.0)
    debug = ShotDebug(
        weapon=weapon,
        angle=angle,
        power=power,
        impact=impact,
        dist_to_target=0.0,
        dist_to_self=dist_to_self,
        damage_score=score,
        splash_proximity=0.0,
        self_damage=0.0,
        self_penalty=0.0,
        friendly_damage=0.0,
        friendly_penalty=0.0,
        weapon_bias=1.0,
        arc_bonus=0.0,
        water_bonus=0.0,
        base_score=score,
        biased_score=score,
        score=score,
        base_angle=angle,
        angle_offset=0.0,
        sim_facing=1,
    )
    return ShotCandidate(
        weapon=weapon,
        angle=angle,
        power=power,
        aim=AimInfo(0.0, 0.0, angle),
        impact=impact,
        score=score,
        debug=debug,
    )
