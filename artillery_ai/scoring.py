#!/usr/bin/env python3
"""
Shot Scoring Module for the Artillery AI Turn Planner

Scores one (weapon, angle, power) choice by simulating its flight and
turning the result into a single desirability number with an auditable
breakdown, and enumerates the fixed candidate set for a shooter/target pair.

Score composition:
- Damage estimate (explosion falloff for area weapons, hit/range factors
  for hit-scan weapons)
- Splash proximity bonus
- Cinematic bonuses (arc over cover, push into water)
- Personality weapon bias
- Self-damage and friendly-damage penalties scaled by personality risk

Positive scores are attacks worth taking; the shot planner treats a best
score at or below zero as "no viable shot".
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Optional, Sequence

import numpy as np

from .ballistics import AimInfo, build_aim_from_angle, compute_aim_angle, facing_for_aim
from .config import ScoringWeights
from .entities import Combatant
from .personality import Personality
from .physics import PROJECTILE_RADIUS, Vector2D, clamp, distance, water_line
from .session import LiveSession
from .weapons import ALL_WEAPONS, WeaponType, explosion_radius, get_spec


# =============================================================================
# PERSONALITY TABLES
# =============================================================================

WEAPON_BIAS: dict[Personality, dict[WeaponType, float]] = {
    Personality.GENERALIST: {
        WeaponType.BAZOOKA: 1.0,
        WeaponType.HAND_GRENADE: 1.0,
        WeaponType.RIFLE: 1.0,
        WeaponType.UZI: 1.0,
    },
    Personality.MARKSMAN: {
        WeaponType.BAZOOKA: 1.1,
        WeaponType.HAND_GRENADE: 0.85,
        WeaponType.RIFLE: 1.35,
        WeaponType.UZI: 0.8,
    },
    Personality.DEMOLISHER: {
        WeaponType.BAZOOKA: 1.25,
        WeaponType.HAND_GRENADE: 1.35,
        WeaponType.RIFLE: 0.85,
        WeaponType.UZI: 0.75,
    },
    Personality.COMMANDO: {
        WeaponType.BAZOOKA: 0.95,
        WeaponType.HAND_GRENADE: 0.8,
        WeaponType.RIFLE: 1.05,
        WeaponType.UZI: 1.4,
    },
}

RISK_MULTIPLIER: dict[Personality, float] = {
    Personality.GENERALIST: 1.0,
    Personality.MARKSMAN: 1.2,
    Personality.DEMOLISHER: 1.0,
    Personality.COMMANDO: 0.8,
}

# Candidate grid for arcing weapons
ANGLE_OFFSETS = (-0.5, -0.35, -0.2, -0.1, 0.0, 0.1, 0.2, 0.35, 0.5)
POWER_STEPS = (0.35, 0.5, 0.65, 0.8, 0.95)

# Terrain sampling step for the arc-over-cover bonus (px)
COVER_SAMPLE_STEP = 8
# Apex must clear the highest terrain between shooter and target by more than this
MIN_COVER_CLEARANCE = 6.0
COVER_CLEARANCE_SCALE = 80.0

# Targets farther than this above the water line earn no water-kill bonus
WATER_KILL_REACH = 120.0
WATER_PUSH_SCALE = 60.0


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class ShotDebug:
    """
    Full breakdown of one candidate's score.

    Hit-scan only fields (hit_factor, range_factor, expected_hits) and the
    bazooka direct-hit distance are None where they do not apply.
    """
    weapon: WeaponType
    angle: float
    power: float
    impact: Vector2D
    dist_to_target: float
    dist_to_self: float
    damage_score: float
    splash_proximity: float
    self_damage: float
    self_penalty: float
    friendly_damage: float
    friendly_penalty: float
    weapon_bias: float
    arc_bonus: float
    water_bonus: float
    base_score: float
    biased_score: float
    score: float
    base_angle: float
    angle_offset: float
    sim_facing: int
    bazooka_direct_hit_dist: Optional[float] = None
    hit_factor: Optional[float] = None
    range_factor: Optional[float] = None
    expected_hits: Optional[float] = None
    hit_name: Optional[str] = None
    hit_team: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Plain-data form for debug traces."""
        data = asdict(self)
        data["weapon"] = self.weapon.value
        data["impact"] = self.impact.to_dict()
        return data


@dataclass
class ShotCandidate:
    """One fully specified hypothetical shot with its score."""
    weapon: WeaponType
    angle: float
    power: float
    aim: AimInfo
    impact: Vector2D
    score: float
    debug: ShotDebug


# =============================================================================
# SCORING TERMS
# =============================================================================

def estimate_explosion_damage(dist: float, weapon: WeaponType, exponent: float = 0.6) -> float:
    """Area damage at dist from the blast centre; 0 beyond the radius or for hit-scan."""
    radius = explosion_radius(weapon)
    if radius <= 0 or dist > radius:
        return 0.0
    t = clamp(1.0 - dist / radius, 0.0, 1.0)
    return get_spec(weapon).damage * math.pow(t, exponent)


def _path_distances(points: Sequence[Vector2D], x: float, y: float) -> np.ndarray:
    coords = np.array([(p.x, p.y) for p in points], dtype=np.float64).reshape(-1, 2)
    return np.hypot(coords[:, 0] - x, coords[:, 1] - y)


def _closest_point(points: Sequence[Vector2D], target: Combatant) -> Optional[tuple[Vector2D, float]]:
    if not points:
        return None
    dists = _path_distances(points, target.x, target.y)
    index = int(np.argmin(dists))
    return points[index], float(dists[index])


def _is_same_body(member: Combatant, shooter: Combatant) -> bool:
    # The movement search scores from a clone, so the live original must not
    # count as a bystander either.
    return member is shooter or (member.team == shooter.team and member.name == shooter.name)


def _first_contact(
    points: Sequence[Vector2D],
    shooter: Combatant,
    teams: Sequence[Any],
) -> Optional[tuple[int, Combatant]]:
    """First path point that overlaps any living combatant other than the shooter."""
    bodies = [
        member
        for team in teams
        for member in team.members
        if member.alive and not _is_same_body(member, shooter)
    ]
    if not points or not bodies:
        return None
    coords = np.array([(p.x, p.y) for p in points], dtype=np.float64)
    best: Optional[tuple[int, Combatant]] = None
    for body in bodies:
        dists = np.hypot(coords[:, 0] - body.x, coords[:, 1] - body.y)
        inside = np.nonzero(dists <= body.radius + PROJECTILE_RADIUS)[0]
        if inside.size and (best is None or inside[0] < best[0]):
            best = (int(inside[0]), body)
    return best


def arc_over_cover_bonus(
    session: LiveSession,
    shooter: Combatant,
    target: Combatant,
    points: Sequence[Vector2D],
) -> float:
    """
    Reward arcs whose apex clears the highest terrain between shooter and target.

    Returns:
        0 with fewer than three path points or clearance of MIN_COVER_CLEARANCE
        or less, else clearance / 80 clamped to [0, 1].
    """
    if len(points) < 3:
        return 0.0
    apex_y = min(p.y for p in points)

    terrain = session.terrain
    heights = terrain.height_map
    start = min(shooter.x, target.x)
    end = max(shooter.x, target.x)
    sample_xs = np.arange(start, end + 1e-9, COVER_SAMPLE_STEP)
    if sample_xs.size == 0 or heights.size == 0:
        return 0.0
    columns = np.clip(np.round(sample_xs - terrain.world_left), 0, heights.size - 1).astype(int)
    min_terrain_y = float(heights[columns].min())
    if not math.isfinite(min_terrain_y) or not math.isfinite(apex_y):
        return 0.0

    clearance = min_terrain_y - apex_y
    if clearance <= MIN_COVER_CLEARANCE:
        return 0.0
    return clamp(clearance / COVER_CLEARANCE_SCALE, 0.0, 1.0)


def water_kill_bonus(
    session: LiveSession,
    target: Combatant,
    weapon: WeaponType,
    impact: Vector2D,
) -> float:
    """Reward blasts just above a target standing near the water line."""
    if target.y < water_line(session.height) - WATER_KILL_REACH:
        return 0.0
    dist = distance(impact.x, impact.y, target.x, target.y)
    radius = explosion_radius(weapon)
    if radius <= 0 or dist > radius:
        return 0.0
    if impact.y >= target.y - 2:
        return 0.0
    push_down = clamp((target.y - impact.y) / WATER_PUSH_SCALE, 0.0, 1.0)
    return push_down * clamp(1.0 - dist / radius, 0.0, 1.0)


# =============================================================================
# CANDIDATE SCORER
# =============================================================================

def score_candidate(
    session: LiveSession,
    shooter: Combatant,
    target: Combatant,
    weapon: WeaponType,
    aim: AimInfo,
    angle: float,
    power: float,
    cinematic: bool,
    personality: Personality,
    base_angle: Optional[float] = None,
    angle_offset: float = 0.0,
    weights: Optional[ScoringWeights] = None,
) -> ShotCandidate:
    """
    Score a single shot by simulating it.

    The predictor spawns projectiles from the shooter's facing, so the facing
    is set from the aim direction for the simulation and always restored.

    Args:
        session: Session providing wind, terrain, arena size, teams and predictor.
        shooter: Combatant firing the shot (may be a movement-search clone).
        target: Intended victim.
        weapon: Weapon to fire.
        aim: Aim information for the shot.
        angle: Launch angle in radians.
        power: Launch power in [0, 1].
        cinematic: Enable the arc-over-cover and water-kill bonuses.
        personality: Personality of the shooter (weapon bias and risk).
        base_angle: Angle toward the target the offset was applied to.
        angle_offset: Offset from base_angle (debug only).
        weights: Tuning constants (defaults to ScoringWeights()).

    Returns:
        The scored candidate with its full breakdown.
    """
    w = weights or ScoringWeights()
    spec = get_spec(weapon)

    previous_facing = shooter.facing
    sim_facing = facing_for_aim(shooter, aim)
    shooter.facing = sim_facing
    try:
        points = session.predictor(
            weapon, shooter, aim, power, session.wind,
            session.terrain, session.width, session.height,
        )
    finally:
        shooter.facing = previous_facing

    impact = points[-1] if points else Vector2D(shooter.x, shooter.y)
    contact = _first_contact(points, shooter, session.teams)
    hit_name = contact[1].name if contact else None
    hit_team = contact[1].team if contact else None

    effective_impact = impact
    bazooka_direct_hit_dist: Optional[float] = None
    if weapon is WeaponType.BAZOOKA:
        closest = _closest_point(points, target)
        if closest is not None:
            bazooka_direct_hit_dist = closest[1]
        if contact is not None and contact[1] is not target:
            # Explodes on whoever the rocket clips first
            effective_impact = points[contact[0]]
        elif closest is not None and closest[1] <= target.radius + PROJECTILE_RADIUS:
            effective_impact = closest[0]

    dist_to_target = distance(effective_impact.x, effective_impact.y, target.x, target.y)
    dist_to_self = distance(effective_impact.x, effective_impact.y, shooter.x, shooter.y)

    hit_factor: Optional[float] = None
    range_factor: Optional[float] = None
    expected_hits: Optional[float] = None
    friendly_damage = 0.0
    if spec.hitscan:
        min_dist = float(_path_distances(points, target.x, target.y).min()) if points else math.inf
        hit_factor = clamp(1.0 - min_dist / (target.radius * w.hit_radius_factor), 0.0, 1.0)
        shot_range = distance(shooter.x, shooter.y, target.x, target.y)
        range_factor = clamp(1.0 - shot_range / w.burst_range_px, 0.0, 1.0)
        damage_score = spec.damage * hit_factor
        if spec.is_burst:
            expected_hits = spec.burst_count * w.burst_hit_rate * range_factor
            damage_score *= expected_hits
        if contact is not None and hit_team == shooter.team:
            friendly_damage = spec.damage * (expected_hits if expected_hits is not None else 1.0)
        self_damage = 0.0
        splash_proximity = 0.0
    else:
        damage_score = estimate_explosion_damage(dist_to_target, weapon, w.falloff_exponent)
        radius = spec.explosion_radius
        splash_proximity = clamp(1.0 - dist_to_target / (radius * 2), 0.0, 1.0)
        self_damage = estimate_explosion_damage(dist_to_self, weapon, w.falloff_exponent)
        for team in session.teams:
            for member in team.members:
                if member.team != shooter.team or not member.alive or _is_same_body(member, shooter):
                    continue
                friendly_damage += estimate_explosion_damage(
                    distance(effective_impact.x, effective_impact.y, member.x, member.y),
                    weapon,
                    w.falloff_exponent,
                )

    risk = RISK_MULTIPLIER[personality]
    self_penalty = self_damage * risk
    friendly_penalty = friendly_damage * risk

    arc_bonus = arc_over_cover_bonus(session, shooter, target, points) if cinematic else 0.0
    water_bonus = water_kill_bonus(session, target, weapon, effective_impact) if cinematic else 0.0

    base_score = (
        damage_score
        + splash_proximity * w.splash_weight
        + arc_bonus * w.arc_weight
        + water_bonus * w.water_weight
    )
    weapon_bias = WEAPON_BIAS[personality][weapon]
    biased_score = base_score * weapon_bias
    score = biased_score - (self_penalty + friendly_penalty) * w.self_penalty_weight

    debug = ShotDebug(
        weapon=weapon,
        angle=angle,
        power=power,
        impact=effective_impact,
        dist_to_target=dist_to_target,
        dist_to_self=dist_to_self,
        damage_score=damage_score,
        splash_proximity=splash_proximity,
        self_damage=self_damage,
        self_penalty=self_penalty,
        friendly_damage=friendly_damage,
        friendly_penalty=friendly_penalty,
        weapon_bias=weapon_bias,
        arc_bonus=arc_bonus,
        water_bonus=water_bonus,
        base_score=base_score,
        biased_score=biased_score,
        score=score,
        base_angle=angle if base_angle is None else base_angle,
        angle_offset=angle_offset,
        sim_facing=sim_facing,
        bazooka_direct_hit_dist=bazooka_direct_hit_dist,
        hit_factor=hit_factor,
        range_factor=range_factor,
        expected_hits=expected_hits,
        hit_name=hit_name,
        hit_team=hit_team,
    )
    return ShotCandidate(
        weapon=weapon,
        angle=angle,
        power=power,
        aim=aim,
        impact=effective_impact,
        score=score,
        debug=debug,
    )


# =============================================================================
# CANDIDATE GENERATOR
# =============================================================================

def build_candidates(
    session: LiveSession,
    shooter: Combatant,
    target: Combatant,
    personality: Personality,
    cinematic: bool,
    weights: Optional[ScoringWeights] = None,
) -> list[ShotCandidate]:
    """
    Enumerate and score the fixed candidate set.

    Hit-scan weapons contribute one full-power candidate at the base angle;
    arcing weapons contribute every ANGLE_OFFSETS x POWER_STEPS pair.
    """
    candidates: list[ShotCandidate] = []
    for weapon in ALL_WEAPONS:
        base_angle = compute_aim_angle(weapon, shooter, target.x, target.y)

        if get_spec(weapon).hitscan:
            aim = build_aim_from_angle(shooter, base_angle)
            candidates.append(score_candidate(
                session, shooter, target, weapon, aim, base_angle, 1.0,
                cinematic, personality, base_angle, 0.0, weights,
            ))
            continue

        for offset in ANGLE_OFFSETS:
            angle = base_angle + offset
            aim = build_aim_from_angle(shooter, angle)
            for power in POWER_STEPS:
                candidates.append(score_candidate(
                    session, shooter, target, weapon, aim, angle, power,
                    cinematic, personality, base_angle, offset, weights,
                ))
    return candidates
