#!/usr/bin/env python3
"""
Shot Planning Module for the Artillery AI Turn Planner

Turns scored candidates into a decision:
- plan_shot: pick the best candidate (perfect) or a weighted pick among the
  top few with aiming noise (noisy); None when no shot scores above zero
- plan_panic_shot: a bazooka shot that always exists, used when plan_shot
  finds nothing; "escape-arc" lobs steeply away from the target to get out
  of a crater
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from .ballistics import build_aim_from_angle, compute_aim_angle
from .config import PrecisionMode, ResolvedSettings
from .entities import Combatant
from .physics import clamp
from .scoring import ShotCandidate, build_candidates, score_candidate
from .session import LiveSession
from .weapons import PANIC_WEAPON, WeaponType, explosion_radius, is_hitscan

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

PANIC_THINK_MS = 250.0

PANIC_DEFAULT_OFFSETS = (-0.7, -0.5, -0.35, -0.2, 0.0, 0.2, 0.35, 0.5)
PANIC_DEFAULT_POWERS = (0.55, 0.7, 0.85, 1.0)
PANIC_ESCAPE_POWERS = (0.82, 0.9, 1.0)
PANIC_ESCAPE_MAGNITUDES = (0.72, 0.9, 1.08, 1.2)

# Fallback power when the panic search set is empty
PANIC_FALLBACK_POWER = {"default": 0.85, "escape-arc": 0.95}

# Aim at least this far above horizontal when panicking (rad)
MIN_LIFT_ANGLE = 0.35


class PanicStrategy(Enum):
    """How the panic planner searches."""
    DEFAULT = "default"
    ESCAPE_ARC = "escape-arc"


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class ShotPlan:
    """
    Outcome of a successful shot planning pass.

    Attributes:
        candidates: Every scored candidate.
        chosen: Candidate picked by the precision mode.
        fired: Candidate actually fired (chosen plus aiming noise in noisy mode).
    """
    candidates: list[ShotCandidate]
    chosen: ShotCandidate
    fired: ShotCandidate


@dataclass
class PanicPlan:
    """A panic shot and the think time before firing it."""
    candidate: ShotCandidate
    delay_ms: float
    strategy: PanicStrategy


# =============================================================================
# SHOT PLANNER
# =============================================================================

def rank_candidates(candidates: Sequence[ShotCandidate]) -> list[ShotCandidate]:
    """Candidates by descending score; equal scores keep generation order."""
    scores = np.array([c.score for c in candidates], dtype=np.float64)
    order = np.argsort(-scores, kind="stable")
    return [candidates[i] for i in order]


def _choose_candidate(
    candidates: Sequence[ShotCandidate],
    settings: ResolvedSettings,
    rng: random.Random,
) -> ShotCandidate:
    ranked = rank_candidates(candidates)
    if settings.precision_mode is PrecisionMode.PERFECT:
        return ranked[0]

    top = ranked[: settings.precision_top_k]
    weights = [max(0.001, c.score + 0.001) for c in top]
    roll = rng.random() * sum(weights)
    for candidate, weight in zip(top, weights):
        roll -= weight
        if roll <= 0:
            return candidate
    return top[0]


def _apply_precision_noise(
    candidate: ShotCandidate,
    settings: ResolvedSettings,
    rng: random.Random,
) -> tuple[float, float]:
    angle = candidate.angle + rng.uniform(-1.0, 1.0) * settings.noise_angle_rad
    power_noise = rng.uniform(-1.0, 1.0) * settings.noise_power
    if is_hitscan(candidate.weapon):
        return angle, 1.0
    return angle, clamp(candidate.power + power_noise, 0.0, 1.0)


def plan_shot(
    session: LiveSession,
    shooter: Combatant,
    target: Combatant,
    cinematic: bool,
    settings: ResolvedSettings,
    rng: random.Random,
) -> Optional[ShotPlan]:
    """
    Pick a shot from the candidate set.

    Args:
        session: Session providing the world to simulate against.
        shooter: Firing combatant (live or movement clone).
        target: Intended victim.
        cinematic: Enable the cinematic scoring bonuses.
        settings: Resolved planner settings.
        rng: Random source for the noisy pick and aiming noise.

    Returns:
        The plan, or None when the best score is not finite or not positive.
    """
    candidates = build_candidates(
        session, shooter, target, settings.personality, cinematic, settings.scoring
    )
    if not candidates:
        return None

    best_score = max(c.score for c in candidates)
    # A non-positive best is "no viable shot" rather than a weak attack
    if not math.isfinite(best_score) or best_score <= 0:
        return None

    chosen = _choose_candidate(candidates, settings, rng)
    fired = chosen
    if settings.precision_mode is PrecisionMode.NOISY:
        angle, power = _apply_precision_noise(chosen, settings, rng)
        base_angle = chosen.debug.base_angle
        fired = score_candidate(
            session, shooter, target, chosen.weapon,
            build_aim_from_angle(shooter, angle), angle, power,
            cinematic, settings.personality, base_angle, angle - base_angle,
            settings.scoring,
        )
    return ShotPlan(candidates=candidates, chosen=chosen, fired=fired)


# =============================================================================
# PANIC PLANNER
# =============================================================================

def clamp_angle_not_down(angle: float) -> float:
    """Lift an angle that points at or below horizontal to a shallow upward one."""
    # +y is down, so a positive sine aims at the ground
    if math.sin(angle) <= -0.05:
        return angle
    if math.cos(angle) < 0:
        return -math.pi + MIN_LIFT_ANGLE
    return -MIN_LIFT_ANGLE


def _unique_angles(angles: Sequence[float]) -> list[float]:
    seen: set[int] = set()
    unique: list[float] = []
    for angle in angles:
        key = round(angle * 1000)
        if key in seen:
            continue
        seen.add(key)
        unique.append(angle)
    return unique


def escape_arc_angles(base_angle: float, shooter: Combatant, target: Combatant) -> list[float]:
    """Steep launch angles that lob back over the shooter's own side."""
    toward_left = target.x < shooter.x
    if toward_left:
        base_magnitude = clamp(base_angle + math.pi, 0.2, 1.25)
    else:
        base_magnitude = clamp(-base_angle, 0.2, 1.25)
    magnitudes = [
        clamp(base_magnitude + 0.22, 0.72, 1.25),
        clamp(base_magnitude + 0.38, 0.9, 1.25),
        clamp(base_magnitude + 0.54, 1.08, 1.25),
        *PANIC_ESCAPE_MAGNITUDES,
    ]
    angles = [
        clamp_angle_not_down(-math.pi + m if toward_left else -m)
        for m in magnitudes
    ]
    return _unique_angles(angles)


def panic_rank(candidate: ShotCandidate, strategy: PanicStrategy) -> float:
    """
    Rank of a panic candidate.

    The default strategy ranks by score. Escape-arc adds a bonus for landing
    well clear of the shooter and for steep launches, and a flat penalty for
    landing inside 1.8 blast radii.
    """
    if strategy is PanicStrategy.DEFAULT:
        return candidate.score
    radius = explosion_radius(PANIC_WEAPON)
    dist_to_self = candidate.debug.dist_to_self
    upward = clamp(-math.sin(candidate.angle), 0.0, 1.0)
    distance_bonus = clamp((dist_to_self - radius * 2.2) / 220.0, 0.0, 1.0) * 26.0
    steep_bonus = clamp((upward - 0.55) / 0.45, 0.0, 1.0) * 24.0
    near_penalty = 80.0 if dist_to_self < radius * 1.8 else 0.0
    return candidate.score + distance_bonus + steep_bonus - near_penalty


def plan_panic_shot(
    session: LiveSession,
    shooter: Combatant,
    target: Combatant,
    cinematic: bool,
    settings: ResolvedSettings,
    strategy: PanicStrategy = PanicStrategy.DEFAULT,
) -> PanicPlan:
    """
    Plan a bazooka shot that always exists.

    Returns:
        The best-ranked panic candidate (ties go to the larger distance from
        the shooter) with the shortened panic think time.
    """
    weapon: WeaponType = PANIC_WEAPON
    base_angle = compute_aim_angle(weapon, shooter, target.x, target.y)
    if strategy is PanicStrategy.ESCAPE_ARC:
        angles = escape_arc_angles(base_angle, shooter, target)
        powers: Sequence[float] = PANIC_ESCAPE_POWERS
    else:
        angles = [clamp_angle_not_down(base_angle + offset) for offset in PANIC_DEFAULT_OFFSETS]
        powers = PANIC_DEFAULT_POWERS

    best: Optional[ShotCandidate] = None
    best_rank = float("-inf")
    for angle in angles:
        aim = build_aim_from_angle(shooter, angle)
        for power in powers:
            scored = score_candidate(
                session, shooter, target, weapon, aim, angle, power,
                cinematic, settings.personality, base_angle, angle - base_angle,
                settings.scoring,
            )
            rank = panic_rank(scored, strategy)
            if (
                best is None
                or rank > best_rank
                or (rank == best_rank and scored.debug.dist_to_self > best.debug.dist_to_self)
            ):
                best = scored
                best_rank = rank

    if best is None:
        if strategy is PanicStrategy.ESCAPE_ARC:
            escape = escape_arc_angles(base_angle, shooter, target)
            angle = escape[0] if escape else clamp_angle_not_down(base_angle)
        else:
            angle = clamp_angle_not_down(base_angle)
        power = PANIC_FALLBACK_POWER[strategy.value]
        best = score_candidate(
            session, shooter, target, weapon, build_aim_from_angle(shooter, angle),
            angle, power, cinematic, settings.personality, base_angle,
            angle - base_angle, settings.scoring,
        )

    logger.debug(
        "Panic shot (%s): angle=%.3f power=%.2f score=%.2f",
        strategy.value, best.angle, best.power, best.score,
    )
    return PanicPlan(
        candidate=best,
        delay_ms=min(settings.min_think_time_ms, PANIC_THINK_MS),
        strategy=strategy,
    )
