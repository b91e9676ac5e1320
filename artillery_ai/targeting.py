"""
Target selection for the computer-controlled shooter.

Each living enemy gets an attractiveness score from how close and how
damaged it is, weighted by the shooter's personality. A tiny random jitter
breaks exact ties.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, Optional

from .entities import Combatant, Team
from .personality import Personality
from .physics import clamp, distance

# Half-width of the tie-breaking jitter
TARGET_JITTER = 0.01


@dataclass(frozen=True)
class TargetingWeights:
    """Relative weight of target health vs. distance."""
    health: float
    dist: float


TARGETING_WEIGHTS: dict[Personality, TargetingWeights] = {
    Personality.GENERALIST: TargetingWeights(health=0.45, dist=0.55),
    Personality.MARKSMAN: TargetingWeights(health=0.65, dist=0.35),
    Personality.DEMOLISHER: TargetingWeights(health=0.4, dist=0.6),
    Personality.COMMANDO: TargetingWeights(health=0.3, dist=0.7),
}


def score_target(
    shooter: Combatant,
    enemy: Combatant,
    weights: TargetingWeights,
    arena_width: float,
) -> float:
    """Jitter-free attractiveness of an enemy (higher is better)."""
    max_dist = max(1.0, arena_width)
    dist_score = clamp(1.0 - distance(shooter.x, shooter.y, enemy.x, enemy.y) / max_dist, 0.0, 1.0)
    health_score = clamp(1.0 - enemy.health / 100.0, 0.0, 1.0)
    return dist_score * weights.dist + health_score * weights.health


def select_target(
    shooter: Combatant,
    teams: Iterable[Team],
    arena_width: float,
    personality: Personality,
    rng: random.Random,
) -> Optional[Combatant]:
    """
    Pick the most attractive living enemy.

    Args:
        shooter: Combatant about to fire.
        teams: Every team in the match (the shooter's own team is skipped).
        arena_width: Distance normaliser.
        personality: Shooter personality (selects the weight table).
        rng: Random source for the tie-breaking jitter.

    Returns:
        The chosen enemy, or None when no enemy is alive.
    """
    weights = TARGETING_WEIGHTS[personality]
    best: Optional[Combatant] = None
    best_score = float("-inf")
    for team in teams:
        if team.id == shooter.team:
            continue
        for enemy in team.members:
            if not enemy.alive:
                continue
            jitter = rng.uniform(-TARGET_JITTER, TARGET_JITTER)
            score = score_target(shooter, enemy, weights, arena_width) + jitter
            if score > best_score:
                best = enemy
                best_score = score
    return best
