#!/usr/bin/env python3
"""
Turn Plan Orchestrator for the Artillery AI Turn Planner

Composes one turn decision:
1. Resolve settings (overrides over defaults and the shooter's personality)
2. Select a target
3. Roll the cinematic flag
4. Search movement on a clone of the shooter
5. Plan the shot from the advanced clone, falling back to a panic shot
6. Compute the fire delay inside the remaining turn time
7. Optionally assemble a debug trace

The result is an immutable TurnPlan; nothing here touches the live session.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Optional

from .ballistics import build_aim_from_angle, facing_for_aim
from .config import AiSettings, ResolvedSettings, resolve_settings
from .entities import Combatant
from .movement import MovementPlan, MovementStep, plan_movement
from .personality import Personality
from .physics import distance
from .planning import PanicStrategy, ShotPlan, plan_panic_shot, plan_shot, rank_candidates
from .scoring import ShotCandidate, build_candidates
from .session import GamePhase, LiveSession
from .targeting import select_target
from .weapons import WeaponType, explosion_radius, get_spec

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

FIRE_SAFETY_MS = 220.0
PANIC_FIRE_SAFETY_MS = 80.0

# Impact closer than this fraction of the blast radius counts as a self hit
SELF_HIT_RADIUS_FACTOR = 0.85


# =============================================================================
# TURN PLAN
# =============================================================================

@dataclass(frozen=True)
class TurnDebug:
    """
    Explanation of a turn decision.

    Candidate breakdowns are stored in their plain-dict form so the trace can
    be logged or shipped across the worker boundary as is.
    """
    shooter: dict[str, Any]
    target: dict[str, Any]
    wind: float
    cinematic: bool
    settings: dict[str, Any]
    candidate_count: int
    top: tuple[dict[str, Any], ...]
    best_by_weapon: dict[str, dict[str, Any]]
    chosen: dict[str, Any]
    fired: dict[str, Any]
    movement: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "shooter": self.shooter,
            "target": self.target,
            "wind": self.wind,
            "cinematic": self.cinematic,
            "settings": self.settings,
            "candidates": {
                "count": self.candidate_count,
                "top": list(self.top),
                "best_by_weapon": self.best_by_weapon,
            },
            "chosen": self.chosen,
            "fired": self.fired,
            "movement": self.movement,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TurnDebug:
        """Rebuild a trace from its plain-dict form."""
        candidates = data.get("candidates") or {}
        return cls(
            shooter=dict(data["shooter"]),
            target=dict(data["target"]),
            wind=float(data["wind"]),
            cinematic=bool(data["cinematic"]),
            settings=dict(data["settings"]),
            candidate_count=int(candidates.get("count", 0)),
            top=tuple(candidates.get("top", ())),
            best_by_weapon=dict(candidates.get("best_by_weapon", {})),
            chosen=dict(data["chosen"]),
            fired=dict(data["fired"]),
            movement=dict(data.get("movement") or {}),
        )


@dataclass(frozen=True)
class TurnPlan:
    """
    Everything the executor needs to play one turn.

    Attributes:
        weapon: Weapon to fire.
        angle: Aim angle in radians.
        power: Launch power in [0, 1].
        delay_ms: Think time between the end of movement and the shot.
        target: Live target combatant.
        score: Score of the fired candidate.
        cinematic: Cinematic bonuses were active.
        personality: Personality the plan was made with.
        moves: Movement steps to replay, in order.
        moved_ms: Sum of movement step durations.
        panic_shot: No viable shot was found; this is a panic shot.
        panic_strategy: Strategy of the panic shot (None for normal shots).
        debug: Optional explanation trace.
    """
    weapon: WeaponType
    angle: float
    power: float
    delay_ms: float
    target: Combatant
    score: float
    cinematic: bool
    personality: Personality
    moves: tuple[MovementStep, ...] = ()
    moved_ms: float = 0.0
    panic_shot: bool = False
    panic_strategy: Optional[PanicStrategy] = None
    debug: Optional[TurnDebug] = field(default=None, compare=False)

    @property
    def total_duration_ms(self) -> float:
        """Time from plan start until the shot."""
        return self.moved_ms + self.delay_ms


# =============================================================================
# HELPERS
# =============================================================================

def _combatant_summary(combatant: Combatant) -> dict[str, Any]:
    return {
        "name": combatant.name,
        "x": combatant.x,
        "y": combatant.y,
        "health": combatant.health,
        "facing": -1 if combatant.facing < 0 else 1,
    }


def _build_debug(
    session: LiveSession,
    shooter: Combatant,
    target: Combatant,
    cinematic: bool,
    resolved: ResolvedSettings,
    shot: Optional[ShotPlan],
    fired: ShotCandidate,
    movement: MovementPlan,
) -> TurnDebug:
    planned = movement.planned_shooter or shooter
    candidates = shot.candidates if shot is not None else build_candidates(
        session, planned, target, resolved.personality, cinematic, resolved.scoring
    )
    ranked = rank_candidates(candidates) if candidates else []
    best_by_weapon: dict[str, dict[str, Any]] = {}
    for candidate in ranked:
        best_by_weapon.setdefault(candidate.weapon.value, candidate.debug.to_dict())

    return TurnDebug(
        shooter=_combatant_summary(shooter),
        target=_combatant_summary(target),
        wind=session.wind,
        cinematic=cinematic,
        settings={
            "personality": resolved.personality.value,
            "precision_mode": resolved.precision_mode.value,
            "precision_top_k": resolved.precision_top_k,
            "noise_angle_rad": resolved.noise_angle_rad,
            "noise_power": resolved.noise_power,
        },
        candidate_count=len(candidates),
        top=tuple(c.debug.to_dict() for c in ranked[: resolved.debug_top_n]),
        best_by_weapon=best_by_weapon,
        chosen=(shot.chosen if shot is not None else fired).debug.to_dict(),
        fired=fired.debug.to_dict(),
        movement={
            "enabled": resolved.movement_enabled,
            "budget_ms": movement.budget_ms,
            "used_ms": movement.used_ms,
            "steps": [step.to_dict() for step in movement.steps],
            "outcome": "shot" if shot is not None else "panic-shot",
        },
    )


def is_likely_self_hit(
    session: LiveSession,
    shooter: Combatant,
    weapon: WeaponType,
    angle: float,
    power: float,
) -> bool:
    """
    Re-simulate a shot and report whether it would land on the shooter.

    Only area weapons can hurt the shooter. A shot that never leaves the
    muzzle counts as a self hit.
    """
    spec = get_spec(weapon)
    if spec.hitscan:
        return False
    aim = build_aim_from_angle(shooter, angle)
    previous_facing = shooter.facing
    shooter.facing = facing_for_aim(shooter, aim)
    try:
        points = session.predictor(
            weapon, shooter, aim, power, session.wind,
            session.terrain, session.width, session.height,
        )
    finally:
        shooter.facing = previous_facing
    if not points:
        return True
    impact = points[-1]
    dist = distance(impact.x, impact.y, shooter.x, shooter.y)
    return dist < explosion_radius(weapon) * SELF_HIT_RADIUS_FACTOR


# =============================================================================
# ORCHESTRATOR
# =============================================================================

def plan_turn(
    session: LiveSession,
    settings: Optional[AiSettings] = None,
    rng: Optional[random.Random] = None,
) -> Optional[TurnPlan]:
    """
    Plan the active combatant's turn.

    Args:
        session: Session to plan against (read only).
        settings: Optional overrides.
        rng: Random source (defaults to the session's).

    Returns:
        The turn plan, or None outside the aim phase or without a living enemy.
    """
    if session.phase is not GamePhase.AIM:
        return None
    rng = rng if rng is not None else session.rng

    shooter = session.active_combatant
    resolved = resolve_settings(shooter, settings)
    target = select_target(shooter, session.teams, session.width, resolved.personality, rng)
    if target is None:
        logger.debug("No living enemy for %s; no plan", shooter.name)
        return None

    cinematic = rng.random() < resolved.cinematic_chance
    time_left_ms = session.time_left_ms()

    movement = plan_movement(session, shooter, target, cinematic, resolved, time_left_ms, rng)
    planned_shooter = movement.planned_shooter or shooter
    shot = plan_shot(session, planned_shooter, target, cinematic, resolved, rng)

    panic_strategy = PanicStrategy.ESCAPE_ARC if movement.crater_stuck else PanicStrategy.DEFAULT
    if shot is not None:
        fired = shot.fired
        base_delay_ms = resolved.min_think_time_ms
        safety_ms = FIRE_SAFETY_MS
    else:
        panic = plan_panic_shot(session, planned_shooter, target, cinematic, resolved, panic_strategy)
        fired = panic.candidate
        base_delay_ms = panic.delay_ms
        safety_ms = PANIC_FIRE_SAFETY_MS

    available_ms = max(0.0, time_left_ms - movement.used_ms - safety_ms)
    delay_ms = min(base_delay_ms, available_ms)

    debug = None
    if resolved.debug_enabled:
        debug = _build_debug(session, shooter, target, cinematic, resolved, shot, fired, movement)

    plan = TurnPlan(
        weapon=fired.weapon,
        angle=fired.angle,
        power=fired.power,
        delay_ms=delay_ms,
        target=target,
        score=fired.score,
        cinematic=cinematic,
        personality=resolved.personality,
        moves=tuple(movement.steps),
        moved_ms=movement.used_ms,
        panic_shot=shot is None,
        panic_strategy=None if shot is not None else panic_strategy,
        debug=debug,
    )
    logger.info(
        "%s (%s) plans %s at %s: angle=%.3f power=%.2f score=%.1f moves=%d%s",
        shooter.name,
        resolved.personality.value,
        plan.weapon.value,
        target.name,
        plan.angle,
        plan.power,
        plan.score,
        len(plan.moves),
        f" panic={panic_strategy.value}" if plan.panic_shot else "",
    )
    return plan
