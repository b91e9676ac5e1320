#!/usr/bin/env python3
"""
Movement Planning Module for the Artillery AI Turn Planner

Searches a short walk/jump sequence that brings the shooter to a position
with a viable shot. The search runs on a clone of the shooter; only the
resulting step list is replayed against the live combatant later.

Search rules:
- Before each step, try plan_shot from the clone's position; stop on success
- Otherwise walk one step toward the target (away while escaping)
- Jump once the last two steps barely moved the clone
- After three stuck steps in a row, walk away for three steps (crater escape)
- Give up after twelve stuck steps in a row, or when near the water line
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Any, Optional

from .config import ResolvedSettings
from .entities import Combatant
from .physics import MOVE_SUBSTEP_MS, Vector2D, clamp, water_line
from .planning import plan_shot
from .session import LiveSession
from .terrain import Terrain

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

MOVE_STEP_MS = 260
MAX_MOVE_BUDGET_MS = 9000
MAX_MOVE_STEPS = 24
PANIC_WINDOW_MS = 2500
TURN_SAFETY_MS = 150

MOVEMENT_STUCK_DISTANCE_PX = 1.5
MIN_FORWARD_PROGRESS_PX = 6.0

JUMP_AFTER_STUCK_STEPS = 2
STUCK_ESCAPE_THRESHOLD = 3
STUCK_ESCAPE_STEPS = 3
MAX_STUCK_STEPS = 12


# =============================================================================
# STUCK DETECTION
# =============================================================================

def did_movement_get_stuck(
    start: Vector2D,
    end: Vector2D,
    threshold_px: float = MOVEMENT_STUCK_DISTANCE_PX,
) -> bool:
    """True when a move covered less than threshold_px."""
    return math.hypot(end.x - start.x, end.y - start.y) < threshold_px


def is_forward_progress_blocked(
    start: Vector2D,
    end: Vector2D,
    toward_target: int,
    min_forward_px: float = MIN_FORWARD_PROGRESS_PX,
) -> bool:
    """True when a move gained less than min_forward_px in the toward_target direction."""
    return (end.x - start.x) * toward_target < min_forward_px


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class MovementStep:
    """
    One planned walk command and what the simulation saw.

    Attributes:
        direction: -1 (left) or 1 (right).
        duration_ms: How long to walk.
        jump: Jump at the start of the step.
        start: Clone position before the step.
        end: Clone position after the step.
        stuck: The step barely moved the clone.
    """
    direction: int
    duration_ms: float
    jump: bool
    start: Vector2D
    end: Vector2D
    stuck: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction,
            "duration_ms": self.duration_ms,
            "jump": self.jump,
            "from": self.start.to_dict(),
            "to": self.end.to_dict(),
            "stuck": self.stuck,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MovementStep:
        return cls(
            direction=-1 if data["direction"] < 0 else 1,
            duration_ms=float(data["duration_ms"]),
            jump=bool(data["jump"]),
            start=Vector2D(data["from"]["x"], data["from"]["y"]),
            end=Vector2D(data["to"]["x"], data["to"]["y"]),
            stuck=bool(data["stuck"]),
        )


@dataclass
class MovementPlan:
    """
    Outcome of the movement search.

    Attributes:
        steps: Steps in execution order.
        used_ms: Sum of step durations.
        budget_ms: Time the search was allowed to spend.
        planned_shooter: Clone advanced through every step (the live shooter
            itself when no step was simulated).
        crater_stuck: Repeated stuck steps were seen and no shot was found.
    """
    steps: list[MovementStep] = field(default_factory=list)
    used_ms: float = 0.0
    budget_ms: float = 0.0
    planned_shooter: Optional[Combatant] = None
    crater_stuck: bool = False


# =============================================================================
# SIMULATION
# =============================================================================

def simulate_move(
    combatant: Combatant,
    terrain: Terrain,
    direction: int,
    duration_ms: float,
    jump: bool,
) -> bool:
    """
    Walk a combatant in fixed sub-steps, as the live session does.

    Returns:
        True when the combatant got stuck.
    """
    start = combatant.position
    remaining = max(0, int(math.floor(duration_ms)))
    first = True
    while remaining > 0:
        step_ms = min(MOVE_SUBSTEP_MS, remaining)
        combatant.update(step_ms / 1000.0, terrain, direction, jump and first)
        remaining -= step_ms
        first = False
    return did_movement_get_stuck(start, combatant.position)


def movement_budget_ms(time_left_ms: float, think_ms: float) -> float:
    """Time the movement search may use before the shot."""
    return clamp(
        min(MAX_MOVE_BUDGET_MS, time_left_ms - think_ms - TURN_SAFETY_MS),
        0.0,
        MAX_MOVE_BUDGET_MS,
    )


# =============================================================================
# MOVEMENT PLANNER
# =============================================================================

def plan_movement(
    session: LiveSession,
    shooter: Combatant,
    target: Combatant,
    cinematic: bool,
    settings: ResolvedSettings,
    time_left_ms: float,
    rng: random.Random,
) -> MovementPlan:
    """
    Search a short walk toward a firing position.

    Args:
        session: Session providing terrain and arena size.
        shooter: Live shooter (never mutated).
        target: Intended victim.
        cinematic: Passed through to the shot planner.
        settings: Resolved planner settings.
        time_left_ms: Remaining turn time.
        rng: Random source for the shot planner.

    Returns:
        The movement plan; empty when movement is disabled or time is short.
    """
    if not settings.movement_enabled:
        return MovementPlan(planned_shooter=shooter)

    budget_ms = movement_budget_ms(time_left_ms, settings.min_think_time_ms)
    if budget_ms <= 0 or time_left_ms <= PANIC_WINDOW_MS:
        return MovementPlan(budget_ms=budget_ms, planned_shooter=shooter)

    sim = shooter.clone()
    steps: list[MovementStep] = []
    used_ms = 0.0
    stuck_steps = 0
    escape_steps_remaining = 0
    saw_repeated_stuck = False
    found_shot = False
    water_y = water_line(session.height)

    max_steps = min(MAX_MOVE_STEPS, int(budget_ms // MOVE_STEP_MS))
    for _ in range(max_steps):
        if plan_shot(session, sim, target, cinematic, settings, rng) is not None:
            found_shot = True
            break

        toward_target = -1 if target.x < sim.x else 1
        direction = -toward_target if escape_steps_remaining > 0 else toward_target
        jump = stuck_steps >= JUMP_AFTER_STUCK_STEPS
        duration_ms = min(MOVE_STEP_MS, budget_ms - used_ms)
        if duration_ms <= 0:
            break

        start = sim.position
        stuck = simulate_move(sim, session.terrain, direction, duration_ms, jump)
        steps.append(MovementStep(direction, duration_ms, jump, start, sim.position, stuck))
        used_ms += duration_ms

        if escape_steps_remaining > 0:
            escape_steps_remaining -= 1
        if stuck:
            stuck_steps += 1
            if stuck_steps >= MAX_STUCK_STEPS and escape_steps_remaining == 0:
                break
            if stuck_steps >= STUCK_ESCAPE_THRESHOLD and escape_steps_remaining == 0:
                saw_repeated_stuck = True
                # Forward keeps failing: back out of the pit first
                escape_steps_remaining = STUCK_ESCAPE_STEPS
        else:
            stuck_steps = 0
            escape_steps_remaining = 0

        if sim.y >= water_y - 2:
            break

    plan = MovementPlan(
        steps=steps,
        used_ms=used_ms,
        budget_ms=budget_ms,
        planned_shooter=sim,
        crater_stuck=saw_repeated_stuck and not found_shot,
    )
    logger.debug(
        "Movement search: %d steps, %.0f/%.0f ms, shot=%s crater_stuck=%s",
        len(steps), used_ms, budget_ms, found_shot, plan.crater_stuck,
    )
    return plan
