#!/usr/bin/env python3
"""
Plan Executor for the Artillery AI Turn Planner

Applies a TurnPlan to the live session through timer callbacks:

    t=0 ........ movement steps at cumulative offsets
    t=moved_ms . weapon selected, pre-shot aiming visual starts
    t=moved_ms + delay_ms . fire

Actions run as a chain: each one schedules the next after the planned gap,
so they always execute in plan order and the shot never precedes the last
movement step. Every action re-checks at execution time that:
- the plan token still matches (same turn, team, combatant, aim phase);
  otherwise the action and the rest of the chain are dropped
- the simulation is not paused; otherwise it polls until resumed and
  everything after it shifts by the wait

At fire time the exact shot is re-simulated; a likely self hit triggers a
fresh shot plan, then a panic plan, before committing.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from .config import AiSettings, resolve_settings
from .movement import MovementStep
from .orchestrator import TurnPlan, is_likely_self_hit, plan_turn
from .planning import PanicStrategy, plan_panic_shot, plan_shot
from .scheduler import Scheduler
from .session import LiveSession, PlanToken, capture_token, is_token_current
from .targeting import select_target
from .weapons import WeaponType

logger = logging.getLogger(__name__)

# How often a paused action re-checks the paused flag (ms)
PAUSE_POLL_MS = 50.0


@dataclass
class FiredShot:
    """Shot actually committed to the session."""
    weapon: WeaponType
    angle: float
    power: float
    corrected: bool = False


@dataclass
class PlanExecution:
    """
    Progress of one plan on the live session.

    Attributes:
        plan: Plan being executed.
        token: Validity token the plan is bound to.
        steps_run: Movement steps applied so far.
        visual_started: The pre-shot visual was started.
        shot: Committed shot (None until fired).
        dropped: A token check failed; nothing further will run.
        paused_ms: Total time actions waited for the simulation to resume.
    """
    plan: TurnPlan
    token: PlanToken
    steps_run: int = 0
    visual_started: bool = False
    shot: Optional[FiredShot] = None
    dropped: bool = False
    paused_ms: float = 0.0

    @property
    def fired(self) -> bool:
        return self.shot is not None

    @property
    def finished(self) -> bool:
        return self.fired or self.dropped


@dataclass
class _Action:
    offset_ms: float
    name: str
    run: Callable[[], None] = field(repr=False)


class PlanExecutor:
    """
    Schedules a plan's side effects on a live session.

    Usage:
        executor = PlanExecutor(session, scheduler)
        execution = executor.execute(plan, token)
    """

    def __init__(
        self,
        session: LiveSession,
        scheduler: Scheduler,
        settings: Optional[AiSettings] = None,
        rng: Optional[random.Random] = None,
        pause_poll_ms: float = PAUSE_POLL_MS,
    ) -> None:
        self.session = session
        self.scheduler = scheduler
        self.settings = settings
        self.rng = rng
        self.pause_poll_ms = pause_poll_ms

    def execute(self, plan: TurnPlan, token: Optional[PlanToken] = None) -> PlanExecution:
        """
        Schedule every action of a plan.

        Args:
            plan: Plan to apply.
            token: Token captured when planning started (captured now if omitted).

        Returns:
            Live view of the execution's progress.
        """
        execution = PlanExecution(plan=plan, token=token or capture_token(self.session))
        fire_offset_ms = plan.moved_ms + plan.delay_ms
        fire_due = {"at": self.scheduler.now_ms() + fire_offset_ms}

        actions: list[_Action] = []
        offset = 0.0
        for step in plan.moves:
            actions.append(_Action(offset, "move", self._move_action(execution, step)))
            offset += step.duration_ms
        actions.append(_Action(plan.moved_ms, "visual", self._visual_action(execution, fire_due)))
        actions.append(_Action(fire_offset_ms, "fire", self._fire_action(execution)))

        def run_from(index: int) -> None:
            if not is_token_current(self.session, execution.token):
                execution.dropped = True
                logger.debug(
                    "Dropped stale %s action for %s (turn %d)",
                    actions[index].name, execution.token.combatant.name, execution.token.turn_index,
                )
                return
            if self.session.paused:
                execution.paused_ms += self.pause_poll_ms
                fire_due["at"] += self.pause_poll_ms
                self.scheduler.call_later(self.pause_poll_ms, lambda: run_from(index))
                return
            actions[index].run()
            if index + 1 < len(actions):
                gap = actions[index + 1].offset_ms - actions[index].offset_ms
                self.scheduler.call_later(gap, lambda: run_from(index + 1))

        self.scheduler.call_later(actions[0].offset_ms, lambda: run_from(0))
        return execution

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _move_action(self, execution: PlanExecution, step: MovementStep) -> Callable[[], None]:
        def run() -> None:
            self.session.move(step.direction, step.duration_ms, step.jump)
            execution.steps_run += 1
        return run

    def _visual_action(self, execution: PlanExecution, fire_due: dict) -> Callable[[], None]:
        plan = execution.plan

        def run() -> None:
            self.session.set_weapon(plan.weapon)
            self.session.begin_pre_shot_visual(
                plan.weapon,
                plan.angle,
                plan.power,
                max(0.0, fire_due["at"] - self.scheduler.now_ms()),
            )
            execution.visual_started = True
        return run

    def _fire_action(self, execution: PlanExecution) -> Callable[[], None]:
        def run() -> None:
            shot = self._final_shot(execution.plan)
            self.session.clear_pre_shot_visual()
            self.session.set_weapon(shot.weapon)
            self.session.fire(shot.angle, shot.power)
            execution.shot = shot
            logger.info(
                "%s fired %s: angle=%.3f power=%.2f%s",
                execution.token.combatant.name,
                shot.weapon.value,
                shot.angle,
                shot.power,
                " (corrected)" if shot.corrected else "",
            )
        return run

    def _final_shot(self, plan: TurnPlan) -> FiredShot:
        """The planned shot, re-planned if it now looks like a self hit."""
        session = self.session
        rng = self.rng if self.rng is not None else session.rng
        shooter = session.active_combatant
        resolved = resolve_settings(shooter, self.settings)
        target = plan.target if plan.target.alive else select_target(
            shooter, session.teams, session.width, resolved.personality, rng
        )
        shot = FiredShot(plan.weapon, plan.angle, plan.power)
        if target is None or not is_likely_self_hit(
            session, shooter, shot.weapon, shot.angle, shot.power
        ):
            return shot

        logger.info("%s: planned shot would hit itself; re-planning", shooter.name)
        recovered = plan_shot(session, shooter, target, plan.cinematic, resolved, rng)
        if recovered is not None:
            candidate = recovered.fired
        else:
            strategy = plan.panic_strategy or PanicStrategy.DEFAULT
            candidate = plan_panic_shot(
                session, shooter, target, plan.cinematic, resolved, strategy
            ).candidate
        return FiredShot(candidate.weapon, candidate.angle, candidate.power, corrected=True)


def execute_plan(
    session: LiveSession,
    plan: TurnPlan,
    scheduler: Scheduler,
    token: Optional[PlanToken] = None,
    settings: Optional[AiSettings] = None,
    rng: Optional[random.Random] = None,
) -> PlanExecution:
    """Schedule a plan on the session (see PlanExecutor)."""
    return PlanExecutor(session, scheduler, settings, rng).execute(plan, token)


# =============================================================================
# INLINE ENTRY POINTS
# =============================================================================

def play_turn(
    session: LiveSession,
    scheduler: Scheduler,
    settings: Optional[AiSettings] = None,
    rng: Optional[random.Random] = None,
) -> Optional[TurnPlan]:
    """Plan the active combatant's turn inline and schedule it."""
    token = capture_token(session)
    plan = plan_turn(session, settings, rng)
    if plan is None:
        return None
    execute_plan(session, plan, scheduler, token, settings, rng)
    return plan


def play_turn_for_team(
    session: LiveSession,
    team_id: str,
    scheduler: Scheduler,
    settings: Optional[AiSettings] = None,
    rng: Optional[random.Random] = None,
) -> Optional[TurnPlan]:
    """play_turn, but only when team_id is the active team."""
    if session.active_team.id != team_id:
        return None
    return play_turn(session, scheduler, settings, rng)
