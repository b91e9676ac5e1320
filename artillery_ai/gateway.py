"""
Asynchronous turn entry point.

Plans in the background worker when one is available and falls back to
inline planning when it is not, fails, or returns a target that no longer
resolves against the live teams. The plan token is captured before any work
and checked again before the inline fallback and before execution, so a plan
computed for a turn that has since moved on is never applied.
"""

from __future__ import annotations

import logging
import random
from typing import Optional

from .config import AiSettings
from .executor import execute_plan
from .orchestrator import TurnPlan, plan_turn
from .scheduler import Scheduler
from .session import GamePhase, LiveSession, capture_token, is_token_current
from .worker import PlannerWorkerClient, PlannerWorkerError, build_snapshot, hydrate_plan

logger = logging.getLogger(__name__)


async def play_turn_async(
    session: LiveSession,
    scheduler: Scheduler,
    client: Optional[PlannerWorkerClient] = None,
    settings: Optional[AiSettings] = None,
    rng: Optional[random.Random] = None,
) -> Optional[TurnPlan]:
    """
    Plan the active combatant's turn and schedule it.

    Args:
        session: Live session.
        scheduler: Scheduler for the plan's deferred actions.
        client: Background planner (inline planning when None or unavailable).
        settings: Optional planner overrides.
        rng: Random source (defaults to the session's).

    Returns:
        The scheduled plan, or None when there is nothing to do or the turn
        moved on while planning.
    """
    if session.phase is not GamePhase.AIM:
        return None
    token = capture_token(session)
    rng = rng if rng is not None else session.rng

    plan: Optional[TurnPlan] = None
    use_worker = client is not None and client.is_available()
    worker_failed = False
    if use_worker:
        try:
            wire = await client.plan_turn(build_snapshot(session), settings, rng.getrandbits(32))
        except PlannerWorkerError as exc:
            logger.warning("Background planner failed, planning inline: %s", exc)
            worker_failed = True
        else:
            if wire is None:
                return None
            plan = hydrate_plan(session, wire)
            if plan is None:
                logger.warning("Background plan target %s no longer resolves, planning inline",
                               wire.get("target_ref"))
                worker_failed = True

    if worker_failed or not use_worker:
        if not is_token_current(session, token):
            logger.debug("Turn moved on before inline planning; dropping")
            return None
        plan = plan_turn(session, settings, rng)

    if plan is None:
        return None
    if not is_token_current(session, token):
        logger.debug("Turn moved on while planning; dropping plan for %s", token.combatant.name)
        return None
    execute_plan(session, plan, scheduler, token, settings, rng)
    return plan


async def play_turn_for_team_async(
    session: LiveSession,
    team_id: str,
    scheduler: Scheduler,
    client: Optional[PlannerWorkerClient] = None,
    settings: Optional[AiSettings] = None,
    rng: Optional[random.Random] = None,
) -> Optional[TurnPlan]:
    """play_turn_async, but only when team_id is the active team."""
    if session.active_team.id != team_id:
        return None
    return await play_turn_async(session, scheduler, client, settings, rng)
