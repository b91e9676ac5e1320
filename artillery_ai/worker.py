#!/usr/bin/env python3
"""
Background Planner Worker for the Artillery AI Turn Planner

Runs turn planning in an isolated context (a worker process by default)
that shares nothing with the live session. The boundary is one request and
one response, both plain data:

    request:  {"kind": "plan-turn", "request_id", "snapshot", "settings", "seed"}
    response: {"kind": "plan-turn-result", "request_id", "plan"}  (plan may be None)
              {"kind": "plan-turn-error", "request_id", "message"}

The snapshot carries everything the planner reads: terrain dimensions,
offset, solidity bytes and height samples, every combatant field including
its personality, the active team and combatant index, wind, remaining time
and phase. The worker rebuilds its own terrain and combatants from it and
answers with a target reference (team id, member index) instead of a live
object.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import itertools
import logging
import pickle
import random
from typing import Any, Optional

from .config import AiSettings
from .entities import Combatant, Team
from .movement import MovementStep
from .orchestrator import TurnDebug, TurnPlan, plan_turn
from .personality import Personality, get_personality, set_personality
from .planning import PanicStrategy
from .session import GamePhase, GameSession, LiveSession
from .terrain import Terrain
from .weapons import WeaponType

logger = logging.getLogger(__name__)

REQUEST_KIND = "plan-turn"
RESULT_KIND = "plan-turn-result"
ERROR_KIND = "plan-turn-error"


class PlannerWorkerError(RuntimeError):
    """The background planner failed or broke the request/response protocol."""


# =============================================================================
# SNAPSHOT
# =============================================================================

def build_snapshot(session: LiveSession) -> dict[str, Any]:
    """Copy-only description of everything the planner reads from a session."""
    return {
        "phase": session.phase.value,
        "width": session.width,
        "height": session.height,
        "wind": session.wind,
        "time_left_ms": session.time_left_ms(),
        "active_team_id": session.active_team.id,
        "active_index": session.active_combatant_index,
        "terrain": session.terrain.to_snapshot(),
        "teams": [
            {
                "id": team.id,
                "members": [
                    {**member.to_dict(), "personality": get_personality(member).value}
                    for member in team.members
                ],
            }
            for team in session.teams
        ],
    }


def _clone_member(data: dict[str, Any]) -> Combatant:
    copy = Combatant.from_dict(data)
    if data.get("personality"):
        set_personality(copy, Personality(data["personality"]))
    return copy


def build_sim_session(snapshot: dict[str, Any], seed: Optional[int] = None) -> GameSession:
    """
    Rebuild an independent session from a snapshot.

    The clock is frozen so the remaining time equals the snapshot's.

    Raises:
        ValueError: If the snapshot is inconsistent (unknown active team,
            bad combatant index, wrong terrain buffer size).
    """
    teams = [
        Team(id=team["id"], members=[_clone_member(m) for m in team["members"]])
        for team in snapshot["teams"]
    ]
    session = GameSession(
        width=snapshot["width"],
        height=snapshot["height"],
        terrain=Terrain.from_snapshot(snapshot["terrain"]),
        teams=teams,
        wind=snapshot["wind"],
        clock=lambda: 0.0,
        rng=random.Random(seed),
        turn_time_ms=snapshot["time_left_ms"],
    )
    session.activate(snapshot["active_team_id"], snapshot["active_index"])
    session.phase = GamePhase(snapshot["phase"])
    return session


# =============================================================================
# PLAN WIRE FORMAT
# =============================================================================

def _find_target_ref(teams: list[Team], target: Combatant) -> Optional[dict[str, Any]]:
    for team in teams:
        index = team.index_of(target)
        if index is not None:
            return {"team_id": team.id, "index": index}
    return None


def plan_to_wire(teams: list[Team], plan: TurnPlan) -> Optional[dict[str, Any]]:
    """Plain-data plan with the target as a (team id, index) reference."""
    target_ref = _find_target_ref(teams, plan.target)
    if target_ref is None:
        return None
    return {
        "weapon": plan.weapon.value,
        "angle": plan.angle,
        "power": plan.power,
        "delay_ms": plan.delay_ms,
        "target_ref": target_ref,
        "score": plan.score,
        "cinematic": plan.cinematic,
        "personality": plan.personality.value,
        "moves": [step.to_dict() for step in plan.moves],
        "moved_ms": plan.moved_ms,
        "panic_shot": plan.panic_shot,
        "panic_strategy": plan.panic_strategy.value if plan.panic_strategy else None,
        "debug": plan.debug.to_dict() if plan.debug else None,
    }


def resolve_target_ref(teams: list[Team], target_ref: dict[str, Any]) -> Optional[Combatant]:
    """Live combatant for a (team id, index) reference, or None."""
    team = next((t for t in teams if t.id == target_ref.get("team_id")), None)
    index = target_ref.get("index")
    if team is None or not isinstance(index, int) or not 0 <= index < len(team.members):
        return None
    return team.members[index]


def hydrate_plan(session: LiveSession, data: dict[str, Any]) -> Optional[TurnPlan]:
    """
    Turn a wire plan back into a TurnPlan bound to live combatants.

    Returns:
        The plan, or None when the target reference does not resolve.
    """
    target = resolve_target_ref(session.teams, data.get("target_ref") or {})
    if target is None:
        return None
    return TurnPlan(
        weapon=WeaponType(data["weapon"]),
        angle=float(data["angle"]),
        power=float(data["power"]),
        delay_ms=float(data["delay_ms"]),
        target=target,
        score=float(data["score"]),
        cinematic=bool(data["cinematic"]),
        personality=Personality(data["personality"]),
        moves=tuple(MovementStep.from_dict(step) for step in data.get("moves") or ()),
        moved_ms=float(data.get("moved_ms") or 0.0),
        panic_shot=bool(data.get("panic_shot")),
        panic_strategy=PanicStrategy(data["panic_strategy"]) if data.get("panic_strategy") else None,
        debug=TurnDebug.from_dict(data["debug"]) if data.get("debug") else None,
    )


# =============================================================================
# WORKER SIDE
# =============================================================================

def handle_plan_request(request: dict[str, Any]) -> dict[str, Any]:
    """
    Answer one planning request. Runs inside the background context.

    Never raises: every failure becomes an error response.
    """
    request_id = request.get("request_id")
    if request.get("kind") != REQUEST_KIND:
        return {
            "kind": ERROR_KIND,
            "request_id": request_id,
            "message": f"Unsupported request kind: {request.get('kind')!r}",
        }
    try:
        sim = build_sim_session(request["snapshot"], request.get("seed"))
        settings = AiSettings.from_dict(request.get("settings"))
        plan = plan_turn(sim, settings)
        wire = plan_to_wire(sim.teams, plan) if plan is not None else None
    except Exception as exc:
        return {
            "kind": ERROR_KIND,
            "request_id": request_id,
            "message": f"{type(exc).__name__}: {exc}",
        }
    return {"kind": RESULT_KIND, "request_id": request_id, "plan": wire}


# =============================================================================
# CLIENT SIDE
# =============================================================================

class PlannerWorkerClient:
    """
    Sends planning requests to a concurrent.futures executor.

    By default a single-process ProcessPoolExecutor is created lazily and
    owned by the client. Pass an executor to share one (a ThreadPoolExecutor
    works too; the request is still plain data).
    """

    def __init__(
        self,
        executor: Optional[concurrent.futures.Executor] = None,
        max_workers: int = 1,
    ) -> None:
        self._executor = executor
        self._owns_executor = executor is None
        self._max_workers = max_workers
        self._request_ids = itertools.count(1)
        self._broken = False
        self._closed = False

    def is_available(self) -> bool:
        """False once the client is closed or its executor broke."""
        return not (self._closed or self._broken)

    def _ensure_executor(self) -> concurrent.futures.Executor:
        if self._executor is None:
            try:
                self._executor = concurrent.futures.ProcessPoolExecutor(
                    max_workers=self._max_workers
                )
            except (OSError, NotImplementedError) as exc:
                self._broken = True
                raise PlannerWorkerError(f"Cannot start planner worker: {exc}") from exc
        return self._executor

    async def plan_turn(
        self,
        snapshot: dict[str, Any],
        settings: Optional[AiSettings] = None,
        seed: Optional[int] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Request a plan for a snapshot.

        Returns:
            The wire plan, or None when the worker found no plan.

        Raises:
            PlannerWorkerError: If the worker is unavailable, failed, or
                answered out of protocol.
        """
        if not self.is_available():
            raise PlannerWorkerError("Planner worker is not available")
        executor = self._ensure_executor()
        request_id = next(self._request_ids)
        request = {
            "kind": REQUEST_KIND,
            "request_id": request_id,
            "snapshot": snapshot,
            "settings": settings.to_dict() if settings else None,
            "seed": seed,
        }
        loop = asyncio.get_running_loop()
        try:
            response = await loop.run_in_executor(executor, handle_plan_request, request)
        except concurrent.futures.BrokenExecutor as exc:
            self._broken = True
            raise PlannerWorkerError(f"Planner worker crashed: {exc}") from exc
        except RuntimeError as exc:
            # Executor already shut down
            self._broken = True
            raise PlannerWorkerError(f"Planner worker unavailable: {exc}") from exc
        except (OSError, pickle.PicklingError) as exc:
            raise PlannerWorkerError(f"Cannot send request {request_id}: {exc}") from exc

        if response.get("request_id") != request_id:
            raise PlannerWorkerError(
                f"Response for request {response.get('request_id')} while waiting for {request_id}"
            )
        if response.get("kind") == ERROR_KIND:
            raise PlannerWorkerError(response.get("message") or "Unknown planner worker error")
        if response.get("kind") != RESULT_KIND:
            raise PlannerWorkerError(f"Unexpected response kind: {response.get('kind')!r}")
        return response.get("plan")

    def close(self) -> None:
        """Stop the owned executor; the client becomes unavailable."""
        self._closed = True
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def __enter__(self) -> PlannerWorkerClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
