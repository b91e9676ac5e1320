#!/usr/bin/env python3
"""
Tests for the background planner boundary.

Tests:
- Snapshots and the worker's independent copy of the world
- Plan wire format and hydration against live teams
- Request handling (results, errors, determinism)
- Client protocol checks over a thread pool
"""

import asyncio
import concurrent.futures

import pytest

from artillery_ai.config import AiSettings, MovementSettings
from artillery_ai.movement import MovementStep
from artillery_ai.orchestrator import TurnPlan
from artillery_ai.personality import Personality, get_personality, set_personality
from artillery_ai.physics import Vector2D
from artillery_ai.planning import PanicStrategy
from artillery_ai.session import GamePhase
from artillery_ai.weapons import WeaponType
from artillery_ai.worker import (
    ERROR_KIND,
    REQUEST_KIND,
    RESULT_KIND,
    PlannerWorkerClient,
    PlannerWorkerError,
    build_sim_session,
    build_snapshot,
    handle_plan_request,
    hydrate_plan,
    plan_to_wire,
    resolve_target_ref,
)


STILL = AiSettings(movement=MovementSettings(enabled=False))


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def session(make_session, scheduler):
    session = make_session(red_xs=(300, 250), blue_xs=(700, 800), wind=25.0)
    scheduler.advance(4000)
    return session


@pytest.fixture
def snapshot(session):
    return build_snapshot(session)


def wire_plan(team_id="Blue", index=0, **overrides):
    data = {
        "weapon": "Rifle",
        "angle": 0.02,
        "power": 1.0,
        "delay_ms": 500.0,
        "target_ref": {"team_id": team_id, "index": index},
        "score": 75.0,
        "cinematic": False,
        "personality": "Generalist",
        "moves": [],
        "moved_ms": 0.0,
        "panic_shot": False,
        "panic_strategy": None,
        "debug": None,
    }
    data.update(overrides)
    return data


def request(snapshot, settings=STILL, seed=7, request_id=1):
    return {
        "kind": REQUEST_KIND,
        "request_id": request_id,
        "snapshot": snapshot,
        "settings": settings.to_dict() if settings else None,
        "seed": seed,
    }


# =============================================================================
# SNAPSHOT
# =============================================================================

class TestSnapshot:
    """Tests for the copy-only world description."""

    def test_contents(self, session, snapshot):
        set_personality(session.teams[0].members[1], Personality.MARKSMAN)
        snapshot = build_snapshot(session)
        assert snapshot["phase"] == "aim"
        assert snapshot["wind"] == 25.0
        assert snapshot["time_left_ms"] == pytest.approx(session.turn_time_ms - 4000)
        assert snapshot["active_team_id"] == "Red"
        assert snapshot["active_index"] == 0
        red = snapshot["teams"][0]
        assert red["id"] == "Red"
        assert [m["name"] for m in red["members"]] == ["R1", "R2"]
        assert red["members"][1]["personality"] == "Marksman"
        assert red["members"][0]["personality"] == "Generalist"
        assert isinstance(snapshot["terrain"]["solid"], bytes)

    def test_sim_session_is_independent(self, session, snapshot):
        sim = build_sim_session(snapshot, seed=1)
        sim.active_combatant.x += 100
        sim.terrain.solid[:] = 0
        assert session.active_combatant.x == 300
        assert session.terrain.is_solid(300, 750)
        assert sim.active_combatant is not session.active_combatant

    def test_sim_session_mirrors_state(self, session):
        session.activate("Blue", 1)
        set_personality(session.teams[1].members[1], Personality.DEMOLISHER)
        sim = build_sim_session(build_snapshot(session), seed=1)
        assert sim.active_team.id == "Blue"
        assert sim.active_combatant_index == 1
        assert get_personality(sim.active_combatant) is Personality.DEMOLISHER
        assert sim.wind == 25.0
        assert sim.time_left_ms() == pytest.approx(session.time_left_ms())
        assert sim.phase is GamePhase.AIM

    def test_bad_active_team(self, snapshot):
        snapshot["active_team_id"] = "Green"
        with pytest.raises(ValueError):
            build_sim_session(snapshot)


# =============================================================================
# WIRE FORMAT
# =============================================================================

class TestWireFormat:
    """Tests for plan serialization and hydration."""

    def test_resolve_target_ref(self, session):
        assert resolve_target_ref(session.teams, {"team_id": "Blue", "index": 1}) is session.teams[1].members[1]
        assert resolve_target_ref(session.teams, {"team_id": "Blue", "index": 2}) is None
        assert resolve_target_ref(session.teams, {"team_id": "Green", "index": 0}) is None
        assert resolve_target_ref(session.teams, {"team_id": "Blue", "index": "0"}) is None

    def test_hydrate_binds_live_target(self, session):
        step = MovementStep(1, 260.0, True, Vector2D(300, 687), Vector2D(301, 687), True)
        plan = hydrate_plan(session, wire_plan(
            index=1,
            moves=[step.to_dict()],
            moved_ms=260.0,
            panic_shot=True,
            panic_strategy="escape-arc",
        ))
        assert plan.target is session.teams[1].members[1]
        assert plan.weapon is WeaponType.RIFLE
        assert plan.moves == (step,)
        assert plan.panic_strategy is PanicStrategy.ESCAPE_ARC

    def test_hydrate_unresolvable(self, session):
        assert hydrate_plan(session, wire_plan(team_id="Green")) is None
        assert hydrate_plan(session, wire_plan(target_ref=None)) is None

    def test_plan_to_wire_round_trip(self, session):
        target = session.teams[1].members[1]
        plan = TurnPlan(
            weapon=WeaponType.HAND_GRENADE,
            angle=-0.7,
            power=0.65,
            delay_ms=1200.0,
            target=target,
            score=40.0,
            cinematic=True,
            personality=Personality.COMMANDO,
        )
        wire = plan_to_wire(session.teams, plan)
        assert wire["target_ref"] == {"team_id": "Blue", "index": 1}
        assert hydrate_plan(session, wire) == plan

    def test_plan_to_wire_unknown_target(self, session):
        plan = TurnPlan(
            weapon=WeaponType.RIFLE, angle=0.0, power=1.0, delay_ms=0.0,
            target=session.teams[1].members[0].clone(), score=1.0,
            cinematic=False, personality=Personality.GENERALIST,
        )
        assert plan_to_wire(session.teams, plan) is None


# =============================================================================
# REQUEST HANDLING
# =============================================================================

class TestHandlePlanRequest:
    """Tests for the worker-side request handler."""

    def test_result(self, snapshot):
        response = handle_plan_request(request(snapshot, request_id=5))
        assert response["kind"] == RESULT_KIND
        assert response["request_id"] == 5
        plan = response["plan"]
        assert plan["target_ref"]["team_id"] == "Blue"
        assert plan["weapon"] in {w.value for w in WeaponType}

    def test_same_seed_same_plan(self, snapshot):
        first = handle_plan_request(request(snapshot, seed=11))
        second = handle_plan_request(request(snapshot, seed=11))
        assert first == second

    def test_no_plan_outside_aim(self, snapshot):
        snapshot["phase"] = "post-shot"
        response = handle_plan_request(request(snapshot))
        assert response["kind"] == RESULT_KIND
        assert response["plan"] is None

    def test_unknown_kind(self, snapshot):
        response = handle_plan_request({"kind": "ping", "request_id": 3})
        assert response["kind"] == ERROR_KIND
        assert response["request_id"] == 3

    def test_broken_snapshot_becomes_error(self, snapshot):
        del snapshot["terrain"]
        response = handle_plan_request(request(snapshot))
        assert response["kind"] == ERROR_KIND
        assert "KeyError" in response["message"]

    def test_bad_settings_become_error(self, snapshot):
        req = request(snapshot)
        req["settings"] = {"personality": "Pacifist"}
        response = handle_plan_request(req)
        assert response["kind"] == ERROR_KIND
        assert "ValueError" in response["message"]


# =============================================================================
# CLIENT
# =============================================================================

class BrokenPool(concurrent.futures.Executor):
    """Executor whose workers have all died."""

    def submit(self, fn, *args, **kwargs):
        raise concurrent.futures.BrokenExecutor("worker died")


class TestPlannerWorkerClient:
    """Tests for the client side of the worker protocol."""

    def test_plans_over_thread_pool(self, snapshot):
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            client = PlannerWorkerClient(executor=pool)
            plan = asyncio.run(client.plan_turn(snapshot, STILL, seed=3))
        assert plan["target_ref"]["team_id"] == "Blue"

    def test_none_when_worker_finds_no_plan(self, snapshot):
        snapshot["phase"] = "projectile"
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            client = PlannerWorkerClient(executor=pool)
            assert asyncio.run(client.plan_turn(snapshot, STILL)) is None

    def test_error_response_raises(self, snapshot):
        snapshot["active_index"] = 9
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            client = PlannerWorkerClient(executor=pool)
            with pytest.raises(PlannerWorkerError):
                asyncio.run(client.plan_turn(snapshot, STILL))
            assert client.is_available()

    def test_mismatched_request_id(self, monkeypatch, snapshot):
        monkeypatch.setattr(
            "artillery_ai.worker.handle_plan_request",
            lambda req: {"kind": RESULT_KIND, "request_id": 999, "plan": None},
        )
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            client = PlannerWorkerClient(executor=pool)
            with pytest.raises(PlannerWorkerError):
                asyncio.run(client.plan_turn(snapshot))

    def test_unexpected_kind(self, monkeypatch, snapshot):
        monkeypatch.setattr(
            "artillery_ai.worker.handle_plan_request",
            lambda req: {"kind": "pong", "request_id": req["request_id"]},
        )
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            client = PlannerWorkerClient(executor=pool)
            with pytest.raises(PlannerWorkerError):
                asyncio.run(client.plan_turn(snapshot))

    def test_broken_executor_disables_client(self, snapshot):
        client = PlannerWorkerClient(executor=BrokenPool())
        with pytest.raises(PlannerWorkerError):
            asyncio.run(client.plan_turn(snapshot))
        assert not client.is_available()

    def test_closed_client(self, snapshot):
        with PlannerWorkerClient() as client:
            assert client.is_available()
        assert not client.is_available()
        with pytest.raises(PlannerWorkerError):
            asyncio.run(client.plan_turn(snapshot))

    def test_shut_down_executor_disables_client(self, snapshot):
        pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        pool.shutdown()
        client = PlannerWorkerClient(executor=pool)
        with pytest.raises(PlannerWorkerError):
            asyncio.run(client.plan_turn(snapshot, STILL))
        assert not client.is_available()
