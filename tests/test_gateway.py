#!/usr/bin/env python3
"""
Tests for the asynchronous turn entry point.

Tests:
- Inline planning without a worker
- Background planning bound back to live combatants
- Fallbacks (worker failure, unresolvable target)
- Plans for a turn that moved on are never applied
"""

import asyncio
import concurrent.futures
import logging
import random

import pytest

from artillery_ai.config import AiSettings, MovementSettings
from artillery_ai.gateway import play_turn_async, play_turn_for_team_async
from artillery_ai.session import GamePhase
from artillery_ai.worker import PlannerWorkerClient, PlannerWorkerError


STILL = AiSettings(movement=MovementSettings(enabled=False))


def wire_plan(team_id="Blue", index=0):
    return {
        "weapon": "Rifle",
        "angle": 0.0,
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


class FakeClient:
    """Worker client stand-in that runs a callable instead of a worker."""

    def __init__(self, respond):
        self.respond = respond
        self.calls = []

    def is_available(self):
        return True

    async def plan_turn(self, snapshot, settings=None, seed=None):
        self.calls.append((snapshot, settings, seed))
        return self.respond()


def failing():
    raise PlannerWorkerError("worker exploded")


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def session(make_session):
    return make_session()


def play(session, scheduler, client=None, settings=STILL, seed=42):
    return asyncio.run(play_turn_async(session, scheduler, client, settings, random.Random(seed)))


# =============================================================================
# PLANNING PATHS
# =============================================================================

class TestPlanningPaths:
    """Tests for where the plan comes from."""

    def test_inline_without_client(self, session, scheduler):
        plan = play(session, scheduler)
        assert plan is not None
        assert plan.target is session.teams[1].members[0]
        scheduler.run_all()
        assert len(session.shots) == 1

    def test_background_worker(self, session, scheduler):
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            plan = play(session, scheduler, PlannerWorkerClient(executor=pool))
        assert plan.target is session.teams[1].members[0]
        scheduler.run_all()
        assert len(session.shots) == 1

    def test_worker_result_is_used_as_is(self, session, scheduler):
        client = FakeClient(lambda: wire_plan())
        plan = play(session, scheduler, client)
        assert plan.angle == 0.0
        assert plan.delay_ms == 500.0
        snapshot, settings, seed = client.calls[0]
        assert snapshot["active_team_id"] == "Red"
        assert settings is STILL
        assert isinstance(seed, int)

    def test_worker_failure_falls_back_inline(self, session, scheduler, caplog):
        with caplog.at_level(logging.WARNING, logger="artillery_ai.gateway"):
            plan = play(session, scheduler, FakeClient(failing))
        assert plan is not None
        assert "worker exploded" in caplog.text

    def test_shut_down_executor_falls_back_inline(self, session, scheduler, caplog):
        pool = concurrent.futures.ThreadPoolExecutor(max_workers=1)
        pool.shutdown()
        client = PlannerWorkerClient(executor=pool)
        with caplog.at_level(logging.WARNING, logger="artillery_ai.gateway"):
            plan = play(session, scheduler, client)
        assert plan is not None
        assert plan.target is session.teams[1].members[0]
        assert not client.is_available()
        assert "Background planner failed" in caplog.text
        scheduler.run_all()
        assert len(session.shots) == 1

    def test_unresolvable_target_falls_back_inline(self, session, scheduler):
        plan = play(session, scheduler, FakeClient(lambda: wire_plan(team_id="Green")))
        assert plan is not None
        assert plan.target is session.teams[1].members[0]

    def test_worker_finds_no_plan(self, session, scheduler):
        assert play(session, scheduler, FakeClient(lambda: None)) is None
        assert scheduler.pending == 0

    def test_unavailable_client_plans_inline(self, session, scheduler):
        client = PlannerWorkerClient()
        client.close()
        assert play(session, scheduler, client) is not None


# =============================================================================
# STALE TURNS
# =============================================================================

class TestStaleTurns:
    """Tests for turns that move on while planning."""

    def test_turn_moves_on_during_worker_call(self, session, scheduler):
        def respond():
            session.next_turn()
            return wire_plan()

        assert play(session, scheduler, FakeClient(respond)) is None
        assert scheduler.pending == 0
        assert session.shots == []

    def test_no_inline_fallback_for_a_stale_turn(self, monkeypatch, session, scheduler):
        def respond():
            session.phase = GamePhase.POST_SHOT
            raise PlannerWorkerError("late failure")

        calls = []
        monkeypatch.setattr("artillery_ai.gateway.plan_turn", lambda *args: calls.append(args))
        assert play(session, scheduler, FakeClient(respond)) is None
        assert calls == []
        assert scheduler.pending == 0

    def test_outside_aim_phase(self, session, scheduler):
        session.phase = GamePhase.PROJECTILE
        assert play(session, scheduler) is None

    def test_wrong_team(self, session, scheduler):
        result = asyncio.run(play_turn_for_team_async(session, "Blue", scheduler, None, STILL))
        assert result is None
        assert scheduler.pending == 0

    def test_right_team(self, session, scheduler):
        result = asyncio.run(play_turn_for_team_async(
            session, "Red", scheduler, None, STILL, random.Random(1),
        ))
        assert result is not None
