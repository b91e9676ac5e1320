#!/usr/bin/env python3
"""
Game Session Module for the Artillery AI Turn Planner

The planner reads a live session and writes a handful of commands to it.
This module defines:
- LiveSession: the protocol the planner, gateway and executor depend on
- GameSession: a headless reference session (used by tests and by the
  background planner's throwaway copy of the world)
- PlanToken: the (turn, team, combatant, phase) tuple that guards every
  deferred side effect against a game state that has moved on

The match's turn/phase state machine is owned by the caller; GameSession
only exposes the small surface the planner needs plus a few helpers to
drive it headless (next_turn, restart, pause/resume).
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .ballistics import TrajectoryPredictor, build_aim_from_angle, predict_trajectory
from .entities import Combatant, Team
from .physics import MOVE_SUBSTEP_MS, TURN_TIME_MS, Vector2D, clamp
from .terrain import Terrain
from .weapons import WeaponType

logger = logging.getLogger(__name__)


# =============================================================================
# PHASES AND EVENTS
# =============================================================================

class GamePhase(Enum):
    """Phases of a turn. The planner only acts during AIM."""
    AIM = "aim"
    PROJECTILE = "projectile"
    POST_SHOT = "post-shot"
    GAME_OVER = "gameover"


class SessionEventType(Enum):
    """Side effects recorded by the reference session."""
    TURN_STARTED = auto()
    COMBATANT_SELECTED = auto()
    MOVED = auto()
    WEAPON_SET = auto()
    PRE_SHOT_VISUAL_STARTED = auto()
    PRE_SHOT_VISUAL_CLEARED = auto()
    SHOT_FIRED = auto()
    PAUSED = auto()
    RESUMED = auto()


@dataclass
class SessionEvent:
    """
    A side effect applied to the session.

    Attributes:
        event_type: What happened.
        timestamp_ms: Session clock when it happened.
        team_id: Active team at the time.
        data: Event-specific details.
    """
    event_type: SessionEventType
    timestamp_ms: float
    team_id: Optional[str] = None
    data: dict = field(default_factory=dict)

    def __str__(self) -> str:
        team_str = f"[{self.team_id}]" if self.team_id else ""
        return f"T+{self.timestamp_ms:.0f}ms {team_str} {self.event_type.name}"


# =============================================================================
# LIVE SESSION PROTOCOL
# =============================================================================

@runtime_checkable
class LiveSession(Protocol):
    """Read/write surface of a match the planner plays on."""

    width: float
    height: float
    wind: float
    terrain: Terrain
    teams: list[Team]
    phase: GamePhase
    predictor: TrajectoryPredictor
    rng: random.Random

    @property
    def turn_index(self) -> int: ...

    @property
    def active_team(self) -> Team: ...

    @property
    def active_combatant(self) -> Combatant: ...

    @property
    def active_combatant_index(self) -> int: ...

    @property
    def paused(self) -> bool: ...

    def time_left_ms(self) -> float: ...

    def is_local_turn_active(self) -> bool: ...

    def select_combatant(self, team_id: str, index: int) -> None: ...

    def move(self, direction: int, duration_ms: float, jump: bool) -> None: ...

    def set_weapon(self, weapon: WeaponType) -> None: ...

    def fire(self, angle: float, power: float) -> None: ...

    def begin_pre_shot_visual(
        self, weapon: WeaponType, angle: float, power: float, duration_ms: float
    ) -> None: ...

    def clear_pre_shot_visual(self) -> None: ...


# =============================================================================
# PLAN VALIDITY TOKEN
# =============================================================================

@dataclass(frozen=True)
class PlanToken:
    """
    State a plan was computed for.

    Combatants compare by identity, so a token only matches while the very
    same combatant object is active.
    """
    turn_index: int
    team_id: str
    combatant: Combatant
    phase: GamePhase


def capture_token(session: LiveSession) -> PlanToken:
    """Snapshot the validity token of the current turn."""
    return PlanToken(
        turn_index=session.turn_index,
        team_id=session.active_team.id,
        combatant=session.active_combatant,
        phase=session.phase,
    )


def is_token_current(session: LiveSession, token: PlanToken) -> bool:
    """True while the session is still in the AIM phase the token was captured in."""
    return (
        session.turn_index == token.turn_index
        and session.active_team.id == token.team_id
        and session.active_combatant is token.combatant
        and session.phase is token.phase
        and token.phase is GamePhase.AIM
    )


# =============================================================================
# REFERENCE SESSION
# =============================================================================

@dataclass
class ShotRecord:
    """A shot committed to the session."""
    weapon: WeaponType
    angle: float
    power: float
    shooter_name: str
    impact: Optional[Vector2D]
    timestamp_ms: float


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class GameSession:
    """
    Headless match state.

    Usage:
        session = GameSession(1400, 900, Terrain.flat(1400, 900, 760), [red, blue])
        session.move(1, 260, False)
        session.set_weapon(WeaponType.BAZOOKA)
        session.fire(-0.6, 0.8)

    Attributes:
        width, height: Arena size in px.
        terrain: Live terrain.
        teams: Teams in turn order.
        wind: Horizontal acceleration applied to arcing projectiles.
        phase: Current turn phase.
        predictor: Trajectory predictor used for shots and by the planner.
        rng: Random source for planner decisions made against this session.
        events: Every side effect, in order.
        shots: Every committed shot, in order.
    """

    def __init__(
        self,
        width: float,
        height: float,
        terrain: Terrain,
        teams: list[Team],
        wind: float = 0.0,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
        predictor: TrajectoryPredictor = predict_trajectory,
        turn_time_ms: float = TURN_TIME_MS,
    ) -> None:
        if not teams:
            raise ValueError("A session needs at least one team")
        self.width = width
        self.height = height
        self.terrain = terrain
        self.teams = teams
        self.wind = wind
        self.phase = GamePhase.AIM
        self.predictor = predictor
        self.rng = rng if rng is not None else random.Random()
        self.turn_time_ms = turn_time_ms
        self.clock = clock if clock is not None else _monotonic_ms
        self.weapon = WeaponType.BAZOOKA
        self.pre_shot_visual: Optional[dict[str, Any]] = None
        self.events: list[SessionEvent] = []
        self.shots: list[ShotRecord] = []

        self._turn_index = 0
        self._active_team_index = 0
        self._active_indices: dict[str, int] = {team.id: 0 for team in teams}
        self._paused = False
        self._turn_started_ms = self.clock()
        self._paused_at_ms: Optional[float] = None

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def turn_index(self) -> int:
        """Monotonic turn counter (resets on restart)."""
        return self._turn_index

    @property
    def active_team(self) -> Team:
        """Team whose turn it is."""
        return self.teams[self._active_team_index]

    @property
    def active_combatant_index(self) -> int:
        """Index of the active combatant within the active team."""
        return self._active_indices[self.active_team.id]

    @property
    def active_combatant(self) -> Combatant:
        """Combatant whose turn it is."""
        return self.active_team.members[self.active_combatant_index]

    @property
    def paused(self) -> bool:
        """True while the surrounding simulation is paused."""
        return self._paused

    def enemy_teams(self, team_id: str) -> list[Team]:
        """Every team other than team_id."""
        return [team for team in self.teams if team.id != team_id]

    def time_left_ms(self) -> float:
        """Remaining turn time; the clock does not run while paused."""
        now = self._paused_at_ms if self._paused_at_ms is not None else self.clock()
        return max(0.0, self.turn_time_ms - (now - self._turn_started_ms))

    def is_local_turn_active(self) -> bool:
        """True when the active team may act right now."""
        return self.phase is GamePhase.AIM and not self._paused

    # -------------------------------------------------------------------------
    # Turn flow
    # -------------------------------------------------------------------------

    def pause(self) -> None:
        """Pause the simulation."""
        if self._paused:
            return
        self._paused = True
        self._paused_at_ms = self.clock()
        self._log_event(SessionEventType.PAUSED)

    def resume(self) -> None:
        """Resume the simulation."""
        if not self._paused:
            return
        if self._paused_at_ms is not None:
            self._turn_started_ms += self.clock() - self._paused_at_ms
        self._paused = False
        self._paused_at_ms = None
        self._log_event(SessionEventType.RESUMED)

    def next_turn(self) -> None:
        """Hand the turn to the next team with a living combatant."""
        self._turn_index += 1
        for _ in range(len(self.teams)):
            self._active_team_index = (self._active_team_index + 1) % len(self.teams)
            team = self.active_team
            if not team.living:
                continue
            start = self._active_indices[team.id]
            for step in range(1, len(team.members) + 1):
                candidate = (start + step) % len(team.members)
                if team.members[candidate].alive:
                    self._active_indices[team.id] = candidate
                    break
            break
        self.phase = GamePhase.AIM
        self._turn_started_ms = self.clock()
        self._log_event(SessionEventType.TURN_STARTED, {"turn_index": self._turn_index})

    def restart(self) -> None:
        """Start the match over from turn zero."""
        self._turn_index = 0
        self._active_team_index = 0
        self._active_indices = {team.id: 0 for team in self.teams}
        self.phase = GamePhase.AIM
        self._turn_started_ms = self.clock()
        self._log_event(SessionEventType.TURN_STARTED, {"turn_index": 0})

    def activate(self, team_id: str, index: int) -> None:
        """Make team_id the active team with its combatant at index active."""
        for i, team in enumerate(self.teams):
            if team.id == team_id:
                if not 0 <= index < len(team.members):
                    raise ValueError(f"No combatant {index} in team {team_id!r}")
                self._active_team_index = i
                self._active_indices[team_id] = index
                return
        raise ValueError(f"Unknown team {team_id!r}")

    # -------------------------------------------------------------------------
    # Write access
    # -------------------------------------------------------------------------

    def select_combatant(self, team_id: str, index: int) -> None:
        """Make a team's combatant at index the active one for that team."""
        team = next((t for t in self.teams if t.id == team_id), None)
        if team is None or not 0 <= index < len(team.members):
            raise ValueError(f"No combatant {index} in team {team_id!r}")
        self._active_indices[team_id] = index
        self._log_event(SessionEventType.COMBATANT_SELECTED, {"index": index})

    def move(self, direction: int, duration_ms: float, jump: bool) -> None:
        """Walk the active combatant for duration_ms in fixed sub-steps."""
        combatant = self.active_combatant
        start = combatant.position
        remaining = max(0, int(duration_ms))
        first = True
        while remaining > 0:
            step_ms = min(MOVE_SUBSTEP_MS, remaining)
            combatant.update(step_ms / 1000.0, self.terrain, direction, jump and first)
            remaining -= step_ms
            first = False
        self._log_event(SessionEventType.MOVED, {
            "direction": direction,
            "duration_ms": duration_ms,
            "jump": jump,
            "from": start.to_dict(),
            "to": combatant.position.to_dict(),
        })

    def set_weapon(self, weapon: WeaponType) -> None:
        """Select the weapon for the next shot."""
        self.weapon = weapon
        self._log_event(SessionEventType.WEAPON_SET, {"weapon": weapon.value})

    def fire(self, angle: float, power: float) -> None:
        """Fire the selected weapon; the turn moves to the PROJECTILE phase."""
        shooter = self.active_combatant
        power = clamp(power, 0.0, 1.0)
        aim = build_aim_from_angle(shooter, angle)
        shooter.facing = -1 if aim.target_x < shooter.x else 1
        path = self.predictor(
            self.weapon, shooter, aim, power, self.wind, self.terrain, self.width, self.height
        )
        record = ShotRecord(
            weapon=self.weapon,
            angle=angle,
            power=power,
            shooter_name=shooter.name,
            impact=path[-1] if path else None,
            timestamp_ms=self.clock(),
        )
        self.shots.append(record)
        self.phase = GamePhase.PROJECTILE
        self._log_event(SessionEventType.SHOT_FIRED, {
            "weapon": self.weapon.value,
            "angle": angle,
            "power": power,
        })

    def begin_pre_shot_visual(
        self, weapon: WeaponType, angle: float, power: float, duration_ms: float
    ) -> None:
        """Start the aiming animation shown before a computer shot."""
        self.pre_shot_visual = {
            "weapon": weapon.value,
            "angle": angle,
            "power": power,
            "duration_ms": duration_ms,
        }
        self._log_event(SessionEventType.PRE_SHOT_VISUAL_STARTED, dict(self.pre_shot_visual))

    def clear_pre_shot_visual(self) -> None:
        """Stop the aiming animation."""
        self.pre_shot_visual = None
        self._log_event(SessionEventType.PRE_SHOT_VISUAL_CLEARED)

    # -------------------------------------------------------------------------
    # Event log
    # -------------------------------------------------------------------------

    def events_of(self, event_type: SessionEventType) -> list[SessionEvent]:
        """Recorded events of one type, in order."""
        return [e for e in self.events if e.event_type is event_type]

    def _log_event(self, event_type: SessionEventType, data: Optional[dict] = None) -> None:
        event = SessionEvent(
            event_type=event_type,
            timestamp_ms=self.clock(),
            team_id=self.active_team.id,
            data=data or {},
        )
        self.events.append(event)
        logger.debug("%s", event)
