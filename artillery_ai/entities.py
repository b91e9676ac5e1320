"""
Combatants and teams.

Combatants are compared and hashed by identity: the personality side-table and
the plan validity token both rely on "is this the same combatant object".
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Optional

from .physics import (
    COMBATANT_RADIUS,
    GRAVITY,
    JUMP_SPEED,
    WALK_ACCEL,
    WALK_SPEED,
    Vector2D,
)
from .terrain import Terrain


@dataclass(eq=False)
class Combatant:
    """
    A single controllable unit.

    Attributes:
        x, y: Centre position (px).
        team: Owning team id.
        name: Display name.
        vx, vy: Velocity (px/s).
        radius: Body radius (px).
        health: Hit points (0-100).
        alive: False once health reaches zero.
        facing: -1 when facing left, 1 when facing right.
        on_ground: True while standing on terrain.
        age: Seconds since spawn.
    """
    x: float
    y: float
    team: str
    name: str
    vx: float = 0.0
    vy: float = 0.0
    radius: float = COMBATANT_RADIUS
    health: float = 100.0
    alive: bool = True
    facing: int = 1
    on_ground: bool = False
    age: float = 0.0

    @property
    def position(self) -> Vector2D:
        """Current position as a vector."""
        return Vector2D(self.x, self.y)

    def take_damage(self, amount: float) -> None:
        """Apply damage, marking the combatant dead at zero health."""
        self.health = max(0.0, self.health - math.floor(amount))
        if self.health <= 0:
            self.alive = False

    def clone(self) -> Combatant:
        """Independent copy with the same fields and a new identity."""
        return Combatant(
            x=self.x,
            y=self.y,
            team=self.team,
            name=self.name,
            vx=self.vx,
            vy=self.vy,
            radius=self.radius,
            health=self.health,
            alive=self.alive,
            facing=self.facing,
            on_ground=self.on_ground,
            age=self.age,
        )

    def update(self, dt: float, terrain: Terrain, move_x: int, jump: bool) -> None:
        """
        Advance walking physics by dt seconds.

        Args:
            dt: Time step in seconds.
            terrain: Terrain to collide against.
            move_x: Walk input (-1, 0 or 1).
            jump: Request a jump (only honoured on the ground).
        """
        if not self.alive:
            return
        self.age += dt

        target_vx = move_x * WALK_SPEED
        if abs(target_vx - self.vx) < 5:
            self.vx = target_vx
        else:
            self.vx += math.copysign(1.0, target_vx - self.vx) * WALK_ACCEL * dt
            if (target_vx >= 0 and self.vx > target_vx) or (target_vx < 0 and self.vx < target_vx):
                self.vx = target_vx
        if move_x != 0:
            self.facing = 1 if move_x > 0 else -1

        if self.on_ground and jump:
            self.vy = -JUMP_SPEED
            self.on_ground = False

        self.vy += GRAVITY * dt

        # Horizontal, with step-up when hitting a wall
        nx = self.x + self.vx * dt
        ny = self.y
        if terrain.circle_collides(nx, ny, self.radius):
            climbed = False
            for step in range(1, 9):
                if not terrain.circle_collides(nx, ny - step, self.radius):
                    ny -= step
                    climbed = True
                    break
            if not climbed:
                nx = self.x
                self.vx = 0.0

        # Vertical
        ny = ny + self.vy * dt
        on_ground = False
        if terrain.circle_collides(nx, ny, self.radius):
            if self.vy > 0:
                for step in range(0, 15):
                    if not terrain.circle_collides(nx, ny - step, self.radius):
                        ny -= step
                        on_ground = True
                        self.vy = 0.0
                        break
            elif self.vy < 0:
                for step in range(0, 15):
                    if not terrain.circle_collides(nx, ny + step, self.radius):
                        ny += step
                        self.vy = 0.0
                        break
            res = terrain.resolve_circle(nx, ny, self.radius)
            nx, ny = res.x, res.y
            on_ground = on_ground or res.on_ground

        self.x = nx
        self.y = ny
        self.on_ground = on_ground

    def to_dict(self) -> dict[str, Any]:
        """Plain-data copy of every field."""
        return {
            "name": self.name,
            "team": self.team,
            "x": self.x,
            "y": self.y,
            "vx": self.vx,
            "vy": self.vy,
            "radius": self.radius,
            "health": self.health,
            "alive": self.alive,
            "facing": self.facing,
            "on_ground": self.on_ground,
            "age": self.age,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Combatant:
        """Create a combatant from plain data."""
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            team=str(data["team"]),
            name=str(data["name"]),
            vx=float(data.get("vx", 0.0)),
            vy=float(data.get("vy", 0.0)),
            radius=float(data.get("radius", COMBATANT_RADIUS)),
            health=float(data.get("health", 100.0)),
            alive=bool(data.get("alive", True)),
            facing=-1 if data.get("facing", 1) < 0 else 1,
            on_ground=bool(data.get("on_ground", False)),
            age=float(data.get("age", 0.0)),
        )


@dataclass(eq=False)
class Team:
    """An ordered list of combatants. Order is stable and used for tie-breaks."""
    id: str
    members: list[Combatant] = field(default_factory=list)

    @property
    def living(self) -> list[Combatant]:
        """Members that are still alive."""
        return [c for c in self.members if c.alive]

    def index_of(self, combatant: Combatant) -> Optional[int]:
        """Position of a combatant (by identity), or None."""
        for i, member in enumerate(self.members):
            if member is combatant:
                return i
        return None


def make_team(team_id: str, xs: list[float], y: float = 600.0) -> Team:
    """Build a team with one living combatant per x position."""
    return Team(
        id=team_id,
        members=[
            Combatant(x=x, y=y, team=team_id, name=f"{team_id[0]}{i + 1}")
            for i, x in enumerate(xs)
        ],
    )
