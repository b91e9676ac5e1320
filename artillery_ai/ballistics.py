#!/usr/bin/env python3
"""
Ballistics Module for the Artillery AI Turn Planner

Implements the trajectory predictor the planner consumes:
- Aim helpers (aim point from angle, aim angle toward a target)
- Projectile spawn points (muzzle for guns, hold point for the grenade)
- Path prediction for arcing weapons (gravity + wind, Euler integration)
- Path prediction for fused bouncing grenades
- Ray paths for hit-scan weapons

The predictor is a black box to the scorer: any callable matching
``TrajectoryPredictor`` can replace ``predict_trajectory``.

Physics principles:
- Arcing projectiles accelerate by (wind, gravity) every tick
- The path ends at the first tick that overlaps terrain (the deemed impact)
  or when the projectile leaves the arena
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from .entities import Combatant
from .physics import GRAVITY, PROJECTILE_RADIUS, Vector2D
from .terrain import Terrain
from .weapons import WeaponType, get_spec


# =============================================================================
# CONSTANTS
# =============================================================================

# Distance of the synthetic aim point from the shooter (px)
AIM_POINT_DISTANCE = 120.0

# Muzzle sits this far beyond the body radius along the aim direction
MUZZLE_EXTRA = 6.0

# Integration step for arcing projectiles (s)
PREDICT_DT = 1.0 / 60.0

# Maximum simulated flight time for contact-fused projectiles (s)
PREDICT_MAX_T = 3.0

# Spacing of hit-scan path samples (px)
RAY_SAMPLE_STEP = 16.0


# =============================================================================
# AIM
# =============================================================================

@dataclass(frozen=True)
class AimInfo:
    """
    Where the shooter is aiming.

    Attributes:
        target_x: World x of the aim point.
        target_y: World y of the aim point.
        angle: Aim angle in radians (screen space, +y is down).
    """
    target_x: float
    target_y: float
    angle: float


def build_aim_from_angle(shooter: Combatant, angle: float) -> AimInfo:
    """Aim point AIM_POINT_DISTANCE px from the shooter along angle."""
    return AimInfo(
        target_x=shooter.x + math.cos(angle) * AIM_POINT_DISTANCE,
        target_y=shooter.y + math.sin(angle) * AIM_POINT_DISTANCE,
        angle=angle,
    )


def facing_for_aim(shooter: Combatant, aim: AimInfo) -> int:
    """Facing the shooter takes when firing at an aim point."""
    return -1 if aim.target_x < shooter.x else 1


def grenade_hold_point(shooter: Combatant, facing: int) -> Vector2D:
    """Point the grenade leaves the hand from."""
    return Vector2D(
        shooter.x + facing * shooter.radius * 0.5,
        shooter.y - shooter.radius * 0.3,
    )


def compute_aim_angle(
    weapon: WeaponType,
    shooter: Combatant,
    target_x: float,
    target_y: float,
) -> float:
    """
    Aim angle that points the weapon at a target point.

    Guns rotate around the body centre with a barrel in front, so the angle is
    refined twice from the muzzle position. The grenade is aimed from the hold
    point directly.
    """
    facing = -1 if target_x < shooter.x else 1
    if weapon is WeaponType.HAND_GRENADE:
        hold = grenade_hold_point(shooter, facing)
        return math.atan2(target_y - hold.y, target_x - hold.x)

    barrel = shooter.radius + MUZZLE_EXTRA
    angle = math.atan2(target_y - shooter.y, target_x - shooter.x)
    for _ in range(2):
        muzzle_x = shooter.x + math.cos(angle) * barrel
        muzzle_y = shooter.y + math.sin(angle) * barrel
        angle = math.atan2(target_y - muzzle_y, target_x - muzzle_x)
    return angle


def spawn_point(weapon: WeaponType, shooter: Combatant, angle: float) -> Vector2D:
    """Where the projectile appears, using the shooter's current facing."""
    if weapon is WeaponType.HAND_GRENADE:
        return grenade_hold_point(shooter, -1 if shooter.facing < 0 else 1)
    barrel = shooter.radius + MUZZLE_EXTRA
    return Vector2D(
        shooter.x + math.cos(angle) * barrel,
        shooter.y + math.sin(angle) * barrel,
    )


# =============================================================================
# PREDICTOR PROTOCOL
# =============================================================================

@runtime_checkable
class TrajectoryPredictor(Protocol):
    """
    Simulates a shot's flight.

    Returns the ordered path points; the last point is the deemed impact.
    An empty list means the projectile never left the muzzle.
    """

    def __call__(
        self,
        weapon: WeaponType,
        shooter: Combatant,
        aim: AimInfo,
        power: float,
        wind: float,
        terrain: Terrain,
        width: float,
        height: float,
    ) -> list[Vector2D]:
        ...


# =============================================================================
# REFERENCE PREDICTOR
# =============================================================================

def _out_of_arena(x: float, y: float, width: float, height: float) -> bool:
    return x < -50 or x > width + 50 or y > height + 50


def _predict_ray(
    weapon: WeaponType,
    shooter: Combatant,
    aim: AimInfo,
    terrain: Terrain,
) -> list[Vector2D]:
    spec = get_spec(weapon)
    start = spawn_point(weapon, shooter, aim.angle)
    dir_x = math.cos(aim.angle)
    dir_y = math.sin(aim.angle)
    hit = terrain.raycast(start.x, start.y, dir_x, dir_y, spec.max_distance, 3.0)
    max_dist = hit.dist if hit is not None else spec.max_distance
    points: list[Vector2D] = []
    d = 0.0
    while d <= max_dist:
        points.append(Vector2D(start.x + dir_x * d, start.y + dir_y * d))
        d += RAY_SAMPLE_STEP
    return points


def _predict_fused(
    weapon: WeaponType,
    shooter: Combatant,
    aim: AimInfo,
    power: float,
    wind: float,
    terrain: Terrain,
    width: float,
    height: float,
) -> list[Vector2D]:
    spec = get_spec(weapon)
    start = spawn_point(weapon, shooter, aim.angle)
    speed = spec.launch_speed(power)
    x, y = start.x, start.y
    vx = math.cos(aim.angle) * speed
    vy = math.sin(aim.angle) * speed
    fuse_s = spec.fuse_ms / 1000.0
    max_t = max(3.2, fuse_s + 0.25)
    steps = int(max_t / PREDICT_DT)

    points: list[Vector2D] = []
    t = 0.0
    for i in range(steps):
        vx += wind * PREDICT_DT
        vy += GRAVITY * PREDICT_DT
        nx = x + vx * PREDICT_DT
        ny = y + vy * PREDICT_DT
        if terrain.circle_collides(nx, ny, PROJECTILE_RADIUS):
            # Bounce off the ground, losing energy
            vy = -vy * spec.restitution
            vx = vx * spec.restitution
        else:
            x, y = nx, ny
        t += PREDICT_DT
        if i % 2 == 0:
            points.append(Vector2D(x, y))
        if t >= fuse_s or _out_of_arena(x, y, width, height):
            break
    if not points or points[-1] != Vector2D(x, y):
        points.append(Vector2D(x, y))
    return points


def _predict_contact(
    weapon: WeaponType,
    shooter: Combatant,
    aim: AimInfo,
    power: float,
    wind: float,
    terrain: Terrain,
    width: float,
    height: float,
) -> list[Vector2D]:
    spec = get_spec(weapon)
    start = spawn_point(weapon, shooter, aim.angle)
    speed = spec.launch_speed(power)
    x, y = start.x, start.y
    vx = math.cos(aim.angle) * speed
    vy = math.sin(aim.angle) * speed
    steps = int(PREDICT_MAX_T / PREDICT_DT)

    points: list[Vector2D] = []
    for i in range(steps):
        vy += GRAVITY * PREDICT_DT
        vx += wind * PREDICT_DT
        x += vx * PREDICT_DT
        y += vy * PREDICT_DT
        stopped = (
            terrain.circle_collides(x, y, PROJECTILE_RADIUS)
            or _out_of_arena(x, y, width, height)
        )
        if i % 2 == 0 or stopped:
            points.append(Vector2D(x, y))
        if stopped:
            break
    return points


def predict_trajectory(
    weapon: WeaponType,
    shooter: Combatant,
    aim: AimInfo,
    power: float,
    wind: float,
    terrain: Terrain,
    width: float,
    height: float,
) -> list[Vector2D]:
    """
    Predict the flight path of a shot.

    Args:
        weapon: Weapon being fired.
        shooter: Firing combatant (its facing selects the spawn point).
        aim: Aim information; only the angle drives the launch.
        power: Launch power in [0, 1] (ignored by hit-scan weapons).
        wind: Horizontal acceleration in px/s^2.
        terrain: Terrain to collide against.
        width: Arena width in px.
        height: Arena height in px.

    Returns:
        Ordered path points; the last one is the deemed impact.
    """
    spec = get_spec(weapon)
    if spec.hitscan:
        return _predict_ray(weapon, shooter, aim, terrain)
    if spec.fuse_ms > 0:
        return _predict_fused(weapon, shooter, aim, power, wind, terrain, width, height)
    return _predict_contact(weapon, shooter, aim, power, wind, terrain, width, height)
