#!/usr/bin/env python3
"""
Physics Module for the Artillery AI Turn Planner

Implements the small amount of world physics shared by every planner stage:
- World constants (gravity, walk/jump speeds, combatant and projectile radii)
- A 2D point type for positions
- Scalar helpers (clamp, distance)

Coordinate system follows screen space:
- X: grows to the right
- Y: grows DOWNWARD (a positive sin(angle) aims at the ground)
"""

from __future__ import annotations

import math
from dataclasses import dataclass


# =============================================================================
# WORLD CONSTANTS
# =============================================================================

GRAVITY = 900.0  # px/s^2
WALK_SPEED = 120.0  # px/s
WALK_ACCEL = 800.0  # px/s^2
JUMP_SPEED = 300.0  # px/s
COMBATANT_RADIUS = 12.0  # px
PROJECTILE_RADIUS = 6.0  # px

# Vertical distance above the arena floor where water starts
WATER_MARGIN = 8.0

# Fixed physics sub-step used for walking (ms)
MOVE_SUBSTEP_MS = 8

# Default turn length
TURN_TIME_MS = 30_000


# =============================================================================
# SCALAR HELPERS
# =============================================================================

def clamp(value: float, lo: float, hi: float) -> float:
    """Clamp value into [lo, hi]."""
    return max(lo, min(hi, value))


def distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Euclidean distance between two points."""
    return math.hypot(x2 - x1, y2 - y1)


def water_line(arena_height: float) -> float:
    """Y coordinate of the water surface for an arena of the given height."""
    return arena_height - WATER_MARGIN


# =============================================================================
# VECTOR2D CLASS
# =============================================================================

@dataclass
class Vector2D:
    """
    2D point in the arena (pixels, screen space).
    """
    x: float = 0.0
    y: float = 0.0

    def __eq__(self, other: object) -> bool:
        """Equality check with tolerance."""
        if not isinstance(other, Vector2D):
            return False
        eps = 1e-10
        return abs(self.x - other.x) < eps and abs(self.y - other.y) < eps

    def to_dict(self) -> dict[str, float]:
        """Convert to a plain dict (debug traces, snapshots)."""
        return {"x": self.x, "y": self.y}

    def __repr__(self) -> str:
        return f"Vector2D({self.x:.6g}, {self.y:.6g})"
