"""
Destructible terrain query surface.

The terrain is a row-major solidity grid (1 = solid) plus a 1-D array of
surface heights indexed by internal column. World x maps to an internal
column by subtracting ``world_left`` (the arena can extend left of x=0).

The planner only queries the terrain; erosion is owned by the live session.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import numpy as np

from .physics import clamp


@dataclass(frozen=True)
class RayHit:
    """First solid cell found by a raycast."""
    x: float
    y: float
    dist: float


@dataclass(frozen=True)
class CircleResolution:
    """Result of pushing a circle out of solid terrain."""
    x: float
    y: float
    collided: bool
    on_ground: bool


class Terrain:
    """
    Solidity grid with height samples.

    Attributes:
        width: Visible arena width in px.
        height: Arena height in px.
        world_left: World x of internal column 0.
        solid: uint8 array of shape (height, total_width).
        height_map: float array of surface y per internal column.

    Code that edits ``solid`` in place (erosion) must call mark_changed()
    so collision tests see the new cells.
    """

    def __init__(
        self,
        width: int,
        height: int,
        solid: np.ndarray,
        height_map: Sequence[float],
        world_left: int = 0,
    ) -> None:
        solid = np.asarray(solid, dtype=np.uint8)
        if solid.ndim != 2 or solid.shape[0] != height:
            raise ValueError(
                f"Solidity grid shape {solid.shape} does not match terrain height {height}"
            )
        self.width = int(width)
        self.height = int(height)
        self.world_left = int(world_left)
        self.solid = solid
        self.total_width = int(solid.shape[1])
        self.height_map = np.asarray(height_map, dtype=np.float64)

    @property
    def solid(self) -> np.ndarray:
        return self._solid

    @solid.setter
    def solid(self, value: np.ndarray) -> None:
        self._solid = value
        self._column_tops: Optional[list[int]] = None

    def mark_changed(self) -> None:
        """Drop cached lookups after an in-place edit of the solidity grid."""
        self._column_tops = None

    def _tops(self) -> list[int]:
        # First solid row per internal column (height when the column is empty)
        if self._column_tops is None:
            has_solid = self._solid.any(axis=0)
            first = np.argmax(self._solid != 0, axis=0)
            self._column_tops = np.where(has_solid, first, self.height).tolist()
        return self._column_tops

    @property
    def world_right(self) -> int:
        """World x one past the last internal column."""
        return self.world_left + self.total_width

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def from_height_map(
        cls,
        width: int,
        height: int,
        heights: Sequence[float],
        world_left: int = 0,
    ) -> Terrain:
        """
        Build terrain where every cell at or below the surface height is solid.

        Args:
            width: Visible arena width.
            height: Arena height.
            heights: Surface y per internal column (len = total width).
            world_left: World x of the first column.
        """
        height_map = np.asarray(heights, dtype=np.float64)
        rows = np.arange(height, dtype=np.float64)[:, None]
        solid = (rows >= height_map[None, :]).astype(np.uint8)
        return cls(width, height, solid, height_map, world_left)

    @classmethod
    def flat(cls, width: int, height: int, ground_y: float) -> Terrain:
        """Flat ground at ground_y across the whole arena."""
        return cls.from_height_map(width, height, np.full(width, float(ground_y)))

    def apply_height_map(self, heights: Sequence[float]) -> None:
        """Replace the terrain with a new surface profile."""
        height_map = np.asarray(heights, dtype=np.float64)
        if height_map.shape[0] != self.total_width:
            raise ValueError(
                f"Expected {self.total_width} height samples, got {height_map.shape[0]}"
            )
        rows = np.arange(self.height, dtype=np.float64)[:, None]
        self.solid = (rows >= height_map[None, :]).astype(np.uint8)
        self.height_map = height_map

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_solid(self, x: float, y: float) -> bool:
        """Solidity test at a world point."""
        iy = int(round(y))
        if iy < 0 or iy >= self.height:
            return False
        ix = int(round(x - self.world_left))
        if ix < 0 or ix >= self.total_width:
            return False
        return bool(self.solid[iy, ix] == 1)

    def height_at(self, x: float) -> float:
        """Surface y at world x (clamped to the terrain's columns)."""
        if self.height_map.size == 0:
            return float(self.height)
        ix = int(clamp(round(x - self.world_left), 0, self.height_map.size - 1))
        return float(self.height_map[ix])

    def raycast(
        self,
        ox: float,
        oy: float,
        dx: float,
        dy: float,
        max_dist: float,
        step: float = 3.0,
    ) -> Optional[RayHit]:
        """March a ray from (ox, oy) and return the first solid point, if any."""
        length = math.hypot(dx, dy) or 1.0
        vx = dx / length * step
        vy = dy / length * step
        x, y, d = ox, oy, 0.0
        while d <= max_dist:
            if self.is_solid(x, y):
                return RayHit(x, y, d)
            x += vx
            y += vy
            d += step
        return None

    def circle_collides(self, cx: float, cy: float, r: float) -> bool:
        """True when a circle overlaps any solid cell."""
        y0 = max(0, math.floor(cy - r - 1))
        y1 = min(self.height - 1, math.ceil(cy + r + 1))
        ix0 = max(0, math.floor(cx - r - 1) - self.world_left)
        ix1 = min(self.total_width - 1, math.ceil(cx + r + 1) - self.world_left)
        if y0 > y1 or ix0 > ix1:
            return False
        if y1 < min(self._tops()[ix0:ix1 + 1]):
            return False
        icx = math.floor(cx) - self.world_left
        icy = math.floor(cy)
        if 0 <= icy < self.height and 0 <= icx < self.total_width and self._solid[icy, icx] == 1:
            return True

        window = self._solid[y0:y1 + 1, ix0:ix1 + 1]
        if not window.any():
            return False
        xs = np.arange(ix0, ix1 + 1, dtype=np.float64) + self.world_left
        ys = np.arange(y0, y1 + 1, dtype=np.float64)
        dx = cx - np.clip(cx, xs, xs + 1)
        dy = cy - np.clip(cy, ys, ys + 1)
        d2 = dy[:, None] ** 2 + dx[None, :] ** 2
        return bool(np.any((window == 1) & (d2 <= r * r)))

    def resolve_circle(
        self,
        cx: float,
        cy: float,
        r: float,
        climb_step: int = 6,
    ) -> CircleResolution:
        """Push a circle out of the terrain, preferring to climb straight up."""
        if not self.circle_collides(cx, cy, r):
            return CircleResolution(cx, cy, collided=False, on_ground=False)

        for i in range(1, climb_step + 1):
            if not self.circle_collides(cx, cy - i, r):
                return CircleResolution(cx, cy - i, collided=True, on_ground=True)

        steps = 16
        for radius in range(1, int(r + 2) + 1):
            for k in range(steps):
                a = k / steps * math.pi * 2
                nx = cx + math.cos(a) * radius
                ny = cy + math.sin(a) * radius
                if not self.circle_collides(nx, ny, r):
                    return CircleResolution(nx, ny, collided=True, on_ground=False)
        return CircleResolution(cx, cy, collided=True, on_ground=False)

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        """Copy-only description of the terrain for the background planner."""
        return {
            "width": self.width,
            "height": self.height,
            "world_left": self.world_left,
            "total_width": self.total_width,
            "solid": self.solid.tobytes(),
            "height_map": self.height_map.tolist(),
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> Terrain:
        """
        Rebuild an independent terrain from a snapshot.

        Raises:
            ValueError: If the solidity buffer does not match the dimensions.
        """
        height = int(data["height"])
        total_width = int(data["total_width"])
        buffer = np.frombuffer(data["solid"], dtype=np.uint8)
        if buffer.size != height * total_width:
            raise ValueError(
                f"Solidity buffer has {buffer.size} cells, expected {height * total_width}"
            )
        solid = buffer.reshape(height, total_width).copy()
        return cls(
            width=int(data["width"]),
            height=height,
            solid=solid,
            height_map=list(data["height_map"]),
            world_left=int(data["world_left"]),
        )
