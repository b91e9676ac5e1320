"""
Weapon definitions for the artillery AI turn planner.

Each weapon is either ARCING (a ballistic explosive affected by gravity and
wind) or HIT-SCAN (a straight-line bullet scored by how close its ray passes
the target). The planner only reads these numbers; applying damage is the
live session's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class WeaponType(Enum):
    """Weapons the planner can choose from."""
    BAZOOKA = "Bazooka"
    HAND_GRENADE = "Hand Grenade"
    RIFLE = "Rifle"
    UZI = "Uzi"


@dataclass(frozen=True)
class WeaponSpec:
    """
    Combat statistics of a weapon.

    Attributes:
        weapon_type: Which weapon these stats describe.
        damage: Full damage at the explosion centre (arcing) or per bullet (hit-scan).
        explosion_radius: Blast radius in px. Zero means the planner treats
                          the weapon as having no splash.
        min_speed: Launch speed at power 0 (px/s), arcing weapons only.
        max_speed: Launch speed at power 1 (px/s), arcing weapons only.
        hitscan: True for straight-line bullets.
        burst_count: Bullets per trigger pull (1 for single shot).
        max_distance: Ray length for hit-scan weapons (px).
        fuse_ms: Grenade fuse; 0 means explode on contact.
        restitution: Bounce factor for fused projectiles.
    """
    weapon_type: WeaponType
    damage: float
    explosion_radius: float = 0.0
    min_speed: float = 0.0
    max_speed: float = 0.0
    hitscan: bool = False
    burst_count: int = 1
    max_distance: float = 0.0
    fuse_ms: float = 0.0
    restitution: float = 0.0

    def launch_speed(self, power: float) -> float:
        """Launch speed for a power in [0, 1]."""
        return self.min_speed + (self.max_speed - self.min_speed) * power

    @property
    def is_burst(self) -> bool:
        """True when one shot fires several bullets."""
        return self.burst_count > 1


WEAPON_SPECS: dict[WeaponType, WeaponSpec] = {
    WeaponType.BAZOOKA: WeaponSpec(
        weapon_type=WeaponType.BAZOOKA,
        damage=75.0,
        explosion_radius=42.0,
        min_speed=450.0,
        max_speed=1150.0,
    ),
    # Flies ~1.5x shorter than the bazooka; distance ~ v^2 so ~0.82x the speed
    WeaponType.HAND_GRENADE: WeaponSpec(
        weapon_type=WeaponType.HAND_GRENADE,
        damage=90.0,
        explosion_radius=52.0,
        min_speed=370.0,
        max_speed=940.0,
        fuse_ms=3000.0,
        restitution=0.35,
    ),
    # The rifle's small ground dent (14 px) is not used for splash scoring
    WeaponType.RIFLE: WeaponSpec(
        weapon_type=WeaponType.RIFLE,
        damage=75.0,
        hitscan=True,
        max_distance=1600.0 * 1.6,
    ),
    WeaponType.UZI: WeaponSpec(
        weapon_type=WeaponType.UZI,
        damage=12.0,
        hitscan=True,
        burst_count=10,
        max_distance=600.0,
    ),
}

# Order matters: candidate generation walks weapons in this order
ALL_WEAPONS: tuple[WeaponType, ...] = (
    WeaponType.BAZOOKA,
    WeaponType.HAND_GRENADE,
    WeaponType.RIFLE,
    WeaponType.UZI,
)

# Heaviest arcing weapon, used for panic shots
PANIC_WEAPON = WeaponType.BAZOOKA


def get_spec(weapon: WeaponType) -> WeaponSpec:
    """Look up the stats of a weapon."""
    return WEAPON_SPECS[weapon]


def is_hitscan(weapon: WeaponType) -> bool:
    """True for straight-line bullet weapons."""
    return WEAPON_SPECS[weapon].hitscan


def explosion_radius(weapon: WeaponType) -> float:
    """Blast radius used for scoring; zero for hit-scan weapons."""
    spec = WEAPON_SPECS[weapon]
    return 0.0 if spec.hitscan else spec.explosion_radius


def weapon_from_name(name: str) -> WeaponType:
    """
    Parse a weapon from its display name or enum name.

    Raises:
        ValueError: If the name matches no weapon.
    """
    weapon: Optional[WeaponType] = None
    for candidate in WeaponType:
        if name in (candidate.value, candidate.name):
            weapon = candidate
            break
    if weapon is None:
        raise ValueError(f"Unknown weapon: {name!r}")
    return weapon
