"""
Planner configuration.

Every field of ``AiSettings`` is optional; ``resolve_settings`` fills the gaps
from the defaults below and from the shooter's personality. ``AiSettings``
round-trips through plain dicts so it can travel to the background planner.

Design:
- ScoringWeights holds the tuned game-feel constants of the shot scorer
- ResolvedSettings is the frozen, fully-populated view used by every stage
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from .entities import Combatant
from .personality import Personality, get_personality, normalize_personality
from .physics import clamp


DEFAULT_MIN_THINK_MS = 1500.0
DEFAULT_CINEMATIC_CHANCE = 0.12
DEFAULT_PRECISION_TOP_K = 3
DEFAULT_NOISE_ANGLE_RAD = 0.05
DEFAULT_NOISE_POWER = 0.06
DEFAULT_DEBUG_TOP_N = 6


class PrecisionMode(Enum):
    """How the shot planner picks among scored candidates."""
    PERFECT = "perfect"
    NOISY = "noisy"


@dataclass
class ScoringWeights:
    """Tuned constants of the shot score. Bigger means sooner to fire."""
    splash_weight: float = 22.0
    arc_weight: float = 18.0
    water_weight: float = 70.0
    self_penalty_weight: float = 1.1
    falloff_exponent: float = 0.6
    hit_radius_factor: float = 1.1
    burst_hit_rate: float = 0.35
    burst_range_px: float = 600.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ScoringWeights:
        """Create weights from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: float(v) for k, v in data.items() if k in known})


@dataclass
class PrecisionSettings:
    """Perfect vs. noisy aiming."""
    mode: Optional[PrecisionMode] = None
    top_k: Optional[int] = None
    noise_angle_rad: Optional[float] = None
    noise_power: Optional[float] = None


@dataclass
class CinematicSettings:
    """Chance of a cinematic turn (arc-over-cover / water-kill bonuses)."""
    chance: Optional[float] = None


@dataclass
class DebugSettings:
    """Debug trace collection."""
    enabled: Optional[bool] = None
    top_n: Optional[int] = None


@dataclass
class MovementSettings:
    """Repositioning before the shot."""
    enabled: Optional[bool] = None


@dataclass
class AiSettings:
    """Optional overrides for one planning pass."""
    personality: Optional[Personality] = None
    min_think_time_ms: Optional[float] = None
    cinematic: CinematicSettings = field(default_factory=CinematicSettings)
    precision: PrecisionSettings = field(default_factory=PrecisionSettings)
    debug: DebugSettings = field(default_factory=DebugSettings)
    movement: MovementSettings = field(default_factory=MovementSettings)
    scoring: Optional[ScoringWeights] = None

    @classmethod
    def from_json(cls, path: str) -> AiSettings:
        """Load settings from a JSON file."""
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"AI settings not found: {path}")

        with open(config_path) as f:
            data = json.load(f)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> AiSettings:
        """
        Create settings from a dict.

        Raises:
            ValueError: On an unknown personality or precision mode.
        """
        data = data or {}
        personality = None
        if data.get("personality") is not None:
            personality = normalize_personality(data["personality"])
            if personality is None:
                raise ValueError(f"Unknown personality: {data['personality']!r}")

        precision_data = data.get("precision") or {}
        mode = None
        if precision_data.get("mode") is not None:
            mode = PrecisionMode(precision_data["mode"])

        scoring_data = data.get("scoring")
        return cls(
            personality=personality,
            min_think_time_ms=data.get("min_think_time_ms"),
            cinematic=CinematicSettings(chance=(data.get("cinematic") or {}).get("chance")),
            precision=PrecisionSettings(
                mode=mode,
                top_k=precision_data.get("top_k"),
                noise_angle_rad=precision_data.get("noise_angle_rad"),
                noise_power=precision_data.get("noise_power"),
            ),
            debug=DebugSettings(
                enabled=(data.get("debug") or {}).get("enabled"),
                top_n=(data.get("debug") or {}).get("top_n"),
            ),
            movement=MovementSettings(enabled=(data.get("movement") or {}).get("enabled")),
            scoring=ScoringWeights.from_dict(scoring_data) if scoring_data else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data form (enums as their values)."""
        return {
            "personality": self.personality.value if self.personality else None,
            "min_think_time_ms": self.min_think_time_ms,
            "cinematic": {"chance": self.cinematic.chance},
            "precision": {
                "mode": self.precision.mode.value if self.precision.mode else None,
                "top_k": self.precision.top_k,
                "noise_angle_rad": self.precision.noise_angle_rad,
                "noise_power": self.precision.noise_power,
            },
            "debug": {"enabled": self.debug.enabled, "top_n": self.debug.top_n},
            "movement": {"enabled": self.movement.enabled},
            "scoring": asdict(self.scoring) if self.scoring else None,
        }


@dataclass(frozen=True)
class ResolvedSettings:
    """Every planner knob with defaults applied."""
    personality: Personality = Personality.GENERALIST
    min_think_time_ms: float = DEFAULT_MIN_THINK_MS
    cinematic_chance: float = DEFAULT_CINEMATIC_CHANCE
    precision_mode: PrecisionMode = PrecisionMode.PERFECT
    precision_top_k: int = DEFAULT_PRECISION_TOP_K
    noise_angle_rad: float = DEFAULT_NOISE_ANGLE_RAD
    noise_power: float = DEFAULT_NOISE_POWER
    debug_enabled: bool = False
    debug_top_n: int = DEFAULT_DEBUG_TOP_N
    movement_enabled: bool = True
    scoring: ScoringWeights = field(default_factory=ScoringWeights)


def _pick(value: Any, default: Any) -> Any:
    return default if value is None else value


def resolve_settings(
    shooter: Combatant,
    settings: Optional[AiSettings] = None,
) -> ResolvedSettings:
    """
    Fill in every planner setting for a shooter.

    The personality comes from the overrides, else from the shooter's
    personality side-table entry.
    """
    s = settings or AiSettings()
    return ResolvedSettings(
        personality=s.personality or get_personality(shooter),
        min_think_time_ms=max(0.0, float(_pick(s.min_think_time_ms, DEFAULT_MIN_THINK_MS))),
        cinematic_chance=clamp(float(_pick(s.cinematic.chance, DEFAULT_CINEMATIC_CHANCE)), 0.0, 1.0),
        precision_mode=_pick(s.precision.mode, PrecisionMode.PERFECT),
        precision_top_k=max(1, int(_pick(s.precision.top_k, DEFAULT_PRECISION_TOP_K))),
        noise_angle_rad=float(_pick(s.precision.noise_angle_rad, DEFAULT_NOISE_ANGLE_RAD)),
        noise_power=float(_pick(s.precision.noise_power, DEFAULT_NOISE_POWER)),
        debug_enabled=bool(_pick(s.debug.enabled, False)),
        debug_top_n=max(1, int(_pick(s.debug.top_n, DEFAULT_DEBUG_TOP_N))),
        movement_enabled=bool(_pick(s.movement.enabled, True)),
        scoring=s.scoring or ScoringWeights(),
    )
