#!/usr/bin/env python3
"""
Tests for planner configuration.

Tests:
- Dict and JSON loading
- Defaults, clamps and personality resolution
"""

import json

import pytest

from artillery_ai.config import (
    DEFAULT_CINEMATIC_CHANCE,
    DEFAULT_MIN_THINK_MS,
    AiSettings,
    PrecisionMode,
    ScoringWeights,
    resolve_settings,
)
from artillery_ai.entities import Combatant
from artillery_ai.personality import Personality, set_personality


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def shooter():
    return Combatant(x=300.0, y=600.0, team="Red", name="R1")


# =============================================================================
# LOADING
# =============================================================================

class TestAiSettingsLoading:
    """Tests for building settings from plain data."""

    def test_empty_dict(self):
        settings = AiSettings.from_dict({})
        assert settings.personality is None
        assert settings.scoring is None
        assert settings.movement.enabled is None

    def test_full_dict(self):
        settings = AiSettings.from_dict({
            "personality": "marksman",
            "min_think_time_ms": 400,
            "cinematic": {"chance": 0.5},
            "precision": {"mode": "noisy", "top_k": 5, "noise_angle_rad": 0.1, "noise_power": 0.2},
            "debug": {"enabled": True, "top_n": 3},
            "movement": {"enabled": False},
            "scoring": {"splash_weight": 30, "bogus": 1},
        })
        assert settings.personality is Personality.MARKSMAN
        assert settings.precision.mode is PrecisionMode.NOISY
        assert settings.precision.top_k == 5
        assert settings.debug.top_n == 3
        assert settings.movement.enabled is False
        assert settings.scoring.splash_weight == 30
        assert settings.scoring.arc_weight == ScoringWeights().arc_weight

    def test_round_trip(self):
        data = {
            "personality": "Commando",
            "min_think_time_ms": 900,
            "cinematic": {"chance": 1.0},
            "precision": {"mode": "perfect", "top_k": 2, "noise_angle_rad": None, "noise_power": None},
            "debug": {"enabled": False, "top_n": None},
            "movement": {"enabled": True},
            "scoring": None,
        }
        assert AiSettings.from_dict(data).to_dict() == data

    def test_unknown_personality_raises(self):
        with pytest.raises(ValueError):
            AiSettings.from_dict({"personality": "Pacifist"})

    def test_unknown_precision_mode_raises(self):
        with pytest.raises(ValueError):
            AiSettings.from_dict({"precision": {"mode": "sloppy"}})

    def test_from_json(self, tmp_path):
        path = tmp_path / "ai.json"
        path.write_text(json.dumps({"personality": "Demolisher"}))
        assert AiSettings.from_json(str(path)).personality is Personality.DEMOLISHER

    def test_from_json_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AiSettings.from_json(str(tmp_path / "missing.json"))


# =============================================================================
# RESOLUTION
# =============================================================================

class TestResolveSettings:
    """Tests for filling in planner settings."""

    def test_defaults(self, shooter):
        resolved = resolve_settings(shooter)
        assert resolved.personality is Personality.GENERALIST
        assert resolved.min_think_time_ms == DEFAULT_MIN_THINK_MS
        assert resolved.cinematic_chance == DEFAULT_CINEMATIC_CHANCE
        assert resolved.precision_mode is PrecisionMode.PERFECT
        assert resolved.movement_enabled is True
        assert resolved.debug_enabled is False

    def test_personality_from_side_table(self, shooter):
        set_personality(shooter, Personality.DEMOLISHER)
        assert resolve_settings(shooter).personality is Personality.DEMOLISHER

    def test_override_beats_side_table(self, shooter):
        set_personality(shooter, Personality.DEMOLISHER)
        settings = AiSettings(personality=Personality.MARKSMAN)
        assert resolve_settings(shooter, settings).personality is Personality.MARKSMAN

    def test_clamps(self, shooter):
        settings = AiSettings.from_dict({
            "min_think_time_ms": -50,
            "cinematic": {"chance": 3},
            "precision": {"top_k": 0},
            "debug": {"top_n": -1},
        })
        resolved = resolve_settings(shooter, settings)
        assert resolved.min_think_time_ms == 0
        assert resolved.cinematic_chance == 1
        assert resolved.precision_top_k == 1
        assert resolved.debug_top_n == 1
