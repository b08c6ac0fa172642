"""
Tests for configuration parsing and presets.
"""

import dataclasses

import pytest

from settings import (
    ARTISTIC_PATTERNS,
    PRESETS,
    ArtConfig,
    flatten,
    load_config,
    pattern_key,
)


class TestDefaults:
    """Tests for the default configuration."""

    def test_defaults(self):
        """Empty mapping gives the documented defaults."""
        cfg = ArtConfig.from_mapping({})
        assert cfg.seed is None
        assert cfg.grid.grid_type == "rectangular"
        assert cfg.grid.rows is None and cfg.grid.cols is None
        assert cfg.grid.cell_size == 100.0
        assert cfg.patterns.enabled == ARTISTIC_PATTERNS
        assert cfg.focal.enabled
        assert cfg.effects.post.neutral
        assert not cfg.effects.noise.enabled

    def test_frozen(self):
        """Sections cannot be mutated in place."""
        cfg = ArtConfig.from_mapping({})
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.grid.rows = 3


class TestMapping:
    """Tests for nested, dotted and aliased keys."""

    def test_nested_sections(self):
        """Nested dicts reach their sections."""
        cfg = ArtConfig.from_mapping({"grid": {"gridType": "hexagonal", "rows": 4},
                                      "effects": {"noise": {"enabled": True, "amount": 12}}})
        assert cfg.grid.grid_type == "hexagonal"
        assert cfg.grid.rows == 4
        assert cfg.effects.noise.enabled
        assert cfg.effects.noise.amount == 12.0

    def test_dotted_keys(self):
        """Dotted keys behave like nested dicts."""
        cfg = ArtConfig.from_mapping({"effects.noise.amount": 20, "geometry.jitter": "0.25"})
        assert cfg.effects.noise.amount == 20.0
        assert cfg.geometry.jitter == 0.25

    def test_aliases_and_short_prefixes(self):
        """Legacy names and effect prefixes without 'effects.' are routed."""
        cfg = ArtConfig.from_mapping({"cells_x": 5, "cells_y": 3, "shadow.enabled": "true",
                                      "big_block": False, "randomSeed": 9})
        assert (cfg.grid.cols, cfg.grid.rows) == (5, 3)
        assert cfg.effects.shadow.enabled
        assert not cfg.focal.enabled
        assert cfg.seed == 9

    def test_pattern_list_string(self):
        """Comma separated pattern names, camelCase folded."""
        cfg = ArtConfig.from_mapping({"patterns.enabled": "circle, halfSquare"})
        assert cfg.patterns.enabled == ("circle", "half_square")

    def test_pattern_enable_map(self):
        """{name: weight} maps give both the enabled list and weights."""
        cfg = ArtConfig.from_mapping({"patterns": {"circle": 0.5, "square": 0, "cross": True}})
        assert cfg.patterns.enabled == ("circle", "cross")
        assert cfg.patterns.weight("circle") == 0.5
        assert cfg.patterns.weight("cross") == 1.0

    def test_unknown_keys_ignored(self):
        """Unrecognised keys do not raise."""
        cfg = ArtConfig.from_mapping({"sparkles": 3, "grid.nonsense": 1})
        assert cfg == ArtConfig.from_mapping({})

    def test_bad_value_raises(self):
        """Values that cannot be coerced name the key."""
        with pytest.raises(ValueError, match="grid.rows"):
            ArtConfig.from_mapping({"grid.rows": "many"})

    def test_with_values_does_not_mutate(self):
        """with_values returns a new config."""
        base = ArtConfig.from_mapping({"grid.rows": 4})
        derived = base.with_values({"grid.rows": 6})
        assert base.grid.rows == 4
        assert derived.grid.rows == 6

    def test_flatten(self):
        """flatten produces snake_case dotted keys."""
        assert flatten({"grid": {"cellSize": 5}}) == {"grid.cell_size": 5}

    def test_pattern_key_aliases(self):
        """Old pattern names map to current ones."""
        assert pattern_key("geometricMandala") == "mandala"


class TestPresets:
    """Tests for named presets."""

    def test_known_presets(self):
        """All documented presets exist and describe themselves."""
        assert {"artistic_grid", "classic", "modern", "neon", "organic", "monochrome"} <= set(PRESETS)
        assert all(p.description for p in PRESETS.values())

    @pytest.mark.parametrize("name", sorted(PRESETS))
    def test_presets_parse(self, name):
        """Every preset builds a config."""
        assert isinstance(load_config(None, preset=name), ArtConfig)

    def test_user_values_win(self):
        """User values override the preset."""
        cfg = load_config({"effects.noise.amount": 3}, preset="classic")
        assert cfg.effects.noise.amount == 3.0
        assert cfg.effects.shadow.enabled

    def test_unknown_preset(self):
        """Unknown presets raise with the available names."""
        with pytest.raises(KeyError, match="Available"):
            load_config({}, preset="vaporwave")
