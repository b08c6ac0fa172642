"""
Tests for scene composition and rendering.
"""

import math

import numpy as np
import pytest

from composer import Scene, compose, make_surface, render
from grids import TOPOLOGIES
from surfaces import RasterSurface, SvgSurface


def _with(base, **sections):
    cfg = {k: (dict(v) if isinstance(v, dict) else v) for k, v in base.items()}
    for key, value in sections.items():
        if isinstance(value, dict):
            cfg[key] = {**cfg.get(key, {}), **value}
        else:
            cfg[key] = value
    return cfg


class TestCompose:
    """Tests for the layout, pattern and colour pass."""

    def test_reference_grid(self, small_config, palette):
        """3x3 circles at size 100 land on {0, 100, 200} with distinct palette colours."""
        scene = compose(small_config)
        assert len(scene.instances) == 9
        assert {(i.x, i.y) for i in scene.instances} == {(x, y) for x in (0, 100, 200) for y in (0, 100, 200)}
        for inst in scene.instances:
            assert inst.pattern == "circle"
            assert (inst.width, inst.height) == (100, 100)
            assert inst.colors.foreground in palette
            assert inst.colors.background in palette
            assert inst.colors.foreground != inst.colors.background
        assert (scene.width, scene.height) == (300.0, 300.0)
        assert scene.warnings == ()

    def test_deterministic(self, small_config):
        """Same seed and config, identical instances."""
        cfg = _with(small_config, geometry={"jitter": 0.3, "scale_variance": 0.2, "rotation_mode": "continuous"},
                    patterns={"enabled": ["circle", "cross", "star", "fractal_tree"]},
                    focal={"enabled": True})
        assert compose(cfg).instances == compose(cfg).instances

    def test_different_seed_differs(self, small_config):
        """Changing the seed changes the picture."""
        cfg = _with(small_config, patterns={"enabled": ["circle", "cross", "star"]})
        a = compose(_with(cfg, seed=1))
        b = compose(_with(cfg, seed=2))
        assert [i.pattern for i in a.instances] != [i.pattern for i in b.instances] or \
            [i.colors for i in a.instances] != [i.colors for i in b.instances]

    def test_position_seed_isolated(self, small_config):
        """A position seed moves shapes without changing their patterns."""
        cfg = _with(small_config, geometry={"jitter": 0.5}, patterns={"enabled": ["circle", "cross"]})
        a = compose(cfg)
        b = compose(_with(cfg, geometry={"jitter": 0.5, "position_seed": 99}))
        assert [i.pattern for i in a.instances] == [i.pattern for i in b.instances]
        assert [i.jitter for i in a.instances] != [i.jitter for i in b.instances]

    def test_random_rows_when_missing(self, palette):
        """Missing rows/cols fall in [4, 8]."""
        scene = compose({"seed": 3, "colors": {"palette": list(palette)}, "focal": {"enabled": False}})
        assert 16 <= len(scene.instances) <= 64

    @pytest.mark.parametrize("name", sorted(TOPOLOGIES.names()))
    def test_every_topology(self, name, palette):
        """Each topology composes a non-empty scene."""
        scene = compose({"seed": 4, "grid": {"grid_type": name, "rows": 4, "cols": 4, "cell_size": 40},
                         "colors": {"palette": list(palette)}})
        assert scene.topology == name
        assert scene.cells

    def test_unknown_topology(self, small_config):
        """Unknown topology falls back to rectangular with a warning."""
        scene = compose(_with(small_config, grid={"grid_type": "moebius"}))
        assert scene.topology == "rectangular"
        assert len(scene.instances) == 9
        assert any("moebius" in w for w in scene.warnings)

    def test_unknown_pattern(self, small_config):
        """Unknown patterns survive composition and are reported."""
        scene = compose(_with(small_config, patterns={"enabled": ["sparkle"]}))
        assert len(scene.instances) == 9
        assert any("sparkle" in w for w in scene.warnings)
        render(scene, "vector")

    def test_bad_cell_size(self, small_config):
        """Non-positive cell size uses the default."""
        scene = compose(_with(small_config, grid={"cell_size": -5}))
        assert scene.width == 300.0
        assert scene.warnings

    def test_non_positive_min_distance(self, small_config):
        """A zero min_distance on the irregular grid uses the default spacing."""
        scene = compose(_with(small_config, grid={"grid_type": "irregular", "min_distance": 0}))
        assert scene.topology == "irregular"
        assert scene.cells
        assert any("min_distance" in w for w in scene.warnings)

    def test_balanced_distribution(self, small_config):
        """Balanced mode walks the enabled list in order."""
        cfg = _with(small_config, patterns={"enabled": ["circle", "cross", "dots"], "distribution": "balanced"})
        assert [i.pattern for i in compose(cfg).instances] == ["circle", "cross", "dots"] * 3

    def test_clustered_distribution(self, small_config):
        """Clustered mode repeats a pattern for cluster_size cells."""
        cfg = _with(small_config, patterns={"enabled": ["circle", "cross", "dots"],
                                            "distribution": "clustered", "cluster_size": 3})
        names = [i.pattern for i in compose(cfg).instances]
        assert all(len(set(names[k:k + 3])) == 1 for k in range(0, 9, 3))

    def test_discrete_rotation(self, small_config):
        """Discrete rotation uses multiples of 360/steps."""
        cfg = _with(small_config, geometry={"rotation_mode": "discrete", "rotation_steps": 4})
        assert all(i.rotation in (0.0, 90.0, 180.0, 270.0) for i in compose(cfg).instances)


class TestFocal:
    """Tests for the oversized focal block."""

    def test_focal_block(self, small_config):
        """The focal block fits inside the canvas and uses an allowed pattern."""
        cfg = _with(small_config, focal={"enabled": True, "multiplier": 2},
                    patterns={"enabled": ["circle", "dots"]})
        scene = compose(cfg)
        assert len(scene.focal) == 1
        block = scene.focal[0]
        assert block.pattern == "circle"
        assert block.x + block.width <= scene.width + 1e-9
        assert block.y + block.height <= scene.height + 1e-9
        assert len(scene.cells) == 9

    def test_grid_too_small(self, small_config):
        """A block larger than the grid is skipped with a warning."""
        scene = compose(_with(small_config, focal={"enabled": True, "multiplier": 5}))
        assert not scene.focal
        assert scene.warnings

    def test_non_positive_multiplier(self, small_config):
        """A zero or negative multiplier skips the focal block with a warning."""
        for mult in (0, -2):
            scene = compose(_with(small_config, focal={"enabled": True, "multiplier": mult, "count": 2}))
            assert not scene.focal
            assert any("multiplier" in w for w in scene.warnings)

    def test_only_excluded_patterns(self, small_config):
        """No eligible pattern means no focal block."""
        scene = compose(_with(small_config, focal={"enabled": True}, patterns={"enabled": ["dots"]}))
        assert not scene.focal


class TestBackground:
    """Tests for background selection."""

    def test_solid_colour(self, small_config):
        """A configured solid colour is used."""
        scene = compose(_with(small_config, colors={"background": "solid", "background_color": "#123456"}))
        assert scene.background.colors == ("#123456",)

    def test_radial_pair(self, small_config):
        """Radial backgrounds carry an inner and outer colour."""
        scene = compose(_with(small_config, colors={"background": "radial"}))
        assert scene.background.kind == "radial"
        assert len(scene.background.colors) == 2


class TestRender:
    """Tests for painting scenes."""

    def test_make_surface(self, tiny_config):
        """Backends map to surface types."""
        scene = compose(tiny_config)
        assert isinstance(make_surface(scene, "vector"), SvgSurface)
        assert isinstance(make_surface(scene, "png"), RasterSurface)
        with pytest.raises(ValueError):
            make_surface(scene, "pdf")

    def test_raster_render(self, tiny_config):
        """Raster output matches the canvas and is opaque."""
        scene = compose(tiny_config)
        pixels = render(scene, "raster", supersample=1).pixels()
        assert pixels.shape == (48, 48, 4)
        assert pixels.dtype == np.uint8
        assert (pixels[..., 3] == 255).all()

    def test_raster_render_deterministic(self, tiny_config):
        """Same scene renders the same pixels."""
        a = render(compose(tiny_config), "raster", supersample=1).pixels()
        b = render(compose(tiny_config), "raster", supersample=1).pixels()
        assert np.array_equal(a, b)

    def test_vector_render(self, tiny_config):
        """Vector output has the layer groups."""
        svg = render(compose(tiny_config), "vector").tostring()
        assert 'id="background"' in svg and 'id="shapes"' in svg

    def test_borders(self, tiny_config):
        """Dashed borders show up as stroke dash arrays."""
        cfg = _with(tiny_config, effects={"borders": {"enabled": True, "style": "dashed", "width": 1}})
        svg = render(compose(cfg), "vector").tostring()
        assert "stroke-dasharray" in svg

    def test_scene_is_plain_data(self, tiny_config):
        """Scenes expose their seed and palette."""
        scene = compose(tiny_config)
        assert isinstance(scene, Scene)
        assert scene.seed == 7
        assert math.isfinite(scene.width)
