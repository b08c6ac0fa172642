"""
Tests for the pattern library.
"""

import pytest

from palettes import ColorPair
from patterns import PATTERNS, Box, PatternKind, draw_pattern
from seeding import SeededRandom
from surfaces import RasterSurface, SvgSurface

COLORS = ColorPair("#e63946", "#1d3557")
ALL_KINDS = [k.value for k in PatternKind]


def _svg_for(key, seed=5):
    surface = SvgSurface(100, 100)
    with surface.layer("shapes"):
        draw_pattern(surface, key, Box(10, 10, 80, 80), COLORS, SeededRandom(seed))
    return surface.tostring()


class TestRegistry:
    """Every kind has exactly one registered primitive."""

    def test_exhaustive(self):
        """All PatternKind members are registered."""
        assert set(PATTERNS.kinds()) == set(PatternKind)
        assert PATTERNS.names() == sorted(ALL_KINDS)

    def test_lookup_unknown(self):
        """Unknown keys look up as None."""
        assert PATTERNS.lookup("no_such_pattern") is None

    def test_create_unknown_raises(self):
        """create() lists the available patterns."""
        with pytest.raises(KeyError, match="Available"):
            PATTERNS.create("no_such_pattern")

    def test_lookup_case_insensitive(self):
        """Lookup tolerates case and whitespace."""
        assert PATTERNS.lookup(" Circle ") is PATTERNS.create("circle")

    def test_stochastic_flag(self):
        """Organic patterns are marked stochastic."""
        assert PATTERNS.create("fractal_tree").stochastic
        assert not PATTERNS.create("circle").stochastic


class TestDrawing:
    """Every primitive draws on both surfaces."""

    @pytest.mark.parametrize("key", ALL_KINDS)
    def test_draws_vector(self, key):
        """Vector drawing adds elements to the shapes layer."""
        assert draw_pattern(SvgSurface(60, 60), key, Box(0, 0, 60, 60), COLORS, SeededRandom(1))
        assert len(_svg_for(key)) > len(SvgSurface(100, 100).tostring())

    @pytest.mark.parametrize("key", ALL_KINDS)
    def test_draws_raster(self, key):
        """Raster drawing changes some pixels."""
        surface = RasterSurface(32, 32, supersample=1)
        with surface.layer("shapes"):
            draw_pattern(surface, key, Box(2, 2, 28, 28), COLORS, SeededRandom(2))
        assert surface.pixels()[..., 3].any()

    @pytest.mark.parametrize("key", ALL_KINDS)
    def test_same_seed_same_drawing(self, key):
        """A draw seed reproduces the picture."""
        assert _svg_for(key, seed=9) == _svg_for(key, seed=9)

    def test_non_square_box(self):
        """Wide boxes draw without error."""
        surface = SvgSurface(200, 50)
        assert draw_pattern(surface, "star", Box(0, 0, 200, 50), COLORS, SeededRandom(1))

    def test_unknown_draws_fallback(self):
        """Unknown keys draw the fallback square and report it."""
        surface = RasterSurface(20, 20, supersample=1)
        with surface.layer("shapes"):
            assert draw_pattern(surface, "nope", Box(0, 0, 20, 20), COLORS, SeededRandom(1)) is False
        alpha = surface.pixels()[..., 3]
        assert alpha[10, 10] == 255
        assert alpha[0, 0] == 0


class TestBox:
    """Tests for the box helper."""

    def test_square_is_centred(self):
        """square() is the largest centred square."""
        assert Box(0, 0, 100, 40).square() == Box(30, 0, 40, 40)
