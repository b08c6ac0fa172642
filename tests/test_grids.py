"""
Tests for grid topologies and Poisson-disk sampling.
"""

import math

import pytest

from grids import (
    TOPOLOGIES,
    Cell,
    adapt_pattern,
    convex_hull,
    poisson_disk_sample,
    resolve_geometry,
)
from seeding import SeededRandom

ALL_TOPOLOGIES = ("rectangular", "hexagonal", "triangular", "voronoi", "radial", "irregular")
EPS = 1e-6


def _generate(name, rows=5, cols=6, size=40.0, params=None, seed=3):
    geom = TOPOLOGIES.create(name)
    params = params or {}
    cells = geom.generate(rows, cols, size, params, SeededRandom(seed))
    return geom, cells, geom.dimensions(rows, cols, size, params)


def _overlap(a: Cell, b: Cell) -> bool:
    return (a.x + a.width > b.x + EPS and b.x + b.width > a.x + EPS
            and a.y + a.height > b.y + EPS and b.y + b.height > a.y + EPS)


class TestRegistry:
    """Tests for topology lookup."""

    def test_all_registered(self):
        """All six topologies are available."""
        assert set(TOPOLOGIES.names()) == set(ALL_TOPOLOGIES)

    def test_unknown_raises(self):
        """create() names the available choices."""
        with pytest.raises(KeyError, match="Available"):
            TOPOLOGIES.create("spiral")

    def test_resolve_unknown_falls_back(self):
        """resolve_geometry degrades to rectangular with a warning."""
        geom, warning = resolve_geometry("spiral")
        assert geom.name == "rectangular"
        assert "spiral" in warning

    def test_resolve_known(self):
        """Known names resolve without a warning."""
        geom, warning = resolve_geometry("Hexagonal")
        assert geom.name == "hexagonal"
        assert warning is None

    def test_adapt_pattern(self):
        """Square requests become hexagons on a honeycomb."""
        assert adapt_pattern("hexagonal", "square") == "hexagon"
        assert adapt_pattern("rectangular", "square") == "square"


class TestBounds:
    """Every cell box lies within the canvas."""

    @pytest.mark.parametrize("name", ALL_TOPOLOGIES)
    def test_cells_inside_canvas(self, name):
        """Boxes are non-empty and contained."""
        _, cells, (w, h) = _generate(name)
        assert cells
        for c in cells:
            assert c.width > 0 and c.height > 0
            assert c.x >= -EPS and c.y >= -EPS
            assert c.x + c.width <= w + EPS
            assert c.y + c.height <= h + EPS

    @pytest.mark.parametrize("name", ALL_TOPOLOGIES)
    def test_indices_and_neighbours_valid(self, name):
        """Indices are 0..n-1 and neighbours point at existing cells."""
        _, cells, _ = _generate(name)
        assert [c.index for c in cells] == list(range(len(cells)))
        for c in cells:
            assert c.index not in c.neighbors
            assert all(0 <= n < len(cells) for n in c.neighbors)

    @pytest.mark.parametrize("name", ALL_TOPOLOGIES)
    def test_deterministic(self, name):
        """Same seed, same cells."""
        _, a, _ = _generate(name, seed=9)
        _, b, _ = _generate(name, seed=9)
        assert a == b


class TestRectangular:
    """Tests for the uniform grid."""

    def test_positions(self):
        """3x3 at size 100 sits on {0, 100, 200}."""
        _, cells, dims = _generate("rectangular", 3, 3, 100.0)
        assert dims == (300.0, 300.0)
        assert {(c.x, c.y) for c in cells} == {(x, y) for x in (0, 100, 200) for y in (0, 100, 200)}

    def test_row_runs_along_x(self):
        """Cell (i, j) is at x = i*size, y = j*size."""
        _, cells, _ = _generate("rectangular", 2, 3, 50.0)
        cell = next(c for c in cells if c.row == 1 and c.col == 2)
        assert (cell.x, cell.y) == (50.0, 100.0)
        assert cell.index == 1 * 3 + 2

    def test_spacing(self):
        """Spacing widens the pitch and the canvas."""
        _, cells, dims = _generate("rectangular", 2, 2, 10.0, {"spacing": 5})
        assert dims == (25.0, 25.0)
        assert max(c.x for c in cells) == 15.0

    def test_four_neighbours(self):
        """A centre cell has four neighbours, a corner two."""
        _, cells, _ = _generate("rectangular", 3, 3, 10.0)
        assert len(cells[4].neighbors) == 4
        assert len(cells[0].neighbors) == 2

    def test_no_overlap(self):
        """Cells tile without overlap."""
        _, cells, _ = _generate("rectangular", 4, 4, 10.0)
        assert not any(_overlap(a, b) for i, a in enumerate(cells) for b in cells[i + 1:])


class TestHexagonal:
    """Tests for the honeycomb."""

    def test_six_vertices(self):
        """Each cell carries a hexagon outline."""
        _, cells, _ = _generate("hexagonal")
        assert all(len(c.vertices) == 6 for c in cells)

    def test_odd_rows_offset(self):
        """Odd rows shift right by half a cell width."""
        _, cells, _ = _generate("hexagonal", 2, 2, 10.0)
        even = next(c for c in cells if c.row == 0 and c.col == 0)
        odd = next(c for c in cells if c.row == 1 and c.col == 0)
        assert odd.x - even.x == pytest.approx(math.sqrt(3) * 10.0 / 2.0)

    def test_interior_has_six_neighbours(self):
        """An interior hexagon touches six others."""
        _, cells, _ = _generate("hexagonal", 5, 5, 10.0)
        inner = next(c for c in cells if c.row == 2 and c.col == 2)
        assert len(inner.neighbors) == 6


class TestTriangular:
    """Tests for the triangle strip grid."""

    def test_orientation_alternates(self):
        """Orientation follows (row + col) parity."""
        _, cells, _ = _generate("triangular", 3, 4, 10.0)
        for c in cells:
            assert c.point_up == ((c.row + c.col) % 2 == 0)
            assert len(c.vertices) == 3

    def test_at_most_three_neighbours(self):
        """Triangles have up to three neighbours, symmetric."""
        _, cells, _ = _generate("triangular", 4, 5, 10.0)
        for c in cells:
            assert len(c.neighbors) <= 3
            for n in c.neighbors:
                assert c.index in cells[n].neighbors


class TestVoronoi:
    """Tests for the approximate Voronoi partition."""

    def test_seed_cap(self):
        """Never more cells than the seed cap."""
        _, cells, _ = _generate("voronoi", 10, 10, 20.0, {"seed_cap": 12})
        assert 1 <= len(cells) <= 12

    def test_hull_outlines(self):
        """Cells carry polygon outlines."""
        _, cells, _ = _generate("voronoi")
        assert all(len(c.vertices) >= 3 for c in cells)

    def test_convex_hull_square(self):
        """Hull of a filled square is its four corners."""
        pts = [(0, 0), (1, 0), (1, 1), (0, 1), (0.5, 0.5)]
        assert sorted(convex_hull(pts)) == [(0, 0), (0, 1), (1, 0), (1, 1)]


class TestRadial:
    """Tests for the concentric rings."""

    def test_single_centre_cell(self):
        """Ring 0 has exactly one cell."""
        _, cells, _ = _generate("radial", 5, 5, 60.0)
        assert len([c for c in cells if c.ring == 0]) == 1

    def test_ring_count_capped(self):
        """Rings are limited by rows and max_rings."""
        _, cells, _ = _generate("radial", 12, 12, 30.0)
        assert max(c.ring for c in cells) == 7
        _, cells, _ = _generate("radial", 12, 12, 30.0, {"max_rings": 3})
        assert max(c.ring for c in cells) == 2

    def test_no_overlap(self):
        """Boxes on and between rings do not overlap."""
        _, cells, _ = _generate("radial", 6, 6, 50.0)
        assert not any(_overlap(a, b) for i, a in enumerate(cells) for b in cells[i + 1:])


class TestPoisson:
    """Tests for Bridson sampling."""

    def test_spacing_and_count(self):
        """Target 20 at distance 30 on 400x400: at most 20, all spaced."""
        pts = poisson_disk_sample(400, 400, 30, 20, SeededRandom(1))
        assert 0 < len(pts) <= 20
        for i, (ax, ay) in enumerate(pts):
            assert 0 <= ax < 400 and 0 <= ay < 400
            for bx, by in pts[i + 1:]:
                assert math.hypot(ax - bx, ay - by) >= 30 - 1e-9

    def test_crowded_terminates(self):
        """An impossible target returns a partial result."""
        pts = poisson_disk_sample(100, 100, 40, 500, SeededRandom(2))
        assert 0 < len(pts) < 500

    def test_zero_target(self):
        """No target, no points."""
        assert poisson_disk_sample(100, 100, 10, 0, SeededRandom(2)) == []

    def test_bad_distance(self):
        """Non-positive distance is a programming error."""
        with pytest.raises(ValueError):
            poisson_disk_sample(100, 100, 0, 5, SeededRandom(2))

    def test_irregular_uses_params(self):
        """Irregular grid honours target_count and min_distance."""
        _, cells, dims = _generate("irregular", 4, 4, 100.0, {"target_count": 20, "min_distance": 30})
        assert dims == (400.0, 400.0)
        assert 0 < len(cells) <= 20
