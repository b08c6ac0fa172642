"""
grids.py - grid topologies (registers itself)

Each topology turns (rows, cols, cell_size, params, rng) into an ordered list
of Cell boxes and reports the canvas size that bounds them. Randomness comes
only from the SeededRandom handed in; nothing here touches a global generator.

Topologies
----------
rectangular  uniform square tiling, optional `spacing` gap
hexagonal    pointy-top honeycomb, odd rows shifted by half a hex
triangular   alternating up/down triangles, odd rows shifted by half a cell
voronoi      nearest-seed sampling of the canvas (approximate tiling)
radial       concentric rings of segments around the canvas centre
irregular    Poisson-disk scatter (approximate tiling)
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from seeding import SeededRandom

log = logging.getLogger("artgrid.grids")

Point = Tuple[float, float]

SQRT3 = math.sqrt(3.0)
VORONOI_SEED_CAP = 50
POISSON_MAX_ATTEMPTS = 30


@dataclass(frozen=True)
class Cell:
    x: float
    y: float
    width: float
    height: float
    row: int
    col: int
    index: int
    kind: str
    point_up: Optional[bool] = None
    ring: Optional[int] = None
    segment: Optional[int] = None
    angle: Optional[float] = None
    vertices: Tuple[Point, ...] = ()
    neighbors: Tuple[int, ...] = ()

    @property
    def center(self) -> Point:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    @property
    def size(self) -> float:
        return min(self.width, self.height)


# =============== Registry ===============
class GeometryRegistry:
    def __init__(self) -> None:
        self._by_name: Dict[str, type[GridGeometry]] = {}

    def register(self, name: str, cls: type["GridGeometry"]) -> None:
        self._by_name[name.strip().lower()] = cls

    def names(self) -> list[str]:
        return sorted(self._by_name.keys())

    def create(self, name: str) -> "GridGeometry":
        key = name.strip().lower()
        if key not in self._by_name:
            raise KeyError(f"Unknown topology '{name}'. Available: {', '.join(self.names()) or '(none)'}")
        return self._by_name[key]()


TOPOLOGIES = GeometryRegistry()


def resolve_geometry(name: Optional[str]) -> Tuple["GridGeometry", Optional[str]]:
    """Topology by name; unknown names degrade to rectangular with a warning."""
    key = str(name or "rectangular").strip().lower()
    try:
        return TOPOLOGIES.create(key), None
    except KeyError:
        msg = f"Unknown grid type '{name}', falling back to rectangular"
        log.warning(msg)
        return TOPOLOGIES.create("rectangular"), msg


# Fixed remap of pattern requests that read badly on non-square cells.
_ADAPTATIONS: Dict[Tuple[str, str], str] = {
    ("hexagonal", "square"): "hexagon",
    ("hexagonal", "triangle"): "circle",
    ("triangular", "square"): "triangle",
    ("triangular", "hexagon"): "triangle",
    ("voronoi", "square"): "circle",
    ("voronoi", "triangle"): "circle",
    ("irregular", "square"): "circle",
    ("irregular", "triangle"): "circle",
}


def adapt_pattern(topology: str, pattern: str) -> str:
    return _ADAPTATIONS.get((topology, pattern), pattern)


# =============== Base ===============
@dataclass
class GridGeometry:
    name = "base"

    def generate(
        self,
        rows: int,
        cols: int,
        cell_size: float,
        params: Mapping[str, Any],
        rng: SeededRandom,
    ) -> List[Cell]:  # pragma: no cover
        raise NotImplementedError

    def dimensions(self, rows: int, cols: int, cell_size: float,
                   params: Optional[Mapping[str, Any]] = None) -> Tuple[float, float]:  # pragma: no cover
        raise NotImplementedError


def _clamp_box(cx: float, cy: float, w: float, h: float, width: float, height: float) -> Tuple[float, float, float, float]:
    """Box of size (w, h) centred near (cx, cy), shrunk/shifted to sit inside the canvas."""
    w = min(w, width)
    h = min(h, height)
    x = min(max(cx - w / 2.0, 0.0), width - w)
    y = min(max(cy - h / 2.0, 0.0), height - h)
    return x, y, w, h


def _link(cells: List[Cell], pairs: Dict[int, set]) -> List[Cell]:
    return [replace(c, neighbors=tuple(sorted(pairs.get(c.index, ())))) for c in cells]


# =============== Rectangular ===============
@dataclass
class RectangularGrid(GridGeometry):
    """
    Uniform tiling. Cell (i, j) sits at (i*pitch, j*pitch): i runs over rows
    along x and j over cols along y, pitch = cell_size + spacing.

    params: spacing (float, default 0)
    """
    name = "rectangular"

    def dimensions(self, rows, cols, cell_size, params=None):
        spacing = max(0.0, float((params or {}).get("spacing", 0.0)))
        w = rows * cell_size + max(0, rows - 1) * spacing
        h = cols * cell_size + max(0, cols - 1) * spacing
        return float(w), float(h)

    def generate(self, rows, cols, cell_size, params, rng):
        spacing = max(0.0, float(params.get("spacing", 0.0)))
        pitch = cell_size + spacing
        cells: List[Cell] = []
        for i in range(rows):
            for j in range(cols):
                cells.append(Cell(
                    x=i * pitch, y=j * pitch, width=cell_size, height=cell_size,
                    row=i, col=j, index=i * cols + j, kind=self.name,
                ))
        links: Dict[int, set] = {}
        for c in cells:
            for di, dj in ((-1, 0), (1, 0), (0, -1), (0, 1)):
                ni, nj = c.row + di, c.col + dj
                if 0 <= ni < rows and 0 <= nj < cols:
                    links.setdefault(c.index, set()).add(ni * cols + nj)
        return _link(cells, links)


# =============== Hexagonal ===============
@dataclass
class HexagonalGrid(GridGeometry):
    """Pointy-top honeycomb with circumradius = cell_size."""
    name = "hexagonal"

    def dimensions(self, rows, cols, cell_size, params=None):
        hw = SQRT3 * cell_size
        return cols * hw + hw / 2.0, rows * 1.5 * cell_size + cell_size / 2.0

    def generate(self, rows, cols, cell_size, params, rng):
        s = float(cell_size)
        hw = SQRT3 * s
        cells: List[Cell] = []
        for r in range(rows):
            for c in range(cols):
                cx = c * hw + hw / 2.0 + (hw / 2.0 if r % 2 else 0.0)
                cy = r * 1.5 * s + s
                verts = tuple(
                    (cx + s * math.cos(math.radians(60 * k - 30)),
                     cy + s * math.sin(math.radians(60 * k - 30)))
                    for k in range(6)
                )
                cells.append(Cell(
                    x=cx - hw / 2.0, y=cy - s, width=hw, height=2.0 * s,
                    row=r, col=c, index=r * cols + c, kind=self.name, vertices=verts,
                ))
        links: Dict[int, set] = {}
        for cell in cells:
            r, c = cell.row, cell.col
            if r % 2:
                dirs = ((0, -1), (0, 1), (-1, 0), (-1, 1), (1, 0), (1, 1))
            else:
                dirs = ((0, -1), (0, 1), (-1, -1), (-1, 0), (1, -1), (1, 0))
            for dr, dc in dirs:
                nr, nc = r + dr, c + dc
                if 0 <= nr < rows and 0 <= nc < cols:
                    links.setdefault(cell.index, set()).add(nr * cols + nc)
        return _link(cells, links)


# =============== Triangular ===============
@dataclass
class TriangularGrid(GridGeometry):
    name = "triangular"

    def dimensions(self, rows, cols, cell_size, params=None):
        th = cell_size * SQRT3 / 2.0
        return cols * cell_size + cell_size / 2.0, rows * th + th / 2.0

    def generate(self, rows, cols, cell_size, params, rng):
        s = float(cell_size)
        th = s * SQRT3 / 2.0
        cells: List[Cell] = []
        for r in range(rows):
            for c in range(cols):
                x = c * s + (s / 2.0 if r % 2 else 0.0)
                y = r * th
                up = (r + c) % 2 == 0
                if up:
                    verts = ((x + s / 2.0, y), (x + s, y + th), (x, y + th))
                else:
                    verts = ((x, y), (x + s, y), (x + s / 2.0, y + th))
                cells.append(Cell(
                    x=x, y=y, width=s, height=th, row=r, col=c, index=r * cols + c,
                    kind=self.name, point_up=up, vertices=verts,
                ))
        links: Dict[int, set] = {}
        for cell in cells:
            r, c = cell.row, cell.col
            # two side neighbours plus the one across the flat edge
            across = (r + 1, c) if cell.point_up else (r - 1, c)
            for nr, nc in ((r, c - 1), (r, c + 1), across):
                if 0 <= nr < rows and 0 <= nc < cols:
                    links.setdefault(cell.index, set()).add(nr * cols + nc)
                    links.setdefault(nr * cols + nc, set()).add(cell.index)
        return _link(cells, links)


# =============== Voronoi-like ===============
def convex_hull(points: Sequence[Point]) -> List[Point]:
    """Andrew's monotone chain; counter-clockwise, no repeated end point."""
    pts = sorted(set((float(x), float(y)) for x, y in points))
    if len(pts) <= 2:
        return pts

    def cross(o: Point, a: Point, b: Point) -> float:
        return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])

    lower: List[Point] = []
    for p in pts:
        while len(lower) >= 2 and cross(lower[-2], lower[-1], p) <= 0:
            lower.pop()
        lower.append(p)
    upper: List[Point] = []
    for p in reversed(pts):
        while len(upper) >= 2 and cross(upper[-2], upper[-1], p) <= 0:
            upper.pop()
        upper.append(p)
    return lower[:-1] + upper[:-1]


@dataclass
class VoronoiGrid(GridGeometry):
    """
    Approximate Voronoi partition: scatter seeds, sample the canvas on a
    sub-grid and give each sample to its nearest seed.

    params: seed_cap (int, default 50), size_min / size_max (fractions of
    cell_size, default 0.8 / 1.2)
    """
    name = "voronoi"

    def dimensions(self, rows, cols, cell_size, params=None):
        return float(cols * cell_size), float(rows * cell_size)

    def generate(self, rows, cols, cell_size, params, rng):
        width, height = self.dimensions(rows, cols, cell_size)
        cap = max(1, int(params.get("seed_cap", VORONOI_SEED_CAP)))
        size_min = float(params.get("size_min", 0.8))
        size_max = float(params.get("size_max", 1.2))
        n = min(rows * cols, cap)

        seeds = np.array([(rng.next() * width, rng.next() * height) for _ in range(n)], dtype=np.float64)

        step = max(2, int(cell_size) // 4)
        xs = np.arange(step / 2.0, width, step)
        ys = np.arange(step / 2.0, height, step)
        gx, gy = np.meshgrid(xs, ys)  # row-major: y outer, x inner
        samples = np.stack([gx.ravel(), gy.ravel()], axis=1)
        d2 = ((samples[:, None, :] - seeds[None, :, :]) ** 2).sum(axis=2)
        owner = np.argmin(d2, axis=1)  # first minimum wins ties

        _, first = np.unique(owner, return_index=True)
        order = [int(owner[i]) for i in sorted(first)]
        cell_of_seed = {sid: k for k, sid in enumerate(order)}

        cells: List[Cell] = []
        for k, sid in enumerate(order):
            sx, sy = seeds[sid]
            size = cell_size * (size_min + rng.next() * (size_max - size_min))
            x, y, w, h = _clamp_box(sx, sy, size, size, width, height)
            hull = convex_hull(samples[owner == sid].tolist())
            if len(hull) < 3:
                hull = [(x, y), (x + w, y), (x + w, y + h), (x, y + h)]
            cells.append(Cell(
                x=x, y=y, width=w, height=h,
                row=int(sy // cell_size), col=int(sx // cell_size), index=k,
                kind=self.name, vertices=tuple(hull),
            ))

        # adjacency from neighbouring samples owned by different seeds
        grid = owner.reshape(gy.shape)
        links: Dict[int, set] = {}
        for a, b in ((grid[:, :-1], grid[:, 1:]), (grid[:-1, :], grid[1:, :])):
            diff = a != b
            for p, q in set(zip(a[diff].tolist(), b[diff].tolist())):
                ip, iq = cell_of_seed[p], cell_of_seed[q]
                links.setdefault(ip, set()).add(iq)
                links.setdefault(iq, set()).add(ip)
        log.debug("voronoi: %d seeds, %d samples, %d cells", n, len(samples), len(cells))
        return _link(cells, links)


# =============== Radial ===============
@dataclass
class RadialGrid(GridGeometry):
    """
    Concentric rings around the canvas centre. Ring 0 is a single cell; ring r
    carries floor(max(cols, 6) * r / rings * 2) segments. Cell size shrinks
    linearly with the ring index and is further capped so neighbouring boxes
    never overlap.

    params: shrink (float, default 0.1), max_rings (int, default 8)
    """
    name = "radial"

    def dimensions(self, rows, cols, cell_size, params=None):
        return float(cols * cell_size), float(rows * cell_size)

    def generate(self, rows, cols, cell_size, params, rng):
        s = float(cell_size)
        width, height = self.dimensions(rows, cols, s)
        cx, cy = width / 2.0, height / 2.0
        shrink = max(0.0, float(params.get("shrink", 0.1)))
        rings = max(1, min(rows, int(params.get("max_rings", 8))))

        max_radius = max(0.0, min(cx, cy) - s / 2.0)
        gap = max_radius / (rings - 1) if rings > 1 else 0.0

        cells: List[Cell] = []
        by_ring: List[List[Cell]] = []
        for r in range(rings):
            segments = 1 if r == 0 else (int(max(cols, 6) * r / rings * 2) or 1)
            radius = 0.0 if r == 0 else r * gap
            size = s * max(0.1, 1.0 - shrink * r)
            if rings > 1:
                # keep boxes apart: centre distance >= side * sqrt(2)
                size = min(size, gap / math.sqrt(2.0))
                if segments > 1:
                    chord = 2.0 * radius * math.sin(math.pi / segments)
                    size = min(size, chord / math.sqrt(2.0))
            ring_cells = []
            for k in range(segments):
                theta = 2.0 * math.pi * k / segments
                px = cx + radius * math.cos(theta)
                py = cy + radius * math.sin(theta)
                x, y, w, h = _clamp_box(px, py, size, size, width, height)
                cell = Cell(
                    x=x, y=y, width=w, height=h, row=r, col=k, index=len(cells),
                    kind=self.name, ring=r, segment=k, angle=math.degrees(theta),
                )
                cells.append(cell)
                ring_cells.append(cell)
            by_ring.append(ring_cells)

        links: Dict[int, set] = {}

        def add(a: int, b: int) -> None:
            if a != b:
                links.setdefault(a, set()).add(b)
                links.setdefault(b, set()).add(a)

        for r, ring_cells in enumerate(by_ring):
            n = len(ring_cells)
            if n > 1:
                for k, cell in enumerate(ring_cells):
                    add(cell.index, ring_cells[(k + 1) % n].index)
            if r == 0:
                continue
            inner = by_ring[r - 1]
            for cell in ring_cells:
                # nearest inner segment by angle
                best = min(inner, key=lambda c: _angle_gap(c.angle or 0.0, cell.angle or 0.0))
                add(cell.index, best.index)
        return _link(cells, links)


def _angle_gap(a: float, b: float) -> float:
    d = abs(a - b) % 360.0
    return min(d, 360.0 - d)


# =============== Irregular (Poisson disk) ===============
def poisson_disk_sample(
    width: float,
    height: float,
    min_distance: float,
    target_count: int,
    rng: SeededRandom,
    max_attempts: int = POISSON_MAX_ATTEMPTS,
    max_steps: Optional[int] = None,
) -> List[Point]:
    """
    Bridson-style sampling. Starts at the canvas centre and grows from an
    active list; accepted points are always >= min_distance apart. Stops at
    target_count, when the active list empties, or after max_steps outer
    iterations, returning whatever was placed.
    """
    if width <= 0 or height <= 0 or target_count <= 0:
        return []
    d = float(min_distance)
    if d <= 0:
        raise ValueError("min_distance must be positive")
    max_steps = max_steps if max_steps is not None else 4 * target_count + 100

    cell = d / math.sqrt(2.0)
    gw = int(math.ceil(width / cell))
    gh = int(math.ceil(height / cell))
    grid: Dict[Tuple[int, int], int] = {}
    points: List[Point] = []
    d2 = d * d

    def fits(px: float, py: float) -> bool:
        gx, gy = int(px / cell), int(py / cell)
        for ix in range(max(0, gx - 2), min(gw, gx + 3)):
            for iy in range(max(0, gy - 2), min(gh, gy + 3)):
                j = grid.get((ix, iy))
                if j is None:
                    continue
                qx, qy = points[j]
                if (px - qx) ** 2 + (py - qy) ** 2 < d2:
                    return False
        return True

    def accept(px: float, py: float) -> None:
        grid[(int(px / cell), int(py / cell))] = len(points)
        points.append((px, py))

    accept(width / 2.0, height / 2.0)
    active = [0]
    steps = 0
    while active and len(points) < target_count and steps < max_steps:
        steps += 1
        slot = int(rng.next() * len(active))
        bx, by = points[active[slot]]
        placed = False
        for _ in range(max_attempts):
            theta = rng.next() * 2.0 * math.pi
            radius = d * (1.0 + rng.next())
            px = bx + radius * math.cos(theta)
            py = by + radius * math.sin(theta)
            if 0.0 <= px < width and 0.0 <= py < height and fits(px, py):
                accept(px, py)
                active.append(len(points) - 1)
                placed = True
                break
        if not placed:
            active.pop(slot)
    if steps >= max_steps:
        log.debug("poisson: step cap %d reached with %d points", max_steps, len(points))
    return points


@dataclass
class IrregularGrid(GridGeometry):
    """
    Poisson-disk scatter with a jittered polygon per point.

    params: min_distance (default 0.7*cell_size), target_count (default
    rows*cols), max_attempts (30), width / height (override the canvas)
    """
    name = "irregular"

    def dimensions(self, rows, cols, cell_size, params=None):
        params = params or {}
        w = float(params.get("width", cols * cell_size))
        h = float(params.get("height", rows * cell_size))
        return w, h

    def generate(self, rows, cols, cell_size, params, rng):
        width, height = self.dimensions(rows, cols, cell_size, params)
        d = float(params.get("min_distance", 0.7 * cell_size))
        target = int(params.get("target_count", rows * cols))
        attempts = int(params.get("max_attempts", POISSON_MAX_ATTEMPTS))
        points = poisson_disk_sample(width, height, d, target, rng, max_attempts=attempts)

        cells: List[Cell] = []
        for k, (px, py) in enumerate(points):
            size = cell_size * (0.7 + rng.next() * 0.6)
            x, y, w, h = _clamp_box(px, py, size, size, width, height)
            sides = 4 + int(rng.next() * 4)
            verts = []
            for v in range(sides):
                theta = 2.0 * math.pi * v / sides + (rng.next() - 0.5) * (math.pi / sides)
                rad = 0.6 + rng.next() * 0.4
                vx = x + w / 2.0 + math.cos(theta) * rad * w / 2.0
                vy = y + h / 2.0 + math.sin(theta) * rad * h / 2.0
                verts.append((min(max(vx, x), x + w), min(max(vy, y), y + h)))
            cells.append(Cell(
                x=x, y=y, width=w, height=h,
                row=int(py // cell_size), col=int(px // cell_size), index=k,
                kind=self.name, vertices=tuple(verts),
            ))

        links: Dict[int, set] = {}
        reach2 = (2.0 * d) ** 2
        for i, (ax, ay) in enumerate(points):
            for j in range(i + 1, len(points)):
                bx, by = points[j]
                if (ax - bx) ** 2 + (ay - by) ** 2 <= reach2:
                    links.setdefault(i, set()).add(j)
                    links.setdefault(j, set()).add(i)
        return _link(cells, links)


TOPOLOGIES.register("rectangular", RectangularGrid)
TOPOLOGIES.register("hexagonal", HexagonalGrid)
TOPOLOGIES.register("triangular", TriangularGrid)
TOPOLOGIES.register("voronoi", VoronoiGrid)
TOPOLOGIES.register("radial", RadialGrid)
TOPOLOGIES.register("irregular", IrregularGrid)
