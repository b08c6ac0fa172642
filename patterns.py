"""
patterns.py - cell pattern primitives (register themselves)

A pattern paints the foreground of one cell box onto a Surface. The cell's
background tile is painted by the renderer; patterns use the background
colour only for inner cut-outs. Every primitive sizes itself from
min(width, height) and centres inside the box, so non-square cells work.

Geometric patterns take at most one variant draw from the rng. The organic
ones (bezier_curves, fractal_tree, ...) consume the rng in a fixed order so
a given draw seed always produces the same picture.
"""
from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple

from palettes import ColorPair
from seeding import SeededRandom
from surfaces import Surface, arc_points

log = logging.getLogger("artgrid.patterns")

Point = Tuple[float, float]


class PatternKind(str, Enum):
    # artistic grid
    CIRCLE = "circle"
    SQUARE = "square"
    OPPOSITE_CIRCLES = "opposite_circles"
    CROSS = "cross"
    HALF_SQUARE = "half_square"
    DIAGONAL_SQUARE = "diagonal_square"
    QUARTER_CIRCLE = "quarter_circle"
    DOTS = "dots"
    LETTER_BLOCK = "letter_block"
    # shape grid
    HEXAGON = "hexagon"
    TRIANGLE = "triangle"
    STAR = "star"
    DIAMOND = "diamond"
    SPIRAL = "spiral"
    WAVE = "wave"
    ORGANIC_BLOB = "organic_blob"
    CELLULAR = "cellular"
    RADIAL_GRADIENT = "radial_gradient"
    LINEAR_GRADIENT = "linear_gradient"
    # circuit grid
    CHECKERBOARD = "checkerboard"
    HORIZONTAL_BARS = "horizontal_bars"
    FIVE_CIRCLES = "five_circles"
    CONCENTRIC_CIRCLES = "concentric_circles"
    TRIANGLE_CORNER = "triangle_corner"
    TRIANGLE_UP = "triangle_up"
    VERTICAL_LINES = "vertical_lines"
    CIRCLE_GRID = "circle_grid"
    DIAGONAL_SLASH = "diagonal_slash"
    HORIZONTAL_RECTS = "horizontal_rects"
    CORNER_SQUARES = "corner_squares"
    QUARTER_CIRCLES = "quarter_circles"
    HALF_CIRCLES = "half_circles"
    QUARTER_CORNER = "quarter_corner"
    DOTS_WITH_CIRCLE = "dots_with_circle"
    OVERLAPPING_CIRCLES = "overlapping_circles"
    SQUARE_IN_SQUARE = "square_in_square"
    CIRCLE_WITH_LINES = "circle_with_lines"
    OCTAGON_HOLE = "octagon_hole"
    CENTER_TRIANGLES = "center_triangles"
    CORNER_TRIANGLES = "corner_triangles"
    OPPOSITE_QUARTERS = "opposite_quarters"
    NESTED_SQUARES = "nested_squares"
    # organic
    BEZIER_CURVES = "bezier_curves"
    FRACTAL_TREE = "fractal_tree"
    SPIRAL_PATTERN = "spiral_pattern"
    CIRCUIT_TRACE = "circuit_trace"
    HEX_PATTERN = "hex_pattern"
    VORONOI_CELL = "voronoi_cell"
    PARAMETRIC_WAVE = "parametric_wave"
    NOISE_FIELD = "noise_field"
    MANDALA = "mandala"


class Box(NamedTuple):
    x: float
    y: float
    w: float
    h: float

    @property
    def cx(self) -> float:
        return self.x + self.w / 2.0

    @property
    def cy(self) -> float:
        return self.y + self.h / 2.0

    @property
    def s(self) -> float:
        return min(self.w, self.h)

    def square(self) -> "Box":
        """Largest centred square inside the box."""
        s = self.s
        return Box(self.cx - s / 2.0, self.cy - s / 2.0, s, s)


# =============== Registry ===============
class Pattern:
    kind: PatternKind
    stochastic = False

    def draw(self, surface: Surface, box: Box, colors: ColorPair, rng: SeededRandom) -> None:  # pragma: no cover
        raise NotImplementedError


class PatternRegistry:
    def __init__(self) -> None:
        self._by_kind: Dict[PatternKind, Pattern] = {}

    def register(self, cls: type[Pattern]) -> type[Pattern]:
        self._by_kind[cls.kind] = cls()
        return cls

    def names(self) -> list[str]:
        return sorted(k.value for k in self._by_kind)

    def kinds(self) -> list[PatternKind]:
        return list(self._by_kind)

    def lookup(self, key: str) -> Optional[Pattern]:
        try:
            return self._by_kind.get(PatternKind(str(key).strip().lower()))
        except ValueError:
            return None

    def create(self, key: str) -> Pattern:
        pattern = self.lookup(key)
        if pattern is None:
            raise KeyError(f"Unknown pattern '{key}'. Available: {', '.join(self.names()) or '(none)'}")
        return pattern


PATTERNS = PatternRegistry()
register = PATTERNS.register


def draw_fallback(surface: Surface, box: Box, colors: ColorPair) -> None:
    s = box.s / 2.0
    surface.rect(box.cx - s / 2.0, box.cy - s / 2.0, s, s, fill=colors.foreground)


def draw_pattern(surface: Surface, key: str, box: Box, colors: ColorPair, rng: SeededRandom) -> bool:
    """Draw `key` into the box; unknown keys get the fallback square. Returns False on fallback."""
    pattern = PATTERNS.lookup(key)
    if pattern is None:
        log.debug("No pattern '%s', drawing fallback", key)
        draw_fallback(surface, box, colors)
        return False
    pattern.draw(surface, box, colors, rng)
    return True


# =============== helpers ===============
def _stroke(box: Box, k: float = 0.04) -> float:
    return max(1.0, box.s * k)


def _pie(cx: float, cy: float, r: float, a0: float, a1: float) -> List[Point]:
    return [(cx, cy)] + arc_points(cx, cy, r, r, a0, a1)


def _regular(cx: float, cy: float, r: float, n: int, phase_deg: float = -90.0) -> List[Point]:
    return [(cx + r * math.cos(math.radians(phase_deg + 360.0 * k / n)),
             cy + r * math.sin(math.radians(phase_deg + 360.0 * k / n))) for k in range(n)]


def _cubic(p0: Point, p1: Point, p2: Point, p3: Point, n: int = 24) -> List[Point]:
    out = []
    for i in range(n + 1):
        t = i / n
        u = 1.0 - t
        out.append((u ** 3 * p0[0] + 3 * u * u * t * p1[0] + 3 * u * t * t * p2[0] + t ** 3 * p3[0],
                    u ** 3 * p0[1] + 3 * u * u * t * p1[1] + 3 * u * t * t * p2[1] + t ** 3 * p3[1]))
    return out


def _corners(b: Box) -> List[Point]:
    return [(b.x, b.y), (b.x + b.w, b.y), (b.x + b.w, b.y + b.h), (b.x, b.y + b.h)]


# =============== artistic grid ===============
@register
class CirclePattern(Pattern):
    kind = PatternKind.CIRCLE

    def draw(self, surface, box, colors, rng):
        surface.circle(box.cx, box.cy, box.s / 2.0, fill=colors.foreground)


@register
class SquarePattern(Pattern):
    kind = PatternKind.SQUARE

    def draw(self, surface, box, colors, rng):
        q = box.square()
        pad = q.s * 0.1
        surface.rect(q.x + pad, q.y + pad, q.w - 2 * pad, q.h - 2 * pad, fill=colors.foreground)


@register
class OppositeCirclesPattern(Pattern):
    """Quarter discs in two opposite corners; the diagonal is a variant draw."""
    kind = PatternKind.OPPOSITE_CIRCLES

    def draw(self, surface, box, colors, rng):
        q = box.square()
        r = q.s / 2.0
        if rng.next() < 0.5:
            surface.polygon(_pie(q.x, q.y, r, 0, 90), fill=colors.foreground)
            surface.polygon(_pie(q.x + q.w, q.y + q.h, r, 180, 270), fill=colors.foreground)
        else:
            surface.polygon(_pie(q.x + q.w, q.y, r, 90, 180), fill=colors.foreground)
            surface.polygon(_pie(q.x, q.y + q.h, r, 270, 360), fill=colors.foreground)


@register
class CrossPattern(Pattern):
    kind = PatternKind.CROSS

    def draw(self, surface, box, colors, rng):
        q = box.square()
        t = q.s / 3.0
        if rng.next() < 0.5:
            surface.rect(q.x, q.cy - t / 2.0, q.w, t, fill=colors.foreground)
            surface.rect(q.cx - t / 2.0, q.y, t, q.h, fill=colors.foreground)
        else:
            with surface.transformed(rotate=45.0, origin=(q.cx, q.cy)):
                k = q.s * 0.7
                surface.rect(q.cx - k, q.cy - t / 2.0, 2 * k, t, fill=colors.foreground)
                surface.rect(q.cx - t / 2.0, q.cy - k, t, 2 * k, fill=colors.foreground)


@register
class HalfSquarePattern(Pattern):
    kind = PatternKind.HALF_SQUARE

    def draw(self, surface, box, colors, rng):
        side = int(rng.next() * 4)
        x, y, w, h = box
        if side == 0:
            surface.rect(x, y, w, h / 2.0, fill=colors.foreground)
        elif side == 1:
            surface.rect(x + w / 2.0, y, w / 2.0, h, fill=colors.foreground)
        elif side == 2:
            surface.rect(x, y + h / 2.0, w, h / 2.0, fill=colors.foreground)
        else:
            surface.rect(x, y, w / 2.0, h, fill=colors.foreground)


@register
class DiagonalSquarePattern(Pattern):
    kind = PatternKind.DIAGONAL_SQUARE

    def draw(self, surface, box, colors, rng):
        c = _corners(box)
        k = int(rng.next() * 4)
        surface.polygon([c[k], c[(k + 1) % 4], c[(k + 2) % 4]], fill=colors.foreground)


@register
class QuarterCirclePattern(Pattern):
    kind = PatternKind.QUARTER_CIRCLE

    def draw(self, surface, box, colors, rng):
        q = box.square()
        k = int(rng.next() * 4)
        cx, cy = _corners(q)[k]
        start = (0, 90, 180, 270)[k]
        surface.polygon(_pie(cx, cy, q.s, start, start + 90), fill=colors.foreground)


@register
class DotsPattern(Pattern):
    kind = PatternKind.DOTS

    def draw(self, surface, box, colors, rng):
        n = 2 + int(rng.next() * 3)
        q = box.square()
        step = q.s / n
        r = step * 0.3
        for i in range(n):
            for j in range(n):
                surface.circle(q.x + step * (i + 0.5), q.y + step * (j + 0.5), r, fill=colors.foreground)


@register
class LetterBlockPattern(Pattern):
    kind = PatternKind.LETTER_BLOCK
    letters = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

    def draw(self, surface, box, colors, rng):
        letter = self.letters[int(rng.next() * len(self.letters))]
        surface.text(box.cx, box.cy, letter, box.s * 0.8, colors.foreground)


# =============== shape grid ===============
@register
class HexagonPattern(Pattern):
    kind = PatternKind.HEXAGON

    def draw(self, surface, box, colors, rng):
        surface.polygon(_regular(box.cx, box.cy, box.s * 0.45, 6), fill=colors.foreground)


@register
class TrianglePattern(Pattern):
    kind = PatternKind.TRIANGLE

    def draw(self, surface, box, colors, rng):
        r = box.s * 0.45
        phase = -90.0 if rng.next() < 0.5 else 90.0
        surface.polygon(_regular(box.cx, box.cy, r, 3, phase), fill=colors.foreground)


@register
class StarPattern(Pattern):
    kind = PatternKind.STAR

    def draw(self, surface, box, colors, rng):
        points = 5 + int(rng.next() * 4)
        outer = box.s * 0.45
        inner = outer * 0.45
        pts = []
        for k in range(points * 2):
            r = outer if k % 2 == 0 else inner
            a = math.radians(-90.0 + 180.0 * k / points)
            pts.append((box.cx + r * math.cos(a), box.cy + r * math.sin(a)))
        surface.polygon(pts, fill=colors.foreground)


@register
class DiamondPattern(Pattern):
    kind = PatternKind.DIAMOND

    def draw(self, surface, box, colors, rng):
        hw, hh = box.w * 0.45, box.h * 0.45
        surface.polygon([(box.cx, box.cy - hh), (box.cx + hw, box.cy),
                         (box.cx, box.cy + hh), (box.cx - hw, box.cy)], fill=colors.foreground)


@register
class SpiralPattern(Pattern):
    kind = PatternKind.SPIRAL

    def draw(self, surface, box, colors, rng):
        turns = 2.0 + int(rng.next() * 3)
        r_max = box.s * 0.45
        n = int(turns * 36)
        pts = []
        for i in range(n + 1):
            t = i / n
            a = t * turns * 2.0 * math.pi
            pts.append((box.cx + r_max * t * math.cos(a), box.cy + r_max * t * math.sin(a)))
        surface.polyline(pts, colors.foreground, _stroke(box, 0.05))


@register
class WavePattern(Pattern):
    kind = PatternKind.WAVE

    def draw(self, surface, box, colors, rng):
        waves = 3
        amp = box.h / (waves * 4.0)
        freq = 1.0 + int(rng.next() * 3)
        for k in range(waves):
            base = box.y + box.h * (k + 0.5) / waves
            pts = [(box.x + box.w * i / 40.0,
                    base + amp * math.sin(2.0 * math.pi * freq * i / 40.0)) for i in range(41)]
            surface.polyline(pts, colors.foreground, _stroke(box, 0.05))


@register
class OrganicBlobPattern(Pattern):
    kind = PatternKind.ORGANIC_BLOB
    stochastic = True

    def draw(self, surface, box, colors, rng):
        n = 8
        base = box.s * 0.35
        radii = [base * (0.7 + rng.next() * 0.6) for _ in range(n)]
        pts = []
        steps = 6
        for k in range(n):
            r0, r1 = radii[k], radii[(k + 1) % n]
            for j in range(steps):
                t = j / steps
                ease = (1 - math.cos(math.pi * t)) / 2.0
                r = r0 + (r1 - r0) * ease
                a = 2.0 * math.pi * (k + t) / n
                pts.append((box.cx + r * math.cos(a), box.cy + r * math.sin(a)))
        surface.polygon(pts, fill=colors.foreground)


@register
class CellularPattern(Pattern):
    kind = PatternKind.CELLULAR
    stochastic = True

    def draw(self, surface, box, colors, rng):
        count = 5 + int(rng.next() * 6)
        for _ in range(count):
            r = box.s * (0.06 + rng.next() * 0.12)
            x = box.x + r + rng.next() * max(0.0, box.w - 2 * r)
            y = box.y + r + rng.next() * max(0.0, box.h - 2 * r)
            surface.circle(x, y, r, fill=colors.foreground, opacity=0.85)
            surface.circle(x, y, r * 0.35, fill=colors.background)


@register
class RadialGradientPattern(Pattern):
    kind = PatternKind.RADIAL_GRADIENT

    def draw(self, surface, box, colors, rng):
        surface.radial_gradient_circle(box.cx, box.cy, box.s / 2.0,
                                       [(0.0, colors.foreground), (1.0, colors.background)])


@register
class LinearGradientPattern(Pattern):
    kind = PatternKind.LINEAR_GRADIENT

    def draw(self, surface, box, colors, rng):
        surface.linear_gradient_rect(box.x, box.y, box.w, box.h,
                                     [(0.0, colors.foreground), (1.0, colors.background)],
                                     vertical=rng.next() < 0.5)


# =============== circuit grid ===============
@register
class CheckerboardPattern(Pattern):
    kind = PatternKind.CHECKERBOARD

    def draw(self, surface, box, colors, rng):
        n = 4
        cw, ch = box.w / n, box.h / n
        for i in range(n):
            for j in range(n):
                if (i + j) % 2 == 0:
                    surface.rect(box.x + i * cw, box.y + j * ch, cw, ch, fill=colors.foreground)


@register
class HorizontalBarsPattern(Pattern):
    kind = PatternKind.HORIZONTAL_BARS

    def draw(self, surface, box, colors, rng):
        n = 3 + int(rng.next() * 3)
        bh = box.h / (2 * n)
        for k in range(n):
            surface.rect(box.x, box.y + (2 * k + 0.5) * bh, box.w, bh, fill=colors.foreground)


@register
class FiveCirclesPattern(Pattern):
    kind = PatternKind.FIVE_CIRCLES

    def draw(self, surface, box, colors, rng):
        q = box.square()
        r = q.s * 0.15
        for fx, fy in ((0.25, 0.25), (0.75, 0.25), (0.5, 0.5), (0.25, 0.75), (0.75, 0.75)):
            surface.circle(q.x + q.w * fx, q.y + q.h * fy, r, fill=colors.foreground)


@register
class ConcentricCirclesPattern(Pattern):
    kind = PatternKind.CONCENTRIC_CIRCLES

    def draw(self, surface, box, colors, rng):
        rings = 4
        for k in range(rings):
            r = box.s / 2.0 * (1.0 - k / rings)
            surface.circle(box.cx, box.cy, r, fill=colors.foreground if k % 2 == 0 else colors.background)


@register
class TriangleCornerPattern(Pattern):
    kind = PatternKind.TRIANGLE_CORNER

    def draw(self, surface, box, colors, rng):
        c = _corners(box)
        k = int(rng.next() * 4)
        surface.polygon([c[k], c[(k + 1) % 4], c[(k + 3) % 4]], fill=colors.foreground)


@register
class TriangleUpPattern(Pattern):
    kind = PatternKind.TRIANGLE_UP

    def draw(self, surface, box, colors, rng):
        surface.polygon([(box.cx, box.y), (box.x + box.w, box.y + box.h), (box.x, box.y + box.h)],
                        fill=colors.foreground)


@register
class VerticalLinesPattern(Pattern):
    kind = PatternKind.VERTICAL_LINES

    def draw(self, surface, box, colors, rng):
        n = 4 + int(rng.next() * 4)
        sw = box.w / (n * 3.0)
        for k in range(n):
            x = box.x + box.w * (k + 0.5) / n
            surface.line(x, box.y, x, box.y + box.h, colors.foreground, sw)


@register
class CircleGridPattern(Pattern):
    kind = PatternKind.CIRCLE_GRID

    def draw(self, surface, box, colors, rng):
        q = box.square()
        r = q.s / 4.0
        for fx in (0.25, 0.75):
            for fy in (0.25, 0.75):
                surface.circle(q.x + q.w * fx, q.y + q.h * fy, r * 0.85, fill=colors.foreground)


@register
class DiagonalSlashPattern(Pattern):
    kind = PatternKind.DIAGONAL_SLASH

    def draw(self, surface, box, colors, rng):
        x, y, w, h = box
        t = 0.25
        if rng.next() < 0.5:
            pts = [(x, y + h), (x, y + h * (1 - t)), (x + w * (1 - t), y), (x + w, y),
                   (x + w, y + h * t), (x + w * t, y + h)]
        else:
            pts = [(x, y), (x + w * t, y), (x + w, y + h * (1 - t)), (x + w, y + h),
                   (x + w * (1 - t), y + h), (x, y + h * t)]
        surface.polygon(pts, fill=colors.foreground)


@register
class HorizontalRectsPattern(Pattern):
    kind = PatternKind.HORIZONTAL_RECTS

    def draw(self, surface, box, colors, rng):
        n = 3
        gap = box.h * 0.08
        rh = (box.h - gap * (n + 1)) / n
        for k in range(n):
            frac = (0.5, 0.8, 0.65)[k]
            surface.rect(box.x + gap, box.y + gap + k * (rh + gap), (box.w - 2 * gap) * frac, rh,
                         fill=colors.foreground)


@register
class CornerSquaresPattern(Pattern):
    kind = PatternKind.CORNER_SQUARES

    def draw(self, surface, box, colors, rng):
        k = box.s * 0.3
        for x, y in ((box.x, box.y), (box.x + box.w - k, box.y),
                     (box.x, box.y + box.h - k), (box.x + box.w - k, box.y + box.h - k)):
            surface.rect(x, y, k, k, fill=colors.foreground)


@register
class QuarterCirclesPattern(Pattern):
    kind = PatternKind.QUARTER_CIRCLES

    def draw(self, surface, box, colors, rng):
        q = box.square()
        r = q.s / 2.0
        for (cx, cy), start in zip(_corners(q), (0, 90, 180, 270)):
            surface.polygon(_pie(cx, cy, r, start, start + 90), fill=colors.foreground)


@register
class HalfCirclesPattern(Pattern):
    kind = PatternKind.HALF_CIRCLES

    def draw(self, surface, box, colors, rng):
        q = box.square()
        r = q.s / 2.0
        surface.polygon(_pie(q.cx, q.y, r, 0, 180), fill=colors.foreground)
        surface.polygon(_pie(q.cx, q.y + q.h, r, 180, 360), fill=colors.foreground)


@register
class QuarterCornerPattern(Pattern):
    """Quarter ring hugging one corner."""
    kind = PatternKind.QUARTER_CORNER

    def draw(self, surface, box, colors, rng):
        q = box.square()
        k = int(rng.next() * 4)
        cx, cy = _corners(q)[k]
        start = (0, 90, 180, 270)[k]
        surface.polygon(_pie(cx, cy, q.s * 0.9, start, start + 90), fill=colors.foreground)
        surface.polygon(_pie(cx, cy, q.s * 0.5, start, start + 90), fill=colors.background)


@register
class DotsWithCirclePattern(Pattern):
    kind = PatternKind.DOTS_WITH_CIRCLE

    def draw(self, surface, box, colors, rng):
        q = box.square()
        surface.circle(q.cx, q.cy, q.s * 0.25, fill=colors.foreground)
        for fx, fy in ((0.15, 0.15), (0.85, 0.15), (0.15, 0.85), (0.85, 0.85)):
            surface.circle(q.x + q.w * fx, q.y + q.h * fy, q.s * 0.08, fill=colors.foreground)


@register
class OverlappingCirclesPattern(Pattern):
    kind = PatternKind.OVERLAPPING_CIRCLES

    def draw(self, surface, box, colors, rng):
        r = box.s * 0.3
        off = box.s * 0.15
        if rng.next() < 0.5:
            a, b = (box.cx - off, box.cy), (box.cx + off, box.cy)
        else:
            a, b = (box.cx, box.cy - off), (box.cx, box.cy + off)
        surface.circle(a[0], a[1], r, fill=colors.foreground, opacity=0.7)
        surface.circle(b[0], b[1], r, fill=colors.foreground, opacity=0.7)


@register
class SquareInSquarePattern(Pattern):
    kind = PatternKind.SQUARE_IN_SQUARE

    def draw(self, surface, box, colors, rng):
        q = box.square()
        o, i = q.s * 0.8, q.s * 0.4
        surface.rect(q.cx - o / 2, q.cy - o / 2, o, o, fill=colors.foreground)
        surface.rect(q.cx - i / 2, q.cy - i / 2, i, i, fill=colors.background)


@register
class CircleWithLinesPattern(Pattern):
    kind = PatternKind.CIRCLE_WITH_LINES

    def draw(self, surface, box, colors, rng):
        surface.circle(box.cx, box.cy, box.s * 0.3, fill=colors.foreground)
        sw = _stroke(box, 0.03)
        for k in range(1, 4):
            y = box.y + box.h * k / 4.0
            surface.line(box.x, y, box.x + box.w, y, colors.foreground, sw)


@register
class OctagonHolePattern(Pattern):
    kind = PatternKind.OCTAGON_HOLE

    def draw(self, surface, box, colors, rng):
        hole = _regular(box.cx, box.cy, box.s * 0.35, 8, 22.5)
        surface.polygon_with_holes(_corners(box), [hole], fill=colors.foreground)


@register
class CenterTrianglesPattern(Pattern):
    kind = PatternKind.CENTER_TRIANGLES

    def draw(self, surface, box, colors, rng):
        x, y, w, h = box
        c = (box.cx, box.cy)
        if rng.next() < 0.5:
            surface.polygon([(x, y), (x + w, y), c], fill=colors.foreground)
            surface.polygon([(x, y + h), (x + w, y + h), c], fill=colors.foreground)
        else:
            surface.polygon([(x, y), (x, y + h), c], fill=colors.foreground)
            surface.polygon([(x + w, y), (x + w, y + h), c], fill=colors.foreground)


@register
class CornerTrianglesPattern(Pattern):
    kind = PatternKind.CORNER_TRIANGLES

    def draw(self, surface, box, colors, rng):
        x, y, w, h = box
        kx, ky = w * 0.35, h * 0.35
        for px, py, sx, sy in ((x, y, 1, 1), (x + w, y, -1, 1), (x, y + h, 1, -1), (x + w, y + h, -1, -1)):
            surface.polygon([(px, py), (px + sx * kx, py), (px, py + sy * ky)], fill=colors.foreground)


@register
class OppositeQuartersPattern(Pattern):
    kind = PatternKind.OPPOSITE_QUARTERS

    def draw(self, surface, box, colors, rng):
        q = box.square()
        r = q.s * 0.6
        surface.polygon(_pie(q.x, q.y, r, 0, 90), fill=colors.foreground)
        surface.polygon(_pie(q.x + q.w, q.y + q.h, r, 180, 270), fill=colors.foreground)
        surface.polygon(_pie(q.x + q.w, q.y, r * 0.5, 90, 180), fill=colors.foreground)
        surface.polygon(_pie(q.x, q.y + q.h, r * 0.5, 270, 360), fill=colors.foreground)


@register
class NestedSquaresPattern(Pattern):
    kind = PatternKind.NESTED_SQUARES

    def draw(self, surface, box, colors, rng):
        q = box.square()
        for k, frac in enumerate((0.9, 0.65, 0.4, 0.15)):
            side = q.s * frac
            surface.rect(q.cx - side / 2, q.cy - side / 2, side, side,
                         fill=colors.foreground if k % 2 == 0 else colors.background)


# =============== organic ===============
@register
class BezierCurvesPattern(Pattern):
    kind = PatternKind.BEZIER_CURVES
    stochastic = True

    def draw(self, surface, box, colors, rng):
        count = 2 + int(rng.next() * 3)
        x, y, w, h = box
        for _ in range(count):
            p0 = (x, y + rng.next() * h)
            p1 = (x + rng.next() * w, y + rng.next() * h)
            p2 = (x + rng.next() * w, y + rng.next() * h)
            p3 = (x + w, y + rng.next() * h)
            surface.polyline(_cubic(p0, p1, p2, p3), colors.foreground, _stroke(box, 0.03 + rng.next() * 0.04))


@register
class FractalTreePattern(Pattern):
    kind = PatternKind.FRACTAL_TREE
    stochastic = True
    depth = 4

    def draw(self, surface, box, colors, rng):
        base = (box.cx, box.y + box.h * 0.95)
        length = box.h * 0.3
        self._branch(surface, base, -90.0, length, self.depth, box, colors, rng)

    def _branch(self, surface, start, angle, length, depth, box, colors, rng):
        if depth == 0 or length < 1.0:
            return
        a = math.radians(angle)
        end = (start[0] + length * math.cos(a), start[1] + length * math.sin(a))
        end = (min(max(end[0], box.x), box.x + box.w), min(max(end[1], box.y), box.y + box.h))
        surface.line(start[0], start[1], end[0], end[1], colors.foreground, max(1.0, depth * box.s * 0.012))
        spread = 20.0 + rng.next() * 20.0
        shrink = 0.65 + rng.next() * 0.1
        self._branch(surface, end, angle - spread, length * shrink, depth - 1, box, colors, rng)
        self._branch(surface, end, angle + spread, length * shrink, depth - 1, box, colors, rng)


@register
class SpiralDotsPattern(Pattern):
    """Golden-angle dot spiral."""
    kind = PatternKind.SPIRAL_PATTERN
    stochastic = True

    def draw(self, surface, box, colors, rng):
        count = 20 + int(rng.next() * 20)
        phase = rng.next() * 360.0
        r_max = box.s * 0.45
        golden = 137.50776
        for i in range(count):
            t = (i + 1) / count
            r = r_max * math.sqrt(t)
            a = math.radians(phase + i * golden)
            dot = box.s * 0.02 + box.s * 0.03 * t
            surface.circle(box.cx + r * math.cos(a), box.cy + r * math.sin(a), dot, fill=colors.foreground)


@register
class CircuitTracePattern(Pattern):
    kind = PatternKind.CIRCUIT_TRACE
    stochastic = True

    def draw(self, surface, box, colors, rng):
        n = 4
        step_x, step_y = box.w / n, box.h / n
        traces = 2 + int(rng.next() * 3)
        sw = _stroke(box, 0.035)
        for _ in range(traces):
            i, j = int(rng.next() * n), int(rng.next() * n)
            pts = [(box.x + (i + 0.5) * step_x, box.y + (j + 0.5) * step_y)]
            for _seg in range(3):
                if rng.next() < 0.5:
                    i = min(n - 1, max(0, i + (1 if rng.next() < 0.5 else -1)))
                else:
                    j = min(n - 1, max(0, j + (1 if rng.next() < 0.5 else -1)))
                pts.append((box.x + (i + 0.5) * step_x, box.y + (j + 0.5) * step_y))
            surface.polyline(pts, colors.foreground, sw)
            surface.circle(pts[0][0], pts[0][1], sw * 1.6, fill=colors.foreground)
            surface.circle(pts[-1][0], pts[-1][1], sw * 1.6, fill=colors.background,
                           stroke=colors.foreground, stroke_width=sw * 0.6)


@register
class HexClusterPattern(Pattern):
    kind = PatternKind.HEX_PATTERN
    stochastic = True

    def draw(self, surface, box, colors, rng):
        r = box.s / 8.0
        hw = math.sqrt(3.0) * r
        for row in range(-1, 2):
            for col in range(-1, 2):
                cx = box.cx + col * hw + (hw / 2.0 if row % 2 else 0.0) - (hw / 4.0 if row else 0.0)
                cy = box.cy + row * 1.5 * r
                if rng.next() < 0.7:
                    surface.polygon(_regular(cx, cy, r * 0.9, 6, -30.0), fill=colors.foreground)


@register
class VoronoiCellPattern(Pattern):
    """Sketch of a few seed points joined to their nearest neighbour."""
    kind = PatternKind.VORONOI_CELL
    stochastic = True

    def draw(self, surface, box, colors, rng):
        count = 5 + int(rng.next() * 4)
        pts = [(box.x + box.w * (0.1 + rng.next() * 0.8), box.y + box.h * (0.1 + rng.next() * 0.8))
               for _ in range(count)]
        sw = _stroke(box, 0.02)
        for i, (ax, ay) in enumerate(pts):
            others = [p for j, p in enumerate(pts) if j != i]
            bx, by = min(others, key=lambda p: (p[0] - ax) ** 2 + (p[1] - ay) ** 2)
            surface.line(ax, ay, bx, by, colors.foreground, sw)
        for ax, ay in pts:
            surface.circle(ax, ay, box.s * 0.04, fill=colors.foreground)


@register
class ParametricWavePattern(Pattern):
    kind = PatternKind.PARAMETRIC_WAVE
    stochastic = True

    def draw(self, surface, box, colors, rng):
        fa = 1 + int(rng.next() * 4)
        fb = 1 + int(rng.next() * 4)
        phase = rng.next() * math.pi
        ax, ay = box.w * 0.45, box.h * 0.45
        pts = [(box.cx + ax * math.sin(fa * t + phase), box.cy + ay * math.sin(fb * t))
               for t in (2.0 * math.pi * i / 120 for i in range(121))]
        surface.polyline(pts, colors.foreground, _stroke(box, 0.025))


@register
class NoiseFieldPattern(Pattern):
    """Short strokes following a smooth random angle field."""
    kind = PatternKind.NOISE_FIELD
    stochastic = True

    def draw(self, surface, box, colors, rng):
        n = 5
        corners = [rng.next() * 2.0 * math.pi for _ in range(4)]
        sw = _stroke(box, 0.025)
        length = box.s / n * 0.4
        for i in range(n):
            for j in range(n):
                u, v = (i + 0.5) / n, (j + 0.5) / n
                a = (corners[0] * (1 - u) * (1 - v) + corners[1] * u * (1 - v)
                     + corners[2] * (1 - u) * v + corners[3] * u * v)
                cx = box.x + box.w * u
                cy = box.y + box.h * v
                dx, dy = math.cos(a) * length, math.sin(a) * length
                surface.line(cx - dx, cy - dy, cx + dx, cy + dy, colors.foreground, sw)


@register
class MandalaPattern(Pattern):
    kind = PatternKind.MANDALA
    stochastic = True

    def draw(self, surface, box, colors, rng):
        rings = 2 + int(rng.next() * 2)
        r_max = box.s * 0.45
        for ring in range(rings, 0, -1):
            petals = 6 + int(rng.next() * 7)
            r = r_max * ring / rings
            pr = r / 3.0
            fill = colors.foreground if ring % 2 else colors.background
            for k in range(petals):
                a = 2.0 * math.pi * k / petals
                px = box.cx + (r - pr) * math.cos(a)
                py = box.cy + (r - pr) * math.sin(a)
                with surface.transformed(rotate=math.degrees(a), origin=(px, py)):
                    surface.ellipse(px, py, pr, pr * 0.5, fill=fill)
        surface.circle(box.cx, box.cy, r_max / (rings * 3.0), fill=colors.foreground)
