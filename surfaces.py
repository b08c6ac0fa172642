"""
surfaces.py - render targets

Patterns, backgrounds and effects draw through the Surface interface only:
filled/stroked shapes, gradients, text and a transform stack. Two backends:

RasterSurface  Pillow ImageDraw onto supersampled RGBA layers, downsampled
               with LANCZOS; exposes an HxWx4 uint8 pixel buffer.
SvgSurface     svgwrite document; every gradient and filter lives in <defs>.

Both keep two layers, "background" and "shapes", so the effects stage can
shade the shapes without touching the background.
"""
from __future__ import annotations

import itertools
import logging
import math
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np
import svgwrite
from PIL import Image, ImageDraw, ImageFont

from palettes import hex_to_rgb

log = logging.getLogger("artgrid.surfaces")

Point = Tuple[float, float]
Stops = Sequence[Tuple[float, str]]
Affine = Tuple[float, float, float, float, float, float]

LAYERS = ("background", "shapes")


def arc_points(cx: float, cy: float, rx: float, ry: float,
               start_deg: float, end_deg: float, steps: Optional[int] = None) -> List[Point]:
    """Points along an elliptical arc, both ends included."""
    span = end_deg - start_deg
    n = steps or max(8, int(abs(span) / 6))
    out = []
    for k in range(n + 1):
        a = math.radians(start_deg + span * k / n)
        out.append((cx + rx * math.cos(a), cy + ry * math.sin(a)))
    return out


def _compose(m: Affine, n: Affine) -> Affine:
    """m ∘ n: apply n first, then m."""
    a, b, c, d, e, f = m
    p, q, r, s, t, u = n
    return (a * p + b * s, a * q + b * t, a * r + b * u + c,
            d * p + e * s, d * q + e * t, d * r + e * u + f)


def _local_affine(translate: Point, rotate: float, scale: float, origin: Point) -> Affine:
    ox, oy = origin
    co, si = math.cos(math.radians(rotate)), math.sin(math.radians(rotate))
    m: Affine = (1.0, 0.0, translate[0], 0.0, 1.0, translate[1])
    m = _compose(m, (1.0, 0.0, ox, 0.0, 1.0, oy))
    m = _compose(m, (co * scale, -si * scale, 0.0, si * scale, co * scale, 0.0))
    return _compose(m, (1.0, 0.0, -ox, 0.0, 1.0, -oy))


class Surface:
    """Drawing interface shared by both backends."""

    kind = "abstract"

    def __init__(self, width: float, height: float) -> None:
        self.width = float(width)
        self.height = float(height)

    # --- structure ---
    @contextmanager
    def layer(self, name: str) -> Iterator["Surface"]:  # pragma: no cover
        raise NotImplementedError
        yield self

    @contextmanager
    def transformed(self, translate: Point = (0.0, 0.0), rotate: float = 0.0,
                    scale: float = 1.0, origin: Point = (0.0, 0.0)) -> Iterator["Surface"]:  # pragma: no cover
        raise NotImplementedError
        yield self

    # --- shapes ---
    def rect(self, x, y, w, h, fill=None, stroke=None, stroke_width=1.0, opacity=1.0, dash=None):  # pragma: no cover
        raise NotImplementedError

    def circle(self, cx, cy, r, fill=None, stroke=None, stroke_width=1.0, opacity=1.0, dash=None):  # pragma: no cover
        raise NotImplementedError

    def ellipse(self, cx, cy, rx, ry, fill=None, stroke=None, stroke_width=1.0, opacity=1.0):  # pragma: no cover
        raise NotImplementedError

    def polygon(self, points, fill=None, stroke=None, stroke_width=1.0, opacity=1.0, dash=None):  # pragma: no cover
        raise NotImplementedError

    def polygon_with_holes(self, outer, holes, fill, opacity=1.0):  # pragma: no cover
        raise NotImplementedError

    def polyline(self, points, stroke, stroke_width=1.0, opacity=1.0):  # pragma: no cover
        raise NotImplementedError

    def line(self, x1, y1, x2, y2, stroke, stroke_width=1.0, opacity=1.0):
        self.polyline([(x1, y1), (x2, y2)], stroke, stroke_width, opacity)

    def text(self, x, y, value, size, fill, opacity=1.0):  # pragma: no cover
        raise NotImplementedError

    # --- gradients ---
    def linear_gradient_rect(self, x, y, w, h, stops: Stops, vertical=True, opacity=1.0):  # pragma: no cover
        raise NotImplementedError

    def radial_gradient_circle(self, cx, cy, r, stops: Stops, opacity=1.0):  # pragma: no cover
        raise NotImplementedError


# =============== Raster ===============
def _rgba(color: str, opacity: float = 1.0) -> Tuple[int, int, int, int]:
    r, g, b = hex_to_rgb(color)
    return r, g, b, int(round(255 * min(1.0, max(0.0, opacity))))


def _dash_runs(points: Sequence[Point], dash: Tuple[float, float], closed: bool) -> List[List[Point]]:
    """Split a polyline into 'on' runs of a dash pattern."""
    on, off = max(0.5, dash[0]), max(0.5, dash[1])
    pts = list(points) + ([points[0]] if closed and points else [])
    runs: List[List[Point]] = []
    cur: List[Point] = []
    drawing = True
    left = on
    for (x0, y0), (x1, y1) in zip(pts, pts[1:]):
        seg = math.hypot(x1 - x0, y1 - y0)
        t = 0.0
        while seg - t > 1e-9:
            step = min(left, seg - t)
            ax, ay = x0 + (x1 - x0) * t / seg, y0 + (y1 - y0) * t / seg
            t += step
            bx, by = x0 + (x1 - x0) * t / seg, y0 + (y1 - y0) * t / seg
            if drawing:
                if not cur:
                    cur.append((ax, ay))
                cur.append((bx, by))
            left -= step
            if left <= 1e-9:
                if drawing and cur:
                    runs.append(cur)
                    cur = []
                drawing = not drawing
                left = on if drawing else off
    if cur:
        runs.append(cur)
    return runs


class RasterSurface(Surface):
    kind = "raster"

    def __init__(self, width: float, height: float, supersample: int = 2) -> None:
        super().__init__(width, height)
        self.supersample = max(1, int(supersample))
        self.size = (max(1, int(round(self.width))), max(1, int(round(self.height))))
        big = (self.size[0] * self.supersample, self.size[1] * self.supersample)
        self._layers = {name: Image.new("RGBA", big, (0, 0, 0, 0)) for name in LAYERS}
        self._target = self._layers["shapes"]
        ss = float(self.supersample)
        self._stack: List[Affine] = [(ss, 0.0, 0.0, 0.0, ss, 0.0)]
        self._final: Optional[Image.Image] = None

    # --- structure ---
    @contextmanager
    def layer(self, name: str):
        prev = self._target
        self._target = self._layers[name]
        try:
            yield self
        finally:
            self._target = prev

    @contextmanager
    def transformed(self, translate=(0.0, 0.0), rotate=0.0, scale=1.0, origin=(0.0, 0.0)):
        self._stack.append(_compose(self._stack[-1], _local_affine(translate, rotate, scale, origin)))
        try:
            yield self
        finally:
            self._stack.pop()

    @property
    def _m(self) -> Affine:
        return self._stack[-1]

    def _scale(self) -> float:
        a, b, _, d, e, _ = self._m
        return math.sqrt(abs(a * e - b * d))

    def _pts(self, points: Sequence[Point]) -> List[Point]:
        a, b, c, d, e, f = self._m
        return [(a * x + b * y + c, d * x + e * y + f) for x, y in points]

    def _width(self, w: float) -> int:
        return max(1, int(round(w * self._scale())))

    # --- painting ---
    def _paint(self, bbox: Tuple[float, float, float, float], opacity: float, fn) -> None:
        """Run fn(draw, ox, oy) directly, or through a cropped scratch layer when translucent."""
        if opacity >= 1.0:
            fn(ImageDraw.Draw(self._target), 0.0, 0.0)
            return
        if opacity <= 0.0:
            return
        W, H = self._target.size
        x0 = max(0, int(math.floor(bbox[0])) - 2)
        y0 = max(0, int(math.floor(bbox[1])) - 2)
        x1 = min(W, int(math.ceil(bbox[2])) + 3)
        y1 = min(H, int(math.ceil(bbox[3])) + 3)
        if x1 <= x0 or y1 <= y0:
            return
        scratch = Image.new("RGBA", (x1 - x0, y1 - y0), (0, 0, 0, 0))
        fn(ImageDraw.Draw(scratch), float(x0), float(y0))
        alpha = np.asarray(scratch, dtype=np.float32)[..., 3] * opacity
        scratch.putalpha(Image.fromarray(np.clip(alpha, 0, 255).astype(np.uint8), "L"))
        self._target.alpha_composite(scratch, dest=(x0, y0))

    @staticmethod
    def _bbox(pts: Sequence[Point], pad: float = 0.0):
        xs = [p[0] for p in pts]
        ys = [p[1] for p in pts]
        return min(xs) - pad, min(ys) - pad, max(xs) + pad, max(ys) + pad

    def _stroke_runs(self, draw, pts, stroke, width, closed, dash, ox, oy):
        color = _rgba(stroke)
        moved = [(x - ox, y - oy) for x, y in pts]
        if dash:
            k = self._scale()
            for run in _dash_runs(moved, (dash[0] * k, dash[1] * k), closed):
                if len(run) >= 2:
                    draw.line(run, fill=color, width=width)
        elif closed:
            draw.line(moved + [moved[0]], fill=color, width=width, joint="curve")
        else:
            draw.line(moved, fill=color, width=width, joint="curve")

    def polygon(self, points, fill=None, stroke=None, stroke_width=1.0, opacity=1.0, dash=None):
        if len(points) < 3:
            return
        pts = self._pts(points)
        width = self._width(stroke_width)

        def fn(draw, ox, oy):
            moved = [(x - ox, y - oy) for x, y in pts]
            if fill:
                draw.polygon(moved, fill=_rgba(fill))
            if stroke:
                self._stroke_runs(draw, pts, stroke, width, True, dash, ox, oy)

        self._paint(self._bbox(pts, width), opacity, fn)

    def rect(self, x, y, w, h, fill=None, stroke=None, stroke_width=1.0, opacity=1.0, dash=None):
        self.polygon([(x, y), (x + w, y), (x + w, y + h), (x, y + h)], fill, stroke, stroke_width, opacity, dash)

    def circle(self, cx, cy, r, fill=None, stroke=None, stroke_width=1.0, opacity=1.0, dash=None):
        if r <= 0:
            return
        if dash and stroke:
            if fill:
                self.circle(cx, cy, r, fill=fill, opacity=opacity)
            self.polygon(arc_points(cx, cy, r, r, 0, 360)[:-1], None, stroke, stroke_width, opacity, dash)
            return
        (px, py), = self._pts([(cx, cy)])
        pr = r * self._scale()
        width = self._width(stroke_width)

        def fn(draw, ox, oy):
            box = [px - pr - ox, py - pr - oy, px + pr - ox, py + pr - oy]
            draw.ellipse(box, fill=_rgba(fill) if fill else None,
                         outline=_rgba(stroke) if stroke else None, width=width if stroke else 0)

        self._paint((px - pr - width, py - pr - width, px + pr + width, py + pr + width), opacity, fn)

    def ellipse(self, cx, cy, rx, ry, fill=None, stroke=None, stroke_width=1.0, opacity=1.0):
        if rx <= 0 or ry <= 0:
            return
        self.polygon(arc_points(cx, cy, rx, ry, 0, 360, steps=72)[:-1], fill, stroke, stroke_width, opacity)

    def polygon_with_holes(self, outer, holes, fill, opacity=1.0):
        outer_pts = self._pts(outer)
        hole_pts = [self._pts(h) for h in holes]
        bbox = self._bbox(outer_pts)
        x0, y0 = int(math.floor(bbox[0])), int(math.floor(bbox[1]))
        w = max(1, int(math.ceil(bbox[2])) - x0 + 1)
        h = max(1, int(math.ceil(bbox[3])) - y0 + 1)
        mask = Image.new("L", (w, h), 0)
        md = ImageDraw.Draw(mask)
        md.polygon([(x - x0, y - y0) for x, y in outer_pts], fill=255)
        for hp in hole_pts:
            md.polygon([(x - x0, y - y0) for x, y in hp], fill=0)
        self._composite_rgba(np.broadcast_to(np.array(_rgba(fill)[:3], np.float32), (h, w, 3)),
                             np.asarray(mask, np.float32) / 255.0 * opacity, x0, y0)

    def polyline(self, points, stroke, stroke_width=1.0, opacity=1.0):
        if len(points) < 2 or not stroke:
            return
        pts = self._pts(points)
        width = self._width(stroke_width)
        self._paint(self._bbox(pts, width), opacity,
                    lambda draw, ox, oy: self._stroke_runs(draw, pts, stroke, width, False, None, ox, oy))

    def text(self, x, y, value, size, fill, opacity=1.0):
        (px, py), = self._pts([(x, y)])
        px_size = max(1, int(round(size * self._scale())))
        font = ImageFont.load_default(size=px_size)

        def fn(draw, ox, oy):
            draw.text((px - ox, py - oy), str(value), fill=_rgba(fill), font=font, anchor="mm")

        self._paint((px - px_size, py - px_size, px + px_size, py + px_size), opacity, fn)

    # --- gradients ---
    def _composite_rgba(self, rgb: np.ndarray, alpha: np.ndarray, x0: int, y0: int) -> None:
        W, H = self._target.size
        h, w = alpha.shape
        cx0, cy0 = max(0, x0), max(0, y0)
        cx1, cy1 = min(W, x0 + w), min(H, y0 + h)
        if cx1 <= cx0 or cy1 <= cy0:
            return
        sl = (slice(cy0 - y0, cy1 - y0), slice(cx0 - x0, cx1 - x0))
        patch = np.dstack([rgb[sl], np.clip(alpha[sl], 0.0, 1.0) * 255.0])
        img = Image.fromarray(np.clip(patch, 0, 255).astype(np.uint8), "RGBA")
        self._target.alpha_composite(img, dest=(cx0, cy0))

    def _gradient(self, outline_local: Sequence[Point], stops: Stops, opacity: float, t_of) -> None:
        """Fill the transformed outline with colours interpolated by t_of(local_x, local_y)."""
        dev = self._pts(outline_local)
        bx0, by0, bx1, by1 = self._bbox(dev)
        x0, y0 = int(math.floor(bx0)), int(math.floor(by0))
        w = max(1, int(math.ceil(bx1)) - x0)
        h = max(1, int(math.ceil(by1)) - y0)
        mask = Image.new("L", (w, h), 0)
        ImageDraw.Draw(mask).polygon([(x - x0, y - y0) for x, y in dev], fill=255)

        a, b, c, d, e, f = self._m
        det = a * e - b * d
        if abs(det) < 1e-12:
            return
        yy, xx = np.mgrid[0:h, 0:w].astype(np.float64)
        xx += x0 + 0.5
        yy += y0 + 0.5
        lx = (e * (xx - c) - b * (yy - f)) / det
        ly = (-d * (xx - c) + a * (yy - f)) / det
        t = np.clip(t_of(lx, ly), 0.0, 1.0)

        offsets = np.array([s[0] for s in stops], dtype=np.float64)
        colors = np.array([hex_to_rgb(s[1]) for s in stops], dtype=np.float64)
        rgb = np.stack([np.interp(t, offsets, colors[:, k]) for k in range(3)], axis=-1)
        alpha = np.asarray(mask, np.float32) / 255.0 * opacity
        self._composite_rgba(rgb, alpha, x0, y0)

    def linear_gradient_rect(self, x, y, w, h, stops, vertical=True, opacity=1.0):
        if w <= 0 or h <= 0:
            return
        outline = [(x, y), (x + w, y), (x + w, y + h), (x, y + h)]
        if vertical:
            self._gradient(outline, stops, opacity, lambda lx, ly: (ly - y) / h)
        else:
            self._gradient(outline, stops, opacity, lambda lx, ly: (lx - x) / w)

    def radial_gradient_circle(self, cx, cy, r, stops, opacity=1.0):
        if r <= 0:
            return
        outline = arc_points(cx, cy, r, r, 0, 360, steps=96)[:-1]
        self._gradient(outline, stops, opacity, lambda lx, ly: np.hypot(lx - cx, ly - cy) / r)

    # --- pixel access ---
    def layer_image(self, name: str) -> Image.Image:
        """One layer at output resolution."""
        img = self._layers[name]
        if self.supersample > 1:
            img = img.resize(self.size, Image.Resampling.LANCZOS)
        return img

    def set_image(self, img: Image.Image) -> None:
        self._final = img.convert("RGBA")

    def to_image(self) -> Image.Image:
        if self._final is None:
            out = self.layer_image("background").copy()
            out.alpha_composite(self.layer_image("shapes"))
            self._final = out
        return self._final

    def pixels(self) -> np.ndarray:
        return np.array(self.to_image(), dtype=np.uint8)

    def set_pixels(self, arr: np.ndarray) -> None:
        if arr.ndim != 3 or arr.shape[2] != 4:
            raise ValueError(f"Expected an HxWx4 buffer, got shape {arr.shape}")
        self._final = Image.fromarray(np.ascontiguousarray(arr, dtype=np.uint8))

    def save(self, path: Path, fmt: str) -> None:
        img = self.to_image()
        if fmt == "JPEG":
            flat = Image.new("RGB", img.size, (255, 255, 255))
            flat.paste(img, mask=img.getchannel("A"))
            img = flat
        img.save(path, format=fmt, optimize=True)


# =============== SVG ===============
def _num(v: float) -> str:
    return f"{v:.3f}".rstrip("0").rstrip(".") if isinstance(v, float) else str(v)


class SvgSurface(Surface):
    kind = "vector"

    def __init__(self, width: float, height: float) -> None:
        super().__init__(width, height)
        self.dwg = svgwrite.Drawing(size=(_num(self.width), _num(self.height)), profile="full", debug=False)
        self.dwg.viewbox(0, 0, self.width, self.height)
        self._ids = itertools.count(1)
        self.canvas = self.dwg.add(self.dwg.g(id="canvas"))
        self.groups = {name: self.canvas.add(self.dwg.g(id=name)) for name in LAYERS}
        self.overlay = self.dwg.add(self.dwg.g(id="overlay"))
        self._stack = [self.groups["shapes"]]

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    @property
    def _parent(self):
        return self._stack[-1]

    @contextmanager
    def layer(self, name: str):
        group = self.overlay if name == "overlay" else self.groups[name]
        self._stack.append(group)
        try:
            yield self
        finally:
            self._stack.pop()

    @contextmanager
    def transformed(self, translate=(0.0, 0.0), rotate=0.0, scale=1.0, origin=(0.0, 0.0)):
        parts = []
        if translate != (0.0, 0.0) and any(translate):
            parts.append(f"translate({_num(float(translate[0]))},{_num(float(translate[1]))})")
        ox, oy = float(origin[0]), float(origin[1])
        if rotate:
            parts.append(f"rotate({_num(float(rotate))},{_num(ox)},{_num(oy)})")
        if scale != 1.0:
            parts.append(f"translate({_num(ox)},{_num(oy)}) scale({_num(float(scale))}) "
                         f"translate({_num(-ox)},{_num(-oy)})")
        group = self._parent.add(self.dwg.g(transform=" ".join(parts))) if parts else self._parent
        self._stack.append(group)
        try:
            yield self
        finally:
            self._stack.pop()

    @staticmethod
    def _style(fill, stroke, stroke_width, opacity, dash=None) -> dict:
        st = {"fill": fill or "none"}
        if stroke:
            st["stroke"] = stroke
            st["stroke_width"] = _num(float(stroke_width))
            if dash:
                st["stroke_dasharray"] = f"{_num(float(dash[0]))},{_num(float(dash[1]))}"
        if opacity < 1.0:
            st["opacity"] = _num(float(max(0.0, opacity)))
        return st

    def rect(self, x, y, w, h, fill=None, stroke=None, stroke_width=1.0, opacity=1.0, dash=None):
        self._parent.add(self.dwg.rect((x, y), (max(0.0, w), max(0.0, h)),
                                       **self._style(fill, stroke, stroke_width, opacity, dash)))

    def circle(self, cx, cy, r, fill=None, stroke=None, stroke_width=1.0, opacity=1.0, dash=None):
        if r > 0:
            self._parent.add(self.dwg.circle((cx, cy), r, **self._style(fill, stroke, stroke_width, opacity, dash)))

    def ellipse(self, cx, cy, rx, ry, fill=None, stroke=None, stroke_width=1.0, opacity=1.0):
        if rx > 0 and ry > 0:
            self._parent.add(self.dwg.ellipse((cx, cy), (rx, ry), **self._style(fill, stroke, stroke_width, opacity)))

    def polygon(self, points, fill=None, stroke=None, stroke_width=1.0, opacity=1.0, dash=None):
        if len(points) >= 3:
            self._parent.add(self.dwg.polygon([(float(x), float(y)) for x, y in points],
                                              **self._style(fill, stroke, stroke_width, opacity, dash)))

    def polygon_with_holes(self, outer, holes, fill, opacity=1.0):
        def ring(pts):
            head, *rest = pts
            return [("M", head)] + [("L", p) for p in rest] + [("Z",)]

        path = self.dwg.path(fill=fill, fill_rule="evenodd", **({"opacity": _num(opacity)} if opacity < 1 else {}))
        for cmd in ring(outer) + [c for h in holes for c in ring(h)]:
            if cmd[0] == "Z":
                path.push("Z")
            else:
                path.push(cmd[0], float(cmd[1][0]), float(cmd[1][1]))
        self._parent.add(path)

    def polyline(self, points, stroke, stroke_width=1.0, opacity=1.0):
        if len(points) >= 2 and stroke:
            st = self._style(None, stroke, stroke_width, opacity)
            st["stroke_linecap"] = "round"
            st["stroke_linejoin"] = "round"
            self._parent.add(self.dwg.polyline([(float(x), float(y)) for x, y in points], **st))

    def text(self, x, y, value, size, fill, opacity=1.0):
        st = {"fill": fill, "font_size": _num(float(size)), "font_family": "Helvetica, Arial, sans-serif",
              "font_weight": "bold", "text_anchor": "middle", "dominant_baseline": "central"}
        if opacity < 1.0:
            st["opacity"] = _num(opacity)
        self._parent.add(self.dwg.text(str(value), insert=(x, y), **st))

    def _add_gradient(self, grad, stops: Stops) -> str:
        for offset, color in stops:
            grad.add_stop_color(offset=_num(float(offset)), color=color)
        self.dwg.defs.add(grad)
        return grad.get_funciri()

    def linear_gradient_rect(self, x, y, w, h, stops, vertical=True, opacity=1.0):
        end = (x, y + h) if vertical else (x + w, y)
        grad = self.dwg.linearGradient(start=(x, y), end=end, id=self.new_id("lg"),
                                       gradientUnits="userSpaceOnUse")
        self.rect(x, y, w, h, fill=self._add_gradient(grad, stops), opacity=opacity)

    def radial_gradient_circle(self, cx, cy, r, stops, opacity=1.0):
        grad = self.dwg.radialGradient(center=(cx, cy), r=r, id=self.new_id("rg"),
                                       gradientUnits="userSpaceOnUse")
        self.circle(cx, cy, r, fill=self._add_gradient(grad, stops), opacity=opacity)

    def add_filter(self, prefix: str, **attrs):
        flt = self.dwg.filter(id=self.new_id(prefix), **attrs)
        self.dwg.defs.add(flt)
        return flt

    def tostring(self) -> str:
        return self.dwg.tostring()

    def save(self, path: Path, fmt: str = "SVG") -> None:
        with open(path, "w", encoding="utf-8") as fh:
            self.dwg.write(fh, pretty=True)
