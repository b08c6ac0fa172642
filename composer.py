"""
composer.py - config → Scene → Surface

compose() is a pure function of its config: it seeds the named streams,
lays out cells, gives every cell a transform, a pattern and a colour pair,
then adds the focal blocks. render() paints a Scene in z-order
(background, cells in generation order, focal blocks) and hands the surface
to the effects pipeline.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from filters import EffectsPipeline
from grids import Cell, adapt_pattern, resolve_geometry
from palettes import (
    FALLBACK_PALETTES,
    ColorAssigner,
    ColorPair,
    Palette,
    create_background_colors,
    normalize_palette,
)
from patterns import PATTERNS, Box, draw_pattern
from seeding import SeededRandom, fresh_seed, streams
from settings import (
    ARTISTIC_PATTERNS,
    BACKGROUNDS,
    BORDER_STYLES,
    DISTORTION_MODES,
    DISTRIBUTIONS,
    NOISE_CHANNELS,
    NOISE_TYPES,
    ROTATION_MODES,
    ArtConfig,
    BorderConfig,
    EffectConfig,
)
from surfaces import RasterSurface, Surface, SvgSurface

log = logging.getLogger("artgrid.composer")

DEFAULT_CELL_SIZE = 100.0
DEFAULT_SPAN = (4, 8)


@dataclass(frozen=True)
class ShapeInstance:
    cell: Cell
    pattern: str
    colors: ColorPair
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    scale: float = 1.0
    jitter: Tuple[float, float] = (0.0, 0.0)
    is_focal: bool = False
    draw_seed: int = 0

    @property
    def box(self) -> Box:
        return Box(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class Background:
    kind: str
    colors: Tuple[str, ...]
    direction: str = "vertical"


@dataclass(frozen=True)
class Scene:
    instances: Tuple[ShapeInstance, ...]
    width: float
    height: float
    background: Background
    effects: EffectConfig
    seed: int
    palette: Palette
    topology: str
    warnings: Tuple[str, ...] = ()

    @property
    def cells(self) -> Tuple[ShapeInstance, ...]:
        return tuple(i for i in self.instances if not i.is_focal)

    @property
    def focal(self) -> Tuple[ShapeInstance, ...]:
        return tuple(i for i in self.instances if i.is_focal)


class _Warnings(list):
    def add(self, msg: str) -> None:
        log.warning(msg)
        self.append(msg)


def _pick_choice(value: str, allowed: Sequence[str], label: str, warnings: _Warnings) -> str:
    if value in allowed:
        return value
    warnings.add(f"Unknown {label} '{value}', falling back to '{allowed[0]}'")
    return allowed[0]


def _resolve_span(value: Optional[int], label: str, rng: SeededRandom, warnings: _Warnings) -> int:
    if value is not None and value > 0:
        return int(value)
    if value is not None:
        warnings.add(f"{label}={value} is not usable, picking from {DEFAULT_SPAN}")
    return rng.next_int(*DEFAULT_SPAN)


def _resolve_palette(config: ArtConfig, palettes: Optional[Sequence[Palette]],
                     rng: SeededRandom, warnings: _Warnings) -> Palette:
    if config.colors.palette is not None:
        palette = normalize_palette(config.colors.palette)
        if palette:
            return palette
        warnings.add("Configured palette has no usable colours, using a built-in palette")
    collection = [p for p in (palettes or FALLBACK_PALETTES) if p] or list(FALLBACK_PALETTES)
    idx = config.colors.palette_index
    if idx is None:
        return tuple(collection[int(rng.next() * len(collection))])
    return tuple(collection[int(idx) % len(collection)])


def _resolve_effects(fx: EffectConfig, warnings: _Warnings) -> EffectConfig:
    noise = replace(
        fx.noise,
        type=_pick_choice(fx.noise.type, NOISE_TYPES, "noise type", warnings),
        channels=_pick_choice(fx.noise.channels, NOISE_CHANNELS, "noise channel mode", warnings),
    )
    distortion = replace(fx.distortion, mode=_pick_choice(fx.distortion.mode, DISTORTION_MODES,
                                                          "distortion mode", warnings))
    borders = replace(fx.borders, style=_pick_choice(fx.borders.style, BORDER_STYLES, "border style", warnings))
    return replace(fx, noise=noise, distortion=distortion, borders=borders)


def _pattern_pool(keys: Sequence[str], config: ArtConfig) -> List[str]:
    pool: List[str] = []
    for key in keys:
        pool.extend([key] * max(1, int(math.floor(config.patterns.weight(key) * 10))))
    return pool


def _rotation(mode: str, steps: int, span: float, rng: SeededRandom) -> float:
    if mode == "discrete":
        steps = max(1, steps)
        return math.floor(rng.next() * steps) * 360.0 / steps
    if mode == "continuous":
        return rng.next() * span
    return 0.0


def compose(config: Union[ArtConfig, Mapping[str, Any], None] = None,
            palettes: Optional[Sequence[Palette]] = None) -> Scene:
    """Build a fresh Scene. Never raises for recoverable config problems."""
    if not isinstance(config, ArtConfig):
        config = ArtConfig.from_mapping(config or {})
    seed = config.seed if config.seed is not None else fresh_seed()
    st = streams(seed)
    main, layout = st["main"], st["layout"]
    position = SeededRandom(config.geometry.position_seed) if config.geometry.position_seed is not None \
        else st["position"]
    warnings = _Warnings()

    # 1. layout
    grid = config.grid
    rows = _resolve_span(grid.rows, "rows", layout, warnings)
    cols = _resolve_span(grid.cols, "cols", layout, warnings)
    size = float(grid.cell_size)
    if not size > 0:
        warnings.add(f"cell_size={grid.cell_size} is not usable, using {DEFAULT_CELL_SIZE:g}")
        size = DEFAULT_CELL_SIZE
    palette = _resolve_palette(config, palettes, layout, warnings)

    geometry, msg = resolve_geometry(grid.grid_type)
    if msg:
        warnings.append(msg)
    params = grid.params()
    if params.get("min_distance") is not None and not params["min_distance"] > 0:
        warnings.add(f"min_distance={grid.min_distance} is not usable, using {0.7 * size:g}")
        params["min_distance"] = 0.7 * size
    cells = geometry.generate(rows, cols, size, params, st["geometry"])
    if not cells:
        warnings.add(f"{geometry.name} produced no cells, falling back to rectangular")
        geometry, _ = resolve_geometry("rectangular")
        cells = geometry.generate(rows, cols, size, params, st["geometry"])
    width, height = geometry.dimensions(rows, cols, size, params)
    log.info("Layout: %s %dx%d, cell %.1f, %d cells, canvas %.0fx%.0f",
             geometry.name, rows, cols, size, len(cells), width, height)

    # 2. choices
    geo = config.geometry
    rotation_mode = _pick_choice(geo.rotation_mode, ROTATION_MODES, "rotation mode", warnings)
    distribution = _pick_choice(config.patterns.distribution, DISTRIBUTIONS, "pattern distribution", warnings)
    bg_kind = _pick_choice(config.colors.background, BACKGROUNDS, "background", warnings)
    effects = _resolve_effects(config.effects, warnings)

    enabled = list(dict.fromkeys(config.patterns.enabled))
    if not enabled:
        warnings.add("No patterns enabled, using the default set")
        enabled = list(ARTISTIC_PATTERNS)
    for key in enabled:
        if PATTERNS.lookup(key) is None:
            warnings.add(f"Unknown pattern '{key}', those cells draw the fallback square")
    pool = _pattern_pool(enabled, config)
    assigner = ColorAssigner()
    cx0, cy0 = width / 2.0, height / 2.0
    max_dist = math.hypot(cx0, cy0) or 1.0

    # 3. per cell
    instances: List[ShapeInstance] = []
    current = pool[0]
    for k, cell in enumerate(cells):
        jx = (position.next() - 0.5) * cell.width * geo.jitter
        jy = (position.next() - 0.5) * cell.height * geo.jitter
        scale = 1.0 + (main.next() - 0.5) * geo.scale_variance
        aspect = (main.next() - 0.5) * geo.aspect_variance
        w = cell.width * scale * (1.0 + aspect)
        h = cell.height * scale * (1.0 - aspect)
        rotation = _rotation(rotation_mode, geo.rotation_steps, geo.rotation_range, main)

        if distribution == "random":
            current = pool[int(main.next() * len(pool))]
        elif distribution == "clustered":
            if k % max(1, config.patterns.cluster_size) == 0:
                current = pool[int(main.next() * len(pool))]
        elif distribution == "balanced":
            current = enabled[k % len(enabled)]
        else:
            ccx, ccy = cell.center
            frac = math.hypot(ccx - cx0, ccy - cy0) / max_dist
            current = enabled[min(len(enabled) - 1, int(frac * len(enabled)))]
        key = adapt_pattern(geometry.name, current) if config.patterns.adapt else current

        colors = assigner.pick(palette, main)
        ccx, ccy = cell.center
        instances.append(ShapeInstance(
            cell=cell, pattern=key, colors=colors,
            x=ccx + jx - w / 2.0, y=ccy + jy - h / 2.0, width=w, height=h,
            rotation=rotation, scale=scale, jitter=(jx, jy), draw_seed=main.spawn_seed(),
        ))
        log.debug("cell %d: %s fg=%s bg=%s rot=%.1f", cell.index, key, colors.foreground,
                  colors.background, rotation)

    # 4. focal blocks
    focal = config.focal
    if focal.enabled and focal.count > 0:
        eligible = [p for p in enabled if p not in focal.excluded]
        focal_pool = _pattern_pool(eligible, config)
        for _ in range(focal.count):
            if not focal_pool:
                warnings.add("Every enabled pattern is excluded from focal blocks, skipping")
                break
            mult = focal.multiplier if focal.multiplier is not None else main.uniform(2.0, 3.0)
            if not mult > 0:
                warnings.add(f"Focal multiplier {mult:g} is not usable, skipping")
                break
            block = size * mult
            candidates = [c for c in cells if c.x + block <= width + 1e-9 and c.y + block <= height + 1e-9]
            if not candidates:
                warnings.add(f"Grid too small for a {mult:.2f}x focal block, skipping")
                break
            cell = candidates[int(main.next() * len(candidates))]
            key = focal_pool[int(main.next() * len(focal_pool))]
            if config.patterns.adapt:
                key = adapt_pattern(geometry.name, key)
            instances.append(ShapeInstance(
                cell=cell, pattern=key, colors=assigner.pick(palette, main),
                x=cell.x, y=cell.y, width=block, height=block, scale=mult,
                is_focal=True, draw_seed=main.spawn_seed(),
            ))

    # 5. background
    inner, outer = create_background_colors(palette)
    if bg_kind == "solid":
        background = Background("solid", (config.colors.background_color or outer,))
    elif bg_kind == "none":
        background = Background("none", ())
    else:
        background = Background(bg_kind, (inner, outer), config.colors.gradient_direction)

    return Scene(
        instances=tuple(instances), width=width, height=height, background=background,
        effects=effects, seed=seed, palette=palette, topology=geometry.name, warnings=tuple(warnings),
    )


# =============== rendering ===============
def _tile(inst: ShapeInstance) -> List[Tuple[float, float]]:
    """The cell outline mapped onto the instance box."""
    cell = inst.cell
    if inst.is_focal or not cell.vertices or cell.width <= 0 or cell.height <= 0:
        x, y, w, h = inst.box
        return [(x, y), (x + w, y), (x + w, y + h), (x, y + h)]
    sx, sy = inst.width / cell.width, inst.height / cell.height
    return [(inst.x + (vx - cell.x) * sx, inst.y + (vy - cell.y) * sy) for vx, vy in cell.vertices]


def _dash(borders: BorderConfig) -> Optional[Tuple[float, float]]:
    if borders.style == "dashed":
        return borders.width * 4.0, borders.width * 2.0
    if borders.style == "dotted":
        return borders.width, borders.width * 2.0
    return None


def draw_background(surface: Surface, scene: Scene) -> None:
    bg = scene.background
    with surface.layer("background"):
        if bg.kind == "solid":
            surface.rect(0, 0, scene.width, scene.height, fill=bg.colors[0])
        elif bg.kind == "linear":
            stops = [(0.0, bg.colors[0]), (1.0, bg.colors[1])]
            surface.linear_gradient_rect(0, 0, scene.width, scene.height, stops,
                                         vertical=bg.direction != "horizontal")
        elif bg.kind == "radial":
            # the circle covers the corners so the outer colour reaches them
            r = math.hypot(scene.width, scene.height) / 2.0
            surface.rect(0, 0, scene.width, scene.height, fill=bg.colors[1])
            surface.radial_gradient_circle(scene.width / 2.0, scene.height / 2.0, r,
                                           [(0.0, bg.colors[0]), (1.0, bg.colors[1])])


def draw_instance(surface: Surface, inst: ShapeInstance, borders: Optional[BorderConfig] = None) -> None:
    box = inst.box
    rng = SeededRandom(inst.draw_seed)
    with surface.transformed(rotate=inst.rotation, origin=(box.cx, box.cy)):
        tile = _tile(inst)
        surface.polygon(tile, fill=inst.colors.background)
        draw_pattern(surface, inst.pattern, box, inst.colors, rng)
        if borders is not None and borders.enabled and borders.width > 0:
            surface.polygon(tile, stroke=borders.color or inst.colors.foreground,
                            stroke_width=borders.width, opacity=borders.opacity, dash=_dash(borders))


def make_surface(scene: Scene, backend: str = "raster", supersample: int = 2) -> Surface:
    kind = backend.strip().lower()
    if kind in ("vector", "svg"):
        return SvgSurface(scene.width, scene.height)
    if kind not in ("raster", "png", "jpg", "jpeg", "webp"):
        raise ValueError(f"Unknown backend '{backend}'. Available: raster, vector")
    return RasterSurface(scene.width, scene.height, supersample=supersample)


def render(scene: Scene, backend: Union[str, Surface] = "raster", *, supersample: int = 2,
           effects: bool = True) -> Surface:
    """Paint the scene in z-order and run the effects pipeline over it."""
    surface = backend if isinstance(backend, Surface) else make_surface(scene, backend, supersample)
    draw_background(surface, scene)
    with surface.layer("shapes"):
        for inst in scene.instances:
            draw_instance(surface, inst, scene.effects.borders)
    log.info("Rendered %d instances (%d focal) on %s surface",
             len(scene.instances), len(scene.focal), surface.kind)
    if effects:
        fx = scene.effects
        noise_rng = SeededRandom(fx.noise.seed) if fx.noise.seed is not None \
            else SeededRandom(scene.seed).fork("noise")
        surface = EffectsPipeline().apply(surface, fx, noise_rng)
    return surface
