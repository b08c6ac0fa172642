"""
settings.py - immutable composition config

One frozen dataclass per concern, built once per call from a plain mapping
(the CLI's --config JSON merged with --extra k=v pairs). Keys may be nested
dicts, dotted paths ("effects.noise.amount") or camelCase ("cellSize").
Unknown keys are ignored with a debug log; missing ones keep the defaults.
Values are never mutated afterwards; use dataclasses.replace for variants.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Any, Dict, Mapping, Optional, Tuple

log = logging.getLogger("artgrid.settings")

ARTISTIC_PATTERNS: Tuple[str, ...] = (
    "circle", "opposite_circles", "cross", "half_square",
    "diagonal_square", "quarter_circle", "dots", "letter_block",
)
CIRCUIT_PATTERNS: Tuple[str, ...] = (
    "checkerboard", "horizontal_bars", "five_circles", "concentric_circles", "triangle_corner",
    "triangle_up", "circle", "vertical_lines", "circle_grid", "diagonal_slash", "horizontal_rects",
    "corner_squares", "quarter_circles", "half_circles", "quarter_corner", "dots_with_circle",
    "overlapping_circles", "square_in_square", "circle_with_lines", "octagon_hole",
    "center_triangles", "corner_triangles", "opposite_quarters", "nested_squares", "diamond",
)

ROTATION_MODES = ("none", "discrete", "continuous")
DISTRIBUTIONS = ("random", "balanced", "clustered", "radial")
BACKGROUNDS = ("solid", "linear", "radial", "none")
NOISE_TYPES = ("uniform", "gaussian", "perlin")
NOISE_CHANNELS = ("rgb", "luminance")
DISTORTION_MODES = ("wave", "ripple", "swirl")
BORDER_STYLES = ("solid", "dashed", "dotted")

# Pattern names used by other tools for the same primitives.
_PATTERN_ALIASES = {"geometric_mandala": "mandala", "square_block": "square"}


# =============== value coercion ===============
def _snake(key: str) -> str:
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", str(key).strip()).lower()


def _as_bool(v: Any) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(v)


def _as_palette(v: Any) -> Tuple[str, ...]:
    if isinstance(v, str):
        v = [p for p in re.split(r"[,\s]+", v) if p]
    return tuple(str(c) for c in v)


def pattern_key(name: str) -> str:
    key = _snake(name)
    return _PATTERN_ALIASES.get(key, key)


def _as_names(v: Any) -> Tuple[str, ...]:
    if isinstance(v, str):
        v = [p for p in re.split(r"[,|\s]+", v) if p]
    return tuple(pattern_key(n) for n in v)


def _as_weights(v: Any) -> Dict[str, float]:
    if isinstance(v, str):
        pairs = [p.split(":", 1) for p in v.split(",") if ":" in p]
        return {pattern_key(k): float(w) for k, w in pairs}
    return {pattern_key(k): float(w) for k, w in dict(v).items()}


def _optional(cast):
    def inner(v):
        if v is None or (isinstance(v, str) and v.strip().lower() in ("", "none", "null")):
            return None
        return cast(v)
    return inner


def _choice(v: Any) -> str:
    return _snake(v) if isinstance(v, str) else str(v)


_CASTS = {
    "int": lambda v: int(float(v)),
    "float": float,
    "bool": _as_bool,
    "str": str,
    "choice": _choice,
    "palette": _as_palette,
    "names": _as_names,
    "weights": _as_weights,
}


def _cast(kind: str):
    if kind.startswith("?"):
        return _optional(_CASTS[kind[1:]])
    return _CASTS[kind]


def _f(default: Any, kind: str, **kw: Any):
    """Dataclass field carrying its coercion rule."""
    if isinstance(default, (dict, list)):
        return field(default_factory=lambda: type(default)(default), metadata={"cast": kind}, **kw)
    return field(default=default, metadata={"cast": kind}, **kw)


# =============== sections ===============
@dataclass(frozen=True)
class GridConfig:
    grid_type: str = _f("rectangular", "choice")
    rows: Optional[int] = _f(None, "?int")
    cols: Optional[int] = _f(None, "?int")
    cell_size: float = _f(100.0, "float")
    spacing: float = _f(0.0, "float")
    shrink: float = _f(0.1, "float")
    min_distance: Optional[float] = _f(None, "?float")
    target_count: Optional[int] = _f(None, "?int")
    max_attempts: int = _f(30, "int")
    seed_cap: int = _f(50, "int")
    width: Optional[float] = _f(None, "?float")
    height: Optional[float] = _f(None, "?float")

    def params(self) -> Dict[str, Any]:
        """Topology parameters that were actually set."""
        keys = ("spacing", "shrink", "min_distance", "target_count", "max_attempts", "seed_cap", "width", "height")
        return {k: getattr(self, k) for k in keys if getattr(self, k) is not None}


@dataclass(frozen=True)
class ColorConfig:
    palette: Optional[Tuple[str, ...]] = _f(None, "?palette")
    palette_index: Optional[int] = _f(None, "?int")
    background: str = _f("radial", "choice")
    background_color: Optional[str] = _f(None, "?str")
    gradient_direction: str = _f("vertical", "choice")


@dataclass(frozen=True)
class GeometryConfig:
    jitter: float = _f(0.0, "float")
    scale_variance: float = _f(0.0, "float")
    aspect_variance: float = _f(0.0, "float")
    rotation_mode: str = _f("none", "choice")
    rotation_steps: int = _f(4, "int")
    rotation_range: float = _f(360.0, "float")
    position_seed: Optional[int] = _f(None, "?int")


@dataclass(frozen=True)
class PatternConfig:
    enabled: Tuple[str, ...] = _f(ARTISTIC_PATTERNS, "names")
    weights: Dict[str, float] = _f({}, "weights")
    distribution: str = _f("random", "choice")
    cluster_size: int = _f(3, "int")
    adapt: bool = _f(True, "bool")

    def weight(self, key: str) -> float:
        return float(self.weights.get(key, 1.0))


@dataclass(frozen=True)
class FocalConfig:
    enabled: bool = _f(True, "bool")
    count: int = _f(1, "int")
    multiplier: Optional[float] = _f(None, "?float")
    excluded: Tuple[str, ...] = _f(("dots", "radial_gradient", "linear_gradient"), "names")


@dataclass(frozen=True)
class ShadowConfig:
    enabled: bool = _f(False, "bool")
    dx: float = _f(4.0, "float")
    dy: float = _f(4.0, "float")
    blur: float = _f(4.0, "float")
    color: str = _f("#000000", "str")
    opacity: float = _f(0.5, "float")


@dataclass(frozen=True)
class GlowConfig:
    enabled: bool = _f(False, "bool")
    intensity: float = _f(0.5, "float")
    spread: float = _f(8.0, "float")
    color: str = _f("#ffffff", "str")
    layers: int = _f(3, "int")


@dataclass(frozen=True)
class NoiseConfig:
    enabled: bool = _f(False, "bool")
    amount: float = _f(0.0, "float")
    type: str = _f("uniform", "choice")
    channels: str = _f("rgb", "choice")
    seed: Optional[int] = _f(None, "?int")


@dataclass(frozen=True)
class PostConfig:
    brightness: float = _f(1.0, "float")
    contrast: float = _f(1.0, "float")
    saturation: float = _f(1.0, "float")
    gamma: float = _f(1.0, "float")

    @property
    def neutral(self) -> bool:
        return (self.brightness, self.contrast, self.saturation, self.gamma) == (1.0, 1.0, 1.0, 1.0)


@dataclass(frozen=True)
class VignetteConfig:
    enabled: bool = _f(False, "bool")
    intensity: float = _f(0.3, "float")
    softness: float = _f(0.5, "float")


@dataclass(frozen=True)
class DistortionConfig:
    enabled: bool = _f(False, "bool")
    mode: str = _f("wave", "choice")
    strength: float = _f(6.0, "float")
    frequency: float = _f(0.03, "float")


@dataclass(frozen=True)
class BorderConfig:
    enabled: bool = _f(False, "bool")
    width: float = _f(1.0, "float")
    color: Optional[str] = _f(None, "?str")
    style: str = _f("solid", "choice")
    opacity: float = _f(1.0, "float")


@dataclass(frozen=True)
class EffectConfig:
    shadow: ShadowConfig = field(default_factory=ShadowConfig)
    glow: GlowConfig = field(default_factory=GlowConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    post: PostConfig = field(default_factory=PostConfig)
    vignette: VignetteConfig = field(default_factory=VignetteConfig)
    distortion: DistortionConfig = field(default_factory=DistortionConfig)
    borders: BorderConfig = field(default_factory=BorderConfig)
    layer_opacity: float = _f(1.0, "float")


@dataclass(frozen=True)
class ArtConfig:
    seed: Optional[int] = _f(None, "?int")
    grid: GridConfig = field(default_factory=GridConfig)
    colors: ColorConfig = field(default_factory=ColorConfig)
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    patterns: PatternConfig = field(default_factory=PatternConfig)
    focal: FocalConfig = field(default_factory=FocalConfig)
    effects: EffectConfig = field(default_factory=EffectConfig)
    supersample: int = _f(2, "int")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]] = None, **overrides: Any) -> "ArtConfig":
        flat = flatten(dict(data or {}))
        flat.update(flatten(overrides))
        return _build(cls, _route(flat))

    def with_values(self, data: Mapping[str, Any]) -> "ArtConfig":
        """New config with `data` applied on top of this one."""
        return _merge(self, _route(flatten(dict(data))))


# =============== mapping → dataclasses ===============
# Short or legacy names → canonical dotted path.
_ALIASES: Dict[str, str] = {
    "grid_type": "grid.grid_type", "type": "grid.grid_type", "grid.type": "grid.grid_type",
    "rows": "grid.rows", "cols": "grid.cols", "cells_x": "grid.cols", "cells_y": "grid.rows",
    "grid.cells_x": "grid.cols", "grid.cells_y": "grid.rows",
    "cell_size": "grid.cell_size", "square_size": "grid.cell_size", "spacing": "grid.spacing",
    "min_distance": "grid.min_distance", "target_count": "grid.target_count",
    "palette": "colors.palette", "palette_index": "colors.palette_index",
    "background": "colors.background", "background_color": "colors.background_color",
    "colors.background.type": "colors.background", "colors.background.color": "colors.background_color",
    "colors.background.gradient_direction": "colors.gradient_direction",
    "patterns": "patterns.enabled", "pattern_weights": "patterns.weights",
    "distribution": "patterns.distribution", "patterns.distribution.mode": "patterns.distribution",
    "patterns.distribution.cluster_size": "patterns.cluster_size",
    "big_block": "focal.enabled", "big_block_count": "focal.count", "big_block_size": "focal.multiplier",
    "jitter": "geometry.jitter", "position_jitter": "geometry.jitter",
    "geometry.position_jitter": "geometry.jitter", "geometry.aspect_ratio_variance": "geometry.aspect_variance",
    "scale_variance": "geometry.scale_variance", "aspect_variance": "geometry.aspect_variance",
    "rotation_mode": "geometry.rotation_mode", "rotation_steps": "geometry.rotation_steps",
    "rotation_range": "geometry.rotation_range", "position_seed": "geometry.position_seed",
    "random_seed": "seed", "layer_opacity": "effects.layer_opacity",
    "effects.noise.color_channels": "effects.noise.channels",
    "effects.shadow.offset_x": "effects.shadow.dx", "effects.shadow.offset_y": "effects.shadow.dy",
}

# Section prefixes that may be written without "effects." or with other names.
_PREFIXES: Dict[str, str] = {
    "shadow": "effects.shadow", "shadows": "effects.shadow", "glow": "effects.glow",
    "noise": "effects.noise", "post": "effects.post", "post_processing": "effects.post",
    "vignette": "effects.vignette", "distortion": "effects.distortion", "borders": "effects.borders",
    "visual": "effects", "effects.shadows": "effects.shadow", "effects.post_processing": "effects.post",
    "effects.post.vignette": "effects.vignette", "big_block": "focal", "color": "colors",
    "pattern": "patterns",
}


def _is_pattern_map(key: str, v: Mapping[str, Any]) -> bool:
    """{name: weight} / {name: bool} maps are values, not sections."""
    leaf = key.rsplit(".", 1)[-1]
    if leaf in ("weights", "enabled", "pattern_weights"):
        return True
    if leaf == "patterns":
        section = {f.name for f in fields(PatternConfig)}
        return not any(_snake(k) in section for k in v)
    return False


def flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Nested dicts → dotted snake_case keys. Weight/enable maps stay whole."""
    out: Dict[str, Any] = {}
    for k, v in data.items():
        key = ".".join(_snake(p) for p in str(k).split("."))
        full = f"{prefix}.{key}" if prefix else key
        if isinstance(v, Mapping) and not _is_pattern_map(full, v):
            out.update(flatten(v, full))
        else:
            out[full] = v
    return out


def _canonical(key: str) -> str:
    if key in _ALIASES:
        return _ALIASES[key]
    for short, full in sorted(_PREFIXES.items(), key=lambda kv: -len(kv[0])):
        if key.startswith(short + "."):
            return _canonical(full + key[len(short):])
    return key


def _route(flat: Mapping[str, Any]) -> Dict[str, Any]:
    routed: Dict[str, Any] = {}
    for key, value in flat.items():
        path = _canonical(key)
        if path.endswith("patterns.enabled") and isinstance(value, Mapping):
            # {name: bool} or {name: weight}
            enabled = [k for k, on in value.items() if on]
            routed[path] = enabled
            weights = {k: float(w) for k, w in value.items() if not isinstance(w, bool) and isinstance(w, (int, float))}
            if weights:
                routed.setdefault("patterns.weights", weights)
            continue
        routed[path] = value
    return routed


def _build(cls, values: Mapping[str, Any]):
    return _merge(cls(), values)


def _merge(obj, values: Mapping[str, Any], prefix: str = "", used: Optional[set] = None):
    top = used is None
    used = set() if used is None else used
    changes: Dict[str, Any] = {}
    for f in fields(obj):
        path = f"{prefix}{f.name}"
        current = getattr(obj, f.name)
        if is_dataclass(current):
            sub = {k: v for k, v in values.items() if k.startswith(path + ".")}
            if sub:
                changes[f.name] = _merge(current, sub, path + ".", used)
        elif path in values:
            used.add(path)
            cast = _cast(f.metadata.get("cast", "str"))
            try:
                changes[f.name] = cast(values[path])
            except (TypeError, ValueError) as e:
                raise ValueError(f"Bad value for '{path}': {values[path]!r} ({e})") from e
    if top:
        for k in values:
            if k not in used:
                log.debug("Ignoring unknown config key '%s'", k)
    return replace(obj, **changes) if changes else obj


# =============== presets ===============
@dataclass(frozen=True)
class Preset:
    extras: Dict[str, Any]
    description: str = ""


PRESETS: Dict[str, Preset] = {
    "artistic_grid": Preset(
        extras={
            "patterns.enabled": ",".join(ARTISTIC_PATTERNS),
            "colors.background": "radial",
            "focal.enabled": True,
        },
        description="Bold shapes on a palette-mixed radial backdrop, one big block.",
    ),
    "classic": Preset(
        extras={
            "patterns.enabled": ",".join(CIRCUIT_PATTERNS),
            "colors.palette": "#e92f2f,#dd6a7f,#e0dbc5,#e5c215,#067bc2,#8fc1dd,#21377a",
            "colors.background": "solid", "colors.background_color": "#000000",
            "geometry.jitter": 0.1, "geometry.scale_variance": 0.2, "geometry.aspect_variance": 0.1,
            "geometry.rotation_mode": "discrete", "geometry.rotation_steps": 4,
            "effects.shadow.enabled": True, "effects.shadow.opacity": 0.6,
            "effects.noise.enabled": True, "effects.noise.amount": 25,
            "focal.enabled": False,
        },
        description="Traditional circuit board aesthetic.",
    ),
    "modern": Preset(
        extras={
            "patterns.enabled": ",".join(CIRCUIT_PATTERNS),
            "colors.palette": "#2563eb,#3b82f6,#60a5fa,#93c5fd,#dbeafe,#1e40af,#1d4ed8",
            "colors.background": "solid", "colors.background_color": "#000000",
            "geometry.rotation_mode": "discrete",
            "effects.glow.enabled": True, "effects.glow.intensity": 0.3,
            "effects.noise.enabled": True, "effects.noise.amount": 10,
            "focal.enabled": False,
        },
        description="Clean, minimal aesthetic with subtle effects.",
    ),
    "neon": Preset(
        extras={
            "patterns.enabled": ",".join(CIRCUIT_PATTERNS),
            "colors.palette": "#ff00ff,#00ffff,#ffff00,#ff6600,#00ff00,#ff0066,#6600ff",
            "colors.background": "solid", "colors.background_color": "#0a0a0a",
            "geometry.rotation_mode": "discrete",
            "effects.glow.enabled": True, "effects.glow.intensity": 0.8, "effects.glow.spread": 12,
            "effects.borders.enabled": True, "effects.borders.color": "#ffffff", "effects.borders.width": 0.5,
            "focal.enabled": False,
        },
        description="Vibrant neon colors with glowing effects.",
    ),
    "organic": Preset(
        extras={
            "patterns.enabled": ",".join(CIRCUIT_PATTERNS + (
                "organic_blob", "spiral_pattern", "voronoi_cell", "parametric_wave")),
            "patterns.weights": "organic_blob:0.3,spiral_pattern:0.4,voronoi_cell:0.3,parametric_wave:0.4",
            "colors.palette": "#5f7c61,#8fbc8f,#deb887,#d2b48c,#f4e4bc,#cd853f,#8b7355",
            "colors.background": "solid", "colors.background_color": "#f4e4bc",
            "geometry.jitter": 0.3, "geometry.scale_variance": 0.4, "geometry.rotation_mode": "continuous",
            "focal.enabled": False,
        },
        description="Natural, flowing patterns with organic shapes.",
    ),
    "monochrome": Preset(
        extras={
            "patterns.enabled": ",".join(CIRCUIT_PATTERNS),
            "colors.palette": "#ffffff,#e5e5e5,#cccccc,#999999,#666666,#333333,#000000",
            "colors.background": "solid", "colors.background_color": "#000000",
            "geometry.rotation_mode": "discrete",
            "effects.shadow.enabled": True,
            "effects.noise.enabled": True, "effects.noise.amount": 20, "effects.noise.type": "gaussian",
            "focal.enabled": False,
        },
        description="Black and white with grayscale variations and grain.",
    ),
}


def load_config(data: Optional[Mapping[str, Any]] = None, preset: Optional[str] = None) -> ArtConfig:
    """Preset values first, then the user's mapping on top."""
    base: Dict[str, Any] = {}
    if preset:
        key = preset.strip().lower()
        if key not in PRESETS:
            raise KeyError(f"Unknown preset '{preset}'. Available: {', '.join(sorted(PRESETS))}")
        base.update(PRESETS[key].extras)
    cfg = ArtConfig.from_mapping(base)
    return cfg.with_values(data or {}) if data else cfg
