from __future__ import annotations

import hashlib
import json
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import requests

from seeding import SeededRandom

log = logging.getLogger("artgrid.palettes")

Palette = Tuple[str, ...]

PALETTE_URL = "https://unpkg.com/nice-color-palettes@3.0.0/100.json"

# Used whenever the remote collection is unreachable or a palette is unusable.
FALLBACK_PALETTES: List[Palette] = [
    ("#ff3b30", "#ff9500", "#4cd2ff", "#5ac8fa", "#fc96ff"),
    ("#1a73e8", "#ea4335", "#fbbc04", "#34a853", "#ffffff"),
    ("#e63946", "#f1faee", "#a8dadc", "#457b9d", "#1d3557"),
    ("#ff3b30", "#ff9500", "#ffcc00", "#4cd964", "#5ac8fa", "#007aff", "#5856d6"),
    ("#e92f2f", "#dd6a7f", "#e0dbc5", "#e5c215", "#067bc2", "#8fc1dd", "#21377a"),
]


# =============== Hex / RGB / HSL ===============
def _parse_hex_color(code: str) -> Optional[Tuple[int, int, int]]:
    s = str(code).strip().lstrip("#")
    if len(s) == 3:
        s = "".join([c * 2 for c in s])
    if len(s) != 6:
        return None
    try:
        return int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16)
    except ValueError:
        return None


def hex_to_rgb(code: str) -> Tuple[int, int, int]:
    rgb = _parse_hex_color(code)
    if rgb is None:
        raise ValueError(f"Not a hex color: {code!r}")
    return rgb


def rgb_to_hex(r: float, g: float, b: float) -> str:
    c = [int(round(min(255.0, max(0.0, v)))) for v in (r, g, b)]
    return "#{:02x}{:02x}{:02x}".format(*c)


def rgb_to_hsl(r: float, g: float, b: float) -> Tuple[float, float, float]:
    r, g, b = r / 255.0, g / 255.0, b / 255.0
    mx, mn = max(r, g, b), min(r, g, b)
    l = (mx + mn) / 2.0
    if mx == mn:
        return 0.0, 0.0, l
    d = mx - mn
    s = d / (2.0 - mx - mn) if l > 0.5 else d / (mx + mn)
    if mx == r:
        h = (g - b) / d + (6.0 if g < b else 0.0)
    elif mx == g:
        h = (b - r) / d + 2.0
    else:
        h = (r - g) / d + 4.0
    return h / 6.0, s, l


def _hue2rgb(p: float, q: float, t: float) -> float:
    if t < 0:
        t += 1
    if t > 1:
        t -= 1
    if t < 1 / 6:
        return p + (q - p) * 6 * t
    if t < 1 / 2:
        return q
    if t < 2 / 3:
        return p + (q - p) * (2 / 3 - t) * 6
    return p


def hsl_to_rgb(h: float, s: float, l: float) -> Tuple[int, int, int]:
    if s == 0:
        r = g = b = l
    else:
        q = l * (1 + s) if l < 0.5 else l + s - l * s
        p = 2 * l - q
        r = _hue2rgb(p, q, h + 1 / 3)
        g = _hue2rgb(p, q, h)
        b = _hue2rgb(p, q, h - 1 / 3)
    return int(round(r * 255)), int(round(g * 255)), int(round(b * 255))


def rgb_to_hsl_array(rgb: np.ndarray) -> np.ndarray:
    """Vectorised RGB (0..255, ...x3) → HSL (0..1, ...x3)."""
    arr = rgb.astype(np.float64) / 255.0
    r, g, b = arr[..., 0], arr[..., 1], arr[..., 2]
    mx = arr.max(axis=-1)
    mn = arr.min(axis=-1)
    l = (mx + mn) / 2.0
    d = mx - mn
    chroma = d > 1e-12
    safe_d = np.where(chroma, d, 1.0)
    denom = np.where(l > 0.5, 2.0 - mx - mn, mx + mn)
    s = np.where(chroma, d / np.where(denom > 1e-12, denom, 1.0), 0.0)

    h = np.zeros_like(l)
    is_r = chroma & (mx == r)
    is_g = chroma & (mx == g) & ~is_r
    is_b = chroma & ~is_r & ~is_g
    h = np.where(is_r, (g - b) / safe_d + np.where(g < b, 6.0, 0.0), h)
    h = np.where(is_g, (b - r) / safe_d + 2.0, h)
    h = np.where(is_b, (r - g) / safe_d + 4.0, h)
    return np.stack([h / 6.0, s, l], axis=-1)


def _hue2rgb_array(p: np.ndarray, q: np.ndarray, t: np.ndarray) -> np.ndarray:
    t = np.where(t < 0, t + 1, t)
    t = np.where(t > 1, t - 1, t)
    return np.select(
        [t < 1 / 6, t < 1 / 2, t < 2 / 3],
        [p + (q - p) * 6 * t, q, p + (q - p) * (2 / 3 - t) * 6],
        default=p,
    )


def hsl_to_rgb_array(hsl: np.ndarray) -> np.ndarray:
    """Vectorised HSL (0..1) → RGB float (0..255), unrounded."""
    h, s, l = hsl[..., 0], hsl[..., 1], hsl[..., 2]
    q = np.where(l < 0.5, l * (1 + s), l + s - l * s)
    p = 2 * l - q
    r = _hue2rgb_array(p, q, h + 1 / 3)
    g = _hue2rgb_array(p, q, h)
    b = _hue2rgb_array(p, q, h - 1 / 3)
    grey = s == 0
    r = np.where(grey, l, r)
    g = np.where(grey, l, g)
    b = np.where(grey, l, b)
    return np.stack([r, g, b], axis=-1) * 255.0


def relative_luminance(code: str) -> float:
    r, g, b = hex_to_rgb(code)
    return (0.2126 * r + 0.7152 * g + 0.0722 * b) / 255.0


def contrasting(code: str) -> str:
    """Black on light colours, white on dark ones."""
    return "#000000" if relative_luminance(code) > 0.5 else "#ffffff"


def mix(a: str, b: str, t: float = 0.5) -> str:
    ra, ga, ba = hex_to_rgb(a)
    rb, gb, bb = hex_to_rgb(b)
    return rgb_to_hex(ra + (rb - ra) * t, ga + (gb - ga) * t, ba + (bb - ba) * t)


# =============== Palettes ===============
def normalize_palette(colors: Sequence[str]) -> Palette:
    """Lower-case #rrggbb tuple; unparsable entries and repeats are dropped."""
    out = []
    for c in colors or ():
        rgb = _parse_hex_color(c)
        if rgb is None:
            log.warning("Dropping invalid palette entry %r", c)
            continue
        out.append(rgb_to_hex(*rgb))
    return tuple(dict.fromkeys(out))


def create_background_colors(palette: Sequence[str]) -> Tuple[str, str]:
    """Inner/outer radial-gradient colours mixed from the first two entries."""
    if not palette or len(palette) < 2:
        return "#f0f0f0", "#e0e0e0"
    r1, g1, b1 = hex_to_rgb(palette[0])
    r2, g2, b2 = hex_to_rgb(palette[1])
    h, s, l = rgb_to_hsl((r1 + r2) / 2, (g1 + g2) / 2, (b1 + b2) / 2)
    s = max(0.0, s - 0.1)
    inner = hsl_to_rgb(h, s, min(1.0, l + 0.1))
    outer = hsl_to_rgb(h, s, max(0.0, l - 0.1))
    return rgb_to_hex(*inner), rgb_to_hex(*outer)


class PaletteFetcher:
    """Fetch the remote palette collection with a tiny on-disk cache."""

    def __init__(self, cache_dir: Optional[Path] = None, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self.cache_dir = cache_dir or Path(tempfile.gettempdir()) / "artgrid_cache"
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "artgrid/1.0 (+https://local)"})

    def _cache_key(self, url: str) -> Path:
        h = hashlib.sha256(url.encode("utf-8")).hexdigest()[:32]
        return self.cache_dir / f"{h}.json"

    def fetch(self, src: str = PALETTE_URL) -> List[Palette]:
        if not src.lower().startswith(("http://", "https://")):
            raw = Path(src).read_text(encoding="utf-8")
            return _palettes_from_json(raw)

        key = self._cache_key(src)
        if key.exists():
            try:
                log.info("Palette cache hit: %s", key.name)
                return _palettes_from_json(key.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                log.debug("Ignoring unreadable palette cache %s: %s", key, e)
        log.info("Fetching palettes: %s", src)
        r = self._session.get(src, timeout=self.timeout)
        r.raise_for_status()
        palettes = _palettes_from_json(r.text)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            key.write_text(r.text, encoding="utf-8")
        except OSError as e:
            log.debug("Could not write palette cache: %s", e)
        return palettes


def _palettes_from_json(raw: str) -> List[Palette]:
    data = json.loads(raw)
    if not isinstance(data, list):
        raise ValueError("Palette source must be a JSON list of colour lists")
    out = [normalize_palette(p) for p in data if isinstance(p, (list, tuple))]
    out = [p for p in out if p]
    if not out:
        raise ValueError("Palette source contained no usable palettes")
    return out


def load_palettes(src: Optional[str] = None, *, fetcher: Optional[PaletteFetcher] = None) -> List[Palette]:
    """Remote/local palette collection, or the built-ins on any failure."""
    if src is None:
        return list(FALLBACK_PALETTES)
    fetcher = fetcher or PaletteFetcher()
    try:
        return fetcher.fetch(src)
    except (requests.RequestException, OSError, ValueError) as e:
        log.warning("Palette load failed (%s); using built-in palettes.", e)
        return list(FALLBACK_PALETTES)


# =============== Colour assignment ===============
@dataclass(frozen=True)
class ColorPair:
    foreground: str
    background: str


@dataclass(frozen=True)
class ColorAssigner:
    """Background first, then a foreground from what remains."""

    def pick(self, palette: Sequence[str], rng: SeededRandom) -> ColorPair:
        if not palette:
            return ColorPair("#000000", "#ffffff")
        background = palette[int(rng.next() * len(palette))]
        remaining = [c for c in palette if c.lower() != background.lower()]
        if not remaining:
            return ColorPair(contrasting(background), background)
        foreground = remaining[int(rng.next() * len(remaining))]
        return ColorPair(foreground, background)


def pick_colors(palette: Sequence[str], rng: SeededRandom) -> ColorPair:
    return ColorAssigner().pick(palette, rng)
