from __future__ import annotations

import argparse
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from PIL import Image

from composer import compose, render
from grids import TOPOLOGIES
from palettes import load_palettes
from patterns import PATTERNS
from settings import PRESETS, ArtConfig, load_config
from surfaces import RasterSurface, Surface, SvgSurface

# =============== Logging ===============
log = logging.getLogger("artgrid")


def setup_logging(verbosity: int = 0) -> None:
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(verbosity, 2)]
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


# =============== CLI helpers ===============
def _coerce(v: str) -> Any:
    if v.isdigit():
        return int(v)
    try:
        return float(v)
    except ValueError:
        low = v.lower()
        if low in ("true", "false"):
            return low == "true"
    return v


def _parse_kv_pairs(pairs: Optional[List[str]]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if not pairs:
        return out
    for p in pairs:
        if "=" in p:
            k, v = p.split("=", 1)
            out[k.strip()] = _coerce(v.strip())
        else:
            log.warning("Ignoring extra '%s' (expected key=value)", p)
    return out


def _infer_format_from_path(p: Path) -> str:
    ext = p.suffix.lower()
    if ext == ".svg":
        return "SVG"
    if ext in (".jpg", ".jpeg"):
        return "JPEG"
    if ext == ".png":
        return "PNG"
    if ext == ".webp":
        return "WEBP"
    return "PNG"


def _backend_for(p: Path) -> str:
    return "vector" if _infer_format_from_path(p) == "SVG" else "raster"


def _read_config(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must hold a JSON object, got {type(data).__name__}")
    return data


def _build_config(args: argparse.Namespace) -> ArtConfig:
    """Preset, then the JSON file, then --extra pairs, then the explicit flags."""
    data = _read_config(getattr(args, "config", None))
    data.update(_parse_kv_pairs(getattr(args, "extra", None)))
    if getattr(args, "seed", None) is not None:
        data["seed"] = args.seed
    if getattr(args, "palette_index", None) is not None:
        data["colors.palette_index"] = args.palette_index
    return load_config(data, preset=getattr(args, "preset", None))


def export(surface: Surface, path: Path) -> bool:
    """Write a rendered surface to disk. Returns False (and logs) on failure."""
    path = Path(path)
    fmt = _infer_format_from_path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if fmt == "SVG":
            if not isinstance(surface, SvgSurface):
                raise ValueError("SVG output needs a vector surface")
            surface.save(path)
        else:
            if not isinstance(surface, RasterSurface):
                raise ValueError(f"{fmt} output needs a raster surface")
            surface.save(path, fmt)
    except (OSError, ValueError) as e:
        log.error("Could not write %s: %s", path, e)
        return False
    log.info("Saved %s", path)
    return True


def _upscale(surface: Surface, factor: int) -> None:
    if factor <= 1:
        return
    if isinstance(surface, RasterSurface):
        img = surface.to_image()
        w, h = img.size
        surface.set_image(img.resize((w * factor, h * factor), Image.Resampling.LANCZOS))
    elif isinstance(surface, SvgSurface):
        surface.dwg["width"] = f"{surface.width * factor:g}"
        surface.dwg["height"] = f"{surface.height * factor:g}"


# =============== Parser ===============
def _add_config_args(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--config", type=Path, default=None, help="JSON file with configuration values.")
    sp.add_argument("--preset", choices=sorted(PRESETS), default=None, help="Named preset (user values win).")
    sp.add_argument("--seed", type=int, default=None, help="RNG seed (optional).")
    sp.add_argument("--palette-source", type=str, default=None,
                    help="URL or local JSON file with a list of palettes.")
    sp.add_argument("--palette-index", type=int, default=None, help="Pick one palette from the collection.")
    sp.add_argument("--supersample", type=int, default=None, help="Raster supersampling factor (default from config).")
    sp.add_argument(
        "--extra",
        nargs="*",
        help=(
            "Extra k=v pairs, dotted keys for sections "
            "(e.g. grid.grid_type=hexagonal effects.noise.amount=20 patterns.enabled=circle,square)."
        ),
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="artgrid", description="Seeded generative grid art.")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv).")
    sub = p.add_subparsers(dest="cmd", required=True)

    lp = sub.add_parser("list", help="List topologies, patterns and presets.")
    lp.set_defaults(func=cmd_list)

    rp = sub.add_parser("run", help="Compose, render and export one image.")
    rp.add_argument("--out", type=Path, required=True, help="Output file (svg/png/jpg/webp).")
    rp.add_argument("--scale", type=int, default=1, help="Final upscale factor via Lanczos (1=off).")
    rp.add_argument("--no-effects", action="store_true", help="Skip the effects pipeline.")
    _add_config_args(rp)
    rp.set_defaults(func=cmd_run)

    bp = sub.add_parser("bench", help="Time compose + render.")
    bp.add_argument("--runs", type=int, default=3)
    bp.add_argument("--backend", choices=("raster", "vector"), default="raster")
    _add_config_args(bp)
    bp.set_defaults(func=cmd_bench)

    return p


# =============== Commands ===============
def cmd_list(_args: argparse.Namespace) -> int:
    print("Topologies:", ", ".join(TOPOLOGIES.names()) or "(none)")
    print("Patterns:", ", ".join(PATTERNS.names()) or "(none)")
    print("Presets:")
    for name in sorted(PRESETS):
        print(f"  {name:<14} {PRESETS[name].description}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    try:
        config = _build_config(args)
        palettes = load_palettes(args.palette_source) if args.palette_source else None
        scene = compose(config, palettes)
        for w in scene.warnings:
            log.debug("Scene warning: %s", w)
        surface = render(scene, _backend_for(args.out), supersample=max(1, args.supersample or config.supersample),
                         effects=not args.no_effects)
        _upscale(surface, int(args.scale or 1))
        if not export(surface, args.out):
            return 1
        print(f"{args.out} (seed {scene.seed}, {len(scene.instances)} shapes, {scene.topology})")
        return 0
    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_bench(args: argparse.Namespace) -> int:
    try:
        config = _build_config(args)
        palettes = load_palettes(args.palette_source) if args.palette_source else None
        times = []
        for _ in range(max(1, args.runs)):
            t0 = time.perf_counter()
            scene = compose(config, palettes)
            render(scene, args.backend, supersample=max(1, args.supersample or config.supersample))
            times.append(time.perf_counter() - t0)
        avg = sum(times) / len(times)
        print(
            f"{config.grid.grid_type}/{args.backend}: {len(times)} run(s) - avg {avg*1000:.2f} ms, "
            f"min {min(times)*1000:.2f} ms, max {max(times)*1000:.2f} ms"
        )
        return 0
    except Exception as e:
        log.exception("Bench failed: %s", e)
        return 1


# =============== Entry ===============
def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
