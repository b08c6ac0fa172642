"""Pytest configuration - make the flat modules importable and share fixtures."""
from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from seeding import SeededRandom  # noqa: E402


@pytest.fixture
def palette():
    """Three distinct colours."""
    return ("#e63946", "#f1faee", "#1d3557")


@pytest.fixture
def rng():
    return SeededRandom(1234)


@pytest.fixture
def small_config(palette):
    """A 3x3 rectangular grid of circles, no focal block, fixed seed."""
    return {
        "seed": 42,
        "grid": {"grid_type": "rectangular", "rows": 3, "cols": 3, "cell_size": 100},
        "colors": {"palette": list(palette), "background": "solid"},
        "patterns": {"enabled": ["circle"]},
        "focal": {"enabled": False},
    }


@pytest.fixture
def tiny_config(palette):
    """Small canvas for raster rendering tests."""
    return {
        "seed": 7,
        "grid": {"rows": 3, "cols": 3, "cell_size": 16},
        "colors": {"palette": list(palette)},
        "focal": {"enabled": False},
    }


@pytest.fixture
def buffer():
    """A 24x32 RGBA gradient buffer, fully opaque."""
    h, w = 24, 32
    yy, xx = np.mgrid[0:h, 0:w]
    buf = np.zeros((h, w, 4), dtype=np.uint8)
    buf[..., 0] = (xx * 255 // (w - 1)).astype(np.uint8)
    buf[..., 1] = (yy * 255 // (h - 1)).astype(np.uint8)
    buf[..., 2] = 128
    buf[..., 3] = 255
    return buf
