"""
Tests for colour helpers, palette loading and colour assignment.
"""

import json

import numpy as np
import pytest

from palettes import (
    FALLBACK_PALETTES,
    ColorAssigner,
    PaletteFetcher,
    contrasting,
    create_background_colors,
    hex_to_rgb,
    hsl_to_rgb,
    hsl_to_rgb_array,
    load_palettes,
    mix,
    normalize_palette,
    rgb_to_hex,
    rgb_to_hsl,
    rgb_to_hsl_array,
)
from seeding import SeededRandom


class TestColorHelpers:
    """Tests for hex / HSL conversion."""

    def test_hex_parsing(self):
        """Short and long forms parse; garbage raises."""
        assert hex_to_rgb("#fff") == (255, 255, 255)
        assert hex_to_rgb("#1d3557") == (29, 53, 87)
        with pytest.raises(ValueError):
            hex_to_rgb("not-a-colour")

    def test_rgb_to_hex_clamps(self):
        """Out-of-range channels are clamped."""
        assert rgb_to_hex(300, -5, 16) == "#ff0010"

    def test_hsl_of_red(self):
        """Pure red is hue 0, full saturation, half lightness."""
        h, s, l = rgb_to_hsl(255, 0, 0)
        assert (h, s, l) == pytest.approx((0.0, 1.0, 0.5))
        assert hsl_to_rgb(h, s, l) == (255, 0, 0)

    def test_array_conversion_matches_scalar(self):
        """Vectorised HSL agrees with the scalar path."""
        rgb = np.array([[[200, 40, 90], [12, 200, 180]]], dtype=np.float64)
        back = hsl_to_rgb_array(rgb_to_hsl_array(rgb))
        assert np.allclose(back, rgb, atol=1.0)
        h, s, l = rgb_to_hsl(200, 40, 90)
        assert rgb_to_hsl_array(rgb)[0, 0] == pytest.approx([h, s, l], abs=1e-6)

    def test_contrasting(self):
        """Black text on white, white text on black."""
        assert contrasting("#ffffff") == "#000000"
        assert contrasting("#000000") == "#ffffff"

    def test_mix_midpoint(self):
        """Half-way between black and white is mid grey."""
        assert mix("#000000", "#ffffff") in ("#7f7f7f", "#808080")


class TestPalettes:
    """Tests for palette normalisation and loading."""

    def test_normalize_drops_invalid_and_repeats(self):
        """Invalid entries and duplicates are removed, case folded."""
        assert normalize_palette(["#ABC", "nope", "#aabbcc", "#123456"]) == ("#aabbcc", "#123456")

    def test_background_colours(self):
        """Inner is lighter than outer."""
        inner, outer = create_background_colors(("#336699", "#6699cc"))
        assert rgb_to_hsl(*hex_to_rgb(inner))[2] > rgb_to_hsl(*hex_to_rgb(outer))[2]

    def test_background_colours_short_palette(self):
        """Fewer than two colours gives the neutral pair."""
        assert create_background_colors(("#123456",)) == ("#f0f0f0", "#e0e0e0")

    def test_builtin_when_no_source(self):
        """No source means the built-in palettes."""
        assert load_palettes() == list(FALLBACK_PALETTES)

    def test_local_json(self, tmp_path):
        """A local JSON list of lists loads."""
        src = tmp_path / "palettes.json"
        src.write_text(json.dumps([["#000000", "#FFFFFF"], ["#ff0000", "#00ff00", "#0000ff"]]))
        loaded = load_palettes(str(src))
        assert loaded == [("#000000", "#ffffff"), ("#ff0000", "#00ff00", "#0000ff")]

    def test_missing_file_falls_back(self, tmp_path):
        """An unreadable source falls back without raising."""
        assert load_palettes(str(tmp_path / "missing.json")) == list(FALLBACK_PALETTES)

    def test_bad_json_falls_back(self, tmp_path):
        """A source of the wrong shape falls back."""
        src = tmp_path / "bad.json"
        src.write_text(json.dumps({"not": "a list"}))
        assert load_palettes(str(src)) == list(FALLBACK_PALETTES)

    def test_cached_url_is_read_from_disk(self, tmp_path):
        """A cached URL is served without touching the network."""
        fetcher = PaletteFetcher(cache_dir=tmp_path)
        url = "https://example.invalid/palettes.json"
        fetcher._cache_key(url).write_text(json.dumps([["#111111", "#222222"]]))
        assert fetcher.fetch(url) == [("#111111", "#222222")]


class TestColorAssigner:
    """Tests for foreground/background picking."""

    def test_distinct_for_two_or_more(self, palette):
        """Foreground never equals background with distinct colours."""
        rng = SeededRandom(5)
        assigner = ColorAssigner()
        for _ in range(300):
            pair = assigner.pick(palette, rng)
            assert pair.foreground != pair.background
            assert pair.foreground in palette and pair.background in palette

    def test_repeated_colours_stay_distinct(self):
        """Repeats in the palette never pair a colour with itself."""
        assigner = ColorAssigner()
        rng = SeededRandom(2)
        pair = assigner.pick(("#ff0000", "#ff0000"), rng)
        assert pair.background == "#ff0000"
        assert pair.foreground == contrasting("#ff0000")
        for _ in range(200):
            pair = assigner.pick(("#ff0000", "#FF0000", "#00ff00"), rng)
            assert pair.foreground.lower() != pair.background.lower()

    def test_single_colour(self):
        """One colour pairs with a contrasting foreground."""
        pair = ColorAssigner().pick(("#111111",), SeededRandom(1))
        assert pair.background == "#111111"
        assert pair.foreground == "#ffffff"

    def test_empty_palette(self):
        """No colours gives black on white."""
        pair = ColorAssigner().pick((), SeededRandom(1))
        assert (pair.foreground, pair.background) == ("#000000", "#ffffff")

    def test_deterministic(self, palette):
        """Same seed, same pairs."""
        a = [ColorAssigner().pick(palette, r) for r in [SeededRandom(3)] * 5]
        b = [ColorAssigner().pick(palette, r) for r in [SeededRandom(3)] * 5]
        assert a == b
