"""Fixture builders shared by the test modules."""

from __future__ import annotations

import io
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

FAKE_ASEPRITE = (sys.executable, str(Path(__file__).with_name("fake_aseprite.py")))

RED = [255, 0, 0, 255]
GREEN = [0, 255, 0, 255]
BLUE = [0, 0, 255, 255]
HALF_WHITE = [255, 255, 255, 128]
MARK = [255, 0, 255, 255]

# Pixel font geometry: 100 font units per pixel at 10px.
UNITS_PER_EM = 1000
ASCENT = 800
DESCENT = -200
PIXEL = 100

# Rows top to bottom; the last row sits on the baseline.
GLYPH_PATTERNS: Dict[str, List[str]] = {
    "A": [
        ".##.",
        "#..#",
        "#..#",
        "####",
        "#..#",
        "#..#",
        "#..#",
    ],
    "I": [
        "###",
        ".#.",
        ".#.",
        ".#.",
        ".#.",
        ".#.",
        "###",
    ],
    "question": [
        ".##.",
        "#..#",
        "...#",
        "..#.",
        ".#..",
        "....",
        ".#..",
    ],
    "block": [
        "##",
        "##",
    ],
}

CHARACTER_MAP = {0x20: "space", ord("A"): "A", ord("I"): "I", ord("?"): "question", 0x2588: "block"}


def write_ase(
    path: Path,
    width: int,
    height: int,
    durations: Sequence[int],
    layers: Sequence[dict],
    tags: Optional[Sequence[dict]] = None,
) -> Path:
    """Write a fake-aseprite document. ``layers`` is a list of {"name", "cels"}."""
    doc = {
        "width": width,
        "height": height,
        "frames": list(durations),
        "tags": list(tags or []),
        "layers": [
            {"name": layer["name"], "cels": {str(k): v for k, v in layer.get("cels", {}).items()}}
            for layer in layers
        ],
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(doc), encoding="utf-8")
    return path


def layer(name: str, cels: Dict[int, list]) -> dict:
    return {"name": name, "cels": cels}


def _draw_pattern(pattern: List[str]) -> "TTGlyphPen":
    pen = TTGlyphPen(None)
    rows = len(pattern)
    for r, row in enumerate(pattern):
        for c, ch in enumerate(row):
            if ch != "#":
                continue
            x0 = (c + 1) * PIXEL
            y0 = (rows - 1 - r) * PIXEL
            x1, y1 = x0 + PIXEL, y0 + PIXEL
            pen.moveTo((x0, y0))
            pen.lineTo((x0, y1))
            pen.lineTo((x1, y1))
            pen.lineTo((x1, y0))
            pen.closePath()
    return pen


def build_pixel_font(family: str = "TestPixel") -> bytes:
    """A TrueType font whose outlines are whole pixels at a 10px height."""
    glyph_order = [".notdef", "space"] + list(GLYPH_PATTERNS)
    fb = FontBuilder(UNITS_PER_EM, isTTF=True)
    fb.setupGlyphOrder(glyph_order)
    fb.setupCharacterMap(CHARACTER_MAP)

    glyphs = {".notdef": TTGlyphPen(None).glyph(), "space": TTGlyphPen(None).glyph()}
    metrics = {".notdef": (500, 0), "space": (400, 0)}
    for name, pattern in GLYPH_PATTERNS.items():
        glyphs[name] = _draw_pattern(pattern).glyph()
        first_column = min(row.index("#") for row in pattern if "#" in row)
        metrics[name] = ((len(pattern[0]) + 2) * PIXEL, (first_column + 1) * PIXEL)
    fb.setupGlyf(glyphs)
    fb.setupMaxp()
    fb.setupHorizontalMetrics(metrics)
    fb.setupHorizontalHeader(ascent=ASCENT, descent=DESCENT)
    fb.setupNameTable({"familyName": family, "styleName": "Regular"})
    fb.setupOS2(sTypoAscender=ASCENT, sTypoDescender=DESCENT, usWinAscent=ASCENT, usWinDescent=-DESCENT)
    fb.setupPost()

    buf = io.BytesIO()
    fb.save(buf)
    return buf.getvalue()


def pattern_pixel_count(name: str) -> int:
    return sum(row.count("#") for row in GLYPH_PATTERNS[name])
