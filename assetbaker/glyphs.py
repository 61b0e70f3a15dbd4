"""Pixel-font glyph rasterization.

Metrics come from the TrueType tables (``hhea``, ``hmtx``, glyph outlines)
through fontTools; coverage comes from Pillow's FreeType renderer and is
binarized at 0.5, which is what pixel fonts want.

Vertical layout of one text line, top-down, for a font rendered at
``height`` pixels with border thickness ``b``::

    y = 0                   top of line
    y = round(ascent) + b   baseline
    y = height + 2b         bottom of line (font_height)

Usage:
    font = rasterize_font(ttf_bytes, height=10, border_thickness=1)
    size = font.text_dimensions("Hello")
    font.draw_text(canvas, Vec2i(4, 4), "Hello")
"""

from __future__ import annotations

import io
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from fontTools.pens.boundsPen import BoundsPen
from fontTools.ttLib import TTFont
from PIL import Image, ImageDraw, ImageFont

from .bitmap import Bitmap
from .color import PixelRGBA
from .errors import FontError
from .geometry import Vec2i

logger = logging.getLogger(__name__)

EPSILON = 1e-5
MAX_CODEPOINT = 0xFFFF
FIRST_PRINTABLE = 0x20
FALLBACK_CODEPOINT = ord("?")

COVERAGE_THRESHOLD = 127

# 4-neighbourhood plus the lower-right diagonal.
BORDER_NEIGHBOURS = ((-1, 0), (1, 0), (0, -1), (0, 1), (1, 1))

SIZE_SWEEP_HEIGHTS = range(4, 33)
SIZE_SWEEP_OFFSETS = (-0.5, 0.0, 0.5)
SIZE_SWEEP_TEXT = "The quick brown fox jumps over the lazy dog 0123456789"


@dataclass
class RasterizedGlyph:
    codepoint: int
    bitmap: Optional[Bitmap]
    offset: Vec2i
    horizontal_advance: int


@dataclass
class RasterizedFont:
    height_in_pixels: int
    border_thickness: int
    ascent: float
    descent: float
    line_gap: float
    baseline: int
    vertical_advance: int
    font_height: int
    glyphs: Dict[int, RasterizedGlyph] = field(default_factory=dict)

    def glyph_for(self, codepoint: int) -> Optional[RasterizedGlyph]:
        glyph = self.glyphs.get(codepoint)
        if glyph is None:
            glyph = self.glyphs.get(FALLBACK_CODEPOINT)
        return glyph

    def text_dimensions(self, text: str) -> Vec2i:
        lines = text.split("\n")
        width = 0
        for line in lines:
            line_width = 0
            for ch in line:
                glyph = self.glyph_for(ord(ch))
                if glyph is not None:
                    line_width += glyph.horizontal_advance
            width = max(width, line_width)
        height = (len(lines) - 1) * self.vertical_advance + self.font_height
        return Vec2i(width, height)

    def draw_text(self, canvas: Bitmap, pos: Vec2i, text: str) -> None:
        """Draw ``text`` with the top-left of its first line at ``pos``."""
        pen_x, pen_y = pos.x, pos.y
        for ch in text:
            if ch == "\n":
                pen_x = pos.x
                pen_y += self.vertical_advance
                continue
            glyph = self.glyph_for(ord(ch))
            if glyph is None:
                continue
            if glyph.bitmap is not None:
                canvas.blit(
                    glyph.bitmap,
                    Vec2i(pen_x + glyph.offset.x, pen_y + glyph.offset.y),
                    mask_color=PixelRGBA.transparent(),
                )
            pen_x += glyph.horizontal_advance


def _is_integral(value: float) -> bool:
    return abs(value - round(value)) <= EPSILON


def _round(value: float) -> int:
    # Half away from zero, independent of Python's banker's rounding.
    return int(math.floor(value + 0.5)) if value >= 0 else -int(math.floor(-value + 0.5))


def load_ttfont(font_bytes: bytes, origin: str = "<font>") -> TTFont:
    try:
        font = TTFont(io.BytesIO(font_bytes))
    except Exception as e:
        raise FontError(f"Could not decode font {origin}: {e}") from e
    missing = [table for table in ("head", "hhea", "hmtx", "cmap") if table not in font]
    if missing:
        raise FontError(f"Font {origin} lacks required table(s): {', '.join(missing)}")
    return font


def _codepoints(cmap: Dict[int, str]) -> List[int]:
    cps = {cp for cp in cmap if FIRST_PRINTABLE <= cp <= MAX_CODEPOINT and not 0xD800 <= cp <= 0xDFFF}
    if FIRST_PRINTABLE in cmap:
        cps.update(range(FIRST_PRINTABLE))
    return sorted(cps)


def _add_border(mask: np.ndarray) -> np.ndarray:
    """Pixels adjacent to ``mask`` (per BORDER_NEIGHBOURS) that are not in it."""
    h, w = mask.shape
    border = np.zeros_like(mask)
    for dx, dy in BORDER_NEIGHBOURS:
        dst_x0, dst_x1 = max(0, dx), min(w, w + dx)
        dst_y0, dst_y1 = max(0, dy), min(h, h + dy)
        src = mask[dst_y0 - dy:dst_y1 - dy, dst_x0 - dx:dst_x1 - dx]
        border[dst_y0:dst_y1, dst_x0:dst_x1] |= src
    return border & ~mask


def rasterize_font(
    font_bytes: bytes,
    height: int,
    raster_offset: Tuple[float, float] = (0.0, 0.0),
    border_thickness: int = 0,
    atlas_padding: int = 0,
    color_glyph: PixelRGBA = PixelRGBA.white(),
    color_border: PixelRGBA = PixelRGBA.black(),
    origin: str = "<font>",
) -> RasterizedFont:
    if border_thickness not in (0, 1):
        raise FontError(f"Border thickness {border_thickness} is not supported for {origin}; use 0 or 1")
    if height <= 0:
        raise FontError(f"Font height must be positive for {origin}, got {height}")
    if atlas_padding < 0:
        raise FontError(f"Atlas padding must not be negative for {origin}, got {atlas_padding}")

    tt = load_ttfont(font_bytes, origin)
    hhea = tt["hhea"]
    hmtx = tt["hmtx"]
    units_per_em = tt["head"].unitsPerEm
    cmap = tt.getBestCmap()
    if not cmap:
        raise FontError(f"Font {origin} has no usable character map")

    units_height = hhea.ascent - hhea.descent
    if units_height <= 0:
        raise FontError(f"Font {origin} has degenerate vertical metrics (ascent {hhea.ascent}, descent {hhea.descent})")
    scale = height / units_height
    offset_x, offset_y = float(raster_offset[0]), float(raster_offset[1])

    ascent = hhea.ascent * scale + offset_y
    descent = hhea.descent * scale + offset_y
    line_gap = hhea.lineGap * scale
    for label, value in (("ascent", ascent), ("descent", descent), ("line gap", line_gap)):
        if not _is_integral(value):
            logger.warning(
                "Font %s at %dpx: %s %.4f is not integral; try another height or raster offset",
                origin, height, label, value,
            )

    border = border_thickness
    pad = atlas_padding + border
    baseline = _round(ascent) + border
    vertical_advance = _round(ascent - descent + line_gap) + 2 * border
    font_height = height + 2 * border
    pen_x = offset_x
    pen_y = height + descent

    try:
        pil_font = ImageFont.truetype(
            io.BytesIO(font_bytes), size=units_per_em * scale, layout_engine=ImageFont.Layout.BASIC
        )
    except OSError as e:
        raise FontError(f"FreeType could not load {origin}: {e}") from e

    glyph_set = tt.getGlyphSet()
    rendered_by_name: Dict[str, RasterizedGlyph] = {}
    inexact_metrics = 0
    result = RasterizedFont(
        height_in_pixels=height,
        border_thickness=border,
        ascent=ascent,
        descent=descent,
        line_gap=line_gap,
        baseline=baseline,
        vertical_advance=vertical_advance,
        font_height=font_height,
    )

    for cp in _codepoints(cmap):
        glyph_name = cmap[FIRST_PRINTABLE] if cp < FIRST_PRINTABLE else cmap[cp]
        char = " " if cp < FIRST_PRINTABLE else chr(cp)
        cached = rendered_by_name.get(glyph_name)
        if cached is not None:
            result.glyphs[cp] = RasterizedGlyph(cp, cached.bitmap, cached.offset, cached.horizontal_advance)
            continue

        advance_units, lsb_units = hmtx[glyph_name]
        advance = advance_units * scale
        lsb = lsb_units * scale
        if not (_is_integral(advance) and _is_integral(lsb)):
            inexact_metrics += 1
            logger.debug("Font %s: glyph U+%04X metrics advance %.4f lsb %.4f are not integral", origin, cp, advance, lsb)

        bounds_pen = BoundsPen(glyph_set)
        glyph_set[glyph_name].draw(bounds_pen)

        bitmap = None
        min_y = 0
        if bounds_pen.bounds is not None:
            x_min, y_min, x_max, y_max = bounds_pen.bounds
            px_min_x = math.floor(x_min * scale + pen_x)
            px_max_x = math.ceil(x_max * scale + pen_x)
            px_min_y = math.floor(pen_y - y_max * scale)
            px_max_y = math.ceil(pen_y - y_min * scale)
            w = px_max_x - px_min_x
            h = px_max_y - px_min_y
            if w > 0 and h > 0:
                coverage = Image.new("L", (w, h), 0)
                ImageDraw.Draw(coverage).text(
                    (pen_x - px_min_x, pen_y - px_min_y), char, font=pil_font, fill=255, anchor="ls"
                )
                mask = np.asarray(coverage, dtype=np.uint8) > COVERAGE_THRESHOLD
                if mask.any():
                    mask = np.pad(mask, pad)
                    bitmap = Bitmap.new(mask.shape[1], mask.shape[0])
                    bitmap.data[mask] = color_glyph
                    if border:
                        bitmap.data[_add_border(mask)] = color_border
                    min_y = px_min_y

        glyph = RasterizedGlyph(
            codepoint=cp,
            bitmap=bitmap,
            offset=Vec2i(_round(lsb) - atlas_padding, (min_y - atlas_padding) if bitmap is not None else 0),
            horizontal_advance=_round(advance) + border,
        )
        rendered_by_name[glyph_name] = glyph
        result.glyphs[cp] = glyph

    if inexact_metrics:
        logger.warning(
            "Font %s at %dpx: %d glyph(s) have non-integral horizontal metrics", origin, height, inexact_metrics
        )
    return result


def render_size_sweep(font_bytes: bytes, raster_offset_y: float, origin: str = "<font>") -> Bitmap:
    """One line of sample text per pixel height, white on black, to pick a height by eye."""
    lines = []
    for height in SIZE_SWEEP_HEIGHTS:
        font = rasterize_font(font_bytes, height, raster_offset=(0.0, raster_offset_y), origin=origin)
        lines.append((font, f"{height}px {SIZE_SWEEP_TEXT}"))

    margin = 4
    width = max(font.text_dimensions(text).x for font, text in lines) + 2 * margin
    total_height = sum(font.vertical_advance for font, _ in lines) + 2 * margin
    canvas = Bitmap.new(max(1, width), max(1, total_height), PixelRGBA.black())
    y = margin
    for font, text in lines:
        font.draw_text(canvas, Vec2i(margin, y), text)
        y += font.vertical_advance
    return canvas
