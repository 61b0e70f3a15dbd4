"""Font styles, per-font render parameters, and per-font glyph sheets.

Source layout under ``<source>/fonts``::

    <name>.ttf           TrueType file
    <name>.json          {"height_in_pixels": 10, "raster_offset": {"x": 0.0, "y": 0.0}}
    font_styles.json     [{"fontname", "bordered", "color_glyph", "color_border"}, ...]

A style bakes to a font named ``<fontname>`` or ``<fontname>_bordered``
whose glyphs are packed into one glyph sheet ``<fonts_scratch>/<font>.png``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .assets import AssetFont, AssetGlyph, AssetSprite, glyph_sprite_name
from .color import PixelRGBA
from .errors import BakeIOError, PackError, StructureError
from .geometry import Recti, Vec2i
from .glyphs import SIZE_SWEEP_OFFSETS, RasterizedFont, rasterize_font, render_size_sweep
from .packer import GrowingAtlas

logger = logging.getLogger(__name__)

FONT_STYLES_FILENAME = "font_styles.json"
BORDERED_SUFFIX = "_bordered"
TEMPLATE_HEIGHT = 16


@dataclass(frozen=True)
class FontRenderParams:
    height_in_pixels: int
    raster_offset_x: float = 0.0
    raster_offset_y: float = 0.0

    def to_dict(self) -> dict:
        return {
            "height_in_pixels": self.height_in_pixels,
            "raster_offset": {"x": self.raster_offset_x, "y": self.raster_offset_y},
        }

    @staticmethod
    def from_dict(data: dict) -> "FontRenderParams":
        offset = data.get("raster_offset") or {}
        return FontRenderParams(
            height_in_pixels=int(data["height_in_pixels"]),
            raster_offset_x=float(offset.get("x", 0.0)),
            raster_offset_y=float(offset.get("y", 0.0)),
        )


@dataclass(frozen=True)
class FontStyle:
    fontname: str
    bordered: bool = False
    color_glyph: PixelRGBA = PixelRGBA.white()
    color_border: PixelRGBA = PixelRGBA.black()

    @property
    def font_name(self) -> str:
        return self.fontname + BORDERED_SUFFIX if self.bordered else self.fontname

    @property
    def border_thickness(self) -> int:
        return 1 if self.bordered else 0

    def to_dict(self) -> dict:
        return {
            "fontname": self.fontname,
            "bordered": self.bordered,
            "color_glyph": self.color_glyph.to_dict(),
            "color_border": self.color_border.to_dict(),
        }

    @staticmethod
    def from_dict(data: dict) -> "FontStyle":
        return FontStyle(
            fontname=str(data["fontname"]),
            bordered=bool(data.get("bordered", False)),
            color_glyph=PixelRGBA.from_dict(data.get("color_glyph") or PixelRGBA.white().to_dict()),
            color_border=PixelRGBA.from_dict(data.get("color_border") or PixelRGBA.black().to_dict()),
        )


def _load_json(path: Path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise StructureError(f"Could not decode {path}: {e}") from e
    except OSError as e:
        raise BakeIOError(f"Could not read {path}: {e}") from e


def _save_json(path: Path, data) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
    except OSError as e:
        raise BakeIOError(f"Could not write {path}: {e}") from e


def collect_font_files(fonts_dir: Path) -> Dict[str, Path]:
    if not fonts_dir.is_dir():
        return {}
    return {p.stem: p for p in sorted(fonts_dir.glob("*.ttf")) if p.is_file()}


def default_font_styles(fontnames: Sequence[str]) -> List[FontStyle]:
    styles = []
    for fontname in fontnames:
        styles.append(FontStyle(fontname, bordered=False))
        styles.append(FontStyle(fontname, bordered=True))
    return styles


def load_font_styles(fonts_dir: Path, font_files: Dict[str, Path]) -> List[FontStyle]:
    """Read ``font_styles.json``, writing a default one first when it is missing."""
    styles_path = fonts_dir / FONT_STYLES_FILENAME
    if not styles_path.exists():
        if not font_files:
            return []
        styles = default_font_styles(sorted(font_files))
        _save_json(styles_path, [s.to_dict() for s in styles])
        logger.warning(
            "No %s found; wrote default styles for %d font(s) to %s", FONT_STYLES_FILENAME, len(font_files), styles_path
        )
        return styles

    data = _load_json(styles_path)
    if not isinstance(data, list):
        raise StructureError(f"Expected a list of font styles in {styles_path}")
    styles: List[FontStyle] = []
    seen: Dict[str, FontStyle] = {}
    for entry in data:
        try:
            style = FontStyle.from_dict(entry)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StructureError(f"Bad font style in {styles_path}: {entry!r} ({e})") from e
        if style.font_name in seen:
            raise StructureError(f"Duplicate font style '{style.font_name}' in {styles_path}")
        if style.fontname not in font_files:
            raise StructureError(f"Font style '{style.font_name}' references missing font {style.fontname}.ttf")
        seen[style.font_name] = style
        styles.append(style)
    return styles


def load_font_params(fonts_dir: Path, fontname: str) -> Optional[FontRenderParams]:
    path = fonts_dir / f"{fontname}.json"
    if not path.exists():
        return None
    data = _load_json(path)
    try:
        params = FontRenderParams.from_dict(data)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise StructureError(f"Bad font render parameters in {path}: {e}") from e
    if params.height_in_pixels <= 0:
        raise StructureError(f"height_in_pixels must be positive in {path}")
    return params


def write_size_sweep(font_path: Path, font_test_dir: Path) -> List[Path]:
    """Render sample text at every candidate height next to a parameter template."""
    try:
        font_bytes = font_path.read_bytes()
    except OSError as e:
        raise BakeIOError(f"Could not read {font_path}: {e}") from e
    written = []
    for offset in SIZE_SWEEP_OFFSETS:
        out = font_test_dir / f"{font_path.stem}_offset_{offset:+.1f}.png"
        render_size_sweep(font_bytes, offset, origin=str(font_path)).save_png(out)
        written.append(out)
    template = font_test_dir / f"{font_path.stem}.json"
    _save_json(template, FontRenderParams(TEMPLATE_HEIGHT).to_dict())
    written.append(template)
    logger.warning(
        "Font %s has no render parameters; wrote size test images to %s. "
        "Copy %s next to the font, set height_in_pixels, and bake again. The font is skipped.",
        font_path.name, font_test_dir, template.name,
    )
    return written


# ----------------------------------------------------------------------
# Glyph sheet composition


def compose_font(
    font_name: str,
    rasterized: RasterizedFont,
    sheet_png: Path,
    initial_size: int = 64,
    max_size: Optional[int] = 1024,
) -> Tuple[AssetFont, List[AssetSprite]]:
    """Pack a font's glyph bitmaps into one sheet and describe every glyph as a sprite."""
    atlas = GrowingAtlas(initial_size, max_size)
    for cp, glyph in rasterized.glyphs.items():
        if glyph.bitmap is None:
            continue
        if atlas.pack(glyph_sprite_name(font_name, cp), glyph.bitmap) is None:
            raise PackError(
                f"Glyph U+{cp:04X} of font '{font_name}' does not fit a glyph sheet of {max_size}x{max_size}"
            )
    atlas.trimmed_bitmap().save_png(sheet_png)
    logger.debug("Font '%s': %d glyph bitmap(s) on a %dpx sheet", font_name, len(atlas.placements), atlas.size)

    font = AssetFont(
        name=font_name,
        baseline=rasterized.baseline,
        vertical_advance=rasterized.vertical_advance,
        font_height_in_pixels=rasterized.font_height,
    )
    sprites: List[AssetSprite] = []
    for cp, glyph in rasterized.glyphs.items():
        sprite_name = glyph_sprite_name(font_name, cp)
        if glyph.bitmap is None:
            dims = Vec2i()
            sprite = AssetSprite(name=sprite_name)
        else:
            dims = glyph.bitmap.dim
            sprite = AssetSprite(
                name=sprite_name,
                untrimmed_dim=dims,
                trimmed_rect=Recti.from_pos_dim(glyph.offset, dims),
                trimmed_uvs=Recti.from_pos_dim(atlas.placements[sprite_name], dims),
            )
        sprites.append(sprite)
        font.glyphs[cp] = AssetGlyph(
            codepoint=cp,
            sprite_name=sprite_name,
            horizontal_advance=glyph.horizontal_advance,
            sprite_dimensions=dims,
            sprite_draw_offset=glyph.offset,
        )

    advances = {g.horizontal_advance for g in rasterized.glyphs.values() if g.bitmap is not None}
    font.horizontal_advance_max = max((g.horizontal_advance for g in rasterized.glyphs.values()), default=0)
    font.is_fixed_width_font = len(advances) == 1
    return font, sprites


def bake_font_style(
    style: FontStyle,
    font_path: Path,
    params: FontRenderParams,
    fonts_scratch_dir: Path,
    atlas_padding: int = 0,
    sheet_size_initial: int = 64,
    sheet_size_max: Optional[int] = 1024,
) -> Tuple[AssetFont, List[AssetSprite]]:
    try:
        font_bytes = font_path.read_bytes()
    except OSError as e:
        raise BakeIOError(f"Could not read {font_path}: {e}") from e
    rasterized = rasterize_font(
        font_bytes,
        params.height_in_pixels,
        raster_offset=(params.raster_offset_x, params.raster_offset_y),
        border_thickness=style.border_thickness,
        atlas_padding=atlas_padding,
        color_glyph=style.color_glyph,
        color_border=style.color_border,
        origin=font_path.name,
    )
    return compose_font(
        style.font_name,
        rasterized,
        fonts_scratch_dir / f"{style.font_name}.png",
        initial_size=sheet_size_initial,
        max_size=sheet_size_max,
    )
