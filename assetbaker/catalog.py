"""Catalog output: pixel-space JSON records and the runtime binary mirror.

Each logical catalog is written twice into the destination directory:

    <name>.json   the Asset* records, pretty-printed (debug view)
    <name>.data   runtime records converted from exactly those records

Runtime conversion turns integer pixel fields into floats and divides the
sprite UV rectangle by the atlas page side; nothing else is scaled.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Tuple

from . import binfmt
from .assets import (
    AssetAnimation,
    AssetAnimation3D,
    AssetAtlas,
    AssetCollection,
    AssetFont,
    AssetGlyph,
    AssetSprite,
    AssetSprite3D,
)
from .errors import BakeIOError, StructureError
from .geometry import Recti, Vec2i

logger = logging.getLogger(__name__)

CATALOG_NAMES = ("sprites", "fonts", "animations", "sprites_3d", "animations_3d", "atlas")

DEFAULT_FASTPATH_GLYPH_COUNT = 256


# ----------------------------------------------------------------------
# Runtime conversion


def _vec2f(v: Vec2i) -> Dict[str, float]:
    return {"x": float(v.x), "y": float(v.y)}


def _rectf(r: Recti) -> Dict[str, float]:
    return {"x": float(r.x), "y": float(r.y), "w": float(r.w), "h": float(r.h)}


def uv_quad(rect: Recti, page_size: int) -> Dict[str, float]:
    size = float(page_size)
    return {
        "left": rect.left / size,
        "top": rect.top / size,
        "right": rect.right / size,
        "bottom": rect.bottom / size,
    }


def runtime_sprite(sprite: AssetSprite, page_size: int) -> Dict[str, Any]:
    return {
        "name": sprite.name,
        "page_index": sprite.page_index,
        "has_translucency": sprite.has_translucency,
        "pivot_offset": _vec2f(sprite.pivot_offset),
        "attachment_points": [_vec2f(p) for p in sprite.attachment_points],
        "untrimmed_dim": _vec2f(sprite.untrimmed_dim),
        "trimmed_rect": _rectf(sprite.trimmed_rect),
        "trimmed_uvs": uv_quad(sprite.trimmed_uvs, page_size),
    }


def runtime_glyph(glyph: AssetGlyph) -> Dict[str, Any]:
    return {
        "codepoint": glyph.codepoint,
        "sprite_index": glyph.sprite_index,
        "horizontal_advance": glyph.horizontal_advance,
        "sprite_dimensions": glyph.sprite_dimensions.to_dict(),
        "sprite_draw_offset": glyph.sprite_draw_offset.to_dict(),
    }


def zero_glyph() -> Dict[str, Any]:
    """Marks an empty fast-path slot; the runtime draws '?' in its place."""
    return runtime_glyph(AssetGlyph(codepoint=0, sprite_name="", horizontal_advance=0, sprite_index=0))


def runtime_font(font: AssetFont, fastpath_glyph_count: int = DEFAULT_FASTPATH_GLYPH_COUNT) -> Dict[str, Any]:
    fastpath: List[Dict[str, Any]] = [zero_glyph() for _ in range(fastpath_glyph_count)]
    unicode_glyphs: Dict[int, Dict[str, Any]] = {}
    for cp, glyph in font.glyphs.items():
        if cp < fastpath_glyph_count:
            fastpath[cp] = runtime_glyph(glyph)
        else:
            unicode_glyphs[cp] = runtime_glyph(glyph)
    return {
        "name": font.name,
        "baseline": font.baseline,
        "vertical_advance": font.vertical_advance,
        "font_height_in_pixels": font.font_height_in_pixels,
        "horizontal_advance_max": font.horizontal_advance_max,
        "is_fixed_width_font": font.is_fixed_width_font,
        "glyph_count": font.glyph_count,
        "glyphs_fastpath": fastpath,
        "glyphs_unicode": unicode_glyphs,
    }


def _runtime_frames(durations_ms: List[int], indices: List[int]) -> List[List[Any]]:
    return [[duration / 1000.0, index] for duration, index in zip(durations_ms, indices)]


def runtime_animation(animation: AssetAnimation) -> Dict[str, Any]:
    return {
        "name": animation.name,
        "direction": animation.direction,
        "frames": _runtime_frames(animation.frame_durations_ms, animation.sprite_indices),
    }


def runtime_sprite_3d(sprite: AssetSprite3D) -> Dict[str, Any]:
    return {"name": sprite.name, "layer_sprite_indices": list(sprite.layer_sprite_indices)}


def runtime_animation_3d(animation: AssetAnimation3D) -> Dict[str, Any]:
    return {
        "name": animation.name,
        "direction": animation.direction,
        "frames": _runtime_frames(animation.frame_durations_ms, animation.sprite_indices),
    }


def runtime_catalogs(
    assets: AssetCollection,
    atlas: AssetAtlas,
    fastpath_glyph_count: int = DEFAULT_FASTPATH_GLYPH_COUNT,
) -> Dict[str, Any]:
    """Runtime content of every ``.data`` file, keyed by catalog name."""
    return {
        "sprites": [runtime_sprite(s, atlas.page_size) for s in assets.sprites.values()],
        "fonts": {name: runtime_font(f, fastpath_glyph_count) for name, f in assets.fonts.items()},
        "animations": {name: runtime_animation(a) for name, a in assets.animations.items()},
        "sprites_3d": [runtime_sprite_3d(s) for s in assets.sprites_3d.values()],
        "animations_3d": {name: runtime_animation_3d(a) for name, a in assets.animations_3d.items()},
        "atlas": list(atlas.page_image_paths),
    }


def json_catalogs(assets: AssetCollection, atlas: AssetAtlas) -> Dict[str, Any]:
    """Debug content of every ``.json`` file, keyed by catalog name."""
    return {
        "sprites": [s.to_dict() for s in assets.sprites.values()],
        "fonts": [f.to_dict() for f in assets.fonts.values()],
        "animations": [a.to_dict() for a in assets.animations.values()],
        "sprites_3d": [s.to_dict() for s in assets.sprites_3d.values()],
        "animations_3d": [a.to_dict() for a in assets.animations_3d.values()],
        "atlas": atlas.to_dict(),
    }


# ----------------------------------------------------------------------
# Files


def _save_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.write("\n")


def write_catalogs(
    dest_dir: Path,
    assets: AssetCollection,
    atlas: AssetAtlas,
    fastpath_glyph_count: int = DEFAULT_FASTPATH_GLYPH_COUNT,
) -> List[Path]:
    debug = json_catalogs(assets, atlas)
    runtime = runtime_catalogs(assets, atlas, fastpath_glyph_count)
    written = []
    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        for name in CATALOG_NAMES:
            json_path = dest_dir / f"{name}.json"
            data_path = dest_dir / f"{name}.data"
            _save_json(json_path, debug[name])
            data_path.write_bytes(binfmt.encode(runtime[name]))
            written.extend([json_path, data_path])
    except OSError as e:
        raise BakeIOError(f"Could not write catalog into {dest_dir}: {e}") from e
    logger.info("Wrote %d catalog file(s) to %s", len(written), dest_dir)
    return written


def load_json_catalogs(dest_dir: Path) -> Tuple[AssetCollection, AssetAtlas]:
    """Read the debug ``.json`` catalogs back into Asset* records."""
    data: Dict[str, Any] = {}
    for name in CATALOG_NAMES:
        path = dest_dir / f"{name}.json"
        try:
            with open(path, "r", encoding="utf-8") as f:
                data[name] = json.load(f)
        except OSError as e:
            raise BakeIOError(f"Could not read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise StructureError(f"Could not decode {path}: {e}") from e

    assets = AssetCollection()
    assets.add_sprites(AssetSprite.from_dict(d) for d in data["sprites"])
    assets.add_fonts(AssetFont.from_dict(d) for d in data["fonts"])
    assets.add_animations(AssetAnimation.from_dict(d) for d in data["animations"])
    assets.add_sprites_3d(AssetSprite3D.from_dict(d) for d in data["sprites_3d"])
    assets.add_animations_3d(AssetAnimation3D.from_dict(d) for d in data["animations_3d"])
    return assets, AssetAtlas.from_dict(data["atlas"])


def load_runtime_catalogs(dest_dir: Path) -> Dict[str, Any]:
    result = {}
    for name in CATALOG_NAMES:
        path = dest_dir / f"{name}.data"
        try:
            result[name] = binfmt.decode(path.read_bytes())
        except OSError as e:
            raise BakeIOError(f"Could not read {path}: {e}") from e
    return result
