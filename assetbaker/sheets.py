"""Sprite-sheet extraction from layered sources, and 3-D stack expansion.

A 2-D source becomes one trimmed sheet PNG plus sprite and animation
records whose ``trimmed_uvs`` still point into that sheet. A 3-D source
(``<name>_3d.ase``) holds numbered stack layers ``0..K-1``; each is split
into its own source file and extracted as sheet ``<name>#<k>``.

Scratch layout for a sheet named ``S`` under ``sheets_dir``::

    S.png, S.json                      sheet + metadata (packed later)
    S.anchors/<layer>.json             per-frame anchor metadata
    S.anchors/<layer>.png.backup       anchor render, kept out of packing
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .aseprite import Aseprite
from .assets import (
    ANCHOR_LAYER_ATTACHMENTS,
    ANCHOR_LAYER_PIVOT,
    ANCHOR_LAYERS,
    UNSET,
    AssetAnimation,
    AssetAnimation3D,
    AssetCollection,
    AssetSprite,
    AssetSprite3D,
    animation_name_for_tag,
    sprite_name_for_frame,
)
from .bitmap import Bitmap
from .errors import MetadataError, StructureError
from .geometry import Recti, Vec2i
from .sheet_meta import FrameTag, SheetMeta, load_sheet_meta
from .workers import map_ordered

logger = logging.getLogger(__name__)

STACK_SUFFIX = "_3d"
STACK_LAYER_SEPARATOR = "#"
ANCHORS_DIR_SUFFIX = ".anchors"

_STACK_LAYER_NAME = re.compile(r"^[0-9]+$")


def is_stack_source(path: Path) -> bool:
    return path.stem.endswith(STACK_SUFFIX)


def sheet_name_for_source(path: Path) -> str:
    stem = path.stem
    if stem.endswith(STACK_SUFFIX):
        return stem[: -len(STACK_SUFFIX)]
    return stem


def stack_sheet_name(sheet_name: str, layer_index: int) -> str:
    return f"{sheet_name}{STACK_LAYER_SEPARATOR}{layer_index}"


def _with_suffix(prefix: Path, suffix: str) -> Path:
    # Sheet names may contain dots and '#', so never use Path.with_suffix here.
    return prefix.parent / (prefix.name + suffix)


@dataclass
class ExtractedSheet:
    sheet_name: str
    meta: SheetMeta
    assets: AssetCollection
    has_translucency: bool


# ----------------------------------------------------------------------
# Anchors


def anchor_offsets_from_meta(
    anchor_meta: SheetMeta,
    frame_count: int,
    layer: str,
    source: Path,
) -> List[Vec2i]:
    """Per-frame offsets of one anchor layer.

    The layer must mark every frame of the sheet or none of them. An
    unmarked layer yields (0, 0) for every frame.
    """
    offsets = [Vec2i() for _ in range(frame_count)]
    marked = [frame for frame in anchor_meta.frames if not frame.is_empty()]
    if not marked:
        return offsets
    if len(marked) != frame_count or anchor_meta.frame_count != frame_count:
        raise StructureError(
            f"Anchor layer '{layer}' in {source} marks {len(marked)} of {frame_count} frames; "
            f"it must mark every frame or none"
        )
    for i, frame in enumerate(anchor_meta.frames):
        offsets[i] = Vec2i(frame.source_rect.x, frame.source_rect.y)
    return offsets


def _extract_anchor_offsets(
    tool: Aseprite,
    source: Path,
    layers: Sequence[str],
    frame_count: int,
    anchors_dir: Path,
) -> Dict[str, List[Vec2i]]:
    result: Dict[str, List[Vec2i]] = {}
    for layer in ANCHOR_LAYERS:
        if layer not in layers:
            result[layer] = [Vec2i() for _ in range(frame_count)]
            continue
        png = anchors_dir / f"{layer}.png"
        meta_path = anchors_dir / f"{layer}.json"
        tool.export_single_layer(source, layer, png, meta_path)
        anchor_meta = load_sheet_meta(meta_path)
        result[layer] = anchor_offsets_from_meta(anchor_meta, frame_count, layer, source)
        logger.debug("Anchor layer '%s' of %s: %d frame(s) marked", layer, source, anchor_meta.frame_count)
    return result


# ----------------------------------------------------------------------
# 2-D extraction


def build_sprites(
    sheet_name: str,
    meta: SheetMeta,
    has_translucency: bool,
    anchors: Dict[str, List[Vec2i]],
) -> List[AssetSprite]:
    sprites: List[AssetSprite] = []
    frame_count = meta.frame_count
    for i, frame in enumerate(meta.frames):
        if frame.is_empty():
            trimmed_rect = Recti()
            trimmed_uvs = Recti()
        else:
            trimmed_rect = Recti(frame.source_rect.x, frame.source_rect.y, frame.packed_rect.w, frame.packed_rect.h)
            trimmed_uvs = frame.packed_rect
        sprites.append(
            AssetSprite(
                name=sprite_name_for_frame(sheet_name, i, frame_count),
                untrimmed_dim=frame.source_dim,
                trimmed_rect=trimmed_rect,
                trimmed_uvs=trimmed_uvs,
                pivot_offset=anchors[ANCHOR_LAYER_PIVOT][i],
                attachment_points=[anchors[layer][i] for layer in ANCHOR_LAYER_ATTACHMENTS],
                has_translucency=has_translucency,
            )
        )
    return sprites


def effective_tags(meta: SheetMeta) -> List[FrameTag]:
    """The sheet's tags, or one unnamed tag spanning all frames when it has none."""
    if meta.frame_tags:
        return list(meta.frame_tags)
    return [FrameTag(name="", first=0, last=meta.frame_count - 1)]


def build_animations(sheet_name: str, meta: SheetMeta, sprite_names: Sequence[str]) -> List[AssetAnimation]:
    animations = []
    for tag in effective_tags(meta):
        indices = tag.frame_indices
        animations.append(
            AssetAnimation(
                name=animation_name_for_tag(sheet_name, tag.name),
                sprite_names=[sprite_names[i] for i in indices],
                sprite_indices=[UNSET for _ in indices],
                frame_durations_ms=[meta.frames[i].duration_ms for i in indices],
                direction=tag.direction,
            )
        )
    return animations


def _extract(tool: Aseprite, source: Path, sheet_name: str, output_prefix: Path) -> ExtractedSheet:
    sheet_png = _with_suffix(output_prefix, ".png")
    meta_json = _with_suffix(output_prefix, ".json")

    tool.export_sheet(source, ANCHOR_LAYERS, sheet_png, meta_json)
    meta = load_sheet_meta(meta_json)
    if meta.frame_count == 0:
        raise MetadataError(f"{source} exported no frames")

    has_translucency = Bitmap.load_png(sheet_png).has_translucency()
    if has_translucency:
        logger.warning("Sheet '%s' has translucent pixels", sheet_name)

    layers = tool.list_layers(source)
    anchors = _extract_anchor_offsets(
        tool, source, layers, meta.frame_count, _with_suffix(output_prefix, ANCHORS_DIR_SUFFIX)
    )

    assets = AssetCollection()
    sprites = build_sprites(sheet_name, meta, has_translucency, anchors)
    assets.add_sprites(sprites)
    assets.add_animations(build_animations(sheet_name, meta, [s.name for s in sprites]))
    logger.debug(
        "Extracted '%s': %d sprite(s), %d animation(s)", sheet_name, len(assets.sprites), len(assets.animations)
    )
    return ExtractedSheet(sheet_name, meta, assets, has_translucency)


def extract_sheet(tool: Aseprite, source: Path, sheet_name: str, output_prefix: Path) -> AssetCollection:
    """Extract one 2-D source into sprites and animations named after ``sheet_name``."""
    return _extract(tool, Path(source), sheet_name, Path(output_prefix)).assets


# ----------------------------------------------------------------------
# 3-D stacks


def partition_stack_layers(layers: Sequence[str], source: Path) -> Tuple[List[str], List[int]]:
    """Split layer names into anchor names and sorted stack indices.

    Stack layers must be named ``0``..``K-1`` with K >= 1.
    """
    anchors: List[str] = []
    stack: List[Tuple[int, str]] = []
    for name in layers:
        if name in ANCHOR_LAYERS:
            anchors.append(name)
        elif _STACK_LAYER_NAME.match(name):
            stack.append((int(name), name))
        else:
            raise StructureError(
                f"Unknown layer '{name}' in 3D source {source}; expected a stack index or one of "
                + ", ".join(ANCHOR_LAYERS)
            )
    if not stack:
        raise StructureError(f"3D source {source} has no numbered stack layers")
    indices = sorted(index for index, _ in stack)
    if indices != list(range(len(indices))):
        raise StructureError(
            f"Stack layers of {source} must be numbered 0..{len(indices) - 1} without gaps, got "
            + ", ".join(name for _, name in sorted(stack))
        )
    return anchors, indices


def _tag_signature(meta: SheetMeta) -> List[Tuple[str, int, int, str]]:
    return [(t.name, t.first, t.last, t.direction) for t in effective_tags(meta)]


def build_stack_aggregates(
    sheet_name: str,
    layer_sheets: Sequence[ExtractedSheet],
) -> Tuple[List[AssetSprite3D], List[AssetAnimation3D]]:
    base = layer_sheets[0]
    frame_count = base.meta.frame_count
    sprites_3d = []
    for i in range(frame_count):
        layer_names = [list(sheet.assets.sprites)[i] for sheet in layer_sheets]
        sprites_3d.append(
            AssetSprite3D(
                name=sprite_name_for_frame(sheet_name, i, frame_count),
                layer_sprite_names=layer_names,
                layer_sprite_indices=[UNSET for _ in layer_names],
            )
        )
    animations_3d = []
    for tag in effective_tags(base.meta):
        indices = tag.frame_indices
        animations_3d.append(
            AssetAnimation3D(
                name=animation_name_for_tag(sheet_name, tag.name),
                sprite_names=[sprites_3d[i].name for i in indices],
                sprite_indices=[UNSET for _ in indices],
                frame_durations_ms=[base.meta.frames[i].duration_ms for i in indices],
                direction=tag.direction,
            )
        )
    return sprites_3d, animations_3d


def expand_stack(
    tool: Aseprite,
    source: Path,
    sheet_name: str,
    sheets_dir: Path,
    stack_dir: Path,
    max_workers: Optional[int] = None,
) -> AssetCollection:
    """Extract every stack layer of a 3-D source as sheet ``<sheet_name>#<k>``."""
    source = Path(source)
    layers = tool.list_layers(source)
    _, indices = partition_stack_layers(layers, source)
    stack_names = {int(name): name for name in layers if _STACK_LAYER_NAME.match(name)}
    logger.debug("3D source %s: %d stack layer(s)", source, len(indices))

    def extract_layer(k: int) -> ExtractedSheet:
        layer_sheet = stack_sheet_name(sheet_name, k)
        ignored = [stack_names[j] for j in indices if j != k]
        layer_source = stack_dir / f"{layer_sheet}{source.suffix}"
        tool.save_without_layers(source, ignored, layer_source)
        return _extract(tool, layer_source, layer_sheet, sheets_dir / layer_sheet)

    layer_sheets = map_ordered(extract_layer, indices, max_workers=max_workers)

    base = layer_sheets[0]
    for sheet in layer_sheets[1:]:
        if sheet.meta.frame_count != base.meta.frame_count:
            raise StructureError(
                f"Stack layer '{sheet.sheet_name}' has {sheet.meta.frame_count} frame(s) but "
                f"'{base.sheet_name}' has {base.meta.frame_count}"
            )
        if _tag_signature(sheet.meta) != _tag_signature(base.meta):
            raise StructureError(f"Stack layers '{sheet.sheet_name}' and '{base.sheet_name}' disagree on frame tags")

    result = AssetCollection()
    for sheet in layer_sheets:
        result.merge(sheet.assets)
    sprites_3d, animations_3d = build_stack_aggregates(sheet_name, layer_sheets)
    result.add_sprites_3d(sprites_3d)
    result.add_animations_3d(animations_3d)
    return result
