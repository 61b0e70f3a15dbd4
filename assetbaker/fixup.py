"""Rewrite sheet-relative sprite UVs into atlas page coordinates.

Every packed bitmap name routes to exactly one of:

- a sprite of the same name (a single-frame sheet),
- a font, whose glyph sprites all move with the glyph sheet,
- an animation sheet ``P``: the animations named ``P`` or ``P:<tag>`` and
  every sprite named ``P.<i>`` move with it.

Once routed, sprites get their global index (their position in the sprite
map) and every index reference is resolved.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from typing import DefaultDict, Dict, List

from .assets import UNSET, AssetAtlas, AssetCollection, AtlasPlacement
from .errors import RouteError
from .geometry import Recti

logger = logging.getLogger(__name__)

_FRAME_SPRITE_NAME = re.compile(r"^(?P<sheet>.+)\.(?P<index>[0-9]+)$")


def _sheet_frame_index(assets: AssetCollection):
    frames: DefaultDict[str, List[str]] = defaultdict(list)
    for name in assets.sprites:
        m = _FRAME_SPRITE_NAME.match(name)
        if m:
            frames[m.group("sheet")].append(name)
    animations: DefaultDict[str, List[str]] = defaultdict(list)
    for name in assets.animations:
        animations[name.partition(":")[0]].append(name)
    return frames, animations


def route_placements(assets: AssetCollection, placements: Dict[str, AtlasPlacement]) -> None:
    frames_by_sheet, animations_by_sheet = _sheet_frame_index(assets)
    placed_by: Dict[str, str] = {}

    def place(sprite_name: str, packed_name: str, placement: AtlasPlacement) -> None:
        sprite = assets.sprites.get(sprite_name)
        if sprite is None:
            raise RouteError(f"'{packed_name}' refers to unknown sprite '{sprite_name}'")
        previous = placed_by.get(sprite_name)
        if previous == packed_name:
            return
        if previous is not None:
            raise RouteError(f"Sprite '{sprite_name}' is routed from both '{previous}' and '{packed_name}'")
        placed_by[sprite_name] = packed_name
        sprite.page_index = placement.page_index
        sprite.trimmed_uvs = sprite.trimmed_uvs.translated_by(placement.offset)

    for packed_name, placement in placements.items():
        if packed_name in assets.sprites:
            place(packed_name, packed_name, placement)
            continue

        font = assets.fonts.get(packed_name)
        if font is not None:
            for glyph in font.glyphs.values():
                place(glyph.sprite_name, packed_name, placement)
            continue

        animation_names = animations_by_sheet.get(packed_name, [])
        frame_names = frames_by_sheet.get(packed_name, [])
        if not animation_names and not frame_names:
            raise RouteError(
                f"Packed bitmap '{packed_name}' (page {placement.page_index}, "
                f"offset {placement.offset.x},{placement.offset.y}) matches no sprite, font or animation"
            )
        for animation_name in animation_names:
            for sprite_name in assets.animations[animation_name].sprite_names:
                place(sprite_name, packed_name, placement)
        for sprite_name in frame_names:
            place(sprite_name, packed_name, placement)


def assign_sprite_indices(assets: AssetCollection) -> None:
    sprite_index = {name: i for i, name in enumerate(assets.sprites)}
    sprite_3d_index = {name: i for i, name in enumerate(assets.sprites_3d)}

    def lookup(table: Dict[str, int], name: str, owner: str) -> int:
        try:
            return table[name]
        except KeyError:
            raise RouteError(f"{owner} refers to unknown sprite '{name}'") from None

    for font in assets.fonts.values():
        for glyph in font.glyphs.values():
            glyph.sprite_index = lookup(sprite_index, glyph.sprite_name, f"Font '{font.name}'")
    for animation in assets.animations.values():
        animation.sprite_indices = [
            lookup(sprite_index, name, f"Animation '{animation.name}'") for name in animation.sprite_names
        ]
    for sprite_3d in assets.sprites_3d.values():
        sprite_3d.layer_sprite_indices = [
            lookup(sprite_index, name, f"3D sprite '{sprite_3d.name}'") for name in sprite_3d.layer_sprite_names
        ]
    for animation in assets.animations_3d.values():
        animation.sprite_indices = [
            lookup(sprite_3d_index, name, f"3D animation '{animation.name}'") for name in animation.sprite_names
        ]


def verify_fixup(assets: AssetCollection, atlas: AssetAtlas) -> None:
    """Fail if any sentinel survived or any UV rectangle leaves its page."""
    page_rect = Recti(0, 0, atlas.page_size, atlas.page_size)
    sprite_names = list(assets.sprites)
    for sprite in assets.sprites.values():
        if sprite.page_index == UNSET or sprite.page_index >= atlas.page_count:
            raise RouteError(f"Sprite '{sprite.name}' has no valid atlas page (page_index {sprite.page_index})")
        if not page_rect.contains_rect(sprite.trimmed_uvs):
            raise RouteError(f"Sprite '{sprite.name}' UVs {sprite.trimmed_uvs} leave the atlas page")

    def check(index: int, expected: str, owner: str) -> None:
        if index == UNSET or index >= len(sprite_names) or sprite_names[index] != expected:
            raise RouteError(f"{owner}: index {index} does not name sprite '{expected}'")

    for font in assets.fonts.values():
        for cp, glyph in font.glyphs.items():
            check(glyph.sprite_index, glyph.sprite_name, f"Font '{font.name}' U+{cp:04X}")
    for animation in assets.animations.values():
        for index, name in zip(animation.sprite_indices, animation.sprite_names):
            check(index, name, f"Animation '{animation.name}'")
    for sprite_3d in assets.sprites_3d.values():
        for index, name in zip(sprite_3d.layer_sprite_indices, sprite_3d.layer_sprite_names):
            check(index, name, f"3D sprite '{sprite_3d.name}'")
    sprite_3d_names = list(assets.sprites_3d)
    for animation in assets.animations_3d.values():
        for index, name in zip(animation.sprite_indices, animation.sprite_names):
            if index == UNSET or index >= len(sprite_3d_names) or sprite_3d_names[index] != name:
                raise RouteError(f"3D animation '{animation.name}': index {index} does not name '{name}'")


def fixup_atlas(assets: AssetCollection, atlas: AssetAtlas) -> None:
    route_placements(assets, atlas.placements)
    assign_sprite_indices(assets)
    verify_fixup(assets, atlas)
    logger.info("Fixed up %d sprite(s) across %d atlas page(s)", len(assets.sprites), atlas.page_count)
