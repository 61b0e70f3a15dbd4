"""Pixel-space asset records produced by the extractors and finalized by the fixup pass.

Fields that can only be known after atlas packing (page index, sprite
indices) start out as ``UNSET`` and are filled in by ``fixup.fixup_atlas``.
Every record converts to and from a plain JSON-compatible dict; that dict
form is what the debug ``*.json`` catalog files contain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .errors import StructureError
from .geometry import Recti, Vec2i

UNSET = 0xFFFFFFFF

ANCHOR_LAYER_PIVOT = "pivot"
ANCHOR_LAYER_ATTACHMENTS = ("attachment_0", "attachment_1", "attachment_2", "attachment_3")
ANCHOR_LAYERS = (ANCHOR_LAYER_PIVOT,) + ANCHOR_LAYER_ATTACHMENTS
ATTACHMENT_POINT_COUNT = len(ANCHOR_LAYER_ATTACHMENTS)

DIRECTION_FORWARD = "forward"


def _default_attachments() -> List[Vec2i]:
    return [Vec2i() for _ in range(ATTACHMENT_POINT_COUNT)]


def sprite_name_for_frame(sheet_name: str, frame_index: int, frame_count: int) -> str:
    if frame_count > 1:
        return f"{sheet_name}.{frame_index}"
    return sheet_name


def animation_name_for_tag(sheet_name: str, tag_name: str) -> str:
    if tag_name:
        return f"{sheet_name}:{tag_name}"
    return sheet_name


def glyph_sprite_name(font_name: str, codepoint: int) -> str:
    return f"{font_name}_codepoint_{codepoint}"


@dataclass
class AssetSprite:
    name: str
    untrimmed_dim: Vec2i = field(default_factory=Vec2i)
    trimmed_rect: Recti = field(default_factory=Recti)
    trimmed_uvs: Recti = field(default_factory=Recti)
    pivot_offset: Vec2i = field(default_factory=Vec2i)
    attachment_points: List[Vec2i] = field(default_factory=_default_attachments)
    has_translucency: bool = False
    page_index: int = UNSET

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "page_index": self.page_index,
            "has_translucency": self.has_translucency,
            "pivot_offset": self.pivot_offset.to_dict(),
            "attachment_points": [p.to_dict() for p in self.attachment_points],
            "untrimmed_dim": self.untrimmed_dim.to_dict(),
            "trimmed_rect": self.trimmed_rect.to_dict(),
            "trimmed_uvs": self.trimmed_uvs.to_dict(),
        }

    @staticmethod
    def from_dict(data: dict) -> "AssetSprite":
        return AssetSprite(
            name=data["name"],
            page_index=int(data["page_index"]),
            has_translucency=bool(data["has_translucency"]),
            pivot_offset=Vec2i.from_dict(data["pivot_offset"]),
            attachment_points=[Vec2i.from_dict(p) for p in data["attachment_points"]],
            untrimmed_dim=Vec2i.from_dict(data["untrimmed_dim"]),
            trimmed_rect=Recti.from_dict(data["trimmed_rect"]),
            trimmed_uvs=Recti.from_dict(data["trimmed_uvs"]),
        )


@dataclass
class AssetGlyph:
    codepoint: int
    sprite_name: str
    horizontal_advance: int
    sprite_dimensions: Vec2i = field(default_factory=Vec2i)
    sprite_draw_offset: Vec2i = field(default_factory=Vec2i)
    sprite_index: int = UNSET

    def to_dict(self) -> dict:
        return {
            "codepoint": self.codepoint,
            "sprite_name": self.sprite_name,
            "sprite_index": self.sprite_index,
            "horizontal_advance": self.horizontal_advance,
            "sprite_dimensions": self.sprite_dimensions.to_dict(),
            "sprite_draw_offset": self.sprite_draw_offset.to_dict(),
        }

    @staticmethod
    def from_dict(data: dict) -> "AssetGlyph":
        return AssetGlyph(
            codepoint=int(data["codepoint"]),
            sprite_name=data["sprite_name"],
            sprite_index=int(data["sprite_index"]),
            horizontal_advance=int(data["horizontal_advance"]),
            sprite_dimensions=Vec2i.from_dict(data["sprite_dimensions"]),
            sprite_draw_offset=Vec2i.from_dict(data["sprite_draw_offset"]),
        )


@dataclass
class AssetFont:
    name: str
    baseline: int
    vertical_advance: int
    font_height_in_pixels: int
    horizontal_advance_max: int = 0
    is_fixed_width_font: bool = False
    glyphs: Dict[int, AssetGlyph] = field(default_factory=dict)

    @property
    def glyph_count(self) -> int:
        return len(self.glyphs)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "baseline": self.baseline,
            "vertical_advance": self.vertical_advance,
            "font_height_in_pixels": self.font_height_in_pixels,
            "horizontal_advance_max": self.horizontal_advance_max,
            "is_fixed_width_font": self.is_fixed_width_font,
            "glyph_count": self.glyph_count,
            "glyphs": [glyph.to_dict() for glyph in self.glyphs.values()],
        }

    @staticmethod
    def from_dict(data: dict) -> "AssetFont":
        glyphs = [AssetGlyph.from_dict(g) for g in data["glyphs"]]
        return AssetFont(
            name=data["name"],
            baseline=int(data["baseline"]),
            vertical_advance=int(data["vertical_advance"]),
            font_height_in_pixels=int(data["font_height_in_pixels"]),
            horizontal_advance_max=int(data["horizontal_advance_max"]),
            is_fixed_width_font=bool(data["is_fixed_width_font"]),
            glyphs={g.codepoint: g for g in glyphs},
        )


@dataclass
class AssetAnimation:
    name: str
    sprite_names: List[str] = field(default_factory=list)
    sprite_indices: List[int] = field(default_factory=list)
    frame_durations_ms: List[int] = field(default_factory=list)
    direction: str = DIRECTION_FORWARD

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "direction": self.direction,
            "sprite_names": list(self.sprite_names),
            "sprite_indices": list(self.sprite_indices),
            "frame_durations_ms": list(self.frame_durations_ms),
        }

    @staticmethod
    def from_dict(data: dict) -> "AssetAnimation":
        return AssetAnimation(
            name=data["name"],
            direction=data.get("direction", DIRECTION_FORWARD),
            sprite_names=list(data["sprite_names"]),
            sprite_indices=[int(i) for i in data["sprite_indices"]],
            frame_durations_ms=[int(d) for d in data["frame_durations_ms"]],
        )


@dataclass
class AssetSprite3D:
    """One frame of a stack source: the same frame of every stack layer, bottom first."""

    name: str
    layer_sprite_names: List[str] = field(default_factory=list)
    layer_sprite_indices: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "layer_sprite_names": list(self.layer_sprite_names),
            "layer_sprite_indices": list(self.layer_sprite_indices),
        }

    @staticmethod
    def from_dict(data: dict) -> "AssetSprite3D":
        return AssetSprite3D(
            name=data["name"],
            layer_sprite_names=list(data["layer_sprite_names"]),
            layer_sprite_indices=[int(i) for i in data["layer_sprite_indices"]],
        )


@dataclass
class AssetAnimation3D:
    name: str
    sprite_names: List[str] = field(default_factory=list)
    sprite_indices: List[int] = field(default_factory=list)
    frame_durations_ms: List[int] = field(default_factory=list)
    direction: str = DIRECTION_FORWARD

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "direction": self.direction,
            "sprite_names": list(self.sprite_names),
            "sprite_indices": list(self.sprite_indices),
            "frame_durations_ms": list(self.frame_durations_ms),
        }

    @staticmethod
    def from_dict(data: dict) -> "AssetAnimation3D":
        return AssetAnimation3D(
            name=data["name"],
            direction=data.get("direction", DIRECTION_FORWARD),
            sprite_names=list(data["sprite_names"]),
            sprite_indices=[int(i) for i in data["sprite_indices"]],
            frame_durations_ms=[int(d) for d in data["frame_durations_ms"]],
        )


@dataclass(frozen=True)
class AtlasPlacement:
    page_index: int
    offset: Vec2i

    def to_dict(self) -> dict:
        return {"page_index": self.page_index, "offset": self.offset.to_dict()}

    @staticmethod
    def from_dict(data: dict) -> "AtlasPlacement":
        return AtlasPlacement(int(data["page_index"]), Vec2i.from_dict(data["offset"]))


@dataclass
class AssetAtlas:
    page_size: int
    page_image_paths: List[str] = field(default_factory=list)
    placements: Dict[str, AtlasPlacement] = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return len(self.page_image_paths)

    def to_dict(self) -> dict:
        return {
            "page_size": self.page_size,
            "page_count": self.page_count,
            "page_image_paths": list(self.page_image_paths),
            "placements": {name: p.to_dict() for name, p in self.placements.items()},
        }

    @staticmethod
    def from_dict(data: dict) -> "AssetAtlas":
        return AssetAtlas(
            page_size=int(data["page_size"]),
            page_image_paths=list(data["page_image_paths"]),
            placements={name: AtlasPlacement.from_dict(p) for name, p in data["placements"].items()},
        )


@dataclass
class AssetCollection:
    """Ordered maps of every record a bake produces.

    Insertion order is significant: the position of a sprite in ``sprites``
    becomes its global sprite index.
    """

    sprites: Dict[str, AssetSprite] = field(default_factory=dict)
    fonts: Dict[str, AssetFont] = field(default_factory=dict)
    animations: Dict[str, AssetAnimation] = field(default_factory=dict)
    sprites_3d: Dict[str, AssetSprite3D] = field(default_factory=dict)
    animations_3d: Dict[str, AssetAnimation3D] = field(default_factory=dict)

    def add_sprites(self, sprites: Iterable[AssetSprite]) -> None:
        _insert_unique(self.sprites, sprites, "sprite")

    def add_fonts(self, fonts: Iterable[AssetFont]) -> None:
        _insert_unique(self.fonts, fonts, "font")

    def add_animations(self, animations: Iterable[AssetAnimation]) -> None:
        _insert_unique(self.animations, animations, "animation")

    def add_sprites_3d(self, sprites: Iterable[AssetSprite3D]) -> None:
        _insert_unique(self.sprites_3d, sprites, "3D sprite")

    def add_animations_3d(self, animations: Iterable[AssetAnimation3D]) -> None:
        _insert_unique(self.animations_3d, animations, "3D animation")

    def merge(self, other: "AssetCollection") -> None:
        self.add_sprites(other.sprites.values())
        self.add_fonts(other.fonts.values())
        self.add_animations(other.animations.values())
        self.add_sprites_3d(other.sprites_3d.values())
        self.add_animations_3d(other.animations_3d.values())


def _insert_unique(target: dict, records: Iterable, kind: str) -> None:
    for record in records:
        if record.name in target:
            raise StructureError(f"Duplicate {kind} name '{record.name}'")
        target[record.name] = record
