"""Aseprite ``json-array`` sheet metadata.

Schema consumed::

    {
      "frames": [
        {"filename": ..., "frame": {x,y,w,h}, "rotated": false, "trimmed": true,
         "spriteSourceSize": {x,y,w,h}, "sourceSize": {w,h}, "duration": 100},
        ...
      ],
      "meta": {"app", "version", "image", "format", "size": {w,h}, "scale",
               "frameTags": [{name, from, to, direction}], "layers": [{name, ...}]}
    }

A zero-byte (or whitespace-only) file is what the tool leaves behind for a
layer export that touched no frames; it parses as a sheet without frames.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .assets import DIRECTION_FORWARD
from .errors import BakeIOError, MetadataError
from .geometry import Recti, Vec2i

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SheetFrame:
    filename: str
    packed_rect: Recti
    source_rect: Recti
    source_dim: Vec2i
    duration_ms: int
    trimmed: bool = True

    def is_empty(self) -> bool:
        return self.source_rect.w == 0 and self.source_rect.h == 0


@dataclass(frozen=True)
class FrameTag:
    name: str
    first: int
    last: int
    direction: str = DIRECTION_FORWARD

    @property
    def frame_indices(self) -> range:
        return range(self.first, self.last + 1)


@dataclass
class SheetMeta:
    frames: List[SheetFrame] = field(default_factory=list)
    frame_tags: List[FrameTag] = field(default_factory=list)
    layers: List[str] = field(default_factory=list)
    image: str = ""
    size: Vec2i = field(default_factory=Vec2i)
    app: str = ""
    version: str = ""
    format: str = ""
    scale: str = "1"

    @property
    def frame_count(self) -> int:
        return len(self.frames)


def _rect(data: dict, where: str) -> Recti:
    try:
        return Recti(int(data["x"]), int(data["y"]), int(data["w"]), int(data["h"]))
    except (KeyError, TypeError, ValueError) as e:
        raise MetadataError(f"Bad rectangle in {where}: {data!r}") from e


def _dim(data: dict, where: str) -> Vec2i:
    try:
        return Vec2i(int(data["w"]), int(data["h"]))
    except (KeyError, TypeError, ValueError) as e:
        raise MetadataError(f"Bad size in {where}: {data!r}") from e


def _parse_frame(entry: dict, index: int, origin: str) -> SheetFrame:
    where = f"{origin} frame {index}"
    if not isinstance(entry, dict):
        raise MetadataError(f"Expected an object for {where}")
    if entry.get("rotated", False):
        raise MetadataError(f"Rotated frames are not supported ({where})")
    try:
        duration = int(entry["duration"])
        frame = entry["frame"]
        sprite_source_size = entry["spriteSourceSize"]
        source_size = entry["sourceSize"]
    except KeyError as e:
        raise MetadataError(f"Missing key {e} in {where}") from e
    except (TypeError, ValueError) as e:
        raise MetadataError(f"Bad duration in {where}: {e}") from e
    if duration < 0:
        raise MetadataError(f"Negative duration {duration} in {where}")
    return SheetFrame(
        filename=str(entry.get("filename", "")),
        packed_rect=_rect(frame, where),
        source_rect=_rect(sprite_source_size, where),
        source_dim=_dim(source_size, where),
        duration_ms=duration,
        trimmed=bool(entry.get("trimmed", True)),
    )


def _parse_tag(entry: dict, frame_count: int, origin: str) -> FrameTag:
    try:
        tag = FrameTag(
            name=str(entry.get("name", "")),
            first=int(entry["from"]),
            last=int(entry["to"]),
            direction=str(entry.get("direction", DIRECTION_FORWARD)),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise MetadataError(f"Bad frame tag in {origin}: {entry!r}") from e
    if not (0 <= tag.first <= tag.last < frame_count):
        raise MetadataError(
            f"Frame tag '{tag.name}' range {tag.first}..{tag.last} outside 0..{frame_count - 1} in {origin}"
        )
    return tag


def parse_sheet_meta(text: str, origin: str = "<metadata>") -> SheetMeta:
    if not text.strip():
        return SheetMeta()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MetadataError(f"Could not decode {origin}: {e}") from e
    if not isinstance(data, dict):
        raise MetadataError(f"Expected a JSON object in {origin}")

    frames_raw = data.get("frames")
    if not isinstance(frames_raw, list):
        raise MetadataError(f"Expected frames[] (json-array format) in {origin}")
    meta_raw = data.get("meta") or {}
    if not isinstance(meta_raw, dict):
        raise MetadataError(f"Expected meta{{}} in {origin}")

    frames = [_parse_frame(entry, i, origin) for i, entry in enumerate(frames_raw)]
    tags = [_parse_tag(entry, len(frames), origin) for entry in meta_raw.get("frameTags") or []]

    layers: List[str] = []
    for entry in meta_raw.get("layers") or []:
        if isinstance(entry, dict) and "name" in entry:
            layers.append(str(entry["name"]))
        else:
            raise MetadataError(f"Bad layer entry in {origin}: {entry!r}")

    size = meta_raw.get("size")
    return SheetMeta(
        frames=frames,
        frame_tags=tags,
        layers=layers,
        image=str(meta_raw.get("image", "")),
        size=_dim(size, origin) if size else Vec2i(),
        app=str(meta_raw.get("app", "")),
        version=str(meta_raw.get("version", "")),
        format=str(meta_raw.get("format", "")),
        scale=str(meta_raw.get("scale", "1")),
    )


def load_sheet_meta(path: Path) -> SheetMeta:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise BakeIOError(f"Could not read metadata {path}: {e}") from e
    return parse_sheet_meta(text, origin=str(path))
