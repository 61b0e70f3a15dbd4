"""Integer vector and rectangle math.

All rectangles are top-left-origin: x grows right, y grows down, and a
rectangle (x, y, w, h) covers the pixels [x, x+w) x [y, y+h).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class Vec2i:
    x: int = 0
    y: int = 0

    def __add__(self, other: "Vec2i") -> "Vec2i":
        return Vec2i(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Vec2i") -> "Vec2i":
        return Vec2i(self.x - other.x, self.y - other.y)

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y}

    @staticmethod
    def from_dict(data: dict) -> "Vec2i":
        return Vec2i(int(data["x"]), int(data["y"]))


@dataclass(frozen=True)
class Recti:
    x: int = 0
    y: int = 0
    w: int = 0
    h: int = 0

    @staticmethod
    def from_pos_dim(pos: Vec2i, dim: Vec2i) -> "Recti":
        return Recti(pos.x, pos.y, dim.x, dim.y)

    @staticmethod
    def from_width_height(w: int, h: int) -> "Recti":
        return Recti(0, 0, w, h)

    @property
    def pos(self) -> Vec2i:
        return Vec2i(self.x, self.y)

    @property
    def dim(self) -> Vec2i:
        return Vec2i(self.w, self.h)

    @property
    def left(self) -> int:
        return self.x

    @property
    def top(self) -> int:
        return self.y

    @property
    def right(self) -> int:
        """Exclusive right edge."""
        return self.x + self.w

    @property
    def bottom(self) -> int:
        """Exclusive bottom edge."""
        return self.y + self.h

    def is_empty(self) -> bool:
        return self.w <= 0 or self.h <= 0

    def translated_by(self, offset: Vec2i) -> "Recti":
        return Recti(self.x + offset.x, self.y + offset.y, self.w, self.h)

    def contains_rect(self, other: "Recti") -> bool:
        return (
            other.x >= self.x
            and other.y >= self.y
            and other.right <= self.right
            and other.bottom <= self.bottom
        )

    def intersects(self, other: "Recti") -> bool:
        if self.is_empty() or other.is_empty():
            return False
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )

    def clipped_by(self, other: "Recti") -> Optional["Recti"]:
        left = max(self.x, other.x)
        top = max(self.y, other.y)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        if right <= left or bottom <= top:
            return None
        return Recti(left, top, right - left, bottom - top)

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "w": self.w, "h": self.h}

    @staticmethod
    def from_dict(data: dict) -> "Recti":
        return Recti(int(data["x"]), int(data["y"]), int(data["w"]), int(data["h"]))
