from __future__ import annotations

from typing import Dict, NamedTuple


class PixelRGBA(NamedTuple):
    """Four 8-bit channels. Straight alpha unless a caller says otherwise."""

    r: int
    g: int
    b: int
    a: int

    @staticmethod
    def transparent() -> "PixelRGBA":
        return PixelRGBA(0, 0, 0, 0)

    @staticmethod
    def white() -> "PixelRGBA":
        return PixelRGBA(255, 255, 255, 255)

    @staticmethod
    def black() -> "PixelRGBA":
        return PixelRGBA(0, 0, 0, 255)

    def to_dict(self) -> Dict[str, int]:
        return {"r": self.r, "g": self.g, "b": self.b, "a": self.a}

    @staticmethod
    def from_dict(data: dict) -> "PixelRGBA":
        values = []
        for key in ("r", "g", "b", "a"):
            value = int(data[key])
            if not 0 <= value <= 255:
                raise ValueError(f"Color channel '{key}' out of range: {value}")
            values.append(value)
        return PixelRGBA(*values)
