"""RGBA8 bitmaps backed by numpy arrays, with PNG I/O through Pillow.

The buffer is a ``(height, width, 4)`` uint8 array, row-major. Which alpha
convention it holds (straight or premultiplied) is up to the caller; the
``premultiplied``/``unpremultiplied`` helpers convert between the two.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .color import PixelRGBA
from .errors import BakeIOError, ImageDecodeError
from .geometry import Recti, Vec2i

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class Bitmap:
    __slots__ = ("data",)

    def __init__(self, data: np.ndarray):
        if data.ndim != 3 or data.shape[2] != 4:
            raise ValueError(f"Expected an (h, w, 4) array, got shape {data.shape}")
        if data.shape[0] <= 0 or data.shape[1] <= 0:
            raise ValueError(f"Bitmap dimensions must be positive, got {data.shape[1]}x{data.shape[0]}")
        self.data = np.ascontiguousarray(data, dtype=np.uint8)

    # ------------------------------------------------------------------
    # Construction

    @staticmethod
    def new(width: int, height: int, fill: PixelRGBA = PixelRGBA.transparent()) -> "Bitmap":
        if width <= 0 or height <= 0:
            raise ValueError(f"Bitmap dimensions must be positive, got {width}x{height}")
        data = np.empty((height, width, 4), dtype=np.uint8)
        data[...] = np.asarray(fill, dtype=np.uint8)
        return Bitmap(data)

    @staticmethod
    def from_image(im: Image.Image) -> "Bitmap":
        if im.mode != "RGBA":
            im = im.convert("RGBA")
        return Bitmap(np.array(im, dtype=np.uint8))

    def to_image(self) -> Image.Image:
        return Image.fromarray(self.data)

    # ------------------------------------------------------------------
    # PNG I/O

    @staticmethod
    def load_png(path: PathLike) -> "Bitmap":
        path = Path(path)
        try:
            with Image.open(path) as im:
                im.load()
                return Bitmap.from_image(im)
        except FileNotFoundError as e:
            raise BakeIOError(f"Missing image: {path}") from e
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise ImageDecodeError(f"Could not decode image {path}: {e}") from e

    def save_png(self, path: PathLike) -> None:
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self.to_image().save(path, "PNG")
        except OSError as e:
            raise BakeIOError(f"Could not write image {path}: {e}") from e
        logger.debug("Wrote %s (%dx%d)", path, self.width, self.height)

    # ------------------------------------------------------------------
    # Accessors

    @property
    def width(self) -> int:
        return int(self.data.shape[1])

    @property
    def height(self) -> int:
        return int(self.data.shape[0])

    @property
    def dim(self) -> Vec2i:
        return Vec2i(self.width, self.height)

    @property
    def rect(self) -> Recti:
        return Recti(0, 0, self.width, self.height)

    def get(self, x: int, y: int) -> PixelRGBA:
        return PixelRGBA(*(int(c) for c in self.data[y, x]))

    def set(self, x: int, y: int, color: PixelRGBA) -> None:
        self.data[y, x] = color

    def copy(self) -> "Bitmap":
        return Bitmap(self.data.copy())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Bitmap):
            return NotImplemented
        return self.data.shape == other.data.shape and bool(np.array_equal(self.data, other.data))

    def __repr__(self) -> str:
        return f"Bitmap({self.width}x{self.height})"

    # ------------------------------------------------------------------
    # Queries

    def has_translucency(self) -> bool:
        """True iff any alpha value lies strictly between 0 and 255."""
        alpha = self.data[..., 3]
        return bool(np.any((alpha != 0) & (alpha != 255)))

    def count_color(self, color: PixelRGBA) -> int:
        return int(np.count_nonzero(np.all(self.data == np.asarray(color, dtype=np.uint8), axis=2)))

    # ------------------------------------------------------------------
    # Mutation

    def fill_rect(self, rect: Recti, color: PixelRGBA) -> None:
        clipped = rect.clipped_by(self.rect)
        if clipped is None:
            return
        self.data[clipped.top:clipped.bottom, clipped.left:clipped.right] = color

    def blit(self, source: "Bitmap", pos: Vec2i, mask_color: Optional[PixelRGBA] = None) -> None:
        """Copy ``source`` with its top-left at ``pos``, clipping at the edges.

        With a ``mask_color`` set, source pixels of exactly that color are
        skipped and leave the destination untouched.
        """
        target = Recti(pos.x, pos.y, source.width, source.height)
        clipped = target.clipped_by(self.rect)
        if clipped is None:
            return
        sx = clipped.x - pos.x
        sy = clipped.y - pos.y
        src = source.data[sy:sy + clipped.h, sx:sx + clipped.w]
        dst = self.data[clipped.top:clipped.bottom, clipped.left:clipped.right]
        if mask_color is None:
            dst[...] = src
        else:
            keep = ~np.all(src == np.asarray(mask_color, dtype=np.uint8), axis=2)
            dst[keep] = src[keep]

    # ------------------------------------------------------------------
    # Transforms returning new bitmaps

    def premultiplied(self) -> "Bitmap":
        """Scale RGB by A/255, rounding to nearest."""
        arr = self.data.astype(np.uint32)
        alpha = arr[..., 3:4]
        rgb = (arr[..., :3] * alpha + 127) // 255
        return Bitmap(np.concatenate([rgb, alpha], axis=2).astype(np.uint8))

    def unpremultiplied(self) -> "Bitmap":
        arr = self.data.astype(np.uint32)
        alpha = arr[..., 3:4]
        denom = np.maximum(alpha, 1)
        rgb = (arr[..., :3] * 255 + denom // 2) // denom
        rgb = np.where(alpha == 0, 0, np.minimum(rgb, 255))
        return Bitmap(np.concatenate([rgb, alpha], axis=2).astype(np.uint8))

    def scaled_nearest(self, factor: int) -> "Bitmap":
        if factor < 1:
            raise ValueError(f"Scale factor must be >= 1, got {factor}")
        return Bitmap(np.repeat(np.repeat(self.data, factor, axis=0), factor, axis=1))

    def extended(
        self,
        left: int,
        top: int,
        right: int,
        bottom: int,
        fill: PixelRGBA = PixelRGBA.transparent(),
    ) -> "Bitmap":
        result = Bitmap.new(self.width + left + right, self.height + top + bottom, fill)
        result.blit(self, Vec2i(left, top))
        return result

    def sub_bitmap(self, rect: Recti) -> "Bitmap":
        if not self.rect.contains_rect(rect) or rect.is_empty():
            raise ValueError(f"{rect} is not a non-empty region of {self!r}")
        return Bitmap(self.data[rect.top:rect.bottom, rect.left:rect.right].copy())

    def trimmed_by_value(
        self,
        value: PixelRGBA = PixelRGBA.transparent(),
        left: bool = True,
        top: bool = True,
        right: bool = True,
        bottom: bool = True,
    ) -> Optional[Tuple["Bitmap", Recti]]:
        """Strip rows/columns consisting only of ``value`` from the chosen sides.

        Returns the trimmed bitmap and the kept region in this bitmap's
        coordinates, or None when every pixel equals ``value``.
        """
        differs = np.any(self.data != np.asarray(value, dtype=np.uint8), axis=2)
        rows = np.flatnonzero(differs.any(axis=1))
        cols = np.flatnonzero(differs.any(axis=0))
        if rows.size == 0:
            return None
        x0 = int(cols[0]) if left else 0
        y0 = int(rows[0]) if top else 0
        x1 = int(cols[-1]) + 1 if right else self.width
        y1 = int(rows[-1]) + 1 if bottom else self.height
        kept = Recti(x0, y0, x1 - x0, y1 - y0)
        return self.sub_bitmap(kept), kept
