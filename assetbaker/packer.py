"""Rectangle packing of named bitmaps into square atlas pages.

Placement uses rectpack's MaxRects best-short-side-fit without rotation,
fed one rectangle at a time (online), so the result depends only on the
insertion order.

- ``AtlasPage``: one fixed-size page.
- ``GrowingAtlas``: a page that doubles its side on failure, up to a maximum.
- ``MultiPageAtlas``: a list of pages of the maximum side; a bitmap that fits
  no existing page opens a new one.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from rectpack.maxrects import MaxRectsBssf

from .assets import AtlasPlacement
from .bitmap import Bitmap
from .color import PixelRGBA
from .errors import PackError
from .geometry import Recti, Vec2i

logger = logging.getLogger(__name__)


class AtlasPage:
    """A single square page of side ``size``.

    With ``reserve_last_row`` the bottom row is never handed out, leaving
    room for a white swatch pixel.
    """

    def __init__(self, size: int, reserve_last_row: bool = False):
        if size <= 0:
            raise ValueError(f"Atlas size must be positive, got {size}")
        self.size = size
        self.reserve_last_row = reserve_last_row
        self.bitmap = Bitmap.new(size, size)
        self.placements: Dict[str, Vec2i] = {}
        self._bin = self._new_bin(size)

    def _new_bin(self, size: int) -> MaxRectsBssf:
        usable_height = size - 1 if self.reserve_last_row else size
        return MaxRectsBssf(size, usable_height, rot=False)

    def _place(self, packer: MaxRectsBssf, name: str, width: int, height: int) -> Optional[Vec2i]:
        rect = packer.add_rect(width, height, name)
        if rect is None:
            return None
        return Vec2i(int(rect.x), int(rect.y))

    def pack(self, name: str, bitmap: Bitmap) -> Optional[Vec2i]:
        if name in self.placements:
            raise PackError(f"'{name}' was already packed")
        pos = self._place(self._bin, name, bitmap.width, bitmap.height)
        if pos is None:
            return None
        self.placements[name] = pos
        self.bitmap.blit(bitmap, pos)
        return pos

    def paint_white_swatch(self) -> None:
        self.bitmap.set(self.size - 1, self.size - 1, PixelRGBA.white())


class GrowingAtlas(AtlasPage):
    """An ``AtlasPage`` that doubles its side when a bitmap does not fit.

    Growing re-packs every earlier bitmap, in insertion order, into the
    larger page, so earlier placements may move.
    """

    def __init__(self, initial_size: int, max_size: Optional[int] = None, reserve_last_row: bool = False):
        if max_size is not None and max_size < initial_size:
            raise ValueError(f"Maximum atlas size {max_size} is smaller than the initial size {initial_size}")
        super().__init__(initial_size, reserve_last_row)
        self.max_size = max_size
        self._entries: List[Tuple[str, Bitmap]] = []

    def pack(self, name: str, bitmap: Bitmap) -> Optional[Vec2i]:
        while True:
            pos = super().pack(name, bitmap)
            if pos is not None:
                self._entries.append((name, bitmap))
                return pos
            if not self._grow():
                return None

    def _grow(self) -> bool:
        size = self.size
        while self.max_size is None or size < self.max_size:
            size = size * 2 if self.max_size is None else min(size * 2, self.max_size)
            packer = self._new_bin(size)
            placements: Dict[str, Vec2i] = {}
            for name, bitmap in self._entries:
                pos = self._place(packer, name, bitmap.width, bitmap.height)
                if pos is None:
                    break
                placements[name] = pos
            else:
                logger.debug("Atlas grew from %d to %d", self.size, size)
                self.size = size
                self._bin = packer
                self.placements = placements
                self.bitmap = Bitmap.new(size, size)
                for name, bitmap in self._entries:
                    self.bitmap.blit(bitmap, placements[name])
                return True
        return False

    def trimmed_bitmap(self) -> Bitmap:
        """The page cut on the right and bottom to the extent of its placed bitmaps.

        Transparent padding inside a placed bitmap is kept, so every placement
        stays within the returned sheet.
        """
        width = height = 0
        for name, bitmap in self._entries:
            pos = self.placements[name]
            width = max(width, pos.x + bitmap.width)
            height = max(height, pos.y + bitmap.height)
        if width == 0 or height == 0:
            return Bitmap.new(1, 1)
        return self.bitmap.sub_bitmap(Recti.from_width_height(width, height))


class MultiPageAtlas:
    def __init__(self, page_size: int, reserve_last_row: bool = False):
        self.page_size = page_size
        self.reserve_last_row = reserve_last_row
        self.pages: List[GrowingAtlas] = []
        self.placements: Dict[str, AtlasPlacement] = {}

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def _new_page(self) -> GrowingAtlas:
        page = GrowingAtlas(self.page_size, self.page_size, self.reserve_last_row)
        self.pages.append(page)
        logger.debug("Opened atlas page %d", len(self.pages) - 1)
        return page

    def pack(self, name: str, bitmap: Bitmap) -> AtlasPlacement:
        if name in self.placements:
            raise PackError(f"Duplicate packed bitmap name '{name}'")
        usable_height = self.page_size - 1 if self.reserve_last_row else self.page_size
        if bitmap.width > self.page_size or bitmap.height > usable_height:
            raise PackError(
                f"'{name}' ({bitmap.width}x{bitmap.height}) does not fit an atlas page of {self.page_size}x{self.page_size}"
            )
        for page_index, page in enumerate(self.pages):
            pos = page.pack(name, bitmap)
            if pos is not None:
                return self._record(name, page_index, pos)
        page = self._new_page()
        pos = page.pack(name, bitmap)
        if pos is None:
            raise PackError(f"'{name}' ({bitmap.width}x{bitmap.height}) could not be placed on an empty atlas page")
        return self._record(name, len(self.pages) - 1, pos)

    def _record(self, name: str, page_index: int, pos: Vec2i) -> AtlasPlacement:
        placement = AtlasPlacement(page_index, pos)
        self.placements[name] = placement
        return placement

    def page_bitmaps(self, white_swatch: bool = False) -> List[Bitmap]:
        bitmaps = []
        for page in self.pages:
            if white_swatch:
                page.paint_white_swatch()
            bitmaps.append(page.bitmap)
        return bitmaps
