from __future__ import annotations

import itertools
import unittest

from assetbaker.bitmap import Bitmap
from assetbaker.color import PixelRGBA
from assetbaker.errors import PackError
from assetbaker.geometry import Recti
from assetbaker.packer import AtlasPage, GrowingAtlas, MultiPageAtlas


def _solid(w: int, h: int, value: int) -> Bitmap:
    return Bitmap.new(w, h, PixelRGBA(value, 255 - value, value // 2, 255))


class PackerTests(unittest.TestCase):
    def assertNoOverlap(self, rects) -> None:
        for a, b in itertools.combinations(rects, 2):
            self.assertFalse(a.intersects(b), f"{a} overlaps {b}")

    def test_single_page_packs_until_full(self) -> None:
        page = AtlasPage(16)
        rects = []
        for i in range(4):
            pos = page.pack(f"q{i}", _solid(8, 8, i * 40))
            self.assertIsNotNone(pos)
            rects.append(Recti(pos.x, pos.y, 8, 8))
        self.assertNoOverlap(rects)
        for rect in rects:
            self.assertTrue(Recti(0, 0, 16, 16).contains_rect(rect))
        self.assertIsNone(page.pack("extra", _solid(1, 1, 0)))

    def test_single_page_blits_pixels(self) -> None:
        page = AtlasPage(8)
        bm = _solid(3, 2, 100)
        pos = page.pack("a", bm)
        self.assertEqual(page.bitmap.sub_bitmap(Recti(pos.x, pos.y, 3, 2)), bm)

    def test_reserve_last_row(self) -> None:
        page = AtlasPage(4, reserve_last_row=True)
        self.assertIsNone(page.pack("tall", _solid(4, 4, 0)))
        self.assertIsNotNone(page.pack("fits", _solid(4, 3, 0)))
        page.paint_white_swatch()
        self.assertEqual(page.bitmap.get(3, 3), PixelRGBA.white())

    def test_growing_atlas_doubles_and_repacks(self) -> None:
        atlas = GrowingAtlas(4, 16)
        bitmaps = {f"b{i}": _solid(4, 4, i * 20) for i in range(5)}
        for name, bm in bitmaps.items():
            self.assertIsNotNone(atlas.pack(name, bm))
        self.assertEqual(atlas.size, 16)
        self.assertEqual(set(atlas.placements), set(bitmaps))
        rects = [Recti(p.x, p.y, 4, 4) for p in atlas.placements.values()]
        self.assertNoOverlap(rects)
        for name, pos in atlas.placements.items():
            self.assertEqual(atlas.bitmap.sub_bitmap(Recti(pos.x, pos.y, 4, 4)), bitmaps[name])

    def test_growing_atlas_gives_up_at_max(self) -> None:
        atlas = GrowingAtlas(4, 8)
        self.assertIsNone(atlas.pack("huge", _solid(9, 1, 0)))
        self.assertEqual(atlas.placements, {})

    def test_growing_atlas_trims_right_and_bottom_only(self) -> None:
        atlas = GrowingAtlas(16, 16)
        atlas.pack("a", _solid(3, 5, 10))
        trimmed = atlas.trimmed_bitmap()
        pos = atlas.placements["a"]
        self.assertEqual((trimmed.width, trimmed.height), (pos.x + 3, pos.y + 5))

    def test_trim_keeps_transparent_padding_of_placed_bitmaps(self) -> None:
        atlas = GrowingAtlas(16, 16)
        padded = Bitmap.new(6, 6)
        padded.fill_rect(Recti(2, 2, 2, 2), PixelRGBA.white())
        atlas.pack("padded", padded)
        trimmed = atlas.trimmed_bitmap()
        pos = atlas.placements["padded"]
        self.assertEqual((trimmed.width, trimmed.height), (pos.x + 6, pos.y + 6))
        self.assertEqual(trimmed.sub_bitmap(Recti(pos.x, pos.y, 6, 6)), padded)

    def test_trim_of_empty_atlas(self) -> None:
        self.assertEqual(GrowingAtlas(8, 8).trimmed_bitmap().dim, Bitmap.new(1, 1).dim)

    def test_multi_page_spills_to_second_page(self) -> None:
        atlas = MultiPageAtlas(1024)
        bitmaps = {f"quad{i}": _solid(512, 512, 30 + i * 50) for i in range(4)}
        bitmaps["speck"] = _solid(1, 1, 7)
        for name, bm in bitmaps.items():
            atlas.pack(name, bm)

        self.assertGreaterEqual(atlas.page_count, 2)
        self.assertEqual(atlas.placements["speck"].page_index, 1)
        pages = atlas.page_bitmaps()
        for name, bm in bitmaps.items():
            placement = atlas.placements[name]
            rect = Recti(placement.offset.x, placement.offset.y, bm.width, bm.height)
            self.assertTrue(Recti(0, 0, 1024, 1024).contains_rect(rect))
            self.assertEqual(pages[placement.page_index].sub_bitmap(rect), bm)

    def test_multi_page_rejects_oversized_and_duplicates(self) -> None:
        atlas = MultiPageAtlas(32)
        with self.assertRaises(PackError):
            atlas.pack("wide", _solid(33, 1, 0))
        atlas.pack("a", _solid(2, 2, 0))
        with self.assertRaises(PackError):
            atlas.pack("a", _solid(2, 2, 0))

    def test_multi_page_reserved_row_limits_height(self) -> None:
        atlas = MultiPageAtlas(32, reserve_last_row=True)
        with self.assertRaises(PackError):
            atlas.pack("full", _solid(32, 32, 0))
        atlas.pack("almost", _solid(32, 31, 0))
        pages = atlas.page_bitmaps(white_swatch=True)
        self.assertEqual(pages[0].get(31, 31), PixelRGBA.white())


if __name__ == "__main__":
    unittest.main()
