from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from assetbaker.bitmap import Bitmap
from assetbaker.color import PixelRGBA
from assetbaker.errors import BakeIOError, ImageDecodeError
from assetbaker.geometry import Recti, Vec2i


class BitmapTests(unittest.TestCase):
    def test_new_fills_and_rejects_empty(self) -> None:
        bm = Bitmap.new(3, 2, PixelRGBA(1, 2, 3, 4))
        self.assertEqual((bm.width, bm.height), (3, 2))
        self.assertEqual(bm.get(2, 1), PixelRGBA(1, 2, 3, 4))
        with self.assertRaises(ValueError):
            Bitmap.new(0, 5)

    def test_premultiply_rounds_to_nearest(self) -> None:
        bm = Bitmap.new(3, 1)
        bm.set(0, 0, PixelRGBA(200, 100, 50, 128))
        bm.set(1, 0, PixelRGBA(255, 255, 255, 0))
        bm.set(2, 0, PixelRGBA(10, 20, 30, 255))
        pm = bm.premultiplied()
        self.assertEqual(pm.get(0, 0), PixelRGBA(100, 50, 25, 128))
        self.assertEqual(pm.get(1, 0), PixelRGBA(0, 0, 0, 0))
        self.assertEqual(pm.get(2, 0), PixelRGBA(10, 20, 30, 255))
        # Source is untouched.
        self.assertEqual(bm.get(0, 0), PixelRGBA(200, 100, 50, 128))

    def test_unpremultiply_inverts_opaque_and_clears_transparent(self) -> None:
        bm = Bitmap.new(2, 1)
        bm.set(0, 0, PixelRGBA(100, 50, 25, 128))
        bm.set(1, 0, PixelRGBA(9, 9, 9, 0))
        straight = bm.unpremultiplied()
        self.assertEqual(straight.get(0, 0), PixelRGBA(199, 100, 50, 128))
        self.assertEqual(straight.get(1, 0), PixelRGBA(0, 0, 0, 0))

    def test_has_translucency(self) -> None:
        bm = Bitmap.new(4, 4)
        bm.fill_rect(Recti(0, 0, 2, 2), PixelRGBA(255, 0, 0, 255))
        self.assertFalse(bm.has_translucency())
        bm.set(3, 3, PixelRGBA(0, 0, 0, 1))
        self.assertTrue(bm.has_translucency())

    def test_blit_clips_and_honours_mask(self) -> None:
        dst = Bitmap.new(4, 4, PixelRGBA(0, 0, 255, 255))
        src = Bitmap.new(3, 3, PixelRGBA(255, 0, 0, 255))
        src.set(1, 1, PixelRGBA.transparent())
        dst.blit(src, Vec2i(2, 2), mask_color=PixelRGBA.transparent())
        self.assertEqual(dst.get(2, 2), PixelRGBA(255, 0, 0, 255))
        self.assertEqual(dst.get(3, 3), PixelRGBA(0, 0, 255, 255))  # masked pixel kept the destination
        self.assertEqual(dst.get(1, 1), PixelRGBA(0, 0, 255, 255))

        dst.blit(src, Vec2i(-2, -2))
        self.assertEqual(dst.get(0, 0), PixelRGBA(255, 0, 0, 255))

    def test_trim_by_value(self) -> None:
        bm = Bitmap.new(10, 10)
        bm.set(2, 3, PixelRGBA.white())
        bm.set(5, 7, PixelRGBA.white())
        trimmed, kept = bm.trimmed_by_value()
        self.assertEqual(kept, Recti(2, 3, 4, 5))
        self.assertEqual(trimmed.get(0, 0), PixelRGBA.white())
        self.assertEqual(trimmed.get(3, 4), PixelRGBA.white())

        _, kept = bm.trimmed_by_value(left=False, top=False)
        self.assertEqual(kept, Recti(0, 0, 6, 8))

        self.assertIsNone(Bitmap.new(3, 3).trimmed_by_value())

    def test_scale_and_extend(self) -> None:
        bm = Bitmap.new(2, 1)
        bm.set(1, 0, PixelRGBA.white())
        scaled = bm.scaled_nearest(2)
        self.assertEqual((scaled.width, scaled.height), (4, 2))
        self.assertEqual(scaled.get(3, 1), PixelRGBA.white())
        self.assertEqual(scaled.get(1, 1), PixelRGBA.transparent())

        ext = bm.extended(1, 2, 3, 4, PixelRGBA.black())
        self.assertEqual((ext.width, ext.height), (6, 7))
        self.assertEqual(ext.get(0, 0), PixelRGBA.black())
        self.assertEqual(ext.get(2, 2), PixelRGBA.white())

    def test_png_round_trip_and_errors(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = Path(td) / "sub" / "x.png"
            bm = Bitmap.new(5, 3, PixelRGBA(10, 20, 30, 40))
            bm.save_png(path)
            self.assertEqual(Bitmap.load_png(path), bm)

            bad = Path(td) / "bad.png"
            bad.write_bytes(b"not a png")
            with self.assertRaises(ImageDecodeError):
                Bitmap.load_png(bad)
            with self.assertRaises(BakeIOError):
                Bitmap.load_png(Path(td) / "missing.png")


if __name__ == "__main__":
    unittest.main()
