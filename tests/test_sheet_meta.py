from __future__ import annotations

import json
import unittest

from assetbaker.errors import MetadataError
from assetbaker.geometry import Recti, Vec2i
from assetbaker.sheet_meta import parse_sheet_meta


def _frame(x, y, w, h, sx, sy, cw=32, ch=32, duration=100, rotated=False):
    return {
        "filename": "f.ase",
        "frame": {"x": x, "y": y, "w": w, "h": h},
        "rotated": rotated,
        "trimmed": True,
        "spriteSourceSize": {"x": sx, "y": sy, "w": w, "h": h},
        "sourceSize": {"w": cw, "h": ch},
        "duration": duration,
    }


class SheetMetaTests(unittest.TestCase):
    def test_parses_frames_tags_and_layers(self) -> None:
        text = json.dumps({
            "frames": [_frame(0, 0, 10, 6, 5, 9), _frame(10, 0, 4, 4, 1, 2, duration=50)],
            "meta": {
                "app": "http://www.aseprite.org/",
                "version": "1.3",
                "image": "hero.png",
                "format": "RGBA8888",
                "size": {"w": 14, "h": 6},
                "scale": "1",
                "frameTags": [{"name": "walk", "from": 0, "to": 1, "direction": "pingpong", "color": "#000000ff"}],
                "layers": [{"name": "body", "opacity": 255, "blendMode": "normal"}],
            },
        })
        meta = parse_sheet_meta(text)
        self.assertEqual(meta.frame_count, 2)
        self.assertEqual(meta.frames[0].packed_rect, Recti(0, 0, 10, 6))
        self.assertEqual(meta.frames[0].source_rect, Recti(5, 9, 10, 6))
        self.assertEqual(meta.frames[0].source_dim, Vec2i(32, 32))
        self.assertEqual(meta.frames[1].duration_ms, 50)
        self.assertEqual(meta.frame_tags[0].name, "walk")
        self.assertEqual(list(meta.frame_tags[0].frame_indices), [0, 1])
        self.assertEqual(meta.frame_tags[0].direction, "pingpong")
        self.assertEqual(meta.layers, ["body"])
        self.assertEqual(meta.size, Vec2i(14, 6))

    def test_empty_file_means_no_frames(self) -> None:
        for text in ("", "  \n"):
            meta = parse_sheet_meta(text)
            self.assertEqual(meta.frame_count, 0)
            self.assertEqual(meta.frame_tags, [])

    def test_zero_size_frame_is_empty(self) -> None:
        meta = parse_sheet_meta(json.dumps({"frames": [_frame(0, 0, 0, 0, 0, 0)], "meta": {}}))
        self.assertTrue(meta.frames[0].is_empty())

    def test_rejects_rotation(self) -> None:
        with self.assertRaises(MetadataError):
            parse_sheet_meta(json.dumps({"frames": [_frame(0, 0, 1, 1, 0, 0, rotated=True)], "meta": {}}))

    def test_rejects_garbage_and_hash_format(self) -> None:
        with self.assertRaises(MetadataError):
            parse_sheet_meta("{not json")
        with self.assertRaises(MetadataError):
            parse_sheet_meta(json.dumps({"frames": {"a.ase": _frame(0, 0, 1, 1, 0, 0)}, "meta": {}}))

    def test_rejects_missing_keys_and_bad_tags(self) -> None:
        broken = _frame(0, 0, 1, 1, 0, 0)
        del broken["sourceSize"]
        with self.assertRaises(MetadataError):
            parse_sheet_meta(json.dumps({"frames": [broken], "meta": {}}))
        with self.assertRaises(MetadataError):
            parse_sheet_meta(json.dumps({
                "frames": [_frame(0, 0, 1, 1, 0, 0)],
                "meta": {"frameTags": [{"name": "x", "from": 0, "to": 3}]},
            }))
        with self.assertRaises(MetadataError):
            parse_sheet_meta(json.dumps({"frames": [_frame(0, 0, 1, 1, 0, 0, duration=-1)], "meta": {}}))


if __name__ == "__main__":
    unittest.main()
