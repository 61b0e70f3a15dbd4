from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from assetbaker.aseprite import Aseprite
from assetbaker.assets import UNSET
from assetbaker.bitmap import Bitmap
from assetbaker.color import PixelRGBA
from assetbaker.errors import StructureError, ToolInvocationError
from assetbaker.geometry import Recti, Vec2i
from assetbaker.sheets import (
    expand_stack,
    extract_sheet,
    is_stack_source,
    partition_stack_layers,
    sheet_name_for_source,
)

from tests.helpers import BLUE, FAKE_ASEPRITE, GREEN, HALF_WHITE, MARK, RED, layer, write_ase


class SheetExtractionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.tmp = Path(self._td.name)
        self.tool = Aseprite(FAKE_ASEPRITE)
        self.sheets = self.tmp / "sheets"

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_single_frame_sheet(self) -> None:
        source = write_ase(self.tmp / "hero.ase", 32, 32, [100], [layer("body", {0: [[5, 9, 10, 6, RED]]})])
        assets = extract_sheet(self.tool, source, "hero", self.sheets / "hero")

        self.assertEqual(list(assets.sprites), ["hero"])
        sprite = assets.sprites["hero"]
        self.assertEqual(sprite.untrimmed_dim, Vec2i(32, 32))
        self.assertEqual(sprite.trimmed_rect, Recti(5, 9, 10, 6))
        self.assertEqual(sprite.trimmed_uvs, Recti(0, 0, 10, 6))
        self.assertEqual(sprite.pivot_offset, Vec2i(0, 0))
        self.assertEqual(sprite.attachment_points, [Vec2i()] * 4)
        self.assertFalse(sprite.has_translucency)
        self.assertEqual(sprite.page_index, UNSET)

        self.assertEqual(list(assets.animations), ["hero"])
        anim = assets.animations["hero"]
        self.assertEqual(anim.sprite_names, ["hero"])
        self.assertEqual(anim.frame_durations_ms, [100])
        self.assertEqual(anim.sprite_indices, [UNSET])

        self.assertTrue((self.sheets / "hero.png").exists())
        self.assertTrue((self.sheets / "hero.json").exists())

    def test_tagged_animation_sheet(self) -> None:
        cels = {i: [[i, 0, 2, 2, GREEN]] for i in range(4)}
        source = write_ase(
            self.tmp / "slime.ase",
            8,
            8,
            [100, 110, 120, 130],
            [layer("body", cels)],
            tags=[
                {"name": "idle", "from": 0, "to": 1, "direction": "forward"},
                {"name": "move", "from": 2, "to": 3, "direction": "pingpong"},
            ],
        )
        assets = extract_sheet(self.tool, source, "slime", self.sheets / "slime")

        self.assertEqual(list(assets.sprites), ["slime.0", "slime.1", "slime.2", "slime.3"])
        self.assertEqual(list(assets.animations), ["slime:idle", "slime:move"])
        idle = assets.animations["slime:idle"]
        move = assets.animations["slime:move"]
        self.assertEqual(idle.sprite_names, ["slime.0", "slime.1"])
        self.assertEqual(idle.frame_durations_ms, [100, 110])
        self.assertEqual(move.sprite_names, ["slime.2", "slime.3"])
        self.assertEqual(move.frame_durations_ms, [120, 130])
        self.assertEqual(move.direction, "pingpong")
        self.assertEqual(assets.sprites["slime.2"].trimmed_rect, Recti(2, 0, 2, 2))

    def test_anchor_layers(self) -> None:
        source = write_ase(
            self.tmp / "arrow.ase",
            16,
            16,
            [100, 100],
            [
                layer("shaft", {0: [[2, 2, 8, 3, BLUE]], 1: [[3, 2, 8, 3, BLUE]]}),
                layer("pivot", {0: [[4, 4, 1, 1, MARK]], 1: [[5, 4, 1, 1, MARK]]}),
                layer("attachment_2", {0: [[10, 3, 1, 1, MARK]], 1: [[11, 3, 1, 1, MARK]]}),
            ],
        )
        assets = extract_sheet(self.tool, source, "arrow", self.sheets / "arrow")

        first, second = assets.sprites["arrow.0"], assets.sprites["arrow.1"]
        self.assertEqual(first.pivot_offset, Vec2i(4, 4))
        self.assertEqual(second.pivot_offset, Vec2i(5, 4))
        self.assertEqual(first.attachment_points[2], Vec2i(10, 3))
        self.assertEqual(first.attachment_points[0], Vec2i(0, 0))
        # Anchor pixels are not part of the sprite itself.
        self.assertEqual(first.trimmed_rect, Recti(2, 2, 8, 3))

        anchors = self.sheets / "arrow.anchors"
        self.assertTrue((anchors / "pivot.json").exists())
        self.assertTrue((anchors / "pivot.png.backup").exists())
        self.assertFalse((anchors / "pivot.png").exists())

    def test_partial_anchor_layer_is_rejected(self) -> None:
        source = write_ase(
            self.tmp / "arrow.ase",
            16,
            16,
            [100, 100],
            [
                layer("shaft", {0: [[2, 2, 8, 3, BLUE]], 1: [[2, 2, 8, 3, BLUE]]}),
                layer("attachment_0", {0: [[1, 1, 1, 1, MARK]]}),
            ],
        )
        with self.assertRaises(StructureError):
            extract_sheet(self.tool, source, "arrow", self.sheets / "arrow")

    def test_empty_frame_gets_zero_rect(self) -> None:
        source = write_ase(
            self.tmp / "blink.ase", 8, 8, [50, 50], [layer("body", {0: [[1, 1, 3, 3, RED]]})]
        )
        assets = extract_sheet(self.tool, source, "blink", self.sheets / "blink")
        empty = assets.sprites["blink.1"]
        self.assertEqual(empty.trimmed_rect, Recti())
        self.assertEqual(empty.trimmed_uvs, Recti())
        self.assertEqual(empty.untrimmed_dim, Vec2i(8, 8))

    def test_translucency_is_flagged(self) -> None:
        source = write_ase(self.tmp / "ghost.ase", 4, 4, [100], [layer("body", {0: [[0, 0, 2, 2, HALF_WHITE]]})])
        with self.assertLogs("assetbaker.sheets", level="WARNING"):
            assets = extract_sheet(self.tool, source, "ghost", self.sheets / "ghost")
        self.assertTrue(assets.sprites["ghost"].has_translucency)

    def test_png_source(self) -> None:
        bm = Bitmap.new(6, 6)
        bm.fill_rect(Recti(1, 2, 3, 2), PixelRGBA(255, 0, 0, 255))
        bm.save_png(self.tmp / "gem.png")
        assets = extract_sheet(self.tool, self.tmp / "gem.png", "gem", self.sheets / "gem")
        self.assertEqual(assets.sprites["gem"].trimmed_rect, Recti(1, 2, 3, 2))

    def test_missing_source_fails_in_the_tool(self) -> None:
        with self.assertRaises(ToolInvocationError) as ctx:
            extract_sheet(self.tool, self.tmp / "nothing.ase", "nothing", self.sheets / "nothing")
        self.assertIn("cannot open file", ctx.exception.stderr)


class StackTests(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.tmp = Path(self._td.name)
        self.tool = Aseprite(FAKE_ASEPRITE)

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_names(self) -> None:
        self.assertTrue(is_stack_source(Path("tree_3d.ase")))
        self.assertFalse(is_stack_source(Path("tree.ase")))
        self.assertEqual(sheet_name_for_source(Path("a/tree_3d.ase")), "tree")
        self.assertEqual(sheet_name_for_source(Path("a/hero.png")), "hero")

    def test_partition_stack_layers(self) -> None:
        anchors, indices = partition_stack_layers(["2", "pivot", "0", "1"], Path("t_3d.ase"))
        self.assertEqual(anchors, ["pivot"])
        self.assertEqual(indices, [0, 1, 2])
        with self.assertRaises(StructureError):
            partition_stack_layers(["0", "2"], Path("t_3d.ase"))
        with self.assertRaises(StructureError):
            partition_stack_layers(["0", "hat"], Path("t_3d.ase"))
        with self.assertRaises(StructureError):
            partition_stack_layers(["pivot"], Path("t_3d.ase"))

    def test_expand_stack(self) -> None:
        source = write_ase(
            self.tmp / "src" / "tree_3d.ase",
            8,
            8,
            [100, 200],
            [
                layer("0", {0: [[0, 6, 8, 2, GREEN]], 1: [[0, 6, 8, 2, GREEN]]}),
                layer("1", {0: [[2, 3, 4, 3, GREEN]], 1: [[2, 3, 4, 3, GREEN]]}),
                layer("2", {0: [[3, 0, 2, 3, RED]], 1: [[3, 1, 2, 2, RED]]}),
                layer("pivot", {0: [[4, 7, 1, 1, MARK]], 1: [[4, 7, 1, 1, MARK]]}),
            ],
        )
        assets = expand_stack(
            self.tool, source, "tree", self.tmp / "sheets", self.tmp / "stack", max_workers=2
        )

        self.assertEqual(
            list(assets.sprites),
            ["tree#0.0", "tree#0.1", "tree#1.0", "tree#1.1", "tree#2.0", "tree#2.1"],
        )
        self.assertEqual(list(assets.sprites_3d), ["tree.0", "tree.1"])
        self.assertEqual(assets.sprites_3d["tree.1"].layer_sprite_names, ["tree#0.1", "tree#1.1", "tree#2.1"])
        self.assertEqual(list(assets.animations_3d), ["tree"])
        anim = assets.animations_3d["tree"]
        self.assertEqual(anim.sprite_names, ["tree.0", "tree.1"])
        self.assertEqual(anim.frame_durations_ms, [100, 200])

        self.assertEqual(assets.sprites["tree#2.0"].trimmed_rect, Recti(3, 0, 2, 3))
        for name in ("tree#0.0", "tree#1.0", "tree#2.0"):
            self.assertEqual(assets.sprites[name].pivot_offset, Vec2i(4, 7))
        for k in range(3):
            self.assertTrue((self.tmp / "stack" / f"tree#{k}.ase").exists())
            self.assertTrue((self.tmp / "sheets" / f"tree#{k}.png").exists())

    def test_expand_stack_rejects_gaps(self) -> None:
        source = write_ase(
            self.tmp / "bad_3d.ase",
            4,
            4,
            [100],
            [layer("0", {0: [[0, 0, 1, 1, RED]]}), layer("2", {0: [[0, 0, 1, 1, RED]]})],
        )
        with self.assertRaises(StructureError):
            expand_stack(self.tool, source, "bad", self.tmp / "sheets", self.tmp / "stack", max_workers=1)


if __name__ == "__main__":
    unittest.main()
