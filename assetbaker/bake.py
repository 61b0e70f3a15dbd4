"""Full asset bake: sources in, atlas pages and catalogs out.

Phases:
    1. recreate the scratch and destination directories, take the lock
    2. fonts: rasterize + compose every font style (parallel)
    3. sheets: extract every .ase/.aseprite/.png, expanding 3-D stacks (parallel)
    4. pack every scratch sheet/glyph-sheet PNG into atlas pages
    5. fix up UVs and sprite indices
    6. write premultiplied pages, catalogs, audio copies; release the lock

Usage:
    from assetbaker.bake import bake
    from assetbaker.config import BakeConfig

    report = bake(BakeConfig(source_dir=Path("assets")))
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from .aseprite import Aseprite
from .assets import AssetAtlas, AssetCollection
from .bitmap import Bitmap
from .catalog import write_catalogs
from .config import BakeConfig
from .errors import BakeIOError, PackError, StructureError
from .fixup import fixup_atlas
from .fonts import (
    FontRenderParams,
    FontStyle,
    bake_font_style,
    collect_font_files,
    load_font_params,
    load_font_styles,
    write_size_sweep,
)
from .packer import MultiPageAtlas
from .sheets import expand_stack, extract_sheet, is_stack_source, sheet_name_for_source
from .workers import map_ordered

logger = logging.getLogger(__name__)

LOCK_FILENAME = "assetbaker.lock"
IMAGE_SUFFIXES = (".ase", ".aseprite", ".png")
AUDIO_SUFFIXES = (".ogg", ".wav")
RESERVED_SHEET_NAME_CHARS = ".:#"
# Stack layers of one 3-D source run in a nested pool, so at most
# max_workers * STACK_LAYER_WORKERS Aseprite processes are alive at once.
STACK_LAYER_WORKERS = 2


@dataclass
class BakeReport:
    assets: AssetCollection
    atlas: AssetAtlas
    skipped_fonts: List[str] = field(default_factory=list)
    audio_files: List[Path] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    def counts(self) -> Dict[str, int]:
        return {
            "sprites": len(self.assets.sprites),
            "fonts": len(self.assets.fonts),
            "animations": len(self.assets.animations),
            "3D sprites": len(self.assets.sprites_3d),
            "3D animations": len(self.assets.animations_3d),
            "atlas pages": self.atlas.page_count,
            "audio files": len(self.audio_files),
        }


# ----------------------------------------------------------------------
# Filesystem helpers


def _recreate_dir(path: Path) -> None:
    try:
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True)
    except OSError as e:
        raise BakeIOError(f"Could not recreate {path}: {e}") from e


def _check_layout(config: BakeConfig) -> None:
    if not config.source_dir.is_dir():
        raise BakeIOError(f"Source directory not found: {config.source_dir}")
    source = config.source_dir.resolve()
    for label, path in (("scratch", config.scratch_dir), ("destination", config.dest_dir)):
        resolved = path.resolve()
        if resolved == source or resolved in source.parents:
            raise StructureError(f"The {label} directory {path} would wipe the source directory {config.source_dir}")


def _files_with_suffixes(root: Path, suffixes: Tuple[str, ...], exclude: Sequence[Path] = ()) -> List[Path]:
    excluded = [p.resolve() for p in exclude]

    def wanted(p: Path) -> bool:
        if not p.is_file() or p.suffix.lower() not in suffixes:
            return False
        resolved = p.resolve()
        return not any(ex == resolved or ex in resolved.parents for ex in excluded)

    found = [p for p in root.rglob("*") if wanted(p)]
    return sorted(found, key=lambda p: p.relative_to(root).as_posix())


def collect_image_inputs(source_dir: Path, exclude: Sequence[Path] = ()) -> List[Path]:
    return _files_with_suffixes(source_dir, IMAGE_SUFFIXES, exclude)


def collect_packed_pngs(*dirs: Path) -> Dict[str, Path]:
    """Every PNG under the given scratch directories, keyed by file stem."""
    result: Dict[str, Path] = {}
    for root in dirs:
        if not root.is_dir():
            continue
        for path in _files_with_suffixes(root, (".png",)):
            if path.stem in result:
                raise PackError(f"Two packed bitmaps named '{path.stem}': {result[path.stem]} and {path}")
            result[path.stem] = path
    return result


def _validate_sheet_names(inputs: List[Path]) -> None:
    seen: Dict[str, Path] = {}
    for path in inputs:
        name = sheet_name_for_source(path)
        if not name or any(ch in name for ch in RESERVED_SHEET_NAME_CHARS):
            raise StructureError(
                f"Sheet name '{name}' of {path} is empty or contains one of '{RESERVED_SHEET_NAME_CHARS}'"
            )
        if name in seen:
            raise StructureError(f"Sheet name '{name}' is used by both {seen[name]} and {path}")
        seen[name] = path


def copy_audio(source_dir: Path, dest_dir: Path, exclude: Sequence[Path] = ()) -> List[Path]:
    copied = []
    for src in _files_with_suffixes(source_dir, AUDIO_SUFFIXES, tuple(exclude) + (dest_dir,)):
        dst = dest_dir / src.relative_to(source_dir)
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src, dst)
        except OSError as e:
            raise BakeIOError(f"Could not copy {src} to {dst}: {e}") from e
        copied.append(dst)
    return copied


# ----------------------------------------------------------------------
# Phases


def bake_fonts(config: BakeConfig, assets: AssetCollection) -> List[str]:
    """Bake every font style into ``assets``; returns the fonts skipped for lack of parameters."""
    fonts_dir = config.fonts_source_dir
    font_files = collect_font_files(fonts_dir)
    styles = load_font_styles(fonts_dir, font_files)

    params: Dict[str, FontRenderParams] = {}
    skipped: List[str] = []
    for fontname in dict.fromkeys(s.fontname for s in styles):
        p = load_font_params(fonts_dir, fontname)
        if p is None:
            write_size_sweep(font_files[fontname], config.font_test_dir)
            skipped.append(fontname)
        else:
            params[fontname] = p

    jobs = [s for s in styles if s.fontname in params]

    def bake_one(style: FontStyle):
        return bake_font_style(
            style,
            font_files[style.fontname],
            params[style.fontname],
            config.fonts_scratch_dir,
            atlas_padding=config.font_atlas_padding,
            sheet_size_initial=config.font_sheet_size_initial,
            sheet_size_max=config.font_sheet_size_max,
        )

    results = map_ordered(
        bake_one, jobs, max_workers=config.max_workers, desc="Fonts", show_progress=config.show_progress
    )
    for font, sprites in results:
        assets.add_fonts([font])
        assets.add_sprites(sprites)
    logger.info("Baked %d font style(s)", len(results))
    return skipped


def bake_sheets(config: BakeConfig, tool: Aseprite, assets: AssetCollection) -> None:
    inputs = collect_image_inputs(config.source_dir, exclude=(config.scratch_dir, config.dest_dir))
    if not inputs:
        logger.info("No image inputs found under %s", config.source_dir)
        return
    _validate_sheet_names(inputs)
    tool.ensure_available()

    def extract_one(path: Path) -> AssetCollection:
        sheet_name = sheet_name_for_source(path)
        if is_stack_source(path):
            return expand_stack(
                tool,
                path,
                sheet_name,
                config.sheets_scratch_dir,
                config.stack_scratch_dir,
                max_workers=min(config.max_workers, STACK_LAYER_WORKERS),
            )
        return extract_sheet(tool, path, sheet_name, config.sheets_scratch_dir / sheet_name)

    results = map_ordered(
        extract_one, inputs, max_workers=config.max_workers, desc="Sheets", show_progress=config.show_progress
    )
    for result in results:
        assets.merge(result)
    logger.info("Extracted %d sheet source(s)", len(inputs))


def pack_atlas(config: BakeConfig) -> Tuple[AssetAtlas, List[Bitmap]]:
    pngs = collect_packed_pngs(config.sheets_scratch_dir, config.fonts_scratch_dir)
    bitmaps = {name: Bitmap.load_png(path) for name, path in pngs.items()}
    order = sorted(bitmaps, key=lambda n: (-bitmaps[n].height, -bitmaps[n].width, n))

    multi = MultiPageAtlas(config.atlas_page_size, reserve_last_row=config.reserve_white_pixel)
    for name in order:
        multi.pack(name, bitmaps[name])
    atlas = AssetAtlas(
        page_size=config.atlas_page_size,
        page_image_paths=[f"atlas-{i}.png" for i in range(multi.page_count)],
        placements=dict(multi.placements),
    )
    logger.info("Packed %d bitmap(s) into %d atlas page(s)", len(order), atlas.page_count)
    return atlas, multi.page_bitmaps(white_swatch=config.reserve_white_pixel)


def bake(config: BakeConfig) -> BakeReport:
    start = time.perf_counter()
    _check_layout(config)
    _recreate_dir(config.scratch_dir)
    _recreate_dir(config.dest_dir)
    lock = config.dest_dir / LOCK_FILENAME
    try:
        lock.write_text("bake in progress\n", encoding="utf-8")
    except OSError as e:
        raise BakeIOError(f"Could not create {lock}: {e}") from e

    tool = Aseprite(config.aseprite_command)
    assets = AssetCollection()
    skipped = bake_fonts(config, assets)
    bake_sheets(config, tool, assets)

    atlas, pages = pack_atlas(config)
    fixup_atlas(assets, atlas)

    for path, page in zip(atlas.page_image_paths, pages):
        page.premultiplied().save_png(config.dest_dir / path)
    write_catalogs(config.dest_dir, assets, atlas, config.fastpath_glyph_count)
    audio = copy_audio(config.source_dir, config.dest_dir, exclude=(config.scratch_dir,))

    try:
        lock.unlink()
    except OSError as e:
        raise BakeIOError(f"Could not remove {lock}: {e}") from e

    report = BakeReport(assets, atlas, skipped, audio, time.perf_counter() - start)
    logger.info("Bake finished in %.2fs", report.elapsed_seconds)
    return report
