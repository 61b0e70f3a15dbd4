"""Command line entry point.

Usage:
    assetbaker
    assetbaker --source assets --dest resources --aseprite /opt/aseprite/aseprite -v
"""

from __future__ import annotations

import argparse
import logging
import shlex
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .bake import BakeReport, bake
from .config import BakeConfig
from .errors import BakeError

console = Console(stderr=True)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose, rich_tracebacks=True)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    defaults = BakeConfig()
    ap = argparse.ArgumentParser(
        prog="assetbaker",
        description="Bake Aseprite sheets, PNGs and TrueType fonts into atlas pages plus sprite/font/animation catalogs.",
    )
    ap.add_argument("--source", default=str(defaults.source_dir), help=f"Source asset tree (default: {defaults.source_dir})")
    ap.add_argument("--scratch", default=str(defaults.scratch_dir), help=f"Scratch directory, wiped every run (default: {defaults.scratch_dir})")
    ap.add_argument("--dest", default=str(defaults.dest_dir), help=f"Output directory, wiped every run (default: {defaults.dest_dir})")
    ap.add_argument("--aseprite", default=" ".join(defaults.aseprite_command), help="Aseprite command line (default: aseprite)")
    ap.add_argument("--page-size", type=int, default=defaults.atlas_page_size, help="Atlas page side in pixels (default: %(default)s)")
    ap.add_argument("--font-padding", type=int, default=defaults.font_atlas_padding, help="Transparent pixels around each glyph (default: %(default)s)")
    ap.add_argument("--reserve-white-pixel", action="store_true", help="Keep the last row of every page free and put a white pixel in its bottom-right corner.")
    ap.add_argument("--workers", type=int, default=defaults.max_workers, help="Parallel workers (default: %(default)s)")
    ap.add_argument("--no-progress", action="store_true", help="Hide progress bars.")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging, including every Aseprite invocation.")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap


def config_from_args(args: argparse.Namespace) -> BakeConfig:
    return BakeConfig(
        source_dir=Path(args.source),
        scratch_dir=Path(args.scratch),
        dest_dir=Path(args.dest),
        aseprite_command=tuple(shlex.split(args.aseprite)),
        atlas_page_size=args.page_size,
        font_sheet_size_max=min(1024, args.page_size),
        font_sheet_size_initial=min(64, args.page_size),
        font_atlas_padding=args.font_padding,
        reserve_white_pixel=args.reserve_white_pixel,
        max_workers=args.workers,
        show_progress=not args.no_progress,
    )


def print_summary(report: BakeReport) -> None:
    table = Table(title="Asset bake results")
    table.add_column("Kind")
    table.add_column("Count", justify="right")
    for kind, count in report.counts().items():
        table.add_row(kind, str(count))
    console.print(table)
    if report.skipped_fonts:
        console.print(f"[yellow]Skipped fonts without render parameters:[/yellow] {', '.join(report.skipped_fonts)}")
    console.print(f"[green]Done in {report.elapsed_seconds:.2f}s[/green]")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    try:
        config = config_from_args(args)
    except ValueError as e:
        console.print(f"[red]Invalid arguments: {e}[/red]")
        return 2
    try:
        report = bake(config)
    except BakeError as e:
        console.print(f"[red]Bake failed:[/red] {escape(str(e))}", highlight=False)
        return 1
    print_summary(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
