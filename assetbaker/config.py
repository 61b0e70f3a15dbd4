from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from .aseprite import DEFAULT_COMMAND


def _default_workers() -> int:
    return max(1, os.cpu_count() or 1)


@dataclass(frozen=True)
class BakeConfig:
    """Everything a bake needs to know. Paths may be relative to the working directory."""

    source_dir: Path = Path("assets")
    scratch_dir: Path = Path("target/assets_temp")
    dest_dir: Path = Path("resources")
    aseprite_command: Tuple[str, ...] = DEFAULT_COMMAND
    atlas_page_size: int = 1024
    font_sheet_size_initial: int = 64
    font_sheet_size_max: Optional[int] = 1024
    font_atlas_padding: int = 0
    fastpath_glyph_count: int = 256
    reserve_white_pixel: bool = False
    max_workers: int = field(default_factory=_default_workers)
    show_progress: bool = True

    def __post_init__(self):
        for name in ("source_dir", "scratch_dir", "dest_dir"):
            object.__setattr__(self, name, Path(getattr(self, name)))
        object.__setattr__(self, "aseprite_command", tuple(str(p) for p in self.aseprite_command))
        if self.atlas_page_size <= 0:
            raise ValueError(f"atlas_page_size must be positive, got {self.atlas_page_size}")
        if self.font_sheet_size_initial <= 0:
            raise ValueError(f"font_sheet_size_initial must be positive, got {self.font_sheet_size_initial}")
        if self.font_sheet_size_max is not None:
            if self.font_sheet_size_max > self.atlas_page_size:
                raise ValueError("font_sheet_size_max must not exceed atlas_page_size")
            if self.font_sheet_size_max < self.font_sheet_size_initial:
                raise ValueError("font_sheet_size_max must not be smaller than font_sheet_size_initial")
        if self.font_atlas_padding < 0:
            raise ValueError(f"font_atlas_padding must not be negative, got {self.font_atlas_padding}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")

    # Scratch layout
    @property
    def sheets_scratch_dir(self) -> Path:
        return self.scratch_dir / "sheets"

    @property
    def fonts_scratch_dir(self) -> Path:
        return self.scratch_dir / "fonts"

    @property
    def stack_scratch_dir(self) -> Path:
        return self.scratch_dir / "stack"

    @property
    def font_test_dir(self) -> Path:
        return self.scratch_dir / "font_test"

    @property
    def fonts_source_dir(self) -> Path:
        return self.source_dir / "fonts"
