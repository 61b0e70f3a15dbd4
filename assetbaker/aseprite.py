"""Thin wrapper around the Aseprite command line.

Every call runs the tool in batch mode with captured output and fails loudly:
a non-zero exit or a missing output file raises ``ToolInvocationError``
carrying the full command line, stdout and stderr. Nothing is retried.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from shutil import which
from typing import List, Sequence, Tuple

from .errors import ToolchainMissingError, ToolInvocationError

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = ("aseprite",)
BACKUP_SUFFIX = ".backup"


def run(cmd: Sequence[str]) -> Tuple[int, str, str]:
    p = subprocess.run(list(cmd), stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    return p.returncode, p.stdout, p.stderr


class Aseprite:
    def __init__(self, command: Sequence[str] = DEFAULT_COMMAND):
        if not command:
            raise ValueError("Aseprite command must not be empty")
        self.command: Tuple[str, ...] = tuple(str(part) for part in command)

    def ensure_available(self) -> None:
        if which(self.command[0]) is None:
            raise ToolchainMissingError(
                f"'{self.command[0]}' not found in PATH. Install Aseprite or pass --aseprite."
            )

    # ------------------------------------------------------------------

    def _invoke(self, args: Sequence[str]) -> str:
        cmd = list(self.command) + [str(a) for a in args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            code, out, err = run(cmd)
        except FileNotFoundError as e:
            raise ToolchainMissingError(f"Could not start '{self.command[0]}': {e}") from e
        except OSError as e:
            raise ToolInvocationError(f"Could not run '{self.command[0]}': {e}", command=cmd) from e
        if code != 0:
            raise ToolInvocationError(f"Command failed with exit code {code}", command=cmd, stdout=out, stderr=err)
        return out

    @staticmethod
    def _require_outputs(cmd_args: Sequence[str], *paths: Path) -> None:
        missing = [str(p) for p in paths if not p.exists()]
        if missing:
            raise ToolInvocationError(
                "Command completed but did not produce " + ", ".join(missing),
                command=list(cmd_args),
            )

    # ------------------------------------------------------------------

    def list_layers(self, source: Path) -> List[str]:
        out = self._invoke(["--batch", "--list-layers", str(source)])
        return [line.strip() for line in out.splitlines() if line.strip()]

    def export_sheet(
        self,
        source: Path,
        ignored_layers: Sequence[str],
        sheet_png: Path,
        meta_json: Path,
    ) -> None:
        """Export a trimmed, rect-packed sheet PNG plus its json-array metadata."""
        args: List[str] = ["--batch", "--list-layers", "--list-tags"]
        for layer in ignored_layers:
            args.extend(["--ignore-layer", layer])
        args.extend([
            "--format", "json-array",
            "--sheet-pack",
            "--trim",
            str(source),
            "--color-mode", "rgb",
            "--sheet", str(sheet_png),
            "--data", str(meta_json),
        ])
        sheet_png.parent.mkdir(parents=True, exist_ok=True)
        meta_json.parent.mkdir(parents=True, exist_ok=True)
        self._invoke(args)
        self._require_outputs(list(self.command) + args, sheet_png, meta_json)

    def export_single_layer(
        self,
        source: Path,
        layer: str,
        sheet_png: Path,
        meta_json: Path,
    ) -> None:
        """Export one layer with empty frames skipped.

        Only the metadata is needed; the PNG is moved aside to
        ``<sheet_png>.backup`` so the atlas packer never collects it.
        """
        args = [
            "--batch", "--list-layers", "--list-tags",
            "--layer", layer,
            "--format", "json-array",
            "--trim",
            "--ignore-empty",
            str(source),
            "--sheet", str(sheet_png),
            "--data", str(meta_json),
        ]
        sheet_png.parent.mkdir(parents=True, exist_ok=True)
        self._invoke(args)
        self._require_outputs(list(self.command) + args, meta_json)
        if sheet_png.exists():
            sheet_png.replace(sheet_png.with_name(sheet_png.name + BACKUP_SUFFIX))

    def save_without_layers(self, source: Path, ignored_layers: Sequence[str], target: Path) -> None:
        """Write a copy of ``source`` with the given layers removed."""
        args: List[str] = ["--batch"]
        for layer in ignored_layers:
            args.extend(["--ignore-layer", layer])
        args.extend([str(source), "--save-as", str(target)])
        target.parent.mkdir(parents=True, exist_ok=True)
        self._invoke(args)
        self._require_outputs(list(self.command) + args, target)
