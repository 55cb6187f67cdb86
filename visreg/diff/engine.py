"""Diff engine — wraps odiff and prepares like-sized canvases for it."""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image

from visreg.models.comparison import DiffOutcome
from visreg.models.config import CompareConfig
from visreg.tools import ToolRunner

logger = logging.getLogger(__name__)

# odiff exit statuses
ODIFF_IDENTICAL = 0
ODIFF_LAYOUT_DIFF = 21
ODIFF_PIXEL_DIFF = 22


def image_size(path: Path) -> tuple[int, int]:
    """Return (width, height) read from the image header."""
    with Image.open(path) as img:
        return img.size


class DiffEngine:
    """Compares base and candidate screenshots with the external diff tool."""

    def __init__(self, config: CompareConfig, runner: ToolRunner, work_dir: Path):
        self.config = config
        self.runner = runner
        self.work_dir = work_dir

    def prepare_canvases(self, stem: str, base: Path, candidate: Path) -> tuple[Path, Path]:
        """Return images of equal size, extending copies when dimensions differ.

        Extension pads to the larger width and height anchored at the top-left
        corner; nothing is scaled. The source files are left untouched.
        """
        base_w, base_h = image_size(base)
        cand_w, cand_h = image_size(candidate)
        if (base_w, base_h) == (cand_w, cand_h):
            return base, candidate

        logger.info(
            "Extending canvases for %s (%dx%d vs %dx%d)",
            stem, base_w, base_h, cand_w, cand_h,
        )
        width, height = max(base_w, cand_w), max(base_h, cand_h)
        extended_base = self.work_dir / f"{stem}-base-extended.png"
        extended_candidate = self.work_dir / f"{stem}-new-extended.png"
        self._extend(base, extended_base, width, height)
        self._extend(candidate, extended_candidate, width, height)
        return extended_base, extended_candidate

    def _extend(self, src: Path, dst: Path, width: int, height: int) -> None:
        self.runner.run([
            self.config.convert_binary, str(src),
            "-background", self.config.canvas_background,
            "-gravity", "northwest",
            "-extent", f"{width}x{height}",
            str(dst),
        ])

    def compare(self, base: Path, candidate: Path, diff_output: Path) -> DiffOutcome:
        """Run the diff tool and map its exit status to an outcome."""
        proc = self.runner.run(
            [
                self.config.odiff_binary, str(base), str(candidate), str(diff_output),
                "--threshold", str(self.config.diff_threshold),
            ],
            check=False,
        )
        if proc.returncode == ODIFF_IDENTICAL:
            return DiffOutcome.IDENTICAL
        if proc.returncode == ODIFF_PIXEL_DIFF:
            return DiffOutcome.PIXEL_DIFF
        if proc.returncode == ODIFF_LAYOUT_DIFF:
            return DiffOutcome.LAYOUT_DIFF

        logger.warning(
            "Diff tool exited with unexpected status %d for %s: %s",
            proc.returncode, candidate.name, (proc.stderr or "").strip(),
        )
        return DiffOutcome.UNEXPECTED

    def diff_mask(self, base: Path, candidate: Path, mask_output: Path) -> Path:
        """Write a mask highlighting only the changed pixels."""
        self.runner.run(
            [
                self.config.odiff_binary, str(base), str(candidate), str(mask_output),
                "--diff-mask",
                "--threshold", str(self.config.diff_threshold),
                "--antialiasing",
            ],
            check=False,
        )
        return mask_output
