"""Compositor: assembles cropped regions into one shareable image."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from visreg.models.config import CompareConfig
from visreg.tools import ToolRunner

logger = logging.getLogger(__name__)


class Compositor:
    def __init__(self, config: CompareConfig, runner: ToolRunner):
        self.config = config
        self.runner = runner

    def frames(self, base: Path, diff: Optional[Path], candidate: Path) -> list[Path]:
        """Frames in display order: base, diff (when enabled), candidate."""
        if self.config.include_diff_in_output and diff is not None:
            return [base, diff, candidate]
        return [base, candidate]

    def compose(self, stem: str, frames: list[Path], out_dir: Path) -> Path:
        if self.config.output_format == "animated-gif":
            return self._animated(stem, frames, out_dir)
        return self._side_by_side(stem, frames, out_dir)

    def _side_by_side(self, stem: str, frames: list[Path], out_dir: Path) -> Path:
        output = out_dir / f"{stem}-combined.png"
        self.runner.run([
            self.config.convert_binary,
            *(str(f) for f in frames),
            "+append",
            str(output),
        ])
        logger.info("Created side-by-side image: %s", output)
        return output

    def _animated(self, stem: str, frames: list[Path], out_dir: Path) -> Path:
        output = out_dir / f"{stem}-animated.gif"
        # ImageMagick delays are in centiseconds
        delay = round(self.config.gif_frame_delay / 10)
        self.runner.run([
            self.config.convert_binary,
            "-delay", str(delay),
            "-loop", "0",
            *(str(f) for f in frames),
            str(output),
        ])
        logger.info(
            "Created animated GIF with %dms per frame (%d frames): %s",
            self.config.gif_frame_delay, len(frames), output,
        )
        return output
