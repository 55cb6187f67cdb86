"""Cropper: narrows a full-page diff to the rows that changed."""

from __future__ import annotations

import logging
from pathlib import Path

from visreg.errors import ToolError
from visreg.models.comparison import BoundingBox, CropRegion
from visreg.models.config import CompareConfig
from visreg.tools import ToolRunner

from .geometry import compute_crop_region, parse_bounding_box

logger = logging.getLogger(__name__)


class Cropper:
    def __init__(self, config: CompareConfig, runner: ToolRunner):
        self.config = config
        self.runner = runner

    def bounding_box(self, mask: Path) -> BoundingBox | None:
        """Trim the mask to its non-transparent content and report the box."""
        try:
            proc = self.runner.run([
                self.config.convert_binary, str(mask),
                "-alpha", "extract",
                "-trim",
                "-format", "%wx%h+%X+%Y",
                "info:",
            ])
        except ToolError as e:
            logger.warning("Bounding box detection failed for %s: %s", mask.name, e)
            return None

        output = proc.stdout or ""
        logger.debug("Bounding box output for %s: %r", mask.name, output)
        bbox = parse_bounding_box(output)
        if bbox is None:
            logger.warning("Could not parse bounding box for %s from %r", mask.name, output)
        return bbox

    def crop_region(self, bbox: BoundingBox, image_width: int, image_height: int) -> CropRegion:
        return compute_crop_region(
            bbox,
            image_width,
            image_height,
            padding=self.config.crop_padding,
            min_height=self.config.crop_min_height,
        )

    def crop(self, src: Path, region: CropRegion, dst: Path) -> Path:
        self.runner.run([
            self.config.convert_binary, str(src),
            "-crop", region.geometry,
            "+repage",
            str(dst),
        ])
        return dst
