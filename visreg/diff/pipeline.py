"""Comparison pipeline: classifies two screenshot sets and builds artifacts."""

from __future__ import annotations

import logging
from pathlib import Path

from visreg.errors import CaptureError, ToolError
from visreg.models.comparison import (
    ArtifactKind,
    ComparisonReport,
    ComparisonStatus,
    DiffOutcome,
    ScreenshotComparison,
)
from visreg.models.config import CompareConfig
from visreg.publish.base import make_artifact
from visreg.tools import ToolRunner

from .compositor import Compositor
from .cropper import Cropper
from .engine import DiffEngine, image_size

logger = logging.getLogger(__name__)

SCREENSHOT_SUFFIX = ".png"


def list_screenshots(directory: Path) -> list[str]:
    """Sorted names of the screenshot files directly inside ``directory``."""
    if not directory.is_dir():
        return []
    return sorted(
        p.name for p in directory.iterdir()
        if p.is_file() and p.name.endswith(SCREENSHOT_SUFFIX)
    )


class ComparisonPipeline:
    """Compares a base and a candidate screenshot directory."""

    def __init__(self, config: CompareConfig, work_dir: Path, runner: ToolRunner | None = None):
        self.config = config
        self.work_dir = work_dir
        self.runner = runner or ToolRunner()
        self.engine = DiffEngine(config, self.runner, work_dir)
        self.cropper = Cropper(config, self.runner)
        self.compositor = Compositor(config, self.runner)

    def run(self, base_dir: Path, candidate_dir: Path) -> ComparisonReport:
        """Classify every screenshot in either set and diff those in both."""
        base_names = list_screenshots(base_dir)
        candidate_names = list_screenshots(candidate_dir)
        logger.info("Base screenshots: %d", len(base_names))
        logger.info("Candidate screenshots: %d", len(candidate_names))

        if not candidate_names:
            raise CaptureError(f"No screenshots found in {candidate_dir}")

        self.work_dir.mkdir(parents=True, exist_ok=True)
        base_set = set(base_names)
        candidate_set = set(candidate_names)
        report = ComparisonReport()

        for name in candidate_names:
            candidate = candidate_dir / name
            if name not in base_set:
                logger.info("New screenshot: %s", name)
                report.comparisons.append(ScreenshotComparison(
                    name=name,
                    status=ComparisonStatus.NEW,
                    candidate_path=str(candidate),
                    artifact=make_artifact(name, ArtifactKind.NEW, candidate),
                ))
                continue
            report.comparisons.append(self.compare_pair(name, base_dir / name, candidate))

        for name in base_names:
            if name in candidate_set:
                continue
            logger.info("Deleted screenshot: %s", name)
            base = base_dir / name
            report.comparisons.append(ScreenshotComparison(
                name=name,
                status=ComparisonStatus.DELETED,
                base_path=str(base),
                artifact=make_artifact(name, ArtifactKind.DELETED, base),
            ))

        counts = report.counts()
        logger.info(
            "Comparison complete: %d identical, %d changed, %d new, %d deleted",
            counts["identical"], counts["changed"], counts["new"], counts["deleted"],
        )
        return report

    def compare_pair(self, name: str, base: Path, candidate: Path) -> ScreenshotComparison:
        """Diff one screenshot present in both sets; crop and composite on change."""
        stem = Path(name).stem
        try:
            base_img, candidate_img = self.engine.prepare_canvases(stem, base, candidate)
        except (ToolError, OSError) as e:
            logger.warning("Could not prepare %s for comparison: %s", name, e)
            return ScreenshotComparison(
                name=name,
                status=ComparisonStatus.CHANGED,
                base_path=str(base),
                candidate_path=str(candidate),
                diff_outcome=DiffOutcome.UNEXPECTED,
                skip_reason=f"images could not be prepared: {e}",
            )
        diff_img = self.work_dir / f"{stem}-diff.png"

        outcome = self.engine.compare(base_img, candidate_img, diff_img)
        comparison = ScreenshotComparison(
            name=name,
            status=ComparisonStatus.CHANGED if outcome.changed else ComparisonStatus.IDENTICAL,
            base_path=str(base),
            candidate_path=str(candidate),
            diff_outcome=outcome,
        )
        if not outcome.changed:
            logger.debug("No visual changes in %s", name)
            return comparison

        logger.info("Visual changes detected in %s (%s)", name, outcome.value)
        mask = self.engine.diff_mask(base_img, candidate_img, self.work_dir / f"{stem}-diff-mask.png")
        bbox = self.cropper.bounding_box(mask)
        if bbox is None:
            comparison.skip_reason = "changed region could not be determined"
            return comparison
        comparison.bounding_box = bbox

        try:
            width, height = image_size(candidate_img)
            region = self.cropper.crop_region(bbox, width, height)
            comparison.crop = region
            logger.info("Cropping %s to %s", name, region.geometry)

            base_crop = self.cropper.crop(base_img, region, self.work_dir / f"{stem}-base-crop.png")
            new_crop = self.cropper.crop(candidate_img, region, self.work_dir / f"{stem}-new-crop.png")
            diff_crop = None
            if self.config.include_diff_in_output:
                diff_crop = self.cropper.crop(diff_img, region, self.work_dir / f"{stem}-diff-crop.png")

            frames = self.compositor.frames(base_crop, diff_crop, new_crop)
            output = self.compositor.compose(stem, frames, self.work_dir)
            artifact = make_artifact(name, ArtifactKind.MODIFIED, output)
        except (ToolError, OSError) as e:
            logger.warning("Could not build comparison image for %s: %s", name, e)
            comparison.skip_reason = f"comparison image could not be built: {e}"
            return comparison

        comparison.artifact = artifact
        return comparison
