"""Comparison data structures produced by the diff pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ComparisonStatus(str, Enum):
    IDENTICAL = "identical"
    CHANGED = "changed"
    NEW = "new"
    DELETED = "deleted"


class DiffOutcome(str, Enum):
    IDENTICAL = "identical"
    PIXEL_DIFF = "pixel_diff"
    LAYOUT_DIFF = "layout_diff"
    UNEXPECTED = "unexpected"  # diff tool exited with an unknown status

    @property
    def changed(self) -> bool:
        return self is not DiffOutcome.IDENTICAL


class ArtifactKind(str, Enum):
    MODIFIED = "modified"
    NEW = "new"
    DELETED = "deleted"


class BoundingBox(BaseModel):
    width: int
    height: int
    x: int
    y: int


class CropRegion(BaseModel):
    width: int
    height: int
    x: int = 0
    y: int = 0

    @property
    def geometry(self) -> str:
        """ImageMagick geometry string, e.g. ``1280x400+0+120``."""
        return f"{self.width}x{self.height}+{self.x}+{self.y}"


class Artifact(BaseModel):
    name: str  # screenshot file name, e.g. "home.png"
    kind: ArtifactKind
    path: str
    key: str  # "<sha256><ext>"
    content_type: str = "image/png"
    url: str = ""


class ScreenshotComparison(BaseModel):
    name: str
    status: ComparisonStatus
    base_path: Optional[str] = None
    candidate_path: Optional[str] = None
    diff_outcome: Optional[DiffOutcome] = None  # only for names in both sets
    bounding_box: Optional[BoundingBox] = None
    crop: Optional[CropRegion] = None
    artifact: Optional[Artifact] = None
    skip_reason: Optional[str] = None


class ComparisonReport(BaseModel):
    comparisons: list[ScreenshotComparison] = Field(default_factory=list)

    def by_status(self, status: ComparisonStatus) -> list[ScreenshotComparison]:
        return [c for c in self.comparisons if c.status == status]

    @property
    def has_diffs(self) -> bool:
        return any(c.status != ComparisonStatus.IDENTICAL for c in self.comparisons)

    @property
    def artifacts(self) -> list[Artifact]:
        return [c.artifact for c in self.comparisons if c.artifact is not None]

    def counts(self) -> dict[str, int]:
        return {status.value: len(self.by_status(status)) for status in ComparisonStatus}
