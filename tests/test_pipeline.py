"""Tests for the comparison pipeline: classification, diffing and artifacts."""

from pathlib import Path

import pytest

from visreg.diff.engine import image_size
from visreg.diff.pipeline import ComparisonPipeline, list_screenshots
from visreg.errors import CaptureError
from visreg.models.comparison import ArtifactKind, ComparisonStatus, DiffOutcome
from visreg.models.config import CompareConfig

from conftest import FakeToolRunner


def run_pipeline(tmp_path, base, candidate, runner, config=None):
    pipeline = ComparisonPipeline(config or CompareConfig(), tmp_path / "diffs", runner)
    return pipeline.run(base, candidate)


class TestListScreenshots:
    def test_only_png_files_sorted(self, tmp_path: Path, png_factory):
        png_factory(tmp_path / "b.png")
        png_factory(tmp_path / "a.png")
        (tmp_path / "notes.txt").write_text("x")
        (tmp_path / "nested").mkdir()
        png_factory(tmp_path / "nested" / "c.png")
        assert list_screenshots(tmp_path) == ["a.png", "b.png"]

    def test_missing_directory_is_empty(self, tmp_path: Path):
        assert list_screenshots(tmp_path / "missing") == []


class TestScenarios:
    """End-to-end classification scenarios."""

    def test_within_tolerance_is_identical(self, tmp_path: Path, png_factory, screenshot_dirs):
        """Scenario A: the diff tool reports no change, so nothing is produced."""
        base, candidate = screenshot_dirs
        png_factory(base / "home.png")
        png_factory(candidate / "home.png", color=(250, 250, 250))
        runner = FakeToolRunner(odiff_codes={"home": 0})

        report = run_pipeline(tmp_path, base, candidate, runner)

        [comparison] = report.comparisons
        assert comparison.status == ComparisonStatus.IDENTICAL
        assert comparison.diff_outcome == DiffOutcome.IDENTICAL
        assert comparison.artifact is None
        assert report.has_diffs is False
        assert report.artifacts == []
        # no mask, crop or composite work for an identical pair
        assert runner.commands("convert") == []
        assert len(runner.commands("odiff")) == 1

    def test_changed_produces_one_composite(self, tmp_path: Path, png_factory, screenshot_dirs):
        """Scenario B: a pixel diff is cropped and composited into one artifact."""
        base, candidate = screenshot_dirs
        png_factory(base / "home.png", 1280, 2000)
        png_factory(candidate / "home.png", 1280, 2000, color=(200, 0, 0))
        runner = FakeToolRunner(odiff_codes={"home": 22}, bbox="1280x40++0++900")

        report = run_pipeline(tmp_path, base, candidate, runner)

        [comparison] = report.comparisons
        assert comparison.status == ComparisonStatus.CHANGED
        assert comparison.diff_outcome == DiffOutcome.PIXEL_DIFF
        assert comparison.crop.geometry == "1280x300+0+850"
        assert report.has_diffs is True

        [artifact] = report.artifacts
        assert artifact.kind == ArtifactKind.MODIFIED
        assert artifact.name == "home.png"
        assert Path(artifact.path) == tmp_path / "diffs" / "home-combined.png"
        assert Path(artifact.path).exists()
        assert artifact.key.endswith(".png")

    def test_new_screenshot(self, tmp_path: Path, png_factory, screenshot_dirs):
        """Scenario C: a candidate-only name is new and never diffed."""
        base, candidate = screenshot_dirs
        png_factory(base / "home.png")
        png_factory(candidate / "home.png")
        png_factory(candidate / "pricing.png")
        runner = FakeToolRunner()

        report = run_pipeline(tmp_path, base, candidate, runner)

        [new] = report.by_status(ComparisonStatus.NEW)
        assert new.name == "pricing.png"
        assert new.diff_outcome is None
        assert new.artifact.kind == ArtifactKind.NEW
        assert new.artifact.path == str(candidate / "pricing.png")
        assert not any("pricing" in arg for call in runner.calls for arg in call)
        assert report.has_diffs is True

    def test_deleted_screenshot(self, tmp_path: Path, png_factory, screenshot_dirs):
        """Scenario D: a base-only name is deleted and references the base image."""
        base, candidate = screenshot_dirs
        png_factory(base / "home.png")
        png_factory(base / "legacy.png")
        png_factory(candidate / "home.png")

        report = run_pipeline(tmp_path, base, candidate, FakeToolRunner())

        [deleted] = report.by_status(ComparisonStatus.DELETED)
        assert deleted.name == "legacy.png"
        assert deleted.base_path == str(base / "legacy.png")
        assert deleted.artifact.kind == ArtifactKind.DELETED
        assert deleted.artifact.path == str(base / "legacy.png")

    def test_dimension_mismatch_extended_before_diff(self, tmp_path: Path, png_factory, screenshot_dirs):
        """Scenario E: the diff tool never receives images of different sizes."""
        base, candidate = screenshot_dirs
        png_factory(base / "home.png", 1280, 1800)
        png_factory(candidate / "home.png", 1280, 2200)
        runner = FakeToolRunner(odiff_codes={"home": 21})

        report = run_pipeline(tmp_path, base, candidate, runner)

        first_odiff = next(i for i, c in enumerate(runner.calls) if c[0] == "odiff")
        extents = [i for i, c in enumerate(runner.calls) if "-extent" in c]
        assert len(extents) == 2
        assert all(i < first_odiff for i in extents)

        for call in runner.commands("odiff"):
            assert image_size(Path(call[1])) == image_size(Path(call[2])) == (1280, 2200)

        [comparison] = report.comparisons
        assert comparison.diff_outcome == DiffOutcome.LAYOUT_DIFF
        # originals are not rewritten
        assert image_size(base / "home.png") == (1280, 1800)


class TestClassification:
    def test_every_name_classified_exactly_once(self, tmp_path: Path, png_factory, screenshot_dirs):
        base, candidate = screenshot_dirs
        for name in ["a.png", "b.png", "c.png", "gone.png"]:
            png_factory(base / name)
        for name in ["a.png", "b.png", "c.png", "fresh.png"]:
            png_factory(candidate / name)
        runner = FakeToolRunner(odiff_codes={"b": 22, "c": 21})

        report = run_pipeline(tmp_path, base, candidate, runner)

        names = [c.name for c in report.comparisons]
        assert sorted(names) == ["a.png", "b.png", "c.png", "fresh.png", "gone.png"]
        assert len(names) == len(set(names))
        assert report.counts() == {"identical": 1, "changed": 2, "new": 1, "deleted": 1}
        # candidate names in sorted order, then deleted names
        assert names == ["a.png", "b.png", "c.png", "fresh.png", "gone.png"]

    def test_diff_outcome_only_for_shared_names(self, tmp_path: Path, png_factory, screenshot_dirs):
        base, candidate = screenshot_dirs
        png_factory(base / "shared.png")
        png_factory(base / "old.png")
        png_factory(candidate / "shared.png")
        png_factory(candidate / "new.png")

        report = run_pipeline(tmp_path, base, candidate, FakeToolRunner())

        for comparison in report.comparisons:
            if comparison.name == "shared.png":
                assert comparison.diff_outcome is not None
            else:
                assert comparison.diff_outcome is None

    def test_no_candidate_screenshots_is_fatal(self, tmp_path: Path, png_factory, screenshot_dirs):
        base, candidate = screenshot_dirs
        png_factory(base / "home.png")
        with pytest.raises(CaptureError, match="No screenshots found"):
            run_pipeline(tmp_path, base, candidate, FakeToolRunner())

    def test_missing_base_directory_means_all_new(self, tmp_path: Path, png_factory):
        candidate = tmp_path / "pr"
        png_factory(candidate / "home.png")
        report = run_pipeline(tmp_path, tmp_path / "nothing", candidate, FakeToolRunner())
        assert [c.status for c in report.comparisons] == [ComparisonStatus.NEW]


class TestDegradedComparisons:
    """Failures after a change was detected keep the screenshot marked changed."""

    def test_bounding_box_failure_still_changed(self, tmp_path: Path, png_factory, screenshot_dirs):
        base, candidate = screenshot_dirs
        png_factory(base / "home.png")
        png_factory(candidate / "home.png")
        runner = FakeToolRunner(odiff_codes={"home": 22}, bbox="no bbox here")

        report = run_pipeline(tmp_path, base, candidate, runner)

        [comparison] = report.comparisons
        assert comparison.status == ComparisonStatus.CHANGED
        assert comparison.artifact is None
        assert comparison.skip_reason
        assert report.has_diffs is True

    def test_unexpected_exit_counted_as_changed(self, tmp_path: Path, png_factory, screenshot_dirs):
        base, candidate = screenshot_dirs
        png_factory(base / "home.png")
        png_factory(candidate / "home.png")
        runner = FakeToolRunner(odiff_codes={"home": 2})

        report = run_pipeline(tmp_path, base, candidate, runner)

        [comparison] = report.comparisons
        assert comparison.status == ComparisonStatus.CHANGED
        assert comparison.diff_outcome == DiffOutcome.UNEXPECTED


class TestOutputOptions:
    def test_diff_frame_included(self, tmp_path: Path, png_factory, screenshot_dirs):
        base, candidate = screenshot_dirs
        png_factory(base / "home.png")
        png_factory(candidate / "home.png", color=(0, 0, 0))
        runner = FakeToolRunner(odiff_codes={"home": 22})

        run_pipeline(tmp_path, base, candidate, runner, CompareConfig(include_diff_in_output=True))

        append = next(c for c in runner.commands("convert") if "+append" in c)
        frames = [a for a in append[1:] if a.endswith("-crop.png")]
        assert [Path(f).name for f in frames] == [
            "home-base-crop.png", "home-diff-crop.png", "home-new-crop.png",
        ]

    def test_animated_gif_artifact(self, tmp_path: Path, png_factory, screenshot_dirs):
        base, candidate = screenshot_dirs
        png_factory(base / "home.png")
        png_factory(candidate / "home.png", color=(0, 0, 0))
        runner = FakeToolRunner(odiff_codes={"home": 22})

        report = run_pipeline(tmp_path, base, candidate, runner, CompareConfig(output_format="animated-gif"))

        [artifact] = report.artifacts
        assert artifact.key.endswith(".gif")
        assert artifact.content_type == "image/gif"
