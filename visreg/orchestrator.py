"""Pipeline orchestrator — sequences capture, compare, publish, comment and commit stages."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Mapping, Optional

import httpx

from visreg.capture.browser import BrowserCapture
from visreg.capture.runner import CaptureResult, CaptureRunner
from visreg.diff.pipeline import ComparisonPipeline
from visreg.errors import CaptureError, ConfigError
from visreg.models.comparison import ComparisonReport
from visreg.models.config import VisregConfig
from visreg.models.run_outputs import RunOutputs
from visreg.publish.base import ArtifactPublisher
from visreg.publish.factory import build_publisher
from visreg.reporter.comment import build_comment
from visreg.reporter.github import GitHubClient, PullRequestContext
from visreg.reporter.json_report import generate_json_report
from visreg.reporter.outputs import log_group
from visreg.tools import ToolRunner
from visreg.vcs.baseline import fetch_baseline
from visreg.vcs.commit_manager import ScreenshotCommitManager
from visreg.vcs.git import Git

logger = logging.getLogger(__name__)

REPORT_FILE = "comparison-report.json"


class Orchestrator:
    """Runs one of the three modes against a working directory.

    The working directory is passed explicitly to every subprocess; the
    process-wide current directory is never changed.
    """

    def __init__(
        self,
        config: VisregConfig,
        runner: ToolRunner | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self.config = config
        self.runner = runner or ToolRunner()
        self.environ = os.environ if environ is None else environ
        self.working_directory = Path(config.working_directory).resolve()
        self.report: Optional[ComparisonReport] = None
        # outputs known so far, reported even when a later stage fails
        self.outputs = RunOutputs()

        if not self.working_directory.is_dir():
            raise ConfigError(f"Working directory not found: {self.working_directory}")

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def run_capture(self) -> RunOutputs:
        start = time.time()
        logger.info("=== Capturing screenshots in %s ===", self.working_directory)
        with log_group("Stage 1: Capture", self.environ):
            result = self._capture()
        logger.info("=== Capture complete in %.1fs ===", time.time() - start)
        self.outputs = RunOutputs(
            screenshot_count=result.count,
            screenshot_directory=str(result.directory),
        )
        return self.outputs

    def run_compare(self) -> RunOutputs:
        start = time.time()
        compare = self.config.compare
        base_dir = self._resolve(compare.base_dir)
        candidate_dir = self._resolve(compare.candidate_dir)
        logger.info("=== Comparing %s against %s ===", candidate_dir, base_dir)

        self.outputs = RunOutputs()
        outputs = self._compare(base_dir, candidate_dir)
        logger.info("=== Compare complete in %.1fs ===", time.time() - start)
        return outputs

    def run_fused(self) -> RunOutputs:
        start = time.time()
        compare = self.config.compare
        commit = self.config.commit
        logger.info("=== Capture and compare in %s ===", self.working_directory)

        with log_group("Stage 1: Capture", self.environ):
            capture = self._capture()
        self.outputs = RunOutputs(
            screenshot_count=capture.count,
            screenshot_directory=str(capture.directory),
        )

        base_dir = self._resolve(compare.base_dir)
        with log_group("Stage 2: Fetch baseline", self.environ):
            fetch_baseline(
                self._git(), commit.remote, commit.base_ref,
                self.config.capture.screenshot_directory, base_dir,
            )

        outputs = self._compare(base_dir, capture.directory, first_stage=3)

        outputs.screenshots_committed = False
        if commit.enabled and outputs.has_diffs:
            with log_group("Stage 6: Commit screenshots", self.environ):
                outputs.screenshots_committed = self._commit_screenshots()
        elif commit.enabled:
            logger.info("No visual changes; nothing to commit")

        logger.info("=== Run complete in %.1fs ===", time.time() - start)
        return outputs

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _resolve(self, path: str | Path) -> Path:
        return (self.working_directory / path).resolve()

    def _git(self) -> Git:
        commit = self.config.commit
        return Git(
            self.working_directory,
            runner=self.runner,
            identity=(commit.author_name, commit.author_email),
        )

    def _capture(self) -> CaptureResult:
        capture = self.config.capture
        if capture.test_command:
            return CaptureRunner(capture, self.working_directory, self.runner).run()
        if capture.pages:
            return BrowserCapture(capture, self.working_directory).run()
        raise CaptureError("No test command or pages configured for screenshot capture")

    def _compare(self, base_dir: Path, candidate_dir: Path, first_stage: int = 1) -> RunOutputs:
        compare = self.config.compare
        github = self.config.github

        # Credentials are checked before any diffing starts
        publisher = build_publisher(self.config, self.runner)

        diffs_dir = self._resolve(compare.diffs_dir)
        with log_group(f"Stage {first_stage}: Compare", self.environ):
            pipeline = ComparisonPipeline(compare, diffs_dir, self.runner)
            report = pipeline.run(base_dir, candidate_dir)
        self.report = report

        outputs = self.outputs
        outputs.has_diffs = report.has_diffs
        if not report.has_diffs or not github.post_comment:
            if not report.has_diffs:
                logger.info("No visual changes detected")
            else:
                logger.info("Commenting disabled; skipping publish and comment")
            outputs.comment_posted = False
            generate_json_report(report, outputs, diffs_dir / REPORT_FILE)
            return outputs
        generate_json_report(report, outputs, diffs_dir / REPORT_FILE)

        with log_group(f"Stage {first_stage + 1}: Publish", self.environ):
            self._publish(publisher, report)

        with log_group(f"Stage {first_stage + 2}: Comment", self.environ):
            outputs.comment_posted = self._post_comment(report)

        generate_json_report(report, outputs, diffs_dir / REPORT_FILE)
        return outputs

    def _publish(self, publisher: ArtifactPublisher | None, report: ComparisonReport) -> None:
        if publisher is None:
            logger.info("Image publishing disabled; comment will list names only")
            return
        # PublishError is fatal
        publisher.publish(report.artifacts)

    def _post_comment(self, report: ComparisonReport) -> bool:
        github = self.config.github
        try:
            ctx = PullRequestContext.detect(github, self.environ)
        except (ConfigError, OSError, ValueError) as e:
            logger.warning("Could not determine pull request: %s", e)
            return False
        if ctx is None:
            logger.warning("Not running for a pull request; skipping comment")
            return False

        body = build_comment(report, self.config.compare)
        token = github.token or self.environ.get("GITHUB_TOKEN", "")
        try:
            client = GitHubClient(token, api_url=github.api_url)
        except ConfigError as e:
            logger.warning("Skipping comment: %s", e)
            return False

        try:
            client.post_report(ctx, body, mode=github.comment_mode)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            # ValueError and KeyError come from malformed response bodies
            logger.warning("Failed to post PR comment: %s", e)
            return False
        finally:
            client.close()
        return True

    def _commit_screenshots(self) -> bool:
        commit = self.config.commit
        if not commit.head_ref:
            commit = commit.model_copy(update={"head_ref": self.environ.get("GITHUB_HEAD_REF", "")})
        manager = ScreenshotCommitManager(
            self._git(), commit, self.config.capture.screenshot_directory,
        )
        return manager.run().committed
