"""Capture runner: runs the project's screenshot tests and verifies their output."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from visreg.errors import CaptureError, ToolError
from visreg.models.config import CaptureConfig
from visreg.tools import ToolRunner

logger = logging.getLogger(__name__)


@dataclass
class CaptureResult:
    directory: Path
    files: list[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.files)


def verify_screenshots(directory: Path) -> CaptureResult:
    """Check that ``directory`` exists and holds at least one ``.png`` file."""
    directory = directory.resolve()
    if not directory.is_dir():
        raise CaptureError(f"Screenshot directory not found: {directory}")

    files = sorted(p.name for p in directory.glob("*.png") if p.is_file())
    if not files:
        raise CaptureError(f"No .png files found in {directory}")

    logger.info("Found %d screenshot(s) in %s", len(files), directory)
    for name in files:
        logger.debug("  %s", name)
    return CaptureResult(directory=directory, files=files)


class CaptureRunner:
    """Installs dependencies, runs the test command and checks the screenshots."""

    def __init__(self, config: CaptureConfig, working_directory: Path, runner: ToolRunner | None = None):
        self.config = config
        self.working_directory = working_directory
        self.runner = runner or ToolRunner()

    @property
    def screenshot_dir(self) -> Path:
        return (self.working_directory / self.config.screenshot_directory).resolve()

    def install(self) -> None:
        for command in self.config.install_commands:
            logger.info("Running: %s", command)
            try:
                self.runner.shell(command, cwd=self.working_directory)
            except ToolError as e:
                raise CaptureError(f"Dependency installation failed ({command}): {e}") from e

    def run_tests(self) -> None:
        command = self.config.test_command
        logger.info("Running test command: %s", command)
        try:
            self.runner.shell(command, cwd=self.working_directory)
        except ToolError as e:
            raise CaptureError(
                f"Test command failed with exit code {e.returncode}: {command}"
            ) from e

    def run(self) -> CaptureResult:
        if self.config.install_deps:
            self.install()
        else:
            logger.info("Skipping dependency installation")
        self.run_tests()
        return verify_screenshots(self.screenshot_dir)
