"""Pytest configuration and shared fixtures."""

import re
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Optional

import pytest
from PIL import Image

from visreg.errors import ToolError
from visreg.models.config import CompareConfig, VisregConfig
from visreg.tools import ToolRunner


# ============================================================================
# Fake tool runner
# ============================================================================


class FakeToolRunner(ToolRunner):
    """Stands in for odiff, ImageMagick and bash; git still runs for real.

    Every command is recorded. odiff exit statuses are scripted per screenshot
    stem; ImageMagick calls write plausible output files so later stages can
    read them.
    """

    def __init__(self, odiff_codes: Optional[dict[str, int]] = None, bbox: str = "1280x40++0++200"):
        super().__init__()
        self.calls: list[list[str]] = []
        self.odiff_codes = odiff_codes or {}
        self.bbox = bbox
        self.shell_codes: dict[str, int] = {}

    def run(self, args, *, check=True, capture=True, text=True, cwd=None):
        args = list(args)
        self.calls.append(args)
        tool = args[0]

        if tool == "bash":
            return self._result(args, self.shell_codes.get(args[-1], 0), check=check)
        if tool == "odiff":
            return self._odiff(args, check)
        if tool == "convert":
            return self._convert(args, check)
        # git and anything else run for real
        return super().run(args, check=check, capture=capture, text=text, cwd=cwd)

    def _result(self, args, returncode, stdout="", check=True):
        if check and returncode != 0:
            raise ToolError(f"'{args[0]}' exited with status {returncode}", returncode=returncode)
        return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr="")

    def _odiff(self, args, check):
        candidate, output = Path(args[2]), Path(args[3])
        stem = candidate.stem.replace("-new-extended", "")
        code = self.odiff_codes.get(stem, 0)
        if "--diff-mask" in args or code != 0:
            shutil.copyfile(candidate, output)
        return self._result(args, code, check=check)

    def _convert(self, args, check):
        if args[-1] == "info:":
            return self._result(args, 0, stdout=self.bbox, check=check)
        dst = Path(args[-1])
        if "-extent" in args:
            width, height = (int(v) for v in args[args.index("-extent") + 1].split("x"))
            make_png(dst, width, height)
        elif "-crop" in args:
            match = re.match(r"(\d+)x(\d+)", args[args.index("-crop") + 1])
            make_png(dst, int(match.group(1)), int(match.group(2)), color=_color_of(Path(args[1])))
        else:
            # +append and -delay: concatenate the inputs so distinct frames give distinct bytes
            inputs = [Path(a) for a in args[1:-1] if a.endswith(".png")]
            dst.write_bytes(b"".join(p.read_bytes() for p in inputs))
        return self._result(args, 0, check=check)

    def commands(self, tool: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == tool]


def _color_of(path: Path) -> tuple[int, int, int]:
    with Image.open(path) as img:
        return img.convert("RGB").getpixel((0, 0))


def make_png(path: Path, width: int = 1280, height: int = 720, color=(255, 255, 255)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (width, height), color).save(path, format="PNG")
    return path


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def png_factory() -> Callable[..., Path]:
    """Write a solid-colour PNG of the given size."""
    return make_png


@pytest.fixture
def fake_runner() -> FakeToolRunner:
    return FakeToolRunner()


@pytest.fixture
def compare_config() -> CompareConfig:
    return CompareConfig()


@pytest.fixture
def visreg_config(tmp_path: Path) -> VisregConfig:
    """Config rooted at a temporary working directory with publishing disabled."""
    return VisregConfig(working_directory=str(tmp_path))


@pytest.fixture
def screenshot_dirs(tmp_path: Path) -> tuple[Path, Path]:
    base = tmp_path / "screenshots-base"
    candidate = tmp_path / "screenshots-pr"
    base.mkdir()
    candidate.mkdir()
    return base, candidate


# ============================================================================
# Git repositories
# ============================================================================


def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com",
         "-c", "commit.gpgsign=false", *args],
        cwd=cwd, capture_output=True, text=True, check=True,
    )
    return proc.stdout.strip()


@pytest.fixture
def git_remote(tmp_path: Path) -> Path:
    """A bare repository with a ``main`` branch holding one README commit."""
    remote = tmp_path / "origin.git"
    git(tmp_path, "init", "--bare", "-b", "main", str(remote))

    seed = tmp_path / "seed"
    git(tmp_path, "clone", str(remote), str(seed))
    git(seed, "checkout", "-B", "main")
    (seed / "README.md").write_text("# project\n")
    git(seed, "add", "README.md")
    git(seed, "commit", "-m", "Initial commit")
    git(seed, "push", "origin", "main")
    return remote


@pytest.fixture
def git_clone(tmp_path: Path, git_remote: Path) -> Path:
    """A clone of ``git_remote`` checked out on a pushed ``feature`` branch."""
    work = tmp_path / "work"
    git(tmp_path, "clone", str(git_remote), str(work))
    git(work, "checkout", "-b", "feature")
    git(work, "push", "-u", "origin", "feature")
    return work
