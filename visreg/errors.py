"""Exception types raised by the visual regression pipeline."""

from __future__ import annotations


class VisregError(Exception):
    """Base class for fatal, user-facing pipeline errors."""


class ConfigError(VisregError):
    """Required configuration is missing or inconsistent."""


class CaptureError(VisregError):
    """Screenshot capture failed or produced no usable output."""


class ToolError(VisregError):
    """An external tool could not be run or exited with an error."""

    def __init__(self, message: str, returncode: int | None = None, output: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.output = output


class PublishError(VisregError):
    """One or more artifact uploads failed."""

    def __init__(self, message: str, failed: list[str] | None = None, total: int = 0):
        super().__init__(message)
        self.failed = failed or []
        self.total = total


class GitError(VisregError):
    """A git command failed."""
