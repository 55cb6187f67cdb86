"""Subprocess wrapper for the external tools the pipeline delegates to."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path

from visreg.errors import ToolError

logger = logging.getLogger(__name__)


class ToolRunner:
    """Runs external commands with an explicit working directory.

    The working directory is passed to every call instead of changing the
    process-wide current directory.
    """

    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd

    def run(
        self,
        args: list[str],
        *,
        check: bool = True,
        capture: bool = True,
        text: bool = True,
        cwd: Path | None = None,
    ) -> subprocess.CompletedProcess:
        """Run a command and return the completed process.

        With ``capture=False`` output streams straight to the CI log; with
        ``text=False`` stdout is returned as bytes.
        Raises ToolError when the executable is missing, or when ``check`` is
        set and the command exits non-zero.
        """
        workdir = cwd or self.cwd
        logger.debug("$ %s (cwd=%s)", shlex.join(args), workdir or ".")
        try:
            proc = subprocess.run(
                args,
                cwd=workdir,
                capture_output=capture,
                text=text,
                check=False,
            )
        except FileNotFoundError as e:
            raise ToolError(f"Executable not found: {args[0]}") from e

        if check and proc.returncode != 0:
            stderr = proc.stderr or ""
            if isinstance(stderr, bytes):
                stderr = stderr.decode(errors="replace")
            stderr = stderr.strip()
            message = f"'{shlex.join(args)}' exited with status {proc.returncode}"
            if stderr:
                message += f": {stderr}"
            raise ToolError(message, returncode=proc.returncode, output=stderr)
        return proc

    def shell(self, command: str, *, cwd: Path | None = None) -> subprocess.CompletedProcess:
        """Run a shell command string through bash, streaming its output."""
        return self.run(["bash", "-c", command], capture=False, cwd=cwd)
