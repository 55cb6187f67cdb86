"""Thin wrapper around the git binary, bound to one repository directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from visreg.errors import GitError, ToolError
from visreg.tools import ToolRunner

logger = logging.getLogger(__name__)


class Git:
    """Runs git commands in ``repo_dir``."""

    def __init__(
        self,
        repo_dir: Path,
        runner: ToolRunner | None = None,
        identity: Optional[tuple[str, str]] = None,
    ):
        self.repo_dir = repo_dir
        self.runner = runner or ToolRunner()
        self.identity = identity

    def _command(self, args: tuple[str, ...]) -> list[str]:
        cmd = ["git"]
        if self.identity:
            name, email = self.identity
            cmd += ["-c", f"user.name={name}", "-c", f"user.email={email}"]
        return cmd + list(args)

    def run(self, *args: str) -> str:
        """Run a git command and return its stripped stdout."""
        try:
            proc = self.runner.run(self._command(args), cwd=self.repo_dir)
        except ToolError as e:
            raise GitError(f"git {args[0]} failed: {e}") from e
        return proc.stdout.strip()

    def run_bytes(self, *args: str) -> bytes:
        """Run a git command and return its raw stdout."""
        try:
            proc = self.runner.run(self._command(args), cwd=self.repo_dir, text=False)
        except ToolError as e:
            raise GitError(f"git {args[0]} failed: {e}") from e
        return proc.stdout

    def succeeds(self, *args: str) -> bool:
        """Run a git command and report whether it exited zero."""
        proc = self.runner.run(self._command(args), cwd=self.repo_dir, check=False)
        return proc.returncode == 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def rev_parse(self, ref: str) -> str:
        return self.run("rev-parse", ref)

    def has_changes(self, *paths: str) -> bool:
        """Check for modified or untracked files, optionally limited to paths."""
        return bool(self.run("status", "--porcelain", "--", *paths))

    def remote_branch_exists(self, remote: str, branch: str) -> bool:
        return bool(self.run("ls-remote", "--heads", remote, branch))

    def list_files(self, ref: str, path: str) -> list[str]:
        """Repository-relative paths of the entries directly under ``path`` at ``ref``."""
        output = self.run("ls-tree", "--full-name", "--name-only", ref, "--", path.rstrip("/") + "/")
        return [line for line in output.splitlines() if line]

    def show_file(self, ref: str, path: str) -> bytes:
        return self.run_bytes("show", f"{ref}:{path}")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def fetch(self, remote: str, ref: str, depth: int | None = None) -> None:
        args = ["fetch"]
        if depth:
            args.append(f"--depth={depth}")
        self.run(*args, remote, ref)

    def stash_push(self, *paths: str) -> None:
        """Stash tracked and untracked changes, the whole tree unless paths are given."""
        args = ["stash", "push", "--include-untracked"]
        if paths:
            args += ["--", *paths]
        self.run(*args)

    def stash_pop(self) -> None:
        self.run("stash", "pop")

    def rebase(self, onto: str) -> None:
        self.run("rebase", onto)

    def rebase_abort(self) -> None:
        if not self.succeeds("rebase", "--abort"):
            logger.debug("No rebase in progress to abort")

    def add(self, *paths: str) -> None:
        self.run("add", "--all", "--", *paths)

    def commit(self, message: str | None = None, amend: bool = False) -> None:
        if amend:
            self.run("commit", "--amend", "--no-edit")
        else:
            self.run("commit", "-m", message or "")

    def push(self, remote: str, branch: str, lease: str | None = None) -> None:
        """Push HEAD to ``branch``; with a lease, only if the remote is still at it."""
        args = ["push"]
        if lease:
            args.append(f"--force-with-lease={branch}:{lease}")
        self.run(*args, remote, f"HEAD:refs/heads/{branch}")
