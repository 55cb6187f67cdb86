"""Git branch backend — a dedicated branch used as a content-addressed blob store.

Blobs are written at the root of the branch in a temporary worktree and
pushed in one commit; they are served from the raw-content CDN.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

from visreg.vcs.git import Git

from .base import StorageBackend

logger = logging.getLogger(__name__)

RAW_CONTENT_URL = "https://raw.githubusercontent.com"


class GitBranchBackend(StorageBackend):
    name = "git branch"

    def __init__(self, git: Git, branch: str, remote: str, repository: str):
        self.git = git
        self.branch = branch
        self.remote = remote
        self.repository = repository
        self.worktree: Path | None = None

    @property
    def staging_branch(self) -> str:
        return f"{self.branch}-staging"

    def url_for(self, key: str) -> str:
        return f"{RAW_CONTENT_URL}/{self.repository}/{self.branch}/{key}"

    async def prepare(self) -> None:
        self.worktree = Path(tempfile.mkdtemp(prefix="visreg-assets-"))
        # worktree add wants a path that does not exist yet
        self.worktree.rmdir()

        if self.git.remote_branch_exists(self.remote, self.branch):
            self.git.fetch(self.remote, self.branch, depth=1)
            self.git.run("worktree", "add", "--detach", str(self.worktree), "FETCH_HEAD")
            logger.debug("Checked out %s into %s", self.branch, self.worktree)
            return

        logger.info("Creating blob-store branch %s", self.branch)
        self.git.run("worktree", "add", "--detach", str(self.worktree), "HEAD")
        worktree_git = self._worktree_git()
        worktree_git.run("checkout", "--orphan", self.staging_branch)
        worktree_git.run("rm", "-r", "-f", "--quiet", "--ignore-unmatch", ".")

    def _worktree_git(self) -> Git:
        return Git(self.worktree, runner=self.git.runner, identity=self.git.identity)

    async def upload(self, data: bytes, key: str, content_type: str) -> str:
        (self.worktree / key).write_bytes(data)
        return self.url_for(key)

    async def finalize(self) -> None:
        worktree_git = self._worktree_git()
        worktree_git.run("add", "--all")
        if not worktree_git.has_changes():
            logger.info("All images already present on %s", self.branch)
            return
        worktree_git.commit("Add visual regression images")
        worktree_git.push(self.remote, self.branch)

    async def aclose(self) -> None:
        if self.worktree is None:
            return
        if not self.git.succeeds("worktree", "remove", "--force", str(self.worktree)):
            shutil.rmtree(self.worktree, ignore_errors=True)
            self.git.succeeds("worktree", "prune")
        # the staging branch is shared with the main repository
        self.git.succeeds("branch", "-D", self.staging_branch)
        self.worktree = None
