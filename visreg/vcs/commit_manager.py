"""Screenshot commit manager — pushes refreshed screenshots back to the PR branch.

The flow is a linear state machine. Each transition either advances to the
next state or stops the machine in ``ABORTED``; nothing here is fatal to the
run. ``SKIPPED`` means there was nothing to commit.

    CLEAN/DIRTY -> STASHED -> FETCHED -> REBASED -> RESTORED -> COMMITTED -> PUSHED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from visreg.errors import GitError
from visreg.models.config import CommitConfig

from .git import Git

logger = logging.getLogger(__name__)


class CommitState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    STASHED = "stashed"
    FETCHED = "fetched"
    REBASED = "rebased"
    RESTORED = "restored"
    COMMITTED = "committed"
    PUSHED = "pushed"
    SKIPPED = "skipped"
    ABORTED = "aborted"


@dataclass
class TransitionResult:
    ok: bool
    state: CommitState
    detail: str = ""


@dataclass
class CommitOutcome:
    state: CommitState
    history: list[TransitionResult] = field(default_factory=list)

    @property
    def committed(self) -> bool:
        return self.state == CommitState.PUSHED

    @property
    def reason(self) -> str:
        return self.history[-1].detail if self.history else ""


class ScreenshotCommitManager:
    """Commits the screenshot directory onto the latest tip of the PR branch."""

    def __init__(self, git: Git, config: CommitConfig, screenshot_path: str):
        self.git = git
        self.config = config
        self.screenshot_path = screenshot_path
        self.state = CommitState.CLEAN
        self._lease: str | None = None
        self._stashed = False

    @property
    def branch(self) -> str:
        return self.config.head_ref

    def run(self) -> CommitOutcome:
        """Drive the state machine to PUSHED, SKIPPED or ABORTED."""
        outcome = CommitOutcome(state=self.state)
        if not self.branch:
            result = TransitionResult(False, CommitState.ABORTED, "no head branch configured")
            outcome.history.append(result)
            outcome.state = result.state
            logger.warning("Skipping screenshot commit: %s", result.detail)
            return outcome

        steps = (
            self.detect_changes,
            self.stash,
            self.fetch,
            self.rebase,
            self.restore,
            self.commit,
            self.push,
        )
        for step in steps:
            result = step()
            outcome.history.append(result)
            self.state = outcome.state = result.state
            logger.debug("Commit state -> %s (%s)", result.state.value, result.detail)
            if not result.ok or result.state == CommitState.SKIPPED:
                break

        if outcome.state == CommitState.ABORTED:
            logger.warning("Screenshot commit aborted: %s", outcome.reason)
        elif outcome.state == CommitState.PUSHED:
            logger.info("Screenshots committed and pushed to %s", self.branch)
        else:
            logger.info("No screenshot changes to commit")
        return outcome

    def _abort(self, detail: str, error: Exception | None = None) -> TransitionResult:
        if error is not None:
            detail = f"{detail}: {error}"
        return TransitionResult(False, CommitState.ABORTED, detail)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def detect_changes(self) -> TransitionResult:
        try:
            dirty = self.git.has_changes(self.screenshot_path)
        except GitError as e:
            return self._abort("could not read working tree status", e)
        if not dirty:
            return TransitionResult(True, CommitState.SKIPPED, "screenshots unchanged")
        return TransitionResult(True, CommitState.DIRTY, "screenshots modified")

    def stash(self) -> TransitionResult:
        try:
            self.git.stash_push()
        except GitError as e:
            return self._abort("could not set aside working tree changes", e)
        self._stashed = True
        return TransitionResult(True, CommitState.STASHED)

    def fetch(self) -> TransitionResult:
        try:
            self.git.fetch(self.config.remote, self.branch)
            self._lease = self.git.rev_parse(f"{self.config.remote}/{self.branch}")
        except GitError as e:
            self._restore_after_failure()
            return self._abort(f"could not fetch {self.branch}", e)
        return TransitionResult(True, CommitState.FETCHED, self._lease)

    def rebase(self) -> TransitionResult:
        try:
            self.git.rebase(f"{self.config.remote}/{self.branch}")
        except GitError as e:
            self.git.rebase_abort()
            self._restore_after_failure()
            return self._abort("rebase onto the latest branch tip failed", e)
        return TransitionResult(True, CommitState.REBASED)

    def restore(self) -> TransitionResult:
        try:
            self.git.stash_pop()
        except GitError as e:
            return self._abort("could not restore working tree changes", e)
        self._stashed = False
        return TransitionResult(True, CommitState.RESTORED)

    def commit(self) -> TransitionResult:
        try:
            self.git.add(self.screenshot_path)
            if not self.git.has_changes(self.screenshot_path):
                return TransitionResult(True, CommitState.SKIPPED, "screenshots match the branch tip")
            self.git.commit(self.config.message, amend=self.config.amend)
        except GitError as e:
            return self._abort("commit failed", e)
        mode = "amended last commit" if self.config.amend else "created new commit"
        return TransitionResult(True, CommitState.COMMITTED, mode)

    def push(self) -> TransitionResult:
        try:
            self.git.push(self.config.remote, self.branch, lease=self._lease)
        except GitError as e:
            return self._abort("push rejected", e)
        return TransitionResult(True, CommitState.PUSHED)

    def _restore_after_failure(self) -> None:
        if not self._stashed:
            return
        try:
            self.git.stash_pop()
            self._stashed = False
        except GitError as e:
            logger.warning("Could not restore stashed changes: %s", e)
