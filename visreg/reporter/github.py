"""GitHub REST client for pull request comments."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

import httpx
from pydantic import BaseModel

from visreg.errors import ConfigError
from visreg.models.config import GitHubConfig

from .comment import REPORT_MARKER

logger = logging.getLogger(__name__)


class PullRequestContext(BaseModel):
    owner: str
    repo: str
    number: int

    @classmethod
    def detect(
        cls, config: GitHubConfig, environ: Mapping[str, str] | None = None,
    ) -> Optional["PullRequestContext"]:
        """Build the context from explicit config, falling back to the Actions event.

        Returns None when not running for a pull request.
        """
        env = os.environ if environ is None else environ
        repository = config.repository or env.get("GITHUB_REPOSITORY", "")
        number = config.pr_number

        if number is None:
            event_path = env.get("GITHUB_EVENT_PATH")
            if event_path and Path(event_path).exists():
                with open(event_path) as f:
                    payload = json.load(f)
                pull_request = payload.get("pull_request") or {}
                number = pull_request.get("number")

        if not repository or number is None:
            return None
        if "/" not in repository:
            raise ConfigError(f"Repository must be in owner/repo form, got '{repository}'")
        owner, repo = repository.split("/", 1)
        return cls(owner=owner, repo=repo, number=int(number))


class GitHubClient:
    """Minimal wrapper around the issues-comments endpoints."""

    def __init__(self, token: str, api_url: str = "https://api.github.com", client: httpx.Client | None = None):
        if not token:
            raise ConfigError("A GitHub token is required to post pull request comments")
        self.client = client or httpx.Client(
            base_url=api_url.rstrip("/"),
            timeout=30.0,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    def close(self) -> None:
        self.client.close()

    def _comments_path(self, ctx: PullRequestContext) -> str:
        return f"/repos/{ctx.owner}/{ctx.repo}/issues/{ctx.number}/comments"

    def create_comment(self, ctx: PullRequestContext, body: str) -> dict[str, Any]:
        response = self.client.post(self._comments_path(ctx), json={"body": body})
        response.raise_for_status()
        return response.json()

    def list_comments(self, ctx: PullRequestContext) -> list[dict[str, Any]]:
        comments: list[dict[str, Any]] = []
        page = 1
        while True:
            response = self.client.get(
                self._comments_path(ctx), params={"per_page": 100, "page": page},
            )
            response.raise_for_status()
            batch = response.json()
            comments.extend(batch)
            if len(batch) < 100:
                return comments
            page += 1

    def update_comment(self, ctx: PullRequestContext, comment_id: int, body: str) -> dict[str, Any]:
        response = self.client.patch(
            f"/repos/{ctx.owner}/{ctx.repo}/issues/comments/{comment_id}", json={"body": body},
        )
        response.raise_for_status()
        return response.json()

    def post_report(self, ctx: PullRequestContext, body: str, mode: str = "create") -> str:
        """Post the report comment. Returns "created" or "updated".

        In "update" mode the most recent comment carrying the report marker
        is edited in place; a new comment is created if there is none.
        """
        if mode == "update":
            previous = [c for c in self.list_comments(ctx) if REPORT_MARKER in (c.get("body") or "")]
            if previous:
                comment_id = previous[-1]["id"]
                self.update_comment(ctx, comment_id, body)
                logger.info("Updated PR comment %s", comment_id)
                return "updated"

        self.create_comment(ctx, body)
        logger.info("PR comment posted on #%d", ctx.number)
        return "created"
