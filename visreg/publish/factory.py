"""Selects the storage backend named in the configuration."""

from __future__ import annotations

from pathlib import Path

from visreg.errors import ConfigError
from visreg.models.config import VisregConfig
from visreg.tools import ToolRunner
from visreg.vcs.git import Git

from .base import ArtifactPublisher, StorageBackend
from .git_branch import GitBranchBackend
from .imgbb import ImgbbBackend
from .s3 import S3Backend


def build_backend(config: VisregConfig, runner: ToolRunner | None = None) -> StorageBackend | None:
    """Create the configured backend, or None when publishing is disabled.

    Raises ConfigError when the backend's credentials are missing.
    """
    storage = config.storage
    storage.validate_credentials()

    if storage.backend == "imgbb":
        return ImgbbBackend(storage.imgbb_api_key, expiration=storage.imgbb_expiration)

    if storage.backend == "s3":
        return S3Backend(storage)

    if storage.backend == "git-branch":
        if not config.github.repository:
            raise ConfigError("Storage backend 'git-branch' requires the repository (owner/repo)")
        git = Git(
            Path(config.working_directory).resolve(),
            runner=runner,
            identity=(config.commit.author_name, config.commit.author_email),
        )
        return GitBranchBackend(git, storage.git_branch, storage.git_remote, config.github.repository)

    return None


def build_publisher(config: VisregConfig, runner: ToolRunner | None = None) -> ArtifactPublisher | None:
    backend = build_backend(config, runner)
    if backend is None:
        return None
    return ArtifactPublisher(backend, max_concurrency=config.storage.max_concurrent_uploads)
