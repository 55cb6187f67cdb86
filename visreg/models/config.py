"""Configuration models for the visual regression pipeline."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from visreg.errors import ConfigError

DEFAULT_CONFIG_FILE = "visreg.json"


def _resolve_env(v: Any) -> Any:
    """Resolve ``env:VAR`` references to the value of the environment variable."""
    if isinstance(v, str) and v.startswith("env:"):
        env_var = v[4:]
        resolved = os.environ.get(env_var)
        if resolved is None:
            raise ValueError(f"Environment variable '{env_var}' not set")
        return resolved
    return v


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720
    name: str = "desktop"


class PageTarget(BaseModel):
    name: str
    path: str = "/"


class CaptureConfig(BaseModel):
    test_command: str = "npm test"
    screenshot_directory: str = "screenshots"
    install_deps: bool = True
    install_commands: list[str] = Field(
        default_factory=lambda: ["npm ci", "npx playwright install --with-deps"]
    )

    # Built-in browser capture, used when test_command is empty
    base_url: str = "http://localhost:8080"
    pages: list[PageTarget] = Field(default_factory=list)
    viewports: list[ViewportConfig] = Field(
        default_factory=lambda: [
            ViewportConfig(width=1280, height=720, name="desktop"),
            ViewportConfig(width=768, height=1024, name="tablet"),
            ViewportConfig(width=375, height=667, name="mobile"),
        ]
    )
    settle_delay_ms: int = Field(default=300, ge=0)
    navigation_timeout_ms: int = Field(default=30000, ge=0)


class CompareConfig(BaseModel):
    base_dir: str = "screenshots-base"
    candidate_dir: str = "screenshots-pr"
    diffs_dir: str = "screenshots-diffs"

    diff_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    crop_padding: int = Field(default=50, ge=0)
    crop_min_height: int = Field(default=300, ge=0)
    output_format: Literal["side-by-side", "animated-gif"] = "side-by-side"
    gif_frame_delay: int = Field(default=1000, ge=0)  # milliseconds
    include_diff_in_output: bool = False
    canvas_background: str = "white"

    # External tools
    odiff_binary: str = "odiff"
    convert_binary: str = "convert"


class StorageConfig(BaseModel):
    backend: Literal["none", "imgbb", "s3", "git-branch"] = "none"
    max_concurrent_uploads: int = Field(default=4, ge=1)

    # imgbb
    imgbb_api_key: str = ""
    imgbb_expiration: Optional[int] = Field(default=None, ge=60, le=15552000)  # seconds

    # S3-compatible (AWS S3, Cloudflare R2, MinIO)
    s3_endpoint: str = ""
    r2_account_id: str = ""
    s3_region: str = "auto"
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_bucket: str = ""
    public_url: str = ""

    # Branch used as a blob store
    git_branch: str = "visreg-assets"
    git_remote: str = "origin"

    @field_validator(
        "imgbb_api_key", "s3_access_key_id", "s3_secret_access_key", mode="before"
    )
    @classmethod
    def resolve_env_secret(cls, v: str) -> str:
        return _resolve_env(v)

    def endpoint_url(self) -> str:
        if self.s3_endpoint:
            return self.s3_endpoint
        if self.r2_account_id:
            return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"
        return ""

    def validate_credentials(self) -> None:
        """Raise ConfigError when the selected backend lacks required settings."""
        required: dict[str, str] = {}
        if self.backend == "imgbb":
            required = {"imgbb_api_key": self.imgbb_api_key}
        elif self.backend == "s3":
            required = {
                "s3_endpoint or r2_account_id": self.endpoint_url(),
                "s3_access_key_id": self.s3_access_key_id,
                "s3_secret_access_key": self.s3_secret_access_key,
                "s3_bucket": self.s3_bucket,
                "public_url": self.public_url,
            }
        elif self.backend == "git-branch":
            required = {"git_branch": self.git_branch}

        missing = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigError(
                f"Storage backend '{self.backend}' is missing required settings: "
                + ", ".join(missing)
            )


class GitHubConfig(BaseModel):
    token: str = ""
    repository: str = ""  # owner/repo
    pr_number: Optional[int] = None
    api_url: str = "https://api.github.com"
    post_comment: bool = True
    comment_mode: Literal["create", "update"] = "create"

    @field_validator("token", mode="before")
    @classmethod
    def resolve_env_token(cls, v: str) -> str:
        return _resolve_env(v)


class CommitConfig(BaseModel):
    enabled: bool = False
    amend: bool = False
    message: str = "Update visual regression screenshots"
    remote: str = "origin"
    base_ref: str = "main"
    head_ref: str = ""
    author_name: str = "github-actions[bot]"
    author_email: str = "41898282+github-actions[bot]@users.noreply.github.com"


class VisregConfig(BaseModel):
    working_directory: str = "."
    fail_on_changes: bool = False

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    compare: CompareConfig = Field(default_factory=CompareConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    commit: CommitConfig = Field(default_factory=CommitConfig)

    def resolve_path(self, path: str | Path) -> Path:
        """Resolve a path against the working directory."""
        return (Path(self.working_directory) / path).resolve()

    def with_overrides(self, overrides: dict[str, Any]) -> "VisregConfig":
        """Return a copy with non-None overrides applied.

        Keys are either top-level field names or ``section.field`` paths.
        """
        data = self.model_dump()
        for key, value in overrides.items():
            if value is None:
                continue
            section, _, field = key.rpartition(".")
            target = data[section] if section else data
            target[field] = value
        return VisregConfig.model_validate(data)

    @classmethod
    def load(cls, path: str | Path) -> "VisregConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)
