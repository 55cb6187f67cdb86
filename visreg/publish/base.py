"""Artifact publishing — content-addressed, deduplicated uploads."""

from __future__ import annotations

import asyncio
import hashlib
import logging
from abc import ABC, abstractmethod
from pathlib import Path

from visreg.errors import PublishError
from visreg.models.comparison import Artifact, ArtifactKind

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ".png": "image/png",
    ".gif": "image/gif",
}


def content_key(path: Path) -> str:
    """Storage key for a file: SHA-256 of its bytes plus its extension."""
    digest = hashlib.sha256(path.read_bytes()).hexdigest()
    return f"{digest}{path.suffix.lower()}"


def make_artifact(name: str, kind: ArtifactKind, path: Path) -> Artifact:
    return Artifact(
        name=name,
        kind=kind,
        path=str(path),
        key=content_key(path),
        content_type=CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream"),
    )


class StorageBackend(ABC):
    """Stores bytes under a key and returns the public URL."""

    name = "storage"

    @abstractmethod
    async def upload(self, data: bytes, key: str, content_type: str) -> str:
        ...

    async def prepare(self) -> None:
        """Called once before the first upload."""

    async def finalize(self) -> None:
        """Called once after all uploads succeeded."""

    async def aclose(self) -> None:
        """Release any client resources."""


class ArtifactPublisher:
    """Uploads each unique artifact once and shares its URL among duplicates."""

    def __init__(self, backend: StorageBackend, max_concurrency: int = 4):
        self.backend = backend
        self.max_concurrency = max_concurrency

    def publish(self, artifacts: list[Artifact]) -> None:
        """Upload artifacts and fill in their ``url`` fields."""
        asyncio.run(self.publish_async(artifacts))

    async def publish_async(self, artifacts: list[Artifact]) -> None:
        if not artifacts:
            return

        by_key: dict[str, list[Artifact]] = {}
        for artifact in artifacts:
            by_key.setdefault(artifact.key, []).append(artifact)

        unique = len(by_key)
        duplicates = len(artifacts) - unique
        if duplicates:
            logger.info(
                "Found %d duplicate(s). Uploading %d unique image(s) instead of %d.",
                duplicates, unique, len(artifacts),
            )
        logger.info("Uploading %d image(s) to %s...", unique, self.backend.name)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _upload_one(key: str, group: list[Artifact]) -> str:
            async with semaphore:
                data = Path(group[0].path).read_bytes()
                url = await self.backend.upload(data, key, group[0].content_type)
            for artifact in group:
                artifact.url = url
            logger.info("Uploaded %s -> %s", key, url)
            if len(group) > 1:
                logger.info("   Shared by %d files: %s", len(group),
                            ", ".join(a.name for a in group))
            return key

        try:
            try:
                await self.backend.prepare()
            except Exception as e:
                raise PublishError(
                    f"{unique} of {unique} uploads failed: {self.backend.name} unavailable: {e}",
                    failed=list(by_key), total=unique,
                ) from e

            results = await asyncio.gather(
                *(_upload_one(key, group) for key, group in by_key.items()),
                return_exceptions=True,
            )

            failed = []
            for key, result in zip(by_key, results):
                if isinstance(result, BaseException):
                    logger.error("Upload of %s failed: %s", key, result)
                    failed.append(key)
            if failed:
                raise PublishError(
                    f"{len(failed)} of {unique} uploads failed", failed=failed, total=unique,
                )

            try:
                await self.backend.finalize()
            except Exception as e:
                raise PublishError(
                    f"{unique} of {unique} uploads failed: {e}",
                    failed=list(by_key), total=unique,
                ) from e
        finally:
            await self.backend.aclose()

        logger.info(
            "Successfully uploaded %d unique image(s) (%d total references)",
            unique, len(artifacts),
        )
