"""S3-compatible bucket backend (AWS S3, Cloudflare R2, MinIO)."""

from __future__ import annotations

import asyncio
import logging

import boto3

from visreg.models.config import StorageConfig

from .base import StorageBackend

logger = logging.getLogger(__name__)


class S3Backend(StorageBackend):
    name = "S3-compatible storage"

    def __init__(self, config: StorageConfig, client=None):
        self.bucket = config.s3_bucket
        self.public_url = config.public_url.rstrip("/")
        self.client = client or boto3.client(
            "s3",
            endpoint_url=config.endpoint_url(),
            region_name=config.s3_region,
            aws_access_key_id=config.s3_access_key_id,
            aws_secret_access_key=config.s3_secret_access_key,
        )

    async def upload(self, data: bytes, key: str, content_type: str) -> str:
        # boto3 is blocking; run each put in a worker thread
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        return f"{self.public_url}/{key}"
