"""imgbb backend: token-authenticated image hosting API."""

from __future__ import annotations

import base64
import logging
from pathlib import Path
from typing import Optional

import httpx

from visreg.errors import PublishError

from .base import StorageBackend

logger = logging.getLogger(__name__)

IMGBB_UPLOAD_URL = "https://api.imgbb.com/1/upload"


class ImgbbBackend(StorageBackend):
    name = "imgbb"

    def __init__(
        self,
        api_key: str,
        expiration: Optional[int] = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.expiration = expiration
        self.client = client or httpx.AsyncClient(timeout=60.0)

    async def upload(self, data: bytes, key: str, content_type: str) -> str:
        params = {"key": self.api_key}
        if self.expiration:
            params["expiration"] = str(self.expiration)
        form = {
            "image": base64.b64encode(data).decode(),
            "name": Path(key).stem,
        }
        response = await self.client.post(IMGBB_UPLOAD_URL, params=params, data=form)
        response.raise_for_status()

        payload = response.json()
        url = (payload.get("data") or {}).get("url")
        if not payload.get("success") or not url:
            raise PublishError(f"imgbb rejected upload of {key}: status {payload.get('status')}")
        return url

    async def aclose(self) -> None:
        await self.client.aclose()
