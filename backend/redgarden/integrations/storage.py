"""Object storage for rendered invoices (Supabase Storage REST API)."""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from ..config import Settings
from ..errors import StorageError

logger = logging.getLogger(__name__)


class SupabaseStorage:
    def __init__(self, settings: Settings, client: httpx.AsyncClient) -> None:
        settings.require("supabase_url", "supabase_service_key")
        self.base_url = settings.supabase_url.rstrip("/")
        self.service_key = settings.supabase_service_key
        self.bucket = settings.invoice_bucket
        self.client = client

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }

    async def upload(self, key: str, data: bytes, content_type: str, upsert: bool = True) -> None:
        """Upload ``data`` at ``key``; with upsert an existing object is replaced."""
        url = f"{self.base_url}/storage/v1/object/{self.bucket}/{key}"
        headers = dict(self._headers)
        headers["Content-Type"] = content_type
        headers["x-upsert"] = "true" if upsert else "false"
        try:
            resp = await self.client.post(url, content=data, headers=headers)
        except httpx.RequestError as exc:
            raise StorageError(f"upload of {key} failed: {type(exc).__name__}: {exc}") from exc
        if resp.is_error:
            raise StorageError(f"upload of {key} failed: HTTP {resp.status_code} {resp.text[:200]}")
        logger.info("uploaded %s to bucket %s", key, self.bucket)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{key}"

    async def create_bucket(self, public: bool = True) -> Dict[str, Any]:
        """Create the bucket; an already existing bucket is not an error."""
        url = f"{self.base_url}/storage/v1/bucket"
        body = {"id": self.bucket, "name": self.bucket, "public": public}
        try:
            resp = await self.client.post(url, json=body, headers=self._headers)
        except httpx.RequestError as exc:
            raise StorageError(f"bucket creation failed: {type(exc).__name__}: {exc}") from exc

        if resp.is_error:
            if resp.status_code in (400, 409) and "exist" in resp.text.lower():
                return {"name": self.bucket, "created": False}
            raise StorageError(f"bucket creation failed: HTTP {resp.status_code} {resp.text[:200]}")
        return {"name": self.bucket, "created": True}
