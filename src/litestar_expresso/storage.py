"""HTTP object storage backend for evidence files."""

from __future__ import annotations

import logging

import httpx

from litestar_expresso.config import ExpressoConfig
from litestar_expresso.exceptions import ConfigurationError, UploadFailureError

logger = logging.getLogger(__name__)


class HTTPObjectStorage:
    """Bucket/object REST storage reached over httpx.

    Objects are written with ``POST {base}/object/{bucket}/{path}`` and
    served from ``{base}/object/public/{bucket}/{path}``.

    Implements the EvidenceStorage protocol.
    """

    def __init__(
        self,
        base_url: str,
        bucket: str,
        *,
        api_key: str = "",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        if not base_url:
            raise ConfigurationError("Object storage URL not configured")
        self._base_url = base_url.rstrip("/")
        self._bucket = bucket
        self._api_key = api_key
        self._client = client
        self._timeout = timeout

    @classmethod
    def from_config(
        cls, config: ExpressoConfig, client: httpx.AsyncClient | None = None
    ) -> HTTPObjectStorage:
        return cls(
            config.storage_url,
            config.storage_bucket,
            api_key=config.storage_api_key,
            client=client,
        )

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/object/public/{self._bucket}/{path}"

    def _object_url(self, path: str) -> str:
        return f"{self._base_url}/object/{self._bucket}/{path}"

    def _headers(self, **extra: str) -> dict[str, str]:
        headers = dict(extra)
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(
                method, url, timeout=self._timeout, **kwargs
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    async def upload(self, path: str, content: bytes, content_type: str) -> str:
        """Store ``content`` under ``path`` (never overwriting)."""
        try:
            response = await self._request(
                "POST",
                self._object_url(path),
                content=content,
                headers=self._headers(
                    **{"Content-Type": content_type, "x-upsert": "false"}
                ),
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UploadFailureError(
                f"Upload of {path!r} failed: {exc}"
            ) from exc
        logger.debug("Uploaded evidence %s (%d bytes)", path, len(content))
        return self.public_url(path)

    async def delete(self, path: str) -> None:
        try:
            response = await self._request(
                "DELETE", self._object_url(path), headers=self._headers()
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise UploadFailureError(
                f"Removal of {path!r} failed: {exc}"
            ) from exc
