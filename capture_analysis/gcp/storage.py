from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from .base import GCPRequestError, request_json
from .identity import IdentityProvider

logger = logging.getLogger(__name__)

STORAGE_API_URL = "https://storage.googleapis.com/storage/v1"
_METADATA_FIELDS = "name,size,contentType,updated"


class ObjectNotFoundError(RuntimeError):
    """The object is absent; the client should upload again."""

    def __init__(self, bucket: str, object_path: str):
        super().__init__(f"Audio object not found in bucket: gs://{bucket}/{object_path}")
        self.bucket = bucket
        self.object_path = object_path


class ObjectProbeError(RuntimeError):
    """The metadata read failed for an operational reason."""


@dataclass(frozen=True)
class ObjectMetadata:
    name: str
    size: Optional[int] = None
    content_type: Optional[str] = None
    updated: Optional[str] = None


class ObjectValidator:
    def __init__(
        self,
        identity: IdentityProvider,
        client: httpx.AsyncClient,
        *,
        api_base_url: str = STORAGE_API_URL,
        max_attempts: int = 1,
    ) -> None:
        self._identity = identity
        self._client = client
        self._api_base_url = api_base_url.rstrip("/")
        self._max_attempts = max(1, int(max_attempts))

    async def _read_metadata(self, bucket: str, object_path: str) -> ObjectMetadata:
        try:
            token = await self._identity.access_token()
        except GCPRequestError as exc:
            raise ObjectProbeError(f"Failed to resolve access token: {exc}") from exc

        # The JSON API wants the whole object name encoded, "/" included.
        url = f"{self._api_base_url}/b/{quote(bucket, safe='')}/o/{quote(object_path, safe='')}"
        try:
            payload = await request_json(
                self._client,
                "GET",
                url,
                headers={"Authorization": f"Bearer {token}"},
                params={"fields": _METADATA_FIELDS},
            )
        except GCPRequestError as exc:
            if exc.is_not_found:
                raise ObjectNotFoundError(bucket, object_path) from exc
            raise ObjectProbeError(str(exc)) from exc

        payload = payload or {}
        size_raw = payload.get("size")
        try:
            size = int(size_raw) if size_raw is not None else None
        except (TypeError, ValueError):
            size = None
        return ObjectMetadata(
            name=str(payload.get("name") or object_path),
            size=size,
            content_type=payload.get("contentType"),
            updated=payload.get("updated"),
        )

    async def assert_object_exists(self, bucket: str, object_path: str) -> ObjectMetadata:
        last_error: Optional[ObjectProbeError] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._read_metadata(bucket, object_path)
            except ObjectProbeError as exc:
                last_error = exc
                logger.warning(
                    "object_probe_failed bucket=%s object=%s attempt=%s/%s error=%s",
                    bucket,
                    object_path,
                    attempt,
                    self._max_attempts,
                    exc,
                )
        assert last_error is not None
        raise last_error
