from __future__ import annotations

"""
Issue V4 signed PUT URLs for direct-to-bucket audio uploads.

Design intent:
- Keep canonical request construction pure so it can be checked byte-for-byte.
- Delegate the RSA signature to IAM Credentials signBlob; no private key is held locally.
- Never hand back a partial credential: any failure surfaces as SigningError.
"""

import base64
import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional
from urllib.parse import quote

import httpx

from .base import request_json
from .identity import IdentityProvider

logger = logging.getLogger(__name__)

SIGNING_ALGORITHM = "GOOG4-RSA-SHA256"
STORAGE_HOST = "storage.googleapis.com"
SIGNING_REGION = "auto"
SIGNING_SERVICE = "storage"
SIGNING_REQUEST_TYPE = "goog4_request"
SIGNED_HEADERS = "content-type;host"
UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
IAM_CREDENTIALS_URL = "https://iamcredentials.googleapis.com/v1"
# V4 signed URLs cannot outlive 7 days.
MAX_TTL_SECONDS = 604800


class SigningError(RuntimeError):
    """Raised when an upload credential cannot be produced."""

    def __init__(self, reason: str):
        super().__init__(f"Failed to generate upload URL: {reason}")
        self.reason = reason


@dataclass(frozen=True)
class SignedUploadUrl:
    url: str
    expires_at: str


@dataclass(frozen=True)
class V4SigningPlan:
    host: str
    canonical_uri: str
    canonical_query: str
    canonical_request: str
    string_to_sign: str
    scope: str
    request_timestamp: str


def _encode_component(value: str) -> str:
    return quote(value, safe="-_.~")


def encode_object_path(object_path: str) -> str:
    return "/".join(_encode_component(segment) for segment in object_path.split("/"))


def signing_timestamps(now: datetime) -> tuple[str, str]:
    moment = now if now.tzinfo is not None else now.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y%m%dT%H%M%SZ"), moment.strftime("%Y%m%d")


def canonical_query_string(params: Mapping[str, str]) -> str:
    return "&".join(
        f"{_encode_component(key)}={_encode_component(params[key])}" for key in sorted(params)
    )


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def prepare_signed_put(
    *,
    bucket: str,
    object_path: str,
    content_type: str,
    ttl_seconds: int,
    service_account_email: str,
    now: datetime,
    host: str = STORAGE_HOST,
) -> V4SigningPlan:
    request_timestamp, datestamp = signing_timestamps(now)
    scope = f"{datestamp}/{SIGNING_REGION}/{SIGNING_SERVICE}/{SIGNING_REQUEST_TYPE}"

    query = {
        "X-Goog-Algorithm": SIGNING_ALGORITHM,
        "X-Goog-Credential": f"{service_account_email}/{scope}",
        "X-Goog-Date": request_timestamp,
        "X-Goog-Expires": str(int(ttl_seconds)),
        "X-Goog-SignedHeaders": SIGNED_HEADERS,
    }
    canonical_query = canonical_query_string(query)
    canonical_uri = f"/{bucket}/{encode_object_path(object_path)}"
    canonical_headers = f"content-type:{content_type}\nhost:{host}\n"

    canonical_request = "\n".join(
        [
            "PUT",
            canonical_uri,
            canonical_query,
            canonical_headers,
            SIGNED_HEADERS,
            UNSIGNED_PAYLOAD,
        ]
    )
    string_to_sign = "\n".join(
        [
            SIGNING_ALGORITHM,
            request_timestamp,
            scope,
            sha256_hex(canonical_request),
        ]
    )
    return V4SigningPlan(
        host=host,
        canonical_uri=canonical_uri,
        canonical_query=canonical_query,
        canonical_request=canonical_request,
        string_to_sign=string_to_sign,
        scope=scope,
        request_timestamp=request_timestamp,
    )


class UploadUrlSigner:
    def __init__(
        self,
        identity: IdentityProvider,
        client: httpx.AsyncClient,
        *,
        iam_base_url: str = IAM_CREDENTIALS_URL,
        host: str = STORAGE_HOST,
    ) -> None:
        self._identity = identity
        self._client = client
        self._iam_base_url = iam_base_url.rstrip("/")
        self._host = host

    async def sign_blob(self, service_account_email: str, payload: bytes) -> bytes:
        token = await self._identity.access_token()
        url = (
            f"{self._iam_base_url}/projects/-/serviceAccounts/"
            f"{quote(service_account_email, safe='')}:signBlob"
        )
        resp = await request_json(
            self._client,
            "POST",
            url,
            headers={"Authorization": f"Bearer {token}"},
            json={"payload": base64.b64encode(payload).decode("ascii")},
        )
        signed_blob = (resp or {}).get("signedBlob")
        if not signed_blob:
            raise SigningError("signBlob response is missing signedBlob")
        return base64.b64decode(signed_blob)

    async def issue_upload_credential(
        self,
        bucket: str,
        object_path: str,
        content_type: str,
        ttl_seconds: int,
        now: Optional[datetime] = None,
    ) -> SignedUploadUrl:
        if not bucket:
            raise SigningError("bucket is required")
        ttl_seconds = max(1, min(int(ttl_seconds), MAX_TTL_SECONDS))
        moment = now or datetime.now(timezone.utc)

        try:
            email = await self._identity.service_account_email()
            plan = prepare_signed_put(
                bucket=bucket,
                object_path=object_path,
                content_type=content_type,
                ttl_seconds=ttl_seconds,
                service_account_email=email,
                now=moment,
                host=self._host,
            )
            signature = await self.sign_blob(email, plan.string_to_sign.encode("utf-8"))
        except Exception as exc:
            reason = exc.reason if isinstance(exc, SigningError) else str(exc)
            logger.warning("signed_url_failed bucket=%s object=%s error=%s", bucket, object_path, reason)
            raise SigningError(reason) from exc

        url = (
            f"https://{plan.host}{plan.canonical_uri}?{plan.canonical_query}"
            f"&X-Goog-Signature={signature.hex()}"
        )
        expires_at = (moment + timedelta(seconds=ttl_seconds)).astimezone(timezone.utc)
        return SignedUploadUrl(
            url=url,
            expires_at=expires_at.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        )
