from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import anyio
from google.auth import default as google_auth_default
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as AuthRequest
from google.oauth2 import service_account

from .base import GCPRequestError

CLOUD_PLATFORM_SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]
# Compute credentials report this placeholder until the first refresh.
_UNRESOLVED_EMAIL = "default"


class IdentityProvider(ABC):
    """Runtime service identity used to call Google APIs."""

    @abstractmethod
    async def access_token(self) -> str: ...

    @abstractmethod
    async def service_account_email(self) -> str: ...

    @abstractmethod
    async def project_id(self) -> str: ...


def build_credentials(scopes: list[str] = CLOUD_PLATFORM_SCOPES) -> tuple[Credentials, Optional[str]]:
    key_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
    if key_path and os.path.exists(key_path):
        credentials = service_account.Credentials.from_service_account_file(key_path, scopes=scopes)
        return credentials, credentials.project_id
    return google_auth_default(scopes=scopes)


class GoogleAuthIdentity(IdentityProvider):
    """
    Identity backed by google-auth Application Default Credentials.

    On Cloud Run these are the metadata-server credentials of the attached
    service account. google-auth owns token caching and expiry; refreshes run
    in a worker thread because its transport is blocking.
    """

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        project_id: Optional[str] = None,
        *,
        request_factory: Callable[[], Any] = AuthRequest,
    ) -> None:
        self._credentials = credentials
        self._project_id = project_id or None
        self._request_factory = request_factory

    def _fresh_credentials(self) -> Credentials:
        if self._credentials is None:
            credentials, project_id = build_credentials()
            self._credentials = credentials
            self._project_id = self._project_id or project_id
        if not self._credentials.valid:
            self._credentials.refresh(self._request_factory())
        return self._credentials

    async def _credentials_ready(self) -> Credentials:
        try:
            return await anyio.to_thread.run_sync(self._fresh_credentials)
        except GoogleAuthError as exc:
            raise GCPRequestError(f"Failed to resolve Google credentials: {exc}") from exc

    async def access_token(self) -> str:
        credentials = await self._credentials_ready()
        if not credentials.token:
            raise GCPRequestError("Google credentials returned no access token")
        return str(credentials.token)

    async def service_account_email(self) -> str:
        credentials = await self._credentials_ready()
        email = getattr(credentials, "service_account_email", None)
        if not email or email == _UNRESOLVED_EMAIL:
            raise GCPRequestError("Runtime credentials do not carry a service account email")
        return str(email)

    async def project_id(self) -> str:
        credentials = await self._credentials_ready()
        project_id = self._project_id or getattr(credentials, "project_id", None)
        if not project_id:
            raise GCPRequestError("Unable to determine the Google Cloud project")
        return str(project_id)
