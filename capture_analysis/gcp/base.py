from __future__ import annotations

from typing import Any, Mapping, Optional

import httpx


class GCPRequestError(RuntimeError):
    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


def _short_body(text: str, limit: int = 500) -> str:
    text = (text or "").strip()
    if len(text) > limit:
        return text[:limit] + "..."
    return text


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    headers: Optional[Mapping[str, str]] = None,
    json: Any = None,
    params: Optional[Mapping[str, str]] = None,
) -> Any:
    try:
        response = await client.request(method, url, headers=headers, json=json, params=params)
    except httpx.HTTPError as exc:
        raise GCPRequestError(f"{method} {url} failed: {exc}") from exc

    if response.status_code < 200 or response.status_code >= 300:
        body = _short_body(response.text)
        raise GCPRequestError(
            f"HTTP {response.status_code}: {body}",
            status_code=response.status_code,
            body=body,
        )
    try:
        return response.json()
    except ValueError as exc:
        raise GCPRequestError(f"Invalid JSON from {url}: {exc}", status_code=response.status_code) from exc

