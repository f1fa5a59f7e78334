from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx

from .base import GCPRequestError, request_json
from .identity import IdentityProvider

logger = logging.getLogger(__name__)

SPEECH_API_URL = "https://speech.googleapis.com/v2"
SPEECH_LOCATION = "global"
# "_" is the implicit recognizer; config is passed inline.
IMPLICIT_RECOGNIZER = "_"


class TranscriptionError(RuntimeError):
    """Speech-to-Text could not produce a transcript."""


class EmptyTranscriptError(TranscriptionError):
    """Recognition succeeded but returned no words."""


def join_first_alternatives(response: Any) -> str:
    parts: list[str] = []
    for result in (response or {}).get("results") or []:
        alternatives = (result or {}).get("alternatives") or []
        if not alternatives:
            continue
        text = (alternatives[0] or {}).get("transcript")
        if text:
            parts.append(str(text))
    return " ".join(parts).strip()


class SpeechTranscriber:
    def __init__(
        self,
        identity: IdentityProvider,
        client: httpx.AsyncClient,
        *,
        project_id: str = "",
        api_base_url: str = SPEECH_API_URL,
        location: str = SPEECH_LOCATION,
    ) -> None:
        self._identity = identity
        self._client = client
        self._project_id = project_id
        self._api_base_url = api_base_url.rstrip("/")
        self._location = location

    async def _resolve_project_id(self) -> str:
        if self._project_id:
            return self._project_id
        return await self._identity.project_id()

    def build_request_body(self, storage_uri: str, language_code: str, model: str) -> dict[str, Any]:
        return {
            "config": {
                "autoDecodingConfig": {},
                "languageCodes": [language_code],
                "model": model,
                "features": {"enableAutomaticPunctuation": True},
            },
            "uri": storage_uri,
        }

    async def transcribe(self, storage_uri: str, language_code: str, model: str) -> str:
        try:
            token = await self._identity.access_token()
            project_id = await self._resolve_project_id()
        except GCPRequestError as exc:
            raise TranscriptionError(f"Failed to resolve speech credentials: {exc}") from exc

        url = (
            f"{self._api_base_url}/projects/{quote(project_id, safe='')}/locations/"
            f"{self._location}/recognizers/{IMPLICIT_RECOGNIZER}:recognize"
        )
        try:
            response = await request_json(
                self._client,
                "POST",
                url,
                headers={"Authorization": f"Bearer {token}"},
                json=self.build_request_body(storage_uri, language_code, model),
            )
        except GCPRequestError as exc:
            raise TranscriptionError(str(exc)) from exc

        transcript = join_first_alternatives(response)
        logger.debug(
            "speech_recognize_done uri=%s results=%s chars=%s",
            storage_uri,
            len((response or {}).get("results") or []),
            len(transcript),
        )
        if not transcript:
            raise EmptyTranscriptError("No transcript returned from Speech-to-Text")
        return transcript
