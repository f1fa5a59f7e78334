from __future__ import annotations

"""
Sequence a capture from upload credential to scored evidence.

Design intent:
- init: issue a signed PUT URL; nothing is stored server-side.
- analyze: validate object -> transcribe -> score, failing fast at the first broken step.
- Keep every call stateless; the client carries captureId/objectPath between steps.
"""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from capture_analysis.domain import PromptSpec, UnknownPromptError, get_prompt_spec
from capture_analysis.gcp import (
    ObjectNotFoundError,
    ObjectProbeError,
    ObjectValidator,
    SigningError,
    SpeechTranscriber,
    TranscriptionError,
    UploadUrlSigner,
)
from capture_analysis.internal_core.config import CaptureConfig
from capture_analysis.internal_core.contracts import (
    CaptureAnalyzeRequest,
    CaptureState,
    ScoringResult,
    UploadInstructions,
)
from capture_analysis.internal_core.session_registry import InFlightMarker
from capture_analysis.scoring import score_transcript

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "audio/mp4"
DEFAULT_EXTENSION = "m4a"
DEFAULT_LANGUAGE = "en-US"
_EXTENSION_RE = re.compile(r"^[A-Za-z0-9]{1,16}$")
_CONTROL_CHAR_RE = re.compile(r"[\x00-\x1f\x7f]")


class CaptureError(RuntimeError):
    status_code = 500

    def __init__(self, error: str, details: Optional[str] = None):
        message = f"{error}: {details}" if details else error
        super().__init__(message)
        self.message = message
        self.error = error
        self.details = details

    def to_payload(self) -> dict[str, str]:
        payload = {"error": self.error}
        if self.details:
            payload["details"] = self.details
        return payload


class CaptureConfigurationError(CaptureError):
    status_code = 500


class CaptureRequestError(CaptureError):
    status_code = 400


class CaptureNotFoundError(CaptureError):
    status_code = 404


class CaptureUpstreamError(CaptureError):
    status_code = 500


class CaptureBusyError(CaptureError):
    status_code = 409


@dataclass(frozen=True)
class CaptureInitResult:
    capture_id: str
    upload: UploadInstructions


@dataclass(frozen=True)
class CaptureAnalysis:
    capture_id: str
    scoring: ScoringResult
    transcript: str
    language: str
    model: str
    storage_uri: str
    include_debug: bool

    def debug_payload(self) -> Optional[dict[str, Any]]:
        if not self.include_debug:
            return None
        payload: dict[str, Any] = {
            "transcript": self.transcript,
            "language": self.language,
            "model": self.model,
            "gcsUri": self.storage_uri,
        }
        if self.scoring.debug is not None:
            payload.update(self.scoring.debug.model_dump(by_alias=True, exclude_none=True))
        return payload


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_extension(extension: Optional[str]) -> str:
    value = (extension or "").strip().lstrip(".")
    if not value:
        return DEFAULT_EXTENSION
    if not _EXTENSION_RE.match(value):
        logger.warning("capture_init_extension_ignored extension=%r", extension)
        return DEFAULT_EXTENSION
    return value.lower()


class CaptureOrchestrator:
    def __init__(
        self,
        config: CaptureConfig,
        *,
        signer: UploadUrlSigner,
        validator: ObjectValidator,
        transcriber: SpeechTranscriber,
        clock: Callable[[], datetime] = _utc_now,
        in_flight: Optional[InFlightMarker] = None,
    ) -> None:
        self._config = config
        self._signer = signer
        self._validator = validator
        self._transcriber = transcriber
        self._clock = clock
        self._in_flight = in_flight or InFlightMarker()

    def _require_bucket(self) -> str:
        bucket = (self._config.CAPTURE_AUDIO_BUCKET or "").strip()
        if not bucket:
            raise CaptureConfigurationError("Missing CAPTURE_AUDIO_BUCKET configuration")
        return bucket

    def _transition(self, capture_id: str, state: CaptureState, detail: str = "") -> None:
        logger.info("capture_state capture_id=%s state=%s %s", capture_id, state, detail)

    async def init_capture(
        self,
        content_type: Optional[str] = None,
        extension: Optional[str] = None,
    ) -> CaptureInitResult:
        bucket = self._require_bucket()
        capture_id = str(uuid.uuid4())
        resolved_content_type = (content_type or "").strip() or DEFAULT_CONTENT_TYPE
        # Signed into the canonical headers verbatim.
        if _CONTROL_CHAR_RE.search(resolved_content_type):
            raise CaptureRequestError("Invalid contentType", "control characters are not allowed")
        object_path = f"captures/{capture_id}/audio.{_normalize_extension(extension)}"

        try:
            signed = await self._signer.issue_upload_credential(
                bucket,
                object_path,
                resolved_content_type,
                self._config.CAPTURE_UPLOAD_TTL_SECONDS,
                now=self._clock(),
            )
        except SigningError as exc:
            self._transition(capture_id, "failed", "reason=signing")
            raise CaptureUpstreamError("Failed to generate upload URL", exc.reason) from exc

        self._transition(capture_id, "initialized", f"object={object_path}")
        return CaptureInitResult(
            capture_id=capture_id,
            upload=UploadInstructions(
                url=signed.url,
                headers={"Content-Type": resolved_content_type},
                object_path=object_path,
                expires_at=signed.expires_at,
            ),
        )

    def _resolve_prompt(self, prompt_id: Optional[str]) -> Optional[PromptSpec]:
        normalized = (prompt_id or "").strip()
        if not normalized:
            return None
        try:
            return get_prompt_spec(normalized)
        except UnknownPromptError as exc:
            raise CaptureRequestError("Unknown promptId", normalized) from exc

    async def analyze_capture(self, capture_id: str, request: CaptureAnalyzeRequest) -> CaptureAnalysis:
        bucket = self._require_bucket()
        object_path = (request.object_path or "").strip()
        if not object_path:
            raise CaptureRequestError("Missing required field: objectPath")
        prompt = self._resolve_prompt(request.prompt_id)
        language = (request.language or "").strip() or DEFAULT_LANGUAGE
        model = (request.model or "").strip() or self._config.SPEECH_MODEL
        include_debug = bool(request.include_transcript) or self._config.INCLUDE_TRANSCRIPT_DEBUG

        if not self._in_flight.try_acquire(capture_id):
            raise CaptureBusyError(f"Capture {capture_id} is already being analyzed")
        try:
            self._transition(capture_id, "analyzing", f"object={object_path}")
            try:
                await self._validator.assert_object_exists(bucket, object_path)
            except ObjectNotFoundError as exc:
                self._transition(capture_id, "failed", "reason=not_found")
                raise CaptureNotFoundError("Audio object not found in bucket", f"gs://{bucket}/{object_path}") from exc
            except ObjectProbeError as exc:
                self._transition(capture_id, "failed", "reason=probe")
                raise CaptureUpstreamError("Failed to validate audio object", str(exc)) from exc

            storage_uri = f"gs://{bucket}/{object_path}"
            try:
                transcript = await self._transcriber.transcribe(storage_uri, language, model)
            except TranscriptionError as exc:
                logger.error(
                    "transcribe_failed capture_id=%s lang=%s model=%s error=%s",
                    capture_id,
                    language,
                    model,
                    exc,
                )
                self._transition(capture_id, "failed", "reason=transcription")
                raise CaptureUpstreamError("Transcription failed", str(exc)) from exc
            logger.info(
                "transcribe_done capture_id=%s lang=%s model=%s chars=%s",
                capture_id,
                language,
                model,
                len(transcript),
            )

            scoring = score_transcript(
                transcript,
                prompt,
                source_type="audio",
                source_session_id=capture_id,
                include_debug=include_debug,
                now=self._clock(),
            )
            self._transition(capture_id, "done", f"guess={scoring.dimension_state.mbti_guess}")
        finally:
            self._in_flight.release(capture_id)

        return CaptureAnalysis(
            capture_id=capture_id,
            scoring=scoring,
            transcript=transcript,
            language=language,
            model=model,
            storage_uri=storage_uri,
            include_debug=include_debug,
        )
