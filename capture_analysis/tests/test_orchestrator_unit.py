import asyncio
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from capture_analysis.capture import (
    CaptureBusyError,
    CaptureConfigurationError,
    CaptureNotFoundError,
    CaptureOrchestrator,
    CaptureRequestError,
    CaptureUpstreamError,
)
from capture_analysis.gcp import (
    EmptyTranscriptError,
    ObjectMetadata,
    ObjectNotFoundError,
    ObjectProbeError,
    SignedUploadUrl,
    SigningError,
)
from capture_analysis.internal_core.config import CaptureConfig
from capture_analysis.internal_core.contracts import CaptureAnalyzeRequest
from capture_analysis.internal_core.session_registry import InFlightMarker

FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

BASE_CONFIG = CaptureConfig(
    PORT=8080,
    NODE_ENV="development",
    LOG_LEVEL="info",
    CAPTURE_API_SHARED_SECRET="",
    CAPTURE_AUDIO_BUCKET="capture-bucket",
    SPEECH_MODEL="latest_long",
    INCLUDE_TRANSCRIPT_DEBUG=False,
    GOOGLE_CLOUD_PROJECT="proj",
    GOOGLE_CLOUD_REGION="",
    CAPTURE_UPLOAD_TTL_SECONDS=600,
    CAPTURE_HTTP_TIMEOUT_SECONDS=30.0,
    CAPTURE_METADATA_PROBE_ATTEMPTS=1,
)


class FakeSigner:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple] = []

    async def issue_upload_credential(self, bucket, object_path, content_type, ttl_seconds, now=None):
        self.calls.append((bucket, object_path, content_type, ttl_seconds, now))
        if self.error is not None:
            raise self.error
        return SignedUploadUrl(url=f"https://signed.example/{bucket}/{object_path}", expires_at="2025-06-01T12:10:00.000Z")


class FakeValidator:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def assert_object_exists(self, bucket, object_path):
        self.calls.append((bucket, object_path))
        if self.error is not None:
            raise self.error
        return ObjectMetadata(name=object_path)


class FakeTranscriber:
    def __init__(self, transcript: str = "party conference mixer", error: Exception | None = None) -> None:
        self.transcript = transcript
        self.error = error
        self.calls: list[tuple[str, str, str]] = []

    async def transcribe(self, storage_uri, language_code, model):
        self.calls.append((storage_uri, language_code, model))
        if self.error is not None:
            raise self.error
        return self.transcript


def _orchestrator(config: CaptureConfig = BASE_CONFIG, **overrides) -> CaptureOrchestrator:
    collaborators = {
        "signer": FakeSigner(),
        "validator": FakeValidator(),
        "transcriber": FakeTranscriber(),
    }
    collaborators.update(overrides)
    return CaptureOrchestrator(config, clock=lambda: FIXED_NOW, **collaborators)


def test_init_capture_uses_defaults_and_configured_ttl() -> None:
    signer = FakeSigner()
    result = asyncio.run(_orchestrator(signer=signer).init_capture())

    assert result.upload.object_path == f"captures/{result.capture_id}/audio.m4a"
    assert result.upload.method == "PUT"
    assert result.upload.headers == {"Content-Type": "audio/mp4"}
    assert result.upload.expires_at == "2025-06-01T12:10:00.000Z"
    assert signer.calls == [("capture-bucket", result.upload.object_path, "audio/mp4", 600, FIXED_NOW)]


def test_init_capture_honors_body_and_ignores_bad_extension() -> None:
    orchestrator = _orchestrator()
    webm = asyncio.run(orchestrator.init_capture("audio/webm", ".WEBM"))
    assert webm.upload.object_path.endswith("/audio.webm")
    assert webm.upload.headers["Content-Type"] == "audio/webm"

    odd = asyncio.run(orchestrator.init_capture(None, "../../etc"))
    assert odd.upload.object_path.endswith("/audio.m4a")


def test_init_capture_ids_are_unique() -> None:
    orchestrator = _orchestrator()
    first = asyncio.run(orchestrator.init_capture())
    second = asyncio.run(orchestrator.init_capture())
    assert first.capture_id != second.capture_id


def test_init_capture_requires_bucket() -> None:
    orchestrator = _orchestrator(replace(BASE_CONFIG, CAPTURE_AUDIO_BUCKET=""))
    with pytest.raises(CaptureConfigurationError) as excinfo:
        asyncio.run(orchestrator.init_capture())
    assert excinfo.value.status_code == 500


def test_init_capture_signing_failure_is_upstream_error() -> None:
    signer = FakeSigner(SigningError("HTTP 403: denied"))
    with pytest.raises(CaptureUpstreamError) as excinfo:
        asyncio.run(_orchestrator(signer=signer).init_capture())
    assert "HTTP 403: denied" in excinfo.value.message


def test_init_capture_rejects_control_characters_in_content_type() -> None:
    signer = FakeSigner()
    with pytest.raises(CaptureRequestError) as excinfo:
        asyncio.run(_orchestrator(signer=signer).init_capture("audio/mp4\r\nx-injected: 1"))
    assert excinfo.value.status_code == 400
    assert signer.calls == []


def test_analyze_capture_scores_prompted_answer() -> None:
    transcriber = FakeTranscriber("I'd pick a party or a conference mixer")
    orchestrator = _orchestrator(transcriber=transcriber)
    request = CaptureAnalyzeRequest(object_path="captures/cap-1/audio.m4a", prompt_id="VK.IE.1A.v1")

    analysis = asyncio.run(orchestrator.analyze_capture("cap-1", request))

    assert transcriber.calls == [("gs://capture-bucket/captures/cap-1/audio.m4a", "en-US", "latest_long")]
    assert analysis.scoring.dimension_state.axes["IE"].leans_toward == "E"
    assert len(analysis.scoring.evidence) == 1
    assert analysis.scoring.evidence[0].source_session_id == "cap-1"
    assert analysis.scoring.evidence[0].timestamp == "2025-06-01T12:00:00.000Z"
    assert analysis.debug_payload() is None


def test_analyze_capture_without_prompt_has_no_evidence() -> None:
    request = CaptureAnalyzeRequest(object_path="captures/cap-2/audio.m4a", language="de-DE", model="chirp")
    transcriber = FakeTranscriber()
    analysis = asyncio.run(_orchestrator(transcriber=transcriber).analyze_capture("cap-2", request))
    assert analysis.scoring.evidence == []
    assert transcriber.calls[0][1:] == ("de-DE", "chirp")


def test_analyze_capture_debug_payload_on_request_or_config() -> None:
    request = CaptureAnalyzeRequest(
        object_path="captures/cap-3/audio.m4a",
        prompt_id="VK.IE.1B.v1",
        include_transcript=True,
    )
    analysis = asyncio.run(_orchestrator().analyze_capture("cap-3", request))
    debug = analysis.debug_payload()
    assert debug is not None
    assert debug["transcript"] == "party conference mixer"
    assert debug["gcsUri"] == "gs://capture-bucket/captures/cap-3/audio.m4a"
    assert debug["promptId"] == "VK.IE.1B.v1"
    assert set(debug["subAxes"]) == {"IE", "NS", "TF", "JP"}

    forced = _orchestrator(replace(BASE_CONFIG, INCLUDE_TRANSCRIPT_DEBUG=True))
    plain_request = CaptureAnalyzeRequest(object_path="captures/cap-3/audio.m4a")
    assert asyncio.run(forced.analyze_capture("cap-3", plain_request)).debug_payload() is not None


def test_analyze_capture_missing_object_skips_transcription() -> None:
    transcriber = FakeTranscriber()
    validator = FakeValidator(ObjectNotFoundError("capture-bucket", "captures/gone/audio.m4a"))
    orchestrator = _orchestrator(validator=validator, transcriber=transcriber)

    with pytest.raises(CaptureNotFoundError) as excinfo:
        asyncio.run(orchestrator.analyze_capture("gone", CaptureAnalyzeRequest(object_path="captures/gone/audio.m4a")))

    assert excinfo.value.status_code == 404
    assert excinfo.value.to_payload() == {
        "error": "Audio object not found in bucket",
        "details": "gs://capture-bucket/captures/gone/audio.m4a",
    }
    assert transcriber.calls == []


def test_analyze_capture_probe_failure_is_upstream_error() -> None:
    validator = FakeValidator(ObjectProbeError("HTTP 503: unavailable"))
    with pytest.raises(CaptureUpstreamError) as excinfo:
        asyncio.run(
            _orchestrator(validator=validator).analyze_capture("c", CaptureAnalyzeRequest(object_path="captures/c/a.m4a"))
        )
    assert excinfo.value.message == "Failed to validate audio object: HTTP 503: unavailable"


def test_analyze_capture_empty_transcript_fails() -> None:
    transcriber = FakeTranscriber(error=EmptyTranscriptError("No transcript returned from Speech-to-Text"))
    with pytest.raises(CaptureUpstreamError) as excinfo:
        asyncio.run(
            _orchestrator(transcriber=transcriber).analyze_capture(
                "c", CaptureAnalyzeRequest(object_path="captures/c/a.m4a", prompt_id="VK.IE.1A.v1")
            )
        )
    assert excinfo.value.message == "Transcription failed: No transcript returned from Speech-to-Text"


def test_analyze_capture_unknown_prompt_fails_before_external_calls() -> None:
    validator = FakeValidator()
    transcriber = FakeTranscriber()
    orchestrator = _orchestrator(validator=validator, transcriber=transcriber)
    request = CaptureAnalyzeRequest(object_path="captures/c/a.m4a", prompt_id="VK.XX.1A.v1")

    with pytest.raises(CaptureRequestError) as excinfo:
        asyncio.run(orchestrator.analyze_capture("c", request))

    assert excinfo.value.message == "Unknown promptId: VK.XX.1A.v1"
    assert validator.calls == []
    assert transcriber.calls == []


def test_analyze_capture_rejects_blank_object_path() -> None:
    with pytest.raises(CaptureRequestError):
        asyncio.run(_orchestrator().analyze_capture("c", CaptureAnalyzeRequest(object_path="   ")))


def test_concurrent_analyze_of_same_capture_is_busy() -> None:
    marker = InFlightMarker()
    assert marker.try_acquire("cap-busy")
    orchestrator = _orchestrator(in_flight=marker)

    with pytest.raises(CaptureBusyError) as excinfo:
        asyncio.run(orchestrator.analyze_capture("cap-busy", CaptureAnalyzeRequest(object_path="captures/x/a.m4a")))
    assert excinfo.value.status_code == 409

    marker.release("cap-busy")
    asyncio.run(orchestrator.analyze_capture("cap-busy", CaptureAnalyzeRequest(object_path="captures/x/a.m4a")))
    assert marker.snapshot() == []


def test_in_flight_marker_is_released_after_failure() -> None:
    marker = InFlightMarker()
    validator = FakeValidator(ObjectNotFoundError("capture-bucket", "captures/x/a.m4a"))
    orchestrator = _orchestrator(validator=validator, in_flight=marker)
    with pytest.raises(CaptureNotFoundError):
        asyncio.run(orchestrator.analyze_capture("cap-x", CaptureAnalyzeRequest(object_path="captures/x/a.m4a")))
    assert marker.snapshot() == []
