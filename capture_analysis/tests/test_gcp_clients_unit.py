import asyncio
import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from google.auth.credentials import Credentials
from google.auth.exceptions import RefreshError

from capture_analysis.gcp import (
    EmptyTranscriptError,
    GCPRequestError,
    GoogleAuthIdentity,
    IdentityProvider,
    ObjectNotFoundError,
    ObjectProbeError,
    ObjectValidator,
    SpeechTranscriber,
    TranscriptionError,
)
from capture_analysis.gcp import identity as identity_module
from capture_analysis.gcp.speech import join_first_alternatives


class FakeIdentity(IdentityProvider):
    async def access_token(self) -> str:
        return "test-token"

    async def service_account_email(self) -> str:
        return "sa@proj.iam.gserviceaccount.com"

    async def project_id(self) -> str:
        return "metadata-project"


def _run_validator(handler, *, max_attempts: int = 1):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            validator = ObjectValidator(FakeIdentity(), client, max_attempts=max_attempts)
            return await validator.assert_object_exists("capture-bucket", "captures/abc/audio.m4a")

    return asyncio.run(run())


def _run_transcriber(handler, *, project_id: str = "proj"):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            transcriber = SpeechTranscriber(FakeIdentity(), client, project_id=project_id)
            return await transcriber.transcribe("gs://capture-bucket/captures/abc/audio.m4a", "en-US", "latest_long")

    return asyncio.run(run())


def test_validator_returns_metadata_for_existing_object() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["fields"] = request.url.params.get("fields")
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={"name": "captures/abc/audio.m4a", "size": "2048", "contentType": "audio/mp4"},
        )

    metadata = _run_validator(handler)
    assert metadata.name == "captures/abc/audio.m4a"
    assert metadata.size == 2048
    assert metadata.content_type == "audio/mp4"
    assert seen["fields"] == "name,size,contentType,updated"
    assert seen["auth"] == "Bearer test-token"


def test_validator_maps_404_to_not_found_without_retry() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(404, json={"error": {"code": 404, "message": "No such object"}})

    with pytest.raises(ObjectNotFoundError) as excinfo:
        _run_validator(handler, max_attempts=3)
    assert calls["n"] == 1
    assert "gs://capture-bucket/captures/abc/audio.m4a" in str(excinfo.value)


def test_validator_retries_transient_failures_up_to_limit() -> None:
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(503, text="backend unavailable")

    with pytest.raises(ObjectProbeError) as excinfo:
        _run_validator(handler, max_attempts=2)
    assert calls["n"] == 2
    assert "HTTP 503" in str(excinfo.value)


def test_validator_recovers_after_one_transient_failure() -> None:
    responses = [httpx.Response(500, text="boom"), httpx.Response(200, json={"name": "captures/abc/audio.m4a"})]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    metadata = _run_validator(handler, max_attempts=2)
    assert metadata.size is None
    assert responses == []


def test_transcriber_joins_first_alternatives() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "results": [
                    {"alternatives": [{"transcript": "I would pick"}, {"transcript": "ignored"}]},
                    {"alternatives": []},
                    {"alternatives": [{"transcript": "the quiet corner "}]},
                ]
            },
        )

    transcript = _run_transcriber(handler)
    assert transcript == "I would pick the quiet corner"
    assert seen["path"] == "/v2/projects/proj/locations/global/recognizers/_:recognize"
    assert seen["body"]["uri"] == "gs://capture-bucket/captures/abc/audio.m4a"
    assert seen["body"]["config"]["languageCodes"] == ["en-US"]
    assert seen["body"]["config"]["model"] == "latest_long"


def test_transcriber_uses_identity_project_when_not_configured() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        return httpx.Response(200, json={"results": [{"alternatives": [{"transcript": "hi"}]}]})

    assert _run_transcriber(handler, project_id="") == "hi"
    assert "/projects/metadata-project/" in seen["path"]


def test_transcriber_rejects_empty_result() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={})

    with pytest.raises(EmptyTranscriptError, match="No transcript returned"):
        _run_transcriber(handler)


def test_transcriber_wraps_backend_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="bad model")

    with pytest.raises(TranscriptionError) as excinfo:
        _run_transcriber(handler)
    assert not isinstance(excinfo.value, EmptyTranscriptError)
    assert "HTTP 400: bad model" in str(excinfo.value)


def test_join_first_alternatives_tolerates_missing_fields() -> None:
    assert join_first_alternatives(None) == ""
    assert join_first_alternatives({"results": [{}, {"alternatives": [{}]}]}) == ""



class FakeCredentials(Credentials):
    def __init__(self, *, email: str = "sa@proj.iam.gserviceaccount.com", error: Exception | None = None) -> None:
        super().__init__()
        self.service_account_email = "default"
        self.resolved_email = email
        self.error = error
        self.refresh_calls = 0

    def refresh(self, request) -> None:
        self.refresh_calls += 1
        if self.error is not None:
            raise self.error
        self.token = f"token-{self.refresh_calls}"
        self.expiry = (datetime.now(timezone.utc) + timedelta(hours=1)).replace(tzinfo=None)
        self.service_account_email = self.resolved_email


def _identity(credentials: FakeCredentials, project_id: str | None = "proj") -> GoogleAuthIdentity:
    return GoogleAuthIdentity(credentials, project_id, request_factory=lambda: None)


def test_google_auth_identity_reuses_valid_token() -> None:
    credentials = FakeCredentials()
    identity = _identity(credentials)

    async def run():
        tokens = [await identity.access_token(), await identity.access_token()]
        return tokens, await identity.service_account_email(), await identity.project_id()

    tokens, email, project = asyncio.run(run())
    assert tokens == ["token-1", "token-1"]
    assert email == "sa@proj.iam.gserviceaccount.com"
    assert project == "proj"
    assert credentials.refresh_calls == 1


def test_google_auth_identity_refreshes_expired_token() -> None:
    credentials = FakeCredentials()
    identity = _identity(credentials)

    first = asyncio.run(identity.access_token())
    credentials.expiry = (datetime.now(timezone.utc) - timedelta(minutes=1)).replace(tzinfo=None)
    second = asyncio.run(identity.access_token())

    assert (first, second) == ("token-1", "token-2")
    assert credentials.refresh_calls == 2


def test_google_auth_refresh_failure_becomes_request_error() -> None:
    identity = _identity(FakeCredentials(error=RefreshError("metadata server unavailable")))
    with pytest.raises(GCPRequestError, match="metadata server unavailable"):
        asyncio.run(identity.access_token())


def test_google_auth_identity_requires_project_and_email() -> None:
    with pytest.raises(GCPRequestError, match="project"):
        asyncio.run(_identity(FakeCredentials(), project_id=None).project_id())
    with pytest.raises(GCPRequestError, match="service account email"):
        asyncio.run(_identity(FakeCredentials(email="")).service_account_email())


def test_google_auth_identity_loads_default_credentials_lazily(monkeypatch) -> None:
    credentials = FakeCredentials()
    loads: list[list[str]] = []

    def fake_default(scopes):
        loads.append(scopes)
        return credentials, "adc-project"

    monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)
    monkeypatch.setattr(identity_module, "google_auth_default", fake_default)
    identity = GoogleAuthIdentity(request_factory=lambda: None)
    assert loads == []

    assert asyncio.run(identity.project_id()) == "adc-project"
    assert asyncio.run(identity.access_token()) == "token-1"
    assert loads == [identity_module.CLOUD_PLATFORM_SCOPES]


def test_build_credentials_prefers_service_account_key_file(monkeypatch, tmp_path) -> None:
    key_file = tmp_path / "key.json"
    key_file.write_text("{}")
    loaded = FakeCredentials()
    loaded.project_id = "key-project"
    seen: list[tuple] = []

    def fake_from_file(path, scopes):
        seen.append((path, scopes))
        return loaded

    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", str(key_file))
    monkeypatch.setattr(identity_module.service_account.Credentials, "from_service_account_file", fake_from_file)
    monkeypatch.setattr(identity_module, "google_auth_default", lambda scopes: pytest.fail("ADC lookup not expected"))

    credentials, project_id = identity_module.build_credentials()
    assert credentials is loaded
    assert project_id == "key-project"
    assert seen == [(str(key_file), identity_module.CLOUD_PLATFORM_SCOPES)]
