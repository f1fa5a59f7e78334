from __future__ import annotations

"""
HTTP surface for Capture Analysis.

Design intent:
- Keep handlers thin: parse, authorize, delegate to the orchestrator, map errors.
- Resolve collaborators through app.state so tests can inject fakes.
- Serve the protocol session endpoint next to the capture routes.
"""

import hmac
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from starlette.routing import Route
from starlette.types import Receive, Scope, Send

from capture_analysis import __version__
from capture_analysis.capture import (
    CaptureError,
    CaptureOrchestrator,
    build_legacy_capture_payload,
)
from capture_analysis.domain import DIMENSION_IDS, list_prompts
from capture_analysis.gcp import GoogleAuthIdentity, ObjectValidator, SpeechTranscriber, UploadUrlSigner
from capture_analysis.internal_core.config import CaptureConfig, load_config
from capture_analysis.internal_core.contracts import (
    CaptureAnalyzeRequest,
    CaptureAnalyzeResponse,
    CaptureInitRequest,
    CaptureInitResponse,
    HealthResponse,
    PromptInfo,
    PromptListResponse,
)
from capture_analysis.internal_core.session_registry import SessionRegistry
from capture_analysis.scoring import iso_timestamp
from capture_analysis.transport import SERVER_NAME, SessionTransportHandler

logger = logging.getLogger(__name__)

SERVICE_NAME = f"{SERVER_NAME}-mcp"
SHARED_SECRET_HEADER = "X-Capture-Shared-Secret"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    handler = _get_session_handler()
    async with handler.run():
        try:
            yield
        finally:
            client: Optional[httpx.AsyncClient] = getattr(app.state, "http_client", None)
            if client is not None:
                await client.aclose()
                app.state.http_client = None


app = FastAPI(title="Capture Analysis API", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_config() -> CaptureConfig:
    existing = getattr(app.state, "capture_config", None)
    if isinstance(existing, CaptureConfig):
        return existing
    created = load_config()
    setattr(app.state, "capture_config", created)
    return created


def _get_http_client() -> httpx.AsyncClient:
    existing = getattr(app.state, "http_client", None)
    if isinstance(existing, httpx.AsyncClient):
        return existing
    created = httpx.AsyncClient(timeout=_get_config().CAPTURE_HTTP_TIMEOUT_SECONDS)
    setattr(app.state, "http_client", created)
    return created


def _get_orchestrator() -> CaptureOrchestrator:
    existing = getattr(app.state, "capture_orchestrator", None)
    if isinstance(existing, CaptureOrchestrator):
        return existing
    config = _get_config()
    client = _get_http_client()
    identity = GoogleAuthIdentity(project_id=config.GOOGLE_CLOUD_PROJECT or None)
    created = CaptureOrchestrator(
        config,
        signer=UploadUrlSigner(identity, client),
        validator=ObjectValidator(identity, client, max_attempts=config.CAPTURE_METADATA_PROBE_ATTEMPTS),
        transcriber=SpeechTranscriber(identity, client, project_id=config.GOOGLE_CLOUD_PROJECT),
    )
    setattr(app.state, "capture_orchestrator", created)
    return created


def _get_session_registry() -> SessionRegistry:
    existing = getattr(app.state, "session_registry", None)
    if isinstance(existing, SessionRegistry):
        return existing
    created = SessionRegistry()
    setattr(app.state, "session_registry", created)
    return created


def _get_session_handler() -> SessionTransportHandler:
    existing = getattr(app.state, "session_handler", None)
    if isinstance(existing, SessionTransportHandler):
        return existing
    created = SessionTransportHandler(_get_session_registry())
    setattr(app.state, "session_handler", created)
    return created


def _require_shared_secret(request: Request) -> None:
    expected = _get_config().CAPTURE_API_SHARED_SECRET
    if not expected:
        return
    provided = request.headers.get(SHARED_SECRET_HEADER) or ""
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("auth_rejected path=%s", request.url.path)
        raise HTTPException(status_code=401, detail={"error": "Unauthorized"})


async def _read_init_body(request: Request) -> CaptureInitRequest:
    raw = await request.body()
    if not raw.strip():
        return CaptureInitRequest()
    try:
        return CaptureInitRequest.model_validate(json.loads(raw))
    except ValueError as exc:
        # Optional body; defaults apply.
        logger.info("capture_init_body_ignored error=%s", exc)
        return CaptureInitRequest()


async def _read_analyze_body(request: Request) -> CaptureAnalyzeRequest:
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except ValueError as exc:
        raise HTTPException(status_code=400, detail={"error": "Invalid JSON body", "details": str(exc)}) from exc
    try:
        return CaptureAnalyzeRequest.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail={"error": "Invalid request body", "details": str(exc)}) from exc


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        service=SERVICE_NAME,
        version=__version__,
        timestamp=iso_timestamp(datetime.now(timezone.utc)),
    )


@app.post("/v1/captures:init", response_model=CaptureInitResponse, response_model_exclude_none=True)
async def init_capture(request: Request) -> CaptureInitResponse:
    _require_shared_secret(request)
    body = await _read_init_body(request)
    try:
        result = await _get_orchestrator().init_capture(body.content_type, body.extension)
    except CaptureError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_payload()) from exc
    return CaptureInitResponse(capture_id=result.capture_id, upload=result.upload)


@app.post(
    "/v1/captures/{capture_id}:analyze",
    response_model=CaptureAnalyzeResponse,
    response_model_exclude_none=True,
)
async def analyze_capture(capture_id: str, request: Request) -> CaptureAnalyzeResponse:
    _require_shared_secret(request)
    body = await _read_analyze_body(request)
    try:
        analysis = await _get_orchestrator().analyze_capture(capture_id, body)
    except CaptureError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.to_payload()) from exc
    return CaptureAnalyzeResponse(
        dimension_state=analysis.scoring.dimension_state,
        evidence=analysis.scoring.evidence,
        debug=analysis.debug_payload(),
    )


@app.get(
    "/v1/captures/{capture_id}",
    response_model=CaptureAnalyzeResponse,
    response_model_exclude_none=True,
)
async def get_capture(capture_id: str, request: Request) -> CaptureAnalyzeResponse:
    _require_shared_secret(request)
    return build_legacy_capture_payload(capture_id)


@app.get("/v1/prompts", response_model=PromptListResponse)
async def get_prompts(request: Request, dimension: Optional[str] = Query(default=None)) -> PromptListResponse:
    _require_shared_secret(request)
    dimension_id = (dimension or "").strip().upper() or None
    if dimension_id is not None and dimension_id not in DIMENSION_IDS:
        raise HTTPException(status_code=400, detail={"error": "Unknown dimension", "details": dimension})
    return PromptListResponse(
        prompts=[
            PromptInfo(
                id=spec.id,
                dimension_id=spec.dimension_id,
                sub_axis_id=spec.sub_axis_id,
                variant=spec.variant,
                version=spec.version,
                text=spec.text,
            )
            for spec in list_prompts(dimension_id)
        ]
    )


class _SessionEndpoint:
    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await _get_session_handler()(scope, receive, send)


app.router.routes.append(Route("/mcp", endpoint=_SessionEndpoint(), include_in_schema=False))

_ANY_METHOD = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


@app.api_route("/{path:path}", methods=_ANY_METHOD, include_in_schema=False)
async def not_found(path: str) -> PlainTextResponse:
    return PlainTextResponse("Not Found", status_code=404)
