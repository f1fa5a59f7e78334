from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

_LOG_LEVELS = {"debug", "info", "warn", "error"}


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _getenv_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def _getenv_first(names: list[str], default: str) -> str:
    for name in names:
        value = (os.getenv(name) or "").strip()
        if value:
            return value
    return default


def _parse_log_level(value: Optional[str]) -> str:
    normalized = (value or "info").strip().lower()
    return normalized if normalized in _LOG_LEVELS else "info"


@dataclass(frozen=True)
class CaptureConfig:
    PORT: int
    NODE_ENV: str
    LOG_LEVEL: str
    CAPTURE_API_SHARED_SECRET: str
    CAPTURE_AUDIO_BUCKET: str
    SPEECH_MODEL: str
    INCLUDE_TRANSCRIPT_DEBUG: bool
    GOOGLE_CLOUD_PROJECT: str
    GOOGLE_CLOUD_REGION: str
    CAPTURE_UPLOAD_TTL_SECONDS: int
    CAPTURE_HTTP_TIMEOUT_SECONDS: float
    CAPTURE_METADATA_PROBE_ATTEMPTS: int

    @property
    def is_production(self) -> bool:
        return self.NODE_ENV == "production"

    @property
    def bind_host(self) -> str:
        return "0.0.0.0" if self.is_production else "localhost"

    @property
    def python_log_level(self) -> str:
        return "WARNING" if self.LOG_LEVEL == "warn" else self.LOG_LEVEL.upper()


def load_config() -> CaptureConfig:
    node_env = "production" if _getenv_str("NODE_ENV", "") == "production" else "development"

    return CaptureConfig(
        PORT=_getenv_int("PORT", 8080),
        NODE_ENV=node_env,
        LOG_LEVEL=_parse_log_level(os.getenv("LOG_LEVEL")),
        CAPTURE_API_SHARED_SECRET=_getenv_str("CAPTURE_API_SHARED_SECRET", ""),
        CAPTURE_AUDIO_BUCKET=_getenv_first(
            ["CAPTURE_AUDIO_BUCKET", "GCS_CAPTURE_AUDIO_BUCKET"], ""
        ),
        SPEECH_MODEL=_getenv_str("SPEECH_MODEL", "").strip() or "latest_long",
        INCLUDE_TRANSCRIPT_DEBUG=_getenv_bool("INCLUDE_TRANSCRIPT_DEBUG", False),
        GOOGLE_CLOUD_PROJECT=_getenv_str("GOOGLE_CLOUD_PROJECT", "").strip(),
        GOOGLE_CLOUD_REGION=_getenv_str("GOOGLE_CLOUD_REGION", "").strip(),
        CAPTURE_UPLOAD_TTL_SECONDS=_getenv_int("CAPTURE_UPLOAD_TTL_SECONDS", 600),
        CAPTURE_HTTP_TIMEOUT_SECONDS=_getenv_float("CAPTURE_HTTP_TIMEOUT_SECONDS", 30.0),
        CAPTURE_METADATA_PROBE_ATTEMPTS=max(1, _getenv_int("CAPTURE_METADATA_PROBE_ATTEMPTS", 2)),
    )
