"""
Capture orchestration boundary for Capture Analysis.

Design intent:
- Drive init -> (client upload) -> analyze without server-side capture records.
- Map collaborator failures to a small, HTTP-shaped error taxonomy.
- Keep the legacy demo payload on its own clearly labeled path.
"""

from .legacy import build_legacy_capture_payload
from .orchestrator import (
    CaptureAnalysis,
    CaptureBusyError,
    CaptureConfigurationError,
    CaptureError,
    CaptureInitResult,
    CaptureNotFoundError,
    CaptureOrchestrator,
    CaptureRequestError,
    CaptureUpstreamError,
)

__all__ = [
    "build_legacy_capture_payload",
    "CaptureAnalysis",
    "CaptureBusyError",
    "CaptureConfigurationError",
    "CaptureError",
    "CaptureInitResult",
    "CaptureNotFoundError",
    "CaptureOrchestrator",
    "CaptureRequestError",
    "CaptureUpstreamError",
]
