from __future__ import annotations

"""
Compatibility payload for the legacy ``GET /v1/captures/{captureId}`` route.

Older clients poll this route after analyze. No result is stored, so it always
returns the same demonstration artifact in the analyze response shape. It is not
part of the real orchestration contract.
"""

from datetime import datetime

from capture_analysis.internal_core.contracts import (
    CaptureAnalyzeResponse,
    DimensionAxisState,
    DimensionState,
    EvidenceRecord,
)
from capture_analysis.scoring import iso_timestamp

LEGACY_AGENT_TYPE = "hybrid.v1"

_DEMO_AXES = {
    "IE": ("E", 0.22, 0.58),
    "NS": ("N", 0.18, 0.54),
    "TF": ("F", 0.12, 0.52),
    "JP": ("P", 0.08, 0.51),
}

_DEMO_EVIDENCE = (
    ("IE", "E", 0.62, "…connecting with people…"),
    ("NS", "N", 0.58, "…exploring ideas…"),
)


def build_legacy_capture_payload(capture_id: str, now: datetime | None = None) -> CaptureAnalyzeResponse:
    now_iso = iso_timestamp(now)
    axes = {
        dimension: DimensionAxisState(
            leans_toward=letter,
            strength=strength,
            confidence=confidence,
            updated_at=now_iso,
        )
        for dimension, (letter, strength, confidence) in _DEMO_AXES.items()
    }
    evidence = [
        EvidenceRecord(
            dimension=dimension,
            leans_toward=letter,
            confidence=confidence,
            excerpt=excerpt,
            source_type="audio",
            source_session_id=capture_id,
            agent_type=LEGACY_AGENT_TYPE,
            timestamp=now_iso,
        )
        for dimension, letter, confidence, excerpt in _DEMO_EVIDENCE
    ]
    return CaptureAnalyzeResponse(
        dimension_state=DimensionState(
            axes=axes,
            mbti_guess="ENFP",
            mbti_confidence=0.44,
            updated_at=now_iso,
        ),
        evidence=evidence,
    )
