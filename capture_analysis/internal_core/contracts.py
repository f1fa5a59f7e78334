from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CueKind = Literal["semantic", "acoustic"]
SourceType = Literal["audio", "text"]
CaptureState = Literal["initialized", "analyzing", "done", "failed"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)


class Cue(_CamelModel):
    kind: CueKind
    feature_id: str
    weight: float
    text: Optional[str] = None
    start_char: Optional[int] = None
    end_char: Optional[int] = None


class SubAxisScore(_CamelModel):
    sub_axis_id: str
    score01: float = Field(ge=0.0, le=1.0)
    confidence01: float = Field(ge=0.0, le=1.0)
    cues: List[Cue] = Field(default_factory=list)


class DimensionAxisState(_CamelModel):
    leans_toward: str
    strength: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    updated_at: str


class DimensionState(_CamelModel):
    axes: Dict[str, DimensionAxisState] = Field(default_factory=dict)
    mbti_guess: str
    mbti_confidence: float = Field(ge=0.0, le=1.0)
    updated_at: str


class EvidenceRecord(_CamelModel):
    dimension: str
    leans_toward: str
    confidence: float = Field(ge=0.0, le=1.0)
    excerpt: Optional[str] = None
    source_type: Optional[SourceType] = None
    source_session_id: Optional[str] = Field(default=None, alias="sourceSessionID")
    agent_type: Optional[str] = None
    timestamp: str


class ScoringDebug(_CamelModel):
    prompt_id: Optional[str] = None
    sub_axes: Dict[str, Dict[str, SubAxisScore]] = Field(default_factory=dict)


class ScoringResult(_CamelModel):
    dimension_state: DimensionState
    evidence: List[EvidenceRecord] = Field(default_factory=list)
    debug: Optional[ScoringDebug] = None


class UploadInstructions(_CamelModel):
    method: Literal["PUT"] = "PUT"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    object_path: str
    expires_at: str


class CaptureInitRequest(_CamelModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    content_type: Optional[str] = None
    extension: Optional[str] = None


class CaptureInitResponse(_CamelModel):
    capture_id: str
    status: Literal["initialized"] = "initialized"
    upload: UploadInstructions


class CaptureAnalyzeRequest(_CamelModel):
    model_config = ConfigDict(extra="ignore", alias_generator=to_camel, populate_by_name=True)

    object_path: str = Field(min_length=1)
    content_type: Optional[str] = None
    language: Optional[str] = None
    model: Optional[str] = None
    include_transcript: bool = False
    prompt_id: Optional[str] = None


class CaptureAnalyzeResponse(_CamelModel):
    dimension_state: DimensionState
    evidence: List[EvidenceRecord] = Field(default_factory=list)
    debug: Optional[Dict[str, Any]] = None


class HealthResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
    service: str
    version: str
    timestamp: str


class PromptInfo(_CamelModel):
    id: str
    dimension_id: str
    sub_axis_id: str
    variant: str
    version: str
    text: str


class PromptListResponse(_CamelModel):
    prompts: List[PromptInfo] = Field(default_factory=list)
