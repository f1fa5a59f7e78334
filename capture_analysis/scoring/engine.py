from __future__ import annotations

"""
Deterministic transcript-to-evidence scoring.

Design intent:
- Score only the sub-axis targeted by the prompt; every other sub-axis stays neutral.
- Keep output shape stable for the client even when there is no usable signal.
- Never fail on transcript content: lack of signal yields neutral, low-confidence output.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from capture_analysis.domain import DIMENSION_IDS, POLE_LETTERS, SUB_AXIS_ORDER, PromptSpec
from capture_analysis.internal_core.contracts import (
    Cue,
    DimensionAxisState,
    DimensionState,
    EvidenceRecord,
    ScoringDebug,
    ScoringResult,
    SourceType,
    SubAxisScore,
)

from .lexicons import LEXICONS, SubAxisLexicon

AGENT_TYPE = "hybrid.v1"
EXCERPT_MAX_CHARS = 140

NEUTRAL_SCORE = 0.5
NEUTRAL_CONFIDENCE = 0.25

DIRECTION_CAP = 3
DELTA_PER_UNIT = 0.08
CHOICE_DELTA_SCALE = 1.15

BASE_CONFIDENCE = 0.20
HIT_CONFIDENCE_STEP = 0.08
HIT_CONFIDENCE_CAP = 0.35
DIRECTION_CONFIDENCE_STEP = 0.08
DIRECTION_CONFIDENCE_CAP = 0.25
CHOICE_CONFIDENCE_BONUS = 0.10
NEGATIVE_VALENCE_PENALTY = 0.05
APPRAISAL_CONFIDENCE_STEP = 0.04
APPRAISAL_CONFIDENCE_CAP = 0.08

FALLBACK_DELTA = 0.08
FALLBACK_CONFIDENCE = 0.35

_CERTAINTY_RE = re.compile(r"(always|definitely|for sure|no doubt)")
_HEDGING_RE = re.compile(r"(maybe|might|kind of|sort of|i guess|not sure)")


@dataclass(frozen=True)
class KeywordScore:
    score01: float
    confidence01: float
    cues: list[Cue]


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def iso_timestamp(now: datetime | None = None) -> str:
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _count_hits(text: str, terms: Sequence[str]) -> int:
    return sum(1 for term in terms if term in text)


def score_with_lexicon(transcript: str, lexicon: SubAxisLexicon) -> KeywordScore:
    text = (transcript or "").lower()

    high_hits = _count_hits(text, lexicon.high_terms)
    low_hits = _count_hits(text, lexicon.low_terms)
    choice_hits = _count_hits(text, lexicon.choice_terms)
    positive_hits = _count_hits(text, lexicon.positive_terms)
    negative_hits = _count_hits(text, lexicon.negative_terms)
    appraisal_hits = _count_hits(text, lexicon.appraisal_terms)

    raw_direction = high_hits - low_hits
    clamped_direction = max(-DIRECTION_CAP, min(DIRECTION_CAP, raw_direction))
    delta = clamped_direction * DELTA_PER_UNIT
    has_choice = choice_hits > 0
    if has_choice:
        delta *= CHOICE_DELTA_SCALE
    score01 = clamp01(NEUTRAL_SCORE + delta)

    confidence01 = BASE_CONFIDENCE
    confidence01 += min(HIT_CONFIDENCE_CAP, (high_hits + low_hits) * HIT_CONFIDENCE_STEP)
    confidence01 += min(DIRECTION_CONFIDENCE_CAP, abs(raw_direction) * DIRECTION_CONFIDENCE_STEP)
    if has_choice:
        confidence01 += CHOICE_CONFIDENCE_BONUS
    if lexicon.appraisal_terms:
        confidence01 += min(APPRAISAL_CONFIDENCE_CAP, appraisal_hits * APPRAISAL_CONFIDENCE_STEP)
    # Mostly negative talk may be stress rather than preference.
    if negative_hits >= 2 and positive_hits == 0:
        confidence01 -= NEGATIVE_VALENCE_PENALTY
    confidence01 = clamp01(confidence01)

    cues: list[Cue] = []
    if high_hits > 0:
        cues.append(
            Cue(
                kind="semantic",
                feature_id=f"{lexicon.feature_prefix}.{lexicon.high_label}_terms",
                weight=DELTA_PER_UNIT * high_hits,
                text=f"{lexicon.high_label.replace('_', '/')} terms",
            )
        )
    if low_hits > 0:
        cues.append(
            Cue(
                kind="semantic",
                feature_id=f"{lexicon.feature_prefix}.{lexicon.low_label}_terms",
                weight=-DELTA_PER_UNIT * low_hits,
                text=f"{lexicon.low_label.replace('_', '/')} terms",
            )
        )
    if has_choice:
        cues.append(
            Cue(
                kind="semantic",
                feature_id="stance.choice_language",
                weight=0.0,
                text="choice/preference markers",
            )
        )
    if appraisal_hits > 0:
        cues.append(
            Cue(
                kind="semantic",
                feature_id="social_risk.appraisal",
                weight=0.0,
                text="social risk markers",
            )
        )

    return KeywordScore(score01=score01, confidence01=confidence01, cues=cues)


def score_with_stance_markers(transcript: str, base: SubAxisScore) -> SubAxisScore:
    text = (transcript or "").lower()
    delta = 0.0
    cues: list[Cue] = []

    if _CERTAINTY_RE.search(text):
        delta += FALLBACK_DELTA
        cues.append(
            Cue(kind="semantic", feature_id="stance.certainty", weight=FALLBACK_DELTA, text="certainty marker")
        )
    if _HEDGING_RE.search(text):
        delta -= FALLBACK_DELTA
        cues.append(
            Cue(kind="semantic", feature_id="stance.hedging", weight=-FALLBACK_DELTA, text="hedging marker")
        )

    if not cues:
        return base
    return SubAxisScore(
        sub_axis_id=base.sub_axis_id,
        score01=clamp01(base.score01 + delta),
        confidence01=FALLBACK_CONFIDENCE,
        cues=cues,
    )


def _neutral_sub_axes() -> dict[str, dict[str, SubAxisScore]]:
    return {
        dimension_id: {
            sub_axis_id: SubAxisScore(
                sub_axis_id=sub_axis_id,
                score01=NEUTRAL_SCORE,
                confidence01=NEUTRAL_CONFIDENCE,
            )
            for sub_axis_id in SUB_AXIS_ORDER[dimension_id]
        }
        for dimension_id in DIMENSION_IDS
    }


def aggregate_dimension(dimension_id: str, sub_axes: dict[str, SubAxisScore], updated_at: str) -> DimensionAxisState:
    entries = list(sub_axes.values())
    mean = sum(item.score01 for item in entries) / len(entries)
    confidence = sum(item.confidence01 for item in entries) / len(entries)
    low, high = POLE_LETTERS[dimension_id]
    # An exact 0.5 (no evidence at all) still reports the high pole.
    leans_toward = high if mean >= 0.5 else low
    return DimensionAxisState(
        leans_toward=leans_toward,
        strength=clamp01(abs(mean - 0.5) * 2),
        confidence=clamp01(confidence),
        updated_at=updated_at,
    )


def score_transcript(
    transcript: str,
    prompt: PromptSpec | None = None,
    *,
    source_type: SourceType = "audio",
    source_session_id: str | None = None,
    include_debug: bool = False,
    now: datetime | None = None,
) -> ScoringResult:
    if prompt is not None and prompt.dimension_id not in POLE_LETTERS:
        raise ValueError(f"Unknown dimension for prompt {prompt.id}: {prompt.dimension_id}")
    transcript = transcript or ""
    now_iso = iso_timestamp(now)
    sub_axes = _neutral_sub_axes()

    if prompt is not None:
        dimension_scores = sub_axes[prompt.dimension_id]
        base = dimension_scores.get(prompt.sub_axis_id) or SubAxisScore(
            sub_axis_id=prompt.sub_axis_id,
            score01=NEUTRAL_SCORE,
            confidence01=NEUTRAL_CONFIDENCE,
        )
        lexicon = LEXICONS.get((prompt.dimension_id, prompt.sub_axis_id))
        if lexicon is not None:
            keyword_score = score_with_lexicon(transcript, lexicon)
            scored = SubAxisScore(
                sub_axis_id=prompt.sub_axis_id,
                score01=keyword_score.score01,
                confidence01=keyword_score.confidence01,
                cues=keyword_score.cues,
            )
        else:
            scored = score_with_stance_markers(transcript, base)
        if prompt.sub_axis_id in dimension_scores:
            dimension_scores[prompt.sub_axis_id] = scored

    axes = {
        dimension_id: aggregate_dimension(dimension_id, sub_axes[dimension_id], now_iso)
        for dimension_id in DIMENSION_IDS
    }
    mbti_guess = "".join(axes[dimension_id].leans_toward for dimension_id in DIMENSION_IDS)
    mbti_confidence = clamp01(sum(axes[dimension_id].confidence for dimension_id in DIMENSION_IDS) / len(DIMENSION_IDS))

    evidence: list[EvidenceRecord] = []
    if prompt is not None:
        axis = axes[prompt.dimension_id]
        evidence.append(
            EvidenceRecord(
                dimension=prompt.dimension_id,
                leans_toward=axis.leans_toward,
                confidence=clamp01(axis.confidence),
                excerpt=transcript[:EXCERPT_MAX_CHARS] if transcript else None,
                source_type=source_type,
                source_session_id=source_session_id,
                agent_type=AGENT_TYPE,
                timestamp=now_iso,
            )
        )

    debug = None
    if include_debug:
        debug = ScoringDebug(prompt_id=prompt.id if prompt is not None else None, sub_axes=sub_axes)

    return ScoringResult(
        dimension_state=DimensionState(
            axes=axes,
            mbti_guess=mbti_guess,
            mbti_confidence=mbti_confidence,
            updated_at=now_iso,
        ),
        evidence=evidence,
        debug=debug,
    )
