from __future__ import annotations

from typing import Literal

DimensionId = Literal["IE", "NS", "TF", "JP"]
PromptVariant = Literal["A", "B", "C"]

# Type-guess letters are always concatenated in this order.
DIMENSION_IDS: tuple[DimensionId, ...] = ("IE", "NS", "TF", "JP")

# score01 = 0 is the low pole, score01 = 1 is the high pole.
POLE_LETTERS: dict[DimensionId, tuple[str, str]] = {
    "IE": ("I", "E"),
    "NS": ("N", "S"),
    "TF": ("T", "F"),
    "JP": ("J", "P"),
}

SUB_AXIS_ORDER: dict[DimensionId, tuple[str, ...]] = {
    "IE": (
        "groupSizePreference",
        "initiatingConversation",
        "familiarityVsNovelty",
        "speakingPace",
        "spotlightVsBackground",
    ),
    "NS": (
        "informationSource",
        "timeOrientation",
        "cognitiveFocus",
        "decisionConfidenceDriver",
        "riskAssessmentFrame",
    ),
    "TF": (
        "feedbackAim",
        "fairnessFrame",
        "conflictPosture",
        "decisionDriver",
        "socialEvaluationFocus",
    ),
    "JP": (
        "commitmentStyle",
        "planningStyle",
        "decisionTiming",
        "closurePreference",
        "approachToConstraints",
    ),
}

