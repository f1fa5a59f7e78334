"""
Personality domain boundary for Capture Analysis.

Design intent:
- Pin the four dimensions, their pole letters and the fixed sub-axis order.
- Expose the read-only elicitation prompt catalog keyed by prompt id.
"""

from .dimensions import (
    DIMENSION_IDS,
    POLE_LETTERS,
    SUB_AXIS_ORDER,
    DimensionId,
    PromptVariant,
)
from .prompts import PROMPT_CATALOG, PromptSpec, UnknownPromptError, get_prompt_spec, list_prompts

__all__ = [
    "DIMENSION_IDS",
    "POLE_LETTERS",
    "SUB_AXIS_ORDER",
    "DimensionId",
    "PromptVariant",
    "PROMPT_CATALOG",
    "PromptSpec",
    "UnknownPromptError",
    "get_prompt_spec",
    "list_prompts",
]
