"""
Scoring boundary for Capture Analysis.

Design intent:
- Map (transcript, prompt) to dimension leanings plus evidence records.
- Stay pure and deterministic; the caller supplies the clock.
- Prefer explainable keyword cues over opaque inference.
"""

from .engine import clamp01, iso_timestamp, score_transcript, score_with_lexicon
from .lexicons import LEXICONS, SubAxisLexicon

__all__ = [
    "LEXICONS",
    "SubAxisLexicon",
    "clamp01",
    "iso_timestamp",
    "score_transcript",
    "score_with_lexicon",
]
