from __future__ import annotations

"""
Pole-term lexicons for sub-axes that have a dedicated keyword heuristic.

Matching is substring-based on the lower-cased transcript, so stems such as
"energ" cover energy/energized.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class SubAxisLexicon:
    dimension_id: str
    sub_axis_id: str
    high_terms: tuple[str, ...]
    low_terms: tuple[str, ...]
    choice_terms: tuple[str, ...]
    high_label: str
    low_label: str
    positive_terms: tuple[str, ...] = ()
    negative_terms: tuple[str, ...] = ()
    appraisal_terms: tuple[str, ...] = ()

    @property
    def feature_prefix(self) -> str:
        return f"{self.dimension_id}.{self.sub_axis_id}"


IE_GROUP_SIZE = SubAxisLexicon(
    dimension_id="IE",
    sub_axis_id="groupSizePreference",
    high_terms=(
        "crowd", "crowds", "packed", "party", "room full", "everyone", "big group", "large group",
        "strangers", "communal", "group", "conference", "network", "mixer",
    ),
    low_terms=(
        "quiet", "corner", "one-on-one", "1:1", "one on one", "two", "trusted", "close", "intimate",
        "small group", "few people", "private", "alone", "one person",
    ),
    choice_terms=(
        "prefer", "rather", "choose", "pick", "go with", "would go", "i'd go", "i would go",
        "i want", "i'd pick",
    ),
    high_label="crowd",
    low_label="intimate",
    positive_terms=("love", "like", "enjoy", "thrives", "energ", "excited"),
    negative_terms=(
        "hate", "dread", "avoid", "overwhelm", "too much", "drain", "anxious", "stress",
        "uncomfortable",
    ),
)

IE_INITIATING_CONVERSATION = SubAxisLexicon(
    dimension_id="IE",
    sub_axis_id="initiatingConversation",
    high_terms=(
        "walk up", "go up", "introduce myself", "introduce", "say hi", "say hello",
        "start a conversation", "break the ice", "jump in", "talk to people", "chat",
        "make small talk", "ask their name", "start talking", "strike up", "approach",
    ),
    low_terms=(
        "wait", "hang back", "stay quiet", "observe", "watch", "listen", "feel it out",
        "read the room", "warm up", "take my time", "ease in", "until invited",
        "let them come to me", "see how it feels", "get a sense first",
    ),
    choice_terms=(
        "i would", "i'd", "i will", "i'll", "i tend to", "usually", "most of the time",
        "prefer", "rather", "choose", "pick",
    ),
    high_label="initiate",
    low_label="wait_watch",
    appraisal_terms=(
        "awkward", "rejection", "judge", "judged", "embarrass", "bother", "intrude", "anxious",
        "nervous",
    ),
)

LEXICONS: dict[tuple[str, str], SubAxisLexicon] = {
    (item.dimension_id, item.sub_axis_id): item
    for item in (IE_GROUP_SIZE, IE_INITIATING_CONVERSATION)
}
