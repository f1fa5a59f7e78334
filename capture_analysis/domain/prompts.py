from __future__ import annotations

"""
Read-only catalog of elicitation prompts.

Prompt ids follow ``VK.<dimension>.<slot><variant>.<version>``; the slot is the
1-based position of the sub-axis in ``SUB_AXIS_ORDER`` for that dimension. The
prompt id is the identifier a client stores on each capture.
"""

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

from .dimensions import SUB_AXIS_ORDER, DimensionId, PromptVariant

PROMPT_VERSION = "v1"
PROMPT_ID_RE = re.compile(r"^VK\.(IE|NS|TF|JP)\.([1-5])([ABC])\.(v\d+)$")


class UnknownPromptError(KeyError):
    """Raised when a prompt id is not present in the catalog."""

    def __str__(self) -> str:
        return f"Unknown promptId: {self.args[0] if self.args else ''}"


@dataclass(frozen=True)
class PromptSpec:
    id: str
    dimension_id: DimensionId
    sub_axis_id: str
    variant: PromptVariant
    version: str
    text: str


# (dimension, slot) -> texts for variants A, B, C
_PROMPT_TEXTS: dict[tuple[DimensionId, int], tuple[str, str, str]] = {
    ("IE", 1): (
        "Bad night. You can wait it out in a packed room full of strangers, or in a quiet corner with one trusted person. Where do you go?",
        "Your life is ending soon. Do you want a crowded room around you, or one person and silence?",
        "At a party, do you work the room meeting many, or stay deep with one person you’re drawn to?",
    ),
    ("IE", 2): (
        "You’re the outsider at a new camp. Do you speak first to earn a place, or wait to be invited?",
        "You feel invisible. Do you start a hard conversation today—or keep it inside and let time pass?",
        "You spot someone attractive. Do you approach immediately, or wait for a clear opening?",
    ),
    ("IE", 3): (
        "Scarcity hits. Do you stay loyal to your band, or travel to a new group for allies and options?",
        "Your current life is safe but small. Do you protect it—or risk everything for a new circle and a new self?",
        "Do you invest in one promising connection, or keep meeting new prospects to maximize your odds?",
    ),
    ("IE", 4): (
        "Someone screams in the dark. Do you give orders immediately as you think—or go quiet and decide first?",
        "A friend asks what you truly believe about death. Do you answer as thoughts arrive—or pause until it’s clean?",
        "On a first date, do you think out loud and riff—or choose words carefully and reveal yourself slowly?",
    ),
    ("IE", 5): (
        "After the hunt, credit is being assigned. Do you step forward and claim it—or let others take the story?",
        "You get one chance to be known for something real. Do you take the stage—or stay private and unseen?",
        "In a mixed group, do you lead the energy and be noticed—or stay subtle and let one person discover you?",
    ),
    ("NS", 1): (
        "Fresh tracks—do you trust what you saw, or what the pattern suggests is ahead?",
        "A sign in your life: do you trust what you can prove, or what the pattern implies?",
        "Dating: do you trust what they do in front of you, or what you infer about who they are?",
    ),
    ("NS", 2): (
        "Food today vs scouting tomorrow—what do you prioritize?",
        "Do you live for the moment, or for what your life could become?",
        "Do you pick the best partner now, or the one with the best long-term potential?",
    ),
    ("NS", 3): (
        "After a raid: do you remember the exact details, or the ‘what it meant’?",
        "When something breaks, do you focus on the facts—or on what it says about your life?",
        "On a date: are you tracking specifics, or the vibe and the story underneath it?",
    ),
    ("NS", 4): (
        "Storm coming. Do you use the old rule that’s kept you alive, or a new theory you trust?",
        "Do you build your life on what’s worked before—or on a vision that feels truer?",
        "Do you follow dating ‘rules that work,’ or a personal philosophy about love you won’t betray?",
    ),
    ("NS", 5): (
        "Unknown valley vs known route—do you take the sure thing or the uncertain chance?",
        "Do you choose security even if it’s small, or uncertainty even if it’s meaningful?",
        "Do you date the ‘safe bet,’ or the wild card with higher upside and unknown risk?",
    ),
    ("TF", 1): (
        "Someone cheated the share. Do you enforce the rule—or protect the bond?",
        "A friend betrays you. Do you demand what’s fair—or rebuild trust first?",
        "A partner crosses a line. Do you set a fair boundary—or focus on repairing trust?",
    ),
    ("TF", 2): (
        "Same ration for all—or more for the weak and needed? Choose.",
        "Same rule for everyone—or exceptions for context and history?",
        "In dating: do you hold everyone to one standard—or tailor expectations to the person?",
    ),
    ("TF", 3): (
        "Camp argument. Do you confront it openly—or quiet it before it spreads?",
        "Do you risk rupture to say what’s true—or keep peace and carry it?",
        "You disagree with your date. Do you debate it—or smooth it over to keep momentum?",
    ),
    ("TF", 4): (
        "To lead the group: do you persuade with logic—or with loyalty and connection?",
        "When people resist you: do you convince them—or bond with them?",
        "Attraction: do you win them with reasons—or with emotional attunement?",
    ),
    ("TF", 5): (
        "New recruit. Do you scan for weaknesses—or for what they’re good for?",
        "When you meet someone, do you see the cracks—or the promise?",
        "Dating: do you screen fast for red flags—or look first for green flags?",
    ),
    ("JP", 1): (
        "Winter’s coming: pick one camp now—or keep moving until you’re forced?",
        "Do you choose one life path and commit—or keep doors open as long as possible?",
        "Dating: exclusive now—or keep options open until you’re sure?",
    ),
    ("JP", 2): (
        "Raid plan: map it carefully—or move fast and adapt?",
        "In crisis: do you plan, or act fast?",
        "First date changes suddenly—do you stick to a plan, or pivot instantly?",
    ),
    ("JP", 3): (
        "Before the hunt: choose the route now—or decide at the last safe moment?",
        "Do you decide early to stop the anxiety—or wait until the truth forces you?",
        "Do you define the relationship early—or let it stay undefined until it has to be defined?",
    ),
    ("JP", 4): (
        "Missing person: do you need an answer—or can you live with ‘unknown’?",
        "Do you need closure to move on—or can you carry ambiguity?",
        "Ghosted: do you demand an explanation—or accept silence and continue?",
    ),
    ("JP", 5): (
        "Strict camp rules: follow them—or bend them when survival demands it?",
        "Do rules protect you—or trap you?",
        "Dating norms: follow the script—or improvise and risk it?",
    ),
}

_VARIANTS: tuple[PromptVariant, ...] = ("A", "B", "C")


def prompt_id_for(dimension_id: str, slot: int, variant: str, version: str = PROMPT_VERSION) -> str:
    return f"VK.{dimension_id}.{slot}{variant}.{version}"


def _build_catalog() -> Mapping[str, PromptSpec]:
    catalog: dict[str, PromptSpec] = {}
    for (dimension_id, slot), texts in _PROMPT_TEXTS.items():
        sub_axis_id = SUB_AXIS_ORDER[dimension_id][slot - 1]
        for variant, text in zip(_VARIANTS, texts):
            prompt_id = prompt_id_for(dimension_id, slot, variant)
            catalog[prompt_id] = PromptSpec(
                id=prompt_id,
                dimension_id=dimension_id,
                sub_axis_id=sub_axis_id,
                variant=variant,
                version=PROMPT_VERSION,
                text=text,
            )
    return MappingProxyType(catalog)


PROMPT_CATALOG: Mapping[str, PromptSpec] = _build_catalog()


def get_prompt_spec(prompt_id: str) -> PromptSpec:
    spec = PROMPT_CATALOG.get((prompt_id or "").strip())
    if spec is None:
        raise UnknownPromptError(prompt_id)
    return spec


def list_prompts(dimension_id: str | None = None) -> list[PromptSpec]:
    prompts = list(PROMPT_CATALOG.values())
    if dimension_id:
        return [item for item in prompts if item.dimension_id == dimension_id]
    return prompts
