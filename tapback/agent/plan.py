"""The resolved set of side effects for one turn."""

from dataclasses import dataclass

from tapback.agent.types import MessageEffect, Reaction


@dataclass(frozen=True)
class RememberRequest:
    """A name and/or fact to store about a participant (None handle = sender)."""
    handle: str | None = None
    name: str | None = None
    fact: str | None = None


@dataclass(frozen=True)
class RememberResult:
    """What a remember request actually changed."""
    handle: str
    name: str | None = None
    fact: str | None = None
    is_for_sender: bool = True


@dataclass(frozen=True)
class ImageRequest:
    prompt: str


@dataclass
class ActionPlan:
    """Everything the dispatcher should do for one turn.

    ``text`` may hold several messages joined by MESSAGE_DELIMITER.
    """

    text: str | None = None
    reaction: Reaction | None = None
    effect: MessageEffect | None = None
    rename: str | None = None
    remembered: RememberResult | None = None
    image: ImageRequest | None = None
    group_icon: ImageRequest | None = None
    is_group: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.text or self.reaction or self.rename or self.image or self.group_icon)

    def describe(self) -> str:
        extras = [
            name for name, value in (
                ("reaction", self.reaction),
                ("effect", self.effect),
                ("rename", self.rename),
                ("image", self.image),
                ("icon", self.group_icon),
            ) if value
        ]
        return ", ".join(extras) or "text only"


# Separator the model uses to split a reply into several texts.
MESSAGE_DELIMITER = "---"


# ── History markers: what the assistant did, as seen by later turns ──

def reaction_marker(reaction: Reaction) -> str:
    return f"[reacted with {reaction.display}]"


def effect_marker(effect: MessageEffect) -> str:
    return f"[sent {effect.name} effect]"


def image_marker(prompt: str) -> str:
    return f"[generated an image: {prompt[:50]}...]"


GROUP_ICON_MARKER = "[set group chat icon]"
REACTION_MARKER_PREFIX = "[reacted with "


def flatten_for_history(text: str) -> str:
    """Join a multi-message reply into one history entry."""
    parts = [p.strip() for p in text.split(MESSAGE_DELIMITER)]
    return " ".join(p for p in parts if p)
