"""Types describing an inbound turn and the things the assistant can do to it."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tapback.store.base import UserProfile


class MessageService(str, Enum):
    """Transport the conversation runs over, which sets the feature tier."""
    IMESSAGE = "iMessage"
    RCS = "RCS"
    SMS = "SMS"

    @property
    def tier(self) -> "FeatureTier":
        return _SERVICE_TIERS[self]

    @classmethod
    def parse(cls, value: Any) -> "MessageService":
        """Map a free-form service string to a known service (iMessage by default)."""
        text = str(value or "").strip().lower()
        for service in cls:
            if service.value.lower() == text:
                return service
        return cls.IMESSAGE


class FeatureTier(str, Enum):
    FULL = "full"
    REDUCED = "reduced"  # no screen/bubble effects
    MINIMAL = "minimal"  # no effects, no tapbacks, keep it short


_SERVICE_TIERS = {
    MessageService.IMESSAGE: FeatureTier.FULL,
    MessageService.RCS: FeatureTier.REDUCED,
    MessageService.SMS: FeatureTier.MINIMAL,
}


class ReactionKind(str, Enum):
    LOVE = "love"
    LIKE = "like"
    DISLIKE = "dislike"
    LAUGH = "laugh"
    EMPHASIZE = "emphasize"
    QUESTION = "question"
    CUSTOM = "custom"


STANDARD_REACTIONS = [k.value for k in ReactionKind if k is not ReactionKind.CUSTOM]


@dataclass(frozen=True)
class Reaction:
    """A tapback, or a custom emoji when kind is CUSTOM."""
    kind: ReactionKind
    emoji: str | None = None

    @property
    def display(self) -> str:
        if self.kind is ReactionKind.CUSTOM and self.emoji:
            return self.emoji
        return self.kind.value


class EffectFamily(str, Enum):
    SCREEN = "screen"
    BUBBLE = "bubble"


EFFECT_NAMES = [
    "confetti", "fireworks", "lasers", "sparkles", "celebration", "hearts", "love",
    "balloons", "happy_birthday", "echo", "spotlight", "slam", "loud", "gentle",
    "invisible_ink",
]


@dataclass(frozen=True)
class MessageEffect:
    """A screen or bubble animation attached to a message."""
    family: EffectFamily
    name: str


@dataclass(frozen=True)
class ImageInput:
    url: str
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class AudioInput:
    url: str
    mime_type: str = "audio/mp4"


@dataclass
class InboundMessage:
    """A message as delivered by the ingress, before any lookups."""

    chat_id: str
    sender: str
    message_id: str
    text: str = ""
    images: list[ImageInput] = field(default_factory=list)
    audio: list[AudioInput] = field(default_factory=list)
    incoming_effect: MessageEffect | None = None
    reply_to: str | None = None  # id of the message this one replies to
    service: MessageService = MessageService.IMESSAGE


@dataclass
class ChatInfo:
    """Roster and title of a conversation, as reported by the transport."""
    chat_id: str
    handles: list[str] = field(default_factory=list)
    display_name: str | None = None

    @property
    def is_group(self) -> bool:
        return len(self.handles) > 2


@dataclass
class ConversationTurn:
    """One inbound message plus everything known about where it came from."""

    conversation_id: str
    sender: str
    message_id: str
    text: str = ""
    images: list[ImageInput] = field(default_factory=list)
    audio: list[AudioInput] = field(default_factory=list)
    incoming_effect: MessageEffect | None = None
    reply_to: str | None = None
    service: MessageService = MessageService.IMESSAGE
    participants: list[str] = field(default_factory=list)
    chat_name: str | None = None
    sender_profile: UserProfile | None = None

    @property
    def is_group(self) -> bool:
        """More than two participants share this conversation."""
        return len(self.participants) > 2

    @property
    def tier(self) -> FeatureTier:
        return self.service.tier

    @property
    def has_media(self) -> bool:
        return bool(self.images or self.audio)

    @classmethod
    def from_inbound(
        cls,
        msg: InboundMessage,
        chat: ChatInfo | None = None,
        profile: UserProfile | None = None,
    ) -> "ConversationTurn":
        return cls(
            conversation_id=msg.chat_id,
            sender=msg.sender,
            message_id=msg.message_id,
            text=msg.text,
            images=list(msg.images),
            audio=list(msg.audio),
            incoming_effect=msg.incoming_effect,
            reply_to=msg.reply_to,
            service=msg.service,
            participants=list(chat.handles) if chat else [],
            chat_name=chat.display_name if chat else None,
            sender_profile=profile,
        )
