"""Memory store contract: rolling conversation history and participant profiles.

Conversation records are bounded (last ``history_limit`` messages) and expire
``conversation_ttl`` seconds after their last write. Profiles never expire.

Backends implement the ``_load_*``/``_save_*``/``_delete_*`` primitives; the
public methods here own the merge rules and the degrade-don't-fail policy:
read failures come back empty, write failures are logged and dropped.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable

from loguru import logger

DEFAULT_HISTORY_LIMIT = 20
DEFAULT_CONVERSATION_TTL = 60 * 60


@dataclass
class StoredMessage:
    role: str  # "user" | "assistant"
    content: str
    handle: str | None = None  # sender, only for user messages in group chats

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.handle:
            data["handle"] = self.handle
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredMessage":
        return cls(
            role=str(data.get("role", "user")),
            content=str(data.get("content", "")),
            handle=data.get("handle") or None,
        )


@dataclass
class ConversationRecord:
    conversation_id: str
    messages: list[StoredMessage] = field(default_factory=list)
    last_active: int = 0
    expires_at: int = 0

    def is_expired(self, now: float) -> bool:
        return bool(self.expires_at) and self.expires_at <= now

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversation_id": self.conversation_id,
            "messages": [m.to_dict() for m in self.messages],
            "last_active": self.last_active,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationRecord":
        return cls(
            conversation_id=str(data["conversation_id"]),
            messages=[StoredMessage.from_dict(m) for m in data.get("messages") or []],
            last_active=int(data.get("last_active") or 0),
            expires_at=int(data.get("expires_at") or 0),
        )


@dataclass
class UserProfile:
    handle: str
    name: str | None = None
    facts: list[str] = field(default_factory=list)
    first_seen: int = 0
    last_seen: int = 0

    @property
    def is_known(self) -> bool:
        """True when there is anything worth telling the model."""
        return bool(self.name or self.facts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "handle": self.handle,
            "name": self.name,
            "facts": list(self.facts),
            "first_seen": self.first_seen,
            "last_seen": self.last_seen,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserProfile":
        return cls(
            handle=str(data["handle"]),
            name=data.get("name") or None,
            facts=list(dict.fromkeys(data.get("facts") or [])),
            first_seen=int(data.get("first_seen") or 0),
            last_seen=int(data.get("last_seen") or 0),
        )


class MemoryStore(ABC):
    """Key-value persistence for history and profiles."""

    def __init__(
        self,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        conversation_ttl: int = DEFAULT_CONVERSATION_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.history_limit = history_limit
        self.conversation_ttl = conversation_ttl
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    # ── Backend primitives ──

    @abstractmethod
    async def _load_conversation(self, conversation_id: str) -> ConversationRecord | None:
        pass

    @abstractmethod
    async def _save_conversation(self, record: ConversationRecord) -> None:
        pass

    @abstractmethod
    async def _delete_conversation(self, conversation_id: str) -> None:
        pass

    @abstractmethod
    async def _load_profile(self, handle: str) -> UserProfile | None:
        pass

    @abstractmethod
    async def _save_profile(self, profile: UserProfile) -> None:
        pass

    @abstractmethod
    async def _delete_profile(self, handle: str) -> None:
        pass

    # ── Conversation history ──

    async def get_history(self, conversation_id: str) -> list[StoredMessage]:
        """Return the stored window, oldest first. Expired or missing → []."""
        try:
            record = await self._load_conversation(conversation_id)
        except Exception as e:
            logger.error(f"Error getting conversation {conversation_id}: {e}")
            return []
        if record is None or record.is_expired(self._now()):
            return []
        return list(record.messages)

    async def append_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        handle: str | None = None,
    ) -> None:
        """Append one message and keep only the newest ``history_limit`` entries."""
        try:
            messages = await self.get_history(conversation_id)
            messages.append(StoredMessage(role=role, content=content, handle=handle or None))
            now = self._now()
            await self._save_conversation(ConversationRecord(
                conversation_id=conversation_id,
                messages=messages[-self.history_limit:],
                last_active=now,
                expires_at=now + self.conversation_ttl,
            ))
        except Exception as e:
            logger.error(f"Error adding message to {conversation_id}: {e}")

    async def clear_history(self, conversation_id: str) -> None:
        try:
            await self._delete_conversation(conversation_id)
        except Exception as e:
            logger.error(f"Error clearing conversation {conversation_id}: {e}")

    # ── Profiles ──

    async def get_profile(self, handle: str) -> UserProfile | None:
        try:
            return await self._load_profile(handle)
        except Exception as e:
            logger.error(f"Error getting profile for {handle}: {e}")
            return None

    async def _update_profile(
        self,
        existing: UserProfile | None,
        handle: str,
        name: str | None = None,
        facts: list[str] | None = None,
    ) -> UserProfile:
        now = self._now()
        profile = UserProfile(
            handle=handle,
            name=name if name is not None else (existing.name if existing else None),
            facts=facts if facts is not None else (list(existing.facts) if existing else []),
            first_seen=existing.first_seen if existing and existing.first_seen else now,
            last_seen=now,
        )
        await self._save_profile(profile)
        logger.info(f"Updated profile for {handle}: name={profile.name}, facts={len(profile.facts)}")
        return profile

    async def set_name(self, handle: str, name: str) -> bool:
        """Set a participant's name. Returns False (and writes nothing) if unchanged."""
        try:
            existing = await self._load_profile(handle)
            if existing is not None and existing.name == name:
                logger.info(f"Name for {handle} already \"{name}\", skipping")
                return False
            await self._update_profile(existing, handle, name=name)
            return True
        except Exception as e:
            logger.error(f"Error setting name for {handle}: {e}")
            return False

    async def add_fact(self, handle: str, fact: str) -> bool:
        """Add a fact unless an identical string is already stored."""
        try:
            existing = await self._load_profile(handle)
            facts = list(existing.facts) if existing else []
            if fact in facts:
                logger.info(f"Fact for {handle} already exists, skipping: \"{fact}\"")
                return False
            facts.append(fact)
            await self._update_profile(existing, handle, facts=facts)
            return True
        except Exception as e:
            logger.error(f"Error adding fact for {handle}: {e}")
            return False

    async def clear_profile(self, handle: str) -> bool:
        try:
            await self._delete_profile(handle)
            logger.info(f"Cleared profile for {handle}")
            return True
        except Exception as e:
            logger.error(f"Error clearing profile for {handle}: {e}")
            return False
