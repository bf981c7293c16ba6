"""In-process memory store. Used by tests and the local chat REPL."""

import copy

from tapback.store.base import ConversationRecord, MemoryStore, UserProfile


class InMemoryStore(MemoryStore):
    """Dict-backed store; records are copied in and out so callers can't alias them."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.conversations: dict[str, ConversationRecord] = {}
        self.profiles: dict[str, UserProfile] = {}

    async def _load_conversation(self, conversation_id: str) -> ConversationRecord | None:
        record = self.conversations.get(conversation_id)
        return copy.deepcopy(record) if record else None

    async def _save_conversation(self, record: ConversationRecord) -> None:
        self.conversations[record.conversation_id] = copy.deepcopy(record)

    async def _delete_conversation(self, conversation_id: str) -> None:
        self.conversations.pop(conversation_id, None)

    async def _load_profile(self, handle: str) -> UserProfile | None:
        profile = self.profiles.get(handle)
        return copy.deepcopy(profile) if profile else None

    async def _save_profile(self, profile: UserProfile) -> None:
        self.profiles[profile.handle] = copy.deepcopy(profile)

    async def _delete_profile(self, handle: str) -> None:
        self.profiles.pop(handle, None)
