"""Memory store: conversation history and participant profiles."""

from tapback.store.base import (
    ConversationRecord,
    MemoryStore,
    StoredMessage,
    UserProfile,
)
from tapback.store.file import FileStore
from tapback.store.memory import InMemoryStore

__all__ = [
    "ConversationRecord",
    "FileStore",
    "InMemoryStore",
    "MemoryStore",
    "StoredMessage",
    "UserProfile",
    "create_store",
]


def create_store(config) -> MemoryStore:
    """Build the store selected by ``config.store.backend``."""
    options = {
        "history_limit": config.store.history_limit,
        "conversation_ttl": config.store.conversation_ttl,
    }
    if config.store.backend == "memory":
        return InMemoryStore(**options)
    return FileStore(config.data_path, **options)
