"""Base messaging transport interface."""

from abc import ABC, abstractmethod

from tapback.agent.types import ChatInfo, MessageEffect, Reaction


class BaseChannel(ABC):
    """
    Abstract messaging transport.

    Everything the bridge can do to a conversation goes through here:
    deliver text (with effect, reply threading, attached media), react,
    rename, set the icon, show typing, mark read, fetch the roster and
    share the contact card.
    """

    name: str = "base"

    @abstractmethod
    async def send_message(
        self,
        chat_id: str,
        text: str,
        effect: MessageEffect | None = None,
        reply_to: str | None = None,
        media_urls: list[str] | None = None,
    ) -> None:
        pass

    @abstractmethod
    async def send_reaction(self, message_id: str, reaction: Reaction) -> None:
        pass

    @abstractmethod
    async def mark_read(self, chat_id: str) -> None:
        pass

    @abstractmethod
    async def start_typing(self, chat_id: str) -> None:
        pass

    @abstractmethod
    async def get_chat(self, chat_id: str) -> ChatInfo:
        pass

    @abstractmethod
    async def rename_chat(self, chat_id: str, name: str) -> None:
        pass

    @abstractmethod
    async def set_chat_icon(self, chat_id: str, image_url: str) -> None:
        pass

    @abstractmethod
    async def share_contact_card(self, chat_id: str) -> None:
        pass

    async def close(self) -> None:
        """Release any underlying connections."""
        return None
