"""Linq Blue messaging API transport (iMessage / RCS / SMS) over httpx."""

from typing import Any

import httpx
from loguru import logger

from tapback.agent.types import ChatInfo, MessageEffect, Reaction, ReactionKind
from tapback.channels.base import BaseChannel
from tapback.channels.errors import PermanentDeliveryError, TemporaryDeliveryError
from tapback.config.schema import LinqConfig
from tapback.utils.helpers import truncate_string


class LinqChannel(BaseChannel):
    """
    Transport for the Linq Blue partner API.

    One pooled ``httpx.AsyncClient`` per channel. Non-2xx responses are
    classified so callers can tell retryable failures from hard ones.
    """

    name = "linq"

    def __init__(self, config: LinqConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.api_base.rstrip("/"),
            headers={
                "Authorization": f"Bearer {config.token}",
                "Content-Type": "application/json",
            },
            timeout=config.timeout,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise TemporaryDeliveryError(f"Linq {method} {path} timed out") from e
        except httpx.HTTPError as e:
            raise TemporaryDeliveryError(f"Linq {method} {path} failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TemporaryDeliveryError(f"Linq {method} {path}: HTTP {response.status_code}")
        if response.status_code >= 400:
            raise PermanentDeliveryError(
                f"Linq {method} {path}: HTTP {response.status_code} {truncate_string(response.text, 200)}"
            )
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"data": data}

    async def send_message(
        self,
        chat_id: str,
        text: str,
        effect: MessageEffect | None = None,
        reply_to: str | None = None,
        media_urls: list[str] | None = None,
    ) -> None:
        parts: list[dict[str, Any]] = []
        if text:
            parts.append({"type": "text", "value": text})
        for url in media_urls or []:
            parts.append({"type": "media", "url": url})
        if not parts:
            raise PermanentDeliveryError("Empty message")

        message: dict[str, Any] = {"parts": parts}
        if effect:
            message["effect"] = {"type": effect.family.value, "name": effect.name}
        if reply_to:
            message["reply_to"] = {"message_id": reply_to}

        await self._request("POST", f"/chats/{chat_id}/messages", json={"message": message})
        logger.debug(f"Sent to {chat_id}: {truncate_string(text)!r}")

    async def send_reaction(self, message_id: str, reaction: Reaction) -> None:
        body: dict[str, Any] = {"operation": "add", "type": reaction.kind.value}
        if reaction.kind is ReactionKind.CUSTOM:
            body["custom_emoji"] = reaction.emoji
        await self._request("POST", f"/messages/{message_id}/reactions", json=body)

    async def mark_read(self, chat_id: str) -> None:
        await self._request("POST", f"/chats/{chat_id}/read")

    async def start_typing(self, chat_id: str) -> None:
        await self._request("POST", f"/chats/{chat_id}/typing")

    async def get_chat(self, chat_id: str) -> ChatInfo:
        data = await self._request("GET", f"/chats/{chat_id}")
        chat = data.get("chat", data)
        handles = []
        for entry in chat.get("handles") or []:
            handle = entry.get("handle") if isinstance(entry, dict) else entry
            if handle:
                handles.append(str(handle))
        return ChatInfo(chat_id=chat_id, handles=handles, display_name=chat.get("display_name") or None)

    async def rename_chat(self, chat_id: str, name: str) -> None:
        await self._request("PUT", f"/chats/{chat_id}", json={"display_name": name})

    async def set_chat_icon(self, chat_id: str, image_url: str) -> None:
        await self._request("PUT", f"/chats/{chat_id}", json={"group_chat_icon": image_url})

    async def share_contact_card(self, chat_id: str) -> None:
        await self._request("POST", f"/chats/{chat_id}/share_contact_card")
