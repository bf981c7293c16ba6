"""Action dispatcher: executes an ActionPlan against a messaging transport."""

import asyncio
import random
import time
from typing import TYPE_CHECKING, Awaitable, Callable

from loguru import logger

from tapback.agent.formatting import split_messages
from tapback.agent.plan import GROUP_ICON_MARKER, ActionPlan, image_marker
from tapback.agent.types import ConversationTurn
from tapback.channels.base import BaseChannel
from tapback.channels.errors import OutboundDeliveryError
from tapback.store.base import MemoryStore
from tapback.utils.helpers import truncate_string

if TYPE_CHECKING:
    from tapback.media.images import ImageGenerator

IMAGE_FAILED_TEXT = "sorry the image didnt work, try again?"
ICON_FAILED_TEXT = "sorry couldnt set the icon, try again?"


class ActionDispatcher:
    """
    Sends a plan out in a fixed order: reaction, rename, text segments,
    generated image, group icon.

    Each step is best-effort. A transport failure in one step is logged and
    the remaining steps still run.
    """

    def __init__(
        self,
        transport: BaseChannel,
        store: MemoryStore,
        image_generator: "ImageGenerator | None" = None,
        pace_min: float = 0.4,
        pace_max: float = 0.8,
        image_delay: float = 0.3,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ):
        self.transport = transport
        self.store = store
        self.image_generator = image_generator
        self.pace_min = pace_min
        self.pace_max = max(pace_min, pace_max)
        self.image_delay = image_delay
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def execute(self, plan: ActionPlan, turn: ConversationTurn) -> int:
        """Run every action in the plan. Returns the number of messages sent."""
        start = time.monotonic()
        chat_id = turn.conversation_id
        sent = 0

        if plan.reaction:
            await self._attempt(
                "reaction", self.transport.send_reaction(turn.message_id, plan.reaction)
            )

        if plan.rename and plan.is_group:
            await self._attempt("rename", self.transport.rename_chat(chat_id, plan.rename))

        segments = split_messages(plan.text)
        for i, segment in enumerate(segments):
            is_last = i == len(segments) - 1
            effect = plan.effect if is_last and not plan.image else None
            reply_to = turn.message_id if i == 0 and turn.reply_to else None
            if await self._attempt(
                "message",
                self.transport.send_message(chat_id, segment, effect=effect, reply_to=reply_to),
            ):
                sent += 1
            if not is_last:
                await self._sleep(self._rng.uniform(self.pace_min, self.pace_max))
        if segments:
            logger.info(
                f"[timing] sent {len(segments)} text msg{'s' if len(segments) != 1 else ''}: "
                f"{int((time.monotonic() - start) * 1000)}ms"
            )

        if plan.image:
            sent += await self._send_image(plan, chat_id)

        if plan.group_icon and plan.is_group:
            sent += await self._set_icon(plan, chat_id)

        logger.info(
            f"[timing] dispatch total: {int((time.monotonic() - start) * 1000)}ms ({plan.describe()})"
        )
        return sent

    async def _attempt(self, label: str, action: Awaitable[None]) -> bool:
        try:
            await action
            return True
        except OutboundDeliveryError as e:
            logger.error(f"Failed to send {label}: {e}")
            return False

    async def _generate(self, prompt: str) -> str | None:
        if self.image_generator is None:
            logger.warning("No image generator configured")
            return None
        return await self.image_generator.generate(prompt)

    async def _send_image(self, plan: ActionPlan, chat_id: str) -> int:
        prompt = plan.image.prompt
        await self._attempt("typing", self.transport.start_typing(chat_id))
        logger.info(f"Generating image after text: {truncate_string(prompt)}")

        url = await self._generate(prompt)
        if not url:
            logger.warning("Image generation failed, apologizing")
            return int(await self._attempt("image apology", self.transport.send_message(chat_id, IMAGE_FAILED_TEXT)))

        await self._sleep(self.image_delay)
        if not await self._attempt(
            "image", self.transport.send_message(chat_id, "", effect=plan.effect, media_urls=[url])
        ):
            return 0
        await self.store.append_message(chat_id, "assistant", image_marker(prompt))
        return 1

    async def _set_icon(self, plan: ActionPlan, chat_id: str) -> int:
        prompt = plan.group_icon.prompt
        await self._attempt("typing", self.transport.start_typing(chat_id))
        logger.info(f"Generating group chat icon: {truncate_string(prompt)}")

        url = await self._generate(prompt)
        if url and await self._attempt("group icon", self.transport.set_chat_icon(chat_id, url)):
            await self.store.append_message(chat_id, "assistant", GROUP_ICON_MARKER)
            return 0

        logger.warning("Group icon failed, apologizing")
        return int(await self._attempt("icon apology", self.transport.send_message(chat_id, ICON_FAILED_TEXT)))
