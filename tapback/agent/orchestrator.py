"""
Turn orchestrator: one inbound turn in, one ActionPlan out.

The orchestrator composes the provider request (multi-modal input, rolling
history, participant memory), makes exactly one tool-enabled model call,
folds the reply into a plan and writes the memory that matches what will
actually be said.
"""

import time
from typing import TYPE_CHECKING

from loguru import logger

from tapback.agent.commands import parse_command, run_command
from tapback.agent.context import ContextBuilder
from tapback.agent.formatting import split_messages
from tapback.agent.plan import (
    ActionPlan,
    RememberRequest,
    RememberResult,
    effect_marker,
    flatten_for_history,
    reaction_marker,
)
from tapback.agent.tools import ToolContext, ToolRegistry, build_default_registry
from tapback.agent.tools.content import GenerateImageTool, RememberUserTool, WebSearchTool
from tapback.agent.tools.messaging import EffectTool, GroupIconTool, ReactTool, RenameChatTool
from tapback.agent.types import ConversationTurn
from tapback.providers.base import LLMProvider, ProviderError, ToolCallRequest
from tapback.store.base import MemoryStore
from tapback.utils.helpers import truncate_string

if TYPE_CHECKING:
    from tapback.media.transcription import Transcriber

IMAGE_ONLY_PROMPT = "What's in this image?"
VOICE_REPLY_HINT = "Respond naturally to what they said in the voice memo."
TRANSCRIPTION_FAILED_PROMPT = (
    "[Someone sent a voice memo but transcription failed. Let them know you couldn't hear it "
    "and ask them to try again or type their message.]"
)
EFFECT_FILLER_PROMPT = (
    "Write a very short, fun message (under 10 words) to send with a {effect} iMessage effect. "
    "Just the message, nothing else."
)


def effect_filler_fallback(effect_name: str) -> str:
    return f"✨ {effect_name}! ✨"


def rename_acknowledgment(name: str) -> str:
    return f"renamed the chat to \"{name}\" 😎"


class TurnOrchestrator:
    """Resolves a ConversationTurn into an ActionPlan."""

    def __init__(
        self,
        provider: LLMProvider,
        store: MemoryStore,
        transcriber: "Transcriber | None" = None,
        registry: ToolRegistry | None = None,
        context: ContextBuilder | None = None,
        model: str | None = None,
        fast_model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        web_search: bool = True,
    ):
        self.provider = provider
        self.store = store
        self.transcriber = transcriber
        self.registry = registry or build_default_registry()
        self.context = context or ContextBuilder()
        self.model = model or provider.get_default_model()
        self.fast_model = fast_model or self.model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.web_search = web_search

    async def handle(self, turn: ConversationTurn) -> ActionPlan:
        """Process one turn. Provider failures on the main call propagate."""
        command = parse_command(turn.text)
        if command is not None:
            logger.info(f"Control input {command.value} in {turn.conversation_id}")
            reply = await run_command(command, self.store, turn.conversation_id, turn.sender)
            return ActionPlan(text=reply, is_group=turn.is_group)

        history = await self.store.get_history(turn.conversation_id)
        text = await self._compose_text(turn)
        if not text and not turn.images:
            logger.info(f"Nothing to respond to from {turn.sender}")
            return ActionPlan(is_group=turn.is_group)

        if text:
            await self.store.append_message(
                turn.conversation_id,
                "user",
                text,
                turn.sender if turn.is_group else None,
            )

        ctx = ToolContext(
            sender=turn.sender,
            is_group=turn.is_group,
            tier=turn.tier,
            web_search=self.web_search,
        )
        if turn.is_group:
            logger.info(f"Group chat detected: {len(turn.participants)} participants")
        logger.debug(self.registry.summary(ctx))

        start = time.monotonic()
        response = await self.provider.chat(
            messages=self.context.build_messages(turn, history, text),
            tools=self.registry.get_definitions(ctx),
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            web_search=self.registry.wants_native(WebSearchTool.name, ctx),
        )
        logger.info(f"[timing] model: {int((time.monotonic() - start) * 1000)}ms")

        plan = await self._interpret(response.segments, turn, ctx)
        await self._record_assistant_turn(turn.conversation_id, plan)
        await self._fill_gaps(plan)
        logger.debug(
            f"Plan for {turn.conversation_id}: text={truncate_string(plan.text)!r} ({plan.describe()})"
        )
        return plan

    # ── Input composition ──

    async def _compose_text(self, turn: ConversationTurn) -> str:
        text = (turn.text or "").strip()

        transcripts: list[str] = []
        if turn.audio and self.transcriber is not None:
            for clip in turn.audio:
                transcript = await self.transcriber.transcribe(clip)
                if transcript:
                    transcripts.append(transcript)

        if transcripts:
            annotation = f"[Voice memo transcript: \"{chr(10).join(transcripts)}\"]"
            return f"{annotation}\n\n{text or VOICE_REPLY_HINT}"
        if turn.audio:
            return text or TRANSCRIPTION_FAILED_PROMPT
        if not text and turn.images:
            return IMAGE_ONLY_PROMPT
        return text

    # ── Response interpretation ──

    async def _interpret(
        self,
        segments: list[str | ToolCallRequest],
        turn: ConversationTurn,
        ctx: ToolContext,
    ) -> ActionPlan:
        text_parts = [s for s in segments if isinstance(s, str)]
        calls = [s for s in segments if isinstance(s, ToolCallRequest)]

        text = "\n".join(text_parts)
        folded = self.registry.fold(calls, ctx)

        plan = ActionPlan(
            text=text if split_messages(text) else None,
            reaction=folded.get(ReactTool.name),
            effect=folded.get(EffectTool.name),
            rename=folded.get(RenameChatTool.name),
            image=folded.get(GenerateImageTool.name),
            group_icon=folded.get(GroupIconTool.name),
            is_group=turn.is_group,
        )
        if plan.reaction:
            logger.info(f"Wants to react with: {plan.reaction.display}")
        if plan.effect:
            logger.info(f"Wants to send with effect: {plan.effect.family.value} - {plan.effect.name}")
        if plan.rename:
            logger.info(f"Wants to rename chat to: {plan.rename}")
        if plan.image:
            logger.info(f"Wants to generate image: {truncate_string(plan.image.prompt)}")
        if plan.group_icon:
            logger.info(f"Wants to set group icon: {truncate_string(plan.group_icon.prompt)}")

        remember = folded.get(RememberUserTool.name)
        if remember is not None:
            plan.remembered = await self._remember(remember, turn.sender)
        return plan

    async def _remember(self, request: RememberRequest, sender: str) -> RememberResult | None:
        """Apply name and fact independently; report only what really changed."""
        handle = request.handle or sender
        if not handle:
            return None

        name_changed = False
        fact_changed = False
        if request.name:
            name_changed = await self.store.set_name(handle, request.name)
            logger.info(
                f"Remembered name for {handle}: {request.name}" if name_changed
                else f"Name already known for {handle}, skipped"
            )
        if request.fact:
            fact_changed = await self.store.add_fact(handle, request.fact)
            logger.info(
                f"Remembered fact for {handle}: {request.fact}" if fact_changed
                else f"Fact already known for {handle}, skipped"
            )

        if not (name_changed or fact_changed):
            return None
        return RememberResult(
            handle=handle,
            name=request.name if name_changed else None,
            fact=request.fact if fact_changed else None,
            is_for_sender=handle == sender,
        )

    # ── Post-processing ──

    async def _record_assistant_turn(self, conversation_id: str, plan: ActionPlan) -> None:
        """Store what the model said, or a marker of what it did instead."""
        if plan.text:
            entry = flatten_for_history(plan.text)
        elif plan.effect:
            entry = effect_marker(plan.effect)
        elif plan.reaction:
            entry = reaction_marker(plan.reaction)
        else:
            return
        if entry:
            await self.store.append_message(conversation_id, "assistant", entry)

    async def _fill_gaps(self, plan: ActionPlan) -> None:
        """An effect or rename never goes out without text."""
        if not plan.text and plan.effect:
            logger.info("Effect without text, asking for a short message to carry it")
            plan.text = await self.text_for_effect(plan.effect.name)

        if not plan.text and plan.rename and plan.is_group:
            logger.info("Renamed chat without text, adding acknowledgment")
            plan.text = rename_acknowledgment(plan.rename)

        if not plan.text and plan.remembered:
            logger.info("Saved user info without a text response (no auto-ack)")

    async def text_for_effect(self, effect_name: str) -> str:
        """Tool-free follow-up call for a message to carry an effect."""
        try:
            response = await self.provider.chat(
                messages=[{"role": "user", "content": EFFECT_FILLER_PROMPT.format(effect=effect_name)}],
                model=self.fast_model,
                max_tokens=100,
            )
        except ProviderError as e:
            logger.warning(f"Effect filler call failed, using fallback: {e}")
            return effect_filler_fallback(effect_name)
        text = (response.content or "").strip()
        return text if split_messages(text) else effect_filler_fallback(effect_name)
