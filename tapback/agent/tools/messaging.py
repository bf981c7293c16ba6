"""Messaging tools: tapbacks, effects, group chat management."""

from typing import Any

from loguru import logger

from tapback.agent.plan import ImageRequest
from tapback.agent.tools.base import Tool, ToolContext, clean_str
from tapback.agent.types import (
    EFFECT_NAMES,
    EffectFamily,
    FeatureTier,
    MessageEffect,
    Reaction,
    ReactionKind,
)


class ReactTool(Tool):
    name = "send_reaction"
    description = (
        "Send an iMessage reaction to the user's message. Use standard tapbacks "
        "(love, like, laugh, etc.) OR any custom emoji. Custom emoji reactions are "
        "great for more expressive responses!"
    )
    parameters = {
        "type": "object",
        "properties": {
            "type": {
                "type": "string",
                "enum": [k.value for k in ReactionKind],
                "description": 'The reaction type. Use "custom" to send any emoji.',
            },
            "emoji": {
                "type": "string",
                "description": 'Required when type is "custom". The emoji to react with (e.g., "🔥", "💯", "🎉").',
            },
        },
        "required": ["type"],
    }

    def is_offered(self, ctx: ToolContext) -> bool:
        return ctx.tier is not FeatureTier.MINIMAL

    def parse(self, params: dict[str, Any], ctx: ToolContext) -> Reaction | None:
        kind = ReactionKind(params["type"])
        if kind is ReactionKind.CUSTOM:
            emoji = clean_str(params.get("emoji"))
            if not emoji:
                logger.warning("Discarding custom reaction without an emoji")
                return None
            return Reaction(kind, emoji)
        return Reaction(kind)


class EffectTool(Tool):
    name = "send_effect"
    description = (
        "Add an iMessage effect to your text response. ONLY use when the user explicitly "
        'asks for an effect (e.g. "send lasers", "show me fireworks"). You MUST also write '
        "a text message - the effect enhances your text, it does not replace it."
    )
    parameters = {
        "type": "object",
        "properties": {
            "effect_type": {
                "type": "string",
                "enum": [f.value for f in EffectFamily],
                "description": "Whether this is a full-screen effect or a bubble effect",
            },
            "effect": {
                "type": "string",
                "enum": EFFECT_NAMES,
                "description": "The specific effect to use",
            },
        },
        "required": ["effect_type", "effect"],
    }

    def is_offered(self, ctx: ToolContext) -> bool:
        return ctx.tier is FeatureTier.FULL

    def parse(self, params: dict[str, Any], ctx: ToolContext) -> MessageEffect:
        return MessageEffect(EffectFamily(params["effect_type"]), params["effect"])


class RenameChatTool(Tool):
    name = "rename_group_chat"
    description = (
        "Rename the current group chat. ONLY use when someone EXPLICITLY asks to "
        'rename/name the chat (e.g., "name this chat", "rename the group"). '
        "You MUST also send a text response when renaming."
    )
    parameters = {
        "type": "object",
        "properties": {
            "name": {"type": "string", "description": "The new name for the group chat"},
        },
        "required": ["name"],
    }

    def is_offered(self, ctx: ToolContext) -> bool:
        return ctx.is_group

    def parse(self, params: dict[str, Any], ctx: ToolContext) -> str | None:
        return clean_str(params["name"])


class GroupIconTool(Tool):
    name = "set_group_chat_icon"
    description = (
        "Set the group chat icon/photo using a generated image. ONLY use in group chats "
        "when someone explicitly asks to set/change the group icon. Expand their request "
        "into a detailed prompt. You MUST also write a brief text message acknowledging the request."
    )
    parameters = {
        "type": "object",
        "properties": {
            "prompt": {
                "type": "string",
                "description": (
                    "Detailed description of the icon. Keep it simple and iconic - good for "
                    "a small circular avatar."
                ),
            },
        },
        "required": ["prompt"],
    }

    def is_offered(self, ctx: ToolContext) -> bool:
        return ctx.is_group

    def parse(self, params: dict[str, Any], ctx: ToolContext) -> ImageRequest | None:
        prompt = clean_str(params["prompt"])
        return ImageRequest(prompt) if prompt else None
