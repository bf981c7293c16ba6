"""Context builder for assembling provider requests."""

from typing import Any

from tapback.agent.types import ConversationTurn, FeatureTier, ImageInput
from tapback.store.base import StoredMessage, UserProfile

BASE_PROMPT = """You are {name}, an AI assistant people reach by text message as "{display_name}".

People may ask you to show off what texting can do: reactions, message effects (fireworks, confetti, etc.), images. Feel free to demonstrate these when asked.

## Capabilities
**Reactions:** Standard tapbacks (love ❤️, like 👍, dislike 👎, laugh 😂, emphasize !!, question ?) OR any custom emoji (🔥, 💯, 🎉, 👀, 🙌, etc.)
**Screen effects:** confetti, fireworks, lasers, balloons, sparkles, celebration, hearts, love, happy_birthday, echo, spotlight
**Bubble effects:** slam, loud, gentle, invisible_ink
**Image generation:** you can create images when asked to draw, generate, or make a picture.
**Other:** web search for real-time info, image analysis, voice memo transcription, renaming group chats, setting group chat icons.

**Voice memos:** Voice memos are transcribed for you and appear as [Voice memo transcript: "..."]. Reply as if they texted you - don't mention the transcription.

**Group chat naming:** ONLY rename a group chat if someone EXPLICITLY asks to name/rename it. Always send a text response too.

## Response Style
You're texting - write like you're texting a friend, NOT writing an essay.

- Humans send multiple short messages, not giant blocks of text
- Use "---" on its own line to split your response into separate messages
- Each message should be 1-2 sentences max
- NO markdown (no bullets, headers, bold, numbered lists)
- Lowercase by default, casual abbreviations sometimes ("u", "rn", "tbh")
- Emojis sparingly

Available commands (tell users about these if they ask):
- /clear - Reset conversation history and start fresh
- /forget me - Erase everything you know about them (name, facts)
- /help - Show available commands

## Reactions
TEXT RESPONSES ARE PREFERRED. Reactions are supplementary, not primary.
1. NEVER react without also sending a text response unless it's truly just an acknowledgment
2. If you've reacted recently, DO NOT react again - respond with text instead
3. If someone is asking you something or talking to you, RESPOND WITH TEXT
4. NEVER write "[reacted with ...]" in your text - that's a system marker in history

ANTI-LOOP PROTECTION: If the conversation feels like it has become mostly reactions, BREAK THE PATTERN with a proper text response.

NOTE: "[reacted with X]", "[sent X effect]" and similar bracketed entries in history are system markers showing what you did. NEVER write these yourself.

## Message Effects
Effects are ADDITIONS to your text, never replacements. Only use one when someone explicitly asks for it. ALWAYS write text alongside an effect.

DEFAULT BEHAVIOR: Just write a text response."""


class ContextBuilder:
    """
    Builds the context (system prompt + messages) for the turn orchestrator.

    The preamble layers base instructions, known profile facts, group roster,
    incoming effect, and transport tier.
    """

    def __init__(self, name: str = "Claude", display_name: str | None = None):
        self.name = name
        self.display_name = display_name or name

    def build_system_prompt(self, turn: ConversationTurn) -> str:
        parts = [BASE_PROMPT.format(name=self.name, display_name=self.display_name)]

        if turn.sender:
            parts.append(self._profile_section(turn.sender, turn.sender_profile))

        if turn.is_group:
            parts.append(self._group_section(turn))

        if turn.incoming_effect:
            effect = turn.incoming_effect
            parts.append(
                "## Incoming Message Effect\n"
                f"The user sent their message with a {effect.family.value} effect: \"{effect.name}\". "
                f"You can acknowledge this if relevant (e.g., \"nice {effect.name} effect!\")."
            )

        parts.append(self._platform_section(turn))
        return "\n\n".join(parts)

    @staticmethod
    def _profile_section(handle: str, profile: UserProfile | None) -> str:
        if profile is None or not profile.is_known:
            return (
                "## About the person you're talking to\n"
                f"Handle: {handle}\n"
                "You don't know their name yet. If they share it or it comes up naturally, "
                "use the remember_user tool to save it!"
            )

        lines = [
            "## About the person you're talking to (YOU ALREADY KNOW THIS - don't re-save it!)",
            f"Handle: {handle}",
        ]
        if profile.name:
            lines.append(f"Name: {profile.name} (already saved - do NOT call remember_user for this)")
        if profile.facts:
            lines.append("Things you remember about them (already saved):")
            lines.extend(f"- {fact}" for fact in profile.facts)
        lines.append("")
        lines.append("Use their name naturally in conversation! Only use remember_user for genuinely NEW info.")
        return "\n".join(lines)

    @staticmethod
    def _group_section(turn: ConversationTurn) -> str:
        chat_name = f"\"{turn.chat_name}\"" if turn.chat_name else "an unnamed group"
        return (
            "## Group Chat Context\n"
            f"You're in a group chat called {chat_name} with these participants: "
            f"{', '.join(turn.participants)}\n\n"
            "In group chats:\n"
            "- Messages from others are prefixed with [handle]: so you know who said what\n"
            "- Address people by name when responding to them specifically\n"
            "- Keep responses even shorter since group chats move fast\n"
            "- Don't react as often in groups - it can feel spammy"
        )

    @staticmethod
    def _platform_section(turn: ConversationTurn) -> str:
        text = f"## Messaging Platform\nThis conversation is happening over {turn.service.value}."
        if turn.tier is FeatureTier.FULL:
            return text + " All features are available (reactions, effects, typing indicators, read receipts)."
        if turn.tier is FeatureTier.REDUCED:
            return text + " Reactions and typing indicators work, but screen/bubble effects are not available."
        return (
            text
            + " This is basic SMS - no reactions, effects, or typing indicators."
            " Keep responses short and simple, plain text only."
        )

    @staticmethod
    def format_history(messages: list[StoredMessage], is_group: bool) -> list[dict[str, Any]]:
        """Replay stored messages in order; in groups, tag user turns with their sender."""
        out = []
        for msg in messages:
            content = msg.content
            if is_group and msg.role == "user" and msg.handle:
                content = f"[{msg.handle}]: {content}"
            out.append({"role": msg.role, "content": content})
        return out

    @staticmethod
    def build_user_content(text: str, images: list[ImageInput]) -> list[dict[str, Any]]:
        """Images first, then the text block."""
        content: list[dict[str, Any]] = [
            {"type": "image_url", "image_url": {"url": image.url}} for image in images
        ]
        if text:
            content.append({"type": "text", "text": text})
        return content

    def build_messages(
        self,
        turn: ConversationTurn,
        history: list[StoredMessage],
        text: str,
    ) -> list[dict[str, Any]]:
        """Full message list: system preamble, replayed history, the new turn."""
        return [
            {"role": "system", "content": self.build_system_prompt(turn)},
            *self.format_history(history, turn.is_group),
            {"role": "user", "content": self.build_user_content(text, turn.images)},
        ]
