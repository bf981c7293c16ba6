"""Group chat triage: respond, react, or stay out of it.

A cheap tool-free model call decides how the assistant should treat a
group message. The classifier is biased toward responding: direct mentions
skip the call entirely, unparseable answers count as ``respond``, and a
``react`` verdict is upgraded when the recent history is already nothing
but reactions.
"""

import re
import time
from dataclasses import dataclass
from enum import Enum

from loguru import logger

from tapback.agent.plan import REACTION_MARKER_PREFIX
from tapback.agent.types import Reaction, ReactionKind
from tapback.providers.base import LLMProvider, ProviderError
from tapback.store.base import MemoryStore, StoredMessage
from tapback.utils.helpers import truncate_string

RECENT_CONTEXT = 4  # last two exchanges


class TriageAction(str, Enum):
    RESPOND = "respond"
    REACT = "react"
    IGNORE = "ignore"


@dataclass(frozen=True)
class TriageDecision:
    action: TriageAction
    reaction: Reaction | None = None


TRIAGE_PROMPT = """You classify how an AI assistant "{name}" should handle messages in a group chat.

IMPORTANT: BIAS TOWARD "respond" - text responses are almost always better than reactions. Only use "react" for very brief acknowledgments where a text response would be awkward.

Answer with ONE of these:
- "respond" - {name} should send a text reply. USE THIS BY DEFAULT when:
  * They asked {name} anything
  * They mentioned {name} (or misspelled it)
  * They mentioned "AI", "bot", or "assistant"
  * They're talking to {name} or continuing a conversation with {name}
  * It's a follow-up to {name}'s message
  * You're unsure - default to respond
- "react:love" or "react:like" or "react:laugh" - ONLY for brief acknowledgments where text would be weird (like a simple "thanks!" or "lol").
- "ignore" - Human-to-human conversation not involving {name} at all

ANTI-REACTION-LOOP: If you see reactions in recent context, prefer "respond" to break the pattern.

Examples:
- "hey {lower} what's the weather" -> respond
- "{lower} thoughts?" -> respond
- "that's cool {lower}" -> respond
- "thanks!" (very brief, nothing to add) -> react:love
- "yo mike you coming tonight?" -> ignore"""


def _reaction_from_answer(answer: str) -> Reaction:
    for kind in (ReactionKind.LOVE, ReactionKind.LAUGH, ReactionKind.LIKE, ReactionKind.EMPHASIZE):
        if kind.value in answer:
            return Reaction(kind)
    return Reaction(ReactionKind.LIKE)


def parse_answer(answer: str) -> TriageDecision:
    """Read the classifier's free-text verdict."""
    answer = (answer or "").strip().lower()
    if "respond" in answer:
        return TriageDecision(TriageAction.RESPOND)
    if "react" in answer:
        return TriageDecision(TriageAction.REACT, _reaction_from_answer(answer))
    if "ignore" in answer:
        return TriageDecision(TriageAction.IGNORE)
    return TriageDecision(TriageAction.RESPOND)


def is_reaction_loop(recent: list[StoredMessage]) -> bool:
    """True when every recent assistant entry (at least two) is a reaction marker."""
    replies = [m.content for m in recent if m.role == "assistant"]
    return len(replies) >= 2 and all(r.startswith(REACTION_MARKER_PREFIX) for r in replies)


class GroupTriage:
    """Classifies group messages before the full orchestrator runs."""

    def __init__(
        self,
        provider: LLMProvider,
        store: MemoryStore,
        assistant_name: str = "Claude",
        aliases: list[str] | None = None,
        model: str | None = None,
    ):
        self.provider = provider
        self.store = store
        self.assistant_name = assistant_name
        self.model = model or provider.get_default_model()
        names = {assistant_name.lower(), *(a.lower() for a in aliases or [])}
        self._mention = re.compile(
            r"\b(" + "|".join(re.escape(n) for n in sorted(names, key=len, reverse=True) if n) + r")\b",
            re.IGNORECASE,
        )

    def mentions_assistant(self, text: str) -> bool:
        return bool(self._mention.search(text or ""))

    def _format_context(self, recent: list[StoredMessage]) -> str:
        if not recent:
            return ""
        lines = []
        for msg in recent:
            if msg.role == "assistant":
                lines.append(f"{self.assistant_name}: {msg.content}")
            else:
                lines.append(f"{msg.handle or 'Someone'}: {msg.content}")
        return "\nRecent conversation:\n" + "\n".join(lines) + "\n"

    async def classify(self, text: str, sender: str, conversation_id: str) -> TriageDecision:
        start = time.monotonic()

        if self.mentions_assistant(text):
            logger.info(f"Group message names {self.assistant_name}, responding")
            return TriageDecision(TriageAction.RESPOND)

        history = await self.store.get_history(conversation_id)
        recent = history[-RECENT_CONTEXT:]
        context_block = self._format_context(recent)
        logger.debug(f"Triage context ({len(recent)} msgs): {truncate_string(context_block, 100)}")

        try:
            response = await self.provider.chat(
                messages=[
                    {
                        "role": "system",
                        "content": TRIAGE_PROMPT.format(
                            name=self.assistant_name, lower=self.assistant_name.lower()
                        ),
                    },
                    {
                        "role": "user",
                        "content": (
                            f"{context_block}New message from {sender}: \"{text}\"\n\n"
                            f"How should {self.assistant_name} handle this?"
                        ),
                    },
                ],
                model=self.model,
                max_tokens=20,
                temperature=0.0,
            )
        except ProviderError as e:
            logger.error(f"Triage error, staying quiet: {e}")
            return TriageDecision(TriageAction.IGNORE)

        decision = parse_answer(response.content or "")
        if decision.action is TriageAction.REACT and is_reaction_loop(recent):
            logger.info("Recent replies are all reactions, responding instead")
            decision = TriageDecision(TriageAction.RESPOND)

        suffix = f":{decision.reaction.display}" if decision.reaction else ""
        logger.info(
            f"Triage ({int((time.monotonic() - start) * 1000)}ms): "
            f"\"{truncate_string(text)}\" -> {decision.action.value}{suffix}"
        )
        return decision
