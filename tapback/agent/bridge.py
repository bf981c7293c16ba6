"""
Ingress-side turn pipeline.

The bridge takes an InboundMessage from the gateway (or the console) and
carries it through prefetch, the group triage gate, the orchestrator and
the dispatcher.
"""

import asyncio
import time
from collections import defaultdict

from loguru import logger

from tapback.agent.commands import parse_command
from tapback.agent.dispatcher import ActionDispatcher
from tapback.agent.orchestrator import TurnOrchestrator
from tapback.agent.plan import ActionPlan, reaction_marker
from tapback.agent.triage import GroupTriage, TriageAction
from tapback.agent.types import ChatInfo, ConversationTurn, FeatureTier, InboundMessage
from tapback.channels.base import BaseChannel
from tapback.channels.errors import OutboundDeliveryError
from tapback.store.base import MemoryStore, UserProfile


class ContactCardCadence:
    """Per-conversation message counter deciding when to share the contact card.

    The card goes out on the first message of a conversation and on every
    ``interval``-th message after that.
    """

    def __init__(self, interval: int = 5):
        self.interval = max(1, interval)
        self._counts: dict[str, int] = defaultdict(int)

    def next(self, chat_id: str) -> bool:
        """Count one message and report whether the card is due."""
        self._counts[chat_id] += 1
        count = self._counts[chat_id]
        return count == 1 or count % self.interval == 0

    def count(self, chat_id: str) -> int:
        return self._counts.get(chat_id, 0)

    def reset(self, chat_id: str | None = None) -> None:
        if chat_id is None:
            self._counts.clear()
        else:
            self._counts.pop(chat_id, None)


class Bridge:
    """Runs one inbound message to completion."""

    def __init__(
        self,
        transport: BaseChannel,
        store: MemoryStore,
        orchestrator: TurnOrchestrator,
        dispatcher: ActionDispatcher,
        triage: GroupTriage | None = None,
        cadence: ContactCardCadence | None = None,
    ):
        self.transport = transport
        self.store = store
        self.orchestrator = orchestrator
        self.dispatcher = dispatcher
        self.triage = triage
        self.cadence = cadence or ContactCardCadence()

    async def handle(self, msg: InboundMessage) -> ActionPlan | None:
        """Process one inbound message. Returns the executed plan, if any.

        Provider failures on the main model call propagate to the caller.
        """
        start = time.monotonic()
        logger.info(f"Processing message from {msg.sender}")

        turn = await self._prefetch(msg)
        logger.info(f"[timing] prefetch: {int((time.monotonic() - start) * 1000)}ms")

        if turn.is_group and not await self._passes_triage(turn):
            return None

        plan = await self.orchestrator.handle(turn)
        logger.info(f"[timing] orchestrator: {int((time.monotonic() - start) * 1000)}ms")
        if plan.is_empty:
            logger.info(f"Nothing to send for {turn.conversation_id}")
            return plan

        await self.dispatcher.execute(plan, turn)
        logger.info(f"Reply sent to {msg.sender} ({int((time.monotonic() - start) * 1000)}ms)")
        return plan

    async def _prefetch(self, msg: InboundMessage) -> ConversationTurn:
        """Read-only lookups, issued together and joined before the turn is built."""
        chat_id = msg.chat_id
        share_card = self.cadence.next(chat_id)

        lookups = [
            self._best_effort("mark read", self.transport.mark_read(chat_id)),
            self._best_effort("typing", self.transport.start_typing(chat_id)),
            self.transport.get_chat(chat_id),
            self.store.get_profile(msg.sender),
        ]
        if share_card:
            logger.info(f"Sharing contact card (message #{self.cadence.count(chat_id)})")
            lookups.append(self._best_effort("contact card", self.transport.share_contact_card(chat_id)))

        results = await asyncio.gather(*lookups)
        chat: ChatInfo = results[2]
        profile: UserProfile | None = results[3]
        if profile and profile.name:
            logger.info(f"Known user: {profile.name} ({len(profile.facts)} facts)")
        return ConversationTurn.from_inbound(msg, chat, profile)

    async def _passes_triage(self, turn: ConversationTurn) -> bool:
        """Gate a group turn. False means the turn has been fully handled here."""
        if turn.has_media:
            logger.info("Responding to group media (skipping classifier)")
            return True
        if parse_command(turn.text) is not None:
            return True
        if self.triage is None:
            return True

        decision = await self.triage.classify(turn.text, turn.sender, turn.conversation_id)
        if decision.action is TriageAction.IGNORE:
            logger.info("Ignoring group chat message")
            return False

        if decision.action is TriageAction.REACT and turn.tier is FeatureTier.MINIMAL:
            logger.info("No tapbacks on this service, responding instead of reacting")
            return True

        if decision.action is TriageAction.REACT:
            if decision.reaction:
                await self._best_effort(
                    "quick reaction", self.transport.send_reaction(turn.message_id, decision.reaction)
                )
                if turn.text:
                    await self.store.append_message(turn.conversation_id, "user", turn.text, turn.sender)
                await self.store.append_message(
                    turn.conversation_id, "assistant", reaction_marker(decision.reaction)
                )
                logger.info(f"Reacted to {turn.sender} with {decision.reaction.display}")
            return False

        logger.info("Responding to this group message")
        return True

    @staticmethod
    async def _best_effort(label: str, action) -> None:
        try:
            await action
        except OutboundDeliveryError as e:
            logger.error(f"{label} failed: {e}")
