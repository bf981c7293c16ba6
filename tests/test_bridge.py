from __future__ import annotations

from typing import Any

import pytest

from tapback.agent.bridge import Bridge, ContactCardCadence
from tapback.agent.dispatcher import ActionDispatcher
from tapback.agent.orchestrator import TurnOrchestrator
from tapback.agent.triage import GroupTriage
from tapback.agent.types import ChatInfo, ImageInput, InboundMessage, MessageService
from tapback.channels.base import BaseChannel
from tapback.channels.errors import TemporaryDeliveryError
from tapback.providers.base import LLMProvider, LLMResponse, ProviderError
from tapback.store import InMemoryStore
from tapback.store.base import StoredMessage

DIRECT = ["+10000000000", "+15551110000"]
GROUP = DIRECT + ["+15552220000"]


class _RecordingTransport(BaseChannel):
    def __init__(self, handles: list[str], broken_card: bool = False) -> None:
        self.handles = handles
        self.broken_card = broken_card
        self.events: list[tuple[str, Any]] = []

    async def send_message(self, chat_id, text, effect=None, reply_to=None, media_urls=None) -> None:
        self.events.append(("message", text))

    async def send_reaction(self, message_id, reaction) -> None:
        self.events.append(("reaction", reaction.display))

    async def mark_read(self, chat_id) -> None:
        self.events.append(("read", chat_id))

    async def start_typing(self, chat_id) -> None:
        self.events.append(("typing", chat_id))

    async def get_chat(self, chat_id) -> ChatInfo:
        return ChatInfo(chat_id=chat_id, handles=list(self.handles), display_name="crew")

    async def rename_chat(self, chat_id, name) -> None:
        self.events.append(("rename", name))

    async def set_chat_icon(self, chat_id, image_url) -> None:
        self.events.append(("icon", image_url))

    async def share_contact_card(self, chat_id) -> None:
        self.events.append(("card", chat_id))
        if self.broken_card:
            raise TemporaryDeliveryError("card service down")

    def of(self, kind: str) -> list[Any]:
        return [payload for k, payload in self.events if k == kind]


class _RoutingProvider(LLMProvider):
    """Answers triage calls (no tools) and main calls (with tools) separately."""

    def __init__(self, triage_answer: str = "respond", reply: str | Exception = "sounds good") -> None:
        super().__init__()
        self.triage_answer = triage_answer
        self.reply = reply
        self.triage_calls = 0
        self.main_calls = 0

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        web_search: bool = False,
    ) -> LLMResponse:
        if tools is None:
            self.triage_calls += 1
            return LLMResponse(content=self.triage_answer)
        self.main_calls += 1
        if isinstance(self.reply, Exception):
            raise self.reply
        return LLMResponse(content=self.reply)

    def get_default_model(self) -> str:
        return "stub-model"


def _bridge(provider, transport, store=None, cadence=None) -> tuple[Bridge, InMemoryStore]:
    store = store or InMemoryStore()

    async def _no_sleep(seconds: float) -> None:
        return None

    bridge = Bridge(
        transport=transport,
        store=store,
        orchestrator=TurnOrchestrator(provider, store),
        dispatcher=ActionDispatcher(transport, store, sleep=_no_sleep),
        triage=GroupTriage(provider, store, assistant_name="Claude"),
        cadence=cadence,
    )
    return bridge, store


def _msg(text: str, message_id: str = "m1", **kwargs) -> InboundMessage:
    return InboundMessage(chat_id="chat-1", sender="+15551110000", message_id=message_id, text=text, **kwargs)


def test_contact_card_cadence() -> None:
    cadence = ContactCardCadence(interval=5)
    due = [cadence.next("a") for _ in range(10)]
    assert due == [True, False, False, False, True, False, False, False, False, True]
    assert cadence.next("b") is True

    cadence.reset("a")
    assert cadence.count("a") == 0
    assert cadence.count("b") == 1
    assert cadence.next("a") is True
    cadence.reset()
    assert cadence.count("b") == 0


@pytest.mark.asyncio
async def test_direct_message_skips_triage_and_replies() -> None:
    provider = _RoutingProvider(reply="hey!\n---\nwhat's up")
    transport = _RecordingTransport(DIRECT)
    bridge, _ = _bridge(provider, transport)

    plan = await bridge.handle(_msg("yo"))

    assert plan is not None
    assert provider.triage_calls == 0
    assert transport.of("message") == ["hey!", "what's up"]
    assert transport.of("read") == ["chat-1"]
    assert transport.of("card") == ["chat-1"]


@pytest.mark.asyncio
async def test_contact_card_failure_does_not_fail_the_turn() -> None:
    provider = _RoutingProvider()
    transport = _RecordingTransport(DIRECT, broken_card=True)
    bridge, _ = _bridge(provider, transport)

    await bridge.handle(_msg("hi"))

    assert transport.of("message") == ["sounds good"]


@pytest.mark.asyncio
async def test_group_ignore_does_nothing() -> None:
    provider = _RoutingProvider(triage_answer="ignore")
    transport = _RecordingTransport(GROUP)
    bridge, store = _bridge(provider, transport)

    assert await bridge.handle(_msg("yo mike you coming tonight?")) is None

    assert provider.main_calls == 0
    assert transport.of("message") == []
    assert await store.get_history("chat-1") == []


@pytest.mark.asyncio
async def test_group_react_sends_reaction_and_records_it() -> None:
    provider = _RoutingProvider(triage_answer="react:love")
    transport = _RecordingTransport(GROUP)
    bridge, store = _bridge(provider, transport)

    await bridge.handle(_msg("thanks!"))

    assert provider.main_calls == 0
    assert transport.of("reaction") == ["love"]
    assert await store.get_history("chat-1") == [
        StoredMessage("user", "thanks!", "+15551110000"),
        StoredMessage("assistant", "[reacted with love]"),
    ]


@pytest.mark.asyncio
async def test_sms_group_react_verdict_gets_a_reply_instead() -> None:
    provider = _RoutingProvider(triage_answer="react:love", reply="glad it worked")
    transport = _RecordingTransport(GROUP)
    bridge, _ = _bridge(provider, transport)

    await bridge.handle(_msg("thanks!", service=MessageService.SMS))

    assert transport.of("reaction") == []
    assert provider.main_calls == 1
    assert transport.of("message") == ["glad it worked"]


@pytest.mark.asyncio
async def test_group_react_to_blank_message_records_only_the_marker() -> None:
    provider = _RoutingProvider(triage_answer="react:like")
    transport = _RecordingTransport(GROUP)
    bridge, store = _bridge(provider, transport)

    await bridge.handle(_msg(""))

    assert transport.of("reaction") == ["like"]
    assert await store.get_history("chat-1") == [StoredMessage("assistant", "[reacted with like]")]


@pytest.mark.asyncio
async def test_group_respond_runs_the_orchestrator() -> None:
    provider = _RoutingProvider(triage_answer="respond", reply="im in")
    transport = _RecordingTransport(GROUP)
    bridge, _ = _bridge(provider, transport)

    await bridge.handle(_msg("who's coming?"))

    assert provider.triage_calls == 1
    assert provider.main_calls == 1
    assert transport.of("message") == ["im in"]


@pytest.mark.asyncio
async def test_group_media_bypasses_triage() -> None:
    provider = _RoutingProvider(triage_answer="ignore", reply="cute dog")
    transport = _RecordingTransport(GROUP)
    bridge, _ = _bridge(provider, transport)

    await bridge.handle(_msg("", images=[ImageInput("https://img/dog.jpg")]))

    assert provider.triage_calls == 0
    assert transport.of("message") == ["cute dog"]


@pytest.mark.asyncio
async def test_group_command_bypasses_triage() -> None:
    provider = _RoutingProvider(triage_answer="ignore")
    transport = _RecordingTransport(GROUP)
    bridge, _ = _bridge(provider, transport)

    await bridge.handle(_msg("/clear"))

    assert provider.triage_calls == 0
    assert provider.main_calls == 0
    assert transport.of("message") == ["conversation cleared, fresh start 🧹"]


@pytest.mark.asyncio
async def test_provider_failure_propagates_without_sending() -> None:
    provider = _RoutingProvider(reply=ProviderError("overloaded"))
    transport = _RecordingTransport(DIRECT)
    bridge, _ = _bridge(provider, transport)

    with pytest.raises(ProviderError):
        await bridge.handle(_msg("hi"))
    assert transport.of("message") == []


@pytest.mark.asyncio
async def test_sender_profile_reaches_the_prompt() -> None:
    seen: list[str] = []

    class _Capture(_RoutingProvider):
        async def chat(self, messages, tools=None, **kwargs) -> LLMResponse:
            if tools is not None:
                seen.append(messages[0]["content"])
            return await super().chat(messages, tools, **kwargs)

    store = InMemoryStore()
    await store.set_name("+15551110000", "Sam")
    bridge, _ = _bridge(_Capture(), _RecordingTransport(DIRECT), store=store)

    await bridge.handle(_msg("hi"))

    assert "Name: Sam" in seen[0]
