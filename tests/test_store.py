from __future__ import annotations

import json
from pathlib import Path

import pytest

from tapback.store import FileStore, InMemoryStore, create_store
from tapback.store.base import ConversationRecord, StoredMessage, UserProfile
from tapback.config.schema import Config


class _Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_history_window_is_bounded_and_keeps_newest_in_order() -> None:
    store = InMemoryStore(history_limit=20)
    for i in range(35):
        await store.append_message("chat-1", "user" if i % 2 == 0 else "assistant", f"m{i}")

    history = await store.get_history("chat-1")
    assert len(history) == 20
    assert [m.content for m in history] == [f"m{i}" for i in range(15, 35)]


@pytest.mark.asyncio
async def test_history_expires_after_ttl() -> None:
    clock = _Clock()
    store = InMemoryStore(conversation_ttl=3600, clock=clock)
    await store.append_message("chat-1", "user", "hello")

    clock.now += 3599
    assert [m.content for m in await store.get_history("chat-1")] == ["hello"]

    clock.now += 2
    assert await store.get_history("chat-1") == []


@pytest.mark.asyncio
async def test_append_refreshes_ttl_and_restarts_after_expiry() -> None:
    clock = _Clock()
    store = InMemoryStore(conversation_ttl=100, clock=clock)
    await store.append_message("c", "user", "old")
    clock.now += 200
    await store.append_message("c", "user", "new")

    assert [m.content for m in await store.get_history("c")] == ["new"]


@pytest.mark.asyncio
async def test_group_messages_keep_sender_handle() -> None:
    store = InMemoryStore()
    await store.append_message("g", "user", "hi all", "+15551112222")
    await store.append_message("g", "assistant", "hey")

    history = await store.get_history("g")
    assert history[0] == StoredMessage("user", "hi all", "+15551112222")
    assert history[1].handle is None


@pytest.mark.asyncio
async def test_clear_history() -> None:
    store = InMemoryStore()
    await store.append_message("c", "user", "hello")
    await store.clear_history("c")
    assert await store.get_history("c") == []


@pytest.mark.asyncio
async def test_add_fact_is_idempotent() -> None:
    store = InMemoryStore()
    assert await store.add_fact("+1555", "has a dog named Max") is True
    assert await store.add_fact("+1555", "has a dog named Max") is False

    profile = await store.get_profile("+1555")
    assert profile is not None
    assert profile.facts == ["has a dog named Max"]


@pytest.mark.asyncio
async def test_near_duplicate_facts_are_kept_separately() -> None:
    store = InMemoryStore()
    await store.add_fact("+1555", "has a dog named Max")
    assert await store.add_fact("+1555", "Has a dog named Max") is True
    profile = await store.get_profile("+1555")
    assert profile is not None and len(profile.facts) == 2


@pytest.mark.asyncio
async def test_set_name_unchanged_performs_no_write() -> None:
    clock = _Clock()
    store = InMemoryStore(clock=clock)
    assert await store.set_name("+1555", "Sarah") is True
    before = await store.get_profile("+1555")

    clock.now += 50
    assert await store.set_name("+1555", "Sarah") is False
    after = await store.get_profile("+1555")
    assert after == before

    assert await store.set_name("+1555", "Sara") is True
    renamed = await store.get_profile("+1555")
    assert renamed is not None
    assert renamed.name == "Sara"
    assert renamed.first_seen == before.first_seen
    assert renamed.last_seen == int(clock.now)


@pytest.mark.asyncio
async def test_name_and_facts_are_merged_independently() -> None:
    store = InMemoryStore()
    await store.add_fact("+1555", "likes climbing")
    await store.set_name("+1555", "Sam")

    profile = await store.get_profile("+1555")
    assert profile == UserProfile(
        handle="+1555",
        name="Sam",
        facts=["likes climbing"],
        first_seen=profile.first_seen,
        last_seen=profile.last_seen,
    )
    assert profile.is_known


@pytest.mark.asyncio
async def test_clear_profile() -> None:
    store = InMemoryStore()
    await store.set_name("+1555", "Sam")
    assert await store.clear_profile("+1555") is True
    assert await store.get_profile("+1555") is None


class _BrokenStore(InMemoryStore):
    async def _load_conversation(self, conversation_id):
        raise OSError("disk gone")

    async def _load_profile(self, handle):
        raise OSError("disk gone")

    async def _delete_profile(self, handle):
        raise OSError("disk gone")


@pytest.mark.asyncio
async def test_store_failures_degrade_instead_of_raising() -> None:
    store = _BrokenStore()
    assert await store.get_history("c") == []
    assert await store.get_profile("+1555") is None
    assert await store.set_name("+1555", "Sam") is False
    assert await store.add_fact("+1555", "x") is False
    assert await store.clear_profile("+1555") is False


@pytest.mark.asyncio
async def test_file_store_round_trips_records(tmp_path: Path) -> None:
    store = FileStore(tmp_path)
    await store.append_message("chat:1", "user", "hello", "+1555")
    await store.append_message("chat:1", "assistant", "hey")
    await store.set_name("+1555", "Sam")
    await store.add_fact("+1555", "likes climbing")

    reopened = FileStore(tmp_path)
    history = await reopened.get_history("chat:1")
    assert [(m.role, m.content, m.handle) for m in history] == [
        ("user", "hello", "+1555"),
        ("assistant", "hey", None),
    ]
    profile = await reopened.get_profile("+1555")
    assert profile is not None
    assert profile.name == "Sam"
    assert profile.facts == ["likes climbing"]

    files = sorted(p.name for p in (tmp_path / "conversations").iterdir())
    assert files == ["chat%3A1.json"]


@pytest.mark.asyncio
async def test_file_store_keeps_similar_handles_apart(tmp_path: Path) -> None:
    store = FileStore(tmp_path)
    await store.set_name("+1555", "Sam")
    await store.set_name("_1555", "Alex")
    await store.set_name("a/b", "Kim")
    await store.set_name("a_b", "Lee")

    assert (await store.get_profile("+1555")).name == "Sam"
    assert (await store.get_profile("_1555")).name == "Alex"
    assert (await store.get_profile("a/b")).name == "Kim"
    assert (await store.get_profile("a_b")).name == "Lee"
    assert len(list((tmp_path / "profiles").iterdir())) == 4


@pytest.mark.asyncio
async def test_file_store_drops_expired_conversation_files(tmp_path: Path) -> None:
    clock = _Clock()
    store = FileStore(tmp_path, conversation_ttl=10, clock=clock)
    await store.append_message("c", "user", "hello")
    path = tmp_path / "conversations" / "c.json"
    assert path.exists()

    clock.now += 11
    assert await store.get_history("c") == []
    assert not path.exists()


@pytest.mark.asyncio
async def test_file_store_corrupt_record_reads_as_empty(tmp_path: Path) -> None:
    store = FileStore(tmp_path)
    (tmp_path / "conversations" / "c.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "profiles" / "p.json").write_text(json.dumps(["nope"]), encoding="utf-8")

    assert await store.get_history("c") == []
    assert await store.get_profile("p") is None


def test_conversation_record_serialization_is_stable() -> None:
    record = ConversationRecord(
        conversation_id="c",
        messages=[StoredMessage("user", "hi", "+1")],
        last_active=5,
        expires_at=10,
    )
    assert ConversationRecord.from_dict(record.to_dict()) == record
    assert record.is_expired(10)
    assert not record.is_expired(9)


def test_create_store_follows_backend(tmp_path: Path) -> None:
    config = Config()
    config.store.backend = "memory"
    assert isinstance(create_store(config), InMemoryStore)

    config.store.backend = "file"
    config.store.data_dir = str(tmp_path / "data")
    store = create_store(config)
    assert isinstance(store, FileStore)
    assert store.data_dir == tmp_path / "data"
