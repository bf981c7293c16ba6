"""JSON-file memory store.

One file per conversation under ``conversations/`` and one per participant
under ``profiles/``. Writes go through a temp file + ``os.replace`` so a crash
never leaves a half-written record. Expired conversation files are removed
lazily when read.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any

from loguru import logger

from tapback.store.base import ConversationRecord, MemoryStore, UserProfile
from tapback.utils.helpers import ensure_dir, safe_filename


class FileStore(MemoryStore):

    def __init__(self, data_dir: Path, **kwargs):
        super().__init__(**kwargs)
        self.data_dir = data_dir
        self.conversations_dir = ensure_dir(data_dir / "conversations")
        self.profiles_dir = ensure_dir(data_dir / "profiles")

    def _conversation_path(self, conversation_id: str) -> Path:
        return self.conversations_dir / f"{safe_filename(conversation_id)}.json"

    def _profile_path(self, handle: str) -> Path:
        return self.profiles_dir / f"{safe_filename(handle)}.json"

    # ── Sync file helpers (run in a worker thread) ──

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Malformed record in {path}")
        return data

    @staticmethod
    def _write_json(path: Path, data: dict[str, Any]) -> None:
        tmp_path: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                dir=str(path.parent),
                prefix=f"{path.name}.",
                suffix=".tmp",
                delete=False,
                encoding="utf-8",
            ) as tmp_file:
                tmp_path = tmp_file.name
                json.dump(data, tmp_file, ensure_ascii=False)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_path, path)
            tmp_path = None
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)

    @staticmethod
    def _unlink(path: Path) -> None:
        path.unlink(missing_ok=True)

    # ── Primitives ──

    async def _load_conversation(self, conversation_id: str) -> ConversationRecord | None:
        path = self._conversation_path(conversation_id)
        data = await asyncio.to_thread(self._read_json, path)
        if data is None:
            return None
        record = ConversationRecord.from_dict(data)
        if record.is_expired(self._now()) or not record.messages:
            logger.debug(f"Dropping expired conversation {conversation_id}")
            await asyncio.to_thread(self._unlink, path)
            return None
        return record

    async def _save_conversation(self, record: ConversationRecord) -> None:
        path = self._conversation_path(record.conversation_id)
        await asyncio.to_thread(self._write_json, path, record.to_dict())

    async def _delete_conversation(self, conversation_id: str) -> None:
        await asyncio.to_thread(self._unlink, self._conversation_path(conversation_id))

    async def _load_profile(self, handle: str) -> UserProfile | None:
        data = await asyncio.to_thread(self._read_json, self._profile_path(handle))
        return UserProfile.from_dict(data) if data else None

    async def _save_profile(self, profile: UserProfile) -> None:
        await asyncio.to_thread(self._write_json, self._profile_path(profile.handle), profile.to_dict())

    async def _delete_profile(self, handle: str) -> None:
        await asyncio.to_thread(self._unlink, self._profile_path(handle))
