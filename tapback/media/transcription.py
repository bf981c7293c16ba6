"""Voice memo transcription via OpenAI Whisper."""

import httpx
from loguru import logger
from openai import AsyncOpenAI

from tapback.agent.types import AudioInput
from tapback.utils.helpers import truncate_string

DEFAULT_STT_MODEL = "whisper-1"


class Transcriber:
    """Fetches an audio resource and returns its transcript, or None on any failure."""

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = DEFAULT_STT_MODEL,
        http: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.client = client
        self.model = model
        self._http = http
        self.timeout = timeout

    async def _fetch(self, url: str) -> tuple[bytes, str] | None:
        if self._http is not None:
            response = await self._http.get(url, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as http:
                response = await http.get(url, follow_redirects=True)
        if response.status_code >= 400:
            logger.error(f"Failed to fetch audio: {response.status_code}")
            return None
        content_type = response.headers.get("content-type") or "audio/mp4"
        return response.content, content_type

    async def transcribe(self, audio: AudioInput) -> str | None:
        try:
            logger.info(f"Fetching audio for transcription: {truncate_string(audio.url)}")
            fetched = await self._fetch(audio.url)
            if fetched is None:
                return None
            data, content_type = fetched
            logger.info(f"Audio fetched: {round(len(data) / 1024)}KB, type: {content_type}")

            transcription = await self.client.audio.transcriptions.create(
                file=("voice_memo.m4a", data, content_type),
                model=self.model,
            )
            text = (transcription.text or "").strip()
            if not text:
                return None
            logger.info(f"Transcription complete: \"{truncate_string(text)}\"")
            return text
        except Exception as e:
            logger.error(f"Transcription error: {e}")
            return None
