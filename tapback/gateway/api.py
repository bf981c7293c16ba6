"""Gateway HTTP API (webhook ingress).

Receives Linq Blue webhook events and hands inbound messages to the bridge:
- POST /webhook  acknowledge immediately, process the turn in the background
- GET  /health   liveness probe
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import BackgroundTasks, FastAPI
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from starlette.status import HTTP_202_ACCEPTED

from tapback.agent.bridge import Bridge
from tapback.agent.types import (
    AudioInput,
    EffectFamily,
    ImageInput,
    InboundMessage,
    MessageEffect,
    MessageService,
)

MESSAGE_RECEIVED = "message.received"


class MessagePart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    value: str | None = None
    url: str | None = None
    mime_type: str | None = None


class EffectPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = "screen"
    name: str


class ReplyToPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message_id: str


class MessagePayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    chat_id: str
    sender: str = Field(alias="from")
    message_id: str
    is_from_me: bool = False
    service: str | None = None
    parts: list[MessagePart] = Field(default_factory=list)
    effect: EffectPayload | None = None
    reply_to: ReplyToPayload | None = None


class WebhookEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event_type: str
    data: dict[str, Any] = Field(default_factory=dict)


def _normalize_number(value: str) -> str:
    return "".join(ch for ch in value if ch.isdigit() or ch == "+")


def to_inbound(payload: MessagePayload) -> InboundMessage:
    """Flatten a webhook message into an InboundMessage."""
    texts: list[str] = []
    images: list[ImageInput] = []
    audio: list[AudioInput] = []
    for part in payload.parts:
        if part.type == "text" and part.value:
            texts.append(part.value)
        elif part.type == "media" and part.url:
            mime = (part.mime_type or "").lower()
            if mime.startswith("image/"):
                images.append(ImageInput(url=part.url, mime_type=mime))
            elif mime.startswith("audio/"):
                audio.append(AudioInput(url=part.url, mime_type=mime))
            else:
                logger.debug(f"Skipping unsupported media part ({mime or 'unknown type'})")

    effect = None
    if payload.effect:
        family = EffectFamily.BUBBLE if payload.effect.type == "bubble" else EffectFamily.SCREEN
        effect = MessageEffect(family=family, name=payload.effect.name)

    return InboundMessage(
        chat_id=payload.chat_id,
        sender=payload.sender,
        message_id=payload.message_id,
        text="\n".join(texts),
        images=images,
        audio=audio,
        incoming_effect=effect,
        reply_to=payload.reply_to.message_id if payload.reply_to else None,
        service=MessageService.parse(payload.service),
    )


def create_gateway_app(bridge: Bridge, own_number: str = "") -> FastAPI:
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    own = _normalize_number(own_number) if own_number else ""

    async def run_turn(msg: InboundMessage) -> None:
        try:
            await bridge.handle(msg)
        except Exception:
            logger.exception(f"Turn failed for {msg.sender} in {msg.chat_id}")

    @app.get("/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()})

    @app.post("/webhook", status_code=HTTP_202_ACCEPTED)
    async def webhook(event: WebhookEvent, background: BackgroundTasks) -> JSONResponse:
        if event.event_type != MESSAGE_RECEIVED:
            logger.debug(f"Ignoring webhook event {event.event_type}")
            return JSONResponse({"ok": True, "ignored": event.event_type}, status_code=HTTP_202_ACCEPTED)

        try:
            payload = MessagePayload.model_validate(event.data)
        except ValidationError as e:
            logger.warning(f"Malformed message payload: {e.error_count()} error(s)")
            return JSONResponse({"ok": False, "error": "malformed message"}, status_code=400)

        if payload.is_from_me or (own and _normalize_number(payload.sender) == own):
            logger.debug("Ignoring message from own number")
            return JSONResponse({"ok": True, "ignored": "own message"}, status_code=HTTP_202_ACCEPTED)

        msg = to_inbound(payload)
        logger.info(f"Webhook message from {msg.sender} in {msg.chat_id}")
        background.add_task(run_turn, msg)
        return JSONResponse({"ok": True}, status_code=HTTP_202_ACCEPTED)

    return app
