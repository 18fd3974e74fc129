"""OpenAI Realtime WebSocket protocol.

Covers the subset of the Realtime API the call bridge uses: one
``session.update``, ``response.create`` requests, ``input_audio_buffer.append``
and the server events listed below.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Union

import websockets
from websockets.exceptions import WebSocketException

from bridge.errors import RealtimeConnectionError
from config.settings import Settings
from config.tenants import TenantProfile

LOGGER = logging.getLogger(__name__)

# The model streams spoken text as an audio transcript and text-only replies as
# text deltas; both feed the same turn buffer.
TEXT_DELTA_EVENTS = frozenset(
    {
        "response.text.delta",
        "response.output_text.delta",
        "response.audio_transcript.delta",
        "response.output_audio_transcript.delta",
    }
)
AUDIO_DELTA_EVENTS = frozenset({"response.audio.delta", "response.output_audio.delta"})


@dataclass(frozen=True)
class SessionCreated:
    pass


@dataclass(frozen=True)
class SessionUpdated:
    pass


@dataclass(frozen=True)
class ResponseCreated:
    response_id: str | None = None


@dataclass(frozen=True)
class ResponseDone:
    response_id: str | None = None
    status: str | None = None


@dataclass(frozen=True)
class TextDelta:
    delta: str


@dataclass(frozen=True)
class AudioDelta:
    delta: str


@dataclass(frozen=True)
class InputCommitted:
    item_id: str | None = None


@dataclass(frozen=True)
class SpeechStarted:
    pass


@dataclass(frozen=True)
class RealtimeError:
    code: str | None = None
    message: str | None = None
    event_id: str | None = None


RealtimeEvent = Union[
    SessionCreated,
    SessionUpdated,
    ResponseCreated,
    ResponseDone,
    TextDelta,
    AudioDelta,
    InputCommitted,
    SpeechStarted,
    RealtimeError,
]


def parse_realtime_message(text: str | bytes) -> RealtimeEvent | None:
    try:
        message = json.loads(text)
    except (TypeError, ValueError):
        return None
    if not isinstance(message, dict):
        return None

    kind = message.get("type")
    if kind in AUDIO_DELTA_EVENTS:
        delta = message.get("delta")
        return AudioDelta(delta=delta) if isinstance(delta, str) and delta else None
    if kind in TEXT_DELTA_EVENTS:
        delta = message.get("delta")
        return TextDelta(delta=delta) if isinstance(delta, str) else None
    if kind == "response.created":
        response = message.get("response") or {}
        if not isinstance(response, dict):
            return None
        return ResponseCreated(response_id=response.get("id"))
    if kind == "response.done":
        response = message.get("response") or {}
        if not isinstance(response, dict):
            return None
        return ResponseDone(response_id=response.get("id"), status=response.get("status"))
    if kind == "input_audio_buffer.committed":
        return InputCommitted(item_id=message.get("item_id"))
    if kind == "input_audio_buffer.speech_started":
        return SpeechStarted()
    if kind == "session.created":
        return SessionCreated()
    if kind == "session.updated":
        return SessionUpdated()
    if kind == "error":
        error = message.get("error") or {}
        if not isinstance(error, dict):
            return RealtimeError(message=str(error))
        return RealtimeError(
            code=error.get("code"),
            message=error.get("message"),
            event_id=error.get("event_id"),
        )
    return None


def session_update(settings: Settings, tenant: TenantProfile) -> dict[str, Any]:
    return {
        "type": "session.update",
        "session": {
            "turn_detection": {
                "type": "server_vad",
                "create_response": settings.vad_create_response,
            },
            "input_audio_format": "g711_ulaw",
            "output_audio_format": settings.ai_output_audio_format,
            "voice": tenant.voice,
            "modalities": ["text", "audio"],
            "instructions": tenant.instructions,
            "temperature": settings.openai_temperature,
        },
    }


def response_create(instructions: str | None = None, *, event_id: str | None = None) -> dict[str, Any]:
    message: dict[str, Any] = {"type": "response.create"}
    if event_id:
        message["event_id"] = event_id
    if instructions:
        message["response"] = {"instructions": instructions}
    return message


def input_audio_append(payload_b64: str) -> dict[str, Any]:
    return {"type": "input_audio_buffer.append", "audio": payload_b64}


async def connect_realtime(settings: Settings):
    """Open the Realtime WebSocket for one call."""

    if not settings.openai_api_key:
        raise RealtimeConnectionError("OPENAI_API_KEY is not configured")

    headers = {
        "Authorization": f"Bearer {settings.openai_api_key}",
        "OpenAI-Beta": "realtime=v1",
    }
    try:
        return await websockets.connect(
            settings.realtime_ws_url,
            additional_headers=headers,
            ping_interval=20,
            ping_timeout=20,
            close_timeout=5,
        )
    except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
        LOGGER.error("Realtime connection failed: %s", exc)
        raise RealtimeConnectionError(str(exc)) from exc
