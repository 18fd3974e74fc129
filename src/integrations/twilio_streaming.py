"""Twilio Media Streams WebSocket messages.

Inbound frames are parsed into a small closed set of events; anything that is
not valid JSON, carries an unknown ``event`` tag or has a malformed body parses
to ``None``.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class StreamConnected:
    protocol: str | None = None


@dataclass(frozen=True)
class StreamStarted:
    stream_sid: str
    call_sid: str | None = None


@dataclass(frozen=True)
class MediaReceived:
    payload: str
    track: str | None = None


@dataclass(frozen=True)
class MarkReceived:
    name: str


@dataclass(frozen=True)
class StreamStopped:
    pass


TwilioEvent = Union[StreamConnected, StreamStarted, MediaReceived, MarkReceived, StreamStopped]


def parse_twilio_message(text: str) -> TwilioEvent | None:
    try:
        message = json.loads(text)
    except (TypeError, json.JSONDecodeError):
        return None
    if not isinstance(message, dict):
        return None

    event = message.get("event")
    if event == "connected":
        return StreamConnected(protocol=message.get("protocol"))

    if event == "start":
        start = message.get("start") or {}
        if not isinstance(start, dict):
            return None
        stream_sid = start.get("streamSid") or start.get("callSid") or message.get("streamSid")
        if not stream_sid:
            return None
        return StreamStarted(stream_sid=str(stream_sid), call_sid=start.get("callSid"))

    if event == "media":
        media = message.get("media") or {}
        if not isinstance(media, dict):
            return None
        payload = media.get("payload")
        if not isinstance(payload, str) or not payload:
            return None
        return MediaReceived(payload=payload, track=media.get("track"))

    if event == "mark":
        mark = message.get("mark") or {}
        if not isinstance(mark, dict):
            return None
        return MarkReceived(name=str(mark.get("name") or ""))

    if event == "stop":
        return StreamStopped()

    return None


def media_message(stream_sid: str, payload_b64: str) -> dict[str, Any]:
    return {"event": "media", "streamSid": stream_sid, "media": {"payload": payload_b64}}


def encode_payload(ulaw: bytes) -> str:
    return base64.b64encode(ulaw).decode("ascii")


def decode_payload(payload_b64: str) -> bytes:
    return base64.b64decode(payload_b64)


def clear_message(stream_sid: str) -> dict[str, Any]:
    return {"event": "clear", "streamSid": stream_sid}


def mark_message(stream_sid: str, name: str) -> dict[str, Any]:
    return {"event": "mark", "streamSid": stream_sid, "mark": {"name": name}}
