"""Bridge between one Twilio media stream and one OpenAI Realtime session.

Audio flow:
1. Twilio sends mu-law 8kHz audio; it is forwarded verbatim to the AI, whose
   input format is also g711_ulaw.
2. AI audio deltas go back to Twilio, decimated from PCM16 when the AI output
   format is not mu-law.
3. AI text of each completed turn is scanned for a booking record, which is
   delivered in the background.

Both peers are read by their own task on the same event loop. Whichever side
finishes first tears the pair down.
"""

from __future__ import annotations

import asyncio
import binascii
import itertools
import json
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Protocol

from fastapi import WebSocket, WebSocketDisconnect
from websockets.exceptions import ConnectionClosed

from bridge.booking import BookingRecord, extract_booking
from bridge.errors import RealtimeConnectionError
from bridge.session import CallSession, ResponseRequest
from bridge.turns import TurnCoordinator
from config.settings import Settings
from integrations.openai_realtime import (
    AudioDelta,
    InputCommitted,
    RealtimeError,
    ResponseCreated,
    ResponseDone,
    SessionCreated,
    SessionUpdated,
    SpeechStarted,
    TextDelta,
    connect_realtime,
    input_audio_append,
    parse_realtime_message,
    response_create,
    session_update,
)
from integrations.twilio_streaming import (
    MarkReceived,
    MediaReceived,
    StreamConnected,
    StreamStarted,
    StreamStopped,
    clear_message,
    decode_payload,
    encode_payload,
    mark_message,
    media_message,
    parse_twilio_message,
)
from telephony.g711 import generate_tone, pcm16_bytes_to_ulaw

LOGGER = logging.getLogger(__name__)

FRAME_BYTES_8K = 160  # 20ms of mu-law at 8kHz


class BookingSink(Protocol):
    async def deliver(self, record: BookingRecord) -> Any: ...


RealtimeConnector = Callable[[Settings], Awaitable[Any]]


class CallBridge:
    """Owns both connections of one call for its whole lifetime."""

    def __init__(
        self,
        websocket: WebSocket,
        session: CallSession,
        *,
        settings: Settings,
        booking_sink: BookingSink,
        connect: RealtimeConnector = connect_realtime,
    ) -> None:
        self._websocket = websocket
        self._session = session
        self._settings = settings
        self._sink = booking_sink
        self._connect = connect
        self._turns = TurnCoordinator(session)

        self._ai: Any = None
        self._ai_open = False
        self._telephony_open = True
        self._closed = False

        self._pending_event_id: str | None = None
        self._request_ids = itertools.count(1)
        self._marks = itertools.count(1)

        self._tasks: set[asyncio.Task] = set()
        self._deliveries: set[asyncio.Task] = set()

        self._telephony_handlers = {
            StreamConnected: self._on_connected,
            StreamStarted: self._on_stream_started,
            MediaReceived: self._on_media,
            MarkReceived: self._on_mark,
        }
        self._ai_handlers = {
            SessionCreated: self._on_session_created,
            SessionUpdated: self._on_session_updated,
            ResponseCreated: self._on_response_created,
            ResponseDone: self._on_response_done,
            TextDelta: self._on_text_delta,
            AudioDelta: self._on_audio_delta,
            InputCommitted: self._on_input_committed,
            SpeechStarted: self._on_speech_started,
            RealtimeError: self._on_ai_error,
        }

    @property
    def session(self) -> CallSession:
        return self._session

    @property
    def turns(self) -> TurnCoordinator:
        return self._turns

    @property
    def closed(self) -> bool:
        return self._closed

    async def run(self) -> None:
        LOGGER.info("Media stream connected (tenant=%s)", self._session.tenant.tenant_id)
        telephony = asyncio.create_task(self._pump_telephony())
        ai = asyncio.create_task(self._run_ai())
        try:
            await asyncio.wait({telephony, ai}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            await self.close()
            pending = [telephony, ai, *self._tasks]
            for task in pending:
                task.cancel()
            results = await asyncio.gather(*pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    LOGGER.error("[%s] Bridge task failed: %r", self._session.label, result)

    async def close(self) -> None:
        """Tear down both sides; calling it again is a no-op."""

        if self._closed:
            return
        self._closed = True

        if self._ai is not None and self._ai_open:
            self._ai_open = False
            try:
                await self._ai.close()
            except ConnectionClosed:
                LOGGER.debug("[%s] Realtime socket already closed", self._session.label)

        if self._telephony_open:
            self._telephony_open = False
            try:
                await self._websocket.close()
            except RuntimeError:
                # Starlette raises when the close frame was already sent.
                LOGGER.debug("[%s] Telephony socket already closed", self._session.label)

        s = self._session
        LOGGER.info(
            "[%s] Call ended: frames_in=%s frames_out=%s bookings=%s",
            s.label,
            s.frames_in,
            s.frames_out,
            s.bookings,
        )

    async def wait_deliveries(self) -> None:
        if self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    # Telephony side

    async def _pump_telephony(self) -> None:
        try:
            while True:
                text = await self._websocket.receive_text()
                event = parse_twilio_message(text)
                if event is None:
                    LOGGER.debug("[%s] Ignoring telephony frame", self._session.label)
                    continue
                if isinstance(event, StreamStopped):
                    LOGGER.info("[%s] Stream stopped", self._session.label)
                    return
                await self._telephony_handlers[type(event)](event)
        except WebSocketDisconnect:
            self._telephony_open = False
            LOGGER.info("[%s] Media stream closed", self._session.label)

    async def _on_connected(self, event: StreamConnected) -> None:
        LOGGER.debug("Twilio connected: protocol=%s", event.protocol)

    async def _on_stream_started(self, event: StreamStarted) -> None:
        self._session.stream_sid = event.stream_sid
        self._session.call_sid = event.call_sid
        LOGGER.info("[%s] Stream started (call_sid=%s)", event.stream_sid, event.call_sid)
        if self._settings.stream_start_tone:
            self._spawn(self._play_tone())

    async def _on_media(self, event: MediaReceived) -> None:
        if event.track and event.track != "inbound":
            return
        self._session.frames_in += 1
        if not self._ai_open:
            return
        await self._send_ai(input_audio_append(event.payload))

    async def _on_mark(self, event: MarkReceived) -> None:
        LOGGER.debug("[%s] Mark played: %s", self._session.label, event.name)

    async def _play_tone(self) -> None:
        tone = generate_tone(self._settings.stream_start_tone_hz, self._settings.stream_start_tone_ms)
        for i in range(0, len(tone), FRAME_BYTES_8K):
            if not await self._send_media(encode_payload(tone[i : i + FRAME_BYTES_8K])):
                return

    async def _send_media(self, payload_b64: str) -> bool:
        stream_sid = self._session.stream_sid
        if not stream_sid:
            return False
        sent = await self._send_telephony(media_message(stream_sid, payload_b64))
        if sent:
            self._session.frames_out += 1
        return sent

    async def _send_telephony(self, message: dict[str, Any]) -> bool:
        if self._closed or not self._telephony_open:
            return False
        try:
            await self._websocket.send_text(json.dumps(message))
        except (WebSocketDisconnect, RuntimeError) as exc:
            LOGGER.warning("[%s] Telephony send failed: %s", self._session.label, exc)
            self._telephony_open = False
            await self.close()
            return False
        return True

    # AI side

    async def _run_ai(self) -> None:
        try:
            ai = await self._connect(self._settings)
        except RealtimeConnectionError as exc:
            LOGGER.error("[%s] Realtime connection failed: %s", self._session.label, exc.detail)
            return

        if self._closed:
            await ai.close()
            return
        self._ai = ai
        self._ai_open = True

        LOGGER.info("[%s] Connected to OpenAI Realtime", self._session.label)
        await self._on_ai_ready()
        try:
            async for raw in ai:
                event = parse_realtime_message(raw)
                if event is None:
                    LOGGER.debug("[%s] Ignoring realtime frame", self._session.label)
                    continue
                await self._ai_handlers[type(event)](event)
        except ConnectionClosed as exc:
            LOGGER.info("[%s] Realtime connection lost: %s", self._session.label, exc)
        self._ai_open = False
        LOGGER.info("[%s] OpenAI socket closed", self._session.label)

    async def _on_ai_ready(self) -> None:
        await self._send_ai(session_update(self._settings, self._session.tenant))
        self._spawn(self._greet())

    async def _greet(self) -> None:
        await asyncio.sleep(self._settings.session_settle_seconds)
        await self._issue(self._turns.request_response(self._session.tenant.greeting))

    async def _issue(self, request: ResponseRequest | None) -> None:
        if request is None:
            return
        self._pending_event_id = f"bridge_resp_{next(self._request_ids)}"
        await self._send_ai(response_create(request.instructions, event_id=self._pending_event_id))

    async def _send_ai(self, message: dict[str, Any]) -> bool:
        if self._closed or not self._ai_open:
            return False
        try:
            await self._ai.send(json.dumps(message))
        except ConnectionClosed as exc:
            LOGGER.warning("[%s] Realtime send failed: %s", self._session.label, exc)
            self._ai_open = False
            await self.close()
            return False
        return True

    async def _on_session_created(self, event: SessionCreated) -> None:
        LOGGER.debug("[%s] Realtime session created", self._session.label)

    async def _on_session_updated(self, event: SessionUpdated) -> None:
        LOGGER.info("[%s] Session updated", self._session.label)

    async def _on_input_committed(self, event: InputCommitted) -> None:
        if self._settings.vad_create_response:
            return
        await self._issue(self._turns.request_response())

    async def _on_speech_started(self, event: SpeechStarted) -> None:
        stream_sid = self._session.stream_sid
        if self._settings.barge_in_clear and stream_sid:
            await self._send_telephony(clear_message(stream_sid))

    async def _on_response_created(self, event: ResponseCreated) -> None:
        self._pending_event_id = None
        self._turns.response_created()
        LOGGER.debug("[%s] Response started: %s", self._session.label, event.response_id)

    async def _on_text_delta(self, event: TextDelta) -> None:
        self._session.append_text(event.delta)

    async def _on_audio_delta(self, event: AudioDelta) -> None:
        if not self._session.stream_sid:
            return
        payload = event.delta
        if self._settings.ai_output_audio_format != "g711_ulaw":
            try:
                raw = decode_payload(payload)
            except (binascii.Error, ValueError):
                LOGGER.debug("[%s] Ignoring undecodable audio delta", self._session.label)
                return
            ulaw = pcm16_bytes_to_ulaw(raw, self._settings.ai_output_sample_rate)
            if not ulaw:
                return
            payload = encode_payload(ulaw)
        await self._send_media(payload)

    async def _on_response_done(self, event: ResponseDone) -> None:
        LOGGER.debug("[%s] Response ended: %s (%s)", self._session.label, event.response_id, event.status)
        text = self._session.take_turn_text()
        record = extract_booking(text, self._settings.booking_marker) if text else None
        if record is not None:
            self._session.bookings += 1
            LOGGER.info("[%s] Booking recognised: %s", self._session.label, record.model_dump_json())
            task = asyncio.create_task(self._deliver(record))
            self._deliveries.add(task)
            task.add_done_callback(self._deliveries.discard)

        follow_up = self._turns.response_done()
        stream_sid = self._session.stream_sid
        if stream_sid:
            await self._send_telephony(mark_message(stream_sid, f"response-{next(self._marks)}"))
        await self._issue(follow_up)

    async def _on_ai_error(self, event: RealtimeError) -> None:
        LOGGER.error("[%s] AI error: %s %s", self._session.label, event.code, event.message)
        if event.event_id and event.event_id == self._pending_event_id:
            self._pending_event_id = None
            await self._issue(self._turns.request_failed())

    async def _deliver(self, record: BookingRecord) -> None:
        try:
            result = await self._sink.deliver(record)
        except Exception:
            LOGGER.exception("[%s] Booking delivery raised", self._session.label)
            return
        LOGGER.info("[%s] Booking delivery result: %s", self._session.label, result)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
