"""Twilio Voice integration.

This module provides:
- Voice webhook (TwiML) that announces the call and connects a Media Stream.
- Media Stream WebSocket that bridges the call to an OpenAI Realtime session.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode
from xml.sax.saxutils import escape

from fastapi import APIRouter, Depends, HTTPException, Request, Response, WebSocket
from twilio.request_validator import RequestValidator

from api.dependencies import get_booking_sink, get_realtime_connector, get_tenant_directory
from bridge.controller import CallBridge
from bridge.errors import UnknownTenantError
from bridge.session import CallSession
from config.settings import get_settings
from config.tenants import TenantDirectory
from integrations.booking_webhook import BookingWebhook

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/twilio", tags=["twilio"])


def _twiml_response(xml: str) -> Response:
    # Twilio expects application/xml
    return Response(content=xml, media_type="application/xml")


def _to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def _twiml_connect_stream(*, say_text: str, voice: str, stream_url: str) -> str:
    say = escape(say_text)
    stream = escape(stream_url, {'"': "&quot;"})
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        f"<Say voice=\"{escape(voice)}\">{say}</Say>"
        "<Connect>"
        f"<Stream url=\"{stream}\" />"
        "</Connect>"
        "</Response>"
    )


def _public_url(request: Request) -> str:
    settings = get_settings()
    if settings.public_base_url:
        return f"{settings.public_base_url.rstrip('/')}{request.url.path}" + (
            f"?{request.url.query}" if request.url.query else ""
        )
    return str(request.url)


async def _validate_signature(request: Request) -> None:
    settings = get_settings()
    if not settings.twilio_validate_signatures:
        return
    if not settings.twilio_auth_token:
        LOGGER.error("Signature validation enabled but TWILIO_AUTH_TOKEN is missing")
        raise HTTPException(status_code=500, detail="Twilio auth token not configured")

    form = await request.form()
    validator = RequestValidator(settings.twilio_auth_token)
    signature = request.headers.get("X-Twilio-Signature", "")
    if not validator.validate(_public_url(request), dict(form), signature):
        LOGGER.warning("Rejected voice webhook with invalid Twilio signature")
        raise HTTPException(status_code=403, detail="Invalid Twilio signature")


@router.post("/voice")
async def twilio_voice_webhook(
    request: Request,
    directory: TenantDirectory = Depends(get_tenant_directory),
) -> Response:
    settings = get_settings()
    await _validate_signature(request)

    tenant_id = request.query_params.get("tenant")
    # Fail the webhook (rather than the stream) for unknown tenants.
    tenant = directory.resolve(tenant_id)

    params = {"tenant": tenant.tenant_id}
    if settings.public_base_url:
        base = settings.public_base_url.rstrip("/")
        stream_url = _to_ws_url(f"{base}/api/twilio/stream")
    else:
        # Fallback to request host. This may not work behind proxies; prefer PUBLIC_BASE_URL.
        stream_url = _to_ws_url(str(request.url_for("twilio_media_stream")))
    stream_url = f"{stream_url}?{urlencode(params)}"

    LOGGER.info("Incoming call for tenant %s, streaming to %s", tenant.tenant_id, stream_url)
    return _twiml_response(
        _twiml_connect_stream(
            say_text=settings.connect_say_text,
            voice=settings.connect_say_voice,
            stream_url=stream_url,
        )
    )


@router.websocket("/stream")
async def twilio_media_stream(
    websocket: WebSocket,
    directory: TenantDirectory = Depends(get_tenant_directory),
    sink: BookingWebhook = Depends(get_booking_sink),
    connect=Depends(get_realtime_connector),
) -> None:
    await websocket.accept()
    try:
        tenant = directory.resolve(websocket.query_params.get("tenant"))
    except UnknownTenantError as exc:
        LOGGER.warning("Closing media stream: %s", exc.detail)
        await websocket.close(code=1008)
        return

    bridge = CallBridge(
        websocket,
        CallSession(tenant=tenant),
        settings=get_settings(),
        booking_sink=sink,
        connect=connect,
    )
    await bridge.run()
