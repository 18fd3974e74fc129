from __future__ import annotations

import asyncio
import json

import httpx

from bridge.booking import BookingRecord
from config.settings import Settings
from integrations.booking_webhook import BookingWebhook, DeliveryResult

RECORD = BookingRecord(
    name="Jane Doe",
    phone="+15551234567",
    address="1 Elm St",
    job="no cooling",
    start="2025-08-12T10:00:00-05:00",
    end="2025-08-12T12:00:00-05:00",
)


def _run(coro):
    return asyncio.run(coro)


def _settings(**overrides) -> Settings:
    values = {"booking_webhook_url": "https://hooks.example.com/catch/1"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def test_delivery_posts_record_as_json():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"status": "success"})

    webhook = BookingWebhook(
        _settings(booking_webhook_api_key="secret"),
        transport=httpx.MockTransport(handler),
    )
    result = _run(webhook.deliver(RECORD))

    assert result == DeliveryResult(ok=True, status_code=200)
    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert str(seen[0].url) == "https://hooks.example.com/catch/1"
    assert seen[0].headers["Authorization"] == "Bearer secret"
    body = json.loads(seen[0].content)
    assert body == {
        "name": "Jane Doe",
        "phone": "+15551234567",
        "address": "1 Elm St",
        "job": "no cooling",
        "start": "2025-08-12T10:00:00-05:00",
        "end": "2025-08-12T12:00:00-05:00",
        "notes": "",
        "emergency": False,
    }


def test_http_error_status_is_reported_not_raised():
    webhook = BookingWebhook(
        _settings(),
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    result = _run(webhook.deliver(RECORD))

    assert result.ok is False
    assert result.status_code == 500


def test_transport_failure_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    webhook = BookingWebhook(_settings(), transport=httpx.MockTransport(handler))
    result = _run(webhook.deliver(RECORD))

    assert result.ok is False
    assert result.status_code is None
    assert "refused" in (result.reason or "")


def test_missing_url_skips_delivery():
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    webhook = BookingWebhook(
        Settings(_env_file=None, booking_webhook_url=None),
        transport=httpx.MockTransport(handler),
    )
    assert webhook.configured is False
    result = _run(webhook.deliver(RECORD))
    assert result == DeliveryResult(ok=False, reason="webhook not configured")


def test_zapier_hook_url_env_alias(monkeypatch):
    monkeypatch.delenv("BOOKING_WEBHOOK_URL", raising=False)
    monkeypatch.setenv("ZAPIER_HOOK_URL", "https://hooks.zapier.com/hooks/catch/42")
    assert Settings(_env_file=None).booking_webhook_url == "https://hooks.zapier.com/hooks/catch/42"
