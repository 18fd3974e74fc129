"""Delivery of recognised bookings to a downstream automation endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from bridge.booking import BookingRecord
from config.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    status_code: int | None = None
    reason: str | None = None


class BookingWebhook:
    """Simple HTTP bridge posting booking records as JSON."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._endpoint = settings.booking_webhook_url
        self._api_key = settings.booking_webhook_api_key
        self._timeout = settings.booking_webhook_timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._endpoint)

    async def deliver(self, record: BookingRecord) -> DeliveryResult:
        if not self._endpoint:
            LOGGER.info("No booking webhook configured; skipping delivery for %s", record.name)
            return DeliveryResult(ok=False, reason="webhook not configured")

        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._endpoint,
                    json=record.model_dump(),
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            LOGGER.error("Booking delivery failed: %s", exc)
            return DeliveryResult(ok=False, reason=str(exc))

        if response.is_error:
            LOGGER.error("Booking delivery rejected with HTTP %s", response.status_code)
            return DeliveryResult(ok=False, status_code=response.status_code, reason=response.reason_phrase)

        LOGGER.info("Booking delivered for %s (HTTP %s)", record.name, response.status_code)
        return DeliveryResult(ok=True, status_code=response.status_code)
