"""Shared FastAPI dependencies.

Separated to avoid circular imports between route modules. Tests override these
to keep calls away from OpenAI and the booking webhook.
"""

from __future__ import annotations

from functools import lru_cache

from config.tenants import TenantDirectory
from integrations.booking_webhook import BookingWebhook
from integrations.openai_realtime import connect_realtime


@lru_cache(maxsize=1)
def _tenant_directory() -> TenantDirectory:
    return TenantDirectory()


def get_tenant_directory() -> TenantDirectory:
    return _tenant_directory()


def get_booking_sink() -> BookingWebhook:
    return BookingWebhook()


def get_realtime_connector():
    return connect_realtime
