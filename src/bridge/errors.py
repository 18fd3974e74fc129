"""Domain-specific exceptions for call bridging.

These exceptions are safe to import from API layers without opening any connection.
"""

from __future__ import annotations


class BridgeError(Exception):
    status_code: int = 500
    default_detail: str = "Bridge error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class UnknownTenantError(BridgeError):
    status_code = 404
    default_detail = "Unknown tenant."


class RealtimeConnectionError(BridgeError):
    status_code = 502
    default_detail = "Realtime AI connection failed."


class BookingDeliveryError(BridgeError):
    status_code = 502
    default_detail = "Booking delivery failed."
