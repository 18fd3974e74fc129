"""FastAPI routes exposing the bridge's HTTP surface."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends

from api.dependencies import get_booking_sink
from api.schemas import DeliveryResponse, HealthResponse
from api.twilio_routes import router as twilio_router
from bridge.booking import BookingRecord
from bridge.errors import BookingDeliveryError
from integrations.booking_webhook import BookingWebhook, DeliveryResult

LOGGER = logging.getLogger(__name__)

router = APIRouter()
router.include_router(twilio_router)

SAMPLE_BOOKING = BookingRecord(
    name="Test Customer",
    phone="+17010000000",
    address="123 Main St, Fargo, ND",
    job="AC tune-up",
    start="2025-08-12T10:00:00-05:00",
    end="2025-08-12T12:00:00-05:00",
    notes="gate code 1234",
)



def _delivery_response(sink: BookingWebhook, result: DeliveryResult) -> DeliveryResponse:
    # An unconfigured webhook is reported, not treated as a failure.
    if not result.ok and sink.configured:
        LOGGER.warning("Test booking delivery failed: %s", result.reason)
        raise BookingDeliveryError(f"Booking delivery failed: {result.reason}")
    return DeliveryResponse(ok=result.ok, status_code=result.status_code, reason=result.reason)


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/bookings/test", response_model=DeliveryResponse)
async def send_sample_booking(
    sink: BookingWebhook = Depends(get_booking_sink),
) -> DeliveryResponse:
    """Deliver a canned booking without involving the AI."""

    result = await sink.deliver(SAMPLE_BOOKING)
    return _delivery_response(sink, result)


@router.post("/bookings/test", response_model=DeliveryResponse)
async def send_test_booking(
    record: BookingRecord = Body(default=SAMPLE_BOOKING),
    sink: BookingWebhook = Depends(get_booking_sink),
) -> DeliveryResponse:
    LOGGER.info("Test booking requested for %s", record.name)
    result = await sink.deliver(record)
    return _delivery_response(sink, result)
