"""Recognition of the booking record the assistant emits at the end of a turn."""

from __future__ import annotations

import json
import logging
from datetime import datetime

from pydantic import BaseModel, TypeAdapter, ValidationError, field_validator

LOGGER = logging.getLogger(__name__)

DEFAULT_MARKER = "BOOKING:"

_TIMESTAMP = TypeAdapter(datetime)


class BookingRecord(BaseModel):
    """Appointment details captured during a call."""

    name: str
    phone: str
    address: str
    job: str
    start: str
    end: str
    notes: str = ""
    emergency: bool = False

    @field_validator("start", "end")
    @classmethod
    def iso_timestamp(cls, value: str) -> str:
        # Kept verbatim; only checked for being a timestamp.
        _TIMESTAMP.validate_python(value)
        return value


def _parse_record(raw: str) -> BookingRecord:
    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise ValueError(f"expected an object, got {type(payload).__name__}")
    return BookingRecord.model_validate(payload)


def extract_booking(text: str, marker: str = DEFAULT_MARKER) -> BookingRecord | None:
    """Return the booking at the end of ``text``, if one is present.

    The record is a JSON object that follows a ``marker`` and runs to the end of
    the text. Occurrences are tried from the last one backwards, so marker text
    quoted inside a field value does not hide the record. Anything else yields
    ``None``.
    """

    idx = text.rfind(marker)
    if idx < 0:
        return None

    error: Exception | None = None
    while idx >= 0:
        try:
            return _parse_record(text[idx + len(marker) :].strip())
        except (ValueError, ValidationError) as exc:
            error = exc
        idx = text.rfind(marker, 0, idx)

    LOGGER.warning("Booking marker found but no valid record follows it: %s", error)
    return None
