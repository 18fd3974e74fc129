from __future__ import annotations

from bridge.booking import BookingRecord, extract_booking

BOOKING_JSON = (
    '{"name":"Jane Doe","phone":"+15551234567","address":"1 Elm St","job":"no cooling",'
    '"start":"2025-08-12T10:00:00-05:00","end":"2025-08-12T12:00:00-05:00","notes":"","emergency":false}'
)


def test_extracts_record_at_end_of_turn():
    text = "Great, you're all set for Tuesday morning. BOOKING:" + BOOKING_JSON

    record = extract_booking(text)

    assert record == BookingRecord(
        name="Jane Doe",
        phone="+15551234567",
        address="1 Elm St",
        job="no cooling",
        start="2025-08-12T10:00:00-05:00",
        end="2025-08-12T12:00:00-05:00",
        notes="",
        emergency=False,
    )


def test_trailing_whitespace_is_allowed():
    record = extract_booking("BOOKING: " + BOOKING_JSON + "\n")
    assert record is not None
    assert record.emergency is False


def test_truncated_object_yields_nothing():
    assert extract_booking("Done. BOOKING:" + BOOKING_JSON[:-20]) is None


def test_invalid_json_yields_nothing():
    assert extract_booking('BOOKING:{"name": Jane}') is None


def test_text_after_object_yields_nothing():
    assert extract_booking("BOOKING:" + BOOKING_JSON + " Have a nice day!") is None


def test_no_marker_yields_nothing():
    assert extract_booking("May I have your address?") is None


def test_non_object_payload_yields_nothing():
    assert extract_booking('BOOKING:["Jane Doe"]') is None


def test_missing_required_field_yields_nothing():
    assert extract_booking('BOOKING:{"name": "Jane Doe", "phone": "+15551234567"}') is None


def test_bad_timestamp_yields_nothing():
    payload = BOOKING_JSON.replace("2025-08-12T10:00:00-05:00", "tomorrow morning")
    assert extract_booking("BOOKING:" + payload) is None


def test_last_marker_wins():
    text = "I will send BOOKING: once confirmed. BOOKING:" + BOOKING_JSON
    record = extract_booking(text)
    assert record is not None
    assert record.name == "Jane Doe"


def test_emergency_flag_and_defaults():
    text = (
        'BOOKING:{"name":"Sam","phone":"+17015550000","address":"9 Oak Ave","job":"gas smell",'
        '"start":"2025-08-12T14:00:00-05:00","end":"2025-08-12T16:00:00-05:00","emergency":true}'
    )
    record = extract_booking(text)
    assert record is not None
    assert record.emergency is True
    assert record.notes == ""


def test_custom_marker():
    assert extract_booking("JOB>>" + BOOKING_JSON, marker="JOB>>") is not None


def test_marker_inside_field_value_does_not_hide_record():
    payload = BOOKING_JSON.replace('"notes":""', '"notes":"BOOKING: confirmed"')
    record = extract_booking("All set. BOOKING:" + payload)
    assert record is not None
    assert record.notes == "BOOKING: confirmed"


def test_utc_suffix_timestamps_are_accepted_verbatim():
    payload = BOOKING_JSON.replace("2025-08-12T10:00:00-05:00", "2025-08-12T15:00:00Z")
    record = extract_booking("BOOKING:" + payload)
    assert record is not None
    assert record.start == "2025-08-12T15:00:00Z"
