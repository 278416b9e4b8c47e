"""Tests for caller-facing wording and ISO-8601 slot helpers."""

from datetime import date, time, timedelta

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from booking_line.dialogue import prompts
from booking_line.dialogue.datetimes import combine, parse_date, parse_time
from booking_line.models.session import CallSession, ServiceType, SlotName


class TestDatetimes:
    def test_parse_date_from_timestamp(self):
        assert parse_date("2025-09-10T12:00:00-04:00") == date(2025, 9, 10)

    def test_parse_time_from_timestamp(self):
        t = parse_time("2025-09-09T14:00:00-04:00")
        assert (t.hour, t.minute) == (14, 0)
        assert t.utcoffset() == timedelta(hours=-4)

    def test_parse_time_utc_suffix(self):
        assert parse_time("14:00:00Z").utcoffset() == timedelta(0)

    def test_unparseable(self):
        assert parse_date("next tuesday") is None
        assert parse_time("") is None

    def test_combine_takes_date_from_date_slot(self):
        start = combine("2025-09-10T12:00:00-04:00", "2025-09-09T14:00:00-04:00", "UTC")
        assert start.isoformat() == "2025-09-10T14:00:00-04:00"

    def test_combine_rejects_garbage(self):
        with pytest.raises(ValueError):
            combine("soon", "14:00", "UTC")

    def test_combine_rejects_unknown_zone(self):
        with pytest.raises(ValueError):
            combine("2025-09-10", "09:30", "America/Nowhere")

    def test_offset_in_time_slot_skips_zone_lookup(self):
        start = combine("2025-09-10", "09:30:00-04:00", "America/Nowhere")
        assert start.utcoffset() == timedelta(hours=-4)


class TestSpokenValues:
    def test_spoken_date(self):
        assert prompts.spoken_date("2025-09-10") == "Wednesday, September 10"

    @pytest.mark.parametrize("value,expected", [
        ("14:00:00", "2 PM"),
        ("09:30", "9:30 AM"),
        ("00:00", "12 AM"),
        ("12:15", "12:15 PM"),
    ])
    def test_spoken_time(self, value, expected):
        assert prompts.spoken_time(value) == expected

    def test_raw_values_pass_through(self):
        assert prompts.spoken_date("next week") == "next week"
        assert prompts.spoken_time(None) == ""


class TestPrompts:
    def test_welcome_mentions_business_and_escape(self):
        text = prompts.welcome("Hilton Head Cleaning Company")
        assert "Welcome to Hilton Head Cleaning Company" in text
        assert "press 0" in text

    def test_recap(self):
        session = CallSession(
            caller_id="+18435551234",
            service=ServiceType.COMMERCIAL,
            name="Maria",
            date="2025-09-10",
            time="09:30",
            address="12 Palmetto Bay Road",
        )
        text = prompts.recap(session)
        assert "commercial cleaning for Maria" in text
        assert "Wednesday, September 10 at 9:30 AM" in text
        assert "12 Palmetto Bay Road" in text
        assert prompts.CONFIRM_CHOICES in text

    def test_every_field_has_a_question(self):
        for slot in (SlotName.NAME, SlotName.SERVICE, SlotName.DATE, SlotName.TIME, SlotName.ADDRESS):
            assert prompts.question(slot)
            assert prompts.clarify(slot)


class TestSessionModel:
    def test_missing_fields_in_order(self):
        session = CallSession(caller_id="+18435551234", date="2025-09-10")
        assert session.missing_fields() == [
            SlotName.NAME, SlotName.SERVICE, SlotName.TIME, SlotName.ADDRESS,
        ]
        assert not session.is_complete

    @pytest.mark.parametrize("text,expected", [
        ("airbnb", ServiceType.AIRBNB),
        ("I need a handyman", ServiceType.HANDYMAN),
        ("Residential cleaning", ServiceType.RESIDENTIAL),
        ("pool service", None),
        ("", None),
    ])
    def test_service_from_text(self, text, expected):
        assert ServiceType.from_text(text) is expected
