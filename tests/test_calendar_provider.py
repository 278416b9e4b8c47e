"""Tests for CalendarProvider ABC and GoogleCalendarProvider."""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import httplib2
import pytest
from googleapiclient.errors import HttpError

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from booking_line.calendar_providers.base import CalendarEvent, CalendarProvider
from booking_line.google_credentials import load_service_account


# ── CalendarEvent dataclass tests ───────────────────────────────────


class TestDataclasses:
    def test_calendar_event_defaults(self):
        now = datetime.now(tz=timezone.utc)
        event = CalendarEvent(
            summary="Test",
            start=now,
            end=now + timedelta(minutes=30),
        )
        assert event.description == ""
        assert event.location == ""
        assert event.event_id == ""


# ── ABC contract tests ─────────────────────────────────────────────


class TestCalendarProviderABC:
    def test_cannot_instantiate(self):
        """CalendarProvider is abstract — can't be instantiated directly."""
        with pytest.raises(TypeError):
            CalendarProvider()

    def test_concrete_implementation(self):
        class MockProvider(CalendarProvider):
            async def create_event(self, calendar_id, event):
                return {}

        provider = MockProvider()
        assert isinstance(provider, CalendarProvider)


# ── Service account loading ────────────────────────────────────────


class TestLoadServiceAccount:
    def test_empty_value(self):
        with pytest.raises(ValueError):
            load_service_account("", ["scope"])

    def test_bad_inline_json(self):
        with pytest.raises(ValueError):
            load_service_account("{not json", ["scope"])

    def test_inline_json(self):
        with patch("booking_line.google_credentials.Credentials") as creds:
            load_service_account('{"type": "service_account"}', ["scope"])
        creds.from_service_account_info.assert_called_once_with(
            {"type": "service_account"}, scopes=["scope"]
        )

    def test_file_path(self):
        with patch("booking_line.google_credentials.Credentials") as creds:
            load_service_account("/fake/path.json", ["scope"])
        creds.from_service_account_file.assert_called_once_with(
            "/fake/path.json", scopes=["scope"]
        )


# ── GoogleCalendarProvider tests (mocked API) ──────────────────────


class TestGoogleCalendarProvider:
    @pytest.fixture
    def mock_provider(self):
        """Create a GoogleCalendarProvider with mocked Google APIs."""
        with patch(
            "booking_line.calendar_providers.google.load_service_account"
        ) as mock_load, patch(
            "booking_line.calendar_providers.google.build"
        ) as mock_build:
            mock_load.return_value = MagicMock()

            from booking_line.calendar_providers.google import GoogleCalendarProvider

            provider = GoogleCalendarProvider(service_account="/fake/path.json")
            provider._service = mock_build.return_value
            return provider

    @pytest.fixture
    def event(self):
        start = datetime(2025, 9, 10, 14, 0, tzinfo=timezone(timedelta(hours=-4)))
        return CalendarEvent(
            summary="Airbnb Appointment",
            start=start,
            end=start + timedelta(hours=1),
            description="Booked via phone bot.",
            location="12 Palmetto Bay Road",
            event_id="abc123",
        )

    async def test_create_event(self, mock_provider, event):
        """create_event should call events().insert() and return event data."""
        insert = mock_provider._service.events.return_value.insert
        insert.return_value.execute.return_value = {
            "id": "abc123",
            "htmlLink": "https://calendar.google.com/event/abc123",
            "status": "confirmed",
        }

        result = await mock_provider.create_event("primary", event)

        assert result["event_id"] == "abc123"
        assert result["html_link"] == "https://calendar.google.com/event/abc123"
        body = insert.call_args.kwargs["body"]
        assert insert.call_args.kwargs["calendarId"] == "primary"
        assert body["id"] == "abc123"
        assert body["start"]["dateTime"] == "2025-09-10T14:00:00-04:00"
        assert body["start"]["timeZone"] == "America/New_York"
        assert body["location"] == "12 Palmetto Bay Road"

    async def test_duplicate_event_id_is_success(self, mock_provider, event):
        resp = httplib2.Response({"status": 409})
        mock_provider._service.events.return_value.insert.return_value.execute.side_effect = (
            HttpError(resp, b'{"error": {"message": "The requested identifier already exists."}}')
        )

        result = await mock_provider.create_event("primary", event)

        assert result == {"event_id": "abc123", "html_link": "", "status": "duplicate"}

    async def test_other_http_errors_propagate(self, mock_provider, event):
        resp = httplib2.Response({"status": 500})
        mock_provider._service.events.return_value.insert.return_value.execute.side_effect = (
            HttpError(resp, b'{"error": {"message": "Backend Error"}}')
        )

        with pytest.raises(HttpError):
            await mock_provider.create_event("primary", event)
