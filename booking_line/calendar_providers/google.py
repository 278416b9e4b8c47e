"""Google Calendar provider implementation.

Uses a Google Cloud service account to interact with the Calendar API v3.
The service account key (path or inline JSON) is read from the
``GOOGLE_SERVICE_ACCOUNT_JSON`` environment variable when not passed in.
"""

from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime, timezone
from functools import partial
from typing import Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from booking_line.google_credentials import load_service_account

from .base import CalendarEvent, CalendarProvider

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar"]


class GoogleCalendarProvider(CalendarProvider):
    """CalendarProvider backed by Google Calendar API v3."""

    def __init__(
        self,
        service_account: str | None = None,
        timezone_name: str = "America/New_York",
    ) -> None:
        sa_value = service_account or os.environ.get(
            "GOOGLE_SERVICE_ACCOUNT_JSON", ""
        )
        self._credentials = load_service_account(sa_value, SCOPES)
        self._service = build(
            "calendar", "v3", credentials=self._credentials, cache_discovery=False
        )
        self._timezone_name = timezone_name

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run_in_executor(self, func, *args, **kwargs) -> Any:
        """Run a synchronous Google API call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, partial(func, *args, **kwargs)
        )

    @staticmethod
    def _to_rfc3339(dt: datetime) -> str:
        """Convert a datetime to an RFC 3339 string with timezone."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.isoformat()

    # ------------------------------------------------------------------
    # CalendarProvider interface
    # ------------------------------------------------------------------

    async def create_event(
        self, calendar_id: str, event: CalendarEvent
    ) -> dict:
        """Insert an event into the Google Calendar.

        A 409 for a client-supplied event id means an earlier attempt
        already landed, so it is reported as the existing event.
        """
        body: dict[str, Any] = {
            "summary": event.summary,
            "start": {
                "dateTime": self._to_rfc3339(event.start),
                "timeZone": self._timezone_name,
            },
            "end": {
                "dateTime": self._to_rfc3339(event.end),
                "timeZone": self._timezone_name,
            },
        }
        if event.description:
            body["description"] = event.description
        if event.location:
            body["location"] = event.location
        if event.event_id:
            body["id"] = event.event_id

        try:
            result = await self._run_in_executor(
                self._service.events()
                .insert(calendarId=calendar_id, body=body)
                .execute
            )
        except HttpError as e:
            if event.event_id and getattr(e.resp, "status", None) == 409:
                logger.info(
                    "Event %s already exists on calendar %s", event.event_id, calendar_id
                )
                return {"event_id": event.event_id, "html_link": "", "status": "duplicate"}
            raise

        logger.info("Created event %s on calendar %s", result["id"], calendar_id)

        return {
            "event_id": result["id"],
            "html_link": result.get("htmlLink", ""),
            "status": result.get("status", "confirmed"),
        }
