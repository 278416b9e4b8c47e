"""Booking finalizer — turns a confirmed session into one calendar event.

The finalizer never touches the session it is given.  The controller
marks the session booked only after ``finalize`` returns a receipt, so a
calendar failure leaves every collected field exactly as it was and the
caller can confirm again to retry.

Each attempt carries an idempotency key derived from the caller id and
the slot contents.  It is passed to the provider as the event id, so a
retried confirmation for the same details cannot create a second event
on backends that enforce unique ids.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import timedelta

from booking_line.calendar_providers.base import CalendarEvent, CalendarProvider
from booking_line.dialogue.datetimes import combine
from booking_line.models.booking import BookingReceipt
from booking_line.models.session import SLOT_ORDER, CallSession
from booking_line.store import redact_pii

log = logging.getLogger("booking_line.dialogue.finalizer")


class BookingError(Exception):
    """Base class for anything that stops a booking from being saved."""


class IncompleteBookingError(BookingError):
    """A slot is empty or the caller has not confirmed."""


class InvalidBookingTimeError(BookingError):
    """The date and time slots cannot be combined into an instant."""


class CalendarWriteError(BookingError):
    """The calendar is unavailable, failed, or timed out."""


def idempotency_key(session: CallSession) -> str:
    """Stable key for one caller + one set of booking details.

    Hex digits are valid Google Calendar event id characters.
    """
    parts = [session.caller_id] + [session.slot_value(s) or "" for s in SLOT_ORDER]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()


class BookingFinalizer:
    """Validate a confirmed session and write it to the calendar once."""

    def __init__(
        self,
        provider: CalendarProvider | None,
        calendar_id: str = "primary",
        timezone_name: str = "America/New_York",
        duration_minutes: int = 60,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._provider = provider
        self._calendar_id = calendar_id
        self._timezone_name = timezone_name
        self._duration = timedelta(minutes=duration_minutes)
        self._timeout = timeout_seconds

    def build_event(self, session: CallSession) -> CalendarEvent:
        """Compose the calendar event for a complete session."""
        try:
            start = combine(session.date, session.time, self._timezone_name)
        except ValueError as e:
            raise InvalidBookingTimeError(str(e)) from e

        service = session.service.value
        return CalendarEvent(
            summary=f"{service} Appointment",
            start=start,
            end=start + self._duration,
            description=(
                "Booked via phone bot.\n"
                f"Service: {service}\n"
                f"Name: {session.name}\n"
                f"Phone: {session.caller_id}\n"
                f"Address: {session.address}"
            ),
            location=session.address or "",
            event_id=idempotency_key(session),
        )

    async def finalize(self, session: CallSession) -> BookingReceipt:
        """Write the booking.

        Raises:
            IncompleteBookingError: Missing fields or not confirmed; the
                calendar is not called.
            InvalidBookingTimeError: Date/time slots are not ISO-8601.
            CalendarWriteError: No provider, provider error, or timeout.
        """
        missing = session.missing_fields()
        if missing or not session.confirmed:
            raise IncompleteBookingError(
                f"cannot book: confirmed={session.confirmed} "
                f"missing={[m.value for m in missing]}"
            )

        event = self.build_event(session)

        if self._provider is None:
            raise CalendarWriteError("no calendar provider configured")

        try:
            result = await asyncio.wait_for(
                self._provider.create_event(calendar_id=self._calendar_id, event=event),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            log.warning(
                "Calendar write timed out after %.1fs for %s",
                self._timeout, redact_pii(session.caller_id),
            )
            raise CalendarWriteError("calendar write timed out") from e
        except Exception as e:
            log.exception("Failed to create booking event for %s", redact_pii(session.caller_id))
            raise CalendarWriteError(str(e)) from e

        receipt = BookingReceipt(
            event_id=result.get("event_id", event.event_id),
            html_link=result.get("html_link", ""),
            start=event.start,
            end=event.end,
            idempotency_key=event.event_id,
        )
        log.info(
            "Booked %s for %s at %s (event %s)",
            event.summary, redact_pii(session.caller_id),
            event.start.isoformat(), receipt.event_id,
        )
        return receipt
