"""Abstract base class for calendar providers.

Defines the interface for writing appointments.  Any calendar backend
(Google, Outlook, etc.) implements this ABC.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass
class CalendarEvent:
    """Represents a calendar event to be created."""

    summary: str
    start: datetime
    end: datetime
    description: str = ""
    location: str = ""
    # Client-chosen id; lets the backend reject a duplicate insert.
    event_id: str = ""


class CalendarProvider(ABC):
    """Abstract calendar backend."""

    @abstractmethod
    async def create_event(
        self, calendar_id: str, event: CalendarEvent
    ) -> dict:
        """Create a calendar event.

        Args:
            calendar_id: The calendar to create the event on.
            event: Event details.  When ``event.event_id`` is set the
                provider must use it as the event's identifier, and an
                insert that collides with an existing event of the same
                id counts as success.

        Returns:
            Dict containing at least ``"event_id"`` and ``"html_link"``.

        Raises:
            Exception: Any provider failure; callers treat all errors
                as "not saved".
        """
