"""Pydantic model for a saved booking."""

from datetime import datetime

from pydantic import BaseModel


class BookingReceipt(BaseModel):
    """Result returned after the calendar accepted an appointment."""

    event_id: str
    start: datetime
    end: datetime
    idempotency_key: str
    html_link: str = ""
