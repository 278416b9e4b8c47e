"""Data models for the booking dialogue."""

from .booking import BookingReceipt
from .session import (
    CallSession,
    DialogueState,
    ServiceType,
    SlotName,
    TurnInput,
)

__all__ = [
    "BookingReceipt",
    "CallSession",
    "DialogueState",
    "ServiceType",
    "SlotName",
    "TurnInput",
]
