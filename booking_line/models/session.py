"""Pydantic model tracking one caller's booking conversation."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ServiceType(str, Enum):
    AIRBNB = "Airbnb"
    HANDYMAN = "Handyman"
    RESIDENTIAL = "Residential"
    COMMERCIAL = "Commercial"

    @classmethod
    def from_text(cls, value: str) -> Optional["ServiceType"]:
        """Match a spoken or typed service name, case-insensitively."""
        text = (value or "").strip().lower()
        if not text:
            return None
        for member in cls:
            if member.value.lower() in text:
                return member
        return None


class SlotName(str, Enum):
    NAME = "name"
    SERVICE = "service"
    DATE = "date"
    TIME = "time"
    ADDRESS = "address"
    CONFIRMATION = "confirmation"


class DialogueState(str, Enum):
    MENU_SELECTION = "menu_selection"
    COLLECTING_NAME = "collecting_name"
    COLLECTING_SERVICE = "collecting_service"
    COLLECTING_DATE = "collecting_date"
    COLLECTING_TIME = "collecting_time"
    COLLECTING_ADDRESS = "collecting_address"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    CORRECTING_FIELD = "correcting_field"
    BOOKED = "booked"
    CLOSED = "closed"
    AGENT_TRANSFER = "agent_transfer"


# Fixed collection order for the booking record.
SLOT_ORDER: tuple[SlotName, ...] = (
    SlotName.NAME,
    SlotName.SERVICE,
    SlotName.DATE,
    SlotName.TIME,
    SlotName.ADDRESS,
)

COLLECTING_STATES: dict[SlotName, DialogueState] = {
    SlotName.NAME: DialogueState.COLLECTING_NAME,
    SlotName.SERVICE: DialogueState.COLLECTING_SERVICE,
    SlotName.DATE: DialogueState.COLLECTING_DATE,
    SlotName.TIME: DialogueState.COLLECTING_TIME,
    SlotName.ADDRESS: DialogueState.COLLECTING_ADDRESS,
}

TERMINAL_STATES = frozenset({
    DialogueState.BOOKED,
    DialogueState.CLOSED,
    DialogueState.AGENT_TRANSFER,
})


class CallSession(BaseModel):
    """Mutable dialogue state for one caller across stateless webhook turns.

    Slot fields are filled progressively; ``awaiting`` names the single
    input the next turn is expected to supply.
    """

    caller_id: str
    call_sid: str = ""

    state: DialogueState = DialogueState.MENU_SELECTION
    awaiting: Optional[SlotName] = SlotName.SERVICE

    # Booking record
    service: Optional[ServiceType] = None
    name: Optional[str] = None
    date: Optional[str] = None  # ISO-8601, date component used
    time: Optional[str] = None  # ISO-8601, time component used
    address: Optional[str] = None

    # Bookkeeping
    failure_count: int = 0
    confirmed: bool = False
    booked: bool = False

    def slot_value(self, slot: SlotName) -> Optional[str]:
        value = getattr(self, slot.value)
        if isinstance(value, ServiceType):
            return value.value
        return value

    def missing_fields(self) -> list[SlotName]:
        """Unfilled booking fields, in collection order."""
        return [slot for slot in SLOT_ORDER if not self.slot_value(slot)]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class TurnInput(BaseModel):
    """One inbound webhook turn."""

    caller_id: str
    call_sid: str = ""
    utterance: str = ""
    digits: str = ""

    @property
    def is_silent(self) -> bool:
        return not self.utterance.strip() and not self.digits.strip()
