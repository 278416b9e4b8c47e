"""Everything the assistant says to the caller.

Kept in one place so the router stays a pure decision table.  Text is
written for text-to-speech: no symbols, dates and times spelled the way
a person would say them.
"""

from __future__ import annotations

from booking_line.dialogue.datetimes import parse_date, parse_time
from booking_line.models.session import CallSession, ServiceType, SlotName

SERVICE_LABELS = {
    ServiceType.AIRBNB: "Airbnb cleaning",
    ServiceType.HANDYMAN: "handyman services",
    ServiceType.RESIDENTIAL: "residential cleaning",
    ServiceType.COMMERCIAL: "commercial cleaning",
}

MENU_OPTIONS = (
    "Press 1 for Airbnb cleaning, 2 for handyman services, "
    "3 for residential cleaning, or 4 for commercial cleaning."
)

QUESTIONS = {
    SlotName.NAME: "Can I have your first name please?",
    SlotName.SERVICE: "Which service would you like? " + MENU_OPTIONS,
    SlotName.DATE: "What date would you like us to come out?",
    SlotName.TIME: "What time works best for you?",
    SlotName.ADDRESS: "What is the address for the appointment?",
}

CLARIFY = {
    SlotName.NAME: "Sorry, I didn't catch your name. Could you tell me your first name?",
    SlotName.SERVICE: (
        "Sorry, I didn't catch which service you need. " + MENU_OPTIONS
    ),
    SlotName.DATE: (
        "Sorry, I didn't get the date. Which day would you like, "
        "for example tomorrow or next Monday?"
    ),
    SlotName.TIME: (
        "Sorry, I didn't get the time. What time of day works for you, "
        "for example 10 AM or 2 PM?"
    ),
    SlotName.ADDRESS: (
        "Sorry, I didn't get the address. Could you say the street address again?"
    ),
}

FIELD_NAMES = {
    SlotName.NAME: "your name",
    SlotName.SERVICE: "the service",
    SlotName.DATE: "the date",
    SlotName.TIME: "the time",
    SlotName.ADDRESS: "the address",
}

DIDNT_HEAR = "I didn't hear you. Could you please repeat that?"
NOTHING_HEARD = "I didn't hear anything. Let me repeat."
DIDNT_UNDERSTAND = "Sorry, I didn't understand that."
CONFIRM_CHOICES = "Say yes or press 1 to confirm, or say no or press 2 to make a change."
TRANSFER = "Connecting you to a live assistant. Please hold."
ESCALATION = (
    "I'm still having trouble understanding. Let me connect you to a live agent."
)
NOT_SAVED = (
    "I got your details but couldn't save them to the calendar. "
    "Say yes to try again, or press 0 to speak with an agent."
)
BAD_DATE_TIME = (
    "I couldn't work out that date and time. What date would you like us to come out?"
)
SYSTEM_ERROR = "Sorry, something went wrong on our end."


def spoken_date(value: str | None) -> str:
    """'2025-09-10' → 'Wednesday, September 10'. Unparseable values pass through."""
    d = parse_date(value or "")
    if d is None:
        return value or ""
    return f"{d.strftime('%A')}, {d.strftime('%B')} {d.day}"


def spoken_time(value: str | None) -> str:
    """'14:00:00-04:00' → '2 PM', '09:30' → '9:30 AM'."""
    t = parse_time(value or "")
    if t is None:
        return value or ""
    hour = t.hour % 12 or 12
    suffix = "AM" if t.hour < 12 else "PM"
    if t.minute:
        return f"{hour}:{t.minute:02d} {suffix}"
    return f"{hour} {suffix}"


def service_label(session: CallSession) -> str:
    if session.service is None:
        return "cleaning"
    return SERVICE_LABELS[session.service]


def welcome(business_name: str) -> str:
    return (
        f"Welcome to {business_name}. {MENU_OPTIONS} "
        "Or press 0 anytime to speak to a live agent."
    )


def menu_retry() -> str:
    return (
        "Sorry, I didn't understand your choice. Please press 1 for Airbnb, "
        "2 for handyman, 3 for residential, or 4 for commercial cleaning."
    )


def acknowledge(slot: SlotName, session: CallSession) -> str:
    if slot is SlotName.NAME:
        return f"Thanks {session.name}."
    if slot is SlotName.SERVICE:
        return f"Great, you selected {service_label(session)}."
    if slot is SlotName.DATE:
        return f"Okay, {spoken_date(session.date)}."
    if slot is SlotName.TIME:
        return f"Okay, {spoken_time(session.time)}."
    return "Thank you."


def question(slot: SlotName) -> str:
    return QUESTIONS[slot]


def clarify(slot: SlotName) -> str:
    return CLARIFY[slot]


def recap(session: CallSession) -> str:
    return (
        f"Here's what I have: {service_label(session)} for {session.name} "
        f"on {spoken_date(session.date)} at {spoken_time(session.time)}, "
        f"at {session.address}. Is that correct? {CONFIRM_CHOICES}"
    )


def confirm_retry() -> str:
    return f"Sorry, I didn't catch that. Are these details correct? {CONFIRM_CHOICES}"


def correction_question(slot: SlotName) -> str:
    return f"No problem. Let's fix {FIELD_NAMES[slot]}. {QUESTIONS[slot]}"


def which_field() -> str:
    return (
        "No problem. What would you like to change: "
        "your name, the service, the date, the time, or the address?"
    )


def which_field_retry() -> str:
    return (
        "Sorry, which detail should I change? You can say name, service, "
        "date, time, or address."
    )


def booked(session: CallSession) -> str:
    service = session.service.value if session.service else "cleaning"
    return (
        f"Perfect {session.name}, your {service} appointment is booked for "
        f"{spoken_date(session.date)} at {spoken_time(session.time)}."
    )


def goodbye(business_name: str) -> str:
    return f"Thank you for calling {business_name}. Goodbye!"
