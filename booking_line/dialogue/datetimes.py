"""ISO-8601 helpers for the date and time slots.

Dialogflow resolves "tomorrow" and "2pm" to full timestamps such as
``2025-09-10T12:00:00-04:00``; only the date component of the date slot
and the time component of the time slot are meaningful.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def date_component(value: str) -> str:
    return (value or "").strip().split("T", 1)[0]


def time_component(value: str) -> str:
    value = (value or "").strip()
    if "T" in value:
        return value.split("T", 1)[1]
    return value


def parse_date(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(date_component(value))
    except ValueError:
        return None


def parse_time(value: str) -> Optional[time]:
    text = time_component(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return time.fromisoformat(text)
    except ValueError:
        return None


def combine(date_value: str, time_value: str, timezone_name: str) -> datetime:
    """Join the date slot and time slot into one aware instant.

    An offset carried by the time slot wins; otherwise ``timezone_name``
    is applied.

    Raises:
        ValueError: If either component is not ISO-8601, or the time
            zone is unknown.
    """
    d = parse_date(date_value)
    t = parse_time(time_value)
    if d is None or t is None:
        raise ValueError(f"cannot combine date {date_value!r} with time {time_value!r}")

    start = datetime.combine(d, t)
    if start.tzinfo is None:
        try:
            zone = ZoneInfo(timezone_name)
        except ZoneInfoNotFoundError as e:
            raise ValueError(f"unknown time zone {timezone_name!r}") from e
        start = start.replace(tzinfo=zone)
    return start
