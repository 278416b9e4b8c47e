"""Per-caller debug event broadcaster for live call tracing.

The dialogue controller emits an event for every turn, transition,
escalation and booking attempt.  Events only go anywhere when an admin
has opened the debug WebSocket for that caller: ``emit`` is a no-op for
callers without a broadcaster.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import TypedDict

from booking_line.store import redact_pii

log = logging.getLogger("booking_line.debug_events")

EVENT_LOG_LIMIT = 200
QUEUE_LIMIT = 200


class DebugEvent(TypedDict):
    type: str          # turn | transition | escalation | booking
    timestamp: float
    caller_id: str
    state: str
    data: dict


def _offer(queue: asyncio.Queue[DebugEvent], event: DebugEvent) -> None:
    """Enqueue without blocking; a slow watcher loses its oldest event."""
    if queue.full():
        try:
            queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
    try:
        queue.put_nowait(event)
    except asyncio.QueueFull:
        pass


class DebugBroadcaster:
    """Fans one caller's events out to every attached watcher queue."""

    def __init__(self, caller_id: str) -> None:
        self._caller_id = caller_id
        self._watchers: list[asyncio.Queue[DebugEvent]] = []
        self._history: deque[DebugEvent] = deque(maxlen=EVENT_LOG_LIMIT)

    def subscribe(self) -> asyncio.Queue[DebugEvent]:
        queue: asyncio.Queue[DebugEvent] = asyncio.Queue(maxsize=QUEUE_LIMIT)
        self._watchers.append(queue)
        log.info("Watching %s (%d watcher(s))", redact_pii(self._caller_id), len(self._watchers))
        return queue

    def unsubscribe(self, queue: asyncio.Queue[DebugEvent]) -> None:
        if queue in self._watchers:
            self._watchers.remove(queue)
            log.info("Stopped watching %s (%d left)", redact_pii(self._caller_id), len(self._watchers))

    def emit(self, event_type: str, state: str, data: dict) -> None:
        event: DebugEvent = {
            "type": event_type,
            "timestamp": time.time(),
            "caller_id": self._caller_id,
            "state": state,
            "data": data,
        }
        self._history.append(event)
        for queue in self._watchers:
            _offer(queue, event)

    @property
    def event_log(self) -> list[DebugEvent]:
        """Most recent events, oldest first."""
        return list(self._history)

    @property
    def subscriber_count(self) -> int:
        return len(self._watchers)


# ── Registry ────────────────────────────────────────────────────────

_broadcasters: dict[str, DebugBroadcaster] = {}


def get_broadcaster(caller_id: str) -> DebugBroadcaster:
    return _broadcasters.setdefault(caller_id, DebugBroadcaster(caller_id))


def remove_broadcaster(caller_id: str) -> None:
    _broadcasters.pop(caller_id, None)


def emit(caller_id: str, event_type: str, state: str, data: dict) -> None:
    """Emit to the caller's broadcaster, if anyone is watching."""
    broadcaster = _broadcasters.get(caller_id)
    if broadcaster is not None:
        broadcaster.emit(event_type, state, data)
