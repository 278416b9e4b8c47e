"""In-process session store — one CallSession per caller identity.

Twilio holds no memory between webhook turns, so every turn reloads the
caller's session from here, mutates it under that caller's lock, and
writes it back (or drops it once the call has ended).

Locks are per caller id: two turns for the same caller are serialized,
turns for different callers never wait on each other.  Sessions that
see no turn for ``ttl_seconds`` are purged, since a caller who hangs up
mid-dialogue never sends a terminal turn.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Union

from booking_line.models.session import CallSession

log = logging.getLogger("booking_line.store")

UpdateResult = tuple[Optional[CallSession], Any]
UpdateFn = Callable[[CallSession], Union[UpdateResult, Awaitable[UpdateResult]]]


def redact_pii(value: str) -> str:
    """Mask PII for logging — show first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


@dataclass
class _Entry:
    session: CallSession
    last_seen: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class SessionStore:
    """Concurrency-safe map of caller id → CallSession with TTL eviction."""

    def __init__(
        self,
        ttl_seconds: float = 1800.0,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._entries)

    # ── Public API ────────────────────────────────────────────

    def get(self, caller_id: str) -> CallSession | None:
        entry = self._entries.get(caller_id)
        return entry.session if entry else None

    def get_or_create(self, caller_id: str) -> CallSession:
        """Return the caller's session, creating a fresh one on first contact."""
        self._maybe_sweep()
        return self._entry(caller_id).session

    async def update(self, caller_id: str, fn: UpdateFn) -> Any:
        """Apply ``fn`` to the caller's session while holding its lock.

        ``fn`` receives the current session and returns
        ``(new_session, value)``.  ``new_session`` replaces the stored
        record; ``None`` drops it.  ``fn`` may be a coroutine function.
        Returns ``value``.
        """
        self._maybe_sweep()
        entry = self._entry(caller_id)

        async with entry.lock:
            # The record may have been reset or dropped while we waited.
            current = self._entries.get(caller_id)
            if current is None:
                entry.session = CallSession(caller_id=caller_id)
                self._entries[caller_id] = entry
            elif current is not entry:
                entry = current

            result = fn(entry.session)
            if inspect.isawaitable(result):
                result = await result
            new_session, value = result

            entry.last_seen = self._clock()
            if new_session is None:
                self._entries.pop(caller_id, None)
                log.info("Session closed: %s", redact_pii(caller_id))
            else:
                entry.session = new_session

        return value

    def reset(self, caller_id: str) -> CallSession:
        """Replace the caller's session with a fresh one (new inbound call)."""
        previous = self._entries.get(caller_id)
        entry = _Entry(session=CallSession(caller_id=caller_id), last_seen=self._clock())
        if previous is not None:
            # Keep the lock so in-flight turns still serialize against us.
            entry.lock = previous.lock
        self._entries[caller_id] = entry
        log.info("Session reset: %s", redact_pii(caller_id))
        return entry.session

    def discard(self, caller_id: str) -> bool:
        """Drop a caller's session. Returns True if one existed."""
        existed = self._entries.pop(caller_id, None) is not None
        if existed:
            log.info("Session discarded: %s", redact_pii(caller_id))
        return existed

    def snapshot(self) -> list[CallSession]:
        """Copies of all live sessions, for admin listing."""
        return [e.session.model_copy(deep=True) for e in self._entries.values()]

    def purge_expired(self) -> int:
        """Remove sessions idle longer than the TTL. Returns how many went."""
        now = self._clock()
        self._last_sweep = now
        expired = [
            caller_id
            for caller_id, entry in self._entries.items()
            if now - entry.last_seen > self._ttl and not entry.lock.locked()
        ]
        for caller_id in expired:
            del self._entries[caller_id]
        if expired:
            log.info("Purged %d idle session(s)", len(expired))
        return len(expired)

    # ── Internal ──────────────────────────────────────────────

    def _entry(self, caller_id: str) -> _Entry:
        entry = self._entries.get(caller_id)
        now = self._clock()
        if entry is None:
            entry = _Entry(session=CallSession(caller_id=caller_id), last_seen=now)
            self._entries[caller_id] = entry
            log.info("Session created: %s", redact_pii(caller_id))
        else:
            entry.last_seen = now
        return entry

    def _maybe_sweep(self) -> None:
        if self._clock() - self._last_sweep >= self._sweep_interval:
            self.purge_expired()
