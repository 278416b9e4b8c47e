"""Retry/escalation policy shared by every dialogue state.

A turn makes progress when it moves ``awaiting`` to a different value or
fills a slot that was empty before the turn.  Anything else is a
failure.  Failures are counted on the session; the failing turn that
finds the count already at the threshold is escalated to an agent
instead of re-prompting, and the count starts over.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from booking_line.models.session import SLOT_ORDER, CallSession

log = logging.getLogger("booking_line.dialogue.policy")

DEFAULT_MAX_FAILURES = 3


@dataclass(frozen=True)
class RetryPolicy:
    max_failures: int = DEFAULT_MAX_FAILURES

    def made_progress(self, before: CallSession, after: CallSession) -> bool:
        if after.awaiting != before.awaiting:
            return True
        return any(
            not before.slot_value(slot) and after.slot_value(slot)
            for slot in SLOT_ORDER
        )

    def threshold_reached(self, session: CallSession) -> bool:
        return session.failure_count >= self.max_failures

    def record_progress(self, session: CallSession) -> None:
        session.failure_count = 0

    def record_failure(self, session: CallSession) -> bool:
        """Count one failed turn. Returns True when the caller must be escalated."""
        if self.threshold_reached(session):
            log.info(
                "Escalating after %d consecutive failures (state=%s)",
                session.failure_count, session.state.value,
            )
            session.failure_count = 0
            return True
        session.failure_count += 1
        return False
