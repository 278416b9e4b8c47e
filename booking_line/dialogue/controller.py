"""Dialogue controller — one Twilio webhook turn in, one TwiML document out.

Per turn, under the caller's store lock:

  1. Load (or lazily create) the caller's CallSession
  2. Classify spoken input with the NLU provider (skipped for the escape
     digit and for silence; NLU failures become an "error" intent)
  3. Run the IntentRouter to get the next session and prompt
  4. If the caller just confirmed, run the BookingFinalizer
  5. Render TwiML: keep listening, transfer to an agent, or hang up
  6. Write the session back, or drop it when the call has ended

Nothing that goes wrong inside a turn escapes as an HTTP error: the
caller always hears something and is handed to an agent if the turn
itself blew up.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import partial

from booking_line import debug_events, twiml
from booking_line.dialogue import prompts
from booking_line.dialogue.finalizer import (
    BookingFinalizer,
    CalendarWriteError,
    IncompleteBookingError,
    InvalidBookingTimeError,
)
from booking_line.dialogue.router import ESCAPE_DIGIT, IntentRouter, Transition, TurnOutcome
from booking_line.models.session import CallSession, DialogueState, SlotName, TurnInput
from booking_line.nlu_providers.base import IntentResult, NLUError, NLUProvider
from booking_line.store import SessionStore, redact_pii

log = logging.getLogger("booking_line.dialogue.controller")


@dataclass
class TurnResponse:
    """TwiML for Twilio plus the session as it stood after the turn."""

    twiml: str
    session: CallSession
    outcome: TurnOutcome


class DialogueController:
    """Drives one caller's conversation across stateless webhook turns.

    Typical wiring::

        controller = DialogueController(
            store=SessionStore(ttl_seconds=1800),
            router=IntentRouter(RetryPolicy(max_failures=3)),
            finalizer=BookingFinalizer(GoogleCalendarProvider(...)),
            nlu=DialogflowNLUProvider(project_id="..."),
            transfer_number="+18435550100",
        )

        # POST /twilio/voice
        response = controller.start_call(caller_id, call_sid)
        # POST /twilio/turn
        response = await controller.handle_turn(TurnInput(...))
    """

    def __init__(
        self,
        store: SessionStore,
        router: IntentRouter,
        finalizer: BookingFinalizer,
        nlu: NLUProvider | None = None,
        business_name: str = "Hilton Head Cleaning Company",
        transfer_number: str = "+15555555555",
        action_url: str = "/twilio/turn",
        gather_timeout: int = 6,
        language_code: str = "en-US",
        nlu_timeout_seconds: float = 5.0,
    ) -> None:
        self._store = store
        self._router = router
        self._finalizer = finalizer
        self._nlu = nlu
        self._business_name = business_name
        self._transfer_number = transfer_number
        self._action_url = action_url
        self._gather_timeout = gather_timeout
        self._language_code = language_code
        self._nlu_timeout = nlu_timeout_seconds

    @property
    def store(self) -> SessionStore:
        return self._store

    # ── Public API ────────────────────────────────────────────

    def start_call(self, caller_id: str, call_sid: str = "") -> TurnResponse:
        """A new inbound call: fresh session, welcome menu."""
        session = self._store.reset(caller_id)
        session.call_sid = call_sid
        log.info("Call started: caller=%s call_sid=%s", redact_pii(caller_id), call_sid)
        debug_events.emit(caller_id, "turn", session.state.value, {"event": "call_started"})

        prompt = prompts.welcome(self._business_name)
        return TurnResponse(
            twiml=self._gather(prompt),
            session=session.model_copy(deep=True),
            outcome=TurnOutcome.GATHER,
        )

    async def handle_turn(self, turn: TurnInput) -> TurnResponse:
        """Process one inbound turn and return the TwiML to send back."""
        try:
            return await self._store.update(turn.caller_id, partial(self._run_turn, turn))
        except Exception:
            log.exception("Turn failed for %s; transferring", redact_pii(turn.caller_id))
            self._store.discard(turn.caller_id)
            session = CallSession(
                caller_id=turn.caller_id,
                state=DialogueState.AGENT_TRANSFER,
                awaiting=None,
            )
            return TurnResponse(
                twiml=twiml.transfer(
                    f"{prompts.SYSTEM_ERROR} {prompts.TRANSFER}", self._transfer_number
                ),
                session=session,
                outcome=TurnOutcome.TRANSFER,
            )

    def agent_transfer(self, caller_id: str) -> str:
        """Direct transfer request (e.g. a Twilio redirect to /twilio/agent)."""
        self._store.discard(caller_id)
        debug_events.emit(caller_id, "escalation", DialogueState.AGENT_TRANSFER.value, {"reason": "direct"})
        return twiml.transfer(prompts.TRANSFER, self._transfer_number)

    # ── Internal: one turn ────────────────────────────────────

    async def _run_turn(
        self, turn: TurnInput, session: CallSession
    ) -> tuple[CallSession | None, TurnResponse]:
        if turn.call_sid and not session.call_sid:
            session.call_sid = turn.call_sid

        debug_events.emit(turn.caller_id, "turn", session.state.value, {
            "utterance": turn.utterance,
            "digits": turn.digits,
        })

        intent = await self._understand(turn)
        transition = self._router.route(session, turn, intent)

        if transition.escalated:
            debug_events.emit(turn.caller_id, "escalation", session.state.value, {
                "reason": "max_failures",
            })

        if transition.outcome is TurnOutcome.FINALIZE:
            transition = await self._finalize(transition)

        new_session = transition.session
        log.info(
            "Turn %s: %s -> %s (%s, failures=%d)",
            redact_pii(turn.caller_id),
            session.state.value,
            new_session.state.value,
            transition.outcome.value,
            new_session.failure_count,
        )
        debug_events.emit(turn.caller_id, "transition", new_session.state.value, {
            "from": session.state.value,
            "to": new_session.state.value,
            "outcome": transition.outcome.value,
            "intent": intent.intent if intent else None,
            "failure_count": new_session.failure_count,
        })

        response = TurnResponse(
            twiml=self._render(transition),
            session=new_session.model_copy(deep=True),
            outcome=transition.outcome,
        )
        keep = None if new_session.is_terminal else new_session
        return keep, response

    async def _understand(self, turn: TurnInput) -> IntentResult | None:
        """Ask the NLU provider about spoken input; failures become error results."""
        utterance = turn.utterance.strip()
        if not utterance or turn.digits.strip() == ESCAPE_DIGIT:
            return None

        if self._nlu is None:
            log.warning("No NLU provider configured; treating utterance as not understood")
            return IntentResult.failed()

        try:
            return await asyncio.wait_for(
                self._nlu.detect_intent(turn.caller_id, utterance, self._language_code),
                timeout=self._nlu_timeout,
            )
        except asyncio.TimeoutError:
            log.warning("NLU timed out after %.1fs", self._nlu_timeout)
        except NLUError as e:
            log.warning("NLU failed: %s", e)
        return IntentResult.failed()

    async def _finalize(self, transition: Transition) -> Transition:
        session = transition.session
        try:
            receipt = await self._finalizer.finalize(session)
        except IncompleteBookingError as e:
            log.warning("Confirmation on incomplete booking: %s", e)
            session.confirmed = False
            return self._router.advance(session)
        except InvalidBookingTimeError as e:
            log.warning("Unusable date/time: %s", e)
            debug_events.emit(session.caller_id, "booking", session.state.value, {"status": "invalid_time"})
            return self._router.reopen(session, SlotName.DATE, prompts.BAD_DATE_TIME)
        except CalendarWriteError as e:
            log.warning("Booking not saved for %s: %s", redact_pii(session.caller_id), e)
            debug_events.emit(session.caller_id, "booking", session.state.value, {"status": "failed"})
            return Transition(session, prompts.NOT_SAVED)

        session.booked = True
        session.state = DialogueState.BOOKED
        session.awaiting = None
        debug_events.emit(session.caller_id, "booking", session.state.value, {
            "status": "booked",
            "event_id": receipt.event_id,
        })
        return Transition(
            session,
            f"{prompts.booked(session)} {prompts.goodbye(self._business_name)}",
            TurnOutcome.HANGUP,
        )

    # ── Internal: rendering ───────────────────────────────────

    def _gather(self, prompt: str) -> str:
        return twiml.gather_prompt(
            prompt,
            action=self._action_url,
            timeout=self._gather_timeout,
            language=self._language_code,
        )

    def _render(self, transition: Transition) -> str:
        if transition.outcome is TurnOutcome.TRANSFER:
            return twiml.transfer(transition.prompt, self._transfer_number)
        if transition.outcome is TurnOutcome.HANGUP:
            return twiml.hangup(transition.prompt)
        return self._gather(transition.prompt)
