"""Intent router — the booking dialogue state machine.

Given a session, one inbound turn and the NLU verdict for that turn,
``IntentRouter.route`` returns the next session and what to say.  It
never performs I/O and never mutates its input session, so it can be
driven directly from tests.

Dispatch is data-driven:

  * a state table (built in ``IntentRouter.__init__``) maps each
    DialogueState to the method that handles it.
  * ``INTENT_SLOTS`` maps each NLU intent label to the booking fields it
    can carry.  An intent "matches" a collecting state when its fields
    include the awaited one.

Global rules run before the state handler, in order: the escape digit
transfers to an agent, the Closure intent ends the call.  After the
handler, the RetryPolicy decides whether a re-prompt counts as a
failure and whether the failure escalates.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from booking_line.dialogue import prompts
from booking_line.dialogue.policy import RetryPolicy
from booking_line.models.session import (
    COLLECTING_STATES,
    CallSession,
    DialogueState,
    ServiceType,
    SlotName,
    TurnInput,
)
from booking_line.nlu_providers.base import IntentResult

log = logging.getLogger("booking_line.dialogue.router")

ESCAPE_DIGIT = "0"
CLOSURE_INTENT = "Closure"

MENU_DIGITS = {
    "1": ServiceType.AIRBNB,
    "2": ServiceType.HANDYMAN,
    "3": ServiceType.RESIDENTIAL,
    "4": ServiceType.COMMERCIAL,
}

INTENT_SLOTS: dict[str, tuple[SlotName, ...]] = {
    "GetName": (SlotName.NAME,),
    "GetService": (SlotName.SERVICE,),
    "GetDate": (SlotName.DATE,),
    "GetTime": (SlotName.TIME,),
    "GetAddress": (SlotName.ADDRESS,),
    "BookCleaning": (SlotName.DATE, SlotName.TIME, SlotName.ADDRESS),
}

AFFIRMATIONS = (
    "yes", "yeah", "yep", "yup", "correct", "sure", "right", "that's right",
    "thats right", "ok", "okay", "absolutely", "confirm",
)
NEGATIONS = ("no", "nope", "nah", "change", "wrong", "incorrect", "not")
CONFIRM_DIGIT = "1"
REJECT_DIGIT = "2"

# Words a caller might use to name the detail they want to change.
FIELD_WORDS = {
    SlotName.NAME: ("name",),
    SlotName.SERVICE: ("service", "cleaning type", "type"),
    SlotName.DATE: ("date", "day"),
    SlotName.TIME: ("time", "hour"),
    SlotName.ADDRESS: ("address", "street", "location"),
}

CORRECTION_ASK = "ask"


class TurnOutcome(str, Enum):
    GATHER = "gather"      # say the prompt, listen for the next turn
    TRANSFER = "transfer"  # hand the call to a human agent
    HANGUP = "hangup"      # say the prompt, end the call
    FINALIZE = "finalize"  # confirmed; controller must write the booking


@dataclass
class Transition:
    session: CallSession
    prompt: str
    outcome: TurnOutcome = TurnOutcome.GATHER
    escalated: bool = False


def _normalize(text: str) -> str:
    text = text.lower().replace("’", "'")
    return re.sub(r"[^\w' ]+", " ", text).strip()


def _starts_with(text: str, phrases: tuple[str, ...]) -> bool:
    normalized = _normalize(text)
    return any(
        normalized == phrase or normalized.startswith(phrase + " ")
        for phrase in phrases
    )


def is_affirmative(text: str) -> bool:
    return _starts_with(text, AFFIRMATIONS)


def is_negative(text: str) -> bool:
    return _starts_with(text, NEGATIONS)


def named_field(text: str) -> Optional[SlotName]:
    """Which booking field an utterance like 'the time please' refers to."""
    words = f" {_normalize(text)} "
    for slot, names in FIELD_WORDS.items():
        if any(f" {name} " in words for name in names):
            return slot
    return None


class IntentRouter:
    """Pure transition function over CallSession."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        correction_target: str = SlotName.DATE.value,
        business_name: str = "Hilton Head Cleaning Company",
        intent_slots: dict[str, tuple[SlotName, ...]] | None = None,
    ) -> None:
        self._policy = policy or RetryPolicy()
        self._business_name = business_name
        self._intent_slots = intent_slots or INTENT_SLOTS
        if correction_target == CORRECTION_ASK:
            self._correction_target: Optional[SlotName] = None
        else:
            self._correction_target = SlotName(correction_target)

        self._handlers: dict[
            DialogueState,
            Callable[[CallSession, TurnInput, IntentResult | None], Transition],
        ] = {
            DialogueState.MENU_SELECTION: self._menu_selection,
            DialogueState.COLLECTING_NAME: self._collect,
            DialogueState.COLLECTING_SERVICE: self._collect,
            DialogueState.COLLECTING_DATE: self._collect,
            DialogueState.COLLECTING_TIME: self._collect,
            DialogueState.COLLECTING_ADDRESS: self._collect,
            DialogueState.AWAITING_CONFIRMATION: self._confirmation,
            DialogueState.CORRECTING_FIELD: self._correction,
        }

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    # ── Public API ────────────────────────────────────────────

    def route(
        self,
        session: CallSession,
        turn: TurnInput,
        intent: IntentResult | None = None,
    ) -> Transition:
        """Decide the next state and prompt for one turn."""
        working = session.model_copy(deep=True)

        if working.is_terminal:
            # Terminal sessions are dropped by the store; a stray turn just ends.
            return self.close(working)

        if turn.digits.strip() == ESCAPE_DIGIT:
            log.info("Escape digit in state %s", working.state.value)
            return self.transfer(working, prompts.TRANSFER)

        if intent is not None and intent.intent == CLOSURE_INTENT:
            return self.close(working)

        handler = self._handlers[working.state]
        transition = handler(working, turn, intent)

        if transition.outcome is not TurnOutcome.GATHER:
            self._policy.record_progress(transition.session)
            return transition

        if self._policy.made_progress(session, transition.session):
            self._policy.record_progress(transition.session)
            return transition

        if self._policy.record_failure(transition.session):
            escalation = self.transfer(transition.session, prompts.ESCALATION)
            escalation.escalated = True
            return escalation
        return transition

    def transfer(self, session: CallSession, prompt: str) -> Transition:
        session.state = DialogueState.AGENT_TRANSFER
        session.awaiting = None
        session.failure_count = 0
        return Transition(session, prompt, TurnOutcome.TRANSFER)

    def close(self, session: CallSession) -> Transition:
        session.state = DialogueState.CLOSED
        session.awaiting = None
        return Transition(
            session, prompts.goodbye(self._business_name), TurnOutcome.HANGUP
        )

    def advance(self, session: CallSession, lead_in: str = "") -> Transition:
        """Move to the next unfilled field, or to confirmation when complete."""
        missing = session.missing_fields()
        if missing:
            slot = missing[0]
            session.state = COLLECTING_STATES[slot]
            session.awaiting = slot
            prompt = prompts.question(slot)
        else:
            session.state = DialogueState.AWAITING_CONFIRMATION
            session.awaiting = SlotName.CONFIRMATION
            prompt = prompts.recap(session)
        return Transition(session, f"{lead_in} {prompt}".strip())

    def reopen(
        self, session: CallSession, slot: Optional[SlotName], prompt: str
    ) -> Transition:
        """Put a field back up for editing without clearing its value."""
        session.state = DialogueState.CORRECTING_FIELD
        session.awaiting = slot
        session.confirmed = False
        return Transition(session, prompt)

    # ── State handlers ────────────────────────────────────────

    def _menu_selection(
        self, session: CallSession, turn: TurnInput, intent: IntentResult | None
    ) -> Transition:
        service = MENU_DIGITS.get(turn.digits.strip())
        if service is None:
            if turn.is_silent:
                return Transition(session, f"{prompts.NOTHING_HEARD} {prompts.MENU_OPTIONS}")
            return Transition(session, prompts.menu_retry())

        session.service = service
        return self.advance(session, prompts.acknowledge(SlotName.SERVICE, session))

    def _collect(
        self, session: CallSession, turn: TurnInput, intent: IntentResult | None
    ) -> Transition:
        slot = session.awaiting
        if slot is None or slot is SlotName.CONFIRMATION:
            # Out of sync; resume at the first missing field.
            return self.advance(session)

        filled = self._fill(session, slot, turn, intent)
        if not filled:
            return Transition(session, self._failure_prompt(slot, turn, intent))

        ack_slot = slot if slot in filled else filled[0]
        return self.advance(session, prompts.acknowledge(ack_slot, session))

    def _confirmation(
        self, session: CallSession, turn: TurnInput, intent: IntentResult | None
    ) -> Transition:
        if not session.is_complete:
            return self.advance(session)

        digits = turn.digits.strip()
        if digits == CONFIRM_DIGIT or is_affirmative(turn.utterance):
            session.confirmed = True
            return Transition(session, "", TurnOutcome.FINALIZE)

        if digits == REJECT_DIGIT or is_negative(turn.utterance):
            if self._correction_target is None:
                return self.reopen(session, None, prompts.which_field())
            return self.reopen(
                session,
                self._correction_target,
                prompts.correction_question(self._correction_target),
            )

        if turn.is_silent:
            return Transition(session, f"{prompts.DIDNT_HEAR} {prompts.recap(session)}")
        return Transition(session, prompts.confirm_retry())

    def _correction(
        self, session: CallSession, turn: TurnInput, intent: IntentResult | None
    ) -> Transition:
        slot = session.awaiting
        if slot is not None and slot is not SlotName.CONFIRMATION:
            filled = self._fill(session, slot, turn, intent)
            if slot not in filled:
                return Transition(session, self._failure_prompt(slot, turn, intent))
            return self.advance(session, prompts.acknowledge(slot, session))

        # Asked "which detail?": accept a direct new value or a field name.
        if intent is not None and intent.intent in self._intent_slots:
            for candidate in self._intent_slots[intent.intent]:
                filled = self._fill(session, candidate, turn, intent, overwrite=True)
                if candidate in filled:
                    return self.advance(session, prompts.acknowledge(candidate, session))

        chosen = named_field(turn.utterance)
        if chosen is not None:
            session.awaiting = chosen
            return Transition(session, prompts.question(chosen))

        if turn.is_silent:
            return Transition(session, f"{prompts.DIDNT_HEAR} {prompts.which_field()}")
        return Transition(session, prompts.which_field_retry())

    # ── Helpers ───────────────────────────────────────────────

    def _fill(
        self,
        session: CallSession,
        slot: SlotName,
        turn: TurnInput,
        intent: IntentResult | None,
        overwrite: bool = False,
    ) -> list[SlotName]:
        """Copy usable values from this turn into the session.

        Returns the fields that received a value.  Only an intent whose
        fields include ``slot`` is allowed to fill anything; keypad
        service selection is accepted wherever the service is awaited.
        """
        filled: list[SlotName] = []

        if slot is SlotName.SERVICE and turn.digits.strip() in MENU_DIGITS:
            session.service = MENU_DIGITS[turn.digits.strip()]
            return [SlotName.SERVICE]

        if intent is None or intent.error or not intent.intent:
            return filled

        fields = self._intent_slots.get(intent.intent, ())
        if slot not in fields:
            return filled

        for field_slot in fields:
            raw = intent.slot(field_slot.value)
            if not raw:
                continue
            if field_slot is not slot and not overwrite and session.slot_value(field_slot):
                continue
            if field_slot is SlotName.SERVICE:
                service = ServiceType.from_text(raw)
                if service is None:
                    continue
                session.service = service
            else:
                setattr(session, field_slot.value, raw)
            filled.append(field_slot)

        return filled

    def _failure_prompt(
        self, slot: SlotName, turn: TurnInput, intent: IntentResult | None
    ) -> str:
        if turn.is_silent:
            return f"{prompts.DIDNT_HEAR} {prompts.question(slot)}"
        if intent is not None and intent.error:
            return f"{prompts.DIDNT_UNDERSTAND} {prompts.question(slot)}"
        return prompts.clarify(slot)

