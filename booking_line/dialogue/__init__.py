"""Booking dialogue: router, retry policy, finalizer and turn controller."""

from .controller import DialogueController, TurnResponse
from .finalizer import BookingError, BookingFinalizer
from .policy import RetryPolicy
from .router import IntentRouter, Transition, TurnOutcome

__all__ = [
    "BookingError",
    "BookingFinalizer",
    "DialogueController",
    "IntentRouter",
    "RetryPolicy",
    "Transition",
    "TurnOutcome",
    "TurnResponse",
]
