"""NLU provider abstractions and implementations."""

from .base import IntentResult, NLUError, NLUProvider

__all__ = ["IntentResult", "NLUError", "NLUProvider"]
