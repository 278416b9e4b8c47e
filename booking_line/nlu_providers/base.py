"""Abstract base class for natural-language understanding providers.

An NLU provider turns one raw caller utterance into an intent label and
a mapping of slot name → extracted value.  Any backend (Dialogflow,
Rasa, an LLM, ...) implements this ABC.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional


class NLUError(Exception):
    """The NLU backend could not be reached or returned garbage."""


@dataclass
class IntentResult:
    """Outcome of classifying one utterance."""

    intent: Optional[str] = None
    slots: dict[str, str] = field(default_factory=dict)
    confidence: float = 0.0
    error: bool = False  # True when the NLU call itself failed

    @classmethod
    def failed(cls) -> "IntentResult":
        return cls(error=True)

    def slot(self, name: str) -> str:
        """Stripped slot value, or "" when missing."""
        return (self.slots.get(name) or "").strip()


class NLUProvider(ABC):
    """Abstract NLU backend."""

    @abstractmethod
    async def detect_intent(
        self, session_key: str, text: str, language_code: str = "en-US"
    ) -> IntentResult:
        """Classify ``text``.

        Args:
            session_key: Stable per-caller key, lets the backend keep
                its own conversational context.
            text: Raw utterance from speech recognition.
            language_code: BCP-47 language tag.

        Returns:
            IntentResult; ``intent`` is None when nothing matched.

        Raises:
            NLUError: On transport failure, timeout or malformed reply.
        """
