"""Dialogflow ES provider implementation.

Calls the ``detectIntent`` REST endpoint with a bearer token minted from
a Google service account.  Parameters come back in Dialogflow's shapes
(plain strings, lists, or structured values such as ``{"name": "Maria"}``
for ``@sys.person``); they are flattened to plain strings and mapped
onto the booking slot names.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Any, Optional

import aiohttp
from google.auth.transport.requests import Request as GoogleAuthRequest

from booking_line.google_credentials import load_service_account

from .base import IntentResult, NLUError, NLUProvider

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/dialogflow"]

DETECT_INTENT_URL = (
    "https://dialogflow.googleapis.com/v2/projects/{project}"
    "/agent/sessions/{session}:detectIntent"
)

# Dialogflow system-entity parameter names → booking slot names.
PARAMETER_ALIASES = {
    "given-name": "name",
    "person": "name",
    "last-name": "name",
    "street-address": "address",
    "location": "address",
    "service-type": "service",
    "date-time": "time",
}


class DialogflowNLUProvider(NLUProvider):
    """NLUProvider backed by the Dialogflow ES v2 REST API."""

    def __init__(
        self,
        project_id: str,
        service_account: str | None = None,
        credentials: Any = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        if not project_id:
            raise ValueError("Dialogflow project id must be provided.")
        self._project_id = project_id
        self._credentials = credentials or load_service_account(
            service_account or "", SCOPES
        )
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _access_token(self) -> str:
        """Return a valid OAuth token, refreshing in a worker thread if needed."""
        if not self._credentials.valid:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(
                None, self._credentials.refresh, GoogleAuthRequest()
            )
        return self._credentials.token

    async def _post(self, url: str, token: str, body: dict) -> dict:
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            async with session.post(url, json=body, headers=headers) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise NLUError(f"detectIntent failed ({resp.status}): {text[:200]}")
                return await resp.json()

    @staticmethod
    def _session_id(session_key: str) -> str:
        # Dialogflow session ids are capped at 36 characters.
        return hashlib.sha1(session_key.encode("utf-8")).hexdigest()[:32]

    @staticmethod
    def _flatten(value: Any) -> str:
        """Reduce a Dialogflow parameter value to a plain string."""
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        if isinstance(value, bool):
            return ""
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, list):
            for item in value:
                flat = DialogflowNLUProvider._flatten(item)
                if flat:
                    return flat
            return ""
        if isinstance(value, dict):
            for key in ("name", "date_time", "startDateTime", "street-address"):
                if value.get(key):
                    return DialogflowNLUProvider._flatten(value[key])
            parts = [DialogflowNLUProvider._flatten(v) for v in value.values()]
            return " ".join(p for p in parts if p)
        return str(value)

    @classmethod
    def _parse_query_result(cls, payload: dict) -> IntentResult:
        query_result = payload.get("queryResult")
        if not isinstance(query_result, dict):
            raise NLUError("detectIntent response has no queryResult")

        intent: Optional[str] = (query_result.get("intent") or {}).get("displayName")

        slots: dict[str, str] = {}
        for key, raw in (query_result.get("parameters") or {}).items():
            value = cls._flatten(raw)
            if not value:
                continue
            slot = PARAMETER_ALIASES.get(key, key)
            slots.setdefault(slot, value)

        return IntentResult(
            intent=intent or None,
            slots=slots,
            confidence=float(query_result.get("intentDetectionConfidence") or 0.0),
        )

    # ------------------------------------------------------------------
    # NLUProvider interface
    # ------------------------------------------------------------------

    async def detect_intent(
        self, session_key: str, text: str, language_code: str = "en-US"
    ) -> IntentResult:
        url = DETECT_INTENT_URL.format(
            project=self._project_id, session=self._session_id(session_key)
        )
        body = {"queryInput": {"text": {"text": text, "languageCode": language_code}}}

        try:
            token = await self._access_token()
            payload = await self._post(url, token, body)
        except NLUError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise NLUError(f"detectIntent request failed: {e!r}") from e
        except Exception as e:
            # google-auth raises its own transport/refresh errors
            raise NLUError(f"Dialogflow unavailable: {e!r}") from e

        try:
            result = self._parse_query_result(payload)
        except (AttributeError, TypeError, ValueError) as e:
            raise NLUError(f"malformed detectIntent response: {e!r}") from e

        logger.info(
            "Dialogflow intent=%s confidence=%.2f slots=%s",
            result.intent, result.confidence, sorted(result.slots),
        )
        return result
