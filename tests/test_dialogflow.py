"""Tests for DialogflowNLUProvider — response parsing and error mapping."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from booking_line.nlu_providers.base import IntentResult, NLUError, NLUProvider
from booking_line.nlu_providers.dialogflow import DialogflowNLUProvider


def payload(intent=None, parameters=None, confidence=0.87) -> dict:
    query_result = {
        "queryText": "whatever",
        "parameters": parameters or {},
        "intentDetectionConfidence": confidence,
    }
    if intent:
        query_result["intent"] = {"displayName": intent}
    return {"responseId": "r-1", "queryResult": query_result}


@pytest.fixture
def provider():
    credentials = MagicMock()
    credentials.valid = True
    credentials.token = "tok"
    return DialogflowNLUProvider("cleaning-service-bot", credentials=credentials)


class TestIntentResult:
    def test_failed(self):
        result = IntentResult.failed()
        assert result.error is True
        assert result.intent is None

    def test_slot_strips(self):
        assert IntentResult(slots={"name": " Maria "}).slot("name") == "Maria"
        assert IntentResult().slot("name") == ""

    def test_abc(self):
        with pytest.raises(TypeError):
            NLUProvider()


class TestParseQueryResult:
    def test_person_entity(self):
        result = DialogflowNLUProvider._parse_query_result(
            payload("GetName", {"person": {"name": "Maria"}})
        )
        assert result.intent == "GetName"
        assert result.slots == {"name": "Maria"}
        assert result.confidence == pytest.approx(0.87)

    def test_book_cleaning_parameters(self):
        result = DialogflowNLUProvider._parse_query_result(payload("BookCleaning", {
            "date": "2025-09-10T12:00:00-04:00",
            "time": ["2025-09-09T14:00:00-04:00"],
            "address": {"street-address": "12 Palmetto Bay Road", "city": "Hilton Head"},
        }))
        assert result.slot("date") == "2025-09-10T12:00:00-04:00"
        assert result.slot("time") == "2025-09-09T14:00:00-04:00"
        assert result.slot("address") == "12 Palmetto Bay Road"

    def test_aliases_do_not_override_direct_names(self):
        result = DialogflowNLUProvider._parse_query_result(
            payload("GetName", {"name": "Maria", "given-name": "Bob"})
        )
        assert result.slot("name") == "Maria"

    def test_empty_parameters_skipped(self):
        result = DialogflowNLUProvider._parse_query_result(
            payload("GetDate", {"date": "", "time": []})
        )
        assert result.slots == {}

    def test_no_match(self):
        result = DialogflowNLUProvider._parse_query_result(payload())
        assert result.intent is None
        assert result.error is False

    def test_missing_query_result(self):
        with pytest.raises(NLUError):
            DialogflowNLUProvider._parse_query_result({"error": "nope"})


class TestDetectIntent:
    async def test_posts_text_query(self, provider):
        with patch.object(
            provider, "_post", AsyncMock(return_value=payload("GetTime", {"time": "14:00"}))
        ) as post:
            result = await provider.detect_intent("+18435551234", "two pm", "en-US")

        assert result.intent == "GetTime"
        url, token, body = post.await_args.args
        assert "/projects/cleaning-service-bot/agent/sessions/" in url
        assert "+18435551234" not in url
        assert token == "tok"
        assert body == {"queryInput": {"text": {"text": "two pm", "languageCode": "en-US"}}}

    async def test_session_id_is_stable(self, provider):
        assert provider._session_id("+18435551234") == provider._session_id("+18435551234")
        assert len(provider._session_id("+18435551234")) == 32

    async def test_transport_error_becomes_nlu_error(self, provider):
        with patch.object(provider, "_post", AsyncMock(side_effect=aiohttp.ClientError("down"))):
            with pytest.raises(NLUError):
                await provider.detect_intent("+18435551234", "hello")

    async def test_timeout_becomes_nlu_error(self, provider):
        with patch.object(provider, "_post", AsyncMock(side_effect=asyncio.TimeoutError())):
            with pytest.raises(NLUError):
                await provider.detect_intent("+18435551234", "hello")

    @pytest.mark.parametrize("malformed", [
        {"queryResult": {"intent": "GetName", "parameters": []}},
        {"queryResult": {"intent": {"displayName": "GetName"}, "parameters": ["Maria"]}},
        {"queryResult": {"intent": {"displayName": "GetTime"}, "intentDetectionConfidence": "high"}},
        [{"queryResult": {}}],
    ])
    async def test_malformed_reply_becomes_nlu_error(self, provider, malformed):
        with patch.object(provider, "_post", AsyncMock(return_value=malformed)):
            with pytest.raises(NLUError):
                await provider.detect_intent("+18435551234", "Maria")

    async def test_token_refresh_failure(self, provider):
        with patch.object(provider, "_access_token", AsyncMock(side_effect=RuntimeError("auth"))):
            with pytest.raises(NLUError):
                await provider.detect_intent("+18435551234", "hello")

    async def test_expired_credentials_are_refreshed(self, provider):
        provider._credentials.valid = False
        with patch("booking_line.nlu_providers.dialogflow.GoogleAuthRequest"):
            assert await provider._access_token() == "tok"
        provider._credentials.refresh.assert_called_once()


class TestConstruction:
    def test_requires_project_id(self):
        with pytest.raises(ValueError):
            DialogflowNLUProvider("", credentials=MagicMock())

    def test_requires_service_account(self):
        with pytest.raises(ValueError):
            DialogflowNLUProvider("cleaning-service-bot", service_account="")
