"""Tests for Settings helpers and startup validation."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from booking_line.config import FALLBACK_AGENT_NUMBER, Settings


def make(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:
    def test_transfer_number_fallback(self):
        assert make(agent_phone_number="").transfer_number == FALLBACK_AGENT_NUMBER
        assert make(agent_phone_number="+18435550100").transfer_number == "+18435550100"

    def test_action_url(self):
        assert make().action_url("/twilio/turn") == "/twilio/turn"
        s = make(public_base_url="https://bot.example.com/")
        assert s.action_url("/twilio/turn") == "https://bot.example.com/twilio/turn"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("MAX_FAILURES", "5")
        monkeypatch.setenv("CORRECTION_TARGET", "ask")
        s = make()
        assert s.max_failures == 5
        assert s.correction_target == "ask"


class TestValidateStartup:
    def test_bad_max_failures(self):
        with pytest.raises(ValueError):
            make(max_failures=0).validate_startup()

    def test_bad_correction_target(self):
        with pytest.raises(ValueError):
            make(correction_target="phone").validate_startup()

    def test_unknown_calendar_timezone(self):
        with pytest.raises(ValueError, match="CALENDAR_TIMEZONE"):
            make(calendar_timezone="America/Nowhere").validate_startup()

    def test_warnings_for_missing_integrations(self):
        warnings = make(
            google_service_account_json="",
            agent_phone_number="",
            admin_api_key="",
        ).validate_startup()
        assert any("GOOGLE_SERVICE_ACCOUNT_JSON" in w for w in warnings)
        assert any("AGENT_PHONE_NUMBER" in w for w in warnings)
        assert any("ADMIN_API_KEY" in w for w in warnings)
