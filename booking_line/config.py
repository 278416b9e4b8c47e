"""Application configuration via environment variables."""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings

log = logging.getLogger("booking_line.config")

# Used when AGENT_PHONE_NUMBER is unset so a transfer can never fail.
FALLBACK_AGENT_NUMBER = "+15555555555"

CORRECTION_TARGETS = {"name", "service", "date", "time", "address", "ask"}


class Settings(BaseSettings):
    # Business
    business_name: str = "Hilton Head Cleaning Company"

    # Twilio
    public_base_url: str = ""
    twilio_phone_number: str = ""
    agent_phone_number: str = ""

    # Google (Dialogflow + Calendar share one service account)
    google_service_account_json: str = ""
    dialogflow_project_id: str = "cleaning-service-bot"
    language_code: str = "en-US"
    google_calendar_id: str = "primary"
    calendar_timezone: str = "America/New_York"
    appointment_duration_minutes: int = 60

    # Dialogue policy
    max_failures: int = 3
    correction_target: str = "date"
    session_ttl_seconds: float = 1800.0

    # Collaborator timeouts
    nlu_timeout_seconds: float = 5.0
    calendar_timeout_seconds: float = 10.0
    gather_timeout_seconds: int = 6

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def transfer_number(self) -> str:
        return self.agent_phone_number or FALLBACK_AGENT_NUMBER

    def action_url(self, path: str) -> str:
        """Absolute webhook URL when PUBLIC_BASE_URL is set, else a relative path."""
        if self.public_base_url:
            return self.public_base_url.rstrip("/") + path
        return path

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        if self.max_failures < 1:
            raise ValueError("MAX_FAILURES must be at least 1.")

        if self.correction_target not in CORRECTION_TARGETS:
            raise ValueError(
                f"CORRECTION_TARGET must be one of {sorted(CORRECTION_TARGETS)}, "
                f"got {self.correction_target!r}."
            )

        try:
            ZoneInfo(self.calendar_timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(
                f"CALENDAR_TIMEZONE {self.calendar_timezone!r} is not a known time zone."
            ) from e

        if not self.google_service_account_json:
            warnings.append(
                "GOOGLE_SERVICE_ACCOUNT_JSON not set — speech understanding and "
                "calendar bookings are disabled."
            )

        if not self.agent_phone_number:
            warnings.append(
                f"AGENT_PHONE_NUMBER not set — transfers go to {FALLBACK_AGENT_NUMBER}."
            )

        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        return warnings


settings = Settings()
