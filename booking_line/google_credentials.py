"""Load Google service-account credentials from a file path or inline JSON.

GOOGLE_SERVICE_ACCOUNT_JSON may hold either the path to the key file or
the key file's JSON contents (handy for hosted environments that only
offer environment variables).
"""

from __future__ import annotations

import json
import logging

from google.oauth2.service_account import Credentials

log = logging.getLogger("booking_line.google_credentials")


def load_service_account(value: str, scopes: list[str]) -> Credentials:
    """Build scoped service-account credentials from ``value``."""
    value = (value or "").strip()
    if not value:
        raise ValueError(
            "Google service account must be provided via GOOGLE_SERVICE_ACCOUNT_JSON "
            "(a key file path or the key JSON itself)."
        )

    if value.startswith("{"):
        try:
            info = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValueError(f"GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON: {e}") from e
        return Credentials.from_service_account_info(info, scopes=scopes)

    return Credentials.from_service_account_file(value, scopes=scopes)
