"""Authentication dependencies for the admin session API.

Two guards:
  - require_admin_token()  — HTTP endpoints (Bearer token in Authorization header)
  - require_admin_ws()     — WebSocket endpoints (?token= query param)

Behavior matrix:
  ADMIN_API_KEY set + valid token   → allow
  ADMIN_API_KEY set + wrong/missing → 401 Unauthorized
  ADMIN_API_KEY empty + DEBUG=true  → allow (local dev convenience)
  ADMIN_API_KEY empty + DEBUG=false → 403 Forbidden (locked in production)

The Twilio webhooks are not behind these guards.
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Depends, HTTPException, Query, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from booking_line.config import settings

log = logging.getLogger("booking_line.auth")

_bearer_scheme = HTTPBearer(auto_error=False)


def _matches(given: str, key: str) -> bool:
    return hmac.compare_digest(given.encode("utf-8"), key.encode("utf-8"))


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """FastAPI dependency — protect HTTP admin endpoints with bearer token."""
    key = settings.admin_api_key

    if not key:
        if settings.debug:
            return
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API key not configured. Set ADMIN_API_KEY in .env.",
        )

    if credentials is None or not _matches(credentials.credentials, key):
        log.warning("Rejected admin request with missing or invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing admin token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_admin_ws(
    websocket: WebSocket,
    token: str = Query(default=""),
) -> bool:
    """WebSocket auth — browsers can't send headers, so use ?token= query param.

    Closes the socket and returns False when the caller is not allowed.
    """
    key = settings.admin_api_key

    if not key:
        if settings.debug:
            return True
        await websocket.close(code=4003, reason="Admin API key not configured")
        return False

    if not _matches(token, key):
        await websocket.close(code=4001, reason="Unauthorized")
        return False
    return True
