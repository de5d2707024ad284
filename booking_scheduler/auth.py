"""Admin access to calendar blocking, the session list and session traces.

Both guards share one decision, ``admin_refusal()``:

  ADMIN_API_KEY unset, DEBUG on   allowed
  ADMIN_API_KEY unset, DEBUG off  403 (admin surface locked)
  ADMIN_API_KEY set               token must match, else 401

HTTP endpoints take the token as a Bearer credential.  Browsers cannot set
headers on a WebSocket, so the trace stream takes it as ``?token=`` and is
closed with 4003/4001 instead of answered with a status code.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Query, WebSocket, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from booking_scheduler.config import settings

log = logging.getLogger("booking_scheduler.auth")

_bearer_scheme = HTTPBearer(auto_error=False)

_WS_CLOSE_CODES = {
    status.HTTP_403_FORBIDDEN: 4003,
    status.HTTP_401_UNAUTHORIZED: 4001,
}


def admin_refusal(token: Optional[str]) -> Optional[tuple[int, str]]:
    """``(status, reason)`` when ``token`` does not grant admin access, else None."""
    key = settings.admin_api_key
    if not key:
        if settings.debug:
            return None
        return status.HTTP_403_FORBIDDEN, "Admin API key not configured. Set ADMIN_API_KEY in .env."
    if not token or not secrets.compare_digest(token.encode(), key.encode()):
        return status.HTTP_401_UNAUTHORIZED, "Invalid or missing admin token."
    return None


async def require_admin_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> None:
    """FastAPI dependency guarding admin HTTP endpoints."""
    refusal = admin_refusal(credentials.credentials if credentials else None)
    if refusal is None:
        return
    code, reason = refusal
    if code == status.HTTP_401_UNAUTHORIZED:
        log.warning("Rejected admin request with invalid token")
        raise HTTPException(status_code=code, detail=reason, headers={"WWW-Authenticate": "Bearer"})
    raise HTTPException(status_code=code, detail=reason)


async def require_admin_ws(
    websocket: WebSocket,
    token: str = Query(default=""),
) -> bool:
    """Trace-stream guard.  Closes the socket and returns False when refused."""
    refusal = admin_refusal(token)
    if refusal is None:
        return True
    code, reason = refusal
    log.warning("Refused trace stream for %s: %s", websocket.url.path, reason)
    await websocket.close(code=_WS_CLOSE_CODES[code], reason=reason)
    return False
