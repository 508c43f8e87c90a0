"""Dashboard authentication: one shared password traded for a JWT cookie."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from config import Settings

logger = logging.getLogger("wacrm.auth")

ALGORITHM = "HS256"
TOKEN_EXPIRE_MINUTES = 12 * 60  # 12 hours
TOKEN_COOKIE_NAME = "wacrm_token"
DASHBOARD_SUBJECT = "dashboard_agent"


def cookie_secret(settings: Settings) -> str:
    secret = (
        settings.cookie_secret_key.get_secret_value()
        if settings.cookie_secret_key
        else None
    )
    if not secret:
        raise RuntimeError(
            "COOKIE_SECRET_KEY is not configured. Populate it in backend/.env."
        )
    return secret


def dashboard_password(settings: Settings) -> str:
    secret = (
        settings.dashboard_password.get_secret_value()
        if settings.dashboard_password
        else None
    )
    if not secret:
        raise RuntimeError(
            "DASHBOARD_PASSWORD is not configured. Populate it in backend/.env."
        )
    return secret


def create_access_token(
    subject: str, secret: str, expires_delta: Optional[timedelta] = None
) -> str:
    if expires_delta is None:
        expires_delta = timedelta(minutes=TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {"sub": subject, "iat": now, "exp": now + expires_delta}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


async def get_current_user(request: Request) -> Dict[str, Any]:
    """Validate the JWT provided via cookie or Authorization header."""
    token = request.cookies.get(TOKEN_COOKIE_NAME)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.lower().startswith("bearer "):
            token = auth_header.split(" ", 1)[1].strip()

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        payload = jwt.decode(
            token, cookie_secret(request.app.state.settings), algorithms=[ALGORITHM]
        )
    except JWTError:
        logger.warning("Invalid authentication token supplied.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        ) from None

    return payload
