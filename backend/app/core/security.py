# app/core/security.py
"""
Signed reseller session cookie.

The session is a small JSON record (username, optional license key, auth type,
subscriptions) carried in an HttpOnly cookie. It is signed as a JWT so the
client can neither forge nor alter it; nothing is stored server-side.
"""
import datetime as dt
import logging

import jwt  # PyJWT

from app.config import settings

logger = logging.getLogger("uvicorn.error")

SESSION_ALG = "HS256"  # JWT signing algorithm (HMAC SHA-256)


def create_session_token(data: dict) -> str:
    """
    Sign a session record into a cookie value.

    Args:
        data: Session fields (username, licenseKey, authType, subscriptions, ...)

    Returns:
        Encoded JWT string; expires after settings.session_max_age seconds
    """
    now = dt.datetime.now(dt.timezone.utc)
    payload = dict(data)
    payload["iat"] = now
    payload["exp"] = now + dt.timedelta(seconds=settings.session_max_age)
    return jwt.encode(payload, settings.session_secret, algorithm=SESSION_ALG)


def read_session(token: str | None) -> dict | None:
    """
    Decode a session cookie value.

    Returns None for a missing, tampered, expired or otherwise unreadable
    token. Never raises.
    """
    if not token:
        return None
    try:
        payload = jwt.decode(token, settings.session_secret, algorithms=[SESSION_ALG])
    except jwt.PyJWTError as e:
        logger.info("[session] rejected session cookie: %s", type(e).__name__)
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def resolve_identity(session: dict | None) -> str | None:
    """
    Pick the reseller identity out of a session record.

    A license key (registration-by-key sessions) wins over the login
    username. Empty or non-string values count as absent.
    """
    if not session:
        return None
    for field in ("licenseKey", "username"):
        value = session.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return None
