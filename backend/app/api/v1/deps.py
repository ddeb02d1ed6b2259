# app/api/v1/deps.py
import logging

from fastapi import Request

from app.config import settings
from app.core.errors import ServerFailure, Unauthenticated
from app.core.security import read_session, resolve_identity
from app.services.keyauth import KeyAuthSellerClient, UpstreamConfigError, get_seller_client

logger = logging.getLogger("uvicorn.error")


def get_session(request: Request) -> dict | None:
    """
    FastAPI dependency returning the decoded reseller session, or None.

    Reads the signed `reseller_session` cookie; a missing, tampered or expired
    cookie yields None.
    """
    return read_session(request.cookies.get(settings.session_cookie_name))


async def get_reseller_identity(request: Request) -> str:
    """
    FastAPI dependency resolving the calling reseller.

    Returns:
        str: The reseller identity (license key of a key-registered session,
             otherwise the login username)

    Raises:
        Unauthenticated (401): No session or no identity inside it. There is
            no anonymous fallback reseller.

    Usage:
        @router.get("/keys")
        async def list_keys(identity: str = Depends(get_reseller_identity)):
            ...
    """
    identity = resolve_identity(get_session(request))
    if not identity:
        raise Unauthenticated()
    return identity


def get_keyauth() -> KeyAuthSellerClient:
    """
    FastAPI dependency returning the shared KeyAuth seller client.
    Overridden in tests with an in-memory fake.
    """
    try:
        return get_seller_client()
    except UpstreamConfigError:
        logger.exception("[keyauth] seller client not configured")
        raise ServerFailure("License service not configured")
