# app/api/v1/routers/auth.py
import logging

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from app.api.v1.deps import get_keyauth, get_session
from app.api.v1.params import clean_text
from app.config import settings
from app.core.errors import (
    AccessDenied,
    InvalidInput,
    ServiceUnavailable,
    Unauthenticated,
    upstream_guard,
)
from app.core.security import create_session_token
from app.schemas.auth import AuthRequest, SessionOut
from app.services.keyauth import KeyAuthSellerClient, open_app_session

router = APIRouter(prefix="/keyauth/login", tags=["auth"])
logger = logging.getLogger("uvicorn.error")

RESELLER_LEVEL = 999
RESELLER_MARKERS = ("admin", "reseller")


def has_reseller_access(key_info: dict) -> bool:
    """
    A registration key grants panel access when its level is 999 or its
    note / subscription mentions "admin" or "reseller".
    """
    try:
        level = int(key_info.get("level") or 0)
    except (TypeError, ValueError):
        level = 0
    note = str(key_info.get("note") or "").lower()
    subscription = str(key_info.get("subscription") or "").lower()
    return level == RESELLER_LEVEL or any(
        marker in note or marker in subscription for marker in RESELLER_MARKERS
    )


def subscription_level(subscriptions) -> int | None:
    """Highest numeric `level` among the login subscriptions, None when none carries one."""
    levels = []
    for sub in subscriptions if isinstance(subscriptions, list) else []:
        if not isinstance(sub, dict):
            continue
        try:
            levels.append(int(sub.get("level")))
        except (TypeError, ValueError):
            continue
    return max(levels) if levels else None


@router.post("")
async def authenticate(
    body: AuthRequest,
    response: Response,
    keyauth: KeyAuthSellerClient = Depends(get_keyauth),
):
    """
    Log in (username/password) or register (license key + username/password).

    Error codes:
        - BAD_REQUEST (400): neither a login nor a register request
    """
    if body.action == "register":
        return await _register(body, keyauth)
    if body.action == "login" or (not body.action and body.username and body.password):
        return await _login(body, response)
    raise InvalidInput("Invalid request. Provide username/password for login or licenseKey for register.")


async def _login(body: AuthRequest, response: Response) -> dict:
    """
    Authenticate against the KeyAuth application API and open a reseller session.

    A fresh upstream app session is opened for every attempt; it is never
    shared between callers.

    Raises:
        InvalidInput (400): username or password missing
        ServiceUnavailable (503): upstream session init failed
        Unauthenticated (401): upstream rejected the credentials
    """
    username = clean_text(body.username)
    if not username or not body.password:
        raise InvalidInput("Username and password are required")

    with upstream_guard("auth.login", "Login failed. Please try again."):
        app_session = open_app_session()
        init_result = await app_session.init_app()
        if not init_result.get("success"):
            logger.error("[auth] KeyAuth init failed: %s", init_result.get("message"))
            raise ServiceUnavailable(init_result.get("message") or None)

        login_result = await app_session.login_user(username, body.password)
        if not login_result.get("success"):
            raise Unauthenticated(
                login_result.get("message") or "Invalid username or password",
                code="AUTH_INVALID_CREDENTIALS",
            )

    info = login_result.get("info")
    subscriptions = []
    if isinstance(info, dict):
        subscriptions = info.get("subscriptions") or []
    token = create_session_token({
        "username": username.lower(),
        "authType": "login",
        "authenticated": True,
        "subscriptions": subscriptions,
        "level": subscription_level(subscriptions),
    })
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age,
        path="/",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return {"success": True, "message": "Login successful", "username": username.lower()}


async def _register(body: AuthRequest, keyauth: KeyAuthSellerClient) -> dict:
    """
    Register a reseller account with a reseller-grade license key.

    The key is checked with the seller API first (exists, grants reseller
    access, unused), then consumed by the application API `register` call.
    No session is opened; the reseller logs in afterwards.

    Raises:
        InvalidInput (400): missing field, key already used, upstream register refused
        Unauthenticated (401): unknown / invalid key
        AccessDenied (403): key without reseller access
        ServiceUnavailable (503): upstream session init failed
    """
    license_key = clean_text(body.licenseKey)
    if not license_key:
        raise InvalidInput("License key is required")
    username = clean_text(body.username)
    if not username or not body.password:
        raise InvalidInput("Username and password are required")

    with upstream_guard("auth.register", "Registration failed. Please try again."):
        key_info = await keyauth.get_license_info(license_key)
        if not key_info.get("success"):
            raise Unauthenticated(key_info.get("message") or "Invalid license key", code="INVALID_LICENSE_KEY")

        if not has_reseller_access(key_info):
            raise AccessDenied(
                "This license key does not have reseller access. Required: Level 999 or admin subscription.",
                code="NO_RESELLER_ACCESS",
            )

        if key_info.get("usedby") or key_info.get("usedon"):
            raise InvalidInput("This license key has already been used", code="KEY_ALREADY_USED")

        app_session = open_app_session()
        init_result = await app_session.init_app()
        if not init_result.get("success"):
            logger.error("[auth] KeyAuth init failed: %s", init_result.get("message"))
            raise ServiceUnavailable("Registration service unavailable")

        register_result = await app_session.register_user(username, body.password, license_key)
        if not register_result.get("success"):
            raise InvalidInput(
                register_result.get("message") or "Registration failed. Username may already exist.",
                code="REGISTRATION_FAILED",
            )

    return {"success": True, "message": "Registration successful! You can now login with your credentials."}


@router.get("", response_model=SessionOut)
async def session_status(session: dict | None = Depends(get_session)):
    """
    Report the current reseller session.

    Returns 401 `{"authenticated": false}` when there is no valid session.
    """
    if not session:
        return JSONResponse(status_code=401, content={"authenticated": False})
    level = session.get("level")
    return {
        "authenticated": True,
        "authType": session.get("authType"),
        "username": session.get("username"),
        "level": level if isinstance(level, int) else None,
    }


@router.delete("")
async def logout(response: Response):
    """
    Log out by clearing the session cookie. Always succeeds.
    """
    response.delete_cookie(settings.session_cookie_name, path="/")
    return {"success": True, "message": "Logged out successfully"}
