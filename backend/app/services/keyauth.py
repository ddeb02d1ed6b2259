"""
KeyAuth API Client

Wraps the two KeyAuth HTTP APIs this service consumes:
- Seller API (https://keyauth.win/api/seller/): license and user administration,
  authenticated by the seller key. Stateless, one shared instance.
- Application API (https://keyauth.win/api/1.2/): init / login / register,
  bound to an upstream session id. One instance per login or registration flow.

Every call answers the upstream JSON object `{success, message, ...}` unchanged.
`success=false` is a normal answer; transport problems raise UpstreamTransportError.
"""
import logging
from functools import lru_cache
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ..config import settings
from ..schemas.license import EndUser, License

logger = logging.getLogger("uvicorn.error")

KeyAuthResponse = dict[str, Any]


class UpstreamError(Exception):
    """Base class for failures talking to KeyAuth."""


class UpstreamConfigError(UpstreamError):
    """Credentials required for the call are not configured."""


class UpstreamTransportError(UpstreamError):
    """Network error, non-2xx status or a body that is not a JSON object."""


def _decode(resp: httpx.Response) -> KeyAuthResponse:
    if resp.status_code < 200 or resp.status_code >= 300:
        raise UpstreamTransportError(f"KeyAuth API error: {resp.status_code}")
    try:
        body = resp.json()
    except ValueError as e:
        raise UpstreamTransportError("KeyAuth API returned a malformed body") from e
    if not isinstance(body, dict):
        raise UpstreamTransportError("KeyAuth API returned a malformed body")
    return body


class KeyAuthSellerClient:
    """KeyAuth Seller API client (license & user administration)"""

    def __init__(
        self,
        seller_key: str,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.seller_key = seller_key
        self.api_url = api_url or settings.keyauth_seller_api_url
        self.timeout = timeout if timeout is not None else settings.keyauth_timeout
        self._transport = transport

    async def request(self, params: dict[str, Any]) -> KeyAuthResponse:
        """
        Send one seller operation.

        Query string: sellerkey, the operation fields (type first), format=json.
        """
        query: list[tuple[str, str]] = [("sellerkey", self.seller_key)]
        query += [(k, str(v)) for k, v in params.items()]
        query.append(("format", "json"))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.get(self.api_url, params=query, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            raise UpstreamTransportError(f"KeyAuth request failed: {e}") from e
        result = _decode(resp)
        if not result.get("success"):
            logger.info("[keyauth] seller %s -> success=false: %s", params.get("type"), result.get("message"))
        return result

    # ==================== License Management ====================

    async def create_license(
        self,
        expiry: int,
        mask: Optional[str] = None,
        level: Optional[int] = None,
        amount: Optional[int] = None,
        note: Optional[str] = None,
        character: Optional[int] = None,
    ) -> KeyAuthResponse:
        """
        Generate license keys.

        Parameters:
        - expiry: Days until expiration
        - mask: License format mask
        - level: Subscription level
        - amount: Number of keys to generate
        - note: Optional note (omitted from the request when empty)
        - character: 1 = uppercase, 2 = lowercase
        """
        params: dict[str, Any] = {
            "type": "add",
            "expiry": expiry,
            "mask": mask or settings.default_license_mask,
            "level": level or settings.default_license_level,
            "amount": amount or settings.default_license_amount,
            "character": character or settings.default_license_character,
        }
        if note:
            params["note"] = note
        return await self.request(params)

    async def delete_license(self, key: str) -> KeyAuthResponse:
        return await self.request({"type": "del", "key": key})

    async def delete_all_licenses(self) -> KeyAuthResponse:
        return await self.request({"type": "delall"})

    async def delete_unused_licenses(self) -> KeyAuthResponse:
        return await self.request({"type": "delunused"})

    async def delete_used_licenses(self) -> KeyAuthResponse:
        return await self.request({"type": "delused"})

    async def verify_license(self, key: str) -> KeyAuthResponse:
        return await self.request({"type": "verify", "key": key})

    async def fetch_all_licenses(self) -> KeyAuthResponse:
        return await self.request({"type": "fetchallkeys"})

    async def get_license_info(self, key: str) -> KeyAuthResponse:
        return await self.request({"type": "info", "key": key})

    async def set_key_note(self, key: str, note: str) -> KeyAuthResponse:
        return await self.request({"type": "setnote", "key": key, "note": note})

    # ==================== User Management ====================

    async def fetch_all_users(self) -> KeyAuthResponse:
        return await self.request({"type": "fetchallusers"})

    async def get_user_data(self, username: str) -> KeyAuthResponse:
        return await self.request({"type": "userdata", "user": username})

    async def delete_user(self, username: str) -> KeyAuthResponse:
        return await self.request({"type": "deluser", "user": username})

    async def delete_expired_users(self) -> KeyAuthResponse:
        return await self.request({"type": "delexpusers"})

    async def ban_user(self, username: str, reason: Optional[str] = None) -> KeyAuthResponse:
        params: dict[str, Any] = {"type": "ban", "user": username}
        if reason:
            params["reason"] = reason
        return await self.request(params)

    async def unban_user(self, username: str) -> KeyAuthResponse:
        return await self.request({"type": "unban", "user": username})

    async def reset_user_hwid(self, username: str) -> KeyAuthResponse:
        return await self.request({"type": "resetuser", "user": username})

    async def set_user_variable(self, username: str, var_name: str, var_data: str) -> KeyAuthResponse:
        return await self.request({"type": "setvar", "user": username, "var": var_name, "data": var_data})

    async def get_user_variable(self, username: str, var_name: str) -> KeyAuthResponse:
        return await self.request({"type": "getvar", "user": username, "var": var_name})

    async def extend_user(self, username: str, subscription: str, expiry: int) -> KeyAuthResponse:
        return await self.request({"type": "extend", "user": username, "sub": subscription, "expiry": expiry})

    async def subtract_user_time(self, username: str, subscription: str, seconds: int) -> KeyAuthResponse:
        return await self.request({"type": "subtract", "user": username, "sub": subscription, "seconds": seconds})

    # ==================== Reseller Management ====================

    async def create_reseller(self, username: str) -> KeyAuthResponse:
        return await self.request({"type": "addreseller", "user": username})

    async def verify_reseller(self, username: str) -> KeyAuthResponse:
        return await self.request({"type": "verifyreseller", "user": username})

    # ==================== Application Stats ====================

    async def get_stats(self) -> KeyAuthResponse:
        return await self.request({"type": "stats"})

    # ==================== Snapshots ====================

    async def list_licenses(self) -> list[License]:
        """
        All licenses as typed records.
        A success=false answer (KeyAuth reports "No keys found" that way) is an empty list.
        """
        result = await self.fetch_all_licenses()
        if not result.get("success"):
            return []
        return parse_licenses(result.get("keys"))

    async def list_users(self) -> list[EndUser]:
        """All users as typed records; success=false is an empty list."""
        result = await self.fetch_all_users()
        if not result.get("success"):
            return []
        return parse_users(result.get("users"))


def parse_licenses(raw: Any) -> list[License]:
    """Typed license records; a record that fails validation is a malformed answer."""
    if not isinstance(raw, list):
        return []
    try:
        return [License.model_validate(item) for item in raw if isinstance(item, dict) and item.get("key")]
    except ValidationError as e:
        raise UpstreamTransportError(f"Malformed license record: {e}") from e


def parse_users(raw: Any) -> list[EndUser]:
    if not isinstance(raw, list):
        return []
    try:
        return [EndUser.model_validate(item) for item in raw if isinstance(item, dict) and item.get("username")]
    except ValidationError as e:
        raise UpstreamTransportError(f"Malformed user record: {e}") from e


class KeyAuthAppSession:
    """
    KeyAuth Application API session.

    Holds the upstream session id obtained by `init`, so an instance belongs to
    exactly one login or registration attempt and must not be shared.
    """

    def __init__(
        self,
        app_name: str,
        owner_id: str,
        api_url: Optional[str] = None,
        version: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_name = app_name
        self.owner_id = owner_id
        self.api_url = api_url or settings.keyauth_app_api_url
        self.version = version or settings.keyauth_app_version
        self.timeout = timeout if timeout is not None else settings.keyauth_timeout
        self._transport = transport
        self.session_id: Optional[str] = None

    async def request(self, op_type: str, fields: Optional[dict[str, str]] = None) -> KeyAuthResponse:
        """POST form: type, name, ownerid, operation fields, sessionid (once initialised)."""
        form: dict[str, str] = {"type": op_type, "name": self.app_name, "ownerid": self.owner_id}
        form.update(fields or {})
        if self.session_id:
            form["sessionid"] = self.session_id

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.api_url, data=form)
        except httpx.HTTPError as e:
            raise UpstreamTransportError(f"KeyAuth request failed: {e}") from e
        return _decode(resp)

    async def init_app(self) -> KeyAuthResponse:
        """Open an upstream session (required before login / register)."""
        result = await self.request("init", {"ver": self.version, "hash": ""})  # Empty hash for web apps
        if result.get("success") and result.get("sessionid"):
            self.session_id = result["sessionid"]
        return result

    async def _ensure_session(self) -> Optional[KeyAuthResponse]:
        if self.session_id:
            return None
        init_result = await self.init_app()
        if not init_result.get("success"):
            return init_result
        return None

    async def login_user(self, username: str, password: str) -> KeyAuthResponse:
        failed = await self._ensure_session()
        if failed is not None:
            return failed
        return await self.request("login", {"username": username, "pass": password})

    async def register_user(self, username: str, password: str, license_key: str) -> KeyAuthResponse:
        """Register an application user; consumes the license key upstream."""
        failed = await self._ensure_session()
        if failed is not None:
            return failed
        return await self.request("register", {"username": username, "pass": password, "key": license_key})

    async def fetch_user_data(self) -> KeyAuthResponse:
        if not self.session_id:
            raise UpstreamError("Not initialized")
        return await self.request("fetchuserdata")


# ==================== Factories ====================

@lru_cache(maxsize=1)
def get_seller_client() -> KeyAuthSellerClient:
    """
    Shared seller client. Safe to share: it holds only configuration and opens
    a fresh HTTP connection per call.
    """
    if not settings.keyauth_seller_key:
        raise UpstreamConfigError("KEYAUTH_SELLER_KEY environment variable is not set")
    return KeyAuthSellerClient(seller_key=settings.keyauth_seller_key)


def open_app_session() -> KeyAuthAppSession:
    """A new, unshared application session for one login / registration flow."""
    if not settings.keyauth_name or not settings.keyauth_owner_id:
        raise UpstreamConfigError("App credentials not configured (KEYAUTH_NAME / KEYAUTH_OWNER_ID)")
    return KeyAuthAppSession(app_name=settings.keyauth_name, owner_id=settings.keyauth_owner_id)
