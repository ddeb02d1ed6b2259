import itertools
import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("KEYAUTH_SELLER_KEY", "test-seller-key")
os.environ.setdefault("KEYAUTH_NAME", "test-app")
os.environ.setdefault("KEYAUTH_OWNER_ID", "test-owner")

from app.api.v1.deps import get_keyauth
from app.config import settings
from app.core.security import create_session_token
from app.main import app
from app.services.keyauth import KeyAuthSellerClient


class FakeKeyAuth(KeyAuthSellerClient):
    """
    In-memory stand-in for the KeyAuth seller API.

    Keeps a key table and a user table, answers like KeyAuth does and records
    every upstream operation in `calls` so tests can assert on side effects.
    """

    def __init__(self):
        super().__init__(seller_key="fake")
        self.keys: list[dict] = []
        self.users: list[dict] = []
        self.calls: list[dict] = []
        self.fail_with: Exception | None = None
        self._counter = itertools.count(1)

    async def request(self, params):
        self.calls.append(dict(params))
        if self.fail_with is not None:
            raise self.fail_with
        handler = getattr(self, f"_op_{params['type']}", None)
        if handler is None:
            return {"success": True, "message": f"{params['type']} ok"}
        return handler(params)

    @property
    def mutating_calls(self) -> list[dict]:
        return [c for c in self.calls if c["type"] not in ("fetchallkeys", "fetchallusers")]

    def add_key(self, key: str, note: str | None = None, usedby: str | None = None) -> dict:
        record = {"key": key, "expires": "86400", "status": "Used" if usedby else "Not Used",
                  "level": "1", "genby": "seller", "gendate": "1700000000",
                  "usedon": "1700000100" if usedby else None, "usedby": usedby}
        if note is not None:
            record["note"] = note
        self.keys.append(record)
        return record

    def add_user(self, username: str, banned: str | None = None) -> dict:
        record = {"username": username, "subscriptions": [{"subscription": "default", "expiry": "1800000000"}],
                  "ip": "127.0.0.1", "hwid": "HWID-1", "createdate": "1700000000",
                  "lastlogin": "1700000500", "banned": banned}
        self.users.append(record)
        return record

    # ---- operations ----
    def _op_fetchallkeys(self, params):
        if not self.keys:
            return {"success": False, "message": "No keys found"}
        return {"success": True, "message": "Successfully retrieved licenses", "keys": [dict(k) for k in self.keys]}

    def _op_fetchallusers(self, params):
        if not self.users:
            return {"success": False, "message": "No users found"}
        return {"success": True, "message": "Successfully retrieved users", "users": [dict(u) for u in self.users]}

    def _op_add(self, params):
        key = f"KEY{next(self._counter):03d}-AAAA-BBBB-CCCC"
        self.add_key(key, note=params.get("note"))
        return {"success": True, "message": "Licenses successfully generated", "key": key}

    def _op_del(self, params):
        before = len(self.keys)
        self.keys = [k for k in self.keys if k["key"] != params["key"]]
        if len(self.keys) == before:
            return {"success": False, "message": "Key not found"}
        return {"success": True, "message": "Successfully deleted license"}

    def _op_ban(self, params):
        for u in self.users:
            if u["username"] == params["user"]:
                u["banned"] = params.get("reason", "banned")
        return {"success": True, "message": "Successfully banned user"}


@pytest.fixture
def fake_keyauth():
    return FakeKeyAuth()


@pytest_asyncio.fixture
async def client(fake_keyauth):
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with the KeyAuth
    seller client replaced by an in-memory fake.
    """
    app.dependency_overrides[get_keyauth] = lambda: fake_keyauth
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
    app.dependency_overrides.clear()


@pytest.fixture
def session_headers():
    """
    Factory returning request headers carrying a reseller session cookie,
    signed the same way the login route signs it.
    """

    def _headers(username: str | None = None, license_key: str | None = None) -> dict[str, str]:
        data = {"authType": "login" if license_key is None else "register", "authenticated": True}
        if username is not None:
            data["username"] = username
        if license_key is not None:
            data["licenseKey"] = license_key
        return {"Cookie": f"{settings.session_cookie_name}={create_session_token(data)}"}

    return _headers
