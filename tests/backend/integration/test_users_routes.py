import pytest

from app.services.keyauth import UpstreamTransportError


pytestmark = pytest.mark.asyncio

RESELLER = "ABCD1234-EFGH"
OTHER = "99999999-ZZZZ"
USERS_URL = "/api/v1/keyauth/users"


def seed(fake_keyauth):
    """player1 redeemed one of RESELLER's keys, player2 one of OTHER's, shopper a storefront key."""
    fake_keyauth.add_key("MINE-1", note="[r:abcd1234]batch", usedby="player1")
    fake_keyauth.add_key("MINE-2", note="[r:abcd1234]unused")
    fake_keyauth.add_key("OTHER-1", note="[r:99999999]x", usedby="player2")
    fake_keyauth.add_key("SHOP-1", note="WEBSITE", usedby="shopper")
    fake_keyauth.add_key("MINE-3", note="[r:abcd1234]", usedby="both")
    fake_keyauth.add_key("OTHER-2", note="[r:99999999]", usedby="both")
    for name in ("player1", "player2", "shopper", "both", "lurker"):
        fake_keyauth.add_user(name)


async def test_users_require_session(client, fake_keyauth):
    assert (await client.get(USERS_URL)).status_code == 401
    resp = await client.post(USERS_URL, json={"action": "ban", "username": "player1"})
    assert resp.status_code == 401
    assert fake_keyauth.calls == []


async def test_list_users_filters_to_redeemers(client, fake_keyauth, session_headers):
    seed(fake_keyauth)

    mine = await client.get(USERS_URL, headers=session_headers(license_key=RESELLER))
    assert mine.status_code == 200
    assert mine.json()["success"] is True
    assert sorted(u["username"] for u in mine.json()["users"]) == ["both", "player1"]
    # upstream user fields are preserved
    assert mine.json()["users"][0]["hwid"] == "HWID-1"

    theirs = await client.get(USERS_URL, headers=session_headers(license_key=OTHER))
    assert sorted(u["username"] for u in theirs.json()["users"]) == ["both", "player2"]

    nobody = await client.get(USERS_URL, headers=session_headers(username="newreseller"))
    assert nobody.json()["users"] == []


async def test_list_users_relays_upstream_failure(client, fake_keyauth, session_headers):
    fake_keyauth.add_key("MINE-1", note="[r:abcd1234]batch", usedby="player1")
    resp = await client.get(USERS_URL, headers=session_headers(license_key=RESELLER))
    assert resp.status_code == 200
    assert resp.json() == {"success": False, "message": "No users found"}


async def test_owner_can_ban(client, fake_keyauth, session_headers):
    seed(fake_keyauth)
    resp = await client.post(
        USERS_URL,
        headers=session_headers(license_key=RESELLER),
        json={"action": "ban", "username": "player1", "reason": "cheating"},
    )
    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert fake_keyauth.mutating_calls == [{"type": "ban", "user": "player1", "reason": "cheating"}]
    assert [c["type"] for c in fake_keyauth.calls] == ["fetchallkeys", "fetchallusers", "ban"]


async def test_non_owner_cannot_ban(client, fake_keyauth, session_headers):
    seed(fake_keyauth)
    resp = await client.post(
        USERS_URL,
        headers=session_headers(license_key=OTHER),
        json={"action": "ban", "username": "player1", "reason": "cheating"},
    )
    assert resp.status_code == 403
    assert resp.json()["detail"]["code"] == "ACCESS_DENIED"
    assert fake_keyauth.mutating_calls == []


async def test_storefront_user_belongs_to_nobody(client, fake_keyauth, session_headers):
    seed(fake_keyauth)
    resp = await client.post(
        USERS_URL, headers=session_headers(license_key=RESELLER), json={"action": "delete", "username": "shopper"}
    )
    assert resp.status_code == 403
    assert fake_keyauth.mutating_calls == []


async def test_unknown_user_is_not_found(client, fake_keyauth, session_headers):
    seed(fake_keyauth)
    resp = await client.post(
        USERS_URL, headers=session_headers(license_key=RESELLER), json={"action": "unban", "username": "ghost"}
    )
    assert resp.status_code == 404
    assert fake_keyauth.mutating_calls == []


@pytest.mark.parametrize(
    "body, expected",
    [
        ({"action": "unban", "username": "player1"}, {"type": "unban", "user": "player1"}),
        ({"action": "resetHwid", "username": "player1"}, {"type": "resetuser", "user": "player1"}),
        ({"action": "reset-hwid", "username": "player1"}, {"type": "resetuser", "user": "player1"}),
        ({"action": "delete", "username": "player1"}, {"type": "deluser", "user": "player1"}),
        ({"action": "getData", "username": "player1"}, {"type": "userdata", "user": "player1"}),
        ({"action": "ban", "username": "player1"}, {"type": "ban", "user": "player1"}),
        (
            {"action": "extend", "username": "player1", "subscription": "default", "expiry": "30"},
            {"type": "extend", "user": "player1", "sub": "default", "expiry": 30},
        ),
    ],
)
async def test_action_dispatch(client, fake_keyauth, session_headers, body, expected):
    seed(fake_keyauth)
    resp = await client.post(USERS_URL, headers=session_headers(license_key=RESELLER), json=body)
    assert resp.status_code == 200
    assert fake_keyauth.mutating_calls == [expected]


@pytest.mark.parametrize(
    "body",
    [
        {"username": "player1"},
        {"action": "ban"},
        {"action": "", "username": "player1"},
        {"action": "promote", "username": "player1"},
        {"action": "BAN", "username": "player1"},
        {"action": "extend", "username": "player1", "expiry": 30},
        {"action": "extend", "username": "player1", "subscription": "default"},
        {"action": "extend", "username": "player1", "subscription": "default", "expiry": "soon"},
    ],
)
async def test_invalid_input_makes_no_upstream_calls(client, fake_keyauth, session_headers, body):
    seed(fake_keyauth)
    resp = await client.post(USERS_URL, headers=session_headers(license_key=RESELLER), json=body)
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "BAD_REQUEST"
    assert fake_keyauth.calls == []


async def test_upstream_success_false_is_relayed(client, fake_keyauth, session_headers):
    seed(fake_keyauth)

    async def refuse(username):
        return {"success": False, "message": "User is already unbanned"}

    fake_keyauth.unban_user = refuse
    resp = await client.post(
        USERS_URL, headers=session_headers(license_key=RESELLER), json={"action": "unban", "username": "player1"}
    )
    assert resp.status_code == 200
    assert resp.json() == {"success": False, "message": "User is already unbanned"}


async def test_transport_error_is_opaque_500(client, fake_keyauth, session_headers):
    seed(fake_keyauth)
    fake_keyauth.fail_with = UpstreamTransportError("connection reset by 10.0.0.7")
    resp = await client.post(
        USERS_URL, headers=session_headers(license_key=RESELLER), json={"action": "ban", "username": "player1"}
    )
    assert resp.status_code == 500
    assert resp.json()["detail"]["message"] == "Failed to perform user action"
    assert "10.0.0.7" not in resp.text


async def test_malformed_upstream_user_is_opaque_500(client, fake_keyauth, session_headers):
    seed(fake_keyauth)
    fake_keyauth.users.append({"username": "p9", "banned": True})
    resp = await client.get(USERS_URL, headers=session_headers(license_key=RESELLER))
    assert resp.status_code == 500
    assert resp.json() == {"detail": {"code": "UPSTREAM_ERROR", "message": "Failed to fetch users"}}
