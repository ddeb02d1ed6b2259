# app/api/v1/routers/users.py
import logging

from fastapi import APIRouter, Depends

from app.api.v1.deps import get_keyauth, get_reseller_identity
from app.api.v1.params import clean_text, require_positive_int
from app.core.errors import AccessDenied, InvalidInput, NotFound, upstream_guard
from app.schemas.license import UserActionIn
from app.services.keyauth import KeyAuthSellerClient, parse_users
from app.services.tenancy import OwnershipSnapshot, reseller_tag

router = APIRouter(prefix="/keyauth/users", tags=["users"])
logger = logging.getLogger("uvicorn.error")

# Accepted action names -> canonical action
USER_ACTIONS = {
    "ban": "ban",
    "unban": "unban",
    "resetHwid": "resetHwid",
    "reset-hwid": "resetHwid",
    "extend": "extend",
    "delete": "delete",
    "getData": "getData",
    "fetch-data": "getData",
}


@router.get("")
async def list_users(
    identity: str = Depends(get_reseller_identity),
    keyauth: KeyAuthSellerClient = Depends(get_keyauth),
):
    """
    List the users that redeemed at least one of the calling reseller's keys.

    Returns:
        dict: Upstream `fetchallusers` answer with `users` filtered to the
        reseller's redeemers. A success=false answer is relayed verbatim.

    Raises:
        Unauthenticated (401): No reseller session
        ServerFailure (500): KeyAuth unreachable or malformed answer
    """
    with upstream_guard("users.list", "Failed to fetch users"):
        snapshot = OwnershipSnapshot.build(await keyauth.list_licenses(), identity)
        result = await keyauth.fetch_all_users()
        if not result.get("success"):
            return result
        users = [
            u.model_dump(exclude_unset=True)
            for u in parse_users(result.get("users"))
            if snapshot.owns_user(u.username)
        ]

    return {**result, "users": users}


@router.post("")
async def user_action(
    body: UserActionIn,
    identity: str = Depends(get_reseller_identity),
    keyauth: KeyAuthSellerClient = Depends(get_keyauth),
):
    """
    Run an action on one of the calling reseller's users.

    Input is validated before anything is sent upstream; ownership is derived
    from a license list fetched in this request, right before the action.

    Args:
        body: action, username, reason (ban), subscription + expiry (extend)

    Returns:
        dict: Upstream answer for the action, verbatim

    Raises:
        InvalidInput (400): Missing action/username, unknown action, or extend
            without subscription/expiry
        NotFound (404): No such user upstream
        AccessDenied (403): User never redeemed one of the reseller's keys
    """
    raw_action = clean_text(body.action)
    username = clean_text(body.username)
    if not raw_action or not username:
        raise InvalidInput("Action and username are required")

    action = USER_ACTIONS.get(raw_action)
    if action is None:
        raise InvalidInput("Invalid action")

    subscription = None
    expiry = None
    if action == "extend":
        subscription = clean_text(body.subscription)
        if not subscription or body.expiry is None or body.expiry == "":
            raise InvalidInput("Subscription and expiry are required for extend action")
        expiry = require_positive_int(body.expiry, "expiry")

    with upstream_guard("users.action", "Failed to perform user action"):
        snapshot = OwnershipSnapshot.build(await keyauth.list_licenses(), identity)
        users = await keyauth.list_users()
        if not any(u.username == username for u in users):
            raise NotFound("User not found", code="USER_NOT_FOUND")
        if not snapshot.owns_user(username):
            logger.info("[users] %s refused for %s", action, reseller_tag(identity))
            raise AccessDenied()

        if action == "ban":
            result = await keyauth.ban_user(username, clean_text(body.reason))
        elif action == "unban":
            result = await keyauth.unban_user(username)
        elif action == "resetHwid":
            result = await keyauth.reset_user_hwid(username)
        elif action == "extend":
            result = await keyauth.extend_user(username, subscription, expiry)
        elif action == "delete":
            result = await keyauth.delete_user(username)
        else:
            result = await keyauth.get_user_data(username)

    logger.info("[users] %s by %s -> success=%s", action, reseller_tag(identity), result.get("success"))
    return result
