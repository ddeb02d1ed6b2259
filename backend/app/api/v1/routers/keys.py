# app/api/v1/routers/keys.py
import logging

from fastapi import APIRouter, Depends, Query

from app.api.v1.deps import get_keyauth, get_reseller_identity
from app.api.v1.params import clean_text, int_or_default, require_positive_int
from app.config import settings
from app.core.errors import InvalidInput, key_access_denied, upstream_guard
from app.schemas.license import CreateLicenseIn
from app.services.keyauth import KeyAuthSellerClient, parse_licenses
from app.services.tenancy import OwnershipSnapshot, reseller_tag, stamp_note

router = APIRouter(prefix="/keyauth/keys", tags=["keys"])
logger = logging.getLogger("uvicorn.error")


@router.get("")
async def list_keys(
    identity: str = Depends(get_reseller_identity),
    keyauth: KeyAuthSellerClient = Depends(get_keyauth),
):
    """
    List the calling reseller's license keys.

    Fetches every key from KeyAuth, keeps the ones whose note carries the
    reseller's tag and strips that tag from the notes before returning them.

    Returns:
        dict: Upstream `fetchallkeys` answer with `keys` replaced by the
        filtered, de-tagged list. A success=false answer is relayed verbatim.

    Raises:
        Unauthenticated (401): No reseller session
        ServerFailure (500): KeyAuth unreachable or malformed answer
    """
    with upstream_guard("keys.list", "Failed to fetch licenses"):
        result = await keyauth.fetch_all_licenses()
        if not result.get("success"):
            return result
        snapshot = OwnershipSnapshot.build(parse_licenses(result.get("keys")), identity)

    return {**result, "keys": snapshot.display_licenses()}


@router.post("")
async def create_keys(
    body: CreateLicenseIn,
    identity: str = Depends(get_reseller_identity),
    keyauth: KeyAuthSellerClient = Depends(get_keyauth),
):
    """
    Generate license keys owned by the calling reseller.

    The reseller's note is stored behind the reseller tag, so every key created
    here is owned by its creator by construction.

    Args:
        body: expiry (days, required), amount, mask, note, level

    Returns:
        dict: Upstream `add` answer verbatim (contains the new key(s))

    Raises:
        InvalidInput (400): expiry missing or not a positive number
    """
    expiry = require_positive_int(body.expiry, "expiry", "Expiry is required")

    with upstream_guard("keys.create", "Failed to create license"):
        result = await keyauth.create_license(
            expiry=expiry,
            amount=int_or_default(body.amount, settings.default_license_amount),
            mask=clean_text(body.mask) or settings.default_license_mask,
            note=stamp_note(body.note, identity),
            level=int_or_default(body.level, settings.default_license_level),
            character=settings.default_license_character,
        )
    logger.info("[keys] create by %s -> success=%s", reseller_tag(identity), result.get("success"))
    return result


@router.delete("")
async def delete_key(
    key: str | None = Query(default=None),
    identity: str = Depends(get_reseller_identity),
    keyauth: KeyAuthSellerClient = Depends(get_keyauth),
):
    """
    Delete one of the calling reseller's keys.

    Ownership is checked against a license list fetched in this request,
    immediately before the delete.

    Raises:
        InvalidInput (400): No `key` query parameter
        AccessDenied (403): Key unknown OR owned by someone else (same body
            for both, so other resellers' keys cannot be probed)
    """
    key = clean_text(key)
    if not key:
        raise InvalidInput("Key is required")

    with upstream_guard("keys.delete", "Failed to delete license"):
        snapshot = OwnershipSnapshot.build(await keyauth.list_licenses(), identity)
        if not snapshot.owns_key(key):
            logger.info("[keys] delete refused for %s", reseller_tag(identity))
            raise key_access_denied()
        result = await keyauth.delete_license(key)
    return result
