# app/api/v1/routers/webhook.py
"""
SellAuth storefront delivery.

Each purchase creates one KeyAuth license with the fixed note "WEBSITE".
Storefront keys carry no reseller tag, so they never show up in any
reseller's key list.
"""
import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from app.api.v1.deps import get_keyauth
from app.config import settings
from app.services.keyauth import KeyAuthSellerClient

router = APIRouter(prefix="/sellauth/webhook", tags=["storefront"])
logger = logging.getLogger("uvicorn.error")


def expiry_for_variant(variant_id: str) -> int:
    """License duration (days) for a SellAuth variant; unknown variants get the default."""
    return settings.storefront_variant_expiry.get(variant_id, settings.storefront_default_expiry)


def sign_body(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str | None) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(sign_body(secret, body), signature)


async def _create_storefront_license(keyauth: KeyAuthSellerClient, expiry: int) -> dict:
    return await keyauth.create_license(
        expiry=expiry,
        mask=settings.default_license_mask,
        level=settings.default_license_level,
        amount=1,
        character=settings.default_license_character,
        note=settings.storefront_note,
    )


@router.post("")
async def deliver(request: Request, keyauth: KeyAuthSellerClient = Depends(get_keyauth)):
    """
    SellAuth dynamic delivery webhook.

    Reads `variant_id` / `variantId` from the JSON payload and answers
    `{"status": "success", "key": ...}` which SellAuth delivers to the buyer.

    When SELLAUTH_WEBHOOK_SECRET is configured the raw body must be signed
    (X-Signature: hex HMAC-SHA256), otherwise 401.
    """
    raw = await request.body()
    secret = settings.sellauth_webhook_secret
    if secret and not verify_signature(secret, raw, request.headers.get("x-signature")):
        logger.warning("[webhook] rejected unsigned or badly signed delivery")
        return JSONResponse(status_code=401, content={"status": "error", "message": "Invalid signature"})

    try:
        payload = json.loads(raw or b"{}")
    except ValueError:
        return JSONResponse(status_code=400, content={"status": "error", "message": "Invalid JSON body"})
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"status": "error", "message": "Invalid JSON body"})

    variant_id = str(payload.get("variant_id") or payload.get("variantId") or "")
    product_id = str(payload.get("product_id") or payload.get("productId") or "")
    expiry = expiry_for_variant(variant_id)

    try:
        result = await _create_storefront_license(keyauth, expiry)
    except Exception:
        logger.exception("[webhook] license creation failed (product=%s variant=%s)", product_id, variant_id)
        return JSONResponse(status_code=500, content={"status": "error", "message": "Internal server error"})

    if result.get("success"):
        logger.info("[webhook] delivered key for product=%s variant=%s expiry=%sd", product_id, variant_id, expiry)
        return {"status": "success", "key": result.get("key")}

    logger.warning("[webhook] KeyAuth refused license creation: %s", result.get("message"))
    return JSONResponse(status_code=500, content={"status": "error", "message": result.get("message")})


@router.get("")
async def deliver_plain(
    variant_id: str = Query(default=""),
    keyauth: KeyAuthSellerClient = Depends(get_keyauth),
):
    """
    Direct-URL key generation: returns the new key as text/plain.
    Disabled when a webhook secret is configured (a GET cannot be signed).
    """
    if settings.sellauth_webhook_secret:
        return PlainTextResponse("Unauthorized", status_code=401)

    try:
        result = await _create_storefront_license(keyauth, expiry_for_variant(variant_id))
    except Exception:
        logger.exception("[webhook] license creation failed (variant=%s)", variant_id)
        return PlainTextResponse("Internal server error", status_code=500)

    if result.get("success"):
        return PlainTextResponse(str(result.get("key") or ""))
    return PlainTextResponse(str(result.get("message") or ""), status_code=500)
