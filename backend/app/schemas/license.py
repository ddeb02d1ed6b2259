# app/schemas/license.py
"""
Pydantic schemas for the KeyAuth license / user records and for the
reseller key & user management endpoints.

Upstream records keep every field KeyAuth sends (extra="allow") so that
responses can be relayed verbatim after tenancy filtering.
"""
from pydantic import BaseModel
from typing import Any, List, Optional, Union

Scalar = Union[int, str]


class License(BaseModel):
    """
    A redeemable license key as returned by KeyAuth `fetchallkeys`.
    Ownership is encoded as a reseller tag prefix inside `note`.
    """
    key: str  # License key string (unique, upstream-assigned)
    note: Optional[str] = None  # Free text; "[r:xxxxxxxx]" prefix marks the owning reseller
    expires: Optional[Scalar] = None  # Duration in seconds
    status: Optional[str] = None  # "Not Used" / "Used" / "Banned"
    level: Optional[Scalar] = None  # Subscription level
    genby: Optional[str] = None  # Seller account that generated the key
    gendate: Optional[Scalar] = None  # Creation timestamp (unix)
    usedon: Optional[Scalar] = None  # Redemption timestamp (unix)
    usedby: Optional[str] = None  # Username that redeemed the key

    class Config:
        extra = "allow"


class EndUser(BaseModel):
    """An application user account as returned by KeyAuth `fetchallusers`."""
    username: str
    subscriptions: Optional[List[Any]] = None
    ip: Optional[str] = None
    hwid: Optional[str] = None
    createdate: Optional[Scalar] = None
    lastlogin: Optional[Scalar] = None
    banned: Optional[str] = None  # Ban reason, null when not banned

    class Config:
        extra = "allow"


# ========== Input models ==========
# Fields are deliberately loose; route handlers validate them and answer 400
# with a field-level message instead of a pydantic 422.
class CreateLicenseIn(BaseModel):
    """Request body for POST /keyauth/keys."""
    expiry: Optional[Scalar] = None  # Days until expiration (required, numeric)
    amount: Optional[Scalar] = None  # Number of keys to generate (default 1)
    mask: Optional[str] = None  # Key format mask
    note: Optional[str] = None  # Reseller visible note, stored behind the reseller tag
    level: Optional[Scalar] = None  # Subscription level (default 1)


class UserActionIn(BaseModel):
    """Request body for POST /keyauth/users."""
    action: Optional[str] = None  # ban / unban / resetHwid / extend / delete / getData
    username: Optional[str] = None
    reason: Optional[str] = None  # Ban reason
    subscription: Optional[str] = None  # Subscription name (extend only)
    expiry: Optional[Scalar] = None  # Days to add (extend only)
