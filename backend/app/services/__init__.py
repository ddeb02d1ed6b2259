"""
Services Module

Provides interfaces for external services and the tenancy rules built on them:
- KeyAuth: seller API client and per-login application sessions
- Tenancy: reseller tags in license notes and ownership snapshots
"""

# KeyAuth
from .keyauth import (
    KeyAuthAppSession,
    KeyAuthSellerClient,
    UpstreamConfigError,
    UpstreamError,
    UpstreamTransportError,
    get_seller_client,
    open_app_session,
)

# Tenancy
from .tenancy import (
    OwnershipSnapshot,
    belongs_to,
    display_note,
    reseller_tag,
    stamp_note,
)

__all__ = [
    # KeyAuth
    "KeyAuthAppSession",
    "KeyAuthSellerClient",
    "UpstreamConfigError",
    "UpstreamError",
    "UpstreamTransportError",
    "get_seller_client",
    "open_app_session",
    # Tenancy
    "OwnershipSnapshot",
    "belongs_to",
    "display_note",
    "reseller_tag",
    "stamp_note",
]
