# app/core/errors.py
"""
Error taxonomy for the reseller API.

Every client-facing failure is an HTTPException subclass so FastAPI renders it
without extra handlers. The response body is always:

    {"detail": {"code": "<MACHINE_CODE>", "message": "<human readable text>"}}

Upstream (KeyAuth) problems are plain exceptions raised by the client layer;
route handlers translate them into ServerFailure / ServiceUnavailable.
"""
import logging
from contextlib import contextmanager

from fastapi import HTTPException, status

logger = logging.getLogger("uvicorn.error")


class ApiError(HTTPException):
    """Base class: fixed status code plus a machine readable code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, code: str | None = None):
        self.code = code or self.code
        self.message = message or self.message
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": self.message},
        )


class Unauthenticated(ApiError):
    """No resolvable reseller identity in the session."""

    status_code = status.HTTP_401_UNAUTHORIZED
    code = "AUTH_REQUIRED"
    message = "Unauthorized"


class InvalidInput(ApiError):
    """Missing or malformed required field."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "BAD_REQUEST"
    message = "Invalid request"


class AccessDenied(ApiError):
    """The resource exists but belongs to another reseller (or is hidden as such)."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "ACCESS_DENIED"
    message = "Access denied"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    message = "Not found"


class ServerFailure(ApiError):
    """Opaque 500: the detail of the underlying failure only goes to the log."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "UPSTREAM_ERROR"
    message = "Internal server error"


class ServiceUnavailable(ApiError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_UNAVAILABLE"
    message = "Authentication service unavailable"


def key_access_denied() -> AccessDenied:
    """
    Single error for "unknown key" and "key owned by another reseller".

    Both cases must look identical to the caller so keys of other
    resellers cannot be enumerated.
    """
    return AccessDenied("Key not found or access denied", code="KEY_ACCESS_DENIED")


@contextmanager
def upstream_guard(operation: str, message: str):
    """
    Handler boundary for upstream calls.

    ApiErrors pass through untouched; anything else (transport failure,
    malformed upstream body, missing configuration) is logged with full detail
    and replaced by an opaque ServerFailure carrying `message`.

    Usage:
        with upstream_guard("keys.list", "Failed to fetch licenses"):
            result = await keyauth.fetch_all_licenses()
    """
    try:
        yield
    except ApiError:
        raise
    except Exception:
        logger.exception("[%s] upstream call failed", operation)
        raise ServerFailure(message)
