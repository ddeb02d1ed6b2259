# app/schemas/auth.py
"""
Pydantic schemas for reseller authentication endpoints.
"""
from pydantic import BaseModel
from typing import Optional

class AuthRequest(BaseModel):
    """
    Request model for POST /keyauth/login.
    `action="register"` registers with a reseller license key; `action="login"`
    (or no action with username + password) logs in.
    """
    action: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    licenseKey: Optional[str] = None

class SessionOut(BaseModel):
    """Current session information returned by GET /keyauth/login."""
    authenticated: bool
    authType: Optional[str] = None
    username: Optional[str] = None
    level: Optional[int] = None
