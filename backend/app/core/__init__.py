# app/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- errors: API error taxonomy and the upstream failure guard
- security: Signed reseller session cookies and identity resolution
"""
