# app/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "Reseller Panel API"
    env: str = os.getenv("ENV", "dev")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))

    # CORS origins for frontend
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # KeyAuth seller credentials (required for every upstream call)
    keyauth_seller_key: str | None = os.getenv("KEYAUTH_SELLER_KEY")
    # KeyAuth application credentials (only needed for login / registration)
    keyauth_name: str | None = os.getenv("KEYAUTH_NAME")
    keyauth_owner_id: str | None = os.getenv("KEYAUTH_OWNER_ID")
    keyauth_seller_api_url: str = os.getenv("KEYAUTH_SELLER_API_URL", "https://keyauth.win/api/seller/")
    keyauth_app_api_url: str = os.getenv("KEYAUTH_APP_API_URL", "https://keyauth.win/api/1.2/")
    keyauth_app_version: str = os.getenv("KEYAUTH_APP_VERSION", "1.0")
    keyauth_timeout: float = float(os.getenv("KEYAUTH_TIMEOUT", "30"))

    # License creation defaults
    default_license_mask: str = "******-******-******-******"
    default_license_level: int = 1
    default_license_amount: int = 1
    default_license_character: int = 1  # 1 = uppercase only, 2 = lowercase only

    # Reseller session cookie
    session_cookie_name: str = "reseller_session"
    session_secret: str = os.getenv("SESSION_SECRET", "dev-session-secret")
    session_max_age: int = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24 * 7)))
    session_cookie_secure: bool = os.getenv(
        "SESSION_COOKIE_SECURE", "true" if os.getenv("ENV", "dev") == "production" else "false"
    ).lower() in ("true", "1", "yes")

    # SellAuth storefront webhook
    # When set, POST deliveries must carry X-Signature = hex(HMAC-SHA256(body))
    sellauth_webhook_secret: str | None = os.getenv("SELLAUTH_WEBHOOK_SECRET")
    storefront_note: str = "WEBSITE"
    # SellAuth variant id -> license duration in days
    storefront_variant_expiry: dict[str, int] = {
        "683065": 1,   # 1 Day
        "952727": 7,   # 1 Week
        "952732": 90,  # 90 Day
    }
    storefront_default_expiry: int = 1

settings = Settings()  # Instantiate configuration
