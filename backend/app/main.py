# app/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Your configuration
from app.config import settings

from app.api.v1.routers import auth, keys, users, webhook

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# CORS (with Cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def on_validation_error(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors (400), not pydantic 422s."""
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid field: {field}" if field else "Malformed request body"
    return JSONResponse(status_code=400, content={"detail": {"code": "BAD_REQUEST", "message": message}})


@app.on_event("startup")
async def on_startup():
    if not settings.keyauth_seller_key:
        logger.warning("[keyauth] KEYAUTH_SELLER_KEY not set -> key and user management will fail")
    if settings.session_secret == "dev-session-secret" and settings.env == "production":
        logger.warning("[session] SESSION_SECRET not set in production")


# REST
app.include_router(auth.router, prefix="/api/v1")
app.include_router(keys.router, prefix="/api/v1")
app.include_router(users.router, prefix="/api/v1")
app.include_router(webhook.router, prefix="/api/v1")


@app.get("/healthz")
def healthz():
    return {"ok": True}
