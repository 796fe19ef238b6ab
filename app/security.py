"""
Security utilities for the FastAPI application.
Provides middlewares, validators, and helpers for hardening the server.
"""

import hmac
import re
import uuid
import logging
from urllib.parse import urlparse

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from fastapi import HTTPException

from configs.config import get_config

logger = logging.getLogger(__name__)

cfg = get_config()

# --------------- Input Validation Patterns ---------------

# Episode GUIDs are opaque feed identifiers; only reject control characters
EPISODE_GUID_PATTERN = re.compile(r"^[^\x00-\x1f\x7f]+$")
ALLOWED_URL_SCHEMES = frozenset({"http", "https"})


# --------------- Middlewares ---------------


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Inject standard security headers on every response."""

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = (
            "camera=(), microphone=(), geolocation=()"
        )
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=63072000; includeSubDomains; preload"
            )
        return response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a unique X-Request-ID to every request / response."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request.state.request_id = request_id
        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# --------------- Validators ---------------


def validate_episode_guid(episode_guid: str) -> str:
    """Validate and return a safe episode GUID, or raise 400."""
    if (
        len(episode_guid) > cfg.MAX_EPISODE_GUID_LENGTH
        or not EPISODE_GUID_PATTERN.match(episode_guid)
    ):
        logger.warning("Rejected invalid episode GUID: %r", episode_guid[:80])
        raise HTTPException(status_code=400, detail="Invalid episode GUID")
    return episode_guid


def validate_http_url(url: str, label: str = "URL") -> str:
    """Validate an absolute http(s) URL, or raise 400."""
    if not url:
        raise HTTPException(status_code=400, detail=f"{label} required")
    parsed = urlparse(url)
    if (
        len(url) > cfg.MAX_URL_LENGTH
        or parsed.scheme not in ALLOWED_URL_SCHEMES
        or not parsed.netloc
    ):
        logger.warning("Rejected invalid %s: %r", label, url[:120])
        raise HTTPException(status_code=400, detail=f"Invalid {label}")
    return url


def validate_audio_url(audio_url: str) -> str:
    return validate_http_url(audio_url, label="Audio URL")


# --------------- Error Helpers ---------------


def safe_error_response(
    exc: Exception, context: str = "operation", status_code: int = 500
):
    """
    Log the real exception but return a sanitized message to the client.
    In development mode, the real error is included for debugging.
    """
    logger.error("Error in %s: %s", context, exc, exc_info=True)
    if cfg.ENVIRONMENT == "development":
        detail = f"[DEV] {context}: {exc}"
    else:
        detail = (
            f"An internal error occurred during {context}. "
            "Please try again later."
        )
    raise HTTPException(status_code=status_code, detail=detail)


# --------------- Admin Auth ---------------


def require_admin_key(request: Request):
    """
    Dependency that checks for a valid X-Admin-Key header.
    Raises 403 if missing or incorrect.
    """
    provided_key = request.headers.get("X-Admin-Key", "")
    if not provided_key or not hmac.compare_digest(provided_key, cfg.ADMIN_API_KEY):
        logger.warning(
            "Unauthorized admin access attempt from %s",
            request.client.host if request.client else "unknown",
        )
        raise HTTPException(
            status_code=403, detail="Forbidden: invalid admin key"
        )
