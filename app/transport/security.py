# app/transport/security.py
"""
Request identity and response hardening.

Identity model:
- ``Authorization: Bearer <token>`` where the token IS the user id.
  It is opaque and not verified here; verification, if any, belongs to
  an upstream gateway.
- ``X-Tenant-ID`` selects the tenant namespace for employee operations.

Also provides OWASP security headers, header sanitization for logs and
error-message sanitization for production responses.
"""
from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings
from app.infra.logging_config import get_logger

logger = get_logger(__name__)

# Security scheme for OpenAPI docs - shows "Authorize" button
bearer_scheme = HTTPBearer(
    scheme_name="User Token",
    description="Enter your user id (without 'Bearer ' prefix)",
    auto_error=False,  # Protected operations raise UNAUTHORIZED themselves
)


def get_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    """Bearer token → user id (``None`` when absent)."""
    if not credentials or not credentials.credentials.strip():
        return None
    return credentials.credentials.strip()


def get_tenant_id(x_tenant_id: str | None = Header(default=None)) -> str | None:
    """``X-Tenant-ID`` header → tenant id (``None`` = global namespace)."""
    if x_tenant_id is None or not x_tenant_id.strip():
        return None
    return x_tenant_id.strip()


def get_client_ip(request: Request) -> str:
    """Client IP used as the rate-limit key."""
    return request.client.host if request.client else "unknown"


class SecurityHeaders:
    """OWASP recommended headers for a JSON API."""

    @staticmethod
    def add_security_headers(response):
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Referrer policy - don't leak URLs to third parties
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Content Security Policy (strict for API - no scripts/styles/etc)
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Responses carry credentials and employee PII
        if "Cache-Control" not in response.headers:
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"

        # HSTS (only in production with HTTPS)
        if settings.is_production or settings.is_staging:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"

        if "Server" in response.headers:
            del response.headers["Server"]

        return response


# Headers that should NEVER be logged (contain secrets)
SENSITIVE_HEADERS = {
    "authorization",
    "x-api-key",
    "cookie",
    "set-cookie",
}


def sanitize_headers_for_logging(headers: dict) -> dict:
    """Redact sensitive headers (Authorization carries the user id)."""
    return {
        key: "***REDACTED***" if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def sanitize_error_message(error: Exception, is_production: bool) -> str:
    """
    Sanitize error messages for external responses.
    In production: Generic messages
    In dev: Detailed messages
    """
    if not is_production:
        return str(error)

    error_type = type(error).__name__

    generic_messages = {
        "ValueError": "Invalid input",
        "KeyError": "Invalid request",
        "TimeoutError": "Request timeout",
    }

    return generic_messages.get(error_type, "An error occurred")
