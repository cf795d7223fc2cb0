# app/core/errors.py
"""
Typed domain errors for the dispatch backend.

Each error carries an HTTP status code and a stable machine-readable
``code``.  Services raise these; the transport layer converts them to a
JSON error response in a single exception handler, so route handlers
carry no business logic.
"""
from __future__ import annotations


class DispatchError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "INTERNAL"

    def __init__(self, detail: str = "Internal error"):
        self.detail = detail
        super().__init__(detail)


class ValidationError(DispatchError):
    """Malformed input or stored data that fails a domain check (400)."""

    status_code = 400
    code = "VALIDATION"


class UnauthorizedError(DispatchError):
    """No resolvable identity for a protected operation (401)."""

    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(DispatchError):
    """Identity resolved but role does not allow the operation (403)."""

    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(DispatchError):
    """Referenced request or employee does not exist (404)."""

    status_code = 404
    code = "NOT_FOUND"


class ConflictError(DispatchError):
    """Duplicate username (409)."""

    status_code = 409
    code = "CONFLICT"
