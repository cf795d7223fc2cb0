# app/transport/middleware.py
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.config import settings
from app.infra.logging_config import get_logger, LogContext
from app.transport.security import sanitize_error_message, sanitize_headers_for_logging

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _request_tenant(request: Request) -> str | None:
    """Tenant named by the auth header or the ``tenantId`` query of job routes."""
    return request.headers.get("X-Tenant-ID") or request.query_params.get("tenantId")


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag every dispatch call with a request id, echoed back in the response"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Access log with tenant context; credentials are redacted from headers"""

    def __init__(self, app: ASGIApp, enabled: bool = True):
        super().__init__(app)
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self.enabled:
            return await call_next(request)

        route = f"{request.method} {request.url.path}"
        log_ctx = LogContext(
            logger,
            request_id=getattr(request.state, "request_id", "unknown"),
            tenant_id=_request_tenant(request),
        )
        log_ctx.info(
            f"Request started: {route}",
            extra={"client_ip": request.client.host if request.client else None},
        )
        log_ctx.debug(
            "Request headers",
            extra={"headers": sanitize_headers_for_logging(dict(request.headers))},
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            log_ctx.error(
                f"Request failed: {route} error={exc.__class__.__name__} "
                f"duration={_elapsed_ms(started):.2f}ms",
                exc_info=True,
            )
            raise

        duration_ms = _elapsed_ms(started)
        log_ctx.info(
            f"Request completed: {route} status={response.status_code} duration={duration_ms:.2f}ms",
            extra={"status_code": response.status_code, "duration_ms": duration_ms},
        )
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn anything the dispatch handlers did not map into a 500 JSON body"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.error(
                "Unhandled exception: %s", exc.__class__.__name__,
                extra={"request_id": request_id},
                exc_info=True,
            )
            return JSONResponse(
                status_code=500,
                content={
                    "error": sanitize_error_message(exc, settings.is_production),
                    "success": False,
                    "request_id": request_id,
                },
            )
