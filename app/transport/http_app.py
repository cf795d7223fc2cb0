# app/transport/http_app.py
"""
HTTP application for the dispatch backend.

Security layers:
1. Public: ``/health`` only
2. Identified: ``/api/auth/*`` resolve the bearer user id per operation
3. Open job pipeline: ``/api/requests/*`` and ``/api/mileage-logs``
4. No information leakage in production (docs disabled, sanitized 500s)

Every ``/api`` route waits for the one-shot seed before running.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request, Depends, Query
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from app.admin.models import (
    AuditAction,
    AuditLogQuery,
    CreateEmployeeRequest,
    LoginRequest,
    UpdateEmployeeRequest,
)
from app.admin.service import EmployeeService
from app.config import settings
from app.core.dispatch.models import (
    AcceptJobRequest,
    CreateTestJobRequest,
    MileageLogRequest,
    RoundTripRequest,
)
from app.core.dispatch.service import JobService
from app.core.errors import DispatchError
from app.infra.audit_log import AuditRecorder
from app.infra.kv_store import InMemoryKeyValueStore
from app.infra.logging_config import setup_logging, get_logger
from app.infra.rate_limiter import InMemoryRateLimiter, RateLimitDependency
from app.infra.seed import SeedBootstrap
from app.transport.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    ErrorHandlingMiddleware,
)
from app.transport.security import (
    SecurityHeaders,
    get_tenant_id,
    get_user_id,
    sanitize_error_message,
)

# Initialize logging first
setup_logging(
    level=settings.log_level,
    use_json=settings.is_production
)

logger = get_logger(__name__)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_employee_service(request: Request) -> EmployeeService:
    """Get employee service from app state"""
    return request.app.state.employee_service


def get_job_service(request: Request) -> JobService:
    """Get job service from app state"""
    return request.app.state.job_service


async def ensure_seed_ready(request: Request) -> None:
    """Block until the baseline accounts exist (runs the seed at most once)."""
    await request.app.state.seed.ensure_ready()


async def login_rate_limit(request: Request) -> None:
    """Per-IP rate limit for the login endpoint"""
    await request.app.state.login_rate_limiter(request)


# ============================================================================
# MIDDLEWARE FOR SECURITY HEADERS
# ============================================================================

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses"""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        return SecurityHeaders.add_security_headers(response)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""

    # STARTUP
    logger.info(f"Starting application: env={settings.app_env}")

    store = InMemoryKeyValueStore()
    audit = AuditRecorder(store, max_entries=settings.audit_log_max_entries)

    fastapi_app.state.store = store
    fastapi_app.state.seed = SeedBootstrap(store)
    fastapi_app.state.employee_service = EmployeeService(store, audit=audit)
    fastapi_app.state.job_service = JobService(store)
    fastapi_app.state.login_rate_limiter = RateLimitDependency(
        InMemoryRateLimiter(max_requests=settings.login_rate_limit_per_minute, window_seconds=60)
    )
    logger.info("In-memory store and services initialized")

    yield

    # SHUTDOWN
    logger.info("Shutting down application")
    await store.clear()
    logger.info("Application shutdown complete")


# ============================================================================
# CREATE APP
# ============================================================================

app = FastAPI(
    title="Dispatch Backend",
    description="Roadside-assistance dispatch: employees, jobs and mileage",
    version="1.0.0",
    lifespan=lifespan,
    # Security: Completely disable docs in production (None, not conditional URL)
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

# CORS - Restrictive in production
if settings.is_production or settings.is_staging:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins if settings.allowed_origins != ["*"] else [],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Content-Type", "Authorization", "X-Tenant-ID"],
    )
else:
    # More permissive in dev
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Add security headers middleware
app.add_middleware(SecurityHeadersMiddleware)

# Add custom middleware
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(RequestLoggingMiddleware, enabled=settings.enable_request_logging)
app.add_middleware(RequestIDMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(DispatchError)
async def dispatch_error_handler(request: Request, exc: DispatchError):
    """Map typed domain errors to ``{"error", "code"}``"""
    if exc.status_code >= 500:
        logger.error(f"Domain error: {exc.detail}", extra={"status_code": exc.status_code})
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed payloads are VALIDATION errors, not 422s"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")

    return JSONResponse(
        status_code=400,
        content={
            "error": f"{location}: {message}" if location else message,
            "code": "VALIDATION",
        },
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with appropriate logging"""
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)

    # Sanitize error message for production
    error_message = sanitize_error_message(exc, settings.is_production)

    return JSONResponse(
        status_code=500,
        content={"error": error_message, "code": "INTERNAL"},
    )


# ============================================================================
# PUBLIC ENDPOINTS (No authentication required)
# ============================================================================

@app.get("/health")
def health():
    """
    Basic health check - PUBLIC endpoint.
    Used by load balancers, monitoring, etc.
    """
    return {"status": "healthy"}


# ============================================================================
# AUTH / EMPLOYEE ENDPOINTS
# ============================================================================

@app.post(
    "/api/auth/login",
    dependencies=[Depends(login_rate_limit), Depends(ensure_seed_ready)],
)
async def auth_login(
    payload: LoginRequest,
    tenant_id: str | None = Depends(get_tenant_id),
    service: EmployeeService = Depends(get_employee_service),
):
    """Soft-failing login: bad credentials return ``success: false`` with 200."""
    result = await service.login(payload.username, payload.password, tenant_id)
    return result.to_json()


@app.post("/api/auth/logout", dependencies=[Depends(ensure_seed_ready)])
async def auth_logout(
    user_id: str | None = Depends(get_user_id),
    tenant_id: str | None = Depends(get_tenant_id),
    service: EmployeeService = Depends(get_employee_service),
):
    await service.logout(user_id, tenant_id)
    return {"success": True}


@app.get("/api/auth/employees", dependencies=[Depends(ensure_seed_ready)])
async def auth_get_employees(
    tenant_id: str | None = Depends(get_tenant_id),
    service: EmployeeService = Depends(get_employee_service),
):
    return await service.get_employees(tenant_id)


@app.post("/api/auth/employees", dependencies=[Depends(ensure_seed_ready)])
async def auth_create_employee(
    payload: CreateEmployeeRequest,
    user_id: str | None = Depends(get_user_id),
    tenant_id: str | None = Depends(get_tenant_id),
    service: EmployeeService = Depends(get_employee_service),
):
    employee = await service.create_employee(user_id, tenant_id, payload)
    return {"success": True, "employee": employee}


@app.patch("/api/auth/employees/{employee_id}", dependencies=[Depends(ensure_seed_ready)])
async def auth_update_employee(
    employee_id: str,
    payload: UpdateEmployeeRequest,
    user_id: str | None = Depends(get_user_id),
    tenant_id: str | None = Depends(get_tenant_id),
    service: EmployeeService = Depends(get_employee_service),
):
    employee = await service.update_employee(user_id, tenant_id, employee_id, payload)
    return {"success": True, "employee": employee}


@app.get("/api/auth/audit-logs", dependencies=[Depends(ensure_seed_ready)])
async def auth_get_audit_logs(
    limit: int = Query(default=settings.audit_log_default_limit, ge=1),
    action: AuditAction | None = Query(default=None),
    username: str | None = Query(default=None),
    user_id: str | None = Depends(get_user_id),
    tenant_id: str | None = Depends(get_tenant_id),
    service: EmployeeService = Depends(get_employee_service),
):
    query = AuditLogQuery(limit=limit, action=action, username=username)
    entries = await service.get_audit_logs(user_id, tenant_id, query)
    return [entry.to_json() for entry in entries]


@app.get("/api/auth/credential-logs", dependencies=[Depends(ensure_seed_ready)])
async def auth_get_credential_logs(
    user_id: str | None = Depends(get_user_id),
    tenant_id: str | None = Depends(get_tenant_id),
    service: EmployeeService = Depends(get_employee_service),
):
    entries = await service.get_credential_logs(user_id, tenant_id)
    return [entry.to_json() for entry in entries]


# ============================================================================
# JOB PIPELINE ENDPOINTS
# ============================================================================

@app.post("/api/requests/test-job", dependencies=[Depends(ensure_seed_ready)])
async def requests_create_test_job(
    payload: CreateTestJobRequest | None = None,
    service: JobService = Depends(get_job_service),
):
    tenant_id = payload.tenant_id if payload else None
    job = await service.create_test_job(tenant_id)
    return job.to_json()


@app.get("/api/requests", dependencies=[Depends(ensure_seed_ready)])
async def requests_list(
    tenant_id: str | None = Query(default=None, alias="tenantId"),
    service: JobService = Depends(get_job_service),
):
    return await service.list_requests(tenant_id)


@app.post("/api/requests/{request_id}/accept", dependencies=[Depends(ensure_seed_ready)])
async def requests_accept_job(
    request_id: str,
    payload: AcceptJobRequest,
    service: JobService = Depends(get_job_service),
):
    return await service.accept_job(
        request_id,
        payload.acceptor_coordinates,
        accepted_by=payload.accepted_by,
        platform=payload.platform,
        tenant_id=payload.tenant_id,
    )


@app.post("/api/requests/{request_id}/round-trip", dependencies=[Depends(ensure_seed_ready)])
async def requests_calculate_round_trip(
    request_id: str,
    payload: RoundTripRequest,
    service: JobService = Depends(get_job_service),
):
    result = await service.calculate_round_trip(
        request_id, payload.acceptor_coordinates, tenant_id=payload.tenant_id,
    )
    return result.to_json()


@app.post("/api/requests/{request_id}/mileage-logs", dependencies=[Depends(ensure_seed_ready)])
async def requests_post_mileage_log(
    request_id: str,
    payload: MileageLogRequest,
    service: JobService = Depends(get_job_service),
):
    entry = await service.post_mileage_log(
        request_id,
        payload.job_name,
        payload.reference_number,
        payload.acceptor_coordinates,
        is_round_trip=payload.is_round_trip,
        tenant_id=payload.tenant_id,
    )
    return entry.to_json()


@app.get("/api/mileage-logs", dependencies=[Depends(ensure_seed_ready)])
async def mileage_logs_list(
    tenant_id: str | None = Query(default=None, alias="tenantId"),
    service: JobService = Depends(get_job_service),
):
    return [entry.to_json() for entry in await service.list_mileage_logs(tenant_id)]


# ============================================================================
# CATCH-ALL
# ============================================================================

@app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
async def catch_all(path: str):
    """
    Catch-all route for undefined endpoints.
    Returns generic 404 without revealing information.
    """
    logger.warning(f"404 - Unknown route accessed: {path}")
    raise HTTPException(status_code=404, detail="Not found")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.transport.http_app:app",
        host="0.0.0.0",
        port=8099,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,  # Disable in prod (use middleware logging)
        server_header=False,
        date_header=False,
    )
