# app/admin/service.py
"""
Employee Application Service - the single orchestration point for
login, employee management and the audit / credential ledgers.

Responsibilities:
    1. Resolve the requester and authorize once per operation
    2. Read / write the employee list in the right namespace
       (``employees`` globally, ``tenant:<id>:users`` per tenant)
    3. Emit audit entries and credential entries
    4. Return DTOs without ``passwordHash``

The transport layer stays thin:
    parse request → call service → map DispatchError → return JSON.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from app.admin.models import (
    AuditAction,
    AuditLogEntry,
    AuditLogQuery,
    CreateEmployeeRequest,
    CredentialLogEntry,
    Employee,
    LoginResult,
    Permissions,
    UpdateEmployeeRequest,
)
from app.admin.permissions import Action, authorize, resolve_requester
from app.core.errors import ConflictError, NotFoundError
from app.infra.audit_log import AuditRecorder
from app.infra.credential_log import CredentialLedger, new_credential_entry
from app.infra.kv_store import EMPLOYEES_KEY, TENANT_USERS_KEY, InMemoryKeyValueStore
from app.infra.logging_config import LogContext, get_logger
from app.infra.seed import hash_password

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid username or password"
ACCOUNT_INACTIVE = "This account has been deactivated"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _username_taken(employees: list[Employee], username: str, exclude_id: str | None = None) -> bool:
    needle = username.lower()
    return any(
        e.username.lower() == needle and e.id != exclude_id
        for e in employees
    )


class EmployeeService:
    """
    Orchestrates all employee-facing operations.

    Stateless apart from the injected store.
    """

    def __init__(self, store: InMemoryKeyValueStore, audit: AuditRecorder | None = None) -> None:
        self._store = store
        self.audit = audit or AuditRecorder(store)
        self.credentials = CredentialLedger(store)

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    def _location(self, tenant_id: str | None):
        if tenant_id:
            return self._store.tenant(tenant_id), TENANT_USERS_KEY
        return self._store, EMPLOYEES_KEY

    async def _load(self, tenant_id: str | None) -> list[Employee]:
        store, key = self._location(tenant_id)
        return [Employee.model_validate(raw) for raw in await store.get_json(key) or []]

    async def _save(self, tenant_id: str | None, employees: list[Employee]) -> None:
        store, key = self._location(tenant_id)
        await store.set_json(key, [e.to_json() for e in employees])

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str, tenant_id: str | None = None) -> LoginResult:
        """
        Soft-failing login: invalid credentials and inactive accounts
        come back as ``success=False`` instead of raising.

        Global employees are searched first, then the tenant's users.
        """
        scopes: list[str | None] = [None]
        if tenant_id:
            scopes.append(tenant_id)

        needle = username.lower()
        expected_hash = hash_password(password)
        match: Employee | None = None
        for scope in scopes:
            employees = await self._load(scope)
            match = next(
                (e for e in employees if e.username.lower() == needle and e.password_hash == expected_hash),
                None,
            )
            if match is not None:
                break

        if match is None:
            logger.info("Invalid credentials for %s", username)
            await self.audit.log_entry(username, AuditAction.LOGIN_FAILED, details=INVALID_CREDENTIALS)
            return LoginResult(success=False, message=INVALID_CREDENTIALS)

        if not match.is_active:
            logger.info("Inactive account login attempt: %s", username)
            await self.audit.log_entry(
                match.username, AuditAction.LOGIN_FAILED,
                details=ACCOUNT_INACTIVE, user_id=match.id,
            )
            return LoginResult(success=False, message=ACCOUNT_INACTIVE)

        match.last_login = _now()
        await self._save(scope, [match if e.id == match.id else e for e in employees])

        await self.audit.log_entry(match.username, AuditAction.LOGIN_SUCCESS, user_id=match.id)
        logger.info("Login successful for %s role=%s", match.username, match.role.value)
        return LoginResult(success=True, message="Login successful", user=match.public())

    async def logout(self, user_id: str | None, tenant_id: str | None = None) -> None:
        requester = await resolve_requester(self._store, user_id, tenant_id)
        await self.audit.log_entry(requester.display_name, AuditAction.LOGOUT, user_id=requester.user_id)

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    async def get_employees(self, tenant_id: str | None = None) -> list[dict]:
        return [e.public() for e in await self._load(tenant_id)]

    async def create_employee(
        self,
        requester_id: str | None,
        tenant_id: str | None,
        req: CreateEmployeeRequest,
    ) -> dict:
        """
        Create an employee in the requester's scope.

        Appends exactly one credential entry (plaintext password) at the
        head of the credential ledger and emits ``user_created``.
        """
        requester = await resolve_requester(self._store, requester_id, tenant_id)
        authorize(requester, Action.CREATE_EMPLOYEE)

        log = LogContext(logger, tenant_id=tenant_id, user_id=requester.user_id)

        employees = await self._load(tenant_id)
        if _username_taken(employees, req.username):
            log.info("Duplicate username rejected: %s", req.username)
            raise ConflictError("Username already exists")

        role = req.normalized_role
        employee = Employee(
            id=f"emp_{uuid.uuid4().hex[:16]}",
            employee_id=str(len(employees) + 1).zfill(6),
            username=req.username,
            password_hash=hash_password(req.password),
            role=role,
            full_name=req.full_name,
            email=req.email,
            phone=req.phone,
            is_active=True,
            created_at=_now(),
            created_by=requester.user_id,
            permissions=req.permissions or Permissions.for_role(role),
        )
        employees.append(employee)
        await self._save(tenant_id, employees)

        await self.credentials.record(
            new_credential_entry(
                req.username,
                req.password,
                role,
                created_by=requester.display_name,
                created_by_id=requester.user_id,
            ),
            tenant_id,
        )

        await self.audit.log_entry(
            requester.display_name,
            AuditAction.USER_CREATED,
            user_id=requester.user_id,
            details=f"Created {role.value} account for {req.username}",
        )
        log.info("Employee created: %s (%s)", employee.username, role.value)
        return employee.public()

    async def update_employee(
        self,
        requester_id: str | None,
        tenant_id: str | None,
        employee_id: str,
        req: UpdateEmployeeRequest,
    ) -> dict:
        """
        Partially update an employee.

        A plain admin may not edit admin or super-admin accounts.
        """
        requester = await resolve_requester(self._store, requester_id, tenant_id)

        employees = await self._load(tenant_id)
        target = next((e for e in employees if e.id == employee_id), None)
        if target is None:
            raise NotFoundError("Employee not found")

        authorize(requester, Action.UPDATE_EMPLOYEE, target_role=target.role)

        if req.username and req.username != target.username:
            if _username_taken(employees, req.username, exclude_id=employee_id):
                raise ConflictError("Username already exists")

        changes = req.model_dump(exclude_none=True, exclude={"password", "permissions"})
        updated = target.model_copy(update=changes)
        if req.permissions is not None:
            updated.permissions = req.permissions
        if req.password:
            updated.password_hash = hash_password(req.password)

        await self._save(tenant_id, [updated if e.id == employee_id else e for e in employees])

        await self.audit.log_entry(
            requester.display_name,
            AuditAction.USER_UPDATED,
            user_id=requester.user_id,
            details=f"Updated {target.role.value} account for {updated.username}",
        )
        if req.password:
            await self.audit.log_entry(
                updated.username,
                AuditAction.PASSWORD_CHANGED,
                user_id=requester.user_id,
                details=f"Password changed by {requester.display_name}",
            )

        logger.info(
            "Employee updated: %s fields=%s",
            updated.username, sorted(req.model_dump(exclude_none=True)),
            extra={"tenant_id": tenant_id or "global"},
        )
        return updated.public()

    # ------------------------------------------------------------------
    # Ledgers
    # ------------------------------------------------------------------

    async def get_audit_logs(
        self,
        requester_id: str | None,
        tenant_id: str | None,
        query: AuditLogQuery,
    ) -> list[AuditLogEntry]:
        requester = await resolve_requester(self._store, requester_id, tenant_id)
        authorize(requester, Action.VIEW_AUDIT_LOGS)
        return await self.audit.query(query)

    async def get_credential_logs(
        self,
        requester_id: str | None,
        tenant_id: str | None,
    ) -> list[CredentialLogEntry]:
        requester = await resolve_requester(self._store, requester_id, tenant_id)
        authorize(requester, Action.VIEW_CREDENTIALS)
        return await self.credentials.visible_to(requester.user_id, tenant_id)

