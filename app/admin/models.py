# app/admin/models.py
"""
Pydantic models for employees, audit entries and credential entries.

Stored JSON and API payloads use camelCase (``passwordHash``,
``createdById``...) to stay compatible with the mobile client; Python code
uses snake_case attribute names.  Dump with ``by_alias=True`` whenever a
model leaves the process.
"""
from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import Field, field_validator

from app.core.base_model import CamelModel


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    WORKER = "worker"
    USER = "user"


class AuditAction(str, Enum):
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    PASSWORD_CHANGED = "password_changed"


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------

class Permissions(CamelModel):
    can_manage_users: bool = False
    can_view_reports: bool = False
    can_handle_requests: bool = False
    can_create_invoices: bool = False
    can_view_customer_info: bool = False
    can_delete_data: bool = False

    @classmethod
    def for_role(cls, role: Role) -> "Permissions":
        """Default permission set handed out when none is supplied."""
        if role == Role.SUPER_ADMIN:
            return cls(
                can_manage_users=True, can_view_reports=True, can_handle_requests=True,
                can_create_invoices=True, can_view_customer_info=True, can_delete_data=True,
            )
        if role == Role.ADMIN:
            return cls(
                can_manage_users=True, can_view_reports=True, can_handle_requests=True,
                can_create_invoices=True, can_view_customer_info=True,
            )
        return cls(
            can_view_reports=True, can_handle_requests=True,
            can_create_invoices=True, can_view_customer_info=True,
        )


class Employee(CamelModel):
    id: str
    employee_id: str | None = None
    username: str
    password_hash: str
    role: Role
    full_name: str = ""
    email: str = ""
    phone: str = ""
    is_active: bool = True
    created_at: str
    created_by: str
    last_login: str | None = None
    permissions: Permissions = Field(default_factory=Permissions)

    def public(self) -> dict:
        """Serialized employee without ``passwordHash``."""
        return self.model_dump(by_alias=True, mode="json", exclude={"password_hash"})


class CredentialLogEntry(CamelModel):
    id: str
    username: str
    password: str  # plaintext, shown to administrators
    role: str
    created_at: str
    created_by: str
    created_by_id: str


class AuditLogEntry(CamelModel):
    id: str
    timestamp: str
    username: str
    action: AuditAction
    details: str | None = None
    user_id: str | None = None


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

def _check_email(v: str | None) -> str | None:
    if v is not None and "@" not in v:
        raise ValueError("email must be a valid email address")
    return v


class LoginRequest(CamelModel):
    username: str
    password: str


class CreateEmployeeRequest(CamelModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    role: Literal["admin", "worker", "employee"]
    full_name: str
    email: str
    phone: str = ""
    permissions: Permissions | None = None

    @field_validator("email")
    @classmethod
    def email_must_look_valid(cls, v: str) -> str:
        return _check_email(v)

    @property
    def normalized_role(self) -> Role:
        # "employee" is the mobile client's legacy name for a worker
        return Role.WORKER if self.role == "employee" else Role(self.role)


class UpdateEmployeeRequest(CamelModel):
    """Partial update; ``None`` fields are left unchanged."""

    username: str | None = Field(default=None, min_length=3)
    password: str | None = Field(default=None, min_length=6)
    full_name: str | None = None
    email: str | None = None
    phone: str | None = None
    is_active: bool | None = None
    permissions: Permissions | None = None

    @field_validator("email")
    @classmethod
    def email_must_look_valid(cls, v: str | None) -> str | None:
        return _check_email(v)


class AuditLogQuery(CamelModel):
    limit: int = Field(default=100, ge=1)
    action: AuditAction | None = None
    username: str | None = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class LoginResult(CamelModel):
    success: bool
    message: str
    user: dict | None = None
