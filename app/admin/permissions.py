# app/admin/permissions.py
"""
Role-based authorization for employee management.

All permission rules live in ``evaluate()``; services resolve the
requester once, call ``authorize()`` once per operation and never
re-derive role checks inline.

Role order: ``super_admin`` > ``admin`` > ``worker`` / ``user``.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.admin.models import Employee, Role
from app.config import settings
from app.core.errors import ForbiddenError, UnauthorizedError
from app.infra.kv_store import EMPLOYEES_KEY, TENANT_USERS_KEY, InMemoryKeyValueStore
from app.infra.logging_config import get_logger

logger = get_logger(__name__)

MANAGER_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})


class Action(str, Enum):
    CREATE_EMPLOYEE = "create_employee"
    UPDATE_EMPLOYEE = "update_employee"
    VIEW_CREDENTIALS = "view_credentials"
    VIEW_AUDIT_LOGS = "view_audit_logs"


@dataclass(frozen=True)
class Requester:
    """Resolved caller identity."""

    user_id: str
    role: Role
    display_name: str

    @property
    def is_super_admin(self) -> bool:
        return self.user_id == settings.super_admin_id


@dataclass(frozen=True)
class AuthzDecision:
    allowed: bool
    reason: str = ""


_DENY_MESSAGES = {
    Action.CREATE_EMPLOYEE: "Only administrators can create new users",
    Action.UPDATE_EMPLOYEE: "Only administrators can update users",
    Action.VIEW_CREDENTIALS: "Only administrators can view credential logs",
    Action.VIEW_AUDIT_LOGS: "Only administrators can view audit logs",
}


def evaluate(
    requester_role: Role,
    action: Action,
    target_role: Role | None = None,
) -> AuthzDecision:
    """Pure permission rule: who may do what to whom."""
    if requester_role not in MANAGER_ROLES:
        return AuthzDecision(False, _DENY_MESSAGES[action])

    if (
        action == Action.UPDATE_EMPLOYEE
        and requester_role == Role.ADMIN
        and target_role in MANAGER_ROLES
    ):
        return AuthzDecision(False, "You cannot update administrator accounts")

    return AuthzDecision(True)


def authorize(
    requester: Requester,
    action: Action,
    target_role: Role | None = None,
) -> None:
    """Raise ``ForbiddenError`` unless ``evaluate()`` allows the action."""
    decision = evaluate(requester.role, action, target_role)
    if not decision.allowed:
        logger.warning(
            "Denied %s for %s (role=%s, target=%s): %s",
            action.value, requester.user_id, requester.role.value,
            target_role.value if target_role else "-", decision.reason,
        )
        raise ForbiddenError(decision.reason)


def _find(records: list[dict], user_id: str) -> Employee | None:
    for raw in records:
        if raw.get("id") == user_id:
            return Employee.model_validate(raw)
    return None


async def resolve_requester(
    store: InMemoryKeyValueStore,
    user_id: str | None,
    tenant_id: str | None = None,
) -> Requester:
    """
    Map a bearer identity to a role.

    The configured super-admin id is trusted without lookup.  Everyone
    else must exist in the global employee list or, when a tenant is in
    context, in that tenant's user list.
    """
    if not user_id:
        raise UnauthorizedError("Authentication required")

    if user_id == settings.super_admin_id:
        return Requester(user_id=user_id, role=Role.SUPER_ADMIN, display_name="Super Admin")

    employee = _find(await store.get_json(EMPLOYEES_KEY) or [], user_id)
    if employee is None and tenant_id:
        employee = _find(await store.tenant(tenant_id).get_json(TENANT_USERS_KEY) or [], user_id)

    if employee is None:
        raise UnauthorizedError("User not found")

    return Requester(user_id=employee.id, role=employee.role, display_name=employee.username)
