# app/infra/audit_log.py
"""
Audit logging for authentication and account-management events.

Two sinks:

1. ``audit_event()`` writes a structured record to a dedicated logger
   named "audit" (separate from the application log) so it can be routed
   to its own file / sink via logging configuration.
2. ``AuditRecorder`` persists entries to the ``audit_logs`` ledger in the
   key-value store so administrators can query them.  The ledger is a
   sliding window: after each append only the most recent
   ``settings.audit_log_max_entries`` entries are kept.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from app.admin.models import AuditAction, AuditLogEntry, AuditLogQuery
from app.config import settings
from app.core.ports import AsyncKeyValueStore
from app.infra.kv_store import AUDIT_LOGS_KEY

_audit_logger = logging.getLogger("audit")


def audit_event(
    action: str,
    *,
    username: str | None = None,
    user_id: str | None = None,
    tenant_id: str | None = None,
    detail: str = "",
    extra: dict[str, Any] | None = None,
) -> None:
    """
    Record an audit event on the "audit" logger.

    Args:
        action: Action name (e.g., "login_success", "user_created")
        username: Account the event is about
        user_id: Identity that performed the action (if known)
        tenant_id: Tenant affected (if applicable)
        detail: Human-readable detail
        extra: Additional structured context
    """
    record = {
        "audit_action": action,
        "username": username or "",
        "user_id": user_id or "",
        "tenant_id": tenant_id or "",
        "detail": detail,
    }
    if extra:
        record.update(extra)

    _audit_logger.info(
        f"AUDIT: {action} username={username or '-'} user={user_id or '-'} "
        f"tenant={tenant_id or '-'} {detail}",
        extra=record,
    )


def _new_audit_id() -> str:
    return f"audit_{uuid.uuid4().hex[:16]}"


class AuditRecorder:
    """Append-only, size-bounded audit ledger backed by the key-value store."""

    def __init__(self, store: AsyncKeyValueStore, max_entries: int | None = None) -> None:
        self._store = store
        self._max_entries = max_entries if max_entries is not None else settings.audit_log_max_entries

    async def _load(self) -> list[dict]:
        return await self._store.get_json(AUDIT_LOGS_KEY) or []

    async def log_entry(
        self,
        username: str,
        action: AuditAction,
        *,
        details: str | None = None,
        user_id: str | None = None,
    ) -> AuditLogEntry:
        entry = AuditLogEntry(
            id=_new_audit_id(),
            timestamp=datetime.now(timezone.utc).isoformat(),
            username=username,
            action=action,
            details=details,
            user_id=user_id,
        )

        logs = await self._load()
        logs.append(entry.to_json())
        # Oldest-first eviction
        logs = logs[-self._max_entries:] if self._max_entries > 0 else []
        await self._store.set_json(AUDIT_LOGS_KEY, logs)

        audit_event(
            action.value,
            username=username,
            user_id=user_id,
            detail=details or "",
        )
        return entry

    async def entries(self) -> list[AuditLogEntry]:
        """All retained entries in insertion order."""
        return [AuditLogEntry.model_validate(raw) for raw in await self._load()]

    async def query(self, query: AuditLogQuery) -> list[AuditLogEntry]:
        """
        Filter and page the ledger.

        ``action`` is an exact match, ``username`` a case-insensitive
        substring match.  Results are newest first.
        """
        logs = await self.entries()

        if query.action is not None:
            logs = [e for e in logs if e.action == query.action]

        if query.username:
            needle = query.username.lower()
            logs = [e for e in logs if needle in e.username.lower()]

        # Reversed first so entries sharing a timestamp stay newest first
        logs.reverse()
        logs.sort(key=lambda e: e.timestamp, reverse=True)
        return logs[:query.limit]
