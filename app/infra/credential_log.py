# app/infra/credential_log.py
"""
Credential ledger: plaintext passwords issued at account-creation time.

Administrators use it to hand credentials to new staff.  Entries are
never mutated, only appended and read back filtered.  Storing plaintext
here is a known security smell carried over from the mobile backend;
seeding and the admin "issued credentials" screen depend on it.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from app.admin.models import CredentialLogEntry, Role
from app.config import settings
from app.infra.kv_store import CREDENTIAL_LOGS_KEY, InMemoryKeyValueStore
from app.infra.logging_config import get_logger

logger = get_logger(__name__)


def new_credential_entry(
    username: str,
    password: str,
    role: Role | str,
    *,
    created_by: str,
    created_by_id: str,
) -> CredentialLogEntry:
    return CredentialLogEntry(
        id=f"cred_{uuid.uuid4().hex[:16]}",
        username=username,
        password=password,
        role=role.value if isinstance(role, Role) else role,
        created_at=datetime.now(timezone.utc).isoformat(),
        created_by=created_by,
        created_by_id=created_by_id,
    )


class CredentialLedger:
    """Per-tenant (or global) list stored under ``credential_logs``."""

    def __init__(self, store: InMemoryKeyValueStore) -> None:
        self._store = store

    async def _load(self, tenant_id: str | None) -> list[dict]:
        return await self._store.scoped(tenant_id).get_json(CREDENTIAL_LOGS_KEY) or []

    async def _save(self, tenant_id: str | None, logs: list[dict]) -> None:
        await self._store.scoped(tenant_id).set_json(CREDENTIAL_LOGS_KEY, logs)

    async def record(self, entry: CredentialLogEntry, tenant_id: str | None = None) -> None:
        """Insert at the head so the list reads most recent first."""
        logs = await self._load(tenant_id)
        logs.insert(0, entry.to_json())
        await self._save(tenant_id, logs)
        logger.info(
            "Credential logged for %s (created by %s)",
            entry.username, entry.created_by_id,
            extra={"tenant_id": tenant_id or "global"},
        )

    async def append_many(self, entries: list[CredentialLogEntry], tenant_id: str | None = None) -> None:
        """Append at the tail in one write (used by seeding)."""
        if not entries:
            return
        logs = await self._load(tenant_id)
        logs.extend(e.to_json() for e in entries)
        await self._save(tenant_id, logs)

    async def visible_to(self, user_id: str, tenant_id: str | None = None) -> list[CredentialLogEntry]:
        """
        Super admin sees the whole ledger; any other admin only the
        entries they created themselves.
        """
        logs = [CredentialLogEntry.model_validate(raw) for raw in await self._load(tenant_id)]
        if user_id == settings.super_admin_id:
            return logs
        return [e for e in logs if e.created_by_id == user_id]
