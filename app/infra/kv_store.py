# app/infra/kv_store.py
"""
In-memory key-value store with JSON helpers and tenant namespacing.

The store is a single-process, non-persistent map: contents live for the
lifetime of the process and are discarded on exit.  One instance is
created by the HTTP application lifespan and handed to every service.

Tenant scoping is a wrapper type (``TenantKeyValueStore``) over the same
root map.  Keys are stored as ``tenant:<tenantId>:<key>`` so the layout
matches the mobile backend this service replaces.

None of the operations raise: missing keys read as ``None`` and a stored
value that is not valid JSON reads as ``None`` from ``get_json``.

Read-modify-write sequences (read list → mutate → write list) are not
transactional.  Two requests touching the same key can lose an update if
they interleave across an ``await``.
"""
from __future__ import annotations

import json
from typing import Any

from app.infra.logging_config import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Storage key layout
# ---------------------------------------------------------------------------
# Global namespace
EMPLOYEES_KEY = "employees"
AUDIT_LOGS_KEY = "audit_logs"
CREDENTIAL_LOGS_KEY = "credential_logs"
SERVICE_REQUESTS_KEY = "service_requests"
MILEAGE_LOGS_KEY = "mileage_logs"

# Tenant namespace (relative to ``tenant:<id>:``)
TENANT_USERS_KEY = "users"
TENANT_REQUESTS_KEY = "requests"

TENANT_PREFIX = "tenant:"


def tenant_prefix(tenant_id: str) -> str:
    return f"{TENANT_PREFIX}{tenant_id}:"


class InMemoryKeyValueStore:
    """Process-local string → string map exposed through an async contract."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> str | None:
        value = self._data.get(key)
        logger.debug("GET %s: %s", key, "found" if value is not None else "not found")
        return value

    async def set(self, key: str, value: str) -> None:
        logger.debug("SET %s", key)
        self._data[key] = value

    async def delete(self, key: str) -> None:
        logger.debug("DELETE %s", key)
        self._data.pop(key, None)

    async def has(self, key: str) -> bool:
        return key in self._data

    async def keys(self) -> list[str]:
        return list(self._data.keys())

    async def clear(self) -> None:
        logger.info("CLEAR - removing %d keys", len(self._data))
        self._data.clear()

    async def get_json(self, key: str) -> Any | None:
        value = await self.get(key)
        if not value:
            return None
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            logger.error("Stored value for key=%s is not valid JSON", key)
            return None

    async def set_json(self, key: str, value: Any) -> None:
        await self.set(key, json.dumps(value))

    def tenant(self, tenant_id: str) -> "TenantKeyValueStore":
        """Return a view whose keys live under ``tenant:<tenant_id>:``."""
        return TenantKeyValueStore(self, tenant_id)

    def scoped(self, tenant_id: str | None) -> "InMemoryKeyValueStore | TenantKeyValueStore":
        """Tenant view when ``tenant_id`` is given, otherwise the global store."""
        return self.tenant(tenant_id) if tenant_id else self


class TenantKeyValueStore:
    """Tenant-namespaced view over a root store."""

    def __init__(self, root: InMemoryKeyValueStore, tenant_id: str) -> None:
        self._root = root
        self.tenant_id = tenant_id
        self._prefix = tenant_prefix(tenant_id)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> str | None:
        return await self._root.get(self._key(key))

    async def set(self, key: str, value: str) -> None:
        await self._root.set(self._key(key), value)

    async def delete(self, key: str) -> None:
        await self._root.delete(self._key(key))

    async def has(self, key: str) -> bool:
        return await self._root.has(self._key(key))

    async def get_json(self, key: str) -> Any | None:
        return await self._root.get_json(self._key(key))

    async def set_json(self, key: str, value: Any) -> None:
        await self._root.set_json(self._key(key), value)

    async def keys(self) -> list[str]:
        all_keys = await self._root.keys()
        return [
            k[len(self._prefix):]
            for k in all_keys
            if k.startswith(self._prefix)
        ]
