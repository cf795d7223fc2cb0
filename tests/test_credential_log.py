# tests/test_credential_log.py
"""Tests for app/infra/credential_log.py - plaintext credential ledger."""
from __future__ import annotations

import pytest

from app.admin.models import Role
from app.infra.credential_log import CredentialLedger, new_credential_entry
from app.infra.kv_store import CREDENTIAL_LOGS_KEY


def _entry(username: str, creator_id: str):
    return new_credential_entry(
        username, "pw123456", Role.WORKER, created_by=creator_id, created_by_id=creator_id,
    )


class TestNewCredentialEntry:
    def test_fields(self):
        entry = new_credential_entry(
            "mike", "secret", Role.ADMIN, created_by="Super Admin", created_by_id="super_admin_001",
        )
        assert entry.id.startswith("cred_")
        assert entry.role == "admin"
        assert entry.password == "secret"
        assert entry.to_json()["createdById"] == "super_admin_001"


class TestCredentialLedger:
    @pytest.mark.asyncio
    async def test_record_inserts_at_head(self, store):
        ledger = CredentialLedger(store)
        await ledger.record(_entry("a", "x"))
        await ledger.record(_entry("b", "x"))

        raw = await store.get_json(CREDENTIAL_LOGS_KEY)
        assert [c["username"] for c in raw] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_append_many_appends_at_tail(self, store):
        ledger = CredentialLedger(store)
        await ledger.record(_entry("a", "x"))
        await ledger.append_many([_entry("b", "x"), _entry("c", "x")])
        await ledger.append_many([])

        raw = await store.get_json(CREDENTIAL_LOGS_KEY)
        assert [c["username"] for c in raw] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_visibility(self, store):
        ledger = CredentialLedger(store)
        await ledger.record(_entry("by_a", "admin_a"))
        await ledger.record(_entry("by_b", "admin_b"))

        assert [e.username for e in await ledger.visible_to("admin_a")] == ["by_a"]
        assert [e.username for e in await ledger.visible_to("admin_b")] == ["by_b"]
        assert await ledger.visible_to("nobody") == []
        assert len(await ledger.visible_to("super_admin_001")) == 2

    @pytest.mark.asyncio
    async def test_tenant_ledger(self, store, tenant_id):
        ledger = CredentialLedger(store)
        await ledger.record(_entry("t_user", "admin_a"), tenant_id)

        assert await store.get_json(CREDENTIAL_LOGS_KEY) is None
        assert len(await ledger.visible_to("admin_a", tenant_id)) == 1
        assert await ledger.visible_to("admin_a") == []
