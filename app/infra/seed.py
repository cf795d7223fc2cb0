# app/infra/seed.py
"""
Idempotent seeding of the baseline employee accounts.

``SeedBootstrap.ensure_ready()`` is awaited at the start of every API
request.  The first caller starts the seed body; concurrent callers await
the same in-flight future and later callers return immediately, so the
body runs at most once per process.

If the body raises, the cached future is dropped: the callers awaiting
that attempt see the exception, and the next call starts a fresh attempt.
"""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from app.admin.models import Employee, Permissions, Role
from app.config import settings
from app.infra.credential_log import CredentialLedger, new_credential_entry
from app.infra.kv_store import EMPLOYEES_KEY, InMemoryKeyValueStore
from app.infra.logging_config import get_logger

logger = get_logger(__name__)

SYSTEM_ACTOR = "system"


def hash_password(password: str) -> str:
    """Placeholder hash shared by seeding and account management (not secure)."""
    return f"hashed_{password}"


@dataclass(frozen=True)
class BaselineAccount:
    username: str
    password: str
    role: Role
    full_name: str
    email: str
    phone: str = ""
    fixed_id: str | None = None  # None → generated id


BASELINE_ACCOUNTS: tuple[BaselineAccount, ...] = (
    BaselineAccount(
        username="admin",
        password="admin123",
        role=Role.SUPER_ADMIN,
        full_name="System Admin",
        email="admin@rork.app",
        fixed_id=settings.super_admin_id,
    ),
    BaselineAccount(
        username="elena",
        password="bacon",
        role=Role.WORKER,
        full_name="elena",
        email="ichargetexas@gmail.com",
        phone="9034520052",
    ),
    BaselineAccount(
        username="testworker",
        password="testworker123",
        role=Role.WORKER,
        full_name="Test Worker",
        email="testworker@example.com",
        phone="5550001234",
    ),
)


class SeedState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class SeedBootstrap:
    """One-shot initialization guard around the seed body."""

    def __init__(
        self,
        store: InMemoryKeyValueStore,
        accounts: tuple[BaselineAccount, ...] = BASELINE_ACCOUNTS,
    ) -> None:
        self._store = store
        self._accounts = accounts
        self._credentials = CredentialLedger(store)
        self._future: asyncio.Future | None = None
        self.runs = 0  # seed bodies started, including failed ones

    @property
    def state(self) -> SeedState:
        if self._future is None:
            return SeedState.NOT_STARTED
        if not self._future.done():
            return SeedState.IN_PROGRESS
        return SeedState.DONE

    async def ensure_ready(self) -> None:
        if self._future is None:
            self._future = asyncio.ensure_future(self._run())
            self._future.add_done_callback(self._on_seed_done)
        # Shielded: a cancelled request must not cancel seeding for everyone else
        await asyncio.shield(self._future)

    @staticmethod
    def _on_seed_done(future: asyncio.Future) -> None:
        """Mark the outcome as retrieved; _run has already logged any failure."""
        if not future.cancelled():
            future.exception()

    async def _run(self) -> None:
        self.runs += 1
        try:
            await self._seed()
        except Exception:
            logger.error("Seeding failed; next request will retry", exc_info=True)
            self._future = None
            raise

    async def _seed(self) -> None:
        logger.info("Seed started")
        employees: list[dict] = await self._store.get_json(EMPLOYEES_KEY) or []
        existing = {str(e.get("username", "")).lower() for e in employees}

        added_credentials = []
        now = datetime.now(timezone.utc).isoformat()

        for account in self._accounts:
            if account.username.lower() in existing:
                continue

            creator_id = SYSTEM_ACTOR if account.role == Role.SUPER_ADMIN else settings.super_admin_id
            employee = Employee(
                id=account.fixed_id or f"emp_{uuid.uuid4().hex[:12]}_{account.username}",
                employee_id=str(len(employees) + 1).zfill(6),
                username=account.username,
                password_hash=hash_password(account.password),
                role=account.role,
                full_name=account.full_name,
                email=account.email,
                phone=account.phone,
                is_active=True,
                created_at=now,
                created_by=creator_id,
                permissions=Permissions.for_role(account.role),
            )
            employees.append(employee.to_json())
            existing.add(account.username.lower())
            added_credentials.append(
                new_credential_entry(
                    account.username,
                    account.password,
                    account.role,
                    created_by=SYSTEM_ACTOR if creator_id == SYSTEM_ACTOR else "Super Admin",
                    created_by_id=creator_id,
                )
            )
            logger.info("Seeded %s account '%s'", account.role.value, account.username)

        if added_credentials:
            await self._store.set_json(EMPLOYEES_KEY, employees)
            await self._credentials.append_many(added_credentials)

        logger.info(
            "Seed complete: %d employees (%d added)",
            len(employees), len(added_credentials),
        )
