# tests/conftest.py
"""Pytest configuration and fixtures"""
import pytest
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.admin.service import EmployeeService
from app.core.dispatch.service import JobService
from app.infra.audit_log import AuditRecorder
from app.infra.kv_store import InMemoryKeyValueStore
from app.infra.seed import SeedBootstrap


SUPER_ADMIN_ID = "super_admin_001"
AUSTIN = (30.2672, -97.7431)
ACCEPTOR = (30.2500, -97.7500)


@pytest.fixture
def tenant_id():
    """Default tenant ID for tests"""
    return "test_tenant"


@pytest.fixture
def store():
    """Fresh in-memory store per test"""
    return InMemoryKeyValueStore()


@pytest.fixture
def seed(store):
    return SeedBootstrap(store)


@pytest.fixture
def employee_service(store):
    return EmployeeService(store, audit=AuditRecorder(store, max_entries=1000))


@pytest.fixture
def job_service(store):
    return JobService(store)


@pytest.fixture
def admin_headers():
    """Bearer identity of the built-in super admin"""
    return {"Authorization": f"Bearer {SUPER_ADMIN_ID}"}


@pytest.fixture
def austin_job_payload():
    """Acceptor position ~2 km south of the Austin test job"""
    return {
        "acceptorCoordinates": {"latitude": ACCEPTOR[0], "longitude": ACCEPTOR[1]},
    }
