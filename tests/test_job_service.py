# tests/test_job_service.py
"""
Tests for app/core/dispatch/service.py - job lifecycle.

Covers:
- create_test_job() / list_requests()
- accept_job()           - acceptance log, status, NOT_FOUND without writes
- calculate_round_trip() - distances, stored-location validation
- post_mileage_log()     - ledger append, one-way vs round trip, invalid locations
- concurrent accept_job() - last write wins
"""
from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError as PydanticValidationError

from app.core.dispatch.models import (
    AcceptedBy,
    AcceptorCoordinates,
    Coordinates,
    JobStatus,
)
from app.core.errors import NotFoundError, ValidationError
from app.infra.kv_store import (
    MILEAGE_LOGS_KEY,
    SERVICE_REQUESTS_KEY,
    TENANT_REQUESTS_KEY,
)

ACCEPTOR = Coordinates(latitude=30.2500, longitude=-97.7500)


async def _store_request(store, location):
    await store.set_json(SERVICE_REQUESTS_KEY, [{
        "id": "req-broken",
        "type": "roadside",
        "name": "X",
        "phone": "1",
        "email": "",
        "title": "Broken",
        "location": location,
        "status": "pending",
        "acceptanceLogs": [],
        "createdAt": "2024-01-01T00:00:00+00:00",
    }])


# ============================================================================
# Requests
# ============================================================================

class TestCreateAndList:
    @pytest.mark.asyncio
    async def test_create_test_job(self, store, job_service):
        job = await job_service.create_test_job()

        assert job.id.startswith("req-")
        assert job.status == JobStatus.PENDING
        assert job.acceptance_logs == []
        assert job.title == "Test Job - Tire Change"
        assert (job.location.latitude, job.location.longitude) == (30.2672, -97.7431)

        stored = await store.get_json(SERVICE_REQUESTS_KEY)
        assert stored[0]["id"] == job.id
        assert stored[0]["hasSpareTire"] is True

    @pytest.mark.asyncio
    async def test_tenant_job(self, store, job_service, tenant_id):
        job = await job_service.create_test_job(tenant_id)

        assert job.tenant_id == tenant_id
        assert await store.get_json(SERVICE_REQUESTS_KEY) is None
        assert (await store.tenant(tenant_id).get_json(TENANT_REQUESTS_KEY))[0]["id"] == job.id

    @pytest.mark.asyncio
    async def test_list_newest_first(self, job_service):
        first = await job_service.create_test_job()
        second = await job_service.create_test_job()

        ids = [r["id"] for r in await job_service.list_requests()]
        assert set(ids) == {first.id, second.id}
        assert ids[0] == second.id or first.created_at == second.created_at


# ============================================================================
# accept_job()
# ============================================================================

class TestAcceptJob:
    @pytest.mark.asyncio
    async def test_accept(self, job_service):
        job = await job_service.create_test_job()

        result = await job_service.accept_job(
            job.id,
            AcceptorCoordinates(latitude=30.25, longitude=-97.75),
            accepted_by=AcceptedBy(id="emp_1", name="elena", role="worker"),
            platform="ios",
        )

        assert result["success"] is True
        assert result["request"]["status"] == "scheduled"
        log = result["acceptanceLog"]
        assert log["platform"] == "ios"
        assert log["coordinates"]["accuracy"] is None
        assert log["acceptedBy"]["name"] == "elena"
        assert result["request"]["acceptanceLogs"] == [log]

    @pytest.mark.asyncio
    async def test_platform_defaults_to_unknown(self, job_service):
        job = await job_service.create_test_job()
        result = await job_service.accept_job(
            job.id, AcceptorCoordinates(latitude=30.25, longitude=-97.75, accuracy=12.5),
        )
        assert result["acceptanceLog"]["platform"] == "unknown"
        assert result["acceptanceLog"]["coordinates"]["accuracy"] == 12.5

    @pytest.mark.asyncio
    async def test_reaccept_appends(self, store, job_service):
        job = await job_service.create_test_job()
        coords = AcceptorCoordinates(latitude=30.25, longitude=-97.75)
        await job_service.accept_job(job.id, coords)
        await job_service.accept_job(job.id, coords)

        stored = (await store.get_json(SERVICE_REQUESTS_KEY))[0]
        assert len(stored["acceptanceLogs"]) == 2
        assert stored["status"] == "scheduled"

    @pytest.mark.asyncio
    async def test_missing_request_leaves_store_untouched(self, store, job_service):
        await job_service.create_test_job()
        before = await store.get(SERVICE_REQUESTS_KEY)

        with pytest.raises(NotFoundError, match="Request not found"):
            await job_service.accept_job(
                "req-missing", AcceptorCoordinates(latitude=30.25, longitude=-97.75),
            )

        assert await store.get(SERVICE_REQUESTS_KEY) == before


# ============================================================================
# calculate_round_trip()
# ============================================================================

class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_austin_distances(self, job_service):
        job = await job_service.create_test_job()
        result = await job_service.calculate_round_trip(job.id, ACCEPTOR)

        assert result.request_id == job.id
        assert result.one_way_distance.kilometers == 2.02
        assert result.one_way_distance.miles == 1.26
        assert result.round_trip_distance.kilometers == 4.05
        assert result.round_trip_distance.miles == 2.52
        assert result.request_location.address == "Austin, TX"

        payload = result.to_json()
        assert payload["acceptorLocation"] == {"latitude": 30.25, "longitude": -97.75}
        assert set(payload) == {
            "requestId", "requestLocation", "acceptorLocation",
            "oneWayDistance", "roundTripDistance",
        }

    @pytest.mark.asyncio
    async def test_same_point_is_zero(self, job_service):
        job = await job_service.create_test_job()
        result = await job_service.calculate_round_trip(
            job.id, Coordinates(latitude=30.2672, longitude=-97.7431),
        )
        assert result.round_trip_distance.kilometers == 0.0

    @pytest.mark.asyncio
    async def test_missing_request(self, job_service):
        with pytest.raises(NotFoundError):
            await job_service.calculate_round_trip("req-missing", ACCEPTOR)

    @pytest.mark.asyncio
    async def test_missing_location(self, store, job_service):
        await _store_request(store, None)
        with pytest.raises(ValidationError, match="Invalid request location data"):
            await job_service.calculate_round_trip("req-broken", ACCEPTOR)

    @pytest.mark.asyncio
    async def test_non_numeric_location(self, store, job_service):
        await _store_request(store, {"latitude": "30.2", "longitude": -97.7})
        with pytest.raises(ValidationError, match="Invalid request location data"):
            await job_service.calculate_round_trip("req-broken", ACCEPTOR)

    @pytest.mark.asyncio
    async def test_out_of_range_location(self, store, job_service):
        await _store_request(store, {"latitude": 95, "longitude": -97.7})
        with pytest.raises(ValidationError, match="out of valid range") as exc_info:
            await job_service.calculate_round_trip("req-broken", ACCEPTOR)
        assert exc_info.value.code == "VALIDATION"

    def test_acceptor_latitude_95_rejected(self):
        with pytest.raises(PydanticValidationError):
            Coordinates(latitude=95, longitude=0)


# ============================================================================
# post_mileage_log() / list_mileage_logs()
# ============================================================================

class TestMileageLog:
    @pytest.mark.asyncio
    async def test_round_trip_entry(self, store, job_service):
        job = await job_service.create_test_job()
        entry = await job_service.post_mileage_log(job.id, "Tire change", "REF-1", ACCEPTOR)

        assert entry.id.startswith("mileage-")
        assert entry.is_round_trip is True
        assert entry.distance.kilometers == 4.05
        assert entry.distance.miles == 2.52

        stored = await store.get_json(MILEAGE_LOGS_KEY)
        assert stored == [entry.to_json()]
        assert stored[0]["referenceNumber"] == "REF-1"

    @pytest.mark.asyncio
    async def test_one_way_entry(self, job_service):
        job = await job_service.create_test_job()
        entry = await job_service.post_mileage_log(
            job.id, "Tire change", "REF-2", ACCEPTOR, is_round_trip=False,
        )
        assert entry.distance.kilometers == 2.02
        assert entry.distance.miles == 1.26

    @pytest.mark.asyncio
    async def test_does_not_require_acceptance(self, job_service):
        job = await job_service.create_test_job()
        entry = await job_service.post_mileage_log(job.id, "Jump start", "REF-3", ACCEPTOR)
        assert entry.request_id == job.id

    @pytest.mark.asyncio
    async def test_missing_request_writes_nothing(self, store, job_service):
        with pytest.raises(NotFoundError):
            await job_service.post_mileage_log("req-missing", "x", "y", ACCEPTOR)
        assert await store.get_json(MILEAGE_LOGS_KEY) is None

    @pytest.mark.asyncio
    async def test_tenant_ledger(self, store, job_service, tenant_id):
        job = await job_service.create_test_job(tenant_id)
        await job_service.post_mileage_log(job.id, "x", "y", ACCEPTOR, tenant_id=tenant_id)

        assert await store.get_json(MILEAGE_LOGS_KEY) is None
        assert len(await store.tenant(tenant_id).get_json(MILEAGE_LOGS_KEY)) == 1
        assert len(await job_service.list_mileage_logs(tenant_id)) == 1
        assert await job_service.list_mileage_logs() == []

    @pytest.mark.asyncio
    async def test_out_of_range_location_writes_nothing(self, store, job_service):
        await _store_request(store, {"latitude": 95, "longitude": 0})
        with pytest.raises(ValidationError) as exc_info:
            await job_service.post_mileage_log("req-broken", "x", "y", ACCEPTOR)

        assert exc_info.value.code == "VALIDATION"
        assert await store.get_json(MILEAGE_LOGS_KEY) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("location", [None, {"latitude": "30.2", "longitude": -97.7}])
    async def test_invalid_location_writes_nothing(self, store, job_service, location):
        await _store_request(store, location)
        with pytest.raises(ValidationError, match="Invalid request location data"):
            await job_service.post_mileage_log("req-broken", "x", "y", ACCEPTOR)

        assert await store.get_json(MILEAGE_LOGS_KEY) is None


# ============================================================================
# Concurrent read-modify-write
# ============================================================================

class TestConcurrentAccept:
    @pytest.mark.asyncio
    async def test_interleaved_accepts_lose_an_update(self, store, job_service):
        """Request list updates are not transactional: the last write wins."""
        job = await job_service.create_test_job()
        real_get = store.get

        async def yielding_get(key):
            value = await real_get(key)
            await asyncio.sleep(0)
            return value

        store.get = yielding_get
        coords = AcceptorCoordinates(latitude=30.25, longitude=-97.75)
        results = await asyncio.gather(
            job_service.accept_job(job.id, coords),
            job_service.accept_job(job.id, coords),
        )

        assert all(r["success"] for r in results)
        stored = (await store.get_json(SERVICE_REQUESTS_KEY))[0]
        assert len(stored["acceptanceLogs"]) == 1
        assert stored["status"] == "scheduled"
