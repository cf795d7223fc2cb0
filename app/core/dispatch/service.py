# app/core/dispatch/service.py
"""
Job lifecycle: create → accept → round-trip distance → mileage ledger.

Each step is a separate operation over the persisted request list
(``service_requests`` globally, ``tenant:<id>:requests`` per tenant).
Posting a mileage log does not require a prior acceptance; distance is
recomputed from the supplied coordinates every time.

Re-accepting a job is allowed: acceptance logs accumulate and the status
stays ``scheduled``.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from app.core.dispatch.geo import distance_pair, haversine_km, is_valid_coordinate
from app.core.dispatch.models import (
    AcceptedBy,
    AcceptorCoordinates,
    Coordinates,
    CreateJobRequest,
    DistanceModel,
    JobAcceptanceLog,
    JobStatus,
    MileageLogEntry,
    Platform,
    RequestLocation,
    RoundTripResult,
    ServiceRequest,
)
from app.core.errors import NotFoundError, ValidationError
from app.infra.kv_store import (
    MILEAGE_LOGS_KEY,
    SERVICE_REQUESTS_KEY,
    TENANT_REQUESTS_KEY,
    InMemoryKeyValueStore,
)
from app.infra.logging_config import LogContext, get_logger, mask_coordinates

logger = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _validated_location(request_id: str, raw: dict[str, Any]) -> RequestLocation:
    """Check the stored location before any distance maths."""
    location = raw.get("location")
    if not isinstance(location, dict):
        logger.error("Request %s has no location", request_id)
        raise ValidationError("Invalid request location data")

    lat = location.get("latitude")
    lon = location.get("longitude")
    if not all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (lat, lon)):
        logger.error("Request %s has a non-numeric location: %r", request_id, location)
        raise ValidationError("Invalid request location data")

    if not is_valid_coordinate(lat, lon):
        logger.error("Request %s coordinates out of range: %s, %s", request_id, lat, lon)
        raise ValidationError("Request coordinates are out of valid range")

    return RequestLocation(latitude=lat, longitude=lon, address=location.get("address"))


class JobService:
    """Orchestrates the job lifecycle over the injected store."""

    def __init__(self, store: InMemoryKeyValueStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Storage helpers
    # ------------------------------------------------------------------

    def _requests_location(self, tenant_id: str | None):
        if tenant_id:
            return self._store.tenant(tenant_id), TENANT_REQUESTS_KEY
        return self._store, SERVICE_REQUESTS_KEY

    async def _load_requests(self, tenant_id: str | None) -> list[dict[str, Any]]:
        store, key = self._requests_location(tenant_id)
        return await store.get_json(key) or []

    async def _save_requests(self, tenant_id: str | None, requests: list[dict[str, Any]]) -> None:
        store, key = self._requests_location(tenant_id)
        await store.set_json(key, requests)

    async def _get_request(self, request_id: str, tenant_id: str | None) -> dict[str, Any]:
        requests = await self._load_requests(tenant_id)
        for raw in requests:
            if raw.get("id") == request_id:
                return raw
        logger.error(
            "Request %s not found among %d requests", request_id, len(requests),
            extra={"tenant_id": tenant_id or "global"},
        )
        raise NotFoundError("Request not found")

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def create_job(self, req: CreateJobRequest, tenant_id: str | None = None) -> ServiceRequest:
        job = ServiceRequest(
            id=_new_id("req"),
            tenant_id=tenant_id,
            created_at=_now(),
            **req.model_dump(),
        )
        requests = await self._load_requests(tenant_id)
        requests.append(job.to_json())
        await self._save_requests(tenant_id, requests)

        LogContext(logger, tenant_id=tenant_id, job_id=job.id).info("Job created: %s", job.title)
        return job

    async def create_test_job(self, tenant_id: str | None = None) -> ServiceRequest:
        """Fixed roadside job in Austin, TX used to exercise the mileage flow."""
        return await self.create_job(
            CreateJobRequest(
                type="roadside",
                name="Test Customer",
                phone="555-0123",
                email="test@example.com",
                title="Test Job - Tire Change",
                description="Test job for mileage calculation",
                location=RequestLocation(latitude=30.2672, longitude=-97.7431, address="Austin, TX"),
                vehicle_info="2020 Toyota Camry",
                has_spare_tire=True,
            ),
            tenant_id,
        )

    async def list_requests(self, tenant_id: str | None = None) -> list[dict[str, Any]]:
        requests = await self._load_requests(tenant_id)
        return sorted(requests, key=lambda r: r.get("createdAt", ""), reverse=True)

    async def accept_job(
        self,
        request_id: str,
        coordinates: AcceptorCoordinates,
        accepted_by: AcceptedBy | None = None,
        platform: Platform | None = None,
        tenant_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Append an acceptance log and move the job to ``scheduled``.

        Raises ``NotFoundError`` without writing when the id is unknown.
        """
        requests = await self._load_requests(tenant_id)
        raw = next((r for r in requests if r.get("id") == request_id), None)
        if raw is None:
            logger.error("Cannot accept %s: request not found", request_id)
            raise NotFoundError("Request not found")

        acceptance = JobAcceptanceLog(
            id=_new_id("acceptance"),
            accepted_at=_now(),
            accepted_by=accepted_by,
            coordinates=AcceptorCoordinates(
                latitude=coordinates.latitude,
                longitude=coordinates.longitude,
                accuracy=coordinates.accuracy,
            ),
            platform=platform or "unknown",
        )

        raw.setdefault("acceptanceLogs", []).append(acceptance.to_json())
        raw["status"] = JobStatus.SCHEDULED.value
        await self._save_requests(tenant_id, requests)

        LogContext(logger, tenant_id=tenant_id, job_id=request_id).info(
            "Job accepted at %s (acceptances=%d)",
            mask_coordinates(coordinates.latitude, coordinates.longitude),
            len(raw["acceptanceLogs"]),
        )
        return {"success": True, "request": raw, "acceptanceLog": acceptance.to_json()}

    # ------------------------------------------------------------------
    # Distance / mileage
    # ------------------------------------------------------------------

    async def _one_way_km(
        self,
        request_id: str,
        coordinates: Coordinates,
        tenant_id: str | None,
    ) -> tuple[RequestLocation, float]:
        raw = await self._get_request(request_id, tenant_id)
        location = _validated_location(request_id, raw)
        km = haversine_km(
            location.latitude, location.longitude,
            coordinates.latitude, coordinates.longitude,
        )
        return location, km

    async def calculate_round_trip(
        self,
        request_id: str,
        coordinates: Coordinates,
        tenant_id: str | None = None,
    ) -> RoundTripResult:
        location, one_way_km = await self._one_way_km(request_id, coordinates, tenant_id)
        one_way = distance_pair(one_way_km)
        round_trip = distance_pair(one_way_km * 2)

        LogContext(logger, tenant_id=tenant_id, job_id=request_id).info(
            "Round trip: one-way %.2f km (%.2f mi), round trip %.2f km (%.2f mi)",
            one_way.kilometers, one_way.miles, round_trip.kilometers, round_trip.miles,
        )
        return RoundTripResult(
            request_id=request_id,
            request_location=location,
            acceptor_location=Coordinates(latitude=coordinates.latitude, longitude=coordinates.longitude),
            one_way_distance=DistanceModel(**one_way.as_dict()),
            round_trip_distance=DistanceModel(**round_trip.as_dict()),
        )

    async def post_mileage_log(
        self,
        request_id: str,
        job_name: str,
        reference_number: str,
        coordinates: Coordinates,
        is_round_trip: bool = True,
        tenant_id: str | None = None,
    ) -> MileageLogEntry:
        """Compute the distance and append one entry to the mileage ledger."""
        location, one_way_km = await self._one_way_km(request_id, coordinates, tenant_id)
        distance = distance_pair(one_way_km * 2 if is_round_trip else one_way_km)

        entry = MileageLogEntry(
            id=_new_id("mileage"),
            request_id=request_id,
            job_name=job_name,
            reference_number=reference_number,
            request_location=location,
            acceptor_location=Coordinates(latitude=coordinates.latitude, longitude=coordinates.longitude),
            distance=DistanceModel(**distance.as_dict()),
            is_round_trip=is_round_trip,
            created_at=_now(),
        )

        ledger = self._store.scoped(tenant_id)
        logs = await ledger.get_json(MILEAGE_LOGS_KEY) or []
        logs.append(entry.to_json())
        await ledger.set_json(MILEAGE_LOGS_KEY, logs)

        LogContext(logger, tenant_id=tenant_id, job_id=request_id).info(
            "Mileage log %s: %.2f km (%.2f mi) %s",
            entry.id, distance.kilometers, distance.miles,
            "round trip" if is_round_trip else "one way",
        )
        return entry

    async def list_mileage_logs(self, tenant_id: str | None = None) -> list[MileageLogEntry]:
        logs = await self._store.scoped(tenant_id).get_json(MILEAGE_LOGS_KEY) or []
        entries = [MileageLogEntry.model_validate(raw) for raw in logs]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        return entries
