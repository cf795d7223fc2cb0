# app/core/dispatch/models.py
"""
Service requests, job acceptances and mileage-ledger entries.

Incoming coordinates are range-checked by pydantic.  Stored requests are
read back as plain dicts by the job service, because a stored location
may be missing or malformed and must surface as a domain
``ValidationError`` rather than a parsing failure.
"""
from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import Field

from app.core.base_model import CamelModel

Platform = Literal["ios", "android", "web", "windows", "macos", "unknown"]


class JobStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"


class Coordinates(CamelModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class AcceptorCoordinates(Coordinates):
    accuracy: float | None = None


class RequestLocation(Coordinates):
    address: str | None = None


class AcceptedBy(CamelModel):
    id: str | None = None
    name: str | None = None
    role: Literal["super_admin", "admin", "worker", "user"] | None = None


class JobAcceptanceLog(CamelModel):
    id: str
    accepted_at: str
    accepted_by: AcceptedBy | None = None
    coordinates: AcceptorCoordinates
    platform: Platform = "unknown"


class ServiceRequest(CamelModel):
    id: str
    tenant_id: str | None = None
    type: str
    name: str
    phone: str
    email: str
    title: str
    description: str = ""
    location: RequestLocation
    vehicle_info: str | None = None
    has_spare_tire: bool = False
    status: JobStatus = JobStatus.PENDING
    acceptance_logs: list[JobAcceptanceLog] = Field(default_factory=list)
    created_at: str


class DistanceModel(CamelModel):
    kilometers: float
    miles: float


class MileageLogEntry(CamelModel):
    id: str
    request_id: str
    job_name: str
    reference_number: str
    request_location: RequestLocation
    acceptor_location: Coordinates
    distance: DistanceModel
    is_round_trip: bool
    created_at: str


class RoundTripResult(CamelModel):
    request_id: str
    request_location: RequestLocation
    acceptor_location: Coordinates
    one_way_distance: DistanceModel
    round_trip_distance: DistanceModel


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class CreateJobRequest(CamelModel):
    """Customer-facing job submission."""

    type: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    email: str = ""
    title: str = Field(..., min_length=1)
    description: str = ""
    location: RequestLocation
    vehicle_info: str | None = None
    has_spare_tire: bool = False


class CreateTestJobRequest(CamelModel):
    tenant_id: str | None = None


class AcceptJobRequest(CamelModel):
    acceptor_coordinates: AcceptorCoordinates
    accepted_by: AcceptedBy | None = None
    platform: Platform | None = None
    tenant_id: str | None = None


class RoundTripRequest(CamelModel):
    acceptor_coordinates: Coordinates
    tenant_id: str | None = None


class MileageLogRequest(CamelModel):
    job_name: str = Field(..., min_length=1)
    reference_number: str = Field(..., min_length=1)
    acceptor_coordinates: Coordinates
    is_round_trip: bool = True
    tenant_id: str | None = None
