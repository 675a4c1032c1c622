"""Trip document model and status lifecycle."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from fleetwatch.ingestion.normalize import safe_float, safe_str
from fleetwatch.models._base import FleetBaseModel, FleetEnum, FleetTimestamp
from fleetwatch.models.geo import Place


class TripStatus(FleetEnum):
    """Trip lifecycle, in order.

    ``pending → accepted → en-route-pickup → arrived → in-progress →
    {completed | cancelled}``
    """

    PENDING = "pending"
    ACCEPTED = "accepted"
    EN_ROUTE_PICKUP = "en-route-pickup"
    ARRIVED = "arrived"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES: tuple[TripStatus, ...] = (
    TripStatus.PENDING,
    TripStatus.ACCEPTED,
    TripStatus.EN_ROUTE_PICKUP,
    TripStatus.ARRIVED,
    TripStatus.IN_PROGRESS,
)
"""Statuses that take part in live tracking, in lifecycle order."""


class ServiceTier(FleetEnum):
    STANDARD = "standard"
    EXECUTIVE = "executive"
    LUXURY = "luxury"

    @classmethod
    def from_vehicle_type(cls, value: Any) -> ServiceTier:
        """Derive a tier from free-text vehicle type such as ``"Standard SUV"``."""
        text = (safe_str(value) or "").lower()
        if "luxury" in text:
            return cls.LUXURY
        if "executive" in text:
            return cls.EXECUTIVE
        return cls.STANDARD


class Trip(FleetBaseModel):
    """A trip document.

    ``pickup``/``destination`` are kept even when incomplete so that the
    ingestion layer can decide whether the trip is drawable
    (:attr:`has_geometry`).
    """

    id: str
    customer_id: str | None = None
    customer_name: str = "Unknown"
    customer_phone: str | None = None
    driver_id: str | None = None
    driver_name: str | None = None
    driver_phone: str | None = None
    pickup: Place | None = None
    destination: Place | None = None
    status: TripStatus = TripStatus.UNKNOWN
    fare: float = Field(default=0.0, ge=0.0)
    distance: float | None = None
    duration: float | None = None
    payment_method: str | None = None
    vehicle_type: str | None = None
    tier: ServiceTier | None = None
    created_at: FleetTimestamp = None
    accepted_at: FleetTimestamp = None
    started_at: FleetTimestamp = None
    completed_at: FleetTimestamp = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> TripStatus:
        return TripStatus(safe_str(value) or TripStatus.UNKNOWN.value)

    @field_validator("tier", mode="before")
    @classmethod
    def _coerce_tier(cls, value: Any) -> ServiceTier | None:
        text = safe_str(value)
        if text is None:
            return None
        try:
            return ServiceTier(text)
        except ValueError:
            return None

    @field_validator("fare", mode="before")
    @classmethod
    def _coerce_fare(cls, value: Any) -> float:
        parsed = safe_float(value)
        return 0.0 if parsed is None else parsed

    @field_validator("distance", "duration", mode="before")
    @classmethod
    def _coerce_optional_float(cls, value: Any) -> float | None:
        return safe_float(value)

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def has_geometry(self) -> bool:
        return (
            self.pickup is not None
            and self.pickup.is_complete
            and self.destination is not None
            and self.destination.is_complete
        )

    @property
    def service_tier(self) -> ServiceTier:
        if self.tier is not None:
            return self.tier
        return ServiceTier.from_vehicle_type(self.vehicle_type)
