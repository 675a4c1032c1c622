"""Driver document model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from fleetwatch.ingestion.normalize import safe_float, safe_str
from fleetwatch.models._base import FleetBaseModel, FleetEnum
from fleetwatch.models.geo import GeoPoint


class DriverStatus(FleetEnum):
    ONLINE = "online"
    OFFLINE = "offline"
    BUSY = "busy"
    UNKNOWN = "unknown"


class VehicleDescriptor(BaseModel):
    """The car a driver is operating."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    model: str | None = None
    plate: str | None = None
    color: str | None = None
    type: str | None = None

    @field_validator("model", "plate", "color", "type", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str | None:
        return safe_str(value)


class Driver(FleetBaseModel):
    """A driver document.

    ``location`` is ``None`` when the document carries no usable fix; such
    drivers never reach the map.
    """

    id: str
    name: str = "Unknown"
    status: DriverStatus = DriverStatus.OFFLINE
    location: GeoPoint | None = None
    vehicle: VehicleDescriptor | None = None
    phone: str | None = None
    email: str | None = None
    rating: float | None = None
    total_trips: int | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> DriverStatus:
        return DriverStatus(safe_str(value) or DriverStatus.OFFLINE.value)

    @field_validator("location", mode="after")
    @classmethod
    def _drop_incomplete_location(cls, value: GeoPoint | None) -> GeoPoint | None:
        if value is None or not value.is_complete:
            return None
        return value

    @field_validator("rating", mode="before")
    @classmethod
    def _coerce_rating(cls, value: Any) -> float | None:
        return safe_float(value)

    @property
    def is_online(self) -> bool:
        return self.status == DriverStatus.ONLINE

    @property
    def initial(self) -> str:
        return (self.name or "D")[:1].upper()
