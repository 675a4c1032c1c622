"""Resolved route model."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fleetwatch.models.geo import LonLat, Place


class ResolvedRoute(BaseModel):
    """A drawable path for one trip.

    Parameters
    ----------
    trip_id : str
        Identifier of the trip this route belongs to.
    coordinates : tuple of (lon, lat)
        Ordered path from pickup to destination.
    fallback : bool
        ``True`` when the router failed and the path is the straight
        pickup → destination segment.
    resolved_at : datetime
        When the route entered the cache.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    trip_id: str
    coordinates: tuple[LonLat, ...]
    fallback: bool = False
    resolved_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("coordinates")
    @classmethod
    def _require_path(cls, value: tuple[LonLat, ...]) -> tuple[LonLat, ...]:
        if len(value) < 2:
            raise ValueError("a route needs at least two coordinates")
        return value

    @classmethod
    def straight(cls, trip_id: str, pickup: Place, destination: Place) -> ResolvedRoute:
        """Two-point route used when resolution fails."""
        return cls(
            trip_id=trip_id,
            coordinates=(pickup.lon_lat, destination.lon_lat),
            fallback=True,
        )
