"""Geographic value types."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from fleetwatch.ingestion.normalize import safe_coordinate, safe_str

LonLat = tuple[float, float]
"""A ``(longitude, latitude)`` pair, the order map surfaces and routers use."""


class GeoPoint(BaseModel):
    """A latitude/longitude position.

    Both coordinates are ``None`` when absent, zero or unparseable;
    :attr:`is_complete` tells whether the point can be drawn.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    latitude: float | None = Field(default=None, validation_alias=AliasChoices("latitude", "lat"))
    longitude: float | None = Field(
        default=None,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _coerce_coordinates(cls, value: Any) -> float | None:
        return safe_coordinate(value)

    @property
    def is_complete(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def lon_lat(self) -> LonLat:
        if self.latitude is None or self.longitude is None:
            raise ValueError("point has no coordinates")
        return (self.longitude, self.latitude)


class Place(GeoPoint):
    """A named pickup or destination point."""

    name: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return safe_str(value) or ""


def midpoint(a: GeoPoint, b: GeoPoint) -> LonLat:
    """Arithmetic midpoint of two points as ``(lon, lat)``."""
    a_lon, a_lat = a.lon_lat
    b_lon, b_lat = b.lon_lat
    return ((a_lon + b_lon) / 2.0, (a_lat + b_lat) / 2.0)
