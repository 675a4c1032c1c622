"""Data models for store documents and derived map data."""

from fleetwatch.models._base import FleetBaseModel, FleetEnum, FleetTimestamp
from fleetwatch.models.driver import Driver, DriverStatus, VehicleDescriptor
from fleetwatch.models.geo import GeoPoint, LonLat, Place, midpoint
from fleetwatch.models.route import ResolvedRoute
from fleetwatch.models.trip import ACTIVE_STATUSES, ServiceTier, Trip, TripStatus

__all__ = [
    "ACTIVE_STATUSES",
    "Driver",
    "DriverStatus",
    "FleetBaseModel",
    "FleetEnum",
    "FleetTimestamp",
    "GeoPoint",
    "LonLat",
    "Place",
    "ResolvedRoute",
    "ServiceTier",
    "Trip",
    "TripStatus",
    "VehicleDescriptor",
    "midpoint",
]
