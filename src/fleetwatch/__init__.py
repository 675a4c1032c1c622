"""fleetwatch - Live fleet tracking core for a ride-hailing admin console."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetwatch")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetwatch.config import FleetConfig, RoutingProfile
from fleetwatch.exceptions import (
    FleetConfigError,
    FleetError,
    RoutingError,
    SnapshotDecodeError,
    StoreConnectionError,
    StoreError,
)
from fleetwatch.ingestion.sync import EntityStreamSynchronizer, LiveSet, SyncStatus, subscribe_collection
from fleetwatch.models import (
    ACTIVE_STATUSES,
    Driver,
    DriverStatus,
    GeoPoint,
    Place,
    ResolvedRoute,
    ServiceTier,
    Trip,
    TripStatus,
    VehicleDescriptor,
)
from fleetwatch.projector import MapProjector, MapScene, MapSurface, MarkerPlacement, RoutePlacement
from fleetwatch.reports import CompletedSummary, CompletedTripsReport
from fleetwatch.routing import OsrmRoutingClient, RouteResolver, RoutingClient
from fleetwatch.selection import SelectionAndFilterController, Viewport
from fleetwatch.state import DashboardStateStore, DashboardStats
from fleetwatch.store import DocumentStore, InMemoryDocumentStore
from fleetwatch.tracker import FleetTracker

__all__ = [
    "__version__",
    "ACTIVE_STATUSES",
    "CompletedSummary",
    "CompletedTripsReport",
    "DashboardStateStore",
    "DashboardStats",
    "DocumentStore",
    "Driver",
    "DriverStatus",
    "EntityStreamSynchronizer",
    "FleetConfig",
    "FleetConfigError",
    "FleetError",
    "FleetTracker",
    "GeoPoint",
    "InMemoryDocumentStore",
    "LiveSet",
    "MapProjector",
    "MapScene",
    "MapSurface",
    "MarkerPlacement",
    "OsrmRoutingClient",
    "Place",
    "ResolvedRoute",
    "RoutePlacement",
    "RouteResolver",
    "RoutingClient",
    "RoutingError",
    "RoutingProfile",
    "SelectionAndFilterController",
    "ServiceTier",
    "SnapshotDecodeError",
    "StoreConnectionError",
    "StoreError",
    "SyncStatus",
    "Trip",
    "TripStatus",
    "VehicleDescriptor",
    "Viewport",
    "subscribe_collection",
]
