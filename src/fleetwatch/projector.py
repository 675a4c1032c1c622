"""Translate live state into map primitives.

The projector is pure: given drivers, active trips, cached routes and the
selection/filter state it builds a :class:`MapScene`.  :meth:`MapProjector.render`
pushes a scene onto any object implementing :class:`MapSurface`.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from fleetwatch.ingestion.sync import SyncStatus
from fleetwatch.models.driver import Driver, DriverStatus
from fleetwatch.models.geo import LonLat
from fleetwatch.models.route import ResolvedRoute
from fleetwatch.models.trip import Trip, TripStatus
from fleetwatch.selection import SelectionAndFilterController, Viewport

DRIVER_STATUS_COLORS: dict[DriverStatus, str] = {
    DriverStatus.ONLINE: "#10b981",
    DriverStatus.BUSY: "#f59e0b",
    DriverStatus.OFFLINE: "#6b7280",
    DriverStatus.UNKNOWN: "#6b7280",
}

TRIP_STATUS_COLORS: dict[TripStatus, str] = {
    TripStatus.PENDING: "#f59e0b",
    TripStatus.ACCEPTED: "#3b82f6",
    TripStatus.EN_ROUTE_PICKUP: "#8b5cf6",
    TripStatus.ARRIVED: "#06b6d4",
    TripStatus.IN_PROGRESS: "#10b981",
}
DEFAULT_TRIP_COLOR = "#6b7280"
SELECTED_ROUTE_COLOR = "#ef4444"

ROUTE_WIDTH = 4.0
SELECTED_ROUTE_WIDTH = 7.0
ROUTE_OPACITY = 0.6
SELECTED_ROUTE_OPACITY = 0.95
PENDING_DASH: tuple[float, ...] = (2.0, 2.0)

NO_DRIVERS_NOTICE = "No drivers with location data"
STALE_DATA_NOTICE = "Live updates interrupted, showing last known data"


class MarkerKind(StrEnum):
    DRIVER = "driver"
    PICKUP = "pickup"
    DESTINATION = "destination"


class MarkerIcon(StrEnum):
    DRIVER = "driver"
    CUSTOMER = "customer"
    FLAG = "flag"


@dataclass(frozen=True)
class MarkerPlacement:
    key: str
    kind: MarkerKind
    coordinate: LonLat
    icon: MarkerIcon
    color: str
    tooltip: Mapping[str, str]
    label: str | None = None
    on_click: Callable[[], object] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class RoutePlacement:
    trip_id: str
    coordinates: tuple[LonLat, ...]
    color: str
    width: float
    opacity: float
    dash: tuple[float, ...] | None = None
    selected: bool = False
    fallback: bool = False
    on_click: Callable[[], object] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class MapScene:
    """Everything the rendering surface needs for one frame.

    ``routes`` are in draw order (selected route last).
    """

    markers: tuple[MarkerPlacement, ...]
    routes: tuple[RoutePlacement, ...]
    viewport: Viewport
    selected_trip_id: str | None = None
    notice: str | None = None

    def trip_ids(self) -> frozenset[str]:
        ids = {route.trip_id for route in self.routes}
        ids.update(marker.key.split(":", 1)[1] for marker in self.markers if marker.kind != MarkerKind.DRIVER)
        return frozenset(ids)


class MapSurface(Protocol):
    """Rendering surface the scene is drawn onto."""

    def clear(self) -> None: ...

    def place_marker(self, marker: MarkerPlacement) -> None: ...

    def place_route(self, route: RoutePlacement) -> None: ...

    def set_viewport(self, center: LonLat, zoom: float) -> None: ...


def _driver_tooltip(driver: Driver) -> dict[str, str]:
    tooltip = {"name": driver.name, "status": driver.status.value}
    vehicle = driver.vehicle
    if vehicle is not None:
        if vehicle.model:
            tooltip["vehicle"] = vehicle.model
        if vehicle.plate:
            tooltip["plate"] = vehicle.plate
        if vehicle.color:
            tooltip["color"] = vehicle.color
    return tooltip


def _trip_tooltip(trip: Trip, place_name: str) -> dict[str, str]:
    tooltip = {
        "trip": trip.id,
        "place": place_name,
        "customer": trip.customer_name,
        "status": trip.status.value,
        "fare": f"{trip.fare:.2f}",
    }
    if trip.driver_name:
        tooltip["driver"] = trip.driver_name
    return tooltip


class MapProjector:
    """Builds map scenes from live state.

    Parameters
    ----------
    controller
        Selection/filter state; read for every projection.
    on_select
        Called with a trip id when a pickup marker or route line is clicked.
    """

    def __init__(
        self,
        controller: SelectionAndFilterController,
        *,
        on_select: Callable[[str], object] | None = None,
    ) -> None:
        self._controller = controller
        self._on_select = on_select

    def _click_handler(self, trip_id: str) -> Callable[[], object] | None:
        on_select = self._on_select
        if on_select is None:
            return None
        return lambda: on_select(trip_id)

    def driver_marker(self, driver: Driver) -> MarkerPlacement:
        assert driver.location is not None  # noqa: S101
        return MarkerPlacement(
            key=f"driver:{driver.id}",
            kind=MarkerKind.DRIVER,
            coordinate=driver.location.lon_lat,
            icon=MarkerIcon.DRIVER,
            color=DRIVER_STATUS_COLORS.get(driver.status, DEFAULT_TRIP_COLOR),
            tooltip=_driver_tooltip(driver),
            label=driver.initial,
        )

    def trip_markers(self, trip: Trip) -> tuple[MarkerPlacement, MarkerPlacement]:
        assert trip.pickup is not None and trip.destination is not None  # noqa: S101
        color = TRIP_STATUS_COLORS.get(trip.status, DEFAULT_TRIP_COLOR)
        pickup = MarkerPlacement(
            key=f"pickup:{trip.id}",
            kind=MarkerKind.PICKUP,
            coordinate=trip.pickup.lon_lat,
            icon=MarkerIcon.CUSTOMER,
            color=color,
            tooltip=_trip_tooltip(trip, trip.pickup.name),
            on_click=self._click_handler(trip.id),
        )
        destination = MarkerPlacement(
            key=f"destination:{trip.id}",
            kind=MarkerKind.DESTINATION,
            coordinate=trip.destination.lon_lat,
            icon=MarkerIcon.FLAG,
            color=color,
            tooltip=_trip_tooltip(trip, trip.destination.name),
        )
        return pickup, destination

    def route_line(self, trip: Trip, route: ResolvedRoute, *, selected: bool) -> RoutePlacement:
        return RoutePlacement(
            trip_id=trip.id,
            coordinates=route.coordinates,
            color=SELECTED_ROUTE_COLOR if selected else TRIP_STATUS_COLORS.get(trip.status, DEFAULT_TRIP_COLOR),
            width=SELECTED_ROUTE_WIDTH if selected else ROUTE_WIDTH,
            opacity=SELECTED_ROUTE_OPACITY if selected else ROUTE_OPACITY,
            dash=PENDING_DASH if trip.status == TripStatus.PENDING else None,
            selected=selected,
            fallback=route.fallback,
            on_click=self._click_handler(trip.id),
        )

    def project(
        self,
        drivers: Iterable[Driver],
        trips: Iterable[Trip],
        routes: Mapping[str, ResolvedRoute],
        *,
        drivers_sync: SyncStatus = SyncStatus.LIVE,
        trips_sync: SyncStatus = SyncStatus.LIVE,
    ) -> MapScene:
        """Build the scene for the current state.

        Only visible (filtered, active) trips are projected; a selection
        whose trip is not visible is ignored.
        """
        driver_list = [driver for driver in drivers if driver.location is not None]
        visible = [trip for trip in self._controller.visible(trips) if trip.has_geometry]
        visible_ids = {trip.id for trip in visible}
        selected_id = self._controller.selected_trip_id
        if selected_id not in visible_ids:
            selected_id = None

        markers: list[MarkerPlacement] = [self.driver_marker(driver) for driver in driver_list]
        for trip in visible:
            markers.extend(self.trip_markers(trip))

        lines: list[RoutePlacement] = []
        for trip in self._controller.draw_order(visible):
            route = routes.get(trip.id)
            if route is None:
                continue
            lines.append(self.route_line(trip, route, selected=trip.id == selected_id))

        notice: str | None = None
        if SyncStatus.ERROR in (drivers_sync, trips_sync):
            notice = STALE_DATA_NOTICE
        elif drivers_sync == SyncStatus.LIVE and not driver_list:
            notice = NO_DRIVERS_NOTICE

        return MapScene(
            markers=tuple(markers),
            routes=tuple(lines),
            viewport=self._controller.viewport,
            selected_trip_id=selected_id,
            notice=notice,
        )

    @staticmethod
    def render(scene: MapScene, surface: MapSurface) -> None:
        surface.clear()
        for marker in scene.markers:
            surface.place_marker(marker)
        for route in scene.routes:
            surface.place_route(route)
        surface.set_viewport(scene.viewport.center, scene.viewport.zoom)
