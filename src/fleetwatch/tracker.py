"""High-level live fleet tracker."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Mapping
from typing import Any

import aiohttp

from fleetwatch.config import FleetConfig
from fleetwatch.exceptions import FleetError
from fleetwatch.ingestion.documents import ACTIVE_TRIPS, ONLINE_DRIVERS, parse_driver, parse_tracked_trip
from fleetwatch.ingestion.sync import EntityStreamSynchronizer, LiveSet
from fleetwatch.models.driver import Driver
from fleetwatch.models.route import ResolvedRoute
from fleetwatch.models.trip import Trip, TripStatus
from fleetwatch.projector import MapProjector, MapScene, MapSurface
from fleetwatch.routing.client import OsrmRoutingClient, RoutingClient
from fleetwatch.routing.resolver import RouteResolver
from fleetwatch.selection import SelectionAndFilterController
from fleetwatch.state.stats import DashboardStats
from fleetwatch.state.store import DashboardStateStore
from fleetwatch.store.base import DocumentStore, Unsubscribe

_logger = logging.getLogger(__name__)


class FleetTracker:
    """Live fleet-tracking pipeline.

    Subscribes to online drivers and active trips, keeps dashboard stats and
    one route per active trip, and projects everything onto map scenes.

    Usage::

        async with FleetTracker(config, store=store) as tracker:
            tracker.add_listener(lambda scene: tracker.render(surface))
            ...

    Leaving the context unsubscribes both streams synchronously and
    discards any route resolution still in flight.
    """

    def __init__(
        self,
        config: FleetConfig,
        *,
        store: DocumentStore,
        routing_client: RoutingClient | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._store = store
        self._routing_client = routing_client
        self._external_session = session is not None
        self._http_session = session
        self._listeners: dict[int, Callable[[MapScene], None]] = {}
        self._listener_ids = itertools.count(1)
        self._controller = SelectionAndFilterController(
            center=config.default_center,
            zoom=config.default_zoom,
            focus_zoom=config.focus_zoom,
        )
        self._projector = MapProjector(self._controller, on_select=self.select_trip)
        self._resolver: RouteResolver | None = None
        self._stats: DashboardStateStore | None = None
        self._drivers: LiveSet[Driver] | None = None
        self._trips: LiveSet[Trip] | None = None
        self._unsubscribers: list[Unsubscribe] = []
        self._batching = False
        self._closed = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetTracker:
        if self._resolver is not None:
            raise FleetError("Tracker already started")
        try:
            self.start()
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        resolver = self._resolver
        self.close()
        if resolver is not None:
            await resolver.aclose()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def start(self) -> None:
        """Open both subscriptions. Must run on the event loop."""
        if self._resolver is not None:
            raise FleetError("Tracker already started")
        client = self._routing_client
        if client is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            client = OsrmRoutingClient(self._config, self._http_session)
        self._resolver = RouteResolver(client, timeout=self._config.routing_timeout)

        driver_sync = EntityStreamSynchronizer(
            self._store,
            self._config.driver_collection,
            ONLINE_DRIVERS,
            parse_driver,
            name="online-drivers",
        )
        trip_sync = EntityStreamSynchronizer(
            self._store,
            self._config.trip_collection,
            ACTIVE_TRIPS,
            parse_tracked_trip,
            name="active-trips",
        )

        # Wire derived state before subscribing: stores may deliver the
        # first snapshot synchronously from subscribe().
        self._drivers = driver_sync.live_set
        self._trips = trip_sync.live_set
        self._stats = DashboardStateStore(self._drivers, self._trips)
        driver_sync.live_set.add_listener(lambda _live: self._emit())
        trip_sync.live_set.add_listener(self._on_trips)
        self._resolver.add_listener(lambda _route: self._emit())
        self._controller.add_listener(self._emit)

        try:
            for sync in (driver_sync, trip_sync):
                _live_set, unsubscribe = sync.subscribe()
                self._unsubscribers.append(unsubscribe)
        except Exception:
            _logger.warning("Fleet tracker failed to subscribe, tearing down")
            self.close()
            raise
        _logger.debug("Fleet tracker started")

    def close(self) -> None:
        """Synchronous teardown: unsubscribe streams and stop route resolution."""
        if self._closed:
            return
        self._closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        if self._stats is not None:
            self._stats.detach()
        if self._resolver is not None:
            self._resolver.close()
        self._listeners.clear()
        _logger.debug("Fleet tracker closed")

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def controller(self) -> SelectionAndFilterController:
        return self._controller

    @property
    def stats(self) -> DashboardStats:
        return self._require(self._stats).stats

    @property
    def drivers(self) -> tuple[Driver, ...]:
        return self._require(self._drivers).items

    @property
    def trips(self) -> tuple[Trip, ...]:
        return self._require(self._trips).items

    @property
    def driver_set(self) -> LiveSet[Driver]:
        return self._require(self._drivers)

    @property
    def trip_set(self) -> LiveSet[Trip]:
        return self._require(self._trips)

    @property
    def routes(self) -> Mapping[str, ResolvedRoute]:
        return self._require(self._resolver).routes

    def scene(self) -> MapScene:
        drivers = self._require(self._drivers)
        trips = self._require(self._trips)
        return self._projector.project(
            drivers.items,
            trips.items,
            self.routes,
            drivers_sync=drivers.status,
            trips_sync=trips.status,
        )

    def render(self, surface: MapSurface) -> MapScene:
        scene = self.scene()
        self._projector.render(scene, surface)
        return scene

    def add_listener(self, callback: Callable[[MapScene], None]) -> Callable[[], None]:
        """Call *callback* with a fresh scene after every state change."""
        token = next(self._listener_ids)
        self._listeners[token] = callback

        def remove() -> None:
            self._listeners.pop(token, None)

        return remove

    # ------------------------------------------------------------------
    # Interaction
    # ------------------------------------------------------------------

    def select_trip(self, trip_id: str) -> bool:
        if self._trips is None:
            return False
        return self._controller.select(trip_id, self._trips.items)

    def clear_selection(self) -> None:
        self._controller.clear_selection()

    def toggle_filter(self, status: TripStatus) -> TripStatus | None:
        return self._controller.toggle_filter(status)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require(value: Any) -> Any:
        if value is None:
            raise FleetError("Tracker not started. Use 'async with FleetTracker(...) as tracker:'")
        return value

    def _on_trips(self, live: LiveSet[Trip]) -> None:
        assert self._resolver is not None  # noqa: S101
        self._batching = True
        try:
            self._resolver.sync(live.items)
            self._controller.reconcile(live.items)
        finally:
            self._batching = False
        self._emit()

    def _emit(self) -> None:
        if self._batching or self._closed or not self._listeners:
            return
        if self._drivers is None or self._trips is None:
            return
        scene = self.scene()
        for callback in list(self._listeners.values()):
            try:
                callback(scene)
            except Exception:
                _logger.exception("Scene listener failed")
