from __future__ import annotations

import asyncio
from collections.abc import Sequence

import pytest

from fleetwatch.config import FleetConfig
from fleetwatch.exceptions import FleetError, RoutingError, StoreConnectionError
from fleetwatch.ingestion.sync import SyncStatus
from fleetwatch.models.geo import Place
from fleetwatch.models.trip import ServiceTier, TripStatus
from fleetwatch.projector import NO_DRIVERS_NOTICE, STALE_DATA_NOTICE, MapScene
from fleetwatch.routing.client import RouteGeometry
from fleetwatch.store import InMemoryDocumentStore
from fleetwatch.store.base import ErrorCallback, FieldFilter, SnapshotCallback, Unsubscribe
from fleetwatch.tracker import FleetTracker

_DRIVER_D1 = {
    "name": "Marta",
    "status": "online",
    "location": {"lat": 51.50, "lng": -0.12},
    "vehicle": {"model": "Prius", "plate": "AB12 CDE", "color": "Silver"},
}


def _trip_x(status: str = "pending") -> dict[str, object]:
    return {
        "customerName": "Ada",
        "status": status,
        "pickup": {"name": "Baker Street", "lat": 51.52, "lng": -0.15},
        "destination": {"name": "Tower Bridge", "lat": 51.50, "lng": -0.07},
        "fare": 24.50,
        "vehicleType": "Standard",
    }


class _FailingRouter:
    def __init__(self) -> None:
        self.calls: list[tuple[Place, Place, ServiceTier]] = []

    async def route(self, origin: Place, destination: Place, tier: ServiceTier) -> RouteGeometry:
        self.calls.append((origin, destination, tier))
        raise RoutingError("router unavailable")


class _GatedRouter:
    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.calls = 0

    async def route(self, origin: Place, destination: Place, tier: ServiceTier) -> RouteGeometry:
        self.calls += 1
        await self.gate.wait()
        return RouteGeometry(coordinates=(origin.lon_lat, destination.lon_lat))


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_live_tracking_scenario() -> None:
    store = InMemoryDocumentStore()
    store.set("drivers", "D1", _DRIVER_D1)
    store.set("trips", "X", _trip_x())
    router = _FailingRouter()
    scenes: list[MapScene] = []

    async with FleetTracker(FleetConfig(), store=store, routing_client=router) as tracker:
        tracker.add_listener(scenes.append)

        stats = tracker.stats
        assert stats.online_driver_count == 1
        assert stats.active_trip_count == 1
        assert stats.pending_count == 1

        await _settle()

        assert len(router.calls) == 1
        assert router.calls[0][2] == ServiceTier.STANDARD
        route = tracker.routes["X"]
        assert route.fallback
        assert route.coordinates == ((-0.15, 51.52), (-0.07, 51.50))

        scene = tracker.scene()
        assert [marker.key for marker in scene.markers] == ["driver:D1", "pickup:X", "destination:X"]
        assert [line.trip_id for line in scene.routes] == ["X"]
        assert scenes and scenes[-1].routes

        store.update("trips", "X", status="accepted")
        await _settle()
        assert len(router.calls) == 1
        assert tracker.stats.pending_count == 0
        assert tracker.trips[0].status == TripStatus.ACCEPTED

    assert store.listener_count() == 0
    assert tracker.driver_set.status == SyncStatus.CLOSED
    assert tracker.trip_set.status == SyncStatus.CLOSED


@pytest.mark.asyncio
async def test_selection_follows_active_set() -> None:
    store = InMemoryDocumentStore()
    store.set("drivers", "D1", _DRIVER_D1)
    store.set("trips", "X", _trip_x())

    async with FleetTracker(FleetConfig(), store=store, routing_client=_FailingRouter()) as tracker:
        await _settle()
        scene = tracker.scene()
        pickup = next(marker for marker in scene.markers if marker.key == "pickup:X")
        assert pickup.on_click is not None

        pickup.on_click()

        assert tracker.controller.selected_trip_id == "X"
        assert tracker.controller.viewport.zoom == FleetConfig().focus_zoom
        assert tracker.scene().routes[-1].selected

        store.update("trips", "X", status="completed")

        assert tracker.controller.selected_trip_id is None
        assert tracker.scene().routes == ()
        assert tracker.routes == {}
        assert not tracker.select_trip("X")


@pytest.mark.asyncio
async def test_filter_toggle_through_tracker() -> None:
    store = InMemoryDocumentStore()
    store.set("trips", "X", _trip_x())
    store.set("trips", "Y", _trip_x("in-progress"))

    async with FleetTracker(FleetConfig(), store=store, routing_client=_FailingRouter()) as tracker:
        await _settle()

        assert tracker.toggle_filter(TripStatus.IN_PROGRESS) == TripStatus.IN_PROGRESS
        assert tracker.scene().trip_ids() == frozenset({"Y"})
        assert tracker.toggle_filter(TripStatus.IN_PROGRESS) is None
        assert tracker.scene().trip_ids() == frozenset({"X", "Y"})
        # Counters ignore the map filter.
        assert tracker.stats.active_trip_count == 2


@pytest.mark.asyncio
async def test_notices_for_empty_and_failed_streams() -> None:
    store = InMemoryDocumentStore()
    store.set("trips", "X", _trip_x())

    async with FleetTracker(FleetConfig(), store=store, routing_client=_FailingRouter()) as tracker:
        assert tracker.scene().notice == NO_DRIVERS_NOTICE

        store.fail("trips")

        assert tracker.scene().notice == STALE_DATA_NOTICE
        assert tracker.stats.is_stale
        assert tracker.stats.active_trip_count == 1


@pytest.mark.asyncio
async def test_teardown_discards_in_flight_routes() -> None:
    store = InMemoryDocumentStore()
    store.set("trips", "X", _trip_x())
    router = _GatedRouter()
    scenes: list[MapScene] = []

    tracker = FleetTracker(FleetConfig(), store=store, routing_client=router)
    async with tracker:
        tracker.add_listener(scenes.append)
        await _settle()
        assert router.calls == 1

    router.gate.set()
    await _settle()

    assert tracker.routes == {}
    assert scenes == []
    store.set("trips", "Y", _trip_x())
    assert tracker.trips[0].id == "X"


@pytest.mark.asyncio
async def test_tracker_requires_start() -> None:
    tracker = FleetTracker(FleetConfig(), store=InMemoryDocumentStore(), routing_client=_FailingRouter())

    with pytest.raises(FleetError):
        _ = tracker.stats
    assert not tracker.select_trip("X")


class _TripsUnavailableStore(InMemoryDocumentStore):
    def subscribe(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        *,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        if collection == "trips":
            raise StoreConnectionError("subscription refused", collection=collection)
        return super().subscribe(collection, filters, on_snapshot=on_snapshot, on_error=on_error)


@pytest.mark.asyncio
async def test_failed_start_releases_subscriptions_and_session() -> None:
    store = _TripsUnavailableStore()
    store.set("drivers", "D1", _DRIVER_D1)
    tracker = FleetTracker(FleetConfig(), store=store)

    with pytest.raises(StoreConnectionError):
        async with tracker:
            pytest.fail("tracker should not start")

    assert store.listener_count() == 0
    assert tracker.driver_set.status == SyncStatus.CLOSED
    assert tracker._http_session is None  # type: ignore[attr-defined]
    assert tracker.routes == {}
