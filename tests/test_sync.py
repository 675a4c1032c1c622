from __future__ import annotations

from collections.abc import Sequence

import pytest

from fleetwatch.exceptions import FleetError, StoreConnectionError
from fleetwatch.ingestion.documents import ACTIVE_TRIPS, ONLINE_DRIVERS, parse_driver, parse_tracked_trip
from fleetwatch.ingestion.sync import EntityStreamSynchronizer, SyncStatus, subscribe_collection
from fleetwatch.models.trip import TripStatus
from fleetwatch.store import InMemoryDocumentStore
from fleetwatch.store.base import ErrorCallback, FieldFilter, Snapshot, SnapshotCallback, Unsubscribe


def _trip(status: str = "pending", *, pickup_lat: float = 51.52) -> dict[str, object]:
    return {
        "status": status,
        "customerName": "Ada",
        "pickup": {"name": "Baker Street", "lat": pickup_lat, "lng": -0.15},
        "destination": {"name": "Tower Bridge", "lat": 51.50, "lng": -0.07},
        "fare": 24.5,
    }


class _HoldingStore:
    """Store that keeps the callbacks so tests can deliver at any time."""

    def __init__(self) -> None:
        self.on_snapshot: SnapshotCallback | None = None
        self.on_error: ErrorCallback | None = None
        self.unsubscribed = 0

    def subscribe(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        *,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        self.on_snapshot = on_snapshot
        self.on_error = on_error

        def unsubscribe() -> None:
            self.unsubscribed += 1

        return unsubscribe


def test_live_set_is_pending_until_first_snapshot() -> None:
    store = _HoldingStore()
    live, _unsubscribe = subscribe_collection(store, "trips", ACTIVE_TRIPS, parse_tracked_trip)

    assert live.status == SyncStatus.PENDING
    assert not live.has_synced
    assert not live.is_empty


def test_snapshot_replaces_contents() -> None:
    store = InMemoryDocumentStore()
    store.set("trips", "T1", _trip("pending"))
    store.set("trips", "T2", _trip("accepted"))
    live, _unsubscribe = subscribe_collection(store, "trips", ACTIVE_TRIPS, parse_tracked_trip)

    assert [trip.id for trip in live] == ["T1", "T2"]

    store.update("trips", "T1", status="completed")

    assert [trip.id for trip in live] == ["T2"]
    assert live.items[0].status == TripStatus.ACCEPTED
    assert live.version == 2


def test_documents_without_geometry_are_excluded() -> None:
    store = InMemoryDocumentStore()
    store.set("trips", "T1", _trip("pending"))
    store.set("trips", "T2", _trip("pending", pickup_lat=0.0))
    live, _unsubscribe = subscribe_collection(store, "trips", ACTIVE_TRIPS, parse_tracked_trip)

    assert [trip.id for trip in live] == ["T1"]


def test_drivers_without_location_are_excluded() -> None:
    store = InMemoryDocumentStore()
    store.set("drivers", "D1", {"name": "Marta", "status": "online", "location": {"lat": 51.5, "lng": -0.12}})
    store.set("drivers", "D2", {"name": "Omar", "status": "online"})
    store.set("drivers", "D3", {"name": "Li", "status": "offline", "location": {"lat": 51.5, "lng": -0.1}})
    live, _unsubscribe = subscribe_collection(store, "drivers", ONLINE_DRIVERS, parse_driver)

    assert [driver.id for driver in live] == ["D1"]


def test_filters_are_reapplied_to_store_snapshots() -> None:
    store = _HoldingStore()
    live, _unsubscribe = subscribe_collection(store, "trips", ACTIVE_TRIPS, parse_tracked_trip)
    assert store.on_snapshot is not None

    store.on_snapshot(
        Snapshot(
            collection="trips",
            documents=({"id": "T1", **_trip("pending")}, {"id": "T2", **_trip("cancelled")}),
        )
    )

    assert [trip.id for trip in live] == ["T1"]


def test_empty_snapshot_is_live_and_empty() -> None:
    store = InMemoryDocumentStore()
    live, _unsubscribe = subscribe_collection(store, "trips", ACTIVE_TRIPS, parse_tracked_trip)

    assert live.status == SyncStatus.LIVE
    assert live.is_empty


def test_error_keeps_last_snapshot() -> None:
    store = InMemoryDocumentStore()
    store.set("trips", "T1", _trip("pending"))
    live, _unsubscribe = subscribe_collection(store, "trips", ACTIVE_TRIPS, parse_tracked_trip)
    changes: list[SyncStatus] = []
    live.add_listener(lambda current: changes.append(current.status))

    store.fail("trips")

    assert live.status == SyncStatus.ERROR
    assert isinstance(live.error, StoreConnectionError)
    assert [trip.id for trip in live] == ["T1"]
    assert not live.is_empty
    assert changes == [SyncStatus.ERROR]

    store.set("trips", "T2", _trip("accepted"))

    assert live.status == SyncStatus.LIVE
    assert live.error is None
    assert [trip.id for trip in live] == ["T1", "T2"]


def test_unsubscribe_is_idempotent_and_closes_the_set() -> None:
    store = _HoldingStore()
    sync = EntityStreamSynchronizer(store, "trips", ACTIVE_TRIPS, parse_tracked_trip)
    live, unsubscribe = sync.subscribe()

    unsubscribe()
    unsubscribe()

    assert store.unsubscribed == 1
    assert sync.closed
    assert live.status == SyncStatus.CLOSED


def test_late_snapshot_after_unsubscribe_is_ignored() -> None:
    store = _HoldingStore()
    live, unsubscribe = subscribe_collection(store, "trips", ACTIVE_TRIPS, parse_tracked_trip)
    assert store.on_snapshot is not None and store.on_error is not None
    calls: list[int] = []
    live.add_listener(lambda current: calls.append(current.version))

    unsubscribe()
    store.on_snapshot(Snapshot(collection="trips", documents=({"id": "T1", **_trip()},)))
    store.on_error(StoreConnectionError("late"))

    assert live.items == ()
    assert live.status == SyncStatus.CLOSED
    assert calls == []


def test_subscribe_twice_raises() -> None:
    sync = EntityStreamSynchronizer(_HoldingStore(), "trips", ACTIVE_TRIPS, parse_tracked_trip)
    sync.subscribe()

    with pytest.raises(FleetError):
        sync.subscribe()


def test_listener_failure_does_not_break_delivery() -> None:
    store = InMemoryDocumentStore()
    live, _unsubscribe = subscribe_collection(store, "trips", ACTIVE_TRIPS, parse_tracked_trip)
    seen: list[int] = []

    def broken(_live: object) -> None:
        raise RuntimeError("boom")

    live.add_listener(broken)
    live.add_listener(lambda current: seen.append(len(current)))
    store.set("trips", "T1", _trip())

    assert seen == [1]
