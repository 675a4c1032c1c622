"""Pure derivation of dashboard statistics from live snapshots."""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from fleetwatch.ingestion.sync import SyncStatus
from fleetwatch.models.driver import Driver
from fleetwatch.models.trip import Trip, TripStatus

DISPLAYED_STATUS_BUCKETS: tuple[TripStatus, ...] = (
    TripStatus.PENDING,
    TripStatus.ACCEPTED,
    TripStatus.EN_ROUTE_PICKUP,
    TripStatus.IN_PROGRESS,
)
"""Statuses shown as individual counters on the dashboard."""


class DashboardStats(BaseModel):
    """Counts derived from the current driver and trip snapshots.

    A fold over the latest snapshots; nothing here accumulates history.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    online_driver_count: int = 0
    active_trip_count: int = 0
    pending_count: int = 0
    status_counts: dict[TripStatus, int] = Field(
        default_factory=lambda: {status: 0 for status in DISPLAYED_STATUS_BUCKETS}
    )
    drivers_sync: SyncStatus = SyncStatus.PENDING
    trips_sync: SyncStatus = SyncStatus.PENDING

    @property
    def is_stale(self) -> bool:
        """Whether either stream is showing last-known data after an error."""
        return SyncStatus.ERROR in (self.drivers_sync, self.trips_sync)


def compute_stats(
    drivers: Iterable[Driver],
    trips: Iterable[Trip],
    *,
    drivers_sync: SyncStatus = SyncStatus.LIVE,
    trips_sync: SyncStatus = SyncStatus.LIVE,
) -> DashboardStats:
    """Derive :class:`DashboardStats`.

    *drivers* are expected to be pre-filtered to online drivers and *trips*
    to active trips, as the synchronizers deliver them.
    """
    trip_list = list(trips)
    counts = {status: 0 for status in DISPLAYED_STATUS_BUCKETS}
    for trip in trip_list:
        if trip.status in counts:
            counts[trip.status] += 1
    return DashboardStats(
        online_driver_count=sum(1 for _ in drivers),
        active_trip_count=len(trip_list),
        pending_count=counts[TripStatus.PENDING],
        status_counts=counts,
        drivers_sync=drivers_sync,
        trips_sync=trips_sync,
    )
