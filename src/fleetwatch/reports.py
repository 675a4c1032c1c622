"""Completed-today read model.

Revenue and completion counts come from a separate subscription scoped to
completed trips; they are never derived from the live active-trip view.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict

from fleetwatch.ingestion.documents import COMPLETED_TRIPS, parse_trip
from fleetwatch.ingestion.sync import EntityStreamSynchronizer, LiveSet, SyncStatus
from fleetwatch.models.trip import Trip
from fleetwatch.store.base import DocumentStore, Unsubscribe

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CompletedSummary(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    completed_count: int = 0
    revenue: float = 0.0
    sync: SyncStatus = SyncStatus.PENDING


def start_of_day(now: datetime, time_zone: str) -> datetime:
    local = now.astimezone(ZoneInfo(time_zone))
    return local.replace(hour=0, minute=0, second=0, microsecond=0).astimezone(UTC)


def summarize_completed(
    trips: Iterable[Trip],
    *,
    now: datetime,
    time_zone: str,
    sync: SyncStatus = SyncStatus.LIVE,
) -> CompletedSummary:
    """Count and sum fares of trips completed since local midnight.

    Trips without a completion time fall back to their creation time; trips
    with neither are ignored.
    """
    since = start_of_day(now, time_zone)
    count = 0
    revenue = 0.0
    for trip in trips:
        finished = trip.completed_at or trip.created_at
        if finished is None or finished < since:
            continue
        count += 1
        revenue += trip.fare
    return CompletedSummary(completed_count=count, revenue=round(revenue, 2), sync=sync)


class CompletedTripsReport:
    """Live completed-today summary backed by its own subscription."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        collection: str = "trips",
        time_zone: str = "Europe/London",
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._time_zone = time_zone
        self._clock = clock
        self._sync = EntityStreamSynchronizer(store, collection, COMPLETED_TRIPS, parse_trip, name="completed-trips")
        self._live: LiveSet[Trip] | None = None
        self._unsubscribe: Unsubscribe | None = None

    def start(self) -> Unsubscribe:
        self._live, self._unsubscribe = self._sync.subscribe()
        _logger.debug("Completed-trips report started tz=%s", self._time_zone)
        return self.stop

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()

    @property
    def summary(self) -> CompletedSummary:
        if self._live is None:
            return CompletedSummary()
        return summarize_completed(
            self._live.items,
            now=self._clock(),
            time_zone=self._time_zone,
            sync=self._live.status,
        )
