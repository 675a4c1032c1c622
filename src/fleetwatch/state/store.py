"""Live dashboard state.

Recomputes :class:`~fleetwatch.state.stats.DashboardStats` synchronously
whenever either live set changes.  The two streams are unordered relative
to each other; every recomputation reads both latest snapshots.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable

from fleetwatch.ingestion.sync import LiveSet
from fleetwatch.models.driver import Driver
from fleetwatch.models.trip import Trip
from fleetwatch.state.stats import DashboardStats, compute_stats

_logger = logging.getLogger(__name__)


class DashboardStateStore:
    """Derived statistics over the online-driver and active-trip live sets."""

    def __init__(self, drivers: LiveSet[Driver], trips: LiveSet[Trip]) -> None:
        self._drivers = drivers
        self._trips = trips
        self._stats = DashboardStats()
        self._listeners: dict[int, Callable[[DashboardStats], None]] = {}
        self._listener_ids = itertools.count(1)
        self._detachers = [
            drivers.add_listener(lambda _live: self.recompute()),
            trips.add_listener(lambda _live: self.recompute()),
        ]
        self.recompute()

    @property
    def stats(self) -> DashboardStats:
        return self._stats

    @property
    def drivers(self) -> tuple[Driver, ...]:
        return self._drivers.items

    @property
    def trips(self) -> tuple[Trip, ...]:
        return self._trips.items

    def add_listener(self, callback: Callable[[DashboardStats], None]) -> Callable[[], None]:
        token = next(self._listener_ids)
        self._listeners[token] = callback

        def remove() -> None:
            self._listeners.pop(token, None)

        return remove

    def recompute(self) -> DashboardStats:
        self._stats = compute_stats(
            self._drivers.items,
            self._trips.items,
            drivers_sync=self._drivers.status,
            trips_sync=self._trips.status,
        )
        _logger.debug(
            "Stats online=%d active=%d pending=%d",
            self._stats.online_driver_count,
            self._stats.active_trip_count,
            self._stats.pending_count,
        )
        for callback in list(self._listeners.values()):
            try:
                callback(self._stats)
            except Exception:
                _logger.exception("Stats listener failed")
        return self._stats

    def detach(self) -> None:
        for detach in self._detachers:
            detach()
        self._detachers.clear()
        self._listeners.clear()
