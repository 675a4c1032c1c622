"""Selected-trip and status-filter UI state.

Two independent slots:

* **filter**: ``None`` (all) or one active :class:`TripStatus`.  Toggling
  the current status again returns to ``None``.
* **selection**: ``None`` or a trip id.  Selecting recentres the viewport
  on the trip and zooms in; clearing leaves the viewport where it is.

Visible trips and route draw order are pure functions of the current
trips plus this state.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from fleetwatch.models.geo import LonLat, midpoint
from fleetwatch.models.trip import ACTIVE_STATUSES, Trip, TripStatus

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Viewport:
    center: LonLat
    zoom: float


def matches_filter(trip: Trip, status_filter: TripStatus | None) -> bool:
    return status_filter is None or trip.status == status_filter


def visible_trips(trips: Iterable[Trip], status_filter: TripStatus | None) -> tuple[Trip, ...]:
    return tuple(trip for trip in trips if matches_filter(trip, status_filter))


def route_draw_order(trips: Iterable[Trip], selected_trip_id: str | None) -> list[Trip]:
    """Stable order with the selected trip last, so its route is drawn on top."""
    return sorted(trips, key=lambda trip: trip.id == selected_trip_id)


def focus_viewport(trip: Trip, zoom: float) -> Viewport:
    assert trip.pickup is not None and trip.destination is not None  # noqa: S101
    return Viewport(center=midpoint(trip.pickup, trip.destination), zoom=zoom)


class SelectionAndFilterController:
    """Holds selection/filter state and the map viewport."""

    def __init__(
        self,
        *,
        center: LonLat = (-0.1276, 51.5074),
        zoom: float = 12.0,
        focus_zoom: float = 15.0,
    ) -> None:
        self._status_filter: TripStatus | None = None
        self._selected_trip_id: str | None = None
        self._viewport = Viewport(center=center, zoom=zoom)
        self._focus_zoom = focus_zoom
        self._listeners: dict[int, Callable[[], None]] = {}
        self._listener_ids = itertools.count(1)

    @property
    def status_filter(self) -> TripStatus | None:
        return self._status_filter

    @property
    def selected_trip_id(self) -> str | None:
        return self._selected_trip_id

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        token = next(self._listener_ids)
        self._listeners[token] = callback

        def remove() -> None:
            self._listeners.pop(token, None)

        return remove

    # ------------------------------------------------------------------
    # Filter
    # ------------------------------------------------------------------

    def set_filter(self, status: TripStatus | None) -> None:
        if status is not None and status not in ACTIVE_STATUSES:
            raise ValueError(f"{status.value!r} is not an active trip status")
        if status == self._status_filter:
            return
        self._status_filter = status
        self._changed()

    def toggle_filter(self, status: TripStatus) -> TripStatus | None:
        """Filter on *status*, or back to all if it is already the filter."""
        self.set_filter(None if self._status_filter == status else status)
        return self._status_filter

    def visible(self, trips: Iterable[Trip]) -> tuple[Trip, ...]:
        return visible_trips(trips, self._status_filter)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select(self, trip_id: str, trips: Sequence[Trip]) -> bool:
        """Select *trip_id* if it is in *trips* and focus the viewport on it.

        Returns ``False`` (state unchanged) when the trip is not active,
        e.g. a click on a marker whose trip has just finished.
        """
        trip = next((candidate for candidate in trips if candidate.id == trip_id), None)
        if trip is None or not trip.has_geometry:
            _logger.debug("Ignoring selection of inactive trip %s", trip_id)
            return False
        self._selected_trip_id = trip_id
        self._viewport = focus_viewport(trip, self._focus_zoom)
        self._changed()
        return True

    def clear_selection(self) -> None:
        if self._selected_trip_id is None:
            return
        self._selected_trip_id = None
        self._changed()

    def selected_trip(self, trips: Iterable[Trip]) -> Trip | None:
        if self._selected_trip_id is None:
            return None
        return next((trip for trip in trips if trip.id == self._selected_trip_id), None)

    def reconcile(self, trips: Iterable[Trip]) -> bool:
        """Clear the selection if its trip left the active set. Returns ``True`` if cleared."""
        if self._selected_trip_id is None or self.selected_trip(trips) is not None:
            return False
        _logger.debug("Selected trip %s is no longer active", self._selected_trip_id)
        self.clear_selection()
        return True

    def draw_order(self, trips: Iterable[Trip]) -> list[Trip]:
        return route_draw_order(trips, self._selected_trip_id)

    def _changed(self) -> None:
        for callback in list(self._listeners.values()):
            try:
                callback()
            except Exception:
                _logger.exception("Selection listener failed")
