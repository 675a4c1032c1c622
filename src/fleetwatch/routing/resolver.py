"""Per-trip route cache with single-flight resolution.

A trip is routed once per appearance in the active set.  Failures are
cached as the straight pickup → destination segment and are not retried
while the trip stays active.  Entries for trips that leave the active set
are pruned on the next :meth:`RouteResolver.sync`.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType

from fleetwatch.exceptions import FleetError
from fleetwatch.models.geo import Place
from fleetwatch.models.route import ResolvedRoute
from fleetwatch.models.trip import ServiceTier, Trip
from fleetwatch.routing.client import RoutingClient

_logger = logging.getLogger(__name__)


class RouteResolver:
    """Resolve and cache one route per active trip.

    Usage::

        resolver = RouteResolver(client, timeout=10.0)
        resolver.add_listener(lambda route: redraw())
        resolver.sync(active_trips)   # prune + launch, non-blocking
        ...
        await resolver.aclose()
    """

    def __init__(self, client: RoutingClient, *, timeout: float = 10.0) -> None:
        self._client = client
        self._timeout = timeout
        self._routes: dict[str, ResolvedRoute] = {}
        self._inflight: dict[str, asyncio.Task[ResolvedRoute]] = {}
        self._listeners: dict[int, Callable[[ResolvedRoute], None]] = {}
        self._listener_ids = itertools.count(1)
        self._closed = False

    @property
    def routes(self) -> Mapping[str, ResolvedRoute]:
        """Read-only view of the cache."""
        return MappingProxyType(self._routes)

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, trip_id: str) -> ResolvedRoute | None:
        return self._routes.get(trip_id)

    def is_resolving(self, trip_id: str) -> bool:
        return trip_id in self._inflight

    def add_listener(self, callback: Callable[[ResolvedRoute], None]) -> Callable[[], None]:
        """Call *callback* whenever a route enters the cache; returns a remover."""
        token = next(self._listener_ids)
        self._listeners[token] = callback

        def remove() -> None:
            self._listeners.pop(token, None)

        return remove

    async def resolve(self, trip_id: str, pickup: Place, destination: Place, tier: ServiceTier) -> ResolvedRoute:
        """Return the route for *trip_id*, resolving it at most once.

        Concurrent callers for the same trip share one in-flight request.
        If the trip is pruned while the request is in flight the caller
        gets the straight segment (not cached); if the resolver is closed
        it gets :class:`FleetError`.
        """
        cached = self._routes.get(trip_id)
        if cached is not None:
            return cached
        if self._closed:
            raise FleetError("Route resolver is closed")
        task = self._launch(trip_id, pickup, destination, tier)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if not task.cancelled() or (current is not None and current.cancelling()):
                raise
            if self._closed:
                raise FleetError(f"Route resolver closed while resolving {trip_id}") from None
            _logger.debug("Resolution for %s was pruned, returning straight segment", trip_id)
            return ResolvedRoute.straight(trip_id, pickup, destination)

    def sync(self, trips: Iterable[Trip]) -> int:
        """Reconcile with the current active set.

        Prunes cache entries and cancels in-flight resolutions for trips no
        longer present, then launches a resolution for every new trip.
        Returns the number of resolutions launched.
        """
        if self._closed:
            return 0
        active = {trip.id: trip for trip in trips if trip.has_geometry}
        self.prune(active.keys())

        launched = 0
        for trip_id, trip in active.items():
            if trip_id in self._routes or trip_id in self._inflight:
                continue
            assert trip.pickup is not None and trip.destination is not None  # noqa: S101
            self._launch(trip_id, trip.pickup, trip.destination, trip.service_tier)
            launched += 1
        return launched

    def prune(self, active_ids: Iterable[str]) -> None:
        keep = set(active_ids)
        for trip_id in [key for key in self._routes if key not in keep]:
            del self._routes[trip_id]
            _logger.debug("Pruned route for %s", trip_id)
        for trip_id in [key for key in self._inflight if key not in keep]:
            self._inflight.pop(trip_id).cancel()
            _logger.debug("Cancelled resolution for departed trip %s", trip_id)

    def close(self) -> None:
        """Stop accepting results; in-flight resolutions are cancelled and discarded."""
        if self._closed:
            return
        self._closed = True
        self._listeners.clear()
        for task in self._inflight.values():
            task.cancel()

    async def aclose(self) -> None:
        pending = list(self._inflight.values())
        self.close()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._inflight.clear()

    def _launch(
        self,
        trip_id: str,
        pickup: Place,
        destination: Place,
        tier: ServiceTier,
    ) -> asyncio.Task[ResolvedRoute]:
        existing = self._inflight.get(trip_id)
        if existing is not None:
            return existing
        task = asyncio.get_running_loop().create_task(
            self._run(trip_id, pickup, destination, tier),
            name=f"route-{trip_id}",
        )
        self._inflight[trip_id] = task
        _logger.debug("Resolving route for %s tier=%s", trip_id, tier.value)
        return task

    async def _run(self, trip_id: str, pickup: Place, destination: Place, tier: ServiceTier) -> ResolvedRoute:
        try:
            try:
                geometry = await asyncio.wait_for(self._client.route(pickup, destination, tier), self._timeout)
                route = ResolvedRoute(trip_id=trip_id, coordinates=geometry.coordinates)
            except Exception:
                _logger.debug("Route resolution failed for %s, caching straight segment", trip_id, exc_info=True)
                route = ResolvedRoute.straight(trip_id, pickup, destination)

            # The trip may have left the active set (or the view been torn
            # down) while the request was in flight.
            if self._closed or self._inflight.get(trip_id) is not asyncio.current_task():
                _logger.debug("Discarding stale route for %s", trip_id)
                return route

            del self._inflight[trip_id]
            self._routes[trip_id] = route
            self._notify(route)
            return route
        finally:
            if self._inflight.get(trip_id) is asyncio.current_task():
                del self._inflight[trip_id]

    def _notify(self, route: ResolvedRoute) -> None:
        for callback in list(self._listeners.values()):
            try:
                callback(route)
            except Exception:
                _logger.exception("Route listener failed for %s", route.trip_id)
