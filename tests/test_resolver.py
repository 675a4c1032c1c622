from __future__ import annotations

import asyncio

import pytest

from fleetwatch.exceptions import FleetError, RoutingError
from fleetwatch.models.geo import Place
from fleetwatch.models.route import ResolvedRoute
from fleetwatch.models.trip import ServiceTier, Trip, TripStatus
from fleetwatch.routing.client import RouteGeometry
from fleetwatch.routing.resolver import RouteResolver

_BAKER_STREET = Place(name="Baker Street", latitude=51.52, longitude=-0.15)
_TOWER_BRIDGE = Place(name="Tower Bridge", latitude=51.50, longitude=-0.07)


def _trip(trip_id: str, status: TripStatus = TripStatus.PENDING) -> Trip:
    return Trip(id=trip_id, status=status, pickup=_BAKER_STREET, destination=_TOWER_BRIDGE, fare=24.5)


class _FakeRouter:
    def __init__(self, *, fail: bool = False, gate: asyncio.Event | None = None) -> None:
        self.calls: list[tuple[Place, Place, ServiceTier]] = []
        self._fail = fail
        self._gate = gate

    async def route(self, origin: Place, destination: Place, tier: ServiceTier) -> RouteGeometry:
        self.calls.append((origin, destination, tier))
        if self._gate is not None:
            await self._gate.wait()
        if self._fail:
            raise RoutingError("router unavailable")
        return RouteGeometry(coordinates=(origin.lon_lat, (-0.11, 51.515), destination.lon_lat))


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_resolve_is_cached() -> None:
    router = _FakeRouter()
    resolver = RouteResolver(router)

    first = await resolver.resolve("trip1", _BAKER_STREET, _TOWER_BRIDGE, ServiceTier.STANDARD)
    second = await resolver.resolve("trip1", _BAKER_STREET, _TOWER_BRIDGE, ServiceTier.STANDARD)

    assert first is second
    assert len(first.coordinates) == 3
    assert not first.fallback
    assert len(router.calls) == 1


@pytest.mark.asyncio
async def test_concurrent_resolves_share_one_request() -> None:
    gate = asyncio.Event()
    router = _FakeRouter(gate=gate)
    resolver = RouteResolver(router)

    pending = [
        asyncio.create_task(resolver.resolve("trip1", _BAKER_STREET, _TOWER_BRIDGE, ServiceTier.LUXURY))
        for _ in range(3)
    ]
    await _settle()
    assert resolver.is_resolving("trip1")
    gate.set()
    routes = await asyncio.gather(*pending)

    assert len(router.calls) == 1
    assert router.calls[0][2] == ServiceTier.LUXURY
    assert routes[0] == routes[1] == routes[2]
    assert not resolver.is_resolving("trip1")


@pytest.mark.asyncio
async def test_failure_caches_straight_segment() -> None:
    router = _FakeRouter(fail=True)
    resolver = RouteResolver(router)
    resolver.sync([_trip("trip1")])
    await _settle()

    route = resolver.get("trip1")
    assert route is not None
    assert route.fallback
    assert route.coordinates == ((-0.15, 51.52), (-0.07, 51.50))

    resolver.sync([_trip("trip1", TripStatus.ACCEPTED)])
    await _settle()
    assert len(router.calls) == 1


@pytest.mark.asyncio
async def test_timeout_falls_back() -> None:
    router = _FakeRouter(gate=asyncio.Event())
    resolver = RouteResolver(router, timeout=0.01)

    route = await resolver.resolve("trip1", _BAKER_STREET, _TOWER_BRIDGE, ServiceTier.STANDARD)

    assert route.fallback
    assert resolver.get("trip1") is route


@pytest.mark.asyncio
async def test_sync_launches_once_per_trip_and_notifies() -> None:
    router = _FakeRouter()
    resolver = RouteResolver(router)
    resolved: list[ResolvedRoute] = []
    resolver.add_listener(resolved.append)

    assert resolver.sync([_trip("trip1"), _trip("trip2")]) == 2
    assert resolver.sync([_trip("trip1"), _trip("trip2")]) == 0
    await _settle()

    assert sorted(route.trip_id for route in resolved) == ["trip1", "trip2"]
    assert set(resolver.routes) == {"trip1", "trip2"}
    assert len(router.calls) == 2


@pytest.mark.asyncio
async def test_sync_prunes_departed_trips() -> None:
    router = _FakeRouter()
    resolver = RouteResolver(router)
    resolver.sync([_trip("trip1"), _trip("trip2")])
    await _settle()

    resolver.sync([_trip("trip2")])

    assert set(resolver.routes) == {"trip2"}

    # A trip that returns later is resolved again.
    resolver.sync([_trip("trip1"), _trip("trip2")])
    await _settle()
    assert len(router.calls) == 3


@pytest.mark.asyncio
async def test_departed_trip_result_is_discarded() -> None:
    gate = asyncio.Event()
    router = _FakeRouter(gate=gate)
    resolver = RouteResolver(router)
    resolver.sync([_trip("trip1")])
    await _settle()

    resolver.sync([])
    gate.set()
    await _settle()

    assert resolver.get("trip1") is None
    assert not resolver.is_resolving("trip1")


@pytest.mark.asyncio
async def test_close_discards_in_flight_results() -> None:
    gate = asyncio.Event()
    router = _FakeRouter(gate=gate)
    resolver = RouteResolver(router)
    resolved: list[ResolvedRoute] = []
    resolver.add_listener(resolved.append)
    resolver.sync([_trip("trip1")])
    await _settle()

    await resolver.aclose()
    gate.set()
    await _settle()

    assert resolver.closed
    assert resolver.routes == {}
    assert resolved == []
    assert resolver.sync([_trip("trip2")]) == 0
    with pytest.raises(FleetError):
        await resolver.resolve("trip2", _BAKER_STREET, _TOWER_BRIDGE, ServiceTier.STANDARD)


@pytest.mark.asyncio
async def test_trips_without_geometry_are_not_routed() -> None:
    router = _FakeRouter()
    resolver = RouteResolver(router)

    launched = resolver.sync([Trip(id="trip1", status=TripStatus.PENDING, pickup=_BAKER_STREET)])

    assert launched == 0
    assert router.calls == []


@pytest.mark.asyncio
async def test_caller_of_pruned_trip_gets_straight_segment() -> None:
    gate = asyncio.Event()
    resolver = RouteResolver(_FakeRouter(gate=gate))
    caller = asyncio.create_task(resolver.resolve("trip1", _BAKER_STREET, _TOWER_BRIDGE, ServiceTier.STANDARD))
    await _settle()

    resolver.sync([])
    route = await caller

    assert route.fallback
    assert route.coordinates == ((-0.15, 51.52), (-0.07, 51.50))
    assert resolver.get("trip1") is None


@pytest.mark.asyncio
async def test_caller_waiting_during_close_gets_fleet_error() -> None:
    gate = asyncio.Event()
    resolver = RouteResolver(_FakeRouter(gate=gate))
    caller = asyncio.create_task(resolver.resolve("trip1", _BAKER_STREET, _TOWER_BRIDGE, ServiceTier.STANDARD))
    await _settle()

    await resolver.aclose()

    with pytest.raises(FleetError):
        await caller


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_resolution() -> None:
    gate = asyncio.Event()
    router = _FakeRouter(gate=gate)
    resolver = RouteResolver(router)
    impatient = asyncio.create_task(resolver.resolve("trip1", _BAKER_STREET, _TOWER_BRIDGE, ServiceTier.STANDARD))
    patient = asyncio.create_task(resolver.resolve("trip1", _BAKER_STREET, _TOWER_BRIDGE, ServiceTier.STANDARD))
    await _settle()

    impatient.cancel()
    await _settle()
    gate.set()
    route = await patient

    assert impatient.cancelled()
    assert not route.fallback
    assert resolver.get("trip1") is route
    assert len(router.calls) == 1
