"""Routing service client.

Talks to an OSRM-compatible ``/route/v1/{profile}/{coords}`` endpoint and
returns the path geometry as ``(lon, lat)`` pairs.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fleetwatch.config import FleetConfig
from fleetwatch.exceptions import RoutingError
from fleetwatch.models.geo import LonLat, Place
from fleetwatch.models.trip import ServiceTier

_logger = logging.getLogger(__name__)


class RouteGeometry(BaseModel):
    """Router answer for one origin/destination pair."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    coordinates: tuple[LonLat, ...]
    distance_m: float | None = Field(default=None, validation_alias="distance")
    duration_s: float | None = Field(default=None, validation_alias="duration")


class RoutingClient(Protocol):
    """Structural routing interface used by :class:`~fleetwatch.routing.RouteResolver`.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`OsrmRoutingClient`) concrete.
    """

    async def route(self, origin: Place, destination: Place, tier: ServiceTier) -> RouteGeometry: ...


class OsrmRoutingClient:
    """aiohttp client for OSRM-compatible routing services."""

    def __init__(self, config: FleetConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    def _build_url(self, origin: Place, destination: Place, profile: str) -> str:
        o_lon, o_lat = origin.lon_lat
        d_lon, d_lat = destination.lon_lat
        base = self._config.routing_base_url.rstrip("/")
        return f"{base}/route/v1/{profile}/{o_lon:.6f},{o_lat:.6f};{d_lon:.6f},{d_lat:.6f}"

    async def route(self, origin: Place, destination: Place, tier: ServiceTier) -> RouteGeometry:
        """Resolve a driving path from *origin* to *destination*.

        Raises
        ------
        RoutingError
            On transport failure, non-200 status, invalid JSON, a router
            error code or an empty geometry.
        """
        profile = self._config.profile_for(tier)
        url = self._build_url(origin, destination, profile.profile)
        params: dict[str, str] = {"overview": "full", "geometries": "geojson", "alternatives": "false"}
        if profile.exclude:
            params["exclude"] = ",".join(profile.exclude)

        _logger.debug("GET %s tier=%s", url, tier.value)

        try:
            async with self._http.get(url, params=params) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise RoutingError(
                        f"HTTP {resp.status} from router: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except RoutingError:
            raise
        except aiohttp.ClientError as exc:
            raise RoutingError(f"Request to router failed: {exc}", endpoint=url) from exc

        try:
            body: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RoutingError(f"Invalid JSON from router: {text[:200]}", endpoint=url) from exc

        return _parse_route_response(body, url)


def _parse_route_response(body: Any, endpoint: str) -> RouteGeometry:
    if not isinstance(body, dict):
        raise RoutingError("Router response is not an object", endpoint=endpoint)
    code = str(body.get("code", ""))
    if code != "Ok":
        raise RoutingError(f"Router returned code={code} message={body.get('message', '')}", endpoint=endpoint)

    routes = body.get("routes")
    if not isinstance(routes, list) or not routes or not isinstance(routes[0], dict):
        raise RoutingError("Router response has no routes", endpoint=endpoint)
    route = routes[0]
    geometry = route.get("geometry")
    coordinates = geometry.get("coordinates") if isinstance(geometry, dict) else None
    if not isinstance(coordinates, list) or len(coordinates) < 2:
        raise RoutingError("Router returned an empty geometry", endpoint=endpoint)

    try:
        return RouteGeometry.model_validate(
            {
                "coordinates": [(float(lon), float(lat)) for lon, lat, *_ in coordinates],
                "distance": route.get("distance"),
                "duration": route.get("duration"),
            }
        )
    except (TypeError, ValueError, ValidationError) as exc:
        raise RoutingError(f"Router geometry is malformed: {exc}", endpoint=endpoint) from exc
