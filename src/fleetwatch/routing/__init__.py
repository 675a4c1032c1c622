"""Route resolution: routing service client and per-trip route cache."""

from fleetwatch.routing.client import OsrmRoutingClient, RouteGeometry, RoutingClient
from fleetwatch.routing.resolver import RouteResolver

__all__ = [
    "OsrmRoutingClient",
    "RouteGeometry",
    "RouteResolver",
    "RoutingClient",
]
