"""Tracker configuration for fleetwatch."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fleetwatch.exceptions import FleetConfigError
from fleetwatch.models.geo import LonLat
from fleetwatch.models.trip import ServiceTier


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class RoutingProfile:
    """Router parameters used for one service tier.

    ``profile`` is the router's travel profile and ``exclude`` the road
    classes the tier avoids.
    """

    profile: str = "driving"
    exclude: tuple[str, ...] = ()


def _default_tier_profiles() -> dict[ServiceTier, RoutingProfile]:
    return {
        ServiceTier.STANDARD: RoutingProfile("driving", ("toll",)),
        ServiceTier.EXECUTIVE: RoutingProfile("driving"),
        ServiceTier.LUXURY: RoutingProfile("driving", ("ferry",)),
    }


@dataclasses.dataclass(frozen=True)
class FleetConfig:
    """Tracker configuration.

    Parameters
    ----------
    driver_collection : str
        Store collection holding driver documents.
    trip_collection : str
        Store collection holding trip documents.
    routing_base_url : str
        Base URL of an OSRM-compatible routing service.
    routing_timeout : float
        Seconds before a single route resolution is abandoned and the
        straight-line fallback is cached instead.
    tier_profiles : dict
        Router parameters per :class:`~fleetwatch.models.ServiceTier`.
    default_center : tuple of (lon, lat)
        Initial map centre.
    default_zoom : float
        Initial map zoom.
    focus_zoom : float
        Zoom applied when a trip is selected.
    time_zone : str
        IANA zone defining "today" for the completed-trips report.
    mqtt_host : str or None
        Host of the MQTT snapshot bridge. ``None`` disables the MQTT store.
    mqtt_port : int
        Broker port.
    mqtt_tls : bool
        Connect with TLS.
    mqtt_username, mqtt_password : str or None
        Broker credentials.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_topic_prefix : str
        Snapshots for collection ``c`` are read from ``{prefix}/{c}``.
    """

    driver_collection: str = "drivers"
    trip_collection: str = "trips"
    routing_base_url: str = "https://router.project-osrm.org"
    routing_timeout: float = 10.0
    tier_profiles: dict[ServiceTier, RoutingProfile] = dataclasses.field(default_factory=_default_tier_profiles)
    default_center: LonLat = (-0.1276, 51.5074)
    default_zoom: float = 12.0
    focus_zoom: float = 15.0
    time_zone: str = "Europe/London"
    mqtt_host: str | None = None
    mqtt_port: int = 8883
    mqtt_tls: bool = True
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_keepalive: int = 120
    mqtt_topic_prefix: str = "fleet"

    def profile_for(self, tier: ServiceTier) -> RoutingProfile:
        try:
            return self.tier_profiles[tier]
        except KeyError:
            raise FleetConfigError(f"No routing profile configured for tier {tier.value!r}") from None

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetConfig:
        """Create configuration from environment variables.

        Reads optional ``FLEET_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FleetConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "FLEET_DRIVER_COLLECTION": "driver_collection",
            "FLEET_TRIP_COLLECTION": "trip_collection",
            "FLEET_ROUTING_BASE_URL": "routing_base_url",
            "FLEET_TIME_ZONE": "time_zone",
            "FLEET_MQTT_HOST": "mqtt_host",
            "FLEET_MQTT_USERNAME": "mqtt_username",
            "FLEET_MQTT_PASSWORD": "mqtt_password",
            "FLEET_MQTT_TOPIC_PREFIX": "mqtt_topic_prefix",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_NUMERIC_MAP = {
            "FLEET_ROUTING_TIMEOUT": ("routing_timeout", float),
            "FLEET_FOCUS_ZOOM": ("focus_zoom", float),
            "FLEET_DEFAULT_ZOOM": ("default_zoom", float),
            "FLEET_MQTT_PORT": ("mqtt_port", int),
            "FLEET_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
        }
        for env_key, (field_name, convert) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = convert(val)
            except ValueError as exc:
                raise FleetConfigError(f"{env_key} must be numeric, got {val!r}") from exc

        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("FLEET_MQTT_TLS"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
