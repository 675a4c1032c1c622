"""Custom exception hierarchy for fleetwatch."""

from __future__ import annotations


class FleetError(Exception):
    """Base exception for all fleetwatch errors."""


class FleetConfigError(FleetError):
    """Invalid or missing configuration."""


class StoreError(FleetError):
    """Remote document store failure."""

    def __init__(self, message: str, *, collection: str = "") -> None:
        self.collection = collection
        super().__init__(message)


class StoreConnectionError(StoreError):
    """Subscription lost or could not be established.

    Delivered to a synchronizer's error callback.  The live set keeps its
    last known contents; an error here never means "the collection is empty".
    """


class SnapshotDecodeError(StoreError):
    """A snapshot payload could not be decoded into documents."""


class RoutingError(FleetError):
    """Route resolution failed (network, non-200, invalid JSON, empty geometry)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)
