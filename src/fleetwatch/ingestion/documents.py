"""Document → model parsers and the standard collection filters.

Parsers return ``None`` for documents that cannot be drawn (validation
exclusion); they never raise for bad documents.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from fleetwatch._redact import redact_for_log
from fleetwatch.models.driver import Driver, DriverStatus
from fleetwatch.models.trip import ACTIVE_STATUSES, Trip, TripStatus
from fleetwatch.store.base import Document, FieldFilter, where_equals, where_in

_logger = logging.getLogger(__name__)

ONLINE_DRIVERS: tuple[FieldFilter, ...] = (where_equals("status", DriverStatus.ONLINE.value),)
ACTIVE_TRIPS: tuple[FieldFilter, ...] = (where_in("status", [status.value for status in ACTIVE_STATUSES]),)
COMPLETED_TRIPS: tuple[FieldFilter, ...] = (where_equals("status", TripStatus.COMPLETED.value),)


def parse_driver(document: Document) -> Driver | None:
    """Parse a driver document; drivers without a location are excluded."""
    try:
        driver = Driver.model_validate(dict(document))
    except ValidationError:
        _logger.debug("Excluding invalid driver document %s", redact_for_log(document), exc_info=True)
        return None
    if driver.location is None:
        _logger.debug("Excluding driver %s without location", driver.id)
        return None
    return driver


def parse_trip(document: Document) -> Trip | None:
    """Parse any trip document, without a geometry requirement."""
    try:
        return Trip.model_validate(dict(document))
    except ValidationError:
        _logger.debug("Excluding invalid trip document %s", redact_for_log(document), exc_info=True)
        return None


def parse_tracked_trip(document: Document) -> Trip | None:
    """Parse a trip for live tracking; pickup and destination must both be drawable."""
    trip = parse_trip(document)
    if trip is None:
        return None
    if not trip.has_geometry:
        _logger.debug("Excluding trip %s without pickup/destination geometry", trip.id)
        return None
    return trip
