"""Snapshot synchronization of one remote collection.

Every upstream snapshot *replaces* the live set; nothing is merged with
the previous snapshot.  A failed subscription keeps the last good contents
and flags the error instead of resetting to empty.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterator, Sequence
from datetime import UTC, datetime
from enum import StrEnum
from typing import Generic, TypeVar

from fleetwatch.exceptions import FleetError
from fleetwatch.store.base import Document, DocumentStore, FieldFilter, Snapshot, Unsubscribe, matches_all

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncStatus(StrEnum):
    PENDING = "pending"
    LIVE = "live"
    ERROR = "error"
    CLOSED = "closed"


class LiveSet(Generic[T]):
    """Observable, read-only view of the latest synchronized entities.

    ``items`` keeps the order documents arrived in within the snapshot.
    Only the owning :class:`EntityStreamSynchronizer` mutates it.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._items: tuple[T, ...] = ()
        self._status = SyncStatus.PENDING
        self._error: Exception | None = None
        self._version = 0
        self._synced_at: datetime | None = None
        self._listeners: dict[int, Callable[[LiveSet[T]], None]] = {}
        self._listener_ids = itertools.count(1)

    @property
    def items(self) -> tuple[T, ...]:
        return self._items

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def error(self) -> Exception | None:
        """Last subscription error, cleared by the next good snapshot."""
        return self._error

    @property
    def version(self) -> int:
        """Number of snapshots applied so far."""
        return self._version

    @property
    def synced_at(self) -> datetime | None:
        return self._synced_at

    @property
    def has_synced(self) -> bool:
        return self._version > 0

    @property
    def is_empty(self) -> bool:
        """``True`` only when a successful sync produced no entities.

        A failed or not-yet-completed sync is never "empty".
        """
        return self._status == SyncStatus.LIVE and not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def add_listener(self, callback: Callable[[LiveSet[T]], None]) -> Callable[[], None]:
        """Call *callback* after every change; returns a remover."""
        token = next(self._listener_ids)
        self._listeners[token] = callback

        def remove() -> None:
            self._listeners.pop(token, None)

        return remove

    def _replace(self, items: tuple[T, ...], at: datetime) -> None:
        self._items = items
        self._status = SyncStatus.LIVE
        self._error = None
        self._version += 1
        self._synced_at = at
        self._notify()

    def _fail(self, exc: Exception) -> None:
        self._status = SyncStatus.ERROR
        self._error = exc
        self._notify()

    def _close(self) -> None:
        self._status = SyncStatus.CLOSED
        self._listeners.clear()

    def _notify(self) -> None:
        for callback in list(self._listeners.values()):
            try:
                callback(self)
            except Exception:
                _logger.exception("Listener for %s failed", self.name)


class EntityStreamSynchronizer(Generic[T]):
    """Keeps a :class:`LiveSet` equal to the latest filtered snapshot of a collection.

    Parameters
    ----------
    store
        Injected document store.
    collection
        Collection name.
    filters
        Server-side filters; re-applied locally to every snapshot.
    parse
        Turns a document into an entity, or ``None`` to exclude it.
    """

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        filters: Sequence[FieldFilter],
        parse: Callable[[Document], T | None],
        *,
        name: str | None = None,
    ) -> None:
        self._store = store
        self._collection = collection
        self._filters = tuple(filters)
        self._parse = parse
        self._live = LiveSet[T](name or collection)
        self._store_unsubscribe: Unsubscribe | None = None
        self._subscribed = False
        self._closed = False

    @property
    def live_set(self) -> LiveSet[T]:
        return self._live

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self) -> tuple[LiveSet[T], Unsubscribe]:
        """Start listening. Returns the live set and an idempotent unsubscribe."""
        if self._subscribed:
            raise FleetError(f"Synchronizer for {self._collection} is already subscribed")
        self._subscribed = True
        _logger.debug("Subscribing to %s filters=%s", self._collection, self._filters)
        self._store_unsubscribe = self._store.subscribe(
            self._collection,
            self._filters,
            on_snapshot=self._on_snapshot,
            on_error=self._on_error,
        )
        return self._live, self.unsubscribe

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        store_unsubscribe = self._store_unsubscribe
        self._store_unsubscribe = None
        if store_unsubscribe is not None:
            store_unsubscribe()
        self._live._close()  # noqa: SLF001
        _logger.debug("Unsubscribed from %s", self._collection)

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        if self._closed:
            _logger.debug("Dropping late snapshot for %s", self._collection)
            return
        items: list[T] = []
        for document in snapshot.documents:
            if not matches_all(document, self._filters):
                continue
            entity = self._parse(document)
            if entity is not None:
                items.append(entity)
        _logger.debug(
            "Snapshot %s: %d documents, %d kept",
            self._collection,
            len(snapshot.documents),
            len(items),
        )
        self._live._replace(tuple(items), snapshot.received_at or datetime.now(UTC))  # noqa: SLF001

    def _on_error(self, exc: Exception) -> None:
        if self._closed:
            return
        _logger.warning("Subscription to %s failed, keeping last snapshot: %s", self._collection, exc)
        self._live._fail(exc)  # noqa: SLF001


def subscribe_collection(
    store: DocumentStore,
    collection: str,
    filters: Sequence[FieldFilter],
    parse: Callable[[Document], T | None],
) -> tuple[LiveSet[T], Unsubscribe]:
    """Shorthand for ``EntityStreamSynchronizer(...).subscribe()``."""
    return EntityStreamSynchronizer(store, collection, filters, parse).subscribe()
