"""In-process document store.

Delivers filtered full snapshots synchronously on every write.  Used as the
substitute store in tests and local demos.
"""

from __future__ import annotations

import copy
import itertools
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from fleetwatch.exceptions import StoreConnectionError
from fleetwatch.store.base import (
    Document,
    ErrorCallback,
    FieldFilter,
    Snapshot,
    SnapshotCallback,
    Unsubscribe,
    matches_all,
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Listener:
    collection: str
    filters: tuple[FieldFilter, ...]
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback


class InMemoryDocumentStore:
    """Dict-backed store with snapshot listeners."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._listeners: dict[int, _Listener] = {}
        self._ids = itertools.count(1)

    def subscribe(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        *,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        token = next(self._ids)
        listener = _Listener(collection, tuple(filters), on_snapshot, on_error)
        self._listeners[token] = listener
        _logger.debug("Listener %s attached to %s", token, collection)
        self._deliver(listener)

        def unsubscribe() -> None:
            if self._listeners.pop(token, None) is not None:
                _logger.debug("Listener %s detached from %s", token, collection)

        return unsubscribe

    def listener_count(self, collection: str | None = None) -> int:
        return sum(1 for lst in self._listeners.values() if collection is None or lst.collection == collection)

    def documents(self, collection: str) -> list[dict[str, Any]]:
        return [{"id": doc_id, **copy.deepcopy(data)} for doc_id, data in self._collections.get(collection, {}).items()]

    def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or fully overwrite a document."""
        fields = {key: value for key, value in data.items() if key != "id"}
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(fields)
        self._notify(collection)

    def update(self, collection: str, doc_id: str, **fields: Any) -> None:
        """Patch fields of an existing document."""
        docs = self._collections.setdefault(collection, {})
        if doc_id not in docs:
            raise KeyError(f"{collection}/{doc_id} does not exist")
        docs[doc_id].update(copy.deepcopy(fields))
        self._notify(collection)

    def delete(self, collection: str, doc_id: str) -> None:
        if self._collections.get(collection, {}).pop(doc_id, None) is not None:
            self._notify(collection)

    def fail(self, collection: str, error: Exception | None = None) -> None:
        """Report a connectivity failure to every listener of *collection*."""
        exc = error or StoreConnectionError(f"Lost connection to {collection}", collection=collection)
        for listener in list(self._listeners.values()):
            if listener.collection == collection:
                listener.on_error(exc)

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners.values()):
            if listener.collection == collection:
                self._deliver(listener)

    def _deliver(self, listener: _Listener) -> None:
        docs: list[Document] = [
            doc for doc in self.documents(listener.collection) if matches_all(doc, listener.filters)
        ]
        listener.on_snapshot(Snapshot(collection=listener.collection, documents=tuple(docs)))
