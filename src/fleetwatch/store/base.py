"""Remote document store boundary.

The store pushes *full* collection snapshots to subscribers; there is no
incremental diff.  Implementations are injected into the synchronizers so
tests can substitute :class:`~fleetwatch.store.memory.InMemoryDocumentStore`.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, Protocol

Document = Mapping[str, Any]
"""A store document: ``{"id": ..., **fields}``."""

Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class FieldFilter:
    """Server-side document filter (equality or set membership)."""

    field: str
    op: Literal["==", "in"]
    value: Any

    def matches(self, document: Document) -> bool:
        actual = _lookup(document, self.field)
        if self.op == "==":
            return bool(actual == self.value)
        return actual in self.value


def where_equals(field_path: str, value: Any) -> FieldFilter:
    return FieldFilter(field_path, "==", value)


def where_in(field_path: str, values: Sequence[Any]) -> FieldFilter:
    return FieldFilter(field_path, "in", tuple(values))


def matches_all(document: Document, filters: Sequence[FieldFilter]) -> bool:
    return all(flt.matches(document) for flt in filters)


def _lookup(document: Document, path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


@dataclass(frozen=True)
class Snapshot:
    """Full contents of a (filtered) collection at one point in time."""

    collection: str
    documents: tuple[Document, ...]
    received_at: datetime = field(default_factory=lambda: datetime.now(UTC))


SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[Exception], None]


class DocumentStore(Protocol):
    """Structural interface of a push-based document store.

    ``subscribe`` must deliver snapshots for one subscription in the order
    the store produced them.  The returned callable stops delivery.
    """

    def subscribe(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        *,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe: ...
