"""Document store adapters."""

from fleetwatch.store.base import (
    Document,
    DocumentStore,
    FieldFilter,
    Snapshot,
    Unsubscribe,
    matches_all,
    where_equals,
    where_in,
)
from fleetwatch.store.memory import InMemoryDocumentStore

__all__ = [
    "Document",
    "DocumentStore",
    "FieldFilter",
    "InMemoryDocumentStore",
    "Snapshot",
    "Unsubscribe",
    "matches_all",
    "where_equals",
    "where_in",
]
