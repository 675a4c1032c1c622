"""Ingestion layer.

Adapters that receive snapshots from the document store and turn them into
live sets of validated models.
"""

__all__: list[str] = []
