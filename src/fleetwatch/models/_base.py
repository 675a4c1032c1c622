"""Base model and enum for store documents.

Every document model inherits from :class:`FleetBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase document keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that strips placeholder values
  (``""``, ``"--"``, NaN) so the field default is used.
* A ``raw`` dict that captures the original document.

Status enums inherit from :class:`FleetEnum`, whose ``_missing_`` hook
folds case and ``_``/``-`` spelling differences and maps anything else
to ``UNKNOWN`` when the enum defines one.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from fleetwatch.ingestion.normalize import normalize_status, parse_timestamp

_SENTINELS = frozenset({"", "--", "NaN", "nan"})

FleetTimestamp = Annotated[datetime | None, BeforeValidator(parse_timestamp)]
"""Annotated type that coerces store timestamps (map, epoch s/ms, ISO) to UTC datetimes."""


class FleetEnum(StrEnum):
    """Base for document status enums."""

    @classmethod
    def _missing_(cls, value: object) -> FleetEnum | None:
        if isinstance(value, str):
            normalized = normalize_status(value)
            for member in cls:
                if member.value == normalized:
                    return member
        return getattr(cls, "UNKNOWN", None)


class FleetBaseModel(BaseModel):
    """Base for store document models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original store document."""

    @staticmethod
    def _clean_dict(values: dict[str, Any]) -> dict[str, Any]:
        cleaned: dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value
        return cleaned

    @model_validator(mode="before")
    @classmethod
    def _clean_document_values(cls, values: Any) -> Any:
        """Strip placeholder values and stash the raw document."""
        if not isinstance(values, dict):
            return values
        cleaned = FleetBaseModel._clean_dict(values)
        # Keep an explicitly passed raw= (keyword construction).
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
