"""Base model for record-store documents.

Every document model inherits from :class:`VendBaseModel` which
provides:

* ``alias_generator=to_camel`` so the store's camelCase field names map
  automatically to snake_case attributes.
* A ``model_validator(mode="before")`` that drops ``None`` values so the
  field default is used instead.
* :meth:`VendBaseModel.from_document` to build a model from a document id
  plus its field map.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Annotated, Any, Self

from pydantic import BaseModel, BeforeValidator, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_store_timestamp(value: Any) -> datetime | None:
    """Coerce a stored timestamp to a timezone-aware UTC datetime.

    Accepts datetimes, RFC 3339 strings, epoch numbers (seconds **or**
    milliseconds) and ``{"seconds": ..., "nanoseconds": ...}`` maps as
    produced by JSON exports. Anything else becomes ``None``; a server
    timestamp that has not resolved yet is simply absent.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, Mapping) and "seconds" in value:
        seconds = float(value["seconds"]) + float(value.get("nanoseconds", 0)) / 1e9
        return datetime.fromtimestamp(seconds, tz=UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    return None


StoreTimestamp = Annotated[datetime | None, BeforeValidator(parse_store_timestamp)]
"""Annotated type that coerces stored timestamps to UTC datetimes."""


def timestamp_sort_key(value: datetime | None) -> float:
    """Sort key that places missing timestamps last in descending order."""
    return value.timestamp() if value is not None else 0.0


class VendBaseModel(BaseModel):
    """Base for record-store document models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if value is not None}

    @classmethod
    def from_document(cls, doc_id: str, data: Mapping[str, Any]) -> Self:
        """Build a model from a store document id and its fields."""
        return cls.model_validate({**data, "id": doc_id})
