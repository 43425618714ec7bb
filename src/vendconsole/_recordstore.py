"""Record store capability interface.

The console never talks to a database directly. Everything it needs from
the durable, multi-writer document store is expressed by the
:class:`RecordStore` protocol below: live queries, point reads,
single-document writes and atomic multi-document writes.
"""

from __future__ import annotations

import secrets
import string
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol


class _ServerTimestamp:
    """Placeholder resolved to the store's own clock when a write commits."""

    _instance: _ServerTimestamp | None = None

    def __new__(cls) -> _ServerTimestamp:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP: Any = _ServerTimestamp()

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits


def auto_id() -> str:
    """Return a 20-character random document id, as the store's SDKs generate."""
    return "".join(secrets.choice(_AUTO_ID_ALPHABET) for _ in range(20))


@dataclass(frozen=True)
class FieldFilter:
    """Equality filter on a single document field."""

    field: str
    value: Any


@dataclass(frozen=True)
class QuerySpec:
    """Shape of a live query.

    No ordering is requested from the store; callers sort the bounded
    window themselves.
    """

    filters: tuple[FieldFilter, ...] = ()
    limit: int | None = None

    def matches(self, data: Mapping[str, Any]) -> bool:
        return all(data.get(f.field) == f.value for f in self.filters)


@dataclass(frozen=True)
class DocumentSnapshot:
    """A document id together with its fields at one point in time."""

    id: str
    data: Mapping[str, Any] = field(default_factory=dict)
    update_time: str | None = None


SnapshotCallback = Callable[[list[DocumentSnapshot]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]

#: Expected ``update_time`` per document id; ``None`` means "must not exist".
Preconditions = Mapping[str, str | None]


class RecordStore(Protocol):
    """Structural interface of the remote document store.

    ``subscribe_query`` pushes the complete result window on every change;
    ``on_error`` is called at most once, after which the query is dead.
    ``write_one`` with ``doc_id=None`` lets the store assign an id.
    ``atomic_bulk_write`` applies every write or none. With ``preconditions``
    it also fails as a whole when any listed document changed since it was
    read.
    """

    def subscribe_query(
        self,
        collection: str,
        query: QuerySpec,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe: ...

    async def get_one(self, collection: str, doc_id: str) -> DocumentSnapshot | None: ...

    async def write_one(self, collection: str, doc_id: str | None, fields: Mapping[str, Any]) -> str: ...

    async def update_one(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None: ...

    async def delete_one(self, collection: str, doc_id: str) -> None: ...

    async def atomic_bulk_write(
        self,
        collection: str,
        writes: Sequence[tuple[str, Mapping[str, Any]]],
        preconditions: Preconditions | None = None,
    ) -> None: ...
