"""In-process record store.

Implements :class:`vendconsole._recordstore.RecordStore` on plain dicts.
Listener callbacks are scheduled on the running event loop after each
committed write, so a writer never re-enters its own subscribers.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from vendconsole._constants import MAX_BATCH_WRITES
from vendconsole._recordstore import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    ErrorCallback,
    Preconditions,
    QuerySpec,
    SnapshotCallback,
    Unsubscribe,
    auto_id,
)

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class _Listener:
    collection: str
    query: QuerySpec
    on_snapshot: SnapshotCallback
    on_error: ErrorCallback
    active: bool = True


@dataclass(slots=True)
class _StoredDocument:
    data: dict[str, Any]
    version: int


class MemoryRecordStore:
    """Dict-backed record store with push notifications.

    Query windows are filtered and capped but come back in insertion
    order; no ordering guarantee is offered, matching the remote store.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        max_batch_size: int = MAX_BATCH_WRITES,
    ) -> None:
        self._clock = clock
        self._max_batch_size = max_batch_size
        self._collections: dict[str, dict[str, _StoredDocument]] = {}
        self._listeners: list[_Listener] = []
        self._versions = itertools.count(1)

    # ------------------------------------------------------------------
    # Live queries
    # ------------------------------------------------------------------

    def subscribe_query(
        self,
        collection: str,
        query: QuerySpec,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        listener = _Listener(collection=collection, query=query, on_snapshot=on_snapshot, on_error=on_error)
        self._listeners.append(listener)
        asyncio.get_running_loop().call_soon(self._deliver, listener)
        _logger.debug("Listener attached collection=%s filters=%s", collection, query.filters)

        def _unsubscribe() -> None:
            listener.active = False
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _window(self, collection: str, query: QuerySpec) -> list[DocumentSnapshot]:
        docs: list[DocumentSnapshot] = []
        for doc_id, stored in self._collections.get(collection, {}).items():
            if not query.matches(stored.data):
                continue
            docs.append(DocumentSnapshot(id=doc_id, data=copy.deepcopy(stored.data), update_time=str(stored.version)))
            if query.limit is not None and len(docs) >= query.limit:
                break
        return docs

    def _deliver(self, listener: _Listener) -> None:
        if not listener.active:
            return
        try:
            listener.on_snapshot(self._window(listener.collection, listener.query))
        except Exception:
            _logger.debug("Snapshot listener failed collection=%s", listener.collection, exc_info=True)

    def _notify(self, collection: str) -> None:
        loop = asyncio.get_running_loop()
        for listener in list(self._listeners):
            if listener.collection == collection:
                loop.call_soon(self._deliver, listener)

    def fail_listeners(self, collection: str, exc: Exception) -> None:
        """Terminate every live query on *collection* with *exc*.

        Mirrors the remote store revoking access: each listener's error
        callback fires once and the query stops delivering.
        """
        for listener in [lst for lst in self._listeners if lst.collection == collection]:
            listener.active = False
            self._listeners.remove(listener)
            try:
                listener.on_error(exc)
            except Exception:
                _logger.debug("Error listener failed collection=%s", collection, exc_info=True)

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    def _resolve(self, fields: Mapping[str, Any], now: datetime) -> dict[str, Any]:
        return {key: now if value is SERVER_TIMESTAMP else copy.deepcopy(value) for key, value in fields.items()}

    async def get_one(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        stored = self._collections.get(collection, {}).get(doc_id)
        if stored is None:
            return None
        return DocumentSnapshot(id=doc_id, data=copy.deepcopy(stored.data), update_time=str(stored.version))

    async def write_one(self, collection: str, doc_id: str | None, fields: Mapping[str, Any]) -> str:
        new_id = doc_id or auto_id()
        docs = self._collections.setdefault(collection, {})
        docs[new_id] = _StoredDocument(data=self._resolve(fields, self._clock()), version=next(self._versions))
        self._notify(collection)
        return new_id

    async def update_one(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        stored = self._collections.get(collection, {}).get(doc_id)
        if stored is None:
            raise KeyError(f"No document {doc_id!r} in {collection}")
        stored.data.update(self._resolve(fields, self._clock()))
        stored.version = next(self._versions)
        self._notify(collection)

    async def delete_one(self, collection: str, doc_id: str) -> None:
        removed = self._collections.get(collection, {}).pop(doc_id, None)
        if removed is not None:
            self._notify(collection)

    async def atomic_bulk_write(
        self,
        collection: str,
        writes: Sequence[tuple[str, Mapping[str, Any]]],
        preconditions: Preconditions | None = None,
    ) -> None:
        if len(writes) > self._max_batch_size:
            raise ValueError(f"Batch of {len(writes)} writes exceeds the limit of {self._max_batch_size}")
        docs = self._collections.setdefault(collection, {})
        for doc_id, expected in (preconditions or {}).items():
            stored = docs.get(doc_id)
            current = str(stored.version) if stored is not None else None
            if current != expected:
                raise ValueError(f"Document {doc_id!r} changed since it was read")
        now = self._clock()
        # Resolve everything before touching the collection so a bad write leaves no trace.
        staged: list[tuple[str, dict[str, Any]]] = []
        for doc_id, fields in writes:
            if not doc_id:
                raise ValueError("Bulk writes require explicit document ids")
            staged.append((doc_id, self._resolve(fields, now)))

        for doc_id, data in staged:
            docs[doc_id] = _StoredDocument(data=data, version=next(self._versions))
        self._notify(collection)
