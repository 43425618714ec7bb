"""Record store backed by the Firestore REST API.

Live queries are emulated by polling ``runQuery`` and republishing the
window only when a document was added, removed or updated. All writes go
through ``documents:commit`` so server timestamps can use ``REQUEST_TIME``
transforms and multi-document writes stay atomic.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from vendconsole._constants import MAX_BATCH_WRITES
from vendconsole._recordstore import (
    SERVER_TIMESTAMP,
    DocumentSnapshot,
    ErrorCallback,
    FieldFilter,
    Preconditions,
    QuerySpec,
    SnapshotCallback,
    Unsubscribe,
    auto_id,
)
from vendconsole._transport import Transport
from vendconsole.config import ConsoleConfig
from vendconsole.exceptions import VendTransportError
from vendconsole.models._base import parse_store_timestamp

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value codec
# ---------------------------------------------------------------------------


def encode_value(value: Any) -> dict[str, Any]:
    """Encode a Python value as a Firestore ``Value`` object."""
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return {"timestampValue": aware.astimezone(UTC).isoformat().replace("+00:00", "Z")}
    if isinstance(value, Mapping):
        return {"mapValue": {"fields": encode_fields(value)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v) for v in value]}}
    raise TypeError(f"Cannot encode {type(value).__name__} as a Firestore value")


def encode_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: encode_value(value) for key, value in fields.items()}


def decode_value(value: Mapping[str, Any]) -> Any:
    """Decode a Firestore ``Value`` object into a plain Python value."""
    if "nullValue" in value:
        return None
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "stringValue" in value:
        return value["stringValue"]
    if "timestampValue" in value:
        return parse_store_timestamp(value["timestampValue"])
    if "referenceValue" in value:
        return value["referenceValue"]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if "geoPointValue" in value:
        return dict(value["geoPointValue"])
    if "bytesValue" in value:
        return value["bytesValue"]
    return None


def decode_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {key: decode_value(value) for key, value in fields.items()}


def decode_document(document: Mapping[str, Any]) -> DocumentSnapshot:
    name = str(document.get("name", ""))
    return DocumentSnapshot(
        id=name.rsplit("/", 1)[-1],
        data=decode_fields(document.get("fields", {})),
        update_time=document.get("updateTime"),
    )


def _filter_clause(f: FieldFilter) -> dict[str, Any]:
    return {
        "fieldFilter": {
            "field": {"fieldPath": f.field},
            "op": "EQUAL",
            "value": encode_value(f.value),
        }
    }


def build_structured_query(collection_id: str, query: QuerySpec) -> dict[str, Any]:
    structured: dict[str, Any] = {"from": [{"collectionId": collection_id}]}
    if len(query.filters) == 1:
        structured["where"] = _filter_clause(query.filters[0])
    elif query.filters:
        structured["where"] = {
            "compositeFilter": {
                "op": "AND",
                "filters": [_filter_clause(f) for f in query.filters],
            }
        }
    if query.limit is not None:
        structured["limit"] = query.limit
    return {"structuredQuery": structured}


def _split_fields(fields: Mapping[str, Any]) -> tuple[dict[str, Any], list[dict[str, Any]]]:
    """Separate plain values from server-timestamp transforms."""
    plain: dict[str, Any] = {}
    transforms: list[dict[str, Any]] = []
    for key, value in fields.items():
        if value is SERVER_TIMESTAMP:
            transforms.append({"fieldPath": key, "setToServerValue": "REQUEST_TIME"})
        else:
            plain[key] = value
    return plain, transforms


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class FirestoreRecordStore:
    """RecordStore implementation over Firestore REST v1."""

    def __init__(self, config: ConsoleConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport
        self._database_url = config.database_url
        self._root_name = f"projects/{config.project_id}/databases/(default)/documents"
        self._poll_interval = config.poll_interval
        self._tasks: set[asyncio.Task[None]] = set()

    def _doc_name(self, collection: str, doc_id: str) -> str:
        return f"{self._root_name}/{collection}/{doc_id}"

    def _doc_url(self, collection: str, doc_id: str) -> str:
        return f"{self._database_url}/{collection}/{doc_id}"

    def _update_write(
        self,
        collection: str,
        doc_id: str,
        fields: Mapping[str, Any],
        *,
        merge: bool,
        expected_update_time: str | None = None,
        must_not_exist: bool = False,
    ) -> dict[str, Any]:
        plain, transforms = _split_fields(fields)
        write: dict[str, Any] = {
            "update": {"name": self._doc_name(collection, doc_id), "fields": encode_fields(plain)},
        }
        if transforms:
            write["updateTransforms"] = transforms
        if merge:
            write["updateMask"] = {"fieldPaths": list(plain)}
            write["currentDocument"] = {"exists": True}
        elif expected_update_time is not None:
            write["currentDocument"] = {"updateTime": expected_update_time}
        elif must_not_exist:
            write["currentDocument"] = {"exists": False}
        return write

    async def _commit(self, writes: list[dict[str, Any]]) -> None:
        await self._transport.request_json("POST", f"{self._database_url}:commit", {"writes": writes})

    # ------------------------------------------------------------------
    # Live queries
    # ------------------------------------------------------------------

    async def run_query(self, collection: str, query: QuerySpec) -> list[DocumentSnapshot]:
        parent, _, collection_id = collection.rpartition("/")
        url = f"{self._database_url}/{parent}:runQuery" if parent else f"{self._database_url}:runQuery"
        rows = await self._transport.request_json("POST", url, build_structured_query(collection_id, query))
        if not isinstance(rows, list):
            raise VendTransportError(f"runQuery on {collection} returned {type(rows).__name__}", endpoint=url)
        return [decode_document(row["document"]) for row in rows if isinstance(row, dict) and "document" in row]

    def subscribe_query(
        self,
        collection: str,
        query: QuerySpec,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        task = asyncio.get_running_loop().create_task(self._poll(collection, query, on_snapshot, on_error))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        def _unsubscribe() -> None:
            task.cancel()

        return _unsubscribe

    async def _poll(
        self,
        collection: str,
        query: QuerySpec,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> None:
        last_seen: tuple[tuple[str, str | None], ...] | None = None
        while True:
            try:
                docs = await self.run_query(collection, query)
            except Exception as exc:
                _logger.warning("Live query on %s failed: %s", collection, exc)
                on_error(exc)
                return

            seen = tuple((doc.id, doc.update_time) for doc in docs)
            if seen != last_seen:
                last_seen = seen
                try:
                    on_snapshot(docs)
                except Exception:
                    _logger.debug("Snapshot listener failed collection=%s", collection, exc_info=True)
            await asyncio.sleep(self._poll_interval)

    async def close(self) -> None:
        """Cancel every polling task still running."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Reads and writes
    # ------------------------------------------------------------------

    async def get_one(self, collection: str, doc_id: str) -> DocumentSnapshot | None:
        try:
            document = await self._transport.request_json("GET", self._doc_url(collection, doc_id))
        except VendTransportError as exc:
            if exc.status_code == 404:
                return None
            raise
        return decode_document(document)

    async def write_one(self, collection: str, doc_id: str | None, fields: Mapping[str, Any]) -> str:
        new_id = doc_id or auto_id()
        await self._commit([self._update_write(collection, new_id, fields, merge=False)])
        return new_id

    async def update_one(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        await self._commit([self._update_write(collection, doc_id, fields, merge=True)])

    async def delete_one(self, collection: str, doc_id: str) -> None:
        await self._commit([{"delete": self._doc_name(collection, doc_id)}])

    async def atomic_bulk_write(
        self,
        collection: str,
        writes: Sequence[tuple[str, Mapping[str, Any]]],
        preconditions: Preconditions | None = None,
    ) -> None:
        if len(writes) > MAX_BATCH_WRITES:
            raise ValueError(f"Batch of {len(writes)} writes exceeds the limit of {MAX_BATCH_WRITES}")
        guarded = preconditions or {}
        await self._commit(
            [
                self._update_write(
                    collection,
                    doc_id,
                    fields,
                    merge=False,
                    expected_update_time=guarded.get(doc_id),
                    must_not_exist=doc_id in guarded and guarded[doc_id] is None,
                )
                for doc_id, fields in writes
            ]
        )
