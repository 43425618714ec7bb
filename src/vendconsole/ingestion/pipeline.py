"""Idempotent bulk import of token inventory.

Each token is written under its own code, so re-importing a file
overwrites the same documents instead of creating duplicates.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from vendconsole._recordstore import SERVER_TIMESTAMP, DocumentSnapshot, Preconditions, RecordStore
from vendconsole.config import ConsoleConfig
from vendconsole.exceptions import VendAlreadySoldError, VendImportError, VendValidationError
from vendconsole.ingestion.batch import BatchRow, ParsedBatch, parse_batch

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportResult:
    """Outcome of a committed batch import."""

    staged: int
    codes: tuple[str, ...]
    sale_price: int
    skipped: int = 0
    duplicates: int = 0


def build_token_fields(row: BatchRow, sale_price: int) -> dict[str, Any]:
    """Document fields for a freshly imported, unsold token."""
    return {
        "code": row.code,
        "plan": row.plan,
        "price": sale_price,
        "costPrice": row.cost_price,
        "franchiseeFee": row.franchisee_fee,
        "isSold": False,
        "machineId": None,
        "importedAt": SERVER_TIMESTAMP,
    }


class ImportPipeline:
    """Parse, validate and atomically upsert a batch of tokens."""

    def __init__(self, record_store: RecordStore, config: ConsoleConfig) -> None:
        self._record_store = record_store
        self._config = config

    def validate_sale_price(self, sale_price: int) -> int:
        if isinstance(sale_price, bool) or not isinstance(sale_price, int):
            raise VendValidationError(f"Sale price must be an integer, got {sale_price!r}", field="price")
        if sale_price not in self._config.price_tiers:
            tiers = ", ".join(str(tier) for tier in self._config.price_tiers)
            raise VendValidationError(f"Sale price {sale_price} is not one of: {tiers}", field="price")
        return sale_price

    def parse(self, payload: str | bytes) -> ParsedBatch:
        return parse_batch(payload, default_plan=self._config.default_plan)

    async def _read_existing(self, codes: tuple[str, ...]) -> dict[str, DocumentSnapshot | None]:
        collection = self._config.tokens_path
        try:
            docs = await asyncio.gather(*(self._record_store.get_one(collection, code) for code in codes))
        except Exception as exc:
            raise VendImportError(f"Could not check existing tokens: {exc}") from exc
        return dict(zip(codes, docs, strict=True))

    async def import_batch(self, payload: str | bytes, sale_price: int) -> ImportResult:
        """Import *payload* with *sale_price* applied to every row.

        All validation happens before the single atomic write, so a
        :class:`VendValidationError` means nothing was written. A
        :class:`VendImportError` means the commit failed as a whole and
        the import can be retried unchanged.

        With ``guard_sold_reimport`` every write is conditioned on the
        version read during the sold check, so a sale that lands between
        the check and the commit fails the import instead of being undone.
        """
        price = self.validate_sale_price(sale_price)
        batch = self.parse(payload)

        preconditions: Preconditions | None = None
        if self._config.guard_sold_reimport:
            existing = await self._read_existing(batch.codes)
            sold = tuple(code for code, doc in existing.items() if doc is not None and _is_sold(doc.data))
            if sold:
                preview = ", ".join(sold[:5])
                raise VendAlreadySoldError(
                    f"{len(sold)} token(s) in this batch were already sold: {preview}",
                    codes=sold,
                )
            # A token sold after the read must fail the commit, not be reset.
            preconditions = {code: doc.update_time if doc is not None else None for code, doc in existing.items()}

        writes = [(row.code, build_token_fields(row, price)) for row in batch.rows]
        try:
            await self._record_store.atomic_bulk_write(self._config.tokens_path, writes, preconditions)
        except Exception as exc:
            _logger.warning("Batch import of %d tokens failed: %s", len(writes), exc)
            raise VendImportError(f"Import of {len(writes)} tokens failed: {exc}", staged=len(writes)) from exc

        _logger.info("Imported %d tokens at price %d", len(writes), price)
        return ImportResult(
            staged=len(writes),
            codes=batch.codes,
            sale_price=price,
            skipped=batch.skipped,
            duplicates=batch.duplicates,
        )


def _is_sold(data: Mapping[str, Any]) -> bool:
    return bool(data.get("isSold"))
