"""Batch file parser.

The format is a header row followed by comma-separated rows. Fields are
split on every comma: quoted cells that contain a comma are **not**
supported and will be cut apart. Columns:

``Login``
    Token code (required).
``Price``
    Wholesale cost basis (required).
``SellerFee``
    Franchisee share of the sale price (required).
``Plan``
    Plan label (optional).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from vendconsole._constants import DEFAULT_PLAN
from vendconsole.exceptions import VendValidationError
from vendconsole.ingestion.normalize import cell, clean_field, non_negative_or_zero

_logger = logging.getLogger(__name__)

DELIMITER = ","
CODE_COLUMN = "Login"
COST_COLUMN = "Price"
FEE_COLUMN = "SellerFee"
PLAN_COLUMN = "Plan"
REQUIRED_COLUMNS: tuple[str, ...] = (CODE_COLUMN, COST_COLUMN, FEE_COLUMN)


@dataclass(frozen=True)
class BatchRow:
    """One staged token, before the sale price is applied."""

    code: str
    plan: str
    cost_price: int
    franchisee_fee: int
    line_number: int


@dataclass(frozen=True)
class ParsedBatch:
    rows: tuple[BatchRow, ...]
    skipped: int = 0
    duplicates: int = 0

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(row.code for row in self.rows)


def _decode(payload: str | bytes) -> str:
    if isinstance(payload, bytes):
        try:
            return payload.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise VendValidationError(f"Batch file is not valid UTF-8: {exc}") from exc
    return payload.removeprefix("\ufeff")


def parse_batch(payload: str | bytes, *, default_plan: str = DEFAULT_PLAN) -> ParsedBatch:
    """Parse a batch file into token rows.

    Rows with an empty code are skipped. Unparseable numbers become ``0``.
    When a code appears more than once the last row wins.

    Raises :class:`VendValidationError` when there are no data rows, a
    required column is missing, or no row carries a code.
    """
    lines = _decode(payload).split("\n")
    if len(lines) < 2:
        raise VendValidationError("Batch file is empty or has no data rows")

    headers = [clean_field(name) for name in lines[0].strip().split(DELIMITER)]
    indices: dict[str, int] = {}
    for name in (*REQUIRED_COLUMNS, PLAN_COLUMN):
        if name in headers:
            indices[name] = headers.index(name)
    for name in REQUIRED_COLUMNS:
        if name not in indices:
            raise VendValidationError(f"Column '{name}' not found in batch file header", field=name)
    plan_index = indices.get(PLAN_COLUMN)

    by_code: dict[str, BatchRow] = {}
    skipped = 0
    duplicates = 0
    for line_number, raw_line in enumerate(lines[1:], start=2):
        line = raw_line.strip()
        if not line:
            continue
        columns = line.split(DELIMITER)
        code = cell(columns, indices[CODE_COLUMN])
        if not code:
            skipped += 1
            continue
        if code in by_code:
            duplicates += 1
            # Keep the latest row but at its new position.
            by_code.pop(code)
        by_code[code] = BatchRow(
            code=code,
            plan=cell(columns, plan_index) or default_plan,
            cost_price=non_negative_or_zero(cell(columns, indices[COST_COLUMN])),
            franchisee_fee=non_negative_or_zero(cell(columns, indices[FEE_COLUMN])),
            line_number=line_number,
        )

    if not by_code:
        raise VendValidationError("No valid tokens found in batch file", field=CODE_COLUMN)

    _logger.debug("Parsed batch rows=%d skipped=%d duplicates=%d", len(by_code), skipped, duplicates)
    return ParsedBatch(rows=tuple(by_code.values()), skipped=skipped, duplicates=duplicates)
