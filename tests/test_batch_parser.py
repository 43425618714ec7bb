from __future__ import annotations

import pytest

from vendconsole.exceptions import VendValidationError
from vendconsole.ingestion.batch import parse_batch
from vendconsole.ingestion.normalize import clean_field, non_negative_or_zero

SCENARIO = "Login,Plan,Price,SellerFee\nABC123,Basic,8000,1000\n,Basic,8000,1000\nXYZ789,Pro,9000,1500"


def test_blank_code_row_is_skipped_not_counted() -> None:
    batch = parse_batch(SCENARIO)

    assert batch.codes == ("ABC123", "XYZ789")
    assert batch.skipped == 1
    first, second = batch.rows
    assert (first.plan, first.cost_price, first.franchisee_fee) == ("Basic", 8000, 1000)
    assert (second.plan, second.cost_price, second.franchisee_fee) == ("Pro", 9000, 1500)


def test_plan_column_is_optional() -> None:
    batch = parse_batch("Login,Price,SellerFee\nAAA,100,10\n", default_plan="Starter")

    assert batch.rows[0].plan == "Starter"


def test_empty_plan_cell_uses_default_plan() -> None:
    batch = parse_batch("Login,Plan,Price,SellerFee\nAAA,,100,10", default_plan="Starter")

    assert batch.rows[0].plan == "Starter"


def test_columns_are_resolved_by_header_name_in_any_order() -> None:
    batch = parse_batch("SellerFee,Price,Login\n15,200,CODE-1")

    row = batch.rows[0]
    assert (row.code, row.cost_price, row.franchisee_fee) == ("CODE-1", 200, 15)


def test_quotes_and_whitespace_are_stripped() -> None:
    batch = parse_batch('"Login","Price","SellerFee"\n  "ABC" , "8000" ,"1000"  ')

    row = batch.rows[0]
    assert (row.code, row.cost_price, row.franchisee_fee) == ("ABC", 8000, 1000)


def test_unparseable_numbers_default_to_zero() -> None:
    batch = parse_batch("Login,Price,SellerFee\nA,abc,\nB,-5,12.9\nC")

    values = {row.code: (row.cost_price, row.franchisee_fee) for row in batch.rows}
    assert values == {"A": (0, 0), "B": (0, 12), "C": (0, 0)}


def test_crlf_line_endings_and_trailing_blank_lines() -> None:
    batch = parse_batch("Login,Price,SellerFee\r\nA,1,1\r\n\r\nB,2,2\r\n\r\n")

    assert batch.codes == ("A", "B")
    assert batch.skipped == 0


def test_utf8_bom_in_bytes_payload() -> None:
    payload = "Login,Price,SellerFee\nA,1,1".encode("utf-8-sig")

    assert parse_batch(payload).codes == ("A",)


def test_invalid_utf8_is_a_validation_error() -> None:
    with pytest.raises(VendValidationError):
        parse_batch(b"Login,Price,SellerFee\n\xff\xfe,1,1")


def test_duplicate_codes_keep_last_row() -> None:
    batch = parse_batch("Login,Price,SellerFee\nA,1,1\nB,2,2\nA,3,3")

    assert batch.codes == ("B", "A")
    assert batch.duplicates == 1
    assert batch.rows[1].cost_price == 3


def test_single_line_payload_has_no_data_rows() -> None:
    with pytest.raises(VendValidationError):
        parse_batch("Login,Price,SellerFee")


def test_header_only_reports_no_valid_tokens() -> None:
    with pytest.raises(VendValidationError, match="No valid tokens"):
        parse_batch("Login,Price,SellerFee\n")


@pytest.mark.parametrize(
    ("header", "missing"),
    [
        ("Plan,Price,SellerFee", "Login"),
        ("Login,Plan,SellerFee", "Price"),
        ("Login,Plan,Price", "SellerFee"),
    ],
)
def test_missing_required_column_is_named(header: str, missing: str) -> None:
    with pytest.raises(VendValidationError) as exc_info:
        parse_batch(f"{header}\nX,1,1")

    assert exc_info.value.field == missing
    assert f"'{missing}'" in str(exc_info.value)


def test_quoted_delimiter_is_not_supported() -> None:
    # Known limitation: the comma inside quotes splits the cell.
    batch = parse_batch('Login,Plan,Price,SellerFee\nA1,"Gold, Plus",5000,100')

    row = batch.rows[0]
    assert row.plan == "Gold"
    assert row.cost_price == 0


def test_normalize_helpers() -> None:
    assert clean_field(None) == ""
    assert clean_field(' "x" ') == "x"
    assert non_negative_or_zero("nan") == 0
    assert non_negative_or_zero("42") == 42
