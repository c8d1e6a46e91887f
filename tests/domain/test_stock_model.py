"""
Tests for the stock invariant model (``inventory_kernel.domain.stock``).

Invariants tested:
- HISTORY_AUTHORITATIVE: non-empty history sums to the total imported;
  empty history falls back to the stored snapshot, then to stock.
- STOCK_WITHIN_IMPORTED: compute_authoritative_stock clamps into range.
- NON_NEGATIVE_IMPORTED: validate_ledger rejects negative totals and
  corrupt histories.
"""

from datetime import datetime, timezone

import pytest

from inventory_kernel.domain.ledger import ImportRecord, Product
from inventory_kernel.domain.stock import (
    authoritative_total_imported,
    compute_authoritative_stock,
    history_total,
    history_with_opening_balance,
    opening_balance_id,
    units_sold_snapshot,
    validate_ledger,
)
from inventory_kernel.exceptions import (
    CorruptImportHistoryError,
    InvariantViolationError,
    NegativeTotalImportedError,
)

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _record(record_id: str, quantity: int) -> ImportRecord:
    return ImportRecord(id=record_id, date=T0, quantity=quantity)


def _product(**fields) -> Product:
    fields.setdefault("id", "P")
    fields.setdefault("name", "Product")
    return Product(**fields)


class TestAuthoritativeTotal:

    def test_history_wins_over_snapshot(self):
        product = _product(
            stock_quantity=2,
            total_imported=99,
            import_history=(_record("a", 4), _record("b", 6)),
        )
        assert authoritative_total_imported(product) == 10

    def test_snapshot_used_when_history_empty(self):
        product = _product(stock_quantity=2, total_imported=7)
        assert authoritative_total_imported(product) == 7

    def test_legacy_record_falls_back_to_stock(self):
        product = _product(stock_quantity=5, total_imported=None)
        assert authoritative_total_imported(product) == 5

    def test_negative_correction_records_count(self):
        product = _product(import_history=(_record("a", 10), _record("b", -3)))
        assert history_total(product.import_history) == 7
        assert authoritative_total_imported(product) == 7


class TestComputeAuthoritativeStock:

    def test_stock_within_range_unchanged(self):
        assert compute_authoritative_stock(_product(stock_quantity=4, total_imported=10)) == 4

    def test_stock_above_total_clamped_to_total(self):
        product = _product(stock_quantity=12, import_history=(_record("a", 10),))
        assert compute_authoritative_stock(product) == 10

    def test_negative_stock_clamped_to_zero(self):
        assert compute_authoritative_stock(_product(stock_quantity=-3, total_imported=10)) == 0

    def test_units_sold_snapshot(self):
        assert units_sold_snapshot(_product(stock_quantity=3, total_imported=10)) == 7
        assert units_sold_snapshot(_product(stock_quantity=12, total_imported=10)) == 0


class TestValidateLedger:

    def test_valid_ledger_passes(self):
        validate_ledger(_product(stock_quantity=1, import_history=(_record("a", 3),), total_imported=3))

    def test_negative_total_imported_rejected(self):
        with pytest.raises(NegativeTotalImportedError) as exc_info:
            validate_ledger(_product(total_imported=-1))
        assert exc_info.value.code == "NEGATIVE_TOTAL_IMPORTED"
        assert exc_info.value.product_id == "P"

    def test_duplicate_record_ids_rejected(self):
        product = _product(import_history=(_record("a", 3), _record("a", 2)))
        with pytest.raises(CorruptImportHistoryError):
            validate_ledger(product)

    def test_negative_history_sum_rejected(self):
        product = _product(import_history=(_record("a", 3), _record("b", -5)))
        with pytest.raises(InvariantViolationError):
            validate_ledger(product)


class TestOpeningBalance:

    def test_existing_history_returned_unchanged(self):
        history = (_record("a", 3),)
        assert history_with_opening_balance(_product(import_history=history), T0) == history

    def test_legacy_total_becomes_opening_record(self):
        product = _product(stock_quantity=2, total_imported=8)
        (record,) = history_with_opening_balance(product, T0)
        assert record.id == opening_balance_id("P")
        assert record.quantity == 8
        assert record.date == T0

    def test_nothing_received_gives_empty_history(self):
        assert history_with_opening_balance(_product(total_imported=0), T0) == ()
