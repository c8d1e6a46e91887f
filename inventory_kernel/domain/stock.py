"""
Stock Invariant Model -- pure arithmetic over a product's ledger.

Responsibility:
    Resolves the disagreement between a product's import history and its
    stored ``total_imported`` snapshot, and validates the ledger arithmetic
    before any write.  Stock is NOT recomputed from orders here; that is the
    reconciliation engine's job.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    HISTORY_AUTHORITATIVE -- a non-empty history is the total imported.
    NON_NEGATIVE_IMPORTED -- validate_ledger rejects negative totals.
    STOCK_WITHIN_IMPORTED -- compute_authoritative_stock clamps into range.

Failure modes:
    - NegativeTotalImportedError from validate_ledger.
    - CorruptImportHistoryError from validate_ledger.
    The read helpers never raise; missing numbers count as zero.
"""

from __future__ import annotations

from collections import Counter

from inventory_kernel.domain.ledger import ImportRecord, Product
from inventory_kernel.exceptions import (
    CorruptImportHistoryError,
    NegativeTotalImportedError,
)


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def history_total(history: tuple[ImportRecord, ...] | list[ImportRecord]) -> int:
    """Sum of import record quantities."""
    return sum(_as_int(record.quantity) for record in history or ())


def history_is_authoritative(product: Product) -> bool:
    return bool(product.import_history)


def authoritative_total_imported(product: Product) -> int:
    """
    Lifetime units received, resolving history vs. snapshot.

    Non-empty history wins.  Otherwise the stored snapshot is used; legacy
    records without a snapshot fall back to their stock figure (nothing can
    have been received less than what is on hand).
    """
    if history_is_authoritative(product):
        return history_total(product.import_history)
    if product.total_imported is None:
        return max(0, _as_int(product.stock_quantity))
    return _as_int(product.total_imported)


def compute_authoritative_stock(product: Product) -> int:
    """Stored stock clamped into ``[0, authoritative_total_imported]``."""
    stock = max(0, _as_int(product.stock_quantity))
    return min(stock, max(0, authoritative_total_imported(product)))


def units_sold_snapshot(product: Product) -> int:
    """Units that left stock according to the counters alone."""
    return max(0, authoritative_total_imported(product) - max(0, _as_int(product.stock_quantity)))


def validate_ledger(product: Product) -> None:
    """
    Reject ledgers that indicate a bug upstream.

    Raises:
        CorruptImportHistoryError: duplicate record ids, or a history that
            sums below zero.
        NegativeTotalImportedError: a negative stored total imported.
    """
    if product.import_history:
        duplicates = [
            record_id
            for record_id, count in Counter(r.id for r in product.import_history).items()
            if count > 1
        ]
        if duplicates:
            raise CorruptImportHistoryError(
                product.id, f"duplicate import record ids {sorted(duplicates)}"
            )
        total = history_total(product.import_history)
        if total < 0:
            raise CorruptImportHistoryError(
                product.id, f"import history sums to {total}"
            )
    if product.total_imported is not None and _as_int(product.total_imported) < 0:
        raise NegativeTotalImportedError(product.id, _as_int(product.total_imported))


def opening_balance_id(product_id: str) -> str:
    return f"OPENING-{product_id}"


def history_with_opening_balance(product: Product, when) -> tuple[ImportRecord, ...]:
    """
    The product's history, made authoritative.

    A legacy product with an empty history but a positive total imported
    gets one synthetic opening-balance record carrying that total, so that
    appending to the history never loses the units received before the
    ledger existed.  Products that already have history are returned as-is.
    """
    if product.import_history:
        return tuple(product.import_history)
    total = authoritative_total_imported(product)
    if total <= 0:
        return ()
    return (
        ImportRecord(
            id=opening_balance_id(product.id),
            date=product.last_import_date or product.created_at or when,
            quantity=total,
            note="opening balance",
        ),
    )
