"""
Ledger Invariants Contract.

These invariants are structural law for the stock ledger. No setting in
``inventory_config`` may switch them off; settings only choose *which*
sanctioned path restores consistency (for example whether cancelling an
order returns stock).

This module exists solely to declare the invariants explicitly. Enforcement
is distributed across ``domain.stock`` (validation), ``StockAdjuster`` (the
single mutation primitive) and the stores (compare-and-swap writes).
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """stock_quantity >= 0 for every product at all times. Enforced by the
    zero floor in StockAdjuster and by reconciliation's max(0, ...)."""

    STOCK_WITHIN_IMPORTED = "stock_within_imported"
    """total_imported >= stock_quantity. RESTORE adjustments are capped at
    the authoritative total imported."""

    HISTORY_AUTHORITATIVE = "history_authoritative"
    """When import history is non-empty, the sum of its quantities is the
    total imported. Merges synthesize opening-balance records for legacy
    members so the survivor's history stays authoritative."""

    NON_NEGATIVE_IMPORTED = "non_negative_imported"
    """total_imported never goes below zero. Violations are rejected with
    NegativeTotalImportedError, never clamped."""

    SERIALIZED_ADJUSTMENT = "serialized_adjustment"
    """Concurrent adjustments to one product never lose an update. Enforced
    by per-product locks plus compare-and-swap on the store version."""

    WEAK_PRODUCT_REFERENCE = "weak_product_reference"
    """Order items reference products by id only. Deleting or merging a
    product never deletes or invalidates an order."""


# All invariants as a frozenset for programmatic checks.
ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)
