"""Pure domain layer of the inventory kernel (no I/O)."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.ledger import (
    AdjustmentKind,
    AdjustmentMeta,
    Collection,
    ImportRecord,
    ItemFailure,
    Order,
    OrderItem,
    OrderStatus,
    Product,
    ProductChange,
    compute_total_price,
)
from inventory_kernel.domain.naming import generate_product_id, normalize_name
from inventory_kernel.domain.stock import (
    authoritative_total_imported,
    compute_authoritative_stock,
    history_with_opening_balance,
    units_sold_snapshot,
    validate_ledger,
)

__all__ = [
    "AdjustmentKind",
    "AdjustmentMeta",
    "Clock",
    "Collection",
    "DeterministicClock",
    "ImportRecord",
    "ItemFailure",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Product",
    "ProductChange",
    "SystemClock",
    "authoritative_total_imported",
    "compute_authoritative_stock",
    "compute_total_price",
    "generate_product_id",
    "history_with_opening_balance",
    "normalize_name",
    "units_sold_snapshot",
    "validate_ledger",
]
