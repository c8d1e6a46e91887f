"""
Ledger entities -- Pure domain records for products and orders.

Responsibility:
    Defines the immutable records the ledger reads and writes through the
    store: Product (owner of the stock counters and import history),
    ImportRecord, Order and OrderItem.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies; the SQL store converts rows to and from these
    records at its boundary.

Invariants enforced:
    WEAK_PRODUCT_REFERENCE -- OrderItem.product_id is a plain optional key,
    never an object pointer.  Items keep their own name/price snapshot so an
    order stays meaningful after its product is deleted or merged away.

Failure modes:
    None -- validation of ledger arithmetic lives in ``domain.stock`` and of
    order content in the order-stock coupler, which raise typed errors.

Data flow:
    Store row -> Product/Order -> dataclasses.replace(...) -> store upsert
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum


class Collection(str, Enum):
    """Store collections the ledger reads and writes."""

    PRODUCTS = "products"
    ORDERS = "orders"


class OrderStatus(str, Enum):
    """Delivery lifecycle of an order."""

    PENDING = "PENDING"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


class AdjustmentKind(str, Enum):
    """
    Why a stock adjustment happens.

    RECEIPT and CORRECTION touch the import ledger; SALE and RESTORE move
    units between stock and order history only.
    """

    RECEIPT = "receipt"  # Units received (+stock, +total imported, +record)
    SALE = "sale"  # Units leave with an order (-stock)
    RESTORE = "restore"  # Sold units come back (+stock, capped at total)
    CORRECTION = "correction"  # Received units written off (-stock, -total, -record)


@dataclass(frozen=True)
class ImportRecord:
    """One replenishment event in a product's import ledger."""

    id: str
    date: datetime
    quantity: int
    unit_cost: Decimal | None = None
    note: str = ""


@dataclass(frozen=True)
class Product:
    """
    Catalogue product and sole owner of its stock counters.

    Contract:
        ``total_imported`` is None only for legacy records that predate the
        import ledger; ``domain.stock.authoritative_total_imported`` resolves
        which figure is authoritative.  ``version`` is maintained by the
        store and used for compare-and-swap writes.
    """

    id: str
    name: str
    selling_price: Decimal = Decimal("0")
    import_price: Decimal | None = None
    stock_quantity: int = 0
    total_imported: int | None = 0
    import_history: tuple[ImportRecord, ...] = ()
    last_import_date: datetime | None = None
    created_at: datetime | None = None
    version: int = 0

    collection = Collection.PRODUCTS

    def with_changes(self, **changes) -> Product:
        return replace(self, **changes)


@dataclass(frozen=True)
class OrderItem:
    """
    One line of an order.

    ``price`` and ``import_price_snapshot`` are snapshots taken when the line
    was written; later product price changes never reach them unless a
    pending-order sync is explicitly requested.
    """

    id: str
    name: str
    quantity: int
    price: Decimal = Decimal("0")
    product_id: str | None = None
    import_price_snapshot: Decimal | None = None

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.quantity) * self.price

    @property
    def is_linked(self) -> bool:
        """True when the line takes part in stock accounting."""
        return bool(self.product_id)


def compute_total_price(items: tuple[OrderItem, ...] | list[OrderItem]) -> Decimal:
    """Sum of quantity x price over all lines."""
    return sum((item.line_total for item in items), Decimal("0"))


@dataclass(frozen=True)
class Order:
    """A delivery order grouped into a batch (delivery run)."""

    id: str
    batch_id: str = ""
    status: OrderStatus = OrderStatus.PENDING
    items: tuple[OrderItem, ...] = ()
    total_price: Decimal = Decimal("0")
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int = 0

    collection = Collection.ORDERS

    def with_changes(self, **changes) -> Order:
        return replace(self, **changes)

    def with_recomputed_total(self) -> Order:
        return replace(self, total_price=compute_total_price(self.items))

    def quantities_by_product(self) -> dict[str, int]:
        """Net quantity per linked product id across all lines."""
        totals: dict[str, int] = {}
        for item in self.items:
            if item.is_linked:
                totals[item.product_id] = totals.get(item.product_id, 0) + int(item.quantity or 0)
        return totals

    def references(self, product_id: str) -> bool:
        return any(item.product_id == product_id for item in self.items)


@dataclass(frozen=True)
class AdjustmentMeta:
    """
    Metadata attached to a stock adjustment.

    ``kind`` defaults from the sign of the delta (RECEIPT for positive, SALE
    for negative) when left as None.
    """

    unit_cost: Decimal | None = None
    note: str = ""
    date: datetime | None = None
    kind: AdjustmentKind | None = None
    reference_id: str | None = None


@dataclass(frozen=True)
class ItemFailure:
    """A per-item failure reported by a bulk or multi-line operation."""

    entity_id: str
    code: str
    message: str


@dataclass(frozen=True)
class ProductChange:
    """Before/after stock figures for one product touched by maintenance."""

    product_id: str
    old_stock: int
    new_stock: int
    old_total_imported: int | None = None
    new_total_imported: int | None = None
    units_sold: int = 0

    @property
    def stock_delta(self) -> int:
        return self.new_stock - self.old_stock

