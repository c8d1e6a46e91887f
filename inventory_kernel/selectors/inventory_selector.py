"""
Module: inventory_kernel.selectors.inventory_selector
Responsibility: Read-only inventory views: a product's order history, its
    exports grouped by delivery batch, valuation totals and the low-stock
    list.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Order history and batch exports skip CANCELLED orders, matching what
      reconciliation counts as sold.
    - Valuation treats a missing import price as zero cost.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal

from inventory_kernel.domain.ledger import Order, OrderStatus, Product
from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.store.base import LedgerStore

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class ProductOrderLine:
    """One order's take of a product."""

    order_id: str
    batch_id: str
    status: OrderStatus
    quantity: int
    created_at: datetime | None


@dataclass(frozen=True)
class BatchExport:
    """Units of a product that left with one delivery batch."""

    batch_id: str
    quantity: int
    order_count: int
    latest_date: datetime | None


@dataclass(frozen=True)
class InventorySummary:
    product_count: int
    total_stock: int
    capital: Decimal
    projected_profit: Decimal
    low_stock_count: int


def _quantity_for(order: Order, product_id: str) -> int:
    return order.quantities_by_product().get(product_id, 0)


class InventorySelector(BaseSelector):

    def __init__(self, store: LedgerStore, low_stock_threshold: int = 5):
        super().__init__(store)
        self.low_stock_threshold = low_stock_threshold

    def product_order_history(self, product_id: str) -> list[ProductOrderLine]:
        """Non-cancelled orders that took ``product_id``, newest first."""
        lines = [
            ProductOrderLine(
                order_id=order.id,
                batch_id=order.batch_id,
                status=order.status,
                quantity=quantity,
                created_at=order.created_at,
            )
            for order in self.store.list_orders()
            if order.status != OrderStatus.CANCELLED
            and (quantity := _quantity_for(order, product_id)) > 0
        ]
        lines.sort(key=lambda line: (line.created_at or _UNDATED, line.order_id), reverse=True)
        return lines

    def batch_export_summary(self, product_id: str) -> list[BatchExport]:
        """``product_order_history`` grouped by batch, newest batch first."""
        batches: dict[str, list[ProductOrderLine]] = {}
        for line in self.product_order_history(product_id):
            batches.setdefault(line.batch_id, []).append(line)

        exports = []
        for batch_id, lines in batches.items():
            dates = [line.created_at for line in lines if line.created_at is not None]
            exports.append(
                BatchExport(
                    batch_id=batch_id,
                    quantity=sum(line.quantity for line in lines),
                    order_count=len(lines),
                    latest_date=max(dates) if dates else None,
                )
            )
        exports.sort(key=lambda e: (e.latest_date or _UNDATED, e.batch_id), reverse=True)
        return exports

    def inventory_summary(self) -> InventorySummary:
        """Capital tied up in stock, projected profit and low-stock count."""
        products = self.store.list_products()
        capital = Decimal("0")
        profit = Decimal("0")
        for product in products:
            stock = max(0, product.stock_quantity)
            cost = product.import_price or Decimal("0")
            capital += cost * stock
            profit += (product.selling_price - cost) * stock
        return InventorySummary(
            product_count=len(products),
            total_stock=sum(max(0, p.stock_quantity) for p in products),
            capital=capital,
            projected_profit=profit,
            low_stock_count=sum(1 for p in products if self._is_low(p)),
        )

    def low_stock_products(self) -> list[Product]:
        """Products below the low-stock threshold, lowest stock first."""
        return sorted(
            (p for p in self.store.list_products() if self._is_low(p)),
            key=lambda p: (p.stock_quantity, p.name, p.id),
        )

    def _is_low(self, product: Product) -> bool:
        return product.stock_quantity < self.low_stock_threshold
