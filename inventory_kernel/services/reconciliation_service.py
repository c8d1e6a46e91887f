"""
ReconciliationService -- recompute stock from order history.

Responsibility:
    Treats order history as ground truth for units sold and the import
    ledger as ground truth for units received, and overwrites each
    product's stored stock with the difference.  This is the drift-repair
    maintenance action; it is a full scan, not a hot path.

Architecture position:
    Kernel > Services -- one of the two full-record overwrite paths (with
    the merge service).  It writes with compare-and-swap under the same
    per-product locks as the StockAdjuster.

Invariants enforced:
    NON_NEGATIVE_STOCK    -- corrected stock is floored at zero.
    HISTORY_AUTHORITATIVE -- a stored ``total_imported`` that disagrees with
                             the authoritative figure is aligned in the same
                             write.
    Idempotent -- a second run right after the first changes nothing.

Algorithm:
    1. sold[pid] = sum of linked line quantities over non-CANCELLED orders.
    2. corrected = max(0, authoritative_total_imported - sold[pid]).
    3. For each product whose stock or total differs: re-read it, recompute
       against the fresh record, and write with expected_version.

Failure modes:
    - Products whose write keeps conflicting after the retry budget are
      reported in ``failures`` (code CONCURRENT_MODIFICATION); the run
      continues with the next product.
"""

from __future__ import annotations

from dataclasses import dataclass

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.ledger import ItemFailure, Order, OrderStatus, Product, ProductChange
from inventory_kernel.domain.stock import authoritative_total_imported
from inventory_kernel.exceptions import ConcurrentModificationError, OptimisticLockError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.stock_adjuster import KeyedLockRegistry
from inventory_kernel.store.base import LedgerStore

logger = get_logger("services.reconciliation")


@dataclass(frozen=True)
class ReconciliationResult:
    updated_count: int
    changes: tuple[ProductChange, ...] = ()
    orphaned_item_count: int = 0
    failures: tuple[ItemFailure, ...] = ()


def units_sold_by_product(orders: list[Order]) -> dict[str, int]:
    """Linked line quantities summed per product over non-cancelled orders."""
    sold: dict[str, int] = {}
    for order in orders:
        if order.status == OrderStatus.CANCELLED:
            continue
        for pid, qty in order.quantities_by_product().items():
            sold[pid] = sold.get(pid, 0) + qty
    return sold


def _planned_change(product: Product, sold: int) -> ProductChange | None:
    total = authoritative_total_imported(product)
    corrected = max(0, total - sold)
    if corrected == product.stock_quantity and product.total_imported == total:
        return None
    return ProductChange(
        product_id=product.id,
        old_stock=product.stock_quantity,
        new_stock=corrected,
        old_total_imported=product.total_imported,
        new_total_imported=total,
        units_sold=sold,
    )


class ReconciliationService(BaseService):
    """Drift repair: stock = total imported - units sold."""

    def __init__(
        self,
        store: LedgerStore,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        locks: KeyedLockRegistry | None = None,
    ):
        super().__init__(store, settings, clock)
        self.locks = locks or KeyedLockRegistry()

    def preview_drift(self) -> ReconciliationResult:
        """What ``recalculate_inventory_from_orders`` would change, without writing."""
        products = self.store.list_products()
        orders = self.store.list_orders()
        sold = units_sold_by_product(orders)
        changes = tuple(
            change
            for product in products
            if (change := _planned_change(product, sold.get(product.id, 0))) is not None
        )
        return ReconciliationResult(
            updated_count=0,
            changes=changes,
            orphaned_item_count=self._count_orphans(orders, {p.id for p in products}),
        )

    def recalculate_inventory_from_orders(self) -> ReconciliationResult:
        """
        Overwrite each drifted product's stock with the recomputed value.

        Returns:
            ReconciliationResult with the number of products written, the
            applied changes, the count of order lines pointing at unknown
            products, and per-product failures.
        """
        products = self.store.list_products()
        orders = self.store.list_orders()
        sold = units_sold_by_product(orders)
        orphaned = self._count_orphans(orders, {p.id for p in products})

        applied: list[ProductChange] = []
        failures: list[ItemFailure] = []
        for product in products:
            if _planned_change(product, sold.get(product.id, 0)) is None:
                continue
            try:
                change = self._write_corrected(product.id, sold.get(product.id, 0))
            except ConcurrentModificationError as exc:
                failures.append(ItemFailure(product.id, exc.code, str(exc)))
                continue
            if change is not None:
                applied.append(change)
                logger.info(
                    "stock_reconciled",
                    extra={
                        "product_id": change.product_id,
                        "old_stock": change.old_stock,
                        "new_stock": change.new_stock,
                        "units_sold": change.units_sold,
                        "total_imported": change.new_total_imported,
                    },
                )

        if orphaned:
            logger.warning("reconciliation_orphaned_items", extra={"orphaned_item_count": orphaned})
        logger.info(
            "reconciliation_completed",
            extra={
                "products_scanned": len(products),
                "orders_scanned": len(orders),
                "updated_count": len(applied),
                "failure_count": len(failures),
            },
        )
        return ReconciliationResult(
            updated_count=len(applied),
            changes=tuple(applied),
            orphaned_item_count=orphaned,
            failures=tuple(failures),
        )

    def _write_corrected(self, product_id: str, sold: int) -> ProductChange | None:
        max_attempts = self.settings.max_adjust_retries
        with self.locks.hold(product_id):
            for _attempt in range(max_attempts):
                fresh = self.store.get_product(product_id)
                if fresh is None:
                    return None
                change = _planned_change(fresh, sold)
                if change is None:
                    return None
                try:
                    self.store.upsert(
                        fresh.with_changes(
                            stock_quantity=change.new_stock,
                            total_imported=change.new_total_imported,
                        ),
                        expected_version=fresh.version,
                    )
                except OptimisticLockError:
                    continue
                return change
        raise ConcurrentModificationError(product_id, max_attempts)

    @staticmethod
    def _count_orphans(orders: list[Order], product_ids: set[str]) -> int:
        return sum(
            1
            for order in orders
            for item in order.items
            if item.is_linked and item.product_id not in product_ids
        )
