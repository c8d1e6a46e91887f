"""
InventoryLedgerService -- the single public surface of the inventory ledger.

Responsibility:
    Wires the ledger services around one store, one settings object, one
    clock and one set of per-product locks, and exposes their operations.
    Every mutation a caller can make to products or orders goes through
    this object.

Architecture position:
    Kernel > Services -- composition root for the kernel.  Callers build it
    once:

        settings = get_active_config()
        ledger = InventoryLedgerService(store, settings)
        ledger.create_order_and_deduct_stock(order)

Invariants enforced:
    SERIALIZED_ADJUSTMENT -- the adjuster, reconciliation, merge and product
    services share one KeyedLockRegistry, so all of them serialize on the
    same per-product lock.

Audit relevance:
    Each call binds a LogContext with the operation name and a correlation
    id (reusing one already bound by the caller), so every log line of the
    operation can be grouped.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.ledger import AdjustmentMeta, Order, OrderStatus, Product
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.inventory_selector import (
    BatchExport,
    InventorySelector,
    InventorySummary,
    ProductOrderLine,
)
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.merge_service import MergeResult, MergeService
from inventory_kernel.services.order_stock_coupler import (
    BulkDeleteResult,
    OrderStockCoupler,
    OrderStockResult,
)
from inventory_kernel.services.pending_sync_service import PendingSyncService, SyncResult
from inventory_kernel.services.product_service import (
    UNSET,
    ProductDeletion,
    ProductService,
    ProductUpdate,
)
from inventory_kernel.services.reconciliation_service import (
    ReconciliationResult,
    ReconciliationService,
)
from inventory_kernel.services.stock_adjuster import KeyedLockRegistry, StockAdjuster
from inventory_kernel.store.base import LedgerStore

logger = get_logger("services.ledger")


class InventoryLedgerService(BaseService):
    """Facade over adjuster, coupler, reconciliation, merge, sync and catalogue."""

    def __init__(
        self,
        store: LedgerStore,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        actor_id: str | None = None,
    ):
        super().__init__(store, settings, clock)
        self.actor_id = actor_id
        self.locks = KeyedLockRegistry()
        self.adjuster = StockAdjuster(store, self.settings, self.clock, self.locks)
        self.coupler = OrderStockCoupler(store, self.settings, self.clock, self.adjuster)
        self.reconciliation = ReconciliationService(store, self.settings, self.clock, self.locks)
        self.merger = MergeService(store, self.settings, self.clock, self.locks)
        self.pending_sync = PendingSyncService(store, self.settings, self.clock)
        self.products = ProductService(store, self.settings, self.clock, self.adjuster)
        self.selector = InventorySelector(store, self.settings.low_stock_threshold)
        logger.debug(
            "ledger_service_initialized",
            extra={
                "store": type(store).__name__,
                "settings_checksum": self.settings.checksum or None,
            },
        )

    def _bind(self, operation: str, **fields: str | None):
        correlation_id = None if LogContext.get_all().get("correlation_id") else str(uuid4())
        return LogContext.bind(
            correlation_id=correlation_id,
            operation=operation,
            actor_id=self.actor_id,
            **fields,
        )

    # Stock

    def adjust_stock(
        self,
        product_id: str,
        delta: int,
        meta: AdjustmentMeta | None = None,
    ) -> Product:
        with self._bind("adjust_stock", product_id=product_id):
            return self.adjuster.adjust_stock(product_id, delta, meta)

    # Orders

    def create_order_and_deduct_stock(self, order: Order) -> OrderStockResult:
        with self._bind("create_order", order_id=order.id or None):
            return self.coupler.create_order_and_deduct_stock(order)

    def delete_order_and_restore_stock(self, order_id: str) -> OrderStockResult:
        with self._bind("delete_order", order_id=order_id):
            return self.coupler.delete_order_and_restore_stock(order_id)

    def bulk_delete_orders_and_restore_stock(self, order_ids: list[str]) -> BulkDeleteResult:
        with self._bind("bulk_delete_orders"):
            return self.coupler.bulk_delete_orders_and_restore_stock(list(order_ids))

    def update_order(self, order: Order) -> OrderStockResult:
        with self._bind("update_order", order_id=order.id):
            return self.coupler.update_order(order)

    def change_order_status(self, order_id: str, status: OrderStatus) -> OrderStockResult:
        with self._bind("change_order_status", order_id=order_id):
            return self.coupler.change_order_status(order_id, status)

    # Maintenance

    def recalculate_inventory_from_orders(self) -> ReconciliationResult:
        with self._bind("recalculate_inventory"):
            return self.reconciliation.recalculate_inventory_from_orders()

    def preview_drift(self) -> ReconciliationResult:
        with self._bind("preview_drift"):
            return self.reconciliation.preview_drift()

    def clean_and_merge_duplicate_products(self) -> MergeResult:
        with self._bind("merge_duplicates"):
            return self.merger.clean_and_merge_duplicate_products()

    def sync_product_to_pending_orders(self, product: Product) -> SyncResult:
        with self._bind("sync_pending_orders", product_id=product.id):
            return self.pending_sync.sync_product_to_pending_orders(product)

    # Catalogue

    def create_product(
        self,
        name: str,
        selling_price: Decimal = Decimal("0"),
        import_price: Decimal | None = None,
        initial_stock: int = 0,
        force: bool = False,
    ) -> Product:
        with self._bind("create_product"):
            return self.products.create_product(
                name, selling_price, import_price, initial_stock, force
            )

    def import_stock(
        self,
        product_id: str,
        quantity: int,
        unit_cost: Decimal | None = None,
        note: str = "",
    ) -> Product:
        with self._bind("import_stock", product_id=product_id):
            return self.products.import_stock(product_id, quantity, unit_cost, note)

    def set_total_imported(self, product_id: str, total: int) -> Product:
        with self._bind("set_total_imported", product_id=product_id):
            return self.products.set_total_imported(product_id, total)

    def update_product_details(
        self,
        product_id: str,
        name=UNSET,
        selling_price=UNSET,
        import_price=UNSET,
    ) -> ProductUpdate:
        with self._bind("update_product", product_id=product_id):
            return self.products.update_product_details(
                product_id, name=name, selling_price=selling_price, import_price=import_price
            )

    def delete_product(self, product_id: str) -> ProductDeletion:
        with self._bind("delete_product", product_id=product_id):
            return self.products.delete_product(product_id)

    # Reads

    def get_product(self, product_id: str) -> Product | None:
        return self.store.get_product(product_id)

    def get_order(self, order_id: str) -> Order | None:
        return self.store.get_order(order_id)

    def product_order_history(self, product_id: str) -> list[ProductOrderLine]:
        return self.selector.product_order_history(product_id)

    def batch_export_summary(self, product_id: str) -> list[BatchExport]:
        return self.selector.batch_export_summary(product_id)

    def inventory_summary(self) -> InventorySummary:
        return self.selector.inventory_summary()

    def low_stock_products(self) -> list[Product]:
        return self.selector.low_stock_products()
