"""Ledger services - stock adjustment, order coupling and maintenance."""

from inventory_kernel.services.ledger_service import InventoryLedgerService
from inventory_kernel.services.merge_service import MergeResult, MergeService
from inventory_kernel.services.order_stock_coupler import (
    BulkDeleteResult,
    OrderStockCoupler,
    OrderStockResult,
)
from inventory_kernel.services.pending_sync_service import PendingSyncService, SyncResult
from inventory_kernel.services.product_service import (
    ProductDeletion,
    ProductService,
    ProductUpdate,
)
from inventory_kernel.services.reconciliation_service import (
    ReconciliationResult,
    ReconciliationService,
)
from inventory_kernel.services.stock_adjuster import KeyedLockRegistry, StockAdjuster

__all__ = [
    "BulkDeleteResult",
    "InventoryLedgerService",
    "KeyedLockRegistry",
    "MergeResult",
    "MergeService",
    "OrderStockCoupler",
    "OrderStockResult",
    "PendingSyncService",
    "ProductDeletion",
    "ProductService",
    "ProductUpdate",
    "ReconciliationResult",
    "ReconciliationService",
    "StockAdjuster",
    "SyncResult",
]
