"""
OrderStockCoupler -- keeps stock in step with the order lifecycle.

Responsibility:
    Persists order creations, edits, status changes and deletions, and
    issues the matching stock adjustments through the StockAdjuster so
    callers never do ledger bookkeeping themselves.

Architecture position:
    Kernel > Services -- imperative shell.  All stock changes go through
    ``StockAdjuster.adjust_stock``; orders are written through the store.

Invariants enforced:
    WEAK_PRODUCT_REFERENCE -- lines without a product id (ad-hoc items) never
        touch stock; lines whose product no longer exists are reported, and
        never block the order operation.
    Round trip -- creating an order and deleting it again returns every
        linked product to its previous stock (for quantities within stock).
    Claim before restore -- deletions remove the order at the version they
        read before returning any units, so an order is restored at most once
        however deletions and edits interleave.
    Restore once -- an order whose units were already returned by
        cancellation (``restore_stock_on_cancel``) is not restored again
        when it is deleted.

Failure modes:
    - InvalidOrderError: a line quantity is not positive, the order id is
      already taken, or an edit tries to change the status.
    - OrderNotFoundError: single-order operations on an unknown id.
    - OptimisticLockError: the order changed between read and write (edit
      and status change), or kept changing under a deletion; nothing was
      adjusted.
    - Per-product adjustment failures are collected in ``failures`` and
      logged; they are never raised once the order write has happened.

Audit relevance:
    Every adjustment carries the order id as ``reference_id``, so the
    ``stock_adjusted`` log lines can be traced back to the order.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from uuid import uuid4

from inventory_config.schema import LedgerSettings, OrderEditPolicy
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.ledger import (
    AdjustmentKind,
    AdjustmentMeta,
    Collection,
    ItemFailure,
    Order,
    OrderItem,
    OrderStatus,
    Product,
)
from inventory_kernel.domain.naming import normalize_name
from inventory_kernel.exceptions import (
    InvalidOrderError,
    InventoryKernelError,
    OptimisticLockError,
    OrderNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.stock_adjuster import StockAdjuster
from inventory_kernel.store.base import LedgerStore

logger = get_logger("services.order_stock_coupler")

RESTORED_FROM_DELETED_ORDER = "restored from deleted order"
RESTORED_FROM_BULK_DELETE = "restored from bulk-deleted orders"
RESTORED_FROM_CANCELLED_ORDER = "restored from cancelled order"
RESTORED_FROM_EDITED_ORDER = "restored from edited order"


def new_order_id() -> str:
    """Short uppercase order id (first 8 characters of a uuid4)."""
    return str(uuid4())[:8].upper()


@dataclass(frozen=True)
class OrderStockResult:
    """Outcome of a single-order operation."""

    order: Order | None
    failures: tuple[ItemFailure, ...] = ()
    adjusted_product_ids: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class BulkDeleteResult:
    """Outcome of deleting many orders with one restoration per product."""

    deleted_order_ids: tuple[str, ...] = ()
    restored_quantities: dict[str, int] = field(default_factory=dict)
    failures: tuple[ItemFailure, ...] = ()

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_order_ids)


class OrderStockCoupler(BaseService):
    """Order writes plus the stock adjustments they imply."""

    def __init__(
        self,
        store: LedgerStore,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        adjuster: StockAdjuster | None = None,
    ):
        super().__init__(store, settings, clock)
        self.adjuster = adjuster or StockAdjuster(store, self.settings, self.clock)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_order_and_deduct_stock(self, order: Order) -> OrderStockResult:
        """
        Persist a new order, then deduct each linked product's quantity.

        Fills in the id (when empty), line ids, ``total_price``, timestamps
        and missing import-price snapshots.  Products that cannot be found
        are reported in ``failures``; the order is still created.
        """
        order_id = order.id or new_order_id()
        self._validate_items(order_id, order.items)
        if self.store.get_order(order_id) is not None:
            raise InvalidOrderError(order_id, "an order with this id already exists")

        now = self.clock.now()
        items = self._link_items_by_name(order.items)
        items = self._snapshot_import_prices(items)
        items = tuple(
            item if item.id else replace(item, id=f"{order_id}-{index}")
            for index, item in enumerate(items, start=1)
        )
        prepared = order.with_changes(
            id=order_id,
            items=items,
            created_at=order.created_at or now,
            updated_at=now,
        ).with_recomputed_total()

        stored = self.store.upsert(prepared, expected_version=0)
        logger.info(
            "order_created",
            extra={
                "order_id": stored.id,
                "batch_id": stored.batch_id,
                "item_count": len(stored.items),
                "total_price": stored.total_price,
            },
        )

        if not self._holds_stock(stored):
            return OrderStockResult(order=stored)

        failures, adjusted = self._adjust_each(
            {pid: -qty for pid, qty in stored.quantities_by_product().items()},
            order_id=stored.id,
            restore_note="",
        )
        return OrderStockResult(order=stored, failures=failures, adjusted_product_ids=adjusted)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_order_and_restore_stock(self, order_id: str) -> OrderStockResult:
        """
        Delete the order, then restore each linked line's quantity.

        The order is removed first, at the version that was read, so only
        one of two interleaved deletions gets to restore, and a deletion
        racing an edit restores the edited quantities.  Failed restorations
        are reported in ``failures``; the order stays deleted.

        Raises:
            OrderNotFoundError: ``order_id`` does not exist (or was deleted
                concurrently).
            OptimisticLockError: the order kept changing on every attempt;
                nothing was deleted or adjusted.
        """
        order = self._claim_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        failures: tuple[ItemFailure, ...] = ()
        adjusted: tuple[str, ...] = ()
        if self._holds_stock(order):
            failures, adjusted = self._adjust_each(
                order.quantities_by_product(),
                order_id=order.id,
                restore_note=RESTORED_FROM_DELETED_ORDER,
            )

        logger.info(
            "order_deleted",
            extra={
                "order_id": order.id,
                "restored_products": len(adjusted),
                "failure_count": len(failures),
            },
        )
        return OrderStockResult(order=order, failures=failures, adjusted_product_ids=adjusted)

    def bulk_delete_orders_and_restore_stock(self, order_ids: list[str]) -> BulkDeleteResult:
        """
        Delete many orders, restoring stock with one adjustment per product.

        Each order is claimed (deleted at the version read) before anything
        is restored, and only claimed orders contribute.  Quantities are
        then aggregated, so N orders that share a product cause exactly one
        RESTORE for it.  Unknown order ids, orders that kept changing and
        missing products are reported, not raised.
        """
        failures: list[ItemFailure] = []
        claimed: list[Order] = []
        seen: set[str] = set()

        for order_id in order_ids:
            if order_id in seen:
                continue
            seen.add(order_id)
            try:
                order = self._claim_order(order_id)
            except OptimisticLockError as exc:
                failures.append(ItemFailure(order_id, exc.code, str(exc)))
                continue
            if order is None:
                failures.append(
                    ItemFailure(order_id, OrderNotFoundError.code, f"Order {order_id} not found")
                )
                continue
            claimed.append(order)

        restoration: dict[str, int] = {}
        for order in claimed:
            if not self._holds_stock(order):
                continue
            for pid, qty in order.quantities_by_product().items():
                restoration[pid] = restoration.get(pid, 0) + qty

        adjust_failures, adjusted = self._adjust_each(
            restoration,
            order_id=None,
            restore_note=RESTORED_FROM_BULK_DELETE,
        )
        failures.extend(adjust_failures)
        deleted = [order.id for order in claimed]

        logger.info(
            "orders_bulk_deleted",
            extra={
                "requested": len(order_ids),
                "deleted": len(deleted),
                "restored_products": len(adjusted),
                "failure_count": len(failures),
            },
        )
        return BulkDeleteResult(
            deleted_order_ids=tuple(deleted),
            restored_quantities={pid: restoration[pid] for pid in adjusted},
            failures=tuple(failures),
        )

    def _claim_order(self, order_id: str) -> Order | None:
        """
        Delete ``order_id`` at the version read and return that snapshot.

        Returns None when the order does not exist or another caller
        deleted it first.  A version conflict re-reads and tries again.
        """
        max_attempts = self.settings.max_adjust_retries
        for attempt in range(1, max_attempts + 1):
            order = self.store.get_order(order_id)
            if order is None:
                return None
            try:
                deleted = self.store.delete(
                    Collection.ORDERS, order_id, expected_version=order.version
                )
            except OptimisticLockError:
                logger.warning(
                    "order_delete_conflict",
                    extra={"order_id": order_id, "attempt": attempt, "max_attempts": max_attempts},
                )
                if attempt == max_attempts:
                    raise
                continue
            return order if deleted else None
        return None

    # ------------------------------------------------------------------
    # Edit / status
    # ------------------------------------------------------------------

    def update_order(self, order: Order) -> OrderStockResult:
        """
        Replace an order's lines and descriptive fields.

        Under the ``diff`` edit policy the net quantity change per product
        is applied as one SALE or RESTORE; under ``stock_neutral`` stock is
        left alone.  Status changes go through ``change_order_status``.

        Raises:
            OrderNotFoundError: the order does not exist.
            InvalidOrderError: bad line quantity, or a status change.
            OptimisticLockError: the order changed since it was read (checked
                when ``order.version`` is set).
        """
        existing = self.store.get_order(order.id)
        if existing is None:
            raise OrderNotFoundError(order.id)
        self._validate_items(order.id, order.items)
        if OrderStatus(order.status) != existing.status:
            raise InvalidOrderError(order.id, "use change_order_status to change the status")

        items = self._snapshot_import_prices(order.items)
        items = tuple(
            item if item.id else replace(item, id=f"{order.id}-{index}")
            for index, item in enumerate(items, start=1)
        )
        prepared = order.with_changes(
            items=items,
            status=existing.status,
            created_at=existing.created_at,
            updated_at=self.clock.now(),
        ).with_recomputed_total()
        stored = self.store.upsert(prepared, expected_version=order.version or existing.version)

        failures: tuple[ItemFailure, ...] = ()
        adjusted: tuple[str, ...] = ()
        if (
            self.settings.order_edit_policy is OrderEditPolicy.DIFF
            and self._holds_stock(existing)
        ):
            before = existing.quantities_by_product()
            after = stored.quantities_by_product()
            deltas = {
                pid: before.get(pid, 0) - after.get(pid, 0)
                for pid in sorted(set(before) | set(after))
            }
            failures, adjusted = self._adjust_each(
                {pid: delta for pid, delta in deltas.items() if delta},
                order_id=stored.id,
                restore_note=RESTORED_FROM_EDITED_ORDER,
            )

        logger.info(
            "order_updated",
            extra={
                "order_id": stored.id,
                "edit_policy": self.settings.order_edit_policy.value,
                "adjusted_products": len(adjusted),
                "failure_count": len(failures),
            },
        )
        return OrderStockResult(order=stored, failures=failures, adjusted_product_ids=adjusted)

    def change_order_status(self, order_id: str, status: OrderStatus) -> OrderStockResult:
        """
        Move an order to ``status``.

        With ``restore_stock_on_cancel`` enabled, cancelling returns the
        order's units to stock and un-cancelling takes them again; otherwise
        only the status changes.
        """
        status = OrderStatus(status)
        existing = self.store.get_order(order_id)
        if existing is None:
            raise OrderNotFoundError(order_id)
        if existing.status == status:
            return OrderStockResult(order=existing)

        stored = self.store.upsert(
            existing.with_changes(status=status, updated_at=self.clock.now()),
            expected_version=existing.version,
        )

        failures: tuple[ItemFailure, ...] = ()
        adjusted: tuple[str, ...] = ()
        if self.settings.restore_stock_on_cancel:
            quantities = existing.quantities_by_product()
            if status is OrderStatus.CANCELLED:
                failures, adjusted = self._adjust_each(
                    quantities,
                    order_id=order_id,
                    restore_note=RESTORED_FROM_CANCELLED_ORDER,
                )
            elif existing.status == OrderStatus.CANCELLED:
                failures, adjusted = self._adjust_each(
                    {pid: -qty for pid, qty in quantities.items()},
                    order_id=order_id,
                    restore_note="",
                )

        logger.info(
            "order_status_changed",
            extra={
                "order_id": order_id,
                "old_status": existing.status.value,
                "new_status": status.value,
                "adjusted_products": len(adjusted),
            },
        )
        return OrderStockResult(order=stored, failures=failures, adjusted_product_ids=adjusted)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _holds_stock(self, order: Order) -> bool:
        """True when the order's units are currently deducted from stock."""
        return order.status != OrderStatus.CANCELLED or not self.settings.restore_stock_on_cancel

    def _adjust_each(
        self,
        deltas: dict[str, int],
        *,
        order_id: str | None,
        restore_note: str,
    ) -> tuple[tuple[ItemFailure, ...], tuple[str, ...]]:
        """
        Apply one SALE (negative) or RESTORE (positive) per product.

        Returns the failures and the ids of products actually adjusted.
        """
        failures: list[ItemFailure] = []
        adjusted: list[str] = []
        for pid in sorted(deltas):
            delta = deltas[pid]
            if not delta:
                continue
            meta = AdjustmentMeta(
                note=restore_note if delta > 0 else "",
                kind=AdjustmentKind.RESTORE if delta > 0 else AdjustmentKind.SALE,
                reference_id=order_id,
            )
            try:
                self.adjuster.adjust_stock(pid, delta, meta)
            except InventoryKernelError as exc:
                logger.warning(
                    "order_line_adjustment_failed",
                    extra={
                        "order_id": order_id,
                        "product_id": pid,
                        "delta": delta,
                        "error_code": exc.code,
                    },
                )
                failures.append(ItemFailure(pid, exc.code, str(exc)))
                continue
            adjusted.append(pid)
        return tuple(failures), tuple(adjusted)

    @staticmethod
    def _validate_items(order_id: str, items) -> None:
        for item in items:
            quantity = item.quantity
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                raise InvalidOrderError(
                    order_id, f"line {item.id or item.name!r} has quantity {quantity!r}; must be > 0"
                )

    def _link_items_by_name(self, items: tuple[OrderItem, ...]) -> tuple[OrderItem, ...]:
        if not self.settings.link_items_by_name or all(item.is_linked for item in items):
            return tuple(items)

        by_name: dict[str, list[Product]] = {}
        for product in self.store.list_products():
            by_name.setdefault(normalize_name(product.name), []).append(product)

        linked = []
        for item in items:
            matches = by_name.get(normalize_name(item.name), [])
            if not item.is_linked and len(matches) == 1:
                item = replace(item, product_id=matches[0].id)
            linked.append(item)
        return tuple(linked)

    def _snapshot_import_prices(self, items) -> tuple[OrderItem, ...]:
        cache: dict[str, Product | None] = {}
        result = []
        for item in items:
            if item.is_linked and item.import_price_snapshot is None:
                if item.product_id not in cache:
                    cache[item.product_id] = self.store.get_product(item.product_id)
                product = cache[item.product_id]
                if product is not None and product.import_price is not None:
                    item = replace(item, import_price_snapshot=product.import_price)
            result.append(item)
        return tuple(result)
