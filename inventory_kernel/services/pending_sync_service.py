"""
PendingSyncService -- push a product's current name and price to open orders.

Only PENDING orders are rewritten; orders already picked up, in transit,
delivered or cancelled keep their historical snapshots.  The rewrite is a
bulk, irreversible change to outstanding order figures, so it is never run
implicitly: callers confirm with the user first and then invoke it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from inventory_kernel.domain.ledger import OrderStatus, Product
from inventory_kernel.exceptions import OptimisticLockError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.base import BaseService

logger = get_logger("services.pending_sync")


@dataclass(frozen=True)
class SyncResult:
    updated_count: int
    order_ids: tuple[str, ...] = ()
    skipped_order_ids: tuple[str, ...] = ()


class PendingSyncService(BaseService):

    def sync_product_to_pending_orders(self, product: Product) -> SyncResult:
        """
        Overwrite name and price of every PENDING line referencing ``product``.

        Orders whose lines already match are not rewritten.  An order that
        changes between read and write is skipped and reported in
        ``skipped_order_ids``.
        """
        updated: list[str] = []
        skipped: list[str] = []
        now = self.clock.now()

        for order in self.store.list_orders():
            if order.status != OrderStatus.PENDING or not order.references(product.id):
                continue
            items = tuple(
                replace(item, name=product.name, price=product.selling_price)
                if item.product_id == product.id
                else item
                for item in order.items
            )
            if items == tuple(order.items):
                continue
            try:
                self.store.upsert(
                    order.with_changes(items=items, updated_at=now).with_recomputed_total(),
                    expected_version=order.version,
                )
            except OptimisticLockError:
                logger.warning(
                    "pending_sync_order_conflict",
                    extra={"order_id": order.id, "product_id": product.id},
                )
                skipped.append(order.id)
                continue
            updated.append(order.id)

        logger.info(
            "pending_orders_synced",
            extra={
                "product_id": product.id,
                "updated_count": len(updated),
                "skipped_count": len(skipped),
            },
        )
        return SyncResult(
            updated_count=len(updated),
            order_ids=tuple(updated),
            skipped_order_ids=tuple(skipped),
        )
