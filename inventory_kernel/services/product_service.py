"""
ProductService -- catalogue maintenance around the stock ledger.

Responsibility:
    Creates products with derived ids, records stock receipts, applies the
    "set total imported" correction, edits descriptive fields and deletes
    products.  Counter changes are delegated to the StockAdjuster; this
    service never writes ``stock_quantity`` or ``total_imported`` itself.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    NON_NEGATIVE_IMPORTED -- a negative target total raises.
    WEAK_PRODUCT_REFERENCE -- deleting a product leaves order lines as they
        are; the ids of referencing orders are reported to the caller.

Failure modes:
    - DuplicateProductError: the derived id is taken and ``force`` is off.
    - ProductNotFoundError: edits and deletes of unknown ids.
    - NegativeTotalImportedError: ``set_total_imported`` below zero.
    - ValueError: empty names, negative initial stock, non-positive receipts.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.ledger import (
    AdjustmentKind,
    AdjustmentMeta,
    Collection,
    OrderStatus,
    Product,
)
from inventory_kernel.domain.naming import generate_product_id
from inventory_kernel.domain.stock import authoritative_total_imported
from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    DuplicateProductError,
    NegativeTotalImportedError,
    OptimisticLockError,
    ProductNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.stock_adjuster import StockAdjuster
from inventory_kernel.store.base import LedgerStore

logger = get_logger("services.product")

UNSET = object()


@dataclass(frozen=True)
class ProductUpdate:
    """
    An edited product plus the PENDING orders a sync would rewrite.

    The sync is not applied; callers confirm and then call
    ``sync_product_to_pending_orders``.
    """

    product: Product
    pending_order_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class ProductDeletion:
    product: Product
    referencing_order_ids: tuple[str, ...] = ()


class ProductService(BaseService):

    def __init__(
        self,
        store: LedgerStore,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        adjuster: StockAdjuster | None = None,
    ):
        super().__init__(store, settings, clock)
        self.adjuster = adjuster or StockAdjuster(store, self.settings, self.clock)

    def create_product(
        self,
        name: str,
        selling_price: Decimal = Decimal("0"),
        import_price: Decimal | None = None,
        initial_stock: int = 0,
        force: bool = False,
    ) -> Product:
        """
        Create a product whose id is derived from its name.

        With ``force`` a taken id gets the first free numeric suffix
        (``-2``, ``-3``, ...).  A positive ``initial_stock`` is recorded as
        a RECEIPT so it appears in the import history.
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("product name must not be empty")
        if initial_stock < 0:
            raise ValueError(f"initial stock must be >= 0, got {initial_stock}")

        product_id = self._free_id(name, force)
        product = Product(
            id=product_id,
            name=name,
            selling_price=Decimal(selling_price),
            import_price=Decimal(import_price) if import_price is not None else None,
            stock_quantity=0,
            total_imported=0,
            created_at=self.clock.now(),
        )
        try:
            stored = self.store.upsert(product, expected_version=0)
        except OptimisticLockError as exc:
            raise DuplicateProductError(product_id, name) from exc

        logger.info("product_created", extra={"product_id": product_id, "force": force})

        if initial_stock:
            stored = self.adjuster.adjust_stock(
                product_id,
                initial_stock,
                AdjustmentMeta(
                    unit_cost=stored.import_price,
                    note="initial stock",
                    kind=AdjustmentKind.RECEIPT,
                ),
            )
        return stored

    def import_stock(
        self,
        product_id: str,
        quantity: int,
        unit_cost: Decimal | None = None,
        note: str = "",
    ) -> Product:
        """Record a receipt; a given unit cost also becomes the import price."""
        if quantity <= 0:
            raise ValueError(f"import quantity must be > 0, got {quantity}")
        product = self.adjuster.adjust_stock(
            product_id,
            quantity,
            AdjustmentMeta(unit_cost=unit_cost, note=note, kind=AdjustmentKind.RECEIPT),
        )
        if unit_cost is not None and product.import_price != unit_cost:
            product = self.update_product_details(product_id, import_price=unit_cost).product
        return product

    def set_total_imported(self, product_id: str, total: int) -> Product:
        """
        Set the lifetime total received, keeping units sold unchanged.

        The difference is booked as a RECEIPT (increase) or CORRECTION
        (decrease), so stock becomes ``max(0, total - sold)`` and the import
        history still sums to the total.
        """
        if total < 0:
            raise NegativeTotalImportedError(product_id, total)
        with self.adjuster.locks.hold(product_id):
            product = self.store.get_product(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            diff = total - authoritative_total_imported(product)
            if diff == 0:
                return product
            kind = AdjustmentKind.RECEIPT if diff > 0 else AdjustmentKind.CORRECTION
            updated = self.adjuster.adjust_stock(
                product_id,
                diff,
                AdjustmentMeta(note=f"total imported set to {total}", kind=kind),
            )
        logger.info(
            "total_imported_set",
            extra={"product_id": product_id, "total_imported": total, "difference": diff},
        )
        return updated

    def update_product_details(
        self,
        product_id: str,
        name=UNSET,
        selling_price=UNSET,
        import_price=UNSET,
    ) -> ProductUpdate:
        """Edit name and prices; never touches stock counters."""
        changes = {}
        if name is not UNSET:
            if not (name or "").strip():
                raise ValueError("product name must not be empty")
            changes["name"] = name.strip()
        if selling_price is not UNSET:
            changes["selling_price"] = Decimal(selling_price)
        if import_price is not UNSET:
            changes["import_price"] = Decimal(import_price) if import_price is not None else None

        max_attempts = self.settings.max_adjust_retries
        with self.adjuster.locks.hold(product_id):
            for _attempt in range(max_attempts):
                product = self.store.get_product(product_id)
                if product is None:
                    raise ProductNotFoundError(product_id)
                if not changes:
                    stored = product
                    break
                try:
                    stored = self.store.upsert(
                        product.with_changes(**changes), expected_version=product.version
                    )
                except OptimisticLockError:
                    continue
                break
            else:
                raise ConcurrentModificationError(product_id, max_attempts)

        pending = tuple(
            order.id
            for order in self.store.list_orders()
            if order.status == OrderStatus.PENDING
            and any(
                item.product_id == stored.id
                and (item.name != stored.name or item.price != stored.selling_price)
                for item in order.items
            )
        )
        logger.info(
            "product_details_updated",
            extra={
                "product_id": product_id,
                "fields": sorted(changes),
                "pending_order_count": len(pending),
            },
        )
        return ProductUpdate(product=stored, pending_order_ids=pending)

    def delete_product(self, product_id: str) -> ProductDeletion:
        """
        Delete a product record.

        Order lines referencing it keep their id and snapshots; their ids
        are returned so the caller can decide what to do with them.
        """
        with self.adjuster.locks.hold(product_id):
            product = self.store.get_product(product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            self.store.delete(Collection.PRODUCTS, product_id)

        referencing = tuple(
            order.id for order in self.store.list_orders() if order.references(product_id)
        )
        logger.info(
            "product_deleted",
            extra={"product_id": product_id, "referencing_order_count": len(referencing)},
        )
        return ProductDeletion(product=product, referencing_order_ids=referencing)

    def _free_id(self, name: str, force: bool) -> str:
        base_id = generate_product_id(name)
        if self.store.get_product(base_id) is None:
            return base_id
        if not force:
            raise DuplicateProductError(base_id, name)
        suffix = 2
        while self.store.get_product(f"{base_id}-{suffix}") is not None:
            suffix += 1
        return f"{base_id}-{suffix}"
