"""
SqlAlchemyLedgerStore -- LedgerStore over the SQLAlchemy ORM tables.

Responsibility:
    Converts between the frozen domain records and ProductModel/OrderModel
    rows at the boundary, and runs every store primitive in its own
    transaction via ``session_scope``.

Architecture position:
    Kernel > Store.  Imports db/ and models/; services only ever see the
    domain records it returns.

Invariants enforced:
    SERIALIZED_ADJUSTMENT -- the ``expected_version`` check is made against
    the row read inside the transaction, and the mapper's version column
    turns a concurrent commit between read and flush into StaleDataError.
    Both surface as OptimisticLockError.

Failure modes:
    - OptimisticLockError on a version mismatch, a stale flush, or an
      insert that lost the race for a new id.
    - Other SQLAlchemy errors propagate unchanged after rollback.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from inventory_kernel.db.engine import session_scope
from inventory_kernel.domain.ledger import (
    Collection,
    ImportRecord,
    Order,
    OrderItem,
    OrderStatus,
    Product,
)
from inventory_kernel.exceptions import OptimisticLockError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models import (
    ImportRecordModel,
    OrderItemModel,
    OrderModel,
    ProductModel,
)
from inventory_kernel.store.base import LedgerEntity, LedgerStore
from inventory_kernel.store.subscriptions import ChangeKind

logger = get_logger("store.sql")

_MODELS = {
    Collection.PRODUCTS: ProductModel,
    Collection.ORDERS: OrderModel,
}


# Row <-> record conversion


def product_from_row(row: ProductModel) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        selling_price=row.selling_price,
        import_price=row.import_price,
        stock_quantity=row.stock_quantity,
        total_imported=row.total_imported,
        import_history=tuple(
            ImportRecord(
                id=rec.record_id,
                date=rec.date,
                quantity=rec.quantity,
                unit_cost=rec.unit_cost,
                note=rec.note,
            )
            for rec in row.import_records
        ),
        last_import_date=row.last_import_date,
        created_at=row.created_at,
        version=row.version,
    )


def order_from_row(row: OrderModel) -> Order:
    return Order(
        id=row.id,
        batch_id=row.batch_id,
        status=OrderStatus(row.status),
        items=tuple(
            OrderItem(
                id=item.item_id,
                name=item.name,
                quantity=item.quantity,
                price=item.price,
                product_id=item.product_id,
                import_price_snapshot=item.import_price_snapshot,
            )
            for item in row.items
        ),
        total_price=row.total_price,
        created_at=row.created_at,
        updated_at=row.updated_at,
        version=row.version,
    )


def _apply_product(row: ProductModel, product: Product) -> None:
    row.name = product.name
    row.selling_price = product.selling_price
    row.import_price = product.import_price
    row.stock_quantity = product.stock_quantity
    row.total_imported = product.total_imported
    row.last_import_date = product.last_import_date
    row.created_at = product.created_at
    row.import_records = [
        ImportRecordModel(
            record_id=rec.id,
            position=position,
            date=rec.date,
            quantity=rec.quantity,
            unit_cost=rec.unit_cost,
            note=rec.note or "",
        )
        for position, rec in enumerate(product.import_history)
    ]


def _apply_order(row: OrderModel, order: Order) -> None:
    row.batch_id = order.batch_id or ""
    row.status = OrderStatus(order.status).value
    row.total_price = order.total_price
    row.created_at = order.created_at
    row.updated_at = order.updated_at
    row.items = [
        OrderItemModel(
            item_id=item.id,
            position=position,
            name=item.name,
            quantity=item.quantity,
            price=item.price,
            product_id=item.product_id,
            import_price_snapshot=item.import_price_snapshot,
        )
        for position, item in enumerate(order.items)
    ]


def _to_record(collection: Collection, row) -> LedgerEntity:
    if collection is Collection.PRODUCTS:
        return product_from_row(row)
    return order_from_row(row)


class SqlAlchemyLedgerStore(LedgerStore):
    """
    LedgerStore backed by the products/orders tables.

    Contract:
        Takes a session factory (``db.engine.get_session_factory()``) and
        opens a short transaction per primitive.  Callers never see ORM rows.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        super().__init__()
        self._session_factory = session_factory

    def get(self, collection: Collection, entity_id: str) -> LedgerEntity | None:
        collection = Collection(collection)
        with session_scope(self._session_factory) as session:
            row = session.get(_MODELS[collection], entity_id)
            return _to_record(collection, row) if row is not None else None

    def upsert(self, entity: LedgerEntity, expected_version: int | None = None) -> LedgerEntity:
        collection = entity.collection
        model = _MODELS[collection]
        try:
            with session_scope(self._session_factory) as session:
                row = session.get(model, entity.id)
                current_version = row.version if row is not None else 0
                if expected_version is not None and expected_version != current_version:
                    raise OptimisticLockError(
                        collection.value, entity.id, expected_version, current_version
                    )
                if row is None:
                    row = model(id=entity.id)
                    session.add(row)
                row.version = current_version + 1
                if collection is Collection.PRODUCTS:
                    _apply_product(row, entity)
                else:
                    _apply_order(row, entity)
                session.flush()
                stored = _to_record(collection, row)
        except (StaleDataError, IntegrityError) as exc:
            logger.debug(
                "store_write_conflict",
                extra={
                    "collection": collection.value,
                    "entity_id": entity.id,
                    "error_type": type(exc).__name__,
                },
            )
            raise OptimisticLockError(
                collection.value, entity.id, expected_version, None
            ) from exc

        self._notify(collection, stored.id, ChangeKind.UPSERT, stored)
        return stored

    def delete(
        self,
        collection: Collection,
        entity_id: str,
        expected_version: int | None = None,
    ) -> bool:
        collection = Collection(collection)
        try:
            with session_scope(self._session_factory) as session:
                row = session.get(_MODELS[collection], entity_id)
                if row is None:
                    return False
                if expected_version is not None and expected_version != row.version:
                    raise OptimisticLockError(
                        collection.value, entity_id, expected_version, row.version
                    )
                session.delete(row)
        except StaleDataError as exc:
            raise OptimisticLockError(
                collection.value, entity_id, expected_version, None
            ) from exc

        self._notify(collection, entity_id, ChangeKind.DELETE)
        return True

    def list_all(self, collection: Collection) -> list[LedgerEntity]:
        collection = Collection(collection)
        model = _MODELS[collection]
        with session_scope(self._session_factory) as session:
            rows = session.scalars(select(model).order_by(model.id)).all()
            return [_to_record(collection, row) for row in rows]
