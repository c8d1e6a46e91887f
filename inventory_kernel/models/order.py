"""
Module: inventory_kernel.models.order
Responsibility: ORM persistence for delivery orders and their lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    WEAK_PRODUCT_REFERENCE -- ``order_items.product_id`` is a plain nullable
        column with NO foreign key to ``products``.  Deleting or merging a
        product never cascades into orders; lines keep their own name and
        price snapshots.
    SERIALIZED_ADJUSTMENT -- ``version`` is the mapper's version column, as
        on products.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base


class OrderModel(Base):
    """Persistent storage for one order of a delivery batch."""

    __tablename__ = "orders"

    __table_args__ = (
        Index("idx_order_status", "status"),
        Index("idx_order_batch", "batch_id"),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)

    batch_id: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    status: Mapped[str] = mapped_column(String(20), nullable=False)

    total_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    updated_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list[OrderItemModel]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItemModel.position",
        lazy="selectin",
    )

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    def __repr__(self) -> str:
        return f"<Order {self.id} {self.status} v{self.version}>"


class OrderItemModel(Base):
    """One line of an order; ``product_id`` is a weak reference."""

    __tablename__ = "order_items"

    __table_args__ = (
        # Query: reconciliation, merge rewrite and sync scan by product
        Index("idx_order_item_product", "product_id"),
        Index("idx_order_item_order", "order_id", "position"),
    )

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    order_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )

    item_id: Mapped[str] = mapped_column(String(100), nullable=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    name: Mapped[str] = mapped_column(String(500), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # INVARIANT WEAK_PRODUCT_REFERENCE: no ForeignKey here
    product_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    import_price_snapshot: Mapped[Decimal | None] = mapped_column(nullable=True)

    order: Mapped[OrderModel] = relationship(back_populates="items")
