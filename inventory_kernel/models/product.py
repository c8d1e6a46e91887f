"""
Module: inventory_kernel.models.product
Responsibility: ORM persistence for products and their import ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, store/ or domain/.

Invariants enforced:
    SERIALIZED_ADJUSTMENT -- ``version`` is the mapper's version column with
        application-assigned values: every UPDATE carries
        ``WHERE version = <read version>`` and fails with StaleDataError when
        another writer got there first.
    HISTORY_AUTHORITATIVE -- import records are owned by their product
        (delete-orphan cascade) and kept in insertion order via ``position``.

Failure modes:
    - sqlalchemy.orm.exc.StaleDataError on a concurrent UPDATE; the SQL store
      maps it to OptimisticLockError.
    - IntegrityError on a duplicate product id; mapped likewise.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base


class ProductModel(Base):
    """
    Persistent storage for one catalogue product.

    Contract:
        Only the ledger services write stock counters; descriptive fields
        (name, prices) are edited through the product service.

    Guarantees:
        - ``total_imported`` is NULL only for legacy rows that predate the
          import ledger.
        - ``import_records`` load in their original insertion order.
    """

    __tablename__ = "products"

    __table_args__ = (
        # Query: duplicate detection and name linking scan by name
        Index("idx_product_name", "name"),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)

    name: Mapped[str] = mapped_column(String(500), nullable=False)

    selling_price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    import_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    # INVARIANT NON_NEGATIVE_STOCK: enforced by the adjuster, not the schema
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_imported: Mapped[int | None] = mapped_column(Integer, nullable=True)

    last_import_date: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    import_records: Mapped[list[ImportRecordModel]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ImportRecordModel.position",
        lazy="selectin",
    )

    __mapper_args__ = {
        "version_id_col": version,
        "version_id_generator": False,
    }

    def __repr__(self) -> str:
        return f"<Product {self.id} stock={self.stock_quantity} v{self.version}>"


class ImportRecordModel(Base):
    """One replenishment (or write-off) row of a product's import ledger."""

    __tablename__ = "import_records"

    __table_args__ = (
        Index("idx_import_record_product", "product_id", "position"),
    )

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    product_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    record_id: Mapped[str] = mapped_column(String(100), nullable=False)

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    date: Mapped[datetime] = mapped_column(nullable=False)

    # Signed: receipts positive, corrections negative
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    note: Mapped[str] = mapped_column(String(1000), nullable=False, default="")

    product: Mapped[ProductModel] = relationship(back_populates="import_records")
