"""ORM models for the SQL-backed ledger store."""

from inventory_kernel.models.order import OrderItemModel, OrderModel
from inventory_kernel.models.product import ImportRecordModel, ProductModel

__all__ = [
    "ImportRecordModel",
    "OrderItemModel",
    "OrderModel",
    "ProductModel",
]
