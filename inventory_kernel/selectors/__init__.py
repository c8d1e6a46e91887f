"""Selectors - read-only views over products and orders."""

from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.inventory_selector import (
    BatchExport,
    InventorySelector,
    InventorySummary,
    ProductOrderLine,
)

__all__ = [
    "BaseSelector",
    "BatchExport",
    "InventorySelector",
    "InventorySummary",
    "ProductOrderLine",
]
