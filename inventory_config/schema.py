"""
LedgerSettings schema.

The typed, frozen form of the ledger's YAML settings.  The loader parses
YAML into this type; services receive it through constructor injection and
never read files or environment variables themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum


class OrderEditPolicy(str, Enum):
    """How editing an order's lines affects stock."""

    DIFF = "diff"  # One SALE/RESTORE per product whose net quantity changed
    STOCK_NEUTRAL = "stock_neutral"  # No stock change; reconciliation repairs drift


class MergeSurvivorRule(str, Enum):
    """Which record of a duplicate group survives the merge."""

    MOST_IMPORTED = "most_imported"
    EARLIEST_CREATED = "earliest_created"


@dataclass(frozen=True)
class LedgerSettings:
    """
    Runtime settings of the inventory ledger.

    Defaults match ``defaults.yaml`` so code that builds settings directly
    (tests, embedding) gets the same behaviour as a loaded configuration.
    """

    restore_stock_on_cancel: bool = False
    order_edit_policy: OrderEditPolicy = OrderEditPolicy.DIFF
    merge_survivor_rule: MergeSurvivorRule = MergeSurvivorRule.MOST_IMPORTED
    max_adjust_retries: int = 5
    low_stock_threshold: int = 5
    link_items_by_name: bool = False
    checksum: str = ""

    def __post_init__(self):
        object.__setattr__(self, "order_edit_policy", OrderEditPolicy(self.order_edit_policy))
        object.__setattr__(
            self, "merge_survivor_rule", MergeSurvivorRule(self.merge_survivor_rule)
        )

    @classmethod
    def field_names(cls) -> frozenset[str]:
        return frozenset(f.name for f in fields(cls) if f.name != "checksum")

    def as_dict(self) -> dict:
        return {
            "restore_stock_on_cancel": self.restore_stock_on_cancel,
            "order_edit_policy": self.order_edit_policy.value,
            "merge_survivor_rule": self.merge_survivor_rule.value,
            "max_adjust_retries": self.max_adjust_retries,
            "low_stock_threshold": self.low_stock_threshold,
            "link_items_by_name": self.link_items_by_name,
        }
