"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads YAML settings files and parses them into a frozen
``inventory_config.schema.LedgerSettings``.  The single public entry point
for runtime config is ``inventory_config.get_active_config()``.

Invariants enforced
-------------------
* Every parse error raises ``ValueError`` naming the offending key; unknown
  keys are rejected rather than ignored.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective settings for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, wrong type or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import LedgerSettings, MergeSurvivorRule, OrderEditPolicy


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    raise ValueError(f"{key} must be true or false, got {value!r}")


def _parse_positive_int(key: str, value: Any, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def _parse_choice(key: str, value: Any, enum_type):
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValueError(f"{key} must be one of: {allowed}; got {value!r}") from None


def parse_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse a settings mapping into ``LedgerSettings``.

    Keys missing from ``data`` keep their dataclass defaults.

    Raises:
        ValueError: on unknown keys or invalid values.
    """
    unknown = set(data) - LedgerSettings.field_names()
    if unknown:
        raise ValueError(f"Unknown ledger settings: {', '.join(sorted(unknown))}")

    defaults = LedgerSettings()
    settings = LedgerSettings(
        restore_stock_on_cancel=_parse_bool(
            "restore_stock_on_cancel",
            data.get("restore_stock_on_cancel", defaults.restore_stock_on_cancel),
        ),
        order_edit_policy=_parse_choice(
            "order_edit_policy",
            data.get("order_edit_policy", defaults.order_edit_policy),
            OrderEditPolicy,
        ),
        merge_survivor_rule=_parse_choice(
            "merge_survivor_rule",
            data.get("merge_survivor_rule", defaults.merge_survivor_rule),
            MergeSurvivorRule,
        ),
        max_adjust_retries=_parse_positive_int(
            "max_adjust_retries",
            data.get("max_adjust_retries", defaults.max_adjust_retries),
            minimum=1,
        ),
        low_stock_threshold=_parse_positive_int(
            "low_stock_threshold",
            data.get("low_stock_threshold", defaults.low_stock_threshold),
            minimum=0,
        ),
        link_items_by_name=_parse_bool(
            "link_items_by_name",
            data.get("link_items_by_name", defaults.link_items_by_name),
        ),
    )
    return replace(settings, checksum=compute_checksum(settings.as_dict()))


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
