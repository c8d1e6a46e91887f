"""
inventory_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain ledger settings at runtime through
    ``get_active_config()``.  Services receive the returned
    ``LedgerSettings`` by injection and never read configuration files
    themselves.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Layering: shipped ``defaults.yaml`` first, then the optional override
      file; an override may only name known keys.
    - Deterministic: the same effective settings always carry the same
      checksum.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``INVENTORY_CONFIG_TRACE`` log entry with the effective settings and
    their checksum, tying later stock changes to the policy in force.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import load_yaml_file, parse_settings
from inventory_config.schema import LedgerSettings, MergeSurvivorRule, OrderEditPolicy

_logger = logging.getLogger("inventory_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> LedgerSettings:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Optional YAML file whose keys override the shipped
            defaults.

    Returns:
        Frozen ``LedgerSettings`` with its checksum set.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist.
        ValueError: If the merged configuration fails validation.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    source = str(DEFAULTS_PATH)
    if config_path is not None:
        data.update(load_yaml_file(Path(config_path)))
        source = str(config_path)

    settings = parse_settings(data)

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "source": source,
            "checksum": settings.checksum,
            **settings.as_dict(),
        },
    )
    return settings


__all__ = [
    "LedgerSettings",
    "MergeSurvivorRule",
    "OrderEditPolicy",
    "get_active_config",
]
