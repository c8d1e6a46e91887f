"""Database layer - engine, declarative base and portable column types."""

from inventory_kernel.db.base import Base, DecimalString, UTCDateTime
from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)

__all__ = [
    "Base",
    "DecimalString",
    "UTCDateTime",
    "create_tables",
    "drop_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "reset_engine",
    "session_scope",
]
