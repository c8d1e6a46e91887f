"""
Module: inventory_kernel.db.base
Responsibility: Declarative base and portable column types for the ledger's
    SQLAlchemy ORM models.
Architecture position: Kernel > DB.  The lowest-level import target of the
    persistence side; ALL model files import from here.  This module MUST
    NOT import from models/, store/, services/, selectors/ or domain/.

Invariants enforced:
    - Exact money: Decimal values are stored as their string form, so prices
      round-trip exactly on every backend (SQLite has no native decimal).
      NEVER use float for prices.
    - Aware timestamps: datetimes are normalized to UTC on write and come
      back timezone-aware on read, including from SQLite.

Failure modes:
    - decimal.InvalidOperation if a stored price string has been tampered
      with outside the application.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class DecimalString(TypeDecorator):
    """
    Decimal stored as String(64) for exact cross-database round-trips.

    Guarantees:
        - process_bind_param: Decimal -> str on INSERT/UPDATE.
        - process_result_value: str -> Decimal on SELECT.
        - cache_ok=True enables SQLAlchemy statement caching.
    """

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(Decimal(value))
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return Decimal(value)
        return None


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime, normalized to UTC."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all ledger models.

    Contract:
        Every ORM model inherits from Base and declares its own primary key:
        products and orders are keyed by their string ids, child rows by a
        surrogate integer.

    Guarantees:
        - Decimal maps to DecimalString -- exact prices.
        - datetime maps to UTCDateTime -- always timezone-aware.
        - int maps to Integer -- autoincrement-capable on every backend.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: DecimalString(),
        datetime: UTCDateTime(),
        int: Integer,
    }
