"""
Module: billing_kernel.db.types
Responsibility: Column adapters that guarantee every monetary value crossing the store boundary is a
    ``Decimal`` with exactly two fractional digits.
Architecture position: Kernel > DB.  Imported by db/base.py and module ORM
    models.  Decimal coercion itself lives in domain/money.py.

Invariants enforced:
    - ``MoneyType`` columns are quantized to 2 dp on write AND on read, so a
      row loaded from any backend yields the same ``Decimal``.
    - ``UTCDateTime`` columns always round-trip as timezone-aware UTC.

Failure modes:
    - ValueError / TypeError from to_decimal() when a bound value is not numeric.
"""

from sqlalchemy import DateTime, Numeric, String
from sqlalchemy.types import TypeDecorator

from billing_kernel.domain.clock import as_utc
from billing_kernel.domain.money import (
    MONEY_DECIMAL_PLACES,
    round_money,
    to_decimal,
)


class MoneyType(TypeDecorator):
    """
    Monetary column: ``Numeric(38, 2)`` on PostgreSQL, text on SQLite.

    SQLite has no fixed-point type; storing the canonical string keeps
    cents exact where a REAL affinity would not.
    """

    impl = Numeric(38, MONEY_DECIMAL_PLACES)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(40))
        return dialect.type_descriptor(Numeric(38, MONEY_DECIMAL_PLACES))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        amount = round_money(to_decimal(value))
        if dialect.name == "sqlite":
            return str(amount)
        return amount

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return round_money(to_decimal(value))


class DecimalType(TypeDecorator):
    """Unquantized decimal column for rates and quantities."""

    impl = Numeric(38, 9)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(60))
        return dialect.type_descriptor(Numeric(38, 9))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        number = to_decimal(value)
        if dialect.name == "sqlite":
            return str(number)
        return number

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return to_decimal(value)


class UTCDateTime(TypeDecorator):
    """Timestamp column that always loads as a timezone-aware UTC datetime."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = as_utc(value)
        if dialect.name == "sqlite":
            # SQLite's DATETIME storage drops tzinfo; store naive UTC.
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return as_utc(value)
