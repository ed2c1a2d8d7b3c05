"""
Column type for amounts in minor units.

Python ints are exact at any size, but not every database is.
PostgreSQL's NUMERIC is, so amounts are stored there as
NUMERIC(38, 0). SQLite has no exact wide numeric type (SQLAlchemy
would round-trip it through float), so there the value is kept
as its decimal string. Either way the application only ever
sees an int.
"""

from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator


class MinorUnits(TypeDecorator):
    impl = Numeric(38, 0)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.supports_native_decimal:
            return dialect.type_descriptor(Numeric(38, 0))
        return dialect.type_descriptor(String(48))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = int(value)
        if dialect.supports_native_decimal:
            return Decimal(value)
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            return int(value)
        return int(Decimal(value))

    @property
    def python_type(self):
        return int
