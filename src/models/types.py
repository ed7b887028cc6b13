from decimal import Decimal

from sqlalchemy import Numeric, String
from sqlalchemy.types import TypeDecorator


class Uint256(TypeDecorator):
    """uint256 column: NUMERIC(78, 0) on PostgreSQL, decimal text elsewhere.

    Values are always returned as Python ``int``.
    """

    impl = String(78)
    cache_ok = True

    def _numeric(self):
        return Numeric(78, 0)

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(self._numeric())
        return dialect.type_descriptor(String())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return Decimal(int(value))
        return str(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class ScaledUint(Uint256):
    """Unbounded integer column for 1e18-scaled ratios of uint256 values."""

    cache_ok = True

    def _numeric(self):
        return Numeric()
