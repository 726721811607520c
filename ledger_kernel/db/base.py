"""
Module: ledger_kernel.db.base
Responsibility: Declarative base, column types and the owner mixin shared by
    every ledger table.
Architecture position: Kernel > DB.  Lowest import target inside the kernel;
    imports nothing from models/, services/, selectors/ or domain/.

Money columns hold a BIGINT count of cents (MinorUnits), so SUM() and
``balance + delta`` are exact on SQLite and PostgreSQL alike.  Values must
already be quantized to two places (domain.money.to_money); a sub-cent value
raises ValueError at bind time instead of being rounded.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

CENTS_PER_UNIT = 100
_CENT = Decimal("0.01")


class UUIDString(TypeDecorator):
    """UUIDs as 36-character strings, identical on every backend."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class MinorUnits(TypeDecorator):
    """Decimal("12.34") in Python, 1234 in the database."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        cents = Decimal(value) * CENTS_PER_UNIT
        if cents != cents.to_integral_value():
            raise ValueError(f"Amount {value} has sub-cent precision")
        return int(cents)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(int(value)) / CENTS_PER_UNIT).quantize(_CENT)


class Base(DeclarativeBase):
    """Every table gets a uuid4 ``id``; Decimal annotations become MinorUnits."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: MinorUnits(),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class OwnedBase(Base):
    """
    Rows that belong to one owner's books.

    Every ledger query filters on owner_id.  created_at and updated_at are
    bookkeeping metadata and may change even on rows whose financial fields
    are frozen by the immutability listeners.
    """

    __abstract__ = True

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
