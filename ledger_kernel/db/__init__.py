"""Database layer - engine, base classes, column types, immutability guards."""

from ledger_kernel.db.base import UUID, Base, MinorUnits, OwnedBase, UUIDString
from ledger_kernel.db.engine import create_tables, get_engine, get_session, session_scope
from ledger_kernel.db.types import DEFAULT_CURRENCY, MONEY_DECIMAL_PLACES

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "OwnedBase",
    "UUIDString",
    "MinorUnits",
    "UUID",
    "DEFAULT_CURRENCY",
    "MONEY_DECIMAL_PLACES",
]
