"""
Pure domain layer.

Value helpers, input DTOs, settings and the clock.  No ORM, no database,
no I/O (except SystemClock).
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import InvoiceInput, JournalLineInput
from ledger_kernel.domain.money import CENT, ZERO, to_money, totals_balance
from ledger_kernel.domain.settings import (
    DEFAULT_ROLE_CONVENTIONS,
    DEFAULT_SETTINGS,
    LedgerSettings,
    RetryPolicy,
    RoleConvention,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "InvoiceInput",
    "JournalLineInput",
    "CENT",
    "ZERO",
    "to_money",
    "totals_balance",
    "DEFAULT_ROLE_CONVENTIONS",
    "DEFAULT_SETTINGS",
    "LedgerSettings",
    "RetryPolicy",
    "RoleConvention",
]
