"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import DEBIT_NORMAL_TYPES, Account, AccountType, balance_change
from ledger_kernel.models.audit_log import AuditAction, AuditLog
from ledger_kernel.models.bank_transaction import BankTransaction
from ledger_kernel.models.invoice import Invoice, InvoiceStatus, Payment
from ledger_kernel.models.journal import JournalEntry, JournalEntryStatus, JournalLine
from ledger_kernel.models.role_binding import AccountRole, AccountRoleBinding

__all__ = [
    "Account",
    "AccountType",
    "DEBIT_NORMAL_TYPES",
    "AccountRole",
    "AccountRoleBinding",
    "AuditAction",
    "AuditLog",
    "BankTransaction",
    "Invoice",
    "InvoiceStatus",
    "Payment",
    "JournalEntry",
    "JournalEntryStatus",
    "JournalLine",
]
