"""
Write-side services.  Each flushes within the caller's transaction;
LedgerOrchestrator owns commit and rollback.
"""

from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit_logger import AuditLogger
from ledger_kernel.services.balance_maintainer import BalanceMaintainer
from ledger_kernel.services.bank_transactions import BankTransactionService
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.invoice_payment_bridge import InvoicePaymentBridge
from ledger_kernel.services.journal_posting import JournalPostingEngine, validate_double_entry
from ledger_kernel.services.ledger_orchestrator import LedgerOrchestrator
from ledger_kernel.services.retry import backoff_delay, run_with_retry
from ledger_kernel.services.role_resolver import RoleResolver

__all__ = [
    "AccountRegistry",
    "AuditLogger",
    "BalanceMaintainer",
    "BankTransactionService",
    "BaseService",
    "InvoicePaymentBridge",
    "JournalPostingEngine",
    "LedgerOrchestrator",
    "RoleResolver",
    "backoff_delay",
    "run_with_retry",
    "validate_double_entry",
]
