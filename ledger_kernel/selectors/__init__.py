"""Read-only query selectors returning frozen DTOs."""

from ledger_kernel.selectors.audit_selector import AuditLogDTO, AuditSelector
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.billing_selector import (
    BankTransactionDTO,
    BillingSelector,
    InvoiceDTO,
    PaymentDTO,
)
from ledger_kernel.selectors.journal_selector import (
    JournalEntryDTO,
    JournalLineDTO,
    JournalSelector,
)
from ledger_kernel.selectors.report_generator import (
    AccountLedger,
    AccountSummary,
    BalanceDrift,
    BalanceSheet,
    LedgerLine,
    ProfitAndLoss,
    ReportGenerator,
    StatementLine,
    TrialBalance,
    TrialBalanceRow,
)

__all__ = [
    "AccountLedger",
    "AccountSummary",
    "AuditLogDTO",
    "AuditSelector",
    "BalanceDrift",
    "BalanceSheet",
    "BankTransactionDTO",
    "BaseSelector",
    "BillingSelector",
    "InvoiceDTO",
    "JournalEntryDTO",
    "JournalLineDTO",
    "JournalSelector",
    "LedgerLine",
    "PaymentDTO",
    "ProfitAndLoss",
    "ReportGenerator",
    "StatementLine",
    "TrialBalance",
    "TrialBalanceRow",
]
