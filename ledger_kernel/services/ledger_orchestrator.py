"""
LedgerOrchestrator -- the single entry point over the ledger services.

Responsibility:
    Wires every service exactly once over one Session and runs each public
    operation as a unit of work: bind a LogContext, do the work, commit on
    success, roll back on any exception.

Architecture position:
    Kernel > Services -- top of the service layer.  An API or CLI layer
    would call only this class.

Invariants enforced:
    - Transaction boundaries: with ``auto_commit=True`` each operation is
      one transaction.  A journal entry, its lines, the balance updates and
      the audit log become visible together or not at all.
    - Lock and serialization failures surface as ConcurrencyError and, with
      ``auto_commit=True``, are retried per ``settings.retry``.

Failure modes:
    - Every LedgerError from the services propagates unchanged after
      rollback.
    - ConcurrencyError once retries are exhausted.

Usage:
    orchestrator = LedgerOrchestrator(session, settings=settings)
    orchestrator.create_account(owner_id, "1010-CASH", "Cash", "asset")
    orchestrator.create_journal_entry(owner_id, "Owner investment", [
        JournalLineInput.debit("1010-CASH", "1000.00"),
        JournalLineInput.credit("3000-EQUITY", "1000.00"),
    ])
"""

import time
from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import InvoiceInput, JournalLineInput
from ledger_kernel.domain.settings import DEFAULT_SETTINGS, LedgerSettings
from ledger_kernel.exceptions import ConcurrencyError, LedgerError, ValidationError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.bank_transaction import BankTransaction
from ledger_kernel.models.invoice import Invoice, Payment
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.models.role_binding import AccountRole, AccountRoleBinding
from ledger_kernel.selectors.audit_selector import AuditLogDTO, AuditSelector
from ledger_kernel.selectors.billing_selector import (
    BankTransactionDTO,
    BillingSelector,
    InvoiceDTO,
    PaymentDTO,
)
from ledger_kernel.selectors.journal_selector import JournalEntryDTO, JournalSelector
from ledger_kernel.selectors.report_generator import (
    AccountLedger,
    BalanceDrift,
    BalanceSheet,
    ProfitAndLoss,
    ReportGenerator,
    TrialBalance,
)
from ledger_kernel.services.account_registry import AccountRegistry
from ledger_kernel.services.audit_logger import AuditLogger
from ledger_kernel.services.balance_maintainer import BalanceMaintainer
from ledger_kernel.services.bank_transactions import BankTransactionService
from ledger_kernel.services.invoice_payment_bridge import InvoicePaymentBridge
from ledger_kernel.services.journal_posting import JournalPostingEngine
from ledger_kernel.services.retry import run_with_retry
from ledger_kernel.services.role_resolver import RoleResolver

logger = get_logger("services.ledger_orchestrator")

T = TypeVar("T")

_CONTENTION_MARKERS = ("lock", "deadlock", "serializ", "busy")


def is_contention_error(exc: OperationalError) -> bool:
    """True when the driver error means another transaction got in the way."""
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _CONTENTION_MARKERS)


def _invoice_input(data: InvoiceInput | Mapping[str, Any]) -> InvoiceInput:
    if isinstance(data, InvoiceInput):
        return data
    try:
        return InvoiceInput(**data)
    except TypeError as exc:
        raise ValidationError(f"Invalid invoice input: {exc}") from exc


class LedgerOrchestrator:
    """
    Unit-of-work facade over the ledger services.

    Contract:
        Receives a Session and optional Clock and LedgerSettings.  All
        services share them.  Write methods return the flushed ORM object;
        read methods return frozen DTOs.

    Guarantees:
        - With auto_commit=True the session is committed after every call
          (reads included, which releases SQLite's write lock) and rolled
          back after every failure.
        - With auto_commit=False the caller owns commit and rollback, and no
          retry is attempted.

    Non-goals:
        - Does NOT own the Session lifecycle (never closes it).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: LedgerSettings = DEFAULT_SETTINGS,
        auto_commit: bool = True,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings
        self._auto_commit = auto_commit

        self.auditor = AuditLogger(session, self._clock)
        self.accounts = AccountRegistry(session, self.auditor, settings.currency)
        self.balances = BalanceMaintainer(session)
        self.posting = JournalPostingEngine(
            session,
            self.auditor,
            balance_maintainer=self.balances,
            clock=self._clock,
            tolerance=settings.balance_tolerance,
        )
        self.roles = RoleResolver(session, self.auditor, settings)
        self.billing = InvoicePaymentBridge(
            session,
            self.posting,
            self.roles,
            self.auditor,
            clock=self._clock,
            default_currency=settings.currency,
        )
        self.bank = BankTransactionService(
            session, self.auditor, self._clock, settings.currency,
        )

        self.reports = ReportGenerator(session)
        self.journal_selector = JournalSelector(session)
        self.billing_selector = BillingSelector(session)
        self.audit_selector = AuditSelector(session)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _run(self, operation: str, owner_id: UUID, fn: Callable[[], T]) -> T:
        if not self._auto_commit:
            return self._run_once(operation, owner_id, fn)
        return run_with_retry(
            lambda: self._run_once(operation, owner_id, fn),
            max_attempts=self._settings.retry.max_attempts,
            base_delay=self._settings.retry.base_delay,
        )

    def _run_once(self, operation: str, owner_id: UUID, fn: Callable[[], T]) -> T:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            owner_id=str(owner_id),
            operation=operation,
        ):
            t0 = time.monotonic()
            try:
                try:
                    result = fn()
                    if self._auto_commit:
                        self._session.commit()
                except OperationalError as exc:
                    if is_contention_error(exc):
                        raise ConcurrencyError(operation, str(exc.orig or exc)) from exc
                    raise
            except LedgerError as exc:
                if self._auto_commit:
                    self._session.rollback()
                logger.warning(
                    "operation_rejected",
                    extra={
                        "error_code": exc.code,
                        "error": str(exc),
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise
            except Exception:
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    "operation_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

            logger.debug(
                "operation_completed",
                extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
            )
            return result

    # ------------------------------------------------------------------
    # Chart of accounts
    # ------------------------------------------------------------------

    def create_account(
        self,
        owner_id: UUID,
        code: str,
        name: str,
        account_type: AccountType | str,
        currency: str | None = None,
        description: str | None = None,
    ) -> Account:
        return self._run(
            "create_account",
            owner_id,
            lambda: self.accounts.create_account(
                owner_id, code, name, account_type, currency, description,
            ),
        )

    def list_accounts(self, owner_id: UUID) -> list[Account]:
        return self._run(
            "list_accounts", owner_id, lambda: self.accounts.list_accounts(owner_id),
        )

    def get_account_by_code(self, owner_id: UUID, code: str) -> Account:
        return self._run(
            "get_account_by_code",
            owner_id,
            lambda: self.accounts.get_account_by_code(owner_id, code),
        )

    def bind_account_roles(
        self,
        owner_id: UUID,
        bindings: Mapping[AccountRole | str, str],
    ) -> list[AccountRoleBinding]:
        return self._run(
            "bind_account_roles",
            owner_id,
            lambda: self.roles.bind_roles(owner_id, dict(bindings)),
        )

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def create_journal_entry(
        self,
        owner_id: UUID,
        description: str,
        lines: Sequence[JournalLineInput | Mapping[str, Any]],
        client_ref: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> JournalEntry:
        return self._run(
            "create_journal_entry",
            owner_id,
            lambda: self.posting.create_journal_entry(
                owner_id, description, lines, client_ref=client_ref, metadata=metadata,
            ),
        )

    def create_invoice(
        self,
        owner_id: UUID,
        data: InvoiceInput | Mapping[str, Any],
    ) -> Invoice:
        return self._run(
            "create_invoice",
            owner_id,
            lambda: self.billing.create_invoice(owner_id, _invoice_input(data)),
        )

    def record_payment(
        self,
        owner_id: UUID,
        amount: Decimal | int | float | str,
        method: str,
        invoice_id: UUID | None = None,
        paid_at: datetime | None = None,
        currency: str | None = None,
        client_ref: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Payment:
        return self._run(
            "record_payment",
            owner_id,
            lambda: self.billing.record_payment(
                owner_id,
                amount,
                method,
                invoice_id=invoice_id,
                paid_at=paid_at,
                currency=currency,
                client_ref=client_ref,
                metadata=metadata,
            ),
        )

    def record_bank_transaction(
        self,
        owner_id: UUID,
        amount: Decimal | int | float | str,
        description: str | None = None,
        posted_at: datetime | None = None,
        bank_ref: str | None = None,
        currency: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> BankTransaction:
        return self._run(
            "record_bank_transaction",
            owner_id,
            lambda: self.bank.record_bank_transaction(
                owner_id,
                amount,
                description=description,
                posted_at=posted_at,
                bank_ref=bank_ref,
                currency=currency,
                metadata=metadata,
            ),
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def generate_trial_balance(self, owner_id: UUID) -> TrialBalance:
        return self._run(
            "generate_trial_balance", owner_id, lambda: self.reports.trial_balance(owner_id),
        )

    def generate_profit_loss(
        self,
        owner_id: UUID,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> ProfitAndLoss:
        return self._run(
            "generate_profit_loss",
            owner_id,
            lambda: self.reports.profit_and_loss(owner_id, start, end),
        )

    def generate_balance_sheet(self, owner_id: UUID) -> BalanceSheet:
        return self._run(
            "generate_balance_sheet", owner_id, lambda: self.reports.balance_sheet(owner_id),
        )

    def get_account_ledger(self, owner_id: UUID, account_code: str) -> AccountLedger:
        return self._run(
            "get_account_ledger",
            owner_id,
            lambda: self.reports.account_ledger(owner_id, account_code),
        )

    def check_balance_drift(self, owner_id: UUID) -> list[BalanceDrift]:
        drift = self._run(
            "check_balance_drift", owner_id, lambda: self.reports.balance_drift(owner_id),
        )
        if drift:
            logger.error(
                "balance_drift_detected",
                extra={"accounts": [d.account_code for d in drift]},
            )
        return drift

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def list_journal_entries(
        self, owner_id: UUID, limit: int | None = None,
    ) -> list[JournalEntryDTO]:
        return self._run(
            "list_journal_entries",
            owner_id,
            lambda: self.journal_selector.list_entries(owner_id, limit),
        )

    def get_journal_entry(self, owner_id: UUID, entry_id: UUID) -> JournalEntryDTO:
        return self._run(
            "get_journal_entry",
            owner_id,
            lambda: self.journal_selector.get_entry(owner_id, entry_id),
        )

    def list_invoices(self, owner_id: UUID, limit: int | None = None) -> list[InvoiceDTO]:
        return self._run(
            "list_invoices", owner_id, lambda: self.billing_selector.list_invoices(owner_id, limit),
        )

    def get_invoice(self, owner_id: UUID, invoice_id: UUID) -> InvoiceDTO:
        return self._run(
            "get_invoice",
            owner_id,
            lambda: self.billing_selector.get_invoice(owner_id, invoice_id),
        )

    def list_payments(
        self,
        owner_id: UUID,
        invoice_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[PaymentDTO]:
        return self._run(
            "list_payments",
            owner_id,
            lambda: self.billing_selector.list_payments(owner_id, invoice_id, limit),
        )

    def list_bank_transactions(
        self, owner_id: UUID, limit: int | None = None,
    ) -> list[BankTransactionDTO]:
        return self._run(
            "list_bank_transactions",
            owner_id,
            lambda: self.billing_selector.list_bank_transactions(owner_id, limit),
        )

    def list_audit_logs(
        self,
        owner_id: UUID,
        entity_type: str | None = None,
        entity_id: str | UUID | None = None,
        limit: int | None = None,
    ) -> list[AuditLogDTO]:
        return self._run(
            "list_audit_logs",
            owner_id,
            lambda: self.audit_selector.list_audit_logs(owner_id, entity_type, entity_id, limit),
        )
