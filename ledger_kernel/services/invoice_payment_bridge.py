"""
InvoicePaymentBridge -- turns business events into accounting events.

Responsibility:
    Issuing an invoice posts {debit AR, credit Revenue}; recording a payment
    posts {debit Cash, credit AR} and marks the invoice paid.  This is the
    only place where invoices and payments are translated into journal
    entries, so the account-matching rules live here once.

Architecture position:
    Kernel > Services.  Depends on JournalPostingEngine, RoleResolver and
    AuditLogger; never touches balances directly.

Invariants enforced:
    - Auto-posted entries carry a deterministic client_ref
      (``invoice-<id>`` / ``payment-<id>``), so a retried bridge call can
      never double-post.
    - An unknown invoice_id is rejected before anything is written.
    - Exactly one audit log per invoice or payment.

Degraded mode:
    If a required role (AR, revenue, cash) cannot be resolved, the business
    record is still persisted with ``journal_entry_id = None``.  The bridge
    logs ``degraded_posting`` at WARNING, emits DegradedPostingWarning and
    records the reason in the audit details.  The ledger then lags the
    business records until an operator posts the entry manually.

Non-goals:
    - No partial payments.  The first payment against an invoice marks it
      paid, whatever the amount.
"""

import warnings
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import DEFAULT_CURRENCY, validate_currency
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import InvoiceInput, JournalLineInput
from ledger_kernel.domain.money import to_money
from ledger_kernel.exceptions import (
    DegradedPostingWarning,
    InvalidAmountError,
    InvoiceNotFoundError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.invoice import Invoice, InvoiceStatus, Payment
from ledger_kernel.models.role_binding import AccountRole
from ledger_kernel.services.audit_logger import AuditLogger
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_posting import JournalPostingEngine
from ledger_kernel.services.role_resolver import RoleResolver
from ledger_kernel.utils.idempotency import invoice_client_ref, payment_client_ref

logger = get_logger("services.invoice_payment_bridge")

INVOICE_ROLES = [AccountRole.ACCOUNTS_RECEIVABLE, AccountRole.REVENUE]
PAYMENT_ROLES = [AccountRole.CASH, AccountRole.ACCOUNTS_RECEIVABLE]


def _positive_amount(field: str, value) -> Decimal:
    try:
        amount = to_money(value)
    except ValueError as exc:
        raise InvalidAmountError(field, str(value), str(exc)) from exc
    if amount <= 0:
        raise InvalidAmountError(field, str(amount), "must be greater than zero")
    return amount


class InvoicePaymentBridge(BaseService):
    def __init__(
        self,
        session: Session,
        posting: JournalPostingEngine,
        roles: RoleResolver,
        auditor: AuditLogger,
        clock: Clock | None = None,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        super().__init__(session)
        self._posting = posting
        self._roles = roles
        self._auditor = auditor
        self._clock = clock or SystemClock()
        self._default_currency = default_currency

    def create_invoice(self, owner_id: UUID, data: InvoiceInput) -> Invoice:
        """
        Issue an invoice and post it to the ledger.

        Postconditions:
            - Invoice flushed with status ``issued``.
            - If AR and revenue resolve: a balanced entry is posted and its
              id stored on ``invoice.journal_entry_id``.
            - Otherwise: ``journal_entry_id`` is None and
              DegradedPostingWarning is emitted.
            - One ``create_invoice`` audit log.
        """
        customer = (data.customer or "").strip()
        if not customer:
            raise ValidationError("Invoice customer is required")
        total = _positive_amount("total", data.total)
        currency = self._currency(data.currency)

        if data.client_ref:
            existing = self._find_by_client_ref(Invoice, owner_id, data.client_ref)
            if existing is not None:
                logger.info(
                    "invoice_create_idempotent",
                    extra={"invoice_id": str(existing.id), "client_ref": data.client_ref},
                )
                return existing

        invoice = Invoice(
            owner_id=owner_id,
            customer=customer,
            invoice_number=data.invoice_number,
            total=total,
            currency=currency,
            status=InvoiceStatus.ISSUED.value,
            issued_at=data.issued_at or self._clock.now(),
            due_at=data.due_at,
            client_ref=data.client_ref,
            invoice_metadata=data.metadata,
        )
        existing = self._insert_or_existing(invoice, owner_id, data.client_ref)
        if existing is not None:
            return existing

        accounts, missing = self._roles.resolve_many(owner_id, INVOICE_ROLES)
        skipped_reason = None
        if missing:
            skipped_reason = self._degrade("invoice", invoice.id, missing)
        else:
            label = invoice.invoice_number or str(invoice.id)
            entry = self._posting.create_journal_entry(
                owner_id,
                f"Invoice {label} - {customer}",
                [
                    JournalLineInput(
                        amount=total,
                        is_debit=True,
                        account_id=accounts[AccountRole.ACCOUNTS_RECEIVABLE].id,
                        description=f"Receivable from {customer}",
                    ),
                    JournalLineInput(
                        amount=total,
                        is_debit=False,
                        account_id=accounts[AccountRole.REVENUE].id,
                        description=f"Revenue from {customer}",
                    ),
                ],
                client_ref=invoice_client_ref(invoice.id),
                metadata={"source": "invoice", "invoice_id": str(invoice.id)},
            )
            invoice.journal_entry_id = entry.id
            self.session.flush()

        self._auditor.record_invoice_created(owner_id, invoice, skipped_reason)

        logger.info(
            "invoice_created",
            extra={
                "invoice_id": str(invoice.id),
                "total": str(total),
                "journal_entry_id": str(invoice.journal_entry_id)
                if invoice.journal_entry_id else None,
            },
        )
        return invoice

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
        """
        Record a payment, post it, and settle its invoice.

        Raises:
            InvalidAmountError: amount is not > 0.
            ValidationError: method is blank.
            InvoiceNotFoundError: invoice_id is given but does not exist.
        """
        amount = _positive_amount("amount", amount)
        method = (method or "").strip()
        if not method:
            raise ValidationError("Payment method is required")
        currency = self._currency(currency)

        if client_ref:
            existing = self._find_by_client_ref(Payment, owner_id, client_ref)
            if existing is not None:
                logger.info(
                    "payment_record_idempotent",
                    extra={"payment_id": str(existing.id), "client_ref": client_ref},
                )
                return existing

        invoice = None
        if invoice_id is not None:
            invoice = self.session.execute(
                select(Invoice)
                .where(Invoice.owner_id == owner_id, Invoice.id == invoice_id)
                .with_for_update()
            ).scalar_one_or_none()
            if invoice is None:
                raise InvoiceNotFoundError(str(invoice_id))

        payment = Payment(
            owner_id=owner_id,
            invoice_id=invoice.id if invoice is not None else None,
            amount=amount,
            currency=currency,
            method=method,
            paid_at=paid_at or self._clock.now(),
            client_ref=client_ref,
            payment_metadata=metadata,
        )
        existing = self._insert_or_existing(payment, owner_id, client_ref)
        if existing is not None:
            return existing

        accounts, missing = self._roles.resolve_many(owner_id, PAYMENT_ROLES)
        skipped_reason = None
        if missing:
            skipped_reason = self._degrade("payment", payment.id, missing)
        else:
            description = f"Payment via {method}"
            if invoice is not None:
                description += f" for invoice {invoice.invoice_number or invoice.id}"
            entry = self._posting.create_journal_entry(
                owner_id,
                description,
                [
                    JournalLineInput(
                        amount=amount,
                        is_debit=True,
                        account_id=accounts[AccountRole.CASH].id,
                        description=f"Cash received via {method}",
                    ),
                    JournalLineInput(
                        amount=amount,
                        is_debit=False,
                        account_id=accounts[AccountRole.ACCOUNTS_RECEIVABLE].id,
                        description="Receivable settled",
                    ),
                ],
                client_ref=payment_client_ref(payment.id),
                metadata={"source": "payment", "payment_id": str(payment.id)},
            )
            payment.journal_entry_id = entry.id

        status_changed = False
        if invoice is not None and not invoice.is_paid:
            invoice.status = InvoiceStatus.PAID.value
            status_changed = True
        self.session.flush()

        self._auditor.record_payment_recorded(
            owner_id, payment, status_changed, skipped_reason
        )

        logger.info(
            "payment_recorded",
            extra={
                "payment_id": str(payment.id),
                "invoice_id": str(invoice.id) if invoice is not None else None,
                "amount": str(amount),
                "invoice_status_changed": status_changed,
            },
        )
        return payment

    def _currency(self, currency: str | None) -> str:
        try:
            return validate_currency(currency or self._default_currency)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    def _find_by_client_ref(self, model, owner_id: UUID, client_ref: str):
        return self.session.execute(
            select(model).where(
                model.owner_id == owner_id,
                model.client_ref == client_ref,
            )
        ).scalar_one_or_none()

    def _insert_or_existing(self, record, owner_id: UUID, client_ref: str | None):
        """Flush a new record; on a client_ref race return the winner instead."""
        try:
            with self.session.begin_nested():
                self.session.add(record)
                self.session.flush()
        except IntegrityError:
            if not client_ref:
                raise
            existing = self._find_by_client_ref(type(record), owner_id, client_ref)
            if existing is None:
                raise
            logger.warning(
                "concurrent_insert_conflict",
                extra={"entity_type": type(record).__name__, "client_ref": client_ref},
            )
            return existing
        return None

    def _degrade(self, entity_type: str, entity_id: UUID, missing: list[AccountRole]) -> str:
        roles = [role.value for role in missing]
        logger.warning(
            "degraded_posting",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "missing_roles": roles,
            },
        )
        try:
            warnings.warn(
                DegradedPostingWarning(entity_type, str(entity_id), roles),
                stacklevel=3,
            )
        except DegradedPostingWarning:
            # An "error" warnings filter must not undo the business record;
            # the degraded_posting log above still carries the signal.
            logger.debug(
                "degraded_warning_escalated",
                extra={"entity_type": entity_type, "entity_id": str(entity_id)},
            )
        return f"unresolved account roles: {', '.join(roles)}"
