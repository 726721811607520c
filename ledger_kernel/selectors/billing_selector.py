"""
BillingSelector -- read-only listings of invoices, payments and bank
transactions.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import InvoiceNotFoundError
from ledger_kernel.models.bank_transaction import BankTransaction
from ledger_kernel.models.invoice import Invoice, Payment
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class InvoiceDTO:
    id: UUID
    customer: str
    invoice_number: str | None
    total: Decimal
    currency: str
    status: str
    issued_at: datetime
    due_at: datetime | None
    client_ref: str | None
    journal_entry_id: UUID | None

    @property
    def is_posted(self) -> bool:
        return self.journal_entry_id is not None


@dataclass(frozen=True)
class PaymentDTO:
    id: UUID
    invoice_id: UUID | None
    amount: Decimal
    currency: str
    method: str
    paid_at: datetime
    client_ref: str | None
    journal_entry_id: UUID | None


@dataclass(frozen=True)
class BankTransactionDTO:
    id: UUID
    bank_ref: str | None
    amount: Decimal
    currency: str
    description: str | None
    posted_at: datetime


def _invoice_to_dto(invoice: Invoice) -> InvoiceDTO:
    return InvoiceDTO(
        id=invoice.id,
        customer=invoice.customer,
        invoice_number=invoice.invoice_number,
        total=invoice.total,
        currency=invoice.currency,
        status=str(getattr(invoice.status, "value", invoice.status)),
        issued_at=invoice.issued_at,
        due_at=invoice.due_at,
        client_ref=invoice.client_ref,
        journal_entry_id=invoice.journal_entry_id,
    )


class BillingSelector(BaseSelector):
    """Newest-first listings scoped to one owner."""

    def list_invoices(self, owner_id: UUID, limit: int | None = None) -> list[InvoiceDTO]:
        query = (
            select(Invoice)
            .where(Invoice.owner_id == owner_id)
            .order_by(Invoice.issued_at.desc(), Invoice.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if limit is not None:
            query = query.limit(limit)
        return [_invoice_to_dto(inv) for inv in self.session.execute(query).scalars().all()]

    def get_invoice(self, owner_id: UUID, invoice_id: UUID) -> InvoiceDTO:
        invoice = self.session.execute(
            select(Invoice)
            .where(Invoice.owner_id == owner_id, Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return _invoice_to_dto(invoice)

    def list_payments(
        self,
        owner_id: UUID,
        invoice_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[PaymentDTO]:
        query = (
            select(Payment)
            .where(Payment.owner_id == owner_id)
            .order_by(Payment.paid_at.desc(), Payment.created_at.desc())
        )
        if invoice_id is not None:
            query = query.where(Payment.invoice_id == invoice_id)
        if limit is not None:
            query = query.limit(limit)
        return [
            PaymentDTO(
                id=p.id,
                invoice_id=p.invoice_id,
                amount=p.amount,
                currency=p.currency,
                method=p.method,
                paid_at=p.paid_at,
                client_ref=p.client_ref,
                journal_entry_id=p.journal_entry_id,
            )
            for p in self.session.execute(query).scalars().all()
        ]

    def list_bank_transactions(
        self,
        owner_id: UUID,
        limit: int | None = None,
    ) -> list[BankTransactionDTO]:
        query = (
            select(BankTransaction)
            .where(BankTransaction.owner_id == owner_id)
            .order_by(BankTransaction.posted_at.desc(), BankTransaction.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [
            BankTransactionDTO(
                id=txn.id,
                bank_ref=txn.bank_ref,
                amount=txn.amount,
                currency=txn.currency,
                description=txn.description,
                posted_at=txn.posted_at,
            )
            for txn in self.session.execute(query).scalars().all()
        ]
