"""
Module: ledger_kernel.models.invoice
Responsibility: ORM persistence for invoices and payments -- the business
    records that InvoicePaymentBridge translates into journal entries.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Invoice status moves one way, issued -> paid (db/immutability.py).
    - client_ref uniqueness per owner for invoices and payments.
    - journal_entry_id is NULL exactly when auto-posting was skipped
      (degraded mode); the audit log records the reason.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import OwnedBase, UUIDString
from ledger_kernel.db.types import DEFAULT_CURRENCY

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalEntry


class InvoiceStatus(str, Enum):
    """Invoice lifecycle.  Single full payment: issued -> paid."""

    ISSUED = "issued"
    PAID = "paid"


class Invoice(OwnedBase):
    """
    An invoice issued to a customer.

    Non-goals:
        - No partial payments or remaining-balance tracking.  The first
          payment recorded against an invoice marks it paid.
    """

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("owner_id", "client_ref", name="uq_invoice_owner_client_ref"),
    )

    customer: Mapped[str] = mapped_column(String(255), nullable=False)

    invoice_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    total: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)

    status: Mapped[InvoiceStatus] = mapped_column(
        String(10),
        nullable=False,
        default=InvoiceStatus.ISSUED,
    )

    issued_at: Mapped[datetime] = mapped_column(nullable=False)

    due_at: Mapped[datetime | None] = mapped_column(nullable=True)

    client_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    invoice_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    journal_entry: Mapped["JournalEntry | None"] = relationship(
        foreign_keys=[journal_entry_id],
    )

    payments: Mapped[list["Payment"]] = relationship(
        back_populates="invoice",
        order_by="Payment.paid_at",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.id} {self.customer} {self.total} {self.status}>"

    @property
    def is_paid(self) -> bool:
        return self.status == InvoiceStatus.PAID


class Payment(OwnedBase):
    """A payment received, optionally against an invoice."""

    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("owner_id", "client_ref", name="uq_payment_owner_client_ref"),
    )

    invoice_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=True,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)

    method: Mapped[str] = mapped_column(String(50), nullable=False)

    paid_at: Mapped[datetime] = mapped_column(nullable=False)

    client_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    payment_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    invoice: Mapped["Invoice | None"] = relationship(back_populates="payments")

    journal_entry: Mapped["JournalEntry | None"] = relationship(
        foreign_keys=[journal_entry_id],
    )

    def __repr__(self) -> str:
        return f"<Payment {self.id} {self.amount} via {self.method}>"
