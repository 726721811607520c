"""
Module: ledger_kernel.models.bank_transaction
Responsibility: ORM persistence for bank-feed transactions.

Bank transactions are recorded as received and listed for review.  They are
not linked into the journal and are not reconciled against it.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import OwnedBase
from ledger_kernel.db.types import DEFAULT_CURRENCY


class BankTransaction(OwnedBase):
    """A single bank-feed line; amount is signed (negative = outflow)."""

    __tablename__ = "bank_transactions"
    __table_args__ = (
        Index("idx_bank_txn_owner_posted", "owner_id", "posted_at"),
    )

    bank_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default=DEFAULT_CURRENCY)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    posted_at: Mapped[datetime] = mapped_column(nullable=False)

    transaction_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<BankTransaction {self.id} {self.amount} {self.posted_at}>"
