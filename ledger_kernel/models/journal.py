"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth in the ledger.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - client_ref uniqueness per owner (uq_journal_owner_client_ref).  NULL
      client_refs are never considered duplicates.
    - Balance (checked by JournalPostingEngine before any write; verified
      here via is_balanced for read-side assertions).
    - Immutability (db/immutability.py rejects UPDATE/DELETE on entries and
      lines).  Corrections are made with an offsetting entry.

Failure modes:
    - IntegrityError on duplicate (owner_id, client_ref).
    - ImmutabilityViolationError on UPDATE/DELETE of an entry or line.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, OwnedBase, UUIDString
from ledger_kernel.db.types import DEFAULT_CURRENCY

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    Entries are created posted; there is no draft or void state.
    """

    POSTED = "posted"


class JournalEntry(OwnedBase):
    """
    Journal entry header -- the atomic unit of double-entry accounting.

    Contract:
        An entry is written once, together with its lines, in the same
        transaction as the balance updates it causes.

    Guarantees:
        - Debits == Credits within tolerance (checked at posting).
        - lines are returned in the order they were supplied (line_seq).

    Non-goals:
        - No reversal or void mechanism.  A correction is a new entry.
    """

    __tablename__ = "journal_entries"
    __table_args__ = (
        UniqueConstraint("owner_id", "client_ref", name="uq_journal_owner_client_ref"),
        Index("idx_journal_owner_posted_at", "owner_id", "posted_at"),
    )

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    # Caller-supplied idempotency tag (e.g. "invoice-<id>")
    client_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(10),
        default=JournalEntryStatus.POSTED,
        nullable=False,
    )

    posted_at: Mapped[datetime] = mapped_column(nullable=False)

    # Named entry_metadata to avoid SQLAlchemy's reserved "metadata"
    entry_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.id} {self.description!r}>"

    @property
    def total_debits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if line.is_debit),
            Decimal("0.00"),
        )

    @property
    def total_credits(self) -> Decimal:
        return sum(
            (line.amount for line in self.lines if not line.is_debit),
            Decimal("0.00"),
        )

    @property
    def is_balanced(self) -> bool:
        """Read-side convenience; posting enforces balance before writing."""
        return self.total_debits == self.total_credits


class JournalLine(Base):
    """
    Individual debit or credit line within a journal entry.

    Contract:
        amount is a non-negative magnitude; is_debit picks the side.  The
        sign applied to the account balance depends on the account type
        (see services/balance_maintainer.py).
    """

    __tablename__ = "journal_lines"
    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_seq", name="uq_journal_line_seq"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    is_debit: Mapped[bool] = mapped_column(Boolean, nullable=False)

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default=DEFAULT_CURRENCY,
    )

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Position within the entry, as supplied by the caller
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(
        back_populates="journal_lines",
        lazy="joined",
    )

    def __repr__(self) -> str:
        side = "DR" if self.is_debit else "CR"
        return f"<JournalLine {side} {self.amount} account={self.account_id}>"
