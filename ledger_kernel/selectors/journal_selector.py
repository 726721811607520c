"""
JournalSelector -- read-only queries over journal entries.

Returns frozen DTOs so callers never hold ORM instances outside the
session that loaded them.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import JournalEntryNotFoundError
from ledger_kernel.models.journal import JournalEntry
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class JournalLineDTO:
    id: UUID
    line_seq: int
    account_id: UUID
    account_code: str
    amount: Decimal
    is_debit: bool
    currency: str
    description: str | None


@dataclass(frozen=True)
class JournalEntryDTO:
    id: UUID
    owner_id: UUID
    description: str
    client_ref: str | None
    status: str
    posted_at: datetime
    metadata: dict | None
    lines: tuple[JournalLineDTO, ...]

    @property
    def total_debits(self) -> Decimal:
        return sum((line.amount for line in self.lines if line.is_debit), Decimal("0.00"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.amount for line in self.lines if not line.is_debit), Decimal("0.00"))


def _entry_to_dto(entry: JournalEntry) -> JournalEntryDTO:
    return JournalEntryDTO(
        id=entry.id,
        owner_id=entry.owner_id,
        description=entry.description,
        client_ref=entry.client_ref,
        status=str(getattr(entry.status, "value", entry.status)),
        posted_at=entry.posted_at,
        metadata=entry.entry_metadata,
        lines=tuple(
            JournalLineDTO(
                id=line.id,
                line_seq=line.line_seq,
                account_id=line.account_id,
                account_code=line.account.code,
                amount=line.amount,
                is_debit=line.is_debit,
                currency=line.currency,
                description=line.description,
            )
            for line in entry.lines
        ),
    )


class JournalSelector(BaseSelector):
    """Journal entries for one owner, newest first."""

    def list_entries(self, owner_id: UUID, limit: int | None = None) -> list[JournalEntryDTO]:
        query = (
            select(JournalEntry)
            .where(JournalEntry.owner_id == owner_id)
            .order_by(JournalEntry.posted_at.desc(), JournalEntry.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [_entry_to_dto(entry) for entry in self.session.execute(query).scalars().all()]

    def get_entry(self, owner_id: UUID, entry_id: UUID) -> JournalEntryDTO:
        """
        Raises:
            JournalEntryNotFoundError: If the entry does not exist for this owner.
        """
        entry = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.owner_id == owner_id,
                JournalEntry.id == entry_id,
            )
        ).scalar_one_or_none()
        if entry is None:
            raise JournalEntryNotFoundError(str(entry_id))
        return _entry_to_dto(entry)
