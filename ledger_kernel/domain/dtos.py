"""
DTOs -- immutable inputs to the ledger's write side.

Architecture position:
    Kernel > Domain -- pure, zero I/O, no ORM imports.

Data flow:
    JournalLineInput[] -> JournalPostingEngine -> JournalEntry + JournalLine rows
    InvoiceInput       -> InvoicePaymentBridge -> Invoice (+ JournalEntry)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID


@dataclass(frozen=True)
class JournalLineInput:
    """
    One proposed debit or credit line.

    The account is referenced either by id or by code within the owner's
    chart.  amount is a non-negative magnitude; is_debit picks the side.
    """

    amount: Decimal | int | float | str
    is_debit: bool
    account_id: UUID | None = None
    account_code: str | None = None
    description: str | None = None

    @classmethod
    def debit(
        cls,
        account_code: str,
        amount: Decimal | int | float | str,
        description: str | None = None,
    ) -> JournalLineInput:
        return cls(amount=amount, is_debit=True, account_code=account_code,
                   description=description)

    @classmethod
    def credit(
        cls,
        account_code: str,
        amount: Decimal | int | float | str,
        description: str | None = None,
    ) -> JournalLineInput:
        return cls(amount=amount, is_debit=False, account_code=account_code,
                   description=description)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> JournalLineInput:
        """
        Build from a plain dict (e.g. a decoded request body).

        Accepts ``is_debit`` as bool or 1/0 and ``account_id`` as str or UUID.
        """
        account_id = data.get("account_id")
        if account_id is not None and not isinstance(account_id, UUID):
            account_id = UUID(str(account_id))
        return cls(
            amount=data["amount"],
            is_debit=bool(data["is_debit"]),
            account_id=account_id,
            account_code=data.get("account_code"),
            description=data.get("description"),
        )

    @property
    def account_ref(self) -> str:
        """Human-readable account reference for error messages."""
        if self.account_id is not None:
            return str(self.account_id)
        return self.account_code or "<missing>"


@dataclass(frozen=True)
class InvoiceInput:
    """Fields a caller supplies to issue an invoice."""

    customer: str
    total: Decimal | int | float | str
    invoice_number: str | None = None
    currency: str | None = None
    issued_at: datetime | None = None
    due_at: datetime | None = None
    client_ref: str | None = None
    metadata: dict[str, Any] | None = field(default=None)
