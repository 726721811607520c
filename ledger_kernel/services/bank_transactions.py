"""
BankTransactionService -- records bank-feed lines.

Bank transactions are stored as received and audited.  They are never
posted to the journal or matched against it.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.db.types import DEFAULT_CURRENCY, validate_currency
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.money import to_money
from ledger_kernel.exceptions import InvalidAmountError, ValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.bank_transaction import BankTransaction
from ledger_kernel.services.audit_logger import AuditLogger
from ledger_kernel.services.base import BaseService

logger = get_logger("services.bank_transactions")


class BankTransactionService(BaseService):
    def __init__(
        self,
        session: Session,
        auditor: AuditLogger,
        clock: Clock | None = None,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        super().__init__(session)
        self._auditor = auditor
        self._clock = clock or SystemClock()
        self._default_currency = default_currency

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
        """Store one bank-feed line; amount is signed, zero is rejected."""
        try:
            amount = to_money(amount)
        except ValueError as exc:
            raise InvalidAmountError("amount", str(amount), str(exc)) from exc
        if amount == 0:
            raise InvalidAmountError("amount", str(amount), "must be non-zero")
        try:
            currency = validate_currency(currency or self._default_currency)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        txn = BankTransaction(
            owner_id=owner_id,
            bank_ref=bank_ref,
            amount=amount,
            currency=currency,
            description=description,
            posted_at=posted_at or self._clock.now(),
            transaction_metadata=metadata,
        )
        self.session.add(txn)
        self.session.flush()

        self._auditor.record_bank_transaction(owner_id, txn)
        logger.info(
            "bank_transaction_recorded",
            extra={"bank_transaction_id": str(txn.id), "amount": str(amount)},
        )
        return txn
