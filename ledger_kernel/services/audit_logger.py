"""
AuditLogger -- append-only record of every mutating ledger action.

Responsibility:
    Writes one ``AuditLog`` row per logical action in the caller's
    transaction, so the audit record commits or rolls back together with
    the change it describes.

Architecture position:
    Kernel > Services -- imperative shell, owns the audit sink.

Invariants enforced:
    - Append-only: AuditLog rows are protected by ORM listeners
      (db/immutability.py) against UPDATE and DELETE.
    - Exactly one record per logical action: each writer calls one
      ``record_*`` method once.

Failure modes:
    - AuditValidationError if action or entity_type is empty.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import AuditValidationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.audit_log import AuditAction, AuditLog
from ledger_kernel.services.base import BaseService

logger = get_logger("services.audit_logger")


def _jsonable(value: Any) -> Any:
    """Render a details snapshot with exact, JSON-safe scalars."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class AuditLogger(BaseService):
    """
    Service for writing audit log records.

    Contract:
        ``create_audit_log`` is the single insert path.  The ``record_*``
        methods shape the details snapshot for each ledger action.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
        - Does NOT read audit logs (see selectors/audit_selector.py).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create_audit_log(
        self,
        owner_id: UUID | None,
        action: AuditAction | str,
        entity_type: str,
        entity_id: UUID | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AuditLog:
        """
        Append one audit record.

        Raises:
            AuditValidationError: If action or entity_type is empty.
        """
        action_value = action.value if isinstance(action, AuditAction) else action
        if not action_value:
            raise AuditValidationError("action")
        if not entity_type:
            raise AuditValidationError("entity_type")

        audit_log = AuditLog(
            owner_id=owner_id,
            action=action_value,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=_jsonable(details or {}),
            created_at=self._clock.now(),
        )
        self.session.add(audit_log)
        self.session.flush()

        logger.info(
            "audit_log_created",
            extra={
                "action": action_value,
                "entity_type": entity_type,
                "entity_id": audit_log.entity_id,
            },
        )
        return audit_log

    # Domain-specific recording methods

    def record_account_created(self, owner_id: UUID, account) -> AuditLog:
        return self.create_audit_log(
            owner_id,
            AuditAction.CREATE_ACCOUNT,
            "account",
            account.id,
            {
                "code": account.code,
                "name": account.name,
                "account_type": account.account_type,
                "currency": account.currency,
            },
        )

    def record_journal_posted(self, owner_id: UUID, entry, line_count: int) -> AuditLog:
        return self.create_audit_log(
            owner_id,
            AuditAction.POST_JOURNAL,
            "journal_entry",
            entry.id,
            {
                "description": entry.description,
                "line_count": line_count,
                "client_ref": entry.client_ref,
            },
        )

    def record_invoice_created(
        self,
        owner_id: UUID,
        invoice,
        posting_skipped_reason: str | None = None,
    ) -> AuditLog:
        details: dict[str, Any] = {
            "customer": invoice.customer,
            "total": invoice.total,
            "journal_entry_id": invoice.journal_entry_id,
        }
        if posting_skipped_reason is not None:
            details["posting_skipped"] = posting_skipped_reason
        return self.create_audit_log(
            owner_id,
            AuditAction.CREATE_INVOICE,
            "invoice",
            invoice.id,
            details,
        )

    def record_payment_recorded(
        self,
        owner_id: UUID,
        payment,
        invoice_status_changed: bool,
        posting_skipped_reason: str | None = None,
    ) -> AuditLog:
        details: dict[str, Any] = {
            "invoice_id": payment.invoice_id,
            "amount": payment.amount,
            "method": payment.method,
            "journal_entry_id": payment.journal_entry_id,
            "invoice_status_changed": invoice_status_changed,
        }
        if posting_skipped_reason is not None:
            details["posting_skipped"] = posting_skipped_reason
        return self.create_audit_log(
            owner_id,
            AuditAction.RECORD_PAYMENT,
            "payment",
            payment.id,
            details,
        )

    def record_bank_transaction(self, owner_id: UUID, txn) -> AuditLog:
        return self.create_audit_log(
            owner_id,
            AuditAction.CREATE_BANK_TRANSACTION,
            "bank_transaction",
            txn.id,
            {
                "amount": txn.amount,
                "description": txn.description,
                "bank_ref": txn.bank_ref,
            },
        )

    def record_role_binding(self, owner_id: UUID, bindings: dict[str, str]) -> AuditLog:
        return self.create_audit_log(
            owner_id,
            AuditAction.BIND_ACCOUNT_ROLES,
            "account_role_binding",
            None,
            {"bindings": bindings},
        )
