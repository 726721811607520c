"""
Module: ledger_kernel.models.audit_log
Responsibility: ORM persistence for the append-only accounting audit log.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only; no UPDATE or DELETE (db/immutability.py).

Audit relevance:
    Every mutating ledger operation writes exactly one AuditLog row in the
    same transaction as the change it describes:
    - CREATE_ACCOUNT, POST_JOURNAL
    - CREATE_INVOICE, RECORD_PAYMENT
    - CREATE_BANK_TRANSACTION, BIND_ACCOUNT_ROLES
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Auditable ledger actions."""

    CREATE_ACCOUNT = "create_account"
    POST_JOURNAL = "post_journal"
    CREATE_INVOICE = "create_invoice"
    RECORD_PAYMENT = "record_payment"
    CREATE_BANK_TRANSACTION = "create_bank_transaction"
    BIND_ACCOUNT_ROLES = "bind_account_roles"


class AuditLog(Base):
    """
    One immutable record of a mutating action.

    details holds a JSON snapshot of what changed; amounts are rendered as
    strings so the snapshot is exact.
    """

    __tablename__ = "accounting_audit_logs"
    __table_args__ = (
        Index("idx_audit_owner_created", "owner_id", "created_at"),
        Index("idx_audit_entity", "entity_type", "entity_id"),
    )

    owner_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    action: Mapped[str] = mapped_column(String(100), nullable=False)

    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)

    entity_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id}>"
