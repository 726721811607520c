"""
AuditSelector -- read-only access to the accounting audit trail.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.models.audit_log import AuditLog
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class AuditLogDTO:
    id: UUID
    owner_id: UUID | None
    action: str
    entity_type: str
    entity_id: str | None
    details: dict | None
    created_at: datetime


class AuditSelector(BaseSelector):
    def list_audit_logs(
        self,
        owner_id: UUID,
        entity_type: str | None = None,
        entity_id: str | UUID | None = None,
        limit: int | None = None,
    ) -> list[AuditLogDTO]:
        """Audit logs for an owner, newest first, optionally filtered by entity."""
        query = (
            select(AuditLog)
            .where(AuditLog.owner_id == owner_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
        )
        if entity_type is not None:
            query = query.where(AuditLog.entity_type == entity_type)
        if entity_id is not None:
            query = query.where(AuditLog.entity_id == str(entity_id))
        if limit is not None:
            query = query.limit(limit)
        return [
            AuditLogDTO(
                id=log.id,
                owner_id=log.owner_id,
                action=log.action,
                entity_type=log.entity_type,
                entity_id=log.entity_id,
                details=log.details,
                created_at=log.created_at,
            )
            for log in self.session.execute(query).scalars().all()
        ]
