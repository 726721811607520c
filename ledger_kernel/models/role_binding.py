"""
Module: ledger_kernel.models.role_binding
Responsibility: Explicit mapping from an accounting role (accounts
    receivable, revenue, cash) to one account in an owner's chart.

Bindings are validated when written (RoleResolver.bind_roles) so that
invoice and payment posting never has to guess which account to use.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import OwnedBase, UUIDString
from ledger_kernel.models.account import Account


class AccountRole(str, Enum):
    """Roles the invoice/payment bridge needs to resolve."""

    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    REVENUE = "revenue"
    CASH = "cash"


class AccountRoleBinding(OwnedBase):
    __tablename__ = "account_role_bindings"
    __table_args__ = (
        UniqueConstraint("owner_id", "role", name="uq_role_binding_owner_role"),
    )

    role: Mapped[AccountRole] = mapped_column(String(50), nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    account: Mapped[Account] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<AccountRoleBinding {self.role} -> {self.account_id}>"
