"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (owner_id, code) is unique (uq_account_owner_code).
    - code, account_type and balance are never changed through the ORM
      (db/immutability.py).  balance moves only through BalanceMaintainer's
      atomic SQL increment.
    - Accounts are never deleted.

Audit relevance:
    balance is a running total in the account's natural sign: positive means
    "more of what this account normally holds".  Reports read it directly, so
    it must agree with the sum of posted journal lines at all times (see
    ReportGenerator.balance_drift).
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import OwnedBase
from ledger_kernel.db.types import DEFAULT_CURRENCY

if TYPE_CHECKING:
    from ledger_kernel.models.journal import JournalLine


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


# Accounts that increase on debit; the rest increase on credit.
DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


class Account(OwnedBase):
    """
    Chart of accounts entry.

    Contract:
        code is unique within an owner's chart.  Once created, an account's
        code and type are fixed, and its balance is maintained by the ledger.

    Non-goals:
        - No closing or deactivation; the chart is append-only.
        - No per-account multi-currency; currency is informational.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        UniqueConstraint("owner_id", "code", name="uq_account_owner_code"),
        Index("idx_account_owner_type", "owner_id", "account_type"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[AccountType] = mapped_column(String(20), nullable=False)

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default=DEFAULT_CURRENCY,
    )

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Signed running total in the account's natural sign
    balance: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    journal_lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        """True for asset and expense accounts."""
        return AccountType(self.account_type) in DEBIT_NORMAL_TYPES


def balance_change(
    account_type: AccountType | str,
    is_debit: bool,
    amount: Decimal,
) -> Decimal:
    """
    Signed effect of one line on an account of the given type.

        account type              debit line    credit line
        ------------------------  ----------    -----------
        asset, expense            +amount       -amount
        liability, equity, income -amount       +amount
    """
    debit_normal = AccountType(account_type) in DEBIT_NORMAL_TYPES
    return amount if is_debit == debit_normal else -amount
