"""
BalanceMaintainer -- applies posted journal lines to account balances.

Responsibility:
    Owns the accounting sign convention and is the ONLY code path that
    changes ``Account.balance``.

Architecture position:
    Kernel > Services -- invoked by JournalPostingEngine inside the posting
    transaction.

Invariants enforced:
    - Sign table (the single place accounting semantics live):

          account type              debit line    credit line
          ------------------------  ----------    -----------
          asset, expense            +amount       -amount
          liability, equity, income -amount       +amount

    - No lost updates: touched accounts are locked with SELECT ... FOR UPDATE
      in ascending id order (deadlock-free across concurrent postings), then
      each balance moves by one atomic ``UPDATE accounts SET balance =
      balance + :delta``.  No read-modify-write happens in Python.
    - No in-process balance cache: the ORM copy of ``balance`` is expired
      after every update so the next read comes from the database.

Failure modes:
    - AccountNotFoundError if a line references a missing account.
"""

from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import literal, select, update
from sqlalchemy.orm import Session

from ledger_kernel.db.base import MinorUnits
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, balance_change
from ledger_kernel.models.journal import JournalLine
from ledger_kernel.services.base import BaseService

logger = get_logger("services.balance_maintainer")

__all__ = ["BalanceMaintainer", "balance_change"]


class BalanceMaintainer(BaseService):
    """
    Applies signed line amounts to account balances atomically.

    Contract:
        Must be called inside the same transaction that inserted the lines.
        The caller's commit makes lines and balances visible together.
    """

    def update_account_balances(
        self,
        owner_id: UUID,
        lines: Iterable[JournalLine],
    ) -> dict[UUID, Decimal]:
        """
        Apply lines to balances.

        Returns:
            Net delta applied per account id.

        Raises:
            AccountNotFoundError: If a line's account does not exist.
        """
        lines = list(lines)
        account_ids = sorted({line.account_id for line in lines}, key=str)

        accounts = {
            account.id: account
            for account in self.session.execute(
                select(Account)
                .where(
                    Account.owner_id == owner_id,
                    Account.id.in_(account_ids),
                )
                .order_by(Account.id)
                .with_for_update()
            ).scalars().all()
        }

        deltas: dict[UUID, Decimal] = {}
        for line in lines:
            account = accounts.get(line.account_id)
            if account is None:
                raise AccountNotFoundError(str(line.account_id))
            change = balance_change(account.account_type, line.is_debit, line.amount)
            deltas[account.id] = deltas.get(account.id, Decimal("0.00")) + change

        for account_id in account_ids:
            delta = deltas[account_id]
            if delta == 0:
                continue
            self.session.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(balance=Account.balance + literal(delta, MinorUnits()))
                .execution_options(synchronize_session=False)
            )
            self.session.expire(accounts[account_id], ["balance"])

            logger.info(
                "balance_updated",
                extra={
                    "account_id": str(account_id),
                    "account_code": accounts[account_id].code,
                    "delta": str(delta),
                },
            )

        return deltas
