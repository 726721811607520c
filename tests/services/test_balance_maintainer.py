"""
BalanceMaintainer tests.

Verifies:
- Signed deltas per the sign table, netted per account
- Balances are read back from the database, not cached
- Missing accounts raise AccountNotFoundError
"""

from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest
from sqlalchemy import select

from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account
from ledger_kernel.services.balance_maintainer import BalanceMaintainer


def _line(account, amount, is_debit):
    return SimpleNamespace(account_id=account.id, amount=Decimal(amount), is_debit=is_debit)


class TestUpdateAccountBalances:
    def test_deltas_follow_sign_table(self, session, owner_id, standard_chart):
        maintainer = BalanceMaintainer(session)
        cash = standard_chart["1010-CASH"]
        revenue = standard_chart["4000-REVENUE"]
        rent = standard_chart["5000-RENT"]
        ap = standard_chart["2000-AP"]

        deltas = maintainer.update_account_balances(
            owner_id,
            [
                _line(cash, "10.00", True),
                _line(revenue, "10.00", False),
                _line(rent, "3.00", True),
                _line(ap, "3.00", False),
            ],
        )

        assert deltas == {
            cash.id: Decimal("10.00"),
            revenue.id: Decimal("10.00"),
            rent.id: Decimal("3.00"),
            ap.id: Decimal("3.00"),
        }
        for account, expected in [(cash, "10.00"), (revenue, "10.00"), (rent, "3.00"), (ap, "3.00")]:
            session.refresh(account)
            assert account.balance == Decimal(expected)

    def test_lines_on_same_account_are_netted(self, session, owner_id, standard_chart):
        cash = standard_chart["1010-CASH"]
        deltas = BalanceMaintainer(session).update_account_balances(
            owner_id,
            [_line(cash, "10.00", True), _line(cash, "4.00", False)],
        )
        assert deltas == {cash.id: Decimal("6.00")}
        assert cash.balance == Decimal("6.00")

    def test_balance_expired_after_update(self, session, owner_id, standard_chart):
        cash = standard_chart["1010-CASH"]
        assert cash.balance == Decimal("0.00")

        BalanceMaintainer(session).update_account_balances(
            owner_id, [_line(cash, "7.50", True)]
        )
        # Attribute reload hits the database, not the stale ORM copy
        assert cash.balance == Decimal("7.50")

    def test_increments_accumulate(self, session, owner_id, standard_chart):
        maintainer = BalanceMaintainer(session)
        equity = standard_chart["3000-EQUITY"]
        for _ in range(3):
            maintainer.update_account_balances(owner_id, [_line(equity, "1.10", False)])

        stored = session.execute(
            select(Account.balance).where(Account.id == equity.id)
        ).scalar_one()
        assert stored == Decimal("3.30")

    def test_unknown_account(self, session, owner_id, standard_chart):
        ghost = SimpleNamespace(id=uuid4())
        with pytest.raises(AccountNotFoundError):
            BalanceMaintainer(session).update_account_balances(
                owner_id, [_line(ghost, "1.00", True)]
            )

    def test_other_owner_account_not_touched(self, session, standard_chart):
        cash = standard_chart["1010-CASH"]
        with pytest.raises(AccountNotFoundError):
            BalanceMaintainer(session).update_account_balances(
                uuid4(), [_line(cash, "1.00", True)]
            )
        session.refresh(cash)
        assert cash.balance == Decimal("0.00")
