"""
Module: ledger_kernel.selectors.report_generator
Responsibility: Derives the standard statements -- trial balance, profit &
    loss, balance sheet, per-account ledger -- plus a balance drift check.
Architecture position: Kernel > Selectors.  Read-only.  May import from
    models/ and domain/.  MUST NOT import from services/.

Sources:
    - Trial balance, balance sheet and the unwindowed P&L read the running
      ``Account.balance`` maintained by BalanceMaintainer.
    - A windowed P&L (start and/or end given) aggregates journal lines by
      their entry's ``posted_at``, because running balances cannot be
      windowed.
    - balance_drift() re-derives every balance from journal lines and
      reports accounts whose stored balance disagrees.

Invariants (emergent from the sign table, asserted by tests):
    - Trial balance: sum(debit column) == sum(credit column).
    - Balance sheet: total_assets == total_liabilities + total_equity, where
      total_equity includes current earnings (income - expense balances not
      yet closed to equity).

Failure modes:
    - AccountNotFoundError from account_ledger() for an unknown code.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.domain.money import ZERO
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import DEBIT_NORMAL_TYPES, Account, AccountType, balance_change
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TrialBalanceRow:
    account_code: str
    account_name: str
    account_type: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class TrialBalance:
    rows: tuple[TrialBalanceRow, ...]
    total_debits: Decimal
    total_credits: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


@dataclass(frozen=True)
class StatementLine:
    account_code: str
    account_name: str
    amount: Decimal


@dataclass(frozen=True)
class ProfitAndLoss:
    """
    Revenue and expenses for the owner.

    basis is ``"balance"`` (running balances, no window) or ``"period"``
    (journal lines posted within [start, end]).
    """

    revenue: tuple[StatementLine, ...]
    expenses: tuple[StatementLine, ...]
    total_revenue: Decimal
    total_expenses: Decimal
    net_income: Decimal
    basis: str
    start: datetime | None = None
    end: datetime | None = None


@dataclass(frozen=True)
class BalanceSheet:
    assets: tuple[StatementLine, ...]
    liabilities: tuple[StatementLine, ...]
    equity: tuple[StatementLine, ...]
    total_assets: Decimal
    total_liabilities: Decimal
    current_earnings: Decimal
    total_equity: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_assets == self.total_liabilities + self.total_equity


@dataclass(frozen=True)
class AccountSummary:
    id: UUID
    code: str
    name: str
    account_type: str
    currency: str
    balance: Decimal


@dataclass(frozen=True)
class LedgerLine:
    """One journal line joined with its entry, for drill-down."""

    journal_entry_id: UUID
    journal_line_id: UUID
    posted_at: datetime
    entry_description: str
    line_description: str | None
    client_ref: str | None
    is_debit: bool
    amount: Decimal

    @property
    def debit(self) -> Decimal:
        return self.amount if self.is_debit else ZERO

    @property
    def credit(self) -> Decimal:
        return ZERO if self.is_debit else self.amount


@dataclass(frozen=True)
class AccountLedger:
    account: AccountSummary
    lines: tuple[LedgerLine, ...]


@dataclass(frozen=True)
class BalanceDrift:
    account_code: str
    stored_balance: Decimal
    derived_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored_balance - self.derived_balance


def _to_utc_bound(value: date | datetime | None, end: bool) -> datetime | None:
    """
    Normalize a window bound.

    A bare date means the whole day: a start date begins at 00:00 UTC and an
    end date runs up to (not including) 00:00 UTC of the next day.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    moment = datetime.combine(value, time.min, tzinfo=UTC)
    return moment + timedelta(days=1) if end else moment


class ReportGenerator(BaseSelector):
    """
    Read-only financial statements over one owner's books.

    Guarantees:
        - Balances are read from the database on every call
          (populate_existing), never from objects cached in the session.
        - All amounts are Decimal with two places.
    """

    def _accounts(self, owner_id: UUID, types: set[AccountType] | None = None) -> list[Account]:
        query = (
            select(Account)
            .where(Account.owner_id == owner_id)
            .order_by(Account.code)
            .execution_options(populate_existing=True)
        )
        if types is not None:
            query = query.where(Account.account_type.in_([t.value for t in types]))
        return list(self.session.execute(query).scalars().all())

    def trial_balance(self, owner_id: UUID) -> TrialBalance:
        """
        Split each signed balance into a debit or credit column.

        Debit-normal accounts with a positive balance report as a debit;
        credit-normal accounts with a positive balance report as a credit;
        a negative balance flips the column.
        """
        rows = []
        total_debits = ZERO
        total_credits = ZERO
        for account in self._accounts(owner_id):
            balance = account.balance
            debit_normal = AccountType(account.account_type) in DEBIT_NORMAL_TYPES
            if (balance >= 0) == debit_normal:
                debit, credit = abs(balance), ZERO
            else:
                debit, credit = ZERO, abs(balance)
            rows.append(
                TrialBalanceRow(
                    account_code=account.code,
                    account_name=account.name,
                    account_type=AccountType(account.account_type).value,
                    debit=debit,
                    credit=credit,
                    balance=balance,
                )
            )
            total_debits += debit
            total_credits += credit
        return TrialBalance(
            rows=tuple(rows),
            total_debits=total_debits,
            total_credits=total_credits,
        )

    def profit_and_loss(
        self,
        owner_id: UUID,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> ProfitAndLoss:
        """
        Revenue minus expenses.

        Without a window, reads running balances.  With a start and/or end,
        sums journal lines whose entry was posted in [start, end].
        """
        accounts = self._accounts(owner_id, {AccountType.INCOME, AccountType.EXPENSE})
        start_utc = _to_utc_bound(start, end=False)
        end_utc = _to_utc_bound(end, end=True)
        windowed = start_utc is not None or end_utc is not None

        if windowed:
            amounts = self._period_amounts(owner_id, accounts, start_utc, end_utc, end)
        else:
            amounts = {account.id: account.balance for account in accounts}

        revenue = []
        expenses = []
        for account in accounts:
            line = StatementLine(account.code, account.name, amounts.get(account.id, ZERO))
            if AccountType(account.account_type) == AccountType.INCOME:
                revenue.append(line)
            else:
                expenses.append(line)

        total_revenue = sum((line.amount for line in revenue), ZERO)
        total_expenses = sum((line.amount for line in expenses), ZERO)
        return ProfitAndLoss(
            revenue=tuple(revenue),
            expenses=tuple(expenses),
            total_revenue=total_revenue,
            total_expenses=total_expenses,
            net_income=total_revenue - total_expenses,
            basis="period" if windowed else "balance",
            start=start_utc,
            end=end_utc,
        )

    def _period_amounts(
        self,
        owner_id: UUID,
        accounts: list[Account],
        start_utc: datetime | None,
        end_utc: datetime | None,
        raw_end: date | datetime | None,
    ) -> dict[UUID, Decimal]:
        if not accounts:
            return {}
        by_id = {account.id: account for account in accounts}
        query = (
            select(
                JournalLine.account_id,
                JournalLine.is_debit,
                func.sum(JournalLine.amount),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.owner_id == owner_id,
                JournalLine.account_id.in_(list(by_id)),
            )
            .group_by(JournalLine.account_id, JournalLine.is_debit)
        )
        if start_utc is not None:
            query = query.where(JournalEntry.posted_at >= start_utc)
        if end_utc is not None:
            if isinstance(raw_end, datetime):
                query = query.where(JournalEntry.posted_at <= end_utc)
            else:
                query = query.where(JournalEntry.posted_at < end_utc)

        amounts: dict[UUID, Decimal] = {}
        for account_id, is_debit, total in self.session.execute(query).all():
            account = by_id[account_id]
            change = balance_change(account.account_type, is_debit, total or ZERO)
            amounts[account_id] = amounts.get(account_id, ZERO) + change
        return amounts

    def balance_sheet(self, owner_id: UUID) -> BalanceSheet:
        assets, liabilities, equity = [], [], []
        income_total = ZERO
        expense_total = ZERO
        for account in self._accounts(owner_id):
            account_type = AccountType(account.account_type)
            line = StatementLine(account.code, account.name, account.balance)
            if account_type == AccountType.ASSET:
                assets.append(line)
            elif account_type == AccountType.LIABILITY:
                liabilities.append(line)
            elif account_type == AccountType.EQUITY:
                equity.append(line)
            elif account_type == AccountType.INCOME:
                income_total += account.balance
            else:
                expense_total += account.balance

        current_earnings = income_total - expense_total
        total_assets = sum((line.amount for line in assets), ZERO)
        total_liabilities = sum((line.amount for line in liabilities), ZERO)
        total_equity = sum((line.amount for line in equity), ZERO) + current_earnings
        return BalanceSheet(
            assets=tuple(assets),
            liabilities=tuple(liabilities),
            equity=tuple(equity),
            total_assets=total_assets,
            total_liabilities=total_liabilities,
            current_earnings=current_earnings,
            total_equity=total_equity,
        )

    def account_ledger(self, owner_id: UUID, account_code: str) -> AccountLedger:
        """The account plus every line posted against it, newest first."""
        account = self.session.execute(
            select(Account)
            .where(Account.owner_id == owner_id, Account.code == account_code)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(account_code)

        rows = self.session.execute(
            select(JournalLine, JournalEntry)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalLine.account_id == account.id)
            .order_by(
                JournalEntry.posted_at.desc(),
                JournalEntry.created_at.desc(),
                JournalLine.line_seq,
            )
        ).all()

        lines = tuple(
            LedgerLine(
                journal_entry_id=entry.id,
                journal_line_id=line.id,
                posted_at=entry.posted_at,
                entry_description=entry.description,
                line_description=line.description,
                client_ref=entry.client_ref,
                is_debit=line.is_debit,
                amount=line.amount,
            )
            for line, entry in rows
        )
        return AccountLedger(
            account=AccountSummary(
                id=account.id,
                code=account.code,
                name=account.name,
                account_type=AccountType(account.account_type).value,
                currency=account.currency,
                balance=account.balance,
            ),
            lines=lines,
        )

    def balance_drift(self, owner_id: UUID) -> list[BalanceDrift]:
        """Accounts whose stored balance differs from their journal lines."""
        accounts = self._accounts(owner_id)
        by_id = {account.id: account for account in accounts}
        derived: dict[UUID, Decimal] = {account.id: ZERO for account in accounts}

        totals = self.session.execute(
            select(
                JournalLine.account_id,
                JournalLine.is_debit,
                func.sum(JournalLine.amount),
            )
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.owner_id == owner_id)
            .group_by(JournalLine.account_id, JournalLine.is_debit)
        ).all()
        for account_id, is_debit, total in totals:
            account = by_id.get(account_id)
            if account is None:
                continue
            derived[account_id] += balance_change(account.account_type, is_debit, total or ZERO)

        return [
            BalanceDrift(
                account_code=account.code,
                stored_balance=account.balance,
                derived_balance=derived[account.id],
            )
            for account in accounts
            if account.balance != derived[account.id]
        ]
