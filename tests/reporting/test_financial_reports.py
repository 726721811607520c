"""
Financial statement tests.

Verifies:
- Trial balance columns are equal after any sequence of postings
- Balance sheet: assets == liabilities + equity (equity includes earnings)
- P&L from running balances, and windowed by posted_at
- Account ledger drill-down and the balance drift check
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import update

from ledger_kernel.domain.dtos import InvoiceInput, JournalLineInput
from ledger_kernel.exceptions import AccountNotFoundError
from ledger_kernel.models.account import Account


def _post(ledger, owner_id, description, debit_code, credit_code, amount):
    return ledger.create_journal_entry(
        owner_id,
        description,
        [
            JournalLineInput.debit(debit_code, amount),
            JournalLineInput.credit(credit_code, amount),
        ],
    )


def _rows(report):
    return {row.account_code: row for row in report.rows}


class TestTrialBalance:
    def test_invoice_then_payment(self, ledger, owner_id, standard_chart):
        invoice = ledger.create_invoice(owner_id, InvoiceInput(customer="Acme", total=500))
        ledger.record_payment(owner_id, 500, "wire", invoice_id=invoice.id)

        report = ledger.generate_trial_balance(owner_id)
        rows = _rows(report)

        assert rows["1000-AR"].debit == Decimal("0.00")
        assert rows["1000-AR"].credit == Decimal("0.00")
        assert rows["1010-CASH"].debit == Decimal("500.00")
        assert rows["4000-REVENUE"].credit == Decimal("500.00")
        assert report.total_debits == report.total_credits == Decimal("500.00")
        assert report.is_balanced

    def test_negative_balance_flips_column(self, ledger, owner_id, standard_chart):
        # Payment without an invoice drives AR negative
        ledger.record_payment(owner_id, 40, "card")

        rows = _rows(ledger.generate_trial_balance(owner_id))
        assert rows["1000-AR"].balance == Decimal("-40.00")
        assert rows["1000-AR"].credit == Decimal("40.00")
        assert rows["1000-AR"].debit == Decimal("0.00")

    def test_every_account_listed_in_code_order(self, ledger, owner_id, standard_chart):
        report = ledger.generate_trial_balance(owner_id)
        assert [row.account_code for row in report.rows] == sorted(standard_chart)
        assert report.total_debits == Decimal("0.00")

    def test_mixed_activity_balances(self, ledger, owner_id, standard_chart):
        _post(ledger, owner_id, "Capital", "1010-CASH", "3000-EQUITY", "1000")
        _post(ledger, owner_id, "Rent", "5000-RENT", "1010-CASH", "300")
        _post(ledger, owner_id, "Bill", "5000-RENT", "2000-AP", "75.25")
        _post(ledger, owner_id, "Sale", "1000-AR", "4000-REVENUE", "410.10")

        report = ledger.generate_trial_balance(owner_id)
        assert report.is_balanced
        assert report.total_debits == Decimal("1485.35")

    def test_scoped_to_owner(self, ledger, create_chart, owner_id, standard_chart):
        _post(ledger, owner_id, "Capital", "1010-CASH", "3000-EQUITY", "1000")
        stranger = uuid4()
        create_chart(stranger)
        assert ledger.generate_trial_balance(stranger).total_debits == Decimal("0.00")


class TestBalanceSheet:
    def test_identity_with_current_earnings(self, ledger, owner_id, standard_chart):
        _post(ledger, owner_id, "Capital", "1010-CASH", "3000-EQUITY", "1000")
        _post(ledger, owner_id, "Sale", "1000-AR", "4000-REVENUE", "250")
        _post(ledger, owner_id, "Rent", "5000-RENT", "1010-CASH", "100")
        _post(ledger, owner_id, "Bill", "5000-RENT", "2000-AP", "20")

        sheet = ledger.generate_balance_sheet(owner_id)

        assert sheet.total_assets == Decimal("1150.00")
        assert sheet.total_liabilities == Decimal("20.00")
        assert sheet.current_earnings == Decimal("130.00")
        assert sheet.total_equity == Decimal("1130.00")
        assert sheet.is_balanced
        assert [line.account_code for line in sheet.assets] == ["1000-AR", "1010-CASH"]
        assert [line.account_code for line in sheet.equity] == ["3000-EQUITY"]

    def test_empty_books(self, ledger, owner_id):
        sheet = ledger.generate_balance_sheet(owner_id)
        assert sheet.total_assets == Decimal("0.00")
        assert sheet.is_balanced


class TestProfitAndLoss:
    def test_balance_basis(self, ledger, owner_id, standard_chart):
        _post(ledger, owner_id, "Sale", "1000-AR", "4000-REVENUE", "900")
        _post(ledger, owner_id, "Rent", "5000-RENT", "1010-CASH", "350")

        pnl = ledger.generate_profit_loss(owner_id)

        assert pnl.basis == "balance"
        assert pnl.total_revenue == Decimal("900.00")
        assert pnl.total_expenses == Decimal("350.00")
        assert pnl.net_income == Decimal("550.00")
        assert [line.account_code for line in pnl.revenue] == ["4000-REVENUE"]
        assert [line.account_code for line in pnl.expenses] == ["5000-RENT"]

    def test_period_basis_filters_by_posted_at(
        self, ledger, owner_id, standard_chart, deterministic_clock
    ):
        deterministic_clock.set_time(datetime(2024, 1, 20, 10, 0, tzinfo=timezone.utc))
        _post(ledger, owner_id, "January sale", "1000-AR", "4000-REVENUE", "100")
        deterministic_clock.set_time(datetime(2024, 2, 10, 10, 0, tzinfo=timezone.utc))
        _post(ledger, owner_id, "February sale", "1000-AR", "4000-REVENUE", "40")
        _post(ledger, owner_id, "February rent", "5000-RENT", "1010-CASH", "15")
        deterministic_clock.set_time(datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc))
        _post(ledger, owner_id, "March sale", "1000-AR", "4000-REVENUE", "7")

        february = ledger.generate_profit_loss(owner_id, date(2024, 2, 1), date(2024, 2, 29))

        assert february.basis == "period"
        assert february.total_revenue == Decimal("40.00")
        assert february.total_expenses == Decimal("15.00")
        assert february.net_income == Decimal("25.00")
        assert february.start == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert february.end == datetime(2024, 3, 1, tzinfo=timezone.utc)

        since_february = ledger.generate_profit_loss(owner_id, start=date(2024, 2, 1))
        assert since_february.total_revenue == Decimal("47.00")

        until_january = ledger.generate_profit_loss(owner_id, end=date(2024, 1, 31))
        assert until_january.total_revenue == Decimal("100.00")
        assert until_january.total_expenses == Decimal("0.00")

    def test_end_date_includes_whole_day(
        self, ledger, owner_id, standard_chart, deterministic_clock
    ):
        deterministic_clock.set_time(datetime(2024, 2, 29, 23, 59, 30, tzinfo=timezone.utc))
        _post(ledger, owner_id, "Late sale", "1000-AR", "4000-REVENUE", "12")

        pnl = ledger.generate_profit_loss(owner_id, date(2024, 2, 29), date(2024, 2, 29))
        assert pnl.total_revenue == Decimal("12.00")

    def test_datetime_end_is_inclusive(
        self, ledger, owner_id, standard_chart, deterministic_clock
    ):
        moment = datetime(2024, 4, 1, 12, 0, tzinfo=timezone.utc)
        deterministic_clock.set_time(moment)
        _post(ledger, owner_id, "Noon sale", "1000-AR", "4000-REVENUE", "30")

        assert ledger.generate_profit_loss(owner_id, end=moment).total_revenue == Decimal("30.00")
        before = datetime(2024, 4, 1, 11, 59, tzinfo=timezone.utc)
        assert ledger.generate_profit_loss(owner_id, end=before).total_revenue == Decimal("0.00")


class TestAccountLedger:
    def test_lines_newest_first(self, ledger, owner_id, standard_chart, deterministic_clock):
        _post(ledger, owner_id, "Capital", "1010-CASH", "3000-EQUITY", "500")
        deterministic_clock.advance(60)
        _post(ledger, owner_id, "Rent", "5000-RENT", "1010-CASH", "120")

        cash = ledger.get_account_ledger(owner_id, "1010-CASH")

        assert cash.account.code == "1010-CASH"
        assert cash.account.balance == Decimal("380.00")
        assert [line.entry_description for line in cash.lines] == ["Rent", "Capital"]
        assert cash.lines[0].credit == Decimal("120.00")
        assert cash.lines[0].debit == Decimal("0.00")
        assert cash.lines[1].debit == Decimal("500.00")

    def test_unknown_code(self, ledger, owner_id, standard_chart):
        with pytest.raises(AccountNotFoundError):
            ledger.get_account_ledger(owner_id, "9999")


class TestBalanceDrift:
    def test_consistent_books_have_no_drift(self, ledger, owner_id, standard_chart):
        _post(ledger, owner_id, "Capital", "1010-CASH", "3000-EQUITY", "500")
        _post(ledger, owner_id, "Rent", "5000-RENT", "1010-CASH", "120")
        assert ledger.check_balance_drift(owner_id) == []

    def test_tampered_balance_reported(
        self, session, ledger, owner_id, standard_chart, captured_logs
    ):
        _post(ledger, owner_id, "Capital", "1010-CASH", "3000-EQUITY", "500")
        # Bulk UPDATE bypasses the ORM flush listeners
        session.execute(
            update(Account)
            .where(Account.id == standard_chart["1010-CASH"].id)
            .values(balance=Decimal("499.00"))
        )

        drift = ledger.check_balance_drift(owner_id)

        assert [(d.account_code, d.difference) for d in drift] == [
            ("1010-CASH", Decimal("-1.00"))
        ]
        assert drift[0].derived_balance == Decimal("500.00")
        logged = [r for r in captured_logs() if r["message"] == "balance_drift_detected"]
        assert logged[0]["level"] == "ERROR"
