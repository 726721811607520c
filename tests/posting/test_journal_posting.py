"""
Journal posting tests.

Verifies:
- Balanced entries post and move balances in each account's normal direction
- Unbalanced or malformed entries are rejected with no rows persisted
- Accounts are resolved by code or id, scoped to the owner
- One audit log and one journal_posted log line per entry
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from ledger_kernel.domain.dtos import JournalLineInput
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InvalidLineError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_kernel.models.account import Account
from ledger_kernel.models.audit_log import AuditLog
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.services.journal_posting import validate_double_entry


def _balance(session, owner_id, code) -> Decimal:
    return session.execute(
        select(Account.balance).where(Account.owner_id == owner_id, Account.code == code)
    ).scalar_one()


def _count(session, model, owner_id) -> int:
    return session.execute(
        select(func.count()).select_from(model).where(model.owner_id == owner_id)
    ).scalar_one()


class TestBalancedPosting:
    def test_invoice_style_entry_moves_both_balances(
        self, session, ledger, owner_id, standard_chart
    ):
        lines = [
            JournalLineInput.debit("1000-AR", "100.00"),
            JournalLineInput.credit("4000-REVENUE", "100.00"),
        ]
        assert validate_double_entry(lines)

        entry = ledger.create_journal_entry(owner_id, "Consulting", lines)

        assert entry.id is not None
        assert entry.is_balanced
        assert entry.total_debits == Decimal("100.00")
        assert _balance(session, owner_id, "1000-AR") == Decimal("100.00")
        assert _balance(session, owner_id, "4000-REVENUE") == Decimal("100.00")

    def test_lines_keep_order_and_account_currency(
        self, session, ledger, owner_id, standard_chart
    ):
        entry = ledger.create_journal_entry(
            owner_id,
            "Rent",
            [
                JournalLineInput.debit("5000-RENT", "1200.00", description="March rent"),
                JournalLineInput.credit("1010-CASH", "1200.00"),
            ],
        )

        lines = session.execute(
            select(JournalLine)
            .where(JournalLine.journal_entry_id == entry.id)
            .order_by(JournalLine.line_seq)
        ).scalars().all()
        assert [line.line_seq for line in lines] == [0, 1]
        assert [line.is_debit for line in lines] == [True, False]
        assert lines[0].description == "March rent"
        assert all(line.currency == "USD" for line in lines)
        assert _balance(session, owner_id, "5000-RENT") == Decimal("1200.00")
        assert _balance(session, owner_id, "1010-CASH") == Decimal("-1200.00")

    def test_multi_line_split(self, session, ledger, owner_id, standard_chart):
        ledger.create_journal_entry(
            owner_id,
            "Owner investment split",
            [
                JournalLineInput.debit("1010-CASH", "700.00"),
                JournalLineInput.debit("1000-AR", "300.00"),
                JournalLineInput.credit("3000-EQUITY", "1000.00"),
            ],
        )
        assert _balance(session, owner_id, "1010-CASH") == Decimal("700.00")
        assert _balance(session, owner_id, "1000-AR") == Decimal("300.00")
        assert _balance(session, owner_id, "3000-EQUITY") == Decimal("1000.00")

    def test_same_account_on_both_sides_nets_to_zero(
        self, session, ledger, owner_id, standard_chart
    ):
        ledger.create_journal_entry(
            owner_id,
            "Reclass",
            [
                JournalLineInput.debit("1010-CASH", "50.00"),
                JournalLineInput.credit("1010-CASH", "50.00"),
            ],
        )
        assert _balance(session, owner_id, "1010-CASH") == Decimal("0.00")

    def test_account_referenced_by_id(self, session, ledger, owner_id, standard_chart):
        cash = standard_chart["1010-CASH"]
        ledger.create_journal_entry(
            owner_id,
            "By id",
            [
                JournalLineInput(amount="25", is_debit=True, account_id=cash.id),
                {"amount": "25", "is_debit": False, "account_code": "3000-EQUITY"},
            ],
        )
        assert _balance(session, owner_id, "1010-CASH") == Decimal("25.00")

    def test_float_amounts_are_quantized(self, session, ledger, owner_id, standard_chart):
        ledger.create_journal_entry(
            owner_id,
            "Float input",
            [
                {"amount": 0.1, "is_debit": True, "account_code": "1010-CASH"},
                {"amount": 0.2, "is_debit": True, "account_code": "1010-CASH"},
                {"amount": 0.3, "is_debit": False, "account_code": "3000-EQUITY"},
            ],
        )
        assert _balance(session, owner_id, "1010-CASH") == Decimal("0.30")

    def test_metadata_and_posted_at(
        self, ledger, owner_id, standard_chart, deterministic_clock
    ):
        entry = ledger.create_journal_entry(
            owner_id,
            "Tagged",
            [
                JournalLineInput.debit("1010-CASH", 1),
                JournalLineInput.credit("3000-EQUITY", 1),
            ],
            metadata={"batch": "B-7"},
        )
        assert entry.entry_metadata == {"batch": "B-7"}
        assert entry.posted_at.replace(tzinfo=None) == (
            deterministic_clock.now().replace(tzinfo=None)
        )


class TestRejectedPosting:
    def test_unbalanced_entry_rejected_without_rows(
        self, session, ledger, owner_id, standard_chart
    ):
        lines = [
            JournalLineInput.debit("1000-AR", "100.00"),
            JournalLineInput.credit("4000-REVENUE", "99.00"),
        ]
        assert not validate_double_entry(lines)

        with pytest.raises(UnbalancedEntryError) as exc_info:
            ledger.create_journal_entry(owner_id, "Bad", lines)

        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.debits == "100.00"
        assert exc_info.value.credits == "99.00"
        assert "debits must equal credits" in str(exc_info.value)
        assert _count(session, JournalEntry, owner_id) == 0
        assert session.execute(select(func.count()).select_from(JournalLine)).scalar_one() == 0
        assert _balance(session, owner_id, "1000-AR") == Decimal("0.00")
        assert _balance(session, owner_id, "4000-REVENUE") == Decimal("0.00")

    def test_one_cent_difference_rejected(self, ledger, owner_id, standard_chart):
        with pytest.raises(UnbalancedEntryError):
            ledger.create_journal_entry(
                owner_id,
                "Off by a cent",
                [
                    JournalLineInput.debit("1010-CASH", "10.00"),
                    JournalLineInput.credit("3000-EQUITY", "9.99"),
                ],
            )

    def test_single_line_rejected(self, ledger, owner_id, standard_chart):
        with pytest.raises(InvalidLineError):
            ledger.create_journal_entry(
                owner_id, "Lonely", [JournalLineInput.debit("1010-CASH", "10.00")]
            )

    def test_negative_amount_rejected(self, ledger, owner_id, standard_chart):
        with pytest.raises(InvalidLineError) as exc_info:
            ledger.create_journal_entry(
                owner_id,
                "Negative",
                [
                    JournalLineInput.debit("1010-CASH", "-10.00"),
                    JournalLineInput.credit("3000-EQUITY", "-10.00"),
                ],
            )
        assert exc_info.value.line_index == 0

    def test_non_numeric_amount_rejected(self, ledger, owner_id, standard_chart):
        with pytest.raises(InvalidLineError):
            ledger.create_journal_entry(
                owner_id,
                "Garbage",
                [
                    JournalLineInput.debit("1010-CASH", "ten"),
                    JournalLineInput.credit("3000-EQUITY", "10"),
                ],
            )

    def test_line_without_account_rejected(self, ledger, owner_id, standard_chart):
        with pytest.raises(InvalidLineError):
            ledger.create_journal_entry(
                owner_id,
                "No account",
                [
                    JournalLineInput(amount="5", is_debit=True),
                    JournalLineInput.credit("3000-EQUITY", "5"),
                ],
            )

    def test_unknown_account_rejected_without_rows(
        self, session, ledger, owner_id, standard_chart
    ):
        with pytest.raises(AccountNotFoundError) as exc_info:
            ledger.create_journal_entry(
                owner_id,
                "Missing",
                [
                    JournalLineInput.debit("9999-NOPE", "5"),
                    JournalLineInput.credit("3000-EQUITY", "5"),
                ],
            )
        assert exc_info.value.account_ref == "9999-NOPE"
        assert _count(session, JournalEntry, owner_id) == 0
        assert _balance(session, owner_id, "3000-EQUITY") == Decimal("0.00")

    def test_other_owners_accounts_invisible(self, ledger, standard_chart):
        stranger = uuid4()
        with pytest.raises(AccountNotFoundError):
            ledger.create_journal_entry(
                stranger,
                "Cross-owner",
                [
                    JournalLineInput.debit("1010-CASH", "5"),
                    JournalLineInput.credit("3000-EQUITY", "5"),
                ],
            )

    def test_mismatched_id_and_code_rejected(self, ledger, owner_id, standard_chart):
        cash = standard_chart["1010-CASH"]
        with pytest.raises(InvalidLineError):
            ledger.create_journal_entry(
                owner_id,
                "Mismatch",
                [
                    JournalLineInput(
                        amount="5", is_debit=True, account_id=cash.id, account_code="1000-AR"
                    ),
                    JournalLineInput.credit("3000-EQUITY", "5"),
                ],
            )

    def test_mapping_line_missing_field_rejected(
        self, session, ledger, owner_id, standard_chart
    ):
        with pytest.raises(InvalidLineError) as exc_info:
            ledger.create_journal_entry(
                owner_id,
                "Request body",
                [
                    {"account_code": "1010-CASH", "amount": "10"},
                    {"account_code": "3000-EQUITY", "amount": "10", "is_debit": False},
                ],
            )
        assert exc_info.value.line_index == 0
        assert "is_debit" in exc_info.value.reason
        assert _count(session, JournalEntry, owner_id) == 0

    def test_mapping_line_bad_account_id_rejected(
        self, captured_logs, ledger, owner_id, standard_chart
    ):
        with pytest.raises(InvalidLineError) as exc_info:
            ledger.create_journal_entry(
                owner_id,
                "Request body",
                [
                    {"account_code": "1010-CASH", "amount": "10", "is_debit": True},
                    {"account_id": "not-a-uuid", "amount": "10", "is_debit": False},
                ],
            )
        assert exc_info.value.line_index == 1
        messages = [r["message"] for r in captured_logs()]
        assert "operation_rejected" in messages
        assert "operation_failed" not in messages


class TestPostingSideEffects:
    def test_one_audit_log_per_entry(self, session, ledger, owner_id, standard_chart):
        entry = ledger.create_journal_entry(
            owner_id,
            "Audited",
            [
                JournalLineInput.debit("1010-CASH", "5"),
                JournalLineInput.credit("3000-EQUITY", "5"),
            ],
            client_ref="manual-1",
        )
        logs = session.execute(
            select(AuditLog).where(
                AuditLog.owner_id == owner_id,
                AuditLog.action == "post_journal",
            )
        ).scalars().all()
        assert len(logs) == 1
        assert logs[0].entity_type == "journal_entry"
        assert logs[0].entity_id == str(entry.id)
        assert logs[0].details == {
            "description": "Audited",
            "line_count": 2,
            "client_ref": "manual-1",
        }

    def test_rejected_entry_writes_no_audit(self, session, ledger, owner_id, standard_chart):
        with pytest.raises(UnbalancedEntryError):
            ledger.create_journal_entry(
                owner_id,
                "Bad",
                [
                    JournalLineInput.debit("1010-CASH", "5"),
                    JournalLineInput.credit("3000-EQUITY", "4"),
                ],
            )
        count = session.execute(
            select(func.count()).select_from(AuditLog).where(
                AuditLog.owner_id == owner_id,
                AuditLog.action == "post_journal",
            )
        ).scalar_one()
        assert count == 0

    def test_structured_logs_carry_context(
        self, captured_logs, ledger, owner_id, standard_chart
    ):
        entry = ledger.create_journal_entry(
            owner_id,
            "Logged",
            [
                JournalLineInput.debit("1010-CASH", "5"),
                JournalLineInput.credit("3000-EQUITY", "5"),
            ],
        )
        logs = captured_logs()
        posted = [r for r in logs if r["message"] == "journal_posted"]
        assert len(posted) == 1
        assert posted[0]["entry_id"] == str(entry.id)
        assert posted[0]["operation"] == "create_journal_entry"
        assert posted[0]["owner_id"] == str(owner_id)
        assert "correlation_id" in posted[0]

        balance_lines = [r for r in logs if r["message"] == "balance_updated"]
        assert {r["account_code"] for r in balance_lines} == {"1010-CASH", "3000-EQUITY"}

    def test_rejection_logged(self, captured_logs, ledger, owner_id, standard_chart):
        with pytest.raises(UnbalancedEntryError):
            ledger.create_journal_entry(
                owner_id,
                "Bad",
                [
                    JournalLineInput.debit("1010-CASH", "5"),
                    JournalLineInput.credit("3000-EQUITY", "4"),
                ],
            )
        messages = [r["message"] for r in captured_logs()]
        assert "unbalanced_entry_rejected" in messages
        rejected = [r for r in captured_logs() if r["message"] == "operation_rejected"]
        assert rejected[0]["error_code"] == "UNBALANCED_ENTRY"
