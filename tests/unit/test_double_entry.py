"""
Pure double-entry checks: validate_double_entry, the sign table, input DTOs
and client_ref helpers.  No database.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import JournalLineInput
from ledger_kernel.models.account import AccountType, balance_change
from ledger_kernel.services.journal_posting import sum_sides, validate_double_entry
from ledger_kernel.utils.idempotency import (
    generate_client_ref,
    invoice_client_ref,
    parse_client_ref,
    payment_client_ref,
)


class TestValidateDoubleEntry:
    def test_balanced_pair(self):
        lines = [
            JournalLineInput.debit("1000-AR", "100.00"),
            JournalLineInput.credit("4000-REVENUE", "100.00"),
        ]
        assert validate_double_entry(lines) is True

    def test_unbalanced_pair(self):
        lines = [
            JournalLineInput.debit("1000-AR", "100.00"),
            JournalLineInput.credit("4000-REVENUE", "99.00"),
        ]
        assert validate_double_entry(lines) is False

    def test_accepts_mappings(self):
        lines = [
            {"amount": "10.00", "is_debit": True},
            {"amount": "4.00", "is_debit": False},
            {"amount": "6.00", "is_debit": False},
        ]
        assert validate_double_entry(lines) is True

    def test_float_inputs_quantized_before_comparison(self):
        lines = [
            {"amount": 0.1, "is_debit": True},
            {"amount": 0.2, "is_debit": True},
            {"amount": 0.3, "is_debit": False},
        ]
        assert validate_double_entry(lines) is True

    def test_sum_sides(self):
        debits, credits = sum_sides([
            {"amount": "1.005", "is_debit": True},
            {"amount": "1", "is_debit": False},
        ])
        assert debits == Decimal("1.01")
        assert credits == Decimal("1.00")

    def test_empty_is_trivially_balanced(self):
        assert validate_double_entry([]) is True


class TestBalanceChange:
    @pytest.mark.parametrize(
        "account_type, is_debit, expected",
        [
            (AccountType.ASSET, True, Decimal("5.00")),
            (AccountType.ASSET, False, Decimal("-5.00")),
            (AccountType.EXPENSE, True, Decimal("5.00")),
            (AccountType.EXPENSE, False, Decimal("-5.00")),
            (AccountType.LIABILITY, True, Decimal("-5.00")),
            (AccountType.LIABILITY, False, Decimal("5.00")),
            (AccountType.EQUITY, True, Decimal("-5.00")),
            (AccountType.EQUITY, False, Decimal("5.00")),
            (AccountType.INCOME, True, Decimal("-5.00")),
            (AccountType.INCOME, False, Decimal("5.00")),
        ],
    )
    def test_sign_table(self, account_type, is_debit, expected):
        assert balance_change(account_type, is_debit, Decimal("5.00")) == expected

    def test_accepts_string_type(self):
        assert balance_change("income", False, Decimal("1.00")) == Decimal("1.00")

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            balance_change("revenue", True, Decimal("1.00"))


class TestJournalLineInput:
    def test_from_mapping_coerces_types(self):
        account_id = uuid4()
        line = JournalLineInput.from_mapping(
            {"amount": "5", "is_debit": 1, "account_id": str(account_id)}
        )
        assert line.is_debit is True
        assert line.account_id == account_id
        assert line.account_ref == str(account_id)

    def test_account_ref_falls_back_to_code(self):
        assert JournalLineInput.credit("4000-REVENUE", 1).account_ref == "4000-REVENUE"
        assert JournalLineInput(amount=1, is_debit=True).account_ref == "<missing>"


class TestClientRefs:
    def test_generated_refs(self):
        uid = uuid4()
        assert invoice_client_ref(uid) == f"invoice-{uid}"
        assert payment_client_ref(uid) == f"payment-{uid}"
        assert generate_client_ref("bank", "42") == "bank-42"

    def test_parse_round_trip(self):
        uid = uuid4()
        assert parse_client_ref(invoice_client_ref(uid)) == ("invoice", str(uid))

    def test_parse_rejects_unprefixed(self):
        with pytest.raises(ValueError):
            parse_client_ref("nodash")
