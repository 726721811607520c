"""
AccountRegistry tests.

Verifies:
- Accounts start at 0.00 with the default currency
- Code uniqueness per owner, type validation, required fields
- Owner scoping for lookups and listings
- One create_account audit log per account
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from ledger_kernel.exceptions import (
    AccountNotFoundError,
    DuplicateAccountCodeError,
    InvalidAccountTypeError,
    ValidationError,
)
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.audit_log import AuditLog


class TestCreateAccount:
    def test_new_account_defaults(self, ledger, owner_id):
        account = ledger.create_account(owner_id, "1010-CASH", "Cash", "asset")

        assert account.code == "1010-CASH"
        assert account.account_type == AccountType.ASSET
        assert account.currency == "USD"
        assert account.balance == Decimal("0.00")
        assert account.is_debit_normal

    def test_enum_type_and_currency(self, ledger, owner_id):
        account = ledger.create_account(
            owner_id, "4100-EU", "EU Sales", AccountType.INCOME, currency="eur",
            description="Sales to EU customers",
        )
        assert account.currency == "EUR"
        assert account.description == "Sales to EU customers"
        assert not account.is_debit_normal

    def test_code_and_name_trimmed(self, ledger, owner_id):
        account = ledger.create_account(owner_id, "  2000-AP ", " Payables ", "liability")
        assert account.code == "2000-AP"
        assert account.name == "Payables"

    def test_duplicate_code_rejected(self, ledger, owner_id):
        ledger.create_account(owner_id, "1010-CASH", "Cash", "asset")
        with pytest.raises(DuplicateAccountCodeError) as exc_info:
            ledger.create_account(owner_id, "1010-CASH", "Petty cash", "asset")
        assert exc_info.value.account_code == "1010-CASH"

    def test_same_code_allowed_for_other_owner(self, ledger, owner_id):
        ledger.create_account(owner_id, "1010-CASH", "Cash", "asset")
        other = ledger.create_account(uuid4(), "1010-CASH", "Cash", "asset")
        assert other.id is not None

    def test_unknown_type_rejected(self, ledger, owner_id):
        with pytest.raises(InvalidAccountTypeError):
            ledger.create_account(owner_id, "4000-REV", "Revenue", "revenue")

    @pytest.mark.parametrize("code, name", [("", "Cash"), ("1010", ""), ("   ", "Cash")])
    def test_blank_fields_rejected(self, ledger, owner_id, code, name):
        with pytest.raises(ValidationError):
            ledger.create_account(owner_id, code, name, "asset")

    def test_bad_currency_rejected(self, ledger, owner_id):
        with pytest.raises(ValidationError):
            ledger.create_account(owner_id, "1010", "Cash", "asset", currency="DOLLARS")

    def test_audit_log_written(self, session, ledger, owner_id):
        account = ledger.create_account(owner_id, "1010-CASH", "Cash", "asset")

        log = session.execute(
            select(AuditLog).where(AuditLog.entity_id == str(account.id))
        ).scalar_one()
        assert log.action == "create_account"
        assert log.entity_type == "account"
        assert log.owner_id == owner_id
        assert log.details["code"] == "1010-CASH"
        assert log.details["account_type"] == "asset"


class TestLookups:
    def test_list_ordered_by_code(self, ledger, owner_id, standard_chart):
        codes = [a.code for a in ledger.list_accounts(owner_id)]
        assert codes == sorted(codes)
        assert len(codes) == len(standard_chart)

    def test_list_scoped_to_owner(self, ledger, standard_chart):
        assert ledger.list_accounts(uuid4()) == []

    def test_get_by_code(self, ledger, owner_id, standard_chart):
        account = ledger.get_account_by_code(owner_id, "1000-AR")
        assert account.id == standard_chart["1000-AR"].id

    def test_get_by_code_missing(self, ledger, owner_id, standard_chart):
        with pytest.raises(AccountNotFoundError):
            ledger.get_account_by_code(owner_id, "0000")

    def test_get_by_id_scoped(self, ledger, owner_id, standard_chart):
        cash = standard_chart["1010-CASH"]
        assert ledger.accounts.get_account(owner_id, cash.id).code == "1010-CASH"
        with pytest.raises(AccountNotFoundError):
            ledger.accounts.get_account(uuid4(), cash.id)
