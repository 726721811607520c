"""
AccountRegistry -- owner of the chart of accounts.

Responsibility:
    Creates accounts and looks them up by code or id within an owner's
    chart.  Every other component depends on it for account existence.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - (owner_id, code) is unique.  Checked before insert and guarded by a
      unique constraint; a concurrent duplicate surfaces as
      DuplicateAccountCodeError, never as a raw IntegrityError.
    - Append-only chart: no update or delete operation exists.
    - Every create emits exactly one ``create_account`` audit log.

Failure modes:
    - DuplicateAccountCodeError, InvalidAccountTypeError, InvalidLineError
      (blank code or name) on create.
    - AccountNotFoundError on lookup of an unknown code or id.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import DEFAULT_CURRENCY, validate_currency
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    DuplicateAccountCodeError,
    InvalidAccountTypeError,
    ValidationError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.services.audit_logger import AuditLogger
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account_registry")


def parse_account_type(value: AccountType | str) -> AccountType:
    """Normalize an account type, raising InvalidAccountTypeError."""
    if isinstance(value, AccountType):
        return value
    try:
        return AccountType(str(value).strip().lower())
    except ValueError:
        raise InvalidAccountTypeError(str(value)) from None


class AccountRegistry(BaseService):
    """
    Chart-of-accounts service.

    Contract:
        All lookups are scoped to one owner.  Accounts of other owners are
        invisible, even by id.
    """

    def __init__(
        self,
        session: Session,
        auditor: AuditLogger,
        default_currency: str = DEFAULT_CURRENCY,
    ):
        super().__init__(session)
        self._auditor = auditor
        self._default_currency = default_currency

    def create_account(
        self,
        owner_id: UUID,
        code: str,
        name: str,
        account_type: AccountType | str,
        currency: str | None = None,
        description: str | None = None,
    ) -> Account:
        """
        Add an account to the owner's chart.

        Postconditions:
            - Account flushed with balance 0.00.
            - One ``create_account`` audit log flushed.
        """
        code = (code or "").strip()
        name = (name or "").strip()
        if not code:
            raise ValidationError("Account code is required")
        if not name:
            raise ValidationError("Account name is required")
        parsed_type = parse_account_type(account_type)
        try:
            currency_code = validate_currency(currency or self._default_currency)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        if self._find_by_code(owner_id, code) is not None:
            raise DuplicateAccountCodeError(code)

        account = Account(
            owner_id=owner_id,
            code=code,
            name=name,
            account_type=parsed_type.value,
            currency=currency_code,
            description=description,
        )
        try:
            with self.session.begin_nested():
                self.session.add(account)
                self.session.flush()
        except IntegrityError:
            # Lost a race with a concurrent create of the same code
            raise DuplicateAccountCodeError(code) from None

        self._auditor.record_account_created(owner_id, account)

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "account_code": code,
                "account_type": parsed_type.value,
            },
        )
        return account

    def list_accounts(self, owner_id: UUID) -> list[Account]:
        """All accounts for the owner, ordered by code."""
        return list(
            self.session.execute(
                select(Account)
                .where(Account.owner_id == owner_id)
                .order_by(Account.code)
            ).scalars().all()
        )

    def get_account_by_code(self, owner_id: UUID, code: str) -> Account:
        account = self._find_by_code(owner_id, code)
        if account is None:
            raise AccountNotFoundError(code)
        return account

    def get_account(self, owner_id: UUID, account_id: UUID) -> Account:
        account = self.session.execute(
            select(Account).where(
                Account.owner_id == owner_id,
                Account.id == account_id,
            )
        ).scalar_one_or_none()
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def _find_by_code(self, owner_id: UUID, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.owner_id == owner_id,
                Account.code == code,
            )
        ).scalar_one_or_none()
