"""
RoleResolver -- maps accounting roles to accounts in an owner's chart.

Responsibility:
    Answers "which account is accounts receivable / revenue / cash for this
    owner?" for the invoice/payment bridge.

Architecture position:
    Kernel > Services.  Reads AccountRoleBinding rows; writes them only in
    ``bind_roles``.

Resolution order:
    1. Explicit binding (validated when written, so it is trusted here).
    2. Configured convention (LedgerSettings.role_conventions):
       exact code -> name fragment (case-insensitive) -> account type.
       Candidates are scanned in code order; the first match wins.
    3. None -- the caller degrades (records the business event without a
       journal entry) and emits DegradedPostingWarning.

Invariants enforced:
    - Bindings fail fast: an unknown role, an unknown account code or a
      type mismatch (AR -> asset, cash -> asset, revenue -> income) raises
      RoleBindingError before anything is written.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.settings import DEFAULT_SETTINGS, LedgerSettings
from ledger_kernel.exceptions import RoleBindingError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.role_binding import AccountRole, AccountRoleBinding
from ledger_kernel.services.audit_logger import AuditLogger
from ledger_kernel.services.base import BaseService

logger = get_logger("services.role_resolver")

REQUIRED_ACCOUNT_TYPE: dict[AccountRole, AccountType] = {
    AccountRole.ACCOUNTS_RECEIVABLE: AccountType.ASSET,
    AccountRole.CASH: AccountType.ASSET,
    AccountRole.REVENUE: AccountType.INCOME,
}


class RoleResolver(BaseService):
    def __init__(
        self,
        session: Session,
        auditor: AuditLogger | None = None,
        settings: LedgerSettings = DEFAULT_SETTINGS,
    ):
        super().__init__(session)
        self._auditor = auditor
        self._settings = settings

    def bind_roles(
        self,
        owner_id: UUID,
        bindings: dict[AccountRole | str, str],
    ) -> list[AccountRoleBinding]:
        """
        Validate and store role -> account code bindings.

        All bindings are checked before any is written.  Existing bindings
        for the same role are replaced.

        Raises:
            RoleBindingError: Unknown role, unknown account, or wrong type.
        """
        resolved: list[tuple[AccountRole, Account]] = []
        for raw_role, code in bindings.items():
            try:
                role = AccountRole(raw_role)
            except ValueError:
                raise RoleBindingError(str(raw_role), code, "unknown role") from None
            account = self.session.execute(
                select(Account).where(
                    Account.owner_id == owner_id,
                    Account.code == code,
                )
            ).scalar_one_or_none()
            if account is None:
                raise RoleBindingError(role.value, code, "account does not exist")
            required = REQUIRED_ACCOUNT_TYPE[role]
            if AccountType(account.account_type) != required:
                raise RoleBindingError(
                    role.value,
                    code,
                    f"account type is {AccountType(account.account_type).value}, "
                    f"expected {required.value}",
                )
            resolved.append((role, account))

        written = []
        for role, account in resolved:
            binding = self._get_binding(owner_id, role)
            if binding is None:
                binding = AccountRoleBinding(owner_id=owner_id, role=role.value)
                self.session.add(binding)
            binding.account_id = account.id
            binding.account = account
            written.append(binding)
        self.session.flush()

        if self._auditor is not None:
            self._auditor.record_role_binding(
                owner_id, {role.value: account.code for role, account in resolved}
            )

        logger.info(
            "account_roles_bound",
            extra={"roles": [role.value for role, _ in resolved]},
        )
        return written

    def resolve(self, owner_id: UUID, role: AccountRole | str) -> Account | None:
        role = AccountRole(role)
        binding = self._get_binding(owner_id, role)
        if binding is not None:
            return binding.account

        account = self._resolve_by_convention(owner_id, role)
        logger.debug(
            "role_resolved_by_convention",
            extra={
                "role": role.value,
                "account_code": account.code if account is not None else None,
            },
        )
        return account

    def resolve_many(
        self,
        owner_id: UUID,
        roles: list[AccountRole],
    ) -> tuple[dict[AccountRole, Account], list[AccountRole]]:
        """Resolve several roles; returns (found, missing)."""
        found: dict[AccountRole, Account] = {}
        missing: list[AccountRole] = []
        for role in roles:
            account = self.resolve(owner_id, role)
            if account is None:
                missing.append(role)
            else:
                found[role] = account
        return found, missing

    def _get_binding(self, owner_id: UUID, role: AccountRole) -> AccountRoleBinding | None:
        return self.session.execute(
            select(AccountRoleBinding).where(
                AccountRoleBinding.owner_id == owner_id,
                AccountRoleBinding.role == role.value,
            )
        ).scalar_one_or_none()

    def _resolve_by_convention(self, owner_id: UUID, role: AccountRole) -> Account | None:
        convention = self._settings.convention_for(role.value)
        if convention is None:
            return None

        accounts = self.session.execute(
            select(Account)
            .where(Account.owner_id == owner_id)
            .order_by(Account.code)
        ).scalars().all()

        for code in convention.codes:
            for account in accounts:
                if account.code == code:
                    return account

        fragments = [f.lower() for f in convention.name_contains]
        for account in accounts:
            name = account.name.lower()
            if any(fragment in name for fragment in fragments):
                return account

        if convention.account_type is not None:
            wanted = AccountType(convention.account_type)
            for account in accounts:
                if AccountType(account.account_type) == wanted:
                    return account

        return None
