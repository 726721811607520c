"""
LedgerSettings -- the kernel-side view of configuration.

The kernel never reads YAML or environment variables.  ledger_config builds
a LedgerSettings (see ledger_config.bridges) and the orchestrator passes it
down.  DEFAULT_SETTINGS mirrors the shipped defaults so the kernel is usable
without the config package.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ledger_kernel.db.types import DEFAULT_CURRENCY
from ledger_kernel.domain.money import DEFAULT_TOLERANCE


@dataclass(frozen=True)
class RoleConvention:
    """
    Fallback rule for resolving a role when no explicit binding exists.

    Matching order: exact code, then case-insensitive name fragment, then
    account type.  The first match in code order wins.
    """

    role: str
    codes: tuple[str, ...] = ()
    name_contains: tuple[str, ...] = ()
    account_type: str | None = None


DEFAULT_ROLE_CONVENTIONS: tuple[RoleConvention, ...] = (
    RoleConvention(
        role="accounts_receivable",
        codes=("1000-AR",),
        name_contains=("receivable",),
    ),
    RoleConvention(
        role="revenue",
        codes=("4000-REVENUE",),
        account_type="income",
    ),
    RoleConvention(
        role="cash",
        codes=("1010-CASH",),
        name_contains=("cash",),
    ),
)


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff for operations that fail with ConcurrencyError."""

    max_attempts: int = 3
    base_delay: float = 0.05


@dataclass(frozen=True)
class LedgerSettings:
    currency: str = DEFAULT_CURRENCY
    balance_tolerance: Decimal = DEFAULT_TOLERANCE
    role_conventions: tuple[RoleConvention, ...] = field(
        default=DEFAULT_ROLE_CONVENTIONS,
    )
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def convention_for(self, role: str) -> RoleConvention | None:
        for convention in self.role_conventions:
            if convention.role == role:
                return convention
        return None


DEFAULT_SETTINGS = LedgerSettings()
