"""
Ledger configuration schema.

Frozen dataclasses parsed from ``ledger.yaml`` by the loader.  These are the
source artifact; ``ledger_config.bridges`` turns them into the kernel's
``LedgerSettings``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    sqlite_busy_timeout: float = 30.0


@dataclass(frozen=True)
class PostingConfig:
    currency: str = "USD"
    balance_tolerance: Decimal = Decimal("0.01")


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay: float = 0.05


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class RoleConventionDef:
    """Fallback resolution rule for one account role."""

    role: str
    codes: tuple[str, ...] = ()
    name_contains: tuple[str, ...] = ()
    account_type: str | None = None


@dataclass(frozen=True)
class LedgerConfig:
    """
    The complete, validated configuration.

    checksum identifies the source document so a log line can be tied back
    to the exact configuration that produced it.
    """

    config_id: str
    version: int
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    posting: PostingConfig = field(default_factory=PostingConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    role_conventions: tuple[RoleConventionDef, ...] = ()
    checksum: str = ""
    source: str | None = None
