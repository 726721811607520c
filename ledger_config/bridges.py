"""
Config -> Kernel Bridges.

Functions that convert a ``LedgerConfig`` into kernel inputs.  They live in
ledger_config (the producer) because the kernel must never import
ledger_config.

Usage:
    from ledger_config import get_active_config
    from ledger_config.bridges import build_ledger_settings, init_engine_from_config

    config = get_active_config()
    init_engine_from_config(config)
    settings = build_ledger_settings(config)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine

from ledger_config.schema import LedgerConfig
from ledger_kernel.db.engine import init_engine_from_url
from ledger_kernel.domain.settings import (
    DEFAULT_ROLE_CONVENTIONS,
    LedgerSettings,
    RetryPolicy,
    RoleConvention,
)
from ledger_kernel.logging_config import configure_logging


def build_ledger_settings(config: LedgerConfig) -> LedgerSettings:
    """Kernel settings from config.  No conventions configured means defaults."""
    conventions = tuple(
        RoleConvention(
            role=c.role,
            codes=c.codes,
            name_contains=c.name_contains,
            account_type=c.account_type,
        )
        for c in config.role_conventions
    ) or DEFAULT_ROLE_CONVENTIONS
    return LedgerSettings(
        currency=config.posting.currency,
        balance_tolerance=config.posting.balance_tolerance,
        role_conventions=conventions,
        retry=RetryPolicy(
            max_attempts=config.retry.max_attempts,
            base_delay=config.retry.base_delay,
        ),
    )


def init_engine_from_config(config: LedgerConfig) -> Engine:
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        sqlite_busy_timeout=db.sqlite_busy_timeout,
    )


def configure_logging_from_config(config: LedgerConfig) -> None:
    configure_logging(level=config.logging.level)
