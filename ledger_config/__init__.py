"""
ledger_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads the YAML file or the
    environment directly.

Architecture position:
    Configuration -- sits above ``ledger_kernel``.  The kernel MUST NEVER
    import from ``ledger_config``; ``ledger_config.bridges`` translates the
    loaded config into kernel inputs.

Resolution order:
    1. ``path`` argument, if given.
    2. ``LEDGER_CONFIG`` environment variable.
    3. The packaged ``defaults/ledger.yaml``.
    ``DATABASE_URL``, when set, replaces ``database.url`` in every case.

Failure modes:
    - ``FileNotFoundError`` -- the chosen file does not exist.
    - ``ValueError`` -- schema validation failed; the message names the key.

Audit relevance:
    Every successful call emits a ``LEDGER_CONFIG_TRACE`` log entry with the
    config id, version, checksum and source, tying log output back to the
    configuration that governed it.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from ledger_config.loader import load_config
from ledger_config.schema import (
    DatabaseConfig,
    LedgerConfig,
    LoggingConfig,
    PostingConfig,
    RetryConfig,
    RoleConventionDef,
)

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "ledger.yaml"

CONFIG_ENV_VAR = "LEDGER_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Guarantees:
        - The returned ``LedgerConfig`` passed schema validation.
        - A ``LEDGER_CONFIG_TRACE`` log entry is emitted on every call.

    Non-goals:
        - No caching; callers hold the returned config.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    config = load_config(Path(path))

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        config = dataclasses.replace(
            config,
            database=dataclasses.replace(config.database, url=database_url),
        )

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": config.source,
            "database_dialect": config.database.url.split(":", 1)[0],
            "role_convention_count": len(config.role_conventions),
        },
    )
    return config


__all__ = [
    "CONFIG_ENV_VAR",
    "DATABASE_URL_ENV_VAR",
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "LedgerConfig",
    "LoggingConfig",
    "PostingConfig",
    "RetryConfig",
    "RoleConventionDef",
    "get_active_config",
]
