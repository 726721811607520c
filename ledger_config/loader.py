"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads ``ledger.yaml`` and parses it into the frozen dataclasses of
``ledger_config.schema``.  Runtime callers use
``ledger_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Every parse error raises ``ValueError`` naming the offending key; no
  silent fallback for a present-but-invalid value.
* Unknown keys are rejected so typos do not pass unnoticed.
* ``compute_checksum`` is deterministic for the same document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    DatabaseConfig,
    LedgerConfig,
    LoggingConfig,
    PostingConfig,
    RetryConfig,
    RoleConventionDef,
)

_TOP_LEVEL_KEYS = frozenset({
    "config_id",
    "version",
    "database",
    "posting",
    "retry",
    "logging",
    "role_conventions",
})

_ACCOUNT_TYPES = frozenset({"asset", "liability", "equity", "income", "expense"})
_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML must be a mapping")
    return data


def _section(data: dict[str, Any], key: str, allowed: set[str]) -> dict[str, Any]:
    section = data.get(key) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{key}' must be a mapping")
    unknown = set(section) - allowed
    if unknown:
        raise ValueError(f"Unknown key(s) in '{key}': {', '.join(sorted(unknown))}")
    return section


def _positive_int(section: dict[str, Any], key: str, path: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"'{path}' must be a positive integer, got {value!r}")
    return value


def _non_negative_float(section: dict[str, Any], key: str, path: str, default: float) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValueError(f"'{path}' must be a non-negative number, got {value!r}")
    return float(value)


def parse_database(data: dict[str, Any]) -> DatabaseConfig:
    section = _section(data, "database", set(DatabaseConfig.__dataclass_fields__))
    url = section.get("url", DatabaseConfig.url)
    if not isinstance(url, str) or not url:
        raise ValueError("'database.url' must be a non-empty string")
    return DatabaseConfig(
        url=url,
        echo=bool(section.get("echo", False)),
        pool_size=_positive_int(section, "pool_size", "database.pool_size", 20),
        max_overflow=_positive_int(section, "max_overflow", "database.max_overflow", 10),
        pool_timeout=_positive_int(section, "pool_timeout", "database.pool_timeout", 30),
        sqlite_busy_timeout=_non_negative_float(
            section, "sqlite_busy_timeout", "database.sqlite_busy_timeout", 30.0,
        ),
    )


def parse_posting(data: dict[str, Any]) -> PostingConfig:
    section = _section(data, "posting", {"currency", "balance_tolerance"})
    currency = section.get("currency", "USD")
    if not isinstance(currency, str) or len(currency) != 3 or not currency.isalpha():
        raise ValueError(f"'posting.currency' must be a 3-letter code, got {currency!r}")

    raw = section.get("balance_tolerance", "0.01")
    try:
        tolerance = Decimal(str(raw))
    except InvalidOperation as exc:
        raise ValueError(f"'posting.balance_tolerance' is not a number: {raw!r}") from exc
    if not tolerance.is_finite() or tolerance < 0:
        raise ValueError(f"'posting.balance_tolerance' must be >= 0, got {raw!r}")

    return PostingConfig(currency=currency.upper(), balance_tolerance=tolerance)


def parse_retry(data: dict[str, Any]) -> RetryConfig:
    section = _section(data, "retry", {"max_attempts", "base_delay"})
    return RetryConfig(
        max_attempts=_positive_int(section, "max_attempts", "retry.max_attempts", 3),
        base_delay=_non_negative_float(section, "base_delay", "retry.base_delay", 0.05),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    section = _section(data, "logging", {"level"})
    level = str(section.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"'logging.level' must be one of {sorted(_LOG_LEVELS)}, got {level!r}")
    return LoggingConfig(level=level)


def parse_role_convention(data: dict[str, Any], index: int) -> RoleConventionDef:
    """
    Parse one entry of ``role_conventions``.

    Raises:
        ValueError: if ``role`` is missing or ``account_type`` is unknown.
    """
    path = f"role_conventions[{index}]"
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a mapping")
    unknown = set(data) - {"role", "codes", "name_contains", "account_type"}
    if unknown:
        raise ValueError(f"Unknown key(s) in '{path}': {', '.join(sorted(unknown))}")
    role = data.get("role")
    if not role:
        raise ValueError(f"'{path}.role' is required")
    account_type = data.get("account_type")
    if account_type is not None and account_type not in _ACCOUNT_TYPES:
        raise ValueError(f"'{path}.account_type' is not an account type: {account_type!r}")
    return RoleConventionDef(
        role=str(role),
        codes=tuple(str(c) for c in data.get("codes") or ()),
        name_contains=tuple(str(n) for n in data.get("name_contains") or ()),
        account_type=account_type,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the parsed document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any], source: str | None = None) -> LedgerConfig:
    """Validate a raw document and build a ``LedgerConfig``."""
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown top-level key(s): {', '.join(sorted(unknown))}")

    conventions = data.get("role_conventions") or []
    if not isinstance(conventions, list):
        raise ValueError("'role_conventions' must be a list")
    parsed_conventions = tuple(
        parse_role_convention(item, i) for i, item in enumerate(conventions)
    )
    roles = [c.role for c in parsed_conventions]
    if len(roles) != len(set(roles)):
        raise ValueError("'role_conventions' lists the same role more than once")

    return LedgerConfig(
        config_id=str(data.get("config_id", "ledger")),
        version=_positive_int(data, "version", "version", 1),
        database=parse_database(data),
        posting=parse_posting(data),
        retry=parse_retry(data),
        logging=parse_logging(data),
        role_conventions=parsed_conventions,
        checksum=compute_checksum(data),
        source=source,
    )


def load_config(path: Path) -> LedgerConfig:
    return parse_config(load_yaml_file(path), source=str(path))
