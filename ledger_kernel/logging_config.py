"""
Structured logging for the ledger kernel.

Every record is rendered as one JSON object per line.  Request-scoped
fields (correlation_id, owner_id, operation, entry_id) live in a single
ContextVar so the orchestrator can bind them once per operation and every
service log line inside that operation carries them.

Exceptions attached with ``exc_info`` are flattened: the class name, the
message, the ``code`` of LedgerError subclasses and each public attribute
of the exception (``exc_debits``, ``exc_account_code``...).
"""

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Iterator, Mapping
from uuid import UUID

NAMESPACE = "ledger_kernel"

CONTEXT_FIELDS = ("correlation_id", "owner_id", "operation", "entry_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("ledger_log_context", default=_EMPTY)


def _merged(fields: Mapping[str, Any]) -> Mapping[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context field(s): {sorted(unknown)}")
    current = dict(_context.get())
    current.update({k: str(v) for k, v in fields.items() if v is not None})
    return MappingProxyType(current)


class LogContext:
    """Request-scoped log fields, safe across threads and asyncio tasks."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Overwrite the given fields for the rest of the current context."""
        _context.set(_merged(fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Set fields inside the ``with`` block and restore the previous ones after."""
        token = _context.set(_merged(fields))
        try:
            yield
        finally:
            _context.reset(token)


# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name.startswith("_") or name == "code":
            continue
        fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            payload.update(_exception_fields(exc))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Logger named ``ledger_kernel.<name>``."""
    return logging.getLogger(f"{NAMESPACE}.{name}")


_setup_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``ledger_kernel`` logger.

    Only the first call has an effect until ``reset_logging()``; later calls
    (for example from build_engine) leave the existing handler in place.
    """
    global _installed_handler
    with _setup_lock:
        if _installed_handler is not None:
            return
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())

        logger = logging.getLogger(NAMESPACE)
        logger.setLevel(level.upper() if isinstance(level, str) else level)
        logger.propagate = False
        logger.addHandler(handler)
        _installed_handler = handler


def reset_logging() -> None:
    """Remove the installed handler so ``configure_logging`` runs again (tests)."""
    global _installed_handler
    with _setup_lock:
        logger = logging.getLogger(NAMESPACE)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.WARNING)
        _installed_handler = None
