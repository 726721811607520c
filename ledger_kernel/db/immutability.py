"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

A ledger is append-only.  A mistaken entry is corrected by posting an
offsetting entry, never by editing or deleting the original.  These listeners
intercept ORM UPDATE/DELETE operations before the SQL reaches the database:

    session.flush()
         |
         v
    [before_flush]  --> _check_account_deletion_before_flush()
    [before_update] --> _check_*_immutability()   --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete()         --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | Rule
----------------|------------------------------------------------------------
JournalEntry    | Never updated, never deleted
JournalLine     | Never updated, never deleted
AuditLog        | Never updated, never deleted
Account         | Never deleted; code, account_type, balance never ORM-updated
Invoice         | status may only move issued -> paid

Account.balance is changed exclusively by BalanceMaintainer through an atomic
SQL ``UPDATE ... SET balance = balance + :delta``.  Core UPDATE statements do
not fire mapper events, so that path is unaffected while any ORM attribute
assignment to balance is rejected.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent, called by create_tables()

    # Tests that must bypass the guards:
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

ACCOUNT_PROTECTED_FIELDS = ("code", "account_type", "balance", "owner_id")

_AUDIT_METADATA_FIELDS = frozenset({"updated_at"})


def _block(entity_type: str, entity_id, operation: str, reason: str, **fields):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **fields,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    insp = inspect(target)
    return [
        attr.key
        for attr in insp.mapper.column_attrs
        if attr.key not in _AUDIT_METADATA_FIELDS
        and insp.attrs[attr.key].history.has_changes()
    ]


def _check_journal_entry_immutability(mapper, connection, target):
    """Journal entries are written once and never modified."""
    changed = _changed_fields(target)
    if changed:
        _block(
            "JournalEntry", target.id, "UPDATE",
            f"Cannot modify field(s) {changed} on posted journal entry",
            fields=changed,
        )


def _check_journal_entry_delete(mapper, connection, target):
    _block(
        "JournalEntry", target.id, "DELETE",
        "Posted journal entries cannot be deleted; post an offsetting entry",
    )


def _check_journal_line_immutability(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block(
            "JournalLine", target.id, "UPDATE",
            "Journal lines cannot be modified after posting",
            fields=changed,
        )


def _check_journal_line_delete(mapper, connection, target):
    _block(
        "JournalLine", target.id, "DELETE",
        "Journal lines cannot be deleted after posting",
    )


def _check_audit_log_immutability(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        _block(
            "AuditLog", target.id, "UPDATE",
            "Audit logs are immutable and cannot be modified",
            fields=changed,
        )


def _check_audit_log_delete(mapper, connection, target):
    _block(
        "AuditLog", target.id, "DELETE",
        "Audit logs cannot be deleted",
    )


def _check_account_protected_fields(mapper, connection, target):
    """
    Reject ORM changes to an account's identity and balance.

    Name and description remain editable metadata.
    """
    changed = [
        field for field in ACCOUNT_PROTECTED_FIELDS
        if get_history(target, field).has_changes()
    ]
    if changed:
        _block(
            "Account", target.id, "UPDATE",
            f"Cannot modify protected field(s) {changed} on account",
            fields=changed,
        )


def _check_account_deletion_before_flush(session, flush_context, instances):
    """Accounts are never deleted; checked before the flush plan is built."""
    from ledger_kernel.models.account import Account

    for obj in session.deleted:
        if isinstance(obj, Account):
            _block(
                "Account", obj.id, "DELETE",
                "Accounts cannot be deleted from the chart of accounts",
            )


def _check_invoice_status_transition(mapper, connection, target):
    from ledger_kernel.models.invoice import InvoiceStatus

    history = get_history(target, "status")
    if not history.deleted:
        return
    old_status = InvoiceStatus(history.deleted[0])
    new_status = InvoiceStatus(target.status)
    if old_status == InvoiceStatus.PAID and new_status != InvoiceStatus.PAID:
        _block(
            "Invoice", target.id, "UPDATE",
            f"Invoice status cannot move from {old_status.value} to {new_status.value}",
        )


def _listener_table():
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.audit_log import AuditLog
    from ledger_kernel.models.invoice import Invoice
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return [
        (Session, "before_flush", _check_account_deletion_before_flush),
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_immutability),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (AuditLog, "before_update", _check_audit_log_immutability),
        (AuditLog, "before_delete", _check_audit_log_delete),
        (Account, "before_update", _check_account_protected_fields),
        (Invoice, "before_update", _check_invoice_status_transition),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already registered are left in place.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules.
    """
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
