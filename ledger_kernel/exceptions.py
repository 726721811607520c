"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (an HTTP layer, a batch job, a test) must react to
failures precisely. Matching on message text is fragile, so every failure
has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        orchestrator.create_journal_entry(owner_id, "Sale", lines)
    except UnbalancedEntryError as e:
        api_response(status=422, code=e.code, debits=e.debits, credits=e.credits)
    except NotFoundError as e:
        api_response(status=404, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ValidationError                  -> reject request, nothing written
    |   +-- UnbalancedEntryError
    |   +-- InvalidLineError
    |   +-- InvalidAmountError
    |   +-- InvalidAccountTypeError
    |   +-- DuplicateAccountCodeError
    |   +-- RoleBindingError
    |   +-- AuditValidationError
    |
    +-- NotFoundError                    -> 404-equivalent, nothing written
    |   +-- AccountNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- JournalEntryNotFoundError
    |
    +-- ConcurrencyError                 -> caller retries with backoff
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError   -> ORM guard on posted records

    DegradedPostingWarning (UserWarning) -> business record kept, posting skipped

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | UNBALANCED_ENTRY            | Debits != Credits (beyond 0.01)
                | INVALID_LINE                | Too few lines, negative amount, no account
                | INVALID_AMOUNT              | Invoice/payment amount not > 0
                | INVALID_ACCOUNT_TYPE        | Type not in the five account types
                | DUPLICATE_ACCOUNT_CODE      | Code already used by this owner
                | ROLE_BINDING_INVALID        | Role -> account mapping rejected at setup
                | AUDIT_VALIDATION            | Audit record missing required fields
----------------|-----------------------------|-----------------------------------------
Not found       | ACCOUNT_NOT_FOUND           | Referenced account does not exist
                | INVOICE_NOT_FOUND           | Referenced invoice does not exist
                | JOURNAL_ENTRY_NOT_FOUND     | Referenced entry does not exist
----------------|-----------------------------|-----------------------------------------
Concurrency     | CONCURRENCY_ERROR           | Lock timeout, deadlock, serialization
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Update/delete of an immutable record
----------------|-----------------------------|-----------------------------------------
Warning         | DEGRADED_POSTING            | AR/Revenue/Cash role unresolved

===============================================================================
NOTES
===============================================================================

DegradedPostingWarning is not a LedgerError. Issuing an invoice
without a resolvable revenue account still succeeds; the ledger simply lags
the business record. It is emitted through ``warnings.warn`` and logged at
WARNING so that monitoring can surface it.
"""


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ERROR"


# Validation exceptions


class ValidationError(LedgerError):
    """Base exception for rejected input. No partial write occurs."""

    code: str = "VALIDATION_ERROR"


class UnbalancedEntryError(ValidationError):
    """Journal entry debits do not equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: str, credits: str):
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Double-entry validation failed: debits must equal credits "
            f"(debits={debits}, credits={credits})"
        )


class InvalidLineError(ValidationError):
    """A journal line is malformed."""

    code: str = "INVALID_LINE"

    def __init__(self, line_index: int | None, reason: str):
        self.line_index = line_index
        self.reason = reason
        where = f"line {line_index}" if line_index is not None else "lines"
        super().__init__(f"Invalid journal {where}: {reason}")


class InvalidAmountError(ValidationError):
    """A monetary amount is outside its allowed range."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: str, reason: str):
        self.field = field
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid {field} {amount}: {reason}")


class InvalidAccountTypeError(ValidationError):
    """Account type is not one of the five supported types."""

    code: str = "INVALID_ACCOUNT_TYPE"

    def __init__(self, account_type: str):
        self.account_type = account_type
        super().__init__(
            f"Invalid account type {account_type!r}: expected one of "
            "asset, liability, equity, income, expense"
        )


class DuplicateAccountCodeError(ValidationError):
    """Account code already exists in the owner's chart of accounts."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class RoleBindingError(ValidationError):
    """An account role binding was rejected at setup time."""

    code: str = "ROLE_BINDING_INVALID"

    def __init__(self, role: str, account_code: str | None, reason: str):
        self.role = role
        self.account_code = account_code
        self.reason = reason
        super().__init__(
            f"Cannot bind role {role} to account {account_code}: {reason}"
        )


class AuditValidationError(ValidationError):
    """Audit record is missing a required field."""

    code: str = "AUDIT_VALIDATION"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Audit log requires a non-empty {field}")


# Not-found exceptions


class NotFoundError(LedgerError):
    """Base exception for references to rows that do not exist."""

    code: str = "NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    """Account was not found."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ref: str):
        self.account_ref = account_ref
        super().__init__(f"Account not found: {account_ref}")


class InvoiceNotFoundError(NotFoundError):
    """Invoice was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


class JournalEntryNotFoundError(NotFoundError):
    """Journal entry was not found."""

    code: str = "JOURNAL_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


# Concurrency exceptions


class ConcurrencyError(LedgerError):
    """
    A balance update or transaction could not be applied due to contention.

    Safe to retry: the failed transaction was rolled back in full.
    """

    code: str = "CONCURRENCY_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Concurrency conflict during {operation}: {reason}")


# Immutability exceptions


class ImmutabilityError(LedgerError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    JournalEntry, JournalLine and AuditLog are immutable after creation.
    Account code, type and balance are protected from ORM updates.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Warnings


class DegradedPostingWarning(UserWarning):
    """Business record persisted but its journal entry was skipped."""

    code: str = "DEGRADED_POSTING"

    def __init__(self, entity_type: str, entity_id: str, missing_roles: list[str]):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.missing_roles = list(missing_roles)
        super().__init__(
            f"{entity_type} {entity_id} recorded without a journal entry: "
            f"unresolved account roles {', '.join(self.missing_roles)}"
        )
