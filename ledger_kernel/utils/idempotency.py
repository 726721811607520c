"""
Client reference helpers.

A client_ref is the idempotency tag stored on a journal entry.  Retrying a
posting with the same (owner, client_ref) returns the entry already written
instead of posting twice.  Entries posted on behalf of business records use
a deterministic ref derived from the record's id.
"""

from uuid import UUID

INVOICE_PREFIX = "invoice"
PAYMENT_PREFIX = "payment"


def generate_client_ref(source: str, source_id: UUID | str) -> str:
    """
    Build a client_ref for an entry posted on behalf of a business record.

    Format: source-source_id

    Example:
        >>> generate_client_ref("invoice", uuid)
        "invoice-550e8400-e29b-41d4-a716-446655440000"
    """
    return f"{source}-{source_id}"


def invoice_client_ref(invoice_id: UUID | str) -> str:
    return generate_client_ref(INVOICE_PREFIX, invoice_id)


def payment_client_ref(payment_id: UUID | str) -> str:
    return generate_client_ref(PAYMENT_PREFIX, payment_id)


def parse_client_ref(client_ref: str) -> tuple[str, str]:
    """
    Split a generated client_ref into (source, source_id).

    Raises:
        ValueError: If the ref has no source prefix.
    """
    source, sep, source_id = client_ref.partition("-")
    if not sep or not source or not source_id:
        raise ValueError(f"Invalid client_ref format: {client_ref}")
    return source, source_id
