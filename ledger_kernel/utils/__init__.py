"""Utility modules for the ledger kernel."""

from ledger_kernel.utils.idempotency import (
    generate_client_ref,
    invoice_client_ref,
    parse_client_ref,
    payment_client_ref,
)

__all__ = [
    "generate_client_ref",
    "invoice_client_ref",
    "payment_client_ref",
    "parse_client_ref",
]
