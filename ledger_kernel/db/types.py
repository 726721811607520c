"""
Module: ledger_kernel.db.types
Responsibility: Money precision constants and currency-code validation.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    - Money precision is two decimal places everywhere (MONEY_DECIMAL_PLACES).
    - Currency codes are three upper-case letters.
"""

import re
from decimal import ROUND_HALF_UP

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
DEFAULT_CURRENCY = "USD"

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def validate_currency(code: str) -> str:
    """
    Normalize and validate a currency code.

    Raises:
        ValueError: If the code is not three letters.
    """
    normalized = (code or "").strip().upper()
    if not _CURRENCY_RE.match(normalized):
        raise ValueError(f"Invalid currency code: {code!r}")
    return normalized
