"""
Money helpers -- the single boundary where outside numbers become amounts.

Responsibility:
    Convert caller-supplied values (Decimal, int, str, float) to exact
    two-place Decimals, and compare debit/credit totals.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Every amount that reaches the database has at most two decimal places
      and was rounded ROUND_HALF_UP exactly once, here.
    - Floats are converted through ``str()``, never ``Decimal(float)``, so
      ``0.1`` becomes ``Decimal("0.10")`` rather than a 55-digit binary
      approximation.

Failure modes:
    - ValueError for non-numeric, NaN or infinite input.
"""

from decimal import Decimal, InvalidOperation

from ledger_kernel.db.types import DEFAULT_ROUNDING, MONEY_DECIMAL_PLACES

ZERO = Decimal("0.00")
CENT = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)
DEFAULT_TOLERANCE = CENT


def to_money(value: Decimal | int | float | str) -> Decimal:
    """
    Quantize a value to the ledger's money precision.

    Raises:
        ValueError: If value is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a finite amount: {value!r}")
    return amount.quantize(CENT, rounding=DEFAULT_ROUNDING)


def totals_balance(
    debits: Decimal,
    credits: Decimal,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> bool:
    """True iff ``|debits - credits| < tolerance``."""
    return abs(debits - credits) < tolerance
