"""Decimal helpers for ledger amounts."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from splitledger.domains.groups.errors import LedgerValidationError

ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")
# Splits may drift from the transaction total by at most one cent.
SPLIT_TOLERANCE = Decimal("0.01")
MAX_DECIMAL_PLACES = 4
# Numeric(19, 4) leaves 15 integer digits.
MAX_AMOUNT = Decimal(10) ** 15


def to_amount(value: Any, *, field: str = "amount") -> Decimal:
    """Parse an amount into a Decimal without going through binary floats."""
    if isinstance(value, bool):
        raise LedgerValidationError(f"{field} must be a number", reason="invalid_amount")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise LedgerValidationError(f"{field} must be a number", reason="invalid_amount") from None
    if not amount.is_finite():
        raise LedgerValidationError(f"{field} must be finite", reason="invalid_amount")
    if amount.copy_abs() >= MAX_AMOUNT:
        raise LedgerValidationError(f"{field} is too large", reason="invalid_amount")
    try:
        exact = amount == amount.quantize(FOUR_PLACES)
    except InvalidOperation:
        exact = False
    if not exact:
        raise LedgerValidationError(
            f"{field} has more than {MAX_DECIMAL_PLACES} decimal places",
            reason="invalid_amount",
        )
    return amount


def within_tolerance(left: Decimal, right: Decimal, tolerance: Decimal = SPLIT_TOLERANCE) -> bool:
    return (left - right).copy_abs() <= tolerance


def format_amount(amount: Decimal) -> str:
    """Serialize as a plain decimal string with at least two places ("60.00")."""
    value = Decimal(amount).quantize(FOUR_PLACES).normalize()
    if value.as_tuple().exponent > -2:
        value = value.quantize(TWO_PLACES)
    if value == 0:
        value = value.copy_abs()
    return f"{value:f}"
