"""
Money helpers for the ledger.

Amounts are Decimals with at most two decimal places. Floats are accepted
only through their shortest repr so 15.5 becomes Decimal("15.5").
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, Any

from backend.app.core.exceptions import ValidationError

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value: Any, field: str = "amount") -> Decimal:
    """
    Convert a caller-supplied amount to a two-decimal Decimal.
    
    Raises:
        ValidationError: if the value is not a finite number or has sub-cent precision
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", details={"field": field, "value": value})
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", details={"field": field, "value": str(value)})
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", details={"field": field, "value": str(value)})
    if amount != amount.quantize(CENT):
        raise ValidationError(
            f"{field} must have at most two decimal places",
            details={"field": field, "value": str(value)}
        )
    return amount.quantize(CENT)


def money_sum(amounts: Iterable[Decimal]) -> Decimal:
    """Exact sum of amounts, ZERO for an empty iterable."""
    total = ZERO
    for amount in amounts:
        total += Decimal(amount)
    return total.quantize(CENT)
