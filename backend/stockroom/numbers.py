"""
Quantity and money arithmetic.

Stock quantities are Decimals with six fractional digits so that ledger sums
reproduce stored levels exactly. Money is stored as integer cents.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .errors import InvalidInputError

QTY_PLACES = 6
QTY_QUANT = Decimal(1).scaleb(-QTY_PLACES)
ZERO = Decimal("0")


def to_quantity(value, *, field: str = "quantity") -> Decimal:
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"{field} must be a number", details={"field": field})
    try:
        qty = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError(f"{field} must be a number", details={"field": field})
    if not qty.is_finite():
        raise InvalidInputError(f"{field} must be a finite number", details={"field": field})
    return qty.quantize(QTY_QUANT, rounding=ROUND_HALF_UP)


def to_positive_quantity(value, *, field: str = "quantity") -> Decimal:
    qty = to_quantity(value, field=field)
    if qty <= 0:
        raise InvalidInputError(f"{field} must be greater than 0", details={"field": field})
    return qty


def format_quantity(value) -> str | None:
    """Render a quantity without trailing zeros: Decimal('50.000000') -> '50'."""
    if value is None:
        return None
    qty = Decimal(value).quantize(QTY_QUANT, rounding=ROUND_HALF_UP)
    text = format(qty.normalize(), "f")
    return "0" if text in ("-0", "") else text


def round_cents(value) -> int:
    return int(Decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
