# Overview: Fixed-point helpers for currency amounts and stock quantities.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .validation import ValidationError

"""
Money & quantity semantics (authoritative)

- Amounts are Decimal with exactly 2 fractional digits (currency scale); input
  with more places is rejected, never silently rounded.
- Quantities are Decimal with at most 3 fractional digits (kg to the gram).
- Binary floats never take part in arithmetic; float input is converted through
  its shortest repr so 0.1 stays 0.1 and does not become 0.1000000000000000055.
- Scientific notation is rejected at the boundary.
"""

MONEY_QUANT = Decimal("0.01")
QUANTITY_QUANT = Decimal("0.001")
ZERO = Decimal("0.00")

# Numeric(12, 2) / Numeric(14, 3) column ceilings
MAX_AMOUNT = Decimal("9999999999.99")
MAX_QUANTITY = Decimal("99999999999.999")


def _to_decimal(value, field: str) -> Decimal:
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int):
        d = Decimal(value)
    elif isinstance(value, float):
        d = Decimal(repr(value))
    elif isinstance(value, str):
        stripped = value.strip().replace(",", ".")
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain number (scientific notation not allowed)")
        try:
            d = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not d.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return d


def round_money(value) -> Decimal:
    """Half-up to 2 places. For computed totals (qty x price, VAT), never for user input."""
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def to_money(value, field: str = "amount") -> Decimal:
    """Coerce to a 2-place Decimal; more than 2 fractional digits is an input error."""
    d = _to_decimal(value, field)
    if abs(d) > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum {MAX_AMOUNT}")
    if d != d.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP):
        raise ValidationError(f"{field} supports at most 2 decimal places")
    return d.quantize(MONEY_QUANT)


def to_quantity(value, field: str = "quantity") -> Decimal:
    """Coerce to a Decimal quantity; more than 3 fractional digits is an input error."""
    d = _to_decimal(value, field)
    if abs(d) > MAX_QUANTITY:
        raise ValidationError(f"{field} exceeds maximum {MAX_QUANTITY}")
    if d != d.quantize(QUANTITY_QUANT, rounding=ROUND_HALF_UP):
        raise ValidationError(f"{field} supports at most 3 decimal places")
    return d.quantize(QUANTITY_QUANT)


def format_money(value) -> str | None:
    if value is None:
        return None
    return str(Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP))


def format_quantity(value) -> str | None:
    """Render a quantity without trailing zeros or exponent: 12.500 -> '12.5', 10.000 -> '10'."""
    if value is None:
        return None
    d = Decimal(value).quantize(QUANTITY_QUANT, rounding=ROUND_HALF_UP).normalize()
    if d == 0:
        return "0"
    return f"{d:f}"
