from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from .errors import InvalidAmountError

CENT = Decimal("0.01")
ZERO = Decimal("0")


def round2(value: Decimal) -> Decimal:
    """Round a monetary amount to cents, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Decimal) -> int:
    return int((value * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(value: int) -> Decimal:
    return Decimal(value) / 100


def format_currency(value: Decimal) -> str:
    return f"{round2(value):.2f}"


def require_amount(value: Decimal | int, *, field: str) -> Decimal:
    """Validate a caller-supplied monetary amount. Floats are rejected to keep arithmetic exact."""
    if isinstance(value, bool) or not isinstance(value, (Decimal, int)):
        raise InvalidAmountError(f"{field} must be a Decimal or int, got {value!r}", field=field)
    amount = Decimal(value)
    if not amount.is_finite():
        raise InvalidAmountError(f"{field} must be finite, got {amount}", field=field, value=amount)
    if amount < 0:
        raise InvalidAmountError(f"{field} must be >= 0, got {amount}", field=field, value=amount)
    return amount
