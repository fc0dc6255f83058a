from decimal import Decimal

import pytest

from domain.errors import InvalidAmountError
from domain.money import format_currency, from_cents, require_amount, round2, to_cents


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (Decimal("1.005"), Decimal("1.01")),
        (Decimal("1.004"), Decimal("1.00")),
        (Decimal("2.675"), Decimal("2.68")),
        (Decimal("-1.005"), Decimal("-1.01")),
    ],
)
def test_round2_rounds_half_up(value: Decimal, expected: Decimal) -> None:
    assert round2(value) == expected


def test_cents_conversion() -> None:
    assert to_cents(Decimal("12.345")) == 1235
    assert from_cents(1235) == Decimal("12.35")
    assert format_currency(Decimal("3")) == "3.00"


def test_require_amount_accepts_int_and_decimal() -> None:
    assert require_amount(5, field="amount") == Decimal(5)
    assert require_amount(Decimal("0.00"), field="amount") == Decimal(0)


@pytest.mark.parametrize("value", [Decimal("-0.01"), Decimal("NaN"), Decimal("Infinity"), 1.5, True, "10"])
def test_require_amount_rejects_invalid_values(value: object) -> None:
    with pytest.raises(InvalidAmountError) as exc_info:
        require_amount(value, field="order_amount")  # type: ignore[arg-type]

    assert exc_info.value.field == "order_amount"
