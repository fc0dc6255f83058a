from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from itertools import count
from typing import Iterable

from domain.fees import (
    FeeScope,
    FeeTier,
    FixedCalculation,
    PercentageCalculation,
    PlatformFee,
    PlatformFeeId,
    TieredCalculation,
)
from domain.jurisdiction import JurisdictionId
from domain.tax import AppliesTo, ProductId, TaxableItem, TaxRate, TaxRateId, TaxScope

_IDS = count(1)
EFFECTIVE = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_tax_rate(
    rate: str,
    *,
    state_id: JurisdictionId,
    applies_to: AppliesTo = AppliesTo.ALL,
    tax_type: str = "sales",
    categories: Iterable[str] | None = None,
    name: str | None = None,
    is_active: bool = True,
) -> TaxRate:
    rate_id = f"tax-{next(_IDS)}"
    return TaxRate(
        id=TaxRateId(rate_id),
        scope=TaxScope.STATE,
        state_id=state_id,
        name=name or f"{tax_type} {rate}",
        rate=Decimal(rate),
        tax_type=tax_type,
        applies_to=applies_to,
        categories=frozenset(categories) if categories else None,
        is_active=is_active,
    )


def make_item(
    price: str, quantity: int = 1, *, category: str | None = None, is_alcohol: bool = False
) -> TaxableItem:
    product_id = f"prod-{next(_IDS)}"
    return TaxableItem(
        product_id=ProductId(product_id),
        name=product_id,
        price=Decimal(price),
        quantity=quantity,
        category=category,
        is_alcohol=is_alcohol,
    )


def _fee(
    calculation: PercentageCalculation | FixedCalculation | TieredCalculation,
    *,
    fee_type: str,
    state_id: JurisdictionId | None,
    fee_id: str | None,
    name: str | None,
    effective_date: datetime,
    end_date: datetime | None,
    created_at: datetime,
    is_active: bool,
) -> PlatformFee:
    return PlatformFee(
        id=PlatformFeeId(fee_id or f"fee-{next(_IDS):03d}"),
        scope=FeeScope.STATE if state_id is not None else FeeScope.GLOBAL,
        state_id=state_id,
        name=name or fee_type,
        fee_type=fee_type,
        calculation=calculation,
        is_active=is_active,
        effective_date=effective_date,
        end_date=end_date,
        created_at=created_at,
    )


def percentage_fee(
    value: str,
    *,
    fee_type: str = "marketplace_commission",
    state_id: JurisdictionId | None = None,
    fee_id: str | None = None,
    name: str | None = None,
    effective_date: datetime = EFFECTIVE,
    end_date: datetime | None = None,
    created_at: datetime = EFFECTIVE,
    is_active: bool = True,
) -> PlatformFee:
    return _fee(
        PercentageCalculation(value=Decimal(value)),
        fee_type=fee_type,
        state_id=state_id,
        fee_id=fee_id,
        name=name,
        effective_date=effective_date,
        end_date=end_date,
        created_at=created_at,
        is_active=is_active,
    )


def fixed_fee(
    value: str,
    *,
    fee_type: str = "delivery_platform_fee",
    state_id: JurisdictionId | None = None,
    fee_id: str | None = None,
    name: str | None = None,
) -> PlatformFee:
    return _fee(
        FixedCalculation(value=Decimal(value)),
        fee_type=fee_type,
        state_id=state_id,
        fee_id=fee_id,
        name=name,
        effective_date=EFFECTIVE,
        end_date=None,
        created_at=EFFECTIVE,
        is_active=True,
    )


def tiered_fee(
    tiers: list[tuple[str, str | None, str]],
    *,
    fee_type: str = "marketplace_commission",
    state_id: JurisdictionId | None = None,
    fee_id: str | None = None,
) -> PlatformFee:
    return _fee(
        TieredCalculation(
            tiers=tuple(
                FeeTier(min=Decimal(low), max=None if high is None else Decimal(high), rate=Decimal(rate))
                for low, high, rate in tiers
            )
        ),
        fee_type=fee_type,
        state_id=state_id,
        fee_id=fee_id,
        name=None,
        effective_date=EFFECTIVE,
        end_date=None,
        created_at=EFFECTIVE,
        is_active=True,
    )
