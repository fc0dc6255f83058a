from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import StrEnum
from typing import Annotated, Literal, NewType

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .jurisdiction import JurisdictionId

PlatformFeeId = NewType("PlatformFeeId", str)
StoreId = NewType("StoreId", str)


class FeeScope(StrEnum):
    GLOBAL = "global"
    STATE = "state"


class FeeType(StrEnum):
    """Fee types routed into named result fields. Other values are allowed on rules."""

    MARKETPLACE_COMMISSION = "marketplace_commission"
    PROCESSING_FEE = "processing_fee"
    DELIVERY_PLATFORM_FEE = "delivery_platform_fee"


class FeeTier(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: Decimal
    max: Decimal | None = None
    rate: Decimal

    def contains(self, amount: Decimal) -> bool:
        return amount >= self.min and (self.max is None or amount <= self.max)


class PercentageCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    calculation_type: Literal["percentage"] = "percentage"
    value: Decimal

    @model_validator(mode="after")
    def _validate_value(self) -> PercentageCalculation:
        if self.value < 0:
            raise ValueError("percentage value must be >= 0")
        return self


class FixedCalculation(BaseModel):
    model_config = ConfigDict(frozen=True)

    calculation_type: Literal["fixed"] = "fixed"
    value: Decimal

    @model_validator(mode="after")
    def _validate_value(self) -> FixedCalculation:
        if self.value < 0:
            raise ValueError("fixed value must be >= 0")
        return self


class TieredCalculation(BaseModel):
    """Tiered schedule.

    Tiers are ordered by ``min``, contiguous (each ``max`` equals the next
    ``min``) and the last tier is unbounded.
    """

    model_config = ConfigDict(frozen=True)

    calculation_type: Literal["tiered"] = "tiered"
    tiers: tuple[FeeTier, ...]

    @model_validator(mode="after")
    def _validate_tiers(self) -> TieredCalculation:
        if not self.tiers:
            raise ValueError("tiered calculation requires at least one tier")
        for tier in self.tiers:
            if tier.rate < 0:
                raise ValueError("tier rate must be >= 0")
            if tier.max is not None and tier.max < tier.min:
                raise ValueError(f"tier max {tier.max} is below its min {tier.min}")
        for current, following in zip(self.tiers, self.tiers[1:]):
            if current.max is None:
                raise ValueError("only the last tier may be unbounded")
            if following.min != current.max:
                raise ValueError(f"tiers must be contiguous: {current.max} is followed by {following.min}")
        if self.tiers[-1].max is not None:
            raise ValueError("the last tier must be unbounded")
        return self


FeeCalculation = Annotated[
    PercentageCalculation | FixedCalculation | TieredCalculation,
    Field(discriminator="calculation_type"),
]


class PlatformFee(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: PlatformFeeId
    scope: FeeScope
    state_id: JurisdictionId | None = None
    name: str
    fee_type: str
    calculation: FeeCalculation
    is_active: bool = True
    effective_date: datetime = datetime(1970, 1, 1, tzinfo=timezone.utc)
    end_date: datetime | None = None
    created_at: datetime = datetime(1970, 1, 1, tzinfo=timezone.utc)

    @model_validator(mode="after")
    def _validate_fields(self) -> PlatformFee:
        if not self.fee_type:
            raise ValueError("PlatformFee.fee_type must be non-empty")
        if self.scope == FeeScope.STATE and self.state_id is None:
            raise ValueError("state-scoped fee requires state_id")
        if self.scope == FeeScope.GLOBAL and self.state_id is not None:
            raise ValueError("global fee must not reference a state")
        if self.end_date is not None and self.end_date < self.effective_date:
            raise ValueError("end_date must not be before effective_date")
        return self

    def is_effective(self, now: datetime) -> bool:
        if not self.is_active or self.effective_date > now:
            return False
        return self.end_date is None or self.end_date >= now


class FeeBreakdownLine(BaseModel):
    name: str
    type: str
    amount: Decimal
    rate: Decimal | None = None


class FeeCalculationResult(BaseModel):
    marketplace_commission: Decimal
    marketplace_commission_rate: Decimal
    processing_fee: Decimal
    processing_fee_rate: Decimal
    delivery_platform_fee: Decimal
    total_platform_fees: Decimal
    fee_breakdown: list[FeeBreakdownLine] = Field(default_factory=list)


class StoreTransfer(BaseModel):
    original_amount: Decimal
    platform_fee: Decimal
    transfer_amount: Decimal
    fee_rate: Decimal
