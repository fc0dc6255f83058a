from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, model_validator

from .fees import FeeCalculationResult, StoreId
from .tax import TaxCalculationResult


class DeliverySettings(BaseModel):
    delivery_fee: Decimal | None = None
    free_delivery_threshold: Decimal = Decimal("0")

    @model_validator(mode="after")
    def _validate_amounts(self) -> DeliverySettings:
        if self.delivery_fee is not None and self.delivery_fee < 0:
            raise ValueError("delivery_fee must be >= 0")
        if self.free_delivery_threshold < 0:
            raise ValueError("free_delivery_threshold must be >= 0")
        return self


class StoreCharge(BaseModel):
    store_id: StoreId
    subtotal: Decimal
    taxes: Decimal
    shipping: Decimal
    total: Decimal


class PricedOrder(BaseModel):
    subtotal: Decimal
    tax: TaxCalculationResult
    fees: FeeCalculationResult
    shipping_total: Decimal
    total: Decimal
    platform_fee: Decimal
    stores: list[StoreCharge]
