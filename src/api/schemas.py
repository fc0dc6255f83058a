from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from domain.checkout import DeliverySettings
from domain.fees import StoreId
from domain.tax import ShippingAddress, TaxableItem


class TaxRequest(BaseModel):
    items: list[TaxableItem]
    address: ShippingAddress


class FeeRequest(BaseModel):
    order_amount: Decimal
    state_code: str | None = None


class TransferRequest(BaseModel):
    store_gross_total: Decimal
    state_code: str | None = None


class CheckoutRequest(BaseModel):
    items_by_store: dict[StoreId, list[TaxableItem]]
    address: ShippingAddress
    delivery_settings: dict[StoreId, DeliverySettings] = Field(default_factory=dict)


class RateResponse(BaseModel):
    rate: Decimal


class FeeIssueResponse(BaseModel):
    fee_id: str
    fee_type: str
    code: str
    message: str
