from __future__ import annotations

from decimal import Decimal
from enum import StrEnum
from typing import NewType

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .jurisdiction import JurisdictionId

TaxRateId = NewType("TaxRateId", str)
ProductId = NewType("ProductId", str)


class TaxScope(StrEnum):
    STATE = "state"
    COUNTY = "county"
    CITY = "city"


class AppliesTo(StrEnum):
    ALL = "all"
    ALCOHOL = "alcohol"
    SPECIFIC_CATEGORIES = "specific_categories"


class TaxRate(BaseModel):
    """A configured tax rate.

    ``rate`` is a decimal fraction, so 8.25% is stored as ``0.0825``.
    Exactly one jurisdiction reference is populated, the one matching ``scope``.
    """

    model_config = ConfigDict(frozen=True)

    id: TaxRateId
    scope: TaxScope
    state_id: JurisdictionId | None = None
    county_id: str | None = None
    city_id: str | None = None
    name: str
    rate: Decimal
    tax_type: str
    applies_to: AppliesTo = AppliesTo.ALL
    categories: frozenset[str] | None = None
    is_active: bool = True

    @model_validator(mode="after")
    def _validate_fields(self) -> TaxRate:
        if self.rate < 0:
            raise ValueError("TaxRate.rate must be >= 0")
        if self.applies_to == AppliesTo.SPECIFIC_CATEGORIES:
            if not self.categories:
                raise ValueError("categories must be non-empty when applies_to is specific_categories")
        elif self.categories:
            raise ValueError("categories are only allowed when applies_to is specific_categories")

        references = {
            TaxScope.STATE: self.state_id,
            TaxScope.COUNTY: self.county_id,
            TaxScope.CITY: self.city_id,
        }
        if references[self.scope] is None:
            raise ValueError(f"{self.scope.value}-scoped tax rate requires {self.scope.value}_id")
        stray = [scope.value for scope, ref in references.items() if scope != self.scope and ref is not None]
        if stray:
            raise ValueError(f"{self.scope.value}-scoped tax rate must not reference {', '.join(stray)}")
        return self

    def applies_to_item(self, item: TaxableItem) -> bool:
        if self.applies_to == AppliesTo.ALL:
            return True
        if self.applies_to == AppliesTo.ALCOHOL:
            return item.is_alcohol
        return item.category is not None and self.categories is not None and item.category in self.categories


class ShippingAddress(BaseModel):
    street: str | None = None
    city: str
    state: str
    zip_code: str
    country: str = "US"


class TaxableItem(BaseModel):
    product_id: ProductId
    name: str
    price: Decimal
    quantity: int
    category: str | None = None
    is_alcohol: bool = False

    @model_validator(mode="after")
    def _validate_amounts(self) -> TaxableItem:
        if not self.price.is_finite() or self.price < 0:
            raise ValueError("TaxableItem.price must be a finite amount >= 0")
        if self.quantity < 0:
            raise ValueError("TaxableItem.quantity must be >= 0")
        return self

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class TaxBreakdownLine(BaseModel):
    name: str
    rate: Decimal
    amount: Decimal
    type: str


class TaxCalculationResult(BaseModel):
    subtotal: Decimal
    tax_amount: Decimal
    tax_rate: Decimal
    tax_breakdown: list[TaxBreakdownLine] = Field(default_factory=list)
    total_with_tax: Decimal
