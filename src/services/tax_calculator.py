from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable, Sequence

from domain.errors import InvalidAmountError
from domain.fees import StoreId
from domain.jurisdiction import JurisdictionId, JurisdictionResolver
from domain.money import ZERO, round2
from domain.results import FailurePolicy
from domain.tax import ShippingAddress, TaxableItem, TaxBreakdownLine, TaxCalculationResult, TaxRate, TaxScope

from .config_repository import ConfigRepository
from .policy import resolve_state_or_policy, rows_or_policy

logger = logging.getLogger(__name__)

DEFAULT_ESTIMATED_TAX_RATE = Decimal("0.08")
SALES_TAX_TYPE = "sales"


class TaxCalculator:
    """Compute taxes for order items from the configured rates of the shipping state.

    Only state-scoped rates are matched. County and city rates are stored but
    addresses are not resolved below state granularity.
    """

    def __init__(
        self,
        *,
        repository: ConfigRepository,
        resolver: JurisdictionResolver,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN,
        default_estimated_rate: Decimal = DEFAULT_ESTIMATED_TAX_RATE,
    ) -> None:
        self._repository = repository
        self._resolver = resolver
        self._failure_policy = failure_policy
        self._default_estimated_rate = default_estimated_rate

    def calculate_taxes(self, items: Sequence[TaxableItem], address: ShippingAddress) -> TaxCalculationResult:
        self._validate_items(items)
        subtotal = sum((item.line_total for item in items), start=ZERO)

        state_id = resolve_state_or_policy(self._resolver, address.state, self._failure_policy)
        if state_id is None:
            return self._zero_tax(subtotal)

        rates = self.rates_for_state(state_id)
        if not rates:
            return self._zero_tax(subtotal)

        breakdown: list[TaxBreakdownLine] = []
        total_tax = ZERO
        for rate in rates:
            taxable_amount = sum((item.line_total for item in items if rate.applies_to_item(item)), start=ZERO)
            if taxable_amount <= 0:
                continue
            # Rounded per line so the breakdown always sums to the total.
            amount = round2(taxable_amount * rate.rate)
            total_tax += amount
            breakdown.append(TaxBreakdownLine(name=rate.name, rate=rate.rate, amount=amount, type=rate.tax_type))

        return TaxCalculationResult(
            subtotal=subtotal,
            tax_amount=total_tax,
            tax_rate=total_tax / subtotal if subtotal > 0 else ZERO,
            tax_breakdown=breakdown,
            total_with_tax=round2(subtotal + total_tax),
        )

    def calculate_store_taxes(
        self, store_id: StoreId, items: Sequence[TaxableItem], address: ShippingAddress
    ) -> TaxCalculationResult:
        result = self.calculate_taxes(items, address)
        logger.debug("Store %s tax: %s on subtotal %s", store_id, result.tax_amount, result.subtotal)
        return result

    def estimated_tax_rate(self, state_code: str | None = None) -> Decimal:
        """State-level sales rate for price previews, or the default estimate."""
        if not state_code:
            return self._default_estimated_rate

        state_id = resolve_state_or_policy(self._resolver, state_code, FailurePolicy.FAIL_OPEN)
        if state_id is None:
            return self._default_estimated_rate

        result = self._repository.get_active_tax_rates()
        rates = rows_or_policy(result, FailurePolicy.FAIL_OPEN, what="tax rates")
        for rate in _ordered(rates):
            if rate.scope == TaxScope.STATE and rate.state_id == state_id and rate.tax_type == SALES_TAX_TYPE:
                return rate.rate
        return self._default_estimated_rate

    def rates_for_state(self, state_id: JurisdictionId) -> list[TaxRate]:
        result = self._repository.get_active_tax_rates()
        rates = rows_or_policy(result, self._failure_policy, what="tax rates")
        return _ordered(rate for rate in rates if rate.scope == TaxScope.STATE and rate.state_id == state_id)

    @staticmethod
    def _validate_items(items: Sequence[TaxableItem]) -> None:
        for item in items:
            if not item.price.is_finite() or item.price < 0:
                raise InvalidAmountError(
                    f"Item {item.product_id} has an invalid price {item.price}", field="price", value=item.price
                )
            if item.quantity < 0:
                raise InvalidAmountError(
                    f"Item {item.product_id} has a negative quantity", field="quantity", value=item.quantity
                )

    @staticmethod
    def _zero_tax(subtotal: Decimal) -> TaxCalculationResult:
        return TaxCalculationResult(
            subtotal=subtotal,
            tax_amount=ZERO,
            tax_rate=ZERO,
            tax_breakdown=[],
            total_with_tax=round2(subtotal),
        )


def _ordered(rates: Iterable[TaxRate]) -> list[TaxRate]:
    return sorted(rates, key=lambda rate: (rate.tax_type, rate.name, rate.id))
