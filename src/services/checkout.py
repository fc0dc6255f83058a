from __future__ import annotations

from concurrent.futures import Executor
from decimal import ROUND_FLOOR, Decimal
from typing import Mapping, Sequence

from domain.checkout import DeliverySettings, PricedOrder, StoreCharge
from domain.errors import InvalidAmountError
from domain.fees import StoreId
from domain.money import CENT, ZERO, round2
from domain.tax import ShippingAddress, TaxableItem

from .fee_calculator import FeeCalculator
from .tax_calculator import TaxCalculator

DEFAULT_DELIVERY_FEE = Decimal("4.99")


class CheckoutPricer:
    """Combine tax and platform fees into a priced multi-store order.

    Tax and fees are computed in parallel on ``executor`` from the same order
    snapshot. The executor is owned by the caller. The fee base is merchandise
    plus shipping; tax is not part of it.
    """

    def __init__(
        self,
        *,
        tax_calculator: TaxCalculator,
        fee_calculator: FeeCalculator,
        executor: Executor,
        default_delivery_fee: Decimal = DEFAULT_DELIVERY_FEE,
    ) -> None:
        self._tax_calculator = tax_calculator
        self._fee_calculator = fee_calculator
        self._default_delivery_fee = default_delivery_fee
        self._executor = executor

    def price_order(
        self,
        items_by_store: Mapping[StoreId, Sequence[TaxableItem]],
        address: ShippingAddress,
        delivery_settings: Mapping[StoreId, DeliverySettings] | None = None,
    ) -> PricedOrder:
        if not items_by_store:
            raise InvalidAmountError("Cannot price an order without items", field="items")
        settings = delivery_settings or {}
        store_ids = sorted(items_by_store)

        store_subtotals = {
            store_id: sum((item.line_total for item in items_by_store[store_id]), start=ZERO) for store_id in store_ids
        }
        shipping = {
            store_id: self.delivery_fee(store_subtotals[store_id], settings.get(store_id)) for store_id in store_ids
        }
        all_items = [item for store_id in store_ids for item in items_by_store[store_id]]

        subtotal = sum(store_subtotals.values(), start=ZERO)
        shipping_total = sum(shipping.values(), start=ZERO)

        tax_future = self._executor.submit(self._tax_calculator.calculate_taxes, all_items, address)
        fee_base = subtotal + shipping_total
        fee_future = self._executor.submit(self._fee_calculator.calculate_fees, fee_base, address.state)
        tax = tax_future.result()
        fees = fee_future.result()

        tax_shares = split_proportionally(tax.tax_amount, store_subtotals)
        stores = [
            StoreCharge(
                store_id=store_id,
                subtotal=store_subtotals[store_id],
                taxes=tax_shares[store_id],
                shipping=shipping[store_id],
                total=round2(store_subtotals[store_id] + tax_shares[store_id] + shipping[store_id]),
            )
            for store_id in store_ids
        ]

        return PricedOrder(
            subtotal=subtotal,
            tax=tax,
            fees=fees,
            shipping_total=shipping_total,
            total=round2(subtotal + tax.tax_amount + shipping_total),
            platform_fee=fees.marketplace_commission,
            stores=stores,
        )

    def delivery_fee(self, store_subtotal: Decimal, settings: DeliverySettings | None) -> Decimal:
        if settings is None:
            return self._default_delivery_fee
        if settings.free_delivery_threshold > 0 and store_subtotal >= settings.free_delivery_threshold:
            return ZERO
        if settings.delivery_fee is None:
            return self._default_delivery_fee
        return settings.delivery_fee


def split_proportionally(amount: Decimal, weights: Mapping[StoreId, Decimal]) -> dict[StoreId, Decimal]:
    """Split a cent ``amount`` by weight using largest remainders.

    Every share is floored to the cent, then leftover cents go to the largest
    fractional parts, ties broken by key. Shares never go negative and always
    sum to ``amount``. With no positive weight the last key takes everything.
    """
    keys = sorted(weights)
    if not keys:
        return {}
    total_weight = sum(weights.values(), start=ZERO)
    if total_weight <= 0:
        return {key: (amount if key == keys[-1] else ZERO) for key in keys}

    exact = {key: amount * weights[key] / total_weight for key in keys}
    shares = {key: exact[key].quantize(CENT, rounding=ROUND_FLOOR) for key in keys}
    leftover_cents = int((amount - sum(shares.values(), start=ZERO)) / CENT)
    by_remainder = sorted(keys, key=lambda key: (-(exact[key] - shares[key]), key))
    for key in by_remainder[:leftover_cents]:
        shares[key] += CENT
    return shares
