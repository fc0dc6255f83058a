from __future__ import annotations

import logging
from decimal import Decimal
from typing import Mapping

from domain.errors import InvalidAmountError
from domain.fees import StoreId, StoreTransfer
from domain.money import from_cents, require_amount, round2, to_cents

from .fee_calculator import FeeCalculator

logger = logging.getLogger(__name__)


class SettlementCalculator:
    """Net amounts owed to stores at payout time.

    Only the marketplace commission is deducted from a store's share; processing
    and delivery-platform fees are settled on the customer-facing charge.
    """

    def __init__(self, fee_calculator: FeeCalculator) -> None:
        self._fee_calculator = fee_calculator

    def calculate_store_transfer_amount(
        self, store_gross_total: Decimal | int, state_code: str | None = None
    ) -> StoreTransfer:
        gross = require_amount(store_gross_total, field="store_gross_total")
        fees = self._fee_calculator.calculate_fees(gross, state_code)

        platform_fee = fees.marketplace_commission
        return StoreTransfer(
            original_amount=gross,
            platform_fee=platform_fee,
            transfer_amount=round2(gross - platform_fee),
            fee_rate=fees.marketplace_commission_rate,
        )

    def calculate_store_transfers(
        self, store_totals: Mapping[StoreId, Decimal], state_code: str | None = None
    ) -> dict[StoreId, StoreTransfer]:
        transfers: dict[StoreId, StoreTransfer] = {}
        for store_id, gross in sorted(store_totals.items()):
            transfer = self.calculate_store_transfer_amount(gross, state_code)
            logger.info(
                "Store %s transfer: gross=%s platform_fee=%s transfer=%s",
                store_id,
                transfer.original_amount,
                transfer.platform_fee,
                transfer.transfer_amount,
            )
            transfers[store_id] = transfer
        return transfers

    def platform_fee_in_cents(self, amount_in_cents: int, state_code: str | None = None) -> int:
        """Commission for a minor-unit amount, in minor units, as payment processor APIs expect."""
        if isinstance(amount_in_cents, bool) or not isinstance(amount_in_cents, int):
            raise InvalidAmountError(
                f"amount_in_cents must be an int, got {amount_in_cents!r}", field="amount_in_cents"
            )
        fees = self._fee_calculator.calculate_fees(from_cents(amount_in_cents), state_code)
        return to_cents(fees.marketplace_commission)
