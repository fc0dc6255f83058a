from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from domain.fees import (
    FeeBreakdownLine,
    FeeCalculationResult,
    FeeScope,
    FeeType,
    FixedCalculation,
    PercentageCalculation,
    PlatformFee,
    TieredCalculation,
)
from domain.jurisdiction import JurisdictionId, JurisdictionResolver
from domain.money import ZERO, require_amount, round2
from domain.results import FailurePolicy

from .config_repository import ConfigRepository
from .policy import resolve_state_or_policy, rows_or_policy

logger = logging.getLogger(__name__)

DEFAULT_COMMISSION_RATE_PERCENT = Decimal("10")


@dataclass(frozen=True)
class EvaluatedFee:
    amount: Decimal
    rate: Decimal | None = None


def select_fee_rules(fees: Iterable[PlatformFee], state_id: JurisdictionId | None) -> dict[str, PlatformFee]:
    """Pick at most one rule per fee type.

    Eligible rules are global ones plus state rules for ``state_id``. The
    winner is the most specific rule; ties go to the latest effective date,
    then the latest creation time, then the highest id.
    """
    selected: dict[str, PlatformFee] = {}
    for fee in fees:
        if fee.scope == FeeScope.STATE and (state_id is None or fee.state_id != state_id):
            continue
        current = selected.get(fee.fee_type)
        if current is None or _precedence(fee) > _precedence(current):
            selected[fee.fee_type] = fee
    return dict(sorted(selected.items()))


def _precedence(fee: PlatformFee) -> tuple[int, object, object, str]:
    specificity = 1 if fee.scope == FeeScope.STATE else 0
    return specificity, fee.effective_date, fee.created_at, fee.id


def evaluate_fee(fee: PlatformFee, amount: Decimal) -> EvaluatedFee:
    calculation = fee.calculation
    if isinstance(calculation, PercentageCalculation):
        return EvaluatedFee(amount=amount * calculation.value, rate=calculation.value)
    if isinstance(calculation, FixedCalculation):
        return EvaluatedFee(amount=calculation.value)
    if isinstance(calculation, TieredCalculation):
        for tier in calculation.tiers:
            if tier.contains(amount):
                return EvaluatedFee(amount=amount * tier.rate, rate=tier.rate)
        fallback = calculation.tiers[0]
        logger.warning("No tier of fee %s (%s) covers amount %s; using the first tier", fee.id, fee.name, amount)
        return EvaluatedFee(amount=amount * fallback.rate, rate=fallback.rate)
    raise TypeError(f"Unsupported fee calculation {type(calculation).__name__}")


class FeeCalculator:
    def __init__(
        self,
        *,
        repository: ConfigRepository,
        resolver: JurisdictionResolver,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN,
        default_commission_rate_percent: Decimal = DEFAULT_COMMISSION_RATE_PERCENT,
    ) -> None:
        self._repository = repository
        self._resolver = resolver
        self._failure_policy = failure_policy
        self._default_commission_rate_percent = default_commission_rate_percent

    def calculate_fees(self, order_amount: Decimal | int, state_code: str | None = None) -> FeeCalculationResult:
        """Resolve and evaluate one rule per fee type for ``order_amount``.

        ``total_platform_fees`` only counts the three named fee types; other
        fee types are reported in ``fee_breakdown`` alone.
        """
        order_amount = require_amount(order_amount, field="order_amount")
        rules = self._rules_for(state_code, self._failure_policy)

        breakdown: list[FeeBreakdownLine] = []
        named: dict[str, EvaluatedFee] = {}
        for fee_type, fee in rules.items():
            evaluated = evaluate_fee(fee, order_amount)
            breakdown.append(
                FeeBreakdownLine(name=fee.name, type=fee_type, amount=round2(evaluated.amount), rate=evaluated.rate)
            )
            named[fee_type] = evaluated

        commission = named.get(FeeType.MARKETPLACE_COMMISSION, EvaluatedFee(amount=ZERO))
        processing = named.get(FeeType.PROCESSING_FEE, EvaluatedFee(amount=ZERO))
        delivery = named.get(FeeType.DELIVERY_PLATFORM_FEE, EvaluatedFee(amount=ZERO))

        commission_amount = round2(commission.amount)
        processing_amount = round2(processing.amount)
        delivery_amount = round2(delivery.amount)
        return FeeCalculationResult(
            marketplace_commission=commission_amount,
            marketplace_commission_rate=commission.rate or ZERO,
            processing_fee=processing_amount,
            processing_fee_rate=processing.rate or ZERO,
            delivery_platform_fee=delivery_amount,
            total_platform_fees=commission_amount + processing_amount + delivery_amount,
            fee_breakdown=breakdown,
        )

    def marketplace_commission_rate(self, state_code: str | None = None) -> Decimal:
        """Commission rate as a percentage for display, e.g. ``10`` for 10%."""
        rules = self._rules_for(state_code, FailurePolicy.FAIL_OPEN)
        commission = rules.get(FeeType.MARKETPLACE_COMMISSION)
        if commission is None:
            return self._default_commission_rate_percent
        rate = evaluate_fee(commission, ZERO).rate
        return (rate or ZERO) * 100

    def _rules_for(self, state_code: str | None, policy: FailurePolicy) -> dict[str, PlatformFee]:
        state_id = resolve_state_or_policy(self._resolver, state_code, policy) if state_code else None
        fees = rows_or_policy(self._repository.get_active_fees(), policy, what="platform fees")
        return select_fee_rules(fees, state_id)

