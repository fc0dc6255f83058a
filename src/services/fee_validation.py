from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import StrEnum
from typing import Iterable

from domain.fees import FeeScope, PlatformFee, PlatformFeeId, TieredCalculation
from domain.jurisdiction import JurisdictionId


class FeeIssueCode(StrEnum):
    DUPLICATE_GLOBAL_RULE = "DUPLICATE_GLOBAL_RULE"
    DUPLICATE_STATE_RULE = "DUPLICATE_STATE_RULE"
    TIERS_DO_NOT_START_AT_ZERO = "TIERS_DO_NOT_START_AT_ZERO"


@dataclass(frozen=True)
class FeeConfigurationIssue:
    fee_id: PlatformFeeId
    fee_type: str
    code: FeeIssueCode
    message: str


def validate_fee_configuration(fees: Iterable[PlatformFee]) -> list[FeeConfigurationIssue]:
    """Report configuration that calculations silently paper over.

    Meant to run out of band (admin tooling, scheduled checks), not on the
    checkout path.
    """
    issues: list[FeeConfigurationIssue] = []
    by_slot: dict[tuple[str, JurisdictionId | None], list[PlatformFee]] = defaultdict(list)

    for fee in sorted(fees, key=lambda f: f.id):
        by_slot[(fee.fee_type, fee.state_id if fee.scope == FeeScope.STATE else None)].append(fee)

        calculation = fee.calculation
        if isinstance(calculation, TieredCalculation) and calculation.tiers[0].min > 0:
            issues.append(
                FeeConfigurationIssue(
                    fee_id=fee.id,
                    fee_type=fee.fee_type,
                    code=FeeIssueCode.TIERS_DO_NOT_START_AT_ZERO,
                    message=f"First tier starts at {calculation.tiers[0].min}; smaller amounts use the first tier",
                )
            )

    for (fee_type, state_id), slot_fees in sorted(by_slot.items(), key=lambda entry: (entry[0][0], entry[0][1] or "")):
        if len(slot_fees) < 2:
            continue
        code = FeeIssueCode.DUPLICATE_GLOBAL_RULE if state_id is None else FeeIssueCode.DUPLICATE_STATE_RULE
        where = "globally" if state_id is None else f"for state {state_id}"
        ids = ", ".join(fee.id for fee in slot_fees)
        for fee in slot_fees:
            issues.append(
                FeeConfigurationIssue(
                    fee_id=fee.id,
                    fee_type=fee_type,
                    code=code,
                    message=f"{len(slot_fees)} active {fee_type} rules {where}: {ids}",
                )
            )

    return issues
