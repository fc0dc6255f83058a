from services.fee_validation import FeeIssueCode, validate_fee_configuration
from tests.constants import TX_ID
from tests.helpers.builders import fixed_fee, percentage_fee, tiered_fee


def test_clean_configuration_has_no_issues() -> None:
    fees = [
        tiered_fee([("0", "1000", "0.10"), ("1000", None, "0.08")]),
        percentage_fee("0.08", state_id=TX_ID),
        fixed_fee("1.50"),
    ]

    assert validate_fee_configuration(fees) == []


def test_duplicate_rules_are_reported_per_fee() -> None:
    fees = [
        percentage_fee("0.10", fee_id="g-1"),
        percentage_fee("0.12", fee_id="g-2"),
        percentage_fee("0.029", fee_type="processing_fee", state_id=TX_ID, fee_id="tx-1"),
        percentage_fee("0.03", fee_type="processing_fee", state_id=TX_ID, fee_id="tx-2"),
        percentage_fee("0.08", state_id=TX_ID, fee_id="tx-3"),
    ]

    issues = validate_fee_configuration(fees)

    assert [(issue.fee_id, issue.code) for issue in issues] == [
        ("g-1", FeeIssueCode.DUPLICATE_GLOBAL_RULE),
        ("g-2", FeeIssueCode.DUPLICATE_GLOBAL_RULE),
        ("tx-1", FeeIssueCode.DUPLICATE_STATE_RULE),
        ("tx-2", FeeIssueCode.DUPLICATE_STATE_RULE),
    ]
    assert "g-1, g-2" in issues[0].message


def test_tiers_starting_above_zero_are_reported() -> None:
    issues = validate_fee_configuration([tiered_fee([("100", None, "0.05")], fee_id="tiered")])

    assert len(issues) == 1
    assert issues[0].code == FeeIssueCode.TIERS_DO_NOT_START_AT_ZERO
    assert issues[0].fee_type == "marketplace_commission"
