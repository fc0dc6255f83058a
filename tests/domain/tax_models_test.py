from decimal import Decimal

import pytest
from pydantic import ValidationError

from domain.tax import AppliesTo, TaxRate, TaxRateId, TaxScope
from tests.constants import CA_ID
from tests.helpers.builders import make_item, make_tax_rate


def test_rate_must_reference_its_scope_jurisdiction() -> None:
    with pytest.raises(ValidationError):
        TaxRate(
            id=TaxRateId("r1"), scope=TaxScope.COUNTY, state_id=CA_ID, name="x", rate=Decimal("0.01"), tax_type="sales"
        )


def test_county_rate_with_county_reference_is_valid() -> None:
    rate = TaxRate(
        id=TaxRateId("r1"), scope=TaxScope.COUNTY, county_id="cnty-1", name="x", rate=Decimal("0.01"), tax_type="sales"
    )

    assert rate.state_id is None
    assert rate.applies_to == AppliesTo.ALL


def test_negative_rate_is_rejected() -> None:
    with pytest.raises(ValidationError):
        make_tax_rate("-0.01", state_id=CA_ID)


def test_specific_categories_require_categories() -> None:
    with pytest.raises(ValidationError):
        make_tax_rate("0.05", state_id=CA_ID, applies_to=AppliesTo.SPECIFIC_CATEGORIES)


def test_categories_are_rejected_for_other_applicability() -> None:
    with pytest.raises(ValidationError):
        make_tax_rate("0.05", state_id=CA_ID, applies_to=AppliesTo.ALL, categories=["food"])


def test_applies_to_item() -> None:
    beer = make_item("10", is_alcohol=True, category="drinks")
    bread = make_item("3", category="food")

    alcohol_rate = make_tax_rate("0.1", state_id=CA_ID, applies_to=AppliesTo.ALCOHOL)
    food_rate = make_tax_rate("0.02", state_id=CA_ID, applies_to=AppliesTo.SPECIFIC_CATEGORIES, categories=["food"])
    general_rate = make_tax_rate("0.05", state_id=CA_ID)

    assert alcohol_rate.applies_to_item(beer)
    assert not alcohol_rate.applies_to_item(bread)
    assert food_rate.applies_to_item(bread)
    assert not food_rate.applies_to_item(beer)
    assert general_rate.applies_to_item(beer) and general_rate.applies_to_item(bread)


def test_item_without_category_never_matches_category_rate() -> None:
    rate = make_tax_rate("0.02", state_id=CA_ID, applies_to=AppliesTo.SPECIFIC_CATEGORIES, categories=["food"])

    assert not rate.applies_to_item(make_item("3"))


def test_item_line_total_and_validation() -> None:
    assert make_item("2.50", 4).line_total == Decimal("10.00")
    with pytest.raises(ValidationError):
        make_item("-1")
    with pytest.raises(ValidationError):
        make_item("1", -2)
