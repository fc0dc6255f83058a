from decimal import Decimal

import pytest

from domain.errors import ConfigurationUnavailableError
from domain.fees import StoreId
from domain.tax import AppliesTo, ShippingAddress
from services.engine import SettlementEngine
from tests.constants import CA_ID, TX_ID
from tests.helpers.builders import make_item, make_tax_rate
from tests.helpers.in_memory_source import InMemoryConfigurationSource


def _address(state: str) -> ShippingAddress:
    return ShippingAddress(street="1 Main St", city="Springfield", state=state, zip_code="90001")


def test_simple_state_tax(source: InMemoryConfigurationSource, settlement_engine: SettlementEngine) -> None:
    source.tax_rates = [make_tax_rate("0.0725", state_id=CA_ID, name="California Sales Tax")]

    result = settlement_engine.calculate_taxes([make_item("100")], _address("CA"))

    assert result.subtotal == Decimal("100")
    assert result.tax_amount == Decimal("7.25")
    assert result.total_with_tax == Decimal("107.25")
    assert result.tax_rate == Decimal("0.0725")
    assert [(line.name, line.amount, line.type) for line in result.tax_breakdown] == [
        ("California Sales Tax", Decimal("7.25"), "sales")
    ]


def test_alcohol_rate_only_taxes_alcohol(
    source: InMemoryConfigurationSource, settlement_engine: SettlementEngine
) -> None:
    source.tax_rates = [
        make_tax_rate("0.10", state_id=CA_ID, applies_to=AppliesTo.ALCOHOL, tax_type="alcohol"),
        make_tax_rate("0.05", state_id=CA_ID),
    ]

    result = settlement_engine.calculate_taxes([make_item("50", is_alcohol=True), make_item("50")], _address("CA"))

    assert {line.type: line.amount for line in result.tax_breakdown} == {
        "alcohol": Decimal("5.00"),
        "sales": Decimal("5.00"),
    }
    assert result.tax_amount == Decimal("10.00")
    assert result.total_with_tax == Decimal("110.00")


def test_category_rate_skipped_when_no_item_matches(
    source: InMemoryConfigurationSource, settlement_engine: SettlementEngine
) -> None:
    source.tax_rates = [
        make_tax_rate("0.02", state_id=CA_ID, applies_to=AppliesTo.SPECIFIC_CATEGORIES, categories=["food"]),
        make_tax_rate("0.05", state_id=CA_ID),
    ]

    result = settlement_engine.calculate_taxes([make_item("20", category="toys")], _address("CA"))

    assert len(result.tax_breakdown) == 1
    assert result.tax_amount == Decimal("1.00")


def test_breakdown_sums_to_total(source: InMemoryConfigurationSource, settlement_engine: SettlementEngine) -> None:
    source.tax_rates = [
        make_tax_rate("0.0725", state_id=CA_ID),
        make_tax_rate("0.01", state_id=CA_ID, tax_type="local"),
    ]

    result = settlement_engine.calculate_taxes([make_item("11.11", 3)], _address("CA"))

    assert result.subtotal == Decimal("33.33")
    assert [line.amount for line in result.tax_breakdown] == [Decimal("0.33"), Decimal("2.42")]
    assert sum(line.amount for line in result.tax_breakdown) == result.tax_amount
    assert result.total_with_tax == Decimal("36.08")


def test_unresolvable_state_has_no_tax(
    source: InMemoryConfigurationSource, settlement_engine: SettlementEngine
) -> None:
    source.tax_rates = [make_tax_rate("0.0725", state_id=CA_ID)]

    result = settlement_engine.calculate_taxes([make_item("19.99", 2)], _address("Narnia"))

    assert result.tax_amount == Decimal("0")
    assert result.tax_breakdown == []
    assert result.total_with_tax == result.subtotal == Decimal("39.98")
    assert source.tax_rate_queries == 0


def test_rates_of_other_states_are_ignored(
    source: InMemoryConfigurationSource, settlement_engine: SettlementEngine
) -> None:
    source.tax_rates = [make_tax_rate("0.0625", state_id=TX_ID)]

    result = settlement_engine.calculate_taxes([make_item("100")], _address("California"))

    assert result.tax_amount == Decimal("0")


def test_zero_subtotal_has_zero_rate(source: InMemoryConfigurationSource, settlement_engine: SettlementEngine) -> None:
    source.tax_rates = [make_tax_rate("0.0725", state_id=CA_ID)]

    result = settlement_engine.calculate_taxes([make_item("10", 0)], _address("CA"))

    assert result.tax_rate == Decimal("0")
    assert result.tax_breakdown == []


def test_backend_failure_degrades_to_zero_tax_when_failing_open(
    source: InMemoryConfigurationSource, settlement_engine: SettlementEngine
) -> None:
    source.tax_rates = [make_tax_rate("0.0725", state_id=CA_ID)]
    source.fail = True

    result = settlement_engine.calculate_taxes([make_item("100")], _address("CA"))

    assert result.tax_amount == Decimal("0")


def test_backend_failure_raises_when_failing_closed(
    source: InMemoryConfigurationSource, fail_closed_engine: SettlementEngine
) -> None:
    source.fail = True

    with pytest.raises(ConfigurationUnavailableError):
        fail_closed_engine.calculate_taxes([make_item("100")], _address("CA"))


def test_lookup_failure_raises_when_failing_closed(
    source: InMemoryConfigurationSource, fail_closed_engine: SettlementEngine
) -> None:
    source.fail_lookups = True

    with pytest.raises(ConfigurationUnavailableError):
        fail_closed_engine.calculate_taxes([make_item("100")], _address("CA"))


def test_estimated_tax_rate(source: InMemoryConfigurationSource, fail_closed_engine: SettlementEngine) -> None:
    source.tax_rates = [
        make_tax_rate("0.082", state_id=TX_ID, applies_to=AppliesTo.ALCOHOL, tax_type="alcohol"),
        make_tax_rate("0.0625", state_id=TX_ID),
    ]

    assert fail_closed_engine.estimated_tax_rate("TX") == Decimal("0.0625")
    assert fail_closed_engine.estimated_tax_rate("CA") == Decimal("0.08")
    assert fail_closed_engine.estimated_tax_rate("Narnia") == Decimal("0.08")
    assert fail_closed_engine.estimated_tax_rate(None) == Decimal("0.08")

    fail_closed_engine.invalidate_cache()
    source.fail = True
    assert fail_closed_engine.estimated_tax_rate("TX") == Decimal("0.08")


def test_store_taxes_match_order_taxes(
    source: InMemoryConfigurationSource, settlement_engine: SettlementEngine
) -> None:
    source.tax_rates = [make_tax_rate("0.0625", state_id=TX_ID)]
    items = [make_item("12.50", 2)]

    result = settlement_engine.tax_calculator.calculate_store_taxes(StoreId("store-a"), items, _address("TX"))

    assert result == settlement_engine.calculate_taxes(items, _address("TX"))
    assert result.tax_amount == Decimal("1.56")
