from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal
from typing import Mapping, Sequence

from config import AppSettings, config
from db.db import init_db
from db.repositories import SqlConfigurationSource
from domain.checkout import DeliverySettings, PricedOrder
from domain.fees import FeeCalculationResult, StoreId, StoreTransfer
from domain.jurisdiction import JurisdictionResolver
from domain.results import FailurePolicy
from domain.tax import ShippingAddress, TaxableItem, TaxCalculationResult

from .checkout import CheckoutPricer
from .config_repository import ConfigRepository, ConfigurationSource
from .fee_calculator import FeeCalculator
from .fee_validation import FeeConfigurationIssue, validate_fee_configuration
from .policy import rows_or_policy
from .postgrest_source import PostgrestConfigurationSource
from .settlement import SettlementCalculator
from .snapshot_cache import Clock, utc_now
from .tax_calculator import TaxCalculator


class SettlementEngine:
    """Entry point used by checkout, payout jobs and the configuration surface."""

    def __init__(
        self,
        source: ConfigurationSource,
        *,
        cache_ttl: timedelta = timedelta(minutes=5),
        failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN,
        default_estimated_tax_rate: Decimal = Decimal("0.08"),
        default_commission_rate_percent: Decimal = Decimal("10"),
        default_delivery_fee: Decimal = Decimal("4.99"),
        clock: Clock = utc_now,
    ) -> None:
        self.repository = ConfigRepository(source, ttl=cache_ttl, clock=clock)
        resolver = JurisdictionResolver(source)
        self.tax_calculator = TaxCalculator(
            repository=self.repository,
            resolver=resolver,
            failure_policy=failure_policy,
            default_estimated_rate=default_estimated_tax_rate,
        )
        self.fee_calculator = FeeCalculator(
            repository=self.repository,
            resolver=resolver,
            failure_policy=failure_policy,
            default_commission_rate_percent=default_commission_rate_percent,
        )
        self.settlement_calculator = SettlementCalculator(self.fee_calculator)
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="checkout-pricing")
        self.checkout_pricer = CheckoutPricer(
            tax_calculator=self.tax_calculator,
            fee_calculator=self.fee_calculator,
            executor=self._executor,
            default_delivery_fee=default_delivery_fee,
        )

    def calculate_taxes(self, items: Sequence[TaxableItem], address: ShippingAddress) -> TaxCalculationResult:
        return self.tax_calculator.calculate_taxes(items, address)

    def calculate_fees(self, order_amount: Decimal | int, state_code: str | None = None) -> FeeCalculationResult:
        return self.fee_calculator.calculate_fees(order_amount, state_code)

    def calculate_store_transfer_amount(
        self, store_gross_total: Decimal | int, state_code: str | None = None
    ) -> StoreTransfer:
        return self.settlement_calculator.calculate_store_transfer_amount(store_gross_total, state_code)

    def estimated_tax_rate(self, state_code: str | None = None) -> Decimal:
        return self.tax_calculator.estimated_tax_rate(state_code)

    def marketplace_commission_rate(self, state_code: str | None = None) -> Decimal:
        return self.fee_calculator.marketplace_commission_rate(state_code)

    def price_order(
        self,
        items_by_store: Mapping[StoreId, Sequence[TaxableItem]],
        address: ShippingAddress,
        delivery_settings: Mapping[StoreId, DeliverySettings] | None = None,
    ) -> PricedOrder:
        return self.checkout_pricer.price_order(items_by_store, address, delivery_settings)

    def validate_fees(self) -> list[FeeConfigurationIssue]:
        fees = rows_or_policy(self.repository.get_active_fees(), FailurePolicy.FAIL_CLOSED, what="platform fees")
        return validate_fee_configuration(fees)

    def invalidate_cache(self) -> None:
        self.repository.invalidate_cache()

    def close(self) -> None:
        """Stop the checkout worker threads. Pricing is unavailable afterwards."""
        self._executor.shutdown(wait=True)

    def __enter__(self) -> SettlementEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def build_source(settings: AppSettings) -> ConfigurationSource:
    if settings.supabase_url and settings.supabase_service_role_key:
        return PostgrestConfigurationSource(
            base_url=settings.supabase_url,
            api_key=settings.supabase_service_role_key,
            timeout=settings.supabase_timeout_seconds,
        )
    return SqlConfigurationSource(init_db(settings.database_url))


def build_default_engine(settings: AppSettings | None = None) -> SettlementEngine:
    settings = settings or config()
    return SettlementEngine(
        build_source(settings),
        cache_ttl=timedelta(seconds=settings.config_cache_ttl_seconds),
        failure_policy=settings.failure_policy,
        default_estimated_tax_rate=settings.default_estimated_tax_rate,
        default_commission_rate_percent=settings.default_commission_rate_percent,
        default_delivery_fee=settings.default_delivery_fee,
    )


__all__ = ["SettlementEngine", "build_default_engine", "build_source"]
