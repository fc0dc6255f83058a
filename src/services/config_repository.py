from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Protocol

from domain.errors import ConfigurationSourceError
from domain.fees import PlatformFee
from domain.jurisdiction import JurisdictionId
from domain.results import QueryError, QueryOk, QueryResult
from domain.tax import TaxRate

from .snapshot_cache import Clock, SnapshotCache, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL = timedelta(minutes=5)


class ConfigurationSource(Protocol):
    """Backing store for tax and fee configuration.

    Implementations raise ``ConfigurationSourceError`` when the store cannot be queried.
    """

    def list_active_tax_rates(self) -> list[TaxRate]: ...

    def list_active_fees(self, as_of: datetime) -> list[PlatformFee]: ...

    def resolve_jurisdiction_by_code_or_name(self, value: str) -> JurisdictionId | None: ...


class ConfigRepository:
    """Read active tax rates and fee rules through per-instance TTL caches."""

    def __init__(
        self,
        source: ConfigurationSource,
        *,
        ttl: timedelta = DEFAULT_CACHE_TTL,
        clock: Clock = utc_now,
    ) -> None:
        self.source = source
        self._clock = clock
        self._tax_rates: SnapshotCache[tuple[TaxRate, ...]] = SnapshotCache(ttl=ttl, clock=clock)
        self._fees: SnapshotCache[tuple[PlatformFee, ...]] = SnapshotCache(ttl=ttl, clock=clock)

    def get_active_tax_rates(self) -> QueryResult[TaxRate]:
        try:
            rates = self._tax_rates.get_or_load(self._load_tax_rates)
        except ConfigurationSourceError as exc:
            logger.error("Error fetching tax rates: %s", exc)
            return QueryError(cause=exc)
        return QueryOk(rows=rates)

    def get_active_fees(self) -> QueryResult[PlatformFee]:
        try:
            fees = self._fees.get_or_load(self._load_fees)
        except ConfigurationSourceError as exc:
            logger.error("Error fetching platform fees: %s", exc)
            return QueryError(cause=exc)
        # Effective windows can close while a snapshot is still cached.
        now = self._clock()
        return QueryOk(rows=tuple(fee for fee in fees if fee.is_effective(now)))

    def invalidate_cache(self) -> None:
        logger.info("Invalidating tax rate and platform fee caches")
        self._tax_rates.invalidate()
        self._fees.invalidate()

    def _load_tax_rates(self) -> tuple[TaxRate, ...]:
        rates = tuple(rate for rate in self.source.list_active_tax_rates() if rate.is_active)
        logger.debug("Loaded %d active tax rates", len(rates))
        return rates

    def _load_fees(self) -> tuple[PlatformFee, ...]:
        fees = tuple(self.source.list_active_fees(self._clock()))
        logger.debug("Loaded %d active platform fees", len(fees))
        return fees


__all__ = ["ConfigRepository", "ConfigurationSource", "DEFAULT_CACHE_TTL"]
