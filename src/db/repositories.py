from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, TypeVar

from pydantic import ValidationError

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import models
from domain.errors import ConfigurationSourceError, JurisdictionLookupError
from domain.fees import (
    FeeCalculation,
    FeeScope,
    FeeTier,
    FixedCalculation,
    PercentageCalculation,
    PlatformFee,
    PlatformFeeId,
    TieredCalculation,
)
from domain.jurisdiction import JurisdictionId, UsState
from domain.tax import AppliesTo, TaxRate, TaxRateId, TaxScope

logger = logging.getLogger(__name__)

OrmT = TypeVar("OrmT", models.TaxRateOrm, models.PlatformFeeOrm)
DomainT = TypeVar("DomainT")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _convert_rows(rows: Iterable[OrmT], to_domain: Callable[[OrmT], DomainT], *, table: str) -> list[DomainT]:
    converted = []
    for row in rows:
        try:
            converted.append(to_domain(row))
        except (KeyError, TypeError, ValueError, InvalidOperation, ValidationError) as exc:
            # Skip the row, keep the rest of the snapshot.
            logger.warning("Skipping malformed %s row %s: %s", table, row.id, exc)
    return converted


class UsStateRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, states: list[UsState]) -> list[UsState]:
        self._session.add_all(models.UsStateOrm(id=state.id, code=state.code, name=state.name) for state in states)
        self._session.commit()
        return states

    def get_by_code(self, code: str) -> UsState | None:
        stmt = select(models.UsStateOrm).where(func.upper(models.UsStateOrm.code) == code.upper())
        orm_state = self._session.scalars(stmt).first()
        return None if orm_state is None else self._to_domain(orm_state)

    def get_by_name(self, name: str) -> UsState | None:
        stmt = select(models.UsStateOrm).where(func.lower(models.UsStateOrm.name) == name.lower())
        orm_state = self._session.scalars(stmt).first()
        return None if orm_state is None else self._to_domain(orm_state)

    def list(self) -> list[UsState]:
        orm_states = self._session.scalars(select(models.UsStateOrm).order_by(models.UsStateOrm.code)).all()
        return [self._to_domain(state) for state in orm_states]

    @staticmethod
    def _to_domain(orm_state: models.UsStateOrm) -> UsState:
        return UsState(id=JurisdictionId(orm_state.id), code=orm_state.code, name=orm_state.name)


class TaxRateRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, rates: list[TaxRate]) -> list[TaxRate]:
        self._session.add_all(
            models.TaxRateOrm(
                id=rate.id,
                scope=rate.scope.value,
                state_id=rate.state_id,
                county_id=rate.county_id,
                city_id=rate.city_id,
                name=rate.name,
                rate=rate.rate,
                tax_type=rate.tax_type,
                applies_to=rate.applies_to.value,
                categories=sorted(rate.categories) if rate.categories else None,
                is_active=rate.is_active,
            )
            for rate in rates
        )
        self._session.commit()
        return rates

    def list_active(self) -> list[TaxRate]:
        stmt = select(models.TaxRateOrm).where(models.TaxRateOrm.is_active.is_(True)).order_by(models.TaxRateOrm.id)
        return _convert_rows(self._session.scalars(stmt).all(), self._to_domain, table="tax_rates")

    @staticmethod
    def _to_domain(orm_rate: models.TaxRateOrm) -> TaxRate:
        return TaxRate(
            id=TaxRateId(orm_rate.id),
            scope=TaxScope(orm_rate.scope),
            state_id=JurisdictionId(orm_rate.state_id) if orm_rate.state_id else None,
            county_id=orm_rate.county_id,
            city_id=orm_rate.city_id,
            name=orm_rate.name,
            rate=orm_rate.rate,
            tax_type=orm_rate.tax_type,
            applies_to=AppliesTo(orm_rate.applies_to),
            categories=frozenset(orm_rate.categories) if orm_rate.categories else None,
            is_active=orm_rate.is_active,
        )


class PlatformFeeRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_many(self, fees: list[PlatformFee]) -> list[PlatformFee]:
        orm_fees: list[models.PlatformFeeOrm] = []
        for fee in fees:
            value, tiers = self._calculation_columns(fee.calculation)
            orm_fees.append(
                models.PlatformFeeOrm(
                    id=fee.id,
                    scope=fee.scope.value,
                    state_id=fee.state_id,
                    name=fee.name,
                    fee_type=fee.fee_type,
                    calculation_type=fee.calculation.calculation_type,
                    value=value,
                    tiers=tiers,
                    is_active=fee.is_active,
                    effective_date=_as_utc(fee.effective_date),
                    end_date=_as_utc(fee.end_date) if fee.end_date is not None else None,
                    created_at=_as_utc(fee.created_at),
                )
            )
        self._session.add_all(orm_fees)
        self._session.commit()
        return fees

    def list_active(self, as_of: datetime) -> list[PlatformFee]:
        now = _as_utc(as_of)
        stmt = (
            select(models.PlatformFeeOrm)
            .where(models.PlatformFeeOrm.is_active.is_(True))
            .where(models.PlatformFeeOrm.effective_date <= now)
            .where(or_(models.PlatformFeeOrm.end_date.is_(None), models.PlatformFeeOrm.end_date >= now))
            .order_by(models.PlatformFeeOrm.id)
        )
        return _convert_rows(self._session.scalars(stmt).all(), self._to_domain, table="platform_fees")

    @staticmethod
    def _calculation_columns(calculation: FeeCalculation) -> tuple[Decimal | None, list[dict[str, Any]] | None]:
        if isinstance(calculation, TieredCalculation):
            tiers = [
                {"min": str(tier.min), "max": None if tier.max is None else str(tier.max), "rate": str(tier.rate)}
                for tier in calculation.tiers
            ]
            return None, tiers
        return calculation.value, None

    @staticmethod
    def _to_domain(orm_fee: models.PlatformFeeOrm) -> PlatformFee:
        calculation: FeeCalculation
        if orm_fee.calculation_type == "tiered":
            calculation = TieredCalculation(
                tiers=tuple(
                    FeeTier(
                        min=Decimal(str(tier["min"])),
                        max=None if tier.get("max") is None else Decimal(str(tier["max"])),
                        rate=Decimal(str(tier["rate"])),
                    )
                    for tier in orm_fee.tiers or []
                )
            )
        elif orm_fee.value is None:
            raise ValueError(f"{orm_fee.calculation_type} fee has no value")
        elif orm_fee.calculation_type == "fixed":
            calculation = FixedCalculation(value=orm_fee.value)
        elif orm_fee.calculation_type == "percentage":
            calculation = PercentageCalculation(value=orm_fee.value)
        else:
            raise ValueError(f"Unknown calculation_type {orm_fee.calculation_type!r}")

        return PlatformFee(
            id=PlatformFeeId(orm_fee.id),
            scope=FeeScope(orm_fee.scope),
            state_id=JurisdictionId(orm_fee.state_id) if orm_fee.state_id else None,
            name=orm_fee.name,
            fee_type=orm_fee.fee_type,
            calculation=calculation,
            is_active=orm_fee.is_active,
            effective_date=_as_utc(orm_fee.effective_date),
            end_date=_as_utc(orm_fee.end_date) if orm_fee.end_date is not None else None,
            created_at=_as_utc(orm_fee.created_at),
        )


class SqlConfigurationSource:
    """Configuration source backed by the relational store.

    Each call opens its own session so the source can be shared across threads.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def list_active_tax_rates(self) -> list[TaxRate]:
        try:
            with self._session_factory() as session:
                return TaxRateRepository(session).list_active()
        except SQLAlchemyError as exc:
            raise ConfigurationSourceError("Failed to query tax_rates") from exc

    def list_active_fees(self, as_of: datetime) -> list[PlatformFee]:
        try:
            with self._session_factory() as session:
                return PlatformFeeRepository(session).list_active(as_of)
        except SQLAlchemyError as exc:
            raise ConfigurationSourceError("Failed to query platform_fees") from exc

    def resolve_jurisdiction_by_code_or_name(self, value: str) -> JurisdictionId | None:
        try:
            with self._session_factory() as session:
                states = UsStateRepository(session)
                state = states.get_by_code(value) or states.get_by_name(value)
        except SQLAlchemyError as exc:
            raise JurisdictionLookupError(f"Failed to query us_states for {value!r}") from exc
        return None if state is None else state.id
