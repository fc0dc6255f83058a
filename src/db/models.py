from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


class DecimalAsString(TypeDecorator):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: object) -> str | None:
        if value is None:
            return None
        return str(value)

    def process_result_value(self, value: str | None, dialect: object) -> Decimal | None:
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    pass


class UsStateOrm(Base):
    __tablename__ = "us_states"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    code: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)

    counties: Mapped[list["UsCountyOrm"]] = relationship(back_populates="state", cascade="all, delete-orphan")


class UsCountyOrm(Base):
    __tablename__ = "us_counties"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    state_id: Mapped[str] = mapped_column(String, ForeignKey("us_states.id"), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)

    state: Mapped[UsStateOrm] = relationship(back_populates="counties")
    cities: Mapped[list["UsCityOrm"]] = relationship(back_populates="county", cascade="all, delete-orphan")


class UsCityOrm(Base):
    __tablename__ = "us_cities"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    county_id: Mapped[str] = mapped_column(String, ForeignKey("us_counties.id"), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    zip_codes: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)

    county: Mapped[UsCountyOrm] = relationship(back_populates="cities")


class TaxRateOrm(Base):
    __tablename__ = "tax_rates"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    scope: Mapped[str] = mapped_column(String, nullable=False)
    state_id: Mapped[str | None] = mapped_column(String, ForeignKey("us_states.id"), nullable=True)
    county_id: Mapped[str | None] = mapped_column(String, ForeignKey("us_counties.id"), nullable=True)
    city_id: Mapped[str | None] = mapped_column(String, ForeignKey("us_cities.id"), nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    rate: Mapped[Decimal] = mapped_column(DecimalAsString, nullable=False)
    tax_type: Mapped[str] = mapped_column(String, nullable=False)
    applies_to: Mapped[str] = mapped_column(String, nullable=False, default="all")
    categories: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("ix_tax_rates_active_state", "is_active", "state_id"),)


class PlatformFeeOrm(Base):
    __tablename__ = "platform_fees"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    scope: Mapped[str] = mapped_column(String, nullable=False)
    state_id: Mapped[str | None] = mapped_column(String, ForeignKey("us_states.id"), nullable=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    fee_type: Mapped[str] = mapped_column(String, nullable=False)
    calculation_type: Mapped[str] = mapped_column(String, nullable=False)
    value: Mapped[Decimal | None] = mapped_column(DecimalAsString, nullable=True)
    # [{"min": "0", "max": "1000" | null, "rate": "0.10"}, ...]
    tiers: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    effective_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_platform_fees_active_type", "is_active", "fee_type"),)
