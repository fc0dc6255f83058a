from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from pydantic import ValidationError
from requests import Response

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
from domain.jurisdiction import JurisdictionId
from domain.tax import AppliesTo, TaxRate, TaxRateId, TaxScope

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class PostgrestConfigurationSource:
    """Read tax and fee configuration from a Supabase/PostgREST REST endpoint.

    No retries are performed; a timeout or HTTP error surfaces as
    ``ConfigurationSourceError`` and the caller's failure policy applies.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url must be provided")
        if not api_key:
            raise ValueError("api_key must be provided")

        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def list_active_tax_rates(self) -> list[TaxRate]:
        rows = self._request("/rest/v1/tax_rates", params={"select": "*", "is_active": "eq.true"})
        return self._parse_rows(rows, self._parse_tax_rate, table="tax_rates")

    def list_active_fees(self, as_of: datetime) -> list[PlatformFee]:
        now = as_of.astimezone(timezone.utc).isoformat()
        params = {
            "select": "*",
            "is_active": "eq.true",
            "and": f"(or(effective_date.lte.{now},effective_date.is.null),or(end_date.gte.{now},end_date.is.null))",
        }
        rows = self._request("/rest/v1/platform_fees", params=params)
        return self._parse_rows(rows, self._parse_platform_fee, table="platform_fees")

    def resolve_jurisdiction_by_code_or_name(self, value: str) -> JurisdictionId | None:
        try:
            by_code = self._request("/rest/v1/us_states", params={"select": "id", "code": f"eq.{value.upper()}"})
            if by_code:
                return JurisdictionId(str(by_code[0]["id"]))
            by_name = self._request(
                "/rest/v1/us_states", params={"select": "id,name", "name": f"ilike.{_escape_like(value)}"}
            )
        except ConfigurationSourceError as exc:
            raise JurisdictionLookupError(
                f"Failed to resolve state {value!r}", status_code=exc.status_code, payload=exc.payload
            ) from exc
        # ilike still treats "*" as a wildcard, so only exact names count.
        for row in by_name:
            if isinstance(row, dict) and str(row.get("name", "")).casefold() == value.casefold():
                return JurisdictionId(str(row["id"]))
        return None

    def _request(self, path: str, *, params: dict[str, str]) -> list[dict[str, Any]]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(
                "GET",
                url,
                params=params,
                timeout=self.timeout,
                headers={"apikey": self.api_key, "Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            message, payload_err = self._extract_error(exc.response)
            status_code = getattr(exc.response, "status_code", None)
            raise ConfigurationSourceError(message, status_code=status_code, payload=payload_err) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise ConfigurationSourceError("PostgREST request failed", status_code=status_code) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ConfigurationSourceError("PostgREST returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload, list):
            raise ConfigurationSourceError("PostgREST returned unexpected payload type", payload=payload)
        return payload

    @staticmethod
    def _extract_error(response: Response | None) -> tuple[str, Any]:
        message = "PostgREST request failed"
        if response is None:
            return message, None
        try:
            payload = response.json()
            if isinstance(payload, dict) and payload.get("message"):
                message = payload["message"]
        except ValueError:
            payload = response.text
        return message, payload

    @staticmethod
    def _parse_rows(rows: list[dict[str, Any]], parse: Any, *, table: str) -> list[Any]:
        parsed = []
        for row in rows:
            try:
                parsed.append(parse(row))
            except (AttributeError, KeyError, TypeError, ValueError, InvalidOperation, ValidationError) as exc:
                # Skip the row, keep the rest of the snapshot.
                row_id = row.get("id") if isinstance(row, dict) else None
                logger.warning("Skipping malformed %s row %s: %s", table, row_id, exc)
        return parsed

    @staticmethod
    def _parse_tax_rate(row: dict[str, Any]) -> TaxRate:
        categories = row.get("categories")
        return TaxRate(
            id=TaxRateId(str(row["id"])),
            scope=TaxScope(row["scope"]),
            state_id=_optional_id(row.get("state_id")),
            county_id=_optional_str(row.get("county_id")),
            city_id=_optional_str(row.get("city_id")),
            name=row["name"],
            rate=_to_decimal(row["rate"]),
            tax_type=row["tax_type"],
            applies_to=AppliesTo(row.get("applies_to") or AppliesTo.ALL),
            categories=frozenset(categories) if categories else None,
            is_active=bool(row.get("is_active", True)),
        )

    @staticmethod
    def _parse_platform_fee(row: dict[str, Any]) -> PlatformFee:
        calculation_type = row["calculation_type"]
        calculation: FeeCalculation
        if calculation_type == "tiered":
            calculation = TieredCalculation(
                tiers=tuple(
                    FeeTier(
                        min=_to_decimal(tier["min"]),
                        max=None if tier.get("max") is None else _to_decimal(tier["max"]),
                        rate=_to_decimal(tier["rate"]),
                    )
                    for tier in row.get("tiers") or []
                )
            )
        elif calculation_type == "fixed":
            calculation = FixedCalculation(value=_to_decimal(row["value"]))
        elif calculation_type == "percentage":
            calculation = PercentageCalculation(value=_to_decimal(row["value"]))
        else:
            raise ValueError(f"Unknown calculation_type {calculation_type!r}")

        return PlatformFee(
            id=PlatformFeeId(str(row["id"])),
            scope=FeeScope(row["scope"]),
            state_id=_optional_id(row.get("state_id")),
            name=row["name"],
            fee_type=row["fee_type"],
            calculation=calculation,
            is_active=bool(row.get("is_active", True)),
            effective_date=_to_datetime(row.get("effective_date")) or EPOCH,
            end_date=_to_datetime(row.get("end_date")),
            created_at=_to_datetime(row.get("created_at")) or EPOCH,
        )


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def _optional_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _optional_id(value: Any) -> JurisdictionId | None:
    return None if value is None else JurisdictionId(str(value))


def _to_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = ["PostgrestConfigurationSource"]
