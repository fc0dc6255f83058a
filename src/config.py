from __future__ import annotations

from decimal import Decimal
from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.results import FailurePolicy

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DB_FILE = ARTIFACTS_DIR / "marketplace_settlement.db"


class AppSettings(BaseSettings):
    database_url: str = f"sqlite:///{DB_FILE}"
    config_cache_ttl_seconds: int = 300
    failure_policy: FailurePolicy = FailurePolicy.FAIL_OPEN

    default_estimated_tax_rate: Decimal = Decimal("0.08")
    default_commission_rate_percent: Decimal = Decimal("10")
    default_delivery_fee: Decimal = Decimal("4.99")

    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    supabase_timeout_seconds: float = 10.0

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()
