# flake8: noqa E402
# Run via uv for access to project deps, e.g.:
# uv run scripts/config_cache_probe.py --state TX --amount 1500 --requests 3
from __future__ import annotations

import argparse
import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path

# Ensure the src directory is importable when the script is invoked via uv/python directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from config import config
from domain.fees import PlatformFee
from domain.jurisdiction import JurisdictionId
from domain.tax import TaxRate
from services.config_repository import ConfigurationSource
from services.engine import SettlementEngine, build_source


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe configuration caching against the configured backend.")
    parser.add_argument("--state", default="CA", help="State code or name (default: CA).")
    parser.add_argument("--amount", type=Decimal, default=Decimal("100"), help="Order amount (default: 100).")
    parser.add_argument("--requests", type=int, default=3, help="Number of fee calculations to run (default: 3).")
    parser.add_argument(
        "--invalidate-after",
        type=int,
        default=None,
        help="Invalidate the cache after this many requests to force a refetch.",
    )
    return parser.parse_args()


class CountingSource:
    def __init__(self, inner: ConfigurationSource) -> None:
        self.inner = inner
        self.fetch_count = 0

    def list_active_tax_rates(self) -> list[TaxRate]:
        self.fetch_count += 1
        print(f"[source] fetch #{self.fetch_count}: tax rates")
        return self.inner.list_active_tax_rates()

    def list_active_fees(self, as_of: datetime) -> list[PlatformFee]:
        self.fetch_count += 1
        print(f"[source] fetch #{self.fetch_count}: platform fees as of {as_of.isoformat()}")
        return self.inner.list_active_fees(as_of)

    def resolve_jurisdiction_by_code_or_name(self, value: str) -> JurisdictionId | None:
        return self.inner.resolve_jurisdiction_by_code_or_name(value)


def main() -> None:
    args = parse_args()
    settings = config()

    source = CountingSource(build_source(settings))
    engine = SettlementEngine(
        source,
        cache_ttl=timedelta(seconds=settings.config_cache_ttl_seconds),
        failure_policy=settings.failure_policy,
    )

    print(f"Using {type(source.inner).__name__} with a {settings.config_cache_ttl_seconds}s cache")
    try:
        replay_requests(engine, source, args)
    finally:
        engine.close()


def replay_requests(engine: SettlementEngine, source: CountingSource, args: argparse.Namespace) -> None:
    for idx in range(1, args.requests + 1):
        before = source.fetch_count
        fees = engine.calculate_fees(args.amount, args.state)
        status = "cache-hit" if before == source.fetch_count else "fetched"
        print(
            f"[request {idx}] {args.amount} in {args.state} => commission {fees.marketplace_commission} "
            f"@ {fees.marketplace_commission_rate}, total fees {fees.total_platform_fees} ({status})",
        )
        if args.invalidate_after is not None and idx == args.invalidate_after:
            engine.invalidate_cache()
            print("[cache] invalidated")


if __name__ == "__main__":
    main()
