from __future__ import annotations

import argparse
import json
import logging
from decimal import Decimal
from pathlib import Path
from typing import Sequence

from pydantic import BaseModel

from config import AppSettings, config
from db.db import init_db
from db.repositories import PlatformFeeRepository, TaxRateRepository, UsStateRepository
from domain.fees import FeeCalculationResult, PlatformFee
from domain.jurisdiction import UsState
from domain.money import format_currency
from domain.tax import TaxRate
from services.engine import SettlementEngine, build_default_engine

PROJECT_ROOT = Path(__file__).resolve().parents[1]


class SeedConfiguration(BaseModel):
    states: list[UsState] = []
    tax_rates: list[TaxRate] = []
    platform_fees: list[PlatformFee] = []


def seed(settings: AppSettings, seed_file: Path, *, reset: bool) -> None:
    payload = SeedConfiguration.model_validate(json.loads(seed_file.read_text(encoding="utf-8")))
    session_factory = init_db(settings.database_url, reset=reset)
    with session_factory() as session:
        UsStateRepository(session).create_many(payload.states)
        TaxRateRepository(session).create_many(payload.tax_rates)
        PlatformFeeRepository(session).create_many(payload.platform_fees)
    print(
        f"Seeded {len(payload.states)} states, {len(payload.tax_rates)} tax rates, "
        f"{len(payload.platform_fees)} platform fees into {settings.database_url}"
    )


def print_fee_summary(result: FeeCalculationResult) -> None:
    print("Platform fees:")
    for line in result.fee_breakdown:
        rate = f" @ {line.rate}" if line.rate is not None else ""
        print(f"  {line.type:<24} {format_currency(line.amount):>10}{rate}  ({line.name})")
    print(f"  {'total':<24} {format_currency(result.total_platform_fees):>10}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Marketplace tax, fee and settlement calculations.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    seed_parser = subparsers.add_parser("seed", help="Load states, tax rates and fee rules from a JSON file.")
    seed_parser.add_argument("--file", type=Path, default=PROJECT_ROOT / "data" / "seed_config.json")
    seed_parser.add_argument("--reset", action="store_true", help="Delete the SQLite database first.")

    fees_parser = subparsers.add_parser("fees", help="Calculate platform fees for an order amount.")
    fees_parser.add_argument("amount", type=Decimal)
    fees_parser.add_argument("--state")

    transfer_parser = subparsers.add_parser("transfer", help="Calculate a store's payout after commission.")
    transfer_parser.add_argument("amount", type=Decimal)
    transfer_parser.add_argument("--state")

    estimate_parser = subparsers.add_parser("estimate-tax", help="Show the estimated sales tax rate for a state.")
    estimate_parser.add_argument("--state")

    subparsers.add_parser("validate-fees", help="Report ambiguous or gappy fee configuration.")

    args = parser.parse_args(argv)
    settings = config()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    if args.command == "seed":
        seed(settings, args.file, reset=args.reset)
        return

    with build_default_engine(settings) as engine:
        run_command(engine, args)


def run_command(engine: SettlementEngine, args: argparse.Namespace) -> None:
    if args.command == "fees":
        print_fee_summary(engine.calculate_fees(args.amount, args.state))
    elif args.command == "transfer":
        transfer = engine.calculate_store_transfer_amount(args.amount, args.state)
        print(f"Gross:        {format_currency(transfer.original_amount)}")
        print(f"Platform fee: {format_currency(transfer.platform_fee)} (rate {transfer.fee_rate})")
        print(f"Transfer:     {format_currency(transfer.transfer_amount)}")
    elif args.command == "estimate-tax":
        print(f"Estimated tax rate: {engine.estimated_tax_rate(args.state)}")
    elif args.command == "validate-fees":
        issues = engine.validate_fees()
        if not issues:
            print("No fee configuration issues found.")
        for issue in issues:
            print(f"{issue.code}: fee {issue.fee_id} ({issue.fee_type}) - {issue.message}")


if __name__ == "__main__":
    main()
