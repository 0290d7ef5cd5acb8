"""Command line entry points for supply control.

    tkoin-core mint-to-ceiling
    tkoin-core run-fee-harvest-cycle [--account ADDR ...]
    tkoin-core burn-pending AMOUNT
    tkoin-core verify-transfer-fee AMOUNT [--tolerance TOKENS]

Exit status: 0 success, 1 operation failed, 2 configuration missing or
invalid (nothing was submitted), 3 a harvest cycle withdrew fees it could
not burn. After a 3, run ``burn-pending`` with the logged amount.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable, Sequence
from decimal import Decimal, InvalidOperation
from functools import partial
from typing import TypeVar

from pydantic import BaseModel

from tkoin_core.config import EngineSettings, load_treasury_authority
from tkoin_core.engine.harvest import FeeHarvestPipeline
from tkoin_core.engine.lease import LeaseHeldError, MintLease
from tkoin_core.engine.minter import CappedSupplyMinter
from tkoin_core.engine.verifier import DEFAULT_TOLERANCE_TOKENS, TransferFeeVerifier, VerifierConfig
from tkoin_core.errors import ConfigurationError
from tkoin_core.ledger.base import LedgerAccessor
from tkoin_core.ledger.http import HttpLedger
from tkoin_core.logging_utils import configure_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_BURN_PENDING = 3

T = TypeVar("T")


def _decimal(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except InvalidOperation as exc:
        msg = f"invalid token amount: {value!r}"
        raise argparse.ArgumentTypeError(msg) from exc
    if not amount.is_finite():
        msg = f"token amount must be finite: {value!r}"
        raise argparse.ArgumentTypeError(msg)
    return amount


def _token_amount(value: str) -> Decimal:
    amount = _decimal(value)
    if amount <= 0:
        msg = f"token amount must be positive: {value!r}"
        raise argparse.ArgumentTypeError(msg)
    return amount


def _tolerance_amount(value: str) -> Decimal:
    amount = _decimal(value)
    if amount < 0:
        msg = f"tolerance must not be negative: {value!r}"
        raise argparse.ArgumentTypeError(msg)
    return amount


def _base_units(value: str) -> int:
    try:
        amount = int(value)
    except ValueError as exc:
        msg = f"invalid base unit amount: {value!r}"
        raise argparse.ArgumentTypeError(msg) from exc
    if amount <= 0:
        msg = f"base unit amount must be positive: {value!r}"
        raise argparse.ArgumentTypeError(msg)
    return amount


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tkoin-core", description="Tkoin supply control")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("mint-to-ceiling", help="Mint the deficit up to the supply ceiling")

    harvest_parser = subparsers.add_parser(
        "run-fee-harvest-cycle", help="Harvest, withdraw and burn withheld transfer fees",
    )
    harvest_parser.add_argument(
        "--account", action="append", default=None,
        help="Holding account to harvest (repeatable; default: the treasury account)",
    )
    harvest_parser.add_argument(
        "--no-lease", action="store_true",
        help="Skip the per-mint lease (only when the scheduler already serializes runs)",
    )

    pending_parser = subparsers.add_parser(
        "burn-pending", help="Burn fees a failed harvest cycle left in the vault",
    )
    pending_parser.add_argument(
        "amount", type=_base_units, help="Pending amount in base units, as logged by the cycle",
    )
    pending_parser.add_argument(
        "--no-lease", action="store_true",
        help="Skip the per-mint lease (only when the scheduler already serializes runs)",
    )

    verify_parser = subparsers.add_parser(
        "verify-transfer-fee", help="Send a test transfer and check the withheld fee",
    )
    verify_parser.add_argument("amount", type=_token_amount, help="Test transfer amount in whole tokens")
    verify_parser.add_argument(
        "--tolerance", type=_tolerance_amount, default=DEFAULT_TOLERANCE_TOKENS,
        help="Absolute tolerance in tokens (default: %(default)s)",
    )
    return parser


def _emit(report: BaseModel, as_json: bool) -> None:
    if as_json:
        print(report.model_dump_json(indent=2))


def _leased(lease: MintLease, skip: bool, operation: Callable[[], T]) -> T:
    """Run ``operation`` while holding ``lease`` unless ``skip`` is set."""
    try:
        if not skip:
            lease.acquire()
        return operation()
    finally:
        lease.release()


def main(argv: Sequence[str] | None = None, ledger: LedgerAccessor | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = EngineSettings.from_env()
    except ConfigurationError as exc:
        configure_logging(log_path=args.log_file)
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG
    configure_logging(level=settings.log_level, log_path=args.log_file)

    owned: HttpLedger | None = None
    try:
        deployment = settings.load_deployment()
        authority = load_treasury_authority(settings, deployment)
        if ledger is None:
            ledger = owned = HttpLedger(
                settings.resolve_ledger_url(deployment),
                confirm_timeout=settings.confirm_timeout,
            )
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG

    try:
        return _dispatch(args, settings, deployment, authority, ledger)
    finally:
        if owned is not None:
            owned.close()


def _dispatch(args, settings, deployment, authority, ledger) -> int:
    logger.info("Mint %s, treasury %s", deployment.mint_address, authority.address)

    if args.command == "mint-to-ceiling":
        report = CappedSupplyMinter(ledger, deployment).mint_to_ceiling(authority)
        _emit(report, args.json)
        if not report.ok:
            logger.error("mint-to-ceiling failed at %s: %s", report.outcome.stage, report.outcome.reason)
        return EXIT_OK if report.ok else EXIT_FAILED

    if args.command in ("run-fee-harvest-cycle", "burn-pending"):
        pipeline = FeeHarvestPipeline(ledger, deployment)
        lease = MintLease(settings.lock_dir, deployment.mint_address)
        if args.command == "run-fee-harvest-cycle":
            operation = partial(pipeline.run, authority, args.account)
        else:
            operation = partial(pipeline.burn_pending, authority, args.amount)
        try:
            result = _leased(lease, args.no_lease, operation)
        except LeaseHeldError as exc:
            logger.error("%s", exc)
            return EXIT_FAILED
        except ConfigurationError as exc:
            logger.error("Configuration error: %s", exc)
            return EXIT_CONFIG
        _emit(result, args.json)

        if args.command == "burn-pending":
            if not result.ok:
                logger.error("burn-pending failed: %s", result.reason)
                return EXIT_FAILED
            logger.info("Burned %d pending base units, tx %s", result.delta, result.signature)
            return EXIT_OK

        failed = result.failed_stage
        if failed is not None:
            logger.error("Fee harvest cycle failed at %s: %s", failed.stage, failed.reason)
            return EXIT_BURN_PENDING if result.pending_burn > 0 else EXIT_FAILED
        logger.info("Fee harvest cycle complete, burned %d base units", result.burned)
        return EXIT_OK

    verifier = TransferFeeVerifier(
        ledger, deployment, VerifierConfig(tolerance_tokens=args.tolerance),
    )
    check = verifier.verify(authority, args.amount)
    _emit(check, args.json)
    if not check.outcome.ok:
        logger.error("verify-transfer-fee failed at %s: %s", check.outcome.stage, check.outcome.reason)
    return EXIT_OK if check.ok else EXIT_FAILED


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
