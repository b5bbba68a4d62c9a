# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
from signal import SIGINT, SIGTERM, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from shipguard.app import (
    build_scheduler,
    build_services,
    check_shipment,
    issue_policy,
    mirror_stats,
    reconcile_once,
    tracking_history,
)
from shipguard.config import ConfigurationError, configure_logging, get_ledger_config
from shipguard.domain.model import from_wei, to_wei

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60
DEFAULT_DURATION_DAYS = 7.0
# Commands that run in a process of their own and write to the ledger.
ONE_SHOT_LEDGER_COMMANDS = frozenset({"cycle", "check", "issue-policy"})


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile insured shipments")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Run reconciliation cycles until interrupted")

    cycle = subparsers.add_parser("cycle", help="Run a single reconciliation cycle")
    cycle.add_argument("--json", action="store_true", help="Print the batch result as JSON")

    check = subparsers.add_parser("check", help="Check one shipment now")
    check.add_argument("shipment_id", type=str, help="Shipment identifier")
    check.add_argument("--json", action="store_true", help="Print the result as JSON")

    issue = subparsers.add_parser("issue-policy", help="Insure a shipment")
    issue.add_argument("--holder", type=str, required=True, help="Policyholder address")
    issue.add_argument("--shipment-id", type=str, required=True, help="Shipment identifier")
    issue.add_argument(
        "--coverage",
        type=str,
        required=True,
        help="Coverage amount in whole units, e.g. 1.5 (premium is 2%% of coverage)",
    )
    issue.add_argument(
        "--duration-days",
        type=float,
        default=DEFAULT_DURATION_DAYS,
        help="Policy duration in days (default: %(default)s)",
    )

    tracking = subparsers.add_parser("tracking", help="Show the tracking log for a shipment")
    tracking.add_argument("shipment_id", type=str, help="Shipment identifier")

    subparsers.add_parser("stats", help="Show mirror statistics")

    return parser.parse_args(list(argv))


def _validate(args: argparse.Namespace) -> None:
    if args.command != "issue-policy":
        return
    args.coverage_wei = to_wei(args.coverage)
    if args.coverage_wei <= 0:
        raise ValueError("Coverage must be positive")
    if args.duration_days <= 0:
        raise ValueError("Duration must be positive")
    args.duration_seconds = int(args.duration_days * SECONDS_PER_DAY)


def _require_durable_ledger(command: str) -> None:
    if command in ONE_SHOT_LEDGER_COMMANDS and get_ledger_config().backend == "memory":
        raise ConfigurationError(
            "LEDGER_BACKEND=memory is lost when the command exits; "
            "use LEDGER_BACKEND=local or http for one-shot commands"
        )


def _run_forever() -> None:
    services = build_services()
    scheduler = build_scheduler(services)
    stop_requested = threading.Event()

    def request_stop(signal_received: int, _frame: FrameType | None) -> None:
        log.info("Received signal %s, finishing the shipments in flight", signal_received)
        stop_requested.set()

    signal(SIGINT, request_stop)
    signal(SIGTERM, request_stop)

    scheduler.start()
    stop_requested.wait()
    scheduler.stop()


def _dispatch(args: argparse.Namespace) -> int:
    _require_durable_ledger(args.command)
    if args.command == "run":
        _run_forever()
    elif args.command == "cycle":
        batch = reconcile_once()
        if args.json:
            print(json.dumps(batch.as_payload(), indent=2))
        log.info(
            "Cycle finished: checked=%s, applied=%s, failed=%s, expired=%s",
            batch.total_checked,
            batch.succeeded,
            batch.failed,
            batch.expired,
        )
        return 0 if batch.failed == 0 else 3
    elif args.command == "check":
        result = check_shipment(args.shipment_id)
        if args.json:
            print(json.dumps(result.as_payload(), indent=2))
        log.info(
            "Shipment %s: outcome=%s, status=%s, claim=%s%s",
            result.shipment_id,
            result.outcome,
            result.status,
            result.claim_created,
            f", error={result.error}" if result.error else "",
        )
        return 0 if result.success else 3
    elif args.command == "issue-policy":
        policy = issue_policy(
            holder=args.holder,
            shipment_id=args.shipment_id,
            coverage_amount=args.coverage_wei,
            duration_seconds=args.duration_seconds,
        )
        log.info("Created policy %s for shipment %s", policy.policy_id, policy.shipment_id)
    elif args.command == "tracking":
        for entry in tracking_history(args.shipment_id):
            print(
                f"{entry.timestamp.isoformat()}  {entry.status:<10} "
                f"{entry.location or '-'}  {entry.note or ''}"
            )
    elif args.command == "stats":
        tracking, overview = mirror_stats()
        print(
            f"Policies: {overview.total_policies} "
            f"(active {overview.active_policies}, claimed {overview.claimed_policies})"
        )
        print(f"Claims: {overview.total_claims}")
        print(f"Total coverage: {from_wei(overview.total_coverage)}")
        print(f"Observations: {tracking.total}")
        for status, count in sorted(tracking.by_status.items()):
            print(f"  {status}: {count}")
    else:
        raise ValueError(f"Unsupported command: {args.command}")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        _validate(parsed_args)
    except ValueError:
        configure_logging(level=logging.INFO)
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        configure_logging(level=logging.DEBUG if parsed_args.verbose else None)
        exit_code = _dispatch(parsed_args)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
