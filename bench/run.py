from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import Callable

from web3 import Web3

from chainload.config import Settings, load_settings
from chainload.errors import describe_error
from chainload.exceptions import (
    CapabilityUnavailableError,
    ChainloadError,
    ConfigurationError,
    LedgerError,
)
from chainload.ledger import JsonRpcLedgerClient, Workload, build_workload
from chainload.ledger.base import Credential
from chainload.ledger.credentials import (
    credentials_from_accounts,
    credentials_from_keys,
    load_private_keys_file,
    parse_private_keys,
)
from chainload.ledger.workloads import parse_ether_amount
from chainload.logger import session_logger as logger

from bench.api.report import build_run_report, format_summary_table
from bench.core.engine import Benchmark
from bench.core.models import BenchmarkConfig, Mode, RetryPolicy, RunReport, Strategy
from bench.core.timeparse import parse_duration_to_seconds
from bench.fixtures.accounts import fixture_credentials
from bench.fixtures.ledger_fixture import FIXTURE_TARGET, InMemoryLedger

DEFAULT_CONCURRENCY = "1,2,4,8,16,32,64,128,256"


def _build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="chainload ledger benchmark harness")
    parser.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in Mode],
        default=Mode.LIVE.value,
        help="live: JSON-RPC node at --rpc-url; fixture: in-process ledger (no network)",
    )
    parser.add_argument(
        "--workload",
        type=str,
        choices=["counter", "deposit"],
        default="counter",
        help="counter: Counter.increment(); deposit: AccountBalance.deposit() with --deposit-amount",
    )
    parser.add_argument(
        "--rpc-url",
        type=str,
        default=settings.rpc_url,
        help="Ledger JSON-RPC endpoint (env CHAINLOAD_RPC_URL)",
    )
    parser.add_argument(
        "--contract",
        type=str,
        default=None,
        help="Deployed target contract address (required in live mode)",
    )
    parser.add_argument("--total-tasks", type=int, default=1000, help="Operations per concurrency level")
    parser.add_argument(
        "--concurrency",
        type=str,
        default=DEFAULT_CONCURRENCY,
        help="Comma separated concurrency levels to sweep (e.g. 1,8,32)",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        choices=[s.value for s in Strategy],
        default=Strategy.COOPERATIVE.value,
        help="cooperative: one event loop; workers: one thread + connection per in-flight task",
    )
    parser.add_argument("--max-attempts", type=int, default=100, help="Attempts per task, first one included")
    parser.add_argument("--base-delay", type=str, default="1s", help="First retry delay (e.g. 500ms, 1s)")
    parser.add_argument("--backoff-factor", type=float, default=2.0, help="Delay multiplier per attempt (>= 1)")
    parser.add_argument("--max-delay", type=str, default=None, help="Optional cap on a single retry delay")
    parser.add_argument(
        "--deposit-amount",
        type=str,
        default="0.01",
        help="Ether sent with each deposit (deposit workload)",
    )
    parser.add_argument(
        "--private-keys-file",
        type=str,
        default=None,
        help="File with signing keys, one per line or comma separated (default: CHAINLOAD_PRIVATE_KEYS, then node accounts)",
    )
    parser.add_argument("--max-credentials", type=int, default=20, help="Use at most this many credentials")
    parser.add_argument(
        "--http-timeout",
        type=str,
        default=str(settings.http_timeout_seconds),
        help="Per-request HTTP timeout",
    )
    parser.add_argument(
        "--receipt-timeout",
        type=str,
        default=str(settings.receipt_timeout_seconds),
        help="Max wait for a receipt",
    )
    parser.add_argument(
        "--poll-interval",
        type=str,
        default=str(settings.poll_interval_seconds),
        help="Receipt polling interval",
    )
    parser.add_argument("--gas-limit", type=int, default=None, help="Fixed gas limit (default: eth_estimateGas)")
    parser.add_argument(
        "--fixture-latency",
        type=str,
        default="0ms",
        help="Simulated submit/confirm latency (fixture mode)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write the JSON report to this path",
    )
    return parser


def _parse_levels(raw: str) -> tuple[int, ...]:
    try:
        levels = tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError as exc:
        raise ConfigurationError(
            "CONFIGURATION",
            "concurrency levels must be comma separated integers",
            {"concurrency": raw},
        ) from exc
    if not levels:
        raise ConfigurationError("CONFIGURATION", "at least one concurrency level is required", {"concurrency": raw})
    return levels


def _build_config(args) -> BenchmarkConfig:
    max_delay = parse_duration_to_seconds(args.max_delay) if args.max_delay else None
    return BenchmarkConfig(
        total_tasks=args.total_tasks,
        concurrency_levels=_parse_levels(args.concurrency),
        retry_policy=RetryPolicy(
            max_attempts=args.max_attempts,
            base_delay=parse_duration_to_seconds(args.base_delay),
            backoff_factor=args.backoff_factor,
            max_delay=max_delay,
        ),
        strategy=Strategy(args.strategy),
        mode=Mode(args.mode),
        max_credentials=args.max_credentials,
    )


def _build_workload(args) -> Workload:
    amount = parse_ether_amount(args.deposit_amount) if args.workload == "deposit" else None
    return build_workload(args.workload, deposit_amount_wei=amount)


async def _live_credentials(args, settings: Settings, ledger: JsonRpcLedgerClient) -> list[Credential]:
    if args.private_keys_file:
        return credentials_from_keys(load_private_keys_file(args.private_keys_file))
    if settings.private_keys:
        return credentials_from_keys(parse_private_keys(settings.private_keys))

    try:
        accounts = await ledger.list_accounts()
    except LedgerError as exc:
        raise CapabilityUnavailableError(
            "LEDGER_UNAVAILABLE",
            f"cannot list node accounts at {args.rpc_url}: {exc.message}",
            {"rpc_url": args.rpc_url, "kind": exc.kind},
        ) from exc
    return credentials_from_accounts(accounts)


async def _run(args, settings: Settings, config: BenchmarkConfig) -> list[RunReport]:
    workload = _build_workload(args)

    if config.mode is Mode.FIXTURE:
        latency = parse_duration_to_seconds(args.fixture_latency)
        ledger = InMemoryLedger(
            workload,
            submit_latency=latency,
            confirm_latency=latency,
            logger=logger,
        )
        benchmark = Benchmark(
            config,
            ledger_factory=lambda: ledger,
            credentials=fixture_credentials(),
            workload=workload,
            target=FIXTURE_TARGET,
            logger=logger,
        )
        return await benchmark.run()

    if not args.contract:
        raise ConfigurationError("MISSING_TARGET", "live mode requires --contract")
    if not Web3.is_address(args.contract):
        raise ConfigurationError("MISSING_TARGET", "--contract is not an address", {"contract": args.contract})

    http_timeout = parse_duration_to_seconds(args.http_timeout)
    receipt_timeout = parse_duration_to_seconds(args.receipt_timeout)
    poll_interval = parse_duration_to_seconds(args.poll_interval)
    if poll_interval <= 0:
        raise ConfigurationError("CONFIGURATION", "--poll-interval must be > 0", {"poll_interval": args.poll_interval})

    def ledger_factory() -> JsonRpcLedgerClient:
        return JsonRpcLedgerClient(
            args.rpc_url,
            workload,
            args.contract,
            timeout_seconds=http_timeout,
            poll_interval_seconds=poll_interval,
            receipt_timeout_seconds=receipt_timeout,
            gas_limit=args.gas_limit,
            logger=logger,
        )

    accounts_client = ledger_factory()
    try:
        credentials = await _live_credentials(args, settings, accounts_client)
    finally:
        await accounts_client.aclose()

    benchmark = Benchmark(
        config,
        ledger_factory=ledger_factory,
        credentials=credentials,
        workload=workload,
        target=args.contract,
        logger=logger,
    )
    return await benchmark.run()


def main(argv: list[str] | None = None, *, settings_loader: Callable[[], Settings] = load_settings) -> int:
    settings = settings_loader()
    parser = _build_parser(settings)
    args = parser.parse_args(argv)

    try:
        config = _build_config(args)
        reports = asyncio.run(_run(args, settings, config))
    except ChainloadError as exc:
        diagnostics = describe_error(exc)
        logger.error(
            "bench.fatal",
            event="bench.fatal",
            error_code=diagnostics["error_code"],
            error=diagnostics["message"],
            details=diagnostics["details"],
            recovery=diagnostics["recovery"],
        )
        return 2

    print(format_summary_table(reports))

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = build_run_report(
            config,
            reports,
            workload=args.workload,
            target=args.contract if config.mode is Mode.LIVE else FIXTURE_TARGET,
        )
        output_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

        logger.info(
            "bench.report_written",
            event="bench.report_written",
            path=str(output_path),
        )

    if not all(r.verified for r in reports):
        logger.error(
            "bench.unverified_runs",
            event="bench.unverified_runs",
            levels=[r.concurrency_limit for r in reports if not r.verified],
            recovery="Compare expected vs observed state; check for external writers to the contract during the run.",
        )
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
