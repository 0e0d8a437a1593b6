from __future__ import annotations

from typing import Any, Sequence

from bench.core.models import BenchmarkConfig, RunReport


def run_report_payload(report: RunReport) -> dict[str, Any]:
    return {
        "concurrency_limit": report.concurrency_limit,
        "strategy": report.strategy.value,
        "total_tasks": report.total_tasks,
        "success_count": report.success_count,
        "failure_count": report.failure_count,
        "success_rate_pct": report.success_rate_pct,
        "aggregate_effect": report.aggregate_effect,
        "total_duration_ms": report.total_duration_ms,
        "throughput_tps": round(report.throughput_tps, 3),
        "peak_in_flight": report.peak_in_flight,
        "retries": report.retries,
        "error_kinds": dict(report.error_kinds),
        "error_types": dict(report.error_types),
        "verification": {
            "initial_observed_state": report.initial_observed_state,
            "final_observed_state": report.final_observed_state,
            "expected_state": report.expected_state,
            "verified": report.verified,
        },
        "latency": dict(report.latency),
    }


def build_run_report(
    config: BenchmarkConfig,
    reports: Sequence[RunReport],
    *,
    workload: str | None = None,
    target: str | None = None,
) -> dict[str, Any]:
    policy = config.retry_policy
    config_payload = {
        "mode": config.mode.value,
        "strategy": config.strategy.value,
        "workload": workload,
        "target": target,
        "total_tasks": config.total_tasks,
        "concurrency_levels": list(config.concurrency_levels),
        "max_credentials": config.max_credentials,
        "retry_policy": {
            "max_attempts": policy.max_attempts,
            "base_delay": policy.base_delay,
            "backoff_factor": policy.backoff_factor,
            "max_delay": policy.max_delay,
        },
    }
    return {
        "config": config_payload,
        "runs": [run_report_payload(r) for r in reports],
        "all_verified": all(r.verified for r in reports),
    }


_COLUMNS = (
    ("Concurrency", 11),
    ("Duration(s)", 11),
    ("TPS", 9),
    ("Success", 8),
    ("Failed", 7),
    ("Rate(%)", 8),
    ("Retries", 8),
    ("p95(ms)", 9),
    ("Verified", 8),
)


def format_summary_table(reports: Sequence[RunReport]) -> str:
    """Plain-text summary, one row per concurrency level."""
    header = " | ".join(name.rjust(width) for name, width in _COLUMNS)
    lines = [header, "-" * len(header)]
    for r in reports:
        p95 = r.latency.get("p95_ms")
        cells = (
            str(r.concurrency_limit),
            f"{r.total_duration_ms / 1000:.2f}",
            f"{r.throughput_tps:.2f}",
            str(r.success_count),
            str(r.failure_count),
            f"{r.success_rate_pct:.2f}",
            str(r.retries),
            f"{p95:.1f}" if p95 is not None else "-",
            "yes" if r.verified else "NO",
        )
        lines.append(" | ".join(cell.rjust(width) for cell, (_, width) in zip(cells, _COLUMNS)))
    return "\n".join(lines)
