from __future__ import annotations

from chainload.exceptions import LedgerError
from chainload.ledger.base import LedgerClient
from chainload.logger import Logger, session_logger

from bench.core.models import RunReport


class Verifier:
    """Post-run consistency check against the ledger's observed state.

    Read-only: it queries the target once and never submits anything. A
    failed read leaves the run unverified instead of discarding it.
    """

    def __init__(self, ledger: LedgerClient, target: str, *, logger: Logger | None = None) -> None:
        self._ledger = ledger
        self._target = target
        self._logger = logger or session_logger

    async def verify(self, report: RunReport, *, initial_state: int) -> RunReport:
        try:
            final_state: int | None = await self._ledger.query_state(self._target)
        except LedgerError as exc:
            unverified = report.with_verification(
                initial_observed_state=initial_state,
                final_observed_state=None,
            )
            self._logger.error(
                "bench.verification_failed",
                event="bench.verification_failed",
                concurrency_limit=report.concurrency_limit,
                expected_state=unverified.expected_state,
                final_state=None,
                error_kind=exc.kind,
                error=exc.message,
                success_count=report.success_count,
            )
            return unverified

        verified = report.with_verification(
            initial_observed_state=initial_state,
            final_observed_state=final_state,
        )

        if verified.verified:
            self._logger.info(
                "bench.verification_passed",
                event="bench.verification_passed",
                concurrency_limit=report.concurrency_limit,
                initial_state=initial_state,
                final_state=final_state,
                aggregate_effect=report.aggregate_effect,
            )
        else:
            self._logger.error(
                "bench.verification_failed",
                event="bench.verification_failed",
                concurrency_limit=report.concurrency_limit,
                expected_state=verified.expected_state,
                final_state=final_state,
                delta=final_state - (verified.expected_state or 0),
                success_count=report.success_count,
            )
        return verified
