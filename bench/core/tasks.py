from __future__ import annotations

from typing import Iterator, Sequence

from chainload.exceptions import CapabilityUnavailableError, ConfigurationError
from chainload.ledger.base import Credential
from chainload.ledger.workloads import Workload

from bench.core.models import Task


class CredentialPool:
    """Fixed ordered set of signing identities, assigned round-robin by task index."""

    def __init__(self, credentials: Sequence[Credential], *, max_credentials: int | None = None) -> None:
        selected = list(credentials)
        if max_credentials is not None:
            if max_credentials <= 0:
                raise ConfigurationError(
                    "CONFIGURATION",
                    "max_credentials must be > 0",
                    {"max_credentials": max_credentials},
                )
            selected = selected[:max_credentials]

        if not selected:
            raise CapabilityUnavailableError(
                "NO_CREDENTIALS",
                "credential pool is empty; nothing can sign operations",
            )
        self._credentials: tuple[Credential, ...] = tuple(selected)

    def __len__(self) -> int:
        return len(self._credentials)

    def __iter__(self) -> Iterator[Credential]:
        return iter(self._credentials)

    def for_index(self, index: int) -> Credential:
        return self._credentials[index % len(self._credentials)]


class TaskSequence:
    """Lazy, finite, restartable sequence of Task descriptors.

    Every iteration yields fresh Task objects in index order, so the same
    sequence can back several runs (one per concurrency level).
    """

    def __init__(self, total_tasks: int, pool: CredentialPool, workload: Workload) -> None:
        if total_tasks < 0:
            raise ConfigurationError(
                "CONFIGURATION",
                "total_tasks must be >= 0",
                {"total_tasks": total_tasks},
            )
        self._total = total_tasks
        self._pool = pool
        self._workload = workload

    def __len__(self) -> int:
        return self._total

    def __iter__(self) -> Iterator[Task]:
        for index in range(self._total):
            yield Task(
                index=index,
                credential=self._pool.for_index(index),
                payload=self._workload.payload_for(index),
            )
