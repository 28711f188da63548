"""
Retry scheduling for tables that could not be locked on the first pass.

The retry queue is an immutable value: every pass consumes a queue and
returns the next one, so no queue state is shared or mutated in place.

Policy:
- TIMED_OUT and FAILED outcomes are both queued for retry
- Each retry round is preceded by a fixed backoff, interruptible by the
  cancellation token
- After ``max_retry_rounds`` rounds with tables still queued, the run
  fails with RetryExhaustedError naming every outstanding table
- A CANCELLED outcome stops the run immediately with CancellationError
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass

from tablelock.config import LockConfig
from tablelock.exceptions import CancellationError, RetryExhaustedError, TableLockError
from tablelock.lifecycle import CancellationToken
from tablelock.models import AttemptOutcome, OutcomeKind, RunProgress, TableRef
from tablelock.observability import (
    ATTR_RETRY_ROUND,
    ATTR_SCHEMA,
    ATTR_TABLE_COUNT,
    Tracer,
    create_tracer,
)
from tablelock.protocols import Reporter

logger = logging.getLogger(__name__)

AttemptFunc = Callable[[TableRef], Awaitable[AttemptOutcome]]


@dataclass(frozen=True)
class RetryQueue:
    """
    FIFO of tables awaiting a later lock attempt.

    Example:
        >>> queue = RetryQueue().enqueue(TableRef("public", "a"))
        >>> len(queue)
        1
        >>> queue.describe()
        ['public.a']
    """

    entries: tuple[TableRef, ...] = ()

    def enqueue(self, table: TableRef) -> RetryQueue:
        return RetryQueue((*self.entries, table))

    def describe(self) -> list[str]:
        """Queued tables as ``schema.table`` strings, in queue order."""
        return [t.qualified_name for t in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[TableRef]:
        return iter(self.entries)

    def __bool__(self) -> bool:
        return bool(self.entries)


class RetryScheduler:
    """
    Drives lock attempts one table at a time and re-drives the failures.

    Args:
        attempt: Coroutine function making one bounded attempt for a table
        config: Lock configuration (backoff and retry budget)
        token: Cancellation token checked before every attempt and backoff
        reporter: Receives per-outcome and per-round notifications
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing.
                        Ignored if tracer is explicitly provided.

    Example:
        >>> scheduler = RetryScheduler(executor.attempt, config, token, reporter)
        >>> queue = await scheduler.run_pass(tables, progress)
        >>> await scheduler.drain(queue, progress)
    """

    def __init__(
        self,
        attempt: AttemptFunc,
        config: LockConfig,
        token: CancellationToken,
        reporter: Reporter,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._attempt = attempt
        self._config = config
        self._token = token
        self._reporter = reporter

    async def run_pass(self, tables: Iterable[TableRef], progress: RunProgress) -> RetryQueue:
        """
        Attempt every table once, strictly in order.

        Tables already locked are skipped.

        Returns:
            Queue of tables whose attempt timed out or failed

        Raises:
            CancellationError: If the run is cancelled before or during an attempt
            DatabaseConnectionError: If the connection is lost during an attempt
        """
        queue = RetryQueue()
        for table in tables:
            if progress.is_locked(table):
                continue

            if self._token.cancelled:
                raise self._cancellation(table)

            outcome = await self._attempt(table)
            if outcome.kind is OutcomeKind.CANCELLED:
                raise self._cancellation(table, outcome)

            progress.record(outcome)
            self._reporter.outcome(outcome)

            if outcome.is_retryable:
                logger.warning(
                    "Could not lock %s, queued for retry: %s",
                    table.qualified_name,
                    outcome.cause,
                    extra={"table": table.qualified_name, "outcome": outcome.kind.value},
                )
                queue = queue.enqueue(table)
        return queue

    async def run_round(
        self,
        queue: RetryQueue,
        progress: RunProgress,
        round_number: int,
    ) -> RetryQueue:
        """
        Back off, then retry every queued table once.

        Returns:
            The queue for the next round

        Raises:
            CancellationError: If the run is cancelled during backoff or an attempt
        """
        self._reporter.retry_scheduled(round_number, queue, self._config.retry_backoff)

        if await self._token.sleep(self._config.retry_backoff):
            raise self._cancellation(None)

        with self._tracer.span(
            "tablelock.scheduler.retry_round",
            {
                ATTR_SCHEMA: progress.schema,
                ATTR_RETRY_ROUND: round_number,
                ATTR_TABLE_COUNT: len(queue),
            },
        ):
            progress.retry_rounds = round_number
            return await self.run_pass(queue, progress)

    async def drain(self, queue: RetryQueue, progress: RunProgress) -> None:
        """
        Run retry rounds until the queue is empty.

        Raises:
            RetryExhaustedError: If tables are still queued after the last round
            CancellationError: If the run is cancelled
        """
        round_number = 0
        while queue:
            if round_number >= self._config.max_retry_rounds:
                raise RetryExhaustedError(queue, round_number, self._last_errors(queue, progress))
            round_number += 1
            logger.info(
                "Starting retry round %d of %d for %d table(s)",
                round_number,
                self._config.max_retry_rounds,
                len(queue),
            )
            queue = await self.run_round(queue, progress, round_number)

    def _last_errors(
        self, queue: RetryQueue, progress: RunProgress
    ) -> dict[TableRef, TableLockError]:
        errors: dict[TableRef, TableLockError] = {}
        for table in queue:
            outcome = progress.last_outcomes.get(table)
            error = outcome.to_error(self._config.bounded_wait) if outcome else None
            if error is not None:
                errors[table] = error
        return errors

    def _cancellation(
        self,
        table: TableRef | None,
        outcome: AttemptOutcome | None = None,
    ) -> CancellationError:
        reason = (outcome.cause if outcome else None) or self._token.reason or "cancelled"
        return CancellationError(reason, table, deadline_exceeded=self._token.expired)


__all__ = [
    "RetryQueue",
    "RetryScheduler",
    "AttemptFunc",
]
