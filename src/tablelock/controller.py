"""
Session controller: owns the held transaction for the whole run.

Run sequence:
1. Open the session (one transaction, never committed)
2. Enumerate the schema's tables
3. Attempt every table once, then drain the retry queue in rounds
4. Report, then hold the locks until the cancellation token fires
5. Roll back, releasing every lock at once

The rollback in step 5 runs on every exit path after the session is
open, including catalog errors, retry exhaustion and cancellation, and it
is the only place locks are ever released. Cancellation is cooperative:
the signal handler only cancels the token, and this controller performs
the rollback itself once the in-flight attempt has been stopped.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from functools import partial
from typing import NoReturn

from sqlalchemy.ext.asyncio import AsyncEngine

from tablelock.catalog import CatalogEnumerator
from tablelock.config import LockConfig
from tablelock.exceptions import CancellationError, RetryExhaustedError
from tablelock.executor import LockAttemptExecutor
from tablelock.lifecycle import CancellationToken
from tablelock.models import RunProgress, RunReport, TableRef
from tablelock.observability import (
    ATTR_LOCK_MODE,
    ATTR_SCHEMA,
    ATTR_TABLE_COUNT,
    Tracer,
    create_tracer,
)
from tablelock.protocols import AttemptExecutor, Reporter, Session
from tablelock.reporting import ConsoleReporter
from tablelock.scheduler import RetryScheduler
from tablelock.session import LockSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Awaitable[Session]]
ExecutorFactory = Callable[[Session], AttemptExecutor]


class TableLocker:
    """
    Locks every table of a schema and holds the locks until cancelled.

    Args:
        config: Lock configuration
        engine: Engine to open the session on (required unless
                ``session_factory`` is given)
        session_factory: Coroutine function returning an open session
        enumerator: Catalog enumerator (defaults to CatalogEnumerator)
        executor_factory: Builds the attempt executor for a session
                          (defaults to LockAttemptExecutor)
        reporter: Operator output (defaults to ConsoleReporter)
        token: Cancellation token (defaults to one carrying the run deadline)
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing.
                        Ignored if tracer is explicitly provided.

    Example:
        >>> token = CancellationToken(timeout=config.run_deadline)
        >>> SignalHandler(token).register()
        >>> locker = TableLocker(config, engine=engine, token=token)
        >>> try:
        ...     await locker.run()
        ... except CancellationError:
        ...     print("locks released")
    """

    def __init__(
        self,
        config: LockConfig,
        *,
        engine: AsyncEngine | None = None,
        session_factory: SessionFactory | None = None,
        enumerator: CatalogEnumerator | None = None,
        executor_factory: ExecutorFactory | None = None,
        reporter: Reporter | None = None,
        token: CancellationToken | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        if session_factory is None:
            if engine is None:
                raise ValueError("Either engine or session_factory is required")
            session_factory = partial(LockSession.open, engine)

        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._config = config
        self._session_factory = session_factory
        self._enumerator = enumerator or CatalogEnumerator(
            include_views=config.include_views, tracer=self._tracer
        )
        self._executor_factory = executor_factory or self._default_executor
        self._reporter = reporter or ConsoleReporter()
        self._token = token or CancellationToken(timeout=config.run_deadline)
        self.report: RunReport | None = None

    @property
    def token(self) -> CancellationToken:
        return self._token

    async def run(self) -> NoReturn:
        """
        Lock the schema, hold the locks, and release them on cancellation.

        This coroutine never returns normally: the locks are only released
        by cancelling the token (interrupt or run deadline), which ends the
        run with CancellationError after the rollback.

        Raises:
            DatabaseConnectionError: If the session cannot be opened or is lost
            CatalogQueryError: If the tables cannot be enumerated
            RetryExhaustedError: If tables are still unlocked after the last round
            CancellationError: When the token is cancelled (always, eventually)
        """
        session = await self._session_factory()
        try:
            self.report = await self.lock_schema(session)
            self._reporter.completed(self.report)
            await self.hold()
        finally:
            if self._token.cancelled:
                self._reporter.releasing(self._token.reason or "cancelled")
            await session.rollback()

    async def lock_schema(self, session: Session) -> RunReport:
        """
        Attempt every table of the schema until all are locked.

        Returns:
            Report of the locking phase (every enumerated table is locked)

        Raises:
            CatalogQueryError: If the tables cannot be enumerated
            RetryExhaustedError: If tables are still unlocked after the last round
            CancellationError: If the token is cancelled before all tables are locked
            DatabaseConnectionError: If the connection is lost during an attempt
        """
        schema = self._config.schema
        start = time.monotonic()
        progress = RunProgress(schema, self._config.mode)

        with self._tracer.span(
            "tablelock.controller.lock_schema",
            {ATTR_SCHEMA: schema, ATTR_LOCK_MODE: self._config.mode.value},
        ) as span:
            if self._token.cancelled:
                raise self._cancellation()

            tables = await self._enumerator.list_tables(session, schema)
            if span is not None:
                span.set_attribute(ATTR_TABLE_COUNT, len(tables))
            self._reporter.tables_found(schema, tables)

            scheduler = RetryScheduler(
                self._executor_factory(session).attempt,
                self._config,
                self._token,
                self._reporter,
                tracer=self._tracer,
            )
            try:
                queue = await scheduler.run_pass(tables, progress)
                await scheduler.drain(queue, progress)
            except RetryExhaustedError as e:
                self.report = progress.to_report(time.monotonic() - start, e.tables)
                self._reporter.completed(self.report)
                raise
            except CancellationError:
                self.report = progress.to_report(
                    time.monotonic() - start, _unlocked(tables, progress)
                )
                raise

        report = progress.to_report(time.monotonic() - start)
        logger.info(
            "Locked %d table(s) in schema %s in %.2fs",
            len(report.locked),
            schema,
            report.elapsed,
            extra={"report": report.to_dict()},
        )
        return report

    async def hold(self) -> NoReturn:
        """
        Wait until the token is cancelled, keeping every lock held.

        Raises:
            CancellationError: Once the token is cancelled
        """
        self._reporter.holding(self._config.schema)
        logger.info("Holding locks on schema %s until interrupted", self._config.schema)
        await self._token.wait()
        raise self._cancellation()

    def _default_executor(self, session: Session) -> AttemptExecutor:
        return LockAttemptExecutor(
            session,  # type: ignore[arg-type]
            self._config,
            token=self._token,
            tracer=self._tracer,
        )

    def _cancellation(self) -> CancellationError:
        return CancellationError(
            self._token.reason or "cancelled",
            deadline_exceeded=self._token.expired,
        )


def _unlocked(tables: list[TableRef], progress: RunProgress) -> tuple[TableRef, ...]:
    return tuple(t for t in tables if not progress.is_locked(t))


__all__ = [
    "TableLocker",
    "SessionFactory",
    "ExecutorFactory",
]
