"""
Lock attempt executor: one bounded-wait lock request for one table.

Each attempt runs inside a SAVEPOINT of the held transaction and sets
PostgreSQL's ``lock_timeout`` to the bounded wait before issuing
``LOCK TABLE``, so the server itself abandons a lock it cannot get in
time. The client additionally races the statement against a slightly
longer backstop and against the run's cancellation token; a statement
that loses the race is cancelled and awaited, never left running.

Outcomes:
- LOCKED: the lock statement completed
- TIMED_OUT: the bounded wait elapsed, or the pre-check saw a conflicting lock
- FAILED: the lock statement returned any other error

Losing the connection is not an outcome: the server has already dropped
every lock the session held, so it raises DatabaseConnectionError.
- CANCELLED: the run deadline passed or an interrupt arrived
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from sqlalchemy import text
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import DBAPIError, InterfaceError, PendingRollbackError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from tablelock.config import LockConfig
from tablelock.exceptions import DatabaseConnectionError
from tablelock.lifecycle import CancellationToken
from tablelock.models import AttemptOutcome, LockMode, TableRef
from tablelock.observability import (
    ATTR_DB_SYSTEM,
    ATTR_LOCK_MODE,
    ATTR_LOCK_TIMEOUT,
    ATTR_OUTCOME,
    ATTR_TABLE,
    Tracer,
    create_tracer,
)
from tablelock.session import LockSession

logger = logging.getLogger(__name__)

# SQLSTATE codes that mean "could not get the lock in time"
LOCK_NOT_AVAILABLE = "55P03"
QUERY_CANCELED = "57014"
TIMEOUT_SQLSTATES = frozenset({LOCK_NOT_AVAILABLE, QUERY_CANCELED})

DEFAULT_GRACE = 1.0

SET_LOCK_TIMEOUT = text("SELECT set_config('lock_timeout', :timeout, true)")

CONFLICTING_LOCKS_QUERY = text(
    """
    SELECT count(*)
    FROM pg_catalog.pg_locks
    WHERE relation = to_regclass(:relation)
      AND granted
      AND pid <> pg_backend_pid()
      AND mode = ANY(:modes)
    """
)

_preparer = postgresql.dialect().identifier_preparer


def quote_table(table: TableRef) -> str:
    """Return ``"schema"."table"`` with both identifiers quoted."""
    return f"{_preparer.quote_identifier(table.schema)}.{_preparer.quote_identifier(table.table)}"


def lock_statement(table: TableRef, mode: LockMode) -> str:
    """
    Build the LOCK TABLE statement for ``table``.

    Example:
        >>> lock_statement(TableRef("public", "orders"), LockMode.SHARE)
        'LOCK TABLE "public"."orders" IN SHARE MODE'
    """
    return f"LOCK TABLE {quote_table(table)} IN {mode.sql} MODE"


def sqlstate_of(error: DBAPIError) -> str | None:
    """Extract the PostgreSQL SQLSTATE from a wrapped driver error, if any."""
    for candidate in (error.orig, getattr(error.orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


class LockAttemptExecutor:
    """
    Issues bounded-wait lock attempts against a shared LockSession.

    Attempts must be made one at a time; the session's statement lock
    enforces this even if a caller does not.

    Args:
        session: The session holding the run's transaction
        config: Lock configuration (mode, bounded wait, pre-check)
        token: Cancellation token carrying the run deadline
        grace: Extra seconds the client waits beyond the server-side
               lock_timeout before cancelling the statement itself
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing.
                        Ignored if tracer is explicitly provided.

    Example:
        >>> executor = LockAttemptExecutor(session, LockConfig(schema="public"), token=token)
        >>> outcome = await executor.attempt(TableRef("public", "orders"))
        >>> outcome.kind
        <OutcomeKind.LOCKED: 'locked'>
    """

    def __init__(
        self,
        session: LockSession,
        config: LockConfig,
        *,
        token: CancellationToken,
        grace: float = DEFAULT_GRACE,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._session = session
        self._config = config
        self._token = token
        self._grace = grace

    async def attempt(self, table: TableRef) -> AttemptOutcome:
        """
        Make one bounded-wait attempt to lock ``table``.

        Database errors become FAILED outcomes, except a lost connection.

        Returns:
            Exactly one AttemptOutcome

        Raises:
            DatabaseConnectionError: If the session's connection was lost
        """
        with self._tracer.span(
            "tablelock.executor.attempt",
            self._span_attributes(table) if self._enable_tracing else None,
        ) as span:
            outcome = await self._race(table)
            if span is not None:
                span.set_attribute(ATTR_OUTCOME, outcome.kind.value)

        logger.debug(
            "Lock attempt on %s: %s",
            table.qualified_name,
            outcome.kind.value,
            extra={"table": table.qualified_name, "cause": outcome.cause},
        )
        return outcome

    def _span_attributes(self, table: TableRef) -> dict[str, Any]:
        return {
            ATTR_DB_SYSTEM: "postgresql",
            ATTR_TABLE: table.qualified_name,
            ATTR_LOCK_MODE: self._config.mode.value,
            ATTR_LOCK_TIMEOUT: self._config.bounded_wait,
        }

    async def _race(self, table: TableRef) -> AttemptOutcome:
        start = time.monotonic()

        if self._token.cancelled:
            return AttemptOutcome.cancelled(table, self._token.reason or "cancelled")

        statement = asyncio.create_task(
            self._lock(table, start), name=f"tablelock:{table.qualified_name}"
        )
        cancelled = asyncio.create_task(self._token.wait())
        try:
            done, _ = await asyncio.wait(
                {statement, cancelled},
                timeout=self._config.bounded_wait + self._grace,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            await _cancel_and_wait(cancelled)
            if not statement.done():
                await _cancel_and_wait(statement)

        elapsed = time.monotonic() - start

        if statement in done and not statement.cancelled():
            return statement.result()

        if self._token.cancelled:
            return AttemptOutcome.cancelled(table, self._token.reason or "cancelled", elapsed)

        return AttemptOutcome.timed_out(
            table,
            f"no response within {self._config.bounded_wait + self._grace:g}s",
            elapsed,
        )

    async def _lock(self, table: TableRef, start: float) -> AttemptOutcome:
        try:
            async with self._session.savepoint() as conn:
                if self._config.precheck:
                    holders = await self._conflicting_locks(conn, table)
                    if holders:
                        return AttemptOutcome.timed_out(
                            table,
                            f"{holders} conflicting lock(s) held by other sessions",
                            time.monotonic() - start,
                        )

                await conn.execute(
                    SET_LOCK_TIMEOUT, {"timeout": f"{self._config.lock_timeout_ms}ms"}
                )
                await conn.execute(text(lock_statement(table, self._config.mode)))
        except DBAPIError as e:
            if e.connection_invalidated or isinstance(e, InterfaceError):
                raise _connection_lost(table, e.orig or e) from e
            elapsed = time.monotonic() - start
            if sqlstate_of(e) in TIMEOUT_SQLSTATES:
                return AttemptOutcome.timed_out(
                    table, f"lock not available within {self._config.bounded_wait:g}s", elapsed
                )
            return AttemptOutcome.failed(table, str(e.orig or e), elapsed)
        except PendingRollbackError as e:
            raise _connection_lost(table, e) from e
        except SQLAlchemyError as e:
            return AttemptOutcome.failed(table, str(e), time.monotonic() - start)

        return AttemptOutcome.locked(table, time.monotonic() - start)

    async def _conflicting_locks(self, conn: AsyncConnection, table: TableRef) -> int:
        result = await conn.execute(
            CONFLICTING_LOCKS_QUERY,
            {
                "relation": quote_table(table),
                "modes": list(self._config.mode.conflicting_modes),
            },
        )
        return int(result.scalar() or 0)


def _connection_lost(table: TableRef, cause: object) -> DatabaseConnectionError:
    return DatabaseConnectionError(f"lost while locking {table.qualified_name}: {cause}")


async def _cancel_and_wait(task: asyncio.Task[Any]) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except (SQLAlchemyError, DatabaseConnectionError) as e:
        # The run is already stopping; the session rollback ends the transaction.
        logger.warning("Error while cancelling %s: %s", task.get_name(), e)


__all__ = [
    "LockAttemptExecutor",
    "lock_statement",
    "quote_table",
    "sqlstate_of",
    "TIMEOUT_SQLSTATES",
]
