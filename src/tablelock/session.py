"""
The lock session: one long-lived transaction that holds every table lock.

A LockSession moves through exactly two states::

    OPEN --rollback()--> ROLLED_BACK

There is deliberately no commit: the session exists to hold locks, never
to persist writes. Rolling back releases every lock at once.

Every statement goes through the session's statement lock, so at most one
statement is in flight against the connection at any instant. Lock
attempts additionally run inside a SAVEPOINT, so a lock statement that
times out or fails on the server rolls back only to the savepoint and the
locks already held survive.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any

from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction
from sqlalchemy.sql.expression import Executable

from tablelock.connection import open_connection
from tablelock.exceptions import DatabaseConnectionError, SessionClosedError

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """
    State of a lock session.

    Attributes:
        OPEN: Transaction is open; locks acquired so far are held
        ROLLED_BACK: Transaction was rolled back; all locks are released (terminal)
    """

    OPEN = "open"
    ROLLED_BACK = "rolled_back"


class LockSession:
    """
    Owns the single transaction used for the whole locking run.

    Use ``LockSession.open(engine)`` rather than the constructor.

    Example:
        >>> session = await LockSession.open(engine)
        >>> try:
        ...     async with session.savepoint() as conn:
        ...         await conn.execute(text('LOCK TABLE "public"."a" IN EXCLUSIVE MODE'))
        ... finally:
        ...     await session.rollback()
    """

    def __init__(self, connection: AsyncConnection, transaction: AsyncTransaction) -> None:
        self._connection = connection
        self._transaction = transaction
        self._state = SessionState.OPEN
        self._statement_lock = asyncio.Lock()
        self._rollback_count = 0

    @classmethod
    async def open(cls, engine: AsyncEngine) -> LockSession:
        """
        Check out a connection and begin the held transaction.

        Raises:
            DatabaseConnectionError: If the connection or transaction cannot be opened
        """
        connection = await open_connection(engine)
        try:
            transaction = await connection.begin()
        except SQLAlchemyError as e:
            await connection.close()
            raise DatabaseConnectionError(f"could not begin transaction: {e}") from e

        logger.debug("Opened lock session")
        return cls(connection, transaction)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is SessionState.OPEN

    @property
    def rollback_count(self) -> int:
        """Number of times rollback actually ran (0 or 1)."""
        return self._rollback_count

    async def execute(
        self,
        statement: Executable,
        parameters: Mapping[str, Any] | None = None,
    ) -> Result[Any]:
        """
        Execute a statement directly in the held transaction.

        Raises:
            SessionClosedError: If the session was rolled back
        """
        async with self._statement_lock:
            self._ensure_open()
            return await self._connection.execute(statement, dict(parameters or {}))

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[AsyncConnection]:
        """
        Run statements inside a SAVEPOINT of the held transaction.

        The savepoint is released on success, so locks taken inside it stay
        held by the outer transaction. On error it is rolled back and the
        error propagates.

        Yields:
            The session's connection; only use it inside the block

        Raises:
            SessionClosedError: If the session was rolled back
        """
        async with self._statement_lock:
            self._ensure_open()
            async with self._connection.begin_nested():
                yield self._connection

    async def rollback(self) -> bool:
        """
        Roll back the held transaction, releasing every lock.

        Safe to call more than once; only the first call does anything.
        Waits for any in-flight statement to finish first.

        Returns:
            True if this call performed the rollback
        """
        async with self._statement_lock:
            if self._state is SessionState.ROLLED_BACK:
                return False
            self._state = SessionState.ROLLED_BACK
            self._rollback_count += 1

            try:
                await self._transaction.rollback()
                logger.info("Rolled back lock session, all table locks released")
            except SQLAlchemyError as e:
                # Closing the connection still ends the transaction server-side.
                logger.warning("Error rolling back lock session: %s", e)
            finally:
                await self._connection.close()
            return True

    def _ensure_open(self) -> None:
        if self._state is not SessionState.OPEN:
            raise SessionClosedError()


__all__ = [
    "LockSession",
    "SessionState",
]
