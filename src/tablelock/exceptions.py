"""Library exceptions for the tablelock package."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tablelock.models import TableRef


class TableLockError(Exception):
    """Base exception for tablelock."""

    pass


class DatabaseConnectionError(TableLockError):
    """
    Raised when the database connection cannot be established or maintained.

    Fatal: raised when the session cannot be opened, or when its connection
    is lost mid-run (the server has then already released every lock).
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Database connection failed: {message}")


class CatalogQueryError(TableLockError):
    """Raised when the tables of a schema cannot be enumerated."""

    def __init__(self, schema: str, message: str) -> None:
        self.schema = schema
        super().__init__(f"Failed to list tables in schema '{schema}': {message}")


class LockTimeout(TableLockError):
    """
    Raised when a lock could not be acquired within the bounded wait.

    Retryable: the table is queued for a later retry round.

    Attributes:
        table: The table whose lock attempt timed out
        timeout: The bounded wait in seconds
    """

    def __init__(self, table: TableRef, timeout: float) -> None:
        self.table = table
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting to lock {table.qualified_name}")


class LockError(TableLockError):
    """
    Raised when the lock statement itself failed (not a timeout).

    Attributes:
        table: The table the statement targeted
        cause: Description of the database error
    """

    def __init__(self, table: TableRef, cause: str) -> None:
        self.table = table
        self.cause = cause
        super().__init__(f"Failed to lock {table.qualified_name}: {cause}")


class CancellationError(TableLockError):
    """
    Raised when the run is cancelled by an interrupt or the run deadline.

    The session is always rolled back before this propagates out of the
    controller.

    Attributes:
        reason: Why the run was cancelled
        table: The table being worked on when cancellation fired, if any
        deadline_exceeded: True if the run deadline fired rather than an interrupt
    """

    def __init__(
        self,
        reason: str,
        table: TableRef | None = None,
        *,
        deadline_exceeded: bool = False,
    ) -> None:
        self.reason = reason
        self.table = table
        self.deadline_exceeded = deadline_exceeded
        where = f" while locking {table.qualified_name}" if table else ""
        super().__init__(f"Run cancelled{where}: {reason}")


class RetryExhaustedError(TableLockError):
    """
    Raised when tables are still unlocked after the last retry round.

    Attributes:
        tables: Tables that never reached the Locked outcome
        rounds: Number of retry rounds that were run
        errors: Last LockTimeout or LockError recorded per table
    """

    def __init__(
        self,
        tables: Iterable[TableRef],
        rounds: int,
        errors: Mapping[TableRef, TableLockError] | None = None,
    ) -> None:
        self.tables = tuple(tables)
        self.rounds = rounds
        self.errors = dict(errors or {})
        names = ", ".join(t.qualified_name for t in self.tables)
        super().__init__(
            f"Could not lock {len(self.tables)} table(s) after {rounds} retry round(s): {names}"
        )


class SessionClosedError(TableLockError):
    """Raised when a statement is issued against a rolled-back session."""

    def __init__(self) -> None:
        super().__init__("Lock session has already been rolled back")


__all__ = [
    "TableLockError",
    "DatabaseConnectionError",
    "CatalogQueryError",
    "LockTimeout",
    "LockError",
    "CancellationError",
    "RetryExhaustedError",
    "SessionClosedError",
]
