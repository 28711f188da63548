"""
Structural protocols for the collaborators of the lock controller.

The controller depends on these protocols rather than on concrete
classes, so tests can substitute in-memory fakes for the database.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sqlalchemy.engine import Result
    from sqlalchemy.sql.expression import Executable

    from tablelock.exceptions import TableLockError
    from tablelock.models import AttemptOutcome, RunReport, TableRef
    from tablelock.scheduler import RetryQueue


@runtime_checkable
class StatementExecutor(Protocol):
    """Anything that can run a SQL statement (AsyncConnection, LockSession)."""

    async def execute(
        self,
        statement: Executable,
        parameters: Mapping[str, Any] | None = None,
    ) -> Result[Any]: ...


@runtime_checkable
class Session(StatementExecutor, Protocol):
    """The held transaction, as seen by the controller."""

    @property
    def is_open(self) -> bool: ...

    async def rollback(self) -> bool: ...


@runtime_checkable
class AttemptExecutor(Protocol):
    """Runs one bounded lock attempt and reports its outcome."""

    async def attempt(self, table: TableRef) -> AttemptOutcome: ...


@runtime_checkable
class Reporter(Protocol):
    """Receives progress notifications meant for the operator."""

    def tables_found(self, schema: str, tables: list[TableRef]) -> None: ...

    def outcome(self, outcome: AttemptOutcome) -> None: ...

    def retry_scheduled(self, round_number: int, queue: RetryQueue, backoff: float) -> None: ...

    def completed(self, report: RunReport) -> None: ...

    def holding(self, schema: str) -> None: ...

    def releasing(self, reason: str) -> None: ...

    def failed(self, error: TableLockError) -> None: ...


__all__ = [
    "StatementExecutor",
    "Session",
    "AttemptExecutor",
    "Reporter",
]
