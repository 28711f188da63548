"""
Value types shared by the lock engine.

This module provides:
- TableRef: Identity of one table (schema + table name)
- LockMode: The PostgreSQL lock mode requested for every table
- OutcomeKind / AttemptOutcome: The result of one lock attempt
- RunProgress: Mutable accumulator used while the run is in progress
- RunReport: Immutable summary produced once the locking phase ends
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tablelock.exceptions import (
    CancellationError,
    LockError,
    LockTimeout,
    TableLockError,
)


@dataclass(frozen=True, order=True)
class TableRef:
    """
    Reference to a single table.

    Equality and hashing are structural, so a TableRef is safe to use as a
    dictionary key or set member.

    Attributes:
        schema: Schema (namespace) name as stored in the catalog
        table: Table name as stored in the catalog

    Example:
        >>> TableRef("public", "orders").qualified_name
        'public.orders'
    """

    schema: str
    table: str

    @property
    def qualified_name(self) -> str:
        """Return the ``schema.table`` form used in operator output."""
        return f"{self.schema}.{self.table}"

    def __str__(self) -> str:
        return self.qualified_name


class LockMode(Enum):
    """
    Table lock modes supported by the locker.

    Attributes:
        EXCLUSIVE: Blocks every concurrent access except plain reads
        SHARE: Blocks concurrent writers, allows concurrent readers
    """

    EXCLUSIVE = "exclusive"
    SHARE = "share"

    @property
    def sql(self) -> str:
        """SQL keyword used in ``LOCK TABLE ... IN <keyword> MODE``."""
        return self.value.upper()

    @property
    def conflicting_modes(self) -> tuple[str, ...]:
        """``pg_locks.mode`` values held by other sessions that block this mode."""
        return _CONFLICTS[self]


_CONFLICTS: dict[LockMode, tuple[str, ...]] = {
    LockMode.EXCLUSIVE: (
        "RowShareLock",
        "RowExclusiveLock",
        "ShareUpdateExclusiveLock",
        "ShareLock",
        "ShareRowExclusiveLock",
        "ExclusiveLock",
        "AccessExclusiveLock",
    ),
    LockMode.SHARE: (
        "RowExclusiveLock",
        "ShareUpdateExclusiveLock",
        "ShareRowExclusiveLock",
        "ExclusiveLock",
        "AccessExclusiveLock",
    ),
}


class OutcomeKind(Enum):
    """
    Kind of result produced by one lock attempt.

    Attributes:
        LOCKED: The lock statement completed and the lock is held
        TIMED_OUT: The bounded wait elapsed first (retryable)
        FAILED: The lock statement returned an error (retryable, bounded)
        CANCELLED: The run deadline or an interrupt fired first (fatal)
    """

    LOCKED = "locked"
    TIMED_OUT = "timed_out"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AttemptOutcome:
    """
    Result of a single lock attempt against one table.

    Exactly one outcome is produced per attempt. Use the classmethod
    constructors rather than building instances directly.

    Attributes:
        kind: What happened
        table: The table that was attempted
        cause: Description of the error for FAILED/CANCELLED/TIMED_OUT
        elapsed: Seconds spent on the attempt
    """

    kind: OutcomeKind
    table: TableRef
    cause: str | None = None
    elapsed: float = 0.0

    @classmethod
    def locked(cls, table: TableRef, elapsed: float = 0.0) -> AttemptOutcome:
        return cls(OutcomeKind.LOCKED, table, None, elapsed)

    @classmethod
    def timed_out(
        cls, table: TableRef, cause: str | None = None, elapsed: float = 0.0
    ) -> AttemptOutcome:
        return cls(OutcomeKind.TIMED_OUT, table, cause, elapsed)

    @classmethod
    def failed(cls, table: TableRef, cause: str, elapsed: float = 0.0) -> AttemptOutcome:
        return cls(OutcomeKind.FAILED, table, cause, elapsed)

    @classmethod
    def cancelled(cls, table: TableRef, cause: str, elapsed: float = 0.0) -> AttemptOutcome:
        return cls(OutcomeKind.CANCELLED, table, cause, elapsed)

    @property
    def is_locked(self) -> bool:
        return self.kind is OutcomeKind.LOCKED

    @property
    def is_retryable(self) -> bool:
        """True for outcomes that send the table to the retry queue."""
        return self.kind in (OutcomeKind.TIMED_OUT, OutcomeKind.FAILED)

    def to_error(self, bounded_wait: float) -> TableLockError | None:
        """
        Convert a non-locked outcome to the matching exception.

        Args:
            bounded_wait: The bounded wait used for the attempt, in seconds

        Returns:
            LockTimeout, LockError or CancellationError; None for LOCKED
        """
        if self.kind is OutcomeKind.TIMED_OUT:
            return LockTimeout(self.table, bounded_wait)
        if self.kind is OutcomeKind.FAILED:
            return LockError(self.table, self.cause or "unknown error")
        if self.kind is OutcomeKind.CANCELLED:
            return CancellationError(self.cause or "cancelled", self.table)
        return None


@dataclass
class RunProgress:
    """
    Accumulates attempt outcomes while the locking phase runs.

    Only the controlling task mutates a RunProgress. Once the locking
    phase ends, ``to_report()`` produces the read-only RunReport.
    """

    schema: str
    mode: LockMode
    locked: dict[TableRef, None] = field(default_factory=dict)
    ever_failed: set[TableRef] = field(default_factory=set)
    attempts: dict[TableRef, int] = field(default_factory=dict)
    last_outcomes: dict[TableRef, AttemptOutcome] = field(default_factory=dict)
    retry_rounds: int = 0

    def record(self, outcome: AttemptOutcome) -> None:
        """
        Record one attempt outcome.

        Raises:
            ValueError: If a table that is already locked is recorded again
        """
        table = outcome.table
        if table in self.locked:
            raise ValueError(f"{table.qualified_name} is already locked")

        self.attempts[table] = self.attempts.get(table, 0) + 1
        self.last_outcomes[table] = outcome
        if outcome.is_locked:
            self.locked[table] = None
        else:
            self.ever_failed.add(table)

    def is_locked(self, table: TableRef) -> bool:
        return table in self.locked

    def to_report(
        self,
        elapsed: float,
        outstanding: tuple[TableRef, ...] = (),
    ) -> RunReport:
        return RunReport(
            schema=self.schema,
            mode=self.mode,
            locked=tuple(self.locked),
            ever_failed=frozenset(self.ever_failed),
            outstanding=outstanding,
            attempts=dict(self.attempts),
            retry_rounds=self.retry_rounds,
            elapsed=elapsed,
        )


@dataclass(frozen=True)
class RunReport:
    """
    Read-only summary of a locking run.

    Attributes:
        schema: The schema that was locked
        mode: Lock mode used for every table
        locked: Tables holding a lock, in the order they were locked
        ever_failed: Tables that had at least one non-locked outcome
        outstanding: Tables still unlocked when the run stopped
        attempts: Number of attempts made per table
        retry_rounds: Number of retry rounds that were run
        elapsed: Seconds spent in the locking phase
    """

    schema: str
    mode: LockMode
    locked: tuple[TableRef, ...] = ()
    ever_failed: frozenset[TableRef] = frozenset()
    outstanding: tuple[TableRef, ...] = ()
    attempts: dict[TableRef, int] = field(default_factory=dict)
    retry_rounds: int = 0
    elapsed: float = 0.0

    @property
    def complete(self) -> bool:
        """True when every enumerated table is locked."""
        return not self.outstanding

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the report to a dictionary for serialization.

        Returns:
            Dictionary representation with tables as ``schema.table`` strings
        """
        return {
            "schema": self.schema,
            "mode": self.mode.value,
            "locked": [t.qualified_name for t in self.locked],
            "ever_failed": sorted(t.qualified_name for t in self.ever_failed),
            "outstanding": [t.qualified_name for t in self.outstanding],
            "attempts": {t.qualified_name: n for t, n in sorted(self.attempts.items())},
            "retry_rounds": self.retry_rounds,
            "elapsed_seconds": self.elapsed,
        }


__all__ = [
    "TableRef",
    "LockMode",
    "OutcomeKind",
    "AttemptOutcome",
    "RunProgress",
    "RunReport",
]
