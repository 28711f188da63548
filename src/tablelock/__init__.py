"""
tablelock - hold locks on every table of a PostgreSQL schema.

All tables of a schema are locked inside one transaction, one table at a
time, with a bounded wait per attempt and bounded retry rounds for the
tables that could not be locked immediately. The locks are held until the
process is interrupted, at which point the transaction is rolled back and
every lock is released at once.

Example:
    >>> from tablelock import (
    ...     CancellationToken,
    ...     DatabaseConfig,
    ...     LockConfig,
    ...     SignalHandler,
    ...     TableLocker,
    ...     create_engine,
    ... )
    >>>
    >>> engine = create_engine(DatabaseConfig.from_env())
    >>> config = LockConfig(schema="public")
    >>> token = CancellationToken(timeout=config.run_deadline)
    >>> SignalHandler(token).register()
    >>> await TableLocker(config, engine=engine, token=token).run()
"""

from tablelock.catalog import CatalogEnumerator
from tablelock.config import DatabaseConfig, LockConfig
from tablelock.connection import create_engine, open_connection
from tablelock.controller import TableLocker
from tablelock.exceptions import (
    CancellationError,
    CatalogQueryError,
    DatabaseConnectionError,
    LockError,
    LockTimeout,
    RetryExhaustedError,
    SessionClosedError,
    TableLockError,
)
from tablelock.executor import LockAttemptExecutor, lock_statement
from tablelock.lifecycle import CancellationToken, SignalHandler
from tablelock.models import (
    AttemptOutcome,
    LockMode,
    OutcomeKind,
    RunProgress,
    RunReport,
    TableRef,
)
from tablelock.reporting import ConsoleReporter, format_summary
from tablelock.scheduler import RetryQueue, RetryScheduler
from tablelock.session import LockSession, SessionState

__version__ = "0.1.0"

__all__ = [
    # Config
    "DatabaseConfig",
    "LockConfig",
    "create_engine",
    "open_connection",
    # Models
    "TableRef",
    "LockMode",
    "OutcomeKind",
    "AttemptOutcome",
    "RunProgress",
    "RunReport",
    # Engine
    "CatalogEnumerator",
    "LockSession",
    "SessionState",
    "LockAttemptExecutor",
    "lock_statement",
    "RetryQueue",
    "RetryScheduler",
    "TableLocker",
    # Lifecycle
    "CancellationToken",
    "SignalHandler",
    # Reporting
    "ConsoleReporter",
    "format_summary",
    # Exceptions
    "TableLockError",
    "DatabaseConnectionError",
    "CatalogQueryError",
    "LockTimeout",
    "LockError",
    "CancellationError",
    "RetryExhaustedError",
    "SessionClosedError",
]
