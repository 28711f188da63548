"""
Command line entry point.

Usage:
    tablelock --schema public --host localhost --port 5432 \\
        --user postgres --password secret --db app
    TABLELOCK_PASSWORD=secret tablelock --schema public --mode share --precheck

Exit codes:
    0  never after locks were held (the operator must interrupt to release)
    1  locks released after an interrupt
    2  invalid configuration
    3  connection or catalog error
    4  lock error or retry budget exhausted
    5  run deadline exceeded
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

from tablelock.config import (
    DEFAULT_BOUNDED_WAIT,
    DEFAULT_MAX_RETRY_ROUNDS,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_RUN_DEADLINE,
    DatabaseConfig,
    LockConfig,
)
from tablelock.connection import create_engine
from tablelock.controller import TableLocker
from tablelock.exceptions import (
    CancellationError,
    CatalogQueryError,
    DatabaseConnectionError,
    TableLockError,
)
from tablelock.lifecycle import CancellationToken, SignalHandler
from tablelock.models import LockMode
from tablelock.reporting import ConsoleReporter

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 1
EXIT_CONFIG = 2
EXIT_CONNECTION = 3
EXIT_LOCK = 4
EXIT_DEADLINE = 5


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tablelock",
        description=(
            "Lock every table in a PostgreSQL schema inside one transaction and "
            "hold the locks until interrupted (Ctrl+C releases them)."
        ),
    )
    parser.add_argument("--schema", required=True, help="The name of the schema to lock tables in")

    db = parser.add_argument_group("database (falls back to TABLELOCK_* environment variables)")
    db.add_argument("--host", help="The database host")
    db.add_argument("--port", type=int, help="The database port")
    db.add_argument("--user", help="The database user")
    db.add_argument("--password", help="The database password")
    db.add_argument("--db", dest="database", help="The database name")
    db.add_argument(
        "--max-connect",
        dest="max_connections",
        type=int,
        help="The maximum number of connections to the database (default: 50)",
    )

    lock = parser.add_argument_group("locking")
    lock.add_argument(
        "--mode",
        choices=[m.value for m in LockMode],
        default=LockMode.EXCLUSIVE.value,
        help="Lock mode for every table (default: exclusive)",
    )
    lock.add_argument(
        "--bounded-wait",
        type=float,
        default=DEFAULT_BOUNDED_WAIT,
        help="Seconds to wait for each lock before retrying later (default: %(default)s)",
    )
    lock.add_argument(
        "--retry-backoff",
        type=float,
        default=DEFAULT_RETRY_BACKOFF,
        help="Seconds to wait before each retry round (default: %(default)s)",
    )
    lock.add_argument(
        "--max-retry-rounds",
        type=int,
        default=DEFAULT_MAX_RETRY_ROUNDS,
        help="Retry rounds before giving up (default: %(default)s)",
    )
    lock.add_argument(
        "--run-deadline",
        type=float,
        default=DEFAULT_RUN_DEADLINE,
        help="Upper bound in seconds on the whole run (default: %(default)s)",
    )
    lock.add_argument(
        "--precheck",
        action="store_true",
        help="Skip tables another session already holds in a conflicting mode",
    )
    lock.add_argument(
        "--include-views", action="store_true", help="Also lock views in the schema"
    )

    output = parser.add_argument_group("output")
    output.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: %(default)s)",
    )
    output.add_argument("--no-color", action="store_true", help="Disable coloured output")
    return parser


def build_configs(args: argparse.Namespace) -> tuple[DatabaseConfig, LockConfig]:
    """
    Build the configuration objects from parsed arguments.

    Raises:
        ValueError: If a required value is missing or invalid
    """
    database = DatabaseConfig.from_env(
        host=args.host,
        port=args.port,
        user=args.user,
        password=args.password,
        database=args.database,
        max_connections=args.max_connections,
    )
    lock = LockConfig(
        schema=args.schema,
        mode=LockMode(args.mode),
        bounded_wait=args.bounded_wait,
        run_deadline=args.run_deadline,
        retry_backoff=args.retry_backoff,
        max_retry_rounds=args.max_retry_rounds,
        precheck=args.precheck,
        include_views=args.include_views,
    )
    return database, lock


async def run(
    database: DatabaseConfig,
    lock: LockConfig,
    reporter: ConsoleReporter,
) -> int:
    """Run the locker until it is interrupted and return the exit code."""
    token = CancellationToken(timeout=lock.run_deadline)
    signals = SignalHandler(token)
    signals.register()

    engine = create_engine(database)
    locker = TableLocker(lock, engine=engine, reporter=reporter, token=token)
    try:
        await locker.run()
    except CancellationError as e:
        if e.deadline_exceeded:
            reporter.failed(e)
            return EXIT_DEADLINE
        return EXIT_INTERRUPTED
    except (DatabaseConnectionError, CatalogQueryError) as e:
        reporter.failed(e)
        return EXIT_CONNECTION
    except TableLockError as e:
        logger.error("Locking failed: %s", e, exc_info=True)
        reporter.failed(e)
        return EXIT_LOCK
    finally:
        signals.unregister()
        await engine.dispose()


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    reporter = ConsoleReporter(no_color=args.no_color)

    try:
        database, lock = build_configs(args)
    except ValueError as e:
        reporter.console.print(f"Error: {e}", style="red", markup=False)
        return EXIT_CONFIG

    return asyncio.run(run(database, lock, reporter))


if __name__ == "__main__":
    sys.exit(main())
