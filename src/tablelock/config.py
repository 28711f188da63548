"""
Configuration classes for the table locker.

This module provides:
- DatabaseConfig: Connection parameters for the target PostgreSQL server
- LockConfig: Behaviour of the locking run (mode, waits, retry budget)
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from sqlalchemy.engine import URL

from tablelock.models import LockMode

ENV_PREFIX = "TABLELOCK_"

DEFAULT_MAX_CONNECTIONS = 50
DEFAULT_BOUNDED_WAIT = 5.0
DEFAULT_RUN_DEADLINE = 24 * 60 * 60.0
DEFAULT_RETRY_BACKOFF = 5.0
DEFAULT_MAX_RETRY_ROUNDS = 10


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Connection parameters for the PostgreSQL server holding the schema.

    Attributes:
        host: Database host name or address
        port: Database port
        user: Role used to take the locks
        password: Password for ``user`` (never included in repr)
        database: Database name
        max_connections: Upper bound on pooled connections
        connect_timeout: Seconds to wait when opening a connection

    Example:
        >>> config = DatabaseConfig(
        ...     host="localhost",
        ...     port=5432,
        ...     user="postgres",
        ...     password="secret",
        ...     database="app",
        ... )
        >>> config.url().drivername
        'postgresql+asyncpg'
    """

    host: str
    port: int
    user: str
    password: str = field(repr=False)
    database: str
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    connect_timeout: float = 10.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        for name in ("host", "port", "user", "password", "database"):
            if not getattr(self, name):
                raise ValueError(
                    f"{name} is required. Pass --{_flag_for(name)} or set "
                    f"{ENV_PREFIX}{_env_for(name)}."
                )

        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}.")

        if self.max_connections < 1:
            raise ValueError(
                f"max_connections must be >= 1, got {self.max_connections}. "
                f"Use {DEFAULT_MAX_CONNECTIONS} (default) unless the server limits connections."
            )

        if self.connect_timeout <= 0:
            raise ValueError(f"connect_timeout must be positive, got {self.connect_timeout}.")

    def url(self) -> URL:
        """Build the SQLAlchemy URL for the asyncpg driver."""
        return URL.create(
            "postgresql+asyncpg",
            username=self.user,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: object,
    ) -> DatabaseConfig:
        """
        Build a config from ``TABLELOCK_*`` environment variables.

        Keyword overrides that are not None take precedence over the
        environment, which lets CLI flags win over exported variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)
            **overrides: Field values that replace environment values

        Raises:
            ValueError: If a value is missing or malformed
        """
        env = os.environ if environ is None else environ

        def pick(name: str) -> str | None:
            value = overrides.get(name)
            if value is not None:
                return str(value)
            return env.get(ENV_PREFIX + _env_for(name))

        port = pick("port")
        max_connections = pick("max_connections")
        return cls(
            host=pick("host") or "",
            port=_to_int("port", port) if port else 0,
            user=pick("user") or "",
            password=pick("password") or "",
            database=pick("database") or "",
            max_connections=(
                _to_int("max_connections", max_connections)
                if max_connections
                else DEFAULT_MAX_CONNECTIONS
            ),
        )


@dataclass(frozen=True)
class LockConfig:
    """
    Configuration for one locking run.

    Attributes:
        schema: Schema whose tables are locked
        mode: Lock mode requested for every table
        bounded_wait: Seconds a single lock attempt may wait
        run_deadline: Upper bound in seconds on the whole run
        retry_backoff: Seconds to sleep before each retry round
        max_retry_rounds: Retry rounds allowed before giving up (0 = no retries)
        precheck: Inspect pg_locks before each attempt and skip tables that
            another session already holds in a conflicting mode
        include_views: Also lock views registered in the schema

    Example:
        >>> config = LockConfig(schema="public", mode=LockMode.SHARE)
    """

    schema: str
    mode: LockMode = LockMode.EXCLUSIVE
    bounded_wait: float = DEFAULT_BOUNDED_WAIT
    run_deadline: float = DEFAULT_RUN_DEADLINE
    retry_backoff: float = DEFAULT_RETRY_BACKOFF
    max_retry_rounds: int = DEFAULT_MAX_RETRY_ROUNDS
    precheck: bool = False
    include_views: bool = False

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not self.schema:
            raise ValueError("schema name is required. Pass --schema.")

        if self.bounded_wait <= 0:
            raise ValueError(f"bounded_wait must be positive, got {self.bounded_wait}.")

        if self.run_deadline < self.bounded_wait:
            raise ValueError(
                f"run_deadline ({self.run_deadline}) must be >= bounded_wait "
                f"({self.bounded_wait})."
            )

        if self.retry_backoff < 0:
            raise ValueError(f"retry_backoff must be >= 0, got {self.retry_backoff}.")

        if self.max_retry_rounds < 0:
            raise ValueError(
                f"max_retry_rounds must be >= 0, got {self.max_retry_rounds}. "
                "Use 0 to fail on the first pass."
            )

    @property
    def lock_timeout_ms(self) -> int:
        """Bounded wait in milliseconds, as passed to PostgreSQL's lock_timeout."""
        return max(1, int(self.bounded_wait * 1000))


def _to_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}.") from None


def _env_for(name: str) -> str:
    return {"database": "DB", "max_connections": "MAX_CONNECT"}.get(name, name.upper())


def _flag_for(name: str) -> str:
    return {"database": "db", "max_connections": "max-connect"}.get(name, name)


__all__ = [
    "DatabaseConfig",
    "LockConfig",
    "ENV_PREFIX",
    "DEFAULT_MAX_CONNECTIONS",
    "DEFAULT_BOUNDED_WAIT",
    "DEFAULT_RUN_DEADLINE",
    "DEFAULT_RETRY_BACKOFF",
    "DEFAULT_MAX_RETRY_ROUNDS",
]
