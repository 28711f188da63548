"""
Shared pytest fixtures for integration tests.

This module provides fixtures for PostgreSQL test infrastructure using
testcontainers for automatic container management.

If testcontainers or Docker is not available, tests are automatically skipped.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Generator
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import pytest
import pytest_asyncio

from tablelock import DatabaseConfig, create_engine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine


# ============================================================================
# Testcontainers Detection
# ============================================================================

TESTCONTAINERS_AVAILABLE = False

try:
    from testcontainers.postgres import PostgresContainer

    TESTCONTAINERS_AVAILABLE = True
except ImportError:
    PostgresContainer = None  # type: ignore[assignment, misc]


def is_docker_available() -> bool:
    """Check if Docker is available for running containers."""
    import subprocess

    try:
        result = subprocess.run(
            ["docker", "info"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False


DOCKER_AVAILABLE = is_docker_available()


# ============================================================================
# Skip Conditions
# ============================================================================

skip_if_no_postgres_infra = pytest.mark.skipif(
    not (TESTCONTAINERS_AVAILABLE and DOCKER_AVAILABLE),
    reason="PostgreSQL test infrastructure not available",
)


# ============================================================================
# PostgreSQL Fixtures
# ============================================================================

TABLES = ("a", "b", "c")


@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    Provide PostgreSQL container for integration tests.

    Container is shared across all tests in the session for efficiency.
    """
    if not TESTCONTAINERS_AVAILABLE or not DOCKER_AVAILABLE:
        pytest.skip("PostgreSQL testcontainer not available")

    container = PostgresContainer("postgres:16")
    container.start()

    yield container

    container.stop()


@pytest.fixture(scope="session")
def db_config(postgres_container: Any) -> DatabaseConfig:
    """Connection parameters for the container, as the CLI would build them."""
    return DatabaseConfig(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        user=postgres_container.username,
        password=postgres_container.password,
        database=postgres_container.dbname,
        max_connections=10,
    )


@pytest_asyncio.fixture
async def engine(db_config: DatabaseConfig) -> AsyncGenerator[AsyncEngine, None]:
    """Provide an engine built by tablelock.create_engine."""
    engine = create_engine(db_config)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def schema(engine: AsyncEngine) -> AsyncGenerator[str, None]:
    """
    Create a fresh schema holding tables a, b, c and a view v.

    The schema is dropped after the test.
    """
    from sqlalchemy import text

    name = f"tablelock_{uuid4().hex[:8]}"
    async with engine.begin() as conn:
        await conn.execute(text(f'CREATE SCHEMA "{name}"'))
        for table in TABLES:
            await conn.execute(text(f'CREATE TABLE "{name}"."{table}" (id INTEGER PRIMARY KEY)'))
        await conn.execute(text(f'CREATE VIEW "{name}"."v" AS SELECT id FROM "{name}"."a"'))

    yield name

    async with engine.begin() as conn:
        await conn.execute(text(f'DROP SCHEMA "{name}" CASCADE'))


@pytest_asyncio.fixture
async def blocker(engine: AsyncEngine) -> AsyncGenerator[AsyncConnection, None]:
    """A second connection used to hold conflicting locks."""
    conn = await engine.connect()
    yield conn
    await conn.rollback()
    await conn.close()


@pytest.fixture
def held_locks(engine: AsyncEngine):
    """Return a coroutine function counting granted locks of a mode in a schema."""
    from sqlalchemy import text

    query = text(
        """
        SELECT count(*)
        FROM pg_catalog.pg_locks l
        JOIN pg_catalog.pg_class c ON c.oid = l.relation
        JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
        WHERE n.nspname = :schema
          AND c.relkind = 'r'
          AND l.granted
          AND l.mode = :mode
        """
    )

    async def count(schema: str, mode: str = "ExclusiveLock") -> int:
        async with engine.connect() as conn:
            result = await conn.execute(query, {"schema": schema, "mode": mode})
            return int(result.scalar() or 0)

    return count
