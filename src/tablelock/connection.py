"""
Engine and connection helpers.

The engine mirrors the pool limits of the operator's configuration and
recycles connections after 24 hours, the same lifetime as the run
deadline. Connection failures are translated into DatabaseConnectionError
at this seam so callers never see driver exceptions.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from tablelock.config import DatabaseConfig
from tablelock.exceptions import DatabaseConnectionError

logger = logging.getLogger(__name__)

CONNECTION_LIFETIME = 24 * 60 * 60


def create_engine(config: DatabaseConfig, **kwargs: object) -> AsyncEngine:
    """
    Create the async engine for the target database.

    Args:
        config: Connection parameters
        **kwargs: Extra keyword arguments passed to ``create_async_engine``

    Returns:
        AsyncEngine using the asyncpg driver
    """
    options: dict[str, object] = {
        "pool_size": config.max_connections,
        "max_overflow": 0,
        "pool_recycle": CONNECTION_LIFETIME,
        "pool_pre_ping": True,
        "connect_args": {"timeout": config.connect_timeout},
    }
    options.update(kwargs)
    return create_async_engine(config.url(), **options)


async def open_connection(engine: AsyncEngine) -> AsyncConnection:
    """
    Check out a connection from the engine.

    Raises:
        DatabaseConnectionError: If the server cannot be reached or refuses the login
    """
    try:
        return await engine.connect()
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.error(
            "Could not connect to %s",
            engine.url.render_as_string(hide_password=True),
            exc_info=True,
        )
        raise DatabaseConnectionError(str(e)) from e


__all__ = [
    "CONNECTION_LIFETIME",
    "create_engine",
    "open_connection",
]
