"""
Catalog enumeration: list the tables registered in a schema.

Enumeration is all-or-nothing. Any database error is raised as
CatalogQueryError and no partial list is ever returned.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tablelock.exceptions import CatalogQueryError
from tablelock.models import TableRef
from tablelock.observability import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_SCHEMA,
    ATTR_TABLE_COUNT,
    Tracer,
    create_tracer,
)
from tablelock.protocols import StatementExecutor

logger = logging.getLogger(__name__)

BASE_TABLE = "BASE TABLE"
VIEW = "VIEW"

LIST_TABLES_QUERY = text(
    """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = :schema
      AND table_type = ANY(CAST(:table_types AS text[]))
    ORDER BY table_name
    """
)


class CatalogEnumerator:
    """
    Lists the tables of a schema from ``information_schema.tables``.

    Args:
        include_views: Also return views registered in the schema
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to enable OpenTelemetry tracing.
                        Ignored if tracer is explicitly provided.

    Example:
        >>> enumerator = CatalogEnumerator()
        >>> tables = await enumerator.list_tables(session, "public")
        >>> [t.qualified_name for t in tables]
        ['public.a', 'public.b']
    """

    def __init__(
        self,
        *,
        include_views: bool = False,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._table_types = [BASE_TABLE, VIEW] if include_views else [BASE_TABLE]

    async def list_tables(self, conn: StatementExecutor, schema: str) -> list[TableRef]:
        """
        Return the tables registered in ``schema``.

        Args:
            conn: Live connection or session to query through
            schema: Schema name, matched exactly

        Returns:
            Tables ordered by name (empty if the schema has none)

        Raises:
            CatalogQueryError: If the query fails or the connection is unusable
        """
        with self._tracer.span(
            "tablelock.catalog.list_tables",
            {
                ATTR_DB_SYSTEM: "postgresql",
                ATTR_DB_OPERATION: "SELECT",
                ATTR_SCHEMA: schema,
            },
        ) as span:
            try:
                result = await conn.execute(
                    LIST_TABLES_QUERY,
                    {"schema": schema, "table_types": self._table_types},
                )
                names = result.scalars().all()
            except SQLAlchemyError as e:
                logger.error("Error listing tables in schema %s: %s", schema, e)
                raise CatalogQueryError(schema, str(e)) from e

            tables = [TableRef(schema, name) for name in names]
            if span is not None:
                span.set_attribute(ATTR_TABLE_COUNT, len(tables))

        logger.info("Found %d table(s) in schema %s", len(tables), schema)
        return tables


__all__ = [
    "CatalogEnumerator",
    "LIST_TABLES_QUERY",
]
