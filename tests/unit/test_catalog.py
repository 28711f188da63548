"""
Unit tests for CatalogEnumerator.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import ProgrammingError

from tablelock import CatalogEnumerator, CatalogQueryError, TableRef
from tablelock.catalog import LIST_TABLES_QUERY
from tablelock.observability import MockTracer


def make_conn(names: list[str]) -> AsyncMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = names
    conn = AsyncMock()
    conn.execute.return_value = result
    return conn


class TestCatalogEnumerator:
    """Tests for CatalogEnumerator.list_tables()."""

    @pytest.mark.asyncio
    async def test_lists_tables(self):
        conn = make_conn(["a", "b", "c"])

        tables = await CatalogEnumerator(enable_tracing=False).list_tables(conn, "public")

        assert tables == [TableRef("public", "a"), TableRef("public", "b"), TableRef("public", "c")]

    @pytest.mark.asyncio
    async def test_queries_base_tables_only_by_default(self):
        conn = make_conn([])

        await CatalogEnumerator(enable_tracing=False).list_tables(conn, "sales")

        statement, params = conn.execute.await_args.args
        assert statement is LIST_TABLES_QUERY
        assert params == {"schema": "sales", "table_types": ["BASE TABLE"]}

    @pytest.mark.asyncio
    async def test_include_views(self):
        conn = make_conn([])

        await CatalogEnumerator(include_views=True, enable_tracing=False).list_tables(
            conn, "public"
        )

        _, params = conn.execute.await_args.args
        assert params["table_types"] == ["BASE TABLE", "VIEW"]

    @pytest.mark.asyncio
    async def test_empty_schema(self):
        tables = await CatalogEnumerator(enable_tracing=False).list_tables(
            make_conn([]), "empty"
        )
        assert tables == []

    @pytest.mark.asyncio
    async def test_query_error_raises_catalog_error(self):
        conn = AsyncMock()
        conn.execute.side_effect = ProgrammingError("SELECT", {}, Exception("no privilege"))

        with pytest.raises(CatalogQueryError) as exc_info:
            await CatalogEnumerator(enable_tracing=False).list_tables(conn, "public")

        assert exc_info.value.schema == "public"
        assert "public" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_creates_span(self):
        tracer = MockTracer()

        await CatalogEnumerator(tracer=tracer).list_tables(make_conn(["a"]), "public")

        assert tracer.span_names == ["tablelock.catalog.list_tables"]
        _, attributes = tracer.spans[0]
        assert attributes["tablelock.schema"] == "public"
