"""
Unit tests for exceptions module.

Tests all exception types and their error messages.
"""

import pytest

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
from tablelock.models import TableRef

ORDERS = TableRef("public", "orders")


class TestTableLockError:
    """Tests for the base TableLockError."""

    def test_base_exception(self):
        with pytest.raises(TableLockError) as exc_info:
            raise TableLockError("Test error")
        assert str(exc_info.value) == "Test error"

    @pytest.mark.parametrize(
        "error",
        [
            DatabaseConnectionError("refused"),
            CatalogQueryError("public", "denied"),
            LockTimeout(ORDERS, 5.0),
            LockError(ORDERS, "boom"),
            CancellationError("received SIGINT"),
            RetryExhaustedError([ORDERS], 3),
            SessionClosedError(),
        ],
    )
    def test_all_errors_share_base(self, error):
        assert isinstance(error, TableLockError)


class TestMessages:
    """Error messages name the schema.table pair where one applies."""

    def test_connection_error(self):
        error = DatabaseConnectionError("connection refused")
        assert error.message == "connection refused"
        assert str(error) == "Database connection failed: connection refused"

    def test_catalog_error(self):
        error = CatalogQueryError("sales", "permission denied")
        assert error.schema == "sales"
        assert str(error) == "Failed to list tables in schema 'sales': permission denied"

    def test_lock_timeout(self):
        error = LockTimeout(ORDERS, 5.0)
        assert str(error) == "Timed out after 5.0s waiting to lock public.orders"

    def test_lock_error(self):
        assert str(LockError(ORDERS, "boom")) == "Failed to lock public.orders: boom"

    def test_cancellation_with_table(self):
        error = CancellationError("received SIGINT", ORDERS)
        assert str(error) == "Run cancelled while locking public.orders: received SIGINT"
        assert not error.deadline_exceeded

    def test_cancellation_without_table(self):
        error = CancellationError("run deadline of 10s exceeded", deadline_exceeded=True)
        assert str(error) == "Run cancelled: run deadline of 10s exceeded"
        assert error.deadline_exceeded

    def test_retry_exhausted(self):
        other = TableRef("public", "items")
        cause = LockTimeout(ORDERS, 1.0)

        error = RetryExhaustedError([ORDERS, other], 4, {ORDERS: cause})

        assert error.tables == (ORDERS, other)
        assert error.rounds == 4
        assert error.errors == {ORDERS: cause}
        assert str(error) == (
            "Could not lock 2 table(s) after 4 retry round(s): public.orders, public.items"
        )

    def test_retry_exhausted_without_errors(self):
        assert RetryExhaustedError([ORDERS], 1).errors == {}
