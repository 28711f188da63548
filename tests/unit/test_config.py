"""
Unit tests for DatabaseConfig and LockConfig.

Tests for:
- Default values
- Validation in __post_init__
- Building configs from TABLELOCK_* environment variables
- URL construction for the asyncpg driver
"""

import pytest

from tablelock import DatabaseConfig, LockConfig, LockMode
from tablelock.config import (
    DEFAULT_BOUNDED_WAIT,
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_MAX_RETRY_ROUNDS,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_RUN_DEADLINE,
)

ENV = {
    "TABLELOCK_HOST": "db.internal",
    "TABLELOCK_PORT": "5433",
    "TABLELOCK_USER": "locker",
    "TABLELOCK_PASSWORD": "s3cret",
    "TABLELOCK_DB": "app",
}


def make_db_config(**overrides) -> DatabaseConfig:
    values = {
        "host": "localhost",
        "port": 5432,
        "user": "postgres",
        "password": "secret",
        "database": "app",
    }
    values.update(overrides)
    return DatabaseConfig(**values)


class TestDatabaseConfig:
    """Tests for DatabaseConfig."""

    def test_defaults(self):
        config = make_db_config()
        assert config.max_connections == DEFAULT_MAX_CONNECTIONS
        assert config.connect_timeout == 10.0

    def test_password_not_in_repr(self):
        assert "secret" not in repr(make_db_config())

    @pytest.mark.parametrize("field", ["host", "user", "password", "database"])
    def test_required_fields(self, field):
        with pytest.raises(ValueError, match=f"{field} is required"):
            make_db_config(**{field: ""})

    def test_missing_port_names_flag_and_env(self):
        with pytest.raises(ValueError, match="--port or set TABLELOCK_PORT"):
            make_db_config(port=0)

    def test_missing_port_from_env(self):
        env = {k: v for k, v in ENV.items() if k != "TABLELOCK_PORT"}
        with pytest.raises(ValueError, match="port is required"):
            DatabaseConfig.from_env(env)

    def test_missing_database_names_flag_and_env(self):
        with pytest.raises(ValueError, match="--db or set TABLELOCK_DB"):
            make_db_config(database="")

    @pytest.mark.parametrize("port", [-1, 70000])
    def test_port_range(self, port):
        with pytest.raises(ValueError, match="port must be between"):
            make_db_config(port=port)

    def test_max_connections_must_be_positive(self):
        with pytest.raises(ValueError, match="max_connections must be >= 1"):
            make_db_config(max_connections=0)

    def test_url_uses_asyncpg(self):
        url = make_db_config().url()
        assert url.drivername == "postgresql+asyncpg"
        assert url.host == "localhost"
        assert url.port == 5432
        assert url.username == "postgres"
        assert url.database == "app"
        assert "secret" not in url.render_as_string(hide_password=True)

    def test_from_env(self):
        config = DatabaseConfig.from_env(ENV)
        assert config.host == "db.internal"
        assert config.port == 5433
        assert config.user == "locker"
        assert config.password == "s3cret"
        assert config.database == "app"
        assert config.max_connections == DEFAULT_MAX_CONNECTIONS

    def test_overrides_win_over_env(self):
        config = DatabaseConfig.from_env(ENV, host="override", port=6000, max_connections=5)
        assert config.host == "override"
        assert config.port == 6000
        assert config.max_connections == 5

    def test_none_overrides_fall_back_to_env(self):
        config = DatabaseConfig.from_env(ENV, host=None, port=None)
        assert config.host == "db.internal"
        assert config.port == 5433

    def test_max_connect_from_env(self):
        config = DatabaseConfig.from_env({**ENV, "TABLELOCK_MAX_CONNECT": "7"})
        assert config.max_connections == 7

    def test_malformed_port(self):
        with pytest.raises(ValueError, match="port must be an integer"):
            DatabaseConfig.from_env({**ENV, "TABLELOCK_PORT": "abc"})

    def test_missing_env(self):
        with pytest.raises(ValueError, match="host is required"):
            DatabaseConfig.from_env({})


class TestLockConfig:
    """Tests for LockConfig."""

    def test_defaults(self):
        config = LockConfig(schema="public")
        assert config.mode is LockMode.EXCLUSIVE
        assert config.bounded_wait == DEFAULT_BOUNDED_WAIT
        assert config.run_deadline == DEFAULT_RUN_DEADLINE
        assert config.retry_backoff == DEFAULT_RETRY_BACKOFF
        assert config.max_retry_rounds == DEFAULT_MAX_RETRY_ROUNDS
        assert config.precheck is False
        assert config.include_views is False

    def test_schema_required(self):
        with pytest.raises(ValueError, match="schema name is required"):
            LockConfig(schema="")

    @pytest.mark.parametrize("wait", [0, -1.0])
    def test_bounded_wait_must_be_positive(self, wait):
        with pytest.raises(ValueError, match="bounded_wait must be positive"):
            LockConfig(schema="public", bounded_wait=wait)

    def test_deadline_not_shorter_than_wait(self):
        with pytest.raises(ValueError, match="run_deadline"):
            LockConfig(schema="public", bounded_wait=10.0, run_deadline=5.0)

    def test_negative_backoff(self):
        with pytest.raises(ValueError, match="retry_backoff"):
            LockConfig(schema="public", retry_backoff=-1)

    def test_negative_retry_rounds(self):
        with pytest.raises(ValueError, match="max_retry_rounds"):
            LockConfig(schema="public", max_retry_rounds=-1)

    def test_zero_retry_rounds_allowed(self):
        assert LockConfig(schema="public", max_retry_rounds=0).max_retry_rounds == 0

    def test_lock_timeout_ms(self):
        assert LockConfig(schema="public", bounded_wait=5.0).lock_timeout_ms == 5000
        assert LockConfig(schema="public", bounded_wait=0.25).lock_timeout_ms == 250
        assert LockConfig(schema="public", bounded_wait=0.0001).lock_timeout_ms == 1
