"""
Integration tests for tablelock.

These tests require an actual PostgreSQL instance, provisioned by
testcontainers. They are skipped automatically if Docker or
testcontainers is not available.

Run integration tests:
    pytest tests/integration/ -v

Skip integration tests:
    pytest tests/ -v -m "not integration"
"""
