"""
Standard span attributes for tablelock.

Database attributes follow OpenTelemetry semantic conventions; the rest
are namespaced under ``tablelock.``.
"""

# =============================================================================
# Database Attributes (OTEL semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (always 'postgresql')."""

ATTR_DB_OPERATION = "db.operation"
"""Database operation (e.g., 'LOCK', 'SELECT')."""

# =============================================================================
# Lock Attributes
# =============================================================================

ATTR_SCHEMA = "tablelock.schema"
"""Schema whose tables are being locked."""

ATTR_TABLE = "tablelock.table"
"""Fully qualified table name (schema.table)."""

ATTR_LOCK_MODE = "tablelock.lock.mode"
"""Requested lock mode ('exclusive' or 'share')."""

ATTR_LOCK_TIMEOUT = "tablelock.lock.timeout"
"""Bounded wait for one attempt, in seconds."""

ATTR_OUTCOME = "tablelock.attempt.outcome"
"""Attempt outcome ('locked', 'timed_out', 'failed', 'cancelled')."""

ATTR_TABLE_COUNT = "tablelock.table.count"
"""Number of tables enumerated or queued (integer)."""

ATTR_RETRY_ROUND = "tablelock.retry.round"
"""1-based retry round number (integer)."""

__all__ = [
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
    "ATTR_SCHEMA",
    "ATTR_TABLE",
    "ATTR_LOCK_MODE",
    "ATTR_LOCK_TIMEOUT",
    "ATTR_OUTCOME",
    "ATTR_TABLE_COUNT",
    "ATTR_RETRY_ROUND",
]
