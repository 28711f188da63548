"""
Observability utilities for tablelock.

Provides the pluggable Tracer abstraction and standard span attributes.

Note:
    OpenTelemetry is an optional dependency. All utilities in this module
    gracefully handle the case where OpenTelemetry is not installed.
"""

from tablelock.observability.attributes import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_LOCK_MODE,
    ATTR_LOCK_TIMEOUT,
    ATTR_OUTCOME,
    ATTR_RETRY_ROUND,
    ATTR_SCHEMA,
    ATTR_TABLE,
    ATTR_TABLE_COUNT,
)
from tablelock.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)
from tablelock.observability.tracing import OTEL_AVAILABLE

__all__ = [
    "OTEL_AVAILABLE",
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
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
