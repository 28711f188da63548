"""
OpenTelemetry availability check for tablelock.

OpenTelemetry is an optional dependency (``pip install tablelock[telemetry]``).
This module is the single place that probes for it.
"""

# Optional OpenTelemetry import - single source of truth
try:
    from opentelemetry import trace  # noqa: F401

    OTEL_AVAILABLE = True
except ImportError:
    OTEL_AVAILABLE = False

__all__ = ["OTEL_AVAILABLE"]
