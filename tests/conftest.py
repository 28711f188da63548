"""
Shared pytest fixtures for the tablelock tests.

This module provides:
- Configuration fixtures (lock_config, token)
- Fake collaborator fixtures (fake_session, reporter) sharing one event log
- Tracing fixtures (tracer)
"""

from __future__ import annotations

from typing import Any

import pytest

from tablelock import CancellationToken, LockConfig
from tablelock.observability import MockTracer
from tests.fixtures import FakeSession, RecordingReporter


@pytest.fixture
def events() -> list[tuple[Any, ...]]:
    """Event log shared by the session and reporter fakes."""
    return []


@pytest.fixture
def lock_config() -> LockConfig:
    """Lock configuration with short waits and no backoff."""
    return LockConfig(
        schema="public",
        bounded_wait=0.1,
        retry_backoff=0.0,
        max_retry_rounds=3,
    )


@pytest.fixture
def token() -> CancellationToken:
    """Cancellation token without a deadline."""
    return CancellationToken()


@pytest.fixture
def fake_session(events: list[tuple[Any, ...]]) -> FakeSession:
    return FakeSession(events)


@pytest.fixture
def reporter(events: list[tuple[Any, ...]]) -> RecordingReporter:
    return RecordingReporter(events)


@pytest.fixture
def tracer() -> MockTracer:
    return MockTracer()
