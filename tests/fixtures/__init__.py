"""Shared test doubles for the tablelock tests."""

from tests.fixtures.fakes import (
    FakeEnumerator,
    FakeSession,
    RecordingReporter,
    ScriptedExecutor,
)

__all__ = [
    "FakeSession",
    "FakeEnumerator",
    "ScriptedExecutor",
    "RecordingReporter",
]
