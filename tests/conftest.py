"""Pytest configuration and shared fixtures for DataLog tests."""

import pytest

from datalog.config import DataLogConfiguration
from datalog.models import LogLevel, LogMessage
from datalog.store import MemoryRetryStore
from tests.mocks import RecordingTransport


@pytest.fixture
def configuration() -> DataLogConfiguration:
    """A configuration with a small batch size."""
    return DataLogConfiguration("test-api-key", max_batch_size=3)


@pytest.fixture
def store() -> MemoryRetryStore:
    return MemoryRetryStore()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def failing_transport() -> RecordingTransport:
    return RecordingTransport(succeed=False)


def make_message(text: str = "Test message", severity: LogLevel = LogLevel.NOTICE, **metadata) -> LogMessage:
    return LogMessage(
        timestamp=1_700_000_000.25,
        severity=severity,
        text=text,
        metadata=metadata or None,
    )


@pytest.fixture
def message_factory():
    """Factory for messages with a fixed timestamp."""
    return make_message
