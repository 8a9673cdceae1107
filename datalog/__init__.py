"""
DataLog - Client-side log shipping to the DataLog HTTP intake.

This package provides:
- DataLogClient: Batches messages, sends them, and persists failed batches for retry
- DataLogHandler / setup_logging: Bridge from the standard logging module
- FileRetryStore / MemoryRetryStore: Storage for batches that failed to send
- HttpTransport: httpx-based sender with retry backoff and a circuit breaker

Usage:
    from datalog import DataLogClient, DataLogConfiguration

    client = DataLogClient(DataLogConfiguration("0123456789abcdef"))
    client.info("Service started")
    client.flush()
"""

from .client import DataLogClient
from .config import MAX_BATCH_SIZE, DataLogConfiguration, Protocol, Region, from_env
from .exceptions import (
    BatchSizeUnsupportedError,
    ConfigurationError,
    DataLogError,
    EmptyApiKeyError,
    RetryStoreError,
)
from .handler import DataLogHandler, setup_logging
from .models import LogLevel, LogMessage, decode_batch, encode_batch
from .resilience import BackoffConfig, CircuitBreakerConfig, CircuitState
from .store import FileRetryStore, MemoryRetryStore, RetryStore
from .transport import HttpTransport, SendOutcome, Transport, build_intake_url

__all__ = [
    # Client
    "DataLogClient",
    "DataLogHandler",
    "setup_logging",
    # Configuration
    "DataLogConfiguration",
    "Region",
    "Protocol",
    "MAX_BATCH_SIZE",
    "from_env",
    # Messages
    "LogLevel",
    "LogMessage",
    "encode_batch",
    "decode_batch",
    # Collaborators
    "RetryStore",
    "FileRetryStore",
    "MemoryRetryStore",
    "Transport",
    "HttpTransport",
    "SendOutcome",
    "build_intake_url",
    "BackoffConfig",
    "CircuitBreakerConfig",
    "CircuitState",
    # Errors
    "DataLogError",
    "ConfigurationError",
    "EmptyApiKeyError",
    "BatchSizeUnsupportedError",
    "RetryStoreError",
]

__version__ = "1.0.0"
