"""
Client configuration for DataLog.

Configuration is validated once at construction and is immutable
afterwards, so a client can never be created from invalid settings.

Usage:
    from datalog import DataLogConfiguration, Region

    configuration = DataLogConfiguration(
        "0123456789abcdef",
        region=Region.ALTERNATE,
        max_batch_size=20,
        source_tag="billing",
    )

    # Or from the environment
    configuration = from_env()
"""

import os
from dataclasses import dataclass, field
from enum import Enum

from .exceptions import BatchSizeUnsupportedError, EmptyApiKeyError
from .models import LogLevel

# Largest number of messages the intake accepts in one request
MAX_BATCH_SIZE = 50


class Region(Enum):
    """Intake region. Selects which intake host receives the logs."""

    PRIMARY = "primary"
    ALTERNATE = "alternate"


class Protocol(Enum):
    """URL scheme used for intake requests."""

    HTTP = "http"
    HTTPS = "https"


@dataclass(frozen=True)
class DataLogConfiguration:
    """Validated, immutable settings for a DataLogClient."""

    api_key: str = field(repr=False)
    region: Region = Region.PRIMARY
    max_batch_size: int = MAX_BATCH_SIZE  # Messages per request, at most 50
    minimum_severity: LogLevel = LogLevel.INFO  # Keep messages at or above this severity
    protocol: Protocol = Protocol.HTTPS
    source_tag: str | None = None  # Sent as the ddsource query parameter

    def __post_init__(self):
        if not self.api_key:
            raise EmptyApiKeyError("api_key must not be empty")
        if self.max_batch_size > MAX_BATCH_SIZE:
            raise BatchSizeUnsupportedError(
                f"max_batch_size {self.max_batch_size} exceeds the supported maximum of {MAX_BATCH_SIZE}"
            )

        # Accept raw values for the enum fields ("alternate", 3, "https")
        object.__setattr__(self, "region", Region(self.region))
        object.__setattr__(self, "minimum_severity", LogLevel.parse(self.minimum_severity))
        object.__setattr__(self, "protocol", Protocol(self.protocol))

    def accepts(self, severity: LogLevel | int) -> bool:
        """Whether a message of this severity passes the minimum severity filter."""
        return severity <= self.minimum_severity


def from_env() -> DataLogConfiguration:
    """
    Create a DataLogConfiguration from environment variables.

    Environment variables:
        DATALOG_API_KEY: Intake API key (required)
        DATALOG_REGION: "primary" or "alternate" (optional)
        DATALOG_MAX_BATCH_SIZE: Messages per request (optional)
        DATALOG_MIN_SEVERITY: Level name or ordinal, e.g. "warning" or 4 (optional)
        DATALOG_PROTOCOL: "http" or "https" (optional)
        DATALOG_SOURCE: Source tag (optional)

    Raises:
        EmptyApiKeyError: if DATALOG_API_KEY is missing or empty.
        BatchSizeUnsupportedError: if DATALOG_MAX_BATCH_SIZE is above 50.
    """
    return DataLogConfiguration(
        api_key=os.environ.get("DATALOG_API_KEY", ""),
        region=Region(os.environ.get("DATALOG_REGION", Region.PRIMARY.value).lower()),
        max_batch_size=int(os.environ.get("DATALOG_MAX_BATCH_SIZE", MAX_BATCH_SIZE)),
        minimum_severity=LogLevel.parse(os.environ.get("DATALOG_MIN_SEVERITY", LogLevel.INFO)),
        protocol=Protocol(os.environ.get("DATALOG_PROTOCOL", Protocol.HTTPS.value).lower()),
        source_tag=os.environ.get("DATALOG_SOURCE") or None,
    )
