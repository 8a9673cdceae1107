"""
Log message model and batch wire codec.

A batch travels as a JSON array of objects shaped like:

    {"timestamp": 1700000000.5, "status": 3, "message": "...", "metadata": {...}}

The same bytes are written to the retry store when a send fails, so a
recovered record decodes back into the exact batch that was attempted.
"""

import time
from collections.abc import Iterable
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class LogLevel(IntEnum):
    """Syslog severity ordinals. Lower values are more severe."""

    EMERGENCY = 0
    ALERT = 1
    CRITICAL = 2
    ERROR = 3
    WARNING = 4
    NOTICE = 5
    INFO = 6
    DEBUG = 7

    @classmethod
    def parse(cls, value: "str | int | LogLevel") -> "LogLevel":
        """Accept an ordinal, a numeric string, or a level name ("warning")."""
        if isinstance(value, str):
            value = value.strip()
            if value.isdigit():
                return cls(int(value))
            try:
                return cls[value.upper()]
            except KeyError:
                raise ValueError(f"Unknown log level: {value!r}") from None
        return cls(value)


class LogMessage(BaseModel):
    """One log entry. Immutable once constructed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: float
    severity: LogLevel = Field(alias="status")
    text: str = Field(alias="message")
    metadata: dict[str, str] | None = None

    @classmethod
    def create(cls, severity: LogLevel | int, text: str, **metadata) -> "LogMessage":
        """Build a message stamped with the current time."""
        return cls(
            timestamp=time.time(),
            severity=LogLevel(severity),
            text=text,
            metadata={key: str(value) for key, value in metadata.items()} or None,
        )

    def to_wire(self) -> dict:
        """Return the JSON-ready dict sent to the intake."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


_BATCH = TypeAdapter(list[LogMessage])


def encode_batch(messages: Iterable[LogMessage]) -> bytes:
    """Serialize a batch into the intake's JSON array payload."""
    return _BATCH.dump_json(list(messages), by_alias=True, exclude_none=True)


def decode_batch(payload: bytes | str) -> list[LogMessage]:
    """
    Parse a payload produced by encode_batch.

    Raises:
        pydantic.ValidationError: if the payload is not a valid batch.
    """
    return _BATCH.validate_json(payload)
