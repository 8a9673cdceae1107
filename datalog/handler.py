"""
Python logging integration for DataLog.

Usage:
    import logging
    from datalog import DataLogConfiguration, setup_logging

    client = setup_logging(DataLogConfiguration("0123456789abcdef", source_tag="billing"))

    logger = logging.getLogger(__name__)
    logger.info("Payment processed", extra={"user_id": "u123"})
"""

import logging

from .client import DataLogClient
from .config import DataLogConfiguration
from .models import LogLevel, LogMessage

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRIBUTES = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

# Loggers whose records are never shipped: the library itself and the HTTP
# stack it sends with. Shipping those would trigger another send per record.
IGNORED_LOGGERS = ("datalog", "httpx", "httpcore")


def level_for(levelno: int) -> LogLevel:
    """Map a Python logging level onto the nearest syslog severity."""
    if levelno >= logging.CRITICAL:
        return LogLevel.CRITICAL
    if levelno >= logging.ERROR:
        return LogLevel.ERROR
    if levelno >= logging.WARNING:
        return LogLevel.WARNING
    if levelno >= logging.INFO:
        return LogLevel.INFO
    return LogLevel.DEBUG


def is_ignored_logger(name: str) -> bool:
    return any(name == prefix or name.startswith(prefix + ".") for prefix in IGNORED_LOGGERS)


class DataLogHandler(logging.Handler):
    """
    Logging handler that feeds records into a DataLogClient.

    Extra record attributes become string metadata, alongside the logger
    name and any formatted exception.
    """

    def __init__(self, client: DataLogClient, level: int = logging.INFO):
        super().__init__(level=level)
        self.client = client

    def emit(self, record: logging.LogRecord):
        if is_ignored_logger(record.name):
            return

        try:
            metadata = {"logger": record.name}
            for key, value in record.__dict__.items():
                if key not in _RECORD_ATTRIBUTES and not key.startswith("_"):
                    metadata[key] = str(value)

            if record.exc_info:
                metadata["error.stack"] = logging.Formatter().formatException(record.exc_info)

            self.client.log(
                LogMessage(
                    timestamp=record.created,
                    severity=level_for(record.levelno),
                    text=self.format(record),
                    metadata=metadata,
                )
            )
        except Exception:
            self.handleError(record)

    def flush(self):
        self.client.flush()


def setup_logging(
    configuration: DataLogConfiguration,
    level: int = logging.INFO,
    also_console: bool = False,
    **client_kwargs,
) -> DataLogClient:
    """
    Ship records from the root logger to DataLog.

    Args:
        configuration: Client settings
        level: Minimum Python logging level handed to the client
        also_console: Also log to the console
        **client_kwargs: Additional args passed to DataLogClient

    Returns:
        The DataLogClient (for stats and manual flush)
    """
    client_kwargs.setdefault("register_atexit", True)
    client = DataLogClient(configuration, **client_kwargs)

    handler = DataLogHandler(client, level=level)
    handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.addHandler(handler)

    if also_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        root_logger.addHandler(console_handler)

    if root_logger.level == logging.NOTSET or root_logger.level > level:
        root_logger.setLevel(level)

    return client
