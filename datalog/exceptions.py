"""Exception types raised by the DataLog client library."""


class DataLogError(Exception):
    """Base class for all DataLog errors."""


class ConfigurationError(DataLogError):
    """Raised when a DataLogConfiguration cannot be created."""


class EmptyApiKeyError(ConfigurationError):
    """The API key was empty."""


class BatchSizeUnsupportedError(ConfigurationError):
    """The requested batch size is above what the intake accepts."""


class RetryStoreError(DataLogError):
    """A retry store could not read or write a pending record."""
