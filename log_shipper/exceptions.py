"""
Exceptions raised by the log shipper.

Only setup failures and watcher runtime failures leave the pipeline as
exceptions. Per-file upload failures are logged and never raised.
"""


class LogShipperError(Exception):
    """Base class for all log shipper errors."""


class UnknownProviderError(LogShipperError, LookupError):
    """Raised when no storage provider is registered under a name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"storage provider {name} not found")
        self.name = name


class StorageConnectionError(LogShipperError, ConnectionError):
    """Raised when a storage backend cannot be set up."""


class WatcherSetupError(LogShipperError):
    """Raised when the directory watch cannot be established."""


class WatcherError(LogShipperError):
    """Raised when the directory watch fails while running."""


class PoolExhaustedError(LogShipperError):
    """Raised on fail-fast submission when every upload worker is busy."""
