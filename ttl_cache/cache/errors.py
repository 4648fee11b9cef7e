"""Exception types raised by the cache engine."""


class CacheError(Exception):
    """Base error for the cache engine."""


class SnapshotIOError(CacheError):
    """Raised when a snapshot file cannot be read or written."""


class SnapshotFormatError(CacheError):
    """Raised when snapshot content does not decode to a key/value mapping."""


class SchedulerShutdownError(CacheError, RuntimeError):
    """Raised when scheduling on an expiry scheduler that was shut down."""
