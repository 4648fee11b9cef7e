"""Cache module for TTL-Cache."""

from .entry import Entry
from .errors import CacheError, SchedulerShutdownError, SnapshotFormatError, SnapshotIOError
from .scheduler import ExpiryScheduler, TimerHandle
from .store import CacheStore, validate_ttl

__all__ = [
    "CacheError",
    "CacheStore",
    "Entry",
    "ExpiryScheduler",
    "SchedulerShutdownError",
    "SnapshotFormatError",
    "SnapshotIOError",
    "TimerHandle",
    "validate_ttl",
]
