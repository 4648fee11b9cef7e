"""
Cache Store Module

This module implements the core key-value storage with timer-driven TTL
expiry and snapshot dump/load.

Every entry owns exactly one expiry timer. Overwriting or removing a key
cancels the old timer first, and a timer that fires anyway (because it won
the race against the cancel) only removes the key if the entry it was
scheduled for is still the one stored.
"""

import logging
import threading
import time
from functools import partial
from typing import Any, Dict, List, Optional

from ..config.settings import settings
from .entry import Entry
from .scheduler import ExpiryScheduler
from .snapshot import read_snapshot, write_snapshot

logger = logging.getLogger(__name__)


def validate_ttl(ttl: Any, name: str = "ttl") -> int:
    """
    Check that ttl is an integer number of milliseconds in 1..settings.MAX_TTL_MS.

    Raises:
        ValueError: If ttl is not an int or is out of range
    """
    if isinstance(ttl, bool) or not isinstance(ttl, int) or ttl <= 0:
        raise ValueError(f"{name} must be a positive integer (milliseconds), got {ttl!r}")
    if ttl > settings.MAX_TTL_MS:
        raise ValueError(f"{name} must not exceed {settings.MAX_TTL_MS} ms, got {ttl!r}")
    return ttl


class CacheStore:
    """
    Thread-safe in-memory key-value store with per-entry TTL.

    All mutations, including expiry callbacks fired by the scheduler, go
    through one re-entrant lock, so the sequence of states for any single
    key follows the order in which operations acquire that lock. There is
    no atomicity across keys.

    Usage:
        with CacheStore(default_ttl=5000) as store:
            store.set("user:1", "alice")
            store.set("session", "abc", ttl=1000)
            store.get("user:1")       # "alice"
            store.remove("user:1")    # "alice"

    Attributes:
        default_ttl: TTL in milliseconds used when set() gets no ttl
    """

    def __init__(self, default_ttl: int = None, timer_threads: int = None):
        """
        Initialize the store and start its expiry scheduler.

        Args:
            default_ttl: Default TTL in ms (default from settings.DEFAULT_TTL_MS)
            timer_threads: Timer pool size (default from settings.TIMER_THREADS)

        Raises:
            ValueError: If default_ttl is not a positive integer
        """
        ttl = default_ttl if default_ttl is not None else settings.DEFAULT_TTL_MS
        self.default_ttl = validate_ttl(ttl, "default_ttl")

        self._entries: Dict[str, Entry] = {}
        self._lock = threading.RLock()

        # Each store owns its scheduler; stores never share timer threads
        self._scheduler = ExpiryScheduler(
            threads=timer_threads if timer_threads is not None else settings.TIMER_THREADS,
            name=f"cache-{id(self):x}",
        )
        self._scheduler.start()

    def __enter__(self) -> "CacheStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def __len__(self) -> int:
        # May include entries whose timer is due but has not run yet
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[str]:
        """
        Retrieve the value for a key.

        Returns:
            The value, or None if the key was never set, was removed or
            has expired
        """
        with self._lock:
            entry = self._entries.get(key)
        if entry is None or entry.is_expired():
            return None
        return entry.value

    def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """
        Insert or replace a value and (re)start its expiry timer.

        Args:
            key: The key to store
            value: The value to associate with the key
            ttl: Time-to-live in milliseconds (None = default_ttl)

        Returns:
            True on success

        Raises:
            ValueError: If ttl is given and is not a positive integer
        """
        ttl_ms = self.default_ttl if ttl is None else validate_ttl(ttl)

        with self._lock:
            previous = self._entries.get(key)
            if previous is not None:
                previous.cancel_expiry()

            entry = Entry(value=value)
            # The fire callback needs the store lock, so it cannot observe
            # the key before the new entry is installed below.
            entry.handle = self._scheduler.schedule(ttl_ms, partial(self._expire, key, entry))
            self._entries[key] = entry
        return True

    def remove(self, key: str) -> Optional[str]:
        """
        Delete a key and cancel its expiry timer.

        Returns:
            The previous value, or None if the key did not exist or had
            already expired
        """
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return None
            entry.cancel_expiry()

        if entry.is_expired():
            return None
        return entry.value

    def _expire(self, key: str, entry: Entry) -> None:
        """Timer callback: remove key only if entry is still the stored one."""
        with self._lock:
            if self._entries.get(key) is entry:
                del self._entries[key]
                logger.debug(f"Expired key {key!r}")

    def keys(self) -> List[str]:
        """Keys of all live (non-expired) entries."""
        now = time.monotonic()
        with self._lock:
            return [key for key, entry in self._entries.items() if not entry.is_expired(now)]

    def clear(self) -> None:
        """Remove every key and cancel every pending timer."""
        with self._lock:
            self._clear_locked()

    def _clear_locked(self) -> None:
        for entry in self._entries.values():
            entry.cancel_expiry()
        self._entries.clear()

    def snapshot(self) -> Dict[str, str]:
        """Point-in-time copy of the live key -> value view."""
        now = time.monotonic()
        with self._lock:
            return {
                key: entry.value
                for key, entry in self._entries.items()
                if not entry.is_expired(now)
            }

    def dump(self, path: str) -> str:
        """
        Write the current key -> value view to a snapshot file.

        The view is copied under the lock and written after the lock is
        released. Mutations or expiries that happen while the file is being
        written are not reflected in it.

        Returns:
            Absolute path of the written snapshot

        Raises:
            SnapshotIOError: If the file or its directory cannot be written
        """
        view = self.snapshot()
        written = write_snapshot(path, view)
        logger.info(f"Dumped {len(view)} keys to {written}")
        return written

    def load(self, path: str) -> int:
        """
        Replace the store contents with a snapshot file.

        The file is read and decoded completely before the store is
        touched; on failure the current contents stay as they are. Every
        loaded key gets a fresh timer with the default TTL.

        Returns:
            Number of keys loaded

        Raises:
            SnapshotIOError: If the file cannot be read
            SnapshotFormatError: If the file content is malformed
        """
        loaded = read_snapshot(path)

        with self._lock:
            self._clear_locked()
            for key, value in loaded.items():
                self.set(key, value)

        logger.info(f"Loaded {len(loaded)} keys from {path}")
        return len(loaded)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Stop the expiry scheduler.

        Pending timers are cancelled and in-flight expiry callbacks get up
        to timeout seconds to finish. The store must not be used afterwards.

        Args:
            timeout: Grace period in seconds (default from
                settings.SHUTDOWN_GRACE_SECONDS)

        Returns:
            True if the scheduler drained within the grace period
        """
        grace = timeout if timeout is not None else settings.SHUTDOWN_GRACE_SECONDS
        return self._scheduler.shutdown(wait=True, timeout=grace)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the store.

        Returns:
            Dictionary containing:
            - total_keys: Entries currently held (may include due entries)
            - live_keys: Entries that have not expired
            - pending_timers: Expiry timers that have not fired yet
            - default_ttl_ms: Default TTL in milliseconds
        """
        with self._lock:
            total = len(self._entries)
        return {
            "total_keys": total,
            "live_keys": len(self.keys()),
            "pending_timers": self._scheduler.pending_count(),
            "default_ttl_ms": self.default_ttl,
        }
