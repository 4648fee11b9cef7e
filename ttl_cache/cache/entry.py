"""Stored cache entry: a value plus the timer that will expire it."""

import time
from dataclasses import dataclass
from typing import Optional

from .scheduler import TimerHandle


@dataclass(eq=False)
class Entry:
    """
    A value held by CacheStore.

    Entries compare by identity. The expiry callback scheduled for an entry
    is bound to that exact instance, so a timer that fires after the key was
    overwritten finds a different Entry and leaves it alone.

    Attributes:
        value: The cached value
        handle: Pending expiry timer, set once when the entry is installed
    """

    value: str
    handle: Optional[TimerHandle] = None

    @property
    def expires_at(self) -> Optional[float]:
        """Monotonic deadline of the expiry timer, or None if unscheduled."""
        return self.handle.deadline if self.handle is not None else None

    def is_expired(self, now: Optional[float] = None) -> bool:
        if self.handle is None:
            return False
        if now is None:
            now = time.monotonic()
        return self.handle.deadline <= now

    def cancel_expiry(self) -> bool:
        """Cancel the expiry timer. Cancelling twice is a no-op."""
        if self.handle is None:
            return False
        return self.handle.cancel()
