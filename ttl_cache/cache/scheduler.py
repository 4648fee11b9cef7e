"""
Expiry Scheduler Module

Runs delayed callbacks on a small pool of timer threads.

Every scheduled callback is represented by a TimerHandle. A handle moves
through exactly one of two paths:

    PENDING -> CANCELLED            (cancel() won the race)
    PENDING -> RUNNING -> DONE      (a timer thread claimed it first)

The transition out of PENDING happens under the handle's own lock, so a
cancelled callback never runs and a callback never runs twice.
"""

import heapq
import itertools
import logging
import threading
import time
from typing import Callable, List, Optional

from .errors import SchedulerShutdownError

logger = logging.getLogger(__name__)

_PENDING = "pending"
_RUNNING = "running"
_DONE = "done"
_CANCELLED = "cancelled"

# Rebuild the heap once this many cancelled handles are waiting in it
_COMPACT_THRESHOLD = 256

# Longest single sleep of a timer thread; far deadlines are re-checked after it
_MAX_WAIT_SECONDS = 3600.0


class TimerHandle:
    """
    A pending scheduled callback.

    Handles are created by ExpiryScheduler.schedule() and should not be
    instantiated directly.

    Attributes:
        deadline: time.monotonic() value at which the callback becomes due
    """

    __slots__ = ("deadline", "_seq", "_action", "_state", "_lock", "_scheduler")

    def __init__(self, deadline: float, seq: int, action: Callable[[], None], scheduler: "ExpiryScheduler"):
        self.deadline = deadline
        self._seq = seq
        self._action: Optional[Callable[[], None]] = action
        self._state = _PENDING
        self._lock = threading.Lock()
        self._scheduler = scheduler

    def __lt__(self, other: "TimerHandle") -> bool:
        return (self.deadline, self._seq) < (other.deadline, other._seq)

    def __repr__(self) -> str:
        return f"TimerHandle(deadline={self.deadline:.3f}, state={self._state})"

    @property
    def pending(self) -> bool:
        """True while the callback has neither run nor been cancelled."""
        return self._state == _PENDING

    @property
    def cancelled(self) -> bool:
        return self._state == _CANCELLED

    def done(self) -> bool:
        """True once the callback has finished running or was cancelled."""
        return self._state in (_DONE, _CANCELLED)

    def cancel(self) -> bool:
        """
        Cancel the callback if it has not started yet.

        Returns:
            True if this call prevented the callback from running, False if
            it already ran, is running, or was cancelled before.
        """
        with self._lock:
            if self._state != _PENDING:
                return False
            self._state = _CANCELLED
            self._action = None
        self._scheduler._note_cancelled()
        return True

    def _claim(self) -> Optional[Callable[[], None]]:
        with self._lock:
            if self._state != _PENDING:
                return None
            self._state = _RUNNING
            return self._action

    def _finish(self) -> None:
        with self._lock:
            self._state = _DONE
            self._action = None


class ExpiryScheduler:
    """
    Heap-backed delayed callback executor.

    Usage:
        scheduler = ExpiryScheduler(threads=1)
        handle = scheduler.schedule(1000, lambda: print("fired"))
        handle.cancel()
        scheduler.shutdown()

    Callbacks run on the scheduler's own daemon threads. Exceptions raised
    by a callback are logged and do not stop the thread.
    """

    def __init__(self, threads: int = 1, name: str = "expiry"):
        if threads <= 0:
            raise ValueError("threads must be positive")
        self.threads = threads
        self.name = name

        self._queue: List[TimerHandle] = []
        self._cond = threading.Condition()
        self._seq = itertools.count()
        self._cancelled = 0
        self._active = 0
        self._shutdown = False
        self._workers: List[threading.Thread] = []

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def start(self) -> None:
        """Start the timer threads. Safe to call more than once."""
        with self._cond:
            if self._shutdown:
                raise SchedulerShutdownError(f"scheduler {self.name!r} is shut down")
            self._start_workers()

    def _start_workers(self) -> None:
        # Caller holds self._cond
        if self._workers:
            return
        for index in range(self.threads):
            worker = threading.Thread(
                target=self._run,
                name=f"{self.name}-timer-{index}",
                daemon=True,
            )
            self._workers.append(worker)
            worker.start()
        logger.debug(f"Started {self.threads} timer thread(s) for {self.name!r}")

    def schedule(self, delay_ms: float, action: Callable[[], None]) -> TimerHandle:
        """
        Run action after delay_ms milliseconds.

        Raises:
            ValueError: If delay_ms is negative or too large to represent
            SchedulerShutdownError: If the scheduler was shut down
        """
        if delay_ms < 0:
            raise ValueError("delay_ms must not be negative")
        try:
            delay = delay_ms / 1000.0
        except OverflowError:
            raise ValueError(f"delay_ms out of range: {delay_ms!r}") from None

        with self._cond:
            if self._shutdown:
                raise SchedulerShutdownError(f"scheduler {self.name!r} is shut down")
            self._start_workers()

            handle = TimerHandle(
                deadline=time.monotonic() + delay,
                seq=next(self._seq),
                action=action,
                scheduler=self,
            )
            heapq.heappush(self._queue, handle)
            if self._queue[0] is handle:
                # New earliest deadline; wake a sleeper to recompute its wait
                self._cond.notify()
        return handle

    def pending_count(self) -> int:
        """Number of scheduled callbacks that have not run or been cancelled."""
        with self._cond:
            return sum(1 for handle in self._queue if handle.pending)

    def _note_cancelled(self) -> None:
        with self._cond:
            self._cancelled += 1
            if self._cancelled > _COMPACT_THRESHOLD and self._cancelled * 2 > len(self._queue):
                self._queue = [handle for handle in self._queue if handle.pending]
                heapq.heapify(self._queue)
                self._cancelled = 0

    def _next_due(self) -> Optional[TimerHandle]:
        # Caller holds self._cond. Returns None once shut down.
        while not self._shutdown:
            if not self._queue:
                self._cond.wait()
                continue

            head = self._queue[0]
            if not head.pending:
                heapq.heappop(self._queue)
                self._cancelled = max(0, self._cancelled - 1)
                continue

            delay = head.deadline - time.monotonic()
            if delay > 0:
                self._cond.wait(min(delay, _MAX_WAIT_SECONDS))
                continue

            return heapq.heappop(self._queue)
        return None

    def _run(self) -> None:
        while True:
            with self._cond:
                handle = self._next_due()
                if handle is None:
                    return
                self._active += 1

            try:
                action = handle._claim()
                if action is not None:
                    try:
                        action()
                    except Exception:
                        logger.exception(f"Expiry callback failed in {self.name!r}")
                    finally:
                        handle._finish()
            finally:
                with self._cond:
                    self._active -= 1
                    self._cond.notify_all()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Stop the scheduler.

        New schedules are rejected and every pending callback is cancelled.
        Callbacks already running are allowed to finish.

        Args:
            wait: Block until the timer threads exit
            timeout: Upper bound in seconds for the wait (None = forever)

        Returns:
            True if every timer thread has exited when this returns.
            Threads still busy after the timeout are abandoned; they are
            daemon threads and will not keep the process alive.
        """
        with self._cond:
            first_call = not self._shutdown
            self._shutdown = True
            pending, self._queue = self._queue, []
            self._cond.notify_all()

        for handle in pending:
            handle.cancel()

        if first_call:
            logger.debug(f"Scheduler {self.name!r} shut down, cancelled {len(pending)} pending timer(s)")

        current = threading.current_thread()
        others = [worker for worker in self._workers if worker is not current]

        if wait:
            deadline = None if timeout is None else time.monotonic() + timeout
            for worker in others:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                worker.join(remaining)

        drained = not any(worker.is_alive() for worker in others)
        if wait and not drained:
            logger.warning(f"Scheduler {self.name!r} did not drain within {timeout}s")
        return drained
