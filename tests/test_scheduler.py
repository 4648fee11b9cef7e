"""
Tests for the Expiry Scheduler

These tests verify ExpiryScheduler and TimerHandle:
- Callbacks run after their delay, in deadline order
- Cancellation before firing prevents the callback
- Cancel and fire are mutually exclusive
- Shutdown cancels pending work and rejects new schedules

Run with: python -m pytest tests/test_scheduler.py -v
"""

import threading
import time

import pytest

from ttl_cache.cache.errors import SchedulerShutdownError
from ttl_cache.cache.scheduler import ExpiryScheduler


class TestSchedule:
    """Test scheduling and firing."""

    def test_callback_fires(self, scheduler: ExpiryScheduler):
        """Test a scheduled callback runs after its delay."""
        fired = threading.Event()
        handle = scheduler.schedule(20, fired.set)

        assert fired.wait(1.0)
        time.sleep(0.05)
        assert handle.done()
        assert not handle.cancelled

    def test_callbacks_fire_in_deadline_order(self, scheduler: ExpiryScheduler):
        """Test earlier deadlines fire first regardless of scheduling order."""
        order = []
        done = threading.Event()

        scheduler.schedule(150, lambda: (order.append("late"), done.set()))
        scheduler.schedule(50, lambda: order.append("early"))

        assert done.wait(1.0)
        assert order == ["early", "late"]

    def test_zero_delay(self, scheduler: ExpiryScheduler):
        """Test a zero delay fires promptly."""
        fired = threading.Event()
        scheduler.schedule(0, fired.set)
        assert fired.wait(1.0)

    def test_negative_delay_rejected(self, scheduler: ExpiryScheduler):
        """Test a negative delay is refused."""
        with pytest.raises(ValueError):
            scheduler.schedule(-1, lambda: None)

    def test_invalid_thread_count(self):
        """Test the pool size must be positive."""
        with pytest.raises(ValueError):
            ExpiryScheduler(threads=0)

    def test_failing_callback_does_not_stop_worker(self, scheduler: ExpiryScheduler):
        """Test an exception in one callback doesn't block later ones."""
        fired = threading.Event()

        def boom():
            raise RuntimeError("boom")

        scheduler.schedule(10, boom)
        scheduler.schedule(30, fired.set)

        assert fired.wait(1.0)

    def test_pending_count(self, scheduler: ExpiryScheduler):
        """Test pending_count tracks schedules and cancels."""
        handles = [scheduler.schedule(60_000, lambda: None) for _ in range(3)]
        assert scheduler.pending_count() == 3

        handles[0].cancel()
        assert scheduler.pending_count() == 2


class TestCancel:
    """Test cancellation semantics."""

    def test_cancel_prevents_callback(self, scheduler: ExpiryScheduler):
        """Test a cancelled callback never runs."""
        fired = threading.Event()
        handle = scheduler.schedule(50, fired.set)

        assert handle.cancel() is True
        assert handle.cancelled
        assert not fired.wait(0.2)

    def test_cancel_twice_is_noop(self, scheduler: ExpiryScheduler):
        """Test cancelling an already cancelled handle returns False."""
        handle = scheduler.schedule(60_000, lambda: None)
        assert handle.cancel() is True
        assert handle.cancel() is False

    def test_cancel_after_fire_is_noop(self, scheduler: ExpiryScheduler):
        """Test cancelling a handle that already fired is not an error."""
        fired = threading.Event()
        handle = scheduler.schedule(0, fired.set)

        assert fired.wait(1.0)
        time.sleep(0.05)
        assert handle.cancel() is False
        assert not handle.cancelled

    def test_cancel_races_fire_exactly_once(self, scheduler: ExpiryScheduler):
        """Test every handle either runs or is cancelled, never both."""
        runs = []
        lock = threading.Lock()

        def make_action(index):
            def action():
                with lock:
                    runs.append(index)
            return action

        handles = [scheduler.schedule(1, make_action(i)) for i in range(300)]
        time.sleep(0.001)
        cancelled = {i for i, handle in enumerate(handles) if handle.cancel()}

        time.sleep(0.3)

        assert len(runs) == len(set(runs))
        assert cancelled.isdisjoint(runs)
        assert cancelled | set(runs) == set(range(300))

    def test_compaction_keeps_live_handles(self, scheduler: ExpiryScheduler):
        """Test many cancellations don't drop live handles."""
        fired = threading.Event()
        keep = scheduler.schedule(100, fired.set)

        for _ in range(1000):
            scheduler.schedule(60_000, lambda: None).cancel()

        assert scheduler.pending_count() == 1
        assert keep.pending
        assert fired.wait(1.0)


class TestShutdown:
    """Test shutdown behavior."""

    def test_shutdown_cancels_pending(self):
        """Test pending callbacks are cancelled on shutdown."""
        sched = ExpiryScheduler()
        fired = threading.Event()
        handle = sched.schedule(100, fired.set)

        assert sched.shutdown(timeout=1.0) is True
        assert handle.cancelled
        assert not fired.wait(0.2)

    def test_schedule_after_shutdown_raises(self):
        """Test new schedules are rejected after shutdown."""
        sched = ExpiryScheduler()
        sched.start()
        sched.shutdown(timeout=1.0)

        assert sched.is_shutdown
        with pytest.raises(SchedulerShutdownError):
            sched.schedule(10, lambda: None)
        with pytest.raises(SchedulerShutdownError):
            sched.start()

    def test_shutdown_waits_for_running_callback(self):
        """Test shutdown lets an in-flight callback finish."""
        sched = ExpiryScheduler()
        started = threading.Event()
        finished = threading.Event()

        def slow():
            started.set()
            time.sleep(0.2)
            finished.set()

        sched.schedule(0, slow)
        assert started.wait(1.0)

        assert sched.shutdown(timeout=2.0) is True
        assert finished.is_set()

    def test_shutdown_gives_up_after_timeout(self):
        """Test shutdown returns False when a callback outlives the grace period."""
        sched = ExpiryScheduler()
        started = threading.Event()
        release = threading.Event()

        def blocked():
            started.set()
            release.wait(5.0)

        sched.schedule(0, blocked)
        assert started.wait(1.0)

        try:
            assert sched.shutdown(timeout=0.1) is False
        finally:
            release.set()

    def test_shutdown_is_idempotent(self):
        """Test calling shutdown twice is safe."""
        sched = ExpiryScheduler()
        sched.start()
        assert sched.shutdown(timeout=1.0) is True
        assert sched.shutdown(timeout=1.0) is True

    def test_shutdown_from_callback(self):
        """Test a callback may shut down its own scheduler."""
        sched = ExpiryScheduler()
        done = threading.Event()

        def stop_self():
            sched.shutdown(timeout=1.0)
            done.set()

        sched.schedule(0, stop_self)
        assert done.wait(1.0)
        assert sched.is_shutdown


class TestFarDeadlines:
    """Test delays far beyond any practical sleep."""

    def test_far_deadline_keeps_worker_alive(self, scheduler: ExpiryScheduler):
        """Test a huge delay at the head of the queue does not stop later callbacks."""
        far = scheduler.schedule(10**13, lambda: None)
        time.sleep(0.05)

        fired = threading.Event()
        scheduler.schedule(50, fired.set)

        assert fired.wait(1.0)
        assert all(worker.is_alive() for worker in scheduler._workers)
        assert far.pending

    def test_unrepresentable_delay_rejected(self, scheduler: ExpiryScheduler):
        """Test a delay too large for a float is refused."""
        with pytest.raises(ValueError, match="out of range"):
            scheduler.schedule(10**400, lambda: None)
        assert scheduler.pending_count() == 0
