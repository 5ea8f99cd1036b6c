"""
Tests for the deferrable watchdog (lockstep/timeout.py).

These tests use short real-time deadlines, so each waits on an Event with a
generous upper bound rather than sleeping for a fixed amount.
"""

import threading
import time
import unittest

from lockstep.timeout import TimeoutExecutor


class TestTimeoutExecutorFiring(unittest.TestCase):
    """Tests for when the action runs."""

    def test_fires_after_deadline(self):
        """Test that the action runs once the deadline passes."""
        fired = threading.Event()
        start = time.monotonic()
        timer = TimeoutExecutor(fired.set, 0.05)

        self.assertTrue(fired.wait(5))
        self.assertGreaterEqual(time.monotonic() - start, 0.05)
        timer.join(5)
        self.assertTrue(timer.executed())
        self.assertFalse(timer.is_alive())

    def test_fires_only_once(self):
        """Test that the action is never run a second time."""
        calls = []
        timer = TimeoutExecutor(lambda: calls.append(1), 0.01)
        timer.join(5)
        time.sleep(0.05)

        self.assertEqual(calls, [1])

    def test_defer_pushes_deadline(self):
        """Test that repeated defers keep the action from firing."""
        fired = threading.Event()
        timer = TimeoutExecutor(fired.set, 0.2)
        for _ in range(5):
            time.sleep(0.05)
            self.assertTrue(timer.defer(0.2))

        self.assertFalse(fired.is_set())
        self.assertTrue(fired.wait(5))

    def test_defer_after_fire_returns_false(self):
        """Test that deferring too late reports failure."""
        timer = TimeoutExecutor(lambda: None, 0.01)
        timer.join(5)

        self.assertFalse(timer.defer(1.0))


class TestTimeoutExecutorCancel(unittest.TestCase):
    """Tests for cancellation."""

    def test_cancel_prevents_firing(self):
        """Test that a cancelled timer never runs its action."""
        fired = threading.Event()
        timer = TimeoutExecutor(fired.set, 0.05)

        self.assertTrue(timer.cancel())
        timer.join(5)
        self.assertFalse(fired.wait(0.1))
        self.assertFalse(timer.executed())
        self.assertFalse(timer.is_alive())

    def test_cancel_is_idempotent(self):
        """Test that cancelling twice is allowed."""
        timer = TimeoutExecutor(lambda: None, 10)

        self.assertTrue(timer.cancel())
        self.assertTrue(timer.cancel())

    def test_defer_after_cancel_has_no_effect(self):
        """Test that a cancelled timer cannot be revived by defer()."""
        fired = threading.Event()
        timer = TimeoutExecutor(fired.set, 10)
        timer.cancel()

        self.assertTrue(timer.defer(0.01))
        self.assertFalse(fired.wait(0.1))

    def test_cancel_after_fire_returns_false(self):
        """Test that cancelling too late reports failure."""
        timer = TimeoutExecutor(lambda: None, 0.01)
        timer.join(5)

        self.assertFalse(timer.cancel())
        self.assertTrue(timer.executed())


class TestTimeoutExecutorValidation(unittest.TestCase):
    """Tests for argument checking."""

    def test_negative_initial_time_rejected(self):
        with self.assertRaises(ValueError):
            TimeoutExecutor(lambda: None, -1)

    def test_negative_defer_rejected(self):
        timer = TimeoutExecutor(lambda: None, 10)
        try:
            with self.assertRaises(ValueError):
                timer.defer(-0.5)
        finally:
            timer.cancel()

    def test_watchdog_is_daemon(self):
        """Test that a forgotten watchdog never keeps the interpreter alive."""
        timer = TimeoutExecutor(lambda: None, 10)
        try:
            self.assertTrue(timer._thread.daemon)
        finally:
            timer.cancel()


if __name__ == "__main__":
    unittest.main()
