"""
A deferrable one-shot watchdog timer.

Unlike ``threading.Timer``, the deadline of a TimeoutExecutor can be pushed
forward any number of times before it fires. The driver defers it before
and after every step that might not terminate, so the watchdog measures the
time since the last progress marker rather than the total elapsed time.
"""

from __future__ import annotations

import threading
import time
from typing import Callable


class TimeoutExecutor:
    """
    Run an action once if the deadline passes without being deferred again.

    The watchdog is a daemon thread parked on a condition variable. It is
    woken up either by a new deadline or by cancellation, re-checks the
    deadline after every wakeup, and only fires if the deadline has really
    passed. Firing and cancellation are terminal: at most one of them
    happens per instance.
    """

    def __init__(self, action: Callable[[], None], seconds: float) -> None:
        """
        Start the watchdog.

        Args:
            action: Callable run on the watchdog thread when the deadline passes.
            seconds: Initial time allowed before the action fires.
        """
        if seconds < 0:
            raise ValueError("cannot wait a negative time")
        self._action = action
        self._condition = threading.Condition()
        self._deadline = time.monotonic() + seconds
        self._cancelled = False
        self._executed = False
        self._thread = threading.Thread(target=self._run, name="lockstep-watchdog", daemon=True)
        self._thread.start()

    def defer(self, seconds: float) -> bool:
        """
        Move the deadline to ``seconds`` from now.

        Returns:
            False if it is too late: the action has already fired.
        """
        if seconds < 0:
            raise ValueError("cannot defer a negative time")
        with self._condition:
            if self._executed:
                return False
            if self._cancelled:
                return True
            self._deadline = time.monotonic() + seconds
            self._condition.notify()
        return True

    def cancel(self) -> bool:
        """
        Stop the watchdog; the action will never fire.

        Cancelling more than once is allowed and has no further effect.

        Returns:
            False if it is too late: the action has already fired.
        """
        with self._condition:
            if self._executed:
                return False
            self._cancelled = True
            self._condition.notify()
        return True

    def executed(self) -> bool:
        """Return True if the timeout action has fired."""
        with self._condition:
            return self._executed

    def is_alive(self) -> bool:
        """Return True while the watchdog thread is still running."""
        return self._thread.is_alive()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the watchdog thread to finish."""
        self._thread.join(timeout)

    def _run(self) -> None:
        with self._condition:
            while True:
                if self._cancelled:
                    return
                remaining = self._deadline - time.monotonic()
                if remaining <= 0:
                    break
                # Woken early by defer() or cancel(); the loop re-reads both.
                self._condition.wait(remaining)
            self._executed = True
        self._action()
