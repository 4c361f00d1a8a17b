"""Cancellable repeating timer.

:class:`RepeatingTimer` calls a function every ``interval`` seconds on a
single background thread until :meth:`~RepeatingTimer.cancel` is called.
The first call happens one full interval after :meth:`~RepeatingTimer.start`.
Because every call runs on the same thread, a slow call delays the next one
instead of overlapping with it.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """Run *function* every *interval* seconds until cancelled.

    Args:
        interval: Seconds between the end of one wait and the next call.
        function: Zero-argument callable invoked on each tick.
        name: Thread name, shown in debuggers and crash logs.

    Example::

        timer = RepeatingTimer(5, poll_once)
        timer.start()
        ...
        timer.cancel()
    """

    def __init__(
        self,
        interval: float,
        function: Callable[[], object],
        name: str = "storycli-timer",
    ) -> None:
        if interval <= 0:
            raise ValueError(f"Timer interval must be positive, got {interval}")
        self._interval = interval
        self._function = function
        self._name = name
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def interval(self) -> float:
        """Seconds between ticks."""
        return self._interval

    @property
    def cancelled(self) -> bool:
        """Whether :meth:`cancel` has been called."""
        return self._cancelled.is_set()

    @property
    def is_running(self) -> bool:
        """Whether the timer thread is alive."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start ticking in a daemon thread.

        Raises:
            RuntimeError: If the timer was already started.
        """
        if self._thread is not None:
            raise RuntimeError("Timer already started")
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()

    def cancel(self) -> None:
        """Stop the timer. Safe to call from inside the tick function and more than once."""
        self._cancelled.set()

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the timer thread to exit."""
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._cancelled.wait(self._interval):
            try:
                self._function()
            except Exception:
                logger.exception("Timer callback failed; stopping %s", self._name)
                self._cancelled.set()
