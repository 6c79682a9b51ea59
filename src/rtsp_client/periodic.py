#!/usr/bin/env python3
"""
Periodic background task

A worker thread that calls a function repeatedly, waiting a fixed minimum
delay after each call. Used for datagram polling and playback-time
accrual.

Cancellation contract: once cancel() returns, the function is not
running and will never be called again. cancel() joins the worker, so
a tick that is blocked in a bounded receive finishes first.
"""

import threading
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Run a callable every `interval_s` seconds (fixed delay) on its own thread.

    Exceptions raised by the callable are logged and the schedule continues.
    """

    def __init__(self, name: str, func: Callable[[], None], interval_s: float):
        if interval_s <= 0:
            raise ValueError(f"interval must be positive, got {interval_s}")
        self.name = name
        self.func = func
        self.interval_s = interval_s
        self.ticks = 0
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._cancelled.is_set()

    def start(self) -> None:
        """Start ticking; a task can only be started once"""
        with self._lock:
            if self._thread is not None:
                raise RuntimeError(f"periodic task {self.name} already started")
            self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
            self._thread.start()
        logger.debug(f"Periodic task {self.name} started (every {self.interval_s * 1000:.0f} ms)")

    def cancel(self) -> None:
        """Stop ticking and wait for an in-progress tick to finish. Idempotent."""
        self._cancelled.set()
        with self._lock:
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        logger.debug(f"Periodic task {self.name} cancelled after {self.ticks} ticks")

    def _run(self):
        while not self._cancelled.is_set():
            try:
                self.func()
            except Exception as e:
                logger.error(f"Periodic task {self.name} tick failed: {e}", exc_info=True)
            self.ticks += 1
            self._cancelled.wait(self.interval_s)
