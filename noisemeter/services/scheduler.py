"""Periodic tick threads."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTicker:
    """Calls ``callback`` every ``interval`` seconds on a daemon thread.

    The callback should only post work elsewhere; it runs on the ticker
    thread and must not block.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], None]):
        if interval <= 0:
            raise ValueError(f"Tick interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.stop_event = threading.Event()
        self.thread: Optional[threading.Thread] = None
        self.tick_count = 0

    @property
    def is_running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            logger.warning(f"Ticker {self.name} already running")
            return
        self.stop_event.clear()
        self.tick_count = 0
        self.thread = threading.Thread(target=self._run, daemon=True)
        self.thread.name = f"ticker_{self.name}"
        self.thread.start()
        logger.debug(f"Ticker {self.name} started ({self.interval}s)")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop ticking and wait for the thread to exit."""
        self.stop_event.set()
        if self.thread and self.thread.is_alive() and self.thread is not threading.current_thread():
            self.thread.join(timeout)
            if self.thread.is_alive():
                logger.warning(f"Ticker thread {self.thread.name} did not stop cleanly")
        self.thread = None
        logger.debug(f"Ticker {self.name} stopped after {self.tick_count} ticks")

    def _run(self) -> None:
        while not self.stop_event.wait(self.interval):
            self.tick_count += 1
            try:
                self.callback()
            except Exception as e:
                logger.error(f"Error in {self.name} tick: {e}", exc_info=True)
