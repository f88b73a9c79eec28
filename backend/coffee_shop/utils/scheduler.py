"""Background sweeper that runs a job at a fixed interval on a daemon thread."""

from __future__ import annotations

import logging
import threading
from typing import Callable

_LOGGER = logging.getLogger("coffee_shop.scheduler")


class PeriodicJob:
    def __init__(self, name: str, interval_seconds: float, func: Callable[[], object]):
        self.name = name
        self.interval_seconds = interval_seconds
        self.func = func
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self):
        """Run the job now; failures are logged and the loop keeps going."""
        try:
            return self.func()
        except Exception:
            _LOGGER.exception("periodic job %s failed", self.name)
            return None

    def _loop(self):
        while not self._stop.wait(self.interval_seconds):
            self.run_once()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()
        _LOGGER.info("periodic job %s started (every %ss)", self.name, self.interval_seconds)

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=1)
        self._thread = None
