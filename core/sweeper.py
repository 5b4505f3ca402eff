"""
Periodic dedup sweep.

Runs on a daemon thread and calls the engine's sweep (which takes the engine
lock) every ``interval`` seconds until stopped.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from shared.logging.logger import get_logger

log = get_logger("core.sweeper")


class PeriodicSweeper:
    def __init__(self, sweep: Callable[[], int], interval: float) -> None:
        if interval <= 0:
            raise ValueError("sweep interval must be positive")
        self._sweep = sweep
        self._interval = float(interval)
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="dedup-sweeper", daemon=True)
        self._thread.start()
        log.info(f"Dedup sweeper started (interval={self._interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        if not self._thread:
            return
        self._stop.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        log.info("Dedup sweeper stopped")

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._sweep()
            except Exception as e:
                log.error(f"Dedup sweep failed: {e}")
            self.runs += 1
