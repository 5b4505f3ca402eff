"""
Time-windowed event deduplication.

Entries live in a TTL cache keyed by the caller-built dedup key. The cache is
NOT internally locked: the owning engine calls admit() and sweep() under its
own lock.
"""

from __future__ import annotations

from typing import Dict

from shared.logging.logger import get_logger

log = get_logger("core.dedup")

DEFAULT_WINDOW_SECONDS = 10.0


class Deduplicator:
    def __init__(self, window_seconds: float = DEFAULT_WINDOW_SECONDS) -> None:
        if window_seconds <= 0:
            raise ValueError("dedup window must be positive")
        self._window = float(window_seconds)
        self._seen: Dict[str, float] = {}

    @property
    def window(self) -> float:
        return self._window

    @property
    def sweep_interval(self) -> float:
        return self._window * 3

    def admit(self, key: str, now: float) -> bool:
        """
        Admit when the key is new or its last admission is at least one
        window old. Rejections leave the cache untouched.
        """
        last_seen = self._seen.get(key)
        if last_seen is not None and now - last_seen < self._window:
            return False
        self._seen[key] = now
        return True

    def sweep(self, now: float) -> int:
        """Drop entries older than twice the window; returns the count removed."""
        horizon = self._window * 2
        expired = [key for key, ts in self._seen.items() if now - ts > horizon]
        for key in expired:
            del self._seen[key]
        if expired:
            log.debug(f"Dedup sweep evicted {len(expired)} key(s)")
        return len(expired)

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, key: str) -> bool:
        return key in self._seen
