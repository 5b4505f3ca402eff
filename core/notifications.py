"""
Outbound notifications and fire-and-forget dispatch.

The engine builds notifications while holding its lock and hands them to a
NotificationDispatcher after releasing it. Notifier implementations live in
services.discord.notifier; each must bound its own network I/O by the
timeout it is given.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from shared.logging.logger import get_logger

log = get_logger("core.notifications")

DEFAULT_OUTBOUND_TIMEOUT = 5.0
DEFAULT_MAX_PENDING = 100


# ======================================================================
# Notification types
# ======================================================================

@dataclass(frozen=True)
class Notification:
    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["kind"] = self.kind
        return payload


@dataclass(frozen=True)
class KillLogged(Notification):
    killer: str
    victim: str
    total_deaths: int
    is_clan: bool


@dataclass(frozen=True)
class LootDetected(Notification):
    killer: str
    victim: str
    gp: int
    display_total: int
    is_clan: bool


@dataclass(frozen=True)
class RaglistAlert(Notification):
    victim: str
    bounty_total: int


@dataclass(frozen=True)
class BountyClaimed(Notification):
    victim: str
    killer: str
    payout: int
    poster_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class EventCreated(Notification):
    name: str


@dataclass(frozen=True)
class EventFinished(Notification):
    name: str
    snapshot_ref: Optional[str] = None


@dataclass(frozen=True)
class RosterChanged(Notification):
    added: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()


# ======================================================================
# Notifier contract
# ======================================================================

class Notifier(ABC):
    """
    Sink for outbound notifications.

    send() is called from a dispatcher worker thread, never from inside the
    engine lock. Implementations must return or raise within ``timeout``.
    """

    @abstractmethod
    def send(self, notification: Notification, *, timeout: float) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Release transport resources (optional)."""


# ======================================================================
# Dispatcher
# ======================================================================

class OutboundDispatcher:
    """
    Single-worker executor that runs outbound calls in submission order.

    Each call gets at most ``timeout`` seconds on a daemon thread; a call
    still running past that is abandoned, logged and counted as timed out so
    the queue keeps moving. At most ``max_pending`` calls may wait at once;
    anything beyond is dropped with a warning. Failures are logged and
    swallowed; nothing propagates to the submitter.
    """

    def __init__(
        self,
        name: str,
        *,
        timeout: float = DEFAULT_OUTBOUND_TIMEOUT,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self._name = name
        self._timeout = float(timeout)
        self._max_pending = max(1, int(max_pending))
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._lock = threading.Lock()
        self._pending = 0
        self._closed = False
        self._metrics = {
            "submitted": 0,
            "completed": 0,
            "failed": 0,
            "timed_out": 0,
            "dropped": 0,
        }

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def pending(self) -> int:
        with self._lock:
            return self._pending

    def get_metrics(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._metrics)

    def _bump(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._metrics[key] += 1

    def submit(self, label: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Optional[Future]:
        with self._lock:
            if self._closed:
                log.warning(f"[{self._name}] Dropped {label}: dispatcher closed")
                return None
            if self._pending >= self._max_pending:
                self._metrics["dropped"] += 1
                log.warning(
                    f"[{self._name}] Dropped {label}: {self._pending} calls already pending"
                )
                return None
            self._pending += 1
            self._metrics["submitted"] += 1

        def _run():
            try:
                self._call(label, fn, args, kwargs)
            finally:
                with self._lock:
                    self._pending -= 1

        return self._executor.submit(_run)

    def _call(self, label: str, fn: Callable[..., Any], args, kwargs) -> None:
        errors = []

        def _target():
            try:
                fn(*args, **kwargs)
            except Exception as e:
                errors.append(e)

        worker = threading.Thread(target=_target, name=f"{self._name}-{label}", daemon=True)
        worker.start()
        worker.join(self._timeout)

        if worker.is_alive():
            self._bump("failed", "timed_out")
            log.error(f"[{self._name}] {label} timed out after {self._timeout}s; abandoned")
            return
        if errors:
            self._bump("failed")
            log.error(f"[{self._name}] {label} failed: {errors[0]}")
            return
        self._bump("completed")

    def drain(self, timeout: Optional[float] = None) -> None:
        """Block until everything submitted so far has run."""
        if self._closed:
            return
        marker = self._executor.submit(lambda: None)
        marker.result(timeout=timeout)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stop accepting work, wait up to ``timeout`` (default twice the call
        timeout) for the queue, then cancel whatever is still waiting.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        marker = self._executor.submit(lambda: None)
        try:
            marker.result(timeout=self._timeout * 2 if timeout is None else timeout)
        except TimeoutError:
            log.warning(f"[{self._name}] Queue not drained in time; cancelling pending calls")
        self._executor.shutdown(wait=False, cancel_futures=True)
        log.info(f"[{self._name}] Dispatcher stopped")


class NotificationDispatcher(OutboundDispatcher):
    def __init__(
        self,
        notifier: Notifier,
        *,
        timeout: float = DEFAULT_OUTBOUND_TIMEOUT,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        super().__init__("notify", timeout=timeout, max_pending=max_pending)
        self._notifier = notifier

    def dispatch(self, notifications: Iterable[Notification]) -> None:
        for notification in notifications:
            self.submit(
                notification.kind,
                self._notifier.send,
                notification,
                timeout=self.timeout,
            )

    def shutdown(self, timeout: Optional[float] = None) -> None:
        super().shutdown(timeout)
        try:
            self._notifier.close()
        except Exception as e:
            log.warning(f"Notifier close error ignored: {e}")
