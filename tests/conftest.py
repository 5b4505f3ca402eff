"""
Shared fixtures: a controllable clock, in-memory collaborators, and an engine
wired to them.
"""

import os
import tempfile
import threading

os.environ.setdefault("MADNESS_LOG_DIR", os.path.join(tempfile.gettempdir(), "madness-test-logs"))

import pytest

from core.engine import AggregationEngine
from core.notifications import Notifier
from core.storage import Storage


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []
        self.closed = False

    def send(self, notification, *, timeout):
        self.sent.append(notification)

    def close(self):
        self.closed = True

    def kinds(self):
        return [n.kind for n in self.sent]

    def of(self, cls):
        return [n for n in self.sent if isinstance(n, cls)]


class FailingNotifier(Notifier):
    def __init__(self):
        self.attempts = 0

    def send(self, notification, *, timeout):
        self.attempts += 1
        raise ConnectionError("discord unreachable")


class BlockingNotifier(Notifier):
    """Sends stall until released, like an unreachable Discord."""

    def __init__(self):
        self.release = threading.Event()
        self.attempts = 0

    def send(self, notification, *, timeout):
        self.attempts += 1
        self.release.wait()


class MemoryStorage(Storage):
    def __init__(self):
        self.snapshots = []
        self.archives = {}
        self.saved = threading.Event()

    def save_snapshot(self, documents):
        self.snapshots.append(documents)
        self.saved.set()

    def archive_round(self, ref, document):
        self.archives[ref] = document

    def load_snapshot(self):
        return self.snapshots[-1] if self.snapshots else {}

    @property
    def latest(self):
        return self.snapshots[-1]


class HangingStorage(Storage):
    """Every write blocks until released."""

    def __init__(self):
        self.release = threading.Event()
        self.calls = 0

    def save_snapshot(self, documents):
        self.calls += 1
        self.release.wait()

    def archive_round(self, ref, document):
        self.release.wait()

    def load_snapshot(self):
        return {}


class FailingStorage(Storage):
    def save_snapshot(self, documents):
        raise OSError("disk full")

    def archive_round(self, ref, document):
        raise OSError("disk full")

    def load_snapshot(self):
        return {}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def engine(clock, notifier, storage):
    instance = AggregationEngine(clock=clock, notifier=notifier, storage=storage)
    yield instance
    instance.close()


@pytest.fixture
def bare_engine(clock):
    """Engine with no outbound collaborators."""
    instance = AggregationEngine(clock=clock)
    yield instance
    instance.close()
