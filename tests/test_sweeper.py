"""
Tests for the periodic dedup sweeper.
"""

import threading
import time

import pytest

from core.sweeper import PeriodicSweeper


class TestPeriodicSweeper:
    """Tests for PeriodicSweeper."""

    def test_runs_until_stopped(self):
        called = threading.Event()

        def sweep():
            called.set()
            return 0

        sweeper = PeriodicSweeper(sweep, interval=0.01)
        sweeper.start()
        try:
            assert called.wait(timeout=2.0)
            assert sweeper.running
        finally:
            sweeper.stop(timeout=2.0)

        assert not sweeper.running
        assert sweeper.runs >= 1

    def test_sweep_errors_do_not_stop_the_loop(self):
        calls = []

        def sweep():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return 0

        sweeper = PeriodicSweeper(sweep, interval=0.01)
        sweeper.start()
        try:
            for _ in range(200):
                if len(calls) >= 2:
                    break
                time.sleep(0.01)
        finally:
            sweeper.stop(timeout=2.0)

        assert len(calls) >= 2

    def test_engine_sweep_integration(self, engine, clock):
        engine.process_loot("Foo", "Bar", 100, "line1")
        clock.advance(engine.dedup_window * 3)

        done = threading.Event()
        evicted = []

        def sweep():
            evicted.append(engine.sweep_dedup())
            done.set()
            return evicted[-1]

        sweeper = PeriodicSweeper(sweep, interval=0.01)
        sweeper.start()
        try:
            assert done.wait(timeout=2.0)
        finally:
            sweeper.stop(timeout=2.0)

        assert evicted[0] == 1

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicSweeper(lambda: 0, interval=0)
