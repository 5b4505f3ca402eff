"""
Tests for event rounds and the round lifecycle.
"""

import pytest

from core.errors import DuplicateOrInvalidName
from core.rounds import DEFAULT_ROUND, EventRound, RoundStore


class TestEventRound:
    """Tests for per-round counters."""

    def test_record_kill_counts_both_sides(self):
        round_ = EventRound("comp1")
        round_.record_kill("Foo", "Bar")
        round_.record_kill("foo", "Baz")

        assert round_.kills == {"foo": 2}
        assert round_.deaths == {"bar": 1, "baz": 1}

    def test_record_loot_accumulates(self):
        round_ = EventRound("comp1")
        for gp in (100, 250, 650):
            round_.record_loot("Foo", gp)

        assert round_.gp["foo"] == 1000
        assert round_.loot["foo"] == 1000
        assert round_.kills["foo"] == 3

    def test_display_name_keeps_latest_casing(self):
        round_ = EventRound("comp1")
        round_.record_loot("foo", 1)
        round_.record_loot("Foo", 1)
        assert round_.display("foo") == "Foo"

    def test_document_round_trip_drops_bad_counts(self):
        doc = {
            "kills": {"Foo": 2, "bar": -1, "baz": "x"},
            "gp": {"foo": 500},
            "names": {"foo": "Foo"},
        }
        restored = EventRound.from_document("comp1", doc)
        assert restored.kills == {"foo": 2}
        assert restored.total_gp() == 500
        assert restored.display("foo") == "Foo"


class TestRoundStore:
    """Tests for create/finish lifecycle."""

    def test_starts_on_default(self):
        store = RoundStore()
        assert store.current_name == DEFAULT_ROUND

    def test_create_switches_current(self):
        store = RoundStore()
        store.create("Comp1")
        assert store.current_name == "comp1"

    @pytest.mark.parametrize("name", ["", "   ", "default", "DEFAULT"])
    def test_create_rejects_empty_and_reserved(self, name):
        with pytest.raises(DuplicateOrInvalidName):
            RoundStore().create(name)

    def test_create_rejects_existing(self):
        store = RoundStore()
        store.create("comp1")
        with pytest.raises(DuplicateOrInvalidName):
            store.create("Comp1")

    def test_finish_detaches_round_and_returns_to_default(self):
        store = RoundStore()
        store.create("comp1")
        store.record_loot("Foo", 100)

        finished = store.finish()

        assert finished.name == "comp1"
        assert finished.gp == {"foo": 100}
        assert store.current_name == DEFAULT_ROUND
        assert store.get("comp1") is None
        assert store.current.is_empty()

    def test_finish_default_resets_it(self):
        store = RoundStore()
        store.record_kill("Foo", "Bar")

        finished = store.finish()

        assert finished.kills == {"foo": 1}
        assert store.get(DEFAULT_ROUND) is not None
        assert store.current.is_empty()

    def test_restore_falls_back_to_default_pointer(self):
        store = RoundStore()
        store.restore({"comp1": {"kills": {"foo": 1}}}, current="missing")

        assert store.current_name == DEFAULT_ROUND
        assert store.get("comp1").kills == {"foo": 1}
        assert store.get(DEFAULT_ROUND) is not None
