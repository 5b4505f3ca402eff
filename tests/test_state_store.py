"""
Tests for the JSON state store and the offline state validator.
"""

import json

from core.storage import RAGLIST_DOC, REGISTERED_DOC, STATE_DOC, archive_ref
from scripts.validate_state import validate_state_dir
from shared.storage.state_publisher import StatePublisher
from shared.storage.state_store import JsonStateStore


class TestStatePublisher:
    """Tests for atomic writes and tolerant reads."""

    def test_writes_two_space_indented_utf8(self, tmp_path):
        publisher = StatePublisher(tmp_path)
        publisher.publish("registered.json", ["zoë"])

        text = (tmp_path / "registered.json").read_text(encoding="utf-8")
        assert text == '[\n  "zoë"\n]'

    def test_leaves_no_temp_files(self, tmp_path):
        publisher = StatePublisher(tmp_path)
        publisher.publish("nested/doc.json", {"a": 1})
        assert [p.name for p in (tmp_path / "nested").iterdir()] == ["doc.json"]

    def test_read_missing_or_corrupt_is_none(self, tmp_path):
        publisher = StatePublisher(tmp_path)
        (tmp_path / "bad.json").write_text("{not json", encoding="utf-8")

        assert publisher.read("missing.json") is None
        assert publisher.read("bad.json") is None


class TestJsonStateStore:
    """Tests for snapshot save/load and archives."""

    def test_round_trip(self, tmp_path, engine):
        engine.register(["Foo"])
        engine.raglist_add("EvilGuy")
        engine.process_loot("Foo", "Bar", 100, "line1")
        documents = engine.snapshot()

        store = JsonStateStore(tmp_path)
        store.save_snapshot(documents)

        assert store.load_snapshot() == documents

    def test_invalid_document_skipped(self, tmp_path):
        store = JsonStateStore(tmp_path)
        store.save_snapshot({REGISTERED_DOC: ["foo"], RAGLIST_DOC: "not-a-list"})

        loaded = store.load_snapshot()
        assert loaded == {REGISTERED_DOC: ["foo"]}

    def test_archive_round(self, tmp_path):
        store = JsonStateStore(tmp_path)
        ref = archive_ref("Comp 1", 0.0)
        store.archive_round(ref, {"name": "comp 1", "gp": {"foo": 5}})

        assert ref == "events/comp_1-19700101T000000Z.json"
        assert store.load_archive(ref)["gp"] == {"foo": 5}

    def test_engine_persists_through_store(self, tmp_path, clock):
        from core.engine import AggregationEngine

        store = JsonStateStore(tmp_path)
        engine = AggregationEngine(clock=clock, storage=store)
        try:
            engine.create_event("comp1")
            engine.process_kill("Foo", "Bar")
            engine.flush()
        finally:
            engine.close()

        state = json.loads((tmp_path / STATE_DOC).read_text(encoding="utf-8"))
        assert state["currentEvent"] == "comp1"
        assert state["events"]["comp1"]["kills"] == {"foo": 1}


class TestValidateStateDir:
    """Tests for the offline validator."""

    def test_valid_directory(self, tmp_path, engine):
        engine.register(["Foo"])
        JsonStateStore(tmp_path).save_snapshot(engine.snapshot())
        assert validate_state_dir(tmp_path) == []

    def test_reports_schema_errors(self, tmp_path):
        (tmp_path / STATE_DOC).write_text(json.dumps({"currentEvent": ""}), encoding="utf-8")
        problems = validate_state_dir(tmp_path)
        assert problems
        assert all(p.startswith("state.json") for p in problems)

    def test_reports_unreadable_json(self, tmp_path):
        (tmp_path / REGISTERED_DOC).write_text("[", encoding="utf-8")
        assert validate_state_dir(tmp_path)[0].startswith("registered.json: unreadable")
