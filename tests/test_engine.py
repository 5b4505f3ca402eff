"""
Tests for the aggregation engine: admission pipeline, commands, outbound
notifications and snapshots.
"""

import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import BlockingNotifier, FailingNotifier, FailingStorage, HangingStorage
from core.engine import AggregationEngine, Status
from core.errors import InvalidInput, StateConflict
from core.notifications import (
    BountyClaimed,
    EventCreated,
    EventFinished,
    KillLogged,
    LootDetected,
    RaglistAlert,
    RosterChanged,
)
from core.storage import BOUNTIES_DOC, REGISTERED_DOC, STATE_DOC, archive_ref
from shared.combat.events import create_combat_event
from shared.storage.schemas import validation_errors


class TestDeduplication:
    """Duplicate submissions inside the window never mutate state."""

    def test_identical_loot_within_window_is_duplicate(self, engine):
        first = engine.process_loot("Foo", "Bar", 1_000_000, "line1")
        second = engine.process_loot("Foo", "Bar", 1_000_000, "line1")

        assert first is Status.OK
        assert second is Status.DUPLICATE
        assert engine.round().loot["foo"] == 1_000_000
        assert len(engine.history()) == 1

    def test_resubmission_after_window_admitted(self, engine, clock):
        engine.process_loot("Foo", "Bar", 100, "line1")
        clock.advance(engine.dedup_window)
        assert engine.process_loot("Foo", "Bar", 100, "line1") is Status.OK
        assert engine.round().gp["foo"] == 200

    def test_kill_key_defaults_to_participants(self, engine):
        assert engine.process_kill("Foo", "Bar") is Status.OK
        assert engine.process_kill("foo", "BAR") is Status.DUPLICATE

    def test_duplicate_emits_nothing(self, engine, notifier, storage):
        engine.process_loot("Foo", "Bar", 100, "line1")
        engine.flush()
        sent, saved = len(notifier.sent), len(storage.snapshots)

        engine.process_loot("Foo", "Bar", 100, "line1")
        engine.flush()

        assert len(notifier.sent) == sent
        assert len(storage.snapshots) == saved

    def test_sweep_evicts_expired_keys(self, engine, clock):
        engine.process_loot("Foo", "Bar", 100, "line1")
        clock.advance(engine.dedup_window * 2 + 1)
        assert engine.sweep_dedup() == 1


class TestValidation:
    """Malformed input resolves to Status.INVALID with no mutation."""

    @pytest.mark.parametrize(
        "killer,victim,gp,key",
        [
            ("", "Bar", 100, "k"),
            ("Foo", "   ", 100, "k"),
            ("Foo", "Bar", 0, "k"),
            ("Foo", "Bar", -1, "k"),
            ("Foo", "Bar", True, "k"),
            ("Foo", "Bar", "100", "k"),
            ("Foo", "Bar", 100, ""),
            (None, "Bar", 100, "k"),
        ],
    )
    def test_invalid_loot(self, engine, killer, victim, gp, key):
        assert engine.process_loot(killer, victim, gp, key) is Status.INVALID
        assert engine.round().is_empty()
        assert engine.history() == []

    def test_invalid_kill(self, engine):
        assert engine.process_kill("Foo", "") is Status.INVALID


class TestClanFilter:
    """Clan-only mode and auto registration."""

    def test_non_clan_kill_ignored(self, engine):
        engine.register(["foo", "bar"])
        engine.set_clan_only(True)

        assert engine.process_kill("Foo", "Baz", "k1") is Status.IGNORED_NON_CLAN
        assert engine.round().deaths.get("baz", 0) == 0

    def test_ignored_event_does_not_consume_dedup_key(self, engine):
        engine.register(["foo"])
        engine.set_clan_only(True)
        engine.process_loot("Foo", "Baz", 100, "line1")

        engine.register(["baz"])
        assert engine.process_loot("Foo", "Baz", 100, "line1") is Status.OK

    def test_clan_vs_clan_flagged_in_history(self, engine):
        engine.register(["foo", "bar"])
        engine.process_kill("Foo", "Bar")
        engine.process_kill("Foo", "Stranger")

        flags = [e.is_clan for e in engine.history()]
        assert flags == [True, False]

    def test_auto_register_adds_killer(self, clock, notifier):
        engine = AggregationEngine(
            clock=clock,
            notifier=notifier,
            clan_only=True,
            auto_register_observed=True,
        )
        try:
            engine.register(["bar"])
            assert engine.process_kill("Foo", "Bar") is Status.OK
            assert "foo" in engine.registered()

            engine.flush()
            changes = notifier.of(RosterChanged)
            assert changes[-1].added == ("foo",)
        finally:
            engine.close()


class TestAggregation:
    """Counters and round isolation."""

    def test_loot_sums(self, engine):
        amounts = [100, 2_500, 40_000]
        for i, gp in enumerate(amounts):
            engine.process_loot("Foo", f"Victim{i}", gp, f"line{i}")

        round_ = engine.round()
        assert round_.gp["foo"] == sum(amounts)
        assert round_.loot["foo"] == sum(amounts)
        assert round_.kills["foo"] == len(amounts)

    def test_round_isolation(self, engine, storage, clock):
        engine.create_event("comp1")
        engine.process_loot("Foo", "Bar", 1_000, "line1")

        assert engine.round("comp1").gp == {"foo": 1_000}
        assert engine.round("default").is_empty()

        finished = engine.finish_event()
        engine.flush()

        assert engine.current_event == "default"
        assert engine.round("comp1") is None
        assert engine.round().is_empty()
        assert finished["snapshot_ref"] == archive_ref("comp1", clock.now)
        assert storage.archives[finished["snapshot_ref"]]["gp"] == {"foo": 1_000}

    def test_create_event_rejects_conflicts(self, engine):
        engine.create_event("comp1")
        with pytest.raises(StateConflict):
            engine.create_event("COMP1")
        with pytest.raises(StateConflict):
            engine.create_event("default")

    def test_history_survives_finish(self, engine):
        engine.create_event("comp1")
        engine.process_kill("Foo", "Bar")
        engine.finish_event()

        assert [e.round_name for e in engine.history()] == ["comp1"]
        assert engine.hiscores(period="all")[0]["name"] == "Foo"
        assert engine.hiscores() == []

    def test_list_events_marks_current(self, engine):
        engine.create_event("comp1")
        engine.process_loot("Foo", "Bar", 500, "line1")

        events = {e["name"]: e for e in engine.list_events()}
        assert events["comp1"]["current"] is True
        assert events["comp1"]["gp"] == 500
        assert events["default"]["current"] is False

    def test_concurrent_submissions_are_serialized(self, engine):
        def submit(i):
            return engine.process_loot("Foo", "Bar", 10, f"line{i}")

        with ThreadPoolExecutor(max_workers=8) as pool:
            statuses = list(pool.map(submit, range(200)))

        assert statuses.count(Status.OK) == 200
        assert engine.total_gp() == 2_000
        assert engine.round().kills["foo"] == 200

    def test_process_event_routes_by_kind(self, engine):
        event = create_combat_event(kind="loot", killer="Foo", victim="Bar", gp=50, dedup_key="x")
        assert engine.process_event(event) is Status.OK
        assert engine.total_gp() == 50


class TestBoards:
    """hiscores / lootboard queries."""

    def test_current_round_boards(self, engine):
        engine.process_kill("Foo", "Bar")
        engine.process_kill("Foo", "Baz")
        engine.process_loot("Bar", "Foo", 700, "line1")

        hiscores = engine.hiscores()
        assert [(r["name"], r["kills"]) for r in hiscores[:2]] == [("Foo", 2), ("Bar", 1)]

        lootboard = engine.lootboard()
        assert [(r["rank"], r["name"], r["gp"]) for r in lootboard] == [(1, "Bar", 700)]

    def test_period_board_excludes_old_entries(self, engine, clock):
        engine.process_loot("Foo", "Bar", 700, "line1")
        clock.advance(2 * 24 * 60 * 60)
        engine.process_loot("Baz", "Bar", 300, "line2")

        daily = engine.lootboard(period="daily")
        weekly = engine.lootboard(period="weekly")

        assert [r["name"] for r in daily] == ["Baz"]
        assert [r["name"] for r in weekly] == ["Foo", "Baz"]

    def test_unknown_period_rejected(self, engine):
        with pytest.raises(InvalidInput):
            engine.hiscores(period="yearly")

    def test_name_filter(self, engine):
        engine.process_kill("BigFoo", "Bar")
        engine.process_kill("Baz", "Bar", dedup_key="k2")

        assert [r["name"] for r in engine.hiscores(name_filter="foo")] == ["BigFoo"]


class TestNotifications:
    """Outbound notification content and ordering."""

    def test_loot_detected_carries_round_total(self, engine, notifier):
        engine.process_loot("Foo", "Bar", 100, "line1")
        engine.process_loot("Foo", "Baz", 250, "line2")
        engine.flush()

        loot = notifier.of(LootDetected)
        assert [n.display_total for n in loot] == [100, 350]

    def test_kill_logged_carries_victim_deaths(self, engine, notifier):
        engine.process_kill("Foo", "Bar")
        engine.process_kill("Baz", "Bar")
        engine.flush()

        assert [n.total_deaths for n in notifier.of(KillLogged)] == [1, 2]

    def test_bounty_claim_scenario(self, engine, notifier):
        engine.raglist_add("EvilGuy")
        engine.bounty_add_once("evilguy", 5_000_000, "u1")
        engine.bounty_add_persistent("evilguy", 2_000_000, "u2")

        assert engine.process_kill("Hero", "EvilGuy") is Status.OK
        engine.flush()

        assert notifier.kinds() == ["KillLogged", "RaglistAlert", "BountyClaimed"]
        alert = notifier.of(RaglistAlert)[0]
        claim = notifier.of(BountyClaimed)[0]
        assert alert.bounty_total == 7_000_000
        assert claim.payout == 7_000_000
        assert claim.poster_ids == ("u1", "u2")
        assert claim.killer == "Hero"

        listing = engine.bounty_list()
        assert [(r["target"], r["total"]) for r in listing["persistent"]] == [("evilguy", 2_000_000)]
        assert listing["once"] == []

    def test_bounty_without_raglist_still_pays(self, engine, notifier):
        engine.bounty_add_once("evilguy", 1_000, "u1")
        engine.process_kill("Hero", "EvilGuy")
        engine.flush()

        assert notifier.kinds() == ["KillLogged", "BountyClaimed"]

    def test_lifecycle_notifications(self, engine, notifier):
        engine.create_event("comp1")
        engine.finish_event()
        engine.flush()

        created = notifier.of(EventCreated)[0]
        finished = notifier.of(EventFinished)[0]
        assert created.name == "comp1"
        assert finished.name == "comp1"
        assert finished.snapshot_ref.startswith("events/comp1-")

    def test_failing_notifier_never_reaches_caller(self, clock):
        failing = FailingNotifier()
        engine = AggregationEngine(clock=clock, notifier=failing)
        try:
            assert engine.process_loot("Foo", "Bar", 100, "line1") is Status.OK
            assert engine.process_kill("Foo", "Baz") is Status.OK
            engine.flush()
            assert failing.attempts == 2
        finally:
            engine.close()


class TestBountyCommands:
    """Bounty command validation."""

    def test_add_rejects_invalid_amount(self, engine):
        with pytest.raises(InvalidInput):
            engine.bounty_add_once("evilguy", 0, "u1")

    def test_remove_returns_clamped_amount(self, engine):
        engine.bounty_add_once("evilguy", 100, "u1")
        assert engine.bounty_remove_once("evilguy", 1_000, "u1") == 100
        assert engine.bounty_list() == {"persistent": [], "once": []}

    def test_pools_are_copies(self, engine):
        engine.bounty_add_once("evilguy", 100, "u1")
        pools = engine.bounty_pools("EvilGuy")
        pools["once"].add(999, "u9")

        assert engine.bounty_pools("evilguy")["once"].total == 100

    def test_raglist_rejects_blank(self, engine):
        with pytest.raises(InvalidInput):
            engine.raglist_add("  ")


class TestSnapshots:
    """Persistence snapshots and restore."""

    def test_snapshot_written_after_mutation(self, engine, storage):
        engine.register(["Foo"])
        engine.process_loot("Foo", "Bar", 100, "line1")
        engine.flush()

        latest = storage.latest
        assert latest[REGISTERED_DOC] == ["foo"]
        assert latest[STATE_DOC]["currentEvent"] == "default"
        assert len(latest[STATE_DOC]["lootLog"]) == 1

    def test_snapshot_matches_schemas(self, engine):
        engine.register(["Foo", "Bar"])
        engine.raglist_add("EvilGuy")
        engine.bounty_add_persistent("evilguy", 1_000, "u1")
        engine.create_event("comp1")
        engine.process_loot("Foo", "Bar", 100, "line1")
        engine.process_kill("Foo", "EvilGuy")

        for name, document in engine.snapshot().items():
            assert validation_errors(name, document) == []

    def test_restore_round_trip(self, engine, clock):
        engine.register(["Foo", "Bar"])
        engine.set_clan_only(True)
        engine.raglist_add("EvilGuy")
        engine.bounty_add_once("evilguy", 1_000, "u1")
        engine.create_event("comp1")
        engine.process_loot("Foo", "Bar", 100, "line1")
        engine.process_kill("Bar", "Foo")

        documents = engine.snapshot()
        restored = AggregationEngine(clock=clock)
        try:
            restored.restore(documents)
            assert restored.snapshot() == documents
            assert restored.current_event == "comp1"
            assert restored.clan_only is True
        finally:
            restored.close()

    def test_restore_ignores_garbage(self, bare_engine):
        bare_engine.restore({STATE_DOC: "nope", BOUNTIES_DOC: [1, 2]})
        assert bare_engine.current_event == "default"
        assert bare_engine.bounty_list() == {"persistent": [], "once": []}

    def test_failing_storage_never_reaches_caller(self, clock):
        engine = AggregationEngine(clock=clock, storage=FailingStorage())
        try:
            assert engine.process_loot("Foo", "Bar", 100, "line1") is Status.OK
            engine.create_event("comp1")
            engine.finish_event()
            engine.flush()
            assert engine.process_kill("Foo", "Bar") is Status.OK
        finally:
            engine.close()

    def test_hanging_storage_does_not_stall_later_writes(self, clock):
        storage = HangingStorage()
        engine = AggregationEngine(clock=clock, storage=storage, outbound_timeout=0.2)
        try:
            engine.process_loot("Foo", "Bar", 100, "line1")
            engine.flush(timeout=2.0)
            engine.process_loot("Foo", "Bar", 200, "line2")
            engine.flush(timeout=2.0)
            assert storage.calls == 2

            started = time.monotonic()
            engine.close()
            assert time.monotonic() - started < 2.0
        finally:
            storage.release.set()


class TestOutboundBackpressure:
    """An unreachable notifier never grows an unbounded backlog."""

    def test_notifications_beyond_cap_are_dropped(self, clock):
        notifier = BlockingNotifier()
        engine = AggregationEngine(
            clock=clock,
            notifier=notifier,
            outbound_timeout=5.0,
            max_pending_notifications=50,
        )
        try:
            for i in range(500):
                assert engine.process_loot("Foo", "Bar", 100, f"line{i}") is Status.OK
            assert engine.total_gp() == 50_000
        finally:
            notifier.release.set()
            engine.close()

        assert notifier.attempts <= 50


class TestGpBounds:
    """GP amounts are unsigned 64-bit."""

    def test_gp_above_unsigned_64_bits_is_invalid(self, engine):
        assert engine.process_loot("Foo", "Bar", 2**64, "line1") is Status.INVALID
        assert engine.process_loot("Foo", "Bar", 2**64 - 1, "line2") is Status.OK
