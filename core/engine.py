"""
Aggregation engine.

Owns every piece of mutable state (rounds, roster, raglist, bounty ledger,
dedup cache, history log) behind a single re-entrant lock. Outbound work
(notifications, snapshot writes, round archives) is queued on single-worker
dispatchers after the lock is released, so a slow or unreachable Discord or
disk never blocks event admission.
"""

from __future__ import annotations

import threading
import time
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from core.bounties import BountyLedger, BountyPool
from core.dedup import DEFAULT_WINDOW_SECONDS, Deduplicator
from core.errors import InvalidInput
from core.history import HistoryEntry, HistoryLog, kill_board, loot_board, rank_rows
from core.notifications import (
    DEFAULT_MAX_PENDING,
    DEFAULT_OUTBOUND_TIMEOUT,
    BountyClaimed,
    EventCreated,
    EventFinished,
    KillLogged,
    LootDetected,
    Notification,
    NotificationDispatcher,
    Notifier,
    OutboundDispatcher,
    RaglistAlert,
    RosterChanged,
)
from core.raglist import Raglist
from core.roster import ClanRoster
from core.rounds import DEFAULT_ROUND, EventRound, RoundStore
from core.storage import (
    BOUNTIES_DOC,
    RAGLIST_DOC,
    REGISTERED_DOC,
    STATE_DOC,
    Storage,
    archive_ref,
)
from shared.combat.events import (
    CombatEvent,
    EventKind,
    display_name,
    kill_dedup_key,
    norm,
)
from shared.combat.gp import MAX_GP
from shared.logging.logger import get_logger

log = get_logger("core.engine")


class Status(Enum):
    OK = "ok"
    DUPLICATE = "duplicate"
    IGNORED_NON_CLAN = "ignored-non-clan"
    INVALID = "invalid"


def _clean_name(value: Any) -> str:
    return display_name(value) if isinstance(value, str) else ""


def _valid_gp(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 < value <= MAX_GP


def _pool_rows(items) -> List[Dict[str, Any]]:
    return [
        {"target": target, "total": pool.total, "posters": dict(pool.posters)}
        for target, pool in items
    ]


class AggregationEngine:
    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        notifier: Optional[Notifier] = None,
        storage: Optional[Storage] = None,
        dedup_window: float = DEFAULT_WINDOW_SECONDS,
        clan_only: bool = False,
        auto_register_observed: bool = False,
        outbound_timeout: float = DEFAULT_OUTBOUND_TIMEOUT,
        max_pending_notifications: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self._clock = clock
        self._lock = threading.RLock()

        self._dedup = Deduplicator(dedup_window)
        self._roster = ClanRoster(clan_only=clan_only)
        self._raglist = Raglist()
        self._rounds = RoundStore()
        self._history = HistoryLog()
        self._bounties = BountyLedger()
        self._auto_register = bool(auto_register_observed)

        self._storage = storage
        self._notifications = (
            NotificationDispatcher(
                notifier,
                timeout=outbound_timeout,
                max_pending=max_pending_notifications,
            )
            if notifier
            else None
        )
        self._persistence = (
            OutboundDispatcher("persist", timeout=outbound_timeout) if storage else None
        )
        self._persist_guard = threading.Lock()
        self._persist_pending = False

        log.info(
            f"Aggregation engine ready (dedup_window={self._dedup.window}s, "
            f"clan_only={clan_only}, auto_register={self._auto_register})"
        )

    # ==================================================================
    # Properties
    # ==================================================================

    @property
    def dedup_window(self) -> float:
        return self._dedup.window

    @property
    def current_event(self) -> str:
        with self._lock:
            return self._rounds.current_name

    @property
    def clan_only(self) -> bool:
        with self._lock:
            return self._roster.clan_only

    def round(self, name: Optional[str] = None) -> Optional[EventRound]:
        """Live round by name (current when omitted). Intended for inspection."""
        with self._lock:
            if name is None:
                return self._rounds.current
            return self._rounds.get(name)

    def history(self) -> List[HistoryEntry]:
        with self._lock:
            return self._history.entries()

    # ==================================================================
    # Event admission
    # ==================================================================

    def process_loot(self, killer: str, victim: str, gp: int, dedup_key: str) -> Status:
        return self._submit(EventKind.LOOT, killer, victim, gp, dedup_key)

    def process_kill(self, killer: str, victim: str, dedup_key: Optional[str] = None) -> Status:
        return self._submit(EventKind.KILL, killer, victim, None, dedup_key)

    def process_event(self, event: CombatEvent) -> Status:
        if event.kind is EventKind.LOOT:
            return self.process_loot(event.killer, event.victim, event.gp, event.dedup_key)
        return self.process_kill(event.killer, event.victim, event.dedup_key)

    def _submit(
        self,
        kind: EventKind,
        killer: Any,
        victim: Any,
        gp: Any,
        dedup_key: Any,
    ) -> Status:
        outbox: List[Notification] = []
        try:
            with self._lock:
                status = self._admit(kind, killer, victim, gp, dedup_key, outbox)
        except Exception as e:
            log.error(f"Unexpected failure while processing {kind.value} event: {e}")
            return Status.INVALID

        self._emit(outbox)
        if status is Status.OK or outbox:
            self._request_persist()
        return status

    def _admit(
        self,
        kind: EventKind,
        killer: Any,
        victim: Any,
        gp: Any,
        dedup_key: Any,
        outbox: List[Notification],
    ) -> Status:
        # 1. validation
        killer = _clean_name(killer)
        victim = _clean_name(victim)
        if not killer or not victim:
            log.debug(f"Rejected {kind.value} event: killer and victim are required")
            return Status.INVALID

        if kind is EventKind.LOOT:
            if not _valid_gp(gp):
                log.debug(f"Rejected loot event: invalid gp {gp!r}")
                return Status.INVALID
            key = dedup_key.strip() if isinstance(dedup_key, str) else ""
            if not key:
                log.debug("Rejected loot event: dedup key is required")
                return Status.INVALID
        else:
            key = dedup_key.strip() if isinstance(dedup_key, str) and dedup_key.strip() else ""
            key = key or kill_dedup_key(killer, victim)

        if self._auto_register and self._roster.add(killer):
            log.info(f"Auto-registered observed player {norm(killer)}")
            outbox.append(RosterChanged(added=(norm(killer),)))

        # 2. clan eligibility (before dedup so ignored events leave no trace)
        if not self._roster.is_eligible(killer, victim):
            log.debug(f"Ignored non-clan {kind.value}: {killer} -> {victim}")
            return Status.IGNORED_NON_CLAN

        # 3. dedup
        now = self._clock()
        if not self._dedup.admit(key, now):
            log.debug(f"Duplicate {kind.value} ignored: {key!r}")
            return Status.DUPLICATE

        # 4. aggregate + history
        is_clan = self._roster.both_members(killer, victim)
        round_ = self._rounds.current

        if kind is EventKind.LOOT:
            self._rounds.record_loot(killer, gp)
            self._history.append(
                HistoryEntry(
                    killer=killer,
                    victim=victim,
                    gp=gp,
                    timestamp=now,
                    is_clan=is_clan,
                    round_name=round_.name,
                )
            )
            # 5. announce
            outbox.append(
                LootDetected(
                    killer=killer,
                    victim=victim,
                    gp=gp,
                    display_total=round_.gp.get(norm(killer), 0),
                    is_clan=is_clan,
                )
            )
            log.info(f"[{round_.name}] Loot: {killer} defeated {victim} for {gp:,} gp")
        else:
            self._rounds.record_kill(killer, victim)
            self._history.append(
                HistoryEntry(
                    killer=killer,
                    victim=victim,
                    timestamp=now,
                    is_clan=is_clan,
                    round_name=round_.name,
                )
            )
            outbox.append(
                KillLogged(
                    killer=killer,
                    victim=victim,
                    total_deaths=round_.deaths.get(norm(victim), 0),
                    is_clan=is_clan,
                )
            )
            log.info(f"[{round_.name}] Kill: {killer} defeated {victim}")

        # 6. raglist alert carries the bounty about to be claimed
        if self._raglist.contains(victim):
            outbox.append(
                RaglistAlert(
                    victim=victim,
                    bounty_total=self._bounties.total_for(victim),
                )
            )

        # 7. payout
        payout = self._bounties.on_target_killed(victim)
        if payout:
            outbox.append(
                BountyClaimed(
                    victim=victim,
                    killer=killer,
                    payout=payout.payout,
                    poster_ids=tuple(sorted(payout.poster_ids)),
                )
            )

        return Status.OK

    # ==================================================================
    # Round lifecycle commands
    # ==================================================================

    def create_event(self, name: str) -> str:
        with self._lock:
            created = self._rounds.create(name if isinstance(name, str) else "")
        log.info(f"Event '{created.name}' created and now current")
        self._emit([EventCreated(name=created.name)])
        self._request_persist()
        return created.name

    def finish_event(self) -> Dict[str, Any]:
        with self._lock:
            finished = self._rounds.finish()
            finished_at = self._clock()
            document = {
                "name": finished.name,
                "finishedAt": finished_at,
                **finished.to_document(),
            }

        ref = None
        if self._storage is not None:
            ref = archive_ref(finished.name, finished_at)
            self._persistence.submit(
                f"archive {finished.name}",
                self._storage.archive_round,
                ref,
                document,
            )

        log.info(f"Event '{finished.name}' finished; current event reset to '{DEFAULT_ROUND}'")
        self._emit([EventFinished(name=finished.name, snapshot_ref=ref)])
        self._request_persist()
        return {"name": finished.name, "snapshot_ref": ref, "round": finished}

    def list_events(self) -> List[Dict[str, Any]]:
        with self._lock:
            current = self._rounds.current_name
            return [
                {
                    "name": r.name,
                    "current": r.name == current,
                    "kills": sum(r.kills.values()),
                    "gp": r.total_gp(),
                    "players": len(r.display_names),
                }
                for r in self._rounds.rounds()
            ]

    # ==================================================================
    # Roster commands
    # ==================================================================

    def register(self, names: Iterable[str]) -> List[str]:
        with self._lock:
            added = self._roster.add_many(n for n in names if isinstance(n, str))
        if added:
            log.info(f"Registered {len(added)} player(s): {', '.join(added)}")
            self._emit([RosterChanged(added=tuple(added))])
            self._request_persist()
        return added

    def unregister(self, names: Iterable[str]) -> List[str]:
        with self._lock:
            removed = self._roster.remove_many(n for n in names if isinstance(n, str))
        if removed:
            log.info(f"Unregistered {len(removed)} player(s): {', '.join(removed)}")
            self._emit([RosterChanged(removed=tuple(removed))])
            self._request_persist()
        return removed

    def registered(self) -> List[str]:
        with self._lock:
            return self._roster.members()

    def set_clan_only(self, enabled: bool) -> bool:
        with self._lock:
            self._roster.clan_only = bool(enabled)
        log.info(f"Clan-only mode {'enabled' if enabled else 'disabled'}")
        self._request_persist()
        return bool(enabled)

    # ==================================================================
    # Boards
    # ==================================================================

    def hiscores(self, period: Optional[str] = None, name_filter: Optional[str] = None) -> List[Dict[str, Any]]:
        """Kill board for the current round, or for a history period when given."""
        with self._lock:
            if period is not None:
                entries = self._history.filter_by_period(period, self._clock())
                return kill_board(entries, name_filter)

            round_ = self._rounds.current
            needle = norm(name_filter)
            keys = set(round_.kills) | set(round_.deaths)
            return rank_rows(
                (
                    {
                        "name": round_.display(key),
                        "kills": round_.kills.get(key, 0),
                        "deaths": round_.deaths.get(key, 0),
                    }
                    for key in keys
                    if not needle or needle in key
                ),
                score="kills",
            )

    def lootboard(self, period: Optional[str] = None, name_filter: Optional[str] = None) -> List[Dict[str, Any]]:
        """GP board for the current round, or for a history period when given."""
        with self._lock:
            if period is not None:
                entries = self._history.filter_by_period(period, self._clock())
                return loot_board(entries, name_filter)

            round_ = self._rounds.current
            needle = norm(name_filter)
            return rank_rows(
                (
                    {
                        "name": round_.display(key),
                        "gp": total,
                        "kills": round_.kills.get(key, 0),
                    }
                    for key, total in round_.gp.items()
                    if not needle or needle in key
                ),
                score="gp",
            )

    def total_gp(self) -> int:
        with self._lock:
            return self._rounds.current.total_gp()

    # ==================================================================
    # Bounty commands
    # ==================================================================

    def bounty_list(self) -> Dict[str, List[Dict[str, Any]]]:
        with self._lock:
            persistent, once = self._bounties.list()
            return {"persistent": _pool_rows(persistent), "once": _pool_rows(once)}

    def bounty_add_once(self, target: str, amount: int, poster_id: str) -> int:
        with self._lock:
            record = self._bounties.add_once(target, amount, poster_id)
            total = record.total
        self._request_persist()
        return total

    def bounty_add_persistent(self, target: str, amount: int, poster_id: str) -> int:
        with self._lock:
            record = self._bounties.add_persistent(target, amount, poster_id)
            total = record.total
        self._request_persist()
        return total

    def bounty_remove_once(self, target: str, amount: int, poster_id: str) -> int:
        with self._lock:
            removed = self._bounties.remove_once(target, amount, poster_id)
        if removed:
            self._request_persist()
        return removed

    def bounty_remove_persistent(self, target: str, amount: int, poster_id: str) -> int:
        with self._lock:
            removed = self._bounties.remove_persistent(target, amount, poster_id)
        if removed:
            self._request_persist()
        return removed

    def bounty_pools(self, target: str) -> Dict[str, BountyPool]:
        with self._lock:
            record = self._bounties.get(target)
            if record is None:
                return {"once": BountyPool(), "persistent": BountyPool()}
            return {
                "once": BountyPool(record.once.total, dict(record.once.posters)),
                "persistent": BountyPool(record.persistent.total, dict(record.persistent.posters)),
            }

    # ==================================================================
    # Raglist commands
    # ==================================================================

    def raglist_list(self) -> List[str]:
        with self._lock:
            return self._raglist.list()

    def raglist_add(self, target: str) -> bool:
        if not norm(target):
            raise InvalidInput("Raglist target is required")
        with self._lock:
            added = self._raglist.add(target)
        if added:
            self._request_persist()
        return added

    def raglist_remove(self, target: str) -> bool:
        with self._lock:
            removed = self._raglist.remove(target)
        if removed:
            self._request_persist()
        return removed

    # ==================================================================
    # Maintenance
    # ==================================================================

    def sweep_dedup(self) -> int:
        with self._lock:
            return self._dedup.sweep(self._clock())

    def snapshot(self) -> Dict[str, Any]:
        """Build the four persisted documents from a consistent view."""
        with self._lock:
            entries = self._history.entries()
            return {
                REGISTERED_DOC: self._roster.members(),
                RAGLIST_DOC: self._raglist.list(),
                BOUNTIES_DOC: self._bounties.to_document(),
                STATE_DOC: {
                    "currentEvent": self._rounds.current_name,
                    "clanOnlyMode": self._roster.clan_only,
                    "events": self._rounds.to_document(),
                    "killLog": [e.to_document() for e in entries if not e.is_loot],
                    "lootLog": [e.to_document() for e in entries if e.is_loot],
                },
            }

    def restore(self, documents: Dict[str, Any]) -> None:
        """Replace in-memory state with previously persisted documents."""
        state = documents.get(STATE_DOC) if isinstance(documents.get(STATE_DOC), dict) else {}

        with self._lock:
            if isinstance(documents.get(REGISTERED_DOC), list):
                self._roster.replace(n for n in documents[REGISTERED_DOC] if isinstance(n, str))
            if isinstance(documents.get(RAGLIST_DOC), list):
                self._raglist.replace(n for n in documents[RAGLIST_DOC] if isinstance(n, str))
            if BOUNTIES_DOC in documents:
                self._bounties.restore(documents[BOUNTIES_DOC])

            if state:
                self._rounds.restore(state.get("events", {}), state.get("currentEvent"))
                if isinstance(state.get("clanOnlyMode"), bool):
                    self._roster.clan_only = state["clanOnlyMode"]

                entries = []
                for key in ("killLog", "lootLog"):
                    for raw in state.get(key) or []:
                        entry = HistoryEntry.from_document(raw) if isinstance(raw, dict) else None
                        if entry is not None:
                            entries.append(entry)
                self._history.replace(entries)

            log.info(
                f"State restored: current='{self._rounds.current_name}' "
                f"rounds={len(self._rounds.rounds())} roster={len(self._roster)} "
                f"raglist={len(self._raglist)} bounties={len(self._bounties)} "
                f"history={len(self._history)}"
            )

    # ==================================================================
    # Outbound plumbing
    # ==================================================================

    def _emit(self, notifications: List[Notification]) -> None:
        if not notifications or self._notifications is None:
            return
        self._notifications.dispatch(notifications)

    def _request_persist(self) -> None:
        if self._persistence is None:
            return
        with self._persist_guard:
            if self._persist_pending:
                return
            self._persist_pending = True
        if self._persistence.submit("snapshot", self._write_snapshot) is None:
            with self._persist_guard:
                self._persist_pending = False

    def _write_snapshot(self) -> None:
        with self._persist_guard:
            self._persist_pending = False
        self._storage.save_snapshot(self.snapshot())

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for queued notifications and writes to finish."""
        for dispatcher in (self._notifications, self._persistence):
            if dispatcher is not None:
                dispatcher.drain(timeout=timeout)

    def close(self) -> None:
        for dispatcher in (self._persistence, self._notifications):
            if dispatcher is not None:
                dispatcher.shutdown()
        log.info("Aggregation engine closed")


__all__ = ["AggregationEngine", "Status"]
