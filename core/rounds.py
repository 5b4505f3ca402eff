"""
Event rounds and the current-round lifecycle.

Exactly one round is current at any time. The "default" round always exists:
finish_event() resets it in place instead of deleting it, and every finish
returns the pointer to it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.errors import DuplicateOrInvalidName
from shared.combat.events import display_name, norm

DEFAULT_ROUND = "default"


def _counter(raw: Any) -> Dict[str, int]:
    if not isinstance(raw, dict):
        return {}
    counts: Dict[str, int] = {}
    for name, value in raw.items():
        key = norm(name)
        if key and isinstance(value, int) and not isinstance(value, bool) and value > 0:
            counts[key] = value
    return counts


@dataclass
class EventRound:
    """Isolated counters for one named scoring period."""

    name: str
    kills: Dict[str, int] = field(default_factory=dict)
    deaths: Dict[str, int] = field(default_factory=dict)
    loot: Dict[str, int] = field(default_factory=dict)
    gp: Dict[str, int] = field(default_factory=dict)
    display_names: Dict[str, str] = field(default_factory=dict)

    def _remember(self, name: str) -> str:
        key = norm(name)
        self.display_names[key] = display_name(name)
        return key

    def record_kill(self, killer: str, victim: str) -> None:
        victim_key = self._remember(victim)
        killer_key = self._remember(killer)
        self.deaths[victim_key] = self.deaths.get(victim_key, 0) + 1
        self.kills[killer_key] = self.kills.get(killer_key, 0) + 1

    def record_loot(self, killer: str, gp: int) -> None:
        killer_key = self._remember(killer)
        self.loot[killer_key] = self.loot.get(killer_key, 0) + gp
        self.gp[killer_key] = self.gp.get(killer_key, 0) + gp
        self.kills[killer_key] = self.kills.get(killer_key, 0) + 1

    def display(self, key: str) -> str:
        return self.display_names.get(key, key)

    def total_gp(self) -> int:
        return sum(self.gp.values())

    def is_empty(self) -> bool:
        return not (self.kills or self.deaths or self.loot or self.gp)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        return {
            "kills": dict(self.kills),
            "deaths": dict(self.deaths),
            "loot": dict(self.loot),
            "gp": dict(self.gp),
            "names": dict(self.display_names),
        }

    @classmethod
    def from_document(cls, name: str, doc: Dict[str, Any]) -> "EventRound":
        names = doc.get("names") if isinstance(doc.get("names"), dict) else {}
        return cls(
            name=name,
            kills=_counter(doc.get("kills")),
            deaths=_counter(doc.get("deaths")),
            loot=_counter(doc.get("loot")),
            gp=_counter(doc.get("gp")),
            display_names={
                norm(k): display_name(v)
                for k, v in names.items()
                if norm(k) and isinstance(v, str)
            },
        )


class RoundStore:
    """Owns every live round plus the current-round pointer."""

    def __init__(self) -> None:
        self._rounds: Dict[str, EventRound] = {DEFAULT_ROUND: EventRound(DEFAULT_ROUND)}
        self._current: str = DEFAULT_ROUND

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def current_name(self) -> str:
        return self._current

    @property
    def current(self) -> EventRound:
        return self._rounds[self._current]

    def get(self, name: str) -> Optional[EventRound]:
        return self._rounds.get(norm(name))

    def rounds(self) -> List[EventRound]:
        return list(self._rounds.values())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(self, name: str) -> EventRound:
        key = norm(name)
        if not key:
            raise DuplicateOrInvalidName("Event name must not be empty")
        if key == DEFAULT_ROUND:
            raise DuplicateOrInvalidName(f"'{DEFAULT_ROUND}' is a reserved event name")
        if key in self._rounds:
            raise DuplicateOrInvalidName(f"Event '{key}' already exists")

        round_ = EventRound(key)
        self._rounds[key] = round_
        self._current = key
        return round_

    def finish(self) -> EventRound:
        """
        Detach the current round and return it; the pointer always ends on
        "default". Finishing "default" hands back its state and resets it.
        """
        finished = self._rounds.pop(self._current)
        if finished.name == DEFAULT_ROUND:
            self._rounds[DEFAULT_ROUND] = EventRound(DEFAULT_ROUND)
        self._current = DEFAULT_ROUND
        return finished

    # ------------------------------------------------------------------
    # Mutation (current round only)
    # ------------------------------------------------------------------

    def record_kill(self, killer: str, victim: str) -> EventRound:
        self.current.record_kill(killer, victim)
        return self.current

    def record_loot(self, killer: str, gp: int) -> EventRound:
        self.current.record_loot(killer, gp)
        return self.current

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Dict[str, Any]]:
        return {name: r.to_document() for name, r in self._rounds.items()}

    def restore(self, events: Dict[str, Any], current: Optional[str]) -> None:
        rounds: Dict[str, EventRound] = {}
        if isinstance(events, dict):
            for name, doc in events.items():
                key = norm(name)
                if key and isinstance(doc, dict):
                    rounds[key] = EventRound.from_document(key, doc)
        rounds.setdefault(DEFAULT_ROUND, EventRound(DEFAULT_ROUND))

        self._rounds = rounds
        current_key = norm(current)
        self._current = current_key if current_key in rounds else DEFAULT_ROUND
