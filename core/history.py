"""
Append-only history of admitted events.

The log is independent of rounds: finishing or creating a round never touches
it. Period boards (daily / weekly / monthly / all) are computed from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from core.errors import InvalidInput
from shared.combat.events import display_name, norm

DAY_SECONDS = 24 * 60 * 60

PERIOD_CUTOFFS: Dict[str, Optional[float]] = {
    "daily": 1 * DAY_SECONDS,
    "weekly": 7 * DAY_SECONDS,
    "monthly": 30 * DAY_SECONDS,
    "all": None,
}

PERIODS = tuple(PERIOD_CUTOFFS)


def normalize_period(period: Any) -> str:
    value = (period or "").strip().lower() if isinstance(period, str) else ""
    if value not in PERIOD_CUTOFFS:
        raise InvalidInput(
            f"Unknown period {period!r}; expected one of {', '.join(PERIODS)}"
        )
    return value


@dataclass(frozen=True)
class HistoryEntry:
    killer: str
    timestamp: float
    is_clan: bool
    round_name: str
    victim: Optional[str] = None
    gp: Optional[int] = None

    @property
    def is_loot(self) -> bool:
        return self.gp is not None

    def to_document(self) -> Dict[str, Any]:
        return {
            "killer": self.killer,
            "victim": self.victim,
            "gp": self.gp,
            "timestamp": self.timestamp,
            "isClan": self.is_clan,
            "round": self.round_name,
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> Optional["HistoryEntry"]:
        killer = display_name(doc.get("killer"))
        timestamp = doc.get("timestamp")
        if not killer or not isinstance(timestamp, (int, float)) or isinstance(timestamp, bool):
            return None
        gp = doc.get("gp")
        if not isinstance(gp, int) or isinstance(gp, bool) or gp <= 0:
            gp = None
        victim = display_name(doc.get("victim")) or None
        return cls(
            killer=killer,
            victim=victim,
            gp=gp,
            timestamp=float(timestamp),
            is_clan=bool(doc.get("isClan", False)),
            round_name=str(doc.get("round") or "default"),
        )


class HistoryLog:
    def __init__(self, entries: Iterable[HistoryEntry] = ()) -> None:
        self._entries: List[HistoryEntry] = list(entries)

    def append(self, entry: HistoryEntry) -> None:
        self._entries.append(entry)

    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def filter_by_period(self, period: str, now: float) -> List[HistoryEntry]:
        cutoff = PERIOD_CUTOFFS[normalize_period(period)]
        if cutoff is None:
            return list(self._entries)
        return [e for e in self._entries if now - e.timestamp <= cutoff]

    def replace(self, entries: Iterable[HistoryEntry]) -> None:
        self._entries = sorted(entries, key=lambda e: e.timestamp)

    def __len__(self) -> int:
        return len(self._entries)


# ----------------------------------------------------------------------
# Boards
# ----------------------------------------------------------------------

def _matches(key: str, name_filter: Optional[str]) -> bool:
    needle = norm(name_filter)
    return not needle or needle in key


def kill_board(
    entries: Iterable[HistoryEntry],
    name_filter: Optional[str] = None,
) -> List[Dict[str, Any]]:
    kills: Dict[str, int] = {}
    deaths: Dict[str, int] = {}
    names: Dict[str, str] = {}

    for entry in entries:
        killer = norm(entry.killer)
        names[killer] = entry.killer
        kills[killer] = kills.get(killer, 0) + 1
        if entry.victim and not entry.is_loot:
            victim = norm(entry.victim)
            names.setdefault(victim, entry.victim)
            deaths[victim] = deaths.get(victim, 0) + 1

    return rank_rows(
        (
            {"name": names[key], "kills": kills.get(key, 0), "deaths": deaths.get(key, 0)}
            for key in names
            if _matches(key, name_filter)
        ),
        score="kills",
    )


def loot_board(
    entries: Iterable[HistoryEntry],
    name_filter: Optional[str] = None,
) -> List[Dict[str, Any]]:
    gp: Dict[str, int] = {}
    kills: Dict[str, int] = {}
    names: Dict[str, str] = {}

    for entry in entries:
        if not entry.is_loot:
            continue
        key = norm(entry.killer)
        names[key] = entry.killer
        gp[key] = gp.get(key, 0) + entry.gp
        kills[key] = kills.get(key, 0) + 1

    return rank_rows(
        (
            {"name": names[key], "gp": gp[key], "kills": kills[key]}
            for key in names
            if _matches(key, name_filter)
        ),
        score="gp",
    )


def rank_rows(rows: Iterable[Dict[str, Any]], *, score: str) -> List[Dict[str, Any]]:
    kept = [r for r in rows if r[score] > 0 or r.get("deaths")]
    ordered = sorted(kept, key=lambda r: (-r[score], norm(r["name"])))
    for rank, row in enumerate(ordered, start=1):
        row["rank"] = rank
    return ordered
