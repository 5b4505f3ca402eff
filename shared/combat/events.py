"""Canonical combat event schema and player-name helpers."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional

from shared.combat.gp import MAX_GP

_WHITESPACE = re.compile(r"\s+")


class EventKind(Enum):
    KILL = "kill"
    LOOT = "loot"

    @classmethod
    def from_value(cls, value: Any) -> "EventKind":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if normalized in {member.name.lower(), member.value}:
                    return member
        raise ValueError(f"Unsupported event kind: {value!r}")


def display_name(value: Optional[str]) -> str:
    """Trim a player name and collapse inner whitespace (RuneLite uses NBSP)."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", str(value).replace("\u00a0", " ")).strip()


def norm(value: Optional[str]) -> str:
    """Case-insensitive identity of a player name."""
    return display_name(value).lower()


def loot_dedup_key(line: str) -> str:
    return (line or "").strip()


def kill_dedup_key(killer: str, victim: str) -> str:
    return f"K|{norm(killer)}|{norm(victim)}"


@dataclass(frozen=True)
class CombatEvent:
    kind: EventKind
    killer: str
    victim: str
    dedup_key: str
    timestamp: float
    gp: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["kind"] = self.kind.value
        if self.gp is None:
            payload.pop("gp", None)
        return payload


def create_combat_event(
    *,
    kind: EventKind | str,
    killer: str,
    victim: str,
    gp: Optional[int] = None,
    dedup_key: Optional[str] = None,
    source_text: Optional[str] = None,
    timestamp: Optional[float] = None,
) -> CombatEvent:
    event_kind = EventKind.from_value(kind)
    killer = display_name(killer)
    victim = display_name(victim)

    if not killer:
        raise ValueError("killer is required")
    if not victim:
        raise ValueError("victim is required")

    if event_kind is EventKind.LOOT:
        if isinstance(gp, bool) or not isinstance(gp, int) or not 0 < gp <= MAX_GP:
            raise ValueError("loot events require a gp amount between 1 and 2**64 - 1")
        key = dedup_key or loot_dedup_key(
            source_text or f"{killer}|{victim}|{gp}"
        )
    else:
        if gp is not None:
            raise ValueError("kill events carry no gp")
        key = dedup_key or kill_dedup_key(killer, victim)

    return CombatEvent(
        kind=event_kind,
        killer=killer,
        victim=victim,
        gp=gp,
        dedup_key=key,
        timestamp=timestamp if timestamp is not None else time.time(),
    )


__all__ = [
    "CombatEvent",
    "EventKind",
    "create_combat_event",
    "display_name",
    "kill_dedup_key",
    "loot_dedup_key",
    "norm",
]
