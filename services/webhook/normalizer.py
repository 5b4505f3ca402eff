"""
Normalizer: raw webhook payloads -> canonical CombatEvent.

Two raw sources are accepted:
- CHAT_LINE:  a clan-chat line as relayed by the Dink plugin
- STRUCTURED: explicit {kind, killer, victim, gp, dedup_key} fields

Canonical chat grammar (case-insensitive):
  loot: "<killer> has defeated <victim> and received (<gp> coins)<any suffix>"
  kill: "<killer> has defeated <victim>" with an optional trailing '.' or '!'
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from shared.combat.events import (
    CombatEvent,
    EventKind,
    create_combat_event,
    loot_dedup_key,
)
from shared.combat.gp import parse_gp

LOOT_PATTERN = re.compile(
    r"^(?P<killer>.+?)\s+has\s+defeated\s+(?P<victim>.+?)\s+and\s+received\s+"
    r"\((?P<gp>[0-9,.]+[kmb]?)\s+coins\)(?P<suffix>.*)$",
    re.IGNORECASE,
)

KILL_PATTERN = re.compile(
    r"^(?P<killer>.+?)\s+has\s+defeated\s+(?P<victim>.+?)\s*[.!]?$",
    re.IGNORECASE,
)

RECEIVED_MARKER = re.compile(r"\s+and\s+received\s+", re.IGNORECASE)

DINK_CHAT_TYPE = "CHAT"
DINK_CLAN_CHAT = "CLAN_CHAT"


class ChatSource(Enum):
    CHAT_LINE = "chat_line"
    STRUCTURED = "structured"


@dataclass
class RawChatEvent:
    source: ChatSource
    text: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


def from_dink_payload(payload: Any) -> Optional[RawChatEvent]:
    """Extract the clan-chat line from a Dink envelope; None for anything else."""
    if not isinstance(payload, dict):
        return None
    extra = payload.get("extra")
    if (
        payload.get("type") == DINK_CHAT_TYPE
        and isinstance(extra, dict)
        and extra.get("type") == DINK_CLAN_CHAT
        and isinstance(extra.get("message"), str)
    ):
        return RawChatEvent(source=ChatSource.CHAT_LINE, text=extra["message"])
    return None


def parse_chat_line(line: str, *, timestamp: Optional[float] = None) -> Optional[CombatEvent]:
    """
    Parse one chat line. Returns None when the line is not a kill/loot line;
    raises ValueError when it matches the loot grammar with an invalid amount.
    """
    text = (line or "").strip()
    if not text:
        return None

    match = LOOT_PATTERN.match(text)
    if match:
        gp, ok = parse_gp(match.group("gp"))
        if not ok:
            raise ValueError(f"invalid gp amount {match.group('gp')!r}")
        return create_combat_event(
            kind=EventKind.LOOT,
            killer=match.group("killer"),
            victim=match.group("victim"),
            gp=gp,
            dedup_key=loot_dedup_key(text),
            timestamp=timestamp,
        )

    # malformed loot lines must not fall through to the kill grammar
    if RECEIVED_MARKER.search(text):
        return None

    match = KILL_PATTERN.match(text)
    if match:
        return create_combat_event(
            kind=EventKind.KILL,
            killer=match.group("killer"),
            victim=match.group("victim"),
            timestamp=timestamp,
        )

    return None


def _structured_gp(value: Any) -> Any:
    if isinstance(value, str):
        gp, ok = parse_gp(value)
        return gp if ok else None
    return value


def normalize(raw: RawChatEvent, *, timestamp: Optional[float] = None) -> Optional[CombatEvent]:
    if raw.source is ChatSource.CHAT_LINE:
        return parse_chat_line(raw.text or "", timestamp=timestamp)

    data = raw.fields
    kind = EventKind.from_value(data.get("kind"))
    gp = _structured_gp(data.get("gp")) if kind is EventKind.LOOT else None
    return create_combat_event(
        kind=kind,
        killer=data.get("killer") or "",
        victim=data.get("victim") or "",
        gp=gp,
        dedup_key=data.get("dedup_key") or None,
        timestamp=timestamp,
    )


__all__ = [
    "ChatSource",
    "KILL_PATTERN",
    "LOOT_PATTERN",
    "RawChatEvent",
    "from_dink_payload",
    "normalize",
    "parse_chat_line",
]
