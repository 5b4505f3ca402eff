"""
Combat event schema shared by the webhook receiver and the engine.

Nothing here performs I/O; parsing of wire payloads lives in
services.webhook.normalizer.
"""

from shared.combat.events import (
    CombatEvent,
    EventKind,
    create_combat_event,
    display_name,
    kill_dedup_key,
    loot_dedup_key,
    norm,
)
from shared.combat.gp import format_gp, parse_gp

__all__ = [
    "CombatEvent",
    "EventKind",
    "create_combat_event",
    "display_name",
    "format_gp",
    "kill_dedup_key",
    "loot_dedup_key",
    "norm",
    "parse_gp",
]
