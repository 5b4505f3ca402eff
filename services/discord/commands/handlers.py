"""
Command handlers (pure, no Discord I/O).

Every method delegates to the AggregationEngine and returns a plain dict:

    {"ok": bool, "title": str, "description": str, ...}

Board commands additionally return "rows" and "score" so the registration
layer can render them. Engine errors (InvalidInput, StateConflict) become
ok=False results with the engine's message.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from core.engine import AggregationEngine
from core.errors import MadnessError
from services.discord.logging import DiscordLogAdapter
from shared.combat.gp import format_gp, parse_gp

Result = Dict[str, Any]


def split_names(raw: str) -> List[str]:
    """Comma separated player names; blanks dropped."""
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


def _ok(title: str, description: str = "", **extra: Any) -> Result:
    return {"ok": True, "title": title, "description": description, **extra}


def _fail(title: str, description: str) -> Result:
    return {"ok": False, "title": title, "description": description}


class MadnessCommandHandler:
    def __init__(
        self,
        *,
        engine: AggregationEngine,
        logger: Optional[DiscordLogAdapter] = None,
    ):
        self._engine = engine
        self._logger = logger or DiscordLogAdapter()

    def _audit(self, command: str, user_id: Optional[int], guild_id: Optional[int], result: Result, **extra: Any) -> Result:
        self._logger.log_command(
            command=command,
            guild_id=guild_id,
            user_id=user_id,
            success=result["ok"],
            extra=extra,
        )
        return result

    # --------------------------------------------------
    # EVENT LIFECYCLE
    # --------------------------------------------------

    def cmd_create_event(self, *, user_id: int, guild_id: Optional[int], name: str) -> Result:
        try:
            created = self._engine.create_event(name)
        except MadnessError as e:
            result = _fail("Could not create event", str(e))
        else:
            result = _ok("Event created", f"Now tracking **{created}**", name=created)
        return self._audit("createevent", user_id, guild_id, result, name=name)

    def cmd_finish_event(self, *, user_id: int, guild_id: Optional[int]) -> Result:
        finished = self._engine.finish_event()
        round_ = finished["round"]
        description = (
            f"**{finished['name']}** finished with {sum(round_.kills.values())} kills "
            f"and {round_.total_gp():,} coins. Tracking returned to **default**."
        )
        result = _ok("Event finished", description, name=finished["name"], snapshot_ref=finished["snapshot_ref"])
        return self._audit("finishevent", user_id, guild_id, result)

    def cmd_list_events(self, *, user_id: int, guild_id: Optional[int]) -> Result:
        events = self._engine.list_events()
        lines = [
            f"{'▶️ ' if e['current'] else ''}**{e['name']}** · {e['kills']} kills · {e['gp']:,} coins"
            for e in events
        ]
        result = _ok("Events", "\n".join(lines), events=events)
        return self._audit("listevents", user_id, guild_id, result)

    # --------------------------------------------------
    # ROSTER
    # --------------------------------------------------

    def cmd_register(self, *, user_id: int, guild_id: Optional[int], names: str) -> Result:
        requested = split_names(names)
        if not requested:
            result = _fail("Nothing to register", "Provide one or more comma separated names")
        else:
            added = self._engine.register(requested)
            result = _ok(
                "Roster updated",
                f"Registered: {', '.join(added)}" if added else "All names were already registered",
                added=added,
            )
        return self._audit("register", user_id, guild_id, result, names=requested)

    def cmd_unregister(self, *, user_id: int, guild_id: Optional[int], names: str) -> Result:
        requested = split_names(names)
        if not requested:
            result = _fail("Nothing to unregister", "Provide one or more comma separated names")
        else:
            removed = self._engine.unregister(requested)
            result = _ok(
                "Roster updated",
                f"Unregistered: {', '.join(removed)}" if removed else "None of those names were registered",
                removed=removed,
            )
        return self._audit("unregister", user_id, guild_id, result, names=requested)

    def cmd_clan_only(self, *, user_id: int, guild_id: Optional[int], enabled: bool) -> Result:
        self._engine.set_clan_only(enabled)
        result = _ok(
            "Clan-only mode",
            "Only clan vs clan events are tracked" if enabled else "All events are tracked",
            enabled=enabled,
        )
        return self._audit("clanonly", user_id, guild_id, result, enabled=enabled)

    # --------------------------------------------------
    # BOARDS
    # --------------------------------------------------

    def _board(self, command: str, fn, title: str, score: str, user_id, guild_id, period, name) -> Result:
        try:
            rows = fn(period, name)
        except MadnessError as e:
            result = _fail("Invalid period", str(e))
        else:
            scope = period or self._engine.current_event
            result = _ok(f"{title} ({scope})", rows=rows, score=score)
        return self._audit(command, user_id, guild_id, result, period=period, name=name)

    def cmd_hiscores(self, *, user_id: int, guild_id: Optional[int], period: Optional[str] = None, name: Optional[str] = None) -> Result:
        return self._board("hiscores", self._engine.hiscores, "Hiscores", "kills", user_id, guild_id, period, name)

    def cmd_lootboard(self, *, user_id: int, guild_id: Optional[int], period: Optional[str] = None, name: Optional[str] = None) -> Result:
        return self._board("lootboard", self._engine.lootboard, "Lootboard", "gp", user_id, guild_id, period, name)

    def cmd_total_gp(self, *, user_id: int, guild_id: Optional[int]) -> Result:
        total = self._engine.total_gp()
        result = _ok(
            "Total GP",
            f"**{self._engine.current_event}** has gained **{total:,} coins**",
            total=total,
        )
        return self._audit("totalgp", user_id, guild_id, result)

    # --------------------------------------------------
    # BOUNTIES
    # --------------------------------------------------

    def cmd_bounty_list(self, *, user_id: int, guild_id: Optional[int]) -> Result:
        listing = self._engine.bounty_list()
        lines = []
        for row in listing["persistent"]:
            lines.append(f"♾️ **{row['target']}** · {format_gp(row['total'])} (persistent)")
        for row in listing["once"]:
            lines.append(f"🎯 **{row['target']}** · {format_gp(row['total'])}")
        result = _ok("Bounties", "\n".join(lines) or "No active bounties.", **listing)
        return self._audit("bounty list", user_id, guild_id, result)

    def cmd_bounty_add(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        target: str,
        amount: str,
        persistent: bool = False,
    ) -> Result:
        gp, ok = parse_gp(amount)
        if not ok:
            result = _fail("Invalid amount", f"Could not read {amount!r} as a GP amount (e.g. 500k, 2m)")
            return self._audit("bounty add", user_id, guild_id, result, target=target, amount=amount)

        add = self._engine.bounty_add_persistent if persistent else self._engine.bounty_add_once
        try:
            total = add(target, gp, str(user_id))
        except MadnessError as e:
            result = _fail("Could not add bounty", str(e))
        else:
            kind = "persistent bounty" if persistent else "bounty"
            result = _ok(
                "Bounty posted",
                f"Added **{gp:,} coins** {kind} on **{target}** (total {total:,} coins)",
                total=total,
            )
        return self._audit("bounty add", user_id, guild_id, result, target=target, amount=gp, persistent=persistent)

    def cmd_bounty_remove(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        target: str,
        amount: str,
        persistent: bool = False,
    ) -> Result:
        gp, ok = parse_gp(amount)
        if not ok:
            result = _fail("Invalid amount", f"Could not read {amount!r} as a GP amount (e.g. 500k, 2m)")
            return self._audit("bounty remove", user_id, guild_id, result, target=target, amount=amount)

        remove = self._engine.bounty_remove_persistent if persistent else self._engine.bounty_remove_once
        try:
            removed = remove(target, gp, str(user_id))
        except MadnessError as e:
            result = _fail("Could not remove bounty", str(e))
        else:
            result = _ok(
                "Bounty updated",
                f"Removed **{removed:,} coins** of your contribution on **{target}**",
                removed=removed,
            )
        return self._audit("bounty remove", user_id, guild_id, result, target=target, amount=gp, persistent=persistent)

    # --------------------------------------------------
    # RAGLIST
    # --------------------------------------------------

    def cmd_raglist_list(self, *, user_id: int, guild_id: Optional[int]) -> Result:
        targets = self._engine.raglist_list()
        result = _ok("Raglist", ", ".join(targets) or "The raglist is empty.", targets=targets)
        return self._audit("raglist list", user_id, guild_id, result)

    def cmd_raglist_add(self, *, user_id: int, guild_id: Optional[int], target: str) -> Result:
        try:
            added = self._engine.raglist_add(target)
        except MadnessError as e:
            result = _fail("Could not update raglist", str(e))
        else:
            result = _ok(
                "Raglist updated",
                f"**{target}** added" if added else f"**{target}** is already on the raglist",
                added=added,
            )
        return self._audit("raglist add", user_id, guild_id, result, target=target)

    def cmd_raglist_remove(self, *, user_id: int, guild_id: Optional[int], target: str) -> Result:
        removed = self._engine.raglist_remove(target)
        result = _ok(
            "Raglist updated",
            f"**{target}** removed" if removed else f"**{target}** was not on the raglist",
            removed=removed,
        )
        return self._audit("raglist remove", user_id, guild_id, result, target=target)


__all__ = ["MadnessCommandHandler", "split_names"]
