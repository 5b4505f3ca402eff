from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

import discord

from core.notifications import (
    BountyClaimed,
    EventCreated,
    EventFinished,
    KillLogged,
    LootDetected,
    Notification,
    RaglistAlert,
    RosterChanged,
)

LOOT_COLOR = discord.Color(0xFF0000)
MAX_BOARD_LINES = 20


def info_embed(title: str, description: str | None = None) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=description,
        color=discord.Color.blurple(),
    )


def success_embed(title: str, description: str | None = None) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=description,
        color=discord.Color.green(),
    )


def error_embed(title: str, description: str | None = None) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=description,
        color=discord.Color.red(),
    )


def _coins(value: int) -> str:
    return f"{value:,} coins"


def _stamp(embed: discord.Embed) -> discord.Embed:
    embed.timestamp = datetime.now(timezone.utc)
    return embed


def notification_embed(notification: Notification) -> discord.Embed:
    """Render one engine notification for a Discord channel."""

    if isinstance(notification, LootDetected):
        embed = discord.Embed(
            title="💰 Loot Detected",
            description=(
                f"**{notification.killer}** defeated **{notification.victim}** "
                f"and received **{_coins(notification.gp)}**"
            ),
            color=LOOT_COLOR,
        )
        embed.add_field(name="Event GP Gained", value=_coins(notification.display_total), inline=True)
        if notification.is_clan:
            embed.set_footer(text="Clan vs clan")
        return _stamp(embed)

    if isinstance(notification, KillLogged):
        embed = discord.Embed(
            title="⚔️ Kill Logged",
            description=f"**{notification.killer}** defeated **{notification.victim}**",
            color=discord.Color.dark_red(),
        )
        embed.add_field(name="Deaths This Event", value=str(notification.total_deaths), inline=True)
        if notification.is_clan:
            embed.set_footer(text="Clan vs clan")
        return _stamp(embed)

    if isinstance(notification, RaglistAlert):
        embed = discord.Embed(
            title="🚨 Raglist Target Down",
            description=f"**{notification.victim}** is on the raglist and was just killed",
            color=discord.Color.orange(),
        )
        embed.add_field(name="Bounty On Target", value=_coins(notification.bounty_total), inline=True)
        return _stamp(embed)

    if isinstance(notification, BountyClaimed):
        posters = " ".join(f"<@{p}>" if p.isdigit() else p for p in notification.poster_ids)
        embed = discord.Embed(
            title="🏆 Bounty Claimed",
            description=(
                f"**{notification.killer}** claimed **{_coins(notification.payout)}** "
                f"for killing **{notification.victim}**"
            ),
            color=discord.Color.gold(),
        )
        if posters:
            embed.add_field(name="Posted By", value=posters, inline=False)
        return _stamp(embed)

    if isinstance(notification, EventCreated):
        return _stamp(success_embed("📣 Event Started", f"Now tracking **{notification.name}**"))

    if isinstance(notification, EventFinished):
        description = f"**{notification.name}** has finished; tracking returned to **default**"
        if notification.snapshot_ref:
            description += f"\nArchived as `{notification.snapshot_ref}`"
        return _stamp(info_embed("🏁 Event Finished", description))

    if isinstance(notification, RosterChanged):
        lines = []
        if notification.added:
            lines.append(f"Added: {', '.join(notification.added)}")
        if notification.removed:
            lines.append(f"Removed: {', '.join(notification.removed)}")
        return _stamp(info_embed("📋 Clan Roster Updated", "\n".join(lines) or None))

    return info_embed(notification.kind, str(notification.to_dict()))


def board_embed(title: str, rows: List[Dict[str, Any]], *, score: str) -> discord.Embed:
    if not rows:
        return info_embed(title, "No entries yet.")

    lines = []
    for row in rows[:MAX_BOARD_LINES]:
        if score == "gp":
            detail = f"{_coins(row['gp'])} ({row['kills']} kills)"
        else:
            detail = f"{row['kills']} kills / {row['deaths']} deaths"
        lines.append(f"**{row['rank']}.** {row['name']} · {detail}")
    return info_embed(title, "\n".join(lines))
