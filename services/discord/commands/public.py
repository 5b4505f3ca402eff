"""
Public Slash Command Registration

Read-only boards plus bounty posting, callable by any guild member. All logic
lives in MadnessCommandHandler; this layer only performs Discord I/O.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.history import PERIODS
from services.discord.commands.handlers import MadnessCommandHandler
from services.discord.commands.responses import respond
from shared.logging.logger import get_logger

log = get_logger("discord.commands.public", runtime="discord")

PERIOD_CHOICES = [app_commands.Choice(name=p, value=p) for p in PERIODS]


def _guild_id(interaction: discord.Interaction) -> Optional[int]:
    return interaction.guild.id if interaction.guild else None


def setup(bot: commands.Bot, *, handler: MadnessCommandHandler):
    """
    Register public slash commands.
    """

    # --------------------------------------------------
    # /hiscores, /lootboard, /totalgp, /listevents
    # --------------------------------------------------

    @app_commands.command(name="hiscores", description="Kill leaderboard")
    @app_commands.describe(
        period="Time window (omit for the current event)",
        name="Only players whose name contains this text",
    )
    @app_commands.choices(period=PERIOD_CHOICES)
    async def hiscores(
        interaction: discord.Interaction,
        period: Optional[app_commands.Choice[str]] = None,
        name: Optional[str] = None,
    ):
        await interaction.response.defer()
        result = handler.cmd_hiscores(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            period=period.value if period else None,
            name=name,
        )
        await respond(interaction, result)

    @app_commands.command(name="lootboard", description="GP leaderboard")
    @app_commands.describe(
        period="Time window (omit for the current event)",
        name="Only players whose name contains this text",
    )
    @app_commands.choices(period=PERIOD_CHOICES)
    async def lootboard(
        interaction: discord.Interaction,
        period: Optional[app_commands.Choice[str]] = None,
        name: Optional[str] = None,
    ):
        await interaction.response.defer()
        result = handler.cmd_lootboard(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            period=period.value if period else None,
            name=name,
        )
        await respond(interaction, result)

    @app_commands.command(name="totalgp", description="Total GP gained in the current event")
    async def totalgp(interaction: discord.Interaction):
        await interaction.response.defer()
        result = handler.cmd_total_gp(user_id=interaction.user.id, guild_id=_guild_id(interaction))
        await respond(interaction, result)

    @app_commands.command(name="listevents", description="List live events")
    async def listevents(interaction: discord.Interaction):
        await interaction.response.defer()
        result = handler.cmd_list_events(user_id=interaction.user.id, guild_id=_guild_id(interaction))
        await respond(interaction, result)

    # --------------------------------------------------
    # /bounty ...
    # --------------------------------------------------

    bounty = app_commands.Group(name="bounty", description="GP bounties on raglist targets")

    @bounty.command(name="list", description="Show active bounties")
    async def bounty_list(interaction: discord.Interaction):
        await interaction.response.defer()
        result = handler.cmd_bounty_list(user_id=interaction.user.id, guild_id=_guild_id(interaction))
        await respond(interaction, result)

    async def _add(interaction: discord.Interaction, target: str, amount: str, persistent: bool):
        await interaction.response.defer()
        result = handler.cmd_bounty_add(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            target=target,
            amount=amount,
            persistent=persistent,
        )
        await respond(interaction, result, success_style=True)

    async def _remove(interaction: discord.Interaction, target: str, amount: str, persistent: bool):
        await interaction.response.defer(ephemeral=True)
        result = handler.cmd_bounty_remove(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            target=target,
            amount=amount,
            persistent=persistent,
        )
        await respond(interaction, result, ephemeral=True)

    @bounty.command(name="add", description="Post a one-time bounty, paid on the next kill")
    @app_commands.describe(target="Player name", amount="GP amount, e.g. 500k or 2m")
    async def bounty_add(interaction: discord.Interaction, target: str, amount: str):
        await _add(interaction, target, amount, persistent=False)

    @bounty.command(name="addpersistent", description="Post a bounty paid on every kill")
    @app_commands.describe(target="Player name", amount="GP amount, e.g. 500k or 2m")
    async def bounty_add_persistent(interaction: discord.Interaction, target: str, amount: str):
        await _add(interaction, target, amount, persistent=True)

    @bounty.command(name="remove", description="Withdraw part of your one-time bounty")
    @app_commands.describe(target="Player name", amount="GP amount, e.g. 500k or 2m")
    async def bounty_remove(interaction: discord.Interaction, target: str, amount: str):
        await _remove(interaction, target, amount, persistent=False)

    @bounty.command(name="removepersistent", description="Withdraw part of your persistent bounty")
    @app_commands.describe(target="Player name", amount="GP amount, e.g. 500k or 2m")
    async def bounty_remove_persistent(interaction: discord.Interaction, target: str, amount: str):
        await _remove(interaction, target, amount, persistent=True)

    for command in (hiscores, lootboard, totalgp, listevents, bounty):
        bot.tree.add_command(command)

    log.info("Discord public slash commands registered")
