"""
Admin Slash Command Registration

Event lifecycle, roster, clan-only mode and raglist management. Every
mutating command is gated by require_admin; logic lives in
MadnessCommandHandler.
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from services.discord.commands.handlers import MadnessCommandHandler
from services.discord.commands.responses import respond
from services.discord.permissions import DiscordPermissionResolver, require_admin
from shared.logging.logger import get_logger

# NOTE: routed to Discord runtime log file
log = get_logger("discord.commands.admin", runtime="discord")


def _guild_id(interaction: discord.Interaction) -> Optional[int]:
    return interaction.guild.id if interaction.guild else None


def setup(
    bot: commands.Bot,
    *,
    handler: MadnessCommandHandler,
    permissions: DiscordPermissionResolver,
):
    """
    Register admin-level slash commands.
    """

    admin_only = require_admin(permissions)

    # --------------------------------------------------
    # /createevent, /finishevent
    # --------------------------------------------------

    @app_commands.command(name="createevent", description="Start a new tracked event")
    @app_commands.describe(name="Event name")
    @admin_only
    async def createevent(interaction: discord.Interaction, name: str):
        await interaction.response.defer()
        result = handler.cmd_create_event(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            name=name,
        )
        await respond(interaction, result, success_style=True)

    @app_commands.command(name="finishevent", description="Finish the current event and archive it")
    @admin_only
    async def finishevent(interaction: discord.Interaction):
        await interaction.response.defer()
        result = handler.cmd_finish_event(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
        )
        await respond(interaction, result, success_style=True)

    # --------------------------------------------------
    # /register, /unregister, /clanonly
    # --------------------------------------------------

    @app_commands.command(name="register", description="Add players to the clan roster")
    @app_commands.describe(names="Comma separated player names")
    @admin_only
    async def register(interaction: discord.Interaction, names: str):
        await interaction.response.defer(ephemeral=True)
        result = handler.cmd_register(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            names=names,
        )
        await respond(interaction, result, ephemeral=True, success_style=True)

    @app_commands.command(name="unregister", description="Remove players from the clan roster")
    @app_commands.describe(names="Comma separated player names")
    @admin_only
    async def unregister(interaction: discord.Interaction, names: str):
        await interaction.response.defer(ephemeral=True)
        result = handler.cmd_unregister(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            names=names,
        )
        await respond(interaction, result, ephemeral=True, success_style=True)

    @app_commands.command(name="clanonly", description="Only track clan vs clan events")
    @app_commands.describe(mode="on / off")
    @app_commands.choices(
        mode=[
            app_commands.Choice(name="on", value="on"),
            app_commands.Choice(name="off", value="off"),
        ]
    )
    @admin_only
    async def clanonly(interaction: discord.Interaction, mode: app_commands.Choice[str]):
        await interaction.response.defer(ephemeral=True)
        result = handler.cmd_clan_only(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            enabled=mode.value == "on",
        )
        await respond(interaction, result, ephemeral=True, success_style=True)

    # --------------------------------------------------
    # /raglist ...
    # --------------------------------------------------

    raglist = app_commands.Group(name="raglist", description="Flagged hunt targets")

    @raglist.command(name="list", description="Show the raglist")
    async def raglist_list(interaction: discord.Interaction):
        await interaction.response.defer()
        result = handler.cmd_raglist_list(user_id=interaction.user.id, guild_id=_guild_id(interaction))
        await respond(interaction, result)

    @raglist.command(name="add", description="Flag a target")
    @app_commands.describe(target="Player name")
    @admin_only
    async def raglist_add(interaction: discord.Interaction, target: str):
        await interaction.response.defer()
        result = handler.cmd_raglist_add(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            target=target,
        )
        await respond(interaction, result, success_style=True)

    @raglist.command(name="remove", description="Unflag a target")
    @app_commands.describe(target="Player name")
    @admin_only
    async def raglist_remove(interaction: discord.Interaction, target: str):
        await interaction.response.defer()
        result = handler.cmd_raglist_remove(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            target=target,
        )
        await respond(interaction, result, success_style=True)

    for command in (createevent, finishevent, register, unregister, clanonly, raglist):
        bot.tree.add_command(command)

    log.info("Discord admin slash commands registered")
