"""
Discord Command Package

Command categories:
- public         → boards, totals, bounty posting (any member)
- admin_commands → event lifecycle, roster, clan-only, raglist (admins)

No command registration on import; DiscordClient calls setup() once.
"""

from __future__ import annotations

from discord.ext import commands

from core.engine import AggregationEngine
from services.discord.commands import admin_commands
from services.discord.commands import public as public_commands
from services.discord.commands.handlers import MadnessCommandHandler
from services.discord.logging import DiscordLogAdapter
from services.discord.permissions import DiscordPermissionResolver
from shared.logging.logger import get_logger

log = get_logger("discord.commands", runtime="discord")


def setup(
    bot: commands.Bot,
    *,
    engine: AggregationEngine,
    permissions: DiscordPermissionResolver,
    logger: DiscordLogAdapter,
) -> MadnessCommandHandler:
    """
    Register all Discord command surfaces and return the shared handler.
    """
    handler = MadnessCommandHandler(engine=engine, logger=logger)

    public_commands.setup(bot, handler=handler)
    admin_commands.setup(bot, handler=handler, permissions=permissions)

    log.info("Discord command surfaces initialized")
    return handler
