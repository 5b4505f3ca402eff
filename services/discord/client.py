"""
Discord Client (Control-Plane Runtime)

This module owns the Discord connection itself.

Responsibilities:
- connect to Discord
- register the slash command surfaces
- attach the channel notifier once the gateway is ready
- expose a clean async run() / shutdown() contract

IMPORTANT:
- This client MUST NOT create its own event loop
- The engine is shared with the webhook server; commands never touch
  engine state directly
"""

from __future__ import annotations

import asyncio
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from core.engine import AggregationEngine
from core.notifications import Notifier
from services.discord import commands as command_surfaces
from services.discord.embeds import error_embed
from services.discord.logging import DiscordLogAdapter
from services.discord.notifier import DiscordChannelNotifier
from services.discord.permissions import DiscordPermissionResolver
from shared.config.system import DiscordSettings
from shared.logging.logger import get_logger

# NOTE: routed to Discord runtime log file
log = get_logger("discord.client", runtime="discord")


class DiscordClient:
    """
    Thin wrapper around discord.py Bot.
    """

    def __init__(
        self,
        *,
        engine: AggregationEngine,
        settings: DiscordSettings,
        notifier: Optional[Notifier] = None,
    ):
        if not settings.bot_token:
            raise RuntimeError("DISCORD_BOT_TOKEN not found in environment")

        self._token: str = settings.bot_token
        self._engine = engine
        self._notifier = notifier
        self._bot: Optional[commands.Bot] = None
        self._ready_event = asyncio.Event()

        self.logger = DiscordLogAdapter()
        self.permissions = DiscordPermissionResolver(settings.admin_role_ids)

    # --------------------------------------------------

    def _build_bot(self) -> commands.Bot:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = False
        intents.message_content = False  # slash-command focused

        bot = commands.Bot(
            command_prefix="!",
            intents=intents,
        )

        command_surfaces.setup(
            bot,
            engine=self._engine,
            permissions=self.permissions,
            logger=self.logger,
        )

        @bot.tree.error
        async def on_app_command_error(
            interaction: discord.Interaction,
            error: app_commands.AppCommandError,
        ):
            if isinstance(error, app_commands.CheckFailure):
                message = str(error) or "You are not allowed to use this command"
            else:
                log.error(f"Slash command failed: {error!r}")
                message = "Something went wrong while running this command"

            embed = error_embed("⛔ Command rejected", message)
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)

        # --------------------------------------------------
        # Lifecycle Events
        # --------------------------------------------------

        @bot.event
        async def on_ready():
            log.info(
                f"Discord connected as {bot.user} "
                f"(id={bot.user.id}) "
                f"guilds={len(bot.guilds)}"
            )

            if isinstance(self._notifier, DiscordChannelNotifier):
                self._notifier.attach(bot, asyncio.get_running_loop())

            try:
                await bot.tree.sync()
                log.info("Discord command tree synced")
            except Exception as e:
                log.error(f"Failed to sync Discord commands: {e}")

            self._ready_event.set()

        @bot.event
        async def on_resumed():
            log.info("Discord connection resumed")

        @bot.event
        async def on_disconnect():
            log.warning("Discord connection lost")

        @bot.event
        async def on_guild_join(guild: discord.Guild):
            log.info(
                f"Joined guild: {guild.name} "
                f"(id={guild.id}, members={guild.member_count})"
            )

        return bot

    # --------------------------------------------------

    async def run(self):
        """
        Start the Discord client and block until shutdown.
        """
        if self._bot is not None:
            raise RuntimeError("Discord client already running")

        log.info("Initializing Discord client")

        self._bot = self._build_bot()

        try:
            await self._bot.start(self._token)
        except asyncio.CancelledError:
            log.info("Discord client task cancelled")
            raise
        except Exception as e:
            log.error(f"Discord client crashed: {e}")
            raise
        finally:
            log.info("Discord client stopped")

    async def shutdown(self):
        """
        Gracefully close the Discord connection.
        """
        if not self._bot:
            return

        log.info("Closing Discord connection")

        if isinstance(self._notifier, DiscordChannelNotifier):
            self._notifier.detach()

        try:
            await self._bot.close()
        except Exception as e:
            log.warning(f"Discord close error ignored: {e}")

        self._bot = None
        self._ready_event.clear()

    @property
    def bot(self) -> Optional[commands.Bot]:
        return self._bot

    @property
    def ready(self) -> bool:
        return self._ready_event.is_set()
