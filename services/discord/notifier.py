"""
Notifier implementations for engine notifications.

- DiscordChannelNotifier: posts embeds through the running discord.py bot
- DiscordWebhookNotifier: posts embeds to a Discord webhook URL via httpx
- LogNotifier:            local structured log only

All of them are invoked from the engine's dispatcher thread and bound their
I/O by the timeout they are handed.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Optional

import discord
import httpx

from core.notifications import Notification, Notifier
from services.discord.embeds import notification_embed
from shared.config.system import DiscordSettings
from shared.logging.logger import get_logger

log = get_logger("discord.notifier", runtime="discord")


class LogNotifier(Notifier):
    def send(self, notification: Notification, *, timeout: float) -> None:
        log.info(f"Notification (log-only): {notification.to_dict()}")


class DiscordChannelNotifier(Notifier):
    """
    Sends to a single text channel. The bot is attached by DiscordClient once
    it exists; until then sends fail fast and are logged by the dispatcher.
    """

    def __init__(self, channel_id: int) -> None:
        self._channel_id = int(channel_id)
        self._bot: Optional[discord.Client] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def attach(self, bot: discord.Client, loop: asyncio.AbstractEventLoop) -> None:
        self._bot = bot
        self._loop = loop
        log.info(f"Channel notifier attached (channel_id={self._channel_id})")

    def detach(self) -> None:
        self._bot = None
        self._loop = None

    async def _send_embed(self, embed: discord.Embed) -> None:
        bot = self._bot
        if bot is None:
            raise RuntimeError("Discord bot detached")

        channel = bot.get_channel(self._channel_id)
        if channel is None:
            channel = await bot.fetch_channel(self._channel_id)
        if not isinstance(channel, discord.abc.Messageable):
            raise RuntimeError(f"Channel {self._channel_id} is not text based")

        await channel.send(embed=embed)

    def send(self, notification: Notification, *, timeout: float) -> None:
        bot, loop = self._bot, self._loop
        if bot is None or loop is None or not bot.is_ready():
            raise RuntimeError("Discord client not ready")

        embed = notification_embed(notification)
        future = asyncio.run_coroutine_threadsafe(self._send_embed(embed), loop)
        try:
            future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise TimeoutError(f"Discord send timed out after {timeout}s")


class DiscordWebhookNotifier(Notifier):
    def __init__(self, webhook_url: str, *, client: Optional[httpx.Client] = None) -> None:
        self._url = webhook_url
        self._client = client or httpx.Client()

    def send(self, notification: Notification, *, timeout: float) -> None:
        embed = notification_embed(notification)
        response = self._client.post(
            self._url,
            json={"embeds": [embed.to_dict()]},
            timeout=timeout,
        )
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()


def build_notifier(settings: DiscordSettings) -> Notifier:
    """Pick the richest sink the configuration allows."""
    if settings.bot_token and settings.channel_id:
        log.info("Notifications routed to Discord channel via bot")
        return DiscordChannelNotifier(settings.channel_id)
    if settings.webhook_url:
        log.info("Notifications routed to Discord webhook")
        return DiscordWebhookNotifier(settings.webhook_url)
    log.warning("No Discord destination configured; notifications are log-only")
    return LogNotifier()
