"""
Tests for embed rendering and the non-gateway notifiers.
"""

import json

import httpx
import pytest

from core.notifications import (
    BountyClaimed,
    EventFinished,
    LootDetected,
    RaglistAlert,
    RosterChanged,
)
from services.discord.commands.responses import result_embed
from services.discord.embeds import LOOT_COLOR, board_embed, notification_embed
from services.discord.notifier import (
    DiscordChannelNotifier,
    DiscordWebhookNotifier,
    LogNotifier,
    build_notifier,
)
from shared.config.system import DiscordSettings


class TestNotificationEmbed:
    """Tests for notification_embed."""

    def test_loot_embed(self):
        embed = notification_embed(
            LootDetected(killer="Foo", victim="Bar", gp=1_000_000, display_total=3_500_000, is_clan=True)
        )
        assert embed.title == "💰 Loot Detected"
        assert embed.color == LOOT_COLOR
        assert "1,000,000 coins" in embed.description
        assert embed.fields[0].name == "Event GP Gained"
        assert embed.fields[0].value == "3,500,000 coins"
        assert embed.footer.text == "Clan vs clan"

    def test_bounty_embed_mentions_numeric_posters(self):
        embed = notification_embed(
            BountyClaimed(victim="EvilGuy", killer="Hero", payout=7_000, poster_ids=("111", "web"))
        )
        assert embed.fields[0].value == "<@111> web"

    def test_raglist_embed(self):
        embed = notification_embed(RaglistAlert(victim="EvilGuy", bounty_total=0))
        assert "raglist" in embed.description
        assert embed.fields[0].value == "0 coins"

    def test_event_finished_embed(self):
        embed = notification_embed(EventFinished(name="comp1", snapshot_ref="events/comp1-x.json"))
        assert "events/comp1-x.json" in embed.description

    def test_roster_embed(self):
        embed = notification_embed(RosterChanged(added=("foo",), removed=("bar",)))
        assert embed.description == "Added: foo\nRemoved: bar"


class TestBoardEmbed:
    """Tests for board rendering."""

    def test_empty_board(self):
        assert board_embed("Hiscores", [], score="kills").description == "No entries yet."

    def test_gp_rows(self):
        rows = [{"rank": 1, "name": "Foo", "gp": 1_500, "kills": 2}]
        embed = board_embed("Lootboard", rows, score="gp")
        assert embed.description == "**1.** Foo · 1,500 coins (2 kills)"

    def test_result_embed_routes_by_shape(self):
        failed = result_embed({"ok": False, "title": "Nope", "description": "bad"})
        board = result_embed({"ok": True, "title": "Hiscores", "description": "", "rows": [], "score": "kills"})

        assert failed.title == "❌ Nope"
        assert board.description == "No entries yet."


class TestWebhookNotifier:
    """Tests for DiscordWebhookNotifier over a mock transport."""

    def test_posts_embed_payload(self):
        requests = []

        def handle(request):
            requests.append(request)
            return httpx.Response(204)

        client = httpx.Client(transport=httpx.MockTransport(handle))
        notifier = DiscordWebhookNotifier("https://discord.test/hook", client=client)
        notifier.send(RaglistAlert(victim="EvilGuy", bounty_total=5), timeout=1.0)
        notifier.close()

        body = json.loads(requests[0].content)
        assert str(requests[0].url) == "https://discord.test/hook"
        assert body["embeds"][0]["title"] == "🚨 Raglist Target Down"

    def test_http_errors_raise(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        notifier = DiscordWebhookNotifier("https://discord.test/hook", client=client)
        with pytest.raises(httpx.HTTPStatusError):
            notifier.send(RaglistAlert(victim="EvilGuy", bounty_total=5), timeout=1.0)


class TestBuildNotifier:
    """Tests for build_notifier selection."""

    def test_bot_channel_preferred(self):
        settings = DiscordSettings(bot_token="t", channel_id=1, webhook_url="https://x")
        assert isinstance(build_notifier(settings), DiscordChannelNotifier)

    def test_webhook_fallback(self):
        notifier = build_notifier(DiscordSettings(webhook_url="https://discord.test/hook"))
        assert isinstance(notifier, DiscordWebhookNotifier)
        notifier.close()

    def test_log_only(self):
        assert isinstance(build_notifier(DiscordSettings()), LogNotifier)

    def test_channel_notifier_not_ready_raises(self):
        notifier = DiscordChannelNotifier(1)
        with pytest.raises(RuntimeError):
            notifier.send(RaglistAlert(victim="EvilGuy", bounty_total=5), timeout=0.1)
