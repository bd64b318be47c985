"""Tests for announcement delivery and embed rendering."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from discord import app_commands

from core.models import StreamEvent, StreamSession
from services.discord.announcements import DiscordAnnouncer
from services.discord.client import DiscordClient
from services.discord.embeds import (
    DEBUG_ANNOUNCEMENT,
    activity_embed,
    monthly_report_embed,
    stream_live_embed,
)
from services.discord.permissions import is_admin, on_app_command_error
from shared.platforms.platform import Platform

from helpers import OWNER_ID, SINK_ID

DETECTED = datetime(2026, 10, 17, 12, 5, tzinfo=timezone.utc)


def stream_event(**overrides):
    values = dict(
        stream_url="https://www.twitch.tv/streamer",
        started_at="2026-10-17T12:00:00Z",
        title="munchy time",
        platform=Platform.TWITCH,
        channel_id="streamer",
        owning_user_id=OWNER_ID,
        channel_name="Streamer",
        thumbnail_url="https://cdn.test/thumb.jpg",
    )
    values.update(overrides)
    return StreamEvent(**values)


def text_channel():
    channel = MagicMock(spec=discord.TextChannel)
    channel.send = AsyncMock()
    return channel


def bot_with(channel):
    bot = MagicMock()
    bot.get_channel.return_value = channel
    bot.fetch_channel = AsyncMock(return_value=channel)
    return bot


class TestEmbeds:
    def test_stream_live_embed(self):
        embed = stream_live_embed(stream_event(), streams_this_month=3, detected_at=DETECTED)

        assert embed.title == "Streamer just went live on MunchyMC!"
        assert embed.url == "https://www.twitch.tv/streamer"
        assert embed.colour.value == 0x9B59B6
        assert [(f.name, f.value) for f in embed.fields] == [
            ("Discord User", f"<@{OWNER_ID}>"),
            ("Title", "munchy time"),
            ("Link", "https://www.twitch.tv/streamer"),
        ]
        assert embed.thumbnail.url == "https://cdn.test/thumb.jpg"
        assert embed.footer.text == "Streams this month: 3"
        assert embed.timestamp == DETECTED

    def test_manual_check_is_marked(self):
        embed = stream_live_embed(stream_event(), streams_this_month=2, manual_check=True)

        assert embed.title == "Streamer just went live on MunchyMC! (Manual Check)"
        assert embed.footer.text == "Streams this month: 2 • Manual Check"

    def test_youtube_colour(self):
        embed = stream_live_embed(stream_event(platform=Platform.YOUTUBE), streams_this_month=1)

        assert embed.colour.value == 0xED4245

    def test_long_report_is_truncated(self):
        embed = monthly_report_embed("Munchy Stream Report: September 2026", "x" * 5000)

        assert len(embed.description) == 4096
        assert embed.description.endswith("\n... (report truncated due to length)")

    def test_activity_embed_caps_listing(self):
        sessions = [
            StreamSession(stream_url=f"https://x.test/{i}", started_at=f"2026-10-{i + 1:02d}T10:00:00Z")
            for i in range(12)
        ]

        embed = activity_embed(
            label="streamer",
            start=datetime(2026, 10, 1, tzinfo=timezone.utc),
            end=datetime(2026, 10, 17, tzinfo=timezone.utc),
            sessions=sessions,
        )

        assert embed.description.startswith("Showing activity from 2026-10-01 to 2026-10-17:")
        assert "Untitled Stream" in embed.description
        assert embed.description.endswith("*And 2 more...*")


class TestAnnouncer:
    @pytest.mark.asyncio
    async def test_announce(self):
        channel = text_channel()
        announcer = DiscordAnnouncer(bot_with(channel))

        sent = await announcer.announce_stream(SINK_ID, stream_event(), streams_this_month=1)

        assert sent is True
        call = channel.send.await_args
        assert call.kwargs["content"] is None
        assert call.kwargs["embed"].footer.text == "Streams this month: 1"

    @pytest.mark.asyncio
    async def test_manual_announcement_is_prefixed(self):
        channel = text_channel()
        announcer = DiscordAnnouncer(bot_with(channel))

        await announcer.announce_stream(SINK_ID, stream_event(), streams_this_month=1, manual=True)

        assert channel.send.await_args.kwargs["content"] == DEBUG_ANNOUNCEMENT

    @pytest.mark.asyncio
    async def test_user_check_is_marked_without_prefix(self):
        channel = text_channel()
        announcer = DiscordAnnouncer(bot_with(channel))

        await announcer.announce_stream(SINK_ID, stream_event(), streams_this_month=1, user_check=True)

        call = channel.send.await_args
        assert call.kwargs["content"] is None
        assert call.kwargs["embed"].title.endswith("(Manual Check)")

    @pytest.mark.asyncio
    async def test_uncached_channel_is_fetched(self):
        channel = text_channel()
        bot = bot_with(channel)
        bot.get_channel.return_value = None

        assert await DiscordAnnouncer(bot).send_report(SINK_ID, title="t", description="d") is True
        bot.fetch_channel.assert_awaited_once_with(int(SINK_ID))

    @pytest.mark.asyncio
    async def test_fetch_failure(self):
        bot = bot_with(None)
        bot.fetch_channel.side_effect = discord.DiscordException("unknown channel")

        assert await DiscordAnnouncer(bot).send_report(SINK_ID, title="t", description="d") is False

    @pytest.mark.asyncio
    async def test_send_failure(self):
        channel = text_channel()
        channel.send.side_effect = discord.DiscordException("missing access")

        sent = await DiscordAnnouncer(bot_with(channel)).announce_stream(
            SINK_ID, stream_event(), streams_this_month=1
        )

        assert sent is False

    @pytest.mark.asyncio
    async def test_non_text_channel(self):
        bot = bot_with(MagicMock(spec=discord.CategoryChannel))

        assert await DiscordAnnouncer(bot).send_report(SINK_ID, title="t", description="d") is False

    @pytest.mark.asyncio
    async def test_bad_snowflake(self):
        bot = bot_with(text_channel())

        assert await DiscordAnnouncer(bot).send_report("not-a-number", title="t", description="d") is False
        bot.get_channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_unattached(self):
        announcer = DiscordAnnouncer()

        assert announcer.attached is False
        assert await announcer.announce_stream(SINK_ID, stream_event(), streams_this_month=1) is False
        assert await announcer.user_name(OWNER_ID) is None

    @pytest.mark.asyncio
    async def test_user_name(self):
        bot = MagicMock()
        bot.get_user.return_value = None
        user = MagicMock()
        user.name = "munchyfan"
        bot.fetch_user = AsyncMock(return_value=user)

        assert await DiscordAnnouncer(bot).user_name(OWNER_ID) == "munchyfan"


class TestDiscordClient:
    def _client(self, token="token"):
        return DiscordClient(
            token=token,
            announcer=MagicMock(),
            logger=MagicMock(),
            register_commands=MagicMock(),
        )

    def test_requires_token(self):
        with pytest.raises(RuntimeError):
            self._client(token="")

    @pytest.mark.asyncio
    async def test_shutdown_closes_bot(self):
        client = self._client()
        bot = MagicMock()
        bot.close = AsyncMock()
        client._bot = bot

        await client.shutdown()

        bot.close.assert_awaited_once()
        assert client.bot is None

    @pytest.mark.asyncio
    async def test_shutdown_without_bot_is_noop(self):
        client = self._client()

        await client.shutdown()

        assert client.bot is None


class TestPermissions:
    def test_is_admin(self):
        admin = MagicMock()
        admin.guild_permissions.administrator = True
        member = MagicMock()
        member.guild_permissions.administrator = False

        assert is_admin(admin) is True
        assert is_admin(member) is False
        assert is_admin(None) is False

    @pytest.mark.asyncio
    async def test_missing_permissions_reply(self):
        interaction = MagicMock()
        interaction.response.is_done.return_value = False
        interaction.response.send_message = AsyncMock()

        await on_app_command_error(interaction, app_commands.MissingPermissions(["administrator"]))

        interaction.response.send_message.assert_awaited_once_with(
            "You need the Administrator permission to use this command.", ephemeral=True
        )

    @pytest.mark.asyncio
    async def test_generic_error_uses_followup_after_defer(self):
        interaction = MagicMock()
        interaction.response.is_done.return_value = True
        interaction.followup.send = AsyncMock()

        await on_app_command_error(interaction, app_commands.AppCommandError("boom"))

        interaction.followup.send.assert_awaited_once_with(
            "There was an error while executing this command!", ephemeral=True
        )
