"""
Discord announcement delivery.

Posts stream announcements and reports into configured text channels.
This module does not own a Discord client; the bot is passed in by the
Discord client once it exists.

Every send returns a bool instead of raising so the poll cycle can decide
whether to advance the cooldown.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import discord

from core.models import StreamEvent
from services.discord.embeds import DEBUG_ANNOUNCEMENT, monthly_report_embed, stream_live_embed
from shared.logging.logger import get_logger

log = get_logger("discord.announcements", runtime="discord")


class DiscordAnnouncer:
    def __init__(self, bot: Optional[discord.Client] = None):
        self._bot = bot

    def attach(self, bot: discord.Client) -> None:
        self._bot = bot

    @property
    def attached(self) -> bool:
        return self._bot is not None

    # --------------------------------------------------
    # Channel resolution
    # --------------------------------------------------

    async def _resolve_channel(self, channel_id: str) -> Optional[discord.abc.Messageable]:
        if self._bot is None:
            log.warning("Announcement skipped: Discord client not attached")
            return None

        try:
            snowflake = int(channel_id)
        except (TypeError, ValueError):
            log.error(f"Announcement channel id {channel_id!r} is not a Discord snowflake")
            return None

        channel = self._bot.get_channel(snowflake)
        if channel is None:
            try:
                channel = await self._bot.fetch_channel(snowflake)
            except discord.DiscordException as e:
                log.error(f"Error fetching announcement channel {channel_id}: {e}")
                return None

        if not isinstance(channel, discord.abc.Messageable):
            log.warning(f"Channel {channel_id} is not a text channel; cannot announce")
            return None
        return channel

    # --------------------------------------------------
    # Sends
    # --------------------------------------------------

    async def send_embed(
        self,
        channel_id: str,
        embed: discord.Embed,
        *,
        content: Optional[str] = None,
    ) -> bool:
        channel = await self._resolve_channel(channel_id)
        if channel is None:
            return False

        try:
            await channel.send(content=content, embed=embed)
        except discord.DiscordException as e:
            log.error(f"Failed to send embed to channel {channel_id}: {e}")
            return False
        return True

    async def announce_stream(
        self,
        sink_id: str,
        event: StreamEvent,
        *,
        streams_this_month: int,
        manual: bool = False,
        user_check: bool = False,
        detected_at: Optional[datetime] = None,
    ) -> bool:
        embed = stream_live_embed(
            event,
            streams_this_month=streams_this_month,
            detected_at=detected_at,
            manual_check=user_check,
        )
        sent = await self.send_embed(
            sink_id,
            embed,
            content=DEBUG_ANNOUNCEMENT if manual else None,
        )
        if sent:
            kind = "DEBUG ANNOUNCEMENT" if manual else "announcement"
            log.info(f"Sent {kind} for {event.channel_name} to {sink_id}")
        return sent

    async def send_report(self, channel_id: str, *, title: str, description: str) -> bool:
        sent = await self.send_embed(channel_id, monthly_report_embed(title, description))
        if sent:
            log.info(f"Report {title!r} sent to channel {channel_id}")
        return sent

    # --------------------------------------------------
    # Lookups
    # --------------------------------------------------

    async def user_name(self, user_id: str) -> Optional[str]:
        if self._bot is None:
            return None

        snowflake = int(user_id)
        user = self._bot.get_user(snowflake)
        if user is None:
            try:
                user = await self._bot.fetch_user(snowflake)
            except discord.DiscordException as e:
                log.warning(f"Could not fetch user {user_id}: {e}")
                return None
        return user.name
