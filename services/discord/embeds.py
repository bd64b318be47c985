from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

import discord

from core.models import StreamEvent, StreamSession, TrackedChannel
from shared.platforms.platform import channel_url, platform_color

DEBUG_ANNOUNCEMENT = "**DEBUG ANNOUNCEMENT:**"

# Discord hard limits
EMBED_DESCRIPTION_LIMIT = 4096
EMBED_FIELD_LIMIT = 1024


def _truncate(text: str, limit: int, marker: str = "...") -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(marker)] + marker


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


def warning_embed(title: str, description: str | None = None) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=description,
        color=discord.Color.orange(),
    )


def error_embed(title: str, description: str | None = None) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=description,
        color=discord.Color.red(),
    )


# --------------------------------------------------
# Stream announcements
# --------------------------------------------------

def stream_live_embed(
    event: StreamEvent,
    *,
    streams_this_month: int,
    detected_at: Optional[datetime] = None,
    manual_check: bool = False,
) -> discord.Embed:
    title = f"{event.channel_name} just went live on MunchyMC!"
    footer = f"Streams this month: {streams_this_month}"
    if manual_check:
        title += " (Manual Check)"
        footer += " • Manual Check"

    embed = discord.Embed(
        title=title,
        url=event.stream_url or None,
        color=platform_color(event.platform),
        timestamp=detected_at or datetime.now(timezone.utc),
    )
    embed.add_field(name="Discord User", value=f"<@{event.owning_user_id}>", inline=False)
    embed.add_field(name="Title", value=_truncate(event.title or "Untitled", EMBED_FIELD_LIMIT), inline=False)
    embed.add_field(name="Link", value=event.stream_url or "Unavailable", inline=False)

    if event.thumbnail_url:
        embed.set_thumbnail(url=event.thumbnail_url)

    embed.set_footer(text=footer)
    return embed


# --------------------------------------------------
# Tracking
# --------------------------------------------------

def tracked_channel_embed(channel: TrackedChannel, *, mention: str) -> discord.Embed:
    link = channel_url(channel.platform, channel.channel_id)
    embed = discord.Embed(
        title="Channel Tracking Added",
        description="Successfully started tracking a new channel.",
        color=platform_color(channel.platform),
        timestamp=datetime.now(timezone.utc),
    )
    embed.add_field(name="Platform", value=channel.platform.value, inline=True)
    embed.add_field(name="Channel Name", value=f"[{channel.channel_name}]({link})", inline=True)
    embed.add_field(name="Tracked For", value=mention, inline=True)
    embed.add_field(name="Original Input", value=channel.original_reference or channel.channel_id, inline=False)
    return embed


def channel_list_lines(channels: Iterable[TrackedChannel]) -> List[str]:
    return [
        f"â¢ [{c.channel_name}]({channel_url(c.platform, c.channel_id)}) ({c.platform.value})"
        for c in channels
    ]


def tracked_users_embed(users: List[tuple[str, List[TrackedChannel]]]) -> discord.Embed:
    embed = info_embed("Tracked Users")
    if not users:
        embed.description = "No users are currently tracking any channels."
        return embed

    blocks = []
    for user_id, channels in users:
        lines = "\n".join(channel_list_lines(channels))
        blocks.append(f"<@{user_id}>:\n{lines}")
    embed.description = _truncate("\n\n".join(blocks), EMBED_DESCRIPTION_LIMIT)
    return embed


# --------------------------------------------------
# Reports
# --------------------------------------------------

def monthly_report_embed(title: str, description: str) -> discord.Embed:
    return discord.Embed(
        title=title,
        description=_truncate(
            description or "No activity to report or no users tracked.",
            EMBED_DESCRIPTION_LIMIT,
            "\n... (report truncated due to length)",
        ),
        color=0x0099FF,
        timestamp=datetime.now(timezone.utc),
    )


def user_report_embed(
    *,
    username: str,
    period_label: str,
    status_line: str,
    streams_in_period: int,
    all_time_streams: int,
    channels: List[TrackedChannel],
) -> discord.Embed:
    embed = discord.Embed(
        title=f"{username}'s Stream Report: {period_label}",
        color=discord.Color.teal(),
        timestamp=datetime.now(timezone.utc),
    )
    embed.add_field(name="Current Status", value=status_line, inline=False)
    embed.add_field(name=f"Streams in {period_label}", value=str(streams_in_period), inline=True)
    embed.add_field(name="All-Time Streams", value=str(all_time_streams), inline=True)

    listing = "\n".join(channel_list_lines(channels)) or "None found."
    embed.add_field(
        name="Tracked Channels for this User",
        value=_truncate(listing, EMBED_FIELD_LIMIT),
        inline=False,
    )
    return embed


def activity_embed(
    *,
    label: str,
    start: datetime,
    end: datetime,
    sessions: List[StreamSession],
    limit: int = 10,
) -> discord.Embed:
    embed = discord.Embed(
        title=f"'Munchy' Stream Activity for {label}",
        color=0x00AE86,
        timestamp=datetime.now(timezone.utc),
    )

    lines = [f"Showing activity from {start:%Y-%m-%d} to {end:%Y-%m-%d}:"]
    for session in sessions[:limit]:
        started = session.started_at_dt
        when = f"{started:%Y-%m-%d %H:%M} UTC" if started else session.started_at
        lines.append(f"- [{session.title or 'Untitled Stream'}]({session.stream_url}) - Started: {when}")

    if len(sessions) > limit:
        lines.append(f"\n*And {len(sessions) - limit} more...*")

    embed.description = _truncate("\n".join(lines), EMBED_DESCRIPTION_LIMIT)
    return embed
