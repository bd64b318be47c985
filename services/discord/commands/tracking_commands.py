"""
Tracking Slash Command Registration

Thin registration layer that exposes the tracking slash commands and
delegates all logic to TrackingCommandHandler.

Responsibilities:
- Register slash commands on the bot's command tree
- Gate every command behind the Administrator permission
- Translate handler results into Discord responses
"""

from __future__ import annotations

from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from services.discord.commands.tracking import TrackingCommandHandler
from services.discord.embeds import (
    activity_embed,
    error_embed,
    success_embed,
    tracked_channel_embed,
    tracked_users_embed,
    user_report_embed,
    warning_embed,
)
from services.discord.permissions import require_admin
from shared.logging.logger import get_logger

log = get_logger("discord.commands.tracking.register", runtime="discord")

PLATFORM_CHOICES = [
    app_commands.Choice(name="Twitch", value="Twitch"),
    app_commands.Choice(name="YouTube", value="YouTube"),
]


def _guild_id(interaction: discord.Interaction) -> Optional[int]:
    return interaction.guild.id if interaction.guild else None


def _status_line(username: str, report) -> str:
    if report.is_live and report.live_status.stream_url:
        return (
            f"{username} is currently [live on {report.live_channel.platform.value} "
            f"({report.live_channel.channel_name})]({report.live_status.stream_url})!"
        )
    if report.is_live:
        return f"{username} is currently live (stream details unavailable)."
    return f"{username} is not currently live."


# ==================================================
# Registration Entry Point
# ==================================================

def setup(bot: commands.Bot, *, handler: TrackingCommandHandler):
    """Register all tracking slash commands. Called once by the Discord client."""

    # --------------------------------------------------
    # /track
    # --------------------------------------------------

    @app_commands.command(name="track", description="Adds a Twitch or YouTube channel to the monitoring list.")
    @app_commands.describe(
        platform="The platform of the channel.",
        channel_link="The URL, handle or ID of the streamer's channel.",
        target_user="The Discord user whose ID is used for data storage.",
    )
    @app_commands.choices(platform=PLATFORM_CHOICES)
    @require_admin()
    async def track(
        interaction: discord.Interaction,
        platform: app_commands.Choice[str],
        channel_link: str,
        target_user: discord.User,
    ):
        await interaction.response.defer()

        result = await handler.cmd_track(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            platform=platform.value,
            channel_link=channel_link,
            target_user_id=target_user.id,
        )

        if result["ok"] and result["status"] == "added":
            embed = tracked_channel_embed(result["channel"], mention=target_user.mention)
        elif result["ok"]:
            embed = warning_embed("Channel Already Tracked", result["message"])
        else:
            embed = error_embed("Error Tracking Channel", result["message"])

        await interaction.followup.send(embed=embed, ephemeral=not result["ok"])

    # --------------------------------------------------
    # /untrack
    # --------------------------------------------------

    @app_commands.command(name="untrack", description="Stops monitoring a channel for a user.")
    @app_commands.describe(
        platform="The platform of the channel.",
        channel="Channel ID, name or the link it was tracked with.",
        target_user="The Discord user the channel is tracked for.",
    )
    @app_commands.choices(platform=PLATFORM_CHOICES)
    @require_admin()
    async def untrack(
        interaction: discord.Interaction,
        platform: app_commands.Choice[str],
        channel: str,
        target_user: discord.User,
    ):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_untrack(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            platform=platform.value,
            channel=channel,
            target_user_id=target_user.id,
        )

        embed = (
            success_embed("Channel Removed", result["message"])
            if result["ok"]
            else error_embed("Could Not Remove Channel", result["message"])
        )
        await interaction.followup.send(embed=embed, ephemeral=True)

    # --------------------------------------------------
    # /trackedusers
    # --------------------------------------------------

    @app_commands.command(name="trackedusers", description="Lists users with tracked channels.")
    @require_admin()
    async def trackedusers(interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_tracked_users(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
        )
        await interaction.followup.send(embed=tracked_users_embed(result["users"]), ephemeral=True)

    # --------------------------------------------------
    # /activity
    # --------------------------------------------------

    @app_commands.command(name="activity", description="Displays a summary of a streamer's 'munchy' stream activity.")
    @app_commands.describe(
        streamer_identifier="Channel ID or name (e.g. Twitch_channelname or channelname).",
        timeframe="Timeframe (e.g. 7d, 30d, 1m, 1y, YYYY-MM-DD_YYYY-MM-DD).",
    )
    @require_admin()
    async def activity(
        interaction: discord.Interaction,
        streamer_identifier: str,
        timeframe: str,
    ):
        await interaction.response.defer()

        result = await handler.cmd_activity(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            streamer_identifier=streamer_identifier,
            timeframe=timeframe,
        )

        if not result.get("sessions"):
            await interaction.followup.send(content=result["message"])
            return

        embed = activity_embed(
            label=streamer_identifier,
            start=result["start"],
            end=result["end"],
            sessions=result["sessions"],
        )
        await interaction.followup.send(embed=embed)

    # --------------------------------------------------
    # /checkstreams
    # --------------------------------------------------

    @app_commands.command(name="checkstreams", description="Generates a stream activity report for a specific user.")
    @app_commands.describe(
        user="The Discord user to generate the report for.",
        month="The month for the report (1-12). Defaults to the current month.",
        year="The year for the report. Defaults to the current year.",
    )
    @app_commands.guild_only()
    @require_admin()
    async def checkstreams(
        interaction: discord.Interaction,
        user: discord.User,
        month: Optional[app_commands.Range[int, 1, 12]] = None,
        year: Optional[int] = None,
    ):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_check_streams(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            target_user_id=user.id,
            month=month,
            year=year,
        )

        report = result.get("report")
        if report is None or report.error:
            embed = warning_embed(f"{user.name}'s Stream Report", result["message"])
        else:
            embed = user_report_embed(
                username=user.name,
                period_label=report.period_label,
                status_line=_status_line(user.name, report),
                streams_in_period=report.streams_in_month,
                all_time_streams=report.all_time_streams,
                channels=report.channels,
            )
        await interaction.followup.send(embed=embed, ephemeral=True)

    # --------------------------------------------------
    # /forcecheckstreams, /forcecheckuser
    # --------------------------------------------------

    @app_commands.command(
        name="forcecheckstreams",
        description="Manually triggers a check for all tracked streams and saves data.",
    )
    @require_admin()
    async def forcecheckstreams(interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)
        log.info(f"/forcecheckstreams invoked by {interaction.user} (id={interaction.user.id})")

        result = await handler.cmd_force_check_streams(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
        )
        await interaction.followup.send(content=result["message"], ephemeral=True)

    @app_commands.command(
        name="forcecheckuser",
        description="Manually checks one user's tracked channels and announces live streams.",
    )
    @app_commands.describe(user="The Discord user whose channels to check.")
    @require_admin()
    async def forcecheckuser(interaction: discord.Interaction, user: discord.User):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_force_check_user(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            target_user_id=user.id,
        )
        await interaction.followup.send(content=result["message"], ephemeral=True)

    # --------------------------------------------------
    # /forcegeneratereport
    # --------------------------------------------------

    @app_commands.command(
        name="forcegeneratereport",
        description="Manually generates and sends the monthly activity report.",
    )
    @app_commands.describe(
        year="The year for the report.",
        month="The month for the report (1-12).",
    )
    @require_admin()
    async def forcegeneratereport(
        interaction: discord.Interaction,
        year: Optional[int] = None,
        month: Optional[app_commands.Range[int, 1, 12]] = None,
    ):
        await interaction.response.defer(ephemeral=True)

        result = await handler.cmd_force_generate_report(
            user_id=interaction.user.id,
            guild_id=_guild_id(interaction),
            year=year,
            month=month,
        )
        await interaction.followup.send(content=result["message"], ephemeral=True)

    # --------------------------------------------------
    # Register Commands
    # --------------------------------------------------

    for command in (
        track,
        untrack,
        trackedusers,
        activity,
        checkstreams,
        forcecheckstreams,
        forcecheckuser,
        forcegeneratereport,
    ):
        bot.tree.add_command(command)

    log.info("Discord tracking slash commands registered")
