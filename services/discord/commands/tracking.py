"""
Tracking commands.

Declarative handlers behind the tracking slash commands. Registration and
all Discord I/O live in tracking_commands.py; these methods take plain
values, return plain dicts and never touch discord.py objects.

Every result carries "ok" plus a human-readable "message".
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from core.errors import InvalidIdentifier, TrackerError
from core.models import ResolvedIdentity, StreamSession, TrackedChannel
from core.reports import ReportService
from core.scheduler import Scheduler
from services.discord.logging import DiscordLogAdapter
from shared.config.tracker import ConfigStore
from shared.logging.logger import get_logger
from shared.platforms.platform import Platform
from shared.storage.activity_store import ActivityStore
from shared.utils.timeframe import parse_timeframe, previous_month

log = get_logger("discord.commands.tracking", runtime="discord")

TIMEFRAME_HELP = "Supported formats: 7d, 30d, 1m, 1y, or YYYY-MM-DD_YYYY-MM-DD."


class ChannelResolver(Protocol):
    async def resolve(self, raw: str) -> Optional[ResolvedIdentity]: ...


class TrackingCommandHandler:
    def __init__(
        self,
        *,
        config_store: ConfigStore,
        store: ActivityStore,
        resolvers: Mapping[Platform, ChannelResolver],
        scheduler: Scheduler,
        reports: ReportService,
        logger: DiscordLogAdapter,
    ):
        self._config_store = config_store
        self._store = store
        self._resolvers = dict(resolvers)
        self._scheduler = scheduler
        self._reports = reports
        self._logger = logger

    def _audit(self, command: str, *, user_id, guild_id, result: Dict[str, Any], **extra):
        self._logger.log_command(
            command=command,
            guild_id=guild_id,
            user_id=user_id,
            success=bool(result.get("ok")),
            extra=extra or None,
        )
        return result

    # --------------------------------------------------
    # /track, /untrack
    # --------------------------------------------------

    async def cmd_track(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        platform: str,
        channel_link: str,
        target_user_id: int,
    ) -> Dict[str, Any]:
        """
        Resolve a channel reference and register it for a user.

        Permissions: Admin only
        """
        resolved_platform = Platform.from_value(platform)
        resolver = self._resolvers.get(resolved_platform) if resolved_platform else None
        if resolver is None:
            result = {"ok": False, "status": "invalid", "message": f"Unsupported platform: {platform}."}
            return self._audit("track", user_id=user_id, guild_id=guild_id, result=result)

        try:
            identity = await resolver.resolve(channel_link)
        except InvalidIdentifier as e:
            result = {"ok": False, "status": "invalid", "message": str(e)}
            return self._audit("track", user_id=user_id, guild_id=guild_id, result=result)

        if identity is None:
            result = {
                "ok": False,
                "status": "not_found",
                "message": (
                    f"Could not find or verify a valid {resolved_platform.value} channel for "
                    f'"{channel_link}". Please check the channel link, handle, or ID.'
                ),
            }
            return self._audit("track", user_id=user_id, guild_id=guild_id, result=result)

        channel = TrackedChannel(
            platform=resolved_platform,
            channel_id=identity.channel_id,
            channel_name=identity.channel_name,
            owning_user_id=str(target_user_id),
            original_reference=channel_link.strip(),
        )

        added = await asyncio.to_thread(self._config_store.add_tracked_channel, channel)
        if not added:
            result = {
                "ok": True,
                "status": "duplicate",
                "channel": channel,
                "message": (
                    f"This {channel.platform.value} channel ({channel.channel_name}) is already "
                    f"being tracked for <@{target_user_id}>."
                ),
            }
        else:
            result = {
                "ok": True,
                "status": "added",
                "channel": channel,
                "message": f"Now tracking {channel.channel_name} for <@{target_user_id}>.",
            }

        return self._audit(
            "track",
            user_id=user_id,
            guild_id=guild_id,
            result=result,
            platform=channel.platform.value,
            channel_id=channel.channel_id,
        )

    def _match_channel(
        self,
        channels: List[TrackedChannel],
        platform: Platform,
        reference: str,
    ) -> Optional[TrackedChannel]:
        needle = reference.strip().lower()
        for channel in channels:
            if channel.platform != platform:
                continue
            if needle in {
                channel.channel_id.lower(),
                channel.channel_name.lower(),
                channel.original_reference.lower(),
            }:
                return channel
        return None

    async def cmd_untrack(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        platform: str,
        channel: str,
        target_user_id: int,
    ) -> Dict[str, Any]:
        """
        Stop tracking a channel. Recorded activity is kept.

        Permissions: Admin only
        """
        resolved_platform = Platform.from_value(platform)
        if resolved_platform is None:
            result = {"ok": False, "message": f"Unsupported platform: {platform}."}
            return self._audit("untrack", user_id=user_id, guild_id=guild_id, result=result)

        config = await asyncio.to_thread(self._config_store.load)
        match = self._match_channel(
            config.channels_for_user(str(target_user_id)),
            resolved_platform,
            channel,
        )
        if match is None:
            result = {
                "ok": False,
                "message": f"No {resolved_platform.value} channel matching {channel!r} is tracked for <@{target_user_id}>.",
            }
            return self._audit("untrack", user_id=user_id, guild_id=guild_id, result=result)

        removed = await asyncio.to_thread(
            self._config_store.remove_tracked_channel,
            match.platform,
            match.channel_id,
            match.owning_user_id,
        )
        result = {
            "ok": removed,
            "channel": match,
            "message": (
                f"Removed {match.platform.value} channel **{match.channel_name}** for <@{target_user_id}>."
                if removed
                else "Channel was already removed."
            ),
        }
        return self._audit("untrack", user_id=user_id, guild_id=guild_id, result=result)

    # --------------------------------------------------
    # /trackedusers
    # --------------------------------------------------

    async def cmd_tracked_users(self, *, user_id: int, guild_id: Optional[int]) -> Dict[str, Any]:
        config = await asyncio.to_thread(self._config_store.load)
        users: List[Tuple[str, List[TrackedChannel]]] = [
            (owner, config.channels_for_user(owner)) for owner in config.tracked_user_ids()
        ]
        result = {
            "ok": True,
            "users": users,
            "message": (
                f"{len(users)} user(s) with tracked channels."
                if users
                else "No users are currently tracking any channels."
            ),
        }
        return self._audit("trackedusers", user_id=user_id, guild_id=guild_id, result=result)

    # --------------------------------------------------
    # /activity
    # --------------------------------------------------

    def _collect_sessions(self, identifier: str) -> List[StreamSession]:
        triples = self._store.locate(identifier)

        if not triples:
            config = self._config_store.load()
            needle = identifier.strip().lower()
            triples = [
                (c.owning_user_id, c.platform.value, c.channel_id)
                for c in config.tracked_channels
                if needle == c.channel_name.lower()
            ]

        sessions: Dict[Tuple[str, str], StreamSession] = {}
        for owner, platform, channel_id in triples:
            for session in self._store.read(owner, platform, channel_id):
                sessions.setdefault(session.identity, session)
        return list(sessions.values())

    async def cmd_activity(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        streamer_identifier: str,
        timeframe: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        bounds = parse_timeframe(timeframe, now=now or datetime.now(timezone.utc))
        if bounds is None:
            result = {"ok": False, "message": f"Invalid timeframe format: `{timeframe}`. {TIMEFRAME_HELP}"}
            return self._audit("activity", user_id=user_id, guild_id=guild_id, result=result)

        sessions = await asyncio.to_thread(self._collect_sessions, streamer_identifier)
        if not sessions:
            result = {
                "ok": False,
                "message": f"No activity data found for streamer identifier: `{streamer_identifier}`.",
            }
            return self._audit("activity", user_id=user_id, guild_id=guild_id, result=result)

        start, end = bounds
        in_range = [
            s for s in sessions
            if s.started_at_dt is not None and start <= s.started_at_dt <= end
        ]
        in_range.sort(key=lambda s: s.started_at_dt, reverse=True)

        if not in_range:
            result = {
                "ok": True,
                "sessions": [],
                "start": start,
                "end": end,
                "message": (
                    f"No 'munchy' stream activity found for `{streamer_identifier}` "
                    f"within the specified timeframe ({timeframe})."
                ),
            }
        else:
            result = {
                "ok": True,
                "sessions": in_range,
                "start": start,
                "end": end,
                "message": f"{len(in_range)} stream(s) for `{streamer_identifier}` in {timeframe}.",
            }
        return self._audit("activity", user_id=user_id, guild_id=guild_id, result=result)

    # --------------------------------------------------
    # /checkstreams
    # --------------------------------------------------

    async def cmd_check_streams(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        target_user_id: int,
        month: Optional[int] = None,
        year: Optional[int] = None,
        today: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        today = today or datetime.now(timezone.utc)
        month = month or today.month
        year = year or today.year

        try:
            report = await self._reports.user_stream_report(str(target_user_id), year, month)
        except ValueError as e:
            result = {"ok": False, "message": str(e)}
            return self._audit("checkstreams", user_id=user_id, guild_id=guild_id, result=result)

        result = {
            "ok": report.error is None,
            "report": report,
            "message": report.error or f"Stream report for <@{target_user_id}>: {report.period_label}.",
        }
        return self._audit("checkstreams", user_id=user_id, guild_id=guild_id, result=result)

    # --------------------------------------------------
    # Manual triggers
    # --------------------------------------------------

    async def cmd_force_check_streams(self, *, user_id: int, guild_id: Optional[int]) -> Dict[str, Any]:
        """Run a manual cycle: cooldown bypassed, announcements marked as debug."""
        report = await self._scheduler.run_cycle(manual=True)
        if report is None:
            result = {"ok": False, "message": "A stream check is already running or failed. See logs for details."}
        else:
            result = {
                "ok": True,
                "report": report,
                "message": f"Stream check manually triggered with debug announcements. {report.summary()}",
            }
        return self._audit("forcecheckstreams", user_id=user_id, guild_id=guild_id, result=result)

    async def cmd_force_check_user(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        target_user_id: int,
    ) -> Dict[str, Any]:
        report = await self._scheduler.check_user(str(target_user_id))
        if report is None:
            result = {"ok": False, "message": "A stream check is already running or failed. See logs for details."}
        else:
            result = {
                "ok": report.skipped_reason is None,
                "report": report,
                "message": f"Stream check for <@{target_user_id}> complete. {report.summary()}",
            }
        return self._audit("forcecheckuser", user_id=user_id, guild_id=guild_id, result=result)

    async def cmd_force_generate_report(
        self,
        *,
        user_id: int,
        guild_id: Optional[int],
        year: Optional[int] = None,
        month: Optional[int] = None,
        today: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Post the monthly report; defaults to the previous month."""
        if not (year and month):
            year, month = previous_month(today or datetime.now(timezone.utc))

        try:
            message = await self._reports.generate_report(year, month)
        except (TrackerError, ValueError) as e:
            log.error(f"Report generation for {year}-{month:02d} failed: {e}")
            result = {"ok": False, "message": str(e)}
        else:
            result = {"ok": True, "message": message}

        return self._audit(
            "forcegeneratereport",
            user_id=user_id,
            guild_id=guild_id,
            result=result,
            year=year,
            month=month,
        )
