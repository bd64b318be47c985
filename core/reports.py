"""
Monthly and per-user stream reports.

Reports are read-only consumers of the activity store. The monthly report
is posted to the configured report channel on the 1st of each month (and on
demand); the per-user report backs the /checkstreams command.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from core.errors import ConfigError, ProviderError
from core.models import LiveStatusSnapshot, TrackedChannel
from shared.config.tracker import ConfigStore, TrackerConfig
from shared.logging.logger import get_logger
from shared.platforms.platform import Platform
from shared.storage.activity_store import ActivityStore
from shared.utils.timeframe import month_bounds, month_name, previous_month

log = get_logger("core.reports")

NO_CHANNELS_MESSAGE = "No channels are currently tracked. Cannot generate report."


class ReportSink(Protocol):
    async def send_report(self, channel_id: str, *, title: str, description: str) -> bool: ...


class StatusProvider(Protocol):
    async def get_status(self, channel_id: str) -> LiveStatusSnapshot: ...


NameResolver = Callable[[str], Awaitable[Optional[str]]]


# ----------------------------------------------------------------------
# Report models
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class ChannelCount:
    platform: Platform
    name: str
    count: int


@dataclass
class UserActivity:
    user_id: str
    username: str
    channels: List[ChannelCount] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(c.count for c in self.channels)


@dataclass
class MonthlyReport:
    year: int
    month: int
    users: List[UserActivity] = field(default_factory=list)

    @property
    def title(self) -> str:
        return f"Munchy Stream Report: {month_name(self.month)} {self.year}"

    def sorted_users(self) -> List[UserActivity]:
        """Most streams first, ties broken by username (case-insensitive)."""
        return sorted(self.users, key=lambda u: (-u.total, u.username.lower()))

    def description(self) -> str:
        if not self.users:
            return "No stream activity found for any tracked users in this period."

        blocks = []
        for user in self.sorted_users():
            lines = [f"<@{user.user_id}> ({user.username}):"]
            for channel in user.channels:
                lines.append(f"  • {channel.platform.value} - {channel.name}: **{channel.count}** streams")
            blocks.append("\n".join(lines))
        return "\n\n".join(blocks)


@dataclass
class UserStreamReport:
    user_id: str
    year: int
    month: int
    channels: List[TrackedChannel] = field(default_factory=list)
    streams_in_month: int = 0
    all_time_streams: int = 0
    live_channel: Optional[TrackedChannel] = None
    live_status: Optional[LiveStatusSnapshot] = None
    error: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.live_status is not None

    @property
    def period_label(self) -> str:
        return f"{month_name(self.month)} {self.year}"


# ----------------------------------------------------------------------
# Service
# ----------------------------------------------------------------------

class ReportService:
    def __init__(
        self,
        *,
        config_store: ConfigStore,
        store: ActivityStore,
        sink: Optional[ReportSink] = None,
        providers: Optional[Mapping[Platform, StatusProvider]] = None,
        name_resolver: Optional[NameResolver] = None,
    ):
        self._config_store = config_store
        self._store = store
        self._sink = sink
        self._providers: Dict[Platform, StatusProvider] = dict(providers or {})
        self._name_resolver = name_resolver
        self._last_trigger: Optional[Tuple[int, int]] = None

    @property
    def last_trigger(self) -> Optional[Tuple[int, int]]:
        return self._last_trigger

    async def _username(self, user_id: str) -> str:
        if self._name_resolver is not None:
            try:
                name = await self._name_resolver(user_id)
            except Exception as e:
                log.warning(f"[reports] Could not fetch user {user_id}: {e}. Using ID.")
                name = None
            if name:
                return name
        return f"User ID {user_id}"

    # ------------------------------------------------------------------
    # Monthly report
    # ------------------------------------------------------------------

    async def build_report(self, year: int, month: int, config: TrackerConfig) -> MonthlyReport:
        bounds = month_bounds(year, month)
        report = MonthlyReport(year=year, month=month)
        by_user: Dict[str, UserActivity] = {}

        for channel in config.tracked_channels:
            sessions = await asyncio.to_thread(
                self._store.sessions_in_range,
                channel.owning_user_id,
                channel.platform.value,
                channel.channel_id,
                bounds,
            )

            activity = by_user.get(channel.owning_user_id)
            if activity is None:
                activity = UserActivity(
                    user_id=channel.owning_user_id,
                    username=await self._username(channel.owning_user_id),
                )
                by_user[channel.owning_user_id] = activity
                report.users.append(activity)

            activity.channels.append(
                ChannelCount(
                    platform=channel.platform,
                    name=channel.channel_name or channel.channel_id,
                    count=len(sessions),
                )
            )

        return report

    async def generate_report(self, year: int, month: int) -> str:
        """
        Build and post the report for one month.

        Raises ValueError for an invalid month, ConfigError when no report
        channel is configured and ProviderError when the post fails.
        """
        bounds = month_bounds(year, month)
        label = f"{month_name(month)} {year}"
        log.info(f"[reports] Generating report for {label} ({bounds[0].isoformat()} to {bounds[1].isoformat()})")

        config = await asyncio.to_thread(self._config_store.load)
        if not config.tracked_channels:
            log.info(f"[reports] {NO_CHANNELS_MESSAGE}")
            return NO_CHANNELS_MESSAGE

        if not config.report_channel_id:
            raise ConfigError("Report channel ID is not configured. Cannot send report.")
        if self._sink is None:
            raise ConfigError("No report sink is attached. Cannot send report.")

        report = await self.build_report(year, month, config)
        sent = await self._sink.send_report(
            config.report_channel_id,
            title=report.title,
            description=report.description(),
        )
        if not sent:
            raise ProviderError(f"Could not send report to channel {config.report_channel_id}.")

        message = f"Report for {label} sent to channel {config.report_channel_id}."
        log.info(f"[reports] {message}")
        return message

    async def generate_previous_month_report(self, today: datetime) -> str:
        year, month = previous_month(today)
        return await self.generate_report(year, month)

    async def check_and_generate(self, today: datetime) -> Optional[str]:
        """
        Daily hook: on the 1st, report on the previous month.

        Runs at most once per trigger month; a failed attempt is logged and
        not retried until the next trigger month.
        """
        if today.day != 1:
            log.debug(f"[reports] {today:%Y-%m-%d} is not the 1st; no scheduled report")
            return None

        trigger = (today.year, today.month)
        if self._last_trigger == trigger:
            log.info(f"[reports] Report for trigger month {today:%Y-%m} already processed; skipping")
            return None

        try:
            message = await self.generate_previous_month_report(today)
        except Exception as e:
            log.error(f"[reports] Scheduled report generation failed: {e}")
            return None

        self._last_trigger = trigger
        return message

    # ------------------------------------------------------------------
    # Per-user report
    # ------------------------------------------------------------------

    async def _live_status(self, channel: TrackedChannel) -> Optional[LiveStatusSnapshot]:
        provider = self._providers.get(channel.platform)
        if provider is None:
            return None
        try:
            snapshot = await provider.get_status(channel.channel_id)
        except Exception as e:
            log.error(f"[reports] Live status check for {channel.channel_name} failed: {e}")
            return None
        return snapshot if snapshot.is_live else None

    async def user_stream_report(self, user_id: str, year: int, month: int) -> UserStreamReport:
        bounds = month_bounds(year, month)
        report = UserStreamReport(user_id=str(user_id), year=year, month=month)

        config = await asyncio.to_thread(self._config_store.load)
        report.channels = config.channels_for_user(user_id)
        if not report.channels:
            report.error = f"No channels are currently tracked for user <@{user_id}>."
            return report

        for channel in report.channels:
            if report.live_status is None:
                report.live_status = await self._live_status(channel)
                if report.live_status is not None:
                    report.live_channel = channel

            sessions = await asyncio.to_thread(
                self._store.read,
                channel.owning_user_id,
                channel.platform.value,
                channel.channel_id,
            )
            report.all_time_streams += len(sessions)
            report.streams_in_month += sum(
                1
                for s in sessions
                if s.started_at_dt is not None and bounds[0] <= s.started_at_dt <= bounds[1]
            )

        return report
