"""
Stream monitor (poll cycle orchestrator).

One instance is built at startup and owns its CooldownTracker. Each cycle
walks every tracked channel:

    query -> live? -> keyword? -> already recorded? -> cooldown -> notify

and then persists every candidate event through the activity store.
Detection, notification and persistence are separate steps:
a stream is detected every cycle it stays live, announced at most once per
cooldown window, and recorded exactly once.

Failures are contained per channel. A provider error, an unsupported
platform or a failed send is logged and the cycle moves on.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Protocol

from core.cooldown import CooldownTracker, now_ms
from core.models import LiveStatusSnapshot, StreamEvent, TrackedChannel
from shared.storage.activity_store import ActivityStore
from shared.config.tracker import ConfigStore, TrackerConfig
from shared.logging.logger import get_logger
from shared.platforms.platform import Platform
from shared.utils.timeframe import month_bounds

log = get_logger("core.monitor")


class StatusProvider(Protocol):
    async def get_status(self, channel_id: str) -> LiveStatusSnapshot: ...


class NotificationSink(Protocol):
    async def announce_stream(
        self,
        sink_id: str,
        event: StreamEvent,
        *,
        streams_this_month: int,
        manual: bool = False,
        user_check: bool = False,
        detected_at: Optional[datetime] = None,
    ) -> bool: ...


def matches_keyword(title: Optional[str], keyword: str) -> bool:
    if not title or not keyword:
        return False
    return keyword.lower() in title.lower()


# ----------------------------------------------------------------------
# Results
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class ChannelOutcome:
    channel: TrackedChannel
    event: Optional[StreamEvent] = None
    notified: bool = False
    error: Optional[str] = None


@dataclass
class CycleReport:
    manual: bool
    owning_user_id: Optional[str] = None
    checked: int = 0
    events: List[StreamEvent] = field(default_factory=list)
    notified: int = 0
    added: int = 0
    errors: int = 0
    skipped_reason: Optional[str] = None

    def summary(self) -> str:
        if self.skipped_reason:
            return self.skipped_reason
        return (
            f"Checked {self.checked} channel(s): {len(self.events)} live match(es), "
            f"{self.notified} announcement(s), {self.added} new session(s) recorded, "
            f"{self.errors} error(s)."
        )


# ----------------------------------------------------------------------
# Monitor
# ----------------------------------------------------------------------

class StreamMonitor:
    def __init__(
        self,
        *,
        config_store: ConfigStore,
        store: ActivityStore,
        providers: Mapping[Platform, StatusProvider],
        sink: Optional[NotificationSink] = None,
        cooldown: Optional[CooldownTracker] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._config_store = config_store
        self._store = store
        self._providers: Dict[Platform, StatusProvider] = dict(providers)
        self._sink = sink
        self._cooldown = cooldown or CooldownTracker()
        self._clock = clock

    @property
    def cooldown(self) -> CooldownTracker:
        return self._cooldown

    async def _load_config(self) -> TrackerConfig:
        return await asyncio.to_thread(self._config_store.load)

    # ------------------------------------------------------------------
    # Counting
    # ------------------------------------------------------------------

    async def streams_this_month(self, event: StreamEvent, now: int) -> int:
        """
        Sessions in the current UTC month for the event's triple.

        The event's own session is counted even if it has not been
        persisted yet, so a first announcement does not read "0".
        """
        today = datetime.fromtimestamp(now / 1000, tz=timezone.utc)
        bounds = month_bounds(today.year, today.month)
        sessions = await asyncio.to_thread(
            self._store.sessions_in_range,
            event.owning_user_id,
            event.platform.value,
            event.channel_id,
            bounds,
        )

        count = len(sessions)
        started = event.session.started_at_dt
        already = any(s.identity == event.session.identity for s in sessions)
        if not already and started is not None and bounds[0] <= started <= bounds[1]:
            count += 1
        return count

    # ------------------------------------------------------------------
    # Per-channel steps
    # ------------------------------------------------------------------

    async def _query(self, channel: TrackedChannel) -> Optional[LiveStatusSnapshot]:
        provider = self._providers.get(channel.platform)
        if provider is None:
            log.warning(
                f"[monitor] Unsupported platform {channel.platform.value} "
                f"for channel {channel.channel_id}; skipping"
            )
            return None
        return await provider.get_status(channel.channel_id)

    async def _already_recorded(self, event: StreamEvent) -> bool:
        return await asyncio.to_thread(
            self._store.contains,
            event.owning_user_id,
            event.platform.value,
            event.channel_id,
            event.session,
        )

    async def _notify(
        self,
        event: StreamEvent,
        config: TrackerConfig,
        *,
        manual: bool,
        now: int,
        user_check: bool = False,
    ) -> bool:
        if self._sink is None or not config.munchy_stream_channel_id:
            log.warning(
                f"[monitor] Cannot announce {event.channel_name}: "
                "no notification sink or munchyStreamChannelId configured"
            )
            return False

        count = await self.streams_this_month(event, now)
        try:
            sent = await self._sink.announce_stream(
                config.munchy_stream_channel_id,
                event,
                streams_this_month=count,
                manual=manual and not user_check,
                user_check=user_check,
                detected_at=datetime.fromtimestamp(now / 1000, tz=timezone.utc),
            )
        except Exception as e:
            log.error(f"[monitor] Announcement for {event.channel_name} raised: {e}")
            return False

        if not sent:
            log.error(f"[monitor] Announcement for {event.channel_name} was not delivered")
            return False

        if manual and not user_check:
            log.info(f"[monitor] Manual announcement for {event.channel_name}; cooldown not affected")
        else:
            self._cooldown.record_notified(event.identity, now)
            log.info(f"[monitor] Announced {event.channel_name}; cooldown updated")
        return True

    async def check_channel(
        self,
        channel: TrackedChannel,
        config: TrackerConfig,
        *,
        manual: bool = False,
        user_check: bool = False,
    ) -> ChannelOutcome:
        snapshot = await self._query(channel)
        if snapshot is None:
            return ChannelOutcome(channel, error="unsupported platform")

        if snapshot.error:
            log.error(
                f"[monitor] Error checking {channel.platform.value} channel "
                f"{channel.channel_id}: {snapshot.error}"
            )
            return ChannelOutcome(channel, error=snapshot.error)

        if not snapshot.is_live:
            return ChannelOutcome(channel)

        log.info(
            f"[monitor] Live stream found for {channel.platform.value} channel "
            f"{channel.channel_name} (user {channel.owning_user_id}): {snapshot.title!r}"
        )
        if not matches_keyword(snapshot.title, config.keyword):
            return ChannelOutcome(channel)

        event = StreamEvent.from_snapshot(channel, snapshot)
        now = self._clock()

        if not manual and await self._already_recorded(event):
            self._cooldown.prime_without_notifying(event.identity, now)
            log.info(
                f"[monitor] Stream {event.channel_name} (started {event.started_at}) already "
                "recorded; priming cooldown, no announcement this cycle"
            )
            return ChannelOutcome(channel, event=event)

        if not self._cooldown.should_notify(event.identity, now, config.cooldown_ms, manual=manual):
            next_at = self._cooldown.next_eligible_at(event.identity, config.cooldown_ms)
            log.info(
                f"[monitor] {event.channel_name} is on announcement cooldown "
                f"(next possible at {next_at} ms)"
            )
            return ChannelOutcome(channel, event=event)

        notified = await self._notify(event, config, manual=manual, now=now, user_check=user_check)
        return ChannelOutcome(channel, event=event, notified=notified)

    async def _check_channels(
        self,
        channels: List[TrackedChannel],
        config: TrackerConfig,
        report: CycleReport,
    ) -> None:
        for channel in channels:
            report.checked += 1
            try:
                outcome = await self.check_channel(
                    channel,
                    config,
                    manual=report.manual,
                    user_check=report.owning_user_id is not None,
                )
            except Exception as e:
                log.error(
                    f"[monitor] Error checking {channel.platform.value} channel "
                    f"{channel.channel_id} (user {channel.owning_user_id}): {e}"
                )
                report.errors += 1
                continue

            if outcome.error:
                report.errors += 1
            if outcome.event is not None:
                report.events.append(outcome.event)
            if outcome.notified:
                report.notified += 1

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def check_all(self, manual: bool = False) -> List[StreamEvent]:
        """Detect and announce; returns the candidate events for persisting."""
        report = await self._scan(manual=manual)
        return report.events

    async def _scan(self, *, manual: bool, owning_user_id: Optional[str] = None) -> CycleReport:
        report = CycleReport(manual=manual, owning_user_id=owning_user_id)
        config = await self._load_config()

        if not config.tracked_channels:
            report.skipped_reason = "No tracked channels found in configuration."
            log.info(f"[monitor] {report.skipped_reason}")
            return report

        channels = config.tracked_channels
        if owning_user_id is not None:
            channels = config.channels_for_user(owning_user_id)
            if not channels:
                report.skipped_reason = f"No channels are being tracked for the user <@{owning_user_id}>."
                log.info(f"[monitor] {report.skipped_reason}")
                return report

        await self._check_channels(channels, config, report)
        return report

    async def persist(self, events: List[StreamEvent]) -> int:
        """Append every candidate event; returns how many were new."""
        added = 0
        for event in events:
            if not event.is_persistable():
                log.warning(f"[monitor] Incomplete stream event, skipping save: {event!r}")
                continue
            try:
                result = await asyncio.to_thread(
                    self._store.append,
                    event.owning_user_id,
                    event.platform.value,
                    event.channel_id,
                    event.session,
                )
            except Exception as e:
                log.error(f"[monitor] Failed to persist session for {event.channel_name}: {e}")
                continue
            if result.added:
                added += 1
        return added

    async def run_cycle(self, manual: bool = False) -> CycleReport:
        log.info(f"[monitor] Triggering stream checks (manual={manual})")
        report = await self._scan(manual=manual)
        return await self._finish(report)

    async def check_user_streams(self, owning_user_id: str) -> CycleReport:
        """
        Manual cycle restricted to one owning user's channels.

        Cooldown and priming are bypassed like any manual cycle, but a
        delivered announcement still starts a fresh cooldown window.
        """
        log.info(f"[monitor] Starting stream check for user {owning_user_id}")
        report = await self._scan(manual=True, owning_user_id=str(owning_user_id))
        return await self._finish(report)

    async def _finish(self, report: CycleReport) -> CycleReport:
        if report.events:
            report.added = await self.persist(report.events)
            log.info(
                f"[monitor] Found {len(report.events)} live matching stream(s); "
                f"{report.added} new session(s) recorded"
            )
        elif not report.skipped_reason:
            log.info(f"[monitor] No live matching streams (manual={report.manual})")
        return report
