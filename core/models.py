from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from shared.platforms.platform import Platform


def parse_iso_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Both platforms emit "Z"-suffixed strings. Naive values are assumed UTC.
    Returns None for anything unparseable.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


@dataclass(frozen=True)
class ResolvedIdentity:
    channel_id: str
    channel_name: str


@dataclass(frozen=True)
class TrackedChannel:
    """
    One (platform, channel, owning user) registration from config.json.

    The config keys keep the historical camelCase spelling
    (channelId, targetUserId, channelLink) so existing files stay readable.
    """

    platform: Platform
    channel_id: str
    channel_name: str
    owning_user_id: str
    original_reference: str = ""

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.platform.value, self.channel_id)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> Optional["TrackedChannel"]:
        if not isinstance(raw, dict):
            return None

        platform = Platform.from_value(raw.get("platform"))
        channel_id = raw.get("channelId")
        owner = raw.get("targetUserId")
        if platform is None or not channel_id or not owner:
            return None

        return cls(
            platform=platform,
            channel_id=str(channel_id),
            channel_name=str(raw.get("channelName") or channel_id),
            owning_user_id=str(owner),
            original_reference=str(raw.get("channelLink") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "platform": self.platform.value,
            "channelId": self.channel_id,
            "channelName": self.channel_name,
            "channelLink": self.original_reference,
            "targetUserId": self.owning_user_id,
        }


@dataclass(frozen=True)
class LiveStatusSnapshot:
    """Transient result of one status query. Never persisted."""

    is_live: bool
    title: Optional[str] = None
    started_at: Optional[str] = None
    stream_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def offline(cls) -> "LiveStatusSnapshot":
        return cls(is_live=False)

    @classmethod
    def failed(cls, error: str) -> "LiveStatusSnapshot":
        return cls(is_live=False, error=error)


@dataclass(frozen=True)
class StreamSession:
    """
    Persisted record of one detected live session.

    Two sessions are the same occurrence iff stream_url and started_at are
    equal; the title is informational only.
    """

    stream_url: str
    started_at: str
    title: str = ""

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.stream_url, self.started_at)

    @property
    def started_at_dt(self) -> Optional[datetime]:
        return parse_iso_timestamp(self.started_at)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["StreamSession"]:
        if not isinstance(raw, dict):
            return None
        url = raw.get("streamUrl")
        started = raw.get("startedAt")
        if not isinstance(url, str) or not isinstance(started, str):
            return None
        title = raw.get("title")
        return cls(stream_url=url, started_at=started, title=title if isinstance(title, str) else "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "streamUrl": self.stream_url,
            "startedAt": self.started_at,
            "title": self.title,
        }


@dataclass(frozen=True)
class StreamEvent:
    """Candidate event: a live session that passed the keyword filter."""

    stream_url: str
    started_at: str
    title: str
    platform: Platform
    channel_id: str
    owning_user_id: str
    channel_name: str
    thumbnail_url: Optional[str] = None

    @property
    def identity(self) -> Tuple[str, str]:
        """Cooldown identity: one entry per streaming channel."""
        return (self.platform.value, self.channel_id)

    @property
    def session(self) -> StreamSession:
        return StreamSession(
            stream_url=self.stream_url,
            started_at=self.started_at,
            title=self.title,
        )

    @classmethod
    def from_snapshot(
        cls,
        channel: TrackedChannel,
        snapshot: LiveStatusSnapshot,
    ) -> "StreamEvent":
        return cls(
            stream_url=snapshot.stream_url or "",
            started_at=snapshot.started_at or "",
            title=snapshot.title or "",
            platform=channel.platform,
            channel_id=channel.channel_id,
            owning_user_id=channel.owning_user_id,
            channel_name=channel.channel_name,
            thumbnail_url=snapshot.thumbnail_url,
        )

    def is_persistable(self) -> bool:
        return bool(self.stream_url and self.started_at and self.owning_user_id)
