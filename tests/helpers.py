"""Shared builders and fakes for the tracker tests."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

from core.models import LiveStatusSnapshot

YOUTUBE_ID = "UCabcdefghijklmnopqrstuv"  # 24 chars, canonical shape
OWNER_ID = "111111111111111111"
SINK_ID = "222222222222222222"
REPORT_ID = "333333333333333333"


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, *, minutes: float = 0, seconds: float = 0) -> None:
        self.now += int((minutes * 60 + seconds) * 1000)


def live_snapshot(
    title: str = "munchy time",
    *,
    url: str = "https://www.twitch.tv/streamer",
    started_at: str = "2026-10-17T12:00:00Z",
    thumbnail: Optional[str] = None,
) -> LiveStatusSnapshot:
    return LiveStatusSnapshot(
        is_live=True,
        title=title,
        started_at=started_at,
        stream_url=url,
        thumbnail_url=thumbnail,
    )


def provider_returning(snapshot: LiveStatusSnapshot) -> AsyncMock:
    provider = AsyncMock()
    provider.get_status.return_value = snapshot
    return provider


def write_config(path: Path, **overrides: Any) -> Path:
    payload: Dict[str, Any] = {
        "streamCheckIntervalMinutes": 15,
        "announcementCooldownMinutes": 15,
        "munchyStreamChannelId": SINK_ID,
        "reportChannelId": REPORT_ID,
        "trackedChannels": [],
    }
    payload.update(overrides)
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return path


def channel_entry(
    platform: str = "Twitch",
    channel_id: str = "streamer",
    *,
    name: Optional[str] = None,
    owner: str = OWNER_ID,
    link: str = "",
) -> Dict[str, str]:
    return {
        "platform": platform,
        "channelId": channel_id,
        "channelName": name or channel_id,
        "channelLink": link,
        "targetUserId": owner,
    }


def sent_events(sink: AsyncMock) -> List[Any]:
    return [call.args[1] for call in sink.announce_stream.await_args_list]
