"""Supported streaming platforms and their display helpers.

The tracker models exactly two platforms. Platform values are stored
verbatim in config.json and in activity log file names, so the enum values
double as the on-disk spelling ("Twitch", "YouTube").
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class Platform(Enum):
    TWITCH = "Twitch"
    YOUTUBE = "YouTube"

    @classmethod
    def from_value(cls, value: Any) -> Optional["Platform"]:
        """Lenient lookup: accepts enum members, names and values in any case."""
        if isinstance(value, cls):
            return value

        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if normalized in {member.name.lower(), member.value.lower()}:
                    return member

        return None


# Embed accent colours (Discord palette: purple / red)
PLATFORM_COLORS: Dict[Platform, int] = {
    Platform.TWITCH: 0x9B59B6,
    Platform.YOUTUBE: 0xED4245,
}


def platform_color(platform: Platform | str | None) -> Optional[int]:
    resolved = Platform.from_value(platform)
    if resolved is None:
        return None
    return PLATFORM_COLORS[resolved]


def channel_url(platform: Platform | str, channel_id: str) -> str:
    """Public channel page for a canonical channel identifier."""
    if Platform.from_value(platform) == Platform.TWITCH:
        return f"https://twitch.tv/{channel_id}"
    return f"https://youtube.com/channel/{channel_id}"


__all__ = [
    "Platform",
    "PLATFORM_COLORS",
    "platform_color",
    "channel_url",
]
