"""
Tracker configuration loader.

config.json holds the tracked channel list and tunables and is edited at
runtime by the /track and /untrack commands. Credentials come from the
environment (loaded from .env by the entrypoint) and take precedence over
anything in the file.

Design rules:
- load() never raises; a missing or unreadable file yields defaults
- Schema violations are logged as warnings, never fatal
- Channel edits replace the file atomically and preserve unknown keys
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from core.models import TrackedChannel
from shared.logging.logger import get_logger
from shared.platforms.platform import Platform
from shared.storage.atomic import write_json_atomic
from shared.storage.paths import DEFAULT_CONFIG_PATH

log = get_logger("shared.config.tracker")


# ------------------------------------------------------------
# Defaults
# ------------------------------------------------------------

DEFAULT_STREAM_CHECK_INTERVAL_MINUTES = 15
DEFAULT_ANNOUNCEMENT_COOLDOWN_MINUTES = 15
DEFAULT_KEYWORD = "munchy"

SCHEMA_PATH = Path(__file__).parent / "tracker.schema.json"

# config key -> environment variable (env wins)
_SECRET_ENV = {
    "discordBotToken": "DISCORD_BOT_TOKEN",
    "twitchClientId": "TWITCH_CLIENT_ID",
    "twitchClientSecret": "TWITCH_CLIENT_SECRET",
    "youtubeApiKey": "YOUTUBE_API_KEY",
}


def _positive_number(value: Any, default: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return default
    return value


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass
class TrackerConfig:
    tracked_channels: List[TrackedChannel] = field(default_factory=list)
    stream_check_interval_minutes: float = DEFAULT_STREAM_CHECK_INTERVAL_MINUTES
    announcement_cooldown_minutes: float = DEFAULT_ANNOUNCEMENT_COOLDOWN_MINUTES
    keyword: str = DEFAULT_KEYWORD
    munchy_stream_channel_id: Optional[str] = None
    report_channel_id: Optional[str] = None

    discord_bot_token: Optional[str] = None
    twitch_client_id: Optional[str] = None
    twitch_client_secret: Optional[str] = None
    youtube_api_key: Optional[str] = None

    @property
    def cooldown_ms(self) -> int:
        return int(self.announcement_cooldown_minutes * 60 * 1000)

    @property
    def poll_interval_seconds(self) -> float:
        return float(self.stream_check_interval_minutes) * 60

    def channels_for_user(self, owning_user_id: str) -> List[TrackedChannel]:
        return [c for c in self.tracked_channels if c.owning_user_id == str(owning_user_id)]

    def tracked_user_ids(self) -> List[str]:
        seen: Dict[str, None] = {}
        for channel in self.tracked_channels:
            seen.setdefault(channel.owning_user_id, None)
        return list(seen)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "TrackerConfig":
        channels: List[TrackedChannel] = []
        for entry in raw.get("trackedChannels") or []:
            channel = TrackedChannel.from_dict(entry)
            if channel is None:
                log.warning(f"Ignoring invalid tracked channel entry: {entry!r}")
                continue
            channels.append(channel)

        keyword = raw.get("keyword")
        secrets = {
            key: _optional_str(os.getenv(env_name)) or _optional_str(raw.get(key))
            for key, env_name in _SECRET_ENV.items()
        }

        return cls(
            tracked_channels=channels,
            stream_check_interval_minutes=_positive_number(
                raw.get("streamCheckIntervalMinutes"), DEFAULT_STREAM_CHECK_INTERVAL_MINUTES
            ),
            announcement_cooldown_minutes=_positive_number(
                raw.get("announcementCooldownMinutes"), DEFAULT_ANNOUNCEMENT_COOLDOWN_MINUTES
            ),
            keyword=keyword.strip() if isinstance(keyword, str) and keyword.strip() else DEFAULT_KEYWORD,
            munchy_stream_channel_id=_optional_str(raw.get("munchyStreamChannelId")),
            report_channel_id=_optional_str(raw.get("reportChannelId")),
            discord_bot_token=secrets["discordBotToken"],
            twitch_client_id=secrets["twitchClientId"],
            twitch_client_secret=secrets["twitchClientSecret"],
            youtube_api_key=secrets["youtubeApiKey"],
        )


# ------------------------------------------------------------
# Store
# ------------------------------------------------------------

class ConfigStore:
    """
    Read/modify/write access to config.json.

    Tracked-channel edits go through add_tracked_channel() and
    remove_tracked_channel(), which re-read the file under a lock so a
    concurrent command never loses another command's edit.
    """

    def __init__(self, path: Path | str | None = None, *, schema_path: Path | None = None):
        self._path = Path(path) if path else DEFAULT_CONFIG_PATH
        self._schema_path = schema_path or SCHEMA_PATH
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _read_raw(self) -> Dict[str, Any]:
        if not self._path.exists():
            log.warning(f"Config not found at {self._path}; using defaults")
            return {}

        try:
            text = self._path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            log.error(f"Failed to read config {self._path} ({e}); using defaults")
            return {}

        if not text.strip():
            log.error(f"Config {self._path} is empty; using defaults")
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            log.error(f"Config {self._path} is not valid JSON ({e}); using defaults")
            return {}

        if not isinstance(data, dict):
            log.warning("Config root is not an object; ignoring file")
            return {}
        return data

    def _validate(self, payload: Dict[str, Any]) -> None:
        if not self._schema_path.exists():
            log.debug(f"Config schema not found at {self._schema_path}; skipping")
            return

        try:
            schema = json.loads(self._schema_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.warning(f"Failed to load config schema ({e}); skipping validation")
            return

        validator = Draft7Validator(schema)
        errors = sorted(validator.iter_errors(payload), key=lambda e: list(e.path))
        for err in errors:
            loc = "/".join(str(p) for p in err.path)
            log.warning(f"Config validation warning at '{loc}': {err.message}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def load(self) -> TrackerConfig:
        with self._lock:
            raw = self._read_raw()
        self._validate(raw)
        return TrackerConfig.from_dict(raw)

    def add_tracked_channel(self, channel: TrackedChannel) -> bool:
        """Append a registration. Returns False if it is already tracked."""
        with self._lock:
            raw = self._read_raw()
            entries = list(raw.get("trackedChannels") or [])

            for entry in entries:
                existing = TrackedChannel.from_dict(entry)
                if (
                    existing is not None
                    and existing.identity == channel.identity
                    and existing.owning_user_id == channel.owning_user_id
                ):
                    log.info(
                        f"{channel.platform.value} channel {channel.channel_id} already tracked "
                        f"for user {channel.owning_user_id}"
                    )
                    return False

            entries.append(channel.to_dict())
            raw["trackedChannels"] = entries
            write_json_atomic(self._path, raw)

        log.info(
            f"Now tracking {channel.platform.value} channel {channel.channel_name} "
            f"({channel.channel_id}) for user {channel.owning_user_id}"
        )
        return True

    def remove_tracked_channel(
        self,
        platform: Platform,
        channel_id: str,
        owning_user_id: str,
    ) -> bool:
        """Drop a registration. Activity logs are left untouched."""
        with self._lock:
            raw = self._read_raw()
            entries = list(raw.get("trackedChannels") or [])

            kept = []
            removed = False
            for entry in entries:
                existing = TrackedChannel.from_dict(entry)
                if (
                    existing is not None
                    and existing.platform == platform
                    and existing.channel_id == channel_id
                    and existing.owning_user_id == str(owning_user_id)
                ):
                    removed = True
                    continue
                kept.append(entry)

            if not removed:
                return False

            raw["trackedChannels"] = kept
            write_json_atomic(self._path, raw)

        log.info(f"Stopped tracking {platform.value} channel {channel_id} for user {owning_user_id}")
        return True

    def channels_for_user(self, owning_user_id: str) -> List[TrackedChannel]:
        return self.load().channels_for_user(owning_user_id)
