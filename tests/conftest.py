"""Pytest fixtures for the stream tracker tests."""

import os
import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

# Route log files away from the working tree before any module creates a logger
os.environ.setdefault("MUNCHY_LOG_DIR", tempfile.mkdtemp(prefix="munchy-logs-"))

import pytest

from core.models import TrackedChannel
from shared.config.tracker import ConfigStore
from shared.platforms.platform import Platform
from shared.storage.activity_store import ActivityStore

from helpers import OWNER_ID, channel_entry, write_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Credentials from the developer's shell must not leak into tests."""
    for name in ("DISCORD_BOT_TOKEN", "TWITCH_CLIENT_ID", "TWITCH_CLIENT_SECRET", "YOUTUBE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def twitch_channel() -> TrackedChannel:
    return TrackedChannel(
        platform=Platform.TWITCH,
        channel_id="streamer",
        channel_name="Streamer",
        owning_user_id=OWNER_ID,
        original_reference="https://twitch.tv/streamer",
    )


@pytest.fixture
def store(tmp_path) -> ActivityStore:
    return ActivityStore(tmp_path / "data")


@pytest.fixture
def config_path(tmp_path) -> Path:
    return write_config(tmp_path / "config.json", trackedChannels=[channel_entry(name="Streamer")])


@pytest.fixture
def config_store(config_path) -> ConfigStore:
    return ConfigStore(config_path)


@pytest.fixture
def sink() -> AsyncMock:
    sink = AsyncMock()
    sink.announce_stream.return_value = True
    sink.send_report.return_value = True
    return sink
