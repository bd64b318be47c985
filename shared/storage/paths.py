"""
Shared storage path utilities.

This module defines canonical filesystem locations for the tracker's
persisted data:

- config.json (tracked channels + tunables)
- data/<owning_user_id>/<Platform>_<channel_id>.json (activity logs)

Both roots are repo-relative by default and can be moved with
MUNCHY_CONFIG_PATH / MUNCHY_DATA_DIR. Nothing here writes files.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

# ----------------------------------------------------------------------
# BASE LOCATIONS
# ----------------------------------------------------------------------

DEFAULT_CONFIG_PATH = Path(os.getenv("MUNCHY_CONFIG_PATH", "config.json"))
DEFAULT_DATA_DIR = Path(os.getenv("MUNCHY_DATA_DIR", "data"))

_UNSAFE = re.compile(r"[\\/:*?\"<>|]+")


def safe_component(value: str) -> str:
    """
    Make an identifier usable as a single path segment.

    Canonical channel IDs and Discord snowflakes never contain these
    characters; anything else is flattened rather than rejected.
    """
    cleaned = _UNSAFE.sub("_", str(value)).strip()
    if cleaned in {"", ".", ".."}:
        return "_"
    return cleaned


# ----------------------------------------------------------------------
# ACTIVITY LOG PATHS
# ----------------------------------------------------------------------

def get_activity_path(
    base_dir: Path,
    owning_user_id: str,
    platform: str,
    channel_id: str,
) -> Path:
    """
    Return the activity log path for one (user, platform, channel) triple.

    Example:
        data/123456789/YouTube_UCxxxxxxxxxxxxxxxxxxxxxx.json
    """
    user_dir = Path(base_dir) / safe_component(owning_user_id)
    return user_dir / f"{safe_component(platform)}_{safe_component(channel_id)}.json"
