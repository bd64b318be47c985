"""
Configuration validation script.

Checks config.json against shared/config/tracker.schema.json and reports
the settings the tracker would actually run with.

Design rules:
- No side effects on import
- No runtime startup, no network calls
- Validation only (no mutation)
- Exit code 1 on any schema error, 0 otherwise
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

from jsonschema import Draft7Validator

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from shared.config.tracker import SCHEMA_PATH, TrackerConfig  # noqa: E402


# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------

def _load_json(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ValueError(f"{path.name}: invalid JSON ({e})") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path.name}: root JSON value must be an object")
    return data


def _error(msg: str):
    print(f"[CONFIG ERROR] {msg}", file=sys.stderr)


# ------------------------------------------------------------
# Validators
# ------------------------------------------------------------

def schema_errors(payload: Dict[str, Any], schema_path: Path = SCHEMA_PATH) -> List[str]:
    schema = json.loads(schema_path.read_text(encoding="utf-8"))
    validator = Draft7Validator(schema)

    messages = []
    for err in sorted(validator.iter_errors(payload), key=lambda e: list(e.path)):
        loc = "/".join(str(p) for p in err.path) or "<root>"
        messages.append(f"{loc}: {err.message}")
    return messages


def describe(config: TrackerConfig) -> List[str]:
    lines = [
        f"Tracked channels:       {len(config.tracked_channels)}",
        f"Tracked users:          {len(config.tracked_user_ids())}",
        f"Check interval:         {config.stream_check_interval_minutes:g} min",
        f"Announcement cooldown:  {config.announcement_cooldown_minutes:g} min",
        f"Title keyword:          {config.keyword!r}",
        f"Announcement channel:   {config.munchy_stream_channel_id or 'NOT SET'}",
        f"Report channel:         {config.report_channel_id or 'NOT SET'}",
    ]
    for channel in config.tracked_channels:
        lines.append(
            f"  - {channel.platform.value:<8} {channel.channel_id} "
            f"({channel.channel_name}) -> user {channel.owning_user_id}"
        )
    return lines


# ------------------------------------------------------------
# Entry point
# ------------------------------------------------------------

def main(argv: List[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Validate the stream tracker config.json")
    parser.add_argument("path", nargs="?", default="config.json", help="config file to check")
    args = parser.parse_args(argv)

    path = Path(args.path)
    if not path.exists():
        _error(f"{path} not found")
        return 1

    try:
        payload = _load_json(path)
    except ValueError as e:
        _error(str(e))
        return 1

    errors = schema_errors(payload)
    for message in errors:
        _error(message)

    for line in describe(TrackerConfig.from_dict(payload)):
        print(line)

    if errors:
        print("Configuration validation failed.", file=sys.stderr)
        return 1

    print("Configuration validation passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
