"""
Append-only activity log store.

One JSON file per (owning user, platform, channel) triple, holding an array
of {streamUrl, startedAt, title} records in insertion order.

Guarantees:
- append() is idempotent on (streamUrl, startedAt)
- read() never raises; missing or corrupt files read as empty
- writes replace the whole file atomically after a successful read-modify
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, List, Optional, Tuple

from core.models import StreamSession
from shared.logging.logger import get_logger
from shared.storage.atomic import write_json_atomic
from shared.storage.paths import DEFAULT_DATA_DIR, get_activity_path
from shared.utils.timeframe import DateRange, in_range, month_bounds

log = get_logger("shared.activity_store")


@dataclass(frozen=True)
class AppendResult:
    added: bool
    error: Optional[str] = None


class ActivityStore:
    def __init__(self, base_dir: Path | str | None = None):
        self._base_dir = Path(base_dir) if base_dir else DEFAULT_DATA_DIR
        self._lock = Lock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def path_for(self, owning_user_id: str, platform: str, channel_id: str) -> Path:
        return get_activity_path(self._base_dir, owning_user_id, platform, channel_id)

    # ------------------------------------------------------------------
    # Internal load
    # ------------------------------------------------------------------

    def _load_raw(self, path: Path) -> List[Any]:
        """
        Load the raw record list.

        Raises OSError (or UnicodeDecodeError) when the file exists but
        cannot be read, so append()
        can refuse to overwrite it. Structurally invalid content is logged
        and treated as an empty log.
        """
        if not path.exists():
            return []

        text = path.read_text(encoding="utf-8")
        try:
            records = json.loads(text)
        except json.JSONDecodeError as e:
            log.warning(f"Activity log {path} is not valid JSON, treating as empty: {e}")
            return []

        if not isinstance(records, list):
            log.warning(f"Activity log {path} did not contain a JSON array, treating as empty")
            return []

        return records

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def read(
        self,
        owning_user_id: str,
        platform: str,
        channel_id: str,
    ) -> List[StreamSession]:
        path = self.path_for(owning_user_id, platform, channel_id)
        try:
            with self._lock:
                records = self._load_raw(path)
        except Exception as e:
            log.error(f"Failed to read activity log {path}: {e}")
            return []

        sessions: List[StreamSession] = []
        for record in records:
            session = StreamSession.from_dict(record)
            if session is None:
                log.debug(f"Skipping malformed record in {path}: {record!r}")
                continue
            sessions.append(session)
        return sessions

    def append(
        self,
        owning_user_id: str,
        platform: str,
        channel_id: str,
        session: StreamSession,
    ) -> AppendResult:
        if not owning_user_id or not platform or not channel_id:
            log.error(
                f"Refusing to append session without a full triple: "
                f"user={owning_user_id!r} platform={platform!r} channel={channel_id!r}"
            )
            return AppendResult(added=False, error="incomplete key")

        path = self.path_for(owning_user_id, platform, channel_id)

        with self._lock:
            try:
                records = self._load_raw(path)
            except (OSError, UnicodeDecodeError) as e:
                log.error(f"Cannot read activity log {path}, append skipped: {e}")
                return AppendResult(added=False, error=str(e))

            for record in records:
                existing = StreamSession.from_dict(record)
                if existing is not None and existing.identity == session.identity:
                    log.info(
                        f"Session already recorded for {owning_user_id} - {platform}_{channel_id} "
                        f"(url={session.stream_url}, started={session.started_at}); skipping"
                    )
                    return AppendResult(added=False)

            records.append(session.to_dict())

            try:
                write_json_atomic(path, records)
            except Exception as e:
                log.error(f"Failed to persist activity log {path}: {e}")
                return AppendResult(added=False, error=str(e))

        log.info(f"Saved session for {owning_user_id} - {platform}_{channel_id}: {session.title}")
        return AppendResult(added=True)

    def contains(
        self,
        owning_user_id: str,
        platform: str,
        channel_id: str,
        session: StreamSession,
    ) -> bool:
        return any(
            existing.identity == session.identity
            for existing in self.read(owning_user_id, platform, channel_id)
        )

    def sessions_in_range(
        self,
        owning_user_id: str,
        platform: str,
        channel_id: str,
        bounds: DateRange,
    ) -> List[StreamSession]:
        return [
            session
            for session in self.read(owning_user_id, platform, channel_id)
            if in_range(session.started_at_dt, bounds)
        ]

    def locate(self, identifier: str) -> List[Tuple[str, str, str]]:
        """
        Find logs by channel identifier, across all users.

        Matches either the full "<Platform>_<channel>" file stem or just the
        channel part, case-insensitively. Returns (user, platform, channel)
        triples.
        """
        wanted = identifier.strip().lower()
        if not wanted or not self._base_dir.is_dir():
            return []

        found: List[Tuple[str, str, str]] = []
        for path in sorted(self._base_dir.glob("*/*.json")):
            platform, sep, channel = path.stem.partition("_")
            if not sep:
                continue
            if wanted in {path.stem.lower(), channel.lower()}:
                found.append((path.parent.name, platform, channel))
        return found

    def count_in_month(
        self,
        owning_user_id: str,
        platform: str,
        channel_id: str,
        year: int,
        month: int,
    ) -> int:
        return len(
            self.sessions_in_range(
                owning_user_id, platform, channel_id, month_bounds(year, month)
            )
        )
