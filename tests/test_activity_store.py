"""Tests for the append-only activity log store."""

import json
from unittest.mock import patch

from core.models import StreamSession
from shared.storage.activity_store import ActivityStore

from helpers import OWNER_ID

URL = "https://www.twitch.tv/streamer"


def session(started_at="2026-10-17T12:00:00Z", title="munchy time", url=URL):
    return StreamSession(stream_url=url, started_at=started_at, title=title)


class TestAppend:
    """append() is idempotent on (streamUrl, startedAt)."""

    def test_first_append_adds(self, store):
        result = store.append(OWNER_ID, "Twitch", "streamer", session())

        assert result.added is True
        assert result.error is None
        assert store.read(OWNER_ID, "Twitch", "streamer") == [session()]

    def test_repeat_append_is_noop(self, store):
        store.append(OWNER_ID, "Twitch", "streamer", session())
        result = store.append(OWNER_ID, "Twitch", "streamer", session())

        assert result.added is False
        assert len(store.read(OWNER_ID, "Twitch", "streamer")) == 1

    def test_title_is_not_part_of_identity(self, store):
        store.append(OWNER_ID, "Twitch", "streamer", session(title="munchy time"))
        result = store.append(OWNER_ID, "Twitch", "streamer", session(title="MUNCHY part 2"))

        assert result.added is False
        assert store.read(OWNER_ID, "Twitch", "streamer")[0].title == "munchy time"

    def test_new_start_time_is_a_new_session(self, store):
        store.append(OWNER_ID, "Twitch", "streamer", session())
        result = store.append(OWNER_ID, "Twitch", "streamer", session(started_at="2026-10-18T12:00:00Z"))

        assert result.added is True
        assert len(store.read(OWNER_ID, "Twitch", "streamer")) == 2

    def test_insertion_order_is_kept(self, store):
        for day in ("20", "05", "12"):
            store.append(OWNER_ID, "Twitch", "streamer", session(started_at=f"2026-10-{day}T00:00:00Z"))

        days = [s.started_at[8:10] for s in store.read(OWNER_ID, "Twitch", "streamer")]
        assert days == ["20", "05", "12"]

    def test_file_layout(self, store):
        store.append(OWNER_ID, "YouTube", "UCabcdefghijklmnopqrstuv", session())

        path = store.base_dir / OWNER_ID / "YouTube_UCabcdefghijklmnopqrstuv.json"
        assert path.exists()
        assert json.loads(path.read_text(encoding="utf-8")) == [
            {"streamUrl": URL, "startedAt": "2026-10-17T12:00:00Z", "title": "munchy time"}
        ]

    def test_triples_are_isolated(self, store):
        store.append(OWNER_ID, "Twitch", "streamer", session())
        store.append("999", "Twitch", "streamer", session())

        assert len(store.read(OWNER_ID, "Twitch", "streamer")) == 1
        assert len(store.read("999", "Twitch", "streamer")) == 1

    def test_incomplete_triple_is_refused(self, store):
        result = store.append("", "Twitch", "streamer", session())

        assert result.added is False
        assert result.error == "incomplete key"

    def test_write_failure_is_reported(self, store):
        with patch(
            "shared.storage.activity_store.write_json_atomic",
            side_effect=OSError("disk full"),
        ):
            result = store.append(OWNER_ID, "Twitch", "streamer", session())

        assert result.added is False
        assert "disk full" in result.error
        assert store.read(OWNER_ID, "Twitch", "streamer") == []


class TestRead:
    """read() never raises."""

    def test_missing_file_reads_empty(self, store):
        assert store.read(OWNER_ID, "Twitch", "nobody") == []

    def test_corrupt_file_reads_empty(self, store):
        path = store.path_for(OWNER_ID, "Twitch", "streamer")
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        assert store.read(OWNER_ID, "Twitch", "streamer") == []

    def test_non_array_reads_empty(self, store):
        path = store.path_for(OWNER_ID, "Twitch", "streamer")
        path.parent.mkdir(parents=True)
        path.write_text('{"streamUrl": "x"}', encoding="utf-8")

        assert store.read(OWNER_ID, "Twitch", "streamer") == []

    def test_malformed_records_are_skipped(self, store):
        path = store.path_for(OWNER_ID, "Twitch", "streamer")
        path.parent.mkdir(parents=True)
        path.write_text(
            json.dumps([{"streamUrl": URL}, 7, {"streamUrl": URL, "startedAt": "2026-10-01T00:00:00Z"}]),
            encoding="utf-8",
        )

        sessions = store.read(OWNER_ID, "Twitch", "streamer")
        assert [s.started_at for s in sessions] == ["2026-10-01T00:00:00Z"]
        assert sessions[0].title == ""

    def test_corrupt_file_is_replaced_on_append(self, store):
        path = store.path_for(OWNER_ID, "Twitch", "streamer")
        path.parent.mkdir(parents=True)
        path.write_text("garbage", encoding="utf-8")

        result = store.append(OWNER_ID, "Twitch", "streamer", session())

        assert result.added is True
        assert len(store.read(OWNER_ID, "Twitch", "streamer")) == 1


class TestQueries:
    def test_count_in_month_uses_inclusive_utc_bounds(self, store):
        for started in (
            "2026-09-30T23:59:59Z",
            "2026-10-01T00:00:00Z",
            "2026-10-15T08:30:00Z",
            "2026-10-31T23:59:59Z",
            "2026-11-01T00:00:00Z",
        ):
            store.append(OWNER_ID, "Twitch", "streamer", session(started_at=started))

        assert store.count_in_month(OWNER_ID, "Twitch", "streamer", 2026, 9) == 1
        assert store.count_in_month(OWNER_ID, "Twitch", "streamer", 2026, 10) == 3
        assert store.count_in_month(OWNER_ID, "Twitch", "streamer", 2026, 11) == 1

    def test_unparseable_start_is_never_in_range(self, store):
        store.append(OWNER_ID, "Twitch", "streamer", session(started_at="yesterday"))

        assert store.count_in_month(OWNER_ID, "Twitch", "streamer", 2026, 10) == 0

    def test_contains(self, store):
        store.append(OWNER_ID, "Twitch", "streamer", session())

        assert store.contains(OWNER_ID, "Twitch", "streamer", session(title="other")) is True
        assert store.contains(OWNER_ID, "Twitch", "streamer", session(url="https://x")) is False

    def test_locate_matches_channel_or_stem(self, store):
        store.append(OWNER_ID, "Twitch", "streamer", session())
        store.append("999", "Twitch", "streamer", session())
        store.append(OWNER_ID, "YouTube", "UCabcdefghijklmnopqrstuv", session())

        assert store.locate("STREAMER") == [
            ("111111111111111111", "Twitch", "streamer"),
            ("999", "Twitch", "streamer"),
        ]
        assert store.locate("youtube_UCabcdefghijklmnopqrstuv") == [
            (OWNER_ID, "YouTube", "UCabcdefghijklmnopqrstuv")
        ]
        assert store.locate("   ") == []

    def test_locate_without_data_dir(self, tmp_path):
        assert ActivityStore(tmp_path / "missing").locate("streamer") == []
