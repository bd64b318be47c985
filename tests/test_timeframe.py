"""Tests for month bounds and timeframe parsing."""

from datetime import datetime, timezone

import pytest

from shared.utils.timeframe import in_range, month_bounds, month_name, parse_timeframe, previous_month

NOW = datetime(2026, 10, 17, 15, 30, tzinfo=timezone.utc)


class TestMonthBounds:
    def test_regular_month(self):
        start, end = month_bounds(2026, 10)

        assert start == datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert end == datetime(2026, 10, 31, 23, 59, 59, 999999, tzinfo=timezone.utc)

    @pytest.mark.parametrize("year,last_day", [(2024, 29), (2025, 28), (2100, 28)])
    def test_february(self, year, last_day):
        assert month_bounds(year, 2)[1].day == last_day

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month(self, month):
        with pytest.raises(ValueError):
            month_bounds(2026, month)

    def test_bounds_are_inclusive(self):
        bounds = month_bounds(2026, 10)

        assert in_range(bounds[0], bounds)
        assert in_range(bounds[1], bounds)
        assert not in_range(datetime(2026, 11, 1, tzinfo=timezone.utc), bounds)
        assert not in_range(None, bounds)


class TestPreviousMonth:
    def test_mid_year(self):
        assert previous_month(NOW) == (2026, 9)

    def test_january_wraps(self):
        assert previous_month(datetime(2027, 1, 1, tzinfo=timezone.utc)) == (2026, 12)

    def test_month_name(self):
        assert month_name(1) == "January"
        assert month_name(12) == "December"


class TestParseTimeframe:
    def test_days(self):
        start, end = parse_timeframe("7d", now=NOW)

        assert start == datetime(2026, 10, 10, tzinfo=timezone.utc)
        assert end == NOW

    def test_months_clamp_day(self):
        now = datetime(2026, 3, 31, 9, 0, tzinfo=timezone.utc)

        start, _ = parse_timeframe("1m", now=now)

        assert start == datetime(2026, 2, 28, tzinfo=timezone.utc)

    def test_years(self):
        start, _ = parse_timeframe("1y", now=NOW)

        assert start == datetime(2025, 10, 17, tzinfo=timezone.utc)

    def test_custom_range_includes_end_day(self):
        start, end = parse_timeframe("2026-10-01_2026-10-05", now=NOW)

        assert start == datetime(2026, 10, 1, tzinfo=timezone.utc)
        assert end == datetime(2026, 10, 5, 23, 59, 59, 999999, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "week",
            "7w",
            "-3d",
            "2026-10-05_2026-10-01",
            "2026-13-01_2026-13-02",
            "2026-10-01",
            "99999999999d",
            "999999m",
            "99999y",
        ],
    )
    def test_rejected(self, text):
        assert parse_timeframe(text, now=NOW) is None
