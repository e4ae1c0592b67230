"""
Tests for timestamp parsing and comparison-window classification.

The 6months window follows a reference instant (the wall clock by default);
the calendar windows follow the fixed analysis year.
"""

from datetime import datetime

import pandas as pd
import pytest

from safety_trends.time_utils import (
    ONE_YEAR,
    SIX_MONTHS,
    TWO_YEARS,
    Period,
    TimestampParseError,
    classify_period,
    get_timezone,
    parse_timestamp,
    resolve_period_bounds,
)

NY = get_timezone("America/New_York")
REFERENCE = pd.Timestamp("2025-06-01 00:00:00")


class TestParseTimestamp:
    """Tests for parse_timestamp."""

    def test_naive_string_is_local(self):
        ts = parse_timestamp("2025-03-01 12:00:00")
        assert ts.year == 2025
        assert ts.hour == 12
        assert str(ts.tz) == "America/New_York"

    def test_aware_string_converted(self):
        # 03:00 UTC on Jan 1 is still Dec 31 in New York
        ts = parse_timestamp("2025-01-01T03:00:00Z")
        assert ts.year == 2024
        assert ts.month == 12

    def test_datetime_object(self):
        ts = parse_timestamp(datetime(2024, 7, 4, 9, 30))
        assert (ts.year, ts.month, ts.day) == (2024, 7, 4)

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_missing(self, value):
        assert parse_timestamp(value) is None

    @pytest.mark.parametrize("value", ["not a date", "2025-13-45"])
    def test_unparseable(self, value):
        with pytest.raises(TimestampParseError):
            parse_timestamp(value)


class TestSixMonths:
    """Rolling window relative to a reference instant."""

    @pytest.mark.parametrize("value,expected", [
        ("2025-05-31 23:59:00", Period.RECENT),
        ("2025-06-01 00:00:00", Period.RECENT),
        ("2024-12-01 00:00:00", Period.RECENT),
        ("2024-11-30 23:59:00", Period.PREVIOUS),
        ("2024-06-01 00:00:00", Period.PREVIOUS),
        ("2024-05-31 23:59:00", Period.OTHER),
        ("2025-06-01 00:01:00", Period.OTHER),
    ])
    def test_classification(self, value, expected):
        ts = parse_timestamp(value, NY)
        assert classify_period(ts, SIX_MONTHS, reference_now=REFERENCE) is expected

    def test_defaults_to_wall_clock(self):
        bounds = resolve_period_bounds(SIX_MONTHS)
        now = pd.Timestamp.now(tz=NY)
        assert abs((now - bounds.recent_end).total_seconds()) < 60

    def test_periods_are_adjacent(self):
        bounds = resolve_period_bounds(SIX_MONTHS, reference_now=REFERENCE)
        assert bounds.previous_end == bounds.recent_start


class TestCalendarWindows:
    """1year and 2years windows use the fixed analysis year."""

    @pytest.mark.parametrize("year,expected", [
        (2026, Period.OTHER),
        (2025, Period.RECENT),
        (2024, Period.PREVIOUS),
        (2023, Period.OTHER),
    ])
    def test_one_year(self, year, expected):
        ts = parse_timestamp(f"{year}-03-15 08:00:00", NY)
        assert classify_period(ts, ONE_YEAR, analysis_year=2025) is expected

    @pytest.mark.parametrize("year,expected", [
        (2025, Period.RECENT),
        (2024, Period.RECENT),
        (2023, Period.PREVIOUS),
        (2022, Period.PREVIOUS),
        (2021, Period.OTHER),
    ])
    def test_two_years(self, year, expected):
        ts = parse_timestamp(f"{year}-11-02 01:30:00", NY)
        assert classify_period(ts, TWO_YEARS, analysis_year=2025) is expected

    def test_ignores_reference_now(self):
        ts = parse_timestamp("2025-03-15 08:00:00", NY)
        far_future = pd.Timestamp("2040-01-01")
        assert classify_period(ts, ONE_YEAR, reference_now=far_future, analysis_year=2025) is Period.RECENT

    def test_year_boundaries(self):
        bounds = resolve_period_bounds(ONE_YEAR, analysis_year=2025, tz=NY)
        assert bounds.classify(parse_timestamp("2025-01-01 00:00:00", NY)) is Period.RECENT
        assert bounds.classify(parse_timestamp("2024-12-31 23:59:59", NY)) is Period.PREVIOUS
        assert bounds.classify(parse_timestamp("2026-01-01 00:00:00", NY)) is Period.OTHER

    def test_unknown_window(self):
        with pytest.raises(ValueError):
            resolve_period_bounds("3years")
