"""
Timezone-aware timestamp parsing and comparison-window logic.

All incident timestamps are read into the configured local timezone
(America/New_York by default) before calendar years or month offsets are
taken. Naive timestamps are assumed to already be local time.

Three comparison windows, each split into a "recent" and a "previous"
period of equal length:

- 6months: recent = [now - 6 months, now], previous = [now - 12 months,
  now - 6 months). `now` follows the wall clock unless a reference is given.
- 1year:   recent = calendar year Y, previous = Y - 1, where Y is the fixed
  analysis year.
- 2years:  recent = Y and Y - 1, previous = Y - 2 and Y - 3.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

import pandas as pd
import pytz


DEFAULT_TIMEZONE = "America/New_York"

SIX_MONTHS = "6months"
ONE_YEAR = "1year"
TWO_YEARS = "2years"
TIME_WINDOWS = (SIX_MONTHS, ONE_YEAR, TWO_YEARS)


class Period(str, enum.Enum):
    RECENT = "recent"
    PREVIOUS = "previous"
    OTHER = "other"


class TimestampParseError(ValueError):
    """Raised when a timestamp string cannot be parsed."""
    pass


def get_timezone(name: str = DEFAULT_TIMEZONE):
    """Resolve a timezone name with pytz."""
    return pytz.timezone(name)


# =============================================================================
# Timestamp Parsing
# =============================================================================

def to_local(ts: pd.Timestamp, tz) -> pd.Timestamp:
    """
    Express a timestamp in the local timezone.
    
    Naive timestamps are localized (ambiguous fall-back hours resolve to
    DST, nonexistent spring-forward times shift forward); aware ones are
    converted.
    """
    if ts.tzinfo is None:
        return ts.tz_localize(tz, ambiguous=True, nonexistent="shift_forward")
    return ts.tz_convert(tz)


def parse_timestamp(
    value: Optional[Union[str, datetime, pd.Timestamp]],
    tz=None,
) -> Optional[pd.Timestamp]:
    """
    Parse an incident timestamp into the local timezone.
    
    Args:
        value: Timestamp string, datetime, or pandas Timestamp
        tz: Target timezone (defaults to America/New_York)
    
    Returns:
        Timezone-aware Timestamp, or None when the value is missing/blank
    
    Raises:
        TimestampParseError: If a non-blank value cannot be parsed
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    
    tz = tz or get_timezone()
    
    try:
        ts = pd.Timestamp(value.strip() if isinstance(value, str) else value)
    except (ValueError, TypeError, OverflowError) as e:
        raise TimestampParseError(f"Unparseable timestamp {value!r}: {e}") from e
    
    if pd.isna(ts):
        raise TimestampParseError(f"Unparseable timestamp {value!r}")
    
    try:
        return to_local(ts, tz)
    except (ValueError, OverflowError) as e:
        raise TimestampParseError(f"Cannot localize timestamp {value!r}: {e}") from e


# =============================================================================
# Comparison Windows
# =============================================================================

@dataclass(frozen=True)
class PeriodBounds:
    """Resolved recent/previous boundaries for one window."""
    window: str
    recent_start: pd.Timestamp
    recent_end: pd.Timestamp
    previous_start: pd.Timestamp
    previous_end: pd.Timestamp
    # The rolling window includes `now`; calendar windows end at Jan 1 (exclusive)
    recent_end_inclusive: bool
    
    def classify(self, ts: pd.Timestamp) -> Period:
        if self.recent_end_inclusive:
            in_recent = self.recent_start <= ts <= self.recent_end
        else:
            in_recent = self.recent_start <= ts < self.recent_end
        if in_recent:
            return Period.RECENT
        if self.previous_start <= ts < self.previous_end:
            return Period.PREVIOUS
        return Period.OTHER


def _year_start(year: int, tz) -> pd.Timestamp:
    return pd.Timestamp(year=year, month=1, day=1).tz_localize(tz)


def resolve_period_bounds(
    window: str,
    reference_now: Optional[Union[datetime, pd.Timestamp]] = None,
    analysis_year: int = 2025,
    tz=None,
) -> PeriodBounds:
    """
    Resolve the recent and previous periods for a comparison window.
    
    Args:
        window: One of '6months', '1year', '2years'
        reference_now: Reference instant for '6months'. Defaults to the
                       current time.
        analysis_year: Fixed year Y for the calendar windows
        tz: Local timezone (defaults to America/New_York)
    
    Returns:
        PeriodBounds
    
    Raises:
        ValueError: If the window token is unknown
    """
    tz = tz or get_timezone()
    
    if window == SIX_MONTHS:
        if reference_now is None:
            now = pd.Timestamp.now(tz=tz)
        else:
            now = to_local(pd.Timestamp(reference_now), tz)
        six_months_ago = now - pd.DateOffset(months=6)
        twelve_months_ago = now - pd.DateOffset(months=12)
        return PeriodBounds(
            window=window,
            recent_start=six_months_ago,
            recent_end=now,
            previous_start=twelve_months_ago,
            previous_end=six_months_ago,
            recent_end_inclusive=True,
        )
    
    if window == ONE_YEAR:
        span = 1
    elif window == TWO_YEARS:
        span = 2
    else:
        raise ValueError(f"Unknown time window: {window!r}. Expected one of {TIME_WINDOWS}")
    
    recent_start = _year_start(analysis_year - span + 1, tz)
    previous_start = _year_start(analysis_year - 2 * span + 1, tz)
    return PeriodBounds(
        window=window,
        recent_start=recent_start,
        recent_end=_year_start(analysis_year + 1, tz),
        previous_start=previous_start,
        previous_end=recent_start,
        recent_end_inclusive=False,
    )


def classify_period(
    timestamp: pd.Timestamp,
    window: str,
    reference_now: Optional[Union[datetime, pd.Timestamp]] = None,
    analysis_year: int = 2025,
    tz=None,
) -> Period:
    """
    Label a parsed timestamp as recent, previous, or other for a window.
    
    For repeated classification against the same window, resolve the bounds
    once with `resolve_period_bounds` and call `PeriodBounds.classify`.
    """
    tz = tz or get_timezone()
    bounds = resolve_period_bounds(window, reference_now, analysis_year, tz)
    return bounds.classify(to_local(pd.Timestamp(timestamp), tz))
