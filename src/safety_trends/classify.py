"""
Period and category classification of incident records.

Each record is folded into exactly one outcome: a period bucket (recent or
previous) or a SkipReason. The fold keeps the valid subset and typed skip
counts together, so the skip policy is visible and testable.

Category selection rules:
- no selection: every record matches
- "Violent Crime": matches any label that does not contain one of the
  excluded property-crime labels
- any other token: case-sensitive substring of the record's label
A record is kept if it matches any selected token.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from safety_trends.config import DEFAULT_VIOLENT_EXCLUDED_TYPES
from safety_trends.schemas import PointRecord, SkipReason
from safety_trends.time_utils import (
    Period,
    PeriodBounds,
    TimestampParseError,
    get_timezone,
    parse_timestamp,
    resolve_period_bounds,
)

logger = logging.getLogger(__name__)

VIOLENT_CRIME = "Violent Crime"


# =============================================================================
# Category Filter
# =============================================================================

def is_category_selected(
    record: PointRecord,
    selected_categories: Optional[Sequence[str]],
    violent_token: str = VIOLENT_CRIME,
    violent_excluded: Sequence[str] = DEFAULT_VIOLENT_EXCLUDED_TYPES,
) -> bool:
    """
    Check whether a record passes the category selection.
    
    Args:
        record: Incident record
        selected_categories: Selected tokens (None or empty selects everything)
        violent_token: Sentinel token for the violent-crime group
        violent_excluded: Labels the violent-crime group excludes
    
    Returns:
        True if any selected token matches the record's category label
    """
    if not selected_categories:
        return True
    
    label = record.category or ""
    for token in selected_categories:
        if token == violent_token:
            if not any(excluded in label for excluded in violent_excluded):
                return True
        elif token in label:
            return True
    return False


# =============================================================================
# Period Partition
# =============================================================================

@dataclass
class PartitionResult:
    """Records split by period, plus skip counts for everything else."""
    recent: List[PointRecord] = field(default_factory=list)
    previous: List[PointRecord] = field(default_factory=list)
    skipped: Counter = field(default_factory=Counter)
    total: int = 0
    
    def skip_count(self, reason: SkipReason) -> int:
        return self.skipped.get(reason, 0)


class PeriodClassifier:
    """
    Classify incident records for one comparison window.
    
    The window bounds are resolved once at construction, so every record in
    a computation is judged against the same reference instant.
    """
    
    def __init__(
        self,
        window: str,
        reference_now: Optional[Union[datetime, pd.Timestamp]] = None,
        analysis_year: int = 2025,
        timezone: str = "America/New_York",
        selected_categories: Optional[Sequence[str]] = None,
        violent_token: str = VIOLENT_CRIME,
        violent_excluded: Sequence[str] = DEFAULT_VIOLENT_EXCLUDED_TYPES,
        max_parse_warnings: int = 5,
    ):
        self.tz = get_timezone(timezone)
        self.bounds: PeriodBounds = resolve_period_bounds(
            window, reference_now, analysis_year, self.tz
        )
        self.selected_categories = list(selected_categories or [])
        self.violent_token = violent_token
        self.violent_excluded = tuple(violent_excluded)
        self.max_parse_warnings = max_parse_warnings
    
    @property
    def window(self) -> str:
        return self.bounds.window
    
    def classify(self, record: PointRecord) -> Tuple[Optional[Period], Optional[SkipReason]]:
        """
        Classify one record.
        
        Returns:
            (period, None) for records inside the window, or
            (None, reason) for records left out
        """
        if not is_category_selected(
            record, self.selected_categories, self.violent_token, self.violent_excluded
        ):
            return None, SkipReason.CATEGORY_FILTERED
        
        try:
            ts = parse_timestamp(record.timestamp, self.tz)
        except TimestampParseError:
            return None, SkipReason.TIMESTAMP_PARSE_ERROR
        
        if ts is None:
            return None, SkipReason.MISSING_TIMESTAMP
        
        period = self.bounds.classify(ts)
        if period is Period.OTHER:
            return None, SkipReason.OUT_OF_WINDOW
        return period, None
    
    def partition(self, points: Iterable[PointRecord]) -> PartitionResult:
        """
        Fold records into recent/previous buckets with skip counts.
        
        Unexpected per-record failures are counted as PROCESSING_ERROR and
        the record is skipped; the fold never aborts.
        """
        result = PartitionResult()
        
        for record in points:
            result.total += 1
            try:
                period, reason = self.classify(record)
            except Exception as e:
                logger.debug(f"Record classification failed: {e}")
                period, reason = None, SkipReason.PROCESSING_ERROR
            
            if period is Period.RECENT:
                result.recent.append(record)
            elif period is Period.PREVIOUS:
                result.previous.append(record)
            else:
                result.skipped[reason] += 1
                if (
                    reason is SkipReason.TIMESTAMP_PARSE_ERROR
                    and result.skipped[reason] <= self.max_parse_warnings
                ):
                    logger.warning(
                        f"Timestamp parse error ({result.skipped[reason]}): "
                        f"{record.timestamp!r}"
                    )
        
        return result
