"""
Safety trend aggregation.

Given neighborhood boundaries and incident points, the engine counts
incidents per neighborhood in a recent and a previous period, derives a
percent change, and breaks recent incidents down by category:

1. classify points by category selection and period (classify.PeriodClassifier)
2. build one grid index per period (spatial_index.build_index)
3. join each period's points to every boundary (joins.join_points_to_boundaries)
4. assemble one TrendRecord per neighborhood and merge it with the windows
   already computed for that neighborhood

Percent change is round-half-away-from-zero of (recent - previous) /
previous * 100, capped at +100 with no lower cap, and 0 when previous is 0.
"""

import logging
import math
from collections import Counter
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import pandas as pd

from safety_trends.cache import ResultCache
from safety_trends.classify import PartitionResult, PeriodClassifier
from safety_trends.config import TrendConfig, load_trend_config
from safety_trends.joins import BoundaryMatch, join_points_to_boundaries, log_join_stats
from safety_trends.schemas import (
    Boundary,
    MalformedInputError,
    PointRecord,
    SkipReason,
    TrendRecord,
    WindowResult,
    coerce_boundaries,
    coerce_points,
)
from safety_trends.spatial_index import build_index

logger = logging.getLogger(__name__)

MAX_CHANGE_PERCENT = 100

INCREASED = "increased"
DECREASED = "decreased"


# =============================================================================
# Percent Change
# =============================================================================

def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def compute_change_percent(recent: int, previous: int) -> int:
    """
    Percent change from previous to recent.
    
    Returns 0 when previous is 0. Increases are capped at +100; decreases
    are not floored.
    """
    if previous <= 0:
        return 0
    change = (recent - previous) / previous * 100
    return min(MAX_CHANGE_PERCENT, round_half_away_from_zero(change))


def trend_direction(record: TrendRecord) -> str:
    """'increased' for a positive change, otherwise 'decreased'."""
    return INCREASED if record.change_percent > 0 else DECREASED


# =============================================================================
# Diagnostics
# =============================================================================

@dataclass
class TrendDiagnostics:
    """Counters from one computation. None of these block the result."""
    time_window: str = ""
    total_points: int = 0
    category_filtered: int = 0
    missing_timestamp: int = 0
    timestamp_parse_errors: int = 0
    out_of_window: int = 0
    point_errors: int = 0
    invalid_coordinates: int = 0
    recent_points: int = 0
    previous_points: int = 0
    total_boundaries: int = 0
    degenerate_boundaries: int = 0
    missing_geometry: int = 0
    boundary_errors: int = 0
    malformed_input: Optional[str] = None
    
    @property
    def skipped_records(self) -> int:
        return (
            self.category_filtered + self.missing_timestamp
            + self.timestamp_parse_errors + self.out_of_window
            + self.point_errors + self.invalid_coordinates
        )
    
    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["skipped_records"] = self.skipped_records
        return data
    
    def record_partition(self, partition: PartitionResult) -> None:
        self.total_points = partition.total
        self.category_filtered = partition.skip_count(SkipReason.CATEGORY_FILTERED)
        self.missing_timestamp = partition.skip_count(SkipReason.MISSING_TIMESTAMP)
        self.timestamp_parse_errors = partition.skip_count(SkipReason.TIMESTAMP_PARSE_ERROR)
        self.out_of_window = partition.skip_count(SkipReason.OUT_OF_WINDOW)
        self.point_errors = partition.skip_count(SkipReason.PROCESSING_ERROR)
    
    def record_join(self, stats: Mapping[str, int]) -> None:
        self.total_boundaries = stats["total_boundaries"]
        self.degenerate_boundaries = stats["degenerate_boundaries"]
        self.missing_geometry = stats["missing_geometry"]
        self.boundary_errors = stats["boundary_errors"]


# =============================================================================
# Engine
# =============================================================================

class SafetyTrendEngine:
    """
    Computes neighborhood safety trends and keeps per-window results.
    
    The engine owns its ResultCache: bounding boxes are reused across calls
    and every call merges its window into the records of earlier windows.
    Call `clear()` (or `invalidate(id)`) when the boundary or point data
    changes; the engine does not detect staleness itself.
    
    Usage:
        engine = SafetyTrendEngine()
        trends = engine.compute_trends(neighborhoods, points, "1year")
        engine.diagnostics.as_dict()
    """
    
    def __init__(
        self,
        config: Optional[TrendConfig] = None,
        cache: Optional[ResultCache] = None,
        run_logger=None,
    ):
        """
        Args:
            config: Engine parameters (defaults to configs/params.yml)
            cache: Result cache (a fresh one by default)
            run_logger: Optional JSONLLogger receiving per-window stats
        """
        self.config = config or load_trend_config()
        self.cache = cache if cache is not None else ResultCache()
        self.run_logger = run_logger
        self.diagnostics: Optional[TrendDiagnostics] = None
    
    # -------------------------------------------------------------------------
    # Cache control
    # -------------------------------------------------------------------------
    
    def invalidate(self, neighborhood_id: str) -> None:
        self.cache.invalidate(neighborhood_id)
    
    def clear(self) -> None:
        self.cache.clear()
    
    # -------------------------------------------------------------------------
    # Computation
    # -------------------------------------------------------------------------
    
    def compute_trends(
        self,
        neighborhoods: Any,
        points: Any,
        time_window: str,
        selected_categories: Optional[Sequence[str]] = None,
        reference_now: Optional[Union[datetime, pd.Timestamp]] = None,
    ) -> Dict[str, TrendRecord]:
        """
        Compute safety trends for one time window.
        
        Args:
            neighborhoods: Boundaries (list of Boundary, GeoJSON
                           FeatureCollection, or GeoDataFrame)
            points: Incidents (list of PointRecord, GeoJSON
                    FeatureCollection, or DataFrame)
            time_window: '6months', '1year', or '2years'
            selected_categories: Optional category tokens (any-match)
            reference_now: Reference instant for '6months' (defaults to now)
        
        Returns:
            Mapping of neighborhood id -> TrendRecord, in boundary order.
            Empty when the input is malformed; see `diagnostics.malformed_input`.
        """
        diagnostics = TrendDiagnostics(time_window=time_window)
        self.diagnostics = diagnostics
        
        try:
            boundaries, records = self._validate_inputs(neighborhoods, points, time_window)
        except MalformedInputError as e:
            diagnostics.malformed_input = str(e)
            logger.error(f"Malformed trend input for window {time_window!r}: {e}")
            self._log_stats(diagnostics)
            return {}
        
        classifier = PeriodClassifier(
            time_window,
            reference_now=reference_now,
            analysis_year=self.config.analysis_year,
            timezone=self.config.timezone,
            selected_categories=selected_categories,
            violent_token=self.config.violent_crime_token,
            violent_excluded=self.config.violent_excluded_types,
            max_parse_warnings=self.config.max_parse_warnings,
        )
        partition = classifier.partition(records)
        diagnostics.record_partition(partition)
        
        recent_index = build_index(partition.recent, self.config.grid_size)
        previous_index = build_index(partition.previous, self.config.grid_size)
        diagnostics.invalid_coordinates = recent_index.skipped + previous_index.skipped
        diagnostics.recent_points = recent_index.indexed
        diagnostics.previous_points = previous_index.indexed
        
        matches, join_stats = join_points_to_boundaries(
            boundaries,
            recent_index,
            previous_index,
            self.cache,
            tolerance=self.config.edge_tolerance,
        )
        diagnostics.record_join(join_stats)
        log_join_stats(join_stats, self.run_logger)
        
        prior = self.cache.last_computed_trends or {}
        trends = {
            neighborhood_id: self._build_record(match, time_window, prior.get(neighborhood_id))
            for neighborhood_id, match in matches.items()
        }
        
        self.cache.store_trends(trends)
        self._log_stats(diagnostics)
        return trends
    
    def compute_all_windows(
        self,
        neighborhoods: Any,
        points: Any,
        selected_categories: Optional[Sequence[str]] = None,
        reference_now: Optional[Union[datetime, pd.Timestamp]] = None,
        windows: Optional[Iterable[str]] = None,
    ) -> Dict[str, Dict[str, TrendRecord]]:
        """
        Compute every configured window in order.
        
        Later windows carry the earlier windows in `time_ranges`, so the
        last mapping holds the full multi-window record for each neighborhood.
        
        Returns:
            Mapping of window -> (neighborhood id -> TrendRecord)
        """
        results: Dict[str, Dict[str, TrendRecord]] = {}
        for window in windows or self.config.time_windows:
            results[window] = self.compute_trends(
                neighborhoods, points, window, selected_categories, reference_now
            )
        return results
    
    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------
    
    def _validate_inputs(self, neighborhoods: Any, points: Any, time_window: str):
        if time_window not in self.config.time_windows:
            raise MalformedInputError(
                f"Unknown time window {time_window!r}; expected one of "
                f"{list(self.config.time_windows)}"
            )
        if neighborhoods is None:
            raise MalformedInputError("Neighborhood collection is missing")
        if points is None:
            raise MalformedInputError("Point collection is missing")
        
        boundaries: List[Boundary] = coerce_boundaries(neighborhoods)
        records: List[PointRecord] = coerce_points(points)
        return boundaries, records
    
    @staticmethod
    def _build_record(
        match: BoundaryMatch,
        time_window: str,
        prior: Optional[TrendRecord],
    ) -> TrendRecord:
        recent_count = len(match.recent)
        previous_count = len(match.previous)
        
        counts = Counter(p.category for p in match.recent if p.category)
        crime_types = {label: counts[label] for label in sorted(counts)}
        
        window_result = WindowResult(
            recent=recent_count,
            previous=previous_count,
            change_percent=compute_change_percent(recent_count, previous_count),
            crime_types=crime_types,
        )
        
        time_ranges = dict(prior.time_ranges) if prior is not None else {}
        time_ranges[time_window] = window_result
        
        return TrendRecord(
            neighborhood_id=match.boundary.id,
            neighborhood_name=match.boundary.name,
            recent_count=recent_count,
            previous_count=previous_count,
            change_percent=window_result.change_percent,
            crime_types=crime_types,
            time_ranges=time_ranges,
        )
    
    def _log_stats(self, diagnostics: TrendDiagnostics) -> None:
        logger.info(
            f"Trends [{diagnostics.time_window}]: "
            f"{diagnostics.recent_points} recent / {diagnostics.previous_points} previous points, "
            f"{diagnostics.skipped_records} skipped "
            f"({diagnostics.missing_timestamp} missing timestamp, "
            f"{diagnostics.timestamp_parse_errors} parse errors)"
        )
        if self.run_logger is not None:
            self.run_logger.log_trend_stats(diagnostics.as_dict())


# =============================================================================
# Projections
# =============================================================================

def trends_for_window(
    all_trends: Mapping[str, TrendRecord],
    window: str,
) -> Dict[str, TrendRecord]:
    """
    Project multi-window records onto one window without recomputing the join.
    
    Records that never computed `window` are returned unchanged.
    """
    result: Dict[str, TrendRecord] = {}
    for neighborhood_id, trend in all_trends.items():
        window_result = trend.time_ranges.get(window)
        if window_result is None:
            result[neighborhood_id] = trend
            continue
        result[neighborhood_id] = replace(
            trend,
            recent_count=window_result.recent,
            previous_count=window_result.previous,
            change_percent=compute_change_percent(
                window_result.recent, window_result.previous
            ),
            crime_types=dict(window_result.crime_types),
        )
    return result


def summarize_trends(trends: Mapping[str, TrendRecord]) -> pd.DataFrame:
    """
    Tabulate trend records, one row per neighborhood sorted by id.
    
    Returns:
        DataFrame with id, name, counts, change percent, direction, and the
        most frequent recent category
    """
    columns = [
        "neighborhood_id", "neighborhood_name", "recent_count",
        "previous_count", "change_percent", "direction", "top_crime_type",
    ]
    rows = []
    for neighborhood_id in sorted(trends):
        trend = trends[neighborhood_id]
        top_type = None
        if trend.crime_types:
            # Ties go to the alphabetically first label
            top_type = min(trend.crime_types.items(), key=lambda kv: (-kv[1], kv[0]))[0]
        rows.append({
            "neighborhood_id": trend.neighborhood_id,
            "neighborhood_name": trend.neighborhood_name,
            "recent_count": trend.recent_count,
            "previous_count": trend.previous_count,
            "change_percent": trend.change_percent,
            "direction": trend_direction(trend),
            "top_crime_type": top_type,
        })
    return pd.DataFrame(rows, columns=columns)
