"""
Typed records, error taxonomy, and construction-time normalization.

Upstream ingestion hands the engine loosely shaped GeoJSON features or
pandas tables. Everything is normalized here, once, into frozen records:
display-name fallbacks, identifier slugs, and coordinate/timestamp field
mapping are resolved at construction time rather than by each consumer.
"""

import enum
import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import geopandas as gpd
import pandas as pd
from shapely.geometry import mapping

from safety_trends.geometry import Geometry, geometry_from_geojson


# =============================================================================
# Errors
# =============================================================================

class SafetyTrendsError(Exception):
    """Base class for package errors."""
    pass


class MalformedInputError(SafetyTrendsError):
    """Raised when a point or neighborhood collection is structurally invalid."""
    pass


class SchemaError(MalformedInputError):
    """Raised when a tabular input is missing required columns."""
    pass


class ConfigError(SafetyTrendsError):
    """Raised when configuration values are invalid."""
    pass


class SkipReason(str, enum.Enum):
    """Why a record was left out of an aggregate."""
    INVALID_COORDINATE = "invalid_coordinate"
    MISSING_TIMESTAMP = "missing_timestamp"
    TIMESTAMP_PARSE_ERROR = "timestamp_parse_error"
    CATEGORY_FILTERED = "category_filtered"
    OUT_OF_WINDOW = "out_of_window"
    MISSING_GEOMETRY = "missing_geometry"
    DEGENERATE_GEOMETRY = "degenerate_geometry"
    PROCESSING_ERROR = "processing_error"


# =============================================================================
# Records
# =============================================================================

Timestamp = Union[str, datetime, pd.Timestamp]


@dataclass(frozen=True)
class PointRecord:
    """A single incident."""
    lat: Optional[float]
    lon: Optional[float]
    timestamp: Optional[Timestamp] = None
    category: str = ""
    properties: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Boundary:
    """A neighborhood polygon with a unique identifier."""
    id: str
    name: str
    geometry: Optional[Geometry]
    properties: Mapping[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class WindowResult:
    """Counts for one neighborhood over one time window."""
    recent: int
    previous: int
    change_percent: int
    crime_types: Mapping[str, int] = field(default_factory=dict)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "recent": self.recent,
            "previous": self.previous,
            "change_percent": self.change_percent,
            "crime_types": dict(self.crime_types),
        }


@dataclass(frozen=True)
class TrendRecord:
    """
    Safety trend for one neighborhood.
    
    The top-level counts describe the most recently computed window;
    `time_ranges` accumulates a WindowResult for every window computed so far.
    """
    neighborhood_id: str
    neighborhood_name: str
    recent_count: int
    previous_count: int
    change_percent: int
    crime_types: Mapping[str, int]
    time_ranges: Mapping[str, WindowResult]
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "neighborhood_id": self.neighborhood_id,
            "neighborhood_name": self.neighborhood_name,
            "recent_count": self.recent_count,
            "previous_count": self.previous_count,
            "change_percent": self.change_percent,
            "crime_types": dict(self.crime_types),
            "time_ranges": {k: v.to_dict() for k, v in self.time_ranges.items()},
        }


# =============================================================================
# Boundary Normalization
# =============================================================================

NAME_FIELDS = ("MAPNAME", "name", "NAME")


def slugify(name: str) -> str:
    """Collapse whitespace runs to underscores and lower-case."""
    return re.sub(r"\s+", "_", name.strip()).lower()


def _display_name(properties: Mapping[str, Any], position: int) -> str:
    for key in NAME_FIELDS:
        value = properties.get(key)
        if value:
            return str(value)
    return f"Community_{position}"


def _unique_id(candidate: str, seen: Dict[str, int]) -> str:
    if candidate not in seen:
        seen[candidate] = 1
        return candidate
    seen[candidate] += 1
    unique = f"{candidate}_{seen[candidate]}"
    while unique in seen:
        seen[candidate] += 1
        unique = f"{candidate}_{seen[candidate]}"
    seen[unique] = 1
    return unique


def _make_boundary(
    raw_id: Any,
    properties: Mapping[str, Any],
    geometry: Optional[Mapping[str, Any]],
    position: int,
    seen: Dict[str, int],
    name: Optional[str] = None,
) -> Boundary:
    name = name or _display_name(properties, position)
    candidate = str(raw_id) if raw_id not in (None, "") else slugify(name)
    return Boundary(
        id=_unique_id(candidate, seen),
        name=name,
        geometry=geometry_from_geojson(geometry),
        properties=dict(properties),
    )


def assert_feature_collection(collection: Any, context: str = "") -> Sequence[Any]:
    """
    Check that an input looks like a GeoJSON FeatureCollection.
    
    Returns:
        The `features` list
    
    Raises:
        MalformedInputError: If the collection or its `features` list is missing
    """
    ctx = f" ({context})" if context else ""
    if not isinstance(collection, Mapping):
        raise MalformedInputError(
            f"Expected a feature collection mapping, got {type(collection).__name__}{ctx}"
        )
    features = collection.get("features")
    if not isinstance(features, list):
        raise MalformedInputError(f"Feature collection is missing a 'features' list{ctx}")
    return features


def boundaries_from_geojson(collection: Mapping[str, Any]) -> List[Boundary]:
    """
    Normalize a GeoJSON FeatureCollection of neighborhoods.
    
    Display name comes from MAPNAME, name, or NAME (first non-empty), else
    ``Community_<n>``. The identifier is the feature ``id`` when present,
    otherwise the slug of the display name. Duplicates get a ``_<k>`` suffix.
    
    Raises:
        MalformedInputError: If the collection has no `features` list
    """
    features = assert_feature_collection(collection, "neighborhoods")
    
    seen: Dict[str, int] = {}
    boundaries = []
    for position, feature in enumerate(features, start=1):
        if not isinstance(feature, Mapping):
            feature = {}
        properties = feature.get("properties") or {}
        boundaries.append(
            _make_boundary(
                feature.get("id"),
                properties,
                feature.get("geometry"),
                position,
                seen,
            )
        )
    return boundaries


def boundaries_from_gdf(
    gdf: gpd.GeoDataFrame,
    id_col: Optional[str] = None,
    name_col: Optional[str] = None,
) -> List[Boundary]:
    """
    Normalize a GeoDataFrame of neighborhoods.
    
    Geometries are reprojected to EPSG:4326 when another CRS is set, then
    mapped to GeoJSON via shapely.
    
    Args:
        gdf: Neighborhood polygons
        id_col: Optional identifier column (falls back to the name slug)
        name_col: Optional display-name column (falls back to MAPNAME/name/NAME)
    """
    if not isinstance(gdf, gpd.GeoDataFrame):
        raise MalformedInputError(f"Expected GeoDataFrame, got {type(gdf).__name__}")
    
    if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
        gdf = gdf.to_crs(4326)
    
    geometry_col = gdf.geometry.name
    seen: Dict[str, int] = {}
    boundaries = []
    for position, (_, row) in enumerate(gdf.iterrows(), start=1):
        properties = {
            k: v for k, v in row.items()
            if k != geometry_col and not _is_missing(v)
        }
        explicit_name = properties.get(name_col) if name_col else None
        geom = row[geometry_col]
        boundaries.append(
            _make_boundary(
                properties.get(id_col) if id_col else None,
                properties,
                mapping(geom) if geom is not None and not geom.is_empty else None,
                position,
                seen,
                name=str(explicit_name) if explicit_name else None,
            )
        )
    return boundaries


def find_neighborhoods(boundaries: Iterable[Boundary], term: str) -> List[Boundary]:
    """
    Case-insensitive neighborhood lookup by display name or identifier.
    
    Matches on substring, preserving input order.
    """
    needle = term.strip().lower()
    if not needle:
        return []
    return [
        b for b in boundaries
        if needle in b.name.lower() or needle in b.id.lower()
    ]


# =============================================================================
# Point Normalization
# =============================================================================

TIMESTAMP_FIELD = "dispatch_date_time"
CATEGORY_FIELD = "text_general_code"


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _to_float(value: Any) -> Optional[float]:
    if _is_missing(value):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return None if math.isnan(result) else result


def _clean_timestamp(value: Any) -> Optional[Timestamp]:
    if _is_missing(value):
        return None
    if isinstance(value, (datetime, pd.Timestamp)):
        return value
    text = str(value).strip()
    return text or None


def points_from_geojson(collection: Mapping[str, Any]) -> List[PointRecord]:
    """
    Normalize a GeoJSON FeatureCollection of incident points.
    
    Coordinates are read as ``[lon, lat]``; timestamp from
    ``dispatch_date_time`` and category from ``text_general_code``.
    Features without a usable coordinate keep ``None`` for lat/lon.
    
    Raises:
        MalformedInputError: If the collection has no `features` list
    """
    features = assert_feature_collection(collection, "points")
    
    points = []
    for feature in features:
        if not isinstance(feature, Mapping):
            feature = {}
        geometry = feature.get("geometry") or {}
        coords = geometry.get("coordinates") if isinstance(geometry, Mapping) else None
        lon = lat = None
        if isinstance(coords, (list, tuple)) and len(coords) >= 2:
            lon, lat = _to_float(coords[0]), _to_float(coords[1])
        properties = feature.get("properties") or {}
        points.append(
            PointRecord(
                lat=lat,
                lon=lon,
                timestamp=_clean_timestamp(properties.get(TIMESTAMP_FIELD)),
                category=str(properties.get(CATEGORY_FIELD) or ""),
                properties=dict(properties),
            )
        )
    return points


def points_from_dataframe(
    df: pd.DataFrame,
    lat_col: str = "lat",
    lon_col: str = "lng",
    timestamp_col: str = TIMESTAMP_FIELD,
    category_col: str = CATEGORY_FIELD,
) -> List[PointRecord]:
    """
    Convert an already-decoded incident table into point records.
    
    Args:
        df: Incident table (one row per incident)
        lat_col: Latitude column
        lon_col: Longitude column
        timestamp_col: Timestamp column (strings or datetimes)
        category_col: Offense category column
    
    Returns:
        List of PointRecord in row order
    
    Raises:
        SchemaError: If any required column is missing
    """
    if not isinstance(df, pd.DataFrame):
        raise MalformedInputError(f"Expected DataFrame, got {type(df).__name__}")
    
    required = [lat_col, lon_col, timestamp_col, category_col]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise SchemaError(f"Incident table missing required columns: {missing}")
    
    extra_cols = [c for c in df.columns if c not in required]
    
    points = []
    for row in df.to_dict("records"):
        category = row[category_col]
        points.append(
            PointRecord(
                lat=_to_float(row[lat_col]),
                lon=_to_float(row[lon_col]),
                timestamp=_clean_timestamp(row[timestamp_col]),
                category="" if _is_missing(category) else str(category),
                properties={c: row[c] for c in extra_cols if not _is_missing(row[c])},
            )
        )
    return points


# =============================================================================
# Input Coercion
# =============================================================================

def coerce_boundaries(neighborhoods: Any) -> List[Boundary]:
    """
    Accept either normalized boundaries or a raw neighborhood collection.
    
    Raises:
        MalformedInputError: If the input is neither
    """
    if isinstance(neighborhoods, gpd.GeoDataFrame):
        return boundaries_from_gdf(neighborhoods)
    if isinstance(neighborhoods, Mapping):
        return boundaries_from_geojson(neighborhoods)
    if isinstance(neighborhoods, (list, tuple)):
        if all(isinstance(b, Boundary) for b in neighborhoods):
            return list(neighborhoods)
        raise MalformedInputError("Neighborhood sequence contains non-Boundary items")
    raise MalformedInputError(
        f"Unsupported neighborhood input: {type(neighborhoods).__name__}"
    )


def coerce_points(points: Any) -> List[PointRecord]:
    """
    Accept either point records, a GeoJSON collection, or an incident table.
    
    Raises:
        MalformedInputError: If the input is none of these
    """
    if isinstance(points, pd.DataFrame):
        return points_from_dataframe(points)
    if isinstance(points, Mapping):
        return points_from_geojson(points)
    if isinstance(points, (list, tuple)):
        if all(isinstance(p, PointRecord) for p in points):
            return list(points)
        raise MalformedInputError("Point sequence contains non-PointRecord items")
    raise MalformedInputError(f"Unsupported point input: {type(points).__name__}")
