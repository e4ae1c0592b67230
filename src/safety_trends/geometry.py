"""
Neighborhood boundary geometry: typed variants, vertex extraction, bounds.

Boundaries arrive as GeoJSON-style geometries. They are parsed once into one
of four variants (Polygon, MultiPolygon, GeometryCollection, or
UnsupportedGeometry) and every consumer goes through `extract_vertices`,
which returns outer-ring vertices only, as (lat, lon) pairs. Interior rings
(holes) are never extracted.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

# Ring coordinates are stored in GeoJSON order: (lon, lat)
Position = Tuple[float, float]
Ring = Tuple[Position, ...]

# Extracted vertices are (lat, lon)
Vertex = Tuple[float, float]

MIN_POLYGON_VERTICES = 3


# =============================================================================
# Geometry Variants
# =============================================================================

@dataclass(frozen=True)
class Polygon:
    """A single polygon; rings[0] is the outer ring, the rest are holes."""
    rings: Tuple[Ring, ...]
    
    geom_type = "Polygon"
    
    def outer_vertices(self) -> List[Vertex]:
        if not self.rings:
            return []
        return [(lat, lon) for lon, lat in self.rings[0]]


@dataclass(frozen=True)
class MultiPolygon:
    """Several polygons; each contributes its outer ring in stored order."""
    polygons: Tuple[Polygon, ...]
    
    geom_type = "MultiPolygon"
    
    def outer_vertices(self) -> List[Vertex]:
        vertices: List[Vertex] = []
        for polygon in self.polygons:
            vertices.extend(polygon.outer_vertices())
        return vertices


@dataclass(frozen=True)
class GeometryCollection:
    """Nested geometries, flattened by concatenating their outer rings."""
    geometries: Tuple["Geometry", ...]
    
    geom_type = "GeometryCollection"
    
    def outer_vertices(self) -> List[Vertex]:
        vertices: List[Vertex] = []
        for sub_geometry in self.geometries:
            vertices.extend(sub_geometry.outer_vertices())
        return vertices


@dataclass(frozen=True)
class UnsupportedGeometry:
    """Any geometry type the extractor does not handle (Point, LineString, ...)."""
    geom_type: str
    
    def outer_vertices(self) -> List[Vertex]:
        logger.warning(f"Unsupported geometry type: {self.geom_type}")
        return []


Geometry = Union[Polygon, MultiPolygon, GeometryCollection, UnsupportedGeometry]


# =============================================================================
# GeoJSON Parsing
# =============================================================================

def _parse_position(coord: Any) -> Optional[Position]:
    if not isinstance(coord, (list, tuple)) or len(coord) < 2:
        return None
    try:
        return float(coord[0]), float(coord[1])
    except (TypeError, ValueError):
        return None


def _parse_ring(ring: Any) -> Ring:
    if not isinstance(ring, (list, tuple)):
        return ()
    positions = (_parse_position(c) for c in ring)
    return tuple(p for p in positions if p is not None)


def _parse_polygon(coordinates: Any) -> Polygon:
    if not isinstance(coordinates, (list, tuple)):
        return Polygon(rings=())
    return Polygon(rings=tuple(_parse_ring(r) for r in coordinates))


def geometry_from_geojson(geometry: Optional[Mapping[str, Any]]) -> Optional[Geometry]:
    """
    Build a typed geometry from a GeoJSON geometry mapping.
    
    Malformed coordinate arrays are tolerated: positions that are not
    two-number pairs are dropped, which can leave a degenerate ring.
    
    Args:
        geometry: GeoJSON geometry object (``{"type": ..., "coordinates": ...}``)
    
    Returns:
        Geometry variant, or None when the geometry is missing
    """
    if geometry is None:
        return None
    if not isinstance(geometry, Mapping):
        return UnsupportedGeometry(geom_type=type(geometry).__name__)
    
    geom_type = geometry.get("type")
    
    if geom_type == "Polygon":
        return _parse_polygon(geometry.get("coordinates"))
    
    if geom_type == "MultiPolygon":
        coordinates = geometry.get("coordinates")
        if not isinstance(coordinates, (list, tuple)):
            return MultiPolygon(polygons=())
        polygons = tuple(
            _parse_polygon(p) for p in coordinates
            if isinstance(p, (list, tuple)) and len(p) > 0
        )
        return MultiPolygon(polygons=polygons)
    
    if geom_type == "GeometryCollection":
        members = geometry.get("geometries")
        if not isinstance(members, (list, tuple)):
            return GeometryCollection(geometries=())
        parsed = (geometry_from_geojson(g) for g in members)
        return GeometryCollection(geometries=tuple(g for g in parsed if g is not None))
    
    return UnsupportedGeometry(geom_type=str(geom_type))


# =============================================================================
# Vertex Extraction
# =============================================================================

def extract_vertices(geometry: Optional[Geometry]) -> List[Vertex]:
    """
    Extract the outer-boundary vertices of a boundary geometry.
    
    Polygon yields its outer ring, MultiPolygon the outer ring of each member,
    and GeometryCollection the concatenation of its members' vertices in
    stored order. Unsupported types yield an empty list with a warning.
    
    Args:
        geometry: Typed geometry (or None)
    
    Returns:
        List of (lat, lon) vertices. Fewer than 3 means the boundary is
        degenerate and must be reported with zero counts.
    """
    if geometry is None:
        return []
    
    vertices = geometry.outer_vertices()
    
    if len(vertices) < MIN_POLYGON_VERTICES:
        logger.warning(
            f"Extracted {len(vertices)} vertices from {geometry.geom_type}; "
            "insufficient to form a polygon"
        )
    
    return vertices


def is_degenerate(vertices: Sequence[Vertex]) -> bool:
    """True when the vertex list cannot describe a polygon."""
    return len(vertices) < MIN_POLYGON_VERTICES


# =============================================================================
# Bounding Boxes
# =============================================================================

@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in degrees."""
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float
    
    def contains(self, lat: float, lon: float) -> bool:
        """Inclusive containment test."""
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lon <= lon <= self.max_lon
        )
    
    def expanded(self, margin: float) -> "BoundingBox":
        """Box grown by `margin` degrees on every side."""
        return BoundingBox(
            min_lat=self.min_lat - margin,
            max_lat=self.max_lat + margin,
            min_lon=self.min_lon - margin,
            max_lon=self.max_lon + margin,
        )
    
    def is_finite(self) -> bool:
        return all(
            math.isfinite(v)
            for v in (self.min_lat, self.max_lat, self.min_lon, self.max_lon)
        )
    
    def as_dict(self) -> dict:
        return {
            "min_lat": self.min_lat,
            "max_lat": self.max_lat,
            "min_lon": self.min_lon,
            "max_lon": self.max_lon,
        }


def compute_bounding_box(vertices: Sequence[Vertex]) -> Optional[BoundingBox]:
    """
    Compute the bounding box of a vertex list.
    
    Returns:
        BoundingBox, or None for degenerate vertex lists
    """
    if is_degenerate(vertices):
        return None
    
    lats = [lat for lat, _ in vertices]
    lons = [lon for _, lon in vertices]
    return BoundingBox(
        min_lat=min(lats),
        max_lat=max(lats),
        min_lon=min(lons),
        max_lon=max(lons),
    )
