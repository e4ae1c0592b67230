"""
Point-to-neighborhood join: grid prefilter, bounding-box refinement, then
exact point-in-polygon confirmation.

For each boundary:
1. extract outer-ring vertices (degenerate boundaries get an empty match)
2. fetch or compute its bounding box through the result cache
3. query each period's grid index for candidates inside the box
4. keep the candidates the ray-casting test confirms

Per-boundary failures are logged and counted; the join continues.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from safety_trends.cache import ResultCache
from safety_trends.containment import DEFAULT_EDGE_TOLERANCE, point_in_polygon
from safety_trends.geometry import (
    BoundingBox,
    Vertex,
    compute_bounding_box,
    extract_vertices,
    is_degenerate,
)
from safety_trends.qa import check_bounds_plausible
from safety_trends.schemas import Boundary, PointRecord, SkipReason
from safety_trends.spatial_index import GridIndex

logger = logging.getLogger(__name__)


@dataclass
class BoundaryMatch:
    """Points confirmed inside one boundary, per period."""
    boundary: Boundary
    recent: List[PointRecord] = field(default_factory=list)
    previous: List[PointRecord] = field(default_factory=list)
    skip_reason: Optional[SkipReason] = None


def points_within(
    vertices: Sequence[Vertex],
    bbox: BoundingBox,
    index: GridIndex,
    tolerance: float = DEFAULT_EDGE_TOLERANCE,
) -> Tuple[List[PointRecord], int]:
    """
    Find indexed points inside a polygon.
    
    The grid query uses the box grown by `tolerance`, so points the edge
    test accepts just outside the ring still reach the containment test.
    
    Args:
        vertices: Polygon ring as (lat, lon) pairs
        bbox: Bounding box of the ring
        index: Grid index for one period
        tolerance: On-edge tolerance for the containment test
    
    Returns:
        Tuple of (contained points in candidate order, candidate count)
    """
    candidates = index.query(bbox.expanded(tolerance))
    contained = []
    for point in candidates:
        try:
            if point_in_polygon(point.lat, point.lon, vertices, tolerance):
                contained.append(point)
        except (TypeError, ValueError, ZeroDivisionError) as e:
            logger.debug(f"Containment test failed for {point}: {e}")
    return contained, len(candidates)


def join_points_to_boundaries(
    boundaries: Sequence[Boundary],
    recent_index: GridIndex,
    previous_index: GridIndex,
    cache: ResultCache,
    tolerance: float = DEFAULT_EDGE_TOLERANCE,
) -> Tuple[Dict[str, BoundaryMatch], Dict]:
    """
    Join recent and previous incident points to every boundary.
    
    Args:
        boundaries: Normalized neighborhood boundaries
        recent_index: Grid index of recent-period points
        previous_index: Grid index of previous-period points
        cache: Result cache holding bounding boxes by neighborhood id
        tolerance: On-edge tolerance for the containment test
    
    Returns:
        Tuple of (matches keyed by neighborhood id in input order, stats dict)
    """
    stats = {
        "total_boundaries": len(boundaries),
        "joined_boundaries": 0,
        "missing_geometry": 0,
        "degenerate_boundaries": 0,
        "boundary_errors": 0,
        "recent_candidates": 0,
        "previous_candidates": 0,
        "recent_matched": 0,
        "previous_matched": 0,
    }
    matches: Dict[str, BoundaryMatch] = {}
    
    for boundary in boundaries:
        match = BoundaryMatch(boundary=boundary)
        matches[boundary.id] = match
        
        if boundary.geometry is None:
            match.skip_reason = SkipReason.MISSING_GEOMETRY
            stats["missing_geometry"] += 1
            continue
        
        try:
            vertices = extract_vertices(boundary.geometry)
            if is_degenerate(vertices):
                match.skip_reason = SkipReason.DEGENERATE_GEOMETRY
                stats["degenerate_boundaries"] += 1
                continue
            
            bbox = cache.get_or_compute_bounds(
                boundary.id, lambda: compute_bounding_box(vertices)
            )
            check_bounds_plausible(bbox, context=boundary.id)
            
            recent, n_recent = points_within(vertices, bbox, recent_index, tolerance)
            previous, n_previous = points_within(vertices, bbox, previous_index, tolerance)
        except Exception as e:
            logger.error(f"Failed to join points to boundary {boundary.id!r}: {e}")
            match.skip_reason = SkipReason.PROCESSING_ERROR
            stats["boundary_errors"] += 1
            continue
        
        match.recent = recent
        match.previous = previous
        stats["joined_boundaries"] += 1
        stats["recent_candidates"] += n_recent
        stats["previous_candidates"] += n_previous
        stats["recent_matched"] += len(recent)
        stats["previous_matched"] += len(previous)
    
    return matches, stats


def log_join_stats(stats: Dict, logger=None) -> None:
    """
    Log join statistics.
    
    Args:
        stats: Statistics dictionary from join_points_to_boundaries
        logger: Optional JSONLLogger or logging.Logger (uses module logger if None)
    """
    msg = (
        f"Neighborhood join stats: "
        f"{stats['total_boundaries']} boundaries, "
        f"{stats['joined_boundaries']} joined, "
        f"{stats['degenerate_boundaries']} degenerate, "
        f"{stats['missing_geometry']} missing geometry, "
        f"{stats['boundary_errors']} errors"
        f" | recent {stats['recent_matched']}/{stats['recent_candidates']} candidates"
        f", previous {stats['previous_matched']}/{stats['previous_candidates']} candidates"
    )
    
    if logger is None:
        logging.getLogger(__name__).info(msg)
    elif hasattr(logger, "log_trend_stats"):
        logger.info(msg, extra={"join_stats": stats})
    else:
        logger.info(msg)
