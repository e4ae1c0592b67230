"""
Point-in-polygon containment.

Even-odd ray casting over the edges of a (lat, lon) vertex ring, with the
ring closed implicitly from the last vertex back to the first. Points lying
on an edge count as inside. This is the only containment test the
aggregator uses.
"""

from typing import Sequence

from safety_trends.geometry import MIN_POLYGON_VERTICES, Vertex

DEFAULT_EDGE_TOLERANCE = 1e-5


def point_on_segment(
    px: float,
    py: float,
    x1: float,
    y1: float,
    x2: float,
    y2: float,
    tolerance: float = DEFAULT_EDGE_TOLERANCE,
) -> bool:
    """
    Check whether (px, py) lies on the segment (x1, y1)-(x2, y2).
    
    The point must fall inside the segment's bounding box padded by
    `tolerance` on both axes, and the cross product of the segment with the
    point offset must be within `tolerance` of zero.
    """
    if (
        px < min(x1, x2) - tolerance or px > max(x1, x2) + tolerance
        or py < min(y1, y2) - tolerance or py > max(y1, y2) + tolerance
    ):
        return False
    
    cross = (px - x1) * (y2 - y1) - (py - y1) * (x2 - x1)
    return abs(cross) < tolerance


def point_in_polygon(
    lat: float,
    lon: float,
    vertices: Sequence[Vertex],
    tolerance: float = DEFAULT_EDGE_TOLERANCE,
) -> bool:
    """
    Test whether a point falls inside (or on the edge of) a polygon.
    
    Args:
        lat: Point latitude
        lon: Point longitude
        vertices: Polygon ring as (lat, lon) pairs
        tolerance: Absolute tolerance for the on-edge check
    
    Returns:
        True if contained; always False for fewer than 3 vertices
    """
    n = len(vertices)
    if n < MIN_POLYGON_VERTICES:
        return False
    
    inside = False
    j = n - 1
    for i in range(n):
        yi, xi = vertices[i]
        yj, xj = vertices[j]
        
        if point_on_segment(lat, lon, yi, xi, yj, xj, tolerance):
            return True
        
        # Horizontal edges never straddle the ray, so the division is safe
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lon < x_cross:
                inside = not inside
        j = i
    
    return inside
