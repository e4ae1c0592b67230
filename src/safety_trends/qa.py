"""
Quality assurance checks for incident coordinates and boundary bounds.

Coordinates are WGS84 degrees. Points outside the valid lat/lon range, or
carrying NaN/inf, are never indexed.
"""

import math
from typing import Any, Optional

import numpy as np

from safety_trends.geometry import BoundingBox
from safety_trends.schemas import SafetyTrendsError


class BoundsError(SafetyTrendsError):
    """Raised when bounds validation fails."""
    pass


# =============================================================================
# Coordinate Validation
# =============================================================================

def is_valid_coordinate(lat: Any, lon: Any) -> bool:
    """
    Check that a (lat, lon) pair is a finite WGS84 position.
    
    Args:
        lat: Latitude in degrees
        lon: Longitude in degrees
    
    Returns:
        True if both are real numbers within [-90, 90] and [-180, 180]
    """
    if isinstance(lat, bool) or isinstance(lon, bool):
        return False
    try:
        lat_f = float(lat)
        lon_f = float(lon)
    except (TypeError, ValueError):
        return False
    
    if not (math.isfinite(lat_f) and math.isfinite(lon_f)):
        return False
    return -90.0 <= lat_f <= 90.0 and -180.0 <= lon_f <= 180.0


# =============================================================================
# Bounds Validation
# =============================================================================

def check_bounds_plausible(
    bbox: Optional[BoundingBox],
    context: str = "",
) -> bool:
    """
    Check that a bounding box is finite and not inverted.
    
    Args:
        bbox: Bounding box to check (None passes: degenerate boundaries
              have no box)
        context: Optional context for error message
    
    Returns:
        True if bounds are plausible
    
    Raises:
        BoundsError: If bounds are non-finite or min > max
    """
    if bbox is None:
        return True
    
    errors = []
    values = np.array([bbox.min_lat, bbox.max_lat, bbox.min_lon, bbox.max_lon], dtype=float)
    if not np.isfinite(values).all():
        errors.append(f"Non-finite bounds: {bbox.as_dict()}")
    if bbox.min_lat > bbox.max_lat:
        errors.append(f"Latitude inverted: {bbox.min_lat} > {bbox.max_lat}")
    if bbox.min_lon > bbox.max_lon:
        errors.append(f"Longitude inverted: {bbox.min_lon} > {bbox.max_lon}")
    
    if errors:
        msg = "Bounds check failed: " + "; ".join(errors)
        if context:
            msg = f"{msg} ({context})"
        raise BoundsError(msg)
    
    return True
