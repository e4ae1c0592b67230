"""In-memory result cache for the trend engine (bounding boxes and last results)."""

import logging
from typing import Callable, Dict, Mapping, Optional

from safety_trends.geometry import BoundingBox
from safety_trends.schemas import TrendRecord

logger = logging.getLogger(__name__)


class ResultCache:
    """
    Session-scoped cache owned by an engine instance.
    
    Bounding boxes are keyed by neighborhood identifier and never expire;
    callers invalidate entries when the boundary or point data changes.
    Writes are compute-if-absent, so racing writers for the same key store
    equal values.
    """
    
    def __init__(self):
        self._bounds: Dict[str, BoundingBox] = {}
        self._trends: Optional[Dict[str, TrendRecord]] = None
    
    def __len__(self) -> int:
        return len(self._bounds)
    
    def bounds_for(self, neighborhood_id: str) -> Optional[BoundingBox]:
        return self._bounds.get(neighborhood_id)
    
    def get_or_compute_bounds(
        self,
        neighborhood_id: str,
        compute: Callable[[], Optional[BoundingBox]],
    ) -> Optional[BoundingBox]:
        """
        Return the cached box, computing and storing it when absent.
        
        A None result (degenerate boundary) is returned but not cached.
        """
        cached = self._bounds.get(neighborhood_id)
        if cached is not None:
            return cached
        
        bbox = compute()
        if bbox is None:
            return None
        return self._bounds.setdefault(neighborhood_id, bbox)
    
    @property
    def last_computed_trends(self) -> Optional[Dict[str, TrendRecord]]:
        return self._trends
    
    def store_trends(self, trends: Mapping[str, TrendRecord]) -> None:
        self._trends = dict(trends)
    
    def invalidate(self, neighborhood_id: str) -> None:
        """Drop the cached box and last trend record for one neighborhood."""
        self._bounds.pop(neighborhood_id, None)
        if self._trends is not None:
            self._trends.pop(neighborhood_id, None)
    
    def clear(self) -> None:
        self._bounds.clear()
        self._trends = None
        logger.debug("Result cache cleared")
