"""
Uniform grid index over incident points.

Points are binned into square cells keyed by
(floor(lon / grid_size), floor(lat / grid_size)). A query walks every cell
overlapping a bounding box and keeps the points inside the box, giving a
small candidate set for the exact polygon test. Build one index per point
set (one for the recent period, one for the previous period) and discard it
after the computation.
"""

import logging
import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Tuple

import numpy as np

from safety_trends.geometry import BoundingBox
from safety_trends.qa import is_valid_coordinate
from safety_trends.schemas import PointRecord

logger = logging.getLogger(__name__)

DEFAULT_GRID_SIZE = 0.01  # degrees, roughly 1 km

CellKey = Tuple[int, int]


@dataclass
class GridIndex:
    """Points binned by grid cell; cell lists keep insertion order."""
    grid_size: float
    cells: Dict[CellKey, List[PointRecord]] = field(default_factory=dict)
    indexed: int = 0
    skipped: int = 0
    
    def __len__(self) -> int:
        return self.indexed
    
    def cell_key(self, lat: float, lon: float) -> CellKey:
        return math.floor(lon / self.grid_size), math.floor(lat / self.grid_size)
    
    def cell_range(self, bbox: BoundingBox) -> Iterator[CellKey]:
        """Yield every cell key overlapping the box, inclusive on both ends."""
        (start_x, start_y), (end_x, end_y) = self._cell_bounds(bbox)
        
        for x in range(start_x, end_x + 1):
            for y in range(start_y, end_y + 1):
                yield x, y
    
    def occupied_cells(self, bbox: BoundingBox) -> List[CellKey]:
        """Occupied cell keys overlapping the box, in the same x-major order as `cell_range`."""
        (start_x, start_y), (end_x, end_y) = self._cell_bounds(bbox)
        return sorted(
            key for key in self.cells
            if start_x <= key[0] <= end_x and start_y <= key[1] <= end_y
        )
    
    def _cell_bounds(self, bbox: BoundingBox) -> Tuple[CellKey, CellKey]:
        return (
            self.cell_key(bbox.min_lat, bbox.min_lon),
            self.cell_key(bbox.max_lat, bbox.max_lon),
        )
    
    def query(self, bbox: BoundingBox) -> List[PointRecord]:
        """
        Return candidate points for a bounding box.
        
        Cells overlapping the box are scanned in x-major order and points
        outside the box itself are dropped. The result is a superset of the
        points inside any polygon the box encloses.
        
        When the box spans more cells than the index holds, only occupied
        cells are visited.
        """
        (start_x, start_y), (end_x, end_y) = self._cell_bounds(bbox)
        n_range = (end_x - start_x + 1) * (end_y - start_y + 1)
        if n_range > len(self.cells):
            keys = self.occupied_cells(bbox)
        else:
            keys = self.cell_range(bbox)
        
        candidates: List[PointRecord] = []
        for key in keys:
            for point in self.cells.get(key, ()):
                if bbox.contains(point.lat, point.lon):
                    candidates.append(point)
        return candidates


def build_index(
    points: Iterable[PointRecord],
    grid_size: float = DEFAULT_GRID_SIZE,
) -> GridIndex:
    """
    Bin points into a grid index.
    
    Points without a valid coordinate are skipped and counted in
    `GridIndex.skipped`; they are not an error.
    
    Args:
        points: Point records, in the order they should appear within cells
        grid_size: Cell size in degrees (must be > 0)
    
    Returns:
        GridIndex
    """
    if grid_size <= 0:
        raise ValueError(f"grid_size must be positive, got {grid_size}")
    
    points = list(points)
    valid = [p for p in points if is_valid_coordinate(p.lat, p.lon)]
    
    index = GridIndex(grid_size=grid_size, skipped=len(points) - len(valid))
    if not valid:
        return index
    
    lats = np.fromiter((p.lat for p in valid), dtype=float, count=len(valid))
    lons = np.fromiter((p.lon for p in valid), dtype=float, count=len(valid))
    xs = np.floor(lons / grid_size).astype(np.int64)
    ys = np.floor(lats / grid_size).astype(np.int64)
    
    cells: Dict[CellKey, List[PointRecord]] = defaultdict(list)
    for point, x, y in zip(valid, xs.tolist(), ys.tolist()):
        cells[(x, y)].append(point)
    
    index.cells = dict(cells)
    index.indexed = len(valid)
    
    logger.debug(
        f"Built grid index: {index.indexed} points in {len(index.cells)} cells "
        f"(grid_size={grid_size}, skipped={index.skipped})"
    )
    return index
