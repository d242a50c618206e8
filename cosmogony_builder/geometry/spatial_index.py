"""
Bounding-box spatial index over assembled zones.

The index is built once from the complete set of zones and is read-only
afterwards, so worker threads can query it concurrently without locking.
"""

import logging
from typing import Iterable, List, Optional, Tuple

import numpy as np
import shapely
from shapely.strtree import STRtree

from ..models import BBox, Zone


class SpatialIndex:
    """
    STR-packed R-tree over zone bounding boxes.

    Queries return the ids of every zone whose bbox intersects the query
    window (inclusive of touching edges), sorted ascending.
    """

    def __init__(self, entries: Iterable[Tuple[int, BBox]], logger: Optional[logging.Logger] = None):
        """
        Build the index.

        Args:
            entries: (zone id, bbox) pairs
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)

        entries = sorted(entries)
        self._ids = np.array([zone_id for zone_id, _ in entries], dtype=np.int64)
        self._boxes = np.array([shapely.box(*bbox) for _, bbox in entries], dtype=object)
        self._tree = STRtree(self._boxes) if len(self._boxes) else None

        self.logger.debug(f"Spatial index built over {len(self._ids):,} zones")

    @classmethod
    def from_zones(cls, zones: Iterable[Zone], logger: Optional[logging.Logger] = None) -> 'SpatialIndex':
        """Build an index from assembled zones."""
        return cls(((zone.zone_id, zone.bbox) for zone in zones), logger=logger)

    def __len__(self) -> int:
        return len(self._ids)

    def query(self, bbox: BBox) -> List[int]:
        """
        Find zones whose bounding box intersects a window.

        Args:
            bbox: (minx, miny, maxx, maxy) query window

        Returns:
            Sorted list of zone ids
        """
        if self._tree is None:
            return []
        return self._lookup(self._tree.query(shapely.box(*bbox)))

    def query_point(self, x: float, y: float) -> List[int]:
        """
        Find zones whose bounding box covers a point.

        Args:
            x: Point x coordinate
            y: Point y coordinate

        Returns:
            Sorted list of zone ids
        """
        if self._tree is None:
            return []
        return self._lookup(self._tree.query(shapely.Point(x, y)))

    def intersecting_pairs(self) -> List[Tuple[int, int]]:
        """
        Find every pair of indexed zones whose bounding boxes intersect.

        The whole set is queried against the tree in one bulk call.

        Returns:
            Sorted (smaller id, larger id) pairs
        """
        if self._tree is None:
            return []

        inputs, hits = self._tree.query(self._boxes, predicate="intersects")
        # Entries are sorted by id, so position order is id order
        keep = inputs < hits
        return sorted(zip((int(zone_id) for zone_id in self._ids[inputs[keep]]),
                          (int(zone_id) for zone_id in self._ids[hits[keep]])))

    def _lookup(self, positions: np.ndarray) -> List[int]:
        if len(positions) == 0:
            return []
        return sorted(int(zone_id) for zone_id in self._ids[np.asarray(positions, dtype=np.intp)])
