"""
Zone registry for the cosmogony builder.

Zones live in an arena keyed by their stable source id. Parent and child
links are plain ids, so every hierarchy mutation is a change to two id
slots and no zone ever holds a reference to another zone object.
"""

import logging
import threading
from typing import Dict, Iterable, Iterator, List, Optional

import shapely

from ..exceptions import InconsistentIndexError
from ..models import Zone


class ZoneRegistry:
    """
    Arena of assembled zones keyed by id.

    Concurrent writers are only expected during the containment pass, where
    each worker sets the parent slot of its own zone and appends to the
    chosen parent's child list under that parent's lock. Every other
    mutation happens between passes, from a single thread.
    """

    def __init__(self, zones: Iterable[Zone] = (), logger: Optional[logging.Logger] = None):
        """
        Initialize the registry.

        Args:
            zones: Initial zones
            logger: Optional logger instance
        """
        self.logger = logger or logging.getLogger(__name__)
        self._zones: Dict[int, Zone] = {}
        self._locks: Dict[int, threading.Lock] = {}

        for zone in zones:
            self.add(zone)

    def add(self, zone: Zone):
        """
        Add a zone to the registry.

        Raises:
            ValueError: If a zone with the same id is already registered
        """
        if zone.zone_id in self._zones:
            raise ValueError(f"Duplicate zone id: {zone.zone_id}")
        self._zones[zone.zone_id] = zone
        self._locks[zone.zone_id] = threading.Lock()

    def __contains__(self, zone_id: int) -> bool:
        return zone_id in self._zones

    def __len__(self) -> int:
        return len(self._zones)

    def __iter__(self) -> Iterator[Zone]:
        for zone_id in self.ids():
            yield self._zones[zone_id]

    def ids(self) -> List[int]:
        """Get all zone ids in ascending order."""
        return sorted(self._zones)

    def get(self, zone_id: int) -> Zone:
        """Get a zone by id (KeyError if unknown)."""
        return self._zones[zone_id]

    def require(self, zone_ids: Iterable[int]) -> List[Zone]:
        """
        Get the zones named by a spatial index query.

        Args:
            zone_ids: Ids returned by the index

        Returns:
            Zones in the given order

        Raises:
            InconsistentIndexError: If an id is not in the registry
        """
        zone_ids = list(zone_ids)
        unknown = [zone_id for zone_id in zone_ids if zone_id not in self._zones]
        if unknown:
            raise InconsistentIndexError(
                f"Spatial index returned zone ids unknown to the registry: {unknown}",
                zone_ids=unknown
            )
        return [self._zones[zone_id] for zone_id in zone_ids]

    def roots(self) -> List[Zone]:
        """Get all zones without a parent, ordered by id."""
        return [zone for zone in self if zone.is_root()]

    def children_of(self, zone_id: int) -> List[Zone]:
        """Get the children of a zone, ordered by id."""
        return [self._zones[child_id] for child_id in sorted(self._zones[zone_id].child_ids)]

    def append_child(self, parent_id: int, child_id: int):
        """
        Append a child id to a parent's child list under the parent's lock.

        Args:
            parent_id: Id of the parent zone
            child_id: Id of the child zone
        """
        with self._locks[parent_id]:
            self._zones[parent_id].child_ids.append(child_id)

    def detach_child(self, parent_id: int, child_id: int):
        """Remove a child id from a parent's child list."""
        with self._locks[parent_id]:
            child_ids = self._zones[parent_id].child_ids
            if child_id in child_ids:
                child_ids.remove(child_id)

    def reparent(self, child_id: int, new_parent_id: Optional[int]):
        """
        Move a zone under a new parent, or make it a root.

        Args:
            child_id: Id of the zone to move
            new_parent_id: Id of the new parent, or None to promote to root
        """
        child = self._zones[child_id]
        if child.parent_id == new_parent_id:
            return

        if child.parent_id is not None and child.parent_id in self._zones:
            self.detach_child(child.parent_id, child_id)

        child.parent_id = new_parent_id
        if new_parent_id is not None:
            self.append_child(new_parent_id, child_id)

    def discard(self, zone_id: int) -> List[int]:
        """
        Remove a zone, re-linking its children to its own parent.

        Args:
            zone_id: Id of the zone to remove

        Returns:
            Ids of the children that were re-linked
        """
        zone = self._zones[zone_id]
        moved = sorted(zone.child_ids)

        for child_id in moved:
            child = self._zones[child_id]
            child.parent_id = None
            self.reparent(child_id, zone.parent_id)
        zone.child_ids.clear()

        if zone.parent_id is not None and zone.parent_id in self._zones:
            self.detach_child(zone.parent_id, zone_id)

        del self._zones[zone_id]
        del self._locks[zone_id]
        self.logger.debug(f"Zone {zone_id} removed, {len(moved)} child(ren) re-linked to {zone.parent_id}")
        return moved

    def sort_children(self):
        """Order every child list by id; appends from parallel workers arrive unordered."""
        for zone in self._zones.values():
            zone.child_ids.sort()

    def prepare_geometries(self):
        """Prepare all geometries for repeated containment predicates."""
        for zone in self._zones.values():
            shapely.prepare(zone.geometry)

    def level_counts(self) -> Dict[int, int]:
        """Count zones per admin level."""
        counts: Dict[int, int] = {}
        for zone in self._zones.values():
            counts[zone.admin_level] = counts.get(zone.admin_level, 0) + 1
        return dict(sorted(counts.items()))
