"""
Structural validation of the finished hierarchy.

Any failure here is a logic fault in an earlier pass, never bad input, and
aborts the build with diagnostics for the zones involved.
"""

import logging
from typing import Dict, List, Optional

from ..exceptions import InvariantViolationError, create_cycle_error
from .registry import ZoneRegistry


class HierarchyValidator:
    """Checks acyclicity, level ordering and link consistency of the forest."""

    def __init__(self, registry: ZoneRegistry, logger: Optional[logging.Logger] = None):
        """
        Initialize the validator.

        Args:
            registry: Registry holding the hierarchy to check
            logger: Optional logger instance
        """
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)

    def validate(self):
        """
        Validate the whole hierarchy.

        Raises:
            InvariantViolationError: On a dangling id, asymmetric link or level inversion
            CycleDetectedError: If a parent chain loops
        """
        for zone in self.registry:
            self._check_links(zone.zone_id)

        for zone in self.registry:
            self.ancestor_chain(zone.zone_id)

        for zone in self.registry:
            self._check_level(zone.zone_id)

        self.logger.debug(f"Hierarchy of {len(self.registry):,} zones validated")

    def ancestor_chain(self, zone_id: int) -> List[int]:
        """
        Get the ids from a zone up to its root.

        The walk is bounded by the number of registered zones.

        Args:
            zone_id: Starting zone

        Returns:
            Ids from ``zone_id`` (first) to the root (last)

        Raises:
            CycleDetectedError: If the chain revisits a zone
        """
        chain = [zone_id]
        seen = {zone_id}
        max_depth = len(self.registry)
        current = self.registry.get(zone_id)

        while current.parent_id is not None:
            parent_id = current.parent_id
            if parent_id in seen or len(chain) > max_depth:
                cycle = chain[chain.index(parent_id):] + [parent_id] if parent_id in seen else chain
                raise create_cycle_error(cycle, self._diagnostics(cycle))
            chain.append(parent_id)
            seen.add(parent_id)
            current = self.registry.get(parent_id)

        return chain

    def _check_links(self, zone_id: int):
        zone = self.registry.get(zone_id)

        if zone.parent_id is not None:
            if zone.parent_id not in self.registry:
                self._violation(f"Zone {zone_id} references missing parent {zone.parent_id}",
                                [zone_id], 'parent_exists')
            parent = self.registry.get(zone.parent_id)
            if zone_id not in parent.child_ids:
                self._violation(f"Zone {zone_id} names parent {parent.zone_id} which does not list it",
                                [zone_id, parent.zone_id], 'link_symmetry')

        if len(set(zone.child_ids)) != len(zone.child_ids):
            self._violation(f"Zone {zone_id} lists a child more than once",
                            [zone_id], 'link_symmetry')

        for child_id in zone.child_ids:
            if child_id not in self.registry:
                self._violation(f"Zone {zone_id} references missing child {child_id}",
                                [zone_id], 'child_exists')
            if self.registry.get(child_id).parent_id != zone_id:
                self._violation(f"Zone {zone_id} lists child {child_id} whose parent differs",
                                [zone_id, child_id], 'link_symmetry')

    def _check_level(self, zone_id: int):
        zone = self.registry.get(zone_id)
        if zone.parent_id is None:
            return
        parent = self.registry.get(zone.parent_id)
        if parent.admin_level >= zone.admin_level:
            self._violation(
                f"Zone {zone_id} (level {zone.admin_level}) is under zone {parent.zone_id} "
                f"(level {parent.admin_level})",
                [parent.zone_id, zone_id],
                'level_order'
            )

    def _diagnostics(self, zone_ids: List[int]) -> List[Dict]:
        return [self.registry.get(zone_id).geometry_summary()
                for zone_id in zone_ids if zone_id in self.registry]

    def _violation(self, message: str, zone_ids: List[int], invariant: str):
        raise InvariantViolationError(
            message,
            zone_ids=zone_ids,
            invariant=invariant,
            diagnostics=self._diagnostics(zone_ids)
        )
