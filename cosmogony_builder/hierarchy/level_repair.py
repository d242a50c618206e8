"""
Level consistency repair for the zone hierarchy.

Walks the forest top-down and moves every child whose admin level is not
strictly finer than its parent's under the nearest ancestor that is
coarser, or to the root set when there is none.
"""

from typing import List, Optional

from ..exceptions import create_cycle_error
from ..models import Zone
from .context import BuildContext


class LevelRepair:
    """Enforces ``parent.admin_level < child.admin_level`` on every link."""

    def __init__(self, context: BuildContext):
        """
        Initialize the level repair pass.

        Args:
            context: Build context holding the registry and error handler
        """
        self.context = context
        self.registry = context.registry
        self.logger = context.logger

    def nearest_coarser_ancestor(self, start: Optional[Zone], level: int) -> Optional[int]:
        """
        Walk up from ``start`` to the first zone coarser than ``level``.

        Args:
            start: Zone the walk starts from (inclusive)
            level: Admin level of the zone being re-parented

        Returns:
            Id of the ancestor, or None if no coarser ancestor exists

        Raises:
            CycleDetectedError: If the walk exceeds the number of zones
        """
        chain: List[int] = []
        current = start
        while current is not None:
            if current.admin_level < level:
                return current.zone_id
            chain.append(current.zone_id)
            if len(chain) > len(self.registry):
                raise create_cycle_error(
                    chain, [self.registry.get(zone_id).geometry_summary() for zone_id in chain[:10]]
                )
            current = self.registry.get(current.parent_id) if current.parent_id is not None else None
        return None

    def repair(self) -> int:
        """
        Repair every level inversion in the hierarchy.

        Returns:
            Number of zones re-parented
        """
        repairs = 0
        stack = [zone.zone_id for zone in reversed(self.registry.roots())]

        while stack:
            zone = self.registry.get(stack.pop())
            to_visit = []

            for child_id in sorted(zone.child_ids):
                child = self.registry.get(child_id)
                if child.admin_level > zone.admin_level:
                    to_visit.append(child_id)
                    continue

                new_parent_id = self.nearest_coarser_ancestor(zone, child.admin_level)
                self.registry.reparent(child_id, new_parent_id)
                repairs += 1
                # Moved zones are still visited so their own children get checked
                to_visit.append(child_id)

                self.context.error_handler.record_warning(
                    'level_repair',
                    child_id,
                    f"Zone {child_id} ({child.display_name()}, level {child.admin_level}) was under "
                    f"zone {zone.zone_id} (level {zone.admin_level}); "
                    + (f"moved under zone {new_parent_id}" if new_parent_id is not None
                       else "promoted to root"),
                    related_ids=[zone.zone_id] + ([new_parent_id] if new_parent_id is not None else []),
                    severity='medium'
                )

            stack.extend(reversed(to_visit))

        if repairs:
            self.logger.info(f"Level repair moved {repairs:,} zone(s)")
            self.registry.sort_children()
        return repairs
