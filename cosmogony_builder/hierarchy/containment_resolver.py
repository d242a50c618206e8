"""
Containment resolution for the cosmogony builder.

This module finds, for every zone, the most specific coarser zone whose
polygon contains the zone's representative point, and links the two.
"""

from typing import Iterable, List, Optional, Tuple

import shapely

from ..exceptions import AmbiguousContainmentError
from ..models import Zone
from .context import BuildContext


def candidate_sort_key(zone: Zone) -> Tuple[float, int, int]:
    """
    Ordering of containing candidates, most specific first.

    Smallest area wins; equal areas prefer the finer level, then the
    smaller id, so the order is total.
    """
    return (zone.area, -zone.admin_level, zone.zone_id)


class ContainmentResolver:
    """
    Assigns each zone its parent by representative-point containment.

    ``resolve`` only reads immutable zone state and the frozen index;
    ``assign`` writes the zone's own parent slot and one append to the
    parent's child list, so zones can be processed concurrently.
    """

    def __init__(self, context: BuildContext):
        """
        Initialize the resolver.

        Args:
            context: Build context holding registry, index and configuration
        """
        self.context = context
        self.registry = context.registry
        self.logger = context.logger

    def candidates(self, zone: Zone) -> List[Zone]:
        """
        Get the zones that could be the parent of ``zone``.

        Candidates come from the spatial index, are strictly coarser than
        ``zone`` and exactly contain its representative point (holes are
        honored).

        Args:
            zone: Zone being resolved

        Returns:
            Candidate zones, most specific first

        Raises:
            InconsistentIndexError: If the index names an unregistered zone
        """
        x, y = zone.representative_point
        candidate_ids = [zone_id for zone_id in self.context.index.query_point(x, y)
                         if zone_id != zone.zone_id]

        containing = []
        for candidate in self.registry.require(candidate_ids):
            # Coarser levels only: an equal level can never be a parent
            if candidate.admin_level >= zone.admin_level:
                continue
            if shapely.contains_xy(candidate.geometry, x, y):
                containing.append(candidate)

        return sorted(containing, key=candidate_sort_key)

    def resolve(self, zone: Zone) -> Optional[int]:
        """
        Find the most specific zone containing ``zone``.

        Args:
            zone: Zone being resolved

        Returns:
            Id of the chosen parent, or None if the zone is a root

        Raises:
            AmbiguousContainmentError: If the two best candidates cannot be ordered
        """
        containing = self.candidates(zone)
        if not containing:
            return None

        if len(containing) > 1 and candidate_sort_key(containing[0]) == candidate_sort_key(containing[1]):
            raise AmbiguousContainmentError(
                f"Zone {zone.zone_id}: candidates {containing[0].zone_id} and "
                f"{containing[1].zone_id} are indistinguishable",
                zone_id=zone.zone_id,
                candidate_ids=[candidate.zone_id for candidate in containing[:2]]
            )

        return containing[0].zone_id

    def assign(self, zone_id: int) -> Optional[int]:
        """
        Resolve a zone's parent and record the link.

        Args:
            zone_id: Id of the zone to resolve

        Returns:
            Id of the assigned parent, or None for a root
        """
        zone = self.registry.get(zone_id)
        parent_id = self.resolve(zone)

        zone.parent_id = parent_id
        if parent_id is not None:
            self.registry.append_child(parent_id, zone_id)
            if self.context.config.verify_polygon_containment:
                self._check_exclave(zone, self.registry.get(parent_id))

        return parent_id

    def resolve_all(self, zone_ids: Optional[Iterable[int]] = None) -> int:
        """
        Resolve parents for many zones in one parallel pass.

        Zones whose resolution fails are removed from the registry with a
        warning; their already-attached children are resolved again against
        a rebuilt index, until no failure remains.

        Args:
            zone_ids: Ids to resolve (all registered zones by default)

        Returns:
            Number of zones removed because of containment failures
        """
        pending = sorted(zone_ids) if zone_ids is not None else self.registry.ids()
        removed = 0

        while pending:
            if self.context.index is None:
                self.context.refresh_index()

            outcome = self.context.pool.run_pass("containment", pending, self.assign)
            if not outcome.failures:
                break

            orphans = set()
            for zone_id in sorted(outcome.failures):
                self.context.error_handler.handle_zone_error(
                    outcome.failures[zone_id], zone_id, 'containment'
                )
                orphans.update(self.registry.discard(zone_id))
                orphans.discard(zone_id)
                removed += 1

            # Failed zones never got a parent, so their children are roots now
            self.context.index = None
            pending = sorted(zone_id for zone_id in orphans if zone_id in self.registry)

        self.registry.sort_children()
        return removed

    def _check_exclave(self, zone: Zone, parent: Zone):
        """Flag a child whose polygon lies mostly outside its assigned parent."""
        inside = zone.geometry.intersection(parent.geometry).area
        ratio = inside / zone.area if zone.area > 0 else 1.0
        if ratio < self.context.config.polygon_containment_ratio:
            self.context.error_handler.record_warning(
                'exclave_suspect',
                zone.zone_id,
                f"Zone {zone.zone_id} ({zone.display_name()}): only {ratio:.1%} of its area "
                f"lies inside parent {parent.zone_id} ({parent.display_name()})",
                related_ids=[parent.zone_id],
                severity='low',
                context={'inside_ratio': ratio}
            )
