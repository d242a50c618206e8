"""
Duplicate and overlap resolution between sibling zones.

Siblings are zones sharing both parent and admin level. Near-identical
siblings are collapsed into the one carrying the richest metadata;
partially overlapping siblings are only flagged for review.
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from rapidfuzz import fuzz

from ..geometry.spatial_index import SpatialIndex
from ..models import Zone
from ..utils.data_utils import normalize_name
from .context import BuildContext


ZonePair = Tuple[int, int]


@dataclass
class OverlapMeasure:
    """Areal comparison of two sibling zones."""

    intersection_area: float
    union_area: float
    smaller_area: float

    @property
    def iou(self) -> float:
        """Intersection over union."""
        return self.intersection_area / self.union_area if self.union_area > 0 else 0.0

    @property
    def overlap_ratio(self) -> float:
        """Intersection as a fraction of the smaller zone."""
        return self.intersection_area / self.smaller_area if self.smaller_area > 0 else 0.0


class _UnionFind:
    """Disjoint sets over zone ids; the smallest id is kept as the set label."""

    def __init__(self):
        self.parent: Dict[int, int] = {}

    def find(self, item: int) -> int:
        self.parent.setdefault(item, item)
        root = item
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[item] != root:
            self.parent[item], item = root, self.parent[item]
        return root

    def union(self, a: int, b: int):
        root_a, root_b = self.find(a), self.find(b)
        if root_a != root_b:
            low, high = sorted((root_a, root_b))
            self.parent[high] = low

    def groups(self) -> List[List[int]]:
        members: Dict[int, List[int]] = defaultdict(list)
        for item in sorted(self.parent):
            members[self.find(item)].append(item)
        return [group for _, group in sorted(members.items()) if len(group) > 1]


def name_similarity(name_a: str, name_b: str) -> float:
    """
    Fuzzy similarity of two zone names (0-100).

    Args:
        name_a: First name
        name_b: Second name

    Returns:
        Token-sort ratio of the normalized names; 0 if either name is empty
    """
    left, right = normalize_name(name_a), normalize_name(name_b)
    if not left or not right:
        return 0.0
    return float(fuzz.token_sort_ratio(left, right))


def survivor_key(zone: Zone) -> Tuple[int, int, int]:
    """Ordering of duplicates: named, then more attributes, then smaller id wins."""
    has_name, populated = zone.metadata_richness()
    return (has_name, populated, -zone.zone_id)


class DuplicateResolver:
    """
    Collapses duplicate siblings and flags partial overlaps.

    Pairwise comparisons only read geometry and run on the worker pool; all
    hierarchy mutations happen afterwards on the calling thread.
    """

    def __init__(self, context: BuildContext):
        """
        Initialize the resolver.

        Args:
            context: Build context holding registry and configuration
        """
        self.context = context
        self.registry = context.registry
        self.config = context.config
        self.logger = context.logger
        self._compared: Set[ZonePair] = set()

    def sibling_groups(self) -> List[List[int]]:
        """
        Group zones by (parent, level), keeping groups of two or more.

        Roots are grouped together under a None parent.

        Returns:
            Lists of zone ids, each sorted, in deterministic order
        """
        groups: Dict[Tuple[Optional[int], int], List[int]] = defaultdict(list)
        for zone in self.registry:
            groups[(zone.parent_id, zone.admin_level)].append(zone.zone_id)

        ordered = sorted(groups.items(), key=lambda item: (item[0][0] is not None, item[0][0] or 0, item[0][1]))
        return [members for _, members in ordered if len(members) > 1]

    def candidate_pairs(self) -> List[ZonePair]:
        """Sibling pairs with intersecting bboxes not compared before."""
        pairs = []
        for members in self.sibling_groups():
            index = SpatialIndex.from_zones(self.registry.require(members), logger=self.logger)
            pairs.extend(pair for pair in index.intersecting_pairs() if pair not in self._compared)
        return pairs

    def measure(self, pair: ZonePair) -> OverlapMeasure:
        """
        Compare two sibling polygons.

        Args:
            pair: Ids of the two zones

        Returns:
            OverlapMeasure with intersection, union and smaller area
        """
        zone_a, zone_b = self.registry.get(pair[0]), self.registry.get(pair[1])
        intersection = zone_a.geometry.intersection(zone_b.geometry).area
        union = zone_a.area + zone_b.area - intersection
        return OverlapMeasure(
            intersection_area=intersection,
            union_area=union,
            smaller_area=min(zone_a.area, zone_b.area)
        )

    def resolve(self) -> Tuple[int, int]:
        """
        Collapse duplicates and flag overlaps until no sibling pair is left.

        Collapsing re-links children to the survivor, which can create new
        sibling pairs one level down, so the comparison repeats over the
        pairs not seen yet.

        Returns:
            Tuple of (zones collapsed, overlapping pairs flagged)
        """
        collapsed = 0
        flagged = 0

        while True:
            pairs = self.candidate_pairs()
            if not pairs:
                break
            self._compared.update(pairs)

            outcome = self.context.pool.run_pass("duplicates", pairs, self.measure)
            for pair in sorted(outcome.failures):
                self._record_failed_comparison(pair, outcome.failures[pair])

            clusters = _UnionFind()
            for pair in sorted(outcome.results):
                measure = outcome.results[pair]
                if measure.iou >= self.config.duplicate_iou_threshold:
                    clusters.union(*pair)
                elif measure.overlap_ratio > self.config.overlap_min_ratio:
                    self._flag_overlap(pair, measure)
                    flagged += 1

            groups = clusters.groups()
            if not groups:
                break
            for group in groups:
                collapsed += self._collapse(group)

        self.registry.sort_children()
        return collapsed, flagged

    def _collapse(self, group: List[int]) -> int:
        """Keep the richest zone of a duplicate group and drop the others."""
        zones = [self.registry.get(zone_id) for zone_id in group]
        survivor = max(zones, key=survivor_key)

        dropped = 0
        for zone in sorted(zones, key=lambda z: z.zone_id):
            if zone is survivor:
                continue
            for child_id in sorted(zone.child_ids):
                self.registry.reparent(child_id, survivor.zone_id)
            self.registry.discard(zone.zone_id)
            dropped += 1

            self.context.error_handler.record_warning(
                'duplicate_collapsed',
                zone.zone_id,
                f"Zone {zone.zone_id} ({zone.display_name()}) duplicates zone "
                f"{survivor.zone_id} ({survivor.display_name()}) and was merged into it",
                related_ids=[survivor.zone_id],
                severity='low'
            )

        self.logger.debug(f"Duplicate group {group} collapsed into zone {survivor.zone_id}")
        return dropped

    def _record_failed_comparison(self, pair: ZonePair, error: Exception):
        """Record on both zones that their overlap could not be measured."""
        for zone_id, other_id in (pair, pair[::-1]):
            self.context.error_handler.record_warning(
                'overlap_check_failed',
                zone_id,
                f"Zone {zone_id} could not be compared with sibling {other_id}: {error}",
                related_ids=[other_id],
                severity='medium',
                context={'error_type': type(error).__name__}
            )

    def _flag_overlap(self, pair: ZonePair, measure: OverlapMeasure):
        """Record a partial overlap on both zones of a pair."""
        zone_a, zone_b = self.registry.get(pair[0]), self.registry.get(pair[1])
        similarity = name_similarity(zone_a.name, zone_b.name)
        context = {
            'overlap_ratio': round(measure.overlap_ratio, 6),
            'iou': round(measure.iou, 6),
            'name_similarity': similarity,
        }

        for zone, other in ((zone_a, zone_b), (zone_b, zone_a)):
            self.context.error_handler.record_warning(
                'partial_overlap',
                zone.zone_id,
                f"Zone {zone.zone_id} ({zone.display_name()}) overlaps sibling {other.zone_id} "
                f"({other.display_name()}) by {measure.overlap_ratio:.1%} "
                f"(name similarity {similarity:.0f})",
                related_ids=[other.zone_id],
                severity='medium',
                context=context
            )
