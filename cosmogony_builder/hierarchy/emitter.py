"""
Deterministic emission of the finished hierarchy.
"""

import logging
from typing import Iterator, List, Optional, Tuple

from ..models import Zone, ZoneRecord
from .registry import ZoneRegistry


def emission_key(zone: Zone) -> Tuple[str, int]:
    """Order of siblings in the output: by name, then id."""
    return (zone.name, zone.zone_id)


def build_label(names: List[str]) -> str:
    """
    Join the names of a zone and its ancestors into a label.

    Empty names are skipped and a name repeated by the next ancestor (a city
    and its eponymous county) is kept once.

    Args:
        names: Names from the zone (first) up to its root (last)

    Returns:
        Comma-separated label
    """
    parts: List[str] = []
    for name in names:
        if name and (not parts or parts[-1] != name):
            parts.append(name)
    return ", ".join(parts)


class HierarchyEmitter:
    """
    Streams zones parent-before-child.

    Roots are visited in (name, id) order and each subtree depth-first with
    children in the same order, so identical hierarchies always emit the
    same sequence.
    """

    def __init__(self, registry: ZoneRegistry, logger: Optional[logging.Logger] = None):
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)

    def emit(self) -> Iterator[ZoneRecord]:
        """
        Yield one record per zone in pre-order.

        Yields:
            ZoneRecord with label and depth
        """
        # Stack entries: (zone id, depth, names of the ancestors nearest-first)
        stack: List[Tuple[int, int, List[str]]] = [
            (zone.zone_id, 0, []) for zone in sorted(self.registry.roots(), key=emission_key, reverse=True)
        ]

        while stack:
            zone_id, depth, ancestor_names = stack.pop()
            zone = self.registry.get(zone_id)
            names = [zone.name] + ancestor_names

            yield ZoneRecord(
                zone_id=zone.zone_id,
                parent_id=zone.parent_id,
                admin_level=zone.admin_level,
                name=zone.name,
                attributes=dict(zone.attributes),
                geometry=zone.geometry,
                issues=list(zone.issues),
                label=build_label(names),
                depth=depth
            )

            children = sorted(self.registry.children_of(zone_id), key=emission_key, reverse=True)
            stack.extend((child.zone_id, depth + 1, names) for child in children)
