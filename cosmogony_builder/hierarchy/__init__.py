"""
Hierarchy module for the cosmogony builder.

This module provides the zone registry and the passes that turn a flat set
of assembled zones into a containment forest: parent resolution, duplicate
collapse, level repair, validation and deterministic emission.
"""

from cosmogony_builder.hierarchy.registry import ZoneRegistry
from cosmogony_builder.hierarchy.context import BuildContext
from cosmogony_builder.hierarchy.containment_resolver import ContainmentResolver
from cosmogony_builder.hierarchy.duplicate_resolver import DuplicateResolver
from cosmogony_builder.hierarchy.level_repair import LevelRepair
from cosmogony_builder.hierarchy.hierarchy_validator import HierarchyValidator
from cosmogony_builder.hierarchy.emitter import HierarchyEmitter

__all__ = [
    'ZoneRegistry',
    'BuildContext',
    'ContainmentResolver',
    'DuplicateResolver',
    'LevelRepair',
    'HierarchyValidator',
    'HierarchyEmitter'
]
