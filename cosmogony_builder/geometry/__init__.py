"""
Geometry module for the cosmogony builder.

This module provides ring assembly for boundary relations and the spatial
index used to find candidate parents.
"""

from cosmogony_builder.geometry.assembler import (
    GeometryAssembler,
    group_fragments_by_relation,
    representative_point
)
from cosmogony_builder.geometry.spatial_index import SpatialIndex

__all__ = [
    'GeometryAssembler',
    'group_fragments_by_relation',
    'representative_point',
    'SpatialIndex'
]
