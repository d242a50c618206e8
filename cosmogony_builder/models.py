"""
Data models for the cosmogony builder.

This module defines the core data structures used throughout the build:
the upstream boundary relations and their fragments, the zones held in the
registry, the records handed to the serializer and the data-quality warnings
collected along the way.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Tuple, Dict, Any

from shapely.geometry import MultiPolygon, mapping

from .utils.data_utils import (
    safe_int_conversion,
    safe_string_conversion,
    clean_attributes,
    count_populated_attributes,
    is_null_or_empty
)


BBox = Tuple[float, float, float, float]
Coordinate = Tuple[float, float]


@dataclass
class BoundaryFragment:
    """Oriented coordinate sequence belonging to one source relation."""

    relation_id: int
    coords: List[Coordinate]

    def __post_init__(self):
        """Normalize coordinates to tuples."""
        self.coords = [tuple(coord) for coord in self.coords]


@dataclass
class BoundaryRelation:
    """
    Represents an administrative boundary relation as extracted upstream.

    The admin level is already resolved by the tag-classification
    collaborator; a relation without one is not an administrative zone.
    """

    relation_id: int
    admin_level: Optional[int]
    name: str = ""
    attributes: Dict[str, str] = field(default_factory=dict)
    fragments: List[BoundaryFragment] = field(default_factory=list)

    def __post_init__(self):
        """Clean and convert fields after initialization."""
        relation_id = safe_int_conversion(self.relation_id)
        if relation_id is None:
            raise ValueError(f"Relation id must be an integer: {self.relation_id!r}")
        self.relation_id = relation_id
        self.admin_level = safe_int_conversion(self.admin_level)
        self.name = safe_string_conversion(self.name)
        self.attributes = clean_attributes(self.attributes)

    def is_admin(self) -> bool:
        """Check if the relation carries an administrative level."""
        return self.admin_level is not None


@dataclass
class DataQualityWarning:
    """A data-quality issue recorded for operator review."""

    kind: str
    zone_id: Optional[int]
    message: str
    related_ids: List[int] = field(default_factory=list)
    severity: str = 'medium'
    context: Dict[str, Any] = field(default_factory=dict)

    VALID_KINDS = (
        'unclosed_ring',
        'invalid_geometry',
        'degenerate_ring',
        'geometry_repaired',
        'missing_admin_level',
        'empty_geometry',
        'containment_failure',
        'ambiguous_containment',
        'duplicate_collapsed',
        'partial_overlap',
        'overlap_check_failed',
        'level_repair',
        'exclave_suspect',
    )
    VALID_SEVERITIES = ('low', 'medium', 'high', 'critical')

    def __post_init__(self):
        """Validate warning kind and severity."""
        if self.kind not in self.VALID_KINDS:
            raise ValueError(f"Invalid warning kind: {self.kind}. "
                             f"Must be one of {', '.join(self.VALID_KINDS)}")
        if self.severity not in self.VALID_SEVERITIES:
            raise ValueError(f"Invalid severity: {self.severity}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert warning to a flat dictionary for tabular output."""
        return {
            'kind': self.kind,
            'zone_id': self.zone_id,
            'related_ids': ';'.join(str(zone_id) for zone_id in self.related_ids),
            'severity': self.severity,
            'message': self.message,
        }


# Fields that never change once a zone has been assembled
_IMMUTABLE_ZONE_FIELDS = ('zone_id', 'admin_level', 'geometry', 'bbox', 'area', 'representative_point')


@dataclass(eq=False)
class Zone:
    """
    Represents an assembled administrative zone held in the registry.

    Parent and children are relational ids, never object references. Only
    the parentage fields and the recorded issues may change after assembly.
    """

    zone_id: int
    admin_level: int
    name: str
    attributes: Dict[str, str]
    geometry: MultiPolygon
    bbox: BBox
    area: float
    representative_point: Coordinate
    parent_id: Optional[int] = None
    child_ids: List[int] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    def __setattr__(self, key, value):
        if key in _IMMUTABLE_ZONE_FIELDS and key in self.__dict__:
            raise AttributeError(f"Zone.{key} is immutable after assembly")
        super().__setattr__(key, value)

    def is_root(self) -> bool:
        """Check if the zone currently has no parent."""
        return self.parent_id is None

    def has_name(self) -> bool:
        """Check if the zone carries a non-empty name."""
        return not is_null_or_empty(self.name)

    def metadata_richness(self) -> Tuple[int, int]:
        """
        Get a comparable score of how much metadata the zone carries.

        Returns:
            Tuple of (has name, number of populated attributes); larger is richer
        """
        return (1 if self.has_name() else 0, count_populated_attributes(self.attributes))

    def geometry_summary(self) -> Dict[str, Any]:
        """
        Get a compact description of the zone for diagnostics.

        Returns:
            Dictionary with id, level, polygon count, area and bounds
        """
        return {
            'zone_id': self.zone_id,
            'admin_level': self.admin_level,
            'name': self.name,
            'polygons': len(self.geometry.geoms),
            'area': self.area,
            'bbox': list(self.bbox),
            'parent_id': self.parent_id,
        }

    def display_name(self) -> str:
        """Get the name for log messages, falling back to the id."""
        return self.name if self.has_name() else f"<unnamed {self.zone_id}>"


@dataclass
class ZoneRecord:
    """One element of the emitted hierarchy, in parent-before-child order."""

    zone_id: int
    parent_id: Optional[int]
    admin_level: int
    name: str
    attributes: Dict[str, str]
    geometry: MultiPolygon
    issues: List[str]
    label: str
    depth: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to a JSON-serializable dictionary (GeoJSON geometry)."""
        return {
            'id': self.zone_id,
            'parent': self.parent_id,
            'admin_level': self.admin_level,
            'name': self.name,
            'label': self.label,
            'depth': self.depth,
            'attributes': dict(self.attributes),
            'issues': list(self.issues),
            'geometry': mapping(self.geometry),
        }
