"""
Geometry assembly for boundary relations.

This module provides the GeometryAssembler class, which joins the oriented
fragments of a relation into closed rings, classifies the rings as outers or
holes by nesting, normalizes winding and repairs minor invalidity, producing
the validated multipolygon of a zone.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from shapely.errors import GEOSException
from shapely.geometry import GeometryCollection, LinearRing, MultiPolygon, Polygon
from shapely.geometry.polygon import orient
from shapely.ops import unary_union
from shapely.validation import explain_validity, make_valid

from ..config import BuilderConfig
from ..exceptions import InvalidGeometryError, create_unclosed_ring_error
from ..models import BoundaryFragment, BoundaryRelation, Coordinate, Zone
from ..utils.data_utils import snap_coordinates
from ..utils.error_handler import ErrorHandler


def group_fragments_by_relation(fragments: Iterable[BoundaryFragment]) -> Dict[int, List[BoundaryFragment]]:
    """
    Group fragments by their source relation, preserving input order.

    Args:
        fragments: Fragments from any number of relations

    Returns:
        Dictionary mapping relation id to its fragments
    """
    groups: Dict[int, List[BoundaryFragment]] = defaultdict(list)
    for fragment in fragments:
        groups[fragment.relation_id].append(fragment)
    return dict(groups)


def representative_point(geometry: MultiPolygon) -> Coordinate:
    """
    Get a point guaranteed to lie inside the geometry.

    The centroid is used when it falls inside the geometry; otherwise (the
    centroid lies in a hole or between disjoint parts) GEOS' interior point
    is used instead.

    Args:
        geometry: Non-empty polygonal geometry

    Returns:
        (x, y) tuple
    """
    centroid = geometry.centroid
    if not centroid.is_empty and geometry.contains(centroid):
        return (centroid.x, centroid.y)

    point = geometry.representative_point()
    return (point.x, point.y)


def polygonal_parts(geometry) -> Optional[MultiPolygon]:
    """
    Keep only the polygonal parts of a geometry.

    Args:
        geometry: Any shapely geometry (typically the output of make_valid)

    Returns:
        MultiPolygon of the polygonal parts, or None if there are none
    """
    if geometry is None or geometry.is_empty:
        return None
    if isinstance(geometry, Polygon):
        return MultiPolygon([geometry])
    if isinstance(geometry, MultiPolygon):
        return geometry
    if isinstance(geometry, GeometryCollection):
        parts = []
        for part in geometry.geoms:
            extracted = polygonal_parts(part)
            if extracted is not None:
                parts.extend(extracted.geoms)
        if not parts:
            return None
        merged = unary_union(parts)
        return polygonal_parts(merged) if not isinstance(merged, GeometryCollection) else None
    return None


def _normalized(geometry: MultiPolygon) -> MultiPolygon:
    """Orient every polygon (outer CCW, holes CW) and order polygons by area."""
    polygons = [orient(polygon, sign=1.0) for polygon in geometry.geoms if not polygon.is_empty]
    polygons.sort(key=lambda polygon: (-polygon.area, polygon.bounds))
    return MultiPolygon(polygons)


def ring_area(polygon: Polygon) -> float:
    """
    Area enclosed by a single-ring polygon.

    The lobes of a self-intersecting ring are wound in opposite directions
    and cancel out in its signed area, so such a ring is measured on its
    repaired form instead.
    """
    if polygon.exterior.is_simple:
        return polygon.area
    return make_valid(polygon).area


def buffer_repair(geometry):
    """Repair by a zero-width buffer, the fallback when make_valid fails."""
    return geometry.buffer(0)


def repair_area_loss(area_before: float, area_after: float) -> float:
    """
    Fraction of the original area a repair removed (0 when it kept or added area).

    Args:
        area_before: Area of the invalid geometry
        area_after: Area of the repaired geometry

    Returns:
        Loss ratio in [0, 1]
    """
    if area_before <= 0 or area_after >= area_before:
        return 0.0
    return (area_before - area_after) / area_before


class GeometryAssembler:
    """
    Assembles the fragments of a boundary relation into a valid multipolygon.

    Failures are raised as GeometryError subclasses; minor problems (a
    degenerate ring, a repaired self-intersection) are recorded as warnings
    through the error handler and assembly continues.
    """

    def __init__(self, config: Optional[BuilderConfig] = None,
                 error_handler: Optional[ErrorHandler] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the GeometryAssembler.

        Args:
            config: Build configuration (precision, minimum ring area)
            error_handler: Error handler collecting warnings
            logger: Optional logger instance for logging operations
        """
        self.config = config or BuilderConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.error_handler = error_handler or ErrorHandler(self.logger)

    def build_zone(self, relation: BoundaryRelation) -> Zone:
        """
        Assemble a relation into a registry zone.

        Args:
            relation: Administrative boundary relation

        Returns:
            Zone with validated geometry, bbox, area and representative point

        Raises:
            GeometryError: If the relation's geometry cannot be assembled
        """
        geometry = self.assemble(relation.fragments, relation_id=relation.relation_id)

        return Zone(
            zone_id=relation.relation_id,
            admin_level=relation.admin_level,
            name=relation.name,
            attributes=dict(relation.attributes),
            geometry=geometry,
            bbox=tuple(geometry.bounds),
            area=geometry.area,
            representative_point=representative_point(geometry),
        )

    def assemble(self, fragments: List[BoundaryFragment],
                 relation_id: Optional[int] = None) -> MultiPolygon:
        """
        Assemble the fragments of one relation into a valid multipolygon.

        Args:
            fragments: Fragments of a single relation
            relation_id: Id of the relation (taken from the fragments if omitted)

        Returns:
            Valid, non-empty, normalized MultiPolygon

        Raises:
            UnclosedRingError: If a chain of fragments cannot be closed
            InvalidGeometryError: If no valid polygonal geometry can be produced
        """
        groups = group_fragments_by_relation(fragments)
        if len(groups) > 1:
            raise ValueError(
                f"assemble() expects fragments of a single relation, got {sorted(groups)}"
            )
        if relation_id is None and groups:
            relation_id = next(iter(groups))

        rings = self.join_rings(fragments, relation_id)
        polygons = self._ring_polygons(rings, relation_id)
        if not polygons:
            raise InvalidGeometryError(
                f"Relation {relation_id} has no non-degenerate ring",
                zone_id=relation_id,
                reason='empty'
            )

        geometry = self.classify_rings(polygons)
        return self._validate(geometry, relation_id)

    def join_rings(self, fragments: List[BoundaryFragment],
                   relation_id: Optional[int]) -> List[List[Coordinate]]:
        """
        Join fragments sharing endpoint coordinates into closed rings.

        Fragments may be traversed in either direction. When a chain runs
        back into one of its own vertices, the loop is cut off as a separate
        ring so that rings touching at a node stay simple.

        Args:
            fragments: Fragments of one relation
            relation_id: Id of the relation, for error reporting

        Returns:
            List of closed coordinate rings (first coordinate == last)

        Raises:
            UnclosedRingError: If a chain cannot be closed
        """
        precision = self.config.coordinate_precision
        rings: List[List[Coordinate]] = []
        open_fragments: Dict[int, List[Coordinate]] = {}

        for index, fragment in enumerate(fragments):
            coords = snap_coordinates(fragment.coords, precision)
            if len(coords) < 2:
                self.logger.debug(f"Relation {relation_id}: skipping fragment {index} with < 2 coordinates")
                continue
            if coords[0] == coords[-1]:
                rings.append(coords)
            else:
                open_fragments[index] = coords

        endpoints: Dict[Coordinate, List[int]] = defaultdict(list)
        for index, coords in open_fragments.items():
            endpoints[coords[0]].append(index)
            endpoints[coords[-1]].append(index)

        used = set()
        for index in sorted(open_fragments):
            if index in used:
                continue
            used.add(index)
            rings.extend(self._close_chain(
                open_fragments[index], open_fragments, endpoints, used, relation_id, len(fragments)
            ))

        return rings

    @staticmethod
    def _close_chain(start: List[Coordinate], open_fragments: Dict[int, List[Coordinate]],
                     endpoints: Dict[Coordinate, List[int]], used: set,
                     relation_id: Optional[int], fragment_count: int) -> List[List[Coordinate]]:
        """Extend a chain from its tail until it returns to its first coordinate."""
        rings = []
        chain = list(start)
        positions: Dict[Coordinate, int] = {}
        for position, coord in enumerate(chain):
            positions.setdefault(coord, position)

        while chain[-1] != chain[0]:
            tail = chain[-1]
            next_index = next((i for i in endpoints.get(tail, ()) if i not in used), None)
            if next_index is None:
                raise create_unclosed_ring_error(relation_id, chain, fragment_count)
            used.add(next_index)

            segment = open_fragments[next_index]
            if segment[0] != tail:
                segment = segment[::-1]
            for coord in segment[1:]:
                chain.append(coord)
                positions.setdefault(coord, len(chain) - 1)

            # Chain ran into itself: split the loop off as its own ring
            loop_start = positions[chain[-1]]
            if 0 < loop_start < len(chain) - 1:
                rings.append(chain[loop_start:])
                for coord in chain[loop_start + 1:]:
                    if positions.get(coord, -1) > loop_start:
                        del positions[coord]
                del chain[loop_start + 1:]

        rings.append(chain)
        return rings

    def _ring_polygons(self, rings: List[List[Coordinate]],
                       relation_id: Optional[int]) -> List[Polygon]:
        """Turn rings into polygons, dropping degenerate ones with a warning."""
        polygons = []
        reversed_count = 0

        for ring_coords in rings:
            if len(set(ring_coords)) < 3 or len(ring_coords) < 4:
                self._degenerate_ring(relation_id, ring_coords, 'fewer than three distinct vertices')
                continue

            ring = LinearRing(ring_coords)
            polygon = Polygon(ring)
            area = ring_area(polygon)
            if area <= self.config.min_ring_area:
                self._degenerate_ring(relation_id, ring_coords, f'area {area:g}')
                continue

            # Negative signed area means clockwise; outers are normalized later
            if not ring.is_ccw:
                reversed_count += 1
            polygons.append(polygon)

        if reversed_count:
            self.logger.debug(f"Relation {relation_id}: {reversed_count} clockwise ring(s) to normalize")
        return polygons

    def _degenerate_ring(self, relation_id: Optional[int], ring_coords: List[Coordinate],
                         detail: str):
        self.error_handler.record_warning(
            'degenerate_ring',
            relation_id,
            f"Relation {relation_id}: dropped degenerate ring ({detail})",
            severity='low',
            context={'vertex_count': len(ring_coords)}
        )

    @staticmethod
    def classify_rings(polygons: List[Polygon]) -> MultiPolygon:
        """
        Classify rings as outers or holes by nesting and build a multipolygon.

        Rings are visited from the largest to the smallest. A ring enclosed by
        an odd number of larger rings is a hole of the innermost enclosing
        ring; otherwise it is an outer (possibly an island inside a hole).

        Args:
            polygons: One polygon per ring

        Returns:
            MultiPolygon (not yet validated)
        """
        ordered = sorted(polygons, key=lambda polygon: -ring_area(polygon))
        depths: List[int] = []
        holes: Dict[int, List[LinearRing]] = defaultdict(list)

        for index, polygon in enumerate(ordered):
            if index == 0:
                depths.append(0)
                continue
            probe = polygon.representative_point()
            enclosing = [j for j in range(index) if ordered[j].contains(probe)]
            depth = len(enclosing)
            depths.append(depth)
            if depth % 2 == 1:
                # Smallest enclosing ring comes last in area order
                holes[enclosing[-1]].append(polygon.exterior)

        shells = []
        for index, polygon in enumerate(ordered):
            if depths[index] % 2 == 0:
                shells.append(Polygon(polygon.exterior, holes.get(index, [])))

        return MultiPolygon(shells)

    def _validate(self, geometry: MultiPolygon, relation_id: Optional[int]) -> MultiPolygon:
        """
        Return a valid normalized geometry, repairing it when necessary.

        A repair is accepted only if it keeps enough of the original area;
        the first repair within config.max_repair_area_loss wins.

        Raises:
            InvalidGeometryError: If no repair yields an acceptable geometry
        """
        if geometry.is_valid:
            return _normalized(geometry)

        reason = explain_validity(geometry)
        area_before = geometry.area
        candidates = []
        for repair in (make_valid, buffer_repair):
            try:
                candidates.append(repair(geometry))
            except GEOSException as e:
                self.logger.debug(f"Relation {relation_id}: repair attempt failed: {e}")

        least_loss = None
        for candidate in candidates:
            repaired = polygonal_parts(candidate)
            if repaired is None or repaired.is_empty or not repaired.is_valid:
                continue

            loss = repair_area_loss(area_before, repaired.area)
            if loss > self.config.max_repair_area_loss:
                self.logger.debug(f"Relation {relation_id}: repair rejected, it loses {loss:.1%} of the area")
                least_loss = loss if least_loss is None else min(least_loss, loss)
                continue

            self.error_handler.record_warning(
                'geometry_repaired',
                relation_id,
                f"Relation {relation_id}: repaired invalid geometry ({reason})",
                severity='low',
                context={'reason': reason,
                         'area_before': area_before,
                         'area_after': repaired.area,
                         'area_loss': loss}
            )
            return _normalized(repaired)

        if least_loss is not None:
            reason = f"{reason}; repair loses {least_loss:.1%} of the area"
        raise InvalidGeometryError(
            f"Relation {relation_id}: geometry is invalid and cannot be repaired ({reason})",
            zone_id=relation_id,
            reason=reason
        )
