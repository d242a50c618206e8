"""
Tests for geometry assembly.
"""

import pytest
from shapely.geometry import MultiPolygon, Point, Polygon, box

from cosmogony_builder.config import BuilderConfig
from cosmogony_builder.exceptions import InvalidGeometryError, UnclosedRingError
from cosmogony_builder.geometry import assembler as assembler_module
from cosmogony_builder.geometry.assembler import (
    GeometryAssembler,
    group_fragments_by_relation,
    repair_area_loss,
    representative_point,
    ring_area
)
from cosmogony_builder.models import BoundaryFragment
from cosmogony_builder.utils.error_handler import ErrorHandler

from conftest import rectangle_coords


@pytest.fixture
def error_handler(logger):
    return ErrorHandler(logger)


@pytest.fixture
def assembler(config, error_handler, logger):
    return GeometryAssembler(config, error_handler, logger)


def test_single_closed_fragment(assembler):
    geometry = assembler.assemble([BoundaryFragment(1, rectangle_coords(0, 0, 10, 10))])

    assert isinstance(geometry, MultiPolygon)
    assert geometry.is_valid
    assert len(geometry.geoms) == 1
    assert geometry.area == pytest.approx(100.0)
    assert geometry.geoms[0].exterior.is_ccw


def test_fragments_joined_in_either_direction(assembler, make_relation):
    relation = make_relation(5, 8, 0, 0, 10, 10, split=True)

    zone = assembler.build_zone(relation)

    assert zone.zone_id == 5
    assert zone.area == pytest.approx(100.0)
    assert zone.bbox == (0.0, 0.0, 10.0, 10.0)


def test_clockwise_outer_is_normalized(assembler):
    clockwise = list(reversed(rectangle_coords(0, 0, 10, 10)))

    geometry = assembler.assemble([BoundaryFragment(1, clockwise)])

    assert geometry.geoms[0].exterior.is_ccw


def test_unclosed_ring_raises(assembler):
    fragments = [
        BoundaryFragment(9, [(0, 0), (10, 0), (10, 10)]),
        BoundaryFragment(9, [(10, 10), (0, 10)]),
    ]

    with pytest.raises(UnclosedRingError) as exc_info:
        assembler.assemble(fragments)

    assert exc_info.value.zone_id == 9
    assert exc_info.value.error_code == 'UNCLOSED_RING'


def test_nested_ring_becomes_hole(assembler):
    fragments = [
        BoundaryFragment(1, rectangle_coords(0, 0, 10, 10)),
        BoundaryFragment(1, rectangle_coords(2, 2, 2, 2)),
    ]

    geometry = assembler.assemble(fragments)

    assert len(geometry.geoms) == 1
    assert len(geometry.geoms[0].interiors) == 1
    assert geometry.area == pytest.approx(96.0)
    assert not geometry.contains(Point(3, 3))


def test_island_inside_hole_is_outer(assembler):
    fragments = [
        BoundaryFragment(1, rectangle_coords(0, 0, 10, 10)),
        BoundaryFragment(1, rectangle_coords(2, 2, 6, 6)),
        BoundaryFragment(1, rectangle_coords(4, 4, 2, 2)),
    ]

    geometry = assembler.assemble(fragments)

    assert len(geometry.geoms) == 2
    assert geometry.area == pytest.approx(100 - 36 + 4)
    assert geometry.contains(Point(5, 5))
    assert not geometry.contains(Point(3, 3))


def test_self_intersection_is_repaired(assembler, error_handler):
    bowtie = [(0, 0), (10, 10), (10, 0), (0, 4), (0, 0)]

    geometry = assembler.assemble([BoundaryFragment(3, bowtie)])

    assert geometry.is_valid
    assert geometry.area > 0
    kinds = [warning.kind for warning in error_handler.get_warnings()]
    assert kinds == ['geometry_repaired']


def test_figure_eight_with_cancelling_lobes_is_repaired(assembler, error_handler):
    # Lobes wound in opposite directions: signed area is zero
    figure_eight = [(0, 0), (10, 10), (10, 0), (0, 10), (0, 0)]

    geometry = assembler.assemble([BoundaryFragment(5, figure_eight)])

    assert geometry.is_valid
    assert len(geometry.geoms) == 2
    assert geometry.area == pytest.approx(50.0)
    kinds = [warning.kind for warning in error_handler.get_warnings()]
    assert kinds == ['geometry_repaired']


def test_ring_area_measures_self_intersecting_ring_after_repair():
    assert ring_area(Polygon([(0, 0), (10, 10), (10, 0), (0, 10)])) == pytest.approx(50.0)
    assert ring_area(Polygon(rectangle_coords(0, 0, 4, 5))) == pytest.approx(20.0)


def test_repair_losing_too_much_area_rejected(error_handler, logger, monkeypatch):
    monkeypatch.setattr(assembler_module, "make_valid", lambda geometry: box(0, 0, 1, 1))
    monkeypatch.setattr(assembler_module, "buffer_repair", lambda geometry: box(0, 0, 1, 1))
    strict = GeometryAssembler(BuilderConfig(max_repair_area_loss=0.2), error_handler, logger)
    bowtie = [(0, 0), (10, 10), (10, 0), (0, 4), (0, 0)]

    with pytest.raises(InvalidGeometryError) as exc_info:
        strict.assemble([BoundaryFragment(6, bowtie)])

    assert exc_info.value.zone_id == 6
    assert "repair loses" in exc_info.value.reason
    assert error_handler.get_warnings() == []


def test_repair_within_area_loss_bound_accepted(error_handler, logger, monkeypatch):
    monkeypatch.setattr(assembler_module, "make_valid", lambda geometry: box(0, 0, 1, 1))
    lenient = GeometryAssembler(BuilderConfig(max_repair_area_loss=1.0), error_handler, logger)
    bowtie = [(0, 0), (10, 10), (10, 0), (0, 4), (0, 0)]

    geometry = lenient.assemble([BoundaryFragment(6, bowtie)])

    assert geometry.area == pytest.approx(1.0)
    warning = error_handler.get_warnings()[0]
    assert warning.kind == 'geometry_repaired'
    assert warning.context['area_loss'] > 0.9


def test_repair_area_loss():
    assert repair_area_loss(100.0, 75.0) == pytest.approx(0.25)
    assert repair_area_loss(100.0, 120.0) == 0.0
    assert repair_area_loss(0.0, 50.0) == 0.0


def test_degenerate_ring_dropped_with_warning(assembler, error_handler):
    fragments = [
        BoundaryFragment(4, rectangle_coords(0, 0, 10, 10)),
        BoundaryFragment(4, [(20, 20), (21, 21), (20, 20)]),
    ]

    geometry = assembler.assemble(fragments)

    assert geometry.area == pytest.approx(100.0)
    warnings = error_handler.get_warnings()
    assert [warning.kind for warning in warnings] == ['degenerate_ring']
    assert warnings[0].zone_id == 4


def test_only_degenerate_rings_is_empty_geometry(assembler):
    with pytest.raises(InvalidGeometryError) as exc_info:
        assembler.assemble([BoundaryFragment(4, [(0, 0), (1, 0), (2, 0), (0, 0)])])

    assert exc_info.value.reason == 'empty'


def test_no_fragments_is_empty_geometry(assembler):
    with pytest.raises(InvalidGeometryError):
        assembler.assemble([], relation_id=12)


def test_endpoints_matched_after_snapping(assembler):
    fragments = [
        BoundaryFragment(1, [(0, 0), (10, 0), (10, 10)]),
        BoundaryFragment(1, [(10.00000000001, 10), (0, 10), (0, 0)]),
    ]

    geometry = assembler.assemble(fragments)

    assert geometry.area == pytest.approx(100.0)


def test_rings_touching_at_a_node_are_split(assembler):
    # Two squares sharing the corner (10, 10), each drawn as two fragments
    fragments = [
        BoundaryFragment(1, [(0, 0), (10, 0), (10, 10)]),
        BoundaryFragment(1, [(10, 10), (20, 10), (20, 20)]),
        BoundaryFragment(1, [(20, 20), (10, 20), (10, 10)]),
        BoundaryFragment(1, [(10, 10), (0, 10), (0, 0)]),
    ]

    geometry = assembler.assemble(fragments)

    assert geometry.is_valid
    assert len(geometry.geoms) == 2
    assert geometry.area == pytest.approx(200.0)


def test_mixed_relations_rejected(assembler):
    with pytest.raises(ValueError):
        assembler.assemble([
            BoundaryFragment(1, rectangle_coords(0, 0, 1, 1)),
            BoundaryFragment(2, rectangle_coords(0, 0, 1, 1)),
        ])


def test_group_fragments_by_relation():
    fragments = [
        BoundaryFragment(2, [(0, 0), (1, 1)]),
        BoundaryFragment(1, [(0, 0), (1, 1)]),
        BoundaryFragment(2, [(1, 1), (2, 2)]),
    ]

    groups = group_fragments_by_relation(fragments)

    assert sorted(groups) == [1, 2]
    assert len(groups[2]) == 2


def test_representative_point_falls_back_when_centroid_outside():
    u_shape = Polygon(
        [(0, 0), (30, 0), (30, 30), (20, 30), (20, 10), (10, 10), (10, 30), (0, 30), (0, 0)]
    )
    geometry = MultiPolygon([u_shape])
    assert not geometry.contains(geometry.centroid)

    x, y = representative_point(geometry)

    assert geometry.contains(Point(x, y))


def test_representative_point_uses_centroid_when_inside():
    geometry = MultiPolygon([Polygon(rectangle_coords(0, 0, 10, 10))])

    assert representative_point(geometry) == pytest.approx((5.0, 5.0))
